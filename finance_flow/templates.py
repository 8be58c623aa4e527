# finance_flow/templates.py
from datetime import datetime

from finance_flow.core.models import Transaction, TransactionTemplate
from finance_flow.utils import new_id, parse_timestamp


def apply_template(template: TransactionTemplate, date=None, id_factory=new_id) -> Transaction:
    """Copy a template into a new transaction draft dated ``date`` (default: now)."""
    when = parse_timestamp(date) if date is not None else datetime.now().replace(microsecond=0)
    return Transaction(
        id=id_factory(),
        account_id=template.account_id,
        amount=template.amount,
        description=template.description,
        category=template.category,
        type=template.type,
        date=when,
        icon=template.icon,
    )


def template_from_transaction(tx: Transaction, name: str, id_factory=new_id) -> TransactionTemplate:
    return TransactionTemplate(
        id=id_factory(),
        name=name,
        account_id=tx.account_id,
        amount=tx.amount,
        description=tx.description,
        category=tx.category,
        type=tx.type,
        icon=tx.icon,
    )
