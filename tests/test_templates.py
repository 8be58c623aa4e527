from datetime import datetime

from finance_flow.core.models import Transaction, TransactionTemplate, TransactionType
from finance_flow.templates import apply_template, template_from_transaction


def _template():
    return TransactionTemplate(
        id="tpl1",
        name="Coffee",
        account_id="a",
        amount=3.5,
        description="Morning coffee",
        category="Food and Drink",
        type=TransactionType.EXPENSE,
        icon="food",
    )


def test_apply_template_copies_fields():
    tx = apply_template(_template(), "2024-05-01T08:00:00", id_factory=lambda: "new")
    assert tx.id == "new"
    assert tx.date == datetime(2024, 5, 1, 8, 0)
    assert (tx.account_id, tx.amount, tx.category, tx.icon) == ("a", 3.5, "Food and Drink", "food")
    assert not tx.is_recurring


def test_apply_template_defaults_to_now():
    before = datetime.now().replace(microsecond=0)
    tx = apply_template(_template())
    assert tx.date >= before


def test_template_from_transaction():
    tx = Transaction(
        id="t1", account_id="b", amount=800, description="Rent", category="Home",
        type=TransactionType.EXPENSE, date=datetime(2024, 1, 1), icon="home",
    )
    tpl = template_from_transaction(tx, "Monthly rent", id_factory=lambda: "tpl9")
    assert tpl.id == "tpl9"
    assert tpl.name == "Monthly rent"
    assert (tpl.account_id, tpl.amount, tpl.category, tpl.type) == ("b", 800, "Home", TransactionType.EXPENSE)
