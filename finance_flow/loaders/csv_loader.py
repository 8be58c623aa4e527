# finance_flow/loaders/csv_loader.py
import logging
import re

import pandas as pd

from finance_flow.core.models import Transaction, TransactionType
from finance_flow.core.taxonomy import DEFAULT_TAXONOMY
from finance_flow.loaders.base import BaseLoader
from finance_flow.utils import new_id, parse_timestamp

logger = logging.getLogger(__name__)

_CLEAN_AMOUNT = re.compile(r"[^\d\-\.]")

# English headers plus the Spanish ones used by the mobile app export.
_COLUMNS = {
    'date': ('date', 'fecha'),
    'description': ('description', 'descripcion', 'descripción', 'concepto'),
    'category': ('category', 'categoria', 'categoría'),
    'sub_category': ('sub_category', 'subcategory', 'subcategoria', 'subcategoría'),
    'type': ('type', 'tipo'),
    'amount': ('amount', 'monto', 'importe'),
}

_TYPE_WORDS = {
    'income': TransactionType.INCOME,
    'ingreso': TransactionType.INCOME,
    'credit': TransactionType.INCOME,
    'expense': TransactionType.EXPENSE,
    'gasto': TransactionType.EXPENSE,
    'debit': TransactionType.EXPENSE,
}


class CSVLoader(BaseLoader):
    """
    Reads transaction CSV files. Without a type column the sign of the
    amount decides: negative rows are expenses, the rest income.
    """

    def __init__(self, dayfirst=False, taxonomy=DEFAULT_TAXONOMY):
        self.dayfirst = dayfirst
        self.taxonomy = taxonomy

    def load(self, file_path, account_id):
        df = pd.read_csv(file_path, dtype=str, keep_default_na=False)

        # 1. Column lookup
        cols = {str(c).strip().lower(): c for c in df.columns}
        def find(field):
            for alias in _COLUMNS[field]:
                if alias in cols:
                    return cols[alias]
            return None

        date_col = find('date')
        amt_col = find('amount')
        desc_col = find('description')
        for name, col in (('date', date_col), ('amount', amt_col), ('description', desc_col)):
            if col is None:
                raise RuntimeError(f"Missing required column '{name}' in {file_path}")
        cat_col, sub_col, type_col = find('category'), find('sub_category'), find('type')

        # 2. Parse & yield, skipping rows we cannot read
        for idx, row in df.iterrows():
            cleaned = _CLEAN_AMOUNT.sub("", str(row[amt_col]))
            try:
                amount = float(cleaned)
            except ValueError:
                logger.warning("Skipping row %s of %s: bad amount %r", idx, file_path, row[amt_col])
                continue

            stamp = pd.to_datetime(row[date_col], dayfirst=self.dayfirst, errors='coerce')
            if pd.isna(stamp):
                logger.warning("Skipping row %s of %s: bad date %r", idx, file_path, row[date_col])
                continue

            tx_type = None
            if type_col is not None:
                tx_type = _TYPE_WORDS.get(str(row[type_col]).strip().lower())
                if tx_type is None:
                    try:
                        tx_type = TransactionType(str(row[type_col]).strip().upper())
                    except ValueError:
                        tx_type = None
            if tx_type is None:
                tx_type = TransactionType.EXPENSE if amount < 0 else TransactionType.INCOME

            category = str(row[cat_col]).strip() if cat_col is not None else ''
            sub = str(row[sub_col]).strip() if sub_col is not None else ''
            yield Transaction(
                id=new_id(),
                account_id=account_id,
                amount=abs(amount),
                description=str(row[desc_col]).strip(),
                category=category,
                type=tx_type,
                date=parse_timestamp(stamp.to_pydatetime()),
                icon=self.taxonomy.icon_for(category) if category else 'shopping',
                sub_category=sub or None,
            )
