import sqlite3
import logging
from pathlib import Path
from typing import Iterable, List

from finance_flow.core.models import Account, Transaction, TransactionTemplate
from finance_flow.stores.base import BaseStore
from finance_flow.stores.json_store import parse_records

logger = logging.getLogger(__name__)


def _init_db(conn: sqlite3.Connection) -> None:
    conn.executescript(
        """
        CREATE TABLE IF NOT EXISTS accounts (
            id TEXT PRIMARY KEY,
            name TEXT NOT NULL,
            type TEXT NOT NULL,
            color TEXT
        );
        CREATE TABLE IF NOT EXISTS transactions (
            id TEXT PRIMARY KEY,
            account_id TEXT NOT NULL,
            amount REAL NOT NULL,
            description TEXT NOT NULL,
            category TEXT,
            sub_category TEXT,
            type TEXT NOT NULL,
            date TEXT NOT NULL,
            icon TEXT,
            is_recurring INTEGER NOT NULL DEFAULT 0,
            recurrence_id TEXT
        );
        CREATE INDEX IF NOT EXISTS idx_transactions_account ON transactions(account_id);
        CREATE TABLE IF NOT EXISTS templates (
            id TEXT PRIMARY KEY,
            name TEXT NOT NULL,
            account_id TEXT NOT NULL,
            amount REAL NOT NULL,
            description TEXT,
            category TEXT,
            type TEXT NOT NULL,
            icon TEXT
        );
        """
    )
    conn.commit()


class SQLiteStore(BaseStore):
    """Relational store; rows map one-to-one onto the model records."""

    def __init__(self, db_path: str):
        self.db_path = Path(db_path)

    @classmethod
    def from_config(cls, config):
        return cls(config.get("db_path", "finance_flow.db"))

    def _connect(self) -> sqlite3.Connection:
        self.db_path.parent.mkdir(parents=True, exist_ok=True)
        conn = sqlite3.connect(self.db_path)
        conn.row_factory = sqlite3.Row
        _init_db(conn)
        return conn

    def _select(self, query: str, params: Iterable = ()) -> List[dict]:
        if not self.db_path.exists():
            return []
        conn = self._connect()
        try:
            return [dict(row) for row in conn.execute(query, list(params)).fetchall()]
        finally:
            conn.close()

    def _execute(self, query: str, rows: List[tuple]) -> None:
        if not rows:
            return
        conn = self._connect()
        try:
            conn.executemany(query, rows)
            conn.commit()
        finally:
            conn.close()

    def load_accounts(self) -> List[Account]:
        return parse_records(self._select("SELECT id, name, type, color FROM accounts ORDER BY name"), Account)

    def load_transactions(self) -> List[Transaction]:
        rows = self._select(
            """
            SELECT id, account_id, amount, description, category, sub_category,
                   type, date, icon, is_recurring, recurrence_id
            FROM transactions
            ORDER BY date DESC
            """
        )
        return parse_records(rows, Transaction)

    def load_templates(self) -> List[TransactionTemplate]:
        rows = self._select(
            "SELECT id, name, account_id, amount, description, category, type, icon FROM templates ORDER BY name"
        )
        return parse_records(rows, TransactionTemplate)

    def upsert_account(self, account: Account) -> None:
        self._execute(
            """
            INSERT INTO accounts (id, name, type, color) VALUES (?, ?, ?, ?)
            ON CONFLICT(id) DO UPDATE SET name=excluded.name, type=excluded.type, color=excluded.color
            """,
            [(account.id, account.name, account.type.value, account.color)],
        )

    def upsert_transactions(self, transactions: Iterable[Transaction]) -> None:
        rows = [
            (
                tx.id,
                tx.account_id,
                float(tx.amount),
                tx.description.strip(),
                tx.category,
                tx.sub_category,
                tx.type.value,
                tx.date.isoformat(),
                tx.icon,
                int(tx.is_recurring),
                tx.recurrence_id,
            )
            for tx in transactions
        ]
        self._execute(
            """
            INSERT INTO transactions
            (id, account_id, amount, description, category, sub_category,
             type, date, icon, is_recurring, recurrence_id)
            VALUES (?, ?, ?, ?, ?, ?, ?, ?, ?, ?, ?)
            ON CONFLICT(id) DO UPDATE SET
                account_id=excluded.account_id, amount=excluded.amount,
                description=excluded.description, category=excluded.category,
                sub_category=excluded.sub_category, type=excluded.type,
                date=excluded.date, icon=excluded.icon,
                is_recurring=excluded.is_recurring, recurrence_id=excluded.recurrence_id
            """,
            rows,
        )

    def upsert_template(self, template: TransactionTemplate) -> None:
        self._execute(
            """
            INSERT INTO templates (id, name, account_id, amount, description, category, type, icon)
            VALUES (?, ?, ?, ?, ?, ?, ?, ?)
            ON CONFLICT(id) DO UPDATE SET
                name=excluded.name, account_id=excluded.account_id, amount=excluded.amount,
                description=excluded.description, category=excluded.category,
                type=excluded.type, icon=excluded.icon
            """,
            [(
                template.id, template.name, template.account_id, float(template.amount),
                template.description, template.category, template.type.value, template.icon,
            )],
        )

    def delete_account(self, account_id: str) -> None:
        conn = self._connect()
        try:
            removed = conn.execute("DELETE FROM transactions WHERE account_id = ?", (account_id,)).rowcount
            conn.execute("DELETE FROM accounts WHERE id = ?", (account_id,))
            conn.commit()
        finally:
            conn.close()
        logger.info("Deleted account %s and %d transaction(s)", account_id, removed)

    def _delete_by_id(self, table: str, record_id: str) -> int:
        conn = self._connect()
        try:
            removed = conn.execute(f"DELETE FROM {table} WHERE id = ?", (record_id,)).rowcount
            conn.commit()
            return removed
        finally:
            conn.close()

    def delete_transaction(self, transaction_id: str) -> int:
        return self._delete_by_id("transactions", transaction_id)

    def delete_template(self, template_id: str) -> int:
        return self._delete_by_id("templates", template_id)
