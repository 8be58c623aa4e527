# finance_flow/stores/mirrored.py
import logging
import sqlite3

from finance_flow.stores.base import BaseStore
from finance_flow.stores.json_store import JsonStore
from finance_flow.stores.sqlite_store import SQLiteStore

logger = logging.getLogger(__name__)


class MirroredStore(BaseStore):
    """
    Reads from the local store; every write goes to the local store first and
    is then copied to the remote one. A failing remote write is logged and
    does not undo the local write.
    """

    def __init__(self, local: BaseStore, remote: BaseStore):
        self.local = local
        self.remote = remote

    @classmethod
    def from_config(cls, config):
        return cls(JsonStore.from_config(config), SQLiteStore.from_config(config))

    def _mirror(self, method, *args):
        result = getattr(self.local, method)(*args)
        try:
            getattr(self.remote, method)(*args)
        except (sqlite3.Error, OSError) as e:
            logger.warning("Remote mirror failed on %s: %s", method, e)
        return result

    def load_accounts(self):
        return self.local.load_accounts()

    def load_transactions(self):
        return self.local.load_transactions()

    def load_templates(self):
        return self.local.load_templates()

    def upsert_account(self, account):
        self._mirror('upsert_account', account)

    def upsert_transactions(self, transactions):
        self._mirror('upsert_transactions', list(transactions))

    def upsert_template(self, template):
        self._mirror('upsert_template', template)

    def delete_account(self, account_id):
        self._mirror('delete_account', account_id)

    def delete_transaction(self, transaction_id):
        return self._mirror('delete_transaction', transaction_id)

    def delete_template(self, template_id):
        return self._mirror('delete_template', template_id)
