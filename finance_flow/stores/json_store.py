# finance_flow/stores/json_store.py
import json
import logging
import os
from pathlib import Path

from finance_flow.core.models import Account, InvalidRecordError, Transaction, TransactionTemplate
from finance_flow.stores.base import BaseStore

logger = logging.getLogger(__name__)

_SECTIONS = ("accounts", "transactions", "templates")


def parse_records(records, model):
    """Convert raw dicts into ``model`` instances, skipping malformed ones."""
    parsed = []
    for record in records or []:
        if not isinstance(record, dict):
            logger.warning("Skipping non-object %s record: %r", model.__name__, record)
            continue
        try:
            parsed.append(model.from_dict(record))
        except InvalidRecordError as e:
            logger.warning("Skipping malformed %s record: %s", model.__name__, e)
    return parsed


class JsonStore(BaseStore):
    """
    Single JSON document holding every collection, the local counterpart of
    browser key-value storage. Each write rewrites the document atomically.
    """

    def __init__(self, path):
        self.path = Path(path)

    @classmethod
    def from_config(cls, config):
        return cls(config.get('data_path', 'finance_flow.json'))

    def _read(self):
        if not self.path.exists():
            return {section: [] for section in _SECTIONS}
        with self.path.open(encoding='utf-8') as f:
            data = json.load(f) or {}
        return {section: list(data.get(section) or []) for section in _SECTIONS}

    def _write(self, data):
        self.path.parent.mkdir(parents=True, exist_ok=True)
        tmp = self.path.with_suffix(self.path.suffix + '.tmp')
        with tmp.open('w', encoding='utf-8') as f:
            json.dump(data, f, indent=2, ensure_ascii=False)
        os.replace(tmp, self.path)

    def load_accounts(self):
        return parse_records(self._read()['accounts'], Account)

    def load_transactions(self):
        return parse_records(self._read()['transactions'], Transaction)

    def load_templates(self):
        return parse_records(self._read()['templates'], TransactionTemplate)

    def _upsert(self, section, records, prepend=False):
        data = self._read()
        existing = data[section]
        index = {rec.get('id'): i for i, rec in enumerate(existing) if isinstance(rec, dict)}
        new = []
        for record in records:
            payload = record.to_dict()
            if payload['id'] in index:
                existing[index[payload['id']]] = payload
            else:
                new.append(payload)
        data[section] = new + existing if prepend else existing + new
        self._write(data)

    def upsert_account(self, account):
        self._upsert('accounts', [account])

    def upsert_transactions(self, transactions):
        self._upsert('transactions', list(transactions), prepend=True)

    def upsert_template(self, template):
        self._upsert('templates', [template])

    def _delete(self, section, predicate):
        data = self._read()
        before = len(data[section])
        data[section] = [rec for rec in data[section] if not predicate(rec)]
        self._write(data)
        return before - len(data[section])

    def delete_account(self, account_id):
        self._delete('accounts', lambda rec: rec.get('id') == account_id)
        removed = self._delete(
            'transactions',
            lambda rec: (rec.get('accountId') or rec.get('account_id')) == account_id,
        )
        logger.info("Deleted account %s and %d transaction(s)", account_id, removed)

    def delete_transaction(self, transaction_id):
        return self._delete('transactions', lambda rec: rec.get('id') == transaction_id)

    def delete_template(self, template_id):
        return self._delete('templates', lambda rec: rec.get('id') == template_id)

    def import_backup(self, path):
        """Replace the current data with a backup file; malformed records are dropped."""
        with open(path, encoding='utf-8') as f:
            raw = json.load(f)
        if not isinstance(raw, dict):
            raise ValueError(f"Backup file {path} does not contain a JSON object")
        accounts = parse_records(raw.get('accounts'), Account)
        transactions = parse_records(raw.get('transactions'), Transaction)
        templates = parse_records(raw.get('templates'), TransactionTemplate)
        self._write({
            'accounts': [a.to_dict() for a in accounts],
            'transactions': [t.to_dict() for t in transactions],
            'templates': [t.to_dict() for t in templates],
        })
        return {'accounts': len(accounts), 'transactions': len(transactions), 'templates': len(templates)}
