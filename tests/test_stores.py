import json
import sqlite3
from datetime import datetime

import pytest

from finance_flow.core.models import Account, AccountType, Transaction, TransactionTemplate, TransactionType
from finance_flow.stores import get_store
from finance_flow.stores.json_store import JsonStore
from finance_flow.stores.mirrored import MirroredStore
from finance_flow.stores.sqlite_store import SQLiteStore
from finance_flow.config import load_config


def _tx(tx_id, account="a", amount=10.0, **kw):
    return Transaction(
        id=tx_id,
        account_id=account,
        amount=amount,
        description="Coffee",
        category="Food and Drink",
        type=TransactionType.EXPENSE,
        date=datetime(2024, 1, 2, 9, 30),
        icon="food",
        **kw,
    )


@pytest.fixture(params=["json", "sqlite"])
def store(request, tmp_path):
    if request.param == "json":
        return JsonStore(tmp_path / "data.json")
    return SQLiteStore(tmp_path / "data.db")


def test_empty_store_loads_nothing(store):
    assert store.load_accounts() == []
    assert store.load_transactions() == []
    assert store.load_templates() == []


def test_round_trip(store):
    store.upsert_account(Account("a", "Main", AccountType.CARD, "#000000"))
    store.upsert_transactions([_tx("t1", sub_category="Cafe", is_recurring=True, recurrence_id="r1")])
    store.upsert_template(TransactionTemplate("p1", "Coffee", "a", 3.0, "Coffee", "Food and Drink", TransactionType.EXPENSE, "food"))

    assert store.load_accounts() == [Account("a", "Main", AccountType.CARD, "#000000")]
    [loaded] = store.load_transactions()
    assert loaded == _tx("t1", sub_category="Cafe", is_recurring=True, recurrence_id="r1")
    assert store.load_templates()[0].name == "Coffee"


def test_upsert_replaces_by_id(store):
    store.upsert_transactions([_tx("t1")])
    store.upsert_transaction(_tx("t1", amount=99.0))
    [loaded] = store.load_transactions()
    assert loaded.amount == 99.0


def test_delete_account_cascades(store):
    store.upsert_account(Account("a", "Main"))
    store.upsert_account(Account("b", "Other"))
    store.upsert_transactions([_tx("t1", "a"), _tx("t2", "b"), _tx("t3", "a")])
    store.delete_account("a")
    assert [acc.id for acc in store.load_accounts()] == ["b"]
    assert [tx.id for tx in store.load_transactions()] == ["t2"]


def test_delete_transaction_reports_count(store):
    store.upsert_transactions([_tx("t1")])
    assert store.delete_transaction("t1") == 1
    assert store.delete_transaction("t1") == 0


def test_json_store_prepends_new_transactions(tmp_path):
    store = JsonStore(tmp_path / "data.json")
    store.upsert_transactions([_tx("t1")])
    store.upsert_transactions([_tx("t2")])
    assert [tx.id for tx in store.load_transactions()] == ["t2", "t1"]


def test_json_store_skips_malformed_records(tmp_path):
    path = tmp_path / "data.json"
    good = _tx("ok").to_dict()
    path.write_text(json.dumps({
        "transactions": [good, {"id": "bad", "amount": -5}, "junk", dict(good, id="nodate", date="yesterday")],
    }))
    assert [tx.id for tx in JsonStore(path).load_transactions()] == ["ok"]


def test_import_backup_replaces_data(tmp_path):
    store = JsonStore(tmp_path / "data.json")
    store.upsert_transactions([_tx("old")])
    backup = tmp_path / "backup.json"
    backup.write_text(json.dumps({
        "accounts": [{"id": "a", "name": "Main", "type": "SAVINGS"}],
        "transactions": [_tx("new").to_dict(), {"id": "broken"}],
    }))
    counts = store.import_backup(backup)
    assert counts == {"accounts": 1, "transactions": 1, "templates": 0}
    assert [tx.id for tx in store.load_transactions()] == ["new"]


def test_import_backup_rejects_non_object(tmp_path):
    backup = tmp_path / "backup.json"
    backup.write_text("[]")
    with pytest.raises(ValueError):
        JsonStore(tmp_path / "data.json").import_backup(backup)


class BrokenRemote(SQLiteStore):
    def upsert_transactions(self, transactions):
        raise sqlite3.OperationalError("disk I/O error")


def test_mirrored_store_writes_both(tmp_path):
    local, remote = JsonStore(tmp_path / "data.json"), SQLiteStore(tmp_path / "data.db")
    store = MirroredStore(local, remote)
    store.upsert_transactions([_tx("t1")])
    assert [tx.id for tx in local.load_transactions()] == ["t1"]
    assert [tx.id for tx in remote.load_transactions()] == ["t1"]


def test_mirrored_store_keeps_local_write_when_remote_fails(tmp_path):
    local = JsonStore(tmp_path / "data.json")
    store = MirroredStore(local, BrokenRemote(tmp_path / "data.db"))
    store.upsert_transactions([_tx("t1")])
    assert [tx.id for tx in store.load_transactions()] == ["t1"]


def test_get_store_from_config(tmp_path):
    cfg = load_config(None)
    cfg["data_path"] = str(tmp_path / "x.json")
    cfg["db_path"] = str(tmp_path / "x.db")
    assert isinstance(get_store("json", cfg), JsonStore)
    assert isinstance(get_store("sqlite", cfg), SQLiteStore)
    mirrored = get_store("mirrored", cfg)
    assert isinstance(mirrored.local, JsonStore)


def test_get_store_unknown_name():
    with pytest.raises(ValueError, match="Unknown store 'redis'"):
        get_store("redis", load_config(None))


@pytest.mark.parametrize("raw, expected", [("false", False), ("True", True), ("0", False), (1, True), (False, False)])
def test_recurring_flag_parsed_from_stored_values(raw, expected):
    record = dict(_tx("t1").to_dict(), isRecurring=raw)
    assert Transaction.from_dict(record).is_recurring is expected
