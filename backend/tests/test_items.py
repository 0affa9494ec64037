"""Tests for the linked-item store."""
import logging
import pytest

from finguard.errors import ItemNotFound, ValidationError
from finguard.models.provider import ProviderAccount
from finguard.storage.items import ItemStore


@pytest.fixture
def items(store, clock):
    return ItemStore(store, max_items=3, max_accounts_per_item=2, clock=clock)


def account(n, name="Checking"):
    return ProviderAccount(account_id=f"acc-{n}", name=name, type="depository")


def test_upsert_and_get_item(items):
    items.upsert_item("user-1", "item-a", "access-a", "ins_1")

    item = items.get_item("user-1", "item-a")
    assert item.access_token == "access-a"
    assert item.institution_id == "ins_1"
    assert item.status == "good"
    assert item.last_sync is None
    assert items.get_item("user-2", "item-a") is None


def test_relinking_refreshes_token(items):
    items.upsert_item("user-1", "item-a", "access-a", "ins_1")
    items.update_item("user-1", "item-a", status="bad")

    items.upsert_item("user-1", "item-a", "access-a2")

    (item,) = items.get_items("user-1")
    assert item.access_token == "access-a2"
    assert item.institution_id == "ins_1"
    assert item.status == "good"


def test_item_limit_per_user(items):
    for n in range(3):
        items.upsert_item("user-1", f"item-{n}", f"access-{n}")

    with pytest.raises(ValidationError) as exc_info:
        items.upsert_item("user-1", "item-3", "access-3")

    assert "limit" in exc_info.value.violations[0]
    items.upsert_item("user-1", "item-0", "access-0b")
    items.upsert_item("user-2", "item-3", "access-3")
    assert len(items.get_items("user-1")) == 3


def test_get_items_filters_by_status(items):
    items.upsert_item("user-1", "item-a", "access-a")
    items.upsert_item("user-1", "item-b", "access-b")
    items.update_item("user-1", "item-b", status="bad")

    assert [i.item_id for i in items.get_items("user-1")] == ["item-a"]
    assert [i.item_id for i in items.get_items("user-1", status=None)] == ["item-a", "item-b"]


def test_update_unknown_item(items):
    with pytest.raises(ItemNotFound):
        items.update_item("user-1", "missing", status="bad")


def test_accounts_are_capped_and_sanitized(items, caplog):
    items.upsert_item("user-1", "item-a", "access-a")

    with caplog.at_level(logging.WARNING, logger="finguard.storage.items"):
        stored = items.upsert_accounts("user-1", "item-a", [account(1, "<b>Main</b>"), account(2), account(3)])

    assert stored == 2
    accounts = items.get_accounts("user-1", "item-a")
    assert [a["account_id"] for a in accounts] == ["acc-1", "acc-2"]
    assert accounts[0]["name"] == "bMain/b"
    assert accounts[0]["updated_at"] == "2024-06-15T12:00:00+00:00"
    assert any("keeping the first 2" in r.message for r in caplog.records)


def test_transactions_are_indexed_once(items, store):
    items.upsert_transaction("user-1", "item-a", "txn-1", {"amount": -4.5})
    items.upsert_transaction("user-1", "item-a", "txn-1", {"amount": -5.0})
    items.upsert_transaction("user-1", None, "txn-2", {"amount": 1.0})

    assert store.get("item_transactions:user-1:item-a") == ["txn-1"]
    assert store.get("transactions:user-1:txn-1") == {"amount": -5.0, "item_id": "item-a"}
    assert store.get("transactions:user-1:txn-2") == {"amount": 1.0}


def test_remove_item_cascades(items, store):
    items.upsert_item("user-1", "item-a", "access-a")
    items.upsert_item("user-1", "item-b", "access-b")
    items.upsert_accounts("user-1", "item-a", [account(1), account(2)])
    items.upsert_transaction("user-1", "item-a", "txn-1", {"amount": -4.5})
    items.upsert_transaction("user-1", "item-b", "txn-2", {"amount": -1.0})

    removed = items.remove_item("user-1", "item-a")

    assert removed == {"accounts": 2, "transactions": 1}
    assert items.get_item("user-1", "item-a") is None
    assert items.get_accounts("user-1", "item-a") == []
    assert store.get("transactions:user-1:txn-1") is None
    assert store.get("transactions:user-1:txn-2") is not None
    assert [i.item_id for i in items.get_items("user-1")] == ["item-b"]


def test_remove_unknown_item(items):
    with pytest.raises(ItemNotFound):
        items.remove_item("user-1", "missing")
