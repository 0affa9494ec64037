"""Tests for the key-value stores."""
import pytest

from finguard.storage.database import InMemoryStore, SQLiteStore, get_store


@pytest.fixture(params=["memory", "sqlite"])
def any_store(request, tmp_path):
    if request.param == "memory":
        return InMemoryStore()
    return SQLiteStore(str(tmp_path / "finguard.db"))


def test_get_set_delete(any_store):
    assert any_store.get("missing") is None
    assert any_store.get("missing", []) == []

    any_store.set("usage:user-1", [{"endpoint": "/accounts/get"}])
    assert any_store.get("usage:user-1") == [{"endpoint": "/accounts/get"}]

    any_store.delete("usage:user-1")
    assert any_store.get("usage:user-1") is None


def test_append(any_store):
    any_store.append("rate_limit:/accounts/get", 1.0)
    any_store.append("rate_limit:/accounts/get", 2.0)
    assert any_store.get("rate_limit:/accounts/get") == [1.0, 2.0]


def test_memory_store_isolates_values():
    store = InMemoryStore()
    value = {"tags": ["a"]}
    store.set("k", value)
    value["tags"].append("b")
    assert store.get("k") == {"tags": ["a"]}


def test_sqlite_store_persists(tmp_path):
    path = str(tmp_path / "finguard.db")
    SQLiteStore(path).set("security_logs", [{"event_type": "unauthorized_access"}])
    assert SQLiteStore(path).get("security_logs") == [{"event_type": "unauthorized_access"}]


def test_get_store(tmp_path):
    assert isinstance(get_store("memory://"), InMemoryStore)
    assert isinstance(get_store(f"sqlite:///{tmp_path / 'x.db'}"), SQLiteStore)
    with pytest.raises(ValueError):
        get_store("postgres://localhost/finguard")
