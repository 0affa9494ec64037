from .database import KeyValueStore, InMemoryStore, SQLiteStore, get_store
from .items import ItemStore

__all__ = ["KeyValueStore", "InMemoryStore", "SQLiteStore", "get_store", "ItemStore"]
