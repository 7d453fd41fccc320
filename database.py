"""
Key-value store

Everything the storefront keeps between sessions lives under a handful of
string keys holding JSON text:

- "cart_v2"     -> mapping of product id to cart line
- "orders_v2"   -> list of orders
- "payments_v2" -> list of payment records

Two stores are provided: MemoryStore for tests and single-process demos, and
MongoStore which keeps one document per key in a MongoDB collection.
"""

import json
import logging
from typing import Any, Dict, Optional

from pymongo import MongoClient
from pymongo.errors import PyMongoError

import settings

logger = logging.getLogger(__name__)

CART_KEY = "cart_v2"
ORDERS_KEY = "orders_v2"
PAYMENTS_KEY = "payments_v2"


class StorageError(Exception):
    """The store could not persist a value."""


class StorageQuotaExceeded(StorageError):
    """Writing the value would exceed the store's size quota."""


class KeyValueStore:
    def get(self, key: str) -> Optional[str]:
        raise NotImplementedError

    def set(self, key: str, value: str) -> None:
        raise NotImplementedError

    def keys(self):
        raise NotImplementedError


class MemoryStore(KeyValueStore):
    """Dict-backed store. An optional quota (in characters, summed over all
    values) makes writes fail the way a full browser store does."""

    def __init__(self, quota: Optional[int] = None):
        self._data: Dict[str, str] = {}
        self.quota = quota

    def get(self, key: str) -> Optional[str]:
        return self._data.get(key)

    def set(self, key: str, value: str) -> None:
        if not isinstance(value, str):
            raise TypeError("store values must be strings")
        if self.quota is not None:
            used = sum(len(v) for k, v in self._data.items() if k != key)
            if used + len(value) > self.quota:
                raise StorageQuotaExceeded(f"writing {key!r} exceeds quota of {self.quota}")
        self._data[key] = value

    def keys(self):
        return list(self._data)


class MongoStore(KeyValueStore):
    """One document per key: {"_id": key, "value": <json text>}."""

    def __init__(self, collection):
        self.collection = collection

    def get(self, key: str) -> Optional[str]:
        doc = self.collection.find_one({"_id": key})
        if not doc:
            return None
        return doc.get("value")

    def set(self, key: str, value: str) -> None:
        try:
            self.collection.replace_one({"_id": key}, {"_id": key, "value": value}, upsert=True)
        except PyMongoError as e:
            raise StorageError(f"could not write {key!r}: {e}") from e

    def keys(self):
        return [d["_id"] for d in self.collection.find({}, {"_id": 1})]


def load_json(store: KeyValueStore, key: str, default: Any) -> Any:
    """Read and decode a JSON value; absent or corrupt values give `default`."""
    raw = store.get(key)
    if raw is None:
        return default
    try:
        return json.loads(raw)
    except (TypeError, ValueError):
        logger.debug("Ignoring corrupt value under %s", key)
        return default


def dump_json(store: KeyValueStore, key: str, value: Any) -> None:
    store.set(key, json.dumps(value))


def get_store() -> KeyValueStore:
    if settings.DATABASE_URL and settings.DATABASE_NAME:
        client = MongoClient(settings.DATABASE_URL)
        db = client[settings.DATABASE_NAME]
        logger.info("Using MongoDB store %s.%s", settings.DATABASE_NAME, settings.STORE_COLLECTION)
        return MongoStore(db[settings.STORE_COLLECTION])
    logger.info("DATABASE_URL/DATABASE_NAME not set, using in-memory store")
    return MemoryStore()
