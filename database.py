"""
Key-value document store

All site content lives in one MongoDB collection, one document per key:

    {"_id": "service:65f0...", "value": {...}, "updated_at": datetime}

Keys are grouped by prefix ("service:", "review:", "gallery:", "blog:",
"order:", "price:") or are plain singleton names ("contacts", "branding", ...).
"""
import logging
import re
from datetime import datetime, timezone
from typing import Any, Dict, Iterable, List, Optional

from pymongo import MongoClient

import settings

logger = logging.getLogger("blisk.database")

_client: Optional[MongoClient] = None
db = None


def get_db():
    global _client, db
    if db is None:
        _client = MongoClient(settings.DATABASE_URL)
        db = _client[settings.DATABASE_NAME]
        logger.info("Connected to database %s", settings.DATABASE_NAME)
    return db


class KeyValueStore:
    def __init__(self, collection):
        self.collection = collection

    def get(self, key: str, default: Any = None) -> Any:
        doc = self.collection.find_one({"_id": key})
        if doc is None:
            return default
        return doc.get("value", default)

    def set(self, key: str, value: Any) -> None:
        self.collection.update_one(
            {"_id": key},
            {"$set": {"value": value, "updated_at": datetime.now(timezone.utc)}},
            upsert=True,
        )

    def delete(self, key: str) -> bool:
        res = self.collection.delete_one({"_id": key})
        return res.deleted_count > 0

    def keys(self, prefix: str = "") -> List[str]:
        flt = {"_id": {"$regex": "^" + re.escape(prefix)}} if prefix else {}
        return [d["_id"] for d in self.collection.find(flt, {"_id": 1}).sort("_id", 1)]

    def get_by_prefix(self, prefix: str) -> List[Any]:
        cur = self.collection.find({"_id": {"$regex": "^" + re.escape(prefix)}}).sort("_id", 1)
        return [d.get("value") for d in cur]

    def mget(self, keys: Iterable[str]) -> Dict[str, Any]:
        keys = list(keys)
        found = {d["_id"]: d.get("value") for d in self.collection.find({"_id": {"$in": keys}})}
        return {k: found.get(k) for k in keys}

    def delete_prefix(self, prefix: str) -> int:
        res = self.collection.delete_many({"_id": {"$regex": "^" + re.escape(prefix)}})
        return res.deleted_count


def get_store() -> KeyValueStore:
    return KeyValueStore(get_db()[settings.KV_COLLECTION])
