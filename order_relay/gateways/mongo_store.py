"""MongoDB-backed order store."""

from __future__ import annotations

from typing import Any, Mapping

from pymongo import ASCENDING, MongoClient
from pymongo.collection import Collection
from pymongo.errors import PyMongoError

from ..config import MongoConfig
from ..engine.models import OrderItem, PersistedOrder, UpsertOutcome
from ..errors import PersistenceError
from .base import OrderStore

_PROJECTION = {"_id": 0, "items": 1, "status": 1, "state": 1}


class MongoOrderStore(OrderStore):
    """Upsert order documents keyed by ``orderId``."""

    def __init__(self, collection: Collection, client: MongoClient | None = None) -> None:
        self.collection = collection
        self.client = client

    @classmethod
    def from_config(cls, config: MongoConfig) -> "MongoOrderStore":
        client: MongoClient = MongoClient(config.uri)
        collection = client[config.database][config.collection]
        return cls(collection, client=client)

    def ensure_indexes(self) -> None:
        try:
            self.collection.create_index([("orderId", ASCENDING)], unique=True)
        except PyMongoError as exc:
            raise PersistenceError("*", f"index creation failed: {exc}") from exc

    def load(self, order_id: str) -> PersistedOrder | None:
        try:
            document = self.collection.find_one({"orderId": order_id}, projection=_PROJECTION)
        except PyMongoError as exc:
            raise PersistenceError(order_id, f"read failed: {exc}") from exc
        if document is None:
            return None
        items = [OrderItem.from_document(item) for item in document.get("items") or []]
        return PersistedOrder(
            order_id=order_id,
            items=items,
            status=document.get("status", document.get("state")),
        )

    def upsert(
        self,
        order_id: str,
        set_fields: Mapping[str, Any],
        set_on_insert: Mapping[str, Any],
    ) -> UpsertOutcome:
        overlap = set(set_fields) & set(set_on_insert)
        if overlap:
            raise ValueError(f"set and set_on_insert overlap: {sorted(overlap)}")
        update: dict[str, Any] = {"$set": dict(set_fields)}
        if set_on_insert:
            update["$setOnInsert"] = {"orderId": order_id, **set_on_insert}
        try:
            result = self.collection.update_one({"orderId": order_id}, update, upsert=True)
        except PyMongoError as exc:
            raise PersistenceError(order_id, f"write failed: {exc}") from exc
        return UpsertOutcome(
            created=result.upserted_id is not None,
            modified=bool(result.modified_count),
        )

    def close(self) -> None:
        if self.client is not None:
            self.client.close()


__all__ = ["MongoOrderStore"]
