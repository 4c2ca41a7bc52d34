"""Engine components: fetch → dedup → merge."""

from .dedup import SeenItemTracker
from .fetcher import FetchPage, OrderFetcher
from .merger import IdItemKey, ItemKey, NameItemKey, StateMerger, build_item_key
from .models import (
    OrderEvent,
    OrderItem,
    PersistedOrder,
    RawItem,
    RawOrder,
    UpsertOutcome,
    WorkflowStatus,
)

__all__ = [
    "FetchPage",
    "IdItemKey",
    "ItemKey",
    "NameItemKey",
    "OrderEvent",
    "OrderFetcher",
    "OrderItem",
    "PersistedOrder",
    "RawItem",
    "RawOrder",
    "SeenItemTracker",
    "StateMerger",
    "UpsertOutcome",
    "WorkflowStatus",
    "build_item_key",
]
