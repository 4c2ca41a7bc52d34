"""Merge freshly fetched line items with previously persisted item state."""

from __future__ import annotations

from abc import ABC, abstractmethod
from typing import Iterable, Sequence

import structlog

from ..config import ItemKeyStrategy
from .models import OrderItem, RawItem, WorkflowStatus


class ItemKey(ABC):
    """Merge-key strategy for line items."""

    @abstractmethod
    def key(self, item: RawItem | OrderItem) -> str:
        """Return the identity used to match fresh and persisted items."""

    def legacy_key(self, item: RawItem | OrderItem) -> str | None:
        """Secondary identity tried against stored items when ``key`` misses."""

        return None


class IdItemKey(ItemKey):
    """Match on the upstream item id.

    Items without an id (documents written before ids were stored) fall back to
    a namespaced name key so they can never collide with a real id. A fresh item
    with an id can still adopt such a stored item through ``legacy_key``.
    """

    def key(self, item: RawItem | OrderItem) -> str:
        if item.id is not None:
            return item.id
        return self._name_key(item)

    def legacy_key(self, item: RawItem | OrderItem) -> str | None:
        if item.id is None:
            return None
        return self._name_key(item)

    @staticmethod
    def _name_key(item: RawItem | OrderItem) -> str:
        return f"name:{item.name}"


class NameItemKey(ItemKey):
    """Match on the display name.

    Two physical items sharing a name collapse into one entry; this is a known
    limitation of identity-less upstream payloads.
    """

    def key(self, item: RawItem | OrderItem) -> str:
        return item.name


def build_item_key(strategy: ItemKeyStrategy) -> ItemKey:
    if strategy is ItemKeyStrategy.NAME:
        return NameItemKey()
    return IdItemKey()


class StateMerger:
    """Authoritative-fresh merge preserving local workflow status."""

    def __init__(self, item_key: ItemKey | None = None, logger: structlog.BoundLogger | None = None) -> None:
        self.item_key = item_key or IdItemKey()
        self.logger = logger or structlog.get_logger("order_relay").bind(component="merger")

    def keys(self, items: Iterable[RawItem | OrderItem]) -> list[str]:
        """Distinct keys in first-seen order."""

        return list(dict.fromkeys(self.item_key.key(item) for item in items))

    def matched_keys(self, fresh_items: Sequence[RawItem], previous_items: Sequence[OrderItem]) -> set[str]:
        """Keys of fresh items that correspond to an already stored item."""

        return set(self._match(fresh_items, previous_items))

    def merge(self, fresh_items: Sequence[RawItem], previous_items: Sequence[OrderItem]) -> list[OrderItem]:
        if not fresh_items:
            # Upstream occasionally omits the expansion; keep what we have
            return list(previous_items)

        matched = self._match(fresh_items, previous_items)
        merged: dict[str, OrderItem] = {}
        for item in fresh_items:
            key = self.item_key.key(item)
            if key in merged:
                self.logger.debug("duplicate_item_key", key=key, name=item.name)
                continue
            status = matched.get(key, WorkflowStatus.NEW)
            merged[key] = OrderItem(id=item.id, name=item.name, status=status)
        return list(merged.values())

    def _match(self, fresh_items: Sequence[RawItem], previous_items: Sequence[OrderItem]) -> dict[str, WorkflowStatus]:
        previous_status: dict[str, WorkflowStatus] = {}
        for item in previous_items:
            previous_status.setdefault(self.item_key.key(item), item.status)

        # Each stored item is adopted at most once
        matched: dict[str, WorkflowStatus] = {}
        for item in fresh_items:
            key = self.item_key.key(item)
            if key in matched:
                continue
            if key in previous_status:
                matched[key] = previous_status.pop(key)
                continue
            legacy = self.item_key.legacy_key(item)
            if legacy is not None and legacy in previous_status:
                matched[key] = previous_status.pop(legacy)
        return matched


__all__ = ["IdItemKey", "ItemKey", "NameItemKey", "StateMerger", "build_item_key"]
