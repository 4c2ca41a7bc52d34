"""In-memory tracker of line items already observed per order."""

from __future__ import annotations

from threading import Lock
from typing import Dict, Iterable, Set


class SeenItemTracker:
    """Per-order sets of observed item keys.

    State lives for the process lifetime only; a restart starts from empty sets.
    Every item fetched for a processed order is marked, and marking happens only
    after that order's document was written.
    """

    def __init__(self) -> None:
        self._seen: Dict[str, Set[str]] = {}
        self._lock = Lock()

    def is_new(self, order_id: str, item_key: str) -> bool:
        with self._lock:
            return item_key not in self._seen.setdefault(order_id, set())

    def new_keys(self, order_id: str, item_keys: Iterable[str]) -> list[str]:
        with self._lock:
            seen = self._seen.setdefault(order_id, set())
            return [key for key in item_keys if key not in seen]

    def mark_seen(self, order_id: str, item_keys: Iterable[str]) -> None:
        with self._lock:
            self._seen.setdefault(order_id, set()).update(item_keys)

    def forget(self, order_id: str) -> None:
        with self._lock:
            self._seen.pop(order_id, None)

    def reset(self) -> None:
        with self._lock:
            self._seen.clear()

    def __contains__(self, order_id: object) -> bool:
        with self._lock:
            return order_id in self._seen

    def __len__(self) -> int:
        with self._lock:
            return len(self._seen)


__all__ = ["SeenItemTracker"]
