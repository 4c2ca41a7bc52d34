"""Gateway SPI for persistence and broadcast collaborators."""

from __future__ import annotations

from abc import ABC, abstractmethod
from typing import Any, Mapping

from ..engine.models import OrderEvent, PersistedOrder, UpsertOutcome


class OrderStore(ABC):
    """Keyed document store for order projections."""

    @abstractmethod
    def load(self, order_id: str) -> PersistedOrder | None:
        """Return items + status of the stored order, or ``None`` if absent."""

    @abstractmethod
    def upsert(
        self,
        order_id: str,
        set_fields: Mapping[str, Any],
        set_on_insert: Mapping[str, Any],
    ) -> UpsertOutcome:
        """Always write ``set_fields``; write ``set_on_insert`` only when creating."""

    def close(self) -> None:
        return


class Broadcaster(ABC):
    """Fire-and-forget publisher of order change events."""

    @abstractmethod
    def publish(self, event: OrderEvent) -> None:
        """Publish ``event``; raise ``BroadcastError`` on failure."""

    def close(self) -> None:
        return


__all__ = ["Broadcaster", "OrderStore"]
