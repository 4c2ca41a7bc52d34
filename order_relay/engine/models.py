"""Domain records exchanged between fetcher, merger, reconciler and gateways."""

from __future__ import annotations

from dataclasses import dataclass, field
from datetime import datetime, timezone
from enum import Enum
from typing import Any, Mapping


class WorkflowStatus(str, Enum):
    """Local-only lifecycle tag; never sourced from upstream."""

    NEW = "new"
    IN_PROGRESS = "in-progress"
    READY = "ready"
    DONE = "done"

    @classmethod
    def parse(cls, value: Any) -> "WorkflowStatus | None":
        try:
            return cls(value)
        except ValueError:
            return None


def from_epoch_ms(value: Any) -> datetime:
    return datetime.fromtimestamp(int(value) / 1000, tz=timezone.utc)


def to_epoch_ms(value: datetime) -> int:
    return int(value.timestamp() * 1000)


@dataclass(slots=True, frozen=True)
class RawItem:
    """Line item as returned upstream."""

    id: str | None
    name: str

    @classmethod
    def from_payload(cls, payload: Mapping[str, Any]) -> "RawItem | None":
        name = payload.get("name") or (payload.get("item") or {}).get("name")
        if not name:
            return None
        item_id = payload.get("id")
        return cls(id=str(item_id) if item_id else None, name=str(name))


@dataclass(slots=True)
class RawOrder:
    """Order as returned upstream, items in upstream order."""

    id: str
    title: str
    created_time: datetime
    modified_time: datetime
    items: list[RawItem] = field(default_factory=list)

    @classmethod
    def from_payload(cls, payload: Mapping[str, Any]) -> "RawOrder":
        created = from_epoch_ms(payload["createdTime"])
        modified_raw = payload.get("modifiedTime") or payload.get("updatedTime")
        modified = from_epoch_ms(modified_raw) if modified_raw else created
        line_items = (payload.get("lineItems") or {}).get("elements") or []
        items = [item for item in (RawItem.from_payload(li) for li in line_items) if item]
        return cls(
            id=str(payload["id"]),
            title=payload.get("title") or "",
            created_time=created,
            modified_time=modified,
            items=items,
        )


@dataclass(slots=True)
class OrderItem:
    """Merged line item with its resolved workflow status."""

    id: str | None
    name: str
    status: WorkflowStatus = WorkflowStatus.NEW

    def to_document(self) -> dict[str, Any]:
        document: dict[str, Any] = {"name": self.name, "status": self.status.value}
        if self.id is not None:
            document = {"id": self.id, **document}
        return document

    @classmethod
    def from_document(cls, document: Mapping[str, Any]) -> "OrderItem":
        # Documents written by the first poller generation used ``state``
        raw_status = document.get("status", document.get("state"))
        status = WorkflowStatus.parse(raw_status) or WorkflowStatus.NEW
        item_id = document.get("id")
        return cls(id=str(item_id) if item_id else None, name=str(document.get("name", "")), status=status)


@dataclass(slots=True)
class PersistedOrder:
    """Projected read of a stored order document: items and order status."""

    order_id: str
    items: list[OrderItem]
    status: str | None = None


@dataclass(slots=True)
class UpsertOutcome:
    created: bool
    modified: bool

    @property
    def changed(self) -> bool:
        return self.created or self.modified


@dataclass(slots=True)
class OrderEvent:
    """Change event broadcast to subscribers."""

    order_id: str
    title: str
    items: list[OrderItem]
    new_items: list[str]
    updated_at: datetime
    status: str | None = None

    def to_payload(self) -> dict[str, Any]:
        payload: dict[str, Any] = {
            "orderId": self.order_id,
            "title": self.title,
            "items": [item.to_document() for item in self.items],
            "newItems": list(self.new_items),
            "updatedAt": to_epoch_ms(self.updated_at),
        }
        if self.status is not None:
            payload["status"] = self.status
        return payload


__all__ = [
    "OrderEvent",
    "OrderItem",
    "PersistedOrder",
    "RawItem",
    "RawOrder",
    "UpsertOutcome",
    "WorkflowStatus",
    "from_epoch_ms",
    "to_epoch_ms",
]
