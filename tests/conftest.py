"""Shared fixtures: configuration builders and in-memory gateway fakes."""

from __future__ import annotations

from datetime import datetime, timedelta, timezone
from pathlib import Path
from typing import Any, Callable, Iterable, Mapping

import pytest

from order_relay.config import (
    ConfigLocator,
    ConfigRepository,
    MongoConfig,
    PollingConfig,
    PusherConfig,
    RelayConfig,
    UpstreamConfig,
)
from order_relay.engine import (
    FetchPage,
    OrderEvent,
    OrderItem,
    PersistedOrder,
    RawItem,
    RawOrder,
    UpsertOutcome,
)
from order_relay.errors import BroadcastError, PersistenceError, UpstreamError
from order_relay.gateways import Broadcaster, OrderStore

NOW = datetime(2024, 5, 20, 12, 0, 0, tzinfo=timezone.utc)


def make_order(
    order_id: str,
    *,
    age: timedelta = timedelta(minutes=5),
    items: Iterable[tuple[str | None, str]] = (),
    title: str = "",
    modified_after: timedelta = timedelta(0),
) -> RawOrder:
    created = NOW - age
    return RawOrder(
        id=order_id,
        title=title or f"Order {order_id}",
        created_time=created,
        modified_time=created + modified_after,
        items=[RawItem(id=item_id, name=name) for item_id, name in items],
    )


class FakeFetcher:
    """Serve canned pages keyed by offset; record every request."""

    def __init__(self, pages: list[list[RawOrder]], page_size: int = 2) -> None:
        self.pages = pages
        self.page_size = page_size
        self.calls: list[dict[str, Any]] = []
        self.fail_at: int | None = None

    def fetch(self, offset, limit, created_after=None, order_by=None) -> FetchPage:
        self.calls.append(
            {"offset": offset, "limit": limit, "created_after": created_after, "order_by": order_by}
        )
        if self.fail_at is not None and offset == self.fail_at:
            raise UpstreamError("Upstream returned 503: unavailable", status_code=503)
        index = offset // self.page_size
        records = self.pages[index] if index < len(self.pages) else []
        return FetchPage(offset=offset, limit=limit, records=list(records)[:limit])

    def close(self) -> None:
        return


class FakeStore(OrderStore):
    """Dict-backed store honouring set / set-on-insert semantics."""

    def __init__(self) -> None:
        self.documents: dict[str, dict[str, Any]] = {}
        self.fail_writes: set[str] = set()
        self.fail_reads: set[str] = set()
        self.upserts: list[tuple[str, dict, dict]] = []

    def seed(self, order_id: str, items: list[dict[str, Any]], status: str = "new") -> None:
        self.documents[order_id] = {"orderId": order_id, "items": items, "status": status}

    def load(self, order_id: str) -> PersistedOrder | None:
        if order_id in self.fail_reads:
            raise PersistenceError(order_id, "read failed: timeout")
        document = self.documents.get(order_id)
        if document is None:
            return None
        return PersistedOrder(
            order_id=order_id,
            items=[OrderItem.from_document(item) for item in document.get("items", [])],
            status=document.get("status"),
        )

    def upsert(self, order_id: str, set_fields: Mapping[str, Any], set_on_insert: Mapping[str, Any]) -> UpsertOutcome:
        if order_id in self.fail_writes:
            raise PersistenceError(order_id, "write failed: not primary")
        self.upserts.append((order_id, dict(set_fields), dict(set_on_insert)))
        document = self.documents.get(order_id)
        if document is None:
            self.documents[order_id] = {"orderId": order_id, **set_on_insert, **set_fields}
            return UpsertOutcome(created=True, modified=False)
        before = dict(document)
        document.update(set_fields)
        return UpsertOutcome(created=False, modified=document != before)


class FakeBroadcaster(Broadcaster):
    def __init__(self) -> None:
        self.events: list[OrderEvent] = []
        self.fail = False

    def publish(self, event: OrderEvent) -> None:
        if self.fail:
            raise BroadcastError("orders/order-updated publish failed: 503")
        self.events.append(event)

    @property
    def payloads(self) -> list[dict[str, Any]]:
        return [event.to_payload() for event in self.events]


@pytest.fixture
def fake_store() -> FakeStore:
    return FakeStore()


@pytest.fixture
def fake_broadcaster() -> FakeBroadcaster:
    return FakeBroadcaster()


@pytest.fixture
def clock() -> Callable[[], datetime]:
    return lambda: NOW


@pytest.fixture
def sample_relay_config() -> Callable[..., RelayConfig]:
    def _builder(**overrides: Any) -> RelayConfig:
        base: dict[str, Any] = {
            "upstream": UpstreamConfig(
                base_url="https://api.example.com/",
                merchant_id="MERCHANT1",
                access_token="token-123",
                page_size=2,
            ),
            "mongo": MongoConfig(uri="mongodb://localhost:27017", database="relay"),
            "pusher": PusherConfig(app_id="1", key="k", secret="s", cluster="eu"),
            "polling": PollingConfig(interval_seconds=5, window_hours=2),
        }
        base.update(overrides)
        return RelayConfig(**base)

    return _builder


@pytest.fixture
def temp_config_repository(tmp_path: Path, monkeypatch: pytest.MonkeyPatch) -> ConfigRepository:
    monkeypatch.setenv("ORDER_RELAY_HOME", str(tmp_path))
    return ConfigRepository(ConfigLocator(project_root=tmp_path), environ={})
