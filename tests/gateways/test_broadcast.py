from __future__ import annotations

from datetime import datetime, timezone
from unittest.mock import MagicMock

import pytest

from order_relay.engine import OrderEvent, OrderItem
from order_relay.errors import BroadcastError
from order_relay.gateways import LogBroadcaster, PusherBroadcaster


def _event(status: str | None = "new") -> OrderEvent:
    return OrderEvent(
        order_id="A",
        title="Table 1",
        items=[OrderItem("1", "Latte")],
        new_items=["Latte"],
        updated_at=datetime(2024, 1, 1, tzinfo=timezone.utc),
        status=status,
    )


def test_pusher_broadcaster_triggers_channel_event() -> None:
    client = MagicMock()
    PusherBroadcaster(client, "orders", "order-updated").publish(_event())
    channel, event, payload = client.trigger.call_args.args
    assert (channel, event) == ("orders", "order-updated")
    assert payload["orderId"] == "A"
    assert payload["newItems"] == ["Latte"]
    assert payload["status"] == "new"


def test_pusher_failure_raises_broadcast_error() -> None:
    client = MagicMock()
    client.trigger.side_effect = RuntimeError("503")
    with pytest.raises(BroadcastError):
        PusherBroadcaster(client, "orders", "order-updated").publish(_event(None))


def test_log_broadcaster_logs_payload() -> None:
    logger = MagicMock()
    LogBroadcaster(logger).publish(_event())
    name = logger.info.call_args.args[0]
    assert name == "broadcast_suppressed"
    assert logger.info.call_args.kwargs["payload"]["orderId"] == "A"
