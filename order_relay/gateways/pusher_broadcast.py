"""Pusher Channels broadcaster."""

from __future__ import annotations

import pusher
import structlog

from ..config import PusherConfig
from ..engine.models import OrderEvent
from ..errors import BroadcastError
from .base import Broadcaster


class PusherBroadcaster(Broadcaster):
    """Trigger ``order-updated`` events on the ``orders`` channel."""

    def __init__(self, client: pusher.Pusher, channel: str, event: str) -> None:
        self.client = client
        self.channel = channel
        self.event = event

    @classmethod
    def from_config(cls, config: PusherConfig) -> "PusherBroadcaster":
        client = pusher.Pusher(
            app_id=config.app_id,
            key=config.key,
            secret=config.secret,
            cluster=config.cluster,
            ssl=True,
        )
        return cls(client, config.channel, config.event)

    def publish(self, event: OrderEvent) -> None:
        try:
            self.client.trigger(self.channel, self.event, event.to_payload())
        except Exception as exc:  # noqa: BLE001
            raise BroadcastError(f"{self.channel}/{self.event} publish failed: {exc}") from exc


class LogBroadcaster(Broadcaster):
    """Write events to the log instead of publishing them."""

    def __init__(self, logger: structlog.BoundLogger | None = None) -> None:
        self.logger = logger or structlog.get_logger("order_relay").bind(component="broadcast")

    def publish(self, event: OrderEvent) -> None:
        self.logger.info("broadcast_suppressed", payload=event.to_payload())


__all__ = ["LogBroadcaster", "PusherBroadcaster"]
