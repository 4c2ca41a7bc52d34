"""Error taxonomy shared by the fetcher, gateways and reconciler."""

from __future__ import annotations


class OrderRelayError(Exception):
    """Base class for all order-relay failures."""


class UpstreamError(OrderRelayError):
    """Non-success response or network failure while paging upstream orders."""

    def __init__(self, message: str, status_code: int | None = None) -> None:
        super().__init__(message)
        self.status_code = status_code


class PersistenceError(OrderRelayError):
    """Read or write failure for a single order document."""

    def __init__(self, order_id: str, message: str) -> None:
        super().__init__(f"{order_id}: {message}")
        self.order_id = order_id


class BroadcastError(OrderRelayError):
    """Publishing a change event failed."""


class ConfigurationError(OrderRelayError):
    """Required settings are missing or invalid."""

    def __init__(self, message: str, missing: list[str] | None = None) -> None:
        super().__init__(message)
        self.missing = list(missing or [])


__all__ = [
    "BroadcastError",
    "ConfigurationError",
    "OrderRelayError",
    "PersistenceError",
    "UpstreamError",
]
