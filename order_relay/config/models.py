"""Pydantic models describing the relay configuration."""

from __future__ import annotations

from datetime import datetime, time, timedelta
from enum import Enum
from typing import Any

from pydantic import BaseModel, Field, field_validator, model_validator

MAX_PAGE_SIZE = 1000


class ItemKeyStrategy(str, Enum):
    """Which field identifies a line item across syncs."""

    ID = "id"
    NAME = "name"


class UpstreamConfig(BaseModel):
    """Connection settings for the upstream order API."""

    base_url: str = "https://apisandbox.dev.clover.com"
    merchant_id: str = ""
    access_token: str = ""
    expand: str = "lineItems"
    page_size: int = 100
    timeout: float = 15.0
    send_created_filter: bool = False

    @field_validator("base_url")
    @classmethod
    def _strip_slash(cls, value: str) -> str:
        return value.rstrip("/")

    @field_validator("page_size")
    @classmethod
    def _bound_page_size(cls, value: int) -> int:
        if not 1 <= value <= MAX_PAGE_SIZE:
            raise ValueError(f"page_size must be between 1 and {MAX_PAGE_SIZE}")
        return value


class MongoConfig(BaseModel):
    uri: str = ""
    database: str = ""
    collection: str = "ikds"


class PusherConfig(BaseModel):
    """Broadcast credentials; ``enabled=False`` logs events instead of publishing."""

    enabled: bool = True
    app_id: str = ""
    key: str = ""
    secret: str = ""
    cluster: str = ""
    channel: str = "orders"
    event: str = "order-updated"


class ActiveHours(BaseModel):
    """Daily local-time window during which polling is allowed.

    ``start`` after ``end`` describes a window crossing midnight, e.g. 22:00-02:00.
    """

    start: time
    end: time

    @model_validator(mode="after")
    def _validate_span(self) -> "ActiveHours":
        if self.start == self.end:
            raise ValueError("active_hours start and end must differ")
        return self

    def contains(self, moment: datetime) -> bool:
        current = moment.time().replace(tzinfo=None)
        if self.start < self.end:
            return self.start <= current < self.end
        return current >= self.start or current < self.end


class PollingConfig(BaseModel):
    """Cycle cadence and reconciliation behaviour."""

    interval_seconds: float = 1.0
    window_hours: float = 2.0
    item_key: ItemKeyStrategy = ItemKeyStrategy.ID
    ignore_items: list[str] = Field(default_factory=list)
    active_hours: ActiveHours | None = None

    @field_validator("interval_seconds", "window_hours")
    @classmethod
    def _positive(cls, value: float) -> float:
        if value <= 0:
            raise ValueError("must be greater than 0")
        return value

    @field_validator("ignore_items", mode="before")
    @classmethod
    def _coerce_ignore(cls, value: Any) -> list[str]:
        if value in (None, ""):
            return []
        if isinstance(value, str):
            value = value.split(",")
        return [str(name).strip() for name in value if str(name).strip()]

    @property
    def window(self) -> timedelta:
        return timedelta(hours=self.window_hours)


class RelayConfig(BaseModel):
    """Full relay configuration."""

    upstream: UpstreamConfig = Field(default_factory=UpstreamConfig)
    mongo: MongoConfig = Field(default_factory=MongoConfig)
    pusher: PusherConfig = Field(default_factory=PusherConfig)
    polling: PollingConfig = Field(default_factory=PollingConfig)

    def missing_settings(self) -> list[str]:
        """Return dotted names of required settings that are still empty."""

        required = {
            "upstream.merchant_id": self.upstream.merchant_id,
            "upstream.access_token": self.upstream.access_token,
            "mongo.uri": self.mongo.uri,
            "mongo.database": self.mongo.database,
        }
        if self.pusher.enabled:
            required.update(
                {
                    "pusher.app_id": self.pusher.app_id,
                    "pusher.key": self.pusher.key,
                    "pusher.secret": self.pusher.secret,
                    "pusher.cluster": self.pusher.cluster,
                }
            )
        return [name for name, value in required.items() if not value]


__all__ = [
    "ActiveHours",
    "ItemKeyStrategy",
    "MAX_PAGE_SIZE",
    "MongoConfig",
    "PollingConfig",
    "PusherConfig",
    "RelayConfig",
    "UpstreamConfig",
]
