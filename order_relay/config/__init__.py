"""Configuration package exports."""

from .loader import ConfigLocator, ConfigRepository
from .models import (
    ActiveHours,
    ItemKeyStrategy,
    MongoConfig,
    PollingConfig,
    PusherConfig,
    RelayConfig,
    UpstreamConfig,
)

__all__ = [
    "ActiveHours",
    "ConfigLocator",
    "ConfigRepository",
    "ItemKeyStrategy",
    "MongoConfig",
    "PollingConfig",
    "PusherConfig",
    "RelayConfig",
    "UpstreamConfig",
]
