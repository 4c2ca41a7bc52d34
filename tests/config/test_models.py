from __future__ import annotations

from datetime import datetime, time, timedelta, timezone

import pytest
from pydantic import ValidationError

from order_relay.config import ActiveHours, ItemKeyStrategy, PollingConfig, PusherConfig, RelayConfig, UpstreamConfig


def test_upstream_defaults_and_bounds() -> None:
    config = UpstreamConfig(base_url="https://api.example.com/")
    assert config.base_url == "https://api.example.com"
    assert config.page_size == 100
    with pytest.raises(ValidationError):
        UpstreamConfig(page_size=0)
    with pytest.raises(ValidationError):
        UpstreamConfig(page_size=1001)


def test_polling_defaults() -> None:
    polling = PollingConfig()
    assert polling.window == timedelta(hours=2)
    assert polling.item_key is ItemKeyStrategy.ID
    assert polling.ignore_items == []
    assert PollingConfig(item_key="name").item_key is ItemKeyStrategy.NAME
    with pytest.raises(ValidationError):
        PollingConfig(interval_seconds=0)


@pytest.mark.parametrize(
    ("start", "end", "moment", "expected"),
    [
        ("06:00", "22:00", time(12, 0), True),
        ("06:00", "22:00", time(22, 0), False),
        ("06:00", "22:00", time(5, 59), False),
        ("22:00", "02:00", time(23, 30), True),
        ("22:00", "02:00", time(1, 0), True),
        ("22:00", "02:00", time(12, 0), False),
    ],
)
def test_active_hours_contains(start, end, moment, expected) -> None:
    hours = ActiveHours(start=start, end=end)
    when = datetime.combine(datetime(2024, 1, 1).date(), moment, tzinfo=timezone.utc)
    assert hours.contains(when) is expected


def test_active_hours_rejects_empty_window() -> None:
    with pytest.raises(ValidationError):
        ActiveHours(start="08:00", end="08:00")


def test_missing_settings_skips_pusher_when_disabled() -> None:
    config = RelayConfig(pusher=PusherConfig(enabled=False))
    missing = config.missing_settings()
    assert "mongo.uri" in missing
    assert not any(name.startswith("pusher.") for name in missing)
    assert "pusher.key" in RelayConfig().missing_settings()
