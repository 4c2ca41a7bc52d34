from __future__ import annotations

import json
from datetime import datetime, timezone

import httpx
import pytest

from order_relay.config import UpstreamConfig
from order_relay.engine.fetcher import OrderFetcher
from order_relay.errors import UpstreamError


def _order(order_id: str, created_ms: int, items: list[dict]) -> dict:
    return {
        "id": order_id,
        "title": f"Order {order_id}",
        "createdTime": created_ms,
        "modifiedTime": created_ms + 1000,
        "lineItems": {"elements": items},
    }


def _fetcher(handler, **overrides) -> OrderFetcher:
    config = UpstreamConfig(
        base_url="https://api.example.com/",
        merchant_id="M1",
        access_token="secret",
        page_size=overrides.pop("page_size", 2),
        **overrides,
    )
    return OrderFetcher(config, transport=httpx.MockTransport(handler))


def test_fetch_builds_paged_request_and_parses_records() -> None:
    captured: dict = {}

    def handler(request: httpx.Request) -> httpx.Response:
        captured["url"] = request.url
        captured["auth"] = request.headers.get("Authorization")
        body = {"elements": [_order("A", 1_700_000_000_000, [{"id": "L1", "name": "Latte"}])]}
        return httpx.Response(200, text=json.dumps(body))

    fetcher = _fetcher(handler)
    records, has_more = fetcher.fetch(offset=4, limit=50)
    fetcher.close()

    url = captured["url"]
    assert url.path == "/v3/merchants/M1/orders"
    assert url.params["limit"] == "2"
    assert url.params["offset"] == "4"
    assert url.params["expand"] == "lineItems"
    assert "filter" not in url.params
    assert captured["auth"] == "Bearer secret"
    assert not has_more
    assert records[0].id == "A"
    assert records[0].items[0].id == "L1"
    assert records[0].created_time == datetime.fromtimestamp(1_700_000_000, tz=timezone.utc)


def test_full_page_reports_more() -> None:
    def handler(request: httpx.Request) -> httpx.Response:
        body = {"elements": [_order("A", 1, []), _order("B", 2, [])]}
        return httpx.Response(200, json=body)

    fetcher = _fetcher(handler)
    page = fetcher.fetch(0, 2)
    fetcher.close()
    assert page.has_more


def test_created_filter_hint_only_when_enabled() -> None:
    seen: list[httpx.URL] = []

    def handler(request: httpx.Request) -> httpx.Response:
        seen.append(request.url)
        return httpx.Response(200, json={"elements": []})

    after = datetime(2024, 1, 1, tzinfo=timezone.utc)
    fetcher = _fetcher(handler, send_created_filter=True)
    fetcher.fetch(0, 2, created_after=after, order_by="createdTime DESC")
    fetcher.close()
    assert seen[0].params["filter"] == f"createdTime>{int(after.timestamp() * 1000)}"
    assert seen[0].params["orderBy"] == "createdTime DESC"


@pytest.mark.parametrize("status", [401, 429, 500])
def test_non_success_raises_upstream_error(status: int) -> None:
    fetcher = _fetcher(lambda request: httpx.Response(status, text="nope"))
    with pytest.raises(UpstreamError) as excinfo:
        fetcher.fetch(0, 2)
    fetcher.close()
    assert excinfo.value.status_code == status


def test_network_failure_raises_upstream_error() -> None:
    def handler(request: httpx.Request) -> httpx.Response:
        raise httpx.ConnectError("refused", request=request)

    fetcher = _fetcher(handler)
    with pytest.raises(UpstreamError):
        fetcher.fetch(0, 2)
    fetcher.close()


def test_malformed_payload_raises_upstream_error() -> None:
    fetcher = _fetcher(lambda request: httpx.Response(200, json={"elements": [{"title": "no id"}]}))
    with pytest.raises(UpstreamError):
        fetcher.fetch(0, 2)
    fetcher.close()
