"""HTTP fetching of upstream order pages."""

from __future__ import annotations

from dataclasses import dataclass, field
from datetime import datetime
from typing import Any

import httpx
import structlog

from ..config import UpstreamConfig
from ..errors import UpstreamError
from .models import RawOrder, to_epoch_ms


@dataclass(slots=True)
class FetchPage:
    """One page of upstream orders."""

    offset: int
    limit: int
    records: list[RawOrder] = field(default_factory=list)

    @property
    def has_more(self) -> bool:
        return len(self.records) >= self.limit

    def __iter__(self):
        yield self.records
        yield self.has_more


class OrderFetcher:
    """Read-only pager over ``/v3/merchants/{merchant}/orders``."""

    def __init__(
        self,
        config: UpstreamConfig,
        logger: structlog.BoundLogger | None = None,
        transport: httpx.BaseTransport | None = None,
    ) -> None:
        self.config = config
        self.logger = logger or structlog.get_logger("order_relay").bind(component="fetcher")
        self._client = httpx.Client(
            base_url=config.base_url,
            timeout=config.timeout,
            headers={"Authorization": f"Bearer {config.access_token}"},
            transport=transport,
        )

    @property
    def page_size(self) -> int:
        return self.config.page_size

    def close(self) -> None:
        self._client.close()

    def fetch(
        self,
        offset: int,
        limit: int,
        created_after: datetime | None = None,
        order_by: str | None = None,
    ) -> FetchPage:
        """Fetch one page; ``created_after`` is only a hint, callers still filter."""

        limit = max(1, min(limit, self.config.page_size))
        params: dict[str, Any] = {
            "expand": self.config.expand,
            "limit": limit,
            "offset": max(0, offset),
        }
        if order_by:
            params["orderBy"] = order_by
        if created_after is not None and self.config.send_created_filter:
            params["filter"] = f"createdTime>{to_epoch_ms(created_after)}"

        path = f"/v3/merchants/{self.config.merchant_id}/orders"
        try:
            response = self._client.get(path, params=params)
        except httpx.HTTPError as exc:
            raise UpstreamError(f"Upstream request failed: {exc}") from exc
        if not response.is_success:
            raise UpstreamError(
                f"Upstream returned {response.status_code}: {response.text[:200]}",
                status_code=response.status_code,
            )

        try:
            elements = (response.json() or {}).get("elements") or []
            records = [RawOrder.from_payload(element) for element in elements]
        except (ValueError, KeyError, TypeError) as exc:
            raise UpstreamError(f"Malformed upstream payload: {exc}") from exc

        self.logger.debug("page_fetched", offset=offset, limit=limit, count=len(records))
        return FetchPage(offset=offset, limit=limit, records=records)


__all__ = ["FetchPage", "OrderFetcher"]
