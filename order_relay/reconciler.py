"""Polling-cycle orchestrator wiring fetch, dedup, merge, persistence and broadcast."""

from __future__ import annotations

import uuid
from dataclasses import dataclass
from datetime import datetime, timedelta, timezone
from threading import Lock
from typing import Callable, Iterable

import structlog

from .engine import (
    FetchPage,
    OrderEvent,
    OrderFetcher,
    OrderItem,
    RawOrder,
    SeenItemTracker,
    StateMerger,
    UpsertOutcome,
    WorkflowStatus,
)
from .engine.models import PersistedOrder
from .errors import BroadcastError, PersistenceError, UpstreamError
from .gateways import Broadcaster, OrderStore
from .logging_conf import component_logger

BACKFILL_ORDER = "createdTime DESC"


def _utcnow() -> datetime:
    return datetime.now(timezone.utc)


@dataclass(slots=True)
class CycleReport:
    """Counters describing one polling cycle."""

    cycle_id: str
    window_start: datetime | None = None
    pages: int = 0
    fetched: int = 0
    filtered: int = 0
    deferred: int = 0
    persisted: int = 0
    created: int = 0
    failed: int = 0
    broadcasts: int = 0
    broadcast_failures: int = 0
    aborted: bool = False
    skipped: bool = False
    error: str | None = None


@dataclass(slots=True)
class BackfillReport:
    fetched: int = 0
    created: int = 0
    modified: int = 0
    deferred: int = 0
    failed: int = 0

    @property
    def changed(self) -> int:
        return self.created + self.modified


@dataclass(slots=True)
class _SyncResult:
    existing: PersistedOrder | None
    merged: list[OrderItem]
    new_names: list[str]
    outcome: UpsertOutcome


class Reconciler:
    """Drive polling cycles against the upstream order source.

    A cycle pages newest-first through upstream orders, drops those created at or
    before ``now - window`` and processes the rest one at a time in upstream
    order. Cycles never overlap; a call made while another cycle is running
    returns a report flagged ``skipped``.
    """

    def __init__(
        self,
        fetcher: OrderFetcher,
        store: OrderStore,
        broadcaster: Broadcaster,
        merger: StateMerger | None = None,
        tracker: SeenItemTracker | None = None,
        window: timedelta = timedelta(hours=2),
        ignore_items: Iterable[str] = (),
        clock: Callable[[], datetime] = _utcnow,
        logger: structlog.BoundLogger | None = None,
    ) -> None:
        self.fetcher = fetcher
        self.store = store
        self.broadcaster = broadcaster
        self.merger = merger or StateMerger()
        self.tracker = tracker or SeenItemTracker()
        self.window = window
        self.ignore_items = frozenset(ignore_items)
        self.clock = clock
        self.logger = logger or component_logger("reconciler")
        self._cycle_lock = Lock()

    # ------------------------------------------------------------------
    def run_cycle(self) -> CycleReport:
        report = CycleReport(cycle_id=uuid.uuid4().hex[:8])
        if not self._cycle_lock.acquire(blocking=False):
            report.skipped = True
            self.logger.warning("cycle_overlap_skipped", cycle_id=report.cycle_id)
            return report

        structlog.contextvars.bind_contextvars(cycle_id=report.cycle_id)
        try:
            bound = self.clock() - self.window
            report.window_start = bound
            page_size = self.fetcher.page_size
            offset = 0
            while True:
                page = self.fetcher.fetch(offset, page_size, created_after=bound)
                report.pages += 1
                report.fetched += len(page.records)

                retained = [record for record in page.records if record.created_time > bound]
                report.filtered += len(page.records) - len(retained)
                for record in retained:
                    self._process_order(record, report)

                if self._is_last_page(page, bound):
                    break
                offset += page_size
        except UpstreamError as exc:
            report.aborted = True
            report.error = str(exc)
            self.logger.error("cycle_aborted", status_code=exc.status_code, error=str(exc), **self._counters(report))
        else:
            if report.broadcasts == 0:
                self.logger.info("cycle_no_new_items", **self._counters(report))
            else:
                self.logger.info("cycle_completed", **self._counters(report))
        finally:
            structlog.contextvars.unbind_contextvars("cycle_id")
            self._cycle_lock.release()
        return report

    def backfill(self, limit: int = 10) -> BackfillReport:
        """Sync the latest ``limit`` orders regardless of age, without broadcasting."""

        report = BackfillReport()
        with self._cycle_lock:
            for record in self._latest_orders(limit):
                report.fetched += 1
                items = self._retained_items(record)
                if not items:
                    report.deferred += 1
                    continue
                try:
                    result = self._sync_order(record, items)
                except PersistenceError as exc:
                    report.failed += 1
                    self.logger.error("backfill_order_failed", order_id=record.id, error=str(exc))
                    continue
                report.created += int(result.outcome.created)
                report.modified += int(result.outcome.modified)
                self.logger.info(
                    "backfill_order_synced",
                    order_id=record.id,
                    created=result.outcome.created,
                    modified=result.outcome.modified,
                )
        self.logger.info("backfill_completed", fetched=report.fetched, changed=report.changed)
        return report

    # ------------------------------------------------------------------
    def _latest_orders(self, limit: int) -> list[RawOrder]:
        """Page newest-first until ``limit`` orders are collected or upstream runs dry."""

        page_size = self.fetcher.page_size
        records: list[RawOrder] = []
        while len(records) < limit:
            page = self.fetcher.fetch(len(records), min(page_size, limit - len(records)), order_by=BACKFILL_ORDER)
            records.extend(page.records)
            if not page.records or not page.has_more:
                break
        return records[:limit]

    @staticmethod
    def _is_last_page(page: FetchPage, bound: datetime) -> bool:
        if not page.has_more:
            return True
        oldest = min(record.created_time for record in page.records)
        return oldest <= bound

    def _retained_items(self, record: RawOrder) -> list:
        return [item for item in record.items if item.name not in self.ignore_items]

    def _process_order(self, record: RawOrder, report: CycleReport) -> None:
        log = self.logger.bind(order_id=record.id)
        items = self._retained_items(record)
        if not items:
            report.deferred += 1
            log.info("order_deferred_no_items")
            return

        try:
            result = self._sync_order(record, items)
        except PersistenceError as exc:
            report.failed += 1
            log.error("order_failed", error=str(exc))
            return

        report.persisted += 1
        if result.existing is None:
            report.created += 1
        if not result.new_names:
            stored_status = result.existing.status if result.existing is not None else None
            log.debug("order_unchanged", items=len(result.merged), status=stored_status)
            return

        event = OrderEvent(
            order_id=record.id,
            title=record.title,
            items=result.merged,
            new_items=result.new_names,
            updated_at=record.modified_time,
            status=WorkflowStatus.NEW.value if result.existing is None else None,
        )
        try:
            self.broadcaster.publish(event)
        except BroadcastError as exc:
            report.broadcast_failures += 1
            log.error("broadcast_failed", error=str(exc))
            return
        report.broadcasts += 1
        log.info("order_broadcast", new_items=result.new_names, first_seen=result.existing is None)

    def _sync_order(self, record: RawOrder, items: list) -> _SyncResult:
        """Read, merge and upsert one order; mark its items seen once written."""

        item_key = self.merger.item_key
        keys = self.merger.keys(items)
        candidates = self.tracker.new_keys(record.id, keys)

        existing = self.store.load(record.id)
        previous = existing.items if existing is not None else []
        merged = self.merger.merge(items, previous)
        outcome = self.store.upsert(
            record.id,
            set_fields={
                "title": record.title,
                "items": [item.to_document() for item in merged],
                "updatedAt": record.modified_time,
            },
            set_on_insert={
                "status": WorkflowStatus.NEW.value,
                "createdAt": record.created_time,
            },
        )
        self.tracker.mark_seen(record.id, keys)

        # Items already in the stored document were announced before, even if this
        # process has not seen them (e.g. after a restart)
        persisted_keys = self.merger.matched_keys(items, previous)
        new_keys = {key for key in candidates if key not in persisted_keys}
        new_names = [item.name for item in merged if item_key.key(item) in new_keys]
        return _SyncResult(existing=existing, merged=merged, new_names=new_names, outcome=outcome)

    @staticmethod
    def _counters(report: CycleReport) -> dict:
        return {
            "pages": report.pages,
            "fetched": report.fetched,
            "filtered": report.filtered,
            "deferred": report.deferred,
            "persisted": report.persisted,
            "failed": report.failed,
            "broadcasts": report.broadcasts,
        }


__all__ = ["BackfillReport", "CycleReport", "Reconciler"]
