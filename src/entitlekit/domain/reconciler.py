"""Reconciliation of backend transactions into the canonical subscription status.

Three triggers feed one serialized entry point, ``request_pass``: the live update
stream, explicit purchase/restore/identity changes and a periodic poll. Only one
pass runs at a time. Triggers arriving while a pass is in flight are coalesced into
exactly one follow-up pass, which starts after the current one completes.

A pass fetches the current entitlement snapshot, verifies every record, resolves
the highest entitlement and publishes the mapped status if it changed. Backend
failures keep the last known good status; only a failing cold start publishes
``unknown``.
"""

from __future__ import annotations

import asyncio
from enum import StrEnum
from logging import getLogger
from typing import TYPE_CHECKING

from entitlekit.domain.errors import FetchFailure
from entitlekit.domain.model import SubscriptionStatus, TransactionRecord, TrustedGrant

from .resolution import Resolution, resolve_entitlement
from .status import status_for_resolution
from .verification import VerificationFailure

if TYPE_CHECKING:
    from collections.abc import Iterable

    from entitlekit.domain.ports import TransactionSource

    from .catalog import ProductCatalog
    from .publisher import StatusPublisher
    from .verification import TransactionVerifier

log = getLogger(__name__)

DEFAULT_POLL_INTERVAL_SECONDS = 60.0
DEFAULT_RECONNECT_DELAY_SECONDS = 5.0


class ReconcilerState(StrEnum):
    UNINITIALIZED = "uninitialized"
    SYNCING = "syncing"
    SETTLED = "settled"


class StatusReconciler:
    def __init__(
        self,
        *,
        source: TransactionSource,
        verifier: TransactionVerifier,
        publisher: StatusPublisher,
        catalog: ProductCatalog | None = None,
        poll_interval: float = DEFAULT_POLL_INTERVAL_SECONDS,
        reconnect_delay: float = DEFAULT_RECONNECT_DELAY_SECONDS,
    ) -> None:
        self._source = source
        self._verifier = verifier
        self._publisher = publisher
        self._catalog = catalog
        self.poll_interval = poll_interval
        self.reconnect_delay = reconnect_delay

        self._state = ReconcilerState.UNINITIALIZED
        self._passes_started = 0
        self._passes_completed = 0
        self._latest_ticket = 0
        self._follow_up_requested = False
        self._pending_reasons: list[str] = []
        self._refresh_catalog = False
        self._drain_task: asyncio.Task[None] | None = None
        self._waiters: list[tuple[int, asyncio.Future[None]]] = []
        self._acknowledgements: set[asyncio.Task[None]] = set()
        self._has_good_status = False
        self._last_resolution: Resolution | None = None

    @property
    def state(self) -> ReconcilerState:
        return self._state

    @property
    def passes_started(self) -> int:
        return self._passes_started

    @property
    def passes_completed(self) -> int:
        return self._passes_completed

    @property
    def latest_ticket(self) -> int:
        """Number of the last pass any trigger has been assigned to."""

        return self._latest_ticket

    @property
    def last_resolution(self) -> Resolution | None:
        return self._last_resolution

    def start(self) -> int:
        """Begin the initial pass, which also refreshes the product catalog."""

        return self.request_pass("initial sync", refresh_catalog=True)

    def request_pass(self, reason: str, *, refresh_catalog: bool = False) -> int:
        """Schedule a pass and return the number of the pass that will cover it."""

        self._follow_up_requested = True
        self._pending_reasons.append(reason)
        self._refresh_catalog = self._refresh_catalog or refresh_catalog
        if self._drain_task is None or self._drain_task.done():
            self._drain_task = asyncio.get_running_loop().create_task(
                self._drain_requests(), name="entitlement-reconciliation"
            )
        ticket = self._passes_started + 1
        self._latest_ticket = ticket
        log.debug("Pass %s requested: %s", ticket, reason)
        return ticket

    async def reconcile(self, reason: str, *, refresh_catalog: bool = False) -> None:
        """Request a pass and wait until it has completed."""

        ticket = self.request_pass(reason, refresh_catalog=refresh_catalog)
        await self.wait_for_pass(ticket)

    async def wait_for_pass(self, ticket: int) -> None:
        if self._passes_completed >= ticket:
            return
        future: asyncio.Future[None] = asyncio.get_running_loop().create_future()
        self._waiters.append((ticket, future))
        await future

    async def drain(self) -> None:
        """Wait for the in-flight pass, its follow-up and pending acknowledgements."""

        if self._drain_task is not None and not self._drain_task.done():
            await self._drain_task
        if self._acknowledgements:
            await asyncio.gather(*self._acknowledgements, return_exceptions=True)

    async def listen_for_transactions(self) -> None:
        """Consume the live update stream until cancelled, reconnecting when it breaks."""

        while True:
            log.info("Listening for transactions")
            try:
                async for record in self._source.updates():
                    self._handle_update(record)
            except FetchFailure as exc:
                log.error("Transaction update stream failed: %s", exc)
            except Exception:
                log.exception("Transaction update stream failed unexpectedly")
            else:
                log.info("Transaction update stream ended")
            await asyncio.sleep(self.reconnect_delay)

    async def poll_periodically(self) -> None:
        """Request a pass every ``poll_interval`` seconds until cancelled."""

        while True:
            await asyncio.sleep(self.poll_interval)
            self.request_pass("periodic poll")

    def _handle_update(self, record: TransactionRecord) -> None:
        log.info("Transaction update: %s (%s)", record.transaction_id, record.product_id)
        result = self._verifier.verify(record)
        if isinstance(result, VerificationFailure):
            return
        ticket = self.request_pass(f"transaction update {record.transaction_id}")
        task = asyncio.get_running_loop().create_task(self._finish_after(ticket, record))
        self._acknowledgements.add(task)
        task.add_done_callback(self._acknowledgements.discard)

    async def _finish_after(self, ticket: int, record: TransactionRecord) -> None:
        await self.wait_for_pass(ticket)
        try:
            await self._source.finish(record)
        except Exception:
            log.exception("Failed to finish transaction %s", record.transaction_id)

    async def _drain_requests(self) -> None:
        while self._follow_up_requested:
            self._follow_up_requested = False
            reasons, self._pending_reasons = self._pending_reasons, []
            refresh_catalog, self._refresh_catalog = self._refresh_catalog, False
            self._passes_started += 1
            number = self._passes_started
            self._state = ReconcilerState.SYNCING
            try:
                await self._run_pass(number, reasons, refresh_catalog=refresh_catalog)
            except Exception:
                log.exception("Pass %s failed", number)
            finally:
                self._complete_pass(number)

    def _complete_pass(self, number: int) -> None:
        self._passes_completed = number
        self._state = ReconcilerState.SETTLED
        remaining: list[tuple[int, asyncio.Future[None]]] = []
        for ticket, future in self._waiters:
            if ticket > number:
                remaining.append((ticket, future))
            elif not future.done():
                future.set_result(None)
        self._waiters = remaining

    async def _run_pass(self, number: int, reasons: list[str], *, refresh_catalog: bool) -> None:
        log.debug("Pass %s started (%s)", number, "; ".join(reasons))
        if refresh_catalog and self._catalog is not None:
            await self._catalog.refresh()

        try:
            records = await self._source.current_entitlements()
        except FetchFailure as exc:
            self._handle_fetch_failure(number, exc)
            return
        except Exception as exc:
            log.exception("Unexpected error fetching current entitlements")
            self._handle_fetch_failure(number, exc)
            return

        resolution = resolve_entitlement(self._trusted_grants(records))
        status = status_for_resolution(resolution)
        self._last_resolution = resolution
        self._has_good_status = True

        if self._publisher.publish(status):
            log.debug("Pass %s published %s (tier %s)", number, status, resolution.tier.name)
        else:
            log.debug("Pass %s left subscription status unchanged: %s", number, status)

    def _trusted_grants(self, records: Iterable[TransactionRecord]) -> list[TrustedGrant]:
        grants: list[TrustedGrant] = []
        for record in records:
            result = self._verifier.verify(record)
            if isinstance(result, VerificationFailure):
                continue
            if not result.product_type.is_subscription:
                log.debug("Ignoring non-subscription product %s", result.product_id)
                continue
            grants.append(result)
        return grants

    def _handle_fetch_failure(self, number: int, exc: Exception) -> None:
        if self._has_good_status:
            log.error(
                "Pass %s could not fetch entitlements, keeping %s: %s",
                number,
                self._publisher.value,
                exc,
            )
            return
        log.error("Pass %s could not fetch entitlements on cold start: %s", number, exc)
        self._publisher.publish(SubscriptionStatus.UNKNOWN)
