from __future__ import annotations

import asyncio
import logging
from typing import TYPE_CHECKING

import pytest

from entitlekit.domain.model import ProductType, SubscriptionStatus
from entitlekit.domain.publisher import StatusPublisher
from entitlekit.domain.reconciler import ReconcilerState, StatusReconciler
from tests.helpers.entitlements import (
    PREMIUM_MONTHLY,
    PRO_MONTHLY,
    T1,
    T2,
    ControlledBackend,
    make_verifier,
)

if TYPE_CHECKING:
    from collections.abc import Callable


def _reconciler(
    backend: ControlledBackend,
    publisher: StatusPublisher,
    *,
    poll_interval: float = 3600,
) -> StatusReconciler:
    return StatusReconciler(
        source=backend,
        verifier=make_verifier(),
        publisher=publisher,
        poll_interval=poll_interval,
        reconnect_delay=0.01,
    )


async def _until(condition: Callable[[], bool], *, timeout: float = 1.0) -> None:
    async def poll() -> None:
        while not condition():
            await asyncio.sleep(0.001)

    await asyncio.wait_for(poll(), timeout=timeout)


def test_verified_grant_publishes_active_status() -> None:
    async def scenario() -> tuple[StatusPublisher, StatusReconciler]:
        backend = ControlledBackend()
        backend.issue(PRO_MONTHLY, expires_at=T1)
        publisher = StatusPublisher()
        reconciler = _reconciler(backend, publisher)
        assert reconciler.state is ReconcilerState.UNINITIALIZED
        await reconciler.reconcile("initial sync")
        return publisher, reconciler

    publisher, reconciler = asyncio.run(scenario())

    assert publisher.value == SubscriptionStatus.active(T1)
    assert reconciler.state is ReconcilerState.SETTLED
    assert reconciler.passes_completed == 1


def test_no_grants_publishes_inactive() -> None:
    async def scenario() -> StatusPublisher:
        publisher = StatusPublisher()
        await _reconciler(ControlledBackend(), publisher).reconcile("initial sync")
        return publisher

    assert asyncio.run(scenario()).value == SubscriptionStatus.INACTIVE


def test_highest_tier_expiry_is_published() -> None:
    async def scenario() -> StatusPublisher:
        backend = ControlledBackend()
        backend.issue(PREMIUM_MONTHLY, expires_at=T2)
        backend.issue(PRO_MONTHLY, expires_at=T1)
        publisher = StatusPublisher()
        await _reconciler(backend, publisher).reconcile("initial sync")
        return publisher

    assert asyncio.run(scenario()).value == SubscriptionStatus.active(T1)


def test_revoked_only_grant_publishes_revoked() -> None:
    async def scenario() -> StatusPublisher:
        backend = ControlledBackend()
        backend.issue(PRO_MONTHLY, expires_at=T2, revoked_at=T1)
        publisher = StatusPublisher()
        await _reconciler(backend, publisher).reconcile("initial sync")
        return publisher

    assert asyncio.run(scenario()).value == SubscriptionStatus.REVOKED


def test_invalid_record_does_not_spoil_the_pass() -> None:
    async def scenario() -> StatusPublisher:
        backend = ControlledBackend()
        backend.issue(PREMIUM_MONTHLY, expires_at=T2, signed=False)
        backend.issue("com.example.unknown", expires_at=T2)
        backend.issue(PRO_MONTHLY, expires_at=T1)
        publisher = StatusPublisher()
        await _reconciler(backend, publisher).reconcile("initial sync")
        return publisher

    assert asyncio.run(scenario()).value == SubscriptionStatus.active(T1)


def test_non_subscription_products_are_ignored() -> None:
    async def scenario() -> StatusPublisher:
        backend = ControlledBackend()
        backend.issue(PRO_MONTHLY, expires_at=T1, product_type=ProductType.NON_CONSUMABLE)
        publisher = StatusPublisher()
        await _reconciler(backend, publisher).reconcile("initial sync")
        return publisher

    assert asyncio.run(scenario()).value == SubscriptionStatus.INACTIVE


def test_cold_start_failure_publishes_unknown() -> None:
    async def scenario() -> StatusPublisher:
        backend = ControlledBackend()
        backend.fail_fetches()
        publisher = StatusPublisher()
        await _reconciler(backend, publisher).reconcile("initial sync")
        return publisher

    assert asyncio.run(scenario()).value == SubscriptionStatus.UNKNOWN


def test_unexpected_fetch_error_is_treated_like_a_fetch_failure() -> None:
    async def scenario() -> StatusPublisher:
        backend = ControlledBackend()
        backend.fetch_error = RuntimeError("socket exploded")
        publisher = StatusPublisher()
        await _reconciler(backend, publisher).reconcile("initial sync")
        return publisher

    assert asyncio.run(scenario()).value == SubscriptionStatus.UNKNOWN


def test_recovers_from_cold_start_failure() -> None:
    async def scenario() -> list[SubscriptionStatus]:
        backend = ControlledBackend()
        backend.issue(PRO_MONTHLY, expires_at=T1)
        backend.fail_fetches()
        publisher = StatusPublisher()
        seen: list[SubscriptionStatus] = []
        publisher.add_observer(seen.append)
        reconciler = _reconciler(backend, publisher)
        await reconciler.reconcile("initial sync")
        backend.fetch_error = None
        await reconciler.reconcile("periodic poll")
        return seen

    assert asyncio.run(scenario()) == [SubscriptionStatus.UNKNOWN, SubscriptionStatus.active(T1)]


def test_poll_failure_keeps_last_known_good_status(caplog: pytest.LogCaptureFixture) -> None:
    caplog.set_level(logging.ERROR, logger="entitlekit.domain.reconciler")

    async def scenario() -> StatusPublisher:
        backend = ControlledBackend()
        backend.issue(PRO_MONTHLY, expires_at=T1)
        publisher = StatusPublisher()
        reconciler = _reconciler(backend, publisher)
        await reconciler.reconcile("initial sync")
        backend.fail_fetches()
        await reconciler.reconcile("periodic poll")
        return publisher

    publisher = asyncio.run(scenario())

    assert publisher.value == SubscriptionStatus.active(T1)
    assert publisher.version == 1
    assert "could not fetch entitlements" in caplog.text


def test_triggers_during_a_pass_coalesce_into_one_follow_up() -> None:
    async def scenario() -> tuple[ControlledBackend, StatusPublisher, StatusReconciler, list[int]]:
        backend = ControlledBackend()
        backend.fetch_gate = asyncio.Event()
        publisher = StatusPublisher()
        reconciler = _reconciler(backend, publisher)

        first = reconciler.request_pass("initial sync")
        await _until(lambda: backend.fetch_calls == 1)
        backend.issue(PRO_MONTHLY, expires_at=T1)
        follow_ups = [
            reconciler.request_pass("transaction update"),
            reconciler.request_pass("purchase"),
            reconciler.request_pass("periodic poll"),
        ]
        backend.fetch_gate.set()
        await reconciler.wait_for_pass(max(follow_ups))
        await reconciler.drain()
        return backend, publisher, reconciler, [first, *follow_ups]

    backend, publisher, reconciler, tickets = asyncio.run(scenario())

    assert tickets == [1, 2, 2, 2]
    assert backend.fetch_calls == 2
    assert reconciler.passes_started == 2
    assert reconciler.passes_completed == 2
    assert publisher.value == SubscriptionStatus.active(T1)


def test_trigger_after_a_pass_starts_a_new_pass() -> None:
    async def scenario() -> StatusReconciler:
        backend = ControlledBackend()
        reconciler = _reconciler(backend, StatusPublisher())
        await reconciler.reconcile("first")
        await reconciler.reconcile("second")
        await reconciler.wait_for_pass(1)
        return reconciler

    reconciler = asyncio.run(scenario())

    assert reconciler.passes_completed == 2
    assert reconciler.latest_ticket == 2


def test_live_update_triggers_pass_and_is_finished_afterwards() -> None:
    async def scenario() -> tuple[ControlledBackend, StatusPublisher, list[str]]:
        backend = ControlledBackend()
        publisher = StatusPublisher()
        reconciler = _reconciler(backend, publisher)
        listener = asyncio.create_task(reconciler.listen_for_transactions())

        forged = backend.issue(PREMIUM_MONTHLY, expires_at=T2, signed=False)
        backend.remove(forged.transaction_id)
        backend.push_update(forged)
        record = backend.issue(PRO_MONTHLY, expires_at=T1)
        backend.push_update(record)
        await _until(lambda: record.transaction_id in backend.finished)

        listener.cancel()
        await asyncio.gather(listener, return_exceptions=True)
        await reconciler.drain()
        return backend, publisher, [forged.transaction_id, record.transaction_id]

    backend, publisher, (forged_id, record_id) = asyncio.run(scenario())

    assert publisher.value == SubscriptionStatus.active(T1)
    assert backend.finished == [record_id]
    assert forged_id not in backend.finished


def test_listener_reconnects_after_stream_ends() -> None:
    async def scenario() -> ControlledBackend:
        backend = ControlledBackend()
        reconciler = _reconciler(backend, StatusPublisher())
        listener = asyncio.create_task(reconciler.listen_for_transactions())

        backend.disconnect_updates()
        record = backend.issue(PRO_MONTHLY, expires_at=T1)
        backend.push_update(record)
        await _until(lambda: record.transaction_id in backend.finished)

        listener.cancel()
        await asyncio.gather(listener, return_exceptions=True)
        await reconciler.drain()
        return backend

    assert len(asyncio.run(scenario()).finished) == 1


def test_finish_failure_is_logged(caplog: pytest.LogCaptureFixture) -> None:
    caplog.set_level(logging.ERROR, logger="entitlekit.domain.reconciler")

    async def scenario() -> StatusPublisher:
        backend = ControlledBackend()
        backend.finish_error = RuntimeError("finish rejected")
        publisher = StatusPublisher()
        reconciler = _reconciler(backend, publisher)
        listener = asyncio.create_task(reconciler.listen_for_transactions())
        backend.push_update(backend.issue(PRO_MONTHLY, expires_at=T1))
        await _until(lambda: "Failed to finish" in caplog.text)
        listener.cancel()
        await asyncio.gather(listener, return_exceptions=True)
        await reconciler.drain()
        return publisher

    assert asyncio.run(scenario()).value == SubscriptionStatus.active(T1)


def test_periodic_poll_requests_passes() -> None:
    async def scenario() -> StatusReconciler:
        backend = ControlledBackend()
        reconciler = _reconciler(backend, StatusPublisher(), poll_interval=0.005)
        poller = asyncio.create_task(reconciler.poll_periodically())
        await _until(lambda: reconciler.passes_completed >= 2)
        poller.cancel()
        await asyncio.gather(poller, return_exceptions=True)
        await reconciler.drain()
        return reconciler

    assert asyncio.run(scenario()).passes_completed >= 2
