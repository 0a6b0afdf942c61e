from __future__ import annotations

import asyncio

from entitlekit.domain.model import (
    IntroEligibility,
    PurchaseResultKind,
    RenewalState,
    TrustedGrant,
)
from tests.helpers.entitlements import (
    PREMIUM_MONTHLY,
    PRO_MONTHLY,
    T1,
    ControlledBackend,
    make_verifier,
)


def test_issued_records_verify_and_belong_to_the_user() -> None:
    backend = ControlledBackend()
    record = backend.issue(PRO_MONTHLY, expires_at=T1, state=RenewalState.IN_GRACE_PERIOD)
    backend.issue(PREMIUM_MONTHLY, expires_at=T1, user_id="someone-else")

    records = asyncio.run(backend.current_entitlements())

    assert records == [record]
    grant = make_verifier().verify(record)
    assert isinstance(grant, TrustedGrant)
    assert grant.state is RenewalState.IN_GRACE_PERIOD


def test_purchase_issues_signed_record() -> None:
    backend = ControlledBackend()

    result = asyncio.run(backend.purchase(PRO_MONTHLY))

    assert result.kind is PurchaseResultKind.SUCCESS
    assert result.record is not None
    assert result.record.is_signed
    assert result.record.expires_at is not None


def test_configured_purchase_outcome_issues_nothing() -> None:
    backend = ControlledBackend()
    backend.purchase_results[PRO_MONTHLY] = PurchaseResultKind.PENDING

    result = asyncio.run(backend.purchase(PRO_MONTHLY))

    assert result.kind is PurchaseResultKind.PENDING
    assert asyncio.run(backend.current_entitlements()) == []


def test_updates_stream_ends_on_disconnect() -> None:
    async def scenario() -> list[str]:
        backend = ControlledBackend()
        record = backend.issue(PRO_MONTHLY, expires_at=T1)
        backend.push_update(record)
        backend.disconnect_updates()
        return [item.transaction_id async for item in backend.updates()]

    assert len(asyncio.run(scenario())) == 1


def test_catalog_and_eligibility_defaults() -> None:
    backend = ControlledBackend()

    entries = asyncio.run(backend.fetch([PREMIUM_MONTHLY, PRO_MONTHLY]))

    assert [entry.product_id for entry in entries] == [PRO_MONTHLY]
    assert asyncio.run(backend.intro_eligibility(PRO_MONTHLY)) is IntroEligibility.UNKNOWN
