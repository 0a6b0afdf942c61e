from __future__ import annotations

from typing import TYPE_CHECKING

import pytest

from entitlekit.domain.model import EntitlementTier, RenewalState, SubscriptionStatus
from entitlekit.domain.model.enums import SubscriptionState
from entitlekit.domain.resolution import NOT_ENTITLED, Resolution
from entitlekit.domain.status import status_for_resolution
from tests.helpers.entitlements import NOW, T1

if TYPE_CHECKING:
    from datetime import datetime


def _resolution(state: RenewalState, expires_at: datetime | None = T1) -> Resolution:
    return Resolution(tier=EntitlementTier.PRO, expires_at=expires_at, state=state)


def test_subscribed_maps_to_active_with_expiry() -> None:
    status = status_for_resolution(_resolution(RenewalState.SUBSCRIBED))

    assert status == SubscriptionStatus.active(T1)
    assert status.is_active


def test_subscribed_without_expiry_maps_to_inactive() -> None:
    status = status_for_resolution(_resolution(RenewalState.SUBSCRIBED, expires_at=None))

    assert status == SubscriptionStatus.INACTIVE


def test_past_expiry_is_not_compared_with_the_clock() -> None:
    past = NOW.replace(year=2000)

    status = status_for_resolution(_resolution(RenewalState.SUBSCRIBED, expires_at=past))

    assert status == SubscriptionStatus.active(past)


@pytest.mark.parametrize(
    ("state", "expected"),
    [
        (RenewalState.IN_GRACE_PERIOD, SubscriptionStatus.IN_GRACE_PERIOD),
        (RenewalState.IN_BILLING_RETRY_PERIOD, SubscriptionStatus.IN_BILLING_RETRY_PERIOD),
        (RenewalState.EXPIRED, SubscriptionStatus.EXPIRED),
        (RenewalState.REVOKED, SubscriptionStatus.REVOKED),
    ],
)
def test_renewal_states_map_directly(state: RenewalState, expected: SubscriptionStatus) -> None:
    assert status_for_resolution(_resolution(state)) == expected


def test_no_grant_maps_to_inactive() -> None:
    assert status_for_resolution(NOT_ENTITLED) == SubscriptionStatus.INACTIVE


def test_status_rejects_inconsistent_expiry() -> None:
    with pytest.raises(ValueError, match="requires an expiration date"):
        SubscriptionStatus(SubscriptionState.ACTIVE)
    with pytest.raises(ValueError, match="does not carry"):
        SubscriptionStatus(SubscriptionState.EXPIRED, NOW)


def test_status_string_includes_expiry() -> None:
    assert str(SubscriptionStatus.active(T1)) == f"active({T1.isoformat()})"
    assert str(SubscriptionStatus.UNKNOWN) == "unknown"
