"""Mapping from a resolution to the canonical subscription status."""

from __future__ import annotations

from logging import getLogger
from typing import TYPE_CHECKING

from entitlekit.domain.model import RenewalState, SubscriptionStatus

if TYPE_CHECKING:
    from .resolution import Resolution

log = getLogger(__name__)


def status_for_resolution(resolution: Resolution) -> SubscriptionStatus:
    """Translate the resolver outcome without consulting the local clock."""

    state = resolution.state
    if state is None:
        return SubscriptionStatus.INACTIVE

    match state:
        case RenewalState.SUBSCRIBED:
            if resolution.expires_at is None:
                log.info("Subscribed grant without expiration date, reporting inactive")
                return SubscriptionStatus.INACTIVE
            return SubscriptionStatus.active(resolution.expires_at)
        case RenewalState.IN_GRACE_PERIOD:
            return SubscriptionStatus.IN_GRACE_PERIOD
        case RenewalState.IN_BILLING_RETRY_PERIOD:
            return SubscriptionStatus.IN_BILLING_RETRY_PERIOD
        case RenewalState.EXPIRED:
            return SubscriptionStatus.EXPIRED
        case RenewalState.REVOKED:
            return SubscriptionStatus.REVOKED
        case _:
            return SubscriptionStatus.INACTIVE
