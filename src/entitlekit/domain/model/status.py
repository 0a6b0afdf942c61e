"""Canonical subscription status value."""

from __future__ import annotations

from dataclasses import dataclass
from typing import TYPE_CHECKING, ClassVar

from .enums import SubscriptionState

if TYPE_CHECKING:
    from datetime import datetime


@dataclass(frozen=True, slots=True)
class SubscriptionStatus:
    state: SubscriptionState
    expires_at: datetime | None = None

    INACTIVE: ClassVar[SubscriptionStatus]
    EXPIRED: ClassVar[SubscriptionStatus]
    REVOKED: ClassVar[SubscriptionStatus]
    IN_GRACE_PERIOD: ClassVar[SubscriptionStatus]
    IN_BILLING_RETRY_PERIOD: ClassVar[SubscriptionStatus]
    UNKNOWN: ClassVar[SubscriptionStatus]

    def __post_init__(self) -> None:
        if self.state is SubscriptionState.ACTIVE and self.expires_at is None:
            raise ValueError("An active status requires an expiration date")
        if self.state is not SubscriptionState.ACTIVE and self.expires_at is not None:
            raise ValueError(f"Status {self.state} does not carry an expiration date")

    @classmethod
    def active(cls, expires_at: datetime) -> SubscriptionStatus:
        return cls(SubscriptionState.ACTIVE, expires_at)

    @property
    def is_active(self) -> bool:
        return self.state is SubscriptionState.ACTIVE

    def __str__(self) -> str:
        if self.expires_at is not None:
            return f"{self.state}({self.expires_at.isoformat()})"
        return str(self.state)


SubscriptionStatus.INACTIVE = SubscriptionStatus(SubscriptionState.INACTIVE)
SubscriptionStatus.EXPIRED = SubscriptionStatus(SubscriptionState.EXPIRED)
SubscriptionStatus.REVOKED = SubscriptionStatus(SubscriptionState.REVOKED)
SubscriptionStatus.IN_GRACE_PERIOD = SubscriptionStatus(SubscriptionState.IN_GRACE_PERIOD)
SubscriptionStatus.IN_BILLING_RETRY_PERIOD = SubscriptionStatus(
    SubscriptionState.IN_BILLING_RETRY_PERIOD
)
SubscriptionStatus.UNKNOWN = SubscriptionStatus(SubscriptionState.UNKNOWN)
