"""Domain enums (pure, dependency-light)."""

from __future__ import annotations

from enum import Enum, StrEnum
from functools import total_ordering


@total_ordering
class EntitlementTier(Enum):
    """Levels of service, ordered so that ``max`` picks the best one.

    Ranks follow the store's subscription-group levels: a lower non-zero rank is a
    higher level of service. ``NOT_ENTITLED`` sits below every real tier.
    """

    NOT_ENTITLED = 0
    PRO = 1
    PREMIUM = 2
    STANDARD = 3

    @property
    def rank(self) -> int:
        return self.value

    @property
    def is_entitled(self) -> bool:
        return self is not EntitlementTier.NOT_ENTITLED

    def _sort_key(self) -> tuple[bool, int]:
        return (self.is_entitled, -self.value)

    def __lt__(self, other: object) -> bool:
        if not isinstance(other, EntitlementTier):
            return NotImplemented
        return self._sort_key() < other._sort_key()

    @classmethod
    def from_rank(cls, rank: int) -> EntitlementTier:
        try:
            return cls(rank)
        except ValueError:
            raise ValueError(f"Unknown entitlement tier rank: {rank}") from None

    @classmethod
    def from_name(cls, name: str) -> EntitlementTier:
        normalized = name.strip().upper().replace("-", "_").replace(" ", "_")
        try:
            return cls[normalized]
        except KeyError:
            raise ValueError(f"Unknown entitlement tier: {name!r}") from None


class ProductType(StrEnum):
    AUTO_RENEWABLE = "auto_renewable"
    NON_RENEWING = "non_renewing"
    CONSUMABLE = "consumable"
    NON_CONSUMABLE = "non_consumable"

    @property
    def is_subscription(self) -> bool:
        return self is ProductType.AUTO_RENEWABLE


class RenewalState(StrEnum):
    """Subscription state as reported by the backend."""

    SUBSCRIBED = "subscribed"
    EXPIRED = "expired"
    REVOKED = "revoked"
    IN_GRACE_PERIOD = "in_grace_period"
    IN_BILLING_RETRY_PERIOD = "in_billing_retry_period"

    @property
    def is_terminal(self) -> bool:
        return self in {RenewalState.EXPIRED, RenewalState.REVOKED}


class SubscriptionState(StrEnum):
    ACTIVE = "active"
    INACTIVE = "inactive"
    EXPIRED = "expired"
    REVOKED = "revoked"
    IN_GRACE_PERIOD = "in_grace_period"
    IN_BILLING_RETRY_PERIOD = "in_billing_retry_period"
    UNKNOWN = "unknown"


class PeriodUnit(StrEnum):
    DAY = "day"
    WEEK = "week"
    MONTH = "month"
    YEAR = "year"


class OfferPaymentMode(StrEnum):
    FREE_TRIAL = "free_trial"
    PAY_AS_YOU_GO = "pay_as_you_go"
    PAY_UP_FRONT = "pay_up_front"


class IntroEligibility(StrEnum):
    ELIGIBLE = "eligible"
    INELIGIBLE = "ineligible"
    UNKNOWN = "unknown"


class PurchaseResultKind(StrEnum):
    SUCCESS = "success"
    USER_CANCELLED = "user_cancelled"
    PENDING = "pending"
