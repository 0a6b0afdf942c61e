"""Transaction records and the grants derived from them."""

from __future__ import annotations

from dataclasses import dataclass
from typing import TYPE_CHECKING

from .enums import EntitlementTier, ProductType, RenewalState

if TYPE_CHECKING:
    from datetime import datetime
    from decimal import Decimal


@dataclass(frozen=True, slots=True)
class TransactionRecord:
    """Backend-issued record as delivered, before any trust decision.

    The plain attributes are hints for logging and routing only; trusted values are
    read from ``signed_payload`` during verification. ``signed_payload`` is ``None``
    when the backend delivered the record unverified.
    """

    transaction_id: str
    product_id: str
    product_type: ProductType
    signed_payload: str | None
    expires_at: datetime | None = None
    revoked_at: datetime | None = None
    state: RenewalState | None = None
    price: Decimal | None = None

    @property
    def is_signed(self) -> bool:
        return bool(self.signed_payload)


@dataclass(frozen=True, slots=True)
class TrustedGrant:
    """A verified claim that the user holds ``product_id``."""

    transaction_id: str
    product_id: str
    product_type: ProductType
    tier: EntitlementTier
    state: RenewalState
    expires_at: datetime | None = None
    revoked_at: datetime | None = None

    @property
    def is_terminal(self) -> bool:
        return self.state.is_terminal

    @property
    def effective_tier(self) -> EntitlementTier:
        """Tier used for ranking; terminal grants contribute nothing."""

        if self.is_terminal:
            return EntitlementTier.NOT_ENTITLED
        return self.tier
