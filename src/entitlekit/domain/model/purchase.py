"""Purchase attempt results."""

from __future__ import annotations

from dataclasses import dataclass
from enum import StrEnum
from typing import TYPE_CHECKING

from .enums import PurchaseResultKind

if TYPE_CHECKING:
    from .transactions import TransactionRecord, TrustedGrant


@dataclass(frozen=True, slots=True)
class PurchaseResult:
    """Raw backend answer to a purchase attempt."""

    kind: PurchaseResultKind
    record: TransactionRecord | None = None

    def __post_init__(self) -> None:
        if self.kind is PurchaseResultKind.SUCCESS and self.record is None:
            raise ValueError("A successful purchase must carry a transaction record")


class PurchaseOutcomeKind(StrEnum):
    COMPLETED = "completed"
    USER_CANCELLED = "user_cancelled"
    PENDING = "pending"


@dataclass(frozen=True, slots=True)
class PurchaseOutcome:
    kind: PurchaseOutcomeKind
    grant: TrustedGrant | None = None

    @classmethod
    def completed(cls, grant: TrustedGrant) -> PurchaseOutcome:
        return cls(PurchaseOutcomeKind.COMPLETED, grant)

    @classmethod
    def user_cancelled(cls) -> PurchaseOutcome:
        return cls(PurchaseOutcomeKind.USER_CANCELLED)

    @classmethod
    def pending(cls) -> PurchaseOutcome:
        return cls(PurchaseOutcomeKind.PENDING)

    @property
    def is_completed(self) -> bool:
        return self.kind is PurchaseOutcomeKind.COMPLETED
