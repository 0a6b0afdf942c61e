"""Ports for the purchase backend collaborators."""

from __future__ import annotations

from typing import TYPE_CHECKING, Protocol, runtime_checkable

if TYPE_CHECKING:
    from collections.abc import AsyncIterator, Iterable

    from entitlekit.domain.model import (
        IntroEligibility,
        ProductCatalogEntry,
        PurchaseResult,
        TransactionRecord,
    )


@runtime_checkable
class TransactionSource(Protocol):
    """Source of raw transaction records.

    ``updates`` is an unbounded stream of records pushed by the backend outside of
    explicit purchases. It ends or raises ``FetchFailure`` when the connection is
    lost; callers reopen it to reconnect. Verified records are passed to ``finish``
    once they have been processed; the backend redelivers unfinished records.
    """

    def updates(self) -> AsyncIterator[TransactionRecord]: ...

    async def current_entitlements(self) -> list[TransactionRecord]: ...

    async def finish(self, record: TransactionRecord) -> None: ...


@runtime_checkable
class PurchaseBackend(Protocol):
    """Payment rail operations, treated as opaque round-trips."""

    async def purchase(self, product_id: str) -> PurchaseResult: ...

    async def sync(self) -> None: ...

    async def intro_eligibility(self, product_id: str) -> IntroEligibility: ...

    async def log_in(self, user_id: str) -> None: ...


@runtime_checkable
class CatalogBackend(Protocol):
    """Network lookup of display metadata for configured products."""

    async def fetch(self, product_ids: Iterable[str]) -> list[ProductCatalogEntry]: ...


__all__ = ["CatalogBackend", "PurchaseBackend", "TransactionSource"]
