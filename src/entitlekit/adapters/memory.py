"""In-process purchase backend that signs its own transactions.

Backs the mock provider and serves as a deterministic stand-in for the storefront
in tests. Records are signed with a shared secret, so they pass through the same
verification path as real backend records.
"""

from __future__ import annotations

import asyncio
import itertools
from dataclasses import replace
from datetime import UTC, datetime, timedelta
from logging import getLogger
from typing import TYPE_CHECKING

import jwt

from entitlekit.domain.model import (
    IntroEligibility,
    ProductType,
    PurchaseResult,
    PurchaseResultKind,
    RenewalState,
    TransactionRecord,
)
from entitlekit.domain.verification import datetime_to_millis

if TYPE_CHECKING:
    from collections.abc import AsyncIterator, Iterable

    from entitlekit.domain.model import ProductCatalogEntry

log = getLogger(__name__)

DEFAULT_SUBSCRIPTION_LENGTH = timedelta(days=30)


class TransactionSigner:
    """Issues compact JWS envelopes in the backend's signed-transaction format."""

    def __init__(self, key: str | bytes, *, algorithm: str = "HS256") -> None:
        self._key = key
        self.algorithm = algorithm

    def sign(self, record: TransactionRecord) -> str:
        claims: dict[str, object] = {
            "transactionId": record.transaction_id,
            "productId": record.product_id,
            "type": str(record.product_type),
        }
        if record.state is not None:
            claims["state"] = str(record.state)
        if record.expires_at is not None:
            claims["expiresDate"] = datetime_to_millis(record.expires_at)
        if record.revoked_at is not None:
            claims["revocationDate"] = datetime_to_millis(record.revoked_at)
        return jwt.encode(claims, self._key, algorithm=self.algorithm)


class InMemoryBackend:
    """Transaction source, purchase backend and catalog held in memory."""

    def __init__(
        self,
        signer: TransactionSigner,
        *,
        catalog: Iterable[ProductCatalogEntry] = (),
        app_user_id: str = "local-user",
    ) -> None:
        self._signer = signer
        self._catalog = {entry.product_id: entry for entry in catalog}
        self.app_user_id = app_user_id
        self._entitlements: dict[str, dict[str, TransactionRecord]] = {}
        self._updates: asyncio.Queue[TransactionRecord | None] = asyncio.Queue()
        self._ids = itertools.count(1000)
        self.eligibility: dict[str, IntroEligibility] = {}
        self.purchase_results: dict[str, PurchaseResultKind] = {}
        self.finished: list[str] = []
        self.sync_calls = 0

    def issue(
        self,
        product_id: str,
        *,
        expires_at: datetime | None = None,
        state: RenewalState = RenewalState.SUBSCRIBED,
        revoked_at: datetime | None = None,
        product_type: ProductType = ProductType.AUTO_RENEWABLE,
        signed: bool = True,
        user_id: str | None = None,
    ) -> TransactionRecord:
        """Create a transaction and add it to the user's current entitlements."""

        record = TransactionRecord(
            transaction_id=str(next(self._ids)),
            product_id=product_id,
            product_type=product_type,
            signed_payload=None,
            expires_at=expires_at,
            revoked_at=revoked_at,
            state=state,
        )
        if signed:
            record = replace(record, signed_payload=self._signer.sign(record))
        holder = user_id or self.app_user_id
        self._entitlements.setdefault(holder, {})[record.transaction_id] = record
        return record

    def remove(self, transaction_id: str, *, user_id: str | None = None) -> None:
        self._entitlements.get(user_id or self.app_user_id, {}).pop(transaction_id, None)

    def push_update(self, record: TransactionRecord) -> None:
        self._updates.put_nowait(record)

    def disconnect_updates(self) -> None:
        """End the current update stream; the next ``updates()`` call reconnects."""

        self._updates.put_nowait(None)

    async def updates(self) -> AsyncIterator[TransactionRecord]:
        while True:
            record = await self._updates.get()
            if record is None:
                return
            yield record

    async def current_entitlements(self) -> list[TransactionRecord]:
        return list(self._entitlements.get(self.app_user_id, {}).values())

    async def finish(self, record: TransactionRecord) -> None:
        self.finished.append(record.transaction_id)

    async def purchase(self, product_id: str) -> PurchaseResult:
        kind = self.purchase_results.get(product_id, PurchaseResultKind.SUCCESS)
        if kind is not PurchaseResultKind.SUCCESS:
            return PurchaseResult(kind=kind)
        record = self.issue(
            product_id, expires_at=datetime.now(UTC) + DEFAULT_SUBSCRIPTION_LENGTH
        )
        return PurchaseResult(kind=kind, record=record)

    async def sync(self) -> None:
        self.sync_calls += 1

    async def intro_eligibility(self, product_id: str) -> IntroEligibility:
        return self.eligibility.get(product_id, IntroEligibility.UNKNOWN)

    async def log_in(self, user_id: str) -> None:
        log.info("Switching in-memory subscriber to %s", user_id)
        self.app_user_id = user_id

    async def fetch(self, product_ids: Iterable[str]) -> list[ProductCatalogEntry]:
        catalog = self._catalog
        return [catalog[product_id] for product_id in product_ids if product_id in catalog]
