"""Purchase, restore and introductory-offer eligibility."""

from __future__ import annotations

from logging import getLogger
from typing import TYPE_CHECKING

from entitlekit.domain.errors import (
    ProductNotFoundError,
    PurchaseFailedError,
    RestoreFailedError,
)
from entitlekit.domain.model import IntroEligibility, PurchaseOutcome, PurchaseResultKind

from .verification import VerificationFailure

if TYPE_CHECKING:
    from entitlekit.domain.ports import PurchaseBackend, TransactionSource

    from .catalog import ProductCatalog
    from .reconciler import StatusReconciler
    from .verification import TransactionVerifier

log = getLogger(__name__)


class PurchaseCoordinator:
    """Runs user-initiated store actions and forces a reconciliation pass afterwards.

    Errors from these actions reach the caller as typed exceptions, unlike background
    reconciliation failures which only ever show up in the log.
    """

    def __init__(
        self,
        *,
        backend: PurchaseBackend,
        source: TransactionSource,
        verifier: TransactionVerifier,
        reconciler: StatusReconciler,
        catalog: ProductCatalog,
    ) -> None:
        self._backend = backend
        self._source = source
        self._verifier = verifier
        self._reconciler = reconciler
        self._catalog = catalog

    async def purchase(self, product_id: str) -> PurchaseOutcome:
        log.info("Purchase subscription %s", product_id)
        if not self._catalog.loaded:
            await self._catalog.refresh()
        if self._catalog.get(product_id) is None:
            log.error("Cannot purchase %s: not in the current catalog", product_id)
            raise ProductNotFoundError(product_id)

        try:
            result = await self._backend.purchase(product_id)
        except Exception as exc:
            log.error("Purchase of %s failed: %s", product_id, exc)
            raise PurchaseFailedError(str(exc), product_id=product_id) from exc

        log.info("Purchase result for %s: %s", product_id, result.kind)
        match result.kind:
            case PurchaseResultKind.USER_CANCELLED:
                return PurchaseOutcome.user_cancelled()
            case PurchaseResultKind.PENDING:
                return PurchaseOutcome.pending()
            case PurchaseResultKind.SUCCESS:
                pass

        record = result.record
        if record is None:  # pragma: no cover - guarded by PurchaseResult
            raise PurchaseFailedError("Backend returned no transaction", product_id=product_id)

        verification = self._verifier.verify(record)
        if isinstance(verification, VerificationFailure):
            raise PurchaseFailedError(str(verification), product_id=product_id)

        await self._reconciler.reconcile(f"purchase {record.transaction_id}")
        try:
            await self._source.finish(record)
        except Exception:
            log.exception("Failed to finish transaction %s", record.transaction_id)
        log.info("Purchased %s (price %s)", product_id, record.price)
        return PurchaseOutcome.completed(verification)

    async def restore(self) -> None:
        log.info("Store sync began")
        try:
            await self._backend.sync()
        except Exception as exc:
            log.error("Restoring purchases failed: %s", exc)
            raise RestoreFailedError(str(exc)) from exc
        log.info("Store sync ended")
        await self._reconciler.reconcile("restore purchases")

    async def has_used_introductory_offer(self, product_id: str) -> bool:
        """Return ``False`` only when the backend confirms eligibility."""

        try:
            eligibility = await self._backend.intro_eligibility(product_id)
        except Exception as exc:
            log.warning("Eligibility check for %s failed, assuming used: %s", product_id, exc)
            return True
        if eligibility is IntroEligibility.UNKNOWN:
            log.info("Eligibility for %s is undetermined, assuming used", product_id)
        return eligibility is not IntroEligibility.ELIGIBLE
