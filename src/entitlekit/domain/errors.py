"""Error taxonomy for entitlement handling."""

from __future__ import annotations


class EntitlementError(RuntimeError):
    """Base class for entitlement errors."""


class BackendError(EntitlementError):
    """Raised by adapters when the purchase backend rejects or cannot serve a call."""

    def __init__(self, message: str, *, status_code: int | None = None) -> None:
        super().__init__(message)
        self.status_code = status_code


class FetchFailure(BackendError):
    """Raised when current entitlements or updates cannot be fetched."""


class ProductNotFoundError(EntitlementError):
    def __init__(self, product_id: str) -> None:
        super().__init__(f"Product not found: {product_id}")
        self.product_id = product_id


class PurchaseFailedError(EntitlementError):
    def __init__(self, message: str, *, product_id: str | None = None) -> None:
        super().__init__(message)
        self.product_id = product_id


class RestoreFailedError(EntitlementError):
    """Raised when restoring purchases fails at the backend."""
