"""Domain port definitions for adapters."""

from __future__ import annotations

from .backend import CatalogBackend, PurchaseBackend, TransactionSource
from .presentation import ManageSubscriptionsScene, ScenePresenter

__all__ = [
    "CatalogBackend",
    "ManageSubscriptionsScene",
    "PurchaseBackend",
    "ScenePresenter",
    "TransactionSource",
]
