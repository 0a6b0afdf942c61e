"""Entitlement domain model."""

from __future__ import annotations

from .catalog import (
    DisplayProduct,
    IntroductoryOffer,
    ManifestProduct,
    ProductCatalogEntry,
    ProductManifest,
    SubscriptionPeriod,
)
from .enums import (
    EntitlementTier,
    IntroEligibility,
    OfferPaymentMode,
    PeriodUnit,
    ProductType,
    PurchaseResultKind,
    RenewalState,
    SubscriptionState,
)
from .purchase import PurchaseOutcome, PurchaseOutcomeKind, PurchaseResult
from .status import SubscriptionStatus
from .transactions import TransactionRecord, TrustedGrant

__all__ = [
    "DisplayProduct",
    "EntitlementTier",
    "IntroEligibility",
    "IntroductoryOffer",
    "ManifestProduct",
    "OfferPaymentMode",
    "PeriodUnit",
    "ProductCatalogEntry",
    "ProductManifest",
    "ProductType",
    "PurchaseOutcome",
    "PurchaseOutcomeKind",
    "PurchaseResult",
    "PurchaseResultKind",
    "RenewalState",
    "SubscriptionPeriod",
    "SubscriptionState",
    "SubscriptionStatus",
    "TransactionRecord",
    "TrustedGrant",
]
