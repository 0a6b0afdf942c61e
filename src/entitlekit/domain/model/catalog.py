"""Product catalog values (owned by the catalog collaborator)."""

from __future__ import annotations

from dataclasses import dataclass
from typing import TYPE_CHECKING

from .enums import EntitlementTier, OfferPaymentMode, PeriodUnit, ProductType

if TYPE_CHECKING:
    from decimal import Decimal


@dataclass(frozen=True, slots=True)
class SubscriptionPeriod:
    unit: PeriodUnit
    value: int = 1

    def describe(self) -> str:
        return f"{self.value}-{self.unit}"


@dataclass(frozen=True, slots=True)
class IntroductoryOffer:
    payment_mode: OfferPaymentMode
    period: SubscriptionPeriod

    @property
    def is_free_trial(self) -> bool:
        return self.payment_mode is OfferPaymentMode.FREE_TRIAL


@dataclass(frozen=True, slots=True)
class ProductCatalogEntry:
    product_id: str
    display_name: str
    description: str
    display_price: str
    product_type: ProductType
    price: Decimal | None = None
    billing_period: SubscriptionPeriod | None = None
    introductory_offer: IntroductoryOffer | None = None


@dataclass(frozen=True, slots=True)
class ManifestProduct:
    """A product declared in the static manifest, with its service tier."""

    product_id: str
    title: str
    tier: EntitlementTier


@dataclass(frozen=True, slots=True)
class DisplayProduct:
    """Catalog entry ready for presentation, with a trial-aware price."""

    product_id: str
    display_name: str
    display_price: str
    details: str
    billing_recurrence: str
    tier: EntitlementTier


@dataclass(frozen=True, slots=True)
class ProductManifest:
    """Ordered set of configured products; the first one is the primary product."""

    products: tuple[ManifestProduct, ...]

    def __post_init__(self) -> None:
        if not self.products:
            raise ValueError("No products defined")
        ids = [product.product_id for product in self.products]
        if len(set(ids)) != len(ids):
            raise ValueError("Duplicate product ids in manifest")

    @property
    def product_ids(self) -> tuple[str, ...]:
        return tuple(product.product_id for product in self.products)

    @property
    def primary(self) -> ManifestProduct:
        return self.products[0]

    def tiers(self) -> dict[str, EntitlementTier]:
        return {product.product_id: product.tier for product in self.products}

    def get(self, product_id: str) -> ManifestProduct | None:
        for product in self.products:
            if product.product_id == product_id:
                return product
        return None
