"""Catalog snapshot and trial-aware display prices."""

from __future__ import annotations

from logging import getLogger
from typing import TYPE_CHECKING

from entitlekit.domain.model import DisplayProduct, ProductCatalogEntry

if TYPE_CHECKING:
    from entitlekit.domain.model import ProductManifest
    from entitlekit.domain.ports import CatalogBackend

log = getLogger(__name__)


class ProductCatalog:
    """Latest catalog entries for the products named in the manifest."""

    def __init__(self, manifest: ProductManifest, backend: CatalogBackend) -> None:
        self._manifest = manifest
        self._backend = backend
        self._snapshot: dict[str, ProductCatalogEntry] = {}
        self._loaded = False

    @property
    def manifest(self) -> ProductManifest:
        return self._manifest

    @property
    def product_ids(self) -> tuple[str, ...]:
        return self._manifest.product_ids

    @property
    def loaded(self) -> bool:
        return self._loaded

    @property
    def entries(self) -> list[ProductCatalogEntry]:
        """Snapshot entries in manifest order."""

        return [
            self._snapshot[product_id]
            for product_id in self.product_ids
            if product_id in self._snapshot
        ]

    def get(self, product_id: str) -> ProductCatalogEntry | None:
        return self._snapshot.get(product_id)

    async def refresh(self) -> bool:
        """Fetch entries for all configured products; keeps the old snapshot on failure."""

        try:
            fetched = await self._backend.fetch(self.product_ids)
        except Exception:
            log.exception("Failed product request from the catalog backend")
            return False

        snapshot: dict[str, ProductCatalogEntry] = {}
        for entry in fetched:
            if entry.product_id not in self._manifest.product_ids:
                log.error("Unknown product in catalog response: %s", entry.product_id)
                continue
            if not entry.product_type.is_subscription:
                log.error("Ignoring non-subscription product: %s", entry.product_id)
                continue
            snapshot[entry.product_id] = entry

        missing = set(self.product_ids) - snapshot.keys()
        if missing:
            log.warning("Catalog has no entries for: %s", ", ".join(sorted(missing)))

        self._snapshot = snapshot
        self._loaded = True
        log.info("Fetched products %s", list(snapshot))
        return True


def format_display_price(entry: ProductCatalogEntry, *, used_trial: bool) -> str:
    """Return the display price, announcing an unused free trial first."""

    offer = entry.introductory_offer
    if used_trial or offer is None or not offer.is_free_trial:
        return entry.display_price
    return f"Free {offer.period.describe()} trial, then {entry.display_price}"


def billing_recurrence(entry: ProductCatalogEntry) -> str:
    if entry.billing_period is None:
        return "Unknown"
    period = entry.billing_period
    if period.value == 1:
        return str(period.unit)
    return f"{period.value} {period.unit}s"


def to_display_product(
    entry: ProductCatalogEntry,
    *,
    manifest: ProductManifest,
    used_trial: bool,
) -> DisplayProduct:
    manifest_product = manifest.get(entry.product_id)
    if manifest_product is None:
        raise KeyError(entry.product_id)
    return DisplayProduct(
        product_id=entry.product_id,
        display_name=entry.display_name or manifest_product.title,
        display_price=format_display_price(entry, used_trial=used_trial),
        details=entry.description,
        billing_recurrence=billing_recurrence(entry),
        tier=manifest_product.tier,
    )
