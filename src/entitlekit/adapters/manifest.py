"""Product manifest loading.

The manifest lists the products the app offers together with the service tier each
one unlocks. TOML is the native format; ``.json`` files are accepted too::

    [products."com.example.pro.monthly"]
    title = "Pro (monthly)"
    tier = "pro"
"""

from __future__ import annotations

import json
import tomllib
from logging import getLogger
from typing import TYPE_CHECKING

from pydantic import BaseModel, ConfigDict, Field, ValidationError, field_validator

from entitlekit.config import ConfigurationError
from entitlekit.domain.model import EntitlementTier, ManifestProduct, ProductManifest

if TYPE_CHECKING:
    from pathlib import Path

log = getLogger(__name__)


class ManifestEntry(BaseModel):
    model_config = ConfigDict(extra="ignore")

    title: str = ""
    tier: EntitlementTier

    @field_validator("tier", mode="before")
    @classmethod
    def _parse_tier(cls, value: object) -> object:
        if isinstance(value, bool):
            raise ValueError("tier must be a name or a rank")
        if isinstance(value, int):
            tier = EntitlementTier.from_rank(value)
        elif isinstance(value, str):
            tier = EntitlementTier.from_name(value)
        else:
            return value
        if not tier.is_entitled:
            raise ValueError("tier must grant an entitlement")
        return tier


class ManifestDocument(BaseModel):
    model_config = ConfigDict(extra="ignore")

    products: dict[str, ManifestEntry] = Field(default_factory=dict[str, ManifestEntry])


def parse_manifest(data: object) -> ProductManifest:
    """Validate a decoded manifest document, preserving declaration order."""

    try:
        document = ManifestDocument.model_validate(data)
    except ValidationError as exc:
        raise ConfigurationError(f"Invalid product manifest: {exc}") from exc
    if not document.products:
        raise ConfigurationError("Product manifest defines no products")
    products = tuple(
        ManifestProduct(product_id=product_id, title=entry.title or product_id, tier=entry.tier)
        for product_id, entry in document.products.items()
    )
    return ProductManifest(products=products)


def load_manifest(path: Path) -> ProductManifest:
    try:
        raw = path.read_bytes()
    except OSError as exc:
        raise ConfigurationError(f"Cannot read product manifest {path}: {exc}") from exc
    try:
        if path.suffix.lower() == ".json":
            data = json.loads(raw)
        else:
            data = tomllib.loads(raw.decode("utf-8"))
    except (ValueError, tomllib.TOMLDecodeError) as exc:
        raise ConfigurationError(f"Cannot parse product manifest {path}: {exc}") from exc
    manifest = parse_manifest(data)
    log.info("Loaded %d products from %s", len(manifest.products), path)
    return manifest
