from __future__ import annotations

import pytest

from entitlekit.domain.model import (
    EntitlementTier,
    ManifestProduct,
    ProductManifest,
    PurchaseResult,
    PurchaseResultKind,
    RenewalState,
)
from tests.helpers.entitlements import PREMIUM_MONTHLY, PRO_MONTHLY, make_grant, make_manifest


def test_manifest_requires_products() -> None:
    with pytest.raises(ValueError, match="No products"):
        ProductManifest(products=())


def test_manifest_rejects_duplicate_ids() -> None:
    product = ManifestProduct(PRO_MONTHLY, "Pro", EntitlementTier.PRO)

    with pytest.raises(ValueError, match="Duplicate"):
        ProductManifest(products=(product, product))


def test_manifest_lookup_and_primary_product() -> None:
    manifest = make_manifest()

    assert manifest.primary.product_id == PRO_MONTHLY
    assert manifest.tiers()[PREMIUM_MONTHLY] is EntitlementTier.PREMIUM
    assert manifest.get("missing") is None


@pytest.mark.parametrize(
    ("raw", "expected"),
    [
        ("pro", EntitlementTier.PRO),
        ("Premium", EntitlementTier.PREMIUM),
        (" standard ", EntitlementTier.STANDARD),
    ],
)
def test_tier_from_name(raw: str, expected: EntitlementTier) -> None:
    assert EntitlementTier.from_name(raw) is expected


def test_tier_from_unknown_rank_raises() -> None:
    with pytest.raises(ValueError, match="Unknown entitlement tier rank"):
        EntitlementTier.from_rank(9)


def test_terminal_grant_has_no_effective_tier() -> None:
    expired = make_grant(EntitlementTier.PRO, state=RenewalState.EXPIRED)
    grace = make_grant(EntitlementTier.PRO, state=RenewalState.IN_BILLING_RETRY_PERIOD)

    assert expired.effective_tier is EntitlementTier.NOT_ENTITLED
    assert grace.effective_tier is EntitlementTier.PRO


def test_successful_purchase_result_requires_record() -> None:
    with pytest.raises(ValueError, match="must carry a transaction record"):
        PurchaseResult(kind=PurchaseResultKind.SUCCESS)
