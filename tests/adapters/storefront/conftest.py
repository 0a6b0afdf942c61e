from __future__ import annotations

import pytest

from entitlekit.config import ResilienceConfig, StorefrontConfig
from entitlekit.config.storefront import default_storefront_resilience
from tests.helpers.storefront import BASE_URL


@pytest.fixture
def storefront_config() -> StorefrontConfig:
    return StorefrontConfig(
        api_key="sk_test",
        app_user_id="user-1",
        base_url=BASE_URL,
        resilience=default_storefront_resilience(BASE_URL, "sk_test"),
        catalog_resilience=ResilienceConfig(name="storefront-catalog-test", base_url=BASE_URL),
    )


@pytest.fixture
def transaction_payload() -> dict[str, object]:
    return {
        "transaction_id": "1000",
        "product_id": "com.example.pro.monthly",
        "product_type": "auto_renewable",
        "expires_date": "2025-03-11T12:00:00Z",
        "state": "subscribed",
        "price": "9.99",
        "signed_transaction": "header.payload.signature",
    }
