"""Storefront backend configuration values."""

from __future__ import annotations

from dataclasses import dataclass
from typing import Literal

from .env import optional_env_var, require_env_vars
from .http_resilience import CacheConfig, RateLimit, ResilienceConfig, ShouldCacheHook

STOREFRONT_BASE_URL = "https://api.storefront.example/v1/"
STOREFRONT_TIMEOUT_SECONDS = 15.0
# Long-poll requests stay open until the backend has news or gives up.
STOREFRONT_UPDATES_TIMEOUT_SECONDS = 90.0


@dataclass(frozen=True)
class StorefrontConfig:
    """Holds storefront API configuration values."""

    api_key: str
    app_user_id: str
    base_url: str
    resilience: ResilienceConfig
    catalog_resilience: ResilienceConfig
    updates_timeout_seconds: float = STOREFRONT_UPDATES_TIMEOUT_SECONDS


def default_storefront_resilience(base_url: str, api_key: str) -> ResilienceConfig:
    return ResilienceConfig(
        name="storefront",
        base_url=base_url,
        timeout_seconds=STOREFRONT_TIMEOUT_SECONDS,
        ratelimit=RateLimit(max_calls=10, per_seconds=1.0),
        cache=None,
        default_headers={"Authorization": f"Bearer {api_key}"},
    )


def default_catalog_resilience(
    base_url: str,
    api_key: str,
    *,
    cache_predicate: ShouldCacheHook | None = None,
    cache_backend: Literal["sqlite", "memory"] = "memory",
) -> ResilienceConfig:
    return ResilienceConfig(
        name="storefront-catalog",
        base_url=base_url,
        timeout_seconds=STOREFRONT_TIMEOUT_SECONDS,
        ratelimit=RateLimit(max_calls=4, per_seconds=1.0),
        cache=CacheConfig(
            backend=cache_backend,
            default_ttl_seconds=3600.0,
            should_cache=cache_predicate,
        ),
        default_headers={"Authorization": f"Bearer {api_key}"},
    )


def get_storefront_config(
    *,
    app_user_id: str | None = None,
    cache_predicate: ShouldCacheHook | None = None,
) -> StorefrontConfig:
    names = ["ENTITLEKIT_API_KEY"]
    if not app_user_id:
        names.append("ENTITLEKIT_APP_USER_ID")
    values = require_env_vars(names)
    api_key = values["ENTITLEKIT_API_KEY"]
    base_url = optional_env_var("ENTITLEKIT_API_BASE_URL", STOREFRONT_BASE_URL)
    return StorefrontConfig(
        api_key=api_key,
        app_user_id=app_user_id or values["ENTITLEKIT_APP_USER_ID"],
        base_url=base_url,
        resilience=default_storefront_resilience(base_url, api_key),
        catalog_resilience=default_catalog_resilience(
            base_url,
            api_key,
            cache_predicate=cache_predicate,
            # Persist catalog answers only when a data directory is configured.
            cache_backend="sqlite" if optional_env_var("ENTITLEKIT_DATA_DIR", "") else "memory",
        ),
    )
