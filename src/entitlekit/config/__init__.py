"""Application configuration helpers."""

from __future__ import annotations

from .entitlements import (
    EntitlementsConfig,
    ReconcilerConfig,
    VerificationConfig,
    get_entitlements_config,
    get_verification_config,
)
from .env import require_env_var, require_env_vars
from .errors import ConfigurationError, MissingConfigurationError
from .http_resilience import CacheConfig, RateLimit, ResilienceConfig, RetryPolicy
from .logging import configure_logging
from .storefront import StorefrontConfig, get_storefront_config

__all__ = [
    "CacheConfig",
    "ConfigurationError",
    "EntitlementsConfig",
    "MissingConfigurationError",
    "RateLimit",
    "ReconcilerConfig",
    "ResilienceConfig",
    "RetryPolicy",
    "StorefrontConfig",
    "VerificationConfig",
    "configure_logging",
    "get_entitlements_config",
    "get_storefront_config",
    "get_verification_config",
    "require_env_var",
    "require_env_vars",
]
