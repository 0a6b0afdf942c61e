"""Verification and reconciliation settings."""

from __future__ import annotations

from dataclasses import dataclass, field
from pathlib import Path

from .env import float_env_var, optional_env_var, require_env_var
from .errors import ConfigurationError

DEFAULT_POLL_INTERVAL_SECONDS = 60.0
DEFAULT_RECONNECT_DELAY_SECONDS = 5.0
DEFAULT_MANIFEST_PATH = "products.toml"
DEFAULT_MANAGE_URL = "https://apps.apple.com/account/subscriptions"
SUPPORTED_ALGORITHMS = frozenset({"HS256", "HS384", "HS512", "ES256", "ES384", "RS256"})


@dataclass(frozen=True, slots=True)
class VerificationConfig:
    """Key material used to check signed transaction envelopes."""

    key: str
    algorithms: tuple[str, ...] = ("ES256",)

    def __post_init__(self) -> None:
        if not self.algorithms:
            raise ConfigurationError("At least one verification algorithm is required")
        unsupported = sorted(set(self.algorithms) - SUPPORTED_ALGORITHMS)
        if unsupported:
            raise ConfigurationError(f"Unsupported verification algorithms: {unsupported}")


@dataclass(frozen=True, slots=True)
class ReconcilerConfig:
    poll_interval_seconds: float = DEFAULT_POLL_INTERVAL_SECONDS
    reconnect_delay_seconds: float = DEFAULT_RECONNECT_DELAY_SECONDS


@dataclass(frozen=True, slots=True)
class EntitlementsConfig:
    manifest_path: Path
    verification: VerificationConfig | None
    reconciler: ReconcilerConfig = field(default_factory=ReconcilerConfig)
    manage_url: str = DEFAULT_MANAGE_URL


def _parse_algorithms(raw: str) -> tuple[str, ...]:
    return tuple(part.strip().upper() for part in raw.split(",") if part.strip())


def get_verification_config() -> VerificationConfig:
    key = require_env_var("ENTITLEKIT_VERIFICATION_KEY")
    algorithms = _parse_algorithms(optional_env_var("ENTITLEKIT_VERIFICATION_ALGORITHMS", "ES256"))
    # PEM keys are commonly stored in .env files with escaped newlines.
    return VerificationConfig(key=key.replace("\\n", "\n"), algorithms=algorithms)


def get_entitlements_config(
    *,
    manifest_path: str | None = None,
    require_verification: bool = True,
) -> EntitlementsConfig:
    path = Path(manifest_path or optional_env_var("ENTITLEKIT_MANIFEST", DEFAULT_MANIFEST_PATH))
    return EntitlementsConfig(
        manifest_path=path,
        verification=get_verification_config() if require_verification else None,
        reconciler=ReconcilerConfig(
            poll_interval_seconds=float_env_var(
                "ENTITLEKIT_POLL_INTERVAL", DEFAULT_POLL_INTERVAL_SECONDS
            ),
            reconnect_delay_seconds=float_env_var(
                "ENTITLEKIT_RECONNECT_DELAY", DEFAULT_RECONNECT_DELAY_SECONDS
            ),
        ),
        manage_url=optional_env_var("ENTITLEKIT_MANAGE_URL", DEFAULT_MANAGE_URL),
    )
