"""Highest-entitlement resolution over a set of trusted grants.

Several grants can be held at once (family sharing, several products in one
subscription group). The subscriber is entitled to the highest level of service
among the grants that are not terminal. Resolution is a pure function of its input.
"""

from __future__ import annotations

from dataclasses import dataclass
from datetime import UTC, datetime
from typing import TYPE_CHECKING

from entitlekit.domain.model import EntitlementTier, RenewalState, TrustedGrant

if TYPE_CHECKING:
    from collections.abc import Iterable

_EPOCH = datetime.min.replace(tzinfo=UTC)


@dataclass(frozen=True, slots=True)
class Resolution:
    tier: EntitlementTier
    expires_at: datetime | None = None
    grant: TrustedGrant | None = None
    state: RenewalState | None = None

    @property
    def is_entitled(self) -> bool:
        return self.tier.is_entitled


NOT_ENTITLED = Resolution(tier=EntitlementTier.NOT_ENTITLED)


def resolve_entitlement(grants: Iterable[TrustedGrant]) -> Resolution:
    """Return the winning grant's tier and expiry, or ``NOT_ENTITLED``.

    Ties between grants of the same tier go to the latest expiry and then to the
    transaction id, so the result does not depend on input order. When only
    terminal grants remain, the most recently terminated one supplies ``state``.
    """

    ranked: list[TrustedGrant] = []
    terminal: list[TrustedGrant] = []
    for grant in grants:
        if grant.effective_tier.is_entitled:
            ranked.append(grant)
        else:
            terminal.append(grant)

    if ranked:
        winner = max(ranked, key=_rank_key)
        return Resolution(
            tier=winner.tier,
            expires_at=winner.expires_at,
            grant=winner,
            state=winner.state,
        )

    if terminal:
        latest = max(terminal, key=_termination_key)
        return Resolution(tier=EntitlementTier.NOT_ENTITLED, grant=latest, state=latest.state)

    return NOT_ENTITLED


def _rank_key(grant: TrustedGrant) -> tuple[EntitlementTier, datetime, str]:
    return (grant.tier, _as_utc(grant.expires_at), grant.transaction_id)


def _termination_key(grant: TrustedGrant) -> tuple[datetime, str]:
    ended_at = grant.revoked_at or grant.expires_at
    return (_as_utc(ended_at), grant.transaction_id)


def _as_utc(value: datetime | None) -> datetime:
    if value is None:
        return _EPOCH
    if value.tzinfo is None:
        return value.replace(tzinfo=UTC)
    return value
