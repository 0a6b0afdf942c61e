"""Trust boundary between raw transaction records and entitlement resolution.

A record is trusted only through its signed envelope, a compact JWS issued by the
backend. The grant is built from the signed claims; the record's plain attributes
must agree with them or the record is rejected. Failures are returned, not raised,
so one bad record never aborts a reconciliation pass.
"""

from __future__ import annotations

from dataclasses import dataclass
from datetime import UTC, datetime
from enum import StrEnum
from logging import getLogger
from typing import TYPE_CHECKING

import jwt

from entitlekit.domain.model import (
    EntitlementTier,
    ProductType,
    RenewalState,
    TransactionRecord,
    TrustedGrant,
)

if TYPE_CHECKING:
    from collections.abc import Mapping, Sequence

log = getLogger(__name__)

REQUIRED_CLAIMS: tuple[str, ...] = ("transactionId", "productId", "type")


class VerificationFailureReason(StrEnum):
    UNSIGNED = "unsigned"
    INVALID_SIGNATURE = "invalid_signature"
    MALFORMED_PAYLOAD = "malformed_payload"
    PAYLOAD_MISMATCH = "payload_mismatch"
    UNKNOWN_PRODUCT = "unknown_product"


@dataclass(frozen=True, slots=True)
class VerificationFailure:
    record: TransactionRecord
    reason: VerificationFailureReason
    detail: str = ""

    def __str__(self) -> str:
        suffix = f": {self.detail}" if self.detail else ""
        return (
            f"transaction {self.record.transaction_id} ({self.record.product_id}) "
            f"failed verification [{self.reason}]{suffix}"
        )


type VerificationResult = TrustedGrant | VerificationFailure


class TransactionVerifier:
    def __init__(
        self,
        product_tiers: Mapping[str, EntitlementTier],
        *,
        key: str | bytes,
        algorithms: Sequence[str] = ("ES256",),
    ) -> None:
        self._product_tiers = dict(product_tiers)
        self._key = key
        self._algorithms = list(algorithms)

    def verify(self, record: TransactionRecord) -> VerificationResult:
        result = self._verify(record)
        if isinstance(result, VerificationFailure):
            log.warning("%s", result)
        return result

    def _verify(self, record: TransactionRecord) -> VerificationResult:
        if not record.signed_payload:
            return VerificationFailure(record, VerificationFailureReason.UNSIGNED)

        try:
            claims = jwt.decode(
                record.signed_payload,
                self._key,
                algorithms=self._algorithms,
                options={"require": list(REQUIRED_CLAIMS), "verify_aud": False},
            )
        except jwt.PyJWTError as exc:
            return VerificationFailure(
                record, VerificationFailureReason.INVALID_SIGNATURE, str(exc)
            )

        try:
            grant_fields = _parse_claims(claims)
        except (TypeError, ValueError, OverflowError, OSError) as exc:
            return VerificationFailure(
                record, VerificationFailureReason.MALFORMED_PAYLOAD, str(exc)
            )

        transaction_id, product_id, product_type, state, expires_at, revoked_at = grant_fields
        if transaction_id != record.transaction_id or product_id != record.product_id:
            return VerificationFailure(
                record,
                VerificationFailureReason.PAYLOAD_MISMATCH,
                f"signed claims name {transaction_id}/{product_id}",
            )

        tier = self._product_tiers.get(product_id)
        if tier is None:
            return VerificationFailure(
                record,
                VerificationFailureReason.UNKNOWN_PRODUCT,
                "product is not part of the configured manifest",
            )

        if revoked_at is not None:
            state = RenewalState.REVOKED

        return TrustedGrant(
            transaction_id=transaction_id,
            product_id=product_id,
            product_type=product_type,
            tier=tier,
            state=state,
            expires_at=expires_at,
            revoked_at=revoked_at,
        )


def _parse_claims(
    claims: Mapping[str, object],
) -> tuple[str, str, ProductType, RenewalState, datetime | None, datetime | None]:
    transaction_id = str(claims["transactionId"])
    product_id = str(claims["productId"])
    product_type = ProductType(str(claims["type"]))
    raw_state = claims.get("state")
    state = RenewalState(str(raw_state)) if raw_state is not None else RenewalState.SUBSCRIBED
    expires_at = _millis_to_datetime(claims.get("expiresDate"))
    revoked_at = _millis_to_datetime(claims.get("revocationDate"))
    return transaction_id, product_id, product_type, state, expires_at, revoked_at


def _millis_to_datetime(value: object) -> datetime | None:
    if value is None:
        return None
    if isinstance(value, bool) or not isinstance(value, int | float | str):
        raise TypeError(f"Expected a millisecond timestamp, got {value!r}")
    return datetime.fromtimestamp(int(value) / 1000, tz=UTC)


def datetime_to_millis(value: datetime) -> int:
    if value.tzinfo is None:
        value = value.replace(tzinfo=UTC)
    return int(value.astimezone(UTC).timestamp() * 1000)
