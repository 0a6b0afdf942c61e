"""Translate storefront payloads into domain values."""

from __future__ import annotations

from datetime import UTC, datetime

from entitlekit.domain.model import (
    IntroductoryOffer,
    ProductCatalogEntry,
    SubscriptionPeriod,
    TransactionRecord,
)

from .schema import PeriodPayload, ProductPayload, TransactionPayload, TransactionPayloadInput


def _ensure_transaction_payload(payload: TransactionPayloadInput) -> TransactionPayload:
    if isinstance(payload, TransactionPayload):
        return payload
    return TransactionPayload.model_validate(payload)


def _as_utc(value: datetime | None) -> datetime | None:
    if value is None:
        return None
    if value.tzinfo is None:
        return value.replace(tzinfo=UTC)
    return value.astimezone(UTC)


def parse_transaction(payload: TransactionPayloadInput) -> TransactionRecord:
    transaction = _ensure_transaction_payload(payload)
    return TransactionRecord(
        transaction_id=transaction.transaction_id,
        product_id=transaction.product_id,
        product_type=transaction.product_type,
        signed_payload=transaction.signed_transaction,
        expires_at=_as_utc(transaction.expires_date),
        revoked_at=_as_utc(transaction.revocation_date),
        state=transaction.state,
        price=transaction.price,
    )


def _parse_period(payload: PeriodPayload | None) -> SubscriptionPeriod | None:
    if payload is None:
        return None
    return SubscriptionPeriod(unit=payload.unit, value=payload.value)


def parse_product(payload: ProductPayload) -> ProductCatalogEntry:
    offer = None
    if payload.introductory_offer is not None:
        offer = IntroductoryOffer(
            payment_mode=payload.introductory_offer.payment_mode,
            period=SubscriptionPeriod(
                unit=payload.introductory_offer.period.unit,
                value=payload.introductory_offer.period.value,
            ),
        )
    return ProductCatalogEntry(
        product_id=payload.product_id,
        display_name=payload.display_name,
        description=payload.description,
        display_price=payload.display_price,
        product_type=payload.product_type,
        price=payload.price,
        billing_period=_parse_period(payload.subscription_period),
        introductory_offer=offer,
    )
