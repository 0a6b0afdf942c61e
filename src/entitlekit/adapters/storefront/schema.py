"""Pydantic models describing the storefront API payloads."""

from __future__ import annotations

from collections.abc import Mapping
from datetime import datetime  # noqa: TC003
from decimal import Decimal  # noqa: TC003

from pydantic import BaseModel, ConfigDict, Field, field_validator

from entitlekit.domain.model import (
    IntroEligibility,
    OfferPaymentMode,
    PeriodUnit,
    ProductType,
    PurchaseResultKind,
    RenewalState,
)


def _blank_to_none(value: object) -> object:
    if isinstance(value, str):
        stripped = value.strip()
        return stripped or None
    return value


class StorefrontBaseModel(BaseModel):
    model_config = ConfigDict(extra="ignore", populate_by_name=True)


class TransactionPayload(StorefrontBaseModel):
    transaction_id: str
    product_id: str
    product_type: ProductType = ProductType.AUTO_RENEWABLE
    expires_date: datetime | None = None
    revocation_date: datetime | None = None
    state: RenewalState | None = None
    price: Decimal | None = None
    signed_transaction: str | None = None

    _normalize_signed = field_validator("signed_transaction", mode="before")(_blank_to_none)


class EntitlementsResponse(StorefrontBaseModel):
    # Items are validated one at a time so a single bad entry cannot void the batch.
    transactions: list[object] = Field(default_factory=list[object])


class UpdatesResponse(StorefrontBaseModel):
    transactions: list[object] = Field(default_factory=list[object])
    cursor: str | None = None


class PurchaseResponse(StorefrontBaseModel):
    result: PurchaseResultKind
    transaction: TransactionPayload | None = None


_ELIGIBILITY_VALUES = frozenset(member.value for member in IntroEligibility)


class EligibilityPayload(StorefrontBaseModel):
    status: IntroEligibility = IntroEligibility.UNKNOWN

    @field_validator("status", mode="before")
    @classmethod
    def _unknown_when_unrecognised(cls, value: object) -> object:
        if isinstance(value, str) and value.lower() in _ELIGIBILITY_VALUES:
            return value.lower()
        return IntroEligibility.UNKNOWN


class EligibilityResponse(StorefrontBaseModel):
    eligibility: dict[str, EligibilityPayload] = Field(
        default_factory=dict[str, EligibilityPayload]
    )


class PeriodPayload(StorefrontBaseModel):
    unit: PeriodUnit
    value: int = 1


class IntroductoryOfferPayload(StorefrontBaseModel):
    payment_mode: OfferPaymentMode
    period: PeriodPayload


class ProductPayload(StorefrontBaseModel):
    product_id: str
    display_name: str
    description: str = ""
    display_price: str
    price: Decimal | None = None
    product_type: ProductType = ProductType.AUTO_RENEWABLE
    subscription_period: PeriodPayload | None = None
    introductory_offer: IntroductoryOfferPayload | None = None


class ProductsResponse(StorefrontBaseModel):
    products: list[ProductPayload] = Field(default_factory=list[ProductPayload])


class ErrorResponse(StorefrontBaseModel):
    error: int
    message: str


TransactionPayloadInput = TransactionPayload | Mapping[str, object]
