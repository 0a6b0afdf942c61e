"""Public interface for the storefront adapter."""

from __future__ import annotations

from .client import StorefrontAPIError, StorefrontClient, should_cache_products
from .schema import ProductsResponse, TransactionPayload, TransactionPayloadInput
from .translator import parse_product, parse_transaction

__all__ = [
    "ProductsResponse",
    "StorefrontAPIError",
    "StorefrontClient",
    "TransactionPayload",
    "TransactionPayloadInput",
    "parse_product",
    "parse_transaction",
    "should_cache_products",
]
