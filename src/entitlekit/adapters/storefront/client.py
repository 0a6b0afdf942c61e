"""HTTP client for the storefront purchase backend.

The storefront exposes a subscriber-centric JSON API. One client instance serves
all three backend ports: transaction source, purchase backend and catalog.
"""

from __future__ import annotations

from logging import getLogger
from typing import TYPE_CHECKING, Any
from urllib.parse import quote

import httpx
from pydantic import ValidationError

from entitlekit.adapters.http_resilience import ResilientClient
from entitlekit.domain.errors import BackendError, FetchFailure
from entitlekit.domain.model import IntroEligibility, PurchaseResult, PurchaseResultKind

from .schema import (
    EligibilityResponse,
    EntitlementsResponse,
    ErrorResponse,
    ProductsResponse,
    PurchaseResponse,
    TransactionPayload,
    UpdatesResponse,
)
from .translator import parse_product, parse_transaction

if TYPE_CHECKING:
    from collections.abc import AsyncIterator, Callable, Iterable

    from entitlekit.config import ResilienceConfig, StorefrontConfig
    from entitlekit.domain.model import ProductCatalogEntry, TransactionRecord
    from entitlekit.domain.ports import CatalogBackend, PurchaseBackend, TransactionSource

log = getLogger(__name__)


class StorefrontAPIError(FetchFailure):
    """Raised when the storefront API returns an application-level error."""

    def __init__(
        self, message: str, *, code: int | None = None, status_code: int | None = None
    ) -> None:
        super().__init__(message, status_code=status_code)
        self.code = code


def should_cache_products(payload: object) -> bool:
    """Only cache catalog answers that actually list products."""

    try:
        response = ProductsResponse.model_validate(payload)
    except ValidationError:
        return False
    return bool(response.products)


def _parse_transactions(items: Iterable[object]) -> list[TransactionRecord]:
    records: list[TransactionRecord] = []
    for index, item in enumerate(items):
        try:
            payload = TransactionPayload.model_validate(item)
        except ValidationError as exc:
            log.warning("Skipping malformed transaction at position %s: %s", index, exc)
            continue
        records.append(parse_transaction(payload))
    return records


def _default_client_factory(config: ResilienceConfig) -> ResilientClient:
    return ResilientClient(config)


class StorefrontClient:
    def __init__(
        self,
        config: StorefrontConfig,
        *,
        client_factory: Callable[[ResilienceConfig], ResilientClient] = _default_client_factory,
    ) -> None:
        self.config = config
        self._client_factory = client_factory
        self._app_user_id = config.app_user_id
        self._update_cursor: str | None = None
        self._client: ResilientClient | None = None
        self._catalog_client: ResilientClient | None = None

    @property
    def app_user_id(self) -> str:
        return self._app_user_id

    async def aclose(self) -> None:
        for client in (self._client, self._catalog_client):
            if client is not None:
                await client.aclose()
        self._client = None
        self._catalog_client = None

    # Transaction source

    async def current_entitlements(self) -> list[TransactionRecord]:
        payload = await self._perform(
            self._http(), "GET", self._subscriber_path("entitlements"), failure=FetchFailure
        )
        response = EntitlementsResponse.model_validate(payload)
        return _parse_transactions(response.transactions)

    async def updates(self) -> AsyncIterator[TransactionRecord]:
        """Long-poll the update endpoint, resuming from the last cursor on reconnect."""

        while True:
            params = {"cursor": self._update_cursor} if self._update_cursor else None
            try:
                payload = await self._perform(
                    self._http(),
                    "GET",
                    self._subscriber_path("updates"),
                    failure=FetchFailure,
                    params=params,
                    timeout=self.config.updates_timeout_seconds,
                )
            except FetchFailure as exc:
                if isinstance(exc.__cause__, httpx.ReadTimeout):
                    log.debug("Update long-poll timed out, polling again")
                    continue
                raise

            response = UpdatesResponse.model_validate(payload)
            for record in _parse_transactions(response.transactions):
                yield record
            if response.cursor:
                self._update_cursor = response.cursor

    async def finish(self, record: TransactionRecord) -> None:
        transaction_id = quote(record.transaction_id, safe="")
        path = self._subscriber_path(f"transactions/{transaction_id}/finish")
        await self._perform(self._http(), "POST", path, failure=BackendError)
        log.debug("Finished transaction %s", record.transaction_id)

    # Purchase backend

    async def purchase(self, product_id: str) -> PurchaseResult:
        payload = await self._perform(
            self._http(),
            "POST",
            self._subscriber_path("purchases"),
            failure=BackendError,
            json={"product_id": product_id},
        )
        response = PurchaseResponse.model_validate(payload)
        record = parse_transaction(response.transaction) if response.transaction else None
        if response.result is PurchaseResultKind.SUCCESS and record is None:
            raise BackendError(f"Purchase of {product_id} succeeded without a transaction")
        return PurchaseResult(kind=response.result, record=record)

    async def sync(self) -> None:
        await self._perform(
            self._http(), "POST", self._subscriber_path("sync"), failure=BackendError
        )

    async def intro_eligibility(self, product_id: str) -> IntroEligibility:
        payload = await self._perform(
            self._http(),
            "POST",
            self._subscriber_path("intro_eligibility"),
            failure=BackendError,
            json={"product_ids": [product_id]},
        )
        response = EligibilityResponse.model_validate(payload)
        entry = response.eligibility.get(product_id)
        return entry.status if entry is not None else IntroEligibility.UNKNOWN

    async def log_in(self, user_id: str) -> None:
        await self._perform(
            self._http(),
            "POST",
            "subscribers/login",
            failure=BackendError,
            json={"app_user_id": user_id, "previous_app_user_id": self._app_user_id},
        )
        if user_id != self._app_user_id:
            self._update_cursor = None
        self._app_user_id = user_id
        log.info("Logged in as %s", user_id)

    # Catalog backend

    async def fetch(self, product_ids: Iterable[str]) -> list[ProductCatalogEntry]:
        params = httpx.QueryParams([("ids", product_id) for product_id in product_ids])
        payload = await self._perform(
            self._catalog_http(), "GET", "products", failure=FetchFailure, params=params
        )
        response = ProductsResponse.model_validate(payload)
        return [parse_product(product) for product in response.products]

    def _subscriber_path(self, suffix: str) -> str:
        return f"subscribers/{quote(self._app_user_id, safe='')}/{suffix}"

    def _http(self) -> ResilientClient:
        if self._client is None:
            self._client = self._client_factory(self.config.resilience)
        return self._client

    def _catalog_http(self) -> ResilientClient:
        if self._catalog_client is None:
            self._catalog_client = self._client_factory(self.config.catalog_resilience)
        return self._catalog_client

    async def _perform(
        self,
        client: ResilientClient,
        method: str,
        url: str,
        *,
        failure: type[BackendError],
        **kwargs: Any,
    ) -> dict[str, object]:
        try:
            response = await client.request(method, url, **kwargs)
        except httpx.HTTPError as exc:
            raise failure(f"{method} {url} failed: {exc}") from exc

        payload = _json_or_none(response)
        if isinstance(payload, dict) and "error" in payload and "message" in payload:
            error_payload = ErrorResponse.model_validate(payload)
            log.error(f"Storefront API error {error_payload.error}: {error_payload.message}")
            raise StorefrontAPIError(
                error_payload.message,
                code=error_payload.error,
                status_code=response.status_code,
            )

        try:
            response.raise_for_status()
        except httpx.HTTPStatusError as exc:
            raise failure(
                f"{method} {url} returned {response.status_code}",
                status_code=response.status_code,
            ) from exc

        if payload is None:
            return {}
        if not isinstance(payload, dict):
            raise failure(f"Unexpected storefront response payload for {method} {url}")
        return payload


def _json_or_none(response: httpx.Response) -> object | None:
    if not response.content:
        return None
    try:
        return response.json()
    except ValueError:
        return None


if TYPE_CHECKING:
    _source_check: TransactionSource = StorefrontClient.__new__(StorefrontClient)
    _backend_check: PurchaseBackend = StorefrontClient.__new__(StorefrontClient)
    _catalog_check: CatalogBackend = StorefrontClient.__new__(StorefrontClient)
