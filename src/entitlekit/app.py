"""Application composition: builds a ready-to-start subscription provider."""

from __future__ import annotations

import secrets
from datetime import UTC, datetime, timedelta
from decimal import Decimal
from enum import StrEnum
from logging import getLogger
from typing import TYPE_CHECKING

from entitlekit.adapters.manifest import load_manifest
from entitlekit.adapters.memory import InMemoryBackend, TransactionSigner
from entitlekit.adapters.presentation import WebBrowserPresenter
from entitlekit.adapters.storefront import StorefrontClient, should_cache_products
from entitlekit.config import (
    ConfigurationError,
    ReconcilerConfig,
    get_entitlements_config,
    get_storefront_config,
)
from entitlekit.domain.catalog import ProductCatalog
from entitlekit.domain.model import (
    IntroductoryOffer,
    OfferPaymentMode,
    PeriodUnit,
    ProductCatalogEntry,
    ProductType,
    SubscriptionPeriod,
)
from entitlekit.domain.provider import SubscriptionProvider
from entitlekit.domain.publisher import StatusPublisher
from entitlekit.domain.purchasing import PurchaseCoordinator
from entitlekit.domain.reconciler import StatusReconciler
from entitlekit.domain.verification import TransactionVerifier

if TYPE_CHECKING:
    from collections.abc import Awaitable, Callable, Iterable

    from entitlekit.domain.model import ProductManifest
    from entitlekit.domain.ports import (
        CatalogBackend,
        PurchaseBackend,
        ScenePresenter,
        TransactionSource,
    )

log = getLogger(__name__)

MOCK_PRICE = Decimal("4.99")


class ProviderType(StrEnum):
    MOCK = "mock"
    STOREFRONT = "storefront"


def assemble_provider(
    manifest: ProductManifest,
    *,
    source: TransactionSource,
    backend: PurchaseBackend,
    catalog_backend: CatalogBackend,
    verifier: TransactionVerifier,
    reconciler_config: ReconcilerConfig | None = None,
    presenter: ScenePresenter | None = None,
    closers: Iterable[Callable[[], Awaitable[None]]] = (),
) -> SubscriptionProvider:
    """Wire the domain collaborators around already-built adapters."""

    settings = reconciler_config or ReconcilerConfig()
    publisher = StatusPublisher()
    catalog = ProductCatalog(manifest, catalog_backend)
    reconciler = StatusReconciler(
        source=source,
        verifier=verifier,
        publisher=publisher,
        catalog=catalog,
        poll_interval=settings.poll_interval_seconds,
        reconnect_delay=settings.reconnect_delay_seconds,
    )
    coordinator = PurchaseCoordinator(
        backend=backend,
        source=source,
        verifier=verifier,
        reconciler=reconciler,
        catalog=catalog,
    )
    return SubscriptionProvider(
        publisher=publisher,
        reconciler=reconciler,
        coordinator=coordinator,
        catalog=catalog,
        backend=backend,
        presenter=presenter,
        closers=closers,
    )


def build_mock_catalog(manifest: ProductManifest) -> list[ProductCatalogEntry]:
    """Monthly catalog entries for every manifest product; the primary one has a trial."""

    entries: list[ProductCatalogEntry] = []
    for product in manifest.products:
        offer = None
        if product is manifest.primary:
            offer = IntroductoryOffer(
                payment_mode=OfferPaymentMode.FREE_TRIAL,
                period=SubscriptionPeriod(PeriodUnit.DAY, 7),
            )
        entries.append(
            ProductCatalogEntry(
                product_id=product.product_id,
                display_name=product.title,
                description=f"{product.tier.name.title()} access",
                display_price=f"${MOCK_PRICE}",
                product_type=ProductType.AUTO_RENEWABLE,
                price=MOCK_PRICE,
                billing_period=SubscriptionPeriod(PeriodUnit.MONTH),
                introductory_offer=offer,
            )
        )
    return entries


def build_mock_provider(
    manifest: ProductManifest,
    *,
    app_user_id: str | None = None,
    reconciler_config: ReconcilerConfig | None = None,
    presenter: ScenePresenter | None = None,
) -> tuple[SubscriptionProvider, InMemoryBackend]:
    """In-process provider holding one active grant for the primary product."""

    secret = secrets.token_urlsafe(32)
    backend = InMemoryBackend(
        TransactionSigner(secret),
        catalog=build_mock_catalog(manifest),
        app_user_id=app_user_id or "mock-user",
    )
    backend.issue(manifest.primary.product_id, expires_at=datetime.now(UTC) + timedelta(days=30))
    verifier = TransactionVerifier(manifest.tiers(), key=secret, algorithms=("HS256",))
    provider = assemble_provider(
        manifest,
        source=backend,
        backend=backend,
        catalog_backend=backend,
        verifier=verifier,
        reconciler_config=reconciler_config,
        presenter=presenter,
    )
    return provider, backend


def build_subscription_provider(
    provider_type: ProviderType = ProviderType.STOREFRONT,
    *,
    manifest_path: str | None = None,
    app_user_id: str | None = None,
    presenter: ScenePresenter | None = None,
) -> SubscriptionProvider:
    """Build a provider from environment configuration.

    Raises ``ConfigurationError`` when required settings or the manifest are missing.
    """

    config = get_entitlements_config(
        manifest_path=manifest_path,
        require_verification=provider_type is ProviderType.STOREFRONT,
    )
    manifest = load_manifest(config.manifest_path)
    effective_presenter = presenter or WebBrowserPresenter(config.manage_url)
    log.info("Building %s subscription provider", provider_type)

    if provider_type is ProviderType.MOCK:
        provider, _backend = build_mock_provider(
            manifest,
            app_user_id=app_user_id,
            reconciler_config=config.reconciler,
            presenter=effective_presenter,
        )
        return provider

    verification = config.verification
    if verification is None:  # pragma: no cover - required for the storefront above
        raise ConfigurationError("Verification key is required for the storefront provider")
    client = StorefrontClient(
        get_storefront_config(app_user_id=app_user_id, cache_predicate=should_cache_products)
    )
    verifier = TransactionVerifier(
        manifest.tiers(), key=verification.key, algorithms=verification.algorithms
    )
    return assemble_provider(
        manifest,
        source=client,
        backend=client,
        catalog_backend=client,
        verifier=verifier,
        reconciler_config=config.reconciler,
        presenter=effective_presenter,
        closers=(client.aclose,),
    )
