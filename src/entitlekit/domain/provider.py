"""Application-facing subscription provider."""

from __future__ import annotations

import asyncio
from logging import getLogger
from typing import TYPE_CHECKING

from .catalog import to_display_product

if TYPE_CHECKING:
    from collections.abc import Awaitable, Callable, Iterable
    from types import TracebackType

    from entitlekit.domain.model import (
        DisplayProduct,
        ProductCatalogEntry,
        PurchaseOutcome,
        SubscriptionStatus,
    )
    from entitlekit.domain.ports import PurchaseBackend, ScenePresenter

    from .catalog import ProductCatalog
    from .publisher import StatusPublisher
    from .purchasing import PurchaseCoordinator
    from .reconciler import StatusReconciler

log = getLogger(__name__)


class SubscriptionProvider:
    """Owns the background listener and poll loop and exposes store operations."""

    def __init__(
        self,
        *,
        publisher: StatusPublisher,
        reconciler: StatusReconciler,
        coordinator: PurchaseCoordinator,
        catalog: ProductCatalog,
        backend: PurchaseBackend,
        presenter: ScenePresenter | None = None,
        closers: Iterable[Callable[[], Awaitable[None]]] = (),
    ) -> None:
        self._publisher = publisher
        self._reconciler = reconciler
        self._coordinator = coordinator
        self._catalog = catalog
        self._backend = backend
        self._presenter = presenter
        self._closers = list(closers)
        self._tasks: list[asyncio.Task[None]] = []
        self._presentations: set[asyncio.Task[None]] = set()
        self._remove_observer = publisher.add_observer(self._log_status)

    @property
    def subscription_status(self) -> StatusPublisher:
        return self._publisher

    @property
    def current_status(self) -> SubscriptionStatus | None:
        return self._publisher.value

    @property
    def reconciler(self) -> StatusReconciler:
        return self._reconciler

    @property
    def started(self) -> bool:
        return bool(self._tasks)

    def start(self) -> None:
        """Start the transaction listener, the initial pass and the poll loop."""

        if self._tasks:
            return
        loop = asyncio.get_running_loop()
        # The listener goes first so no transaction is missed during the initial pass.
        self._tasks = [
            loop.create_task(
                self._reconciler.listen_for_transactions(), name="transaction-updates"
            ),
            loop.create_task(self._reconciler.poll_periodically(), name="entitlement-poll"),
        ]
        self._reconciler.start()

    async def aclose(self) -> None:
        """Cancel the listener and poll loop together and let the in-flight pass finish."""

        tasks, self._tasks = self._tasks, []
        for task in tasks:
            task.cancel()
        await asyncio.gather(*tasks, return_exceptions=True)
        await self._reconciler.drain()
        if self._presentations:
            await asyncio.gather(*self._presentations, return_exceptions=True)
        self._remove_observer()
        closers, self._closers = self._closers, []
        for close in closers:
            await close()

    async def __aenter__(self) -> SubscriptionProvider:
        self.start()
        return self

    async def __aexit__(
        self,
        exc_type: type[BaseException] | None,
        exc: BaseException | None,
        tb: TracebackType | None,
    ) -> None:
        await self.aclose()

    async def wait_until_settled(self) -> SubscriptionStatus | None:
        """Wait for the passes requested so far and return the resulting status."""

        await self._reconciler.wait_for_pass(self._reconciler.latest_ticket)
        return self._publisher.value

    async def fetch_products(self) -> list[DisplayProduct]:
        await self._catalog.refresh()
        entries = self._catalog.entries

        async def enrich(entry: ProductCatalogEntry) -> DisplayProduct:
            used_trial = await self._coordinator.has_used_introductory_offer(entry.product_id)
            return to_display_product(entry, manifest=self._catalog.manifest, used_trial=used_trial)

        products = await asyncio.gather(*(enrich(entry) for entry in entries))
        log.info("Fetched %s products", len(products))
        return list(products)

    async def purchase(self, product_id: str) -> PurchaseOutcome:
        return await self._coordinator.purchase(product_id)

    async def purchase_subscription(self) -> PurchaseOutcome:
        """Purchase the primary configured product."""

        return await self.purchase(self._catalog.manifest.primary.product_id)

    async def restore_purchases(self) -> None:
        await self._coordinator.restore()

    async def has_used_free_trial(self) -> bool:
        return await self._coordinator.has_used_introductory_offer(
            self._catalog.manifest.primary.product_id
        )

    async def set_user_id(self, user_id: str) -> None:
        """Rebind the backend identity and reconcile for the new user."""

        try:
            await self._backend.log_in(user_id)
        except Exception as exc:
            log.error("Log-in failed for user id %s: %s", user_id, exc)
        await self._reconciler.reconcile(f"user changed to {user_id}")

    def show_manage_subscriptions(self) -> None:
        """Best effort: present the store's subscription management screen."""

        log.info("Show manage subscriptions")
        scene = self._presenter.resolve_scene() if self._presenter is not None else None
        if scene is None:
            log.error("No presentation surface found for manage subscriptions")
            return

        async def present() -> None:
            try:
                await scene.show_manage_subscriptions()
            except Exception as exc:
                log.error("Failed to show manage subscriptions page: %s", exc)

        task = asyncio.get_running_loop().create_task(present())
        self._presentations.add(task)
        task.add_done_callback(self._presentations.discard)

    @staticmethod
    def _log_status(status: SubscriptionStatus) -> None:
        log.info("Subscription status changed: %s", status)
