"""Replay-last-value broadcast of the canonical subscription status."""

from __future__ import annotations

import asyncio
from contextlib import aclosing
from logging import getLogger
from typing import TYPE_CHECKING

if TYPE_CHECKING:
    from collections.abc import AsyncGenerator, Callable

    from entitlekit.domain.model import SubscriptionStatus

log = getLogger(__name__)

type StatusObserver = Callable[[SubscriptionStatus], None]


class StatusPublisher:
    """Single-writer, multi-reader holder of the current status.

    Each async subscriber gets its own queue, so a slow reader still sees every
    change in order and never two equal values back to back.
    """

    def __init__(self, initial: SubscriptionStatus | None = None) -> None:
        self._value = initial
        self._version = 0 if initial is None else 1
        self._queues: set[asyncio.Queue[SubscriptionStatus]] = set()
        self._observers: list[StatusObserver] = []

    @property
    def value(self) -> SubscriptionStatus | None:
        return self._value

    @property
    def version(self) -> int:
        """Number of distinct values published so far."""

        return self._version

    def publish(self, status: SubscriptionStatus) -> bool:
        """Store ``status`` and notify observers; equal values are dropped."""

        if status == self._value:
            return False
        self._value = status
        self._version += 1
        for queue in self._queues:
            queue.put_nowait(status)
        for observer in list(self._observers):
            self._notify(observer, status)
        return True

    async def subscribe(self) -> AsyncGenerator[SubscriptionStatus]:
        """Yield the current status (if any), then every subsequent change."""

        queue: asyncio.Queue[SubscriptionStatus] = asyncio.Queue()
        if self._value is not None:
            queue.put_nowait(self._value)
        self._queues.add(queue)
        try:
            while True:
                yield await queue.get()
        finally:
            self._queues.discard(queue)

    def add_observer(self, observer: StatusObserver) -> Callable[[], None]:
        """Register a synchronous callback; returns a function that removes it."""

        self._observers.append(observer)
        if self._value is not None:
            self._notify(observer, self._value)

        def remove() -> None:
            if observer in self._observers:
                self._observers.remove(observer)

        return remove

    async def wait_for(
        self, predicate: Callable[[SubscriptionStatus], bool]
    ) -> SubscriptionStatus:
        """Return the first current-or-future status matching ``predicate``."""

        async with aclosing(self.subscribe()) as statuses:
            async for status in statuses:
                if predicate(status):
                    return status
        raise RuntimeError("status subscription ended unexpectedly")  # pragma: no cover

    @staticmethod
    def _notify(observer: StatusObserver, status: SubscriptionStatus) -> None:
        try:
            observer(status)
        except Exception:
            log.exception("Status observer %r failed", observer)
