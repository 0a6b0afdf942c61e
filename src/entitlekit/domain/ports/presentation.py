"""Ports for presenting store-owned screens."""

from __future__ import annotations

from typing import Protocol, runtime_checkable


@runtime_checkable
class ManageSubscriptionsScene(Protocol):
    async def show_manage_subscriptions(self) -> None: ...


@runtime_checkable
class ScenePresenter(Protocol):
    """Resolves the active presentation surface, or ``None`` when there is none."""

    def resolve_scene(self) -> ManageSubscriptionsScene | None: ...


__all__ = ["ManageSubscriptionsScene", "ScenePresenter"]
