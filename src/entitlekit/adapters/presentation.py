"""Manage-subscriptions presentation through the system web browser."""

from __future__ import annotations

import asyncio
import webbrowser
from logging import getLogger

log = getLogger(__name__)


class BrowserManageScene:
    def __init__(self, browser: webbrowser.BaseBrowser, url: str) -> None:
        self._browser = browser
        self.url = url

    async def show_manage_subscriptions(self) -> None:
        log.info("Opening subscription management at %s", self.url)
        opened = await asyncio.to_thread(self._browser.open, self.url)
        if not opened:
            raise RuntimeError(f"Browser refused to open {self.url}")


class WebBrowserPresenter:
    """Resolves a browser-backed scene, or none when no browser is usable."""

    def __init__(self, manage_url: str) -> None:
        self.manage_url = manage_url

    def resolve_scene(self) -> BrowserManageScene | None:
        try:
            browser = webbrowser.get()
        except webbrowser.Error:
            return None
        return BrowserManageScene(browser, self.manage_url)
