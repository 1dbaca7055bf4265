"""
Browser module for connecting to Chrome via CDP or launching Chromium.
"""

import asyncio
import logging
from typing import Awaitable, Callable, Optional

from playwright.async_api import Browser, BrowserContext, Page, async_playwright

logger = logging.getLogger(__name__)

CHANGE_BINDING = "__autofillDocumentChanged"

# Reports DOM mutations that add or reveal form controls.
MUTATION_OBSERVER_SCRIPT = """
(() => {
    const notify = () => {
        if (typeof window.%(binding)s === 'function') window.%(binding)s();
    };
    const relevant = mutations => mutations.some(m =>
        m.type === 'attributes' ||
        Array.from(m.addedNodes).some(n =>
            n.nodeType === 1 && (n.matches('input, textarea, select') || n.querySelector('input, textarea, select'))));
    const start = () => {
        new MutationObserver(mutations => { if (relevant(mutations)) notify(); })
            .observe(document.body, {
                childList: true, subtree: true,
                attributes: true, attributeFilter: ['style', 'class', 'hidden'],
            });
    };
    if (document.body) start(); else document.addEventListener('DOMContentLoaded', start);
})();
""" % {"binding": CHANGE_BINDING}


class BrowserManager:
    """Manages the browser session the autofill runs against.

    With a CDP URL it attaches to a running Chrome; without one it launches
    Chromium through Playwright.
    """

    def __init__(self, cdp_url: Optional[str] = None, headless: bool = False):
        self.cdp_url = cdp_url
        self.headless = headless
        self._playwright = None
        self._browser: Optional[Browser] = None
        self._context: Optional[BrowserContext] = None
        self._page: Optional[Page] = None
        self._launched = False

    async def connect(self) -> Page:
        """Attach over CDP, or launch Chromium, and open a page."""
        self._playwright = await async_playwright().start()

        if self.cdp_url:
            try:
                self._browser = await self._playwright.chromium.connect_over_cdp(self.cdp_url)
            except Exception as e:
                await self._playwright.stop()
                self._playwright = None
                raise ConnectionError(
                    f"Failed to connect to Chrome at {self.cdp_url}. "
                    "Make sure Chrome is running with --remote-debugging-port=9222\n"
                    f"Error: {e}"
                )
            contexts = self._browser.contexts
            self._context = contexts[0] if contexts else await self._browser.new_context()
        else:
            self._browser = await self._playwright.chromium.launch(headless=self.headless)
            self._launched = True
            self._context = await self._browser.new_context()

        self._page = await self._context.new_page()
        return self._page

    @property
    def page(self) -> Optional[Page]:
        """Get current page."""
        return self._page

    async def navigate(self, url: str, timeout: int = 30000) -> bool:
        """Navigate to URL with timeout."""
        if not self._page:
            raise RuntimeError("Browser not connected. Call connect() first.")

        try:
            await self._page.goto(url, timeout=timeout, wait_until="domcontentloaded")
            # Wait a bit for dynamic content
            await asyncio.sleep(1)
            return True
        except Exception as e:
            logger.warning("Navigation failed: %s", e)
            return False

    async def get_current_url(self) -> str:
        """Get current page URL."""
        if not self._page:
            raise RuntimeError("Browser not connected.")
        return self._page.url

    async def on_document_change(self, callback: Callable[[], None]):
        """Call ``callback`` whenever the page loads or its form controls change.

        Must be registered before navigation so the observer is installed on load.
        """
        if not self._page:
            raise RuntimeError("Browser not connected.")
        await self._page.expose_function(CHANGE_BINDING, callback)
        await self._page.add_init_script(MUTATION_OBSERVER_SCRIPT)
        self._page.on("load", lambda _page: callback())

    async def close(self):
        """Close the page, and the browser when this session launched it."""
        if self._page:
            await self._page.close()
            self._page = None

        if self._launched and self._browser:
            await self._browser.close()
            self._browser = None

        if self._playwright:
            await self._playwright.stop()
            self._playwright = None

    async def __aenter__(self):
        await self.connect()
        return self

    async def __aexit__(self, exc_type, exc_val, exc_tb):
        await self.close()
