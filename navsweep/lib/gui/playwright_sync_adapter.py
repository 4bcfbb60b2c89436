"""Synchronous Playwright driver wrapper.

This adapter owns the browser and the single page a crawl runs against.
It is meant to be used as a context manager so the browser is released
on every exit path, and it hands out page-scoped event subscriptions that
are detached when their scope ends.
"""

from __future__ import annotations

import logging
from pathlib import Path
from typing import Any, Callable

from playwright.sync_api import Browser, Page, Playwright, Response, sync_playwright

from navsweep.config import DEFAULT_NAVIGATION_TIMEOUT, BrowserConfig

_LOGGER = logging.getLogger(__name__)

_SHOW_STATUS_SCRIPT = """(msg) => {
    let el = document.getElementById('__qa_status_overlay');
    if (!el) {
        el = document.createElement('div');
        el.id = '__qa_status_overlay';
        el.style.cssText = 'position:fixed;z-index:2147483647;top:10px;left:10px;'
            + 'background:rgba(0,0,255,.12);color:#0b5fff;font:12px/1.4 sans-serif;'
            + 'padding:8px 10px;border-radius:6px;box-shadow:0 2px 6px rgba(0,0,0,.3)';
        document.body.appendChild(el);
    }
    el.setAttribute('data-qa-ignore', 'true');
    el.setAttribute('aria-hidden', 'true');
    el.style.pointerEvents = 'none';
    el.textContent = 'Automation: ' + msg;
}"""

_HIGHLIGHT_SCRIPT = """([sel, color]) => {
    const el = document.querySelector(sel);
    if (!el) return;
    if (!el.dataset.qaPrevOutline) el.dataset.qaPrevOutline = el.style.outline || '';
    if (!el.dataset.qaPrevOutlineOffset) el.dataset.qaPrevOutlineOffset = el.style.outlineOffset || '';
    el.style.outline = '3px solid ' + color;
    el.style.outlineOffset = '2px';
    try { el.scrollIntoView({block: 'center', inline: 'center', behavior: 'auto'}); } catch (e) {}
}"""

_CLEAR_HIGHLIGHT_SCRIPT = """(sel) => {
    const el = document.querySelector(sel);
    if (!el) return;
    el.style.outline = el.dataset.qaPrevOutline || '';
    el.style.outlineOffset = el.dataset.qaPrevOutlineOffset || '';
    delete el.dataset.qaPrevOutline;
    delete el.dataset.qaPrevOutlineOffset;
}"""


class PageSubscription:
    """A page event listener that can be detached exactly once.

    Usage:
        with driver.listen("response", on_response):
            driver.goto(url)
    """

    def __init__(self, page: Any, event: str, handler: Callable[..., Any]):
        self._page = page
        self.event = event
        self.handler = handler
        self._active = True
        page.on(event, handler)

    @property
    def active(self) -> bool:
        return self._active

    def detach(self) -> None:
        """Remove the listener; calling it again is a no-op."""
        if not self._active:
            return
        self._active = False
        try:
            self._page.remove_listener(self.event, self.handler)
        except Exception as e:  # noqa: BLE001
            _LOGGER.debug("Could not detach %s listener: %s", self.event, e)

    def __enter__(self) -> PageSubscription:
        return self

    def __exit__(self, exc_type, exc_val, exc_tb):
        self.detach()
        return False


class PlaywrightSyncAdapter:
    """Synchronous Playwright driver wrapper owning one browser page."""

    def __init__(self, config: BrowserConfig | None = None):
        """Initialize adapter.

        Args:
            config: Browser launch options (defaults when None)
        """
        self._config = config or BrowserConfig()
        self._playwright: Playwright | None = None
        self._browser: Browser | None = None
        self._page: Page | None = None
        self._console_subscription: PageSubscription | None = None

        _LOGGER.debug(
            "PlaywrightSyncAdapter initialized (browser=%s, headless=%s)",
            self._config.browser,
            self._config.headless,
        )

    def start(self) -> None:
        """Launch browser and create page.

        This must be called before using the adapter.
        """
        cfg = self._config
        _LOGGER.info("Starting Playwright browser...")

        self._playwright = sync_playwright().start()
        launcher = getattr(self._playwright, cfg.browser, self._playwright.chromium)
        headed_max = cfg.maximize and not cfg.headless
        args = ["--start-maximized"] if headed_max and cfg.browser == "chromium" else []
        self._browser = launcher.launch(headless=cfg.headless, slow_mo=cfg.slow_mo, args=args)

        if headed_max:
            context = self._browser.new_context(no_viewport=True, ignore_https_errors=True)
        else:
            context = self._browser.new_context(
                viewport={"width": cfg.viewport_width, "height": cfg.viewport_height},
                ignore_https_errors=True,
            )
        self._page = context.new_page()

        timeout = cfg.navigation_timeout
        if timeout <= 0:
            _LOGGER.debug(
                "Navigation timeout %s ignored, using %ss", timeout, DEFAULT_NAVIGATION_TIMEOUT
            )
            timeout = DEFAULT_NAVIGATION_TIMEOUT
        timeout_ms = timeout * 1000
        self._page.set_default_timeout(timeout_ms)
        self._page.set_default_navigation_timeout(timeout_ms)

        self._console_subscription = PageSubscription(
            self._page, "console", lambda msg: _LOGGER.debug("[browser] %s", msg.text)
        )

        _LOGGER.info(
            "Playwright browser started (browser=%s, headless=%s)",
            cfg.browser,
            cfg.headless,
        )

    def close(self) -> None:
        """Close browser and cleanup resources.

        This should be called when done with the adapter.
        """
        if self._console_subscription:
            self._console_subscription.detach()
            self._console_subscription = None

        if self._browser:
            try:
                self._browser.close()
                _LOGGER.info("Browser closed")
            except Exception as e:
                _LOGGER.warning("Error closing browser: %s", e)
            self._browser = None

        if self._playwright:
            try:
                self._playwright.stop()
                _LOGGER.info("Playwright stopped")
            except Exception as e:
                _LOGGER.warning("Error stopping Playwright: %s", e)
            self._playwright = None
        self._page = None

    def goto(self, url: str, wait_until: str | None = None) -> Response | None:
        """Navigate to URL.

        Args:
            url: URL to navigate to
            wait_until: Wait until condition ('load', 'domcontentloaded', 'networkidle');
                defaults to the configured condition

        Returns:
            Main resource response (None for same-document navigations)
        """
        wait_until = wait_until or self._config.wait_until
        _LOGGER.debug("Navigating to: %s (wait_until=%s)", url, wait_until)
        response = self.page.goto(url, wait_until=wait_until)
        _LOGGER.debug("Navigation complete: %s", self.page.url)
        return response

    @property
    def page(self) -> Page:
        """Get Playwright Page object.

        Returns:
            Playwright Page for direct manipulation
        """
        if self._page is None:
            raise RuntimeError("Browser not started. Call start() first.")
        return self._page

    @property
    def url(self) -> str:
        """Get current URL."""
        return self.page.url

    def listen(self, event: str, handler: Callable[..., Any]) -> PageSubscription:
        """Attach a page event listener and return its subscription.

        Args:
            event: Playwright page event ('response', 'requestfailed', 'console', ...)
            handler: Callable receiving the event payload

        Returns:
            Subscription to detach (directly or as a context manager)
        """
        return PageSubscription(self.page, event, handler)

    def show_status(self, text: str) -> None:
        """Show a status line in an overlay inside the page.

        The overlay is marked ``data-qa-ignore`` so the content checks skip it.
        """
        try:
            self.page.evaluate(_SHOW_STATUS_SCRIPT, text)
        except Exception as e:  # noqa: BLE001
            # page may be mid-navigation
            _LOGGER.debug("Status overlay not shown: %s", e)

    def highlight_element(self, selector: str, color: str = "#1e90ff") -> None:
        """Outline an element and scroll it into view."""
        try:
            self.page.evaluate(_HIGHLIGHT_SCRIPT, [selector, color])
        except Exception as e:  # noqa: BLE001
            _LOGGER.debug("Could not highlight %s: %s", selector, e)

    def clear_element_highlight(self, selector: str) -> None:
        """Restore the outline of a highlighted element."""
        try:
            self.page.evaluate(_CLEAR_HIGHLIGHT_SCRIPT, selector)
        except Exception as e:  # noqa: BLE001
            _LOGGER.debug("Could not clear highlight of %s: %s", selector, e)

    def take_element_screenshot(self, selector: str, path: str | Path) -> bool:
        """Screenshot a single element.

        Evidence screenshots never fail a run, so errors are logged only.

        Returns:
            True if the screenshot was written
        """
        try:
            handle = self.page.query_selector(selector)
            if handle is None:
                _LOGGER.warning("Element %s not found for screenshot", selector)
                return False
            Path(path).parent.mkdir(parents=True, exist_ok=True)
            handle.screenshot(path=str(path))
            _LOGGER.info("Screenshot saved: %s", path)
            return True
        except Exception as e:  # noqa: BLE001
            _LOGGER.warning("Failed to take element screenshot: %s", str(e).splitlines()[0])
            return False

    def pause(self, seconds: float) -> None:
        """Sleep while letting Playwright dispatch page events."""
        self.page.wait_for_timeout(seconds * 1000)

    def evaluate(self, expression: str, arg: Any = None):
        """Evaluate JavaScript expression in the page context.

        Args:
            expression: JavaScript expression to evaluate
            arg: Optional argument passed to the expression

        Returns:
            Result of the JavaScript evaluation
        """
        _LOGGER.debug("Evaluating JavaScript: %s", expression[:100])
        return self.page.evaluate(expression, arg)

    def __enter__(self):
        """Context manager entry.

        Usage:
            with PlaywrightSyncAdapter(config) as driver:
                driver.goto("https://example.com")
        """
        self.start()
        return self

    def __exit__(self, exc_type, exc_val, exc_tb):
        """Context manager exit."""
        self.close()
        return False  # Don't suppress exceptions
