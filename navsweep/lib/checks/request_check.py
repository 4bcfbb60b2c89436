"""Network error check.

Collects, while a page loads, every response with an HTTP error status,
every request that failed at the network level and every console error
(CORS rejections are reported as their own kind). Errors are also grouped
by URL and kind over the whole run for the final report.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass, field
from typing import TYPE_CHECKING

from navsweep.templates.page_check import REQUEST_ERRORS, Finding, PageCheck

if TYPE_CHECKING:
    from playwright.sync_api import ConsoleMessage, Request, Response

    from navsweep.lib.gui.link_discovery import NavigationLink
    from navsweep.lib.gui.playwright_sync_adapter import PageSubscription, PlaywrightSyncAdapter

_LOGGER = logging.getLogger(__name__)

HTTP_ERROR = "HTTP Error"
NETWORK_FAILURE = "Network Failure"
CONSOLE_ERROR = "Console Error"
CORS_ERROR = "CORS Error"

_CORS_MARKERS = ("cors", "access-control-allow-origin", "cross-origin")


@dataclass
class GroupedError:
    """One URL and error kind, with every page it was seen on."""

    url: str
    kind: str
    detail: str
    count: int = 0
    pages: list[str] = field(default_factory=list)


class RequestCheck(PageCheck):
    """Report failed network requests and console errors per page."""

    name = "requests"
    category = REQUEST_ERRORS

    def __init__(self, include_console: bool = True):
        self.include_console = include_console
        self._pending: list[Finding] = []
        self._groups: dict[str, GroupedError] = {}

    def subscribe(self, driver: PlaywrightSyncAdapter) -> list[PageSubscription]:
        self._pending = []
        subscriptions = [
            driver.listen("response", self._on_response),
            driver.listen("requestfailed", self._on_request_failed),
        ]
        if self.include_console:
            subscriptions.append(driver.listen("console", self._on_console))
        return subscriptions

    def _record(self, kind: str, url: str, detail: str) -> None:
        _LOGGER.debug("  %s: %s (%s)", kind, url, detail)
        self._pending.append(
            Finding(
                category=self.category,
                kind=kind,
                message=f"{kind}: {url} ({detail})",
                url=url,
                detail={"detail": detail},
            )
        )

    def _on_response(self, response: Response) -> None:
        if response.status >= 400:
            self._record(HTTP_ERROR, response.url, f"{response.status} {response.status_text}".strip())

    def _on_request_failed(self, request: Request) -> None:
        self._record(NETWORK_FAILURE, request.url, request.failure or "unknown error")

    def _on_console(self, message: ConsoleMessage) -> None:
        if message.type != "error":
            return
        text = message.text
        kind = CORS_ERROR if any(m in text.lower() for m in _CORS_MARKERS) else CONSOLE_ERROR
        source = (message.location or {}).get("url", "")
        self._record(kind, source, text)

    def check(self, driver: PlaywrightSyncAdapter, link: NavigationLink) -> list[Finding]:
        findings, self._pending = self._pending, []
        for finding in findings:
            key = f"{finding.url}|{finding.kind}"
            group = self._groups.get(key)
            if group is None:
                group = self._groups[key] = GroupedError(
                    url=finding.url, kind=finding.kind, detail=finding.detail.get("detail", "")
                )
            group.count += 1
            if link.href not in group.pages:
                group.pages.append(link.href)
        return findings

    @property
    def groups(self) -> list[GroupedError]:
        return list(self._groups.values())

    def report(self) -> list[str]:
        return [
            f"[{g.kind}] {g.url or '(no url)'}: {g.detail} "
            f"x{g.count} on {len(g.pages)} page(s)"
            for g in self._groups.values()
        ]
