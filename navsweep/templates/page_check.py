"""Page check template.

A page check validates one visited page. The page visitor subscribes every
check before it navigates (so network listeners see the page load), then
asks each check for its findings once the page is open.
"""

from __future__ import annotations

from abc import ABC, abstractmethod
from dataclasses import dataclass, field
from typing import TYPE_CHECKING, Any

if TYPE_CHECKING:
    from navsweep.lib.gui.link_discovery import NavigationLink
    from navsweep.lib.gui.playwright_sync_adapter import PageSubscription, PlaywrightSyncAdapter

REQUEST_ERRORS = "request_errors"
COLOR_VIOLATIONS = "color_violations"
TEXT_VIOLATIONS = "text_violations"
NAVIGATION_FAILURES = "navigation_failures"


@dataclass(frozen=True)
class Finding:
    """A single problem found on a page."""

    category: str
    kind: str
    message: str
    url: str = ""
    detail: dict[str, Any] = field(default_factory=dict, compare=False)


class PageCheck(ABC):
    """Page check template.

    Implementations are created once per run and reused for every page.
    """

    #: Name used on the command line
    name: str = ""
    #: Result category the findings are counted under
    category: str = ""

    def subscribe(self, driver: PlaywrightSyncAdapter) -> list[PageSubscription]:
        """Attach the page listeners needed while a page loads.

        The subscriptions are detached by the caller when the page visit
        ends, whatever its outcome.

        :param driver: Browser adapter
        :type driver: PlaywrightSyncAdapter
        :return: Subscriptions to detach after the visit
        :rtype: list[PageSubscription]
        """
        return []

    @abstractmethod
    def check(self, driver: PlaywrightSyncAdapter, link: NavigationLink) -> list[Finding]:
        """Validate the page currently open.

        :param driver: Browser adapter, positioned on ``link``
        :type driver: PlaywrightSyncAdapter
        :param link: Link that was opened
        :type link: NavigationLink
        :return: Findings for this page, empty when the page is clean
        :rtype: list[Finding]
        """
        raise NotImplementedError

    def report(self) -> list[str]:
        """Human readable summary lines for the end of the run.

        :return: Summary lines, empty when there is nothing to report
        :rtype: list[str]
        """
        return []
