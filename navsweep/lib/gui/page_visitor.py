"""Page visitor loop.

Replays a discovered link set: opens every link, keeps the session alive
(recovering it once per expiry), runs the page checks and aggregates their
findings. A failing link never stops the loop; only a mandatory login that
cannot be recovered does.
"""

from __future__ import annotations

import logging
from contextlib import ExitStack
from dataclasses import dataclass, field
from typing import TYPE_CHECKING, Iterable, Sequence

from navsweep.exceptions import LoginError, NavigationFailure
from navsweep.lib.utils import first_line
from navsweep.templates.page_check import NAVIGATION_FAILURES, Finding, PageCheck

if TYPE_CHECKING:
    from navsweep.lib.gui.link_discovery import NavigationLink
    from navsweep.lib.gui.playwright_sync_adapter import PlaywrightSyncAdapter
    from navsweep.lib.gui.session import SessionManager

_LOGGER = logging.getLogger(__name__)


@dataclass
class LinkOutcome:
    """Result of visiting one link."""

    link: NavigationLink
    ok: bool = True
    error: str = ""
    findings: dict[str, list[Finding]] = field(default_factory=dict)

    @property
    def error_count(self) -> int:
        return (0 if self.ok else 1) + sum(len(found) for found in self.findings.values())


@dataclass
class AggregatedResults:
    """Error counts per category plus the per-link outcomes."""

    counts: dict[str, int] = field(default_factory=dict)
    outcomes: list[LinkOutcome] = field(default_factory=list)

    def add(self, outcome: LinkOutcome) -> None:
        self.outcomes.append(outcome)
        if not outcome.ok:
            self.counts[NAVIGATION_FAILURES] = self.counts.get(NAVIGATION_FAILURES, 0) + 1
        for category, found in outcome.findings.items():
            self.counts[category] = self.counts.get(category, 0) + len(found)

    @property
    def total_errors(self) -> int:
        return sum(self.counts.values())

    @property
    def visited(self) -> int:
        """Number of links that opened successfully."""
        return sum(1 for outcome in self.outcomes if outcome.ok)

    @property
    def failures(self) -> list[LinkOutcome]:
        return [outcome for outcome in self.outcomes if not outcome.ok]


class PageVisitor:
    """Visit links one after the other and run the page checks on each.

    Attributes:
        driver: Browser adapter
        session: Session manager consulted after every navigation
        target_url: Page to fall back to after a failed link
    """

    def __init__(
        self,
        driver: PlaywrightSyncAdapter,
        session: SessionManager,
        target_url: str,
    ):
        self.driver = driver
        self.session = session
        self.target_url = target_url

    def visit_all(
        self,
        links: Sequence[NavigationLink],
        checks: Iterable[PageCheck] = (),
    ) -> AggregatedResults:
        """Visit every link in order.

        Args:
            links: Links to open
            checks: Page checks run on every page that opened

        Returns:
            Aggregated results; categories of the given checks are always present

        Raises:
            LoginError: If login is mandatory and the session cannot be recovered
        """
        checks = list(checks)
        results = AggregatedResults(
            counts={NAVIGATION_FAILURES: 0, **{check.category: 0 for check in checks}}
        )
        total = len(links)
        _LOGGER.info("Visiting %d links with %d check(s)", total, len(checks))

        for index, link in enumerate(links, start=1):
            _LOGGER.info("[%d/%d] %s -> %s", index, total, link.text, link.href)
            self.driver.show_status(f"Visiting {index}/{total}: {link.text}")
            outcome = self._visit(link, checks)
            if not outcome.ok:
                _LOGGER.warning("  Failed: %s", outcome.error)
                self._return_to_target()
            elif outcome.error_count:
                _LOGGER.warning("  %d finding(s)", outcome.error_count)
            results.add(outcome)

        _LOGGER.info(
            "Visited %d/%d links, %d error(s)", results.visited, total, results.total_errors
        )
        return results

    def _visit(self, link: NavigationLink, checks: list[PageCheck]) -> LinkOutcome:
        with ExitStack() as stack:
            for check in checks:
                for subscription in check.subscribe(self.driver):
                    stack.enter_context(subscription)
            try:
                self._open(link)
            except NavigationFailure as e:
                return LinkOutcome(link, ok=False, error=e.reason)

            findings = {}
            for check in checks:
                try:
                    findings[check.category] = list(check.check(self.driver, link))
                except LoginError:
                    raise
                except Exception as e:  # noqa: BLE001
                    _LOGGER.warning("  Check %s failed on %s: %s", check.name, link.href, first_line(e))
                    findings[check.category] = []
            return LinkOutcome(link, findings=findings)

    def _open(self, link: NavigationLink) -> None:
        """Navigate to ``link`` and make sure the session survived.

        Raises:
            NavigationFailure: If the page cannot be opened with a live session
            LoginError: If login is mandatory and recovery failed
        """
        self._navigate(link)
        if self.session.is_session_alive(self.driver.url):
            return

        _LOGGER.warning("  Session expired while opening %s", link.href)
        if not self.session.recover_session():
            raise NavigationFailure(link.href, "session expired and could not be recovered")
        self._navigate(link)
        if not self.session.is_session_alive(self.driver.url):
            raise NavigationFailure(link.href, "session expired again after recovery")

    def _navigate(self, link: NavigationLink) -> None:
        try:
            response = self.driver.goto(link.href)
        except Exception as e:  # noqa: BLE001
            raise NavigationFailure(link.href, first_line(e)) from e
        if response is not None and response.status >= 400:
            raise NavigationFailure(link.href, f"HTTP {response.status}")

    def _return_to_target(self) -> None:
        try:
            self.driver.goto(self.target_url)
        except Exception as e:  # noqa: BLE001
            _LOGGER.debug("Could not return to %s: %s", self.target_url, first_line(e))
