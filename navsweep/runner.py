"""Crawl runner: the run modes behind the command line.

Each run owns one browser for its whole duration: login, link discovery
(or the link cache), then the page visits.
"""

from __future__ import annotations

import logging
from contextlib import contextmanager
from dataclasses import dataclass, field
from typing import Callable, Iterable, Iterator

from navsweep.config import CrawlerConfig
from navsweep.lib.checks import ColorCheck, RequestCheck, TextCheck
from navsweep.lib.gui.link_cache import LinkCache
from navsweep.lib.gui.link_discovery import LinkDiscoveryEngine, NavigationLink
from navsweep.lib.gui.page_visitor import AggregatedResults, PageVisitor
from navsweep.lib.gui.playwright_sync_adapter import PlaywrightSyncAdapter
from navsweep.lib.gui.selector_profiles import SelectorProfileResolver
from navsweep.lib.gui.session import SessionManager
from navsweep.templates.page_check import PageCheck

_LOGGER = logging.getLogger(__name__)

CHECK_NAMES = ("requests", "colors", "text")


@dataclass
class RunReport:
    """What a run produced."""

    links: list[NavigationLink] = field(default_factory=list)
    results: AggregatedResults | None = None
    check_reports: dict[str, list[str]] = field(default_factory=dict)

    @property
    def total_errors(self) -> int:
        return self.results.total_errors if self.results else 0


def build_checks(config: CrawlerConfig, names: Iterable[str] = CHECK_NAMES) -> list[PageCheck]:
    """Instantiate the named page checks from the configuration.

    Raises:
        ValueError: On an unknown check name
    """
    screenshot_dir = config.checks.screenshot_dir if config.checks.screenshots else None
    factories: dict[str, Callable[[], PageCheck]] = {
        "requests": RequestCheck,
        "colors": lambda: ColorCheck(config.checks.palette, screenshot_dir),
        "text": lambda: TextCheck(config.checks.search_texts, screenshot_dir),
    }
    checks = []
    for name in names:
        if name not in factories:
            raise ValueError(f"Unknown check {name!r}, expected one of {', '.join(CHECK_NAMES)}")
        checks.append(factories[name]())
    return checks


class QaCrawler:
    """Run the crawler in one of its modes.

    Attributes:
        config: Run configuration
        cache: Link cache at the configured location
    """

    def __init__(
        self,
        config: CrawlerConfig,
        driver_factory: Callable[..., PlaywrightSyncAdapter] = PlaywrightSyncAdapter,
    ):
        self.config = config
        self.cache = LinkCache(config.links_file)
        self._driver_factory = driver_factory

    @contextmanager
    def _authenticated(self) -> Iterator[tuple[PlaywrightSyncAdapter, SessionManager]]:
        """Start the browser, log in and release the browser on exit."""
        with self._driver_factory(self.config.browser) as driver:
            session = SessionManager(driver, self.config.login, self.config.target_url)
            session.establish_session()
            yield driver, session

    def _discover(self, driver: PlaywrightSyncAdapter, session: SessionManager) -> list[NavigationLink]:
        resolver = SelectorProfileResolver.from_config(self.config.navigation)
        app_type, profile = resolver.resolve_for_page(driver.page, self.config.navigation.profile)
        engine = LinkDiscoveryEngine(
            driver.page,
            session,
            self.config.navigation,
            cache=self.cache,
            status=driver.show_status,
        )
        return engine.discover(app_type, profile)

    def _links(
        self,
        driver: PlaywrightSyncAdapter,
        session: SessionManager,
        use_cache: bool,
    ) -> list[NavigationLink]:
        if use_cache:
            cached = self.cache.load()
            if cached:
                return cached
            _LOGGER.warning("Link cache unusable, discovering links instead")
        return self._discover(driver, session)

    def _visit(
        self,
        driver: PlaywrightSyncAdapter,
        session: SessionManager,
        links: list[NavigationLink],
        checks: list[PageCheck],
    ) -> RunReport:
        visitor = PageVisitor(driver, session, self.config.target_url)
        results = visitor.visit_all(links, checks)
        return RunReport(
            links=links,
            results=results,
            check_reports={check.name: check.report() for check in checks},
        )

    def discover_only(self) -> list[NavigationLink]:
        """Discover and persist the navigation links."""
        with self._authenticated() as (driver, session):
            return self._discover(driver, session)

    def full_crawl(self, use_cache: bool = False) -> RunReport:
        """Visit every link with all page checks, after a grace period."""
        with self._authenticated() as (driver, session):
            links = self._links(driver, session, use_cache)
            if links and self.config.grace_period > 0:
                _LOGGER.info(
                    "Visiting %d pages in %ss, press Ctrl+C to abort",
                    len(links),
                    self.config.grace_period,
                )
                driver.show_status(f"Starting visit of {len(links)} pages...")
                driver.pause(self.config.grace_period)
            return self._visit(driver, session, links, build_checks(self.config))

    def navigation_only(self, use_cache: bool = False) -> RunReport:
        """Open every link without content checks."""
        with self._authenticated() as (driver, session):
            links = self._links(driver, session, use_cache)
            return self._visit(driver, session, links, [])

    def single_check(self, name: str, use_cache: bool = True) -> RunReport:
        """Visit every link with one page check.

        Args:
            name: 'requests', 'colors' or 'text'
            use_cache: Load links from the cache, discovering them if it is unusable
        """
        checks = build_checks(self.config, [name])
        with self._authenticated() as (driver, session):
            links = self._links(driver, session, use_cache)
            return self._visit(driver, session, links, checks)
