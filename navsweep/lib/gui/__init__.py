"""Browser side of navsweep: driver, session, discovery and page visits."""

from navsweep.lib.gui.link_cache import LinkCache
from navsweep.lib.gui.link_discovery import LinkDiscoveryEngine, NavigationLink
from navsweep.lib.gui.page_visitor import AggregatedResults, LinkOutcome, PageVisitor
from navsweep.lib.gui.playwright_sync_adapter import PageSubscription, PlaywrightSyncAdapter
from navsweep.lib.gui.selector_profiles import AppType, SelectorProfile, SelectorProfileResolver
from navsweep.lib.gui.session import SessionManager, SessionState

__all__ = [
    "AggregatedResults",
    "AppType",
    "LinkCache",
    "LinkDiscoveryEngine",
    "LinkOutcome",
    "NavigationLink",
    "PageSubscription",
    "PageVisitor",
    "PlaywrightSyncAdapter",
    "SelectorProfile",
    "SelectorProfileResolver",
    "SessionManager",
    "SessionState",
]
