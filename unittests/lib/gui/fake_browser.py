"""In-memory stand-ins for a Playwright page showing a nested navigation menu.

The fakes answer the page scripts of the link discovery engine by
identity, so tests describe a menu as data instead of HTML.
"""

from unittest.mock import Mock
from urllib.parse import urljoin

from navsweep.lib.gui.link_discovery import (
    CLICK_TARGET_SCRIPT,
    DEEP_QUERY_SCRIPT,
    DISMISS_PANEL_SCRIPT,
    ITEM_INFO_SCRIPT,
    PANEL_ANCHORS_SCRIPT,
    PANEL_OPEN_SCRIPT,
)
from navsweep.lib.gui.selector_profiles import BUILTIN_PROFILES

FUSE = BUILTIN_PROFILES["angular_fuse"]
ORIGIN = "http://app.local"


def anchor(text, raw_href, href=None):
    """Anchor data as returned by the page scripts."""
    if href is None:
        href = urljoin(ORIGIN + "/", raw_href)
    return {"text": text, "href": href, "rawHref": raw_href}


class FakeGroup:
    """Collapsed group inside an aside panel."""

    def __init__(self, anchors, sticky=False):
        self.anchors = list(anchors)
        self.sticky = sticky
        self.collapsed = True
        self.clicks = 0

    def evaluate(self, script, arg=None):
        assert script == CLICK_TARGET_SCRIPT
        self.clicks += 1
        if not self.sticky:
            self.collapsed = False
        return True


class FakeAside:
    """Content of the aside panel a category opens."""

    def __init__(self, anchors, groups=()):
        self.anchors = list(anchors)
        self.groups = list(groups)

    def visible_anchors(self):
        found = list(self.anchors)
        for group in self.groups:
            if group.clicks:
                found.extend(group.anchors)
        return found


class FakeWrapper:
    def __init__(self, aside):
        self.aside = aside

    def query_selector_all(self, selector):
        assert selector == FUSE.collapsable
        return [group for group in self.aside.groups if group.collapsed]


class FakeItem:
    """Top-level menu entry."""

    def __init__(self, page, text, anchors=(), aside=None, error=None):
        self.page = page
        self.text = text
        self.anchors = list(anchors)
        self.aside = aside
        self.error = error
        self.clicks = 0

    def evaluate(self, script, arg=None):
        if script == ITEM_INFO_SCRIPT:
            return {"text": self.text, "anchors": list(self.anchors)}
        if script == CLICK_TARGET_SCRIPT:
            self.clicks += 1
            if self.error is not None:
                raise self.error
            if self.aside is None:
                return False
            self.page.open_aside = self.aside
            return True
        raise AssertionError(f"unexpected script on item {self.text}")


class FakeMainPanel:
    def __init__(self, items):
        self.items = items

    def query_selector_all(self, selector):
        assert selector == FUSE.main_items
        return list(self.items)


class FakePage:
    """Page with an optional Fuse style main menu."""

    def __init__(self, url=f"{ORIGIN}/#/home", deep_result=None):
        self.url = url
        self.items = []
        self.has_main_panel = True
        self.open_aside = None
        self.deep_result = deep_result or {"panelFound": False, "anchors": []}
        self.deep_queries = []
        self.dismissals = 0
        self.timeouts = []
        self.keyboard = Mock()

    def add_item(self, text, anchors=(), aside=None, error=None):
        item = FakeItem(self, text, anchors, aside, error)
        self.items.append(item)
        return item

    def query_selector(self, selector):
        if selector == FUSE.main_panel and self.has_main_panel:
            return FakeMainPanel(self.items)
        return None

    def query_selector_all(self, selector):
        if selector == FUSE.aside_wrapper and self.open_aside is not None:
            return [FakeWrapper(self.open_aside)]
        return []

    def evaluate(self, script, arg=None):
        if script == PANEL_OPEN_SCRIPT:
            return self.open_aside is not None
        if script == PANEL_ANCHORS_SCRIPT:
            return self.open_aside.visible_anchors() if self.open_aside else []
        if script == DISMISS_PANEL_SCRIPT:
            self.dismissals += 1
            self.open_aside = None
            return False
        if script == DEEP_QUERY_SCRIPT:
            self.deep_queries.append(arg)
            return self.deep_result
        raise AssertionError("unexpected page script")

    def wait_for_timeout(self, timeout):
        self.timeouts.append(timeout)
