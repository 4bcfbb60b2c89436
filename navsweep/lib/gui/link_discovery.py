"""Navigation link discovery.

Walks the navigation of an authenticated page and returns the ordered,
deduplicated list of destinations it links to. Two strategies are
supported:

* Nested menu (component model): top-level entries are either leaf links
  or categories that reveal an aside panel when clicked. Categories are
  clicked one at a time, their panel (and any collapsed groups inside it)
  is expanded and harvested, then dismissed.
* Generic: a single shadow-DOM-aware deep query for the configured main
  panel and its items, no clicks.

Every anchor goes through the same acceptance rules (same origin, no bare
fragments, no logout links) and the result is keyed by href, first seen
text winning.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass
from typing import TYPE_CHECKING, Any, Callable
from urllib.parse import urlparse

from navsweep.config import NavigationConfig
from navsweep.exceptions import DiscoveryError, NotAuthenticatedError
from navsweep.lib.gui.selector_profiles import GENERIC_PROFILE, AppType, SelectorProfile
from navsweep.lib.utils import await_condition, first_line

if TYPE_CHECKING:
    from playwright.sync_api import ElementHandle, Page

    from navsweep.lib.gui.link_cache import LinkCache
    from navsweep.lib.gui.session import SessionManager

_LOGGER = logging.getLogger(__name__)

# Clicking one of these would end the session in the middle of the crawl.
LOGOUT_LABELS = (
    "logout",
    "log out",
    "log off",
    "logoff",
    "sign out",
    "signout",
    "sair",
    "desconectar",
    "encerrar sess",
)

DOWNLOAD_EXTENSIONS = (".csv", ".json", ".xml", ".pdf", ".zip")

# Shared by every script below: label of a node and absolute href of an
# anchor (SVG anchors expose href as an SVGAnimatedString).
_JS_HELPERS = """
    const labelOf = (node) => {
        const span = node.querySelector ? node.querySelector('span') : null;
        const raw = span ? span.innerText : (node.innerText || node.textContent || '');
        return (raw || '').trim();
    };
    const anchorOf = (a) => {
        let raw = a.getAttribute('href') || a.getAttribute('xlink:href') || '';
        let href = '';
        if (typeof a.href === 'string') {
            href = a.href;
        } else if (raw) {
            try { href = new URL(raw, document.baseURI).href; } catch (e) { href = ''; }
        }
        return {text: labelOf(a), href: href, rawHref: raw};
    };
    const isVisible = (el) => !!(el.offsetWidth || el.offsetHeight || el.getClientRects().length);
"""

ITEM_INFO_SCRIPT = """(el) => {%s
    const anchors = el.matches('a[href]') ? [el] : Array.from(el.querySelectorAll('a[href]'));
    return {text: labelOf(el), anchors: anchors.map(anchorOf)};
}""" % _JS_HELPERS

CLICK_TARGET_SCRIPT = """(el, [selector, allowSelf]) => {
    let target = null;
    try { target = selector ? el.querySelector(selector) : null; } catch (e) { target = null; }
    if (!target && allowSelf) target = el.querySelector(':scope > a') || el;
    if (!target || typeof target.click !== 'function') return false;
    target.click();
    return true;
}"""

PANEL_OPEN_SCRIPT = """(wrapperSelector) => {%s
    return Array.from(document.querySelectorAll(wrapperSelector)).some(isVisible);
}""" % _JS_HELPERS

PANEL_ANCHORS_SCRIPT = """([wrapperSelector, linkSelector]) => {%s
    const out = [];
    document.querySelectorAll(wrapperSelector).forEach((wrapper) => {
        wrapper.querySelectorAll(linkSelector).forEach((a) => out.push(anchorOf(a)));
    });
    return out;
}""" % _JS_HELPERS

DISMISS_PANEL_SCRIPT = """(wrapperSelector) => {%s
    const fire = (target) => ['mousedown', 'mouseup', 'click'].forEach((type) =>
        target.dispatchEvent(new MouseEvent(type, {bubbles: true, cancelable: true, view: window})));
    const overlay = document.querySelector(
        '.fuse-vertical-navigation-aside-overlay, .cdk-overlay-backdrop');
    fire(overlay || document.body);
    return Array.from(document.querySelectorAll(wrapperSelector)).some(isVisible);
}""" % _JS_HELPERS

DEEP_QUERY_SCRIPT = """({panel, items}) => {%s
    const deepQueryAll = (root, selector) => {
        const found = [];
        const visit = (node) => {
            try {
                node.querySelectorAll(selector).forEach((el) => found.push(el));
            } catch (e) {
                return;
            }
            node.querySelectorAll('*').forEach((el) => { if (el.shadowRoot) visit(el.shadowRoot); });
        };
        visit(root);
        return found;
    };
    const scopesOf = (el) => (el.shadowRoot ? [el, el.shadowRoot] : [el]);

    const panels = deepQueryAll(document, panel);
    if (!panels.length) return {panelFound: false, panelCount: 0, itemCount: 0, anchors: []};

    const seenItems = new Set();
    const seenAnchors = new Set();
    const anchors = [];
    panels.forEach((p) => scopesOf(p).forEach((scope) => deepQueryAll(scope, items).forEach((item) => {
        if (seenItems.has(item)) return;
        seenItems.add(item);
        const links = item.tagName && item.tagName.toLowerCase() === 'a'
            ? [item]
            : scopesOf(item).flatMap((s) => deepQueryAll(s, 'a[href]'));
        links.forEach((a) => {
            if (seenAnchors.has(a)) return;
            seenAnchors.add(a);
            anchors.push(anchorOf(a));
        });
    })));
    return {panelFound: true, panelCount: panels.length, itemCount: seenItems.size, anchors: anchors};
}""" % _JS_HELPERS


@dataclass(frozen=True)
class NavigationLink:
    """A navigation destination.

    Attributes:
        text: Trimmed display label
        href: Absolute URL; the uniqueness key
    """

    text: str
    href: str

    def to_dict(self) -> dict[str, str]:
        return {"text": self.text, "href": self.href}


def page_origin(url: str) -> str:
    """Return scheme://host[:port] of a URL, lower-cased."""
    parsed = urlparse(url)
    return f"{parsed.scheme}://{parsed.netloc}".lower()


def is_logout_label(text: str) -> bool:
    """Check a label (or href) against the logout denylist, case-insensitively."""
    lowered = (text or "").lower()
    return any(label in lowered for label in LOGOUT_LABELS)


def is_navigable_href(raw_href: str, href: str, origin: str) -> bool:
    """Decide whether an anchor points at a page worth visiting.

    Args:
        raw_href: The href attribute as written in the markup
        href: The absolute href resolved by the browser
        origin: Origin of the page under test

    Returns:
        True for same-origin, non-fragment, non-script destinations
    """
    raw = (raw_href or "").strip()
    if not raw or not href:
        return False
    if raw.lower().startswith(("javascript:", "mailto:", "tel:")):
        return False
    # "#" and "#section" are in-page anchors, "#!/route" and "#/route" are SPA routes
    if raw.startswith("#") and "/" not in raw:
        return False
    if href.endswith("#"):
        return False
    if page_origin(href) != origin:
        return False
    path = urlparse(href).path.lower()
    return not path.endswith(DOWNLOAD_EXTENSIONS)


class LinkDiscoveryEngine:
    """Discover the navigation links of an authenticated page.

    Attributes:
        page: Playwright page the discovery runs against
        session: Session manager, used for the authentication precondition
        navigation: Timing and expansion limits
        cache: Optional cache the result is written to
    """

    def __init__(
        self,
        page: Page,
        session: SessionManager,
        navigation: NavigationConfig | None = None,
        cache: LinkCache | None = None,
        status: Callable[[str], None] | None = None,
    ):
        self.page = page
        self.session = session
        self.navigation = navigation or NavigationConfig()
        self.cache = cache
        self._status = status or (lambda text: None)
        self._origin = ""

    def discover(self, app_type: AppType, profile: SelectorProfile) -> list[NavigationLink]:
        """Build the discovered link set.

        Args:
            app_type: Selects the strategy (nested menu or generic)
            profile: Selectors for the navigation markup

        Returns:
            Links in first-discovery order, unique by href

        Raises:
            NotAuthenticatedError: If the page shows a login or expired session
        """
        current_url = self.page.url
        if not self.session.is_session_alive(current_url):
            raise NotAuthenticatedError(
                f"Refusing to discover links on an unauthenticated page: {current_url}"
            )

        self._origin = page_origin(current_url)
        self._status("Mapping: starting link discovery...")
        found: dict[str, NavigationLink] = {}

        if app_type.nested_menu:
            _LOGGER.info("Discovering links with the nested menu strategy")
            if not self._discover_nested_menu(profile, found):
                _LOGGER.warning(
                    "Main panel %r not found, falling back to the generic strategy",
                    profile.main_panel,
                )
                self._discover_generic(GENERIC_PROFILE, found)
        else:
            _LOGGER.info("Discovering links with the generic strategy (%s)", app_type.value)
            self._discover_generic(profile, found)

        links = list(found.values())
        _LOGGER.info("Discovery finished: %d unique links", len(links))
        self._status(f"Mapping complete: {len(links)} links")

        if self.cache is not None:
            try:
                self.cache.save(links)
            except OSError as e:
                _LOGGER.warning("Could not save discovered links: %s", e)
        return list(links)

    # ---- acceptance ------------------------------------------------------

    def _accept(
        self,
        anchor: dict[str, Any],
        found: dict[str, NavigationLink],
        fallback_text: str = "",
    ) -> bool:
        """Validate one anchor and add it to ``found``.

        Returns:
            True if the anchor is a valid navigation link (new or already known)
        """
        href = (anchor.get("href") or "").strip()
        raw_href = anchor.get("rawHref") or ""
        text = (anchor.get("text") or "").strip() or fallback_text.strip()

        if not is_navigable_href(raw_href, href, self._origin):
            _LOGGER.debug("Skipping anchor %r (%s): not navigable", text, raw_href)
            return False
        if not text:
            _LOGGER.debug("Skipping anchor %s: no text", href)
            return False
        if is_logout_label(text) or is_logout_label(urlparse(href).path):
            _LOGGER.info("Skipping logout link %r (%s)", text, href)
            return False

        if href not in found:
            found[href] = NavigationLink(text=text, href=href)
        return True

    def _accept_all(self, anchors: list[dict[str, Any]], found: dict[str, NavigationLink]) -> int:
        before = len(found)
        for anchor in anchors or []:
            self._accept(anchor, found)
        return len(found) - before

    # ---- strategy A: nested menu ----------------------------------------

    def _discover_nested_menu(self, profile: SelectorProfile, found: dict[str, NavigationLink]) -> bool:
        """Walk a click-to-expand menu.

        Returns:
            False if the main panel does not exist
        """
        panel = self.page.query_selector(profile.main_panel)
        if panel is None:
            return False

        items = panel.query_selector_all(profile.main_items)
        _LOGGER.info("Found %d items in the main menu", len(items))

        # Phase 1: every direct link, before any click changes the DOM
        categories: list[tuple[int, str]] = []
        for index, item in enumerate(items):
            try:
                info = item.evaluate(ITEM_INFO_SCRIPT) or {}
            except Exception as e:  # noqa: BLE001
                _LOGGER.debug("Skipping main menu item %d: %s", index, first_line(e))
                continue
            label = (info.get("text") or "").strip()
            direct = [a for a in info.get("anchors", []) if self._accept(a, found, fallback_text=label)]
            if direct:
                _LOGGER.info("  [+] Direct link: %s", label)
            else:
                categories.append((index, label))

        # Phase 2: categories, one panel at a time
        for index, label in categories:
            if is_logout_label(label):
                _LOGGER.info("  Skipping category %r", label)
                continue
            _LOGGER.info("  [*] Expanding category: %s", label)
            self._status(f"Mapping: {label}...")
            try:
                added = self._expand_category(self._item_at(profile, index, items), label, profile, found)
                _LOGGER.info("    %d new links in %r", added, label)
            except Exception as e:  # noqa: BLE001
                _LOGGER.warning("    Could not expand category %r: %s", label, first_line(e))
            finally:
                self._dismiss_panel(profile)
        return True

    def _item_at(self, profile: SelectorProfile, index: int, original: list[ElementHandle]) -> ElementHandle:
        """Re-query the main menu so handles detached by a re-render are replaced."""
        try:
            panel = self.page.query_selector(profile.main_panel)
            fresh = panel.query_selector_all(profile.main_items) if panel else []
        except Exception as e:  # noqa: BLE001
            _LOGGER.debug("Re-query of main menu failed: %s", first_line(e))
            fresh = []
        if len(fresh) == len(original):
            return fresh[index]
        return original[index]

    def _expand_category(
        self,
        item: ElementHandle,
        label: str,
        profile: SelectorProfile,
        found: dict[str, NavigationLink],
    ) -> int:
        """Open a category panel, expand its nested groups and harvest it."""
        before = len(found)
        clicked = item.evaluate(CLICK_TARGET_SCRIPT, [profile.click_target, False])
        if not clicked:
            raise DiscoveryError(f"click target {profile.click_target!r} not found in {label!r}")

        self._pause(self.navigation.settle_delay)
        opened = await_condition(
            lambda: self.page.evaluate(PANEL_OPEN_SCRIPT, profile.aside_wrapper),
            self.navigation.panel_timeout,
            interval=0.25,
            sleep=self._pause,
        )
        if not opened:
            _LOGGER.debug("    Panel %r did not become visible", profile.aside_wrapper)

        self._harvest_panel(profile, found)
        iterations = self._expand_collapsed_groups(profile, found)
        _LOGGER.debug("    Expansion of %r finished after %d iteration(s)", label, iterations)
        return len(found) - before

    def _harvest_panel(self, profile: SelectorProfile, found: dict[str, NavigationLink]) -> int:
        anchors = self.page.evaluate(
            PANEL_ANCHORS_SCRIPT, [profile.aside_wrapper, profile.final_link]
        )
        return self._accept_all(anchors, found)

    def _collapsed_groups(self, profile: SelectorProfile) -> list[ElementHandle]:
        groups = []
        for wrapper in self.page.query_selector_all(profile.aside_wrapper):
            groups.extend(wrapper.query_selector_all(profile.collapsable))
        return groups

    def _expand_collapsed_groups(self, profile: SelectorProfile, found: dict[str, NavigationLink]) -> int:
        """Click collapsed groups until none remain or the iteration cap is hit.

        A group that closes itself again (animation races) keeps showing
        up as collapsed; the cap bounds that case.

        Returns:
            Number of iterations performed
        """
        iterations = 0
        closed = self._collapsed_groups(profile)
        while closed and iterations < self.navigation.max_expand_iterations:
            _LOGGER.debug("    Expanding %d collapsed group(s)", len(closed))
            for group in closed:
                try:
                    group.evaluate(CLICK_TARGET_SCRIPT, [profile.click_target, True])
                except Exception as e:  # noqa: BLE001
                    # element detached while the panel re-rendered
                    _LOGGER.debug("    Collapsed group vanished: %s", first_line(e))
                    continue
                self._pause(self.navigation.expand_delay)
            iterations += 1
            self._harvest_panel(profile, found)
            closed = self._collapsed_groups(profile)

        if closed:
            _LOGGER.warning(
                "    Stopped expanding after %d iterations, %d group(s) still collapsed",
                iterations,
                len(closed),
            )
        return iterations

    def _dismiss_panel(self, profile: SelectorProfile) -> None:
        """Close the aside panel so the next category starts from a clean menu."""
        try:
            self.page.keyboard.press("Escape")
            still_open = self.page.evaluate(DISMISS_PANEL_SCRIPT, profile.aside_wrapper)
            self._pause(self.navigation.expand_delay)
            if still_open:
                _LOGGER.debug("    Panel still visible after dismiss")
        except Exception as e:  # noqa: BLE001
            _LOGGER.debug("    Could not dismiss panel: %s", first_line(e))

    # ---- strategy B: generic --------------------------------------------

    def _discover_generic(self, profile: SelectorProfile, found: dict[str, NavigationLink]) -> None:
        result = self.page.evaluate(
            DEEP_QUERY_SCRIPT, {"panel": profile.main_panel, "items": profile.main_items}
        ) or {}
        if not result.get("panelFound"):
            _LOGGER.warning("No navigation panel matched %r", profile.main_panel)
            return
        added = self._accept_all(result.get("anchors", []), found)
        _LOGGER.info(
            "Generic discovery: %d panel(s), %d item(s), %d new links",
            result.get("panelCount", 0),
            result.get("itemCount", 0),
            added,
        )

    def _pause(self, seconds: float) -> None:
        self.page.wait_for_timeout(seconds * 1000)
