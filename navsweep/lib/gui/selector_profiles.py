"""Selector profiles describing where navigation lives in a page.

A profile is a bundle of six CSS selectors for one navigation "dialect".
The resolver picks a named profile (declared, or detected from DOM
fingerprints) and then applies per-field overrides on top of it, so a
deployment can patch one broken selector without redefining a profile.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass, fields, replace
from enum import Enum
from pathlib import Path
from typing import TYPE_CHECKING, Any, Mapping

import yaml

if TYPE_CHECKING:
    from playwright.sync_api import Page

_LOGGER = logging.getLogger(__name__)

_VALID_LINK = 'a[href]:not([href="#"]):not([href=""])'


class AppType(Enum):
    """Navigation markup families navsweep knows how to walk."""

    ANGULAR_FUSE = "angular_fuse"
    BOOTSTRAP = "bootstrap"
    GENERIC_NAVBAR = "generic_navbar"
    SIDEBAR = "sidebar"
    GENERIC = "generic"

    @property
    def nested_menu(self) -> bool:
        """True for the click-to-expand component model (nested menu walk)."""
        return self is AppType.ANGULAR_FUSE

    @classmethod
    def from_name(cls, name: str | None) -> AppType | None:
        """Look up an app type by its profile name; None if unknown."""
        if not name:
            return None
        try:
            return cls(name.strip().lower())
        except ValueError:
            return None


@dataclass(frozen=True)
class SelectorProfile:
    """Six structural selectors used by the link discovery engine.

    Attributes:
        main_panel: Root navigation container
        main_items: Top-level entries, queried inside the main panel
        aside_wrapper: Panel revealed when a category entry is clicked
        final_link: Anchors harvested inside the aside wrapper
        collapsable: Collapsed nested groups inside the aside wrapper
        click_target: Element inside an entry that receives the click
    """

    main_panel: str
    main_items: str
    aside_wrapper: str
    final_link: str
    collapsable: str
    click_target: str

    @classmethod
    def field_names(cls) -> tuple[str, ...]:
        return tuple(f.name for f in fields(cls))

    @classmethod
    def from_mapping(cls, data: Mapping[str, Any], base: SelectorProfile) -> SelectorProfile:
        """Build a profile from a mapping; missing or empty keys come from ``base``."""
        values = {
            name: str(data[name]).strip()
            for name in cls.field_names()
            if data.get(name) and str(data[name]).strip()
        }
        return replace(base, **values)


GENERIC_PROFILE = SelectorProfile(
    main_panel="#navigation, #horizontal-menu, nav, .navbar, .menu, .header, .sidebar",
    main_items=_VALID_LINK,
    aside_wrapper=".dropdown-menu, .submenu",
    final_link=_VALID_LINK,
    collapsable=".dropdown, .has-submenu",
    click_target="a",
)

BUILTIN_PROFILES: dict[str, SelectorProfile] = {
    AppType.GENERIC.value: GENERIC_PROFILE,
    AppType.ANGULAR_FUSE.value: SelectorProfile(
        main_panel=(
            "fuse-vertical-navigation > div.fuse-vertical-navigation-wrapper"
            " > div.fuse-vertical-navigation-content"
        ),
        main_items=(
            ":scope > fuse-vertical-navigation-basic-item,"
            " :scope > fuse-vertical-navigation-aside-item"
        ),
        aside_wrapper="div.fuse-vertical-navigation-aside-wrapper",
        final_link="fuse-vertical-navigation-basic-item a",
        collapsable=(
            "fuse-vertical-navigation-collapsable-item.fuse-vertical-navigation-item-collapsed"
        ),
        click_target="div > div",
    ),
    AppType.GENERIC_NAVBAR.value: SelectorProfile(
        main_panel="#navigation",
        main_items=f"#navigation {_VALID_LINK}",
        aside_wrapper=".dropdown-menu, .submenu, .sub-nav",
        final_link=_VALID_LINK,
        collapsable=".dropdown, .has-submenu, .has-children",
        click_target="a, .dropdown-toggle, .menu-toggle",
    ),
    AppType.BOOTSTRAP.value: SelectorProfile(
        main_panel=".navbar-nav, #navigation, nav",
        main_items=_VALID_LINK,
        aside_wrapper=".dropdown-menu",
        final_link=_VALID_LINK,
        collapsable=".dropdown",
        click_target="a",
    ),
    AppType.SIDEBAR.value: SelectorProfile(
        main_panel="#navigation, .sidebar, .side-nav",
        main_items=_VALID_LINK,
        aside_wrapper=".sub-menu, .submenu",
        final_link=_VALID_LINK,
        collapsable=".has-submenu, .expandable",
        click_target="a, .toggle",
    ),
}

# Fingerprints are checked in this order; the first hit wins.
DETECTION_ORDER = (
    AppType.ANGULAR_FUSE,
    AppType.BOOTSTRAP,
    AppType.GENERIC_NAVBAR,
    AppType.SIDEBAR,
)

FINGERPRINT_SCRIPT = """() => {
    const has = (sel) => { try { return !!document.querySelector(sel); } catch (e) { return false; } };
    return {
        angular_fuse: has('fuse-vertical-navigation'),
        angular: has('[ng-version]') || typeof window.ng !== 'undefined',
        bootstrap: has('.navbar-nav') || typeof window.bootstrap !== 'undefined'
            || !!(window.jQuery && window.jQuery.fn && window.jQuery.fn.tooltip),
        generic_navbar: has('#navigation'),
        sidebar: has('.sidebar, .side-nav'),
    };
}"""


def load_profiles_file(path: str | Path) -> dict[str, SelectorProfile]:
    """Load extra named profiles from a YAML file.

    Example file::

        my_portal:
          main_panel: "app-menu"
          final_link: "app-menu a.item"

    Fields missing from an entry fall back to the generic profile.

    Returns:
        Mapping of lower-case profile name to profile
    """
    with Path(path).open(encoding="utf-8") as f:
        data = yaml.safe_load(f) or {}
    if not isinstance(data, dict):
        raise ValueError(f"Profiles file must contain a mapping: {path}")

    profiles = {}
    for name, entry in data.items():
        if not isinstance(entry, dict):
            _LOGGER.warning("Ignoring profile %r: not a mapping", name)
            continue
        profiles[str(name).lower()] = SelectorProfile.from_mapping(entry, GENERIC_PROFILE)
    _LOGGER.info("Loaded %d selector profiles from %s", len(profiles), path)
    return profiles


def detect_app_type(page: Page) -> AppType:
    """Inspect the live DOM and return the first matching app type.

    Args:
        page: Authenticated Playwright page

    Returns:
        Detected app type, GENERIC when nothing matches
    """
    try:
        markers = page.evaluate(FINGERPRINT_SCRIPT) or {}
    except Exception as e:  # noqa: BLE001
        _LOGGER.warning("App type detection failed, using generic: %s", e)
        return AppType.GENERIC

    _LOGGER.debug("Navigation fingerprints: %s", markers)
    for app_type in DETECTION_ORDER:
        if markers.get(app_type.value):
            _LOGGER.info("Detected application type: %s", app_type.value)
            return app_type
    _LOGGER.info("No navigation fingerprint matched, using generic")
    return AppType.GENERIC


class SelectorProfileResolver:
    """Resolve the selector profile for a run.

    Attributes:
        overrides: Explicit per-field selectors, applied last
        profiles: Named profiles (built-ins plus any loaded from YAML)
    """

    def __init__(
        self,
        overrides: Mapping[str, str] | None = None,
        extra_profiles: Mapping[str, SelectorProfile] | None = None,
    ):
        unknown = set(overrides or {}) - set(SelectorProfile.field_names())
        if unknown:
            raise ValueError(f"Unknown selector override(s): {sorted(unknown)}")
        self.overrides = {k: v for k, v in (overrides or {}).items() if v}
        self.profiles = dict(BUILTIN_PROFILES)
        self.profiles.update(extra_profiles or {})

    @classmethod
    def from_config(cls, navigation) -> SelectorProfileResolver:
        """Build a resolver from a ``NavigationConfig``."""
        extra = load_profiles_file(navigation.profiles_file) if navigation.profiles_file else None
        return cls(overrides=navigation.overrides(), extra_profiles=extra)

    def resolve(self, app_type: AppType | str | None = None) -> SelectorProfile:
        """Return the complete profile for ``app_type``.

        Args:
            app_type: Detected app type or a profile name; unknown or
                unset names resolve to the generic profile

        Returns:
            Profile with explicit overrides applied field by field
        """
        name = app_type.value if isinstance(app_type, AppType) else (app_type or "")
        name = name.strip().lower()
        base = self.profiles.get(name)
        if base is None:
            if name and name != "auto":
                _LOGGER.warning("Unknown navigation profile %r, using generic", name)
            base = self.profiles[AppType.GENERIC.value]

        if not self.overrides:
            return base
        _LOGGER.info("Applying selector overrides: %s", ", ".join(sorted(self.overrides)))
        return replace(base, **self.overrides)

    def resolve_for_page(self, page: Page, declared: str | None = None) -> tuple[AppType, SelectorProfile]:
        """Pick the app type (declared or detected) and resolve its profile.

        Custom profile names loaded from YAML are walked with the generic
        strategy.

        Args:
            page: Authenticated Playwright page, used for detection
            declared: Configured profile name; None or 'auto' means detect

        Returns:
            (app type, resolved profile)
        """
        if declared and declared.lower() != "auto":
            app_type = AppType.from_name(declared) or AppType.GENERIC
            return app_type, self.resolve(declared)
        app_type = detect_app_type(page)
        return app_type, self.resolve(app_type)
