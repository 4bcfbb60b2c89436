"""Run configuration.

The configuration is read once from the environment (optionally seeded
from a ``.env`` file) at process start and then passed, immutable, into
every component constructor.
"""

from __future__ import annotations

import os
import re
from dataclasses import dataclass, field
from pathlib import Path
from typing import Mapping

from dotenv import load_dotenv

DEFAULT_PALETTE = ("#ffffff", "#000000", "#f8f9fa", "#1e293b", "#1f3f6e")
DEFAULT_SHELL_SELECTOR = (
    "fuse-vertical-navigation, nav, #navigation, .navbar, .sidebar, [role='navigation']"
)
# seconds, also used when NAVIGATION_TIMEOUT is not positive
DEFAULT_NAVIGATION_TIMEOUT = 60.0
DEFAULT_LOG_FILE = "navsweep_run.log"
_TRUE_VALUES = {"1", "true", "yes", "on", "new"}


def to_bool(value: str | None, default: bool = False) -> bool:
    """Parse a boolean environment value."""
    if value is None or not value.strip():
        return default
    return value.strip().lower() in _TRUE_VALUES


def to_number(value: str | None, default: float) -> float:
    """Parse a numeric environment value, falling back to ``default``."""
    try:
        return float(value) if value is not None and value.strip() else default
    except ValueError:
        return default


def to_list(value: str | None) -> tuple[str, ...]:
    """Split a comma/whitespace separated environment value."""
    if not value:
        return ()
    return tuple(item for item in re.split(r"[,\s]+", value) if item)


@dataclass(frozen=True)
class Credentials:
    """Login credentials."""

    username: str = ""
    password: str = ""

    def __bool__(self) -> bool:
        return bool(self.username and self.password)


@dataclass(frozen=True)
class LoginConfig:
    """How to reach and confirm an authenticated session."""

    url: str
    credentials: Credentials = field(default_factory=Credentials)
    username_selector: str = ""
    password_selector: str = ""
    submit_selector: str = ""
    expected_path: str = "/"
    shell_selector: str = DEFAULT_SHELL_SELECTOR
    skip_login: bool = False
    mandatory: bool = False
    find_timeout: float = 15.0
    confirm_timeout: float = 20.0
    poll_interval: float = 0.3
    stall_polls: int = 10
    type_delay_ms: int = 30
    max_recoveries: int = 3
    url_patterns: tuple[str, ...] = ()


@dataclass(frozen=True)
class NavigationConfig:
    """Selector profile choice, per-field overrides and discovery timing."""

    profile: str = "auto"
    main_panel: str = ""
    main_items: str = ""
    aside_wrapper: str = ""
    final_link: str = ""
    collapsable: str = ""
    click_target: str = ""
    profiles_file: str = ""
    settle_delay: float = 0.75
    expand_delay: float = 0.3
    panel_timeout: float = 3.0
    max_expand_iterations: int = 10

    def overrides(self) -> dict[str, str]:
        """Return the explicitly set selector overrides."""
        fields = (
            "main_panel",
            "main_items",
            "aside_wrapper",
            "final_link",
            "collapsable",
            "click_target",
        )
        return {name: getattr(self, name) for name in fields if getattr(self, name)}


@dataclass(frozen=True)
class BrowserConfig:
    """Playwright launch options."""

    browser: str = "chromium"
    headless: bool = False
    slow_mo: int = 50
    maximize: bool = True
    viewport_width: int = 1920
    viewport_height: int = 1080
    navigation_timeout: float = DEFAULT_NAVIGATION_TIMEOUT
    wait_until: str = "networkidle"


@dataclass(frozen=True)
class CheckConfig:
    """Content check settings."""

    palette: tuple[str, ...] = DEFAULT_PALETTE
    search_texts: tuple[str, ...] = ()
    screenshots: bool = True
    screenshot_dir: Path = Path("screenshots")


@dataclass(frozen=True)
class CrawlerConfig:
    """Complete, immutable configuration of one run."""

    target_url: str
    login: LoginConfig
    navigation: NavigationConfig = field(default_factory=NavigationConfig)
    browser: BrowserConfig = field(default_factory=BrowserConfig)
    checks: CheckConfig = field(default_factory=CheckConfig)
    links_file: Path = Path("links_map.json")
    grace_period: float = 5.0
    log_file: Path | None = Path(DEFAULT_LOG_FILE)

    @classmethod
    def from_env(
        cls,
        env: Mapping[str, str] | None = None,
        env_file: str | Path | None = None,
    ) -> CrawlerConfig:
        """Build the configuration from environment variables.

        Args:
            env: Mapping to read instead of ``os.environ`` (tests)
            env_file: ``.env`` file loaded into ``os.environ`` first;
                ignored when ``env`` is given

        Returns:
            The run configuration
        """
        if env is None:
            load_dotenv(env_file)
            env = os.environ

        def get(name: str, default: str = "") -> str:
            return (env.get(name) or default).strip()

        target_url = get("TARGET_URL", "http://localhost:4200/")
        login = LoginConfig(
            url=get("BASE_URL", target_url),
            credentials=Credentials(
                username=get("LOGIN_USERNAME"),
                password=env.get("LOGIN_PASSWORD", ""),
            ),
            username_selector=get("LOGIN_SELECTOR_USERNAME"),
            password_selector=get("LOGIN_SELECTOR_PASSWORD"),
            submit_selector=get("LOGIN_SELECTOR_SUBMIT"),
            expected_path=get("EXPECTED_PATH", "/"),
            shell_selector=get("LOGIN_SHELL_SELECTOR", DEFAULT_SHELL_SELECTOR),
            skip_login=to_bool(env.get("SKIP_LOGIN")),
            mandatory=to_bool(env.get("LOGIN_MANDATORY")),
            find_timeout=to_number(env.get("LOGIN_FIND_TIMEOUT"), 15.0),
            confirm_timeout=to_number(env.get("LOGIN_CONFIRM_TIMEOUT"), 20.0),
            max_recoveries=int(to_number(env.get("LOGIN_MAX_RECOVERIES"), 3)),
            url_patterns=to_list(env.get("LOGIN_URL_PATTERNS")),
        )
        navigation = NavigationConfig(
            profile=get("NAV_PROFILE", "auto").lower(),
            main_panel=get("NAV_MAIN_PANEL_SELECTOR"),
            main_items=get("NAV_MAIN_ITEMS_SELECTOR"),
            aside_wrapper=get("NAV_ASIDE_WRAPPER_SELECTOR"),
            final_link=get("NAV_FINAL_LINK_SELECTOR"),
            collapsable=get("NAV_COLLAPSABLE_SELECTOR"),
            click_target=get("NAV_CLICK_TARGET_SELECTOR"),
            profiles_file=get("NAV_PROFILES_FILE"),
            settle_delay=to_number(env.get("NAV_SETTLE_DELAY"), 0.75),
            max_expand_iterations=int(to_number(env.get("NAV_MAX_EXPAND_ITERATIONS"), 10)),
        )
        browser = BrowserConfig(
            browser=get("BROWSER", "chromium").lower(),
            headless=to_bool(env.get("HEADLESS")),
            slow_mo=int(to_number(env.get("SLOWMO"), 50)),
            maximize=to_bool(env.get("MAXIMIZE"), True),
            viewport_width=int(to_number(env.get("VIEWPORT_WIDTH"), 1920)),
            viewport_height=int(to_number(env.get("VIEWPORT_HEIGHT"), 1080)),
            navigation_timeout=to_number(env.get("NAVIGATION_TIMEOUT"), DEFAULT_NAVIGATION_TIMEOUT),
        )
        palette = to_list(env.get("ALLOWED_COLORS"))
        checks = CheckConfig(
            palette=tuple(c.lower() for c in palette) or DEFAULT_PALETTE,
            search_texts=tuple(
                t.strip() for t in re.split(r"[,\r\n]+", env.get("SEARCH_TEXTS", "")) if t.strip()
            ),
            screenshots=to_bool(env.get("ENABLE_SCREENSHOTS"), True),
            screenshot_dir=Path(get("SCREENSHOT_DIR", "screenshots")),
        )
        # LOG_FILE= (set but empty) disables the run log
        log_file = env.get("LOG_FILE", DEFAULT_LOG_FILE).strip()
        return cls(
            target_url=target_url,
            login=login,
            navigation=navigation,
            browser=browser,
            checks=checks,
            links_file=Path(get("LINKS_CACHE_FILE", "links_map.json")),
            grace_period=to_number(env.get("GRACE_PERIOD"), 5.0),
            log_file=Path(log_file) if log_file else None,
        )
