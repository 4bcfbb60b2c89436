"""Session management: login, liveness and recovery.

The login flow is deliberately tolerant of unknown login pages. Fields are
looked up from a prioritized candidate list in every frame, typed in
character by character (so framework bindings see real input events) and
the form is submitted through an ordered chain of strategies until one
works.
"""

from __future__ import annotations

import logging
import re
from dataclasses import dataclass
from enum import Enum
from typing import TYPE_CHECKING, Callable, NamedTuple
from urllib.parse import urlparse

from navsweep.config import Credentials, LoginConfig
from navsweep.exceptions import LoginError
from navsweep.lib.utils import PollOutcome, await_condition, first_line

if TYPE_CHECKING:
    from playwright.sync_api import Frame, Locator, Page

    from navsweep.lib.gui.playwright_sync_adapter import PlaywrightSyncAdapter

_LOGGER = logging.getLogger(__name__)

DEFAULT_LOGIN_URL_PATTERNS = (
    "/login",
    "/signin",
    "/sign-in",
    "/auth/",
    "session-expired",
    "sessao-expirada",
)

USERNAME_CANDIDATES = (
    "input[name='username']",
    "input[name='user']",
    "input[name='login']",
    "input[name='email']",
    "input[type='email']",
    "input[autocomplete='username']",
    "#username",
    "#email",
    "#user",
)

PASSWORD_CANDIDATES = (
    "input[name='password']",
    "input[autocomplete='current-password']",
    "#password",
    "input[type='password']",
)

SUBMIT_CANDIDATES = (
    "button[type='submit']",
    "input[type='submit']",
    ":contains('Login')",
    ":contains('Log in')",
    ":contains('Sign in')",
    ":contains('Entrar')",
    ".primary",
)

_CONTAINS_RE = re.compile(r"""^:contains\((['"]?)(.+?)\1\)$""")

# Marks the visible password input and the closest preceding text/email
# input of the same form, returning a selector for each.
AUTODETECT_FIELDS_SCRIPT = """() => {
    const visible = (el) => !!(el.offsetWidth || el.offsetHeight || el.getClientRects().length);
    const address = (el, role) => {
        if (el.id) return '#' + CSS.escape(el.id);
        if (el.name) return 'input[name="' + el.name.replace(/"/g, '\\\\"') + '"]';
        el.setAttribute('data-navsweep-field', role);
        return '[data-navsweep-field="' + role + '"]';
    };
    const password = Array.from(document.querySelectorAll('input[type="password"]')).find(visible);
    if (!password) return {};
    const scope = password.form || document;
    const inputs = Array.from(scope.querySelectorAll('input')).filter(visible);
    const before = inputs.slice(0, inputs.indexOf(password)).reverse();
    const username = before.find((el) => ['text', 'email', ''].includes((el.getAttribute('type') || '').toLowerCase()));
    return {
        password: address(password, 'password'),
        username: username ? address(username, 'username') : null,
    };
}"""

_CLEAR_SCRIPT = "(el) => { el.value = ''; }"

_COMMIT_SCRIPT = """(el) => {
    el.dispatchEvent(new Event('input', {bubbles: true}));
    el.dispatchEvent(new Event('change', {bubbles: true}));
    el.blur();
}"""

_SUBMIT_FORM_SCRIPT = """(el) => {
    const form = el.form || el.closest('form');
    if (!form) return false;
    if (typeof form.requestSubmit === 'function') form.requestSubmit();
    else form.submit();
    return true;
}"""


class SessionState(Enum):
    """Authentication state of the crawl's browser session."""

    UNAUTHENTICATED = "unauthenticated"
    AUTHENTICATING = "authenticating"
    AUTHENTICATED = "authenticated"
    EXPIRED = "expired"


@dataclass(frozen=True)
class FieldLocation:
    """A form field found in a given frame."""

    frame: Frame
    selector: str

    def locator(self) -> Locator:
        return self.frame.locator(self.selector).first


class Observation(NamedTuple):
    """One snapshot taken while waiting for the login to be confirmed."""

    url: str
    login_form: bool
    shell: bool


class SessionManager:
    """Owns the authentication state of the crawl.

    Attributes:
        driver: Browser adapter
        login: Login configuration
        target_url: Page the crawl starts from
    """

    def __init__(
        self,
        driver: PlaywrightSyncAdapter,
        login: LoginConfig,
        target_url: str,
        sleep: Callable[[float], None] | None = None,
    ):
        self.driver = driver
        self.login = login
        self.target_url = target_url
        self._sleep = sleep or driver.pause
        self._state = SessionState.UNAUTHENTICATED
        self._recoveries = 0
        self._url_patterns = tuple(
            dict.fromkeys([*DEFAULT_LOGIN_URL_PATTERNS, *(p.lower() for p in login.url_patterns)])
        )
        self._login_path = self._build_login_path()

    @property
    def state(self) -> SessionState:
        return self._state

    @property
    def page(self) -> Page:
        return self.driver.page

    @property
    def recoveries(self) -> int:
        """Number of recovery attempts made so far."""
        return self._recoveries

    def _build_login_path(self) -> str:
        """Path of the login URL, when that path alone identifies the login page.

        Empty when the login URL has no path or the target lives at or below
        it (BASE_URL=http://host/app with the application under /app/...).
        """
        login_path = urlparse(self.login.url).path.rstrip("/").lower()
        target_path = urlparse(self.target_url).path.rstrip("/").lower()
        if not login_path or target_path == login_path or target_path.startswith(login_path + "/"):
            return ""
        return login_path

    def _is_login_url(self, url: str) -> bool:
        lowered = url.lower()
        if any(pattern in lowered for pattern in self._url_patterns):
            return True
        return bool(self._login_path) and urlparse(lowered).path.rstrip("/") == self._login_path

    # ---- public API ------------------------------------------------------

    def establish_session(
        self,
        target_url: str | None = None,
        credentials: Credentials | None = None,
    ) -> bool:
        """Log in and leave the page on the target URL.

        Args:
            target_url: Page to open after login (configured target by default)
            credentials: Credentials to use (configured ones by default)

        Returns:
            True if the login was performed and confirmed

        Raises:
            LoginError: If login is mandatory and could not be completed
        """
        target = target_url or self.target_url
        creds = credentials if credentials is not None else self.login.credentials

        if self.login.skip_login or not creds:
            if self.login.mandatory and not creds:
                raise LoginError("Login is mandatory but no credentials are configured")
            _LOGGER.info("Skipping login (skip_login=%s)", self.login.skip_login)
            self.driver.goto(target)
            return False

        self._state = SessionState.AUTHENTICATING
        _LOGGER.info("Logging in at %s as %s", self.login.url, creds.username)
        self.driver.goto(self.login.url)
        try:
            confirmed = self._perform_login(creds)
        except LoginError as e:
            self._state = SessionState.UNAUTHENTICATED
            if self.login.mandatory:
                raise
            _LOGGER.warning("Login failed, continuing without a session: %s", e)
            self.driver.goto(target)
            return False

        if confirmed:
            _LOGGER.info("Login confirmed, current URL: %s", self.page.url)
            self._state = SessionState.AUTHENTICATED
        elif self.login.mandatory:
            self._state = SessionState.UNAUTHENTICATED
            raise LoginError(f"Login could not be confirmed (still at {self.page.url})")
        else:
            _LOGGER.warning(
                "Login could not be confirmed at %s, continuing as authenticated", self.page.url
            )
            self._state = SessionState.AUTHENTICATED

        self.driver.goto(target)
        return confirmed

    def is_session_alive(self, url: str | None = None) -> bool:
        """Check whether a URL still belongs to an authenticated session.

        Args:
            url: URL to check, the current page URL by default

        Returns:
            False for blank pages and login or expired-session URLs
        """
        current = url if url is not None else self.page.url
        lowered = (current or "").strip().lower()
        alive = bool(lowered) and not lowered.startswith(("about:", "chrome-error:"))
        if alive:
            alive = not self._is_login_url(lowered)

        if not alive and self._state is SessionState.AUTHENTICATED:
            _LOGGER.info("Session expired (url=%s)", current)
            self._state = SessionState.EXPIRED
        return alive

    def recover_session(self, credentials: Credentials | None = None) -> bool:
        """Log in again after the session expired.

        The page is left wherever the login flow ends; callers re-navigate.

        Args:
            credentials: Credentials to use (configured ones by default)

        Returns:
            True if the session is authenticated again

        Raises:
            LoginError: If login is mandatory and recovery failed
        """
        creds = credentials if credentials is not None else self.login.credentials
        self._state = SessionState.EXPIRED

        if self._recoveries >= self.login.max_recoveries:
            return self._recovery_failed(
                f"recovery limit reached ({self.login.max_recoveries})"
            )
        if not creds:
            return self._recovery_failed("no credentials configured")

        self._recoveries += 1
        _LOGGER.info(
            "Recovering session (attempt %d/%d)", self._recoveries, self.login.max_recoveries
        )
        try:
            self.driver.goto(self.login.url)
            confirmed = self._perform_login(creds)
        except LoginError as e:
            return self._recovery_failed(str(e))
        except Exception as e:  # noqa: BLE001
            return self._recovery_failed(first_line(e))

        if not confirmed:
            return self._recovery_failed("login not confirmed")
        self._state = SessionState.AUTHENTICATED
        _LOGGER.info("Session recovered")
        return True

    def _recovery_failed(self, reason: str) -> bool:
        self._state = SessionState.EXPIRED
        if self.login.mandatory:
            raise LoginError(f"Session recovery failed: {reason}")
        _LOGGER.warning("Session recovery failed: %s", reason)
        return False

    # ---- login flow ------------------------------------------------------

    def _perform_login(self, creds: Credentials) -> bool:
        """Fill, submit and confirm the login form on the current page."""
        fields = self._locate_login_fields()
        if fields is None:
            if self._is_confirmed(self._observe()):
                _LOGGER.info("No login form found, session already active")
                return True
            raise LoginError(
                f"Login fields not found within {self.login.find_timeout}s at {self.page.url}"
            )

        username, password = fields
        _LOGGER.debug("Username field: %s, password field: %s", username.selector, password.selector)
        if not self._fill_field(username, creds.username):
            raise LoginError(f"Username field {username.selector} could not be filled")
        if not self._fill_field(password, creds.password, secret=True):
            raise LoginError(f"Password field {password.selector} could not be filled")
        self._submit(password)
        return self._confirm_login()

    def _candidate_selectors(self, kind: str, detected: dict[str, str | None]) -> list[str]:
        """Ordered, unique selectors for ``kind`` ('username' or 'password')."""
        configured = {
            "username": self.login.username_selector,
            "password": self.login.password_selector,
        }[kind]
        hardcoded = USERNAME_CANDIDATES if kind == "username" else PASSWORD_CANDIDATES
        ordered = [configured, detected.get(kind), *hardcoded]
        return list(dict.fromkeys(sel for sel in ordered if sel))

    def _find_in_frame(self, frame: Frame, kind: str, detected: dict[str, str | None]) -> FieldLocation | None:
        for selector in self._candidate_selectors(kind, detected):
            try:
                handle = frame.query_selector(selector)
                if handle is not None and handle.is_visible():
                    return FieldLocation(frame, selector)
            except Exception as e:  # noqa: BLE001
                _LOGGER.debug("Selector %s failed in frame %s: %s", selector, frame.url, first_line(e))
        return None

    def _locate_login_fields(self) -> tuple[FieldLocation, FieldLocation] | None:
        """Search the page and its frames for the username and password fields.

        Returns:
            (username, password) locations, or None when the search timed out
        """
        result: list[tuple[FieldLocation, FieldLocation]] = []

        def search() -> bool:
            for frame in self.page.frames:
                try:
                    detected = frame.evaluate(AUTODETECT_FIELDS_SCRIPT) or {}
                except Exception as e:  # noqa: BLE001
                    _LOGGER.debug("Field autodetection failed in %s: %s", frame.url, first_line(e))
                    detected = {}
                password = self._find_in_frame(frame, "password", detected)
                if password is None:
                    continue
                username = self._find_in_frame(frame, "username", detected)
                if username is not None:
                    result.append((username, password))
                    return True
            return False

        outcome = await_condition(
            search, self.login.find_timeout, self.login.poll_interval, sleep=self._sleep
        )
        return result[0] if outcome else None

    def _fill_field(self, location: FieldLocation, value: str, secret: bool = False) -> bool:
        """Type a value into a field and verify it stuck.

        Returns:
            True if the field holds ``value`` afterwards
        """
        shown = "***" if secret else value
        timeout = self.login.find_timeout * 1000
        for attempt in (1, 2):
            field = location.locator()
            field.focus(timeout=timeout)
            field.click(click_count=3, timeout=timeout)
            field.evaluate(_CLEAR_SCRIPT)
            field.press_sequentially(value, delay=self.login.type_delay_ms, timeout=timeout)
            field.evaluate(_COMMIT_SCRIPT)
            if field.input_value(timeout=timeout) == value:
                return True
            _LOGGER.warning(
                "Field %s does not hold %s after attempt %d", location.selector, shown, attempt
            )
        return False

    def _submit_strategies(self) -> list[Callable[[FieldLocation], bool]]:
        return [self._click_submit_control, self._submit_enclosing_form, self._press_enter]

    def _submit(self, password: FieldLocation) -> None:
        """Run the submission strategies in order until one succeeds.

        Raises:
            LoginError: If every strategy failed
        """
        for strategy in self._submit_strategies():
            name = getattr(strategy, "__name__", repr(strategy)).lstrip("_")
            try:
                if strategy(password):
                    _LOGGER.info("Login form submitted (%s)", name)
                    return
                _LOGGER.debug("Submit strategy %s did not apply", name)
            except Exception as e:  # noqa: BLE001
                _LOGGER.debug("Submit strategy %s failed: %s", name, first_line(e))
        raise LoginError("Could not submit the login form")

    def _submit_selectors(self) -> list[str]:
        ordered = [self.login.submit_selector, *SUBMIT_CANDIDATES]
        selectors = []
        for candidate in dict.fromkeys(c for c in ordered if c):
            match = _CONTAINS_RE.match(candidate.strip())
            if match:
                text = match.group(2).replace('"', '\\"')
                selectors.append(f'button:has-text("{text}")')
                selectors.append(f'input[type="submit"][value="{text}" i]')
            else:
                selectors.append(candidate)
        return selectors

    def _click_submit_control(self, password: FieldLocation) -> bool:
        for selector in self._submit_selectors():
            handle = password.frame.query_selector(selector)
            if handle is None or not handle.is_visible():
                continue
            box = handle.bounding_box()
            if not box:
                continue
            self.page.mouse.click(box["x"] + box["width"] / 2, box["y"] + box["height"] / 2)
            _LOGGER.debug("Clicked submit control %s", selector)
            return True
        return False

    def _submit_enclosing_form(self, password: FieldLocation) -> bool:
        return bool(password.locator().evaluate(_SUBMIT_FORM_SCRIPT))

    def _press_enter(self, password: FieldLocation) -> bool:
        password.locator().press("Enter", timeout=self.login.find_timeout * 1000)
        return True

    # ---- confirmation ----------------------------------------------------

    def _observe(self) -> Observation:
        url = self.page.url
        login_form = False
        for frame in self.page.frames:
            try:
                handle = frame.query_selector("input[type='password']")
                if handle is not None and handle.is_visible():
                    login_form = True
                    break
            except Exception as e:  # noqa: BLE001
                _LOGGER.debug("Password probe failed in %s: %s", frame.url, first_line(e))
        try:
            shell = self.page.query_selector(self.login.shell_selector) is not None
        except Exception as e:  # noqa: BLE001
            _LOGGER.debug("Shell probe failed: %s", first_line(e))
            shell = False
        return Observation(url, login_form, shell)

    def _is_confirmed(self, observation: Observation) -> bool:
        if not observation.url or self._is_login_url(observation.url):
            return False
        path = urlparse(observation.url).path or "/"
        expected = self.login.expected_path or "/"
        if not observation.login_form and (path == expected or path.endswith(expected)):
            return True
        return observation.shell and not observation.login_form

    def _confirm_login(self) -> bool:
        """Poll until the login is confirmed, stopping early on a stalled login form."""
        history: list[Observation] = []

        def confirmed() -> bool:
            history.append(self._observe())
            return self._is_confirmed(history[-1])

        def stalled() -> bool:
            if len(history) < max(self.login.stall_polls, 2):
                return False
            last, previous = history[-1], history[-2]
            return last == previous and last.login_form

        outcome = await_condition(
            confirmed,
            self.login.confirm_timeout,
            self.login.poll_interval,
            abort=stalled,
            sleep=self._sleep,
        )
        if outcome is PollOutcome.ABORTED:
            _LOGGER.warning("Login form still shown after %d checks, giving up", len(history))
        elif outcome is PollOutcome.TIMED_OUT:
            _LOGGER.warning("Login not confirmed within %ss", self.login.confirm_timeout)
        return bool(outcome)
