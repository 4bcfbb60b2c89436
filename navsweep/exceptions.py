"""Navsweep exceptions.

Only ``LoginError`` and ``NotAuthenticatedError`` are meant to reach the
command line; the others are raised and handled inside a single unit of
work (one menu category, one visited link).
"""


class NavsweepException(Exception):
    """Base exception for all navsweep errors."""


class LoginError(NavsweepException):
    """Raised when a mandatory login cannot be completed."""


class NotAuthenticatedError(NavsweepException):
    """Raised when discovery is started on a login or expired-session page."""


class DiscoveryError(NavsweepException):
    """Raised when a single navigation category cannot be expanded."""


class NavigationFailure(NavsweepException):
    """Raised when a single link cannot be opened."""

    def __init__(self, href: str, reason: str) -> None:
        super().__init__(f"{href}: {reason}")
        self.href = href
        self.reason = reason
