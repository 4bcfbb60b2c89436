"""Per-page checks run by the page visitor."""

from navsweep.lib.checks.color_check import ColorCheck
from navsweep.lib.checks.request_check import RequestCheck
from navsweep.lib.checks.text_check import TextCheck

__all__ = [
    "ColorCheck",
    "RequestCheck",
    "TextCheck",
]
