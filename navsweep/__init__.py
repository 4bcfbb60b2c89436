"""Browser-driven QA crawler: login, menu discovery and per-page checks."""

__version__ = "0.4.0"
