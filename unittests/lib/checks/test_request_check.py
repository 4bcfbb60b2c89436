"""Unit tests for request_check.py."""

from unittest.mock import Mock

from navsweep.lib.checks.request_check import (
    CONSOLE_ERROR,
    CORS_ERROR,
    HTTP_ERROR,
    NETWORK_FAILURE,
    RequestCheck,
)
from navsweep.lib.gui.link_discovery import NavigationLink

DEVICES = NavigationLink("Devices", "http://app.local/#/devices")
REPORTS = NavigationLink("Reports", "http://app.local/#/reports")


class FakeDriver:
    """Collects listeners so tests can fire page events."""

    def __init__(self):
        self.handlers = {}

    def listen(self, event, handler):
        self.handlers[event] = handler
        return Mock(active=True)

    def fire(self, event, payload):
        self.handlers[event](payload)


def response(url, status, status_text=""):
    return Mock(url=url, status=status, status_text=status_text)


def console(text, kind="error", url="http://app.local/main.js"):
    return Mock(type=kind, text=text, location={"url": url})


class TestRequestCheck:
    def setup_method(self):
        self.driver = FakeDriver()
        self.check = RequestCheck()

    def visit(self, link, *events):
        self.check.subscribe(self.driver)
        for event, payload in events:
            self.driver.fire(event, payload)
        return self.check.check(self.driver, link)

    def test_subscribes_to_network_and_console(self):
        subscriptions = self.check.subscribe(self.driver)

        assert len(subscriptions) == 3
        assert set(self.driver.handlers) == {"response", "requestfailed", "console"}

    def test_console_can_be_excluded(self):
        RequestCheck(include_console=False).subscribe(self.driver)

        assert "console" not in self.driver.handlers

    def test_collects_errors(self):
        failed = Mock(url="http://app.local/api/stats", failure="net::ERR_CONNECTION_REFUSED")

        findings = self.visit(
            DEVICES,
            ("response", response("http://app.local/api/devices", 200)),
            ("response", response("http://app.local/api/alarms", 503, "Service Unavailable")),
            ("requestfailed", failed),
            ("console", console("Uncaught TypeError: x is undefined")),
            ("console", console("Access to XMLHttpRequest blocked by CORS policy")),
            ("console", console("just a warning", kind="warning")),
        )

        assert [f.kind for f in findings] == [HTTP_ERROR, NETWORK_FAILURE, CONSOLE_ERROR, CORS_ERROR]
        assert findings[0].message == "HTTP Error: http://app.local/api/alarms (503 Service Unavailable)"
        assert findings[1].detail["detail"] == "net::ERR_CONNECTION_REFUSED"

    def test_findings_belong_to_one_page(self):
        self.visit(DEVICES, ("response", response("http://app.local/api/a", 404)))

        assert self.visit(REPORTS) == []

    def test_grouped_by_url_and_kind(self):
        broken = ("response", response("http://app.local/api/alarms", 500))
        self.visit(DEVICES, broken, broken)
        self.visit(REPORTS, broken)

        groups = self.check.groups
        assert len(groups) == 1
        assert groups[0].count == 3
        assert groups[0].pages == [DEVICES.href, REPORTS.href]
        assert self.check.report() == [
            "[HTTP Error] http://app.local/api/alarms: 500 x3 on 2 page(s)"
        ]
