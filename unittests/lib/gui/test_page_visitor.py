"""Unit tests for page_visitor.py."""

from unittest.mock import Mock

import pytest

from navsweep.exceptions import LoginError
from navsweep.lib.gui.link_discovery import NavigationLink
from navsweep.lib.gui.page_visitor import AggregatedResults, LinkOutcome, PageVisitor
from navsweep.lib.gui.playwright_sync_adapter import PageSubscription
from navsweep.templates.page_check import NAVIGATION_FAILURES, Finding, PageCheck

TARGET = "http://app.local/#/home"
LINKS = [
    NavigationLink("Devices", "http://app.local/#/devices"),
    NavigationLink("Reports", "http://app.local/#/reports"),
]
FIVE_LINKS = [NavigationLink(f"Page {n}", f"http://app.local/#/page/{n}") for n in range(1, 6)]


class FakeDriver:
    """Driver whose navigation can redirect, fail or return an error status."""

    def __init__(self, redirects=None, errors=None, statuses=None):
        self.page = Mock()
        self.url = "about:blank"
        self.visits = []
        self.redirects = {href: list(urls) for href, urls in (redirects or {}).items()}
        self.errors = errors or {}
        self.statuses = statuses or {}

    def goto(self, url, wait_until=None):
        self.visits.append(url)
        if url in self.errors:
            raise self.errors[url]
        landing = self.redirects.get(url)
        self.url = landing.pop(0) if landing else url
        response = Mock()
        response.status = self.statuses.get(url, 200)
        return response

    def show_status(self, text):
        pass

    def listen(self, event, handler):
        return PageSubscription(self.page, event, handler)


class FakeSession:
    def __init__(self, recovers=True):
        self.recovers = recovers
        self.recover_calls = 0

    def is_session_alive(self, url=None):
        return "/login" not in (url or "")

    def recover_session(self, credentials=None):
        self.recover_calls += 1
        if isinstance(self.recovers, Exception):
            raise self.recovers
        return self.recovers


class ListeningCheck(PageCheck):
    """Check that listens to responses and flags pages named in ``bad``."""

    name = "listening"
    category = "listening_findings"

    def __init__(self, bad=(), error=None):
        self.bad = set(bad)
        self.error = error
        self.subscriptions = []

    def subscribe(self, driver):
        subscription = driver.listen("response", Mock())
        self.subscriptions.append(subscription)
        return [subscription]

    def check(self, driver, link):
        if self.error is not None:
            raise self.error
        if link.href in self.bad:
            return [Finding(self.category, "bad", f"bad page {link.href}", link.href)]
        return []


class TestPageVisitor:
    """Test visit_all."""

    def test_all_links_visited_in_order(self):
        driver = FakeDriver()
        visitor = PageVisitor(driver, FakeSession(), TARGET)

        results = visitor.visit_all(LINKS)

        assert driver.visits == [link.href for link in LINKS]
        assert results.visited == 2
        assert results.total_errors == 0
        assert results.counts == {NAVIGATION_FAILURES: 0}

    def test_findings_counted_per_category(self):
        check = ListeningCheck(bad=[LINKS[1].href])
        visitor = PageVisitor(FakeDriver(), FakeSession(), TARGET)

        results = visitor.visit_all(LINKS, [check])

        assert results.counts == {NAVIGATION_FAILURES: 0, "listening_findings": 1}
        assert results.total_errors == 1
        assert results.outcomes[1].error_count == 1

    def test_expiry_at_third_link_recovered(self):
        driver = FakeDriver(redirects={FIVE_LINKS[2].href: ["http://app.local/login"]})
        session = FakeSession(recovers=True)
        visitor = PageVisitor(driver, session, TARGET)

        results = visitor.visit_all(FIVE_LINKS)

        hrefs = [link.href for link in FIVE_LINKS]
        assert session.recover_calls == 1
        assert driver.visits == hrefs[:3] + hrefs[2:]
        assert results.visited == 5
        assert results.counts[NAVIGATION_FAILURES] == 0
        assert results.total_errors == 0

    def test_expiry_at_third_link_recovery_fails(self):
        driver = FakeDriver(redirects={FIVE_LINKS[2].href: ["http://app.local/login"]})
        session = FakeSession(recovers=False)
        visitor = PageVisitor(driver, session, TARGET)

        results = visitor.visit_all(FIVE_LINKS)

        hrefs = [link.href for link in FIVE_LINKS]
        assert session.recover_calls == 1
        # back to the start page, then links 4 and 5 are still attempted
        assert driver.visits == hrefs[:3] + [TARGET] + hrefs[3:]
        assert [outcome.ok for outcome in results.outcomes] == [True, True, False, True, True]
        assert results.visited == 4
        assert results.counts[NAVIGATION_FAILURES] == 1
        assert results.total_errors == 1

    def test_expiry_after_recovery_is_a_failure(self):
        driver = FakeDriver(
            redirects={LINKS[0].href: ["http://app.local/login", "http://app.local/login"]}
        )
        visitor = PageVisitor(driver, FakeSession(recovers=True), TARGET)

        results = visitor.visit_all(LINKS[:1])

        assert not results.outcomes[0].ok
        assert "after recovery" in results.outcomes[0].error

    def test_navigation_exception_does_not_stop_the_loop(self):
        driver = FakeDriver(errors={LINKS[0].href: RuntimeError("net::ERR_CONNECTION_RESET\nCall log:")})
        visitor = PageVisitor(driver, FakeSession(), TARGET)

        results = visitor.visit_all(LINKS)

        assert results.counts[NAVIGATION_FAILURES] == 1
        assert results.outcomes[0].error == "net::ERR_CONNECTION_RESET"
        assert results.outcomes[1].ok

    def test_http_error_status_is_a_failure(self):
        driver = FakeDriver(statuses={LINKS[1].href: 404})
        visitor = PageVisitor(driver, FakeSession(), TARGET)

        results = visitor.visit_all(LINKS)

        assert results.outcomes[1].error == "HTTP 404"
        assert results.total_errors == 1

    def test_mandatory_login_error_leaves_the_loop(self):
        driver = FakeDriver(redirects={LINKS[0].href: ["http://app.local/login"]})
        check = ListeningCheck()
        visitor = PageVisitor(driver, FakeSession(recovers=LoginError("gone")), TARGET)

        with pytest.raises(LoginError):
            visitor.visit_all(LINKS, [check])

        assert len(driver.visits) == 1
        assert not check.subscriptions[0].active

    def test_subscriptions_detached_after_every_visit(self):
        driver = FakeDriver(statuses={LINKS[0].href: 500})
        check = ListeningCheck()
        visitor = PageVisitor(driver, FakeSession(), TARGET)

        visitor.visit_all(LINKS, [check])

        assert len(check.subscriptions) == 2
        assert not any(s.active for s in check.subscriptions)
        assert driver.page.remove_listener.call_count == 2

    def test_failing_check_is_isolated(self):
        check = ListeningCheck(error=RuntimeError("Execution context was destroyed"))
        visitor = PageVisitor(FakeDriver(), FakeSession(), TARGET)

        results = visitor.visit_all(LINKS, [check])

        assert results.visited == 2
        assert results.counts["listening_findings"] == 0


class TestAggregatedResults:
    def test_total_errors_sums_categories(self):
        results = AggregatedResults()
        results.add(LinkOutcome(LINKS[0], ok=False, error="HTTP 500"))
        results.add(
            LinkOutcome(
                LINKS[1],
                findings={"text_violations": [Finding("text_violations", "null", "null shown")]},
            )
        )

        assert results.counts == {NAVIGATION_FAILURES: 1, "text_violations": 1}
        assert results.total_errors == 2
        assert results.failures == [results.outcomes[0]]
