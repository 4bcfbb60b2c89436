"""Unit tests for runner.py."""

from dataclasses import replace
from unittest.mock import MagicMock, Mock, patch

import pytest

from navsweep.config import CheckConfig, CrawlerConfig
from navsweep.exceptions import LoginError
from navsweep.lib.checks import ColorCheck, RequestCheck, TextCheck
from navsweep.lib.gui.link_discovery import NavigationLink
from navsweep.lib.gui.page_visitor import AggregatedResults
from navsweep.runner import QaCrawler, RunReport, build_checks

LINKS = [NavigationLink("Home", "http://app.local/#/home")]


@pytest.fixture
def config(tmp_path):
    return replace(CrawlerConfig.from_env({}), links_file=tmp_path / "links_map.json", grace_period=2)


@pytest.fixture
def driver():
    driver = MagicMock()
    driver.__enter__.return_value = driver
    driver.__exit__.return_value = False
    return driver


class TestBuildChecks:
    def test_all_checks_by_default(self, config):
        checks = build_checks(config)

        assert [type(c) for c in checks] == [RequestCheck, ColorCheck, TextCheck]

    def test_screenshot_dir_follows_flag(self, config):
        config = replace(config, checks=CheckConfig(screenshots=False))

        color = build_checks(config, ["colors"])[0]

        assert color.screenshot_dir is None

    def test_unknown_check(self, config):
        with pytest.raises(ValueError):
            build_checks(config, ["spelling"])


@patch("navsweep.runner.PageVisitor")
@patch("navsweep.runner.LinkDiscoveryEngine")
@patch("navsweep.runner.SessionManager")
class TestQaCrawler:
    """Test run modes with the browser and components mocked."""

    def test_discover_only(self, mock_session, mock_engine, mock_visitor, config, driver):
        mock_engine.return_value.discover.return_value = LINKS
        crawler = QaCrawler(config, driver_factory=Mock(return_value=driver))

        assert crawler.discover_only() == LINKS

        mock_session.return_value.establish_session.assert_called_once()
        driver.__exit__.assert_called_once()
        mock_visitor.assert_not_called()

    def test_full_crawl_waits_grace_period(self, mock_session, mock_engine, mock_visitor, config, driver):
        mock_engine.return_value.discover.return_value = LINKS
        results = AggregatedResults(counts={"navigation_failures": 0})
        mock_visitor.return_value.visit_all.return_value = results
        crawler = QaCrawler(config, driver_factory=Mock(return_value=driver))

        report = crawler.full_crawl()

        driver.pause.assert_called_once_with(2)
        links, checks = mock_visitor.return_value.visit_all.call_args.args
        assert links == LINKS
        assert len(checks) == 3
        assert report.results is results
        assert set(report.check_reports) == {"requests", "colors", "text"}

    def test_cache_used_when_requested(self, mock_session, mock_engine, mock_visitor, config, driver):
        crawler = QaCrawler(config, driver_factory=Mock(return_value=driver))
        crawler.cache.save(LINKS)

        crawler.navigation_only(use_cache=True)

        mock_engine.assert_not_called()
        links, checks = mock_visitor.return_value.visit_all.call_args.args
        assert links == LINKS
        assert checks == []

    def test_unusable_cache_falls_back_to_discovery(self, mock_session, mock_engine, mock_visitor, config, driver):
        mock_engine.return_value.discover.return_value = LINKS
        crawler = QaCrawler(config, driver_factory=Mock(return_value=driver))

        crawler.single_check("text")

        mock_engine.return_value.discover.assert_called_once()
        checks = mock_visitor.return_value.visit_all.call_args.args[1]
        assert [c.name for c in checks] == ["text"]

    def test_browser_released_on_login_error(self, mock_session, mock_engine, mock_visitor, config, driver):
        mock_session.return_value.establish_session.side_effect = LoginError("mandatory")
        crawler = QaCrawler(config, driver_factory=Mock(return_value=driver))

        with pytest.raises(LoginError):
            crawler.full_crawl()

        driver.__exit__.assert_called_once()


def test_run_report_total_errors():
    assert RunReport().total_errors == 0
    assert RunReport(results=AggregatedResults(counts={"a": 2, "b": 1})).total_errors == 3
