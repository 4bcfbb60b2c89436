"""Unit tests for main.py."""

from dataclasses import replace
from unittest.mock import patch

import pytest

from navsweep import main as cli
from navsweep.config import CrawlerConfig
from navsweep.exceptions import LoginError, NotAuthenticatedError
from navsweep.lib.gui.link_discovery import NavigationLink
from navsweep.lib.gui.page_visitor import AggregatedResults
from navsweep.runner import RunReport


@pytest.fixture
def config():
    return replace(CrawlerConfig.from_env({}), log_file=None)


class TestParseArgs:
    def test_defaults(self):
        args = cli.parse_args([])

        assert args.mode == "all-pages"
        assert not args.use_cache
        assert args.env_file is None

    def test_mode_and_flags(self):
        args = cli.parse_args(["colors", "--use-cache", "--env-file", "qa.env", "-v"])

        assert args.mode == "colors"
        assert args.use_cache
        assert args.env_file == "qa.env"
        assert args.verbose

    def test_unknown_mode_rejected(self):
        with pytest.raises(SystemExit):
            cli.parse_args(["spider"])


@patch("navsweep.main.QaCrawler")
@patch("navsweep.main.CrawlerConfig.from_env")
class TestMain:
    """Test exit codes."""

    def test_clean_run_exits_zero(self, mock_from_env, mock_crawler, config):
        mock_from_env.return_value = config
        mock_crawler.return_value.full_crawl.return_value = RunReport(
            results=AggregatedResults(counts={"navigation_failures": 0})
        )

        assert cli.main(["all-pages"]) == cli.EXIT_OK
        mock_crawler.return_value.full_crawl.assert_called_once_with(use_cache=False)

    def test_errors_exit_one(self, mock_from_env, mock_crawler, config):
        mock_from_env.return_value = config
        mock_crawler.return_value.single_check.return_value = RunReport(
            results=AggregatedResults(counts={"text_violations": 2})
        )

        assert cli.main(["text"]) == cli.EXIT_ERRORS
        mock_crawler.return_value.single_check.assert_called_once_with("text", use_cache=True)

    def test_discover_lists_links(self, mock_from_env, mock_crawler, config):
        mock_from_env.return_value = config
        mock_crawler.return_value.discover_only.return_value = [
            NavigationLink("Home", "http://app.local/#/home")
        ]

        assert cli.main(["discover"]) == cli.EXIT_OK

    @pytest.mark.parametrize("error", [LoginError("no login"), NotAuthenticatedError("login page")])
    def test_fatal_errors_exit_two(self, mock_from_env, mock_crawler, error, config):
        mock_from_env.return_value = config
        mock_crawler.return_value.navigation_only.side_effect = error

        assert cli.main(["navigation"]) == cli.EXIT_FATAL


def test_setup_logging_writes_run_log(tmp_path):
    log_file = tmp_path / "logs" / "run.log"

    with patch("navsweep.main.logging.basicConfig"), patch(
        "navsweep.main.logging.getLogger"
    ) as mock_get_logger:
        cli.setup_logging(False, log_file)

    handler = mock_get_logger.return_value.addHandler.call_args.args[0]
    handler.close()
    assert log_file.parent.is_dir()
    assert handler.baseFilename == str(log_file)
