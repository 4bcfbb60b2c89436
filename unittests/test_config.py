"""Unit tests for config.py."""

import os
from pathlib import Path

import pytest

from navsweep.config import DEFAULT_PALETTE, CrawlerConfig, to_bool, to_list, to_number


class TestHelpers:
    @pytest.mark.parametrize("value", ["1", "true", "TRUE", "yes", "on", "new"])
    def test_true_values(self, value):
        assert to_bool(value) is True

    @pytest.mark.parametrize("value", ["0", "false", "no", "off"])
    def test_false_values(self, value):
        assert to_bool(value, default=True) is False

    def test_unset_uses_default(self):
        assert to_bool(None, default=True) is True
        assert to_bool("  ", default=True) is True

    def test_number(self):
        assert to_number("2.5", 1) == 2.5
        assert to_number("abc", 1) == 1
        assert to_number("", 7) == 7

    def test_list(self):
        assert to_list("#fff, #000  #123") == ("#fff", "#000", "#123")
        assert to_list(None) == ()


class TestCrawlerConfig:
    def test_defaults(self):
        config = CrawlerConfig.from_env({})

        assert config.target_url == "http://localhost:4200/"
        assert config.login.url == config.target_url
        assert not config.login.credentials
        assert config.login.find_timeout == 15
        assert config.login.confirm_timeout == 20
        assert config.navigation.profile == "auto"
        assert config.navigation.overrides() == {}
        assert config.browser.headless is False
        assert config.browser.navigation_timeout == 60
        assert config.log_file == Path("navsweep_run.log")
        assert config.checks.palette == DEFAULT_PALETTE
        assert config.links_file == Path("links_map.json")
        assert config.grace_period == 5

    def test_values_from_environment(self):
        config = CrawlerConfig.from_env(
            {
                "TARGET_URL": "http://app.local/#/home",
                "BASE_URL": "http://app.local/login",
                "LOGIN_USERNAME": "admin",
                "LOGIN_PASSWORD": " secret ",
                "LOGIN_MANDATORY": "true",
                "NAV_PROFILE": "Angular_Fuse",
                "NAV_FINAL_LINK_SELECTOR": "app-menu a",
                "ALLOWED_COLORS": "#FFFFFF,#1E293B",
                "SEARCH_TEXTS": "undefined\nInvalid Date, ,erro",
                "HEADLESS": "1",
                "LINKS_CACHE_FILE": "out/links.json",
            }
        )

        assert config.login.url == "http://app.local/login"
        assert config.login.credentials.password == " secret "
        assert config.login.mandatory
        assert config.navigation.profile == "angular_fuse"
        assert config.navigation.overrides() == {"final_link": "app-menu a"}
        assert config.checks.palette == ("#ffffff", "#1e293b")
        assert config.checks.search_texts == ("undefined", "Invalid Date", "erro")
        assert config.browser.headless is True
        assert config.links_file == Path("out/links.json")

    def test_empty_log_file_disables_run_log(self):
        assert CrawlerConfig.from_env({"LOG_FILE": ""}).log_file is None
        assert CrawlerConfig.from_env({"LOG_FILE": " logs/qa.log "}).log_file == Path("logs/qa.log")

    def test_config_is_immutable(self):
        config = CrawlerConfig.from_env({})

        with pytest.raises(AttributeError):
            config.target_url = "http://elsewhere/"

    def test_env_file_is_loaded(self, tmp_path, monkeypatch):
        env_file = tmp_path / "staging.env"
        env_file.write_text("TARGET_URL=http://staging.local/\nGRACE_PERIOD=0\n")
        monkeypatch.delenv("TARGET_URL", raising=False)
        monkeypatch.delenv("GRACE_PERIOD", raising=False)

        try:
            config = CrawlerConfig.from_env(env_file=env_file)
        finally:
            os.environ.pop("TARGET_URL", None)
            os.environ.pop("GRACE_PERIOD", None)

        assert config.target_url == "http://staging.local/"
        assert config.grace_period == 0
