"""Unit tests for text_check.py."""

from unittest.mock import Mock

from navsweep.lib.checks.text_check import FIND_TEXT_SCRIPT, TextCheck, build_token_pattern
from navsweep.lib.gui.link_discovery import NavigationLink

LINK = NavigationLink("Devices", "http://app.local/#/devices")


class TestTokenPattern:
    def test_base_tokens_whole_word_case_insensitive(self):
        check = TextCheck()

        assert check.find_tokens("Uptime: NaN days") == ["nan"]
        assert check.find_tokens("Owner: null") == ["null"]
        assert check.find_tokens("Nullable fields, banana, nano") == []

    def test_extra_tokens(self):
        check = TextCheck(search_texts=["undefined", "Invalid Date"])

        assert check.find_tokens("Created: Invalid Date (undefined)") == ["invalid date", "undefined"]

    def test_tokens_are_escaped(self):
        pattern = build_token_pattern(["a.b"])

        assert pattern.search("value a.b here")
        assert not pattern.search("value axb here")

    def test_duplicate_tokens_reported_once(self):
        assert TextCheck().find_tokens("null / NULL / null") == ["null"]


class TestTextCheck:
    def setup_method(self):
        self.driver = Mock()

    def test_pattern_is_passed_to_the_page(self):
        self.driver.evaluate.return_value = []
        check = TextCheck()

        assert check.check(self.driver, LINK) == []
        self.driver.evaluate.assert_called_once_with(FIND_TEXT_SCRIPT, check.pattern.pattern)

    def test_findings_for_matches(self):
        self.driver.evaluate.return_value = [
            {"id": "n4", "text": "Serial: null"},
            {"id": "n9", "text": "RX: NaN kbps"},
        ]

        findings = TextCheck().check(self.driver, LINK)

        assert [f.kind for f in findings] == ["null", "nan"]
        assert findings[1].detail["selector"] == '[data-check-id="n9"]'
        assert "RX: NaN kbps" in findings[1].message

    def test_hit_without_python_match_is_ignored(self):
        self.driver.evaluate.return_value = [{"id": "n1", "text": "nullável"}]

        assert TextCheck().check(self.driver, LINK) == []

    def test_evidence_screenshot(self, tmp_path):
        self.driver.evaluate.return_value = [{"id": "n1", "text": "null"}]

        TextCheck(screenshot_dir=tmp_path).check(self.driver, LINK)

        self.driver.take_element_screenshot.assert_called_once_with(
            '[data-check-id="n1"]', tmp_path / "erro_1_texto.png"
        )
