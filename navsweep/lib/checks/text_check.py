"""Forbidden text check.

Looks for leaked placeholder values ("null", "NaN", plus any configured
tokens) as whole words in the visible text of ``div`` and ``span``
elements. Only the deepest matching element is reported, so one bad
value does not also flag every ancestor.
"""

from __future__ import annotations

import logging
import re
from pathlib import Path
from typing import TYPE_CHECKING, Iterable

from navsweep.templates.page_check import TEXT_VIOLATIONS, Finding, PageCheck

if TYPE_CHECKING:
    from navsweep.lib.gui.link_discovery import NavigationLink
    from navsweep.lib.gui.playwright_sync_adapter import PlaywrightSyncAdapter

_LOGGER = logging.getLogger(__name__)

BASE_TOKENS = ("null", "nan")

FIND_TEXT_SCRIPT = """(source) => {
    const re = new RegExp(source, 'i');
    const visible = (el) => !!(el.offsetWidth || el.offsetHeight || el.getClientRects().length);
    const hits = Array.from(document.querySelectorAll('div, span')).filter((el) =>
        !el.closest('[data-qa-ignore="true"], #__qa_status_overlay')
        && visible(el) && re.test(el.innerText || ''));
    const deepest = hits.filter((el) => !hits.some((other) => other !== el && el.contains(other)));
    window.__navsweepCheckSeq = window.__navsweepCheckSeq || 0;
    return deepest.map((el) => {
        let id = el.getAttribute('data-check-id');
        if (!id) {
            id = 'n' + (window.__navsweepCheckSeq++);
            el.setAttribute('data-check-id', id);
        }
        return {id: id, text: (el.innerText || '').trim().slice(0, 200)};
    });
}"""


def build_token_pattern(extra_tokens: Iterable[str] = ()) -> re.Pattern:
    """Whole-word, case-insensitive pattern for the base plus extra tokens."""
    tokens = list(dict.fromkeys(t.strip().lower() for t in (*BASE_TOKENS, *extra_tokens) if t.strip()))
    return re.compile(r"\b(" + "|".join(re.escape(t) for t in tokens) + r")\b", re.IGNORECASE)


class TextCheck(PageCheck):
    """Report forbidden tokens in visible text."""

    name = "text"
    category = TEXT_VIOLATIONS

    def __init__(
        self,
        search_texts: Iterable[str] = (),
        screenshot_dir: str | Path | None = None,
    ):
        self.pattern = build_token_pattern(search_texts)
        self.screenshot_dir = Path(screenshot_dir) if screenshot_dir else None
        self._screenshots = 0

    def find_tokens(self, text: str) -> list[str]:
        """Return the forbidden tokens found in ``text``, lower-cased and unique."""
        return list(dict.fromkeys(m.group(1).lower() for m in self.pattern.finditer(text or "")))

    def check(self, driver: PlaywrightSyncAdapter, link: NavigationLink) -> list[Finding]:
        hits = driver.evaluate(FIND_TEXT_SCRIPT, self.pattern.pattern) or []
        findings = []
        for hit in hits:
            tokens = self.find_tokens(hit.get("text", ""))
            if not tokens:
                # JS and Python word boundaries differ on non-ASCII text
                continue
            selector = f'[data-check-id="{hit["id"]}"]'
            excerpt = hit.get("text", "")[:80]
            finding = Finding(
                category=self.category,
                kind=tokens[0],
                message=f"Forbidden text {'/'.join(tokens)} in: {excerpt!r}",
                url=link.href,
                detail={"tokens": tokens, "selector": selector},
            )
            findings.append(finding)
            _LOGGER.warning("  %s", finding.message)
            self._capture(driver, selector)
        return findings

    def _capture(self, driver: PlaywrightSyncAdapter, selector: str) -> None:
        if self.screenshot_dir is None:
            return
        self._screenshots += 1
        driver.highlight_element(selector, "#ff8c00")
        try:
            driver.take_element_screenshot(
                selector, self.screenshot_dir / f"erro_{self._screenshots}_texto.png"
            )
        finally:
            driver.clear_element_highlight(selector)
