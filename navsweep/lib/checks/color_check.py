"""Colour palette check.

Every visible element's computed text colour, background colour and
(visible) border colour must belong to the allowed palette. Each
offending colour is reported once per property and page, with an
optional screenshot of the first element using it.
"""

from __future__ import annotations

import logging
import re
from pathlib import Path
from typing import TYPE_CHECKING, Iterable

from navsweep.config import DEFAULT_PALETTE
from navsweep.templates.page_check import COLOR_VIOLATIONS, Finding, PageCheck

if TYPE_CHECKING:
    from navsweep.lib.gui.link_discovery import NavigationLink
    from navsweep.lib.gui.playwright_sync_adapter import PlaywrightSyncAdapter

_LOGGER = logging.getLogger(__name__)

TRANSPARENT = "rgba(0, 0, 0, 0)"

_RGB_RE = re.compile(
    r"^rgba?\(\s*([\d.]+)[\s,]+([\d.]+)[\s,]+([\d.]+)\s*(?:[,/]\s*([\d.]+)(%?)\s*)?\)$"
)
_SHORT_HEX_RE = re.compile(r"^#([0-9a-f])([0-9a-f])([0-9a-f])$")

COLLECT_COLORS_SCRIPT = """() => {
    const visible = (el) => !!(el.offsetWidth || el.offsetHeight || el.getClientRects().length);
    window.__navsweepCheckSeq = window.__navsweepCheckSeq || 0;
    const out = [];
    document.querySelectorAll('body *').forEach((el) => {
        if (el.closest('[data-qa-ignore="true"], #__qa_status_overlay')) return;
        if (!visible(el)) return;
        const style = getComputedStyle(el);
        if (style.visibility === 'hidden' || style.display === 'none') return;
        const props = {color: style.color, backgroundColor: style.backgroundColor};
        if (style.borderTopStyle !== 'none' && parseFloat(style.borderTopWidth) > 0) {
            props.borderColor = style.borderTopColor;
        }
        let id = el.getAttribute('data-check-id');
        if (!id) {
            id = 'n' + (window.__navsweepCheckSeq++);
            el.setAttribute('data-check-id', id);
        }
        out.push({id: id, tag: el.tagName.toLowerCase(), props: props});
    });
    return out;
}"""


def normalize_color(value: str | None) -> str:
    """Normalize a CSS colour for comparison.

    Transparent colours (keyword or zero alpha) become ``rgba(0, 0, 0, 0)``,
    ``rgb()``/``rgba()`` become lower-case ``#rrggbb`` and short hex is
    expanded; anything else is only lower-cased.
    """
    text = (value or "").strip().lower()
    if not text or text == "transparent":
        return TRANSPARENT
    match = _RGB_RE.match(text)
    if match:
        red, green, blue, alpha, percent = match.groups()
        if alpha is not None and float(alpha) == 0:
            return TRANSPARENT
        return "#{:02x}{:02x}{:02x}".format(*(min(255, round(float(c))) for c in (red, green, blue)))
    short = _SHORT_HEX_RE.match(text)
    if short:
        return "#" + "".join(c * 2 for c in short.groups())
    return text


class ColorCheck(PageCheck):
    """Report colours outside the allowed palette."""

    name = "colors"
    category = COLOR_VIOLATIONS

    def __init__(
        self,
        palette: Iterable[str] = DEFAULT_PALETTE,
        screenshot_dir: str | Path | None = None,
    ):
        """Initialize the check.

        Args:
            palette: Allowed colours, any CSS notation
            screenshot_dir: Where evidence screenshots go; None disables them
        """
        self.palette = frozenset(normalize_color(c) for c in palette)
        self.screenshot_dir = Path(screenshot_dir) if screenshot_dir else None
        self._screenshots = 0

    def check(self, driver: PlaywrightSyncAdapter, link: NavigationLink) -> list[Finding]:
        elements = driver.evaluate(COLLECT_COLORS_SCRIPT) or []
        findings = []
        seen = set()
        for element in elements:
            for prop, raw in (element.get("props") or {}).items():
                color = normalize_color(raw)
                if color == TRANSPARENT or color in self.palette or (color, prop) in seen:
                    continue
                seen.add((color, prop))
                selector = f'[data-check-id="{element["id"]}"]'
                finding = Finding(
                    category=self.category,
                    kind=prop,
                    message=f"{prop} {color} on <{element.get('tag', '?')}> not in palette",
                    url=link.href,
                    detail={"color": color, "selector": selector},
                )
                findings.append(finding)
                _LOGGER.warning("  %s", finding.message)
                self._capture(driver, selector)
        return findings

    def _capture(self, driver: PlaywrightSyncAdapter, selector: str) -> None:
        if self.screenshot_dir is None:
            return
        self._screenshots += 1
        driver.highlight_element(selector, "#ff0000")
        try:
            driver.take_element_screenshot(
                selector, self.screenshot_dir / f"erro_{self._screenshots}_cor.png"
            )
        finally:
            driver.clear_element_highlight(selector)
