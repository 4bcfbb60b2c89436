"""Persistence of the discovered link set.

Links are written as a plain JSON array. The reader is more forgiving:
hand-edited files with comments or trailing commas, and JavaScript
modules that export the array (``export const linksMap = [...]``), load
as well.
"""

from __future__ import annotations

import json
import logging
from pathlib import Path
from typing import Iterable

import yaml

from navsweep.lib.gui.link_discovery import NavigationLink

_LOGGER = logging.getLogger(__name__)


def strip_comments(text: str) -> str:
    """Remove ``//`` line and ``/* */`` block comments outside string literals."""
    out = []
    i = 0
    quote = ""
    length = len(text)
    while i < length:
        char = text[i]
        if quote:
            out.append(char)
            if char == "\\" and i + 1 < length:
                out.append(text[i + 1])
                i += 2
                continue
            if char == quote:
                quote = ""
            i += 1
        elif char in "\"'":
            quote = char
            out.append(char)
            i += 1
        elif text.startswith("//", i):
            end = text.find("\n", i)
            i = length if end == -1 else end
        elif text.startswith("/*", i):
            end = text.find("*/", i + 2)
            i = length if end == -1 else end + 2
        else:
            out.append(char)
            i += 1
    return "".join(out)


def extract_array(text: str) -> str | None:
    """Return the outermost ``[...]`` literal of ``text``, None if there is none."""
    start = text.find("[")
    end = text.rfind("]")
    if start == -1 or end < start:
        return None
    return text[start : end + 1]


def parse_links(text: str) -> list[NavigationLink] | None:
    """Permissively parse a serialized link array.

    Returns:
        Deduplicated links, or None if the text holds no usable array
    """
    literal = extract_array(strip_comments(text))
    if literal is None:
        return None
    # YAML flow syntax is a superset of JSON that tolerates trailing commas
    # and unquoted keys; tabs are not allowed as indentation though.
    data = yaml.safe_load(literal.expandtabs(2))
    if not isinstance(data, list):
        return None

    links: dict[str, NavigationLink] = {}
    for entry in data:
        if not isinstance(entry, dict) or not entry.get("href"):
            continue
        href = str(entry["href"]).strip()
        if href and href not in links:
            links[href] = NavigationLink(text=str(entry.get("text") or "").strip(), href=href)
    return list(links.values())


class LinkCache:
    """File backed store for the discovered link set.

    Attributes:
        path: Location of the cache file
    """

    def __init__(self, path: str | Path):
        self.path = Path(path)

    def save(self, links: Iterable[NavigationLink]) -> None:
        """Write the links as a JSON array (two-space indent)."""
        payload = [link.to_dict() for link in links]
        self.path.parent.mkdir(parents=True, exist_ok=True)
        self.path.write_text(json.dumps(payload, indent=2, ensure_ascii=False) + "\n", encoding="utf-8")
        _LOGGER.info("Saved %d links to %s", len(payload), self.path)

    def load(self) -> list[NavigationLink] | None:
        """Read the cached links.

        Returns:
            The cached links, or None if the file is missing or unusable
        """
        if not self.path.is_file():
            _LOGGER.info("No link cache at %s", self.path)
            return None
        try:
            text = self.path.read_text(encoding="utf-8")
            links = parse_links(text)
        except (OSError, UnicodeDecodeError, yaml.YAMLError) as e:
            _LOGGER.warning("Could not read link cache %s: %s", self.path, e)
            return None
        if links is None:
            _LOGGER.warning("Link cache %s does not contain a link array", self.path)
            return None
        _LOGGER.info("Loaded %d links from %s", len(links), self.path)
        return links
