"""
prosbc_files.extract.html
=========================
Shared BeautifulSoup helpers: parse once, query many times.
"""

from __future__ import annotations

import re
import urllib.parse

from bs4 import BeautifulSoup, Tag

_BS4_PARSER = "lxml"

_WS_RE = re.compile(r"\s+")


def parse_html(html: "str | bytes | BeautifulSoup") -> BeautifulSoup:
    """Return a parsed document; already-parsed input is passed through."""
    if isinstance(html, BeautifulSoup):
        return html
    if isinstance(html, bytes):
        html = html.decode("utf-8", errors="replace")
    return BeautifulSoup(html or "", _BS4_PARSER)


def text_of(el: Tag | None) -> str:
    """Whitespace-collapsed text content of *el* ('' for None)."""
    if el is None:
        return ""
    return _WS_RE.sub(" ", el.get_text(" ")).strip()


def norm_label(text: str) -> str:
    """Normalise a section label for comparison: no colons, no spaces, lower case."""
    return _WS_RE.sub("", text.replace(":", "")).lower()


def href_path(href: str) -> str:
    """Path component of *href* without a trailing slash."""
    return urllib.parse.urlparse(href.strip()).path.rstrip("/")
