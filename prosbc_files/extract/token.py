"""
prosbc_files.extract.token
==========================
CSRF token and record-id discovery.

The appliance renders the ``authenticity_token`` in different places
depending on firmware version and page.  Rather than one rigid pattern,
the document is parsed once and a prioritised list of tree queries is
tried until one yields a non-empty token:

1. ``<input name="authenticity_token" value="…">``
2. ``<meta name="csrf-token" content="…">``
3. an inline ``<script>`` body or ``onclick`` expression assigning the
   token (``authenticity_token: '…'``, ``authenticity_token = '…'``,
   ``append('authenticity_token', '…')``)
4. the Rails-generated handler of a delete link, which builds a hidden
   form with ``s.setAttribute('name', 'authenticity_token');
   s.setAttribute('value', '…')``, scoped to the link for the record.
"""

from __future__ import annotations

import re
from typing import Callable

from bs4 import BeautifulSoup

from ..config import META_TOKEN_NAME, TOKEN_FIELD
from ..errors import TokenNotFound
from ..logging_setup import log, short_token
from ..models import ExtractedToken, ResourceKind
from .html import href_path, parse_html

_JS_ASSIGN_RE = re.compile(
    r"""['"]?authenticity_token['"]?\s*[:=,]\s*['"]([^'"]+)['"]"""
)
_DOM_BUILD_RE = re.compile(
    r"""authenticity_token.{0,160}?setAttribute\(\s*['"]value['"]\s*,\s*['"]([^'"]+)['"]""",
    re.S,
)


def _from_input(soup: BeautifulSoup, kind: ResourceKind, record_hint: str | None) -> str | None:
    el = soup.find("input", attrs={"name": TOKEN_FIELD})
    return el.get("value") if el else None


def _from_meta(soup: BeautifulSoup, kind: ResourceKind, record_hint: str | None) -> str | None:
    el = soup.find("meta", attrs={"name": META_TOKEN_NAME})
    return el.get("content") if el else None


def _from_inline_script(soup: BeautifulSoup, kind: ResourceKind, record_hint: str | None) -> str | None:
    for script in soup.find_all("script"):
        if script.get("src"):
            continue
        m = _JS_ASSIGN_RE.search(script.get_text())
        if m:
            return m.group(1)
    for el in soup.find_all(onclick=True):
        m = _JS_ASSIGN_RE.search(el["onclick"])
        if m:
            return m.group(1)
    return None


def _from_delete_handler(soup: BeautifulSoup, kind: ResourceKind, record_hint: str | None) -> str | None:
    if record_hint:
        suffix = f"/{kind.collection}/{record_hint}"
        anchors = [a for a in soup.find_all("a", href=True, onclick=True)
                   if href_path(a["href"]).endswith(suffix)]
    else:
        needle = f"/{kind.collection}/"
        anchors = [a for a in soup.find_all("a", href=True, onclick=True)
                   if needle in href_path(a["href"])]
    for a in anchors:
        m = _DOM_BUILD_RE.search(a["onclick"])
        if m:
            return m.group(1)
    return None


Strategy = Callable[[BeautifulSoup, ResourceKind, "str | None"], "str | None"]

STRATEGIES: tuple[tuple[str, Strategy], ...] = (
    ("form-field", _from_input),
    ("meta-tag", _from_meta),
    ("inline-script", _from_inline_script),
    ("delete-handler", _from_delete_handler),
)


def extract_record_id(html, kind: ResourceKind, record_hint: str | None = None) -> str | None:
    """
    Return the server-side record id from the kind's edit form.

    The id in the edit URL and the ``{namespace}[id]`` value the form
    expects can differ, so the form value wins when present.  Falls back
    to *record_hint*.
    """
    soup = parse_html(html)
    field_name = f"{kind.namespace}[id]"
    scopes = [f for f in soup.find_all("form")
              if f"/{kind.collection}" in (f.get("action") or "")]
    scopes.append(soup)
    for scope in scopes:
        el = scope.find("input", attrs={"name": field_name})
        if el is not None and (el.get("value") or "").strip():
            return el["value"].strip()
    return str(record_hint) if record_hint is not None else None


def extract_token(html, kind: ResourceKind, record_hint: str | None = None) -> ExtractedToken:
    """
    Pull the CSRF token (and record id, where the page has one) out of *html*.

    Raises :class:`TokenNotFound` when no strategy matches.
    """
    soup = parse_html(html)
    hint = str(record_hint) if record_hint is not None else None
    for name, strategy in STRATEGIES:
        token = strategy(soup, kind, hint)
        if token and token.strip():
            token = token.strip()
            log.debug("CSRF token found via %s: %s", name, short_token(token))
            return ExtractedToken(
                token=token,
                record_id=extract_record_id(soup, kind, hint),
                strategy=name,
            )
    raise TokenNotFound(
        f"Could not locate a CSRF token in the {kind.short_name} page markup",
        excerpt=str(soup)[:500],
    )
