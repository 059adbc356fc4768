"""
prosbc_files.extract.fragments
==============================
Pull human-readable text out of appliance responses: validation/error
fragments on failure pages, and file content embedded in edit forms.
"""

from __future__ import annotations

import re

from bs4 import BeautifulSoup

from .html import parse_html, text_of

_ERROR_CLASS_RE = re.compile(r"error", re.I)
_JSON_ERROR_RE = re.compile(r"""error['"]\s*:\s*['"]([^'"]+)""", re.I)


def extract_error_fragments(html) -> list[str]:
    """
    Collect distinct error messages from a failure page, in document order.

    Looks at elements with ``error`` in their class or id
    (``div``/``span``/``li``/``p``/``h2``), Rails ``field_with_errors``
    wrappers, and finally a JSON-style ``"error": "…"`` pair in the raw text.
    """
    if not html:
        return []
    soup = parse_html(html)
    errors: list[str] = []

    def _add(text: str) -> None:
        text = text.strip()
        if text and text not in errors:
            errors.append(text)

    # errorExplanation is a container; its <li> children are the messages
    explanation = soup.find(id="errorExplanation")
    if explanation is not None:
        for li in explanation.find_all("li"):
            _add(text_of(li))

    for tag in ("div", "span", "li", "p", "h2"):
        for el in soup.find_all(tag, class_=_ERROR_CLASS_RE):
            if "field_with_errors" in el.get("class", []):
                continue
            if el.find(["div", "ul"]) is None:
                _add(text_of(el))
        for el in soup.find_all(tag, id=_ERROR_CLASS_RE):
            if el.find(["div", "ul"]) is None:
                _add(text_of(el))

    for wrapper in soup.find_all(class_="field_with_errors"):
        sibling_msg = wrapper.find_next("span")
        if sibling_msg is not None:
            _add(text_of(sibling_msg))

    raw = html if isinstance(html, str) else str(soup)
    m = _JSON_ERROR_RE.search(raw)
    if m:
        _add(m.group(1))

    return errors


def extract_form_content(html) -> str | None:
    """
    Return file content embedded in an edit form, or None.

    The export endpoint is the reliable source for CSV payloads; this is
    the fallback.  Tried in order: the ``[uploaded_data]`` textarea, any
    textarea, an ``[uploaded_data]`` input value, a ``<pre>`` block.
    Entities are decoded by the parser.
    """
    soup: BeautifulSoup = parse_html(html)

    for ta in soup.find_all("textarea"):
        if (ta.get("name") or "").endswith("[uploaded_data]"):
            return ta.get_text()

    ta = soup.find("textarea")
    if ta is not None:
        return ta.get_text()

    for inp in soup.find_all("input"):
        if (inp.get("name") or "").endswith("[uploaded_data]"):
            return inp.get("value", "")

    pre = soup.find("pre")
    if pre is not None:
        return pre.get_text()
    return None
