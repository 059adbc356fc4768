"""
prosbc_files.extract.listing
============================
Scrapes the file-database listing page (``/file_dbs/<db>/edit``).

The page holds one ``<fieldset>`` per resource kind, each introduced by a
``<legend>`` such as ``Routesets Definition:``.  Rows are only read from
inside the matching fieldset, so a Digit Map row can never leak into a
Definition listing.  Each row looks like::

    <tr>
      <td>name.csv</td>
      <td><a href="/file_dbs/1/routesets_definitions/5/edit">Update</a></td>
      <td><a href="/file_dbs/1/routesets_definitions/5/export">Export</a></td>
      <td><a href="/file_dbs/1/routesets_definitions/5" onclick="…">Delete</a></td>
    </tr>
"""

from __future__ import annotations

import re

from bs4 import BeautifulSoup, Tag

from ..logging_setup import log
from ..models import ResourceDescriptor, ResourceKind
from .html import href_path, norm_label, parse_html, text_of


def _path_re(kind: ResourceKind) -> re.Pattern:
    return re.compile(
        rf"^/file_dbs/(\d+)/{re.escape(kind.collection)}/(\d+)(/edit|/export)?$"
    )


def find_section(soup: BeautifulSoup, label: str) -> Tag | None:
    """
    Return the fieldset whose legend matches *label*.

    An exact (normalised) legend match is preferred; otherwise a legend
    that contains the label, or is contained by it, is accepted.
    """
    wanted = norm_label(label)
    legends = soup.find_all("legend")
    log.debug("Legends on listing page: %s", [text_of(lg) for lg in legends])

    fuzzy = None
    for legend in legends:
        got = norm_label(text_of(legend))
        if not got:
            continue
        if got == wanted:
            return legend.find_parent("fieldset")
        if fuzzy is None and (wanted in got or got in wanted):
            fuzzy = legend
    if fuzzy is not None:
        log.debug("Fuzzy legend match %r for section %r", text_of(fuzzy), label)
        return fuzzy.find_parent("fieldset")
    return None


def _parse_row(row: Tag, kind: ResourceKind, path_re: re.Pattern) -> ResourceDescriptor | None:
    cells = row.find_all("td")
    if not cells:
        return None
    name = text_of(cells[0])

    links: dict[str, tuple[str, str, str]] = {}
    for a in row.find_all("a", href=True):
        path = href_path(a["href"])
        m = path_re.match(path)
        if not m:
            continue
        db_id, record_id, suffix = m.group(1), m.group(2), m.group(3) or ""
        action = {"/edit": "edit", "/export": "export"}.get(suffix, "delete")
        links[action] = (db_id, record_id, path)

    if "edit" not in links or not name:
        return None

    db_id, record_id, edit_path = links["edit"]
    export_path = links.get("export", (db_id, record_id, f"{edit_path[:-len('/edit')]}/export"))[2]
    delete_path = links.get("delete", (db_id, record_id, edit_path[:-len("/edit")]))[2]
    return ResourceDescriptor(
        kind=kind,
        remote_id=record_id,
        display_name=name,
        edit_path=edit_path,
        export_path=export_path,
        delete_path=delete_path,
        file_db_id=int(db_id),
    )


def parse_file_table(html, kind: ResourceKind, section_label: str | None = None) -> list[ResourceDescriptor]:
    """
    Return the descriptors listed in *kind*'s section of the listing page.

    *section_label* defaults to the kind's own legend text.  A missing
    section yields an empty list.
    """
    soup = parse_html(html)
    label = section_label or kind.section_label
    section = find_section(soup, label)
    if section is None:
        log.warning("Section %r not found on listing page", label)
        return []

    path_re = _path_re(kind)
    files = []
    for row in section.find_all("tr"):
        descriptor = _parse_row(row, kind, path_re)
        if descriptor is not None:
            files.append(descriptor)

    log.debug("Parsed %d file(s) from section %r", len(files), label)
    return files
