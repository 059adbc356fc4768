"""
prosbc_files.client
===================
:class:`ApplianceClient` is the explicitly constructed connection to one
appliance.  It owns the ``requests`` session, the :class:`SessionManager`
and the :class:`TransportClient`, and implements the read side (listing,
export, reachability) plus the token-source policy used by writes.
"""

from __future__ import annotations

from pathlib import Path

import requests

from .config import (
    DASHBOARD_URL,
    DEFAULT_FILE_DB_ID,
    EDIT_FORM_URL,
    EXPORT_URL,
    LISTING_PAGE,
    REQUEST_TIMEOUT,
    STATUS_TIMEOUT,
)
from .errors import ApplianceError, SessionError, TokenNotFound
from .extract import extract_form_content, extract_token, parse_file_table, parse_html
from .forms import token_source_path
from .logging_setup import log, short_token
from .models import ExtractedToken, Operation, ResourceDescriptor, ResourceKind
from .session import SessionManager, base_url, build_session
from .transport import TransportClient


class ApplianceClient:
    """
    Connection to one ProSBC file database.

    Usage::

        client = ApplianceClient("https://sbc.example.net", "admin", "secret")
        for f in client.list_files(ResourceKind.DIGIT_MAP_FILE):
            print(f.remote_id, f.display_name)
    """

    def __init__(
        self,
        url: str,
        username: str,
        password: str,
        file_db_id: int = DEFAULT_FILE_DB_ID,
        verify_ssl: bool = True,
        timeout: float = REQUEST_TIMEOUT,
        session: requests.Session | None = None,
    ) -> None:
        self.base = base_url(url)
        self.username = username
        self.file_db_id = file_db_id
        self.http = session if session is not None else build_session(username, password, verify_ssl)
        self.sessions = SessionManager()
        self.transport = TransportClient(self.http, self.base, timeout=timeout)

    def __enter__(self) -> "ApplianceClient":
        return self

    def __exit__(self, *exc) -> None:
        self.close()

    def close(self) -> None:
        self.http.close()

    # ------------------------------------------------------------------
    # Paths
    # ------------------------------------------------------------------

    def listing_path(self) -> str:
        return LISTING_PAGE.format(db=self.file_db_id)

    def edit_form_path(self, kind: ResourceKind, record_id: str) -> str:
        return EDIT_FORM_URL.format(db=self.file_db_id, collection=kind.collection, id=record_id)

    def export_path(self, kind: ResourceKind, record_id: str) -> str:
        return EXPORT_URL.format(db=self.file_db_id, collection=kind.collection, id=record_id)

    # ------------------------------------------------------------------
    # Session
    # ------------------------------------------------------------------

    def invalidate_session(self) -> None:
        """Mark the session stale and drop cookies so the next GET starts fresh."""
        self.sessions.invalidate()
        self.http.cookies.clear()

    def reset_session(self) -> None:
        self.http.cookies.clear()
        self.sessions = SessionManager(self.sessions.ttl_seconds)
        log.info("Session reset")

    def form_token(self, kind: ResourceKind, op: Operation,
                   record_id: str | None = None) -> ExtractedToken:
        """
        Fetch a fresh CSRF token for *op* on *kind*.

        Creates read the ``/new`` form; updates read the record's edit form,
        which also supplies the id the form expects.  Deletes try the
        ``/new`` form and fall back to the delete link on the listing page.
        """
        source = token_source_path(op, kind, record_id, self.file_db_id)
        page = self.transport.fetch_page(source, referer=self.listing_path())
        try:
            extracted = extract_token(page, kind, record_hint=record_id)
        except TokenNotFound:
            if op is not Operation.DELETE:
                raise
            log.debug("No token on the %s new form; trying the listing page", kind.short_name)
            page = self.transport.fetch_page(self.listing_path())
            extracted = extract_token(page, kind, record_hint=record_id)

        self.sessions.record_success(extracted.token)
        log.debug("%s %s token: %s (record id %s)", op.value, kind.short_name,
                  short_token(extracted.token), extracted.record_id)
        return extracted

    # ------------------------------------------------------------------
    # Reads
    # ------------------------------------------------------------------

    def list_files(self, kind: ResourceKind) -> list[ResourceDescriptor]:
        page = self.transport.fetch_page(self.listing_path())
        files = parse_file_table(page, kind)
        log.info("Found %d %s file(s)", len(files), kind.short_name)
        return files

    def list_all(self) -> dict[ResourceKind, list[ResourceDescriptor]]:
        """Both kinds' listings, parsed from a single fetch of the listing page."""
        soup = parse_html(self.transport.fetch_page(self.listing_path()))
        result = {kind: parse_file_table(soup, kind) for kind in ResourceKind}
        log.info(
            "Found %d DF and %d DM file(s)",
            len(result[ResourceKind.DEFINITION_FILE]),
            len(result[ResourceKind.DIGIT_MAP_FILE]),
        )
        return result

    def find_file(self, kind: ResourceKind, name_or_id: str) -> ResourceDescriptor | None:
        """Look a record up by remote id or display name."""
        needle = str(name_or_id)
        for f in self.list_files(kind):
            if needle in (f.remote_id, f.display_name):
                return f
        return None

    def fetch_content(self, kind: ResourceKind, record_id: str) -> str:
        """
        Return a record's file content.

        The export endpoint is tried first.  Any failure other than a
        session error falls back to the content embedded in the edit
        form; if that yields nothing the export error is re-raised.
        """
        try:
            resp = self.transport.fetch(self.export_path(kind, record_id),
                                        referer=self.listing_path())
            ct = resp.headers.get("Content-Type", "").lower()
            text = resp.text
            if "html" in ct and "<html" in text.lower():
                raise ApplianceError(
                    f"Export of {kind.short_name} {record_id} returned an HTML page",
                    status=resp.status_code,
                    excerpt=text[:500],
                )
            log.debug("Exported %s %s (%d chars)", kind.short_name, record_id, len(text))
            return text
        except SessionError:
            raise
        except ApplianceError as exc:
            log.warning("Export failed (%s); falling back to the edit form", exc.message)
            page = self.transport.fetch_page(self.edit_form_path(kind, record_id),
                                             referer=self.listing_path())
            content = extract_form_content(page)
            if content is None:
                raise
            return content

    def export_to(self, kind: ResourceKind, record_id: str, path: "str | Path") -> Path:
        """Write a record's content to *path* and return the path."""
        dest = Path(path)
        dest.parent.mkdir(parents=True, exist_ok=True)
        content = self.fetch_content(kind, record_id)
        dest.write_text(content, encoding="utf-8")
        log.info("Saved %s %s → %s", kind.short_name, record_id, dest)
        return dest

    def get_system_status(self) -> dict:
        """Check the dashboard; never raises for network failures."""
        url = self.transport.url_for(DASHBOARD_URL)
        try:
            resp = self.http.get(url, timeout=STATUS_TIMEOUT)
        except requests.RequestException as exc:
            log.debug("Status check failed: %s", exc)
            return {"is_online": False, "status": "offline", "status_code": None, "error": str(exc)}
        online = resp.ok
        return {
            "is_online": online,
            "status": "online" if online else "error",
            "status_code": resp.status_code,
        }
