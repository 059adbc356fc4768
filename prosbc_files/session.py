"""HTTP session factory and presumed-session state for the ProSBC client."""

from __future__ import annotations

import base64
from datetime import datetime, timezone

import requests
from requests.adapters import HTTPAdapter
from urllib3.util.retry import Retry

from .config import SESSION_TTL_SECONDS
from .logging_setup import log, short_token
from .models import SessionState


def build_session(username: str, password: str, verify_ssl: bool = True) -> requests.Session:
    """
    Return a requests.Session with Basic auth, keep-alive and connection
    retries pre-configured.

    The adapter only retries idempotent methods; form POSTs are never
    replayed at this level because a replayed write could apply twice.
    """
    session = requests.Session()
    retry = Retry(
        total=2,
        backoff_factor=0.5,
        status_forcelist=[502, 503, 504],
        allowed_methods=frozenset({"GET", "HEAD"}),
        raise_on_status=False,
    )
    adapter = HTTPAdapter(max_retries=retry)
    session.mount("http://", adapter)
    session.mount("https://", adapter)
    session.verify = verify_ssl
    session.headers.update({
        "User-Agent": (
            "Mozilla/5.0 (Windows NT 10.0; Win64; x64) "
            "AppleWebKit/537.36 (KHTML, like Gecko) "
            "Chrome/138.0.0.0 Safari/537.36"
        ),
        "Accept": "text/html,application/xhtml+xml,application/xml;q=0.9,*/*;q=0.8",
        "Cache-Control": "no-cache",
        "Pragma": "no-cache",
        "Connection": "keep-alive",
        "Authorization": basic_auth_header(username, password),
    })
    return session


def basic_auth_header(username: str, password: str) -> str:
    """``Basic base64(user:pass)`` over the UTF-8 bytes of the credentials."""
    raw = f"{username}:{password}".encode("utf-8")
    return "Basic " + base64.b64encode(raw).decode("ascii")


def base_url(url: str) -> str:
    """Normalise a configured appliance address: default to https, no trailing slash."""
    url = (url or "").strip()
    if not url:
        raise ValueError("Invalid URL: appliance base URL is empty")
    if not url.startswith(("http://", "https://")):
        url = "https://" + url
    return url.rstrip("/")


class SessionManager:
    """
    Tracks whether the current session and CSRF token are presumed valid.

    Pure in-memory state.  The retry layer calls :meth:`invalidate` once
    per session-classified failure; the next successful token extraction
    calls :meth:`record_success` and overwrites the state.
    """

    def __init__(self, ttl_seconds: float = SESSION_TTL_SECONDS) -> None:
        self.ttl_seconds = ttl_seconds
        self.state = SessionState()
        self.invalidations = 0

    def is_presumed_valid(self) -> bool:
        st = self.state
        if st.presumed_expired or not st.token or st.last_validated_at is None:
            return False
        age = (datetime.now(timezone.utc) - st.last_validated_at).total_seconds()
        return age <= self.ttl_seconds

    def invalidate(self) -> None:
        self.invalidations += 1
        self.state = SessionState(
            token=None,
            last_validated_at=self.state.last_validated_at,
            presumed_expired=True,
        )
        log.debug("Session invalidated (%d so far)", self.invalidations)

    def record_success(self, token: str) -> None:
        self.state = SessionState(
            token=token,
            last_validated_at=datetime.now(timezone.utc),
            presumed_expired=False,
        )
        log.debug("Session token recorded: %s", short_token(token))

    def time_remaining(self) -> float:
        """Seconds left before the session is presumed stale (0 when unknown)."""
        if self.state.last_validated_at is None:
            return 0.0
        age = (datetime.now(timezone.utc) - self.state.last_validated_at).total_seconds()
        return max(0.0, self.ttl_seconds - age)

    def info(self) -> dict:
        return {
            "has_token": bool(self.state.token),
            "presumed_valid": self.is_presumed_valid(),
            "presumed_expired": self.state.presumed_expired,
            "last_validated_at": self.state.last_validated_at,
            "time_remaining": self.time_remaining(),
            "invalidations": self.invalidations,
        }

    def status_summary(self) -> str:
        if not self.state.token:
            return "Session expired" if self.state.presumed_expired else "No session"
        if not self.is_presumed_valid():
            return "Session expired"
        minutes = int(self.time_remaining() // 60)
        if minutes < 5:
            return f"Session expiring soon ({minutes}m remaining)"
        return f"Session active ({minutes}m remaining)"
