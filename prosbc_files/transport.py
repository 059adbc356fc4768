"""
prosbc_files.transport
======================
Single-shot HTTP execution and outcome classification.

:meth:`TransportClient.send` submits one :class:`FormRequest` and turns
whatever comes back into an :class:`OperationResult`.  It never retries;
that is the orchestrator's job.  The appliance reports success in
several ways, checked in this order:

1. 2xx whose body carries a positive marker (``imported``,
   ``successfully`` …) is a confirmed success.
2. 3xx is a success: the appliance redirects to the listing after a
   write.  A redirect to the login page is the exception.
3. A transport error whose text matches a cross-origin failure
   (``Failed to fetch``, ``NetworkError``, ``CORS``) is reported as an
   ``opaque_redirect`` success with heuristic confidence.  Behind a
   cross-origin proxy a completed redirect surfaces exactly like this,
   but so can a request that never arrived; callers can tell the two
   confidences apart.
4. 4xx/5xx is a structured failure, enriched with any error text found
   in the body.

:meth:`TransportClient.fetch` is the read-side counterpart used for
forms, the listing page and exports; it raises typed errors instead.
"""

from __future__ import annotations

import urllib.parse

import requests

from .config import (
    EXCERPT_LENGTH,
    INVALID_TOKEN_MARKERS,
    LOGIN_MARKERS,
    LOGIN_PATH_RE,
    OPAQUE_REDIRECT_PATTERNS,
    POSITIVE_MARKERS,
    REQUEST_TIMEOUT,
)
from .errors import (
    ConnectionRefused,
    NetworkError,
    RequestTimeout,
    SessionError,
    describe_failure,
    error_for_status,
)
from .extract.fragments import extract_error_fragments
from .logging_setup import log
from .models import (
    Confidence,
    ErrorKind,
    FormRequest,
    OperationResult,
    Operation,
    Outcome,
)

_DONE_WORDS = {
    Operation.CREATE: "uploaded",
    Operation.UPDATE: "updated",
    Operation.DELETE: "deleted",
}

OPAQUE_NOTE = (
    "Confirmation was blocked by cross-origin policy; success is assumed, "
    "not confirmed"
)


def _innermost(exc: BaseException) -> BaseException:
    """
    Follow requests/urllib3 wrappers down to the underlying cause.

    ``requests.ConnectionError`` wraps a urllib3 ``MaxRetryError`` whose
    ``reason`` is the socket-level error; the outer texts carry the pool,
    host and URL.
    """
    seen = set()
    while id(exc) not in seen:
        seen.add(id(exc))
        inner = getattr(exc, "reason", None)
        if not isinstance(inner, BaseException):
            if exc.args and isinstance(exc.args[0], BaseException):
                inner = exc.args[0]
            else:
                inner = exc.__cause__
        if inner is None:
            break
        exc = inner
    return exc


def looks_like_opaque_redirect(exc: BaseException, *ignore: str) -> bool:
    """
    True when the innermost error text reads like a browser-style
    cross-origin block.  Strings in *ignore* (host, URL) are removed first
    so an address containing ``cors`` never matches.
    """
    text = str(_innermost(exc)).lower()
    for value in ignore:
        if value:
            text = text.replace(value.lower(), "")
    return any(p in text for p in OPAQUE_REDIRECT_PATTERNS)


def _looks_refused(exc: BaseException) -> bool:
    text = str(exc).lower()
    return "refused" in text or "errno 111" in text or "econnrefused" in text


def is_login_page(text: str) -> bool:
    lower = text.lower()
    return any(marker in lower for marker in LOGIN_MARKERS)


def is_session_expired(resp: requests.Response) -> bool:
    """
    Return True when *resp* is the appliance's login page rather than the
    page asked for.

    A final URL on the login path is the most reliable signal.  The body
    check only runs for HTML, since exported CSV data can contain any text.
    """
    final_path = urllib.parse.urlparse(resp.url or "").path
    if LOGIN_PATH_RE.search(final_path):
        return True
    ct = resp.headers.get("Content-Type", "").split(";")[0].strip().lower()
    if ct and ct not in ("text/html", "application/xhtml+xml"):
        return False
    return is_login_page(resp.text or "")


class TransportClient:
    """Executes requests against one appliance over a shared session."""

    def __init__(self, session: requests.Session, base: str, timeout: float = REQUEST_TIMEOUT) -> None:
        self.session = session
        self.base = base
        self.timeout = timeout

    def url_for(self, path: str) -> str:
        return urllib.parse.urljoin(self.base + "/", path.lstrip("/"))

    # ------------------------------------------------------------------
    # Writes
    # ------------------------------------------------------------------

    def send(self, request: FormRequest) -> OperationResult:
        url = self.url_for(request.path)
        headers = dict(request.headers)
        referer = headers.get("Referer", "")
        if referer.startswith("/"):
            headers["Referer"] = self.url_for(referer)

        # Plain fields go as text parts so the body is multipart even
        # for deletes, matching what the browser form submits.
        parts: dict = {name: (None, value) for name, value in request.fields.items()}
        parts.update(request.files)

        log.debug("%s %s (%d part(s))", request.method, url, len(parts))
        try:
            resp = self.session.request(
                request.method,
                url,
                files=parts,
                headers=headers,
                timeout=self.timeout,
                allow_redirects=False,
            )
        except requests.Timeout as exc:
            log.warning("Request to %s timed out: %s", url, exc)
            return self._exception_failure(request, ErrorKind.TIMEOUT, exc)
        except requests.ConnectionError as exc:
            if _looks_refused(exc):
                log.warning("Connection to %s refused: %s", url, exc)
                return self._exception_failure(request, ErrorKind.CONNECTION_REFUSED, exc)
            host = urllib.parse.urlparse(url).hostname or ""
            if looks_like_opaque_redirect(exc, url, host, request.path):
                return self._opaque_success(request, exc)
            log.warning("Connection to %s failed: %s", url, exc)
            return self._exception_failure(request, ErrorKind.NETWORK, exc)
        except requests.RequestException as exc:
            log.warning("Request to %s failed: %s", url, exc)
            return self._exception_failure(request, ErrorKind.NETWORK, exc)
        except TypeError as exc:
            # Some transports surface a blocked cross-origin redirect as a TypeError
            if looks_like_opaque_redirect(exc):
                return self._opaque_success(request, exc)
            raise

        log.debug("  ← HTTP %s", resp.status_code)
        return self.classify(resp, request)

    def classify(self, resp: requests.Response, request: FormRequest | None = None) -> OperationResult:
        """Turn a raw write response into an :class:`OperationResult`."""
        status = resp.status_code
        body = resp.text or ""
        excerpt = body[:EXCERPT_LENGTH] or None
        lower = body.lower()
        done = _DONE_WORDS.get(request.operation if request else None, "processed")
        base = self._result_base(request)

        if 300 <= status < 400:
            location = resp.headers.get("Location", "")
            if LOGIN_PATH_RE.search(urllib.parse.urlparse(location).path):
                return self._failure(base, status, ErrorKind.SESSION,
                                     "Session expired - redirected to login page", excerpt)
            return OperationResult(
                success=True,
                http_status=status,
                message=f"File {done} successfully (HTTP {status} redirect received)",
                raw_response_excerpt=excerpt,
                outcome=Outcome.REDIRECT,
                confidence=Confidence.CONFIRMED,
                redirect_url=location or None,
                **base,
            )

        if 200 <= status < 300:
            if is_login_page(body):
                return self._failure(base, status, ErrorKind.SESSION,
                                     "Session expired - redirected to login page", excerpt)
            if any(marker in lower for marker in POSITIVE_MARKERS):
                return OperationResult(
                    success=True,
                    http_status=status,
                    message=f"File {done} successfully",
                    raw_response_excerpt=excerpt,
                    outcome=Outcome.CONFIRMED,
                    confidence=Confidence.CONFIRMED,
                    **base,
                )
            fragments = extract_error_fragments(body)
            if fragments:
                return self._failure(base, status, ErrorKind.VALIDATION,
                                     "Validation failed: " + "; ".join(fragments), excerpt,
                                     details="\n".join(fragments))
            return OperationResult(
                success=True,
                http_status=status,
                message=f"File {done} - no explicit confirmation in response",
                raw_response_excerpt=excerpt,
                outcome=Outcome.UNVERIFIED,
                confidence=Confidence.HEURISTIC,
                note="Please verify the result on the appliance",
                **base,
            )

        if status == 422 and any(m in lower for m in INVALID_TOKEN_MARKERS):
            return self._failure(base, status, ErrorKind.SESSION,
                                 "Invalid authenticity token - session expired", excerpt)

        exc_cls, message = error_for_status(status)
        fragments = extract_error_fragments(body)
        if fragments:
            message = f"{message}: {'; '.join(fragments)}"
        return self._failure(base, status, exc_cls.kind, f"{message} (HTTP {status})", excerpt,
                             details="\n".join(fragments) or None)

    # ------------------------------------------------------------------
    # Reads
    # ------------------------------------------------------------------

    def fetch(self, path: str, referer: str | None = None) -> requests.Response:
        """
        GET *path* and return the response, raising a typed
        :class:`~prosbc_files.errors.ApplianceError` on failure.
        """
        url = self.url_for(path)
        headers = {"Referer": self.url_for(referer)} if referer else {}
        log.debug("GET %s", url)
        try:
            resp = self.session.get(url, headers=headers, timeout=self.timeout, allow_redirects=True)
        except requests.Timeout as exc:
            raise RequestTimeout(describe_failure(ErrorKind.TIMEOUT)[0], details=str(exc)) from exc
        except requests.ConnectionError as exc:
            if _looks_refused(exc):
                raise ConnectionRefused(describe_failure(ErrorKind.CONNECTION_REFUSED)[0],
                                        details=str(exc)) from exc
            raise NetworkError(f"Network error fetching {path}: {exc}", details=str(exc)) from exc
        except requests.RequestException as exc:
            raise NetworkError(f"Request for {path} failed: {exc}", details=str(exc)) from exc

        excerpt = (resp.text or "")[:EXCERPT_LENGTH]
        if resp.status_code < 400 and is_session_expired(resp):
            raise SessionError("Session expired - redirected to login page",
                               status=resp.status_code, excerpt=excerpt)
        if resp.status_code >= 400:
            exc_cls, message = error_for_status(resp.status_code)
            raise exc_cls(f"{message}: failed to load {path} (HTTP {resp.status_code})",
                          status=resp.status_code, excerpt=excerpt)
        return resp

    def fetch_page(self, path: str, referer: str | None = None) -> str:
        return self.fetch(path, referer=referer).text

    # ------------------------------------------------------------------
    # Result helpers
    # ------------------------------------------------------------------

    @staticmethod
    def _result_base(request: FormRequest | None) -> dict:
        if request is None:
            return {"kind": None, "operation": None, "filename": None}
        filename = None
        for part in request.files.values():
            filename = part[0]
            break
        return {"kind": request.kind, "operation": request.operation, "filename": filename}

    @staticmethod
    def _failure(base: dict, status: int, kind: ErrorKind, message: str,
                 excerpt: str | None, details: str | None = None) -> OperationResult:
        log.debug("Classified as %s failure: %s", kind.value, message)
        return OperationResult(
            success=False,
            http_status=status,
            message=message,
            raw_response_excerpt=excerpt,
            outcome=Outcome.FAILED,
            error_kind=kind,
            details=details,
            **base,
        )

    def _exception_failure(self, request: FormRequest, kind: ErrorKind,
                           exc: BaseException) -> OperationResult:
        message, _ = describe_failure(kind)
        return self._failure(self._result_base(request), 0, kind, message, None, details=str(exc))

    def _opaque_success(self, request: FormRequest, exc: BaseException) -> OperationResult:
        log.warning(
            "Network error after submit (%s) - treating as an opaque redirect; "
            "result is assumed, not confirmed", exc,
        )
        done = _DONE_WORDS.get(request.operation, "processed")
        return OperationResult(
            success=True,
            http_status=0,
            message=f"File {done} successfully (CORS prevented redirect confirmation)",
            outcome=Outcome.OPAQUE_REDIRECT,
            confidence=Confidence.HEURISTIC,
            note=OPAQUE_NOTE,
            details=str(exc),
            **self._result_base(request),
        )
