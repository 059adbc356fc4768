"""
prosbc_files.orchestrator
=========================
Runs one logical write (create, update or delete) end to end.

Each attempt fetches a fresh token, builds the form and sends it.  A
session-related failure invalidates the session and tries again after a
short delay, up to ``max_retries`` attempts in total; any other failure
ends the run immediately.  Failures are returned as
:class:`OperationResult` values, never raised.  Only one write may run at
a time per orchestrator; a second call raises :class:`BusyError`.
"""

from __future__ import annotations

import time
from collections import deque
from dataclasses import replace
from typing import Callable

from .config import MAX_RETRIES, RETRY_DELAY, UPDATE_HISTORY_SIZE
from .errors import ApplianceError, BusyError, InvalidPayload, describe_failure, is_session_error
from .forms import build_form_request, validate_payload
from .logging_setup import log
from .models import ErrorKind, Operation, OperationResult, Outcome, Payload, ResourceKind

ProgressCallback = Callable[[float, str], None]


def is_session_failure(result: OperationResult) -> bool:
    """True when a failed result should invalidate the session and be retried."""
    if result.success or result.error_kind is ErrorKind.TOKEN_NOT_FOUND:
        return False
    if result.error_kind is ErrorKind.SESSION:
        return True
    return is_session_error(result.message)


class _Progress:
    """Forwards progress to a callback, never letting it go backwards."""

    def __init__(self, callback: ProgressCallback | None) -> None:
        self.callback = callback
        self.value = 0.0

    def __call__(self, percent: float, message: str) -> None:
        self.value = max(self.value, percent)
        if self.callback is not None:
            self.callback(self.value, message)


class RetryOrchestrator:
    def __init__(
        self,
        client,
        max_retries: int = MAX_RETRIES,
        retry_delay: float = RETRY_DELAY,
        history_size: int = UPDATE_HISTORY_SIZE,
    ) -> None:
        self.client = client
        self.max_retries = max_retries
        self.retry_delay = retry_delay
        self.is_updating = False
        self._history: deque[OperationResult] = deque(maxlen=history_size)

    # ------------------------------------------------------------------
    # Entry points
    # ------------------------------------------------------------------

    def run(
        self,
        kind: "ResourceKind | str",
        payload: Payload,
        max_retries: int | None = None,
        on_progress: ProgressCallback | None = None,
    ) -> OperationResult:
        if self.is_updating:
            raise BusyError(describe_failure(ErrorKind.BUSY)[0])

        kind = ResourceKind.parse(kind)
        retries = max(1, max_retries if max_retries is not None else self.max_retries)
        self.is_updating = True
        try:
            result = self._run(kind, payload, retries, _Progress(on_progress))
        finally:
            self.is_updating = False

        self._history.append(result)
        if result.success:
            log.info("%s %s %s: %s", kind.short_name, payload.operation.value,
                     payload.filename or payload.record_id, result.message)
            if result.is_heuristic:
                log.warning("Result is heuristic: %s", result.note)
        else:
            log.error("%s %s %s failed after %d attempt(s): %s", kind.short_name,
                      payload.operation.value, payload.filename or payload.record_id,
                      result.attempts, result.message)
        return result

    def create(self, kind, filename: str, content: bytes, **kwargs) -> OperationResult:
        payload = Payload(Operation.CREATE, filename=filename, content=content)
        return self.run(kind, payload, **kwargs)

    def update(self, kind, record_id: str, filename: str, content: bytes, **kwargs) -> OperationResult:
        payload = Payload(Operation.UPDATE, filename=filename, content=content, record_id=str(record_id))
        return self.run(kind, payload, **kwargs)

    def delete(self, kind, record_id: str, **kwargs) -> OperationResult:
        payload = Payload(Operation.DELETE, record_id=str(record_id))
        return self.run(kind, payload, **kwargs)

    # ------------------------------------------------------------------
    # Core loop
    # ------------------------------------------------------------------

    def _run(self, kind: ResourceKind, payload: Payload, retries: int,
             progress: _Progress) -> OperationResult:
        progress(10, "Validating session and file")
        try:
            validate_payload(payload)
        except InvalidPayload as exc:
            # Nothing was sent
            result = replace(self._from_error(exc, kind, payload), attempts=0)
            progress(100, result.message)
            return result

        result: OperationResult | None = None
        for attempt in range(1, retries + 1):
            try:
                progress(30, "Fetching form and security token")
                extracted = self.client.form_token(kind, payload.operation, payload.record_id)

                progress(40, "Building form request")
                request = build_form_request(
                    payload.operation,
                    kind,
                    payload,
                    extracted.token,
                    record_id=extracted.record_id,
                    file_db_id=self.client.file_db_id,
                )

                progress(50, f"Sending {payload.operation.value} request")
                result = self.client.transport.send(request)
            except ApplianceError as exc:
                result = self._from_error(exc, kind, payload)

            result = replace(result, attempts=attempt)
            if result.success:
                progress(100, result.message)
                return result

            if not is_session_failure(result):
                progress(100, result.message)
                return result

            if attempt < retries:
                log.warning("Session error on attempt %d/%d (%s); refreshing session",
                            attempt, retries, result.message)
                self.client.invalidate_session()
                time.sleep(self.retry_delay)

        progress(100, result.message)
        return result

    @staticmethod
    def _from_error(exc: ApplianceError, kind: ResourceKind, payload: Payload) -> OperationResult:
        return OperationResult(
            success=False,
            http_status=exc.status,
            message=exc.message,
            raw_response_excerpt=exc.excerpt,
            outcome=Outcome.FAILED,
            error_kind=exc.kind,
            details=exc.details,
            kind=kind,
            operation=payload.operation,
            filename=payload.filename,
        )

    # ------------------------------------------------------------------
    # History
    # ------------------------------------------------------------------

    def get_update_history(self) -> list[OperationResult]:
        """Recent results, newest first."""
        return list(reversed(self._history))

    def clear_update_history(self) -> None:
        self._history.clear()

    def get_update_status(self) -> dict:
        last = self._history[-1] if self._history else None
        return {
            "is_updating": self.is_updating,
            "last_update": last.to_dict() if last else None,
            "history_size": len(self._history),
            "session": self.client.sessions.status_summary(),
        }
