"""Sequential multi-file runs on top of :class:`RetryOrchestrator`."""

from __future__ import annotations

from dataclasses import dataclass
from typing import Callable

from .errors import ApplianceError, BatchAborted
from .logging_setup import log
from .models import BatchResult, OperationResult, Outcome, Payload, ResourceKind

FileCompleteCallback = Callable[["BatchItem", OperationResult, int, int], None]


@dataclass(frozen=True)
class BatchItem:
    kind: ResourceKind
    payload: Payload

    @property
    def label(self) -> str:
        return self.payload.filename or str(self.payload.record_id)


class BatchCoordinator:
    def __init__(self, orchestrator) -> None:
        self.orchestrator = orchestrator

    def run_batch(
        self,
        items: list[BatchItem],
        continue_on_error: bool = False,
        on_progress: Callable[[float, str], None] | None = None,
        on_file_complete: FileCompleteCallback | None = None,
        max_retries: int | None = None,
    ) -> BatchResult:
        """
        Run *items* one after another, each to completion before the next.

        Overall progress for item *i* of *n* is ``i / n * 100 + sub / n``.
        With ``continue_on_error=False`` the first failure raises
        :class:`BatchAborted` carrying the partial result; items after it
        are not attempted.  *max_retries* of None leaves the orchestrator's
        own setting in force.
        """
        total = len(items)
        batch = BatchResult(total_files=total)

        for index, item in enumerate(items):
            def _sub_progress(sub: float, message: str, _index=index, _item=item) -> None:
                if on_progress is not None:
                    overall = (_index / total) * 100 + sub / total
                    on_progress(overall, f"[{_index + 1}/{total}] {_item.label}: {message}")

            log.info("Batch item %d/%d: %s %s", index + 1, total,
                     item.kind.short_name, item.label)
            try:
                result = self.orchestrator.run(
                    item.kind, item.payload,
                    max_retries=max_retries, on_progress=_sub_progress,
                )
            except ApplianceError as exc:
                result = OperationResult(
                    success=False,
                    http_status=exc.status,
                    message=exc.message,
                    attempts=0,
                    outcome=Outcome.FAILED,
                    error_kind=exc.kind,
                    kind=item.kind,
                    operation=item.payload.operation,
                    filename=item.payload.filename,
                )

            batch.results.append(result)
            if on_file_complete is not None:
                on_file_complete(item, result, index, total)

            if not result.success and not continue_on_error:
                batch.aborted = True
                log.error("Batch aborted at %s: %s", item.label, result.message)
                raise BatchAborted(
                    f"Batch aborted at file {index + 1}/{total} ({item.label}): {result.message}",
                    batch,
                )

        if on_progress is not None:
            on_progress(100.0, "Batch complete")
        log.info("Batch finished: %d succeeded, %d failed",
                 batch.success_count, batch.failure_count)
        return batch
