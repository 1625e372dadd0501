"""
Batch processing worker.

Drives one batch of pending images through the extraction backend, one image
at a time, and reconciles the results into the in-memory records and the
image store. A failing image is recorded as an error and never stops the rest
of the batch.
"""

from __future__ import annotations

from dataclasses import dataclass
from enum import Enum
from typing import Callable, Iterator, Sequence
import logging
import time

from luminarias.config import BATCH_SIZE
from luminarias.errors import MissingCredential
from luminarias.extraction import ExtractionBackend
from luminarias.models import NOT_FOUND_TEXT, ImageRecord, ProcessingStatus
from luminarias.store import ImageStore

from .coordinator import pending_records, select_batch

logger = logging.getLogger(__name__)

UNKNOWN_ERROR_MESSAGE = "Error desconocido"


class EventKind(str, Enum):
    BATCH_STARTED = "batch_started"
    ITEM_PROCESSING = "item_processing"
    ITEM_DONE = "item_done"
    BATCH_COMPLETED = "batch_completed"


@dataclass
class BatchSummary:
    """
    Aggregate result of one run.

    Attributes:
        attempted: Images that went through the extraction backend
        succeeded: Images that ended in success (code or "No encontrado")
        failed: Images that ended in error
        found: Successful images with a real code
        elapsed_seconds: Wall-clock duration of the run
    """

    attempted: int
    succeeded: int
    failed: int
    found: int
    elapsed_seconds: float


@dataclass(frozen=True)
class ProgressEvent:
    """
    One observable step of a run.

    `position` is 1-based within the batch for item events and 0 for
    batch-level events. `summary` is only set on BATCH_COMPLETED.
    """

    kind: EventKind
    position: int
    total: int
    record: ImageRecord | None = None
    summary: BatchSummary | None = None


ProgressCallback = Callable[[ProgressEvent], None]


def failure_message(exc: BaseException) -> str:
    """Human-readable message for a failed extraction."""
    return str(exc).strip() or UNKNOWN_ERROR_MESSAGE


class BatchPipeline:
    """
    Sequential, single-run-at-a-time batch processor.

    Parameters:
        store: Durable mirror written after every finished image
        backend: Extraction backend called once per image
        batch_size: Maximum images per run
        on_progress: Optional callback receiving every ProgressEvent

    Example:
        >>> pipeline = BatchPipeline(store, GeminiBackend())
        >>> for event in pipeline.run_batch(workspace.records, api_key):
        ...     print(event.kind, event.position, event.total)
    """

    def __init__(
        self,
        store: ImageStore,
        backend: ExtractionBackend,
        *,
        batch_size: int = BATCH_SIZE,
        on_progress: ProgressCallback | None = None,
    ) -> None:
        if batch_size < 1:
            raise ValueError("batch_size must be at least 1")
        self.store = store
        self.backend = backend
        self.batch_size = batch_size
        self.on_progress = on_progress
        self._running = False

    @property
    def running(self) -> bool:
        return self._running

    def run_batch(
        self,
        records: Sequence[ImageRecord],
        credential: str | None,
    ) -> Iterator[ProgressEvent]:
        """
        Start a run over the pending records.

        The credential is checked immediately; everything else happens lazily
        while the returned iterator is consumed. The batch is selected when
        iteration starts. A run that is abandoned part way leaves its current
        image in `processing` in memory only; the store still holds it as
        pending.

        Parameters:
            records: All records in ingestion order (mutated in place)
            credential: API key for the extraction backend

        Returns:
            Iterator of progress events (empty when there is nothing to do
            or a run is already in flight)

        Raises:
            MissingCredential: If the credential is empty or absent
        """
        if not credential or not credential.strip():
            raise MissingCredential()

        if self._running:
            logger.info("batch_already_running")
            return iter(())

        if not pending_records(records):
            logger.info("batch_nothing_pending")
            return iter(())

        return self._run(records, credential.strip())

    def run_to_completion(
        self,
        records: Sequence[ImageRecord],
        credential: str | None,
    ) -> BatchSummary | None:
        """Consume a whole run and return its summary (None for a no-op run)."""
        summary = None
        for event in self.run_batch(records, credential):
            if event.kind is EventKind.BATCH_COMPLETED:
                summary = event.summary
        return summary

    def _emit(self, event: ProgressEvent) -> ProgressEvent:
        if self.on_progress is not None:
            self.on_progress(event)
        return event

    def _run(
        self,
        records: Sequence[ImageRecord],
        credential: str,
    ) -> Iterator[ProgressEvent]:
        if self._running:
            return
        self._running = True
        try:
            batch = select_batch(records, self.batch_size)
            if not batch:
                return

            total = len(batch)
            start_time = time.perf_counter()
            succeeded = failed = found = 0

            logger.info("batch_started", extra={"batch_size": total})
            yield self._emit(ProgressEvent(EventKind.BATCH_STARTED, 0, total))

            for position, record in enumerate(batch, start=1):
                record.mark_processing()
                yield self._emit(
                    ProgressEvent(EventKind.ITEM_PROCESSING, position, total, record)
                )

                self._extract_into(record, credential)
                self.store.put(record)

                if record.status is ProcessingStatus.SUCCESS:
                    succeeded += 1
                    if record.found:
                        found += 1
                else:
                    failed += 1

                yield self._emit(
                    ProgressEvent(EventKind.ITEM_DONE, position, total, record)
                )

            summary = BatchSummary(
                attempted=total,
                succeeded=succeeded,
                failed=failed,
                found=found,
                elapsed_seconds=time.perf_counter() - start_time,
            )
            logger.info(
                "batch_completed",
                extra={
                    "attempted": summary.attempted,
                    "succeeded": summary.succeeded,
                    "failed": summary.failed,
                    "found": summary.found,
                    "elapsed_seconds": round(summary.elapsed_seconds, 3),
                },
            )
            yield self._emit(
                ProgressEvent(EventKind.BATCH_COMPLETED, 0, total, summary=summary)
            )
        finally:
            self._running = False

    def _extract_into(self, record: ImageRecord, credential: str) -> None:
        t0 = time.perf_counter()
        try:
            text = self.backend.extract_code(record.data, record.mime_type, credential)
        except Exception as e:
            record.mark_error(failure_message(e))
            logger.warning(
                "item_failed",
                extra={
                    "image_id": record.id,
                    "file_name": record.file_name,
                    "error": record.extracted_code,
                },
            )
            return

        code = (text or "").strip() or NOT_FOUND_TEXT
        record.mark_success(code)
        logger.info(
            "item_succeeded",
            extra={
                "image_id": record.id,
                "code": code,
                "found": record.found,
                "elapsed_ms": int((time.perf_counter() - t0) * 1000),
            },
        )
