"""
Batch selection.

Picks the records a single run will work on. A batch is never stored; it is
recomputed from the current pending set at the start of every run.
"""

from __future__ import annotations

from typing import Iterable

from luminarias.config import BATCH_SIZE
from luminarias.models import ImageRecord, ProcessingStatus


def pending_records(records: Iterable[ImageRecord]) -> list[ImageRecord]:
    """Return the pending records, preserving ingestion order."""
    return [r for r in records if r.status is ProcessingStatus.PENDING]


def select_batch(
    records: Iterable[ImageRecord],
    batch_size: int = BATCH_SIZE,
) -> list[ImageRecord]:
    """
    Select up to `batch_size` pending records, first in first processed.

    Parameters:
        records: All records in ingestion order
        batch_size: Upper bound on the batch length

    Returns:
        The records of the batch (the same objects, not copies)

    Example:
        >>> batch = select_batch(workspace.records, batch_size=50)
        >>> print(f"Next run will process {len(batch)} images")
    """
    if batch_size < 1:
        raise ValueError("batch_size must be at least 1")
    return pending_records(records)[:batch_size]
