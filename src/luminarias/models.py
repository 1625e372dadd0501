"""
Pydantic models for ingested fixture photographs.

An ImageRecord is the unit of work for the batch pipeline. The in-memory list
of records is what the CLI renders; the image store keeps a durable mirror of
the same records keyed by id.
"""

from __future__ import annotations

from datetime import datetime, timezone
from enum import Enum
import re
import uuid

from pydantic import BaseModel, ConfigDict, Field

# Literal answer used by the OCR prompt, and the fallback for empty responses.
NOT_FOUND_TEXT = "No encontrado"

_NON_ALNUM = re.compile(r"[^a-z0-9]", re.IGNORECASE)


class ProcessingStatus(str, Enum):
    """Lifecycle of a record: pending -> processing -> success | error."""

    PENDING = "pending"
    PROCESSING = "processing"
    SUCCESS = "success"
    ERROR = "error"

    @property
    def is_terminal(self) -> bool:
        return self in (ProcessingStatus.SUCCESS, ProcessingStatus.ERROR)


def sanitize_code(code: str) -> str:
    """
    Lower-case a code and replace every non-alphanumeric character with `_`.

    Example:
        >>> sanitize_code("AB-12 x")
        'ab_12_x'
    """
    return _NON_ALNUM.sub("_", code).lower()


def is_not_found(code: str | None) -> bool:
    """True when `code` is empty or is the service's "No encontrado" answer."""
    if not code:
        return True
    return sanitize_code(code) == sanitize_code(NOT_FOUND_TEXT)


class ImageRecord(BaseModel):
    """
    One ingested photograph and its extraction state.

    Attributes:
        id: Opaque identifier assigned at ingestion (uuid4 hex)
        file_name: Original file name, including extension
        mime_type: MIME type sent to the OCR service
        data: Original file bytes (kept out of the metadata journal)
        status: Current processing status
        extracted_code: Extracted code on success, error message on error
        found: True only when a real code was extracted
        created_at: Ingestion timestamp (informational)
    """

    model_config = ConfigDict(extra="ignore")

    id: str = Field(default_factory=lambda: uuid.uuid4().hex)
    file_name: str
    mime_type: str = "image/jpeg"
    data: bytes = Field(default=b"", exclude=True, repr=False)
    status: ProcessingStatus = ProcessingStatus.PENDING
    extracted_code: str | None = None
    found: bool = False
    created_at: str = Field(
        default_factory=lambda: datetime.now(timezone.utc).isoformat()
    )

    @property
    def extension(self) -> str:
        """Text after the last `.` of the file name, `jpg` if there is none."""
        _, dot, ext = self.file_name.rpartition(".")
        return ext if dot and ext else "jpg"

    def mark_processing(self) -> None:
        if self.status is not ProcessingStatus.PENDING:
            raise ValueError(
                f"Record {self.id} cannot start processing from {self.status.value}"
            )
        self.status = ProcessingStatus.PROCESSING

    def mark_success(self, code: str) -> None:
        self._finish(ProcessingStatus.SUCCESS, code)
        self.found = not is_not_found(code)

    def mark_error(self, message: str) -> None:
        self._finish(ProcessingStatus.ERROR, message)
        self.found = False

    def _finish(self, status: ProcessingStatus, text: str) -> None:
        if self.status is not ProcessingStatus.PROCESSING:
            raise ValueError(
                f"Record {self.id} cannot move to {status.value} from {self.status.value}"
            )
        self.status = status
        self.extracted_code = text
