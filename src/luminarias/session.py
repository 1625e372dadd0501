"""
In-memory working set.

Workspace owns the ordered list of ImageRecords the CLI shows and keeps it in
step with the image store: ingestion writes new pending records to both,
reload rebuilds the list from the store, and clearing empties both.
"""

from __future__ import annotations

from pathlib import Path
from typing import Iterable, Iterator
import logging
import mimetypes

from .config import BATCH_SIZE
from .extraction import ExtractionBackend
from .models import ImageRecord, ProcessingStatus
from .pipeline.coordinator import pending_records
from .pipeline.worker import BatchPipeline, ProgressCallback, ProgressEvent
from .store import ImageStore

logger = logging.getLogger(__name__)

SUPPORTED_EXTENSIONS = {".jpg", ".jpeg", ".png", ".webp", ".heic", ".heif"}

# Not known to mimetypes on every platform
_MIME_OVERRIDES = {".webp": "image/webp", ".heic": "image/heic", ".heif": "image/heif"}


class Workspace:
    """Ordered in-memory records backed by an ImageStore."""

    def __init__(self, store: ImageStore) -> None:
        self.store = store
        self.records: list[ImageRecord] = []
        self._pipeline: BatchPipeline | None = None

    @classmethod
    def open(cls, root: Path) -> "Workspace":
        """Open the store at `root` and load every persisted record."""
        workspace = cls(ImageStore(root))
        workspace.reload()
        return workspace

    def reload(self) -> None:
        self.records[:] = self.store.get_all()

    def add_bytes(
        self,
        file_name: str,
        data: bytes,
        mime_type: str | None = None,
    ) -> ImageRecord:
        """Ingest one image as a new pending record."""
        if mime_type is None:
            suffix = Path(file_name).suffix.lower()
            mime_type = (
                _MIME_OVERRIDES.get(suffix)
                or mimetypes.guess_type(file_name)[0]
                or "image/jpeg"
            )
        record = ImageRecord(file_name=file_name, mime_type=mime_type, data=data)
        self.store.put(record)
        self.records.append(record)
        logger.info(
            "image_added",
            extra={"image_id": record.id, "file_name": file_name, "bytes": len(data)},
        )
        return record

    def add_files(self, paths: Iterable[Path]) -> list[ImageRecord]:
        """
        Ingest image files in the given order.

        Directories are expanded (sorted, non-recursive). Files without a
        supported image extension are skipped with a warning.

        Returns:
            The newly created records
        """
        added: list[ImageRecord] = []
        for path in _expand(paths):
            if path.suffix.lower() not in SUPPORTED_EXTENSIONS:
                logger.warning("image_skipped", extra={"path": str(path)})
                continue
            added.append(self.add_bytes(path.name, path.read_bytes()))
        return added

    def get(self, id_or_prefix: str) -> ImageRecord:
        """
        Find a record by full id or unique id prefix.

        Raises:
            KeyError: If no record matches or the prefix is ambiguous
        """
        matches = [r for r in self.records if r.id.startswith(id_or_prefix)]
        exact = [r for r in matches if r.id == id_or_prefix]
        if exact:
            return exact[0]
        if len(matches) != 1:
            raise KeyError(id_or_prefix)
        return matches[0]

    def clear_all(self) -> None:
        """Destroy every record in memory and in the store."""
        if self.processing:
            raise RuntimeError("Cannot clear while a batch is processing")
        self.store.clear()
        self.records.clear()

    def use_backend(
        self,
        backend: ExtractionBackend,
        *,
        batch_size: int = BATCH_SIZE,
        on_progress: ProgressCallback | None = None,
    ) -> BatchPipeline:
        """Create the pipeline this workspace runs batches through."""
        if self.processing:
            raise RuntimeError("Cannot change backend while a batch is processing")
        self._pipeline = BatchPipeline(
            self.store,
            backend,
            batch_size=batch_size,
            on_progress=on_progress,
        )
        return self._pipeline

    def process(self, credential: str | None) -> Iterator[ProgressEvent]:
        """Run one batch over this workspace's records."""
        if self._pipeline is None:
            raise RuntimeError("No extraction backend configured; call use_backend() first")
        return self._pipeline.run_batch(self.records, credential)

    @property
    def processing(self) -> bool:
        return self._pipeline is not None and self._pipeline.running

    @property
    def pending_count(self) -> int:
        return len(pending_records(self.records))

    @property
    def processed_count(self) -> int:
        return sum(1 for r in self.records if r.status.is_terminal)

    def next_batch_count(self, batch_size: int = BATCH_SIZE) -> int:
        return min(self.pending_count, batch_size)

    def counts(self) -> dict[str, int]:
        """Number of records per status."""
        counts = {status.value: 0 for status in ProcessingStatus}
        for record in self.records:
            counts[record.status.value] += 1
        return counts


def _expand(paths: Iterable[Path]) -> Iterator[Path]:
    for path in paths:
        path = path.expanduser()
        if path.is_dir():
            yield from sorted(p for p in path.iterdir() if p.is_file())
        else:
            yield path
