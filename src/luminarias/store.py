"""
Durable image store.

Records are kept in a directory:

    <root>/blobs/<id>        original image bytes, written once
    <root>/records.jsonl     append-only metadata journal

Every put() appends the record's current metadata as one JSON line. Loading
replays the journal so the last line for an id wins, while ids keep the
position of their first line (ingestion order).
"""

from __future__ import annotations

from pathlib import Path
import json
import logging
import shutil

from pydantic import ValidationError

from .models import ImageRecord

logger = logging.getLogger(__name__)

JOURNAL_NAME = "records.jsonl"
BLOB_DIR_NAME = "blobs"


class ImageStore:
    """Directory-backed mapping from image id to ImageRecord."""

    def __init__(self, root: Path) -> None:
        self.root = root

    @property
    def journal_path(self) -> Path:
        return self.root / JOURNAL_NAME

    @property
    def blob_dir(self) -> Path:
        return self.root / BLOB_DIR_NAME

    def blob_path(self, record_id: str) -> Path:
        return self.blob_dir / record_id

    def put(self, record: ImageRecord) -> None:
        """
        Persist a record.

        Image bytes are only written the first time a record is stored; they
        never change after ingestion.

        Parameters:
            record: Record to write
        """
        self.blob_dir.mkdir(parents=True, exist_ok=True)
        blob = self.blob_path(record.id)
        if not blob.exists():
            blob.write_bytes(record.data)

        line = json.dumps(record.model_dump(mode="json"), ensure_ascii=False)
        with self.journal_path.open("a", encoding="utf-8") as f:
            f.write(line + "\n")

    def get_all(self) -> list[ImageRecord]:
        """
        Load every stored record in ingestion order.

        Returns an empty list when nothing has been stored yet. Truncated or
        invalid journal lines are skipped, as are records whose image bytes
        are missing.
        """
        if not self.journal_path.exists():
            return []

        latest: dict[str, dict] = {}
        with self.journal_path.open("r", encoding="utf-8") as f:
            for line in f:
                line = line.strip()
                if not line:
                    continue
                try:
                    raw = json.loads(line)
                except json.JSONDecodeError:
                    # Partial last line after an interrupted write
                    continue
                if isinstance(raw, dict) and isinstance(raw.get("id"), str):
                    latest[raw["id"]] = raw

        records: list[ImageRecord] = []
        for record_id, raw in latest.items():
            blob = self.blob_path(record_id)
            if not blob.exists():
                logger.warning("store_blob_missing", extra={"image_id": record_id})
                continue
            try:
                record = ImageRecord.model_validate(raw)
            except ValidationError:
                logger.warning("store_record_invalid", extra={"image_id": record_id})
                continue
            record.data = blob.read_bytes()
            records.append(record)
        return records

    def clear(self) -> None:
        """Remove every stored record and image."""
        if self.root.exists():
            shutil.rmtree(self.root)
        logger.info("store_cleared", extra={"root": str(self.root)})
