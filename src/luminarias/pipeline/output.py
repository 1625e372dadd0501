"""
Export naming and packing.

compute_export_name() is the one place that decides what a downloaded image
is called. Single-file downloads and zip archives both go through it.
"""

from __future__ import annotations

from pathlib import Path
from typing import Iterable
import logging
import zipfile

from luminarias.models import ImageRecord, ProcessingStatus, is_not_found, sanitize_code

logger = logging.getLogger(__name__)

NOT_FOUND_PREFIX = "no-encontrado_"
ARCHIVE_FOLDER = "luminarias_procesadas"
ARCHIVE_NAME = f"{ARCHIVE_FOLDER}.zip"


def compute_export_name(record: ImageRecord) -> str:
    """
    File name an image is exported under.

    Successful records with a real code are named after the code, lower-cased
    with every non-alphanumeric character replaced by `_`. Everything else
    (errors, empty codes, "No encontrado") is named `no-encontrado_` plus the
    first 8 characters of the id. The original extension is kept.

    Parameters:
        record: Record to name

    Returns:
        File name including extension

    Example:
        >>> compute_export_name(record)  # status=success, code="08390", photo.JPG
        '08390.JPG'
    """
    code = record.extracted_code
    if record.status is not ProcessingStatus.SUCCESS or is_not_found(code):
        stem = f"{NOT_FOUND_PREFIX}{record.id[:8]}"
    else:
        stem = sanitize_code(code)
    return f"{stem}.{record.extension}"


def exportable_records(records: Iterable[ImageRecord]) -> list[ImageRecord]:
    """Records that have finished processing (success or error)."""
    return [r for r in records if r.status.is_terminal]


def export_single(record: ImageRecord, dest_dir: Path) -> Path:
    """
    Write one record's original bytes under its export name.

    Parameters:
        record: Record to export
        dest_dir: Directory to write into (created if missing)

    Returns:
        Path of the written file
    """
    dest_dir.mkdir(parents=True, exist_ok=True)
    out_path = dest_dir / compute_export_name(record)
    out_path.write_bytes(record.data)
    return out_path


def _dedupe(name: str, taken: set[str]) -> str:
    if name not in taken:
        return name
    stem, dot, ext = name.rpartition(".")
    n = 2
    while f"{stem}-{n}{dot}{ext}" in taken:
        n += 1
    return f"{stem}-{n}{dot}{ext}"


def pack_archive(records: Iterable[ImageRecord], dest: Path) -> tuple[Path, int]:
    """
    Pack every finished record into a zip archive.

    Entries live under the `luminarias_procesadas/` folder. Pending and
    processing records are left out. Two records with the same code get
    `-2`, `-3`... suffixes rather than overwriting each other; only those
    suffixed entries differ from the name compute_export_name() gives a
    single download.

    Parameters:
        records: Records to consider, in the order they should be written
        dest: Archive path; parent directories are created

    Returns:
        Tuple of (archive path, number of images packed)
    """
    to_pack = exportable_records(records)
    dest.parent.mkdir(parents=True, exist_ok=True)

    taken: set[str] = set()
    with zipfile.ZipFile(dest, "w", compression=zipfile.ZIP_DEFLATED) as zf:
        for record in to_pack:
            name = _dedupe(compute_export_name(record), taken)
            taken.add(name)
            zf.writestr(f"{ARCHIVE_FOLDER}/{name}", record.data)

    logger.info("archive_written", extra={"path": str(dest), "images": len(to_pack)})
    return dest, len(to_pack)
