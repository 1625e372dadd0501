"""
Luminarias CLI

Commands:
- add: Ingest photographs as pending images
- status: List images with their status and extracted code
- process: Run one batch of pending images through the OCR service
- download: Write one image renamed to its extracted code
- export: Pack every processed image into a zip archive
- clear: Delete every image and result
- set-key: Save the Gemini API key
"""

from __future__ import annotations

import json
from pathlib import Path
from typing import Any

from datetime import datetime, timezone

import typer
import logging

from luminarias.config import CredentialStore, Settings, get_settings
from luminarias.errors import MissingCredential
from luminarias.extraction import ExtractionBackend, GeminiBackend
from luminarias.models import ImageRecord, ProcessingStatus
from luminarias.pipeline.output import ARCHIVE_NAME, compute_export_name, export_single, pack_archive
from luminarias.pipeline.worker import EventKind
from luminarias.session import Workspace

app = typer.Typer(add_completion=False, help="Extract serial codes from street-light photographs")


class JsonFormatter(logging.Formatter):
    """Simple JSON formatter for structured logs."""
    def format(self, record: logging.LogRecord) -> str:
        payload: dict[str, Any] = {
            "ts": datetime.now(timezone.utc).isoformat(),
            "level": record.levelname,
            "msg": record.getMessage(),
            "logger": record.name,
        }
        # Include any custom attributes passed via `extra=`.
        reserved = {
            "name","msg","args","levelname","levelno","pathname","filename","module",
            "exc_info","exc_text","stack_info","lineno","funcName","created","msecs",
            "relativeCreated","thread","threadName","processName","process",
            "taskName","message",
        }
        for k, v in record.__dict__.items():
            if k in reserved or k.startswith("_"):
                continue
            try:
                json.dumps(v)
                payload[k] = v
            except TypeError:
                payload[k] = repr(v)
        if record.exc_info:
            payload["exc_info"] = self.formatException(record.exc_info)
        return json.dumps(payload, ensure_ascii=False)


def setup_logging(level: str) -> logging.Logger:
    logger = logging.getLogger("luminarias")
    logger.setLevel(getattr(logging, level.upper(), logging.INFO))
    handler = logging.StreamHandler()
    handler.setFormatter(JsonFormatter())
    logger.handlers[:] = [handler]
    logger.propagate = False
    return logger


LOGGER = logging.getLogger("luminarias")


def load_settings(home: Path | None) -> Settings:
    settings = get_settings()
    if home is not None:
        settings = settings.model_copy(update={"home": home})
    return settings


def open_workspace(settings: Settings) -> Workspace:
    return Workspace.open(settings.store_dir)


def make_backend(settings: Settings) -> ExtractionBackend:
    """Extraction backend used by `process`."""
    return GeminiBackend(
        model=settings.model,
        timeout_seconds=settings.request_timeout_seconds,
    )


def describe(record: ImageRecord) -> str:
    """One status line for a record, coloured by outcome."""
    label = f"{record.id[:8]}  {record.file_name:<32}"
    if record.status is ProcessingStatus.SUCCESS:
        color = typer.colors.GREEN if record.found else typer.colors.YELLOW
        return label + typer.style(f"✔ {record.extracted_code}", fg=color, bold=record.found)
    if record.status is ProcessingStatus.ERROR:
        return label + typer.style(f"✘ {record.extracted_code or 'Error al procesar'}", fg=typer.colors.RED)
    if record.status is ProcessingStatus.PROCESSING:
        return label + typer.style("… processing", fg=typer.colors.BLUE)
    return label + "pending"


@app.command("add")
def add_cmd(
    paths: list[Path] = typer.Argument(..., help="Image files or directories of images"),
    home: Path | None = typer.Option(None, "--home", help="Data directory (default: $LUMINARIAS_HOME or ~/.luminarias)"),
    log_level: str | None = typer.Option(None, "--log-level", help="Log level (default: $LUMINARIAS_LOG_LEVEL or INFO)"),
) -> None:
    """Add photographs as pending images."""
    global LOGGER
    settings = load_settings(home)
    LOGGER = setup_logging(log_level or settings.log_level)
    workspace = open_workspace(settings)

    missing = [p for p in paths if not p.expanduser().exists()]
    if missing:
        for p in missing:
            typer.echo(f"Error: File not found: {p}", err=True)
        raise typer.Exit(code=1)

    added = workspace.add_files(paths)
    if not added:
        typer.echo("Error: No supported images found (jpg, jpeg, png, webp, heic)", err=True)
        raise typer.Exit(code=1)

    typer.echo(f"Added {len(added)} image(s). {workspace.pending_count} pending in total.")


@app.command("status")
def status_cmd(
    home: Path | None = typer.Option(None, "--home", help="Data directory"),
    summary_only: bool = typer.Option(False, "--summary", help="Only print the per-status counts"),
) -> None:
    """List images with their status and extracted code."""
    settings = load_settings(home)
    workspace = open_workspace(settings)

    if not workspace.records:
        typer.echo("No images loaded.")
        return

    if not summary_only:
        for record in workspace.records:
            typer.echo(describe(record))
        typer.echo("")

    counts = workspace.counts()
    typer.echo(
        f"{len(workspace.records)} image(s): "
        f"{counts['pending']} pending, "
        f"{counts['success']} success, "
        f"{counts['error']} error. "
        f"Next batch: {workspace.next_batch_count(settings.batch_size)}"
    )


@app.command("process")
def process_cmd(
    home: Path | None = typer.Option(None, "--home", help="Data directory"),
    batch_size: int | None = typer.Option(None, "--batch-size", min=1, help="Override batch size"),
    log_level: str | None = typer.Option(None, "--log-level", help="Log level (default: $LUMINARIAS_LOG_LEVEL or INFO)"),
) -> None:
    """
    Run one batch of pending images through the OCR service.

    Processes up to the batch size (50 by default) of the oldest pending
    images, one at a time. Run again to continue with the next batch.

    Example:
        luminarias process --batch-size 10
    """
    global LOGGER
    settings = load_settings(home)
    LOGGER = setup_logging(log_level or settings.log_level)
    workspace = open_workspace(settings)
    credential = CredentialStore(settings.credential_path).load()

    workspace.use_backend(make_backend(settings), batch_size=batch_size or settings.batch_size)

    try:
        events = workspace.process(credential)
    except MissingCredential as e:
        typer.echo(f"Error: {e}", err=True)
        typer.echo("Run `luminarias set-key` or set GEMINI_API_KEY.", err=True)
        raise typer.Exit(code=1)

    ran = False
    for event in events:
        ran = True
        if event.kind is EventKind.BATCH_STARTED:
            typer.echo(f"Starting batch of {event.total} image(s)...")
        elif event.kind is EventKind.ITEM_PROCESSING:
            typer.echo(f"[{event.position}/{event.total}] {event.record.file_name} ", nl=False)
        elif event.kind is EventKind.ITEM_DONE:
            record = event.record
            if record.status is ProcessingStatus.SUCCESS:
                typer.echo(f"→ {record.extracted_code}")
            else:
                typer.echo(f"→ error: {record.extracted_code}")
        elif event.kind is EventKind.BATCH_COMPLETED:
            s = event.summary
            typer.echo(f"\n{'='*60}")
            typer.echo(f"Batch of {s.attempted} image(s) completed ({s.elapsed_seconds:.1f}s)")
            typer.echo(f"  Codes found: {s.found}")
            typer.echo(f"  Not found: {s.succeeded - s.found}")
            typer.echo(f"  Errors: {s.failed}")
            typer.echo(f"  Still pending: {workspace.pending_count}")

    if not ran:
        typer.echo("Nothing to process: no pending images.")


@app.command("download")
def download_cmd(
    image_id: str = typer.Argument(..., help="Image id or unique id prefix"),
    dest: Path = typer.Option(Path("."), "--dest", help="Directory to write the image into"),
    home: Path | None = typer.Option(None, "--home", help="Data directory"),
) -> None:
    """Write one processed image renamed to its extracted code."""
    settings = load_settings(home)
    workspace = open_workspace(settings)

    try:
        record = workspace.get(image_id)
    except KeyError:
        typer.echo(f"Error: No single image matches id '{image_id}'", err=True)
        raise typer.Exit(code=1)

    if not record.status.is_terminal:
        typer.echo(f"Error: Image {record.id[:8]} has not been processed yet", err=True)
        raise typer.Exit(code=1)

    out_path = export_single(record, dest.expanduser())
    typer.echo(f"Wrote {out_path}")


@app.command("export")
def export_cmd(
    out: Path = typer.Option(Path(ARCHIVE_NAME), "--out", help="Zip archive path"),
    home: Path | None = typer.Option(None, "--home", help="Data directory"),
    dry_run: bool = typer.Option(False, "--dry-run", help="Print the names without writing the archive"),
) -> None:
    """Pack every processed image into a zip archive named by code."""
    settings = load_settings(home)
    workspace = open_workspace(settings)

    if workspace.processed_count == 0:
        typer.echo("Error: No processed images to export", err=True)
        raise typer.Exit(code=1)

    if dry_run:
        for record in workspace.records:
            if record.status.is_terminal:
                typer.echo(f"{record.file_name} -> {compute_export_name(record)}")
        return

    path, count = pack_archive(workspace.records, out.expanduser())
    typer.echo(f"Exported {count} image(s) to {path}")


@app.command("clear")
def clear_cmd(
    home: Path | None = typer.Option(None, "--home", help="Data directory"),
    yes: bool = typer.Option(False, "--yes", "-y", help="Do not ask for confirmation"),
) -> None:
    """Delete every image and result."""
    settings = load_settings(home)
    workspace = open_workspace(settings)

    if not yes:
        typer.confirm(f"Delete {len(workspace.records)} image(s)?", abort=True)

    workspace.clear_all()
    typer.echo("All images deleted.")


@app.command("set-key")
def set_key_cmd(
    key: str | None = typer.Argument(None, help="Gemini API key (prompted when omitted)"),
    home: Path | None = typer.Option(None, "--home", help="Data directory"),
) -> None:
    """Save the Gemini API key for future sessions."""
    settings = load_settings(home)
    if key is None:
        key = typer.prompt("Gemini API key", hide_input=True)
    if not key.strip():
        typer.echo("Error: API key cannot be empty", err=True)
        raise typer.Exit(code=1)

    CredentialStore(settings.credential_path).save(key)
    typer.echo(f"API key saved to {settings.credential_path}")


def main() -> None:
    app()


if __name__ == "__main__":
    main()
