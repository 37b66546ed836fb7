"""Command-line entry points for downloading and syncing bulk snapshots."""
import asyncio
import sys
from pathlib import Path
from typing import Any, Callable

import click

from scry_bulk.models.repository import InMemoryRecordStore
from scry_bulk.orchestrator import IngestionOrchestrator
from scry_bulk.utils.config import GlobalSettings, ensure_runtime_configuration, get_settings
from scry_bulk.utils.logging import set_log_level


def _shared_options(command: Callable[..., Any]) -> Callable[..., Any]:
    """Attach the overrides every command accepts."""

    command = click.option(
        "--log-level",
        type=click.Choice(["DEBUG", "INFO", "WARNING", "ERROR"], case_sensitive=False),
        default=None,
        help="Override the configured log level",
    )(command)
    command = click.option(
        "--batch-size",
        type=click.IntRange(min=1),
        default=None,
        help="Records per database upsert",
    )(command)
    command = click.option(
        "--cache-dir",
        type=click.Path(file_okay=False, path_type=Path),
        default=None,
        help="Directory holding downloaded snapshots",
    )(command)
    return command


def build_settings(
    *,
    cache_dir: Path | None = None,
    batch_size: int | None = None,
    log_level: str | None = None,
) -> GlobalSettings:
    """Resolve settings from environment and profile templates, then CLI overrides."""

    settings = ensure_runtime_configuration(get_settings())
    updates: dict[str, Any] = {}
    if cache_dir is not None:
        updates["cache_dir"] = cache_dir
    if batch_size is not None:
        updates["batch_size"] = batch_size
    if log_level is not None:
        updates["log_level"] = log_level.upper()
        set_log_level(log_level)
    return settings.model_copy(update=updates) if updates else settings


@click.command(name="download")
@click.argument("snapshot_type", required=False, default=None)
@_shared_options
def download_command(
    snapshot_type: str | None,
    cache_dir: Path | None,
    batch_size: int | None,
    log_level: str | None,
) -> None:
    """
    Download a bulk data snapshot into the local cache.

    SNAPSHOT_TYPE defaults to the configured snapshot type (``all_cards``).
    A cached copy newer than the freshness window is reused.

    Examples:

        scry-bulk download

        scry-bulk download oracle_cards --cache-dir /data/scryfall
    """
    try:
        settings = build_settings(cache_dir=cache_dir, batch_size=batch_size, log_level=log_level)
        orchestrator = IngestionOrchestrator.from_settings(settings)
        path = asyncio.run(orchestrator.download_snapshot(snapshot_type))
    except Exception as e:
        click.echo(f"Download failed: {e}", err=True)
        sys.exit(1)

    click.echo(str(path))


@click.command(name="sync")
@click.option(
    "--file",
    "file_path",
    type=click.Path(dir_okay=False, path_type=Path),
    default=None,
    help="Snapshot file to ingest (defaults to the newest cached file)",
)
@click.option(
    "--dry-run",
    is_flag=True,
    help="Parse and normalize without writing to the database",
)
@_shared_options
def sync_command(
    file_path: Path | None,
    dry_run: bool,
    cache_dir: Path | None,
    batch_size: int | None,
    log_level: str | None,
) -> None:
    """
    Ingest a cached snapshot into the card database.

    Examples:

        scry-bulk sync

        scry-bulk sync --file bulk_data/all_cards-20240101120000.json

        scry-bulk sync --dry-run
    """
    try:
        settings = build_settings(cache_dir=cache_dir, batch_size=batch_size, log_level=log_level)
        if dry_run:
            settings = settings.model_copy(update={"record_runs": False})
            orchestrator = IngestionOrchestrator.from_settings(
                settings, store=InMemoryRecordStore()
            )
        else:
            orchestrator = IngestionOrchestrator.from_settings(settings)
        report = asyncio.run(orchestrator.sync(file_path))
    except Exception as e:
        click.echo(f"Sync failed: {e}", err=True)
        sys.exit(1)

    click.echo(f"Processed {report.records_processed} records")


@click.group()
def cli() -> None:
    """Download and ingest Scryfall bulk data snapshots."""


cli.add_command(download_command)
cli.add_command(sync_command)


if __name__ == "__main__":
    cli()
