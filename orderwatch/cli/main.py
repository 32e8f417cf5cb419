"""Click command group for orderwatch.

Commands:
    ingest   -- Ingest snapshot files and print what changed per order.
    history  -- Print the stored history of one order.
    clear    -- Delete the stored history of one order.
    list     -- List every order with stored history.

Storage location and retention come from ORDERWATCH_* environment
variables; ``--storage-dir`` overrides the directory of the file backend.
"""

from __future__ import annotations

import asyncio
import json
from pathlib import Path
from typing import Any

import click

from orderwatch.app import OrderWatchApp, build_app
from orderwatch.config import load_config
from orderwatch.ledger.significance import has_significant_changes, significant_paths
from orderwatch.models.snapshots import BatchResult, diff_to_dict


def _read_snapshots(path: Path) -> list[dict[str, Any]]:
    try:
        parsed = json.loads(path.read_text(encoding="utf-8"))
    except json.JSONDecodeError as exc:
        raise click.ClickException(f"{path}: invalid JSON ({exc.msg})") from exc
    if isinstance(parsed, dict):
        return [parsed]
    if isinstance(parsed, list) and all(isinstance(item, dict) for item in parsed):
        return parsed
    raise click.ClickException(f"{path}: expected a snapshot object or a list of snapshot objects")


def _batch_report(app: OrderWatchApp, result: BatchResult) -> dict[str, Any]:
    watch = app.config.notifications.watch_fields
    return {
        "entities": result.entities_seen,
        "changes": {entity_id: diff_to_dict(diff) for entity_id, diff in result.diffs.items()},
        "significant": has_significant_changes(result.diffs, watch),
        "significant_paths": {
            entity_id: paths
            for entity_id, diff in result.diffs.items()
            if (paths := significant_paths(diff, watch))
        },
        "storage_full": result.storage_full,
        "failures": [
            {"index": f.index, "entity_id": f.entity_id, "error": f"{type(f.error).__name__}: {f.error}"}
            for f in result.failures
        ],
    }


@click.group()
@click.option(
    "--storage-dir",
    type=click.Path(file_okay=False, path_type=Path),
    default=None,
    help="Directory of the file storage backend.",
)
@click.pass_context
def cli(ctx: click.Context, storage_dir: Path | None) -> None:
    """Track order snapshots and report what changed between refreshes."""
    config = load_config()
    if storage_dir is not None:
        config.storage.backend = "file"
        config.storage.directory = str(storage_dir)
    ctx.obj = build_app(config)


@cli.command()
@click.argument("files", nargs=-1, required=True, type=click.Path(exists=True, dir_okay=False, path_type=Path))
@click.pass_obj
def ingest(app: OrderWatchApp, files: tuple[Path, ...]) -> None:
    """Ingest every snapshot in FILES as one refresh cycle."""
    snapshots = [snapshot for path in files for snapshot in _read_snapshots(path)]
    result = asyncio.run(app.ingestor.ingest_batch(snapshots))

    click.echo(json.dumps(_batch_report(app, result), indent=2, ensure_ascii=False))

    if result.has_changes:
        click.echo("New changes detected!", err=True)
    else:
        click.echo("No new changes found.", err=True)
    if result.storage_full:
        click.echo("Warning: storage is full. History may not be saved.", err=True)
    if result.failures:
        raise SystemExit(1)


@cli.command()
@click.argument("entity_id")
@click.pass_obj
def history(app: OrderWatchApp, entity_id: str) -> None:
    """Print the stored history of ENTITY_ID, oldest first."""
    entries = asyncio.run(app.history.load(entity_id))
    click.echo(json.dumps([entry.to_dict() for entry in entries], indent=2, ensure_ascii=False))


@cli.command()
@click.argument("entity_id")
@click.pass_obj
def clear(app: OrderWatchApp, entity_id: str) -> None:
    """Delete the stored history of ENTITY_ID."""
    asyncio.run(app.history.clear(entity_id))
    click.echo(f"Cleared history for {entity_id}", err=True)


@cli.command(name="list")
@click.pass_obj
def list_entities(app: OrderWatchApp) -> None:
    """List every order with stored history."""
    for entity_id in asyncio.run(app.history.entity_ids()):
        click.echo(entity_id)
