# src/framekeep/cli.py
"""
FrameKeep Command Line Interface (CLI).

Inspects and maintains the on-disk tiers a FrameKeep deployment writes to:
the structured database (``FRAMEKEEP_DATABASE_URL``) and the JSON-backed
key/value area (``FRAMEKEEP_LOCAL_STORAGE``) holding the bounded fallback
store.

Usage
-----
    # Print the current record (primary tier first, then fallback)
    $ framekeep show --json

    # Back up and restore the fallback store
    $ framekeep export backup.json
    $ framekeep import backup.json --yes

    # Storage usage
    $ framekeep info
"""

from __future__ import annotations

import json
from collections.abc import Iterator
from contextlib import contextmanager
from dataclasses import dataclass
from datetime import UTC, datetime
from pathlib import Path
from typing import Annotated, Any, NoReturn

import typer
from dotenv import load_dotenv
from rich.console import Console
from rich.panel import Panel
from rich.prompt import Confirm
from rich.table import Table

from framekeep.core.contracts.records import StoredRecord
from framekeep.core.digest import state_digest
from framekeep.core.errors import FrameKeepError, TierError, TierUnavailableError
from framekeep.core.settings import Settings, load_settings
from framekeep.page.storage import FileKeyValueArea
from framekeep.storage.database import DatabaseTier
from framekeep.storage.fallback import BoundedFallbackStore

load_dotenv()

app = typer.Typer(
    help="FrameKeep: inspect and maintain persisted calculator state.",
    rich_markup_mode="markdown",
)
console = Console()


# --------------------------------------------------------------------------- #
# Helpers
# --------------------------------------------------------------------------- #


@dataclass
class _Tiers:
    settings: Settings
    primary: DatabaseTier | None
    fallback: BoundedFallbackStore


@contextmanager
def _open_tiers() -> Iterator[_Tiers]:
    """Open both tiers from the current settings; the database may be missing."""
    cfg = load_settings()
    try:
        primary: DatabaseTier | None = DatabaseTier.open(cfg.database_url)
    except TierUnavailableError as e:
        console.print(f"[dim yellow]Database tier unavailable: {e}[/dim yellow]")
        primary = None
    fallback = BoundedFallbackStore(
        FileKeyValueArea(cfg.local_storage_path),
        storage_key=cfg.fallback_storage_key,
        max_states=cfg.fallback_max_states,
    )
    try:
        yield _Tiers(settings=cfg, primary=primary, fallback=fallback)
    finally:
        if primary is not None:
            primary.close()


def _current_record(tiers: _Tiers) -> tuple[str, StoredRecord] | None:
    key = tiers.settings.session_key
    if tiers.primary is not None:
        try:
            record = tiers.primary.read(key)
        except TierError as e:
            console.print(f"[dim yellow]Database record unreadable: {e}[/dim yellow]")
            record = None
        if record is not None:
            return tiers.primary.name, record
    current = tiers.fallback.load_current()
    if current is None:
        return None
    return "fallback", StoredRecord(
        key=key,
        state=current.state,
        timestamp=current.timestamp,
        hash=state_digest(current.state),
    )


def _fmt_ms(ms: int) -> str:
    return datetime.fromtimestamp(ms / 1000, tz=UTC).strftime("%Y-%m-%d %H:%M:%S UTC")


def _summarize(state: dict[str, Any]) -> str:
    if "canvasData" in state or "inputs" in state:
        return (
            f"{len(state.get('canvasData') or [])} canvas(es), "
            f"{len(state.get('inputs') or [])} input(s)"
        )
    return str(state.get("url") or "-")


def _fail(message: str, exc: Exception) -> NoReturn:
    console.print(f"[bold red]❌ {message}:[/bold red] {exc}")
    raise typer.Exit(code=1) from exc


# --------------------------------------------------------------------------- #
# Commands
# --------------------------------------------------------------------------- #


@app.command()  # type: ignore[misc]
def show(
    as_json: Annotated[
        bool, typer.Option("--json", help="Print the raw state as JSON.")
    ] = False,
) -> None:
    """Show the current saved state (database tier first, then fallback)."""
    try:
        with _open_tiers() as tiers:
            found = _current_record(tiers)
    except (FrameKeepError, OSError) as e:
        _fail("Could not read state", e)

    if found is None:
        console.print("[yellow]No saved state.[/yellow]")
        return
    tier, record = found
    if as_json:
        console.print_json(json.dumps(record.state))
        return
    console.print(
        Panel.fit(
            f"Tier: [cyan]{tier}[/cyan]\n"
            f"Saved: {_fmt_ms(record.timestamp)}\n"
            f"Content: {_summarize(record.state)}\n"
            f"Hash: [dim]{record.hash}[/dim]",
            title=f"[bold]{record.key}[/bold]",
            border_style="green",
        )
    )


@app.command()  # type: ignore[misc]
def history() -> None:
    """List the fallback store's history, newest first."""
    try:
        with _open_tiers() as tiers:
            entries = tiers.fallback.get_all_states()
    except (FrameKeepError, OSError) as e:
        _fail("Could not read history", e)

    if not entries:
        console.print("[yellow]No history.[/yellow]")
        return
    table = Table(title="Fallback history")
    table.add_column("#", justify="right")
    table.add_column("Saved")
    table.add_column("Version")
    table.add_column("Content")
    for i, entry in enumerate(entries, start=1):
        table.add_row(
            str(i), _fmt_ms(entry.timestamp), str(entry.version), _summarize(entry.state)
        )
    console.print(table)


@app.command()  # type: ignore[misc]
def export(
    path: Annotated[Path, typer.Argument(dir_okay=False, help="Destination JSON file.")],
) -> None:
    """Write the fallback store's current state and history to a JSON file."""
    try:
        with _open_tiers() as tiers:
            payload = tiers.fallback.export_data()
        path.parent.mkdir(parents=True, exist_ok=True)
        with open(path, "w", encoding="utf-8") as f:
            json.dump(payload, f, indent=2)
    except (FrameKeepError, OSError) as e:
        _fail("Export failed", e)
    console.print(f"[green]Exported {len(payload['states'])} state(s) to {path}[/green]")


@app.command(name="import")  # type: ignore[misc]
def import_(
    path: Annotated[
        Path,
        typer.Argument(exists=True, dir_okay=False, readable=True, help="Exported JSON file."),
    ],
    yes: Annotated[bool, typer.Option("--yes", "-y", help="Do not ask for confirmation.")] = False,
) -> None:
    """Replace the fallback store with a previously exported file."""
    try:
        with open(path, encoding="utf-8") as f:
            payload = json.load(f)
    except (OSError, ValueError) as e:
        _fail("Could not read export file", e)
    if not isinstance(payload, dict):
        console.print("[bold red]❌ Import failed:[/bold red] expected a JSON object")
        raise typer.Exit(code=1)

    if not yes and not Confirm.ask("Overwrite the saved fallback state?", default=False):
        console.print("[dim]Aborted.[/dim]")
        return

    with _open_tiers() as tiers:
        imported = tiers.fallback.import_data(payload)
    if not imported:
        console.print("[bold red]❌ Import failed:[/bold red] payload rejected")
        raise typer.Exit(code=1)
    console.print(f"[green]Imported {path}[/green]")


@app.command()  # type: ignore[misc]
def clear(
    yes: Annotated[bool, typer.Option("--yes", "-y", help="Do not ask for confirmation.")] = False,
) -> None:
    """Delete the saved state from both tiers."""
    if not yes and not Confirm.ask("Delete all saved calculator state?", default=False):
        console.print("[dim]Aborted.[/dim]")
        return
    try:
        with _open_tiers() as tiers:
            if tiers.primary is not None:
                tiers.primary.delete(tiers.settings.session_key)
            tiers.fallback.clear_state()
    except (TierError, OSError) as e:
        _fail("Clear failed", e)
    console.print("[green]Saved state cleared.[/green]")


@app.command()  # type: ignore[misc]
def info() -> None:
    """Show where state lives and how much space it takes."""
    try:
        with _open_tiers() as tiers:
            db_bytes = tiers.primary.usage_bytes() if tiers.primary is not None else None
            store_info = tiers.fallback.get_storage_info()
            total = tiers.fallback.get_total_storage_usage()
            cfg = tiers.settings
            db_status = "available" if tiers.primary is not None else "unavailable"
    except (FrameKeepError, OSError) as e:
        _fail("Could not inspect storage", e)

    table = Table(title="FrameKeep storage")
    table.add_column("Setting")
    table.add_column("Value")
    table.add_row("Environment", cfg.environment)
    table.add_row("Database", f"{cfg.database_url} ({db_status})")
    table.add_row("Database size", f"{db_bytes} bytes" if db_bytes is not None else "-")
    table.add_row("Key/value file", str(cfg.local_storage_path))
    table.add_row("Fallback key", cfg.fallback_storage_key)
    table.add_row(
        "Fallback size", f"{store_info['used_kb']} KB" if store_info is not None else "-"
    )
    table.add_row("Area total", f"{total['total_kb']} KB" if total is not None else "-")
    table.add_row("History capacity", str(cfg.fallback_max_states))
    console.print(table)


if __name__ == "__main__":
    app()
