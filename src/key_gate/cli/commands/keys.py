"""CLI commands for inspecting and compacting the key store."""

import asyncio

import structlog
import typer
from rich.console import Console
from rich.markup import escape
from rich.table import Table

from key_gate.config.settings import ConfigurationError, Settings, get_settings
from key_gate.core.clock import utc_now
from key_gate.core.logging import setup_logging
from key_gate.exceptions import StoreUnavailableError
from key_gate.keys import ExpirySweeper, KeyRecordStore, mask_key


console = Console()


def _load_settings() -> Settings:
    try:
        settings = get_settings()
    except ConfigurationError as e:
        console.print(f"[red]{escape(str(e))}[/red]")
        raise typer.Exit(1) from e

    # Keep store chatter out of the command output
    if not structlog.is_configured():
        setup_logging(
            json_logs=settings.server.json_logs,
            log_level_name="WARNING",
            log_file=settings.server.log_file,
        )
    return settings


def list_keys() -> None:
    """List stored keys with their usage."""
    settings = _load_settings()
    store = KeyRecordStore(settings.storage.database_file)

    try:
        db = store.load()
    except StoreUnavailableError as e:
        console.print(f"[red]{escape(e.message)}[/red]")
        raise typer.Exit(1) from e

    if not db.keys:
        console.print("[yellow]No keys found.[/yellow]")
        return

    validity = settings.keys.validity
    now = utc_now()

    table = Table(title=f"Keys ({len(db.keys)})")
    table.add_column("Key", style="cyan", no_wrap=True)
    table.add_column("Generated (UTC)")
    table.add_column("Expires (UTC)")
    table.add_column("Status", no_wrap=True)
    table.add_column("Uses", justify="right")
    table.add_column("Last Used (UTC)")

    for record in sorted(db.keys.values(), key=lambda r: r.generated_at):
        status = (
            "[red]Expired[/red]"
            if record.is_expired(now, validity)
            else "[green]Active[/green]"
        )
        table.add_row(
            mask_key(record.key),
            record.generated_at.strftime("%Y-%m-%d %H:%M"),
            record.expires_at(validity).strftime("%Y-%m-%d %H:%M"),
            status,
            str(record.usage_count),
            record.last_used.strftime("%Y-%m-%d %H:%M")
            if record.last_used
            else "-",
        )

    console.print(table)


def sweep_keys() -> None:
    """Remove expired keys from the store once.

    Run this while the server is stopped; the server sweeps on its own.
    """
    settings = _load_settings()
    store = KeyRecordStore(settings.storage.database_file)

    if not settings.storage.database_file.exists():
        console.print("[yellow]No keys found.[/yellow]")
        return

    try:
        store.load()
    except StoreUnavailableError as e:
        console.print(f"[red]{escape(e.message)}[/red]")
        raise typer.Exit(1) from e

    store.initialize()
    sweeper = ExpirySweeper(store, validity=settings.keys.validity)

    try:
        removed = asyncio.run(sweeper.sweep())
    except StoreUnavailableError as e:
        console.print(f"[red]{escape(e.message)}[/red]")
        raise typer.Exit(1) from e

    console.print(
        f"[green]Removed {removed} expired key(s); {len(store)} remaining.[/green]"
    )
