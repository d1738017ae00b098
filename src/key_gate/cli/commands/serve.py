"""CLI command that runs the HTTP server."""

import os

import orjson
import typer
import uvicorn
from rich.console import Console
from rich.markup import escape

from key_gate.config.settings import ConfigurationError, get_settings


console = Console()


def _cli_overrides(
    host: str | None,
    port: int | None,
    reload: bool | None,
    log_level: str | None,
    database_file: str | None,
) -> dict[str, dict[str, object]]:
    """Extract non-None CLI arguments as configuration overrides."""
    overrides: dict[str, dict[str, object]] = {}
    server = {
        key: value
        for key, value in (
            ("host", host),
            ("port", port),
            ("reload", reload),
            ("log_level", log_level),
        )
        if value is not None
    }
    if server:
        overrides["server"] = server
    if database_file is not None:
        overrides["storage"] = {"database_file": database_file}
    return overrides


def serve(
    host: str | None = typer.Option(None, "--host", help="Bind address"),
    port: int | None = typer.Option(None, "--port", "-p", help="Bind port"),
    reload: bool | None = typer.Option(
        None, "--reload/--no-reload", help="Reload on code changes"
    ),
    log_level: str | None = typer.Option(None, "--log-level", help="Logging level"),
    database_file: str | None = typer.Option(
        None, "--database", "-d", help="Key database JSON file"
    ),
) -> None:
    """Run the key issuance API server."""
    overrides = _cli_overrides(host, port, reload, log_level, database_file)
    # The app factory re-reads settings in the server process (and reloader children)
    os.environ["KEYGATE_CONFIG_OVERRIDES"] = orjson.dumps(overrides).decode()

    try:
        settings = get_settings()
    except ConfigurationError as e:
        console.print(f"[red]{escape(str(e))}[/red]")
        raise typer.Exit(1) from e

    console.print(
        f"[green]Key Gate API Server[/green] on [bold]{settings.server_url}[/bold]"
    )
    uvicorn.run(
        "key_gate.api.app:get_app",
        factory=True,
        host=settings.server.host,
        port=settings.server.port,
        reload=settings.server.reload,
        log_config=None,
    )
