"""Typer application wiring for the key-gate command."""

import typer

from key_gate import __version__
from key_gate.cli.commands.keys import list_keys, sweep_keys
from key_gate.cli.commands.serve import serve


app = typer.Typer(
    name="key-gate",
    help="Short-lived access key issuance service",
    no_args_is_help=True,
)

keys_app = typer.Typer(help="Inspect and maintain the key store", no_args_is_help=True)
keys_app.command("list")(list_keys)
keys_app.command("sweep")(sweep_keys)

app.command("serve")(serve)
app.add_typer(keys_app, name="keys")


def version_callback(value: bool) -> None:
    if value:
        typer.echo(f"key-gate {__version__}")
        raise typer.Exit()


@app.callback()
def app_main(
    version: bool = typer.Option(
        False,
        "--version",
        "-V",
        callback=version_callback,
        is_eager=True,
        help="Show version and exit",
    ),
) -> None:
    """Key Gate command line interface."""


def main() -> None:
    app()
