"""CLI entry point for Keystone.

``keystone serve`` starts the server configured by the environment
(``PORT``, ``HOST``, ``NODE_ENV``, ``VITE_TEST_BUILD`` ...).
"""

import typer
from rich.console import Console

from .. import __version__
from ..errors import KeystoneError

app = typer.Typer(
    name="keystone",
    help="Keystone - FastAPI server composition root",
    no_args_is_help=True,
    add_completion=False,
)

console = Console()
err_console = Console(stderr=True)


def version_callback(value: bool):
    """Print version and exit."""
    if value:
        console.print(f"keystone {__version__}")
        raise typer.Exit()


@app.callback()
def main(
    version: bool = typer.Option(
        None,
        "--version",
        "-v",
        callback=version_callback,
        is_eager=True,
        help="Show version and exit",
    ),
) -> None:
    """Keystone server."""


@app.command()
def serve() -> None:
    """Bootstrap the application and serve until interrupted."""
    from .cmd.serve import serve_command

    try:
        serve_command()
    except KeystoneError as e:
        err_console.print(f"[red]Error:[/red] {e}")
        raise typer.Exit(1)


@app.command()
def stylesheets() -> None:
    """Print built stylesheets as inline <style> blocks."""
    from .cmd.stylesheets import stylesheets_command

    try:
        markup = stylesheets_command()
    except KeystoneError as e:
        err_console.print(f"[red]Error:[/red] {e}")
        raise typer.Exit(1)
    if markup is None:
        err_console.print("[yellow]No built stylesheets found (dist/assets is missing)[/yellow]")
        raise typer.Exit(1)
    typer.echo(markup)
