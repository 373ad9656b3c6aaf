"""uniguard CLI - Main entry point."""

import logging

import typer
from rich.console import Console
from rich.logging import RichHandler

from uniguard import __version__
from uniguard.core.config import settings
from uniguard.cli.commands import check, presets, scan

console = Console()

app = typer.Typer(
    name="uniguard",
    help="uniguard CLI - Inspect presets and run the security pipeline.",
    no_args_is_help=True,
)

app.command(name="presets")(presets.presets)
app.command(name="scan")(scan.scan)
app.add_typer(check.app, name="check")


@app.callback()
def main(
    verbose: bool = typer.Option(False, "--verbose", "-v", help="Debug logging."),
):
    """Configure logging for every command."""
    logging.basicConfig(
        level=logging.DEBUG if verbose else settings.log_level.upper(),
        format="%(message)s",
        handlers=[RichHandler(console=Console(stderr=True), show_path=False)],
        force=True,
    )


@app.command()
def version():
    """Show version information."""
    console.print(f"[bold]uniguard[/bold] v{__version__}")


if __name__ == "__main__":
    app()
