"""hotreloader CLI entry point."""

import asyncio
import logging

import click
from rich.console import Console
from rich.logging import RichHandler

from hotreloader import __version__
from hotreloader.config import ConfigurationError

console = Console()


def setup_logging(verbose: bool = True) -> None:
    """Configure logging with rich handler."""
    level = logging.INFO if verbose else logging.WARNING
    logging.basicConfig(
        level=level,
        format="%(message)s",
        datefmt="[%X]",
        handlers=[RichHandler(rich_tracebacks=True, console=console)],
        force=True,
    )


@click.command()
@click.argument("entry_file", required=False)
@click.option(
    "-w",
    "--watch",
    "targets",
    multiple=True,
    type=click.Path(),
    help="Watch path target (repeatable, defaults to the current directory)",
)
@click.option("--verbose/--quiet", "-V", default=True, help="Log every processed change")
@click.version_option(__version__, prog_name="hotreloader")
def cli(entry_file: str | None, targets: tuple[str, ...], verbose: bool) -> None:
    """Run ENTRY_FILE and reload it whenever a file it uses changes."""
    if entry_file is None:
        click.echo("Need entry file")
        return

    setup_logging(verbose)

    from hotreloader.reload.session import watch

    try:
        session = watch(entry_file=entry_file, targets=list(targets) or None, verbose=verbose)
    except ConfigurationError as e:
        raise click.ClickException(str(e)) from e

    if verbose:
        console.print(f"[bold green]Watching {', '.join(str(t) for t in session.targets)}[/bold green]")

    try:
        asyncio.run(session.run())
    except KeyboardInterrupt:
        console.print("\n[yellow]Stopped watching[/yellow]")


def main() -> None:
    cli()


if __name__ == "__main__":
    main()
