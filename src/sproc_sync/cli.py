"""
Command-line interface for sproc_sync.

Provides load, wrapper, run, and info commands for keeping stored routines in
sync with their sources and generating their wrapper module.
"""

from __future__ import annotations

import logging
import sys
from pathlib import Path
from typing import Optional, Tuple

import click
from rich.console import Console
from rich.logging import RichHandler
from rich.table import Table

from sproc_sync import __version__
from sproc_sync.config import Settings
from sproc_sync.errors import SprocSyncError
from sproc_sync.loader import MetadataStore, Synchronizer, SyncResult
from sproc_sync.naming import load_mangler
from sproc_sync.wrapper import GenerationResult, WrapperGenerator

console = Console()


def setup_logging(verbose: bool = False) -> None:
    """Configure logging with Rich handler."""
    level = logging.DEBUG if verbose else logging.INFO
    logging.basicConfig(
        level=level,
        format="%(message)s",
        datefmt="[%X]",
        handlers=[RichHandler(console=console, rich_tracebacks=True)],
    )


def _load_settings(config: Path) -> Settings:
    try:
        return Settings.load(config)
    except SprocSyncError as e:
        raise click.ClickException(str(e)) from e


def _print_sync_summary(result: SyncResult) -> None:
    table = Table(title="Loader Summary")
    table.add_column("Metric", style="cyan")
    table.add_column("Value", style="green")

    table.add_row("Routines in metadata", str(len(result.metadata)))
    table.add_row("Routines dropped", str(len(result.dropped)))
    table.add_row("Files in error", str(len(result.errors)))
    table.add_row("Metadata written", "yes" if result.metadata_written else "no")

    console.print(table)


def _print_errors(result: SyncResult) -> None:
    """Print the consolidated error listing of a run."""
    if not result.errors:
        return

    for conflict in result.conflicts:
        paths = ", ".join(str(p) for p in conflict.paths)
        console.print(f"[yellow]Files with same method name '{conflict.method_name}': {paths}[/yellow]")

    console.print("[red]Routines in the files below are not loaded:[/red]")
    for path in sorted(set(result.errors)):
        console.print(f"[red]  {path}[/red]")


def _synchronize(settings: Settings, sources: Tuple[str, ...]) -> SyncResult:
    from sproc_sync.catalog import MySqlCatalog

    loader_settings = settings.loader()
    mangler = load_mangler(loader_settings.mangler)

    with MySqlCatalog(settings.database.to_connect_kwargs()) as catalog:
        synchronizer = Synchronizer(
            loader_settings,
            catalog,
            base_dir=settings.base_dir,
            mangler=mangler,
        )
        return synchronizer.run(list(sources) or None)


def _generate(settings: Settings) -> GenerationResult:
    generator = WrapperGenerator(settings.wrapper())
    return generator.run()


@click.group()
@click.version_option(version=__version__, prog_name="sproc_sync")
@click.option("-v", "--verbose", is_flag=True, help="Enable verbose output")
def cli(verbose: bool) -> None:
    """
    sproc_sync - Stored Routine Loader and Wrapper Generator for MySQL

    Load stored routines from source files into MySQL and generate typed
    Python wrapper methods for calling them.
    """
    setup_logging(verbose)


@cli.command()
@click.argument("config", type=click.Path(exists=True, dir_okay=False, path_type=Path))
@click.argument("sources", nargs=-1, type=str)
def load(config: Path, sources: Tuple[str, ...]) -> None:
    """
    Load stored routines into the database.

    Without SOURCES all routine sources matching the configured pattern are
    loaded and routines without a source are dropped. With SOURCES only the
    given files are loaded.

    Examples:

        sproc_sync load etc/sproc_sync.yml

        sproc_sync load etc/sproc_sync.yml lib/psql/tst_foo.psql
    """
    settings = _load_settings(config)

    console.print("[bold blue]Loading Stored Routines[/bold blue]")
    try:
        result = _synchronize(settings, sources)
    except SprocSyncError as e:
        raise click.ClickException(str(e)) from e

    _print_sync_summary(result)
    _print_errors(result)

    if result.failed:
        sys.exit(1)


@cli.command()
@click.argument("config", type=click.Path(exists=True, dir_okay=False, path_type=Path))
def wrapper(config: Path) -> None:
    """
    Generate the wrapper module from the routine metadata.

    Example:

        sproc_sync wrapper etc/sproc_sync.yml
    """
    settings = _load_settings(config)

    console.print("[bold blue]Generating Wrapper Module[/bold blue]")
    try:
        result = _generate(settings)
    except SprocSyncError as e:
        raise click.ClickException(str(e)) from e

    status = "written" if result.written else "unchanged"
    console.print(f"[green]{result.path}: {len(result.methods)} methods ({status})[/green]")


@cli.command()
@click.argument("config", type=click.Path(exists=True, dir_okay=False, path_type=Path))
def run(config: Path) -> None:
    """
    Load all stored routines and generate the wrapper module.

    Example:

        sproc_sync run etc/sproc_sync.yml
    """
    settings = _load_settings(config)

    console.print("[bold blue]Loading Stored Routines[/bold blue]")
    try:
        result = _synchronize(settings, ())
        _print_sync_summary(result)

        console.print("\n[bold blue]Generating Wrapper Module[/bold blue]")
        generation = _generate(settings)
    except SprocSyncError as e:
        raise click.ClickException(str(e)) from e

    status = "written" if generation.written else "unchanged"
    console.print(f"[green]{generation.path}: {len(generation.methods)} methods ({status})[/green]")

    _print_errors(result)
    if result.failed:
        sys.exit(1)


@cli.command()
@click.argument("config", type=click.Path(exists=True, dir_okay=False, path_type=Path))
@click.option("--routine", type=str, default=None, help="Show the parameters of a single routine")
def info(config: Path, routine: Optional[str]) -> None:
    """
    Display the routine metadata.

    Example:

        sproc_sync info etc/sproc_sync.yml --routine tst_foo
    """
    settings = _load_settings(config)
    try:
        metadata = MetadataStore(settings.loader().metadata).load()
    except SprocSyncError as e:
        raise click.ClickException(str(e)) from e

    if routine is not None:
        if routine not in metadata:
            raise click.ClickException(f"Routine {routine!r} not found in metadata")

        routine_metadata = metadata[routine]
        params_table = Table(title=f"Parameters of {routine}")
        params_table.add_column("Name", style="cyan")
        params_table.add_column("Type", style="green")
        params_table.add_column("Description", style="yellow")

        for parameter in routine_metadata.parameters:
            params_table.add_row(
                parameter.name,
                parameter.dtd_identifier or parameter.data_type,
                parameter.description,
            )

        console.print(f"[bold]{routine}[/bold] ({routine_metadata.designation.value})")
        console.print(params_table)
        return

    routines_table = Table(title="Stored Routines")
    routines_table.add_column("Routine", style="cyan")
    routines_table.add_column("Type", style="magenta")
    routines_table.add_column("Designation", style="green")
    routines_table.add_column("Parameters", style="yellow", justify="right")
    routines_table.add_column("Hidden")

    for name in sorted(metadata):
        entry = metadata[name]
        routines_table.add_row(
            name,
            entry.routine_type.value,
            entry.designation.value,
            str(len(entry.parameters)),
            "yes" if entry.hidden else "",
        )

    console.print(routines_table)


if __name__ == "__main__":
    cli()
