"""CLI interface for dbmig-probe."""

import json
import logging
import sys
from pathlib import Path

import click
from rich.console import Console
from rich.logging import RichHandler
from rich.table import Table

from . import __version__
from .config import Config, load_config
from .probe import (
    Found,
    MigrationRange,
    NoPriorInstall,
    ProbeFailed,
    ProbeResult,
    probe,
    script_name,
)
from .properties import (
    MAX_VERSION_PROPERTY,
    FilePropertyStore,
    PropertyStoreError,
    get_highest_db_migration_version,
    to_property_value,
)

console = Console()


@click.group()
@click.version_option(version=__version__)
@click.option(
    "--config",
    type=click.Path(exists=True, path_type=Path),
    help="Custom config file path",
)
@click.option("-v", "--verbose", is_flag=True, help="Log each probe step")
@click.pass_context
def cli(ctx: click.Context, config: Path | None, verbose: bool) -> None:
    """dbmig-probe: Find the highest database migration script of an older installation."""
    ctx.ensure_object(dict)

    logging.basicConfig(
        level=logging.DEBUG if verbose else logging.WARNING,
        format="%(message)s",
        handlers=[RichHandler(console=Console(stderr=True), show_path=False)],
    )

    try:
        ctx.obj["config"] = load_config(config)
    except (FileNotFoundError, ValueError, OSError, PermissionError) as e:
        console.print(f"[red]Error:[/red] Configuration: {e}")
        sys.exit(1)


@cli.command("probe")
@click.argument("directory", type=click.Path(path_type=str))
@click.option("--low", type=int, help="First version to probe (overrides config)")
@click.option(
    "--high-exclusive", type=int, help="First version not to probe (overrides config)"
)
@click.option(
    "--format",
    type=click.Choice(["table", "json"], case_sensitive=False),
    default="table",
    help="Output format: table (default) or json",
)
@click.pass_context
def probe_command(
    ctx: click.Context,
    directory: str,
    low: int | None,
    high_exclusive: int | None,
    format: str,
) -> None:
    """
    Probe a data-migration directory for the highest installed script version.

    Scans ascending from the first version of the range and stops at the
    first missing "<prev>To<version>.sql" script.

    Examples:

        \b
        # Probe using the configured range
        dbmig-probe probe "C:\\Program Files\\App\\DataMigration\\"

        \b
        # Probe a custom range and print JSON
        dbmig-probe probe ./DataMigration --low 200006 --high-exclusive 200100 --format json
    """
    config = ctx.obj["config"]

    # Overrides go through Config so a result can never equal a sentinel
    overrides = {}
    if low is not None:
        overrides["low_version"] = low
    if high_exclusive is not None:
        overrides["high_version_exclusive"] = high_exclusive

    try:
        config = Config.model_validate({**config.model_dump(), **overrides})
    except ValueError as e:
        console.print(f"[red]Error:[/red] Range: {e}")
        sys.exit(1)

    migration_range = config.migration_range
    result = probe(directory, migration_range)
    value = to_property_value(result, config)

    if format == "json":
        output = {
            "directory": directory,
            "low": migration_range.low,
            "high_exclusive": migration_range.high_exclusive,
            "outcome": type(result).__name__,
            MAX_VERSION_PROPERTY: value,
        }
        print(json.dumps(output, indent=2))
    else:
        _display_probe_result(directory, migration_range, result, value)


@cli.command()
@click.option(
    "--properties",
    "-p",
    "properties_file",
    required=True,
    type=click.Path(dir_okay=False, path_type=Path),
    help='Properties file in store layout: {"properties": {"1": {NAME: VALUE, ...}}}',
)
@click.pass_context
def detect(ctx: click.Context, properties_file: Path) -> None:
    """
    Run detection against installer properties and store MAX_DBMIG_VER.

    Reads OLDER_FW_INSTALL_PATH and OLDDATAMIGRATIONDIR from the properties
    file and writes the detected version back to it. Properties live in a
    single document of the "properties" table:

        \b
        {"properties": {"1": {"OLDER_FW_INSTALL_PATH": "...",
                              "OLDDATAMIGRATIONDIR": "..."}}}

    A missing or empty file means no properties are set.

    Examples:

        \b
        dbmig-probe detect --properties install-properties.json
    """
    config = ctx.obj["config"]

    try:
        store = FilePropertyStore(properties_file)
    except (OSError, PropertyStoreError) as e:
        console.print(f"[red]Error:[/red] Properties: {e}")
        sys.exit(1)

    try:
        result = get_highest_db_migration_version(store, config)
        value = to_property_value(result, config)
        stored = store.get(MAX_VERSION_PROPERTY)
    except PropertyStoreError as e:
        console.print(f"[red]Error:[/red] Properties: {e}")
        sys.exit(1)
    finally:
        store.close()

    if stored != value:
        console.print(
            f"[red]Error:[/red] Could not store {MAX_VERSION_PROPERTY}={value} "
            f"in {properties_file}"
        )
        sys.exit(1)

    console.print(f"{MAX_VERSION_PROPERTY}={value} ({_describe(result)})")


@cli.command("script-name")
@click.argument("version", type=click.IntRange(min=1))
def script_name_command(version: int) -> None:
    """Print the migration script file name for VERSION."""
    print(script_name(version))


def _describe(result: ProbeResult) -> str:
    """Short human-readable description of a probe result."""
    if isinstance(result, NoPriorInstall):
        return "no older installation"
    if isinstance(result, Found):
        return f"highest installed version {result.version}"
    if isinstance(result, ProbeFailed):
        return f"detection failed: {result.reason}"
    return f"every script up to {result.last_version} present"


def _display_probe_result(
    directory: str,
    migration_range: MigrationRange,
    result: ProbeResult,
    value: str,
) -> None:
    """Display probe result."""
    table = Table(title="Migration Probe")
    table.add_column("Directory", style="cyan")
    table.add_column("Range", style="magenta")
    table.add_column("Outcome")
    table.add_column(MAX_VERSION_PROPERTY, style="green")

    if isinstance(result, ProbeFailed):
        outcome = f"[red]✗ {_describe(result)}[/red]"
    else:
        outcome = f"[green]✓ {_describe(result)}[/green]"

    table.add_row(
        directory,
        f"{migration_range.low}..{migration_range.high_exclusive - 1}",
        outcome,
        value,
    )

    console.print(table)


if __name__ == "__main__":
    cli()
