"""Main CLI entry point for gumdb."""

import logging
import typer
from typing import Optional

# Import command groups
from gumdb.cli.commands import cache, migrate, integrity

app = typer.Typer(
    name="gum-db",
    help="gumdb - SQLite cache of projects and frecently used directories",
    add_completion=False,
    invoke_without_command=True,
)


@app.callback()
def main(
    ctx: typer.Context,
    verbose: bool = typer.Option(False, "--verbose", "-v", help="Enable debug logging"),
):
    """
    gumdb - SQLite cache of projects and frecently used directories
    """
    logging.basicConfig(
        level=logging.DEBUG if verbose else logging.WARNING,
        format="%(asctime)s %(levelname)s %(name)s: %(message)s",
    )
    if ctx.invoked_subcommand is None:
        # No subcommand was invoked, show help
        print(ctx.get_help())
        raise typer.Exit(0)


# Add command groups
app.add_typer(cache.app, name="cache", help="Cache management commands")
app.add_typer(migrate.app, name="migrate", help="Migration and backup commands")
app.add_typer(integrity.app, name="integrity", help="Integrity checking commands")


# Add dirs as direct command instead of subtyper
@app.command()
def dirs(
    limit: Optional[int] = typer.Option(
        None, "--limit", "-l", help="Maximum number of directories (default from config)"
    ),
    plain: bool = typer.Option(False, "--plain", "-p", help="Print paths only"),
):
    """List directories ranked by frecency."""
    from gumdb.cli.commands.dirs import list_directories

    list_directories(limit, plain=plain)


@app.command()
def version():
    """Show gumdb version."""
    from gumdb import __version__

    typer.echo(f"gumdb version {__version__}")


@app.command()
def status():
    """Show gumdb status including configuration and environment variables."""
    from gumdb.cli.utils import get_config_with_data, get_store, show_env_config
    from gumdb.core.errors import StoreError
    from rich.console import Console

    console = Console()

    config, config_data = get_config_with_data()

    console.print("\n[bold]gumdb Status[/bold]")
    console.print(f"Config file: {config.config_path}", end="")
    console.print("" if config.exists else " [dim](not found, using defaults)[/dim]")
    console.print(f"Cache directory: {config_data.cache_dir}")
    console.print(f"Store: {config_data.database_path}")

    try:
        with get_store(config_data) as store:
            stats = store.stats()
            schema_version = store.schema_version()
    except StoreError as e:
        console.print(f"[red]❌ Error: {e}[/red]")
        raise typer.Exit(1)

    console.print(f"Schema version: {schema_version}")
    for table, rows in stats.items():
        console.print(f"  {table}: {rows}")

    # Show environment variables
    show_env_config()


if __name__ == "__main__":
    app()
