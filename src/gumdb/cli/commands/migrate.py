"""Legacy cache migration and backup commands for the gumdb CLI."""

import typer
from typing import Optional
from pathlib import Path
from rich.console import Console
from rich.table import Table as RichTable

from gumdb.cli.utils import get_config_with_data, get_store
from gumdb.core.errors import BackupError, GumError
from gumdb.managers.locker import DatabaseLocker
from gumdb.managers.migration import Migrator

app = typer.Typer(help="Migration and backup commands", invoke_without_command=True)
console = Console()


@app.callback()
def callback(ctx: typer.Context):
    """Show help when no subcommand is provided."""
    if ctx.invoked_subcommand is None:
        console.print(ctx.get_help())
        raise typer.Exit(0)


def _migrator(store, config_data) -> Migrator:
    locker = DatabaseLocker(store, default_timeout=config_data.lock_timeout)
    return Migrator(store, locker=locker)


@app.command()
def run(
    cache_dir: Optional[Path] = typer.Option(
        None, "--cache-dir", "-c", help="Directory holding the legacy JSON caches"
    ),
    link: bool = typer.Option(
        True, "--link/--no-link", help="Link migrated projects to GitHub repositories"
    ),
):
    """Import the legacy JSON cache files into the store."""
    _, config_data = get_config_with_data()
    cache_dir = cache_dir or config_data.cache_dir

    with get_store(config_data) as store:
        migrator = _migrator(store, config_data)
        if not migrator.needs_migration(cache_dir):
            console.print(f"[yellow]No legacy cache files in {cache_dir}[/yellow]")
            return

        try:
            summary = migrator.migrate_from_legacy(cache_dir)
            linked = migrator.link_external_metadata() if link else None
        except GumError as e:
            console.print(f"[red]❌ {e}[/red]")
            raise typer.Exit(1)

    table = RichTable(title="Migration", title_justify="left")
    table.add_column("File", style="cyan")
    table.add_column("Migrated", style="green", justify="right")
    table.add_column("Skipped", style="yellow", justify="right")
    table.add_column("Failed", style="red", justify="right")
    for result in summary.files:
        table.add_row(result.source.name, str(result.migrated), str(result.skipped), str(result.failed))
    console.print(table)

    console.print(
        f"[green]✅ Migrated {summary.migrated} records ({summary.skipped} skipped)[/green]"
    )
    if linked is not None:
        console.print(f"Linked {linked} projects to GitHub repositories")
    console.print(f"[dim]Original files moved to {cache_dir / 'backup'}[/dim]")


@app.command()
def rollback(
    cache_dir: Optional[Path] = typer.Option(
        None, "--cache-dir", "-c", help="Directory holding the legacy JSON caches"
    ),
    force: bool = typer.Option(False, "--force", "-f", help="Skip confirmation"),
):
    """Restore the legacy JSON cache files and clear migrated data."""
    _, config_data = get_config_with_data()
    cache_dir = cache_dir or config_data.cache_dir

    if not force:
        console.print("[yellow]⚠️  Cached projects and project directories will be cleared[/yellow]")
        if not typer.confirm("Roll back the migration?"):
            console.print("[yellow]Cancelled[/yellow]")
            raise typer.Exit(0)

    with get_store(config_data) as store:
        try:
            _migrator(store, config_data).rollback(cache_dir)
        except GumError as e:
            console.print(f"[red]❌ {e}[/red]")
            raise typer.Exit(1)

    console.print("[green]✅ Migration rolled back[/green]")


@app.command()
def backup(
    ctx: typer.Context,
    path: Optional[Path] = typer.Argument(None, help="Where to write the backup"),
):
    """Copy the store file to PATH."""
    if path is None:
        console.print(ctx.get_help())
        console.print("\n[red]❌ Error: Missing argument 'PATH'.[/red]")
        raise typer.Exit(1)

    _, config_data = get_config_with_data()
    with get_store(config_data) as store:
        try:
            written = _migrator(store, config_data).backup(path)
        except BackupError as e:
            console.print(f"[red]❌ {e}[/red]")
            raise typer.Exit(1)

    console.print(f"[green]✅ Store backed up to {written}[/green]")


@app.command()
def restore(
    ctx: typer.Context,
    path: Optional[Path] = typer.Argument(None, help="Backup file to restore"),
    force: bool = typer.Option(False, "--force", "-f", help="Skip confirmation"),
):
    """Replace the store file with the backup at PATH."""
    if path is None:
        console.print(ctx.get_help())
        console.print("\n[red]❌ Error: Missing argument 'PATH'.[/red]")
        raise typer.Exit(1)

    if not force:
        console.print("[yellow]⚠️  The current store contents will be replaced[/yellow]")
        if not typer.confirm(f"Restore the store from {path}?"):
            console.print("[yellow]Cancelled[/yellow]")
            raise typer.Exit(0)

    _, config_data = get_config_with_data()
    with get_store(config_data) as store:
        try:
            _migrator(store, config_data).restore(path)
        except BackupError as e:
            console.print(f"[red]❌ {e}[/red]")
            raise typer.Exit(1)

    console.print(f"[green]✅ Store restored from {path}[/green]")


@app.command()
def link():
    """Link cached projects to GitHub repositories by remote URL."""
    _, config_data = get_config_with_data()
    with get_store(config_data) as store:
        try:
            linked = _migrator(store, config_data).link_external_metadata()
        except GumError as e:
            console.print(f"[red]❌ {e}[/red]")
            raise typer.Exit(1)

    console.print(f"[green]✅ Linked {linked} projects to GitHub repositories[/green]")
