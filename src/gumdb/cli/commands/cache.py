"""Cache inspection commands for the gumdb CLI."""

import typer
from typing import Optional
from rich.console import Console
from rich.table import Table as RichTable

from gumdb.cli.utils import get_config_with_data, get_store
from gumdb.core.errors import StoreError
from gumdb.managers.cache import CACHE_KEYS, CacheManager

app = typer.Typer(help="Cache management commands", invoke_without_command=True)
console = Console()


@app.callback()
def callback(ctx: typer.Context):
    """Show help when no subcommand is provided."""
    if ctx.invoked_subcommand is None:
        console.print(ctx.get_help())
        raise typer.Exit(0)


@app.command()
def stats():
    """Show row counts of the cached entities."""
    _, config_data = get_config_with_data()

    with get_store(config_data) as store:
        try:
            cache_stats = CacheManager(store).cache_stats()
        except StoreError as e:
            console.print(f"[red]❌ {e}[/red]")
            raise typer.Exit(1)

    table = RichTable(title=f"Cache {config_data.database_path}", title_justify="left")
    table.add_column("Entity", style="cyan")
    table.add_column("Rows", style="green", justify="right")
    table.add_row("Projects", str(cache_stats.projects))
    table.add_row("Linked projects", str(cache_stats.linked_projects))
    table.add_row("Project directories", str(cache_stats.project_dirs))
    table.add_row("Directory usage", str(cache_stats.dir_usage))
    table.add_row("GitHub repositories", str(cache_stats.github_repos))
    console.print(table)
    console.print(f"[dim]Freshness: {cache_stats.freshness} refresh[/dim]")


@app.command()
def clear(
    ctx: typer.Context,
    key: Optional[str] = typer.Argument(
        None, help=f"Cache to clear: {', '.join(CACHE_KEYS)}"
    ),
    force: bool = typer.Option(False, "--force", "-f", help="Skip confirmation"),
):
    """Clear cached entities."""
    if key is None:
        console.print(ctx.get_help())
        console.print("\n[red]❌ Error: Missing argument 'KEY'.[/red]")
        raise typer.Exit(1)

    if key not in CACHE_KEYS:
        console.print(
            f"[red]❌ Unknown cache key '{key}'. Valid keys: {', '.join(CACHE_KEYS)}[/red]"
        )
        raise typer.Exit(1)

    if not force:
        if not typer.confirm(f"Clear the '{key}' cache?"):
            console.print("[yellow]Cancelled[/yellow]")
            raise typer.Exit(0)

    _, config_data = get_config_with_data()
    with get_store(config_data) as store:
        try:
            deleted = CacheManager(store).clear_cache(key)
        except StoreError as e:
            console.print(f"[red]❌ {e}[/red]")
            raise typer.Exit(1)

    console.print(f"[green]✅ Cleared '{key}' cache ({deleted} rows)[/green]")


@app.command(name="projects")
def list_projects(
    name: Optional[str] = typer.Option(
        None, "--name", "-n", help="Rank projects matching this name first"
    ),
    like: Optional[str] = typer.Option(
        None, "--like", help="Only show projects resembling this path"
    ),
    limit: int = typer.Option(10, "--limit", "-l", help="Maximum projects shown with --like"),
):
    """List cached projects."""
    _, config_data = get_config_with_data()
    with get_store(config_data) as store:
        if like:
            projects = CacheManager(store).get_similar_projects(like, limit)
        elif name:
            projects = store.get_projects(sort_by_similarity=True, target=name)
        else:
            projects = CacheManager(store).get_projects()

    if not projects:
        console.print("[yellow]No projects cached[/yellow]")
        return

    table = RichTable(title="Projects", title_justify="left")
    table.add_column("Name", style="cyan")
    table.add_column("Path")
    table.add_column("Branch", style="yellow")
    table.add_column("Remote", style="dim")

    for project in projects:
        table.add_row(project.name, project.path, project.branch or "", project.remote_url or "")

    console.print(table)


@app.command(name="dirs")
def list_project_dirs():
    """List cached project directories."""
    _, config_data = get_config_with_data()
    with get_store(config_data) as store:
        project_dirs = CacheManager(store).get_project_dirs()

    if not project_dirs:
        console.print("[yellow]No project directories cached[/yellow]")
        return

    table = RichTable(title="Project directories", title_justify="left")
    table.add_column("Path", style="cyan")
    table.add_column("Repositories", justify="right")
    table.add_column("Last scanned", style="dim")

    for project_dir in project_dirs:
        scanned = project_dir.last_scanned.strftime("%Y-%m-%d %H:%M") if project_dir.last_scanned else "never"
        table.add_row(project_dir.path, str(project_dir.git_count), scanned)

    console.print(table)
