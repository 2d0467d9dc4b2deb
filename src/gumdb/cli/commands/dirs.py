"""Frecency-ranked directory listing for the gumdb CLI."""

import typer
from typing import Optional
from rich.console import Console
from rich.table import Table as RichTable

from gumdb.cli.utils import get_config_with_data, get_store
from gumdb.core.errors import StoreError
from gumdb.managers.cache import CacheManager

console = Console()


def list_directories(limit: Optional[int] = None, plain: bool = False):
    """Print cached directories ordered by frecency score."""
    _, config_data = get_config_with_data()
    limit = limit or config_data.usage_limit

    with get_store(config_data) as store:
        try:
            ranked = CacheManager(store).get_ranked_directories(limit)
        except StoreError as e:
            console.print(f"[red]❌ {e}[/red]")
            raise typer.Exit(1)

    if plain:
        # One path per line for fzf and shell pipelines
        for usage in ranked:
            typer.echo(usage.path)
        return

    if not ranked:
        console.print("[yellow]No directory usage recorded[/yellow]")
        return

    table = RichTable(title="Directories by frecency", title_justify="left")
    table.add_column("Score", style="green", justify="right")
    table.add_column("Visits", justify="right")
    table.add_column("Last seen", style="dim")
    table.add_column("Path", style="cyan")

    for usage in ranked:
        table.add_row(
            str(usage.score),
            str(usage.frequency),
            usage.last_seen.strftime("%Y-%m-%d %H:%M"),
            usage.path,
        )

    console.print(table)
