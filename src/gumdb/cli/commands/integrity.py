"""Integrity checking commands for the gumdb CLI."""

import time
import typer
from typing import Optional
from rich.console import Console
from rich.table import Table as RichTable

from gumdb.cli.utils import get_config_with_data, get_store
from gumdb.core.errors import StoreError
from gumdb.managers.integrity import IntegrityMonitor
from gumdb.models import IntegrityReport, IntegrityStats

app = typer.Typer(help="Integrity checking commands", invoke_without_command=True)
console = Console()


@app.callback()
def callback(ctx: typer.Context):
    """Show help when no subcommand is provided."""
    if ctx.invoked_subcommand is None:
        console.print(ctx.get_help())
        raise typer.Exit(0)


def _print_report(report: IntegrityReport) -> None:
    table = RichTable(title="Integrity checks", title_justify="left")
    table.add_column("Check", style="cyan")
    table.add_column("Result")
    table.add_column("Details", style="dim")
    for check in report.checks:
        result = "[green]pass[/green]" if check.passed else "[red]FAIL[/red]"
        table.add_row(check.name, result, "" if check.passed else check.message)
    console.print(table)


def _print_stats(stats: IntegrityStats) -> None:
    console.print("\n[bold]Integrity statistics[/bold]")
    console.print(f"State: {stats.state}")
    console.print(f"Checks run: {stats.check_count}")
    console.print(f"Errors: {stats.error_count}")
    console.print(f"Error rate: {stats.error_rate:.2f}")
    last = stats.last_check.strftime("%Y-%m-%d %H:%M:%S") if stats.last_check else "never"
    console.print(f"Last check: {last}")


@app.command()
def check():
    """Run every integrity check once."""
    _, config_data = get_config_with_data()
    with get_store(config_data) as store:
        try:
            report = IntegrityMonitor(store).perform_check()
        except StoreError as e:
            console.print(f"[red]❌ {e}[/red]")
            raise typer.Exit(1)

    _print_report(report)
    if report.ok:
        console.print("[green]✅ Store integrity verified[/green]")
    else:
        console.print(f"[red]❌ {len(report.failures)} integrity checks failed[/red]")
        raise typer.Exit(1)


@app.command()
def stats():
    """Run a check pass and show the resulting statistics."""
    _, config_data = get_config_with_data()
    with get_store(config_data) as store:
        monitor = IntegrityMonitor(store)
        monitor.perform_check()
        _print_stats(monitor.get_stats())


@app.command()
def monitor(
    interval: Optional[float] = typer.Option(
        None, "--interval", "-i", help="Seconds between checks (default from config)"
    ),
    duration: float = typer.Option(
        60.0, "--duration", "-d", help="Seconds to keep monitoring"
    ),
):
    """Run integrity checks periodically for a while."""
    _, config_data = get_config_with_data()
    interval = interval or config_data.integrity_interval
    if interval <= 0 or duration <= 0:
        console.print("[red]❌ --interval and --duration must be positive[/red]")
        raise typer.Exit(1)

    with get_store(config_data) as store:
        integrity_monitor = IntegrityMonitor(store)
        console.print(f"Monitoring every {interval}s for {duration}s (Ctrl+C to stop)")
        integrity_monitor.start_monitoring(interval)
        try:
            time.sleep(duration)
        except KeyboardInterrupt:
            console.print("\n[yellow]Interrupted[/yellow]")
        finally:
            integrity_monitor.stop_monitoring()

        stats = integrity_monitor.get_stats()

    _print_stats(stats)
    if stats.error_count:
        raise typer.Exit(1)
