"""Utility functions for CLI commands."""

import os
import typer
from typing import Tuple
from rich.console import Console

from gumdb.config import Config, GumConfig
from gumdb.core.errors import StoreError
from gumdb.core.store import Store

console = Console()


def get_config_with_data() -> Tuple[Config, GumConfig]:
    """Get the config manager and the loaded settings.

    Returns:
        tuple: (config, config_data)
    """
    config = Config()
    try:
        config_data = config.load()
    except Exception as e:
        # toml raises its own decode errors, pydantic raises ValidationError
        console.print(f"[red]❌ Invalid config file {config.config_path}: {e}[/red]")
        raise typer.Exit(1)

    return config, config_data


def get_store(config_data: GumConfig) -> Store:
    """Open the store named by the settings.

    Raises:
        typer.Exit: If the store cannot be opened
    """
    try:
        return Store(config_data.database_path, busy_timeout=config_data.busy_timeout)
    except StoreError as e:
        console.print(f"[red]❌ {e}[/red]")
        raise typer.Exit(1)


def show_env_config():
    """Display active environment variable configuration."""
    env_vars = {
        "GUM_CONFIG_DIR": os.environ.get("GUM_CONFIG_DIR"),
        "GUM_CACHE_DIR": os.environ.get("GUM_CACHE_DIR"),
        "GUM_DATABASE_PATH": os.environ.get("GUM_DATABASE_PATH"),
    }

    active = {k: v for k, v in env_vars.items() if v}
    if active:
        console.print("\n[yellow]Active environment variables:[/yellow]")
        for key, value in active.items():
            console.print(f"  {key}={value}")
    else:
        console.print("\n[dim]No gum environment variables set[/dim]")
