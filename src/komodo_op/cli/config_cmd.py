"""Config command: show the effective configuration."""

from __future__ import annotations

import click
from rich.table import Table

from ._common import console, load_settings_or_exit


def register_config_commands(main: click.Group) -> None:
    """Register the config command."""

    @main.command("config")
    @click.pass_context
    def config(ctx: click.Context):
        """Show the effective configuration with credentials masked."""
        settings = load_settings_or_exit(ctx)

        table = Table(title="komodo-op configuration", show_header=True, header_style="bold")
        table.add_column("Setting", style="cyan")
        table.add_column("Value")
        for key, value in settings.masked().items():
            table.add_row(key, value)
        console.print(table)
