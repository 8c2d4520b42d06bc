"""Shared utilities for the CLI command modules.

Provides the Rich console instance, settings loading with
user-facing errors, and construction of the sync pipeline.
"""

from __future__ import annotations

import logging
import sys
from typing import Any

import click
from rich.console import Console
from rich.markup import escape
from rich.table import Table

from ..config import Settings, load_settings
from ..errors import ConfigError
from ..komodo import KomodoClient
from ..log import configure_logging
from ..models import SyncReport
from ..onepassword import OnePasswordClient
from ..synchronizer import Synchronizer

console = Console()


def load_settings_or_exit(ctx: click.Context, **overrides: Any) -> Settings:
    """Load settings for a command, exiting with status 1 on bad config.

    Args:
        ctx: Click context carrying the global ``--config``/``--log-level``.
        **overrides: Extra command-level overrides.

    Returns:
        Settings: Validated configuration.
    """
    obj = ctx.obj or {}
    try:
        return load_settings(
            config_file=obj.get("config_file"),
            log_level=obj.get("log_level"),
            **overrides,
        )
    except ConfigError as exc:
        console.print(f"[bold red]Configuration error:[/] {escape(str(exc))}")
        sys.exit(1)


def build_synchronizer(settings: Settings, logger: logging.Logger) -> Synchronizer:
    """Wire both clients and the synchronizer from settings."""
    source = OnePasswordClient(
        host=settings.op_connect_host,
        token=settings.op_service_account_token.get_secret_value(),
        vault_id=settings.vault_id,
        timeout=settings.request_timeout,
        logger=logger.getChild("onepassword"),
    )
    destination = KomodoClient(
        host=settings.komodo_host,
        api_key=settings.komodo_api_key,
        api_secret=settings.komodo_api_secret.get_secret_value(),
        timeout=settings.request_timeout,
        logger=logger.getChild("komodo"),
    )
    return Synchronizer(
        source, destination, settings.vault_id,
        logger=logger.getChild("synchronizer"),
    )


def start_logging(settings: Settings) -> logging.Logger:
    """Configure the package logger from settings and report the level."""
    log = configure_logging(settings.log_level)
    log.debug("Log level set to %s", settings.log_level.value)
    return log


def report_table(report: SyncReport) -> Table:
    """Render a run report as a Rich table.

    Args:
        report: Counters from one synchronizer run.

    Returns:
        Table: Ready to print.
    """
    table = Table(title="Sync summary", show_header=True, header_style="bold")
    table.add_column("Metric", style="cyan")
    table.add_column("Count", justify="right")

    table.add_row("Items seen", str(report.items_seen))
    table.add_row("Secrets found", str(report.secrets_found))
    table.add_row("Created", f"[green]{report.created}[/]")
    table.add_row("Updated", f"[green]{report.updated}[/]")
    table.add_row("Deleted", str(report.deleted))
    table.add_row("Skipped", f"[dim]{report.skipped}[/]")
    errors = report.total_errors
    table.add_row("Errors", f"[bold red]{errors}[/]" if errors else "0")
    return table
