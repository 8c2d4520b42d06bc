"""Sync commands: sync (one run) and daemon (run on an interval)."""

from __future__ import annotations

import sys
from typing import Optional

import click

from ._common import (
    build_synchronizer,
    console,
    load_settings_or_exit,
    report_table,
    start_logging,
)
from ..config import parse_duration
from ..daemon import SyncDaemon, run_once


def register_sync_commands(main: click.Group) -> None:
    """Register the sync and daemon commands."""

    @main.command("sync")
    @click.pass_context
    def sync(ctx: click.Context):
        """Run one synchronization and exit.

        Exits 1 when any error was counted during the run.
        """
        settings = load_settings_or_exit(ctx)
        log = start_logging(settings)
        synchronizer = build_synchronizer(settings, log)

        try:
            report = run_once(synchronizer, logger=log)
        finally:
            synchronizer.source.close()
            synchronizer.destination.close()

        console.print(report_table(report))
        if not report.ok:
            console.print(
                f"[bold red]Sync finished with {report.total_errors} error(s).[/]"
            )
            sys.exit(1)
        console.print("[green]Sync finished cleanly.[/]")

    @main.command("daemon")
    @click.option(
        "--interval", default=None,
        help="Time between runs, e.g. 30m or 1h30m. Overrides SYNC_INTERVAL.",
    )
    @click.pass_context
    def daemon(ctx: click.Context, interval: Optional[str]):
        """Sync now, then once per interval until SIGINT/SIGTERM.

        A failed run is logged and retried on the next tick; it never
        stops the daemon.
        """
        if interval is not None:
            try:
                parse_duration(interval)
            except ValueError as exc:
                console.print(f"[bold red]Invalid --interval:[/] {exc}")
                sys.exit(1)

        settings = load_settings_or_exit(ctx, sync_interval=interval)
        log = start_logging(settings)
        synchronizer = build_synchronizer(settings, log)

        console.print(
            f"\n  [green]Starting daemon[/] for vault [cyan]{settings.vault_id}[/]"
        )
        console.print(f"  Interval: {settings.sync_interval}")
        console.print("  [dim]Ctrl+C to stop[/]\n")

        svc = SyncDaemon(synchronizer, settings.interval_seconds, logger=log)
        try:
            svc.run_forever()
        finally:
            synchronizer.source.close()
            synchronizer.destination.close()
