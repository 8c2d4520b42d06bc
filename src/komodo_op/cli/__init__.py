"""
komodo-op CLI — run the 1Password to Komodo sync by hand or as a daemon.

The main Click group is defined here and the subcommands are
registered from their own modules via register functions.

Entry point: komodo_op.cli:main
"""

from __future__ import annotations

import click

from .. import __version__
from ..config import LogLevel


@click.group()
@click.version_option(version=__version__, prog_name="komodo-op")
@click.option(
    "--config", "config_file",
    envvar="KOMODO_OP_CONFIG",
    type=click.Path(dir_okay=False),
    default=None,
    help="YAML config file. Environment variables take precedence.",
)
@click.option(
    "--log-level",
    type=click.Choice([lvl.value for lvl in LogLevel] + ["error"], case_sensitive=False),
    default=None,
    help="Override LOG_LEVEL.",
)
@click.pass_context
def main(ctx: click.Context, config_file, log_level):
    """komodo-op — mirror 1Password vault items into Komodo secrets.

    Configuration comes from OP_CONNECT_HOST, OP_VAULT,
    OP_SERVICE_ACCOUNT_TOKEN, KOMODO_HOST, KOMODO_API_KEY,
    KOMODO_API_SECRET, LOG_LEVEL and SYNC_INTERVAL.
    """
    ctx.ensure_object(dict)
    ctx.obj["config_file"] = config_file
    ctx.obj["log_level"] = log_level


# ---------------------------------------------------------------------------
# Register all commands from modular files
# ---------------------------------------------------------------------------

from .sync_cmd import register_sync_commands
from .config_cmd import register_config_commands

register_sync_commands(main)
register_config_commands(main)
