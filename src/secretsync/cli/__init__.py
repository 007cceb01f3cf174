"""
secretsync CLI -- sync local secret files with Vault.

The main Click group is defined here and every command module
registers its commands on it.

Entry point: secretsync.cli:main
"""

from __future__ import annotations

import logging
from pathlib import Path

import click

from .. import __version__
from ..context import RunContext
from ..errors import SecretSyncError
from ._common import console, fail


@click.group()
@click.version_option(version=__version__, prog_name="secretsync")
@click.option(
    "--cicd",
    is_flag=True,
    help="Never prompt and never touch user config (also set by $CICD).",
)
@click.option(
    "--auth-config",
    "auth_configs",
    multiple=True,
    type=click.Path(dir_okay=False, path_type=Path),
    help="Extra auth config file, may be given more than once.",
)
@click.option("-v", "--verbose", is_flag=True, help="Enable debug logging.")
@click.pass_context
def main(ctx: click.Context, cicd: bool, auth_configs: tuple, verbose: bool):
    """secretsync -- keep local secret files in step with Vault."""
    logging.basicConfig(
        level=logging.DEBUG if verbose else logging.WARNING,
        format="%(levelname)s %(name)s: %(message)s",
    )

    # A prepared context may be handed in by embedding callers.
    if isinstance(ctx.obj, RunContext):
        return

    try:
        ctx.obj = RunContext.from_environment(
            cicd=cicd, auth_files=auth_configs, console=console
        )
    except SecretSyncError as exc:
        fail("loading auth config", exc)


# ---------------------------------------------------------------------------
# Register all command groups/commands from modular files
# ---------------------------------------------------------------------------

from .sync_cmd import register_sync_commands
from .add import register_add_commands
from .config_cmd import register_config_commands

register_sync_commands(main)
register_add_commands(main)
register_config_commands(main)
