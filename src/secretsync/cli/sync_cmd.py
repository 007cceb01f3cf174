"""Sync command: reconcile local secret files with Vault."""

from __future__ import annotations

import click

from ..context import RunContext
from ..errors import ConfigError, SecretSyncError
from ..models import ClassUpdate
from ..sync import Project, SyncEngine, SyncOptions
from ._common import fail


def register_sync_commands(main: click.Group) -> None:
    """Register the sync command."""

    @main.command("sync")
    @click.argument("classes", required=False)
    @click.option(
        "--pull",
        is_flag=True,
        help="Prefer pulling remote secrets during conflicts.",
    )
    @click.option(
        "--push",
        is_flag=True,
        help="Prefer pushing local changes during conflicts.",
    )
    @click.option("--fix", is_flag=True, help="Fix issues with secrets by default.")
    @click.pass_obj
    def sync(run_ctx: RunContext, classes, pull, push, fix):
        """Fetch the latest secrets and update local copies where needed.

        CLASSES changes which secret classes are synced and is saved to
        the local class file. Secrets without a class are always synced.

        \b
            +all       all classes (replaces saved settings)
            +foo,+bar  add the 'foo' and 'bar' classes
            ,-foo      remove the 'foo' class
            +all,-foo  all classes except 'foo'
            ,-all      reset saved class settings
        """
        try:
            update = ClassUpdate.parse(classes)
        except ValueError as exc:
            fail("parsing classes", ConfigError(str(exc)))

        try:
            project = Project.open(run_ctx)
        except SecretSyncError as exc:
            fail("opening project", exc)

        options = SyncOptions(pull=pull, push=push, fix=fix, classes=update)
        try:
            SyncEngine(project, run_ctx).run(options)
        except SecretSyncError as exc:
            fail("syncing secrets", exc)
