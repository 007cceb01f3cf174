"""Shared utilities for all CLI command modules.

Provides the Rich console instance and the error exit used by every
command.
"""

from __future__ import annotations

import logging
import sys
from typing import NoReturn

from rich.console import Console
from rich.markup import escape

console = Console(soft_wrap=True)
logger = logging.getLogger("secretsync.cli")


def fail(action: str, exc: Exception) -> NoReturn:
    """Print ``Error <action>: <message>`` and exit with status 1.

    Args:
        action: What was being done, e.g. ``"syncing secrets"``.
        exc: The error that stopped it.
    """
    logger.debug("Command failed while %s", action, exc_info=exc)
    console.print(f"[bold red]Error {action}:[/] {escape(str(exc))}")
    sys.exit(1)
