"""
Secret engines -- where the remote secrets live.

Only Vault KV v2 is implemented. ``create_engine`` picks the engine for
a secret entry based on which backend section it configures.
"""

from __future__ import annotations

from typing import TYPE_CHECKING

from ..errors import ConfigError
from ..models import SecretEntry
from .base import FetchedSecret, SecretEngine
from .vault import VaultEngine

if TYPE_CHECKING:
    from ..context import RunContext

__all__ = ["FetchedSecret", "SecretEngine", "VaultEngine", "create_engine"]


def create_engine(entry: SecretEntry, ctx: RunContext) -> SecretEngine:
    """Build the engine for a secret entry.

    Raises:
        ConfigError: The entry configures no known backend.
    """
    if entry.vault is not None:
        return VaultEngine(entry.vault, ctx)
    raise ConfigError(f"No secret engine defined for secret '{entry.file}'")
