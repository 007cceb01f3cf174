"""
User-level JSON config files (credentials and token cache).

Files live in ``$SECRETSYNC_HOME`` (default ``~/.config/secretsync``)
as ``<name>.json`` and are written owner-readable only.
"""

from __future__ import annotations

import json
import logging
import os
from pathlib import Path
from typing import Optional

from . import CONFIG_HOME
from .errors import ConfigError

logger = logging.getLogger("secretsync.userconfig")


def _write_private(path: Path, data: dict) -> None:
    path.parent.mkdir(parents=True, exist_ok=True)
    fd = os.open(path, os.O_WRONLY | os.O_CREAT | os.O_TRUNC, 0o600)
    with os.fdopen(fd, "w", encoding="utf-8") as f:
        json.dump(data, f, indent=2)


def load_external_config(path: Path) -> dict:
    """Read a JSON config file outside the user config directory.

    Raises:
        ConfigError: The file is missing or not valid JSON.
    """
    try:
        return json.loads(Path(path).read_text(encoding="utf-8")) or {}
    except OSError as exc:
        raise ConfigError(f"Cannot read config file {path}: {exc}") from exc
    except json.JSONDecodeError as exc:
        raise ConfigError(f"Invalid JSON in config file {path}: {exc}") from exc


def save_external_config(path: Path, data: dict) -> None:
    """Write a JSON config file outside the user config directory."""
    _write_private(Path(path), data)


class UserConfigStore:
    """Named JSON documents in the user config directory."""

    def __init__(self, config_dir: Optional[Path] = None):
        self.config_dir = Path(
            config_dir or os.environ.get("SECRETSYNC_HOME") or CONFIG_HOME
        ).expanduser()

    def path_for(self, name: str) -> Path:
        return self.config_dir / f"{name}.json"

    def load(self, name: str) -> dict:
        """Load a config document, or an empty dict if it does not exist."""
        path = self.path_for(name)
        if not path.exists():
            return {}
        try:
            return json.loads(path.read_text(encoding="utf-8")) or {}
        except json.JSONDecodeError as exc:
            raise ConfigError(f"Invalid JSON in {path}: {exc}") from exc

    def save(self, name: str, data: dict) -> None:
        """Persist a config document."""
        path = self.path_for(name)
        _write_private(path, data)
        logger.debug("Saved user config %s", path)
