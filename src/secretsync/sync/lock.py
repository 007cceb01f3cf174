"""
Lockfile I/O and local file state.

``secrets.lock`` records, per tracked file, the remote version and the
hash and format of the local file as of the last sync. Each run builds
a fresh state from the files on disk and replaces the lockfile with it
once the run succeeds.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass, field
from enum import Enum
from pathlib import Path
from typing import Any, Optional

import yaml
from pydantic import ValidationError

from ..errors import ConfigError, ParseError
from ..formats import DataFormat, hash_value, parse_data, parse_format
from ..models import LockedFile, LockState

logger = logging.getLogger("secretsync.sync.lock")


def read_lockfile(path: Path) -> LockState:
    """Load a lockfile, or an empty state when it does not exist.

    Raises:
        ConfigError: The lockfile exists but is not a valid lock document.
    """
    if not path.exists():
        return LockState()
    try:
        data = yaml.safe_load(path.read_text(encoding="utf-8")) or {}
        return LockState.model_validate(data)
    except yaml.YAMLError as exc:
        raise ConfigError(f"Invalid YAML in lockfile {path}: {exc}") from exc
    except ValidationError as exc:
        raise ConfigError(f"Invalid lockfile {path}: {exc}") from exc


def save_lockfile(path: Path, state: LockState) -> None:
    """Replace the lockfile with ``state``."""
    text = yaml.safe_dump(state.to_document(), default_flow_style=False, sort_keys=True)
    path.write_text(text, encoding="utf-8")
    logger.debug("Saved lockfile %s (%d file(s))", path, len(state.files))


class LocalStatus(str, Enum):
    """What was found on disk for a tracked file."""

    ABSENT = "absent"
    UNPARSABLE = "unparsable"
    PARSED = "parsed"


@dataclass
class FileState:
    """Current state of one tracked file.

    ``locked`` is the record that ends up in the new lockfile; ``data``
    and ``parse_error`` are kept for the decision procedure only.
    """

    locked: LockedFile = field(default_factory=LockedFile)
    status: LocalStatus = LocalStatus.ABSENT
    data: Any = None
    parse_error: Optional[ParseError] = None


def compute_file_state(
    path: Path,
    configured: DataFormat,
    remote_version: Any,
    previous: Optional[LockedFile] = None,
) -> FileState:
    """Read and parse a local file.

    The format recorded in the previous lock is tried first, so a file
    whose mapping changed format is still recognised; the configured
    format is the fallback.
    """
    state = FileState(
        locked=LockedFile(remote_version=remote_version, local_format=configured.value)
    )

    if not path.is_file():
        return state

    raw = path.read_text(encoding="utf-8")

    candidates: list[DataFormat] = []
    if previous is not None:
        previous_format = parse_format(previous.local_format)
        if previous_format is not None:
            candidates.append(previous_format)
    if configured not in candidates:
        candidates.append(configured)

    for fmt in candidates:
        try:
            state.data = parse_data(raw, fmt)
        except ParseError as exc:
            state.parse_error = exc
            continue
        state.parse_error = None
        state.status = LocalStatus.PARSED
        state.locked.local_hash = hash_value(state.data)
        state.locked.local_format = fmt.value
        return state

    logger.debug("Could not parse %s: %s", path, state.parse_error)
    state.status = LocalStatus.UNPARSABLE
    return state
