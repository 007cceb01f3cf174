"""
Project -- a directory holding a ``secrets.yaml`` manifest.

Opening a project walks up from the working directory until it finds
the manifest, then loads the local class filter and the lockfile next
to it.
"""

from __future__ import annotations

import fnmatch
import logging
import os
from pathlib import Path
from typing import TYPE_CHECKING, Optional

import yaml
from pydantic import ValidationError

from ..errors import ConfigError
from ..models import ClassFilter, ClassUpdate, LockState, ProjectConfig, SecretEntry
from .lock import read_lockfile

if TYPE_CHECKING:
    from ..context import RunContext

logger = logging.getLogger("secretsync.sync.project")

PROJECT_FILE = "secrets.yaml"
LOCK_FILE = "secrets.lock"
CLASS_FILE = ".localsecretclasses"


def find_project_root(start: Path) -> Path:
    """Return the nearest directory at or above ``start`` with a manifest.

    Raises:
        ConfigError: No manifest up to the filesystem root.
    """
    current = Path(start).resolve()
    for candidate in [current, *current.parents]:
        if (candidate / PROJECT_FILE).is_file():
            return candidate
    raise ConfigError(
        "could not find a secrets manifest in working directory or parent directories"
    )


def load_project_config(path: Path) -> ProjectConfig:
    """Parse and validate a ``secrets.yaml`` file.

    Raises:
        ConfigError: The file is unreadable, not YAML, or invalid.
    """
    try:
        data = yaml.safe_load(path.read_text(encoding="utf-8")) or {}
    except OSError as exc:
        raise ConfigError(f"Cannot read {path}: {exc}") from exc
    except yaml.YAMLError as exc:
        raise ConfigError(f"Invalid YAML in {path}: {exc}") from exc

    try:
        return ProjectConfig.model_validate(data)
    except ValidationError as exc:
        raise ConfigError(f"Invalid project config {path}: {exc}") from exc


class Project:
    """A secrets manifest plus the local state stored beside it."""

    def __init__(
        self,
        path: Path,
        config: ProjectConfig,
        ctx: RunContext,
        classes: Optional[ClassFilter] = None,
        last_state: Optional[LockState] = None,
    ):
        self.path = Path(path)
        self.config = config
        self.ctx = ctx
        self.classes = classes or ClassFilter()
        self.last_state = last_state or LockState()

    @classmethod
    def open(cls, ctx: RunContext) -> Project:
        """Find and load the project containing ``ctx.workdir``."""
        root = find_project_root(ctx.workdir)
        logger.debug("Opening project at %s", root)
        config = load_project_config(root / PROJECT_FILE)
        project = cls(root, config, ctx)
        project.classes = project._load_classes()
        project.last_state = read_lockfile(root / LOCK_FILE)
        return project

    @property
    def secrets(self) -> list[SecretEntry]:
        return self.config.secrets

    def file_path(self, name: str) -> Path:
        """Absolute path of a tracked file."""
        return self.path / name

    def relative_name(self, name: str) -> str:
        """Path of a tracked file relative to the working directory."""
        return os.path.relpath(self.file_path(name), Path(self.ctx.workdir).resolve())

    def save(self) -> None:
        """Write the manifest back to ``secrets.yaml``."""
        text = yaml.safe_dump(
            self.config.to_document(), default_flow_style=False, sort_keys=False
        )
        (self.path / PROJECT_FILE).write_text(text, encoding="utf-8")

    # --- classes ---

    def _load_classes(self) -> ClassFilter:
        if self.ctx.cicd:
            return ClassFilter()
        class_file = self.path / CLASS_FILE
        if not class_file.exists():
            return ClassFilter()
        try:
            return ClassFilter.from_line(class_file.read_text(encoding="utf-8"))
        except OSError as exc:
            logger.warning("Failed to read %s: %s", class_file, exc)
            return ClassFilter()

    def apply_class_update(self, update: ClassUpdate) -> None:
        """Apply command-line class changes and persist them."""
        if update.model_dump() == ClassUpdate().model_dump():
            return
        self.classes = self.classes.apply(update)
        self.save_classes()

    def save_classes(self) -> None:
        """Write the class file (never in CI/CD mode, never created empty)."""
        if self.ctx.cicd:
            return
        line = self.classes.to_line()
        class_file = self.path / CLASS_FILE
        if not line and not class_file.exists():
            return
        self.ensure_gitignored(CLASS_FILE)
        class_file.write_text(line + "\n", encoding="utf-8")

    def split_by_class(self) -> tuple[list[SecretEntry], list[SecretEntry]]:
        """Split the entries into (selected, excluded) by the class filter."""
        selected, excluded = [], []
        for entry in self.secrets:
            if self.classes.selects(entry.class_):
                selected.append(entry)
            else:
                excluded.append(entry)
        return selected, excluded

    # --- .gitignore ---

    def ensure_gitignored(self, name: str) -> bool:
        """Append ``/<name>`` to ``.gitignore`` unless a pattern matches.

        Returns:
            True if ``.gitignore`` was changed.
        """
        if self.ctx.cicd:
            return False

        gitignore = self.path / ".gitignore"
        existing = ""
        if gitignore.exists():
            existing = gitignore.read_text(encoding="utf-8")
            for line in existing.splitlines():
                pattern = line.split("#", 1)[0].strip().lstrip("/")
                if pattern and fnmatch.fnmatchcase(name, pattern):
                    return False

        if existing and not existing.endswith("\n"):
            existing += "\n"
        gitignore.write_text(f"{existing}/{name}\n", encoding="utf-8")
        logger.info("Added /%s to %s", name, gitignore)
        return True
