"""
Secret engine interface.

Each engine knows how to authenticate against its backend, fetch the
value a secret entry maps to, and write a new value back. The sync
engine only talks to this interface.
"""

from __future__ import annotations

from abc import ABC, abstractmethod
from dataclasses import dataclass, field
from typing import Any, Callable, Optional

from ..errors import ConfigError
from ..formats import DataFormat


@dataclass
class FetchedSecret:
    """Result of fetching one secret.

    Attributes:
        format: Configured format of the local file.
        value: Mapped value (None when data is missing).
        version: Backend version of the remote document.
        is_missing_data: The document, or the mapped path in it, is absent.
    """

    format: DataFormat
    value: Any = None
    version: Any = None
    is_missing_data: bool = False
    uploader: Optional[Callable[[Any], Any]] = field(default=None, repr=False)

    def upload_new(self, value: Any) -> Any:
        """Write ``value`` to the remote secret and return the new version."""
        if self.uploader is None:
            raise ConfigError("This secret cannot be uploaded")
        return self.uploader(value)


class SecretEngine(ABC):
    """Abstract secret backend for one secret entry."""

    @abstractmethod
    def prepare(self) -> None:
        """Make sure credentials for the backend are available."""

    @abstractmethod
    def fetch(self) -> FetchedSecret:
        """Fetch the current remote value."""

    @abstractmethod
    def upload_new(self, value: Any) -> Any:
        """Replace the remote value and return the new version."""

    @property
    @abstractmethod
    def name(self) -> str:
        """Human-readable engine name."""
