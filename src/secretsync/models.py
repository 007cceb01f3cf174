"""
Pydantic models for the documents secretsync reads and writes.

    secrets.yaml    ->  ProjectConfig
    secrets.lock    ->  LockState
    auth.json       ->  AuthConfig (see secretsync.auth)
    vault.json      ->  TokenCacheFile (see secretsync.tokens)

Persisted field names are camelCase; Python attributes are snake_case.
"""

from __future__ import annotations

from typing import Any, Optional, Union

from pydantic import (
    BaseModel,
    ConfigDict,
    Field,
    field_serializer,
    field_validator,
    model_validator,
)

from .formats import DataFormat
from .paths import Segment


class FromDataMapping(BaseModel):
    """Map a (sub-)document of the secret to a JSON or YAML file."""

    format: DataFormat
    path: Optional[list[Segment]] = None

    @field_validator("format")
    @classmethod
    def _structured_only(cls, value: DataFormat) -> DataFormat:
        if value is DataFormat.TEXT:
            raise ValueError("fromData format must be 'json' or 'yaml'")
        return value


class FromTextMapping(BaseModel):
    """Map a single string value of the secret to a raw text file."""

    path: list[Segment]

    @field_validator("path")
    @classmethod
    def _non_empty(cls, value: list[Segment]) -> list[Segment]:
        if not value:
            raise ValueError("No path provided for fromText secret mapping")
        return value


Mapping = Union[FromDataMapping, FromTextMapping]

_MAPPING_KEYS = {"fromData": FromDataMapping, "fromText": FromTextMapping}


class VaultSecretConfig(BaseModel):
    """Vault KV v2 location and mapping of one secret file."""

    url: str
    mapping: Mapping

    @field_validator("mapping", mode="before")
    @classmethod
    def _unwrap_mapping(cls, value: Any) -> Any:
        if isinstance(value, (FromDataMapping, FromTextMapping)):
            return value
        if not isinstance(value, dict):
            raise ValueError("mapping must be an object")
        present = [key for key in _MAPPING_KEYS if value.get(key) is not None]
        if len(present) != 1:
            raise ValueError("mapping must define exactly one of fromData or fromText")
        key = present[0]
        return _MAPPING_KEYS[key].model_validate(value[key])

    @field_serializer("mapping")
    def _wrap_mapping(self, mapping: Mapping) -> dict:
        key = "fromData" if isinstance(mapping, FromDataMapping) else "fromText"
        return {key: mapping.model_dump(mode="json", exclude_none=True)}

    @property
    def format(self) -> DataFormat:
        """Format of the local file this secret maps to."""
        if isinstance(self.mapping, FromDataMapping):
            return self.mapping.format
        return DataFormat.TEXT

    @property
    def path(self) -> list[Segment]:
        """Path of the mapped value inside the secret document."""
        return list(self.mapping.path or [])


class SecretEntry(BaseModel):
    """One tracked local file and the remote secret behind it."""

    model_config = ConfigDict(populate_by_name=True)

    file: str
    class_: Optional[str] = Field(default=None, alias="class")
    vault: Optional[VaultSecretConfig] = None

    @model_validator(mode="after")
    def _has_engine(self) -> SecretEntry:
        if self.vault is None:
            raise ValueError(f"No secret engine defined for secret '{self.file}'")
        return self


class ProjectConfig(BaseModel):
    """Root of ``secrets.yaml``."""

    secrets: list[SecretEntry] = Field(default_factory=list)

    @field_validator("secrets")
    @classmethod
    def _unique_files(cls, secrets: list[SecretEntry]) -> list[SecretEntry]:
        seen: set[str] = set()
        for entry in secrets:
            if entry.file in seen:
                raise ValueError(f"duplicate filename in config: {entry.file}")
            seen.add(entry.file)
        return secrets

    def to_document(self) -> dict:
        """Plain dict in the on-disk shape."""
        return self.model_dump(mode="json", by_alias=True, exclude_none=True)


class LockedFile(BaseModel):
    """Last reconciled state of one secret file."""

    model_config = ConfigDict(populate_by_name=True)

    remote_version: Optional[Any] = Field(default=None, alias="remoteVersion")
    local_hash: Optional[str] = Field(default=None, alias="localHash")
    local_format: Optional[str] = Field(default=None, alias="localFormat")


class LockState(BaseModel):
    """Root of ``secrets.lock``."""

    files: dict[str, LockedFile] = Field(default_factory=dict)

    def to_document(self) -> dict:
        """Plain dict in the on-disk shape."""
        return self.model_dump(mode="json", by_alias=True, exclude_none=True)


class ClassUpdate(BaseModel):
    """Class selection changes requested on the command line."""

    reset: bool = False
    default_all: bool = False
    add: list[str] = Field(default_factory=list)
    subtract: list[str] = Field(default_factory=list)

    @classmethod
    def parse(cls, text: Optional[str]) -> ClassUpdate:
        """Parse a command-line class argument such as ``+all,-foo``.

        Raises:
            ValueError: A token is neither ``+class`` nor ``-class``.
        """
        update = cls()
        for token in (text or "").split(","):
            token = token.strip()
            if not token:
                continue
            if token == "-all":
                update.reset = True
            elif token == "+all":
                update.default_all = True
            elif token.startswith("+") and len(token) > 1:
                update.add.append(token[1:])
            elif token.startswith("-") and len(token) > 1:
                update.subtract.append(token[1:])
            else:
                raise ValueError(f"Unexpected class argument '{token}'")
        return update


class ClassFilter(BaseModel):
    """Which secret classes are selected for syncing."""

    default_all: bool = False
    add: list[str] = Field(default_factory=list)
    subtract: list[str] = Field(default_factory=list)

    def selects(self, class_: Optional[str]) -> bool:
        """Whether an entry with this class takes part in the sync."""
        if class_ is None:
            return True
        selected = self.default_all or class_ in self.add
        return selected and class_ not in self.subtract

    def apply(self, update: ClassUpdate) -> ClassFilter:
        """Return the filter with a command-line update applied."""
        result = self.model_copy(deep=True)

        if update.reset:
            result = ClassFilter()
        if update.default_all:
            result = ClassFilter(default_all=True)

        for class_ in update.add:
            removed = class_ in result.subtract
            result.subtract = [c for c in result.subtract if c != class_]
            if not result.default_all and not removed and class_ not in result.add:
                result.add.append(class_)

        for class_ in update.subtract:
            removed = class_ in result.add
            result.add = [c for c in result.add if c != class_]
            if result.default_all and not removed and class_ not in result.subtract:
                result.subtract.append(class_)

        return result

    def to_line(self) -> str:
        """Serialize to the single-line class file format."""
        if self.default_all:
            return ",".join(["+all"] + [f"-{c}" for c in self.subtract])
        return ",".join(f"+{c}" for c in self.add)

    @classmethod
    def from_line(cls, text: str) -> ClassFilter:
        """Parse the single-line class file format."""
        result = cls()
        for token in text.split(","):
            token = token.strip()
            if token == "+all":
                result.default_all = True
            elif token.startswith("+") and len(token) > 1:
                result.add.append(token[1:])
            elif token.startswith("-") and len(token) > 1:
                result.subtract.append(token[1:])
        return result
