"""
Error taxonomy for secretsync.

Fatal errors abort a sync before the lockfile is written. MissingData
and ParseError are absorbed by the reconciliation engine and only
surface as part of its decision log.
"""

from __future__ import annotations


class SecretSyncError(Exception):
    """Base class for every error raised by secretsync."""


class ConfigError(SecretSyncError):
    """Malformed project, mapping, credential, or command-line settings."""


class AuthMissing(SecretSyncError):
    """No credential is available for a Vault host."""


class AuthFailed(SecretSyncError):
    """A credential was rejected by the Vault host."""


class TransportError(SecretSyncError):
    """Network failure or unexpected HTTP status."""


class VersionConflict(SecretSyncError):
    """A check-and-set write lost the race against another writer."""


class MissingData(SecretSyncError):
    """A path points at a key or index that does not exist."""


class PathTypeError(SecretSyncError, TypeError):
    """A path cannot be applied to the shape of the document."""


class ParseError(SecretSyncError):
    """A local file could not be parsed in the requested format."""
