"""
Vault KV v2 engine.

A secret URL names the mount and the secret path,
``https://vault.example.com:8200/secret/app/db``; the API document for
it lives at ``/v1/secret/data/app/db``. Writes use check-and-set with
the version that was just read, retrying when another writer got there
first.
"""

from __future__ import annotations

import logging
from typing import TYPE_CHECKING, Any, Optional
from urllib.parse import urlparse, urlunparse

from ..auth import send_request
from ..errors import ConfigError, MissingData, TransportError, VersionConflict
from ..models import FromTextMapping, VaultSecretConfig
from ..paths import read_path, write_path
from .base import FetchedSecret, SecretEngine

if TYPE_CHECKING:
    from ..context import RunContext

logger = logging.getLogger("secretsync.engines.vault")

CAS_MISMATCH = "check-and-set parameter did not match the current version"


def kv2_api_url(url: str) -> str:
    """Translate a secret URL into its KV v2 data API URL.

    Raises:
        ConfigError: The URL has no host or fewer than two path segments.
    """
    parsed = urlparse(url)
    if not parsed.scheme or not parsed.netloc:
        raise ConfigError(f"Invalid secret URL '{url}'")

    path = parsed.path
    idx = path.find("/", 1)
    if idx == -1:
        raise ConfigError(f"URL '{url}' has only one path segment")

    api_path = "/v1" + path[:idx] + "/data" + path[idx:]
    return urlunparse(parsed._replace(path=api_path, fragment=""))


def _error_messages(resp) -> list[str]:
    try:
        body = resp.json() or {}
    except ValueError:
        return []
    messages = [str(m) for m in body.get("errors") or []]
    data_error = (body.get("data") or {}).get("error")
    if data_error:
        messages.append(str(data_error))
    return messages


class VaultEngine(SecretEngine):
    """Reads and writes one secret entry in a Vault KV v2 mount."""

    def __init__(self, config: VaultSecretConfig, ctx: RunContext):
        self.config = config
        self.ctx = ctx
        parsed = urlparse(config.url)
        self.scheme = parsed.scheme or "https"
        self.host = parsed.netloc
        self.api_url = kv2_api_url(config.url)

    @property
    def name(self) -> str:
        return "vault"

    def prepare(self) -> None:
        self.ctx.tokens.prepare_for_host(self.host, self.scheme)

    def _token(self) -> str:
        return self.ctx.tokens.get_token(self.host, self.scheme)

    def _read_document(self, token: str) -> Optional[tuple[Any, Any]]:
        """Return ``(data, version)`` of the document, or None on 404."""
        resp = send_request(
            self.ctx.session,
            "GET",
            self.api_url,
            headers={"Authorization": f"Bearer {token}"},
        )
        if resp.status_code == 404:
            return None
        if resp.status_code != 200:
            raise TransportError(
                f"Got status {resp.status_code} while fetching secret {self.config.url}"
            )

        try:
            body = resp.json() or {}
        except ValueError as exc:
            raise TransportError(f"Invalid JSON from Vault for {self.config.url}") from exc

        data = body.get("data") or {}
        version = (data.get("metadata") or {}).get("version")
        return data.get("data"), version

    def fetch(self) -> FetchedSecret:
        """Fetch the document and project the mapped value out of it.

        A missing document and a missing path inside it both come back
        as ``is_missing_data``.
        """
        fetched = FetchedSecret(format=self.config.format, uploader=self.upload_new)

        document = self._read_document(self._token())
        if document is None:
            fetched.is_missing_data = True
            return fetched

        data, fetched.version = document
        if data is None:
            fetched.is_missing_data = True
            return fetched

        try:
            value = read_path(data, self.config.path)
        except MissingData as exc:
            logger.debug("Mapped path missing in %s: %s", self.config.url, exc)
            fetched.is_missing_data = True
            return fetched

        if isinstance(self.config.mapping, FromTextMapping) and not isinstance(value, str):
            raise ConfigError(
                f"Value for text mapping of {self.config.url} is not a string"
            )

        fetched.value = value
        return fetched

    def upload_new(self, value: Any) -> Any:
        """Store ``value`` at the mapped path with check-and-set.

        Re-reads the document before every attempt so concurrent edits
        to other keys are preserved.

        Returns:
            The new document version.

        Raises:
            VersionConflict: ``max_cas_retries`` attempts all conflicted.
            TransportError: Any other failed write.
        """
        token = self._token()
        attempts = 0

        while True:
            attempts += 1
            document = self._read_document(token)
            if document is None:
                data, cas = {}, 0
            else:
                data, cas = document
                data = data or {}
                cas = cas or 0

            new_data = write_path(data, self.config.path, value)
            if not isinstance(new_data, dict):
                raise ConfigError(
                    f"Secret document for {self.config.url} must be an object"
                )

            try:
                return self._write_document(token, new_data, cas)
            except VersionConflict:
                limit = self.ctx.max_cas_retries
                if limit is not None and attempts >= limit:
                    raise
                self.ctx.console.print("info: remote secret was edited during push, retrying")

    def _write_document(self, token: str, data: dict, cas: int) -> Any:
        resp = send_request(
            self.ctx.session,
            "POST",
            self.api_url,
            headers={"Authorization": f"Bearer {token}"},
            json={"options": {"cas": cas}, "data": data},
        )

        if resp.status_code == 200:
            try:
                body = resp.json() or {}
            except ValueError as exc:
                raise TransportError(f"Invalid JSON from Vault for {self.config.url}") from exc
            return (body.get("data") or {}).get("version")

        messages = _error_messages(resp)
        if any(CAS_MISMATCH in m for m in messages):
            raise VersionConflict(f"Check-and-set with version {cas} failed")

        detail = f": {'; '.join(messages)}" if messages else ""
        raise TransportError(
            f"Got status {resp.status_code} while setting secret {self.config.url}{detail}"
        )
