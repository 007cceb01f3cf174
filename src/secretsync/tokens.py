"""
Vault token cache.

Tokens obtained from a login are cached in ``vault.json`` under
``"<host>,<method>,<identity>"`` for 30 days, where identity is the
username, role ID, or OIDC mount -- never the secret itself. Bare
tokens supplied by the user are kept in memory only.

Per host the cache moves UNCONFIGURED -> CONFIGURING -> READY:
``prepare_for_host`` makes sure a credential exists (prompting for one
when interactive) and that a valid token can be obtained;
``get_token`` then hands out the token, validating it against the
server at most once per process.
"""

from __future__ import annotations

import hashlib
import logging
import time
from enum import Enum
from typing import TYPE_CHECKING

from pydantic import BaseModel, ConfigDict, Field, ValidationError
from rich.markup import escape

from .auth import (
    Credential,
    TokenCredential,
    describe_credential,
    login,
    prompt_userpass,
    save_user_auth,
    validate_token,
)
from .errors import AuthFailed, AuthMissing

if TYPE_CHECKING:
    from .context import RunContext

logger = logging.getLogger("secretsync.tokens")

TOKEN_TTL_SECONDS = 30 * 24 * 60 * 60


class HostState(str, Enum):
    """Auth readiness of a Vault host."""

    UNCONFIGURED = "unconfigured"
    CONFIGURING = "configuring"
    READY = "ready"


class CachedToken(BaseModel):
    """A cached client token and its expiry (unix seconds)."""

    token: str
    expires: int


class TokenCacheFile(BaseModel):
    """Root of ``vault.json``."""

    model_config = ConfigDict(populate_by_name=True)

    token_cache: dict[str, CachedToken] = Field(default_factory=dict, alias="tokenCache")


def token_fingerprint(token: str) -> str:
    """Short, non-reversible identifier for a bare token."""
    return hashlib.sha256(token.encode("utf-8")).hexdigest()[:16]


def cache_key(host: str, credential: Credential) -> tuple[str, bool]:
    """Cache key for a host/credential pair and whether it may be persisted."""
    method = describe_credential(credential)
    if isinstance(credential, TokenCredential):
        return f"{host},{method},{token_fingerprint(credential.token)}", False
    if method == "userpass":
        identity = credential.username
    elif method == "approle":
        identity = credential.role_id
    else:
        identity = credential.mount if not credential.role else f"{credential.mount}:{credential.role}"
    return f"{host},{method},{identity}", True


class TokenCache:
    """Client tokens per Vault host, persisted between runs."""

    def __init__(self, ctx: RunContext):
        self.ctx = ctx
        self.data = TokenCacheFile()
        self._loaded = False
        self._validated: set[str] = set()
        self._states: dict[str, HostState] = {}

    def state(self, host: str) -> HostState:
        return self._states.get(host, HostState.UNCONFIGURED)

    def load(self) -> None:
        """Read the cache file once and drop expired entries."""
        if self._loaded:
            return
        self._loaded = True

        if self.ctx.cicd:
            return

        try:
            self.data = TokenCacheFile.model_validate(self.ctx.user_config.load("vault"))
        except ValidationError as exc:
            logger.warning("Ignoring malformed token cache: %s", exc)
            self.data = TokenCacheFile()

        now = int(time.time())
        expired = [key for key, cached in self.data.token_cache.items() if cached.expires < now]
        for key in expired:
            del self.data.token_cache[key]
        if expired:
            logger.debug("Evicted %d expired token(s)", len(expired))
            self.save()

    def save(self) -> None:
        """Persist the cache (never in CI/CD mode)."""
        if self.ctx.cicd:
            return
        self.ctx.user_config.save("vault", self.data.model_dump(by_alias=True))

    def prepare_for_host(self, host: str, scheme: str = "https") -> None:
        """Make sure ``host`` has a credential and a usable token.

        Raises:
            AuthMissing: No credential and prompting is not possible.
            AuthFailed: The configured credential was rejected.
        """
        self.load()
        if self.state(host) is HostState.READY:
            return

        if self.ctx.auth.get(host) is None:
            self._configure_interactively(host, scheme)
        else:
            self.get_token(host, scheme)

        self._states[host] = HostState.READY

    def get_token(self, host: str, scheme: str = "https") -> str:
        """Return a valid client token for ``host``.

        Raises:
            AuthMissing: The host has no credential.
            AuthFailed: A bare token or a fresh login was rejected.
        """
        self.load()
        credential = self.ctx.auth.get(host)
        if credential is None:
            raise AuthMissing(f"Host '{host}' is not configured, was prepare_for_host called?")

        key, cacheable = cache_key(host, credential)
        base_url = f"{scheme}://{host}"

        candidate = None
        if cacheable:
            cached = self.data.token_cache.get(key)
            if cached is not None and cached.expires >= int(time.time()):
                candidate = cached.token
        elif isinstance(credential, TokenCredential):
            candidate = credential.token

        if candidate is not None:
            if key in self._validated:
                return candidate

            if validate_token(self.ctx.session, base_url, candidate):
                self._validated.add(key)
                if cacheable:
                    self.data.token_cache[key].expires = int(time.time()) + TOKEN_TTL_SECONDS
                    self.save()
                return candidate

            if not cacheable:
                raise AuthFailed(f"Token for Vault instance at '{host}' was rejected")

            logger.info("Cached token for %s is no longer valid, logging in again", host)
            self.data.token_cache.pop(key, None)
            self.save()

        token = login(self.ctx.session, base_url, credential, self.ctx.interactive)
        self.remember(host, credential, token)
        return token

    def remember(self, host: str, credential: Credential, token: str) -> None:
        """Record a freshly obtained token for a host."""
        self.load()
        key, cacheable = cache_key(host, credential)
        self._validated.add(key)
        if cacheable:
            self.data.token_cache[key] = CachedToken(
                token=token, expires=int(time.time()) + TOKEN_TTL_SECONDS
            )
            self.save()

    def _configure_interactively(self, host: str, scheme: str) -> None:
        ctx = self.ctx
        if not ctx.interactive:
            raise AuthMissing(f"No auth config for Vault instance at '{host}'")

        if ctx.user_auth_only:
            ctx.console.print(
                f"No auth config for Vault instance at '{host}', please enter "
                "a username and password to be saved locally"
            )
        else:
            ctx.console.print(
                f"No auth config for Vault instance at '{host}', would you like "
                "to enter a username and password to be saved locally in your "
                "home directory?"
            )
            if not ctx.prompter.confirm("Create local login config?", default=False):
                raise AuthMissing(f"No auth config for Vault instance at '{host}'")

        self._states[host] = HostState.CONFIGURING
        base_url = f"{scheme}://{host}"

        while True:
            credential = prompt_userpass(ctx.prompter)
            try:
                token = login(ctx.session, base_url, credential, ctx.interactive)
            except AuthFailed as exc:
                ctx.console.print(f"[red]Error, please try again:[/] {escape(str(exc))}")
                continue
            break

        ctx.user_auth.set(host, credential)
        ctx.auth.set(host, credential)
        save_user_auth(ctx.user_config, ctx.user_auth)
        self.remember(host, credential, token)
