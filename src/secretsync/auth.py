"""
Vault credentials and login.

Credentials are stored per Vault host in ``auth.json`` (and in any
``--auth-config`` file) as one of:

    {"token": "..."}
    {"userpass": {"username": "...", "password": "..."}}
    {"appRole": {"roleID": "...", "secretID": "..."}}
    {"oidc": {"mount": "oidc", "role": "..."}}

Every login method exchanges its credential for a client token; a bare
token is used as is.
"""

from __future__ import annotations

import logging
import time
import webbrowser
from http.server import BaseHTTPRequestHandler, HTTPServer
from typing import Any, Optional, Union
from urllib.parse import parse_qsl, urlparse

import click
import requests
from pydantic import BaseModel, ConfigDict, Field, ValidationError

from .errors import AuthFailed, AuthMissing, ConfigError, TransportError
from .prompts import Prompter
from .userconfig import UserConfigStore

logger = logging.getLogger("secretsync.auth")

HTTP_TIMEOUT = 30
OIDC_CALLBACK_PORT = 8250
OIDC_CALLBACK_TIMEOUT = 120


class TokenCredential(BaseModel):
    """A Vault token supplied directly."""

    token: str


class UserpassCredential(BaseModel):
    """Username/password for the userpass auth method."""

    username: str
    password: str


class AppRoleCredential(BaseModel):
    """Role ID/secret ID pair for the AppRole auth method."""

    model_config = ConfigDict(populate_by_name=True)

    role_id: str = Field(alias="roleID")
    secret_id: str = Field(alias="secretID")


class OIDCCredential(BaseModel):
    """Browser-based OIDC login."""

    mount: str = "oidc"
    role: Optional[str] = None


Credential = Union[TokenCredential, UserpassCredential, AppRoleCredential, OIDCCredential]


def credential_from_dict(data: dict) -> Credential:
    """Build a credential from its stored form.

    Raises:
        ConfigError: No known auth method is present, or it is malformed.
    """
    try:
        if data.get("token"):
            return TokenCredential(token=data["token"])
        if data.get("userpass"):
            return UserpassCredential.model_validate(data["userpass"])
        if data.get("appRole"):
            return AppRoleCredential.model_validate(data["appRole"])
        if data.get("oidc") is not None:
            return OIDCCredential.model_validate(data["oidc"] or {})
    except ValidationError as exc:
        raise ConfigError(f"Invalid auth config: {exc}") from exc
    raise ConfigError("Auth config exists but is empty")


def credential_to_dict(credential: Credential) -> dict:
    """Stored form of a credential."""
    if isinstance(credential, TokenCredential):
        return {"token": credential.token}
    if isinstance(credential, UserpassCredential):
        return {"userpass": credential.model_dump()}
    if isinstance(credential, AppRoleCredential):
        return {"appRole": credential.model_dump(by_alias=True)}
    if isinstance(credential, OIDCCredential):
        return {"oidc": credential.model_dump(exclude_none=True)}
    raise ConfigError(f"Unknown credential type: {type(credential).__name__}")


def describe_credential(credential: Credential) -> str:
    """Auth method name used in cache keys and log lines."""
    if isinstance(credential, TokenCredential):
        return "token"
    if isinstance(credential, UserpassCredential):
        return "userpass"
    if isinstance(credential, AppRoleCredential):
        return "approle"
    return "oidc"


class AuthConfig:
    """Credentials keyed by Vault host (``host[:port]``)."""

    def __init__(self, vault: Optional[dict[str, Credential]] = None):
        self.vault: dict[str, Credential] = dict(vault or {})

    @classmethod
    def from_document(cls, data: dict) -> AuthConfig:
        hosts = (data or {}).get("vault") or {}
        return cls({host: credential_from_dict(cred) for host, cred in hosts.items()})

    def to_document(self) -> dict:
        return {
            "vault": {host: credential_to_dict(cred) for host, cred in self.vault.items()}
        }

    def get(self, host: str) -> Optional[Credential]:
        return self.vault.get(host)

    def set(self, host: str, credential: Credential) -> None:
        self.vault[host] = credential

    def merge(self, other: AuthConfig) -> None:
        """Overlay another config; its hosts win."""
        self.vault.update(other.vault)


def load_user_auth(store: UserConfigStore) -> AuthConfig:
    """Load the credentials saved in the user config directory."""
    return AuthConfig.from_document(store.load("auth"))


def save_user_auth(store: UserConfigStore, auth: AuthConfig) -> None:
    """Persist credentials to the user config directory."""
    store.save("auth", auth.to_document())


def resolve_credential(
    *,
    token: Optional[str] = None,
    username: Optional[str] = None,
    password: Optional[str] = None,
    role_id: Optional[str] = None,
    secret_id: Optional[str] = None,
    oidc: bool = False,
    oidc_mount: Optional[str] = None,
    oidc_role: Optional[str] = None,
    interactive: bool = False,
    cicd: bool = False,
    prompter: Optional[Prompter] = None,
) -> Credential:
    """Pick a credential from explicit settings.

    Order: token, username/password, role ID/secret ID, OIDC, and
    finally an interactive username/password prompt.

    Raises:
        ConfigError: Half a credential pair was given, or a value is
            missing and cannot be prompted for.
        AuthMissing: Nothing was given and prompting is not possible.
    """
    prompter = prompter or Prompter()

    if token:
        return TokenCredential(token=token)

    if username:
        if not password:
            if not interactive:
                raise ConfigError("must specify --password or use a TTY")
            password = prompter.ask_hidden("Password")
        return UserpassCredential(username=username, password=password)
    if password:
        raise ConfigError("password is defined but no username is defined")

    if role_id:
        if not secret_id:
            if not interactive:
                raise ConfigError("must specify --secret-id or use a TTY")
            secret_id = prompter.ask_hidden("Secret ID")
        return AppRoleCredential(role_id=role_id, secret_id=secret_id)
    if secret_id:
        raise ConfigError("secret-id is defined but no role-id is defined")

    if oidc:
        if cicd:
            raise ConfigError("OIDC auth not supported in CI/CD mode")
        if not oidc_mount and interactive:
            oidc_mount = prompter.ask('OIDC mount path (defaults to "oidc")')
        return OIDCCredential(mount=oidc_mount or "oidc", role=oidc_role or None)

    if not interactive:
        raise AuthMissing("must specify credentials as arguments or use a TTY")
    return prompt_userpass(prompter)


def prompt_userpass(prompter: Prompter) -> UserpassCredential:
    """Ask for a username and password."""
    username = prompter.ask("Username")
    password = prompter.ask_hidden("Password")
    return UserpassCredential(username=username, password=password)


# --- HTTP ---


def send_request(
    session: requests.Session, method: str, url: str, **kwargs: Any
) -> requests.Response:
    """Send an HTTP request, turning connection failures into TransportError."""
    try:
        return session.request(method, url, timeout=HTTP_TIMEOUT, **kwargs)
    except requests.RequestException as exc:
        raise TransportError(f"{method} {url} failed: {exc}") from exc


def _client_token(resp: requests.Response) -> str:
    try:
        body = resp.json()
    except ValueError:
        body = {}
    token = ((body or {}).get("auth") or {}).get("client_token")
    if not token:
        raise AuthFailed(f"Login failed: {resp.status_code} {resp.reason or ''}".strip())
    return token


def login(
    session: requests.Session,
    base_url: str,
    credential: Credential,
    interactive: bool = False,
) -> str:
    """Exchange a credential for a Vault client token.

    Args:
        session: HTTP session used for the login calls.
        base_url: ``scheme://host[:port]`` of the Vault server.
        credential: Credential to log in with.
        interactive: Whether a browser flow (OIDC) may be started.

    Returns:
        The client token.

    Raises:
        AuthFailed: The server rejected the credential.
        TransportError: The server could not be reached.
    """
    if isinstance(credential, TokenCredential):
        return credential.token

    if isinstance(credential, UserpassCredential):
        resp = send_request(
            session,
            "POST",
            f"{base_url}/v1/auth/userpass/login/{credential.username}",
            json={"password": credential.password},
        )
        return _client_token(resp)

    if isinstance(credential, AppRoleCredential):
        resp = send_request(
            session,
            "POST",
            f"{base_url}/v1/auth/approle/login",
            json={"role_id": credential.role_id, "secret_id": credential.secret_id},
        )
        return _client_token(resp)

    if isinstance(credential, OIDCCredential):
        if not interactive:
            raise AuthFailed("OIDC login needs an interactive terminal")
        return _login_oidc(session, base_url, credential)

    raise ConfigError(f"Unknown credential type: {type(credential).__name__}")


def validate_token(session: requests.Session, base_url: str, token: str) -> bool:
    """Check a token against the server without side effects."""
    resp = send_request(
        session,
        "GET",
        f"{base_url}/v1/auth/token/lookup-self",
        headers={"Authorization": f"Bearer {token}"},
    )
    return resp.status_code == 200


# --- OIDC ---


class _CallbackHandler(BaseHTTPRequestHandler):
    """Receives the browser redirect at /oidc/callback."""

    def do_GET(self) -> None:
        parsed = urlparse(self.path)
        if parsed.path != "/oidc/callback":
            self.send_response(404)
            self.end_headers()
            return

        self.server.callback_params = dict(parse_qsl(parsed.query))
        body = b"<html><body>Login complete, you can close this window.</body></html>"
        self.send_response(200)
        self.send_header("Content-Type", "text/html")
        self.send_header("Content-Length", str(len(body)))
        self.end_headers()
        self.wfile.write(body)

    def log_message(self, format: str, *args: Any) -> None:
        logger.debug("oidc callback: " + format, *args)


def _wait_for_callback(server: HTTPServer, timeout: float) -> dict:
    server.callback_params = None
    server.timeout = 1
    deadline = time.monotonic() + timeout
    while server.callback_params is None:
        if time.monotonic() > deadline:
            raise AuthFailed("Timed out waiting for the OIDC login to complete")
        server.handle_request()
    return server.callback_params


def _login_oidc(
    session: requests.Session,
    base_url: str,
    credential: OIDCCredential,
    port: int = OIDC_CALLBACK_PORT,
    timeout: float = OIDC_CALLBACK_TIMEOUT,
) -> str:
    redirect_uri = f"http://localhost:{port}/oidc/callback"
    mount_url = f"{base_url}/v1/auth/{credential.mount}/oidc"

    try:
        server = HTTPServer(("localhost", port), _CallbackHandler)
    except OSError as exc:
        raise AuthFailed(f"Cannot listen for the OIDC callback on port {port}: {exc}") from exc

    try:
        payload = {"redirect_uri": redirect_uri}
        if credential.role:
            payload["role"] = credential.role
        resp = send_request(session, "POST", f"{mount_url}/auth_url", json=payload)
        try:
            auth_url = ((resp.json() or {}).get("data") or {}).get("auth_url")
        except ValueError:
            auth_url = None
        if not auth_url:
            raise AuthFailed(f"OIDC auth URL request failed: {resp.status_code}")

        click.echo(f"Complete the login via your OIDC provider: {auth_url}")
        webbrowser.open(auth_url)

        params = _wait_for_callback(server, timeout)
    finally:
        server.server_close()

    if "error" in params:
        raise AuthFailed(f"OIDC login failed: {params.get('error_description') or params['error']}")

    resp = send_request(
        session,
        "GET",
        f"{mount_url}/callback",
        params={"state": params.get("state", ""), "code": params.get("code", "")},
    )
    return _client_token(resp)
