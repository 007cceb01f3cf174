"""Shared test fixtures for secretsync."""

from __future__ import annotations

import io
import json as jsonlib
from pathlib import Path
from typing import Any, Callable, Optional
from urllib.parse import urlparse

import pytest
import requests
import yaml
from rich.console import Console

from secretsync.auth import AuthConfig, TokenCredential
from secretsync.context import RunContext
from secretsync.prompts import Prompter
from secretsync.userconfig import UserConfigStore

VAULT_HOST = "vault.example.com"
ROOT_TOKEN = "s.root-token"
CAS_ERROR = "check-and-set parameter did not match the current version"


class FakeResponse:
    """Minimal stand-in for requests.Response."""

    def __init__(self, status_code: int, body: Any = None, reason: str = ""):
        self.status_code = status_code
        self.reason = reason
        self._body = body

    def json(self) -> Any:
        if self._body is None:
            raise ValueError("No JSON body")
        return self._body


class FakeVault:
    """In-memory Vault KV v2 server answering through a session-like API.

    Documents are keyed by ``<mount>/<path>``; ``request`` mimics
    ``requests.Session.request`` for the data, login, and lookup-self
    endpoints. JSON bodies go through requests' own encoder, so values
    it cannot serialize fail here as they would against a real server.
    """

    def __init__(self, host: str = VAULT_HOST):
        self.host = host
        self.documents: dict[str, dict] = {}
        self.tokens: set[str] = {ROOT_TOKEN}
        self.users: dict[str, str] = {}
        self.approles: dict[str, str] = {}
        self.calls: list[tuple[str, str]] = []
        self.bodies: list[Any] = []
        self._edits: list[Callable[[], None]] = []
        self._issued = 0

    # --- test helpers ---

    def put(self, secret: str, data: Any, version: int = 1) -> None:
        self.documents[secret] = {"data": data, "version": version}

    def data(self, secret: str) -> Any:
        return self.documents[secret]["data"]

    def version(self, secret: str) -> int:
        return self.documents[secret]["version"]

    def interfere(self, secret: str, data: Any) -> None:
        """Simulate another writer updating ``secret`` before the next POST."""

        def edit() -> None:
            current = self.documents.get(secret, {"version": 0})
            self.put(secret, data, current["version"] + 1)

        self._edits.append(edit)

    def count(self, method: str, marker: str = "") -> int:
        return sum(1 for m, url in self.calls if m == method and marker in url)

    # --- session API ---

    def _issue(self) -> str:
        self._issued += 1
        token = f"s.issued-{self._issued}"
        self.tokens.add(token)
        return token

    def _login_ok(self) -> FakeResponse:
        return FakeResponse(200, {"auth": {"client_token": self._issue()}})

    def request(
        self,
        method: str,
        url: str,
        timeout: Optional[float] = None,
        headers: Optional[dict] = None,
        json: Any = None,
        params: Optional[dict] = None,
    ) -> FakeResponse:
        self.calls.append((method, url))
        if json is not None:
            # Encode the body exactly as requests does, then decode what was sent.
            prepared = requests.Request(method, url, json=json).prepare()
            json = jsonlib.loads(prepared.body)
        self.bodies.append(json)
        path = urlparse(url).path

        if path.endswith("/oidc/auth_url"):
            return FakeResponse(200, {"data": {"auth_url": "https://idp.example.com/auth?state=st"}})

        if path.endswith("/oidc/callback"):
            if (params or {}).get("code") == "good-code":
                return self._login_ok()
            return FakeResponse(400, {"errors": ["invalid code"]}, "Bad Request")

        if path.startswith("/v1/auth/userpass/login/"):
            username = path.rsplit("/", 1)[-1]
            if username in self.users and self.users[username] == (json or {}).get("password"):
                return self._login_ok()
            return FakeResponse(400, {"errors": ["invalid username or password"]}, "Bad Request")

        if path == "/v1/auth/approle/login":
            body = json or {}
            if self.approles.get(body.get("role_id")) == body.get("secret_id"):
                return self._login_ok()
            return FakeResponse(400, {"errors": ["invalid role or secret ID"]}, "Bad Request")

        token = (headers or {}).get("Authorization", "").replace("Bearer ", "")
        if token not in self.tokens:
            return FakeResponse(403, {"errors": ["permission denied"]}, "Forbidden")

        if path == "/v1/auth/token/lookup-self":
            return FakeResponse(200, {"data": {"id": token}})

        if not path.startswith("/v1/"):
            return FakeResponse(404, {"errors": []}, "Not Found")
        mount, _, rest = path[len("/v1/"):].partition("/data/")
        secret = f"{mount}/{rest}"

        if method == "GET":
            doc = self.documents.get(secret)
            if doc is None:
                return FakeResponse(404, {"errors": []}, "Not Found")
            return FakeResponse(
                200,
                {"data": {"data": doc["data"], "metadata": {"version": doc["version"]}}},
            )

        if method == "POST":
            while self._edits:
                self._edits.pop(0)()
            current = self.documents.get(secret, {"version": 0})["version"]
            if (json or {}).get("options", {}).get("cas") != current:
                return FakeResponse(400, {"errors": [CAS_ERROR]}, "Bad Request")
            self.put(secret, json["data"], current + 1)
            return FakeResponse(200, {"data": {"version": current + 1}})

        return FakeResponse(405, {"errors": ["unsupported operation"]}, "Method Not Allowed")


class ScriptedPrompter(Prompter):
    """Prompter answering from a fixed script, recording every question."""

    def __init__(self, answers: Optional[list] = None):
        self.answers = list(answers or [])
        self.questions: list[str] = []

    def _next(self, question: str) -> Any:
        self.questions.append(question)
        if not self.answers:
            raise AssertionError(f"Unexpected prompt: {question}")
        return self.answers.pop(0)

    def confirm(self, question: str, default: bool = True) -> bool:
        return self._next(question)

    def ask(self, question: str, default: Optional[str] = None) -> str:
        return self._next(question)

    def ask_hidden(self, question: str) -> str:
        return self._next(question)

    def choose(self, question: str, choices: list[str]) -> int:
        return self._next(question)

    def push_pull_skip(self) -> str:
        return self._next("Push (u), pull (d), or skip (n)?")


def output_of(ctx: RunContext) -> str:
    """Everything printed to the context's console."""
    return ctx.console.file.getvalue()


def secret_url(secret: str, host: str = VAULT_HOST) -> str:
    return f"https://{host}/{secret}"


def write_manifest(project_dir: Path, secrets: list[dict]) -> Path:
    """Write a secrets.yaml for the given entries."""
    project_dir.mkdir(parents=True, exist_ok=True)
    manifest = project_dir / "secrets.yaml"
    manifest.write_text(yaml.safe_dump({"secrets": secrets}, sort_keys=False))
    return manifest


def data_entry(file: str, secret: str, fmt: str = "json", path=None, class_=None) -> dict:
    mapping: dict = {"format": fmt}
    if path is not None:
        mapping["path"] = path
    entry: dict = {"file": file, "vault": {"url": secret_url(secret), "mapping": {"fromData": mapping}}}
    if class_ is not None:
        entry["class"] = class_
    return entry


def text_entry(file: str, secret: str, path: list) -> dict:
    return {
        "file": file,
        "vault": {"url": secret_url(secret), "mapping": {"fromText": {"path": path}}},
    }


@pytest.fixture
def vault() -> FakeVault:
    """An empty fake Vault server."""
    return FakeVault()


@pytest.fixture
def project_dir(tmp_path: Path) -> Path:
    """Directory that holds the project under test."""
    path = tmp_path / "project"
    path.mkdir()
    return path


@pytest.fixture
def config_home(tmp_path: Path) -> Path:
    """User config directory for the run."""
    return tmp_path / "config-home"


@pytest.fixture
def make_ctx(project_dir: Path, config_home: Path, vault: FakeVault):
    """Factory for run contexts wired to the fake Vault."""

    def _make(
        cicd: bool = False,
        interactive: bool = False,
        answers: Optional[list] = None,
        auth: Optional[AuthConfig] = None,
        workdir: Optional[Path] = None,
        **kwargs: Any,
    ) -> RunContext:
        if auth is None:
            auth = AuthConfig({vault.host: TokenCredential(token=ROOT_TOKEN)})
        return RunContext(
            workdir=workdir or project_dir,
            cicd=cicd,
            interactive=interactive,
            user_config=UserConfigStore(config_home),
            auth=auth,
            prompter=ScriptedPrompter(answers),
            console=Console(file=io.StringIO(), soft_wrap=True, width=200),
            session=vault,
            **kwargs,
        )

    return _make
