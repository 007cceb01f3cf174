"""Add command: register a new secret file in secrets.yaml."""

from __future__ import annotations

from typing import Optional

import click
from pydantic import ValidationError

from ..context import RunContext
from ..engines.vault import kv2_api_url
from ..errors import ConfigError, SecretSyncError
from ..formats import DataFormat
from ..models import FromDataMapping, FromTextMapping, SecretEntry, VaultSecretConfig
from ..paths import parse_path
from ..sync import Project
from ._common import console, fail

OTHER_HOST = "(other)"

MAPPING_CHOICES = [
    "From data (map a portion of Vault secret as JSON or YAML)",
    "From text (map a string value within a Vault secret)",
]


def _ask_url(run_ctx: RunContext) -> str:
    prompter = run_ctx.prompter
    choices = sorted(run_ctx.user_auth.vault) + [OTHER_HOST]
    picked = prompter.choose("Vault host", choices)
    if choices[picked] == OTHER_HOST:
        host = prompter.ask("Custom Vault host (i.e. example.com:8080)")
    else:
        host = choices[picked]
    path = prompter.ask("Path to secret in Vault (i.e. secrets-engine/path/to/secret)")
    return f"https://{host}/{path.lstrip('/')}"


def build_entry(
    run_ctx: RunContext,
    file: str,
    class_: Optional[str] = None,
    url: Optional[str] = None,
    fmt: Optional[str] = None,
    data_path: Optional[str] = None,
    text_path: Optional[str] = None,
) -> SecretEntry:
    """Assemble a secret entry from options, prompting for the rest.

    Raises:
        ConfigError: Conflicting options, or a value is missing and
            cannot be prompted for.
    """
    if text_path is not None and (fmt or data_path is not None):
        raise ConfigError("--text cannot be combined with --format or --path")

    interactive = run_ctx.interactive
    prompter = run_ctx.prompter

    if class_ is None and interactive:
        class_ = prompter.ask("Secret class (optional)")

    if not url:
        if not interactive:
            raise ConfigError("must specify --url or use a TTY")
        url = _ask_url(run_ctx)
    kv2_api_url(url)

    if text_path is None and fmt is None:
        if not interactive:
            raise ConfigError("must specify --format or --text, or use a TTY")
        if prompter.choose("How to map the Vault secret to a local file", MAPPING_CHOICES) == 1:
            text_path = prompter.ask("Path to data within Vault secret")
        else:
            formats = [DataFormat.JSON, DataFormat.YAML]
            fmt = formats[prompter.choose("Local file format", ["JSON", "YAML"])].value
            if data_path is None:
                data_path = prompter.ask("Path to data within Vault secret (optional)")

    try:
        if text_path is not None:
            mapping = FromTextMapping(path=parse_path(text_path))
        else:
            mapping = FromDataMapping(
                format=DataFormat(fmt), path=parse_path(data_path) if data_path else None
            )
        return SecretEntry(
            file=file,
            class_=class_ or None,
            vault=VaultSecretConfig(url=url, mapping=mapping),
        )
    except ValidationError as exc:
        raise ConfigError(str(exc)) from exc


def register_add_commands(main: click.Group) -> None:
    """Register the add command."""

    @main.command("add")
    @click.argument("file")
    @click.option("--class", "class_", default=None, help="Secret class.")
    @click.option("--url", default=None, help="Vault secret URL (https://host/mount/path).")
    @click.option(
        "--format",
        "fmt",
        type=click.Choice(["json", "yaml"]),
        default=None,
        help="Local file format for a data mapping.",
    )
    @click.option("--path", "data_path", default=None, help="Dotted path of the data to map.")
    @click.option("--text", "text_path", default=None, help="Dotted path of a string to map.")
    @click.pass_obj
    def add(run_ctx: RunContext, file, class_, url, fmt, data_path, text_path):
        """Add FILE to secrets.yaml."""
        try:
            project = Project.open(run_ctx)
        except SecretSyncError as exc:
            fail("opening project", exc)

        if any(entry.file == file for entry in project.secrets):
            fail("adding secret", ConfigError("File already exists in secrets.yaml"))

        try:
            entry = build_entry(run_ctx, file, class_, url, fmt, data_path, text_path)
        except SecretSyncError as exc:
            fail("adding secret", exc)

        project.config.secrets.append(entry)
        try:
            project.save()
        except OSError as exc:
            fail("saving project", exc)

        console.print("secrets.yaml updated")
