"""Config commands: login."""

from __future__ import annotations

from pathlib import Path

import click

from ..auth import AuthConfig, login, resolve_credential, save_user_auth, validate_token
from ..context import RunContext
from ..errors import AuthFailed, ConfigError, SecretSyncError
from ..userconfig import load_external_config, save_external_config
from ._common import console, fail, logger


def _save_to_file(path: Path, host: str, credential) -> None:
    try:
        auth = AuthConfig.from_document(load_external_config(path))
    except ConfigError as exc:
        logger.debug("Starting a new auth config at %s: %s", path, exc)
        auth = AuthConfig()
    auth.set(host, credential)
    save_external_config(path, auth.to_document())


def register_config_commands(main: click.Group) -> None:
    """Register the config command group."""

    @main.group()
    def config():
        """Manage secretsync configuration."""

    @config.command("login")
    @click.argument("host", required=False)
    @click.option(
        "--save-to",
        type=click.Path(dir_okay=False, path_type=Path),
        default=None,
        help="Where to save the login info (defaults to the user auth file).",
    )
    @click.option("--token", default=None, help="Vault token.")
    @click.option("--username", default=None, help="Username for userpass auth.")
    @click.option("--password", default=None, help="Password for userpass auth.")
    @click.option("--role-id", default=None, help="Role ID for AppRole auth.")
    @click.option("--secret-id", default=None, help="Secret ID for AppRole auth.")
    @click.option("--oidc", is_flag=True, help="Use the OIDC auth method.")
    @click.option("--oidc-mount", default=None, help="OIDC mount path.")
    @click.option("--oidc-role", default=None, help="OIDC role.")
    @click.pass_obj
    def config_login(
        run_ctx: RunContext,
        host,
        save_to,
        token,
        username,
        password,
        role_id,
        secret_id,
        oidc,
        oidc_mount,
        oidc_role,
    ):
        """Log in to a Vault server and save the credential.

        HOST is the Vault host, domain and port only.
        """
        if not host:
            if not run_ctx.interactive:
                fail(
                    "reading host",
                    ConfigError("must specify host as an argument or use a TTY"),
                )
            host = run_ctx.prompter.ask("Vault host (domain and port only)")

        try:
            credential = resolve_credential(
                token=token,
                username=username,
                password=password,
                role_id=role_id,
                secret_id=secret_id,
                oidc=oidc,
                oidc_mount=oidc_mount,
                oidc_role=oidc_role,
                interactive=run_ctx.interactive,
                cicd=run_ctx.cicd,
                prompter=run_ctx.prompter,
            )
        except SecretSyncError as exc:
            fail("getting login auth", exc)

        base_url = f"https://{host}"
        try:
            client_token = login(run_ctx.session, base_url, credential, run_ctx.interactive)
            if not validate_token(run_ctx.session, base_url, client_token):
                raise AuthFailed(f"Token for Vault instance at '{host}' was rejected")
        except SecretSyncError as exc:
            fail("logging in to Vault", exc)

        try:
            if save_to is not None:
                _save_to_file(save_to, host, credential)
            else:
                run_ctx.user_auth.set(host, credential)
                save_user_auth(run_ctx.user_config, run_ctx.user_auth)
                run_ctx.tokens.remember(host, credential, client_token)
        except OSError as exc:
            fail("saving auth config", exc)

        console.print("Login succeeded, config saved")
