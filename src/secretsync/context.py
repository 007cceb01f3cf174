"""
Run context -- everything a single invocation shares.

Built once by the CLI and handed to the project, the engines, and the
token cache, so none of them reach for process-wide globals.
"""

from __future__ import annotations

import logging
import os
import sys
from dataclasses import dataclass, field
from pathlib import Path
from typing import Optional, Sequence

import requests
from rich.console import Console

from .auth import AuthConfig, load_user_auth
from .prompts import Prompter
from .tokens import TokenCache
from .userconfig import UserConfigStore, load_external_config

logger = logging.getLogger("secretsync.context")


@dataclass
class RunContext:
    """Settings and collaborators for one secretsync run.

    Attributes:
        workdir: Directory the command was started from.
        cicd: CI/CD mode: never prompt, never touch user config files.
        interactive: Whether prompts may be shown.
        auth: Effective credentials (user auth merged with auth files).
        user_auth: Credentials stored in the user config directory.
        user_auth_only: True when no extra auth files were supplied.
        max_cas_retries: Cap on check-and-set retries (None = no cap).
    """

    workdir: Path = field(default_factory=Path.cwd)
    cicd: bool = False
    interactive: bool = False
    user_config: UserConfigStore = field(default_factory=UserConfigStore)
    auth: AuthConfig = field(default_factory=AuthConfig)
    user_auth: AuthConfig = field(default_factory=AuthConfig)
    user_auth_only: bool = True
    prompter: Prompter = field(default_factory=Prompter)
    console: Console = field(default_factory=Console)
    session: requests.Session = field(default_factory=requests.Session)
    max_cas_retries: Optional[int] = None
    _tokens: Optional[TokenCache] = field(default=None, init=False, repr=False)

    @property
    def tokens(self) -> TokenCache:
        """Token cache for this run, created on first use."""
        if self._tokens is None:
            self._tokens = TokenCache(self)
        return self._tokens

    @classmethod
    def from_environment(
        cls,
        cicd: bool = False,
        auth_files: Sequence[Path] = (),
        config_dir: Optional[Path] = None,
        **kwargs,
    ) -> RunContext:
        """Build a context from CLI flags and the process environment.

        CI/CD mode is enabled by the flag or a non-empty ``CICD``
        environment variable; it disables prompts and skips loading the
        user auth file.
        """
        cicd = cicd or bool(os.environ.get("CICD"))
        interactive = not cicd and sys.stdin.isatty() and sys.stdout.isatty()
        store = UserConfigStore(config_dir)

        user_auth = AuthConfig()
        auth = AuthConfig()
        if not cicd:
            user_auth = load_user_auth(store)
            auth.merge(user_auth)

        for auth_file in auth_files:
            logger.debug("Loading auth config %s", auth_file)
            auth.merge(AuthConfig.from_document(load_external_config(auth_file)))

        return cls(
            workdir=Path.cwd(),
            cicd=cicd,
            interactive=interactive,
            user_config=store,
            auth=auth,
            user_auth=user_auth,
            user_auth_only=not auth_files,
            **kwargs,
        )
