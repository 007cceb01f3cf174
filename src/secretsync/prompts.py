"""Interactive questions asked during sync, add, and login."""

from __future__ import annotations

from typing import Optional

import click

PUSH = "push"
PULL = "pull"
SKIP = "skip"

_PUSH_PULL_ANSWERS = {
    "u": PUSH,
    "push": PUSH,
    "d": PULL,
    "pull": PULL,
    "n": SKIP,
    "skip": SKIP,
}


class Prompter:
    """Terminal prompts backed by click."""

    def confirm(self, question: str, default: bool = True) -> bool:
        return click.confirm(question, default=default)

    def ask(self, question: str, default: Optional[str] = None) -> str:
        return click.prompt(
            question, default=default or "", show_default=bool(default)
        ).strip()

    def ask_hidden(self, question: str) -> str:
        return click.prompt(question, hide_input=True)

    def choose(self, question: str, choices: list[str]) -> int:
        """Ask the user to pick one of ``choices``, returning its index."""
        if not choices:
            raise ValueError("no choices provided")
        click.echo(question)
        for number, choice in enumerate(choices, start=1):
            click.echo(f"  {number}) {choice}")
        picked = click.prompt(
            "Choice", type=click.IntRange(1, len(choices)), default=1
        )
        return picked - 1

    def push_pull_skip(self) -> str:
        """Ask how to resolve a conflict: PUSH, PULL, or SKIP."""
        answer = click.prompt(
            "Push (u), pull (d), or skip (n)?",
            type=click.Choice(list(_PUSH_PULL_ANSWERS), case_sensitive=False),
            show_choices=False,
        )
        return _PUSH_PULL_ANSWERS[answer.lower()]
