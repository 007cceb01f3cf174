"""
Sync Engine -- three-way reconciliation of secret files.

For every selected secret the engine compares the local file, the
remote secret, and the record in the lockfile from the previous run:

    local absent             ->  pull (or report when remote is absent too)
    local unparsable         ->  overwrite from remote (fix policy)
    remote absent            ->  push local copy (fix policy)
    same data, other format  ->  rewrite in the configured format (automatic
                                 when the file is still in its last synced
                                 format, fix policy otherwise)
    same data                ->  nothing to do
    only remote changed      ->  pull
    only local changed       ->  push
    anything else            ->  conflict policy

Fix policy acts in CI/CD mode or with ``--fix``, asks when
interactive, and otherwise only reports. Conflict policy pulls in
CI/CD mode, follows ``--pull`` / ``--push``, asks when interactive,
and otherwise only reports.

The new lock state is written once, after every secret was handled;
any error before that leaves the old lockfile in place.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass, field
from enum import Enum
from typing import TYPE_CHECKING, Optional

from rich.markup import escape

from ..engines import FetchedSecret, create_engine
from ..errors import ConfigError
from ..formats import format_data, hash_value
from ..models import ClassUpdate, LockedFile, LockState, SecretEntry
from ..prompts import PULL, PUSH, SKIP
from .lock import FileState, LocalStatus, compute_file_state, save_lockfile
from .project import LOCK_FILE, Project

if TYPE_CHECKING:
    from ..context import RunContext

logger = logging.getLogger("secretsync.sync.engine")

ACT = "act"
REPORT = "report"


class SyncOutcome(str, Enum):
    """What happened to one file during a sync."""

    NOOP = "noop"
    PULLED = "pulled"
    PUSHED = "pushed"
    SKIPPED = "skipped"
    REPORTED = "reported"
    DELETED = "deleted"
    KEPT = "kept"


@dataclass
class SyncOptions:
    """Command-line switches for a sync run."""

    pull: bool = False
    push: bool = False
    fix: bool = False
    classes: ClassUpdate = field(default_factory=ClassUpdate)

    def validate(self) -> None:
        if self.pull and self.push:
            raise ConfigError("--pull flag and --push flag cannot both be enabled")


@dataclass
class SyncReport:
    """Outcome of every file touched by a sync, in processing order."""

    outcomes: dict[str, SyncOutcome] = field(default_factory=dict)

    def record(self, file: str, outcome: SyncOutcome) -> None:
        self.outcomes[file] = outcome

    def outcome(self, file: str) -> Optional[SyncOutcome]:
        return self.outcomes.get(file)

    def files_with(self, outcome: SyncOutcome) -> list[str]:
        return [name for name, result in self.outcomes.items() if result is outcome]

    @property
    def changed(self) -> bool:
        """Whether any file or remote secret was modified."""
        touched = {SyncOutcome.PULLED, SyncOutcome.PUSHED, SyncOutcome.DELETED}
        return any(result in touched for result in self.outcomes.values())


class SyncEngine:
    """Reconciles a project's secret files with their remote secrets."""

    def __init__(self, project: Project, ctx: RunContext):
        self.project = project
        self.ctx = ctx

    def _say(self, message: str) -> None:
        self.ctx.console.print(message, highlight=False)

    # --- entry point ---

    def run(self, options: Optional[SyncOptions] = None) -> SyncReport:
        """Sync every selected secret and rewrite the lockfile.

        Args:
            options: Policy switches and class filter changes.

        Returns:
            SyncReport: One outcome per handled file.

        Raises:
            SecretSyncError: Any fatal error; the lockfile is not written.
        """
        options = options or SyncOptions()
        options.validate()

        project = self.project
        project.apply_class_update(options.classes)
        selected, excluded = project.split_by_class()

        engines = [create_engine(entry, self.ctx) for entry in selected]
        for engine in engines:
            engine.prepare()
        fetched = [engine.fetch() for engine in engines]

        states = [
            compute_file_state(
                project.file_path(entry.file),
                secret.format,
                secret.version,
                project.last_state.files.get(entry.file),
            )
            for entry, secret in zip(selected, fetched)
        ]

        report = SyncReport()
        current = LockState()

        for entry, secret, state in zip(selected, fetched, states):
            previous = project.last_state.files.get(entry.file)
            outcome = self._reconcile(entry, secret, state, previous, options)
            logger.debug("%s: %s", entry.file, outcome.value)
            current.files[entry.file] = state.locked
            report.record(entry.file, outcome)

        handled: set[str] = set()
        for entry in excluded:
            handled.add(entry.file)
            self._handle_orphan(entry.file, report, removed=False)
        for name in project.last_state.files:
            if name not in current.files and name not in handled:
                self._handle_orphan(name, report, removed=True)

        project.ensure_gitignored(LOCK_FILE)
        save_lockfile(project.path / LOCK_FILE, current)
        return report

    # --- decision procedure ---

    def _reconcile(
        self,
        entry: SecretEntry,
        secret: FetchedSecret,
        state: FileState,
        previous: Optional[LockedFile],
        options: SyncOptions,
    ) -> SyncOutcome:
        name = escape(self.project.relative_name(entry.file))

        if state.status is LocalStatus.ABSENT:
            if secret.is_missing_data:
                self._say(f"No local file or remote data for secret '{name}'")
                return SyncOutcome.REPORTED
            self._say(f"Writing new secret to '{name}'")
            self._pull(entry, secret, state)
            self._say("    done")
            return SyncOutcome.PULLED

        if state.status is LocalStatus.UNPARSABLE:
            if secret.is_missing_data:
                self._say(
                    f"Failed to parse secret '{name}' and there is no remote copy to restore it from"
                )
                return SyncOutcome.REPORTED
            decision = self._fix_policy(
                options,
                acting=f"Overwriting secret that failed parsing '{name}'",
                report=f"Failed to parse secret '{name}', use the --fix flag to fix it",
                ask=f"Failed to parse secret '{name}', do you want to fix it?",
                question="Overwrite file?",
            )
            return self._apply(decision, PULL, entry, secret, state, done="    done")

        if secret.is_missing_data:
            decision = self._fix_policy(
                options,
                acting=(
                    f"Pushing secret '{name}' because remote secret is incomplete "
                    "or does not exist"
                ),
                report=(
                    f"Remote secret for '{name}' is incomplete or does not exist, "
                    "use the --fix flag to fix it"
                ),
                ask=(
                    f"Remote secret for '{name}' is incomplete or does not exist, "
                    "do you want to push it?"
                ),
                question="Push secret?",
            )
            return self._apply(decision, PUSH, entry, secret, state, done="    done")

        remote_hash = hash_value(secret.value)

        if state.locked.local_hash == remote_hash:
            if state.locked.local_format != secret.format.value:
                if previous is not None and previous.local_format == state.locked.local_format:
                    # File unchanged since last sync; the mapping's format was edited.
                    self._say(f"Updating secret '{name}' to newer format")
                    self._pull(entry, secret, state)
                    self._say("    done")
                    return SyncOutcome.PULLED

                decision = self._fix_policy(
                    options,
                    acting=f"Updating secret '{name}' to correct format",
                    report=(
                        f"Secret '{name}' has the same data but in a different format, "
                        "use the --fix flag to fix it"
                    ),
                    ask=(
                        f"Secret '{name}' has the same data but in a different format, "
                        "do you want to fix it?"
                    ),
                    question="Fix format?",
                )
                return self._apply(decision, PULL, entry, secret, state, done="    done")

            if previous is not None:
                if previous.remote_version != state.locked.remote_version:
                    self._say(f"info: remote version for '{name}' changed but is already in sync")
                if previous.local_hash != state.locked.local_hash:
                    self._say(
                        f"info: local secret '{name}' contents changed but is already in sync"
                    )
            self._say(f"Secret '{name}' is already up to date")
            return SyncOutcome.NOOP

        if previous is None:
            decision = self._conflict_policy(
                options,
                pulling=f"Overwriting new secret file '{name}' with remote copy",
                pushing=f"Overwriting new remote secret with local copy '{name}'",
                report=f"New secret file '{name}' does not match remote copy",
                ask=(
                    f"New secret file '{name}' does not match remote copy, "
                    "do you want to pull, push, or leave it as is?"
                ),
            )
            return self._apply(decision, None, entry, secret, state)

        remote_changed = secret.version != previous.remote_version
        local_changed = state.locked.local_hash != previous.local_hash

        if remote_changed and local_changed:
            decision = self._conflict_policy(
                options,
                pulling=f"Overwriting modified secret file '{name}' with remote copy",
                pushing=f"Overwriting remote secret with modified local copy '{name}'",
                report=f"Modified secret file '{name}' does not match modified remote copy",
                ask=(
                    f"Modified secret file '{name}' does not match modified remote copy, "
                    "do you want to pull, push, or leave it as is?"
                ),
            )
            return self._apply(decision, None, entry, secret, state)

        if remote_changed:
            self._say(f"Pulling new version of secret '{name}'")
            self._pull(entry, secret, state)
            self._say("    done")
            return SyncOutcome.PULLED

        if local_changed:
            self._say(f"Pushing new version of secret '{name}'")
            self._push(secret, state)
            self._say("    done")
            return SyncOutcome.PUSHED

        decision = self._conflict_policy(
            options,
            pulling=f"Lockfile is corrupt, overwriting secret file '{name}' with remote copy",
            pushing=f"Lockfile is corrupt, overwriting remote secret with local copy '{name}'",
            report=(
                f"Lockfile is corrupt, secret file '{name}' does not match remote copy "
                "but neither are modified"
            ),
            ask=(
                f"Lockfile is corrupt, secret file '{name}' does not match remote copy, "
                "do you want to pull, push, or leave it as is?"
            ),
        )
        return self._apply(decision, None, entry, secret, state)

    # --- policies ---

    def _fix_policy(
        self, options: SyncOptions, *, acting: str, report: str, ask: str, question: str
    ) -> str:
        """Decide whether to repair a file: ACT, SKIP, or REPORT."""
        if self.ctx.cicd:
            self._say(f"{acting} (--cicd flag is enabled)")
            return ACT
        if options.fix:
            self._say(f"{acting} (--fix flag is enabled)")
            return ACT
        if not self.ctx.interactive:
            self._say(report)
            return REPORT
        self._say(ask)
        return ACT if self.ctx.prompter.confirm(question, default=True) else SKIP

    def _conflict_policy(
        self, options: SyncOptions, *, pulling: str, pushing: str, report: str, ask: str
    ) -> str:
        """Decide how to resolve a conflict: PULL, PUSH, SKIP, or REPORT."""
        if self.ctx.cicd:
            self._say(f"{pulling} (--cicd flag is enabled)")
            return PULL
        if options.pull:
            self._say(f"{pulling} (--pull flag is enabled)")
            return PULL
        if options.push:
            self._say(f"{pushing} (--push flag is enabled)")
            return PUSH
        if not self.ctx.interactive:
            self._say(report)
            return REPORT
        self._say(ask)
        return self.ctx.prompter.push_pull_skip()

    def _apply(
        self,
        decision: str,
        action: Optional[str],
        entry: SecretEntry,
        secret: FetchedSecret,
        state: FileState,
        done: Optional[str] = None,
    ) -> SyncOutcome:
        """Carry out a policy decision.

        Fix policy answers ACT and names its ``action``; conflict
        policy answers PULL or PUSH directly.
        """
        if decision == ACT:
            decision = action

        if decision == PULL:
            self._pull(entry, secret, state)
            self._say(done or "    pulled")
            return SyncOutcome.PULLED
        if decision == PUSH:
            self._push(secret, state)
            self._say(done or "    pushed")
            return SyncOutcome.PUSHED

        self._say("    skipped")
        return SyncOutcome.REPORTED if decision == REPORT else SyncOutcome.SKIPPED

    # --- actions ---

    def _pull(self, entry: SecretEntry, secret: FetchedSecret, state: FileState) -> None:
        text = format_data(secret.value, secret.format)
        path = self.project.file_path(entry.file)
        path.parent.mkdir(parents=True, exist_ok=True)
        path.write_text(text, encoding="utf-8")

        state.data = secret.value
        state.status = LocalStatus.PARSED
        state.parse_error = None
        state.locked.local_hash = hash_value(secret.value)
        state.locked.local_format = secret.format.value
        logger.info("Pulled %s", entry.file)

    def _push(self, secret: FetchedSecret, state: FileState) -> None:
        state.locked.remote_version = secret.upload_new(state.data)
        logger.info("Pushed new remote version %s", state.locked.remote_version)

    # --- orphans ---

    def _handle_orphan(self, file: str, report: SyncReport, removed: bool) -> None:
        """Offer to delete a file that is no longer synced."""
        path = self.project.file_path(file)
        if not path.exists():
            return

        name = escape(self.project.relative_name(file))
        kind = "removed" if removed else "unreferenced"

        if self.ctx.cicd:
            self._say(f"Deleting {kind} secret file at '{name}' (--cicd flag is enabled)")
            delete = True
        elif not self.ctx.interactive:
            self._say(f"Warning: {kind} secret file at '{name}'")
            delete = False
        else:
            self._say(f"{kind.capitalize()} file at {name}, would you like to remove it?")
            delete = self.ctx.prompter.confirm("Delete file?", default=True)

        if delete:
            path.unlink()
            self._say("    deleted")
            report.record(file, SyncOutcome.DELETED)
        else:
            self._say("    skipped")
            report.record(file, SyncOutcome.KEPT)
