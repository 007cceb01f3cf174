"""
Tests for the sync engine -- every reconciliation outcome, orphans, and
lockfile persistence.
"""

from __future__ import annotations

import json
from pathlib import Path

import pytest
import yaml

from conftest import FakeVault, data_entry, output_of, text_entry, write_manifest
from secretsync.auth import AuthConfig
from secretsync.errors import AuthMissing, ConfigError
from secretsync.engines import FetchedSecret
from secretsync.formats import DataFormat, hash_value
from secretsync.models import ClassUpdate, LockedFile
from secretsync.prompts import PULL, PUSH, SKIP
from secretsync.sync import LOCK_FILE, Project, SyncEngine, SyncOptions, SyncOutcome, SyncReport
from secretsync.sync.lock import FileState, LocalStatus

SECRET = "secret/app/db"
REMOTE = {"user": "a", "pass": "b"}
LOCAL = {"user": "a", "pass": "local-edit"}


def _sync(ctx, **options) -> SyncReport:
    project = Project.open(ctx)
    return SyncEngine(project, ctx).run(SyncOptions(**options))


def _lock(project_dir: Path) -> dict:
    return yaml.safe_load((project_dir / LOCK_FILE).read_text())["files"]


def _write_lock(project_dir: Path, files: dict) -> None:
    (project_dir / LOCK_FILE).write_text(yaml.safe_dump({"files": files}))


def _write_json(path: Path, value) -> None:
    path.write_text(json.dumps(value, indent=4) + "\n")


@pytest.fixture
def db_project(project_dir: Path) -> Path:
    """Project with a single db.json mapped to the whole secret."""
    write_manifest(project_dir, [data_entry("db.json", SECRET)])
    return project_dir


class TestEndToEnd:
    """Full sync runs against the fake Vault."""

    def test_pull_new_secret(self, db_project: Path, make_ctx, vault: FakeVault):
        """A missing local file is written from the remote secret."""
        vault.put(SECRET, REMOTE, version=1)
        ctx = make_ctx()

        report = _sync(ctx)

        assert report.outcome("db.json") is SyncOutcome.PULLED
        assert json.loads((db_project / "db.json").read_text()) == REMOTE
        assert (db_project / "db.json").read_text().startswith('{\n    "user"')
        assert _lock(db_project) == {
            "db.json": {"remoteVersion": 1, "localHash": hash_value(REMOTE), "localFormat": "json"}
        }
        assert "Writing new secret to 'db.json'" in output_of(ctx)
        assert "/secrets.lock" in (db_project / ".gitignore").read_text()

    def test_second_run_is_noop(self, db_project: Path, make_ctx, vault: FakeVault):
        vault.put(SECRET, REMOTE, version=1)
        _sync(make_ctx())
        before = (db_project / "db.json").read_text()
        lock_before = _lock(db_project)

        ctx = make_ctx()
        report = _sync(ctx)

        assert report.outcome("db.json") is SyncOutcome.NOOP
        assert not report.changed
        assert (db_project / "db.json").read_text() == before
        assert _lock(db_project) == lock_before
        assert vault.count("POST") == 0
        assert "Secret 'db.json' is already up to date" in output_of(ctx)

    def test_sub_path_text_secret(self, project_dir: Path, make_ctx, vault: FakeVault):
        vault.put(SECRET, {"api": {"key": "k-1"}}, version=5)
        write_manifest(project_dir, [text_entry("api.key", SECRET, ["api", "key"])])

        _sync(make_ctx())

        assert (project_dir / "api.key").read_text() == "k-1"
        assert _lock(project_dir)["api.key"]["localFormat"] == "text"

    def test_files_in_subdirectories(self, project_dir: Path, make_ctx, vault: FakeVault):
        vault.put(SECRET, REMOTE)
        write_manifest(project_dir, [data_entry("config/db.yaml", SECRET, fmt="yaml")])

        _sync(make_ctx())

        assert yaml.safe_load((project_dir / "config" / "db.yaml").read_text()) == REMOTE


class TestLocalAbsent:
    """Rows where the local file does not exist."""

    def test_both_absent_reported(self, db_project: Path, make_ctx):
        ctx = make_ctx()
        report = _sync(ctx)
        assert report.outcome("db.json") is SyncOutcome.REPORTED
        assert not (db_project / "db.json").exists()
        assert _lock(db_project) == {"db.json": {"localFormat": "json"}}
        assert "No local file or remote data for secret 'db.json'" in output_of(ctx)


class TestUnparsable:
    """Rows where the local file cannot be parsed."""

    @pytest.fixture(autouse=True)
    def broken_file(self, db_project: Path):
        (db_project / "db.json").write_text("{broken")

    def test_reported_without_fix(self, db_project: Path, make_ctx, vault: FakeVault):
        vault.put(SECRET, REMOTE)
        ctx = make_ctx()
        report = _sync(ctx)
        assert report.outcome("db.json") is SyncOutcome.REPORTED
        assert (db_project / "db.json").read_text() == "{broken"
        assert "use the --fix flag" in output_of(ctx)

    def test_fix_overwrites(self, db_project: Path, make_ctx, vault: FakeVault):
        vault.put(SECRET, REMOTE)
        report = _sync(make_ctx(), fix=True)
        assert report.outcome("db.json") is SyncOutcome.PULLED
        assert json.loads((db_project / "db.json").read_text()) == REMOTE

    def test_cicd_overwrites(self, db_project: Path, make_ctx, vault: FakeVault):
        vault.put(SECRET, REMOTE)
        ctx = make_ctx(cicd=True)
        report = _sync(ctx)
        assert report.outcome("db.json") is SyncOutcome.PULLED
        assert "(--cicd flag is enabled)" in output_of(ctx)

    @pytest.mark.parametrize("answer,outcome", [(True, SyncOutcome.PULLED), (False, SyncOutcome.SKIPPED)])
    def test_interactive(self, make_ctx, vault: FakeVault, answer, outcome):
        vault.put(SECRET, REMOTE)
        ctx = make_ctx(interactive=True, answers=[answer])
        assert _sync(ctx).outcome("db.json") is outcome
        assert ctx.prompter.questions == ["Overwrite file?"]

    def test_remote_absent_reported(self, db_project: Path, make_ctx):
        report = _sync(make_ctx(), fix=True)
        assert report.outcome("db.json") is SyncOutcome.REPORTED
        assert (db_project / "db.json").read_text() == "{broken"
        assert "localHash" not in _lock(db_project)["db.json"]


class TestRemoteAbsent:
    """Rows where the local file parses but the remote data is missing."""

    @pytest.fixture(autouse=True)
    def local_file(self, db_project: Path):
        _write_json(db_project / "db.json", LOCAL)

    def test_reported_without_fix(self, make_ctx, vault: FakeVault):
        ctx = make_ctx()
        assert _sync(ctx).outcome("db.json") is SyncOutcome.REPORTED
        assert vault.count("POST") == 0
        assert "is incomplete or does not exist, use the --fix flag" in output_of(ctx)

    def test_fix_pushes(self, db_project: Path, make_ctx, vault: FakeVault):
        report = _sync(make_ctx(), fix=True)
        assert report.outcome("db.json") is SyncOutcome.PUSHED
        assert vault.data(SECRET) == LOCAL
        assert _lock(db_project)["db.json"]["remoteVersion"] == 1

    def test_cicd_pushes(self, make_ctx, vault: FakeVault):
        assert _sync(make_ctx(cicd=True)).outcome("db.json") is SyncOutcome.PUSHED
        assert vault.data(SECRET) == LOCAL

    def test_missing_path_pushed_into_existing_document(self, project_dir: Path, make_ctx, vault: FakeVault):
        vault.put(SECRET, {"other": 1}, version=2)
        write_manifest(project_dir, [data_entry("db.json", SECRET, path=["db"])])

        _sync(make_ctx(), fix=True)

        assert vault.data(SECRET) == {"other": 1, "db": LOCAL}
        assert vault.version(SECRET) == 3

    def test_interactive_decline(self, make_ctx, vault: FakeVault):
        ctx = make_ctx(interactive=True, answers=[False])
        assert _sync(ctx).outcome("db.json") is SyncOutcome.SKIPPED
        assert ctx.prompter.questions == ["Push secret?"]
        assert vault.count("POST") == 0


class TestFormatDiffers:
    """Same data on both sides, local file in another format."""

    @pytest.fixture(autouse=True)
    def yaml_project(self, project_dir: Path, vault: FakeVault):
        vault.put(SECRET, REMOTE, version=1)
        write_manifest(project_dir, [data_entry("db.conf", SECRET, fmt="yaml")])
        _write_json(project_dir / "db.conf", REMOTE)

    def _reconcile(self, ctx, previous, **options) -> SyncOutcome:
        project = Project.open(ctx)
        secret = FetchedSecret(format=DataFormat.YAML, value=REMOTE, version=1)
        state = FileState(
            locked=LockedFile(remote_version=1, local_hash=hash_value(REMOTE), local_format="json"),
            status=LocalStatus.PARSED,
            data=REMOTE,
        )
        return SyncEngine(project, ctx)._reconcile(
            project.secrets[0], secret, state, previous, SyncOptions(**options)
        )

    def test_changed_mapping_format_rewrites_file(self, project_dir: Path, make_ctx):
        """A file still in its last synced format follows the new mapping format."""
        _write_lock(
            project_dir,
            {"db.conf": {"remoteVersion": 1, "localHash": hash_value(REMOTE), "localFormat": "json"}},
        )
        ctx = make_ctx(interactive=True)

        assert _sync(ctx).outcome("db.conf") is SyncOutcome.PULLED
        assert ctx.prompter.questions == []
        assert "Updating secret 'db.conf' to newer format" in output_of(ctx)
        assert (project_dir / "db.conf").read_text() == "user: a\npass: b\n"
        assert _lock(project_dir)["db.conf"]["localFormat"] == "yaml"

    @pytest.mark.parametrize("previous", [None, LockedFile(remote_version=1, local_format="text")])
    def test_reported_without_fix(self, project_dir: Path, make_ctx, previous):
        ctx = make_ctx()
        assert self._reconcile(ctx, previous) is SyncOutcome.REPORTED
        assert "same data but in a different format" in output_of(ctx)
        assert json.loads((project_dir / "db.conf").read_text()) == REMOTE

    def test_fix_rewrites_in_configured_format(self, project_dir: Path, make_ctx):
        ctx = make_ctx()
        assert self._reconcile(ctx, None, fix=True) is SyncOutcome.PULLED
        assert "Updating secret 'db.conf' to correct format (--fix flag is enabled)" in output_of(ctx)
        assert (project_dir / "db.conf").read_text() == "user: a\npass: b\n"

    def test_interactive_asks(self, make_ctx):
        ctx = make_ctx(interactive=True, answers=[False])
        assert self._reconcile(ctx, None) is SyncOutcome.SKIPPED
        assert ctx.prompter.questions == ["Fix format?"]


class TestInSync:
    """Same data and format on both sides."""

    def test_drift_info_lines(self, db_project: Path, make_ctx, vault: FakeVault):
        """Version and hash drift with equal data only produce info lines."""
        vault.put(SECRET, REMOTE, version=7)
        _write_json(db_project / "db.json", REMOTE)
        _write_lock(db_project, {"db.json": {"remoteVersion": 6, "localHash": "stale", "localFormat": "json"}})
        ctx = make_ctx()

        report = _sync(ctx)

        out = output_of(ctx)
        assert report.outcome("db.json") is SyncOutcome.NOOP
        assert "info: remote version for 'db.json' changed but is already in sync" in out
        assert "info: local secret 'db.json' contents changed but is already in sync" in out
        assert _lock(db_project)["db.json"] == {
            "remoteVersion": 7,
            "localHash": hash_value(REMOTE),
            "localFormat": "json",
        }


class TestNoLockRecord:
    """Local and remote differ and the lockfile knows nothing."""

    @pytest.fixture(autouse=True)
    def diverged(self, db_project: Path, vault: FakeVault):
        vault.put(SECRET, REMOTE, version=2)
        _write_json(db_project / "db.json", LOCAL)

    def test_reported(self, db_project: Path, make_ctx):
        ctx = make_ctx()
        assert _sync(ctx).outcome("db.json") is SyncOutcome.REPORTED
        assert "New secret file 'db.json' does not match remote copy" in output_of(ctx)
        assert json.loads((db_project / "db.json").read_text()) == LOCAL

    def test_cicd_pulls(self, db_project: Path, make_ctx):
        assert _sync(make_ctx(cicd=True)).outcome("db.json") is SyncOutcome.PULLED
        assert json.loads((db_project / "db.json").read_text()) == REMOTE

    def test_push_flag(self, make_ctx, vault: FakeVault):
        assert _sync(make_ctx(), push=True).outcome("db.json") is SyncOutcome.PUSHED
        assert vault.data(SECRET) == LOCAL
        assert vault.version(SECRET) == 3

    def test_pull_flag(self, db_project: Path, make_ctx):
        assert _sync(make_ctx(), pull=True).outcome("db.json") is SyncOutcome.PULLED

    @pytest.mark.parametrize(
        "answer,outcome",
        [(PUSH, SyncOutcome.PUSHED), (PULL, SyncOutcome.PULLED), (SKIP, SyncOutcome.SKIPPED)],
    )
    def test_interactive(self, make_ctx, answer, outcome):
        ctx = make_ctx(interactive=True, answers=[answer])
        assert _sync(ctx).outcome("db.json") is outcome
        assert ctx.prompter.questions == ["Push (u), pull (d), or skip (n)?"]

    def test_skipped_entry_still_locked(self, db_project: Path, make_ctx):
        _sync(make_ctx())
        assert _lock(db_project)["db.json"] == {
            "remoteVersion": 2,
            "localHash": hash_value(LOCAL),
            "localFormat": "json",
        }


class TestWithLockRecord:
    """Local and remote differ and the lockfile has the last synced state."""

    def test_only_local_changed_pushes(self, db_project: Path, make_ctx, vault: FakeVault):
        """Lock {remoteVersion: 3, localHash: A}, local B, remote v3: push."""
        vault.put(SECRET, REMOTE, version=3)
        _write_json(db_project / "db.json", LOCAL)
        _write_lock(db_project, {"db.json": {"remoteVersion": 3, "localHash": hash_value(REMOTE), "localFormat": "json"}})
        ctx = make_ctx()

        report = _sync(ctx)

        assert report.outcome("db.json") is SyncOutcome.PUSHED
        assert vault.data(SECRET) == LOCAL
        assert _lock(db_project)["db.json"] == {
            "remoteVersion": 4,
            "localHash": hash_value(LOCAL),
            "localFormat": "json",
        }
        assert "Pushing new version of secret 'db.json'" in output_of(ctx)

    def test_only_remote_changed_pulls(self, db_project: Path, make_ctx, vault: FakeVault):
        vault.put(SECRET, REMOTE, version=4)
        _write_json(db_project / "db.json", LOCAL)
        _write_lock(db_project, {"db.json": {"remoteVersion": 3, "localHash": hash_value(LOCAL), "localFormat": "json"}})

        report = _sync(make_ctx())

        assert report.outcome("db.json") is SyncOutcome.PULLED
        assert json.loads((db_project / "db.json").read_text()) == REMOTE
        assert _lock(db_project)["db.json"]["localHash"] == hash_value(REMOTE)
        assert _lock(db_project)["db.json"]["remoteVersion"] == 4

    def test_both_changed_is_conflict(self, db_project: Path, make_ctx, vault: FakeVault):
        vault.put(SECRET, REMOTE, version=4)
        _write_json(db_project / "db.json", LOCAL)
        _write_lock(db_project, {"db.json": {"remoteVersion": 3, "localHash": "old", "localFormat": "json"}})
        ctx = make_ctx()

        assert _sync(ctx).outcome("db.json") is SyncOutcome.REPORTED
        assert "Modified secret file 'db.json' does not match modified remote copy" in output_of(ctx)

    def test_both_changed_pull_flag(self, db_project: Path, make_ctx, vault: FakeVault):
        vault.put(SECRET, REMOTE, version=4)
        _write_json(db_project / "db.json", LOCAL)
        _write_lock(db_project, {"db.json": {"remoteVersion": 3, "localHash": "old", "localFormat": "json"}})

        assert _sync(make_ctx(), pull=True).outcome("db.json") is SyncOutcome.PULLED
        assert json.loads((db_project / "db.json").read_text()) == REMOTE

    def test_corrupt_lock_is_conflict(self, db_project: Path, make_ctx, vault: FakeVault):
        """Neither side changed since the lock, yet they differ."""
        vault.put(SECRET, REMOTE, version=3)
        _write_json(db_project / "db.json", LOCAL)
        _write_lock(db_project, {"db.json": {"remoteVersion": 3, "localHash": hash_value(LOCAL), "localFormat": "json"}})
        ctx = make_ctx()

        assert _sync(ctx).outcome("db.json") is SyncOutcome.REPORTED
        assert "Lockfile is corrupt" in output_of(ctx)

    def test_corrupt_lock_push_flag(self, db_project: Path, make_ctx, vault: FakeVault):
        vault.put(SECRET, REMOTE, version=3)
        _write_json(db_project / "db.json", LOCAL)
        _write_lock(db_project, {"db.json": {"remoteVersion": 3, "localHash": hash_value(LOCAL), "localFormat": "json"}})

        assert _sync(make_ctx(), push=True).outcome("db.json") is SyncOutcome.PUSHED
        assert vault.data(SECRET) == LOCAL


class TestPushedValues:
    """Values pushed from local files reach Vault as plain JSON."""

    @pytest.fixture
    def yaml_project(self, project_dir: Path, vault: FakeVault) -> Path:
        vault.put(SECRET, {"user": "a"}, version=3)
        write_manifest(project_dir, [data_entry("app.yaml", SECRET, fmt="yaml")])
        _write_lock(
            project_dir,
            {"app.yaml": {"remoteVersion": 3, "localHash": hash_value({"user": "a"}), "localFormat": "yaml"}},
        )
        return project_dir

    def test_yaml_dates_and_words_pushed_as_strings(self, yaml_project: Path, make_ctx, vault: FakeVault):
        """Unquoted dates and yes/no words are sent as the strings they were written as."""
        (yaml_project / "app.yaml").write_text("user: a\nexpires: 2024-01-01\nenabled: yes\n")

        report = _sync(make_ctx())

        assert report.outcome("app.yaml") is SyncOutcome.PUSHED
        assert vault.data(SECRET) == {"user": "a", "expires": "2024-01-01", "enabled": "yes"}
        assert vault.version(SECRET) == 4

    def test_second_run_after_yaml_push_is_noop(self, yaml_project: Path, make_ctx, vault: FakeVault):
        (yaml_project / "app.yaml").write_text("user: a\nexpires: 2024-01-01\n")
        _sync(make_ctx())
        text_before = (yaml_project / "app.yaml").read_text()
        lock_before = _lock(yaml_project)

        report = _sync(make_ctx())

        assert report.outcome("app.yaml") is SyncOutcome.NOOP
        assert vault.count("POST") == 1
        assert (yaml_project / "app.yaml").read_text() == text_before
        assert _lock(yaml_project) == lock_before == {
            "app.yaml": {
                "remoteVersion": 4,
                "localHash": hash_value({"user": "a", "expires": "2024-01-01"}),
                "localFormat": "yaml",
            }
        }

    def test_second_run_after_json_push_is_noop(self, db_project: Path, make_ctx, vault: FakeVault):
        """A pushed value read back from Vault matches the local file."""
        _write_json(db_project / "db.json", LOCAL)
        assert _sync(make_ctx(), fix=True).outcome("db.json") is SyncOutcome.PUSHED

        ctx = make_ctx()
        report = _sync(ctx)

        assert report.outcome("db.json") is SyncOutcome.NOOP
        assert vault.count("POST") == 1
        assert "Secret 'db.json' is already up to date" in output_of(ctx)
        assert _lock(db_project)["db.json"]["remoteVersion"] == 1

    def test_non_finite_yaml_is_unparsable(self, yaml_project: Path, make_ctx, vault: FakeVault):
        """A value JSON cannot carry is reported, never sent."""
        (yaml_project / "app.yaml").write_text("user: a\nratio: .nan\n")
        ctx = make_ctx()

        report = _sync(ctx)

        assert report.outcome("app.yaml") is SyncOutcome.REPORTED
        assert vault.count("POST") == 0
        assert "Failed to parse secret 'app.yaml'" in output_of(ctx)
        assert (yaml_project / "app.yaml").read_text() == "user: a\nratio: .nan\n"


class TestOrphans:
    """Files no longer part of the sync."""

    def test_removed_entry_deleted_in_cicd(self, db_project: Path, make_ctx, vault: FakeVault):
        vault.put(SECRET, REMOTE)
        _write_json(db_project / "old.json", {"x": 1})
        _write_lock(db_project, {"old.json": {"remoteVersion": 1, "localHash": "h", "localFormat": "json"}})
        ctx = make_ctx(cicd=True)

        report = _sync(ctx)

        assert report.outcome("old.json") is SyncOutcome.DELETED
        assert not (db_project / "old.json").exists()
        assert "old.json" not in _lock(db_project)
        assert "Deleting removed secret file at 'old.json'" in output_of(ctx)

    def test_removed_entry_kept_without_tty(self, db_project: Path, make_ctx, vault: FakeVault):
        vault.put(SECRET, REMOTE)
        _write_json(db_project / "old.json", {"x": 1})
        _write_lock(db_project, {"old.json": {"localFormat": "json"}})
        ctx = make_ctx()

        assert _sync(ctx).outcome("old.json") is SyncOutcome.KEPT
        assert (db_project / "old.json").exists()
        assert "Warning: removed secret file at 'old.json'" in output_of(ctx)

    def test_removed_entry_interactive(self, db_project: Path, make_ctx, vault: FakeVault):
        vault.put(SECRET, REMOTE)
        _write_json(db_project / "old.json", {"x": 1})
        _write_lock(db_project, {"old.json": {"localFormat": "json"}})
        ctx = make_ctx(interactive=True, answers=[True])

        assert _sync(ctx).outcome("old.json") is SyncOutcome.DELETED
        assert ctx.prompter.questions == ["Delete file?"]

    def test_gone_file_ignored(self, db_project: Path, make_ctx, vault: FakeVault):
        vault.put(SECRET, REMOTE)
        _write_lock(db_project, {"old.json": {"localFormat": "json"}})
        assert _sync(make_ctx(cicd=True)).outcome("old.json") is None

    def test_excluded_class_reported_once(self, project_dir: Path, make_ctx, vault: FakeVault):
        """A deselected entry that is also in the lock is handled once."""
        vault.put(SECRET, REMOTE)
        write_manifest(project_dir, [data_entry("prod.json", SECRET, class_="prod")])
        _write_json(project_dir / "prod.json", REMOTE)
        _write_lock(project_dir, {"prod.json": {"remoteVersion": 1, "localFormat": "json"}})
        ctx = make_ctx()

        report = _sync(ctx)

        out = output_of(ctx)
        assert report.outcome("prod.json") is SyncOutcome.KEPT
        assert out.count("prod.json") == 1
        assert "Warning: unreferenced secret file at 'prod.json'" in out
        assert vault.count("GET", "/v1/secret/data") == 0

    def test_class_selected_from_command_line(self, project_dir: Path, make_ctx, vault: FakeVault):
        vault.put(SECRET, REMOTE)
        write_manifest(project_dir, [data_entry("prod.json", SECRET, class_="prod")])

        report = _sync(make_ctx(), classes=ClassUpdate(add=["prod"]))

        assert report.outcome("prod.json") is SyncOutcome.PULLED
        assert (project_dir / ".localsecretclasses").read_text() == "+prod\n"


class TestFailures:
    """Fatal errors leave the lockfile untouched."""

    def test_pull_and_push_conflict(self, db_project: Path, make_ctx):
        with pytest.raises(ConfigError, match="cannot both be enabled"):
            _sync(make_ctx(), pull=True, push=True)
        assert not (db_project / LOCK_FILE).exists()

    def test_auth_failure_keeps_lock(self, db_project: Path, make_ctx):
        _write_lock(db_project, {"db.json": {"remoteVersion": 1, "localHash": "h", "localFormat": "json"}})
        before = (db_project / LOCK_FILE).read_text()

        with pytest.raises(AuthMissing):
            _sync(make_ctx(auth=AuthConfig()))

        assert (db_project / LOCK_FILE).read_text() == before

    def test_all_prepared_before_any_fetch(self, project_dir: Path, make_ctx, vault: FakeVault):
        """Auth problems on a later entry stop the run before any fetch."""
        write_manifest(
            project_dir,
            [
                data_entry("a.json", SECRET),
                {
                    "file": "b.json",
                    "vault": {
                        "url": "https://other.example.com/secret/b",
                        "mapping": {"fromData": {"format": "json"}},
                    },
                },
            ],
        )
        with pytest.raises(AuthMissing, match="other.example.com"):
            _sync(make_ctx())
        assert vault.count("GET", "/v1/secret/data") == 0

    def test_cicd_leaves_gitignore_alone(self, db_project: Path, make_ctx, vault: FakeVault):
        """CI/CD runs write the lockfile but leave .gitignore alone."""
        vault.put(SECRET, REMOTE)
        _sync(make_ctx(cicd=True))
        assert (db_project / LOCK_FILE).exists()
        assert not (db_project / ".gitignore").exists()
