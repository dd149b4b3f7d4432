"""Tests for the polling change watcher."""

import os
import threading
from pathlib import Path

import pytest

from overmind.watcher import (
    ChangeEvent,
    ChangeKind,
    ChangeWatcher,
    FileSnapshot,
    discover_files,
)


def touch(path: Path, mtime: float) -> None:
    """Set both access and modification time."""
    os.utime(path, (mtime, mtime))


def make_files(root: Path, *names: str, mtime: float = 1000.0) -> list[Path]:
    paths = []
    for name in names:
        path = root / name
        path.parent.mkdir(parents=True, exist_ok=True)
        path.write_text("# source\n")
        touch(path, mtime)
        paths.append(path)
    return paths


class ScriptedCancel:
    """Stands in for threading.Event; runs one scripted action per wait."""

    def __init__(self, actions=()):
        self.actions = list(actions)
        self.waits = 0

    def is_set(self) -> bool:
        return False

    def wait(self, timeout=None) -> bool:
        self.waits += 1
        if self.actions:
            self.actions.pop(0)()
        return False


class TestDiscoverFiles:
    """Tests for default watch set discovery."""

    def test_finds_sources_recursively(self, tmp_path):
        """Test nested source files are found and sorted."""
        make_files(tmp_path, "b.py", "pkg/a.py", "pkg/sub/c.py")
        found = discover_files(tmp_path)
        assert found == sorted([
            str(tmp_path / "b.py"),
            str(tmp_path / "pkg/a.py"),
            str(tmp_path / "pkg/sub/c.py"),
        ])

    def test_skips_other_extensions(self, tmp_path):
        """Test files without a recognized suffix are left out."""
        make_files(tmp_path, "main.py", "notes.txt", "data.json")
        assert discover_files(tmp_path) == [str(tmp_path / "main.py")]

    def test_skips_ignored_directories(self, tmp_path):
        """Test .git, __pycache__ and virtualenvs are not watched."""
        make_files(
            tmp_path,
            "src/module.py",
            ".git/hooks/pre-commit.py",
            "__pycache__/module.py",
            ".venv/lib/site.py",
            "pkg.egg-info/setup.py",
        )
        assert discover_files(tmp_path) == [str(tmp_path / "src/module.py")]

    def test_custom_extensions(self, tmp_path):
        """Test watching other source extensions."""
        make_files(tmp_path, "spec/widget_spec.rb", "lib/widget.py")
        found = discover_files(tmp_path, extensions=(".rb",))
        assert found == [str(tmp_path / "spec/widget_spec.rb")]

    def test_relative_paths_for_cwd(self, tmp_path, monkeypatch):
        """Test paths are relative when scanning the working directory."""
        make_files(tmp_path, "app.py", "lib/util.py")
        monkeypatch.chdir(tmp_path)
        assert discover_files(Path(".")) == ["app.py", "lib/util.py"]


class TestSnapshot:
    """Tests for snapshots."""

    def test_records_mtimes(self, tmp_path):
        """Test every watched file is recorded with its mtime."""
        a, b = make_files(tmp_path, "a.py", "b.py", mtime=1234.0)
        snapshot = ChangeWatcher(tmp_path).snapshot()
        assert isinstance(snapshot, FileSnapshot)
        assert len(snapshot) == 2
        assert snapshot.mtimes[str(a)] == 1234.0
        assert str(b) in snapshot

    def test_missing_paths_are_absent(self, tmp_path):
        """Test watch set entries that do not exist are skipped."""
        (a,) = make_files(tmp_path, "a.py")
        watcher = ChangeWatcher(
            tmp_path, watch_set=lambda: [str(a), str(tmp_path / "gone.py")]
        )
        assert watcher.snapshot().paths == [str(a)]

    def test_watch_set_recomputed(self, tmp_path):
        """Test files added after a snapshot appear in the next one."""
        make_files(tmp_path, "a.py")
        watcher = ChangeWatcher(tmp_path)
        assert len(watcher.snapshot()) == 1
        make_files(tmp_path, "b.py")
        assert len(watcher.snapshot()) == 2

    def test_custom_watch_set_keeps_order_without_duplicates(self, tmp_path):
        """Test an override watch set is used in its own order."""
        a, b = make_files(tmp_path, "a.py", "b.py")
        watcher = ChangeWatcher(tmp_path, watch_set=lambda: [str(b), str(a), str(b)])
        assert watcher.watch_set() == [str(b), str(a)]

    def test_memorize_prints_count(self, tmp_path, capsys):
        """Test memorize keeps the snapshot and reports the file count."""
        make_files(tmp_path, "a.py", "b.py", "c.py")
        watcher = ChangeWatcher(tmp_path)
        snapshot = watcher.memorize()
        assert watcher.current_snapshot is snapshot
        assert "Watching 3 files" in capsys.readouterr().out


class TestPollOnce:
    """Tests for single polls."""

    def test_no_change(self, tmp_path):
        """Test untouched files never report a change."""
        make_files(tmp_path, "a.py", "b.py")
        watcher = ChangeWatcher(tmp_path)
        snapshot = watcher.snapshot()
        for _ in range(3):
            assert watcher.poll_once(snapshot) is None

    def test_detects_modification(self, tmp_path):
        """Test a newer mtime is reported as modified."""
        a, _ = make_files(tmp_path, "a.py", "b.py")
        watcher = ChangeWatcher(tmp_path)
        snapshot = watcher.snapshot()
        touch(a, 2000.0)
        change = watcher.poll_once(snapshot)
        assert change == ChangeEvent(ChangeKind.MODIFIED, str(a))

    def test_detects_deletion(self, tmp_path):
        """Test a deleted file counts as a change."""
        _, b = make_files(tmp_path, "a.py", "b.py")
        watcher = ChangeWatcher(tmp_path)
        snapshot = watcher.snapshot()
        b.unlink()
        change = watcher.poll_once(snapshot)
        assert change.kind == ChangeKind.DELETED
        assert change.path == str(b)

    def test_older_or_equal_mtime_is_not_a_change(self, tmp_path):
        """Test only strictly newer mtimes count."""
        a, b = make_files(tmp_path, "a.py", "b.py", mtime=1500.0)
        watcher = ChangeWatcher(tmp_path)
        snapshot = watcher.snapshot()
        touch(a, 1500.0)
        touch(b, 1000.0)
        assert watcher.poll_once(snapshot) is None

    def test_first_change_in_watch_order(self, tmp_path):
        """Test the first changed path in watch set order is returned."""
        a, b = make_files(tmp_path, "a.py", "b.py")
        watcher = ChangeWatcher(tmp_path, watch_set=lambda: [str(b), str(a)])
        snapshot = watcher.snapshot()
        touch(a, 2000.0)
        touch(b, 2000.0)
        assert watcher.poll_once(snapshot).path == str(b)

    def test_new_file_not_in_snapshot(self, tmp_path):
        """Test files created after the snapshot are not reported."""
        make_files(tmp_path, "a.py")
        watcher = ChangeWatcher(tmp_path)
        snapshot = watcher.snapshot()
        make_files(tmp_path, "new.py", mtime=5000.0)
        assert watcher.poll_once(snapshot) is None

    def test_uses_memorized_snapshot(self, tmp_path):
        """Test polling without an argument uses the memorized snapshot."""
        (a,) = make_files(tmp_path, "a.py")
        watcher = ChangeWatcher(tmp_path)
        watcher.memorize()
        touch(a, 3000.0)
        assert watcher.poll_once().path == str(a)


class TestWaitForSettledChange:
    """Tests for the debounce loop."""

    def test_waits_for_change_then_settles(self, tmp_path, capsys):
        """Test a change followed by a quiet interval ends the wait."""
        a, b = make_files(tmp_path, "a.py", "b.py")
        watcher = ChangeWatcher(tmp_path, poll_interval=0.01)
        watcher.memorize()

        cancel = ScriptedCancel([
            lambda: None,
            lambda: touch(a, 2000.0),
            lambda: None,
        ])
        change = watcher.wait_for_settled_change(cancel)

        assert change.kind == ChangeKind.MODIFIED
        assert change.path == str(a)
        # one quiet interval, the interval a changes in, one settle interval
        assert cancel.waits == 3
        assert f"=> {a} changed" in capsys.readouterr().out

    def test_further_changes_extend_the_wait(self, tmp_path, capsys):
        """Test a second change while settling delays the return."""
        a, b = make_files(tmp_path, "a.py", "b.py")
        watcher = ChangeWatcher(tmp_path, poll_interval=0.01)
        watcher.memorize()

        cancel = ScriptedCancel([
            lambda: touch(a, 2000.0),
            lambda: touch(b, 3000.0),
            lambda: touch(a, 4000.0),
            lambda: None,
        ])
        change = watcher.wait_for_settled_change(cancel)

        assert change.path == str(a)
        assert cancel.waits == 4
        out = capsys.readouterr().out
        assert f"=> {b} changed" in out
        assert out.count(f"=> {a} changed") == 2

    def test_deleted_file_settles(self, tmp_path):
        """Test a deletion triggers the wait and the tree then settles."""
        a, b = make_files(tmp_path, "a.py", "b.py")
        watcher = ChangeWatcher(tmp_path, poll_interval=0.01)
        watcher.memorize()

        cancel = ScriptedCancel([lambda: b.unlink()])
        change = watcher.wait_for_settled_change(cancel)

        assert change.kind == ChangeKind.DELETED
        assert change.path == str(b)
        assert len(watcher.current_snapshot) == 1

    def test_cancelled_while_waiting(self, tmp_path):
        """Test a set token ends the wait with a cancelled event."""
        make_files(tmp_path, "a.py")
        watcher = ChangeWatcher(tmp_path, poll_interval=10)
        cancel = threading.Event()
        cancel.set()
        change = watcher.wait_for_settled_change(cancel)
        assert change.cancelled
        assert change.path is None

    def test_cancel_from_another_thread(self, tmp_path):
        """Test cancellation interrupts a long poll interval promptly."""
        make_files(tmp_path, "a.py")
        watcher = ChangeWatcher(tmp_path, poll_interval=30)
        cancel = threading.Event()
        timer = threading.Timer(0.1, cancel.set)
        timer.start()
        try:
            change = watcher.wait_for_settled_change(cancel)
        finally:
            timer.cancel()
        assert change.kind == ChangeKind.CANCELLED


class TestChangeEvent:
    """Tests for ChangeEvent."""

    def test_serialization(self):
        """Test event serialization."""
        data = ChangeEvent(ChangeKind.DELETED, "lib/a.py").to_dict()
        assert data["kind"] == "deleted"
        assert data["path"] == "lib/a.py"
        assert "timestamp" in data

    def test_equality_ignores_timestamp(self):
        """Test events compare by kind and path."""
        assert ChangeEvent(ChangeKind.MODIFIED, "x.py") == ChangeEvent(ChangeKind.MODIFIED, "x.py")


@pytest.mark.parametrize("kind", [ChangeKind.MODIFIED, ChangeKind.DELETED])
def test_only_cancelled_kind_is_cancelled(kind):
    assert not ChangeEvent(kind, "a.py").cancelled
