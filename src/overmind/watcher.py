"""Polling change watcher with debounce.

Records the modification time of every watched file and polls the
filesystem until a change has been detected and the tree has settled.
A watched file that disappears counts as a change.
"""

import fnmatch
import logging
import os
import threading
from dataclasses import dataclass, field
from datetime import datetime
from enum import Enum
from pathlib import Path
from typing import Callable, Iterator, Optional, Sequence

from . import console
from .config import DEFAULT_IGNORE_PATTERNS

logger = logging.getLogger(__name__)


class ChangeKind(Enum):
    """Why a poll reported a file."""

    MODIFIED = "modified"
    DELETED = "deleted"
    CANCELLED = "cancelled"


@dataclass(frozen=True)
class ChangeEvent:
    """The single file that triggered detection."""

    kind: ChangeKind
    path: Optional[str] = None
    timestamp: datetime = field(default_factory=datetime.now, compare=False)

    @property
    def cancelled(self) -> bool:
        return self.kind is ChangeKind.CANCELLED

    def to_dict(self) -> dict:
        """Serialize to dictionary."""
        return {
            "kind": self.kind.value,
            "path": self.path,
            "timestamp": self.timestamp.isoformat(),
        }


@dataclass
class FileSnapshot:
    """Last observed modification time of each watched path."""

    mtimes: dict[str, float] = field(default_factory=dict)
    taken_at: datetime = field(default_factory=datetime.now)

    def __len__(self) -> int:
        return len(self.mtimes)

    def __contains__(self, path: str) -> bool:
        return path in self.mtimes

    def __iter__(self) -> Iterator[str]:
        return iter(self.mtimes)

    def items(self):
        return self.mtimes.items()

    @property
    def paths(self) -> list[str]:
        return list(self.mtimes)


def discover_files(
    root: Path,
    extensions: Sequence[str] = (".py",),
    ignore_patterns: Optional[Sequence[str]] = None,
) -> list[str]:
    """List source files under ``root`` recursively, sorted.

    Paths are returned relative to ``root`` when ``root`` is the current
    directory, absolute otherwise.
    """
    root = Path(root)
    patterns = DEFAULT_IGNORE_PATTERNS if ignore_patterns is None else ignore_patterns
    wanted = {ext.lower() for ext in extensions}
    relative_output = root.resolve() == Path.cwd().resolve()

    found = []
    for dirpath, dirnames, filenames in os.walk(root):
        rel_dir = os.path.relpath(dirpath, root)
        rel_dir = "" if rel_dir == "." else rel_dir.replace(os.sep, "/")

        # Prune ignored directories so we never descend into them
        dirnames[:] = sorted(
            d for d in dirnames
            if not _is_ignored(f"{rel_dir}/{d}" if rel_dir else d, patterns, is_dir=True)
        )

        for name in filenames:
            if os.path.splitext(name)[1].lower() not in wanted:
                continue
            rel_path = f"{rel_dir}/{name}" if rel_dir else name
            if _is_ignored(rel_path, patterns):
                continue
            found.append(rel_path if relative_output else str(root / rel_path))

    return sorted(found)


def _is_ignored(rel_path: str, patterns: Sequence[str], is_dir: bool = False) -> bool:
    """Check a slash-separated relative path against ignore patterns."""
    for pattern in patterns:
        if fnmatch.fnmatch(rel_path, pattern):
            return True

        # "dir/*" also ignores the directory itself
        if pattern.endswith("/*"):
            dir_pattern = pattern[:-2]
            parts = rel_path.split("/")
            candidates = parts if is_dir else parts[:-1]
            if any(fnmatch.fnmatch(part, dir_pattern) for part in candidates):
                return True

    return False


class ChangeWatcher:
    """Detect settled changes in a set of files by polling.

    Args:
        root: Directory scanned by the default watch set.
        watch_set: Callable returning the paths to watch; overrides
            discovery under ``root``.
        poll_interval: Seconds between polls.
        extensions: File suffixes watched by default.
        ignore_patterns: Glob patterns skipped by default discovery.
    """

    def __init__(
        self,
        root: Path = Path("."),
        watch_set: Optional[Callable[[], Sequence[str]]] = None,
        poll_interval: float = 1.0,
        extensions: Sequence[str] = (".py",),
        ignore_patterns: Optional[Sequence[str]] = None,
        identity: str = "",
    ):
        self.root = Path(root)
        self.poll_interval = poll_interval
        self.extensions = tuple(extensions)
        self.ignore_patterns = ignore_patterns
        self.identity = identity
        self._watch_set = watch_set
        self._snapshot: Optional[FileSnapshot] = None

    @property
    def current_snapshot(self) -> Optional[FileSnapshot]:
        return self._snapshot

    def watch_set(self) -> list[str]:
        """Return the paths to monitor, in watch order."""
        if self._watch_set is not None:
            # dict.fromkeys keeps first occurrence order while dropping duplicates
            return list(dict.fromkeys(str(p) for p in self._watch_set()))
        return discover_files(self.root, self.extensions, self.ignore_patterns)

    def snapshot(self) -> FileSnapshot:
        """Record the current modification time of every watched path.

        Paths that cannot be stat-ed are left out.
        """
        mtimes = {}
        for path in self.watch_set():
            try:
                mtimes[path] = os.stat(path).st_mtime
            except OSError:
                continue
        return FileSnapshot(mtimes=mtimes)

    def memorize(self) -> FileSnapshot:
        """Take a snapshot and make it the one polls compare against."""
        self._snapshot = self.snapshot()
        logger.debug(f"{self.identity}Snapshot of {len(self._snapshot)} files")
        print(f"Watching {len(self._snapshot)} files", flush=True)
        return self._snapshot

    def poll_once(self, snapshot: Optional[FileSnapshot] = None) -> Optional[ChangeEvent]:
        """Return the first changed path of ``snapshot``, or None.

        A path is changed when it no longer exists or its modification
        time is strictly newer than the recorded one.
        """
        if snapshot is None:
            snapshot = self._snapshot if self._snapshot is not None else self.memorize()

        for path, last_modified in snapshot.items():
            try:
                mtime = os.stat(path).st_mtime
            except OSError:
                return ChangeEvent(ChangeKind.DELETED, path)
            if mtime > last_modified:
                return ChangeEvent(ChangeKind.MODIFIED, path)

        return None

    def wait_for_settled_change(
        self, cancel: Optional[threading.Event] = None
    ) -> ChangeEvent:
        """Block until a change is detected and the files stop changing.

        After the first change every further poll happens one full
        interval after the previous snapshot; the wait ends at the first
        poll that finds nothing new.

        Args:
            cancel: Token that aborts the wait when set.

        Returns:
            The change that started the wait, or a CANCELLED event.
        """
        cancel = cancel or threading.Event()
        snapshot = self._snapshot if self._snapshot is not None else self.memorize()

        trigger = self.poll_once(snapshot)
        while trigger is None:
            if cancel.wait(self.poll_interval):
                return ChangeEvent(ChangeKind.CANCELLED)
            trigger = self.poll_once(snapshot)

        logger.info(f"{self.identity}Change detected: {trigger.path} ({trigger.kind.value})")
        console.changed(trigger.path)
        snapshot = self.memorize()

        while True:
            if cancel.wait(self.poll_interval):
                return ChangeEvent(ChangeKind.CANCELLED)
            change = self.poll_once(snapshot)
            if change is None:
                break
            console.changed(change.path)
            snapshot = self.memorize()

        logger.debug(f"{self.identity}Files settled after change to {trigger.path}")
        return trigger
