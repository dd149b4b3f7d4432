"""Worker units ("lurkers") and their registry.

A lurker loads whatever is slow to load, waits in the background until
the watched files settle after a change, and then runs the actual work
(typically a test suite) in the already warm interpreter.

Subclasses override ``files``, ``prepare`` and ``main_work``:

    @register_lurker
    class MyTestLurker(Lurker):
        def prepare(self):
            import my_heavy_framework

        def main_work(self):
            ...

Then run ``overmind my_bootstrap_module MyTestLurker``.
"""

import glob
import importlib
import inspect
import logging
import sys
import threading
from abc import ABC, abstractmethod
from pathlib import Path
from typing import Callable, Optional, Union

from . import console
from .config import OvermindConfig
from .exceptions import LurkerNotFoundError
from .watcher import ChangeWatcher, discover_files

logger = logging.getLogger(__name__)

LURKERS: dict[str, type["Lurker"]] = {}


class Lurker(ABC):
    """Base class for pluggable worker units.

    Args:
        identity: Lane label prefixed to every status line, e.g. "[0]".
        root: Directory holding the watched sources.
        config: Overmind configuration.
    """

    load_paths = ("lib", "tests")

    def __init__(
        self,
        identity: str = "",
        root: Union[str, Path] = ".",
        config: Optional[OvermindConfig] = None,
    ):
        self.identity = identity
        self.root = Path(root)
        self.config = config or OvermindConfig()
        self.watcher = ChangeWatcher(
            root=self.root,
            watch_set=self.files,
            poll_interval=self.config.poll_interval,
            identity=identity,
        )

    # Default implementation, override if needed
    def files(self) -> list[str]:
        """Paths to watch; all recognized source files by default."""
        return discover_files(
            self.root, self.config.source_extensions, self.config.ignore_patterns
        )

    def extend_load_path(self) -> None:
        for name in self.load_paths:
            path = str(self.root / name)
            if path not in sys.path:
                sys.path.append(path)

    # Default implementation, override if needed
    def prepare(self) -> None:
        """Truncate log files left over from the previous run."""
        for pattern in self.config.log_globs:
            for log_file in glob.glob(str(self.root / pattern)):
                logger.debug(f"Truncating {log_file}")
                with open(log_file, "w"):
                    pass

    @abstractmethod
    def main_work(self) -> Optional[str]:
        """Run the work triggered by a change.

        May return the report text, which is then passed to
        ``process_results_hook`` and classified by in-process supervisors.
        """

    def process_results_hook(self, output: str) -> None:
        pass

    def lurk(self, cancel: Optional[threading.Event] = None) -> Optional[str]:
        """Load, prepare, wait for a settled change and run ``main_work``.

        Args:
            cancel: Token that aborts the wait.

        Returns:
            Whatever ``main_work`` returned, or None when cancelled.
        """
        console.status(self.identity, console.LOADING)
        self.extend_load_path()
        self.watcher.memorize()

        console.status(self.identity, console.PREPARING)
        self.prepare()

        console.status(self.identity, console.LURKING)
        console.status(self.identity, console.INTERRUPT_HINT)
        change = self.watcher.wait_for_settled_change(cancel)
        if change.cancelled:
            logger.info(f"{self.identity}Wait cancelled")
            return None

        console.new_run_marker()
        output = self.main_work()
        if output is not None:
            self.process_results_hook(output)
        print(console.DONE, flush=True)
        return output


def register_lurker(
    cls: Optional[type[Lurker]] = None, *, name: Optional[str] = None
) -> Union[type[Lurker], Callable[[type[Lurker]], type[Lurker]]]:
    """Class decorator adding a lurker to the registry.

    Usable bare (``@register_lurker``) or with an explicit name
    (``@register_lurker(name="fast")``).
    """

    def decorator(lurker_cls: type[Lurker]) -> type[Lurker]:
        if not (inspect.isclass(lurker_cls) and issubclass(lurker_cls, Lurker)):
            raise TypeError(f"{lurker_cls!r} is not a Lurker subclass")
        key = name or lurker_cls.__name__
        if key in LURKERS and LURKERS[key] is not lurker_cls:
            logger.warning(f"Replacing registered lurker {key!r}")
        LURKERS[key] = lurker_cls
        return lurker_cls

    if cls is not None:
        return decorator(cls)
    return decorator


def get_lurker_class(name: str) -> type[Lurker]:
    """Look a lurker up in the registry."""
    try:
        return LURKERS[name]
    except KeyError:
        raise LurkerNotFoundError(name) from None


def load_lurker_class(bootstrap: str, name: str) -> type[Lurker]:
    """Import ``bootstrap`` and resolve the lurker called ``name``.

    Importing the bootstrap module registers its lurkers. A Lurker
    subclass exported by the module under ``name`` is accepted too.
    """
    try:
        module = importlib.import_module(bootstrap)
    except ModuleNotFoundError as e:
        if e.name != bootstrap:
            raise
        raise LurkerNotFoundError(name, bootstrap) from e

    if name in LURKERS:
        return LURKERS[name]

    candidate = getattr(module, name, None)
    if inspect.isclass(candidate) and issubclass(candidate, Lurker):
        return candidate

    raise LurkerNotFoundError(name, bootstrap)
