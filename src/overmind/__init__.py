"""
overmind: keep a test worker warm and rerun it when sources settle.

This package provides:
- Polling change detection with debounce
- Supervision of worker processes with streamed output
- Classification of unit-style and spec-style test summaries
- Desktop notifications for pass/fail verdicts

Quick Start:
    from overmind import Lurker, register_lurker

    @register_lurker
    class MyTestLurker(Lurker):
        def main_work(self):
            ...

    # then, on the command line:
    #   overmind my_test_lurker MyTestLurker
"""

__version__ = "0.3.0"

from overmind.classifier import TestOutcome, Verdict, classify
from overmind.config import OvermindConfig, load_config
from overmind.exceptions import ConfigError, LurkerNotFoundError, OvermindError
from overmind.lurker import Lurker, load_lurker_class, register_lurker
from overmind.notifier import Notifier
from overmind.orchestrator import Overmind
from overmind.watcher import ChangeEvent, ChangeKind, ChangeWatcher, FileSnapshot

__all__ = [
    "__version__",
    # Change detection
    "ChangeEvent",
    "ChangeKind",
    "ChangeWatcher",
    "FileSnapshot",
    # Classification
    "TestOutcome",
    "Verdict",
    "classify",
    # Worker units
    "Lurker",
    "load_lurker_class",
    "register_lurker",
    # Orchestration
    "Notifier",
    "Overmind",
    # Configuration
    "OvermindConfig",
    "load_config",
    # Errors
    "ConfigError",
    "LurkerNotFoundError",
    "OvermindError",
]
