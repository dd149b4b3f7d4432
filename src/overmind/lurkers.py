"""
Built-in lurkers.

UnitTestLurker runs the project's unittest suite and reports in the
unit-style summary format, e.g.:

    Started
    ..F.
    Finished in 0.012 seconds.

    4 tests, 4 assertions, 1 failures, 0 errors
"""

import importlib
import logging
import os
import sys
import time
import unittest
from pathlib import Path
from typing import Optional

from .lurker import Lurker, register_lurker
from .stream import TRIGGER_LINE

logger = logging.getLogger(__name__)


class ProgressResult(unittest.TestResult):
    """Prints one flushed character per finished test."""

    def __init__(self, progress=None):
        super().__init__()
        self.progress = progress or sys.stdout

    def _mark(self, char: str) -> None:
        self.progress.write(char)
        self.progress.flush()

    def addSuccess(self, test):
        super().addSuccess(test)
        self._mark(".")

    def addFailure(self, test, err):
        super().addFailure(test, err)
        self._mark("F")

    def addError(self, test, err):
        super().addError(test, err)
        self._mark("E")

    def addSkip(self, test, reason):
        super().addSkip(test, reason)
        self._mark("S")

    def addExpectedFailure(self, test, err):
        super().addExpectedFailure(test, err)
        self._mark(".")

    def addUnexpectedSuccess(self, test):
        super().addUnexpectedSuccess(test)
        self._mark("F")


def format_summary(result: unittest.TestResult) -> str:
    """Unit-style summary line for a finished unittest run.

    unittest does not count assertions; the number of tests run is
    reported in their place.
    """
    failures = len(result.failures) + len(result.unexpectedSuccesses)
    return (
        f"{result.testsRun} tests, {result.testsRun} assertions, "
        f"{failures} failures, {len(result.errors)} errors"
    )


@register_lurker
class UnitTestLurker(Lurker):
    """Preload modules, then run unittest discovery on every change."""

    pattern = "test*.py"

    def prepare(self) -> None:
        super().prepare()
        for module_name in self.config.preload:
            logger.info(f"{self.identity}Preloading {module_name}")
            importlib.import_module(module_name)

    def _forget_test_modules(self, start_dir: Path) -> None:
        """Drop test modules imported by a previous run so edits are seen."""
        start = str(start_dir.resolve()) + os.sep
        stale = [
            name for name, module in list(sys.modules.items())
            if (getattr(module, "__file__", None) or "").startswith(start)
        ]
        for name in stale:
            del sys.modules[name]

    def main_work(self) -> Optional[str]:
        out = sys.stdout
        start_dir = self.root / self.config.test_dir
        self._forget_test_modules(start_dir)
        suite = unittest.TestLoader().discover(str(start_dir), pattern=self.pattern)

        result = ProgressResult(progress=out)

        out.write(TRIGGER_LINE)
        out.flush()
        started = time.perf_counter()
        suite.run(result)
        elapsed = time.perf_counter() - started
        out.write("\n")

        for flavour, errors in (("ERROR", result.errors), ("FAIL", result.failures)):
            for test, traceback_text in errors:
                out.write(f"\n{flavour}: {test}\n{traceback_text}")

        summary = format_summary(result)
        out.write(f"Finished in {elapsed:.3f} seconds.\n\n{summary}\n")
        out.flush()
        return summary
