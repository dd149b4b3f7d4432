"""
Worker supervision for one lane.

Two modes:
- ProcessSupervisor launches a fresh interpreter per cycle that loads
  the lurker, waits for a settled change and runs the work, while the
  supervisor streams and classifies the child's output.
- LurkerSupervisor runs the lurker lifecycle inside this process.

Both loop until their cancellation token is set.
"""

import logging
import os
import subprocess
import sys
import threading
from abc import ABC, abstractmethod
from dataclasses import dataclass, field
from datetime import datetime
from typing import Callable, Optional

from . import console
from .classifier import TestOutcome, classify
from .config import OvermindConfig
from .liveness import LivenessMarker
from .lurker import Lurker
from .notifier import Notifier
from .stream import StreamMode, StreamTransformer

logger = logging.getLogger(__name__)

ResultsCallback = Callable[[str], None]

# Seconds to wait for a child to exit after terminate() before kill()
TERMINATE_GRACE_SECONDS = 5.0
CANCEL_CHECK_SECONDS = 0.2


@dataclass(frozen=True)
class LaneState:
    """Identity of one supervision lane."""
    index: int

    @property
    def identity(self) -> str:
        return f"[{self.index}]"

    @property
    def label(self) -> str:
        return f"lane-{self.index}"


@dataclass
class WorkerRun:
    """One invocation of the worker process."""
    command: list[str]
    lane: LaneState
    output: list[str] = field(default_factory=list)
    returncode: Optional[int] = None
    pid: Optional[int] = None
    started_at: datetime = field(default_factory=datetime.now)
    finished_at: Optional[datetime] = None

    def append(self, text: str) -> None:
        self.output.append(text)

    @property
    def text(self) -> str:
        return "".join(self.output)

    @property
    def finished(self) -> bool:
        return self.finished_at is not None

    def finish(self, returncode: Optional[int]) -> None:
        self.returncode = returncode
        self.finished_at = datetime.now()


class BaseSupervisor(ABC):
    """Shared reporting and looping for both supervision modes.

    Args:
        lane: Lane this supervisor drives.
        config: Overmind configuration.
        notifier: Notification sink; built from config if omitted.
        on_results: Called with the full output of every cycle.
    """

    def __init__(
        self,
        lane: LaneState,
        config: Optional[OvermindConfig] = None,
        notifier: Optional[Notifier] = None,
        on_results: Optional[ResultsCallback] = None,
    ):
        self.lane = lane
        self.config = config or OvermindConfig()
        self.notifier = notifier or Notifier(self.config.notify)
        self.on_results = on_results
        self.cycles = 0

    @abstractmethod
    def run_once(self, cancel: threading.Event) -> Optional[TestOutcome]:
        """Run one full cycle."""

    def report(self, output: str) -> TestOutcome:
        """Classify output, notify and hand it to the results callback."""
        outcome = classify(output)
        if outcome.matched:
            logger.info(f"{self.lane.identity}Verdict {outcome.verdict.value}: {outcome.summary}")
            colorize = console.Colors.passed if outcome.passed else console.Colors.failed
            print(colorize(outcome.summary), flush=True)
            self.notifier.notify_outcome(outcome)
        else:
            logger.debug(f"{self.lane.identity}No test summary found in output")

        if self.on_results is not None:
            self.on_results(output)
        return outcome

    def run_forever(self, cancel: threading.Event) -> None:
        """Repeat cycles until ``cancel`` is set.

        A failing cycle is logged and retried after the cooldown.
        """
        logger.info(f"{self.lane.identity}Supervisor started")
        while not cancel.is_set():
            try:
                self.run_once(cancel)
            except Exception as e:
                logger.exception(f"{self.lane.identity}Cycle failed: {e}")
            self.cycles += 1

            if cancel.wait(self.config.cooldown_seconds):
                break
        logger.info(f"{self.lane.identity}Supervisor stopped after {self.cycles} cycles")


class ProcessSupervisor(BaseSupervisor):
    """Run the lurker in a child interpreter, once per cycle.

    Args:
        lane: Lane this supervisor drives.
        bootstrap: Module to import in the child; registers the lurker.
        lurker_class: Registered name of the lurker to run.
        command: Explicit child command, replacing the default one.
        config_path: YAML config file handed to the child.
    """

    def __init__(
        self,
        lane: LaneState,
        bootstrap: str = "",
        lurker_class: str = "",
        config: Optional[OvermindConfig] = None,
        notifier: Optional[Notifier] = None,
        on_results: Optional[ResultsCallback] = None,
        command: Optional[list[str]] = None,
        marker: Optional[LivenessMarker] = None,
        config_path: Optional[str] = None,
    ):
        super().__init__(lane, config, notifier, on_results)
        self.config_path = config_path
        self.bootstrap = bootstrap
        self.lurker_class = lurker_class
        self._command = command
        self.marker = marker or LivenessMarker(self.config.marker_path)

    def build_command(self) -> list[str]:
        """Command line launching a fresh worker interpreter."""
        if self._command is not None:
            return list(self._command)
        command = [
            self.config.interpreter or sys.executable,
            "-m",
            "overmind.worker",
            self.bootstrap,
            self.lurker_class,
            "--identity",
            self.lane.identity,
            "--poll-interval",
            str(self.config.poll_interval),
        ]
        if self.config_path:
            command.extend(["--config", self.config_path])
        return command

    def spawn(self, command: list[str]) -> subprocess.Popen:
        """Start the worker with stdout and stderr merged into one pipe.

        The child runs unbuffered; a pipe would otherwise hold its output
        until exit.
        """
        env = dict(os.environ)
        env["PYTHONUNBUFFERED"] = "1"
        return subprocess.Popen(
            command,
            env=env,
            stdout=subprocess.PIPE,
            stderr=subprocess.STDOUT,
            text=True,
            encoding="utf-8",
            errors="replace",
        )

    def stream(self, process: subprocess.Popen, run: WorkerRun, cancel: threading.Event) -> None:
        """Echo and accumulate the child's output as it arrives."""
        transformer = StreamTransformer()
        for chunk in transformer.chunks(process.stdout, cancel):
            run.append(chunk.text)
            if chunk.mode is StreamMode.CHAR:
                console.write_char(chunk.text)
            else:
                print(chunk.text, end="", flush=True)

    def execute(self, cancel: threading.Event) -> WorkerRun:
        """Launch the worker and stream it until it exits.

        The child is terminated and the liveness marker removed on every
        exit path.
        """
        self.marker.clear()
        run = WorkerRun(command=self.build_command(), lane=self.lane)
        print(f"\n{self.lane.identity}New iteration, running \n{' '.join(run.command)}", flush=True)

        process = self.spawn(run.command)
        run.pid = process.pid
        done = threading.Event()
        threading.Thread(
            target=_terminate_on_cancel,
            args=(process, cancel, done),
            name=f"overmind-reaper-{self.lane.index}",
            daemon=True,
        ).start()
        try:
            self.marker.beat(self.lane.index, process.pid)
            self.stream(process, run, cancel)
            run.finish(process.wait())
        finally:
            if process.poll() is None:
                logger.info(f"{self.lane.identity}Stopping worker {process.pid}")
                _stop_process(process)
                run.finish(process.returncode)
            if process.stdout is not None:
                process.stdout.close()
            done.set()
            self.marker.clear()

        logger.info(f"{self.lane.identity}Worker {run.pid} exited with {run.returncode}")
        return run

    def run_once(self, cancel: threading.Event) -> Optional[TestOutcome]:
        run = self.execute(cancel)
        if cancel.is_set():
            return None
        return self.report(run.text)


def _terminate_on_cancel(
    process: subprocess.Popen, cancel: threading.Event, done: threading.Event
) -> None:
    """Terminate the worker as soon as the lane is cancelled."""
    while not done.is_set():
        if cancel.wait(CANCEL_CHECK_SECONDS):
            if process.poll() is None:
                process.terminate()
            return


def _stop_process(process: subprocess.Popen) -> None:
    process.terminate()
    try:
        process.wait(timeout=TERMINATE_GRACE_SECONDS)
    except subprocess.TimeoutExpired:
        process.kill()
        process.wait()


class LurkerSupervisor(BaseSupervisor):
    """Run the lurker lifecycle in this process.

    Args:
        lane: Lane this supervisor drives.
        lurker_factory: Builds a fresh lurker for a given identity.
    """

    def __init__(
        self,
        lane: LaneState,
        lurker_factory: Callable[[str], Lurker],
        config: Optional[OvermindConfig] = None,
        notifier: Optional[Notifier] = None,
        on_results: Optional[ResultsCallback] = None,
    ):
        super().__init__(lane, config, notifier, on_results)
        self.lurker_factory = lurker_factory

    def run_once(self, cancel: threading.Event) -> Optional[TestOutcome]:
        lurker = self.lurker_factory(self.lane.identity)
        output = lurker.lurk(cancel)
        if output is None:
            return None
        return self.report(output)
