"""
Lane orchestration.

Starts one or two supervisors on their own threads, staggering their
startup, and keeps them running until a shutdown signal arrives.
"""

import logging
import signal
import threading
import time
from dataclasses import replace
from typing import Callable, Optional, Protocol

from .config import OvermindConfig
from .exceptions import ConfigError
from .lurker import Lurker
from .supervisor import (
    LaneState,
    LurkerSupervisor,
    ProcessSupervisor,
    ResultsCallback,
)

logger = logging.getLogger(__name__)

MAX_LANES = 2


class Supervisor(Protocol):
    def run_forever(self, cancel: threading.Event) -> None:
        ...


SupervisorFactory = Callable[[LaneState], Supervisor]


class Overmind:
    """Run supervisors on independent lanes.

    Args:
        supervisor_factory: Builds the supervisor for a lane.
        lanes: Number of lanes, 1 or 2.
        stagger_seconds: Delay between starting consecutive lanes.
    """

    def __init__(
        self,
        supervisor_factory: SupervisorFactory,
        lanes: int = 1,
        stagger_seconds: float = 15.0,
    ):
        if not 1 <= lanes <= MAX_LANES:
            raise ConfigError(f"lanes must be between 1 and {MAX_LANES}, got {lanes}")
        self.supervisor_factory = supervisor_factory
        self.lanes = [LaneState(i) for i in range(lanes)]
        self.stagger_seconds = stagger_seconds
        self.cancel = threading.Event()
        self.started_at: dict[int, float] = {}
        self._threads: list[threading.Thread] = []

    def _signal_handler(self, signum, frame):
        """Handle shutdown signals gracefully."""
        logger.info(f"Received signal {signum}, initiating graceful shutdown...")
        self.stop()

    def install_signal_handlers(self) -> None:
        if threading.current_thread() is not threading.main_thread():
            logger.debug("Not on the main thread, skipping signal handlers")
            return
        signal.signal(signal.SIGINT, self._signal_handler)
        signal.signal(signal.SIGTERM, self._signal_handler)

    def _run_lane(self, lane: LaneState) -> None:
        supervisor = self.supervisor_factory(lane)
        supervisor.run_forever(self.cancel)

    def start(self) -> None:
        """Start every lane, waiting ``stagger_seconds`` between them."""
        for position, lane in enumerate(self.lanes):
            if position > 0 and self.cancel.wait(self.stagger_seconds):
                logger.info("Stopped before all lanes were started")
                return
            self.started_at[lane.index] = time.monotonic()
            thread = threading.Thread(
                target=self._run_lane,
                args=(lane,),
                name=f"overmind-{lane.label}",
                daemon=True,
            )
            thread.start()
            self._threads.append(thread)
            logger.info(f"{lane.identity}Lane started")

    def join(self, poll_seconds: float = 0.5) -> None:
        """Wait for every lane to finish.

        Joins with a timeout so signal handlers keep running.
        """
        for thread in self._threads:
            while thread.is_alive():
                thread.join(poll_seconds)

    def stop(self) -> None:
        self.cancel.set()

    def run(self) -> None:
        """Start all lanes and block until they stop."""
        self.install_signal_handlers()
        self.start()
        self.join()
        logger.info("Overmind shutdown complete")

    @classmethod
    def run_endless_loop(
        cls,
        bootstrap: str,
        lurker_class: str,
        interpreter: Optional[str] = None,
        dual: bool = False,
        config: Optional[OvermindConfig] = None,
        on_results: Optional[ResultsCallback] = None,
        config_path: Optional[str] = None,
    ) -> "Overmind":
        """Supervise child worker processes until interrupted.

        ``interpreter`` is applied to a copy; the caller's config is left
        untouched.
        """
        config = replace(config or OvermindConfig()).override(interpreter=interpreter)

        def factory(lane: LaneState) -> ProcessSupervisor:
            return ProcessSupervisor(
                lane,
                bootstrap=bootstrap,
                lurker_class=lurker_class,
                config=config,
                on_results=on_results,
                config_path=config_path,
            )

        overmind = cls(
            factory,
            lanes=2 if (dual or config.dual) else 1,
            stagger_seconds=config.stagger_seconds,
        )
        overmind.run()
        return overmind

    @classmethod
    def run_in_process(
        cls,
        lurker_cls: type[Lurker],
        dual: bool = False,
        config: Optional[OvermindConfig] = None,
        on_results: Optional[ResultsCallback] = None,
    ) -> "Overmind":
        """Run lurkers inside this interpreter until interrupted."""
        config = config or OvermindConfig()

        def factory(lane: LaneState) -> LurkerSupervisor:
            return LurkerSupervisor(
                lane,
                lurker_factory=lambda identity: lurker_cls(identity=identity, config=config),
                config=config,
                on_results=on_results,
            )

        overmind = cls(
            factory,
            lanes=2 if (dual or config.dual) else 1,
            stagger_seconds=config.stagger_seconds,
        )
        overmind.run()
        return overmind
