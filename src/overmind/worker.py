"""
Child-process entry point.

Usage:
    python -m overmind.worker my_test_lurker MyTestLurker --identity "[0]"

Imports the bootstrap module, builds the lurker, runs one lurk cycle and
prints "The End".
"""

import argparse
import logging
import os
import sys
from typing import Optional

from . import console
from .config import load_config
from .exceptions import OvermindError
from .lurker import load_lurker_class

logger = logging.getLogger(__name__)


def run_worker(
    bootstrap: str,
    lurker_class: str,
    identity: str = "",
    config_path: Optional[str] = None,
    poll_interval: Optional[float] = None,
) -> Optional[str]:
    """Load the lurker named ``lurker_class`` and run one cycle."""
    if os.getcwd() not in sys.path:
        sys.path.insert(0, os.getcwd())

    config = load_config(config_path).override(poll_interval=poll_interval)
    cls = load_lurker_class(bootstrap, lurker_class)
    lurker = cls(identity=identity, config=config)
    output = lurker.lurk()
    print(console.THE_END, flush=True)
    return output


def main(argv: Optional[list[str]] = None) -> int:
    parser = argparse.ArgumentParser(
        prog="python -m overmind.worker",
        description="Run one overmind lurker cycle",
    )
    parser.add_argument("bootstrap", help="Module that defines the lurker")
    parser.add_argument("lurker_class", help="Name of the lurker class")
    parser.add_argument("--identity", default="", help="Lane label, e.g. [0]")
    parser.add_argument("--config", help="Path to an overmind YAML config")
    parser.add_argument("--poll-interval", type=float, help="Seconds between file polls")
    args = parser.parse_args(argv)

    logging.basicConfig(
        level=logging.INFO,
        format="%(asctime)s [%(levelname)s] %(name)s: %(message)s",
    )

    try:
        run_worker(
            args.bootstrap,
            args.lurker_class,
            identity=args.identity,
            config_path=args.config,
            poll_interval=args.poll_interval,
        )
    except OvermindError as e:
        logger.error(str(e))
        return 1
    except KeyboardInterrupt:
        return 130
    return 0


if __name__ == "__main__":
    sys.exit(main())
