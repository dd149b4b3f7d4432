"""
Command-line interface for overmind.

Usage:
    overmind my_test_lurker MyTestLurker
    overmind my_test_lurker MyTestLurker --dual --interpreter pypy3
"""

import argparse
import logging
import os
import sys
from pathlib import Path
from typing import Optional

from .config import load_config
from .exceptions import OvermindError
from .lurker import load_lurker_class
from .orchestrator import Overmind

logger = logging.getLogger(__name__)

USAGE_HINT = (
    "Please provide the bootstrap module name as the first parameter "
    "and the Lurker class name as the second.\n"
    "Example: overmind my_test_lurker MyTestLurker"
)


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(
        prog="overmind",
        description="Overmind - rerun tests in a warm worker whenever sources settle",
    )
    parser.add_argument("bootstrap", nargs="?", help="Module that defines the lurker")
    parser.add_argument("lurker_class", nargs="?", help="Name of the lurker class")
    parser.add_argument(
        "--interpreter", "-i",
        help="Interpreter used for worker processes (default: this one)"
    )
    parser.add_argument(
        "--dual",
        action="store_true",
        default=None,
        help="Run two lanes concurrently"
    )
    parser.add_argument(
        "--in-process",
        action="store_true",
        help="Run the lurker in this process instead of a child process"
    )
    parser.add_argument("--config", "-c", help="Path to a YAML config file")
    parser.add_argument("--poll-interval", type=float, help="Seconds between file polls")
    parser.add_argument("--cooldown", type=float, help="Seconds to wait after each run")
    parser.add_argument("--stagger", type=float, help="Seconds between lane startups")
    parser.add_argument(
        "--no-notify",
        action="store_true",
        help="Disable desktop notifications"
    )
    parser.add_argument("--log-file", help="Also write log output to this file")
    parser.add_argument(
        "--verbose", "-v",
        action="store_true",
        help="Enable verbose logging"
    )
    return parser


def setup_logging(verbose: bool = False, log_file: Optional[str] = None) -> None:
    handlers: list[logging.Handler] = [logging.StreamHandler()]
    if log_file:
        Path(log_file).parent.mkdir(parents=True, exist_ok=True)
        handlers.append(logging.FileHandler(log_file))

    logging.basicConfig(
        level=logging.DEBUG if verbose else logging.INFO,
        format="%(asctime)s [%(levelname)s] %(name)s: %(message)s",
        handlers=handlers,
    )


def main(argv: Optional[list[str]] = None) -> int:
    """CLI entry point."""
    parser = build_parser()
    args = parser.parse_args(argv)

    if not (args.bootstrap and args.lurker_class):
        parser.print_usage()
        print(USAGE_HINT)
        return 0

    setup_logging(args.verbose, args.log_file)

    try:
        config = load_config(args.config).override(
            poll_interval=args.poll_interval,
            cooldown_seconds=args.cooldown,
            stagger_seconds=args.stagger,
            interpreter=args.interpreter,
            dual=args.dual,
        )
        if args.no_notify:
            config.notify.enabled = False

        if args.in_process:
            if os.getcwd() not in sys.path:
                sys.path.insert(0, os.getcwd())
            lurker_cls = load_lurker_class(args.bootstrap, args.lurker_class)
            Overmind.run_in_process(lurker_cls, config=config)
        else:
            Overmind.run_endless_loop(
                args.bootstrap,
                args.lurker_class,
                config=config,
                config_path=args.config,
            )
    except OvermindError as e:
        logger.error(str(e))
        return 1

    return 0


if __name__ == "__main__":
    sys.exit(main())
