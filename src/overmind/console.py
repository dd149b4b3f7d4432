"""
Console protocol for the human watching overmind.

Status lines are plain text; verdicts are colored with ANSI codes.
"""

import sys
from datetime import datetime
from email.utils import format_datetime
from typing import Optional

CLEAR_AND_RESET_TERMINAL = "\033c"

LOADING = "OVERMIND IS LOADING"
PREPARING = "STARTING PREPARE PHASE"
LURKING = "LURKING IN THE BACKGROUND"
INTERRUPT_HINT = "Press Ctrl-C to interrupt, press it again if the worker keeps running"
DONE = "=> done"
THE_END = "The End"


class Colors:
    """ANSI color codes for terminal output."""
    GREEN = '\033[92m'
    RED = '\033[91m'
    BOLD = '\033[1m'
    ENDC = '\033[0m'

    @staticmethod
    def style(text: str, color: str = ENDC, bold: bool = False) -> str:
        """Apply style to text."""
        style_code = color
        if bold:
            style_code += Colors.BOLD
        return f"{style_code}{text}{Colors.ENDC}"

    @staticmethod
    def passed(text: str) -> str:
        return Colors.style(text, Colors.GREEN, bold=True)

    @staticmethod
    def failed(text: str) -> str:
        return Colors.style(text, Colors.RED, bold=True)


def status(identity: str, message: str) -> None:
    """Print a status line of the console protocol."""
    print(f"\n{identity}{message}", flush=True)


def changed(path: str) -> None:
    print(f"=> {path} changed", flush=True)


def new_run_marker(now: Optional[datetime] = None) -> None:
    """Clear the terminal and print the time a new run started."""
    now = now or datetime.now().astimezone()
    print(CLEAR_AND_RESET_TERMINAL)
    print(format_datetime(now), flush=True)


def write_char(char: str) -> None:
    """Echo a single character immediately."""
    sys.stdout.write(char)
    sys.stdout.flush()
