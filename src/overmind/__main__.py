"""Entry point for ``python -m overmind``."""

import sys

from overmind.cli import main

if __name__ == "__main__":
    sys.exit(main())
