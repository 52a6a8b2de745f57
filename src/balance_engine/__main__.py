"""Entry point for ``python -m balance_engine``."""

import sys

from balance_engine.cli import main

if __name__ == "__main__":
    sys.exit(main())
