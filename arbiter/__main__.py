"""Arbiter CLI entry point: python -m arbiter"""

from __future__ import annotations

import sys

from arbiter.cli import main

if __name__ == "__main__":
    sys.exit(main())
