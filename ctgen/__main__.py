"""Module entry point: ``python -m ctgen``."""

from __future__ import annotations

import sys

from ctgen import cli

if __name__ == "__main__":
    sys.exit(cli.main())
