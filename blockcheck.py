#!/usr/bin/python3
# -*- coding: utf-8 -*-
"""Top-level executable and import-compatible shim.

Purpose:
- `python blockcheck.py -d example.com` runs the CLI from a source checkout
- the public API stays importable from the repository root
"""

import os
import sys

from blockcheck.cli import main
from blockcheck.core import (
    CHECK,
    CheckResult,
    CheckSettings,
    run_checks,
    verdict_status,
)
from blockcheck.server import create_app
from blockcheck.version import __version__

__all__ = [
    "__version__",
    "CHECK",
    "CheckResult",
    "CheckSettings",
    "create_app",
    "main",
    "run_checks",
    "verdict_status",
]

if __name__ == "__main__":
    try:
        main()
    except KeyboardInterrupt:
        print("\nInterrupted")
        try:
            sys.exit(0)
        except SystemExit:
            os._exit(0)
