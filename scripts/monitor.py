#!/usr/bin/env python3
"""
Swap monitor control script.

Thin wrapper around ``swapwatch.cli`` so the monitor can be driven from a
checkout without installing the console script.

Usage:
    python scripts/monitor.py start          # Start the monitor daemon
    python scripts/monitor.py status --json  # JSON output for scripting
    python scripts/monitor.py stop           # Stop the daemon
"""

import os
import sys

sys.path.insert(0, os.path.join(os.path.dirname(os.path.abspath(__file__)), ".."))

from swapwatch.cli import main  # noqa: E402

if __name__ == "__main__":
    sys.exit(main())
