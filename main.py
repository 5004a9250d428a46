"""
Attendance Tracker — Entry Point.

Single entry point: `python main.py <command>` runs one batch operation.
"""

import logging

logging.basicConfig(
    level=logging.INFO,
    format="%(asctime)s [%(levelname)s] %(name)s: %(message)s",
)

from attendance.cli import main

if __name__ == "__main__":
    raise SystemExit(main())
