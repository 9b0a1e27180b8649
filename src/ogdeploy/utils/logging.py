"""Loguru sinks for the installer.

Every run writes two files under the state directory:

- install.log: timestamped INFO and above, mirrors what the operator sees
- helm_debug.log: DEBUG and above, including each delegated command line
  and the output it produced

With --debug, DEBUG records are echoed to stderr as well.
"""

from __future__ import annotations

import sys
from pathlib import Path

from loguru import logger

from ogdeploy.utils.paths import ensure_dir

LOG_FORMAT = "{time:YYYY-MM-DD HH:mm:ss} [{level}] {message}"
CONSOLE_DEBUG_FORMAT = "[DEBUG] {message}"


def configure_logging(log_file: Path, debug_log_file: Path, *, debug: bool = False) -> None:
    """Install the file sinks (and optional stderr sink).

    Removes any previously configured handlers, including loguru's default
    stderr handler, so console output stays under Rich's control.

    Args:
        log_file: Path to the operator log
        debug_log_file: Path to the verbose tool-output log
        debug: Echo DEBUG records to stderr
    """
    logger.remove()

    ensure_dir(log_file.parent)
    ensure_dir(debug_log_file.parent)

    logger.add(log_file, level="INFO", format=LOG_FORMAT, encoding="utf-8")
    logger.add(debug_log_file, level="DEBUG", format=LOG_FORMAT, encoding="utf-8")

    if debug:
        logger.add(
            sys.stderr,
            level="DEBUG",
            format=CONSOLE_DEBUG_FORMAT,
            filter=lambda record: record["level"].name == "DEBUG",
        )

    logger.debug("Logging configured (debug={})", debug)
