"""
Logging setup for the ``provision`` entrypoint.

Called once by main.py before any command runs. Modules log through
``logging.getLogger(__name__)`` and inherit what is configured here.

Level precedence:
    CLI flag  >  PROVISION_LOG_LEVEL  >  WARNING

PROVISION_LOG_FILE adds a file handler; PROVISION_LOG_FILE_LEVEL sets
its level independently of the console.

Console output goes to stderr only. stdout is reserved for command
output that shells may ``eval`` (e.g. ``credentials load --export``).
"""

from __future__ import annotations

import logging
import os
import sys
from collections.abc import Mapping

LEVEL_ENV = "PROVISION_LOG_LEVEL"
FILE_ENV = "PROVISION_LOG_FILE"
FILE_LEVEL_ENV = "PROVISION_LOG_FILE_LEVEL"

# ── Formats ─────────────────────────────────────────────────────

_CONSOLE_FORMATS: dict[int, tuple[str, str | None]] = {
    logging.DEBUG: ("%(asctime)s %(levelname)-5s %(name)s:%(lineno)d: %(message)s", "%H:%M:%S"),
    logging.INFO: ("%(asctime)s [%(name)s] %(message)s", "%H:%M:%S"),
}
_FMT_PLAIN = "%(levelname)s: %(message)s"

_FMT_FILE = "%(asctime)s %(levelname)-5s %(name)s:%(lineno)d: %(message)s"
_DATEFMT_FILE = "%Y-%m-%d %H:%M:%S"


def resolve_level(flag: str | None = None, environ: Mapping[str, str] | None = None) -> str:
    """Pick the console level name from the CLI flag or the environment."""
    if flag:
        return flag.upper()
    env = os.environ if environ is None else environ
    return (env.get(LEVEL_ENV) or "WARNING").upper()


def setup_logging(
    level: str | None = None,
    log_file: str | None = None,
    log_file_level: str | None = None,
) -> None:
    """Configure the root logger for the whole process.

    Args:
        level: Console level name. Falls back to ``PROVISION_LOG_LEVEL``.
        log_file: Optional log file path. Falls back to ``PROVISION_LOG_FILE``.
        log_file_level: Level for the file handler. Falls back to
            ``PROVISION_LOG_FILE_LEVEL``, then to the console level.
    """
    console_level = _parse_level(resolve_level(level))
    log_file = log_file or os.environ.get(FILE_ENV) or None
    log_file_level = log_file_level or os.environ.get(FILE_LEVEL_ENV) or None

    fmt, datefmt = _console_format(console_level)
    console = logging.StreamHandler(sys.stderr)
    console.setLevel(console_level)
    console.setFormatter(logging.Formatter(fmt, datefmt=datefmt))

    root = logging.getLogger()
    root.handlers.clear()
    root.addHandler(console)
    effective = console_level

    if log_file:
        file_level = _parse_level(log_file_level) if log_file_level else console_level
        effective = min(effective, file_level)
        handler = logging.FileHandler(log_file, encoding="utf-8")
        handler.setLevel(file_level)
        handler.setFormatter(logging.Formatter(_FMT_FILE, datefmt=_DATEFMT_FILE))
        root.addHandler(handler)

    root.setLevel(effective)
    logging.raiseExceptions = False


def _console_format(level: int) -> tuple[str, str | None]:
    for threshold in sorted(_CONSOLE_FORMATS):
        if level <= threshold:
            return _CONSOLE_FORMATS[threshold]
    return _FMT_PLAIN, None


def _parse_level(level: str | None) -> int:
    """Level name to numeric constant; unknown names mean WARNING."""
    if not level:
        return logging.WARNING
    numeric = getattr(logging, level.upper(), None)
    if not isinstance(numeric, int):
        return logging.WARNING
    return numeric
