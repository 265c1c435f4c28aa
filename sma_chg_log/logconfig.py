"""Logging set-up with an extra TRACE level below DEBUG."""

from __future__ import annotations

import logging
import re
import sys

TRACE = 5
logging.addLevelName(TRACE, "TRACE")

_LOGGER_NAME = "sma_chg_log"
_HANDLER_NAME = "sma_chg_log.stderr"
_LEVELS = {"DEBUG": logging.DEBUG, "INFO": logging.INFO, "WARN": logging.WARNING, "ERROR": logging.ERROR}
_LEVEL_RE = re.compile(r"([A-Za-z]+)([+-]\d+)?\Z")


def parse_log_level(level: str) -> int:
    """Turn a level name such as "trace", "info" or "warn+1" into a logging level."""
    if level.lower() == "trace":
        return TRACE
    match = _LEVEL_RE.match(level)
    if match is None or match.group(1).upper() not in _LEVELS:
        raise ValueError(f"unknown log level {level!r}")
    return _LEVELS[match.group(1).upper()] + int(match.group(2) or 0)


def init_logging(level: str) -> int:
    """Log the package to stderr at the given level; an invalid level falls back to INFO."""
    try:
        parsed, error = parse_log_level(level), None
    except ValueError as exc:
        parsed, error = logging.INFO, exc

    logger = logging.getLogger(_LOGGER_NAME)
    for old in [h for h in logger.handlers if h.get_name() == _HANDLER_NAME]:
        logger.removeHandler(old)
    handler = logging.StreamHandler(sys.stderr)
    handler.set_name(_HANDLER_NAME)
    handler.setFormatter(logging.Formatter("time=%(asctime)s level=%(levelname)s msg=%(message)s"))
    logger.addHandler(handler)
    logger.setLevel(parsed)

    if error is not None:
        logger.warning("invalid log level: %s", error)
    return parsed