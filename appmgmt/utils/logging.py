"""
Project-wide logging setup for appmgmt.

Provides a simple, consistent console logger with optional JSON output.
Controlled via environment variables:
- APPMGMT_LOG_LEVEL: DEBUG|INFO|WARNING|ERROR (default: INFO)
- APPMGMT_LOG_FORMAT: text|json (default: text)

The CLI flags --verbose and --quiet override the level for one run.
"""
from __future__ import annotations

import logging
import os
from typing import Optional

from pythonjsonlogger import jsonlogger

HTTP_LOGGERS = ("httpx", "httpcore")


def _get_level() -> int:
    level = os.getenv("APPMGMT_LOG_LEVEL", "INFO").upper()
    return getattr(logging, level, logging.INFO)


def level_for_verbosity(verbose: bool = False, quiet: bool = False) -> Optional[int]:
    """Map the CLI verbosity flags to a log level.

    ``--verbose`` wins over ``--quiet``. Without either flag ``None`` is
    returned so APPMGMT_LOG_LEVEL applies.
    """
    if verbose:
        return logging.DEBUG
    if quiet:
        return logging.ERROR
    return None


def setup_logging(
    force: bool = False,
    *,
    level: Optional[int] = None,
    logger: Optional[logging.Logger] = None,
) -> None:
    """Configure root logging for console output.

    If a handler is already present and force is False, only the level is
    applied. An explicit ``level`` wins over APPMGMT_LOG_LEVEL. When the root
    logger is configured, the HTTP transport loggers stay at WARNING unless
    the level is DEBUG.
    """
    target_logger = logger or logging.getLogger()
    log_level = level if level is not None else _get_level()
    target_logger.setLevel(log_level)
    # httpx logs every Graph request at INFO.
    if logger is None:
        quiet_http = logging.DEBUG if log_level <= logging.DEBUG else logging.WARNING
        for name in HTTP_LOGGERS:
            logging.getLogger(name).setLevel(quiet_http)
    if target_logger.handlers and not force:
        return

    # Clear existing handlers when forcing
    if force:
        for h in list(target_logger.handlers):
            target_logger.removeHandler(h)

    handler = logging.StreamHandler()

    fmt = os.getenv("APPMGMT_LOG_FORMAT", "text").lower()
    if fmt == "json":
        formatter = jsonlogger.JsonFormatter(
            fmt="%(asctime)s %(levelname)s %(name)s %(message)s",
            rename_fields={"levelname": "level", "name": "logger"},
        )
    else:
        formatter = logging.Formatter(
            fmt="%(asctime)s - %(levelname)s - %(name)s - %(message)s",
            datefmt="%Y-%m-%dT%H:%M:%S%z",
        )

    handler.setFormatter(formatter)
    target_logger.addHandler(handler)
