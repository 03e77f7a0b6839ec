"""
logging_config.py - Centralized logging configuration.

Every module logs through `get_logger(__name__)`; only entry points
(main.py, api.py) call `setup_logging`.
"""

from __future__ import annotations

import logging
import os
import sys

TRUTHY = {"1", "true", "yes", "on"}


def setup_logging(level: int | None = None, json_format: bool | None = None) -> None:
    """Configure root logger with consistent formatting.

    Args:
        level: Logging level. Defaults to the LOG_LEVEL environment variable
            (INFO when unset or unknown).
        json_format: If True, emit JSON-like log lines. Defaults to the
            LOG_JSON environment variable.
    """
    if level is None:
        level_name = os.getenv("LOG_LEVEL", "INFO").strip().upper()
        level = logging.getLevelName(level_name)
        if not isinstance(level, int):
            level = logging.INFO
    if json_format is None:
        json_format = os.getenv("LOG_JSON", "").strip().lower() in TRUTHY

    root = logging.getLogger()
    root.setLevel(level)
    root.handlers.clear()

    if json_format:
        formatter = logging.Formatter(
            '{"timestamp":"%(asctime)s","level":"%(levelname)s",'
            '"module":"%(name)s","message":"%(message)s"}',
            datefmt="%H:%M:%S",
        )
    else:
        formatter = logging.Formatter(
            "%(asctime)s [%(name)-20s] %(levelname)-7s %(message)s",
            datefmt="%H:%M:%S",
        )

    handler = logging.StreamHandler(sys.stderr)
    handler.setFormatter(formatter)
    root.addHandler(handler)


def get_logger(name: str) -> logging.Logger:
    """Get a named logger."""
    return logging.getLogger(name)
