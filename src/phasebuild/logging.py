"""Logging for the build: every logger lives below the ``phasebuild`` package logger.

Phases log their plan on ``phasebuild.phase``, each target graph logs its
built and skipped targets on ``phasebuild.graph.<phase>``.
"""

from __future__ import annotations

import logging
from logging.handlers import RotatingFileHandler
from pathlib import Path
import os


PACKAGE_LOGGER = "phasebuild"
LOG_FORMAT = "%(asctime)s | %(name)s | %(levelname)s | %(message)s"

_configured = False


def _ensure_base_logger() -> None:
    global _configured
    if _configured:
        return
    level = os.getenv("PHASEBUILD_LOG_LEVEL", "INFO").upper()
    logging.basicConfig(
        level=getattr(logging, level, logging.INFO),
        format=LOG_FORMAT,
    )
    _configured = True


def get_logger(name: str) -> logging.Logger:
    """Logger named below the package logger, e.g. ``graph.clean`` -> ``phasebuild.graph.clean``."""
    _ensure_base_logger()
    if name != PACKAGE_LOGGER and not name.startswith(PACKAGE_LOGGER + "."):
        name = f"{PACKAGE_LOGGER}.{name}"
    return logging.getLogger(name)


def graph_logger(phase_name: str) -> logging.Logger:
    # the predefined default phase is unnamed
    return get_logger(f"graph.{phase_name}" if phase_name else "graph")


def configure(level: str | None = None, log_file: Path | None = None) -> logging.Logger:
    """Apply a build's log settings to the package logger.

    ``level`` overrides PHASEBUILD_LOG_LEVEL for build messages only. A
    ``log_file`` gets a rotating handler, added once per file.
    """
    logger = get_logger(PACKAGE_LOGGER)
    if level:
        logger.setLevel(getattr(logging, level.upper(), logging.INFO))
    if log_file:
        target = str(Path(log_file).resolve())
        # Do not duplicate handlers for the same file
        if not any(
            isinstance(h, RotatingFileHandler) and h.baseFilename == target
            for h in logger.handlers
        ):
            Path(target).parent.mkdir(parents=True, exist_ok=True)
            handler = RotatingFileHandler(target, maxBytes=1_000_000, backupCount=3)
            handler.setFormatter(logging.Formatter(LOG_FORMAT))
            logger.addHandler(handler)
    return logger
