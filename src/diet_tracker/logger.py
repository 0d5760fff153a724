"""Configuracion de logging (archivo diario + consola)."""

from __future__ import annotations

import logging
import sys
from datetime import datetime

from diet_tracker.config import Settings

LOGGER_NAME = "diet_tracker"


def setup_logging(settings: Settings) -> logging.Logger:
    """Set up the package logger to write to a dated file and the console."""
    logger = logging.getLogger(LOGGER_NAME)
    logger.setLevel(settings.log_level)

    # Clear any existing handlers
    for handler in list(logger.handlers):
        handler.close()
        logger.removeHandler(handler)

    settings.log_dir.mkdir(parents=True, exist_ok=True)
    log_file = settings.log_dir / f"{datetime.now().strftime('%Y-%m-%d')}.log"
    file_handler = logging.FileHandler(log_file, encoding="utf-8")
    file_handler.setFormatter(
        logging.Formatter(
            "%(asctime)s | %(levelname)-8s | %(name)s | %(message)s",
            datefmt="%Y-%m-%d %H:%M:%S",
        )
    )
    logger.addHandler(file_handler)

    # Console only when attached to a terminal
    if sys.stderr is not None and sys.stderr.isatty():
        console_handler = logging.StreamHandler(sys.stderr)
        console_handler.setFormatter(
            logging.Formatter(
                "%(asctime)s | %(levelname)-8s | %(message)s",
                datefmt="%H:%M:%S",
            )
        )
        logger.addHandler(console_handler)

    return logger
