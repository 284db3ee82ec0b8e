from __future__ import annotations

import logging
import os
import sys
from typing import TextIO


LOGGER_NAME = "phaseguard"


def configure_logging(level: str | None = None, stream: TextIO | None = None) -> logging.Logger:
    """Attach a stream handler (stdout by default) to the package logger once and set its level."""
    logger = logging.getLogger(LOGGER_NAME)
    logger.setLevel((level or os.getenv("PHASEGUARD_LOG_LEVEL", "INFO")).upper())

    # Prevent duplicate handlers if called more than once
    if not logger.handlers:
        stream_handler = logging.StreamHandler(stream or sys.stdout)
        stream_handler.setFormatter(
            logging.Formatter(
                "%(asctime)s - %(levelname)s - %(name)s - %(message)s",
                datefmt="%Y-%m-%d %H:%M:%S",
            )
        )
        logger.addHandler(stream_handler)
    return logger
