"""Logging configuration shared by the command-line tools."""

from __future__ import annotations
import logging
import sys

LOG_FORMAT = "%(levelname)s: %(message)s"


def verbosity_level(verbosity: int) -> int:
    """0 → WARNING, 1 → INFO, 2+ → DEBUG."""
    if verbosity <= 0:
        return logging.WARNING
    if verbosity == 1:
        return logging.INFO
    return logging.DEBUG


def setup_logging(verbosity: int = 0):
    logging.basicConfig(level=verbosity_level(verbosity), format=LOG_FORMAT,
                        stream=sys.stderr, force=True)
