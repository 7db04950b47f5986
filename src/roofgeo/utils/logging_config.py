"""
Roofgeo Logging Configuration.

Library modules only ever call ``logging.getLogger(__name__)`` and pass
pipeline context through ``extra=``:

    logger.info("Skeleton built", extra={"footprint_id": "lot-17", "shape": "l_shape"})

``setup_logging`` is for hosts (the CLI among them) that want those records
on a console with the context appended.
"""

import logging
import os
import sys
from typing import Optional, TextIO

DEFAULT_LOG_LEVEL = os.environ.get("ROOFGEO_LOG_LEVEL", "INFO").upper()

# Record attributes appended to messages when passed via ``extra=``
CONTEXT_KEYS = ("footprint_id", "shape", "method", "stage")


class RoofgeoFormatter(logging.Formatter):
    """Console formatter appending pipeline context, colored on a TTY."""

    COLORS = {
        "DEBUG": "\033[36m",     # Cyan
        "INFO": "\033[32m",      # Green
        "WARNING": "\033[33m",   # Yellow
        "ERROR": "\033[31m",     # Red
        "CRITICAL": "\033[35m",  # Magenta
    }
    RESET = "\033[0m"

    def __init__(self, use_colors: bool = True):
        self.use_colors = use_colors
        super().__init__(
            fmt="%(asctime)s | %(levelname)-8s | %(name)s | %(message)s",
            datefmt="%H:%M:%S",
        )

    def format(self, record: logging.LogRecord) -> str:
        formatted = super().format(record)
        extras = [f"{key}={getattr(record, key)}" for key in CONTEXT_KEYS if hasattr(record, key)]
        if extras:
            formatted = f"{formatted} [{', '.join(extras)}]"
        if self.use_colors:
            return f"{self.COLORS.get(record.levelname, '')}{formatted}{self.RESET}"
        return formatted


def setup_logging(level: str = DEFAULT_LOG_LEVEL, stream: Optional[TextIO] = None) -> logging.Handler:
    """
    Route log records to ``stream`` (stderr by default).

    Calling again replaces the handler installed by the previous call and
    leaves other root handlers alone.

    Returns:
        The installed handler
    """
    stream = stream or sys.stderr
    numeric_level = getattr(logging, level.upper(), logging.INFO)

    root_logger = logging.getLogger()
    for handler in list(root_logger.handlers):
        if getattr(handler, "_roofgeo", False):
            root_logger.removeHandler(handler)

    handler = logging.StreamHandler(stream)
    handler._roofgeo = True
    handler.setFormatter(RoofgeoFormatter(use_colors=stream.isatty()))
    handler.setLevel(numeric_level)
    root_logger.addHandler(handler)
    root_logger.setLevel(numeric_level)

    # Shapely emits noisy GEOS debug output
    logging.getLogger("shapely").setLevel(logging.WARNING)
    return handler
