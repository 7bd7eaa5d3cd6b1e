"""Logging configuration.

Records go to stderr: on the stdio transport stdout carries JSON-RPC.
"""

from __future__ import annotations

import logging
import sys

LOG_FORMAT = "%(asctime)s %(levelname)s [%(name)s] %(message)s"


def configure_logging(level: str | int = "INFO") -> None:
    """Attach a single stderr handler to the ``framewalk`` logger."""
    if isinstance(level, str):
        level = logging.getLevelName(level.upper())
        if not isinstance(level, int):
            level = logging.INFO

    root = logging.getLogger("framewalk")
    root.setLevel(level)
    if not any(getattr(h, "_framewalk", False) for h in root.handlers):
        handler = logging.StreamHandler(sys.stderr)
        handler.setFormatter(logging.Formatter(LOG_FORMAT))
        handler._framewalk = True  # type: ignore[attr-defined]
        root.addHandler(handler)
    root.propagate = False
