"""
Logging setup and context-carrying loggers.

setup_logging(level)      → configures the root logger once (stdout).
get_logger(name, **ctx)   → BoundLogger with an immutable context mapping.

A BoundLogger never mutates its context: `bind()` returns a new adapter, so
each concurrent fetch can carry its own guild/cycle identifiers without
sharing state with its siblings.
"""
from __future__ import annotations

import json
import logging
import sys
from types import MappingProxyType
from typing import Any, Mapping

_FORMAT = "%(asctime)s %(levelname)s [%(name)s] %(message)s"
_DATEFMT = "%Y-%m-%d %H:%M:%S"


def setup_logging(level: int | str = logging.INFO) -> logging.Logger:
    """Configure root logger with consistent formatting."""
    if isinstance(level, str):
        level = logging.getLevelName(level.upper())
        if not isinstance(level, int):
            level = logging.INFO

    root_logger = logging.getLogger()
    root_logger.setLevel(level)

    # Clear existing handlers to avoid duplicates
    root_logger.handlers = []

    handler = logging.StreamHandler(sys.stdout)
    handler.setFormatter(logging.Formatter(_FORMAT, _DATEFMT))
    root_logger.addHandler(handler)

    return root_logger


class BoundLogger(logging.LoggerAdapter):
    """LoggerAdapter whose `extra` is a read-only context rendered as JSON."""

    def __init__(self, logger: logging.Logger, context: Mapping[str, Any] | None = None):
        super().__init__(logger, MappingProxyType(dict(context or {})))

    @property
    def context(self) -> Mapping[str, Any]:
        return self.extra

    def bind(self, **context: Any) -> "BoundLogger":
        merged = dict(self.extra)
        merged.update(context)
        return BoundLogger(self.logger, merged)

    def process(self, msg, kwargs):
        if self.extra:
            msg = f"{msg} {json.dumps(dict(self.extra), default=str, sort_keys=True)}"
        return msg, kwargs


def get_logger(name: str, **context: Any) -> BoundLogger:
    return BoundLogger(logging.getLogger(name), context)
