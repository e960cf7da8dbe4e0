"""Loguru-backed logging for uilocate.

One process-wide :data:`log` instance. Console output always; daily rotated
files (plus a separate error file) when ``LOG_TO_FILE`` is on.
"""

from __future__ import annotations

import os
import sys
from typing import Any

from loguru import logger

from .config import config

_CONSOLE_FORMAT = (
    "<green>{time:YYYY-MM-DD HH:mm:ss}</green> | "
    "<level>{level:<8}</level> | "
    "<cyan>{name}</cyan>:<cyan>{function}</cyan>:<cyan>{line}</cyan> | "
    "<level>{message}</level>"
)
_FILE_FORMAT = "{time:YYYY-MM-DD HH:mm:ss} | {level:<8} | {name}:{function}:{line} | {message}"

# (file name pattern, minimum level, retention)
_FILE_SINKS = (
    ("uilocate_{time:YYYY-MM-DD}.log", "DEBUG", "30 days"),
    ("errors_{time:YYYY-MM-DD}.log", "ERROR", "90 days"),
)


class Logger:
    """Thin wrapper adding a name prefix and locator-specific helpers."""

    def __init__(self, name: str = "uilocate") -> None:
        self.name = name
        self._setup_logger()

    def _setup_logger(self) -> None:
        logger.remove()
        logger.add(sys.stderr, format=_CONSOLE_FORMAT, level=config.log_level, colorize=True)

        if not config.log_to_file:
            return

        os.makedirs(config.log_dir, exist_ok=True)
        for pattern, level, retention in _FILE_SINKS:
            logger.add(
                os.path.join(config.log_dir, pattern),
                format=_FILE_FORMAT,
                level=level,
                rotation="1 day",
                retention=retention,
                compression="zip",
            )

    def _emit(self, level: str, message: str, **kwargs: Any) -> None:
        # depth=2 attributes the record to whoever called log.<level>()
        logger.opt(depth=2).log(level, f"[{self.name}] {message}", **kwargs)

    def info(self, message: str, **kwargs: Any) -> None:
        self._emit("INFO", message, **kwargs)

    def debug(self, message: str, **kwargs: Any) -> None:
        self._emit("DEBUG", message, **kwargs)

    def warning(self, message: str, **kwargs: Any) -> None:
        self._emit("WARNING", message, **kwargs)

    def error(self, message: str, **kwargs: Any) -> None:
        self._emit("ERROR", message, **kwargs)

    def success(self, message: str, **kwargs: Any) -> None:
        self._emit("SUCCESS", message, **kwargs)

    # ------------------------------------------------------------------
    # Domain helpers
    # ------------------------------------------------------------------
    def log_oracle_call(self, kind: str, call_index: int, target: str | None = None) -> None:
        """Log an outgoing oracle request."""
        suffix = f" | Target: {target}" if target else ""
        self._emit("INFO", f"ORACLE CALL #{call_index}: {kind}{suffix}")

    def log_refinement(self, name: str, depth: int, outcome: str) -> None:
        self._emit("INFO", f"REFINEMENT: {name} at depth {depth} -> {outcome}")

    def log_nudge(self, name: str, nudge_type: str, vector: tuple[int, int]) -> None:
        self._emit("DEBUG", f"NUDGE: {name} {nudge_type} by {vector}")

    def log_performance(self, operation: str, duration_ms: float) -> None:
        self._emit("DEBUG", f"PERFORMANCE: {operation} took {duration_ms:.2f}ms")


log = Logger()
