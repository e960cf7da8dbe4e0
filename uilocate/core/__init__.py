"""Core components of the uilocate element locator."""

from .config import Config, config
from .logger import Logger, log
from .errors import (
    CropGenerationError,
    InvalidGeometryError,
    LocatorError,
    OracleParseError,
    OracleTransportError,
)
from .budget import AnalysisBudget
from .recorder import NullRecorder, SessionRecorder
from .rate_limiter import RateLimiter, RequestQueue, get_rate_limiter
from .nudging import NudgingEngine
from .refinement import RecursionController
from .feedback import CorrectionLoop
from .locator import ElementLocator

__all__ = [
    "AnalysisBudget",
    "Config",
    "CorrectionLoop",
    "CropGenerationError",
    "ElementLocator",
    "InvalidGeometryError",
    "LocatorError",
    "Logger",
    "NudgingEngine",
    "NullRecorder",
    "OracleParseError",
    "OracleTransportError",
    "RateLimiter",
    "RecursionController",
    "RequestQueue",
    "SessionRecorder",
    "config",
    "get_rate_limiter",
    "log",
]
