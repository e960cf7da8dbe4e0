"""uilocate: iterative visual localization of clickable UI elements.

A vision model proposes candidate elements in a screenshot; the engine then
refines each one by cropping around it and asking again, or by drawing its box
and nudging it until the model confirms alignment.
"""

from .core import AnalysisBudget, ElementLocator, SessionRecorder, config, log
from .ai import OracleClient
from .vision import CandidateDetection, LocalizationReport

__version__ = "0.1.0"

__all__ = [
    "AnalysisBudget",
    "CandidateDetection",
    "ElementLocator",
    "LocalizationReport",
    "OracleClient",
    "SessionRecorder",
    "config",
    "log",
    "__version__",
]
