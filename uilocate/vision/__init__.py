"""Computer vision utilities for uilocate.

This sub-package provides the data model, crop geometry, coordinate
transforms and Pillow raster helpers used by the refinement engine.
"""

from .geometry import coverage_ratio, focused_crop, to_global
from .imaging import create_single_target_overlay, crop_image, encode_image, load_image
from .models import (
    AlignmentAnalysis,
    AnalysisResult,
    BoundingBox,
    CandidateDetection,
    Correction,
    CropBounds,
    DetectionResult,
    DotQuality,
    LocalizationReport,
    NudgeEvent,
    NudgeType,
    Point,
    RefinementOutcome,
    Size,
    SystematicAnalysis,
)

__all__ = [
    "AlignmentAnalysis",
    "AnalysisResult",
    "BoundingBox",
    "CandidateDetection",
    "Correction",
    "CropBounds",
    "DetectionResult",
    "DotQuality",
    "LocalizationReport",
    "NudgeEvent",
    "NudgeType",
    "Point",
    "RefinementOutcome",
    "Size",
    "SystematicAnalysis",
    "coverage_ratio",
    "create_single_target_overlay",
    "crop_image",
    "encode_image",
    "focused_crop",
    "load_image",
    "to_global",
]
