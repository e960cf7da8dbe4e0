"""Data models for the localization and correction engine."""

from __future__ import annotations

import dataclasses
import time
from dataclasses import dataclass, field
from enum import Enum
from typing import Any


@dataclass(frozen=True, slots=True)
class Point:
    """A pixel coordinate (or an offset) in some image space."""

    x: float
    y: float

    def as_dict(self) -> dict[str, float]:
        """Return point as ``{"x", "y"}`` mapping."""
        return {"x": self.x, "y": self.y}


@dataclass(frozen=True, slots=True)
class Size:
    """Width/height pair in pixels."""

    width: float
    height: float

    def area(self) -> float:
        """Area in square pixels."""
        return self.width * self.height

    def as_dict(self) -> dict[str, float]:
        """Return size as ``{"width", "height"}`` mapping."""
        return {"width": self.width, "height": self.height}


@dataclass(frozen=True, slots=True)
class CropBounds:
    """Sub-rectangle in the coordinate space of the image it was cut from."""

    x: int
    y: int
    width: int
    height: int

    @property
    def origin(self) -> Point:
        """Top-left corner, used as the next transform-history entry."""
        return Point(self.x, self.y)

    def area(self) -> int:
        """Area in square pixels."""
        return self.width * self.height

    def as_tuple(self) -> tuple[int, int, int, int]:
        """Return crop as PIL-style ``(left, top, right, bottom)`` box."""
        return self.x, self.y, self.x + self.width, self.y + self.height

    def as_dict(self) -> dict[str, int]:
        """Return crop as ``{"x", "y", "width", "height"}`` mapping."""
        return {"x": self.x, "y": self.y, "width": self.width, "height": self.height}


@dataclass(frozen=True, slots=True)
class BoundingBox:
    """Axis-aligned rectangle given by its top-left corner and size."""

    x: int
    y: int
    width: int
    height: int

    @classmethod
    def from_center(cls, center: Point, size: Size) -> BoundingBox:
        """Build a box around *center*, clamped to the top/left image edge."""
        return cls(
            x=max(0, round(center.x - size.width / 2)),
            y=max(0, round(center.y - size.height / 2)),
            width=round(size.width),
            height=round(size.height),
        )

    @property
    def center(self) -> Point:
        """Centre point of the box."""
        return Point(round(self.x + self.width / 2), round(self.y + self.height / 2))

    def area(self) -> int:
        """Area in square pixels."""
        return self.width * self.height

    def as_dict(self) -> dict[str, int]:
        """Return box as ``{"x", "y", "width", "height"}`` mapping."""
        return {"x": self.x, "y": self.y, "width": self.width, "height": self.height}


class DotQuality(Enum):
    """How well the overlay's centre dot sits on the target."""

    PERFECT = "perfect"
    GOOD = "good"
    POOR = "poor"
    OFF_TARGET = "off-target"
    UNKNOWN = "unknown"

    @classmethod
    def parse(cls, value: str | None) -> DotQuality:
        """Map free text onto a quality tier, ``UNKNOWN`` when unrecognised."""
        if not value:
            return cls.UNKNOWN
        text = value.strip().lower().replace("_", "-").replace(" ", "-")
        for member in cls:
            if member.value == text:
                return member
        if text.startswith("off"):
            return cls.OFF_TARGET
        return cls.UNKNOWN


class NudgeType(Enum):
    """Severity tier of a heuristic correction."""

    MAJOR_REPOSITIONING = "major_repositioning"
    SIGNIFICANT_ADJUSTMENT = "significant_adjustment"
    MODERATE_ADJUSTMENT = "moderate_adjustment"
    FINE_TUNING = "fine_tuning"
    ALIGNMENT_ADJUSTMENT = "alignment_adjustment"
    FALLBACK_NUDGING = "fallback_nudging"


class RefinementOutcome(Enum):
    """Terminal (or branching) state reached by one candidate at one level."""

    ACCEPTED = "accepted"
    DEEPER = "deeper_refinement"
    NOT_FOUND = "not_found_fallback"
    ERROR = "error"
    DEPTH_CAP = "depth_cap"
    BUDGET_CAP = "budget_cap"


@dataclass(frozen=True, slots=True)
class CandidateDetection:
    """One detected or in-progress UI element localization.

    Instances are immutable; every state transition produces a new value via
    :meth:`evolve` so recursion branches never alias each other.
    """

    reference_name: str
    description: str = "No description"
    element_type: str = "button"
    confidence: int = 50
    center_coordinates: Point = field(default_factory=lambda: Point(0, 0))
    estimated_size: Size = field(default_factory=lambda: Size(50, 30))
    refinement_level: int = 0
    transform_history: tuple[Point, ...] = ()
    coverage_ratio: float | None = None
    refinement_successful: bool = False
    refinement_failed: bool = False
    slicing_error: bool = False
    overlap_hint: int | None = None
    direction_hint: str | None = None
    final_status: str | None = None
    alignment_attempts: int = 0
    nudge_history: tuple[NudgeEvent, ...] = ()

    def evolve(self, **changes: Any) -> CandidateDetection:
        """Return a copy with *changes* applied."""
        return dataclasses.replace(self, **changes)

    @property
    def bounding_box(self) -> BoundingBox:
        """Bounding box derived from centre and estimated size."""
        return BoundingBox.from_center(self.center_coordinates, self.estimated_size)

    def with_bounding_box(self, bbox: BoundingBox) -> CandidateDetection:
        """Return a copy re-centred on *bbox*."""
        return self.evolve(
            center_coordinates=bbox.center,
            estimated_size=Size(bbox.width, bbox.height),
        )

    def to_dict(self) -> dict[str, Any]:
        """Serialize using the detection output contract field names."""
        data: dict[str, Any] = {
            "reference_name": self.reference_name,
            "description": self.description,
            "element_type": self.element_type,
            "confidence": self.confidence,
            "center_coordinates": self.center_coordinates.as_dict(),
            "estimated_size": self.estimated_size.as_dict(),
            "refinement_level": self.refinement_level,
            "transform_history": [p.as_dict() for p in self.transform_history],
            "coverage_ratio": self.coverage_ratio,
            "refinement_successful": self.refinement_successful,
            "refinement_failed": self.refinement_failed,
            "slicing_error": self.slicing_error,
        }
        if self.final_status is not None:
            data["final_status"] = self.final_status
            data["alignment_attempts"] = self.alignment_attempts
            data["nudge_count"] = len(self.nudge_history)
            data["nudge_history"] = [event.to_dict() for event in self.nudge_history]
        return data


@dataclass(frozen=True, slots=True)
class DetectionResult:
    """Parsed answer to a detection (list-the-elements) query."""

    candidates: tuple[CandidateDetection, ...] = ()
    total_elements_found: int = 0
    image_description: str = "No description available"
    parsing_successful: bool = False
    response_type: str = "detection"
    # Overall answer quality: 30 for generic prose, 20 when nothing parsed
    confidence: int = 50


@dataclass(frozen=True, slots=True)
class Correction:
    """One structured correction request extracted from an oracle answer."""

    button_number: int
    needs_correction: bool = True
    correction_type: str = "none"
    move_direction: str = "none"
    new_bbox_x: int | None = None
    new_bbox_y: int | None = None
    new_bbox_width: int | None = None
    new_bbox_height: int | None = None
    suggested_shift: str | None = None

    def as_dict(self) -> dict[str, Any]:
        return dataclasses.asdict(self)


@dataclass(frozen=True, slots=True)
class SystematicAnalysis:
    """The oracle's structured judgement of one candidate's current box."""

    box_overlaps_button: bool | None = None
    overlap_percentage: int = 0
    button_direction_from_box: str = "none"
    compass_direction: str = "none"
    quadrants_with_button: tuple[int, ...] = ()
    white_dot_on_button: bool = False
    dot_position_quality: DotQuality = DotQuality.UNKNOWN
    confidence: int = 50
    accuracy: int = 50

    def as_dict(self) -> dict[str, Any]:
        data = dataclasses.asdict(self)
        data["quadrants_with_button"] = list(self.quadrants_with_button)
        data["dot_position_quality"] = self.dot_position_quality.value
        return data


@dataclass(frozen=True, slots=True)
class AlignmentAnalysis:
    """Simpler yes/no alignment judgement with a suggested move direction."""

    box_aligns_with_button: bool | None = None
    button_name: str | None = None
    alignment_quality: str = "unknown"
    needs_adjustment: bool = False
    adjustment_direction: str = "none"
    suggested_shift: str = "none"
    new_bbox_x: int | None = None
    new_bbox_y: int | None = None
    new_bbox_width: int | None = None
    new_bbox_height: int | None = None
    confidence: int = 50
    notes: str = ""

    def as_dict(self) -> dict[str, Any]:
        return dataclasses.asdict(self)


@dataclass(frozen=True, slots=True)
class AnalysisResult:
    """Typed outcome of parsing a systematic or alignment answer."""

    parsing_successful: bool
    response_type: str
    parse_method: str | None = None
    confidence: int = 50
    accuracy: int = 50
    corrections: tuple[Correction, ...] = ()
    correction_requested: bool = False
    systematic: SystematicAnalysis | None = None
    alignment: AlignmentAnalysis | None = None
    raw_response: str = ""

    @property
    def needs_correction(self) -> bool:
        """True when the oracle asked for a move, with or without coordinates."""
        return self.correction_requested or bool(self.corrections)

    def as_dict(self) -> dict[str, Any]:
        return {
            "parsing_successful": self.parsing_successful,
            "response_type": self.response_type,
            "parse_method": self.parse_method,
            "confidence": self.confidence,
            "accuracy": self.accuracy,
            "corrections": [c.as_dict() for c in self.corrections],
            "correction_requested": self.correction_requested,
            "systematic": self.systematic.as_dict() if self.systematic else None,
            "alignment": self.alignment.as_dict() if self.alignment else None,
        }


@dataclass(frozen=True, slots=True)
class NudgeEvent:
    """Audit record of one heuristic correction."""

    button_number: int
    reference_name: str
    original_bbox: BoundingBox
    nudge_type: NudgeType
    nudge_direction: str
    nudge_multiplier: float
    nudge_vector: Point
    new_bbox: BoundingBox
    source: str
    analysis: dict[str, Any] | None = None
    timestamp: float = field(default_factory=time.time)

    def to_dict(self) -> dict[str, Any]:
        return {
            "button_number": self.button_number,
            "reference_name": self.reference_name,
            "original_bbox": self.original_bbox.as_dict(),
            "nudge_type": self.nudge_type.value,
            "nudge_direction": self.nudge_direction,
            "nudge_multiplier": self.nudge_multiplier,
            "nudge_vector": self.nudge_vector.as_dict(),
            "new_bbox": self.new_bbox.as_dict(),
            "source": self.source,
            "analysis": self.analysis,
            "timestamp": self.timestamp,
        }


@dataclass
class LocalizationReport:
    """Result of one analysis run."""

    detections: list[CandidateDetection]
    analysis_method: str
    total_api_calls: int = 0
    successful_refinements: int = 0
    fallbacks: int = 0
    errors: int = 0
    capped: int = 0
    aligned: int = 0
    elapsed_seconds: float = 0.0
    image_description: str = ""

    def to_dict(self) -> dict[str, Any]:
        return {
            "detected_buttons": [d.to_dict() for d in self.detections],
            "analysis_summary": {
                "total_elements_found": len(self.detections),
                "image_description": self.image_description,
                "successful_refinements": self.successful_refinements,
                "fallbacks": self.fallbacks,
                "errors": self.errors,
                "capped": self.capped,
                "aligned": self.aligned,
            },
            "analysis_method": self.analysis_method,
            "total_api_calls": self.total_api_calls,
            "elapsed_seconds": round(self.elapsed_seconds, 3),
        }
