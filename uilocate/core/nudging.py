"""Heuristic nudging: turn overlap/direction feedback into a corrected box.

Three input paths, in order of preference: a systematic analysis (overlap tier
decides the multiplier), an alignment analysis (fixed multiplier) and free-text
direction hints (fixed, smaller multiplier). Every nudge is recorded as an
immutable :class:`NudgeEvent`.
"""

from __future__ import annotations

import re
from collections import Counter
from typing import Any, Sequence

from ..vision.models import (
    AnalysisResult,
    BoundingBox,
    CandidateDetection,
    NudgeEvent,
    NudgeType,
    Point,
)
from .logger import log
from .recorder import NullRecorder, SessionRecorder

__all__ = [
    "NudgingEngine",
    "normalize_direction",
    "quadrant_direction",
    "systematic_tier",
    "nudge_vector",
    "apply_nudge",
    "MULTIPLIERS",
]

MULTIPLIERS: dict[NudgeType, float] = {
    NudgeType.MAJOR_REPOSITIONING: 1.2,
    NudgeType.SIGNIFICANT_ADJUSTMENT: 0.9,
    NudgeType.MODERATE_ADJUSTMENT: 0.6,
    NudgeType.FINE_TUNING: 0.3,
    NudgeType.ALIGNMENT_ADJUSTMENT: 0.7,
    NudgeType.FALLBACK_NUDGING: 0.5,
}

DIAGONAL_FACTOR = 0.7

_DIAGONALS = ("northeast", "northwest", "southeast", "southwest")
_VERTICAL = {"north": "north", "up": "north", "top": "north", "above": "north", "upper": "north",
             "south": "south", "down": "south", "bottom": "south", "below": "south", "lower": "south"}
_HORIZONTAL = {"east": "east", "right": "east", "west": "west", "left": "west"}

# Unit steps; y grows downward
_STEPS: dict[str, tuple[int, int]] = {
    "north": (0, -1),
    "south": (0, 1),
    "east": (1, 0),
    "west": (-1, 0),
    "northeast": (1, -1),
    "northwest": (-1, -1),
    "southeast": (1, 1),
    "southwest": (-1, 1),
}

_QUADRANT_DIRECTIONS: dict[frozenset[int], str] = {
    frozenset({1}): "northwest",
    frozenset({2}): "northeast",
    frozenset({3}): "southwest",
    frozenset({4}): "southeast",
    frozenset({1, 2}): "north",
    frozenset({3, 4}): "south",
    frozenset({1, 3}): "west",
    frozenset({2, 4}): "east",
}


def normalize_direction(value: str | None) -> str:
    """Map compass words, screen words and phrases onto 8 compass points or ``none``."""
    if not value:
        return "none"
    words = re.findall(r"[a-z]+", value.lower())
    vertical = horizontal = None
    for word in words:
        if word in _DIAGONALS:
            return word
        if vertical is None and word in _VERTICAL:
            vertical = _VERTICAL[word]
        elif horizontal is None and word in _HORIZONTAL:
            horizontal = _HORIZONTAL[word]
    if vertical and horizontal:
        return vertical + horizontal
    return vertical or horizontal or "none"


def quadrant_direction(quadrants: Sequence[int]) -> str:
    """Direction of the target implied by the quadrants it occupies."""
    return _QUADRANT_DIRECTIONS.get(frozenset(quadrants), "none")


def systematic_tier(overlaps: bool | None, overlap_percentage: int) -> NudgeType:
    """Severity tier from overlap state; less overlap means a bigger move."""
    if overlaps is None:
        overlaps = overlap_percentage > 0
    if not overlaps:
        return NudgeType.MAJOR_REPOSITIONING
    if overlap_percentage < 30:
        return NudgeType.SIGNIFICANT_ADJUSTMENT
    if overlap_percentage < 70:
        return NudgeType.MODERATE_ADJUSTMENT
    return NudgeType.FINE_TUNING


def nudge_vector(direction: str, bbox: BoundingBox, multiplier: float) -> Point:
    """Offset for *direction*: box width drives x, box height drives y."""
    step_x, step_y = _STEPS.get(direction, (0, 0))
    factor = multiplier * (DIAGONAL_FACTOR if step_x and step_y else 1.0)
    return Point(step_x * bbox.width * factor, step_y * bbox.height * factor)


def apply_nudge(
    bbox: BoundingBox,
    vector: Point,
    width: int | None = None,
    height: int | None = None,
) -> BoundingBox:
    """Move *bbox* by *vector*, clamped to the top/left image edge."""
    return BoundingBox(
        x=max(0, round(bbox.x + vector.x)),
        y=max(0, round(bbox.y + vector.y)),
        width=width if width else bbox.width,
        height=height if height else bbox.height,
    )


class NudgingEngine:
    """Compute and audit heuristic bounding-box corrections."""

    def __init__(self, recorder: SessionRecorder | None = None) -> None:
        self.recorder = recorder if recorder is not None else NullRecorder()
        self.history: list[NudgeEvent] = []

    def _emit(
        self,
        candidate: CandidateDetection,
        bbox: BoundingBox,
        button_number: int,
        nudge_type: NudgeType,
        direction: str,
        source: str,
        analysis: dict[str, Any] | None,
        width: int | None = None,
        height: int | None = None,
    ) -> NudgeEvent | None:
        if direction == "none":
            log.debug(f"No usable direction for {candidate.reference_name}; nudge skipped")
            return None

        multiplier = MULTIPLIERS[nudge_type]
        vector = nudge_vector(direction, bbox, multiplier)
        new_bbox = apply_nudge(bbox, vector, width, height)
        event = NudgeEvent(
            button_number=button_number,
            reference_name=candidate.reference_name,
            original_bbox=bbox,
            nudge_type=nudge_type,
            nudge_direction=direction,
            nudge_multiplier=multiplier,
            nudge_vector=Point(round(vector.x), round(vector.y)),
            new_bbox=new_bbox,
            source=source,
            analysis=analysis,
        )

        self.history.append(event)
        self.recorder.record_nudge(event)
        self.recorder.add_log(
            "nudge",
            f"{nudge_type.value} {direction} for {candidate.reference_name}",
            {"from": bbox.as_dict(), "to": new_bbox.as_dict(), "multiplier": multiplier},
        )
        log.log_nudge(candidate.reference_name, nudge_type.value, (event.nudge_vector.x, event.nudge_vector.y))
        return event

    def from_systematic(
        self,
        candidate: CandidateDetection,
        bbox: BoundingBox,
        result: AnalysisResult,
        button_number: int = 1,
    ) -> NudgeEvent | None:
        """Nudge from a systematic analysis; direction = compass, quadrants, then correction."""
        analysis = result.systematic
        if analysis is None:
            return None

        direction = normalize_direction(analysis.compass_direction)
        if direction == "none":
            direction = quadrant_direction(analysis.quadrants_with_button)
        correction = result.corrections[0] if result.corrections else None
        if direction == "none" and correction is not None:
            direction = normalize_direction(correction.move_direction)

        tier = systematic_tier(analysis.box_overlaps_button, analysis.overlap_percentage)
        return self._emit(
            candidate,
            bbox,
            button_number,
            tier,
            direction,
            "systematic",
            result.as_dict(),
            width=correction.new_bbox_width if correction else None,
            height=correction.new_bbox_height if correction else None,
        )

    def from_alignment(
        self,
        candidate: CandidateDetection,
        bbox: BoundingBox,
        result: AnalysisResult,
        button_number: int = 1,
    ) -> NudgeEvent | None:
        """Nudge from an alignment analysis at the fixed alignment multiplier."""
        analysis = result.alignment
        if analysis is None:
            return None

        direction = normalize_direction(analysis.adjustment_direction)
        if direction == "none":
            direction = normalize_direction(analysis.suggested_shift)
        return self._emit(
            candidate,
            bbox,
            button_number,
            NudgeType.ALIGNMENT_ADJUSTMENT,
            direction,
            "alignment",
            result.as_dict(),
            width=analysis.new_bbox_width,
            height=analysis.new_bbox_height,
        )

    def from_hints(
        self,
        candidate: CandidateDetection,
        bbox: BoundingBox,
        hints: str | None,
        button_number: int = 1,
    ) -> NudgeEvent | None:
        """Fallback nudge from free-text direction hints."""
        return self._emit(
            candidate,
            bbox,
            button_number,
            NudgeType.FALLBACK_NUDGING,
            normalize_direction(hints),
            "fallback",
            {"hints": hints},
        )

    def stats(self) -> dict[str, Any]:
        """Totals by nudge type and direction."""
        return {
            "total_nudges": len(self.history),
            "by_type": dict(Counter(e.nudge_type.value for e in self.history)),
            "by_direction": dict(Counter(e.nudge_direction for e in self.history)),
            "buttons_nudged": len({e.reference_name for e in self.history}),
        }

    def clear_history(self) -> None:
        self.history.clear()
