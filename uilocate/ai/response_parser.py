"""Parse oracle detection answers into typed results.

Parsing is an ordered list of strategies, each a pure ``text -> result | None``
function, composed with :func:`first_success`. Generic non-answers (the oracle
declining to look at the image) are classified before any strategy runs.
"""

from __future__ import annotations

import json
import math
import re
from typing import Any, Callable, Optional, Sequence, TypeVar

from ..utils.helpers import clamp
from ..vision.models import CandidateDetection, DetectionResult, Point, Size

__all__ = [
    "GENERIC_PHRASES",
    "is_generic_response",
    "clamp_percent",
    "clamp_quadrants",
    "first_success",
    "parse_detection_response",
    "parse_detection_xml",
    "parse_detection_json",
]

T = TypeVar("T")
Strategy = Callable[[str], Optional[T]]

GENERIC_PHRASES = (
    "I cannot analyze",
    "I'm unable to",
    "provide specific details",
    "based on your description",
    "I can't see the specific",
    "without being able to see",
    "I don't have the ability",
)

_NUMBER = r"(-?\d+(?:\.\d+)?)"
_JSON_REGEX = re.compile(r"\{[\s\S]+\}")


def is_generic_response(text: str) -> bool:
    """True when *text* is a refusal or prose-only non-answer."""
    lowered = text.lower()
    return any(phrase.lower() in lowered for phrase in GENERIC_PHRASES)


def clamp_percent(value: float | int | None, default: int = 50) -> int:
    """Clamp a percentage/confidence into ``0..100``."""
    if value is None:
        return default
    return int(clamp(round(value), 0, 100))


def clamp_quadrants(values: Sequence[Any]) -> tuple[int, ...]:
    """Keep quadrant ids in ``1..4``, de-duplicated, in first-seen order."""
    seen: list[int] = []
    for raw in values:
        try:
            q = int(str(raw).strip())
        except ValueError:
            continue
        if 1 <= q <= 4 and q not in seen:
            seen.append(q)
    return tuple(seen)


def first_success(strategies: Sequence[tuple[str, Strategy[T]]], text: str) -> tuple[str, T] | None:
    """Run *strategies* in order and return ``(name, result)`` of the first hit."""
    for name, strategy in strategies:
        result = strategy(text)
        if result is not None:
            return name, result
    return None


def _to_number(raw: Any) -> float | None:
    if raw is None or isinstance(raw, bool):
        return None
    try:
        number = float(raw)
    except (TypeError, ValueError):
        return None
    return number if math.isfinite(number) else None


def _positive(value: float | None, default: float) -> float:
    # Zero, negative or missing sizes fall back to the default
    return value if value is not None and value > 0 else default


def _tag(block: str, name: str, numeric: bool = False) -> str | None:
    pattern = rf"<{name}>\s*{_NUMBER}\s*</{name}>" if numeric else rf"<{name}>([\s\S]*?)</{name}>"
    match = re.search(pattern, block)
    return match.group(1).strip() if match else None


def _candidate(
    name: str | None,
    description: str | None,
    element_type: str | None,
    confidence: float | None,
    x: float | None,
    y: float | None,
    width: float | None,
    height: float | None,
    overlap: float | None = None,
    direction: str | None = None,
) -> CandidateDetection:
    width = _positive(width, 50)
    height = _positive(height, 30)
    return CandidateDetection(
        reference_name=name or "unknown_button",
        description=description or "No description",
        element_type=element_type or "button",
        confidence=clamp_percent(confidence),
        center_coordinates=Point((x or 0) + width / 2, (y or 0) + height / 2),
        estimated_size=Size(width, height),
        overlap_hint=clamp_percent(overlap) if overlap is not None else None,
        direction_hint=direction.strip().lower() if direction else None,
    )


def parse_detection_xml(text: str) -> DetectionResult | None:
    """``<detected_buttons><button>...</button></detected_buttons>`` format."""
    buttons_match = re.search(r"<detected_buttons>([\s\S]*?)</detected_buttons>", text)
    if not buttons_match:
        return None

    candidates = []
    for block in re.findall(r"<button>([\s\S]*?)</button>", buttons_match.group(1)):
        candidates.append(
            _candidate(
                name=_tag(block, "reference_name"),
                description=_tag(block, "description"),
                element_type=_tag(block, "element_type"),
                confidence=_to_number(_tag(block, "confidence", numeric=True)),
                x=_to_number(_tag(block, "bbox_x", numeric=True)),
                y=_to_number(_tag(block, "bbox_y", numeric=True)),
                width=_to_number(_tag(block, "bbox_width", numeric=True)),
                height=_to_number(_tag(block, "bbox_height", numeric=True)),
                overlap=_to_number(_tag(block, "overlap_percentage", numeric=True)),
                direction=_tag(block, "compass_direction"),
            )
        )

    total = len(candidates)
    description = "No description available"
    summary_match = re.search(r"<analysis_summary>([\s\S]*?)</analysis_summary>", text)
    if summary_match:
        total_raw = _to_number(_tag(summary_match.group(1), "total_elements_found", numeric=True))
        if total_raw is not None:
            total = int(total_raw)
        description = _tag(summary_match.group(1), "image_description") or description

    return DetectionResult(
        candidates=tuple(candidates),
        total_elements_found=total,
        image_description=description,
        parsing_successful=True,
        response_type="detection_xml",
    )


def _json_candidate(item: dict[str, Any]) -> CandidateDetection:
    center = item.get("center_coordinates")
    size = item.get("estimated_size")
    if not isinstance(size, dict):
        size = {}
    width = _positive(_to_number(size.get("width", item.get("bbox_width"))), 50)
    height = _positive(_to_number(size.get("height", item.get("bbox_height"))), 30)
    if isinstance(center, dict):
        x = (_to_number(center.get("x")) or 0) - width / 2
        y = (_to_number(center.get("y")) or 0) - height / 2
    else:
        x = _to_number(item.get("bbox_x"))
        y = _to_number(item.get("bbox_y"))
    return _candidate(
        name=_text(item.get("reference_name")),
        description=_text(item.get("description")),
        element_type=_text(item.get("element_type")),
        confidence=_to_number(item.get("confidence")),
        x=x,
        y=y,
        width=width,
        height=height,
        overlap=_to_number(item.get("overlap_percentage")),
        direction=_text(item.get("compass_direction")),
    )


def _text(value: Any) -> str | None:
    return str(value) if value is not None else None


def parse_detection_json(text: str) -> DetectionResult | None:
    """``{"detected_buttons": [...]}`` JSON body, centre/size or bbox form."""
    match = _JSON_REGEX.search(text)
    if not match:
        return None
    try:
        data = json.loads(match.group(0))
    except json.JSONDecodeError:
        return None
    if not isinstance(data, dict) or not isinstance(data.get("detected_buttons"), list):
        return None

    candidates = tuple(
        _json_candidate(item) for item in data["detected_buttons"] if isinstance(item, dict)
    )
    summary = data.get("analysis_summary")
    if not isinstance(summary, dict):
        summary = {}
    total = _to_number(summary.get("total_elements_found"))
    return DetectionResult(
        candidates=candidates,
        total_elements_found=int(total) if total is not None else len(candidates),
        image_description=str(summary.get("image_description") or "No description available"),
        parsing_successful=True,
        response_type="detection_json",
    )


_DETECTION_STRATEGIES: tuple[tuple[str, Strategy[DetectionResult]], ...] = (
    ("xml", parse_detection_xml),
    ("json", parse_detection_json),
)


def parse_detection_response(text: str) -> DetectionResult:
    """Parse a detection answer; never raises."""
    if is_generic_response(text):
        return DetectionResult(
            image_description="Oracle returned a generic non-answer",
            parsing_successful=False,
            response_type="generic_advice",
            confidence=30,
        )

    hit = first_success(_DETECTION_STRATEGIES, text)
    if hit is None:
        return DetectionResult(
            image_description=(
                "Failed to parse response - content may be explanatory text instead of structured data"
            ),
            parsing_successful=False,
            response_type="no_detection_data",
            confidence=20,
        )
    return hit[1]
