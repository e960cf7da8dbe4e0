"""Multi-strategy parsers for systematic and alignment analysis answers.

Both protocols run the same shape of chain: generic non-answer check, then
strict tags, flexible tags, independent sections (or loose ``field: value``
pairs for alignment), and finally free-text phrase patterns. The first strategy
that recovers a meaningful signal wins; later strategies never run.
"""

from __future__ import annotations

import dataclasses
import re
from typing import Any, Optional, Pattern, Sequence

from ..vision.models import (
    AlignmentAnalysis,
    AnalysisResult,
    Correction,
    DotQuality,
    SystematicAnalysis,
)
from .response_parser import clamp_percent, clamp_quadrants, first_success, is_generic_response

__all__ = [
    "parse_systematic_response",
    "parse_alignment_response",
    "SYSTEMATIC_STRATEGIES",
    "ALIGNMENT_STRATEGIES",
]

_YES = {"yes", "true", "y"}
_NO = {"no", "false", "n"}
_NONE_WORDS = {"", "none", "n/a", "na", "null", "unknown"}


def _flag(value: str) -> bool:
    return value.strip().strip("\"'").lower() in _YES


def _direction(value: str | None) -> str:
    if value is None:
        return "none"
    text = value.strip().strip("\"'").lower()
    return "none" if text in _NONE_WORDS else text


def _int(value: str | None) -> int | None:
    if value is None:
        return None
    try:
        return int(float(value))
    except ValueError:
        return None


def _first(patterns: Sequence[Pattern[str]], text: str) -> str | None:
    for pattern in patterns:
        match = pattern.search(text)
        if match and match.group(1) is not None:
            return match.group(1).strip()
    return None


def _ftag(name: str, value: str = r"([\s\S]*?)") -> Pattern[str]:
    """Case-insensitive tag pattern tolerating whitespace inside the brackets."""
    return re.compile(rf"<\s*{name}\s*>\s*{value}\s*<\s*/\s*{name}\s*>", re.IGNORECASE)


def _exact(block: str, name: str, numeric: bool = False) -> str | None:
    pattern = rf"<{name}>(\d+)</{name}>" if numeric else rf"<{name}>([\s\S]*?)</{name}>"
    match = re.search(pattern, block)
    return match.group(1).strip() if match else None


def _quadrant_list(value: str | None) -> tuple[int, ...]:
    if value is None or value.strip().lower() in _NONE_WORDS:
        return ()
    return clamp_quadrants(re.split(r"[,\s]+", value.strip()))


# ---------------------------------------------------------------------------
# Systematic analysis
# ---------------------------------------------------------------------------

_FLEX_WRAPPERS = (
    re.compile(r"<systematic_analysis\s*>([\s\S]*?)</\s*systematic_analysis\s*>", re.IGNORECASE),
    re.compile(r"<analysis\s*>([\s\S]*?)</\s*analysis\s*>", re.IGNORECASE),
    re.compile(r"<systematic[^>]*>([\s\S]*?)</\s*systematic[^>]*>", re.IGNORECASE),
)

_FLEX_OVERLAPS = (_ftag(r"box[_\s]*overlaps[_\s]*button"), _ftag("overlaps"), _ftag("overlap"))
_FLEX_PERCENT = (
    _ftag(r"overlap[_\s]*percentage", r"(\d+)%?"),
    _ftag("percentage", r"(\d+)%?"),
    re.compile(r"(\d+)%"),
)
_FLEX_BUTTON_DIRECTION = (
    _ftag(r"button[_\s]*direction[_\s]*from[_\s]*box"),
    _ftag(r"direction[_\s]*from[_\s]*box"),
    _ftag(r"button[_\s]*direction"),
)
_FLEX_COMPASS = (_ftag(r"compass[_\s]*direction"), _ftag("direction"), _ftag("compass"))
_FLEX_QUADRANTS = (
    _ftag(r"quadrants[_\s]*with[_\s]*button"),
    _ftag("quadrants"),
    _ftag(r"button[_\s]*quadrants"),
)
_FLEX_DOT = (
    _ftag(r"white[_\s]*dot[_\s]*on[_\s]*button"),
    _ftag(r"dot[_\s]*on[_\s]*button"),
    _ftag("dot"),
)
_FLEX_QUALITY = (
    _ftag(r"dot[_\s]*position[_\s]*quality"),
    _ftag(r"position[_\s]*quality"),
    _ftag("quality"),
)
_FLEX_CONFIDENCE = (
    _ftag("confidence", r"(\d+)"),
    _ftag(r"confidence[_\s]*level", r"(\d+)"),
    re.compile(r"confidence[:\s]*(\d+)", re.IGNORECASE),
    re.compile(r"(\d+)%?\s*confident", re.IGNORECASE),
)
_FLEX_ACCURACY = (
    _ftag("accuracy", r"(\d+)"),
    _ftag(r"overall[_\s]*accuracy", r"(\d+)"),
    re.compile(r"accuracy[:\s]*(\d+)", re.IGNORECASE),
    re.compile(r"(\d+)%?\s*accurate", re.IGNORECASE),
)
_FLEX_CORRECTION_BLOCKS = (
    re.compile(r"<correction\s*>([\s\S]*?)</\s*correction\s*>", re.IGNORECASE),
    re.compile(r"<fix\s*>([\s\S]*?)</\s*fix\s*>", re.IGNORECASE),
    re.compile(r"<adjustment\s*>([\s\S]*?)</\s*adjustment\s*>", re.IGNORECASE),
)
_FLEX_CORRECTION_FIELDS: dict[str, tuple[Pattern[str], ...]] = {
    "needs_correction": (
        _ftag(r"needs[_\s]*correction"),
        _ftag(r"correction[_\s]*needed"),
        _ftag(r"needs[_\s]*adjustment"),
    ),
    "correction_type": (_ftag(r"correction[_\s]*type"), _ftag("type")),
    "move_direction": (_ftag(r"move[_\s]*direction"), _ftag("direction")),
    "new_bbox_x": (_ftag(r"new[_\s]*bbox[_\s]*x", r"(\d+)"), _ftag("x", r"(\d+)")),
    "new_bbox_y": (_ftag(r"new[_\s]*bbox[_\s]*y", r"(\d+)"), _ftag("y", r"(\d+)")),
    "new_bbox_width": (_ftag(r"new[_\s]*bbox[_\s]*width", r"(\d+)"), _ftag("width", r"(\d+)")),
    "new_bbox_height": (_ftag(r"new[_\s]*bbox[_\s]*height", r"(\d+)"), _ftag("height", r"(\d+)")),
}


def _make_correction(fields: dict[str, str | None], button_number: int) -> tuple[Correction | None, bool]:
    """Return ``(correction, requested)``; corrections without x/y are dropped."""
    requested = fields.get("needs_correction") is not None and _flag(fields["needs_correction"] or "")
    x = _int(fields.get("new_bbox_x"))
    y = _int(fields.get("new_bbox_y"))
    if not requested or x is None or y is None:
        return None, requested
    correction = Correction(
        button_number=button_number,
        needs_correction=True,
        correction_type=(fields.get("correction_type") or "none").strip(),
        move_direction=_direction(fields.get("move_direction")),
        new_bbox_x=x,
        new_bbox_y=y,
        new_bbox_width=_int(fields.get("new_bbox_width")),
        new_bbox_height=_int(fields.get("new_bbox_height")),
    )
    return correction, requested


def _finish_systematic(
    fields: dict[str, Any],
    corrections: Sequence[Correction],
    requested: bool,
) -> AnalysisResult | None:
    """Build a result, or ``None`` when nothing meaningful was recovered."""
    analysis = SystematicAnalysis(
        box_overlaps_button=fields.get("box_overlaps_button"),
        overlap_percentage=clamp_percent(fields.get("overlap_percentage"), default=0),
        button_direction_from_box=_direction(fields.get("button_direction_from_box")),
        compass_direction=_direction(fields.get("compass_direction")),
        quadrants_with_button=fields.get("quadrants_with_button", ()),
        white_dot_on_button=bool(fields.get("white_dot_on_button", False)),
        dot_position_quality=DotQuality.parse(fields.get("dot_position_quality")),
        confidence=clamp_percent(fields.get("confidence")),
        accuracy=clamp_percent(fields.get("accuracy")),
    )
    meaningful = (
        analysis.box_overlaps_button is not None
        or analysis.compass_direction != "none"
        or bool(corrections)
        or requested
    )
    if not meaningful:
        return None
    return AnalysisResult(
        parsing_successful=True,
        response_type="systematic",
        confidence=analysis.confidence,
        accuracy=analysis.accuracy,
        corrections=tuple(corrections),
        correction_requested=requested,
        systematic=analysis,
    )


def _strict_systematic(text: str) -> AnalysisResult | None:
    wrapper = re.search(r"<systematic_analysis>([\s\S]*?)</systematic_analysis>", text)
    if not wrapper:
        return None
    body = wrapper.group(1)
    fields: dict[str, Any] = {}

    overlap = _exact(body, "overlap_check")
    if overlap is not None:
        value = _exact(overlap, "box_overlaps_button")
        if value is not None:
            fields["box_overlaps_button"] = _flag(value)
        fields["overlap_percentage"] = _int(_exact(overlap, "overlap_percentage", numeric=True))

    direction = _exact(body, "direction_analysis")
    if direction is not None:
        fields["button_direction_from_box"] = _exact(direction, "button_direction_from_box")
        fields["compass_direction"] = _exact(direction, "compass_direction")
        fields["quadrants_with_button"] = _quadrant_list(_exact(direction, "quadrants_with_button"))

    center = _exact(body, "center_analysis")
    if center is not None:
        dot = _exact(center, "white_dot_on_button")
        fields["white_dot_on_button"] = _flag(dot) if dot is not None else False
        fields["dot_position_quality"] = _exact(center, "dot_position_quality")

    assessment = _exact(body, "assessment")
    if assessment is not None:
        fields["confidence"] = _int(_exact(assessment, "confidence", numeric=True))
        fields["accuracy"] = _int(_exact(assessment, "accuracy", numeric=True))

    corrections: list[Correction] = []
    requested = False
    section = _exact(body, "corrections")
    if section is not None:
        for block in re.findall(r"<correction>([\s\S]*?)</correction>", section):
            parsed = {
                name: _exact(block, name, numeric=name.startswith("new_bbox"))
                for name in _FLEX_CORRECTION_FIELDS
            }
            correction, wanted = _make_correction(parsed, 1)
            requested = requested or wanted
            if correction:
                corrections.append(correction)

    return _finish_systematic(fields, corrections, requested)


def _flex_overlap(block: str, fields: dict[str, Any]) -> None:
    value = _first(_FLEX_OVERLAPS, block)
    if value is not None:
        fields["box_overlaps_button"] = _flag(value)
    percent = _first(_FLEX_PERCENT, block)
    if percent is not None:
        fields["overlap_percentage"] = _int(percent)


def _flex_direction(block: str, fields: dict[str, Any]) -> None:
    fields["button_direction_from_box"] = _first(_FLEX_BUTTON_DIRECTION, block)
    fields["compass_direction"] = _first(_FLEX_COMPASS, block)
    fields["quadrants_with_button"] = _quadrant_list(_first(_FLEX_QUADRANTS, block))


def _flex_center(block: str, fields: dict[str, Any]) -> None:
    dot = _first(_FLEX_DOT, block)
    if dot is not None:
        fields["white_dot_on_button"] = _flag(dot)
    fields["dot_position_quality"] = _first(_FLEX_QUALITY, block)


def _flex_assessment(block: str, fields: dict[str, Any]) -> None:
    fields["confidence"] = _int(_first(_FLEX_CONFIDENCE, block))
    fields["accuracy"] = _int(_first(_FLEX_ACCURACY, block))


def _flex_corrections(block: str) -> tuple[list[Correction], bool]:
    corrections: list[Correction] = []
    requested = False
    for pattern in _FLEX_CORRECTION_BLOCKS:
        for match in pattern.finditer(block):
            parsed = {name: _first(patterns, match.group(1)) for name, patterns in _FLEX_CORRECTION_FIELDS.items()}
            correction, wanted = _make_correction(parsed, 1)
            requested = requested or wanted
            if correction:
                corrections.append(correction)
        if corrections:
            break
    return corrections, requested


def _flexible_systematic(text: str) -> AnalysisResult | None:
    body = _first(_FLEX_WRAPPERS, text)
    if body is None:
        return None
    fields: dict[str, Any] = {}
    _flex_overlap(body, fields)
    _flex_direction(body, fields)
    _flex_center(body, fields)
    _flex_assessment(body, fields)
    corrections, requested = _flex_corrections(body)
    return _finish_systematic(fields, corrections, requested)


_SECTION_PATTERNS = {
    "overlap": (
        re.compile(r"<overlap_check\s*>[\s\S]*?</\s*overlap_check\s*>", re.IGNORECASE),
        re.compile(r"<box[_\s]*overlaps[^>]*>[\s\S]*?</\s*box[_\s]*overlaps[^>]*>", re.IGNORECASE),
        re.compile(r"<overlap[^>]*>[\s\S]*?</\s*overlap[^>]*>", re.IGNORECASE),
    ),
    "direction": (
        re.compile(r"<direction_analysis\s*>[\s\S]*?</\s*direction_analysis\s*>", re.IGNORECASE),
        re.compile(r"<(?:compass|direction)[^>]*>[\s\S]*?</\s*(?:compass|direction)[^>]*>", re.IGNORECASE),
    ),
    "center": (
        re.compile(r"<center_analysis\s*>[\s\S]*?</\s*center_analysis\s*>", re.IGNORECASE),
        re.compile(r"<(?:white[_\s]*)?dot[^>]*>[\s\S]*?</\s*(?:white[_\s]*)?dot[^>]*>", re.IGNORECASE),
    ),
    "assessment": (
        re.compile(r"<assessment\s*>[\s\S]*?</\s*assessment\s*>", re.IGNORECASE),
    ),
}


def _section(text: str, name: str) -> str | None:
    # Keep the tags so the field patterns still see them
    found = [m.group(0) for pattern in _SECTION_PATTERNS[name] for m in pattern.finditer(text)]
    return "\n".join(found) if found else None


def _section_systematic(text: str) -> AnalysisResult | None:
    fields: dict[str, Any] = {}
    overlap = _section(text, "overlap")
    if overlap is not None:
        _flex_overlap(overlap, fields)
    direction = _section(text, "direction")
    if direction is not None:
        _flex_direction(direction, fields)
    center = _section(text, "center")
    if center is not None:
        _flex_center(center, fields)
    assessment = _section(text, "assessment")
    if assessment is not None:
        _flex_assessment(assessment, fields)
    corrections, requested = _flex_corrections(text)
    return _finish_systematic(fields, corrections, requested)


_TEXT_COMPASS = (
    (re.compile(r"\bnorth[\s-]?east\b|\bup\b.*\bright\b", re.IGNORECASE), "northeast"),
    (re.compile(r"\bnorth[\s-]?west\b|\bup\b.*\bleft\b", re.IGNORECASE), "northwest"),
    (re.compile(r"\bsouth[\s-]?east\b|\bdown\b.*\bright\b", re.IGNORECASE), "southeast"),
    (re.compile(r"\bsouth[\s-]?west\b|\bdown\b.*\bleft\b", re.IGNORECASE), "southwest"),
    (re.compile(r"\b(?:north|up|above)\b", re.IGNORECASE), "north"),
    (re.compile(r"\b(?:south|down|below)\b", re.IGNORECASE), "south"),
    (re.compile(r"\b(?:east|right)\b", re.IGNORECASE), "east"),
    (re.compile(r"\b(?:west|left)\b", re.IGNORECASE), "west"),
)
_TEXT_QUADRANTS = re.compile(r"quadrants?\s*(\d+(?:\s*(?:,|and)\s*\d+)*)", re.IGNORECASE)
_TEXT_CORRECTION = ("needs correction", "should move", "adjust", "reposition")


def _pattern_systematic(text: str) -> AnalysisResult | None:
    lowered = text.lower()
    fields: dict[str, Any] = {}

    if any(p in lowered for p in ("no overlap", "doesn't overlap", "does not overlap", "outside", "separate")):
        fields["box_overlaps_button"] = False
        fields["overlap_percentage"] = 0
    elif any(p in lowered for p in ("overlaps", "covers", "box contains")):
        fields["box_overlaps_button"] = True
        percent = re.search(r"(\d+)\s*%", text)
        if percent:
            fields["overlap_percentage"] = int(percent.group(1))

    for pattern, direction in _TEXT_COMPASS:
        if pattern.search(text):
            fields["compass_direction"] = direction
            break

    quadrants = _TEXT_QUADRANTS.search(text)
    if quadrants:
        fields["quadrants_with_button"] = clamp_quadrants(re.split(r"\s*(?:,|and)\s*", quadrants.group(1)))

    if "dot on button" in lowered or "dot over" in lowered or ("white dot" in lowered and "button" in lowered):
        fields["white_dot_on_button"] = True

    confidence = re.search(r"(\d+)%?\s*(?:confident|confidence)", text, re.IGNORECASE)
    if confidence:
        fields["confidence"] = fields["accuracy"] = int(confidence.group(1))

    requested = any(p in lowered for p in _TEXT_CORRECTION)
    return _finish_systematic(fields, (), requested)


SYSTEMATIC_STRATEGIES = (
    ("strict_xml", _strict_systematic),
    ("flexible_xml", _flexible_systematic),
    ("section_based", _section_systematic),
    ("pattern_based", _pattern_systematic),
)


def _stamp(result: AnalysisResult, prefix: str, method: str, text: str, button_number: int) -> AnalysisResult:
    return dataclasses.replace(
        result,
        parse_method=method,
        response_type=f"{prefix}_{method}",
        raw_response=text,
        corrections=tuple(dataclasses.replace(c, button_number=button_number) for c in result.corrections),
    )


def _generic(text: str) -> AnalysisResult:
    return AnalysisResult(
        parsing_successful=False,
        response_type="generic_advice",
        confidence=30,
        accuracy=30,
        raw_response=text,
    )


def parse_systematic_response(text: str, button_number: int = 1) -> AnalysisResult:
    """Parse a systematic analysis answer; never raises."""
    if is_generic_response(text):
        return _generic(text)

    hit = first_success(SYSTEMATIC_STRATEGIES, text)
    if hit is None:
        return AnalysisResult(
            parsing_successful=False,
            response_type="no_systematic_data",
            confidence=20,
            accuracy=20,
            raw_response=text,
        )
    method, result = hit
    return _stamp(result, "systematic", method, text, button_number)


# ---------------------------------------------------------------------------
# Alignment analysis
# ---------------------------------------------------------------------------

_ALIGNMENT_FIELDS: dict[str, tuple[Pattern[str], ...]] = {
    "button_name": (_ftag(r"button[_\s]*name"), _ftag("name")),
    "box_aligns_with_button": (
        _ftag(r"box[_\s]*aligns[_\s]*with[_\s]*button"),
        _ftag("aligns"),
        _ftag("alignment"),
    ),
    "alignment_quality": (_ftag(r"alignment[_\s]*quality"), _ftag("quality")),
    "needs_adjustment": (
        _ftag(r"needs[_\s]*adjustment"),
        _ftag(r"adjustment[_\s]*needed"),
        _ftag(r"needs[_\s]*correction"),
    ),
    "adjustment_direction": (
        _ftag(r"adjustment[_\s]*direction"),
        _ftag("direction"),
        _ftag(r"move[_\s]*direction"),
    ),
    "suggested_shift": (_ftag(r"suggested[_\s]*shift"), _ftag("shift")),
    "new_bbox_x": (_ftag(r"new[_\s]*bbox[_\s]*x", r"(\d+)"),),
    "new_bbox_y": (_ftag(r"new[_\s]*bbox[_\s]*y", r"(\d+)"),),
    "new_bbox_width": (_ftag(r"new[_\s]*bbox[_\s]*width", r"(\d+)"),),
    "new_bbox_height": (_ftag(r"new[_\s]*bbox[_\s]*height", r"(\d+)"),),
    "confidence": (_ftag("confidence", r"(\d+)"),),
    "notes": (_ftag("notes"),),
}

_LOOSE_FIELDS: dict[str, tuple[Pattern[str], ...]] = {
    "button_name": (re.compile(r"button[_\s]*name\s*[:=]\s*[\"']?([^\"'\n\r<>]+)[\"']?", re.IGNORECASE),),
    "box_aligns_with_button": (
        re.compile(r"box[_\s]*aligns[_\s]*with[_\s]*button\s*[:=]\s*[\"']?(yes|no|true|false)", re.IGNORECASE),
        re.compile(r"\baligns?\s*[:=]\s*[\"']?(yes|no|true|false)", re.IGNORECASE),
    ),
    "alignment_quality": (re.compile(r"alignment[_\s]*quality\s*[:=]\s*[\"']?([a-z]+)", re.IGNORECASE),),
    "needs_adjustment": (re.compile(r"needs[_\s]*adjustment\s*[:=]\s*[\"']?(yes|no|true|false)", re.IGNORECASE),),
    "adjustment_direction": (re.compile(r"adjustment[_\s]*direction\s*[:=]\s*[\"']?([a-z\-]+)", re.IGNORECASE),),
    "suggested_shift": (re.compile(r"suggested[_\s]*shift\s*[:=]\s*[\"']?([^\"'<>\n\r]+)", re.IGNORECASE),),
    "new_bbox_x": (re.compile(r"new[_\s]*bbox[_\s]*x\s*[:=]\s*(\d+)", re.IGNORECASE),),
    "new_bbox_y": (re.compile(r"new[_\s]*bbox[_\s]*y\s*[:=]\s*(\d+)", re.IGNORECASE),),
    "new_bbox_width": (re.compile(r"new[_\s]*bbox[_\s]*width\s*[:=]\s*(\d+)", re.IGNORECASE),),
    "new_bbox_height": (re.compile(r"new[_\s]*bbox[_\s]*height\s*[:=]\s*(\d+)", re.IGNORECASE),),
    "confidence": (re.compile(r"confidence\s*[:=]\s*(\d+)", re.IGNORECASE),),
    "notes": (re.compile(r"notes\s*[:=]\s*([^\n\r<>]+)", re.IGNORECASE),),
}


def _finish_alignment(fields: dict[str, str | None]) -> AnalysisResult | None:
    aligns = fields.get("box_aligns_with_button")
    if aligns is None:
        return None
    analysis = AlignmentAnalysis(
        box_aligns_with_button=_flag(aligns),
        button_name=fields.get("button_name"),
        alignment_quality=(fields.get("alignment_quality") or "unknown").strip().lower(),
        needs_adjustment=_flag(fields.get("needs_adjustment") or "no"),
        adjustment_direction=_direction(fields.get("adjustment_direction")),
        suggested_shift=(fields.get("suggested_shift") or "none").strip(),
        new_bbox_x=_int(fields.get("new_bbox_x")),
        new_bbox_y=_int(fields.get("new_bbox_y")),
        new_bbox_width=_int(fields.get("new_bbox_width")),
        new_bbox_height=_int(fields.get("new_bbox_height")),
        confidence=clamp_percent(_int(fields.get("confidence"))),
        notes=(fields.get("notes") or "").strip(),
    )

    corrections: tuple[Correction, ...] = ()
    x, y = analysis.new_bbox_x, analysis.new_bbox_y
    if analysis.needs_adjustment and x is not None and y is not None and x > 0 and y > 0:
        corrections = (
            Correction(
                button_number=1,
                needs_correction=True,
                correction_type="alignment_adjustment",
                move_direction=analysis.adjustment_direction,
                new_bbox_x=x,
                new_bbox_y=y,
                new_bbox_width=analysis.new_bbox_width or None,
                new_bbox_height=analysis.new_bbox_height or None,
                suggested_shift=analysis.suggested_shift,
            ),
        )

    return AnalysisResult(
        parsing_successful=True,
        response_type="alignment",
        confidence=analysis.confidence,
        accuracy=analysis.confidence,
        corrections=corrections,
        correction_requested=analysis.needs_adjustment,
        alignment=analysis,
    )


def _strict_alignment(text: str) -> AnalysisResult | None:
    wrapper = re.search(r"<alignment_check>([\s\S]*?)</alignment_check>", text)
    if not wrapper:
        return None
    body = wrapper.group(1)
    fields = {
        name: _exact(body, name, numeric=name.startswith("new_bbox") or name == "confidence")
        for name in _ALIGNMENT_FIELDS
    }
    return _finish_alignment(fields)


def _flexible_alignment(text: str) -> AnalysisResult | None:
    match = re.search(r"<alignment_check\s*>([\s\S]*?)</\s*alignment_check\s*>", text, re.IGNORECASE)
    if not match:
        match = re.search(r"<alignment[^>]*>([\s\S]*?)</\s*alignment[^>]*>", text, re.IGNORECASE)
    if not match:
        return None
    body = match.group(1)
    fields = {name: _first(patterns, body) for name, patterns in _ALIGNMENT_FIELDS.items()}
    return _finish_alignment(fields)


def _loose_alignment(text: str) -> AnalysisResult | None:
    fields = {name: _first(patterns, text) for name, patterns in _LOOSE_FIELDS.items()}
    return _finish_alignment(fields)


_NOT_ALIGNED = ("does not align", "doesn't align", "not aligned", "misaligned", "needs to move", "should be moved")
_ALIGNED = ("aligns", "aligned", "lines up", "matches", "correctly positioned")
_TEXT_SHIFT = (
    (re.compile(r"(?:move|shift)\b.*?\b(?:up|north)\b.*?\b(?:left|west)\b", re.IGNORECASE), "up-left"),
    (re.compile(r"(?:move|shift)\b.*?\b(?:up|north)\b.*?\b(?:right|east)\b", re.IGNORECASE), "up-right"),
    (re.compile(r"(?:move|shift)\b.*?\b(?:down|south)\b.*?\b(?:left|west)\b", re.IGNORECASE), "down-left"),
    (re.compile(r"(?:move|shift)\b.*?\b(?:down|south)\b.*?\b(?:right|east)\b", re.IGNORECASE), "down-right"),
    (re.compile(r"(?:move|shift)\b.*?\b(?:up|north)\b", re.IGNORECASE), "up"),
    (re.compile(r"(?:move|shift)\b.*?\b(?:down|south)\b", re.IGNORECASE), "down"),
    (re.compile(r"(?:move|shift)\b.*?\b(?:left|west)\b", re.IGNORECASE), "left"),
    (re.compile(r"(?:move|shift)\b.*?\b(?:right|east)\b", re.IGNORECASE), "right"),
)


def _pattern_alignment(text: str) -> AnalysisResult | None:
    lowered = text.lower()
    fields: dict[str, str | None] = {}

    if any(p in lowered for p in _NOT_ALIGNED):
        fields["box_aligns_with_button"] = "no"
        fields["needs_adjustment"] = "yes"
    elif any(p in lowered for p in _ALIGNED):
        fields["box_aligns_with_button"] = "yes"
        fields["needs_adjustment"] = "no"

    for quality in ("excellent", "good", "poor", "terrible"):
        if quality in lowered:
            fields["alignment_quality"] = quality
            break

    for pattern, direction in _TEXT_SHIFT:
        if pattern.search(text):
            fields["adjustment_direction"] = direction
            fields["suggested_shift"] = f"shift {direction}"
            break

    confidence = re.search(r"(\d+)%?\s*(?:confident|confidence|sure|certain)", text, re.IGNORECASE)
    if confidence:
        fields["confidence"] = confidence.group(1)

    return _finish_alignment(fields)


ALIGNMENT_STRATEGIES = (
    ("strict_xml", _strict_alignment),
    ("flexible_xml", _flexible_alignment),
    ("loose_fields", _loose_alignment),
    ("pattern_based", _pattern_alignment),
)


def parse_alignment_response(text: str, button_number: int = 1) -> AnalysisResult:
    """Parse an alignment answer; never raises."""
    if is_generic_response(text):
        return _generic(text)

    hit: Optional[tuple[str, AnalysisResult]] = first_success(ALIGNMENT_STRATEGIES, text)
    if hit is None:
        return AnalysisResult(
            parsing_successful=False,
            response_type="no_alignment_data",
            confidence=20,
            accuracy=20,
            raw_response=text,
        )
    method, result = hit
    return _stamp(result, "alignment", method, text, button_number)
