import pytest

from uilocate.ai.analysis_parser import parse_alignment_response, parse_systematic_response
from uilocate.core.nudging import (
    MULTIPLIERS,
    NudgingEngine,
    apply_nudge,
    normalize_direction,
    nudge_vector,
    quadrant_direction,
    systematic_tier,
)
from uilocate.core.recorder import SessionRecorder
from uilocate.vision.models import BoundingBox, CandidateDetection, NudgeType, Point


@pytest.fixture
def candidate():
    return CandidateDetection(reference_name="submit_button")


def test_tier_multipliers_shrink_as_overlap_grows():
    tiers = [
        systematic_tier(False, 0),
        systematic_tier(True, 10),
        systematic_tier(True, 50),
        systematic_tier(True, 85),
    ]
    assert tiers == [
        NudgeType.MAJOR_REPOSITIONING,
        NudgeType.SIGNIFICANT_ADJUSTMENT,
        NudgeType.MODERATE_ADJUSTMENT,
        NudgeType.FINE_TUNING,
    ]
    values = [MULTIPLIERS[t] for t in tiers]
    assert values == sorted(values, reverse=True)
    assert values == [1.2, 0.9, 0.6, 0.3]


def test_tier_boundaries():
    assert systematic_tier(True, 30) is NudgeType.MODERATE_ADJUSTMENT
    assert systematic_tier(True, 70) is NudgeType.FINE_TUNING
    # Unknown overlap flag falls back to the percentage
    assert systematic_tier(None, 0) is NudgeType.MAJOR_REPOSITIONING


@pytest.mark.parametrize(
    "text, expected",
    [
        ("north east", "northeast"),
        ("Northeast", "northeast"),
        ("up", "north"),
        ("down-left", "southwest"),
        ("move right", "east"),
        ("left", "west"),
        ("none", "none"),
        (None, "none"),
    ],
)
def test_normalize_direction(text, expected):
    assert normalize_direction(text) == expected


@pytest.mark.parametrize(
    "quadrants, expected",
    [((1,), "northwest"), ((4,), "southeast"), ((1, 2), "north"), ((2, 4), "east"), ((1, 4), "none"), ((), "none")],
)
def test_quadrant_direction(quadrants, expected):
    assert quadrant_direction(quadrants) == expected


def test_cardinal_vector_uses_matching_dimension():
    box = BoundingBox(100, 100, 80, 40)
    assert nudge_vector("east", box, 0.5) == Point(40, 0)
    assert nudge_vector("north", box, 0.5) == Point(0, -20)


def test_diagonal_vector_is_damped():
    box = BoundingBox(100, 100, 100, 100)
    vector = nudge_vector("southwest", box, 1.0)
    assert vector.x == pytest.approx(-70)
    assert vector.y == pytest.approx(70)


def test_apply_nudge_never_goes_negative():
    box = BoundingBox(5, 5, 100, 40)
    moved = apply_nudge(box, nudge_vector("northwest", box, MULTIPLIERS[NudgeType.MAJOR_REPOSITIONING]))
    assert moved.x == 0 and moved.y == 0
    assert (moved.width, moved.height) == (100, 40)


def test_apply_nudge_uses_supplied_dimensions():
    moved = apply_nudge(BoundingBox(50, 50, 100, 40), Point(10, 0), width=120, height=None)
    assert moved == BoundingBox(60, 50, 120, 40)


def test_systematic_nudge_event(candidate, xml):
    recorder = SessionRecorder()
    engine = NudgingEngine(recorder)
    box = BoundingBox(200, 200, 100, 40)
    result = parse_systematic_response(xml.systematic(overlaps="no", compass="east"))

    event = engine.from_systematic(candidate, box, result)

    assert event.nudge_type is NudgeType.MAJOR_REPOSITIONING
    assert event.nudge_direction == "east"
    assert event.new_bbox == BoundingBox(320, 200, 100, 40)
    assert event.original_bbox == box
    assert recorder.nudging_events[0]["nudge_type"] == "major_repositioning"
    assert engine.stats()["total_nudges"] == 1


def test_systematic_nudge_falls_back_to_quadrants(candidate, xml):
    engine = NudgingEngine()
    result = parse_systematic_response(xml.systematic(overlaps="yes", percent=20, quadrants="3, 4"))
    event = engine.from_systematic(candidate, BoundingBox(100, 100, 50, 50), result)

    assert event.nudge_direction == "south"
    assert event.nudge_type is NudgeType.SIGNIFICANT_ADJUSTMENT
    assert event.new_bbox.y == 145


def test_no_direction_means_no_nudge(candidate, xml):
    engine = NudgingEngine()
    result = parse_systematic_response(xml.systematic(overlaps="yes", percent=50))
    assert engine.from_systematic(candidate, BoundingBox(0, 0, 10, 10), result) is None
    assert engine.history == []


def test_alignment_nudge_uses_fixed_multiplier(candidate):
    engine = NudgingEngine()
    result = parse_alignment_response("The box is not aligned; move it down.")
    event = engine.from_alignment(candidate, BoundingBox(100, 100, 60, 20), result)

    assert event.nudge_type is NudgeType.ALIGNMENT_ADJUSTMENT
    assert event.nudge_multiplier == 0.7
    assert event.new_bbox.y == 114


def test_fallback_nudge_from_hints(candidate):
    engine = NudgingEngine()
    event = engine.from_hints(candidate, BoundingBox(100, 100, 60, 20), "try further left")

    assert event.nudge_type is NudgeType.FALLBACK_NUDGING
    assert event.new_bbox.x == 70
    assert engine.stats()["by_type"] == {"fallback_nudging": 1}
