import pytest

from uilocate.core.budget import AnalysisBudget
from uilocate.core.config import Config
from uilocate.core.errors import OracleTransportError
from uilocate.core.feedback import CorrectionLoop
from uilocate.vision.models import CandidateDetection, NudgeType, Point, Size

ALIGNMENT_OK = (
    "<alignment_check><button_name>submit_button</button_name>"
    "<box_aligns_with_button>yes</box_aligns_with_button>"
    "<needs_adjustment>no</needs_adjustment></alignment_check>"
)


@pytest.fixture
def candidate():
    # Box is (440, 385, 120, 30)
    return CandidateDetection(
        reference_name="submit_button",
        description="submit button",
        center_coordinates=Point(500, 400),
        estimated_size=Size(120, 30),
    )


def aligned(xml):
    return xml.systematic(overlaps="yes", percent=90, quadrants="1,2,3,4", dot="yes", quality="perfect")


@pytest.mark.asyncio
async def test_nudged_then_aligned(screenshot, candidate, make_oracle, budget, xml):
    oracle, transport = make_oracle([xml.systematic(overlaps="no", compass="east"), aligned(xml)])
    loop = CorrectionLoop(oracle)

    result = await loop.correct(screenshot, candidate, budget)

    assert transport.calls == 2
    assert result.final_status == "aligned"
    assert result.alignment_attempts == 2
    assert len(result.nudge_history) == 1
    assert result.nudge_history[0].nudge_type is NudgeType.MAJOR_REPOSITIONING
    # 120px * 1.2 to the east
    assert result.bounding_box.x == 584
    assert result.center_coordinates == Point(644, 400)
    assert budget.api_call_count == 2


@pytest.mark.asyncio
async def test_aligned_on_first_attempt_keeps_candidate(screenshot, candidate, make_oracle, budget, xml):
    oracle, _ = make_oracle([aligned(xml)])
    result = await CorrectionLoop(oracle).correct(screenshot, candidate, budget)

    assert result.final_status == "aligned"
    assert result.alignment_attempts == 1
    assert result.nudge_history == ()
    assert result.center_coordinates == candidate.center_coordinates


@pytest.mark.asyncio
async def test_correction_request_blocks_alignment(screenshot, candidate, make_oracle, budget, xml):
    text = xml.systematic(overlaps="yes", percent=90, dot="yes", quality="good", needs_correction="yes")
    oracle, _ = make_oracle([text])
    loop = CorrectionLoop(oracle)

    result = await loop.correct(screenshot, candidate, budget)

    # Correction asked for without a usable direction
    assert result.final_status == "alignment_incomplete"


@pytest.mark.asyncio
async def test_max_attempts_reached(screenshot, candidate, make_oracle, budget, xml):
    settings = Config(max_alignment_attempts=2)
    oracle, transport = make_oracle(
        [xml.systematic(overlaps="no", compass="south"), xml.systematic(overlaps="no", compass="south")]
    )
    loop = CorrectionLoop(oracle, settings=settings)

    result = await loop.correct(screenshot, candidate, budget)

    assert transport.calls == 2
    assert result.final_status == "max_attempts_reached"
    assert result.alignment_attempts == 2
    assert len(result.nudge_history) == 1


@pytest.mark.asyncio
async def test_budget_exhausted_before_any_call(screenshot, candidate, make_oracle):
    budget = AnalysisBudget(max_api_calls=1, api_call_count=1)
    oracle, transport = make_oracle([])

    result = await CorrectionLoop(oracle).correct(screenshot, candidate, budget)

    assert transport.calls == 0
    assert result.final_status == "budget_exhausted"
    assert result.alignment_attempts == 0


@pytest.mark.asyncio
async def test_alignment_mode(screenshot, candidate, make_oracle, budget):
    oracle, transport = make_oracle([ALIGNMENT_OK])
    loop = CorrectionLoop(oracle, settings=Config(correction_mode="alignment"))

    result = await loop.correct(screenshot, candidate, budget)

    assert result.final_status == "aligned"
    assert "<alignment_check>" in transport.prompts[0]


@pytest.mark.asyncio
async def test_degraded_analysis_ends_incomplete(screenshot, candidate, make_oracle, budget):
    oracle, _ = make_oracle([OracleTransportError("down")])

    result = await CorrectionLoop(oracle).correct(screenshot, candidate, budget)

    assert result.final_status == "alignment_incomplete"
    assert result.alignment_attempts == 1


@pytest.mark.asyncio
async def test_prose_hints_drive_fallback_nudge(screenshot, candidate, make_oracle, budget, xml):
    oracle, _ = make_oracle(
        ["I cannot analyze this image in detail, but try moving the box to the left.", aligned(xml)]
    )

    result = await CorrectionLoop(oracle).correct(screenshot, candidate, budget)

    assert result.final_status == "aligned"
    assert result.nudge_history[0].nudge_type is NudgeType.FALLBACK_NUDGING
    assert result.bounding_box.x == 380


@pytest.mark.asyncio
async def test_correct_all_and_summary(screenshot, candidate, make_oracle, budget, xml):
    other = candidate.evolve(reference_name="cancel_button", center_coordinates=Point(200, 200))
    oracle, _ = make_oracle([aligned(xml), "nothing useful"])
    loop = CorrectionLoop(oracle)

    results = await loop.correct_all(screenshot, [candidate, other], budget)
    summary = loop.summary(results)

    assert [r.final_status for r in results] == ["aligned", "alignment_incomplete"]
    assert summary["aligned_buttons"] == 1
    assert summary["total_alignment_attempts"] == 2
    assert summary["success_rate"] == 50


@pytest.mark.asyncio
async def test_parse_retries_count_against_the_shared_budget(screenshot, candidate, make_oracle):
    budget = AnalysisBudget(max_api_calls=10, max_depth=2)
    oracle, transport = make_oracle(["gibberish"] * 18, max_retries=2)
    loop = CorrectionLoop(oracle)
    candidates = [
        candidate.evolve(reference_name=f"button_{i}", center_coordinates=Point(100 + 100 * i, 300))
        for i in range(6)
    ]

    results = await loop.correct_all(screenshot, candidates, budget)

    assert transport.calls == 10
    assert budget.api_call_count == 10
    assert [r.final_status for r in results] == ["alignment_incomplete"] * 4 + ["budget_exhausted"] * 2
