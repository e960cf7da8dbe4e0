import pytest
from PIL import Image

from uilocate.core.budget import AnalysisBudget
from uilocate.core.errors import OracleTransportError
from uilocate.vision.models import BoundingBox, CandidateDetection


@pytest.fixture
def overlay():
    return Image.new("RGB", (200, 100), color=(255, 255, 255))


@pytest.fixture
def candidate():
    return CandidateDetection(reference_name="submit_button")


@pytest.mark.asyncio
async def test_detection_is_logged_with_call_index(make_oracle, recorder, overlay, xml):
    oracle, _ = make_oracle([xml.detection(("a", 0, 0, 10, 10)), xml.detection(("b", 0, 0, 10, 10))])

    await oracle.detect_elements(overlay)
    await oracle.detect_elements(overlay, target="b")

    assert [c["call_index"] for c in recorder.conversations] == [1, 2]
    assert recorder.conversations[1]["target"] == "b"
    assert recorder.conversations[0]["parsed_result"]["detected_buttons"][0]["reference_name"] == "a"


@pytest.mark.asyncio
async def test_detection_transport_error_propagates(make_oracle, recorder, overlay):
    oracle, _ = make_oracle([OracleTransportError("boom", attempts=3)])

    with pytest.raises(OracleTransportError):
        await oracle.detect_elements(overlay)
    assert recorder.conversations[0]["response_type"] == "transport_error"


@pytest.mark.asyncio
async def test_target_is_added_to_detection_prompt(make_oracle, overlay, xml):
    oracle, transport = make_oracle([xml.detection()])
    await oracle.detect_elements(overlay, target="the blue checkout button")
    assert "the blue checkout button" in transport.prompts[0]


@pytest.mark.asyncio
async def test_unparseable_analysis_is_retried(make_oracle, recorder, overlay, candidate, xml):
    oracle, transport = make_oracle(["hmm", xml.systematic(overlaps="yes", percent=80)], max_retries=1)

    result = await oracle.analyze_systematic(overlay, candidate, BoundingBox(0, 0, 50, 20))

    assert result.parsing_successful
    assert transport.calls == 2
    assert "RETRY ATTEMPT 2" in transport.prompts[1]
    assert [c["attempt"] for c in recorder.conversations] == [1, 2]


@pytest.mark.asyncio
async def test_last_attempt_accepts_degraded_parse(make_oracle, overlay, candidate):
    oracle, transport = make_oracle(["hmm", "still nothing"], max_retries=1)

    result = await oracle.analyze_systematic(overlay, candidate, BoundingBox(0, 0, 50, 20))

    assert transport.calls == 2
    assert not result.parsing_successful
    assert result.response_type == "no_systematic_data"
    assert result.confidence == 20


@pytest.mark.asyncio
async def test_transport_failures_degrade_instead_of_raising(make_oracle, overlay, candidate):
    oracle, _ = make_oracle([OracleTransportError("a"), OracleTransportError("b")], max_retries=1)

    result = await oracle.analyze_alignment(overlay, candidate)

    assert not result.parsing_successful
    assert result.response_type == "alignment_error"
    assert result.confidence == 25


@pytest.mark.asyncio
async def test_analysis_retries_stop_at_the_budget(make_oracle, overlay, candidate):
    budget = AnalysisBudget(max_api_calls=2, max_depth=2)
    oracle, transport = make_oracle(["hmm", "hmm", "hmm"], max_retries=2)

    result = await oracle.analyze_systematic(overlay, candidate, BoundingBox(0, 0, 50, 20), budget=budget)

    assert transport.calls == 2
    assert budget.api_call_count == 2
    assert result.response_type == "no_systematic_data"
