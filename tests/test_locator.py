import pytest

from uilocate.core.config import Config
from uilocate.core.errors import OracleTransportError
from uilocate.core.locator import ElementLocator
from uilocate.vision.models import Point

HIGH_OVERLAP = "<overlap_percentage>85</overlap_percentage><compass_direction>none</compass_direction>"


@pytest.fixture
def make_locator(make_oracle, recorder):
    def _make(replies, **settings):
        oracle, transport = make_oracle(replies)
        return ElementLocator(oracle=oracle, recorder=recorder, settings=Config(**settings)), transport

    return _make


@pytest.mark.asyncio
async def test_progressive_run_end_to_end(screenshot, make_locator, xml):
    locator, transport = make_locator(
        [
            xml.detection(("submit_button", 440, 385, 120, 30), ("cancel_button", 140, 185, 120, 30)),
            xml.detection(("submit_button", 140, 145, 120, 30, HIGH_OVERLAP)),
            "<detected_buttons></detected_buttons>",
        ],
    )

    report = await locator.locate(screenshot, target="submit button")

    assert transport.calls == 3
    assert report.total_api_calls == 3
    assert report.analysis_method == "progressive"
    assert report.successful_refinements == 1
    assert report.fallbacks == 1
    assert report.errors == 0
    submit, cancel = report.detections
    assert submit.refinement_level == 1
    assert submit.center_coordinates == Point(500, 400)
    assert cancel.refinement_failed

    data = report.to_dict()
    assert data["analysis_summary"]["total_elements_found"] == 2
    assert data["detected_buttons"][0]["center_coordinates"] == {"x": 500, "y": 400}


@pytest.mark.asyncio
async def test_initial_call_counts_against_budget(screenshot, make_locator, xml):
    buttons = [(f"b{i}", 100 * i, 100, 60, 30) for i in range(4)]
    locator, transport = make_locator(
        [xml.detection(*buttons), xml.detection(("b0", 0, 0, 300, 200))],
        max_api_calls=2,
    )

    report = await locator.locate(screenshot)

    assert transport.calls == 2
    assert report.total_api_calls == 2
    assert report.successful_refinements == 1
    assert report.capped == 3


@pytest.mark.asyncio
async def test_initial_transport_failure_fails_the_run(screenshot, make_locator, recorder):
    locator, _ = make_locator([OracleTransportError("unreachable", attempts=3)])

    with pytest.raises(OracleTransportError):
        await locator.locate(screenshot)
    assert recorder.session["status"] == "failed"


@pytest.mark.asyncio
async def test_empty_detection_returns_empty_report(screenshot, make_locator):
    locator, transport = make_locator(["<detected_buttons></detected_buttons>"])

    report = await locator.locate(screenshot)

    assert transport.calls == 1
    assert report.detections == []
    assert report.total_api_calls == 1


@pytest.mark.asyncio
async def test_feedback_mode(screenshot, make_locator, xml):
    locator, _ = make_locator(
        [
            xml.detection(("submit_button", 440, 385, 120, 30)),
            xml.systematic(overlaps="yes", percent=95, dot="yes", quality="perfect"),
        ],
    )

    report = await locator.locate(screenshot, mode="feedback")

    assert report.analysis_method == "feedback"
    assert report.aligned == 1
    assert report.detections[0].final_status == "aligned"
    assert report.to_dict()["detected_buttons"][0]["nudge_count"] == 0


@pytest.mark.asyncio
async def test_unknown_mode_is_rejected(screenshot, make_locator):
    locator, _ = make_locator([])
    with pytest.raises(ValueError):
        await locator.locate(screenshot, mode="sideways")


@pytest.mark.asyncio
async def test_debug_bundle_after_run(screenshot, make_locator, xml, tmp_path):
    locator, _ = make_locator(
        [
            xml.detection(("submit_button", 440, 385, 120, 30)),
            xml.detection(("submit_button", 0, 0, 300, 200)),
        ],
    )
    await locator.locate(screenshot)

    bundle = locator.export_debug()
    assert {"session_metadata", "llm_conversations", "nudging_events"} <= set(bundle)
    assert bundle["session_metadata"]["mode"] == "progressive"
    assert bundle["session_metadata"]["end_time"] is not None
    assert len(bundle["llm_conversations"]) == 2

    path = locator.save_debug(str(tmp_path / "bundle.json"))
    assert path is not None and (tmp_path / "bundle.json").exists()
