import json

from uilocate.core.recorder import NullRecorder, SessionRecorder
from uilocate.vision.models import BoundingBox, NudgeEvent, NudgeType, Point


def make_event():
    return NudgeEvent(
        button_number=1,
        reference_name="submit_button",
        original_bbox=BoundingBox(0, 0, 10, 10),
        nudge_type=NudgeType.FINE_TUNING,
        nudge_direction="east",
        nudge_multiplier=0.3,
        nudge_vector=Point(3, 0),
        new_bbox=BoundingBox(3, 0, 10, 10),
        source="systematic",
    )


def test_session_lifecycle_and_bundle():
    recorder = SessionRecorder()
    recorder.start_session("progressive")
    recorder.add_log("crop", "cropped", {"depth": 0})
    first = recorder.record_conversation("initial_detection", None, "prompt", "raw", {}, True, "detection_xml")
    second = recorder.record_conversation("contextual_detection", "ok", "p", "", None, False, "no_detection_data")
    recorder.record_nudge(make_event())
    recorder.end_session(detections=1)

    assert (first, second) == (1, 2)
    bundle = recorder.export_bundle()
    assert bundle["session_metadata"]["mode"] == "progressive"
    assert bundle["session_metadata"]["total_api_calls"] == 2
    assert bundle["session_metadata"]["total_nudges"] == 1
    assert bundle["session_metadata"]["detections"] == 1
    assert bundle["nudging_events"][0]["nudge_type"] == "fine_tuning"
    assert bundle["llm_conversations"][1]["parsing_successful"] is False


def test_start_session_clears_previous_run():
    recorder = SessionRecorder()
    recorder.start_session("progressive")
    recorder.record_conversation("initial_detection", None, "p", "r", None, True, "x")
    recorder.start_session("feedback")

    assert recorder.conversations == []
    assert recorder.record_conversation("initial_detection", None, "p", "r", None, True, "x") == 1


def test_summary_counts_by_kind():
    recorder = SessionRecorder()
    recorder.add_log("api-call", "a")
    recorder.add_log("error", "b")
    recorder.add_log("error", "c")

    summary = recorder.summary()
    assert summary["types"] == {"api-call": 1, "error": 2}
    assert summary["api_calls"] == 1
    assert summary["errors"] == 2


def test_save_writes_json(tmp_path):
    recorder = SessionRecorder()
    recorder.start_session("progressive")
    path = recorder.save(str(tmp_path / "out" / "debug.json"))

    with open(path, encoding="utf-8") as f:
        data = json.load(f)
    assert set(data) == {"session_metadata", "llm_conversations", "nudging_events", "logs", "slice_visualizations"}


def test_null_recorder_keeps_nothing_but_indexes():
    recorder = NullRecorder()
    recorder.add_log("info", "x")
    recorder.record_nudge(make_event())
    assert recorder.record_conversation("k", None, "p", "r", None, True, "t") == 1
    assert recorder.record_conversation("k", None, "p", "r", None, True, "t") == 2
    assert recorder.logs == [] and recorder.conversations == [] and recorder.nudging_events == []
