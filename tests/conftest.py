import os

# Keep test runs from writing log files or debug images
os.environ.setdefault("LOG_TO_FILE", "false")
os.environ.setdefault("SAVE_VISION_DEBUG", "false")

import pytest
from PIL import Image

from uilocate.ai.oracle import OracleClient
from uilocate.core.budget import AnalysisBudget
from uilocate.core.recorder import SessionRecorder
from uilocate.vision.imaging import decode_image


class FakeTransport:
    """Scripted oracle: pops one canned reply (or exception) per call."""

    def __init__(self, replies=None):
        self.replies = list(replies or [])
        self.prompts = []
        self.image_sizes = []

    async def describe_elements(self, image_b64, prompt):
        self.prompts.append(prompt)
        self.image_sizes.append(decode_image(image_b64).size)
        if not self.replies:
            raise AssertionError("unexpected oracle call")
        reply = self.replies.pop(0)
        if isinstance(reply, BaseException):
            raise reply
        return reply

    @property
    def calls(self):
        return len(self.prompts)


def detection_xml(*buttons, description="Test screen"):
    """Build a ``<detected_buttons>`` answer from (name, x, y, w, h[, extra tags]) tuples."""
    blocks = []
    for button in buttons:
        name, x, y, w, h = button[:5]
        extra = button[5] if len(button) > 5 else ""
        blocks.append(
            "<button>"
            f"<reference_name>{name}</reference_name>"
            f"<description>{name.replace('_', ' ')}</description>"
            "<element_type>button</element_type>"
            "<confidence>85</confidence>"
            f"<bbox_x>{x}</bbox_x><bbox_y>{y}</bbox_y>"
            f"<bbox_width>{w}</bbox_width><bbox_height>{h}</bbox_height>"
            f"{extra}"
            "</button>"
        )
    return (
        "<detected_buttons>" + "".join(blocks) + "</detected_buttons>"
        "<analysis_summary>"
        f"<total_elements_found>{len(buttons)}</total_elements_found>"
        f"<image_description>{description}</image_description>"
        "</analysis_summary>"
    )


def systematic_xml(
    overlaps="no",
    percent=0,
    compass="none",
    quadrants="none",
    dot="no",
    quality="off-target",
    needs_correction="no",
):
    return (
        "<systematic_analysis>"
        "<overlap_check>"
        f"<box_overlaps_button>{overlaps}</box_overlaps_button>"
        f"<overlap_percentage>{percent}</overlap_percentage>"
        "</overlap_check>"
        "<direction_analysis>"
        "<button_direction_from_box>see compass</button_direction_from_box>"
        f"<compass_direction>{compass}</compass_direction>"
        f"<quadrants_with_button>{quadrants}</quadrants_with_button>"
        "</direction_analysis>"
        "<center_analysis>"
        f"<white_dot_on_button>{dot}</white_dot_on_button>"
        f"<dot_position_quality>{quality}</dot_position_quality>"
        "</center_analysis>"
        "<assessment><confidence>80</confidence><accuracy>75</accuracy></assessment>"
        "<corrections><correction>"
        f"<needs_correction>{needs_correction}</needs_correction>"
        "</correction></corrections>"
        "</systematic_analysis>"
    )


@pytest.fixture
def screenshot():
    return Image.new("RGB", (1000, 800), color=(240, 240, 240))


@pytest.fixture
def recorder():
    return SessionRecorder()


@pytest.fixture
def budget():
    return AnalysisBudget(max_api_calls=10, max_depth=2)


@pytest.fixture
def make_oracle(recorder):
    """Build an ``(oracle, transport)`` pair from scripted replies."""

    def _make(replies, max_retries=0):
        transport = FakeTransport(replies)
        return OracleClient(transport=transport, recorder=recorder, max_retries=max_retries), transport

    return _make


@pytest.fixture
def xml():
    class _Builders:
        detection = staticmethod(detection_xml)
        systematic = staticmethod(systematic_xml)

    return _Builders
