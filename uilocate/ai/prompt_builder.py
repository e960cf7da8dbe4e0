"""Prompt builder for the vision oracle: detection, crop refinement and correction prompts."""

from __future__ import annotations

from typing import Any

from ..vision.models import BoundingBox, CandidateDetection

__all__ = [
    "build_detection_prompt",
    "build_contextual_prompt",
    "build_systematic_prompt",
    "build_alignment_prompt",
    "build_messages",
]

_SYSTEM_PROMPT = (
    "You are a precise UI element locator. You look at screenshots of software interfaces "
    "and report where clickable elements are, in pixel coordinates of the image you are shown. "
    "You always answer in the exact XML structure you are asked for."
)

_DETECTION_PROMPT = (
    "Analyze this screenshot and identify every clickable UI element "
    "(buttons, links, tabs, toggles, icons that act as buttons).\n"
    "\n"
    "For each element report:\n"
    "- reference_name: short snake_case identifier (e.g. submit_button)\n"
    "- description: what the element looks like and what it does\n"
    "- element_type: button, link, tab, toggle, icon or input\n"
    "- confidence: 0-100\n"
    "- bbox_x, bbox_y, bbox_width, bbox_height: top-left corner and size in pixels of THIS image\n"
    "\n"
    "RESPOND ONLY in this XML format:\n"
    "\n"
    "<detected_buttons>\n"
    "<button>\n"
    "<reference_name>submit_button</reference_name>\n"
    "<description>Blue rounded button labelled Submit</description>\n"
    "<element_type>button</element_type>\n"
    "<confidence>90</confidence>\n"
    "<bbox_x>420</bbox_x>\n"
    "<bbox_y>380</bbox_y>\n"
    "<bbox_width>160</bbox_width>\n"
    "<bbox_height>40</bbox_height>\n"
    "</button>\n"
    "</detected_buttons>\n"
    "<analysis_summary>\n"
    "<total_elements_found>1</total_elements_found>\n"
    "<image_description>Short description of the screen</image_description>\n"
    "</analysis_summary>"
)

_CONTEXT_SUFFIX = (
    "\n\nSPECIFIC SEARCH CONTEXT:\n"
    "I am specifically looking for a button/element called \"{name}\" that was described as: "
    "\"{description}\". This element should be of type \"{element_type}\" and was detected with "
    "{confidence}% confidence. Please focus on finding this specific element in this cropped "
    "image section and report coordinates relative to this cropped image.\n"
    "If you find it, you may add <overlap_percentage> (how much of the element is inside this "
    "crop, 0-100) and <compass_direction> (north, south, east, west, northeast, northwest, "
    "southeast, southwest or none) inside its <button> block.\n"
    "If the element is not visible in this crop, return an empty <detected_buttons></detected_buttons>."
)

_SYSTEMATIC_PROMPT = """SYSTEMATIC SINGLE BUTTON ANALYSIS

You are analyzing EXACTLY ONE button in this image. There is only ONE red bounding box visible.

BUTTON BEING ANALYZED:
- Name: "{name}"
- Description: "{description}"
- Type: {element_type}
- Current box: x={x}, y={y}, width={width}, height={height}

VISUAL ELEMENTS IN IMAGE:
- ONE red bounding box with white overlay (this is the ONLY button you should analyze)
- The box is divided into 4 quadrants by red dashed lines
- Quadrant numbers are marked: 1 (top-left), 2 (top-right), 3 (bottom-left), 4 (bottom-right)
- Large white dot with black border shows the current center point
- Background is slightly dimmed to highlight the target button

SYSTEMATIC ANALYSIS STEPS:

STEP 1: OVERLAP VERIFICATION
- Does the red bounding box overlap the actual "{name}" button AT ALL?
- Estimate what percentage of the button is covered (0-100%)

STEP 2A: IF NO OVERLAP
- What compass direction is the actual button from the bounding box?
- Be specific: North, South, East, West, Northeast, Northwest, Southeast, Southwest

STEP 2B: IF YES OVERLAP
- Which quadrants (1, 2, 3, 4) contain parts of the actual button?

STEP 3: CENTER POINT ANALYSIS
- Is the large white dot positioned over any part of the actual button?
- Rate the dot position: perfect, good, poor, or off-target

RESPOND ONLY in this XML format:

<systematic_analysis>
<overlap_check>
<box_overlaps_button>yes</box_overlaps_button>
<overlap_percentage>85</overlap_percentage>
</overlap_check>
<direction_analysis>
<button_direction_from_box>none</button_direction_from_box>
<compass_direction>none</compass_direction>
<quadrants_with_button>1,2,3,4</quadrants_with_button>
</direction_analysis>
<center_analysis>
<white_dot_on_button>yes</white_dot_on_button>
<dot_position_quality>good</dot_position_quality>
</center_analysis>
<corrections>
<correction>
<needs_correction>no</needs_correction>
<correction_type>none</correction_type>
<move_direction>none</move_direction>
<new_bbox_x>150</new_bbox_x>
<new_bbox_y>200</new_bbox_y>
<new_bbox_width>180</new_bbox_width>
<new_bbox_height>45</new_bbox_height>
</correction>
</corrections>
<assessment>
<confidence>92</confidence>
<accuracy>88</accuracy>
</assessment>
</systematic_analysis>"""

_SYSTEMATIC_RETRY = (
    "\n\nRETRY ATTEMPT {attempt} - PREVIOUS ANALYSIS FAILED\n"
    "This is a SINGLE BUTTON analysis. Follow the systematic steps above EXACTLY.\n"
    "You MUST respond with the exact XML structure shown above.\n"
    "\n"
    "RESPOND ONLY WITH XML. NO explanations outside XML tags."
)

_ALIGNMENT_PROMPT = """BUTTON ALIGNMENT VERIFICATION

I'm showing you an image where I've highlighted a button with a red bounding box and label.

BUTTON TO ANALYZE: "{name}"

Does the button "{name}" line up with the red bounding box labeled "{name}"?
1. Does the red bounding box cover the actual "{name}" button properly?
2. If not, how should the bounding box be moved to line up better?

RESPOND in this XML format:

<alignment_check>
<button_name>{name}</button_name>
<box_aligns_with_button>yes</box_aligns_with_button>
<alignment_quality>good</alignment_quality>
<needs_adjustment>no</needs_adjustment>
<adjustment_direction>none</adjustment_direction>
<suggested_shift>none</suggested_shift>
<new_bbox_x>0</new_bbox_x>
<new_bbox_y>0</new_bbox_y>
<new_bbox_width>0</new_bbox_width>
<new_bbox_height>0</new_bbox_height>
<confidence>95</confidence>
<notes>Button and bounding box align well</notes>
</alignment_check>

INSTRUCTIONS:
- box_aligns_with_button: "yes" or "no"
- alignment_quality: "excellent", "good", "poor", or "terrible"
- needs_adjustment: "yes" or "no"
- adjustment_direction: "up", "down", "left", "right", "up-left", "up-right", "down-left", "down-right", or "none"
- If needs_adjustment is "yes", provide new_bbox_x, new_bbox_y, new_bbox_width, new_bbox_height
- confidence: 0-100"""

_ALIGNMENT_RETRY = (
    "\n\nRETRY ATTEMPT {attempt} - Please be more specific about the alignment between the "
    "button \"{name}\" and its red bounding box."
)


def build_detection_prompt(target: str | None = None) -> str:
    """Full-image detection prompt, optionally prioritising *target*."""
    if not target:
        return _DETECTION_PROMPT
    return (
        f"{_DETECTION_PROMPT}\n\n"
        f"PRIORITY TARGET:\nThe user is looking for \"{target}\". "
        "Make sure this element is included and listed first if it is visible."
    )


def build_contextual_prompt(candidate: CandidateDetection) -> str:
    """Detection prompt for a crop, naming the candidate being searched for."""
    return _DETECTION_PROMPT + _CONTEXT_SUFFIX.format(
        name=candidate.reference_name,
        description=candidate.description,
        element_type=candidate.element_type,
        confidence=candidate.confidence,
    )


def build_systematic_prompt(candidate: CandidateDetection, bbox: BoundingBox, attempt: int = 1) -> str:
    """Systematic overlap/direction/quadrant prompt for one highlighted box."""
    prompt = _SYSTEMATIC_PROMPT.format(
        name=candidate.reference_name,
        description=candidate.description,
        element_type=candidate.element_type,
        x=bbox.x,
        y=bbox.y,
        width=bbox.width,
        height=bbox.height,
    )
    if attempt > 1:
        prompt += _SYSTEMATIC_RETRY.format(attempt=attempt)
    return prompt


def build_alignment_prompt(candidate: CandidateDetection, attempt: int = 1) -> str:
    """Simpler yes/no alignment prompt for one highlighted box."""
    prompt = _ALIGNMENT_PROMPT.format(name=candidate.reference_name)
    if attempt > 1:
        prompt += _ALIGNMENT_RETRY.format(attempt=attempt, name=candidate.reference_name)
    return prompt


def build_messages(prompt: str, image_b64: str, *, detail: str = "high") -> list[dict[str, Any]]:
    """Return chat messages carrying *prompt* plus the PNG image as a data URL."""
    return [
        {"role": "system", "content": _SYSTEM_PROMPT},
        {
            "role": "user",
            "content": [
                {"type": "text", "text": prompt},
                {
                    "type": "image_url",
                    "image_url": {"url": f"data:image/png;base64,{image_b64}", "detail": detail},
                },
            ],
        },
    ]
