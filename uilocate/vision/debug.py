"""Vision debugging helpers: draw candidate boxes onto screenshots."""

from __future__ import annotations

from pathlib import Path
from typing import Iterable

from PIL import Image, ImageDraw

from ..core.config import config
from .models import CandidateDetection


def save_debug_overlay(
    image: Image.Image,
    candidates: Iterable[CandidateDetection],
    name: str,
) -> Path | None:
    """Draw candidate boxes on a copy of *image* and save under the debug dir."""
    if not config.save_vision_debug:
        return None

    canvas = image.convert("RGB").copy()
    draw = ImageDraw.Draw(canvas)

    for candidate in candidates:
        # Red when refinement failed, green otherwise
        color = (255, 0, 0) if candidate.refinement_failed or candidate.slicing_error else (0, 200, 0)
        box = candidate.bounding_box
        draw.rectangle((box.x, box.y, box.x + box.width, box.y + box.height), outline=color, width=3)

        label = f"{candidate.reference_name}:{candidate.confidence}"
        text_top = max(0, box.y - 14)
        text_box = draw.textbbox((box.x + 2, text_top), label)
        draw.rectangle(text_box, fill=(255, 255, 255))
        draw.text((box.x + 2, text_top), label, fill=color)

    debug_dir = Path(config.vision_debug_dir)
    debug_dir.mkdir(parents=True, exist_ok=True)
    target = debug_dir / f"{name}_debug.png"
    canvas.save(target)
    return target
