"""Crop geometry and coordinate transforms for progressive refinement.

All functions here are pure. ``focused_crop`` decides where to cut the next
crop around a candidate, ``coverage_ratio`` measures how well a candidate is
isolated inside that crop, and ``to_global`` maps a crop-local point back to
the original screenshot through the accumulated transform history.
"""

from __future__ import annotations

from typing import Sequence

from ..core.errors import InvalidGeometryError
from .models import CropBounds, Point, Size

__all__ = [
    "DEFAULT_CROP_MULTIPLIERS",
    "crop_multiplier",
    "focused_crop",
    "coverage_ratio",
    "to_global",
    "history_offset",
]

# Fraction of the current image kept at depth 0, 1 and >= 2.
DEFAULT_CROP_MULTIPLIERS: tuple[float, ...] = (0.4, 0.6, 0.8)


def _require_positive(size: Size, what: str) -> None:
    if size.width <= 0 or size.height <= 0:
        raise InvalidGeometryError(
            f"{what} must have positive width and height, got {size.width}x{size.height}"
        )


def crop_multiplier(depth: int, multipliers: Sequence[float] = DEFAULT_CROP_MULTIPLIERS) -> float:
    """Return the crop size multiplier for *depth* (last tier repeats)."""
    if depth < 0:
        raise InvalidGeometryError(f"Depth cannot be negative: {depth}")
    return multipliers[min(depth, len(multipliers) - 1)]


def focused_crop(
    point: Point,
    image_size: Size,
    depth: int,
    multipliers: Sequence[float] = DEFAULT_CROP_MULTIPLIERS,
) -> CropBounds:
    """Compute a crop centred on *point*, sized by depth tier and clamped to the image."""
    _require_positive(image_size, "Image")

    factor = crop_multiplier(depth, multipliers)
    crop_width = min(round(image_size.width * factor), int(image_size.width))
    crop_height = min(round(image_size.height * factor), int(image_size.height))
    crop_width = max(1, crop_width)
    crop_height = max(1, crop_height)

    crop_x = max(0, min(round(point.x - crop_width / 2), int(image_size.width) - crop_width))
    crop_y = max(0, min(round(point.y - crop_height / 2), int(image_size.height) - crop_height))

    return CropBounds(x=crop_x, y=crop_y, width=crop_width, height=crop_height)


def coverage_ratio(candidate_size: Size, crop: CropBounds) -> float:
    """Fraction of the crop area taken up by the candidate."""
    _require_positive(Size(crop.width, crop.height), "Crop")
    if candidate_size.width < 0 or candidate_size.height < 0:
        raise InvalidGeometryError("Candidate size cannot be negative")
    return candidate_size.area() / crop.area()


def history_offset(transform_history: Sequence[Point]) -> Point:
    """Sum of all crop origins above the current level."""
    return Point(
        sum(offset.x for offset in transform_history),
        sum(offset.y for offset in transform_history),
    )


def to_global(local: Point, crop: CropBounds, transform_history: Sequence[Point]) -> Point:
    """Map a crop-local point to original-image coordinates.

    ``global = local + crop origin + sum(history offsets)``; the history must
    contain one entry per level above *crop*.
    """
    offset = history_offset(transform_history)
    return Point(
        round(local.x + crop.x + offset.x),
        round(local.y + crop.y + offset.y),
    )
