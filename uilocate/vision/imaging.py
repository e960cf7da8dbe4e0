"""Pillow raster helpers: loading, cropping, encoding and overlays."""

from __future__ import annotations

import base64
import binascii
import io
from pathlib import Path
from typing import Union

from PIL import Image, ImageDraw, ImageFont, UnidentifiedImageError

from ..core.errors import CropGenerationError
from .models import BoundingBox, CropBounds, Size

ImageSource = Union[str, Path, bytes, Image.Image]

_BORDER_COLOR = (255, 0, 0, 255)


def load_image(source: ImageSource) -> Image.Image:
    """Load *source* (path, raw bytes or an open image) as an RGB image."""
    try:
        if isinstance(source, Image.Image):
            image = source
        elif isinstance(source, bytes):
            image = Image.open(io.BytesIO(source))
        else:
            image = Image.open(Path(source))
        image.load()
        return image.convert("RGB")
    except (OSError, UnidentifiedImageError) as exc:
        raise CropGenerationError(f"Failed to load image: {exc}") from exc


def image_dimensions(image: Image.Image) -> Size:
    """Return ``Size(width, height)`` of *image*."""
    return Size(image.width, image.height)


def crop_image(image: Image.Image, bounds: CropBounds) -> Image.Image:
    """Cut *bounds* out of *image*; raises ``CropGenerationError`` on failure."""
    if bounds.width <= 0 or bounds.height <= 0:
        raise CropGenerationError(f"Empty crop requested: {bounds.as_dict()}")
    if (
        bounds.x < 0
        or bounds.y < 0
        or bounds.x + bounds.width > image.width
        or bounds.y + bounds.height > image.height
    ):
        raise CropGenerationError(
            f"Crop {bounds.as_dict()} exceeds image {image.width}x{image.height}"
        )
    try:
        cropped = image.crop(bounds.as_tuple())
        cropped.load()
        return cropped
    except (OSError, ValueError) as exc:
        raise CropGenerationError(f"Failed to create cropped image: {exc}") from exc


def encode_image(image: Image.Image, format: str = "PNG") -> str:
    """Convert image to base64 string for API calls."""
    buffer = io.BytesIO()
    if format.upper() == "JPEG":
        # JPEG doesn't support alpha
        if image.mode in ("RGBA", "LA", "P"):
            image = image.convert("RGB")
        image.save(buffer, format="JPEG", quality=95, optimize=False)
    else:
        image.save(buffer, format="PNG", compress_level=1)
    return base64.b64encode(buffer.getvalue()).decode("utf-8")


def decode_image(data: str) -> Image.Image:
    """Decode a base64 string (optionally a ``data:`` URL) into an image."""
    if data.startswith("data:"):
        data = data.split(",", 1)[-1]
    try:
        raw = base64.b64decode(data, validate=True)
    except (binascii.Error, ValueError) as exc:
        raise CropGenerationError(f"Invalid base64 image payload: {exc}") from exc
    return load_image(raw)


def _load_font(size: int) -> ImageFont.ImageFont:
    for name in ("arial.ttf", "DejaVuSans-Bold.ttf", "DejaVuSans.ttf"):
        try:
            return ImageFont.truetype(name, size)
        except OSError:
            continue
    return ImageFont.load_default()


def create_single_target_overlay(
    image: Image.Image,
    bbox: BoundingBox,
    label: str,
    attempt: int = 1,
) -> Image.Image:
    """Highlight one box with the quadrant cross and centre dot.

    The drawing matches the vocabulary used by the systematic prompt: red
    border, dashed cross splitting the box into quadrants 1 (top-left),
    2 (top-right), 3 (bottom-left), 4 (bottom-right), and a large white dot
    with a black border on the current centre.
    """
    base = image.convert("RGBA")
    layer = Image.new("RGBA", base.size, (0, 0, 0, 0))
    draw = ImageDraw.Draw(layer)

    # Dim everything, then brighten the box interior
    draw.rectangle((0, 0, base.width, base.height), fill=(0, 0, 0, 26))
    x0, y0 = bbox.x, bbox.y
    x1, y1 = bbox.x + bbox.width, bbox.y + bbox.height
    draw.rectangle((x0, y0, x1, y1), fill=(255, 255, 255, 102))
    draw.rectangle((x0, y0, x1, y1), outline=_BORDER_COLOR, width=5)

    center_x = bbox.x + bbox.width / 2
    center_y = bbox.y + bbox.height / 2

    # Dashed quadrant cross
    dash = 10
    for offset in range(0, max(bbox.height, 1), dash * 2):
        draw.line(
            (center_x, y0 + offset, center_x, min(y0 + offset + dash, y1)),
            fill=_BORDER_COLOR,
            width=4,
        )
    for offset in range(0, max(bbox.width, 1), dash * 2):
        draw.line(
            (x0 + offset, center_y, min(x0 + offset + dash, x1), center_y),
            fill=_BORDER_COLOR,
            width=4,
        )

    font = _load_font(16)
    pad = 8
    quadrant_positions = {
        "1": (x0 + pad, y0 + pad),
        "2": (center_x + pad, y0 + pad),
        "3": (x0 + pad, center_y + pad),
        "4": (center_x + pad, center_y + pad),
    }
    for number, position in quadrant_positions.items():
        draw.text(position, number, fill=_BORDER_COLOR, font=font)

    caption = f"{label} (attempt {attempt})"
    text_top = max(0, y0 - 24)
    text_box = draw.textbbox((x0, text_top), caption, font=font)
    draw.rectangle(
        (text_box[0] - 4, text_box[1] - 2, text_box[2] + 4, text_box[3] + 2),
        fill=_BORDER_COLOR,
    )
    draw.text((x0, text_top), caption, fill=(255, 255, 255, 255), font=font)

    radius = 8
    draw.ellipse(
        (center_x - radius, center_y - radius, center_x + radius, center_y + radius),
        fill=(255, 255, 255, 255),
        outline=(0, 0, 0, 255),
        width=2,
    )

    return Image.alpha_composite(base, layer).convert("RGB")
