"""API route definitions for the uilocate service."""

from __future__ import annotations

from typing import Any, Dict, List, Literal, Optional

from fastapi import APIRouter, HTTPException
from pydantic import BaseModel

from ..core.errors import CropGenerationError, OracleTransportError
from ..core.locator import ElementLocator
from ..core.logger import log
from ..vision.imaging import decode_image

# Create router instances
locate_router = APIRouter()
debug_router = APIRouter()

# Global locator instance
locator_instance: Optional[ElementLocator] = None


def get_locator() -> ElementLocator:
    """Get or create the global locator instance."""
    global locator_instance
    if locator_instance is None:
        locator_instance = ElementLocator()
    return locator_instance


def set_locator(locator: Optional[ElementLocator]) -> None:
    """Replace the global locator (``None`` resets to lazy creation)."""
    global locator_instance
    locator_instance = locator


# Pydantic models for request/response
class LocateRequest(BaseModel):
    """Request model for one localization run."""
    image_base64: str
    target: Optional[str] = None
    mode: Literal["progressive", "feedback"] = "progressive"


class LocateResponse(BaseModel):
    """Response model mirroring the detection output contract."""
    detected_buttons: List[Dict[str, Any]]
    analysis_summary: Dict[str, Any]
    analysis_method: str
    total_api_calls: int
    elapsed_seconds: float


@locate_router.post("", response_model=LocateResponse)
async def locate_elements(request: LocateRequest):
    """Detect and refine clickable elements in a base64-encoded screenshot."""
    try:
        image = decode_image(request.image_base64)
    except CropGenerationError as e:
        log.warning(f"Rejected locate request: {e}")
        raise HTTPException(status_code=400, detail=str(e))

    locator = get_locator()
    try:
        report = await locator.locate(image, target=request.target, mode=request.mode)
    except CropGenerationError as e:
        raise HTTPException(status_code=400, detail=str(e))
    except OracleTransportError as e:
        log.error(f"Oracle unavailable: {e}")
        raise HTTPException(status_code=502, detail=str(e))
    except ValueError as e:
        # Missing API key or invalid settings
        log.error(f"Locator misconfigured: {e}")
        raise HTTPException(status_code=503, detail=str(e))

    return LocateResponse(**report.to_dict())


@debug_router.get("/export")
async def export_debug() -> Dict[str, Any]:
    """Audit bundle of the most recent run."""
    return get_locator().export_debug()


@debug_router.get("/summary")
async def debug_summary() -> Dict[str, Any]:
    """Event counts of the most recent run."""
    return get_locator().recorder.summary()
