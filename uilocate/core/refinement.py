"""Progressive crop refinement driven by an explicit worklist.

Each candidate walks ``Detected -> Cropped -> Reanalyzed`` and ends in one of
``Accepted``, ``DeeperRefinement`` (pushed back on the stack one level down),
``NotFoundFallback``, ``Error`` or a cap. The stack is processed depth-first,
one candidate at a time, so the shared :class:`AnalysisBudget` needs no lock.
"""

from __future__ import annotations

from dataclasses import dataclass
from typing import Sequence

from PIL import Image

from ..ai.oracle import OracleClient
from ..vision.geometry import coverage_ratio, focused_crop, to_global
from ..vision.imaging import crop_image, image_dimensions
from ..vision.models import CandidateDetection, CropBounds, Point, RefinementOutcome, Size
from .budget import AnalysisBudget
from .config import Config, config
from .errors import CropGenerationError, InvalidGeometryError, OracleTransportError
from .logger import log
from .nudging import normalize_direction
from .recorder import NullRecorder, SessionRecorder

__all__ = ["RecursionController", "WorkItem"]


@dataclass(frozen=True, slots=True)
class WorkItem:
    """One pending refinement step.

    ``candidate`` is expressed in the coordinate space of ``image``; ``history``
    holds the origins of every crop above it.
    """

    candidate: CandidateDetection
    image: Image.Image
    image_size: Size
    depth: int
    history: tuple[Point, ...]
    slot: int
    original: CandidateDetection


class RecursionController:
    """Refine initial detections by cropping and re-querying the oracle."""

    def __init__(
        self,
        oracle: OracleClient,
        recorder: SessionRecorder | None = None,
        settings: Config | None = None,
    ) -> None:
        settings = settings or config
        self.oracle = oracle
        self.recorder = recorder if recorder is not None else NullRecorder()
        self.coverage_threshold = settings.coverage_threshold
        self.accept_depth = settings.accept_depth
        self.crop_multipliers = tuple(settings.crop_multipliers)
        self.high_overlap_threshold = settings.high_overlap_threshold

    # ------------------------------------------------------------------
    # Driver
    # ------------------------------------------------------------------
    async def refine(
        self,
        image: Image.Image,
        candidates: Sequence[CandidateDetection],
        budget: AnalysisBudget,
    ) -> tuple[list[CandidateDetection], list[RefinementOutcome]]:
        """Refine every candidate; results keep the input order."""
        size = image_dimensions(image)
        stack = [
            WorkItem(candidate, image, size, 0, (), slot, candidate)
            for slot, candidate in reversed(list(enumerate(candidates)))
        ]
        results: list[CandidateDetection | None] = [None] * len(candidates)
        outcomes: list[RefinementOutcome] = [RefinementOutcome.ERROR] * len(candidates)

        while stack:
            item = stack.pop()
            outcome, value = await self._step(item, budget)
            log.log_refinement(item.original.reference_name, item.depth, outcome.value)
            if isinstance(value, WorkItem):
                stack.append(value)
                continue
            results[item.slot] = value
            outcomes[item.slot] = outcome

        return [r for r in results if r is not None], outcomes

    # ------------------------------------------------------------------
    # One state transition
    # ------------------------------------------------------------------
    def _global_center(self, item: WorkItem) -> Point:
        if not item.history:
            return item.candidate.center_coordinates
        local_frame = CropBounds(0, 0, int(item.image_size.width), int(item.image_size.height))
        return to_global(item.candidate.center_coordinates, local_frame, item.history)

    def _terminal(self, item: WorkItem, **flags: bool) -> CandidateDetection:
        """Candidate as-is at this level, mapped back to global coordinates."""
        return item.candidate.evolve(
            center_coordinates=self._global_center(item),
            refinement_level=item.depth,
            transform_history=item.history,
            **flags,
        )

    def _slicing_error(self, item: WorkItem, exc: Exception) -> tuple[RefinementOutcome, CandidateDetection]:
        name = item.original.reference_name
        log.error(f"Slicing error for {name} at depth {item.depth}: {exc}")
        self.recorder.add_log("error", f"Slicing error at depth {item.depth}", {"button": name, "error": str(exc)})
        return RefinementOutcome.ERROR, self._terminal(item, slicing_error=True)

    def _well_isolated(self, match: CandidateDetection, coverage: float, depth: int) -> bool:
        if coverage >= self.coverage_threshold or depth >= self.accept_depth:
            return True
        return (
            match.overlap_hint is not None
            and match.overlap_hint >= self.high_overlap_threshold
            and normalize_direction(match.direction_hint) == "none"
        )

    async def _step(
        self,
        item: WorkItem,
        budget: AnalysisBudget,
    ) -> tuple[RefinementOutcome, CandidateDetection | WorkItem]:
        name = item.original.reference_name

        if budget.depth_exhausted(item.depth):
            self.recorder.add_log("decision", f"Maximum depth reached: {item.depth}", {"button": name})
            return RefinementOutcome.DEPTH_CAP, self._terminal(item)
        if budget.exhausted:
            self.recorder.add_log(
                "decision",
                f"API call limit reached: {budget.api_call_count}",
                {"button": name, "depth": item.depth},
            )
            return RefinementOutcome.BUDGET_CAP, self._terminal(item)

        self.recorder.add_log(
            "refine",
            f"Refining button: {name}",
            {"coords": item.candidate.center_coordinates.as_dict(), "depth": item.depth},
        )

        try:
            crop = focused_crop(item.candidate.center_coordinates, item.image_size, item.depth, self.crop_multipliers)
            cropped = crop_image(item.image, crop)
            self.recorder.add_log("crop", f"Focused crop for {name}", {"bounds": crop.as_dict(), "depth": item.depth})
            self.recorder.add_slice(
                {
                    "id": f"refine_{item.depth}_{name}",
                    "depth": item.depth,
                    "button_name": name,
                    "crop_bounds": crop.as_dict(),
                    "original_dimensions": item.image_size.as_dict(),
                    "original_coords": item.candidate.center_coordinates.as_dict(),
                }
            )

            call_number = budget.record_call()
            self.recorder.add_log("api-call", f"Focused analysis for {name}", {"call_number": call_number})
            detection = await self.oracle.detect_with_context(cropped, item.candidate, item.depth)
        except (CropGenerationError, InvalidGeometryError, OracleTransportError) as exc:
            return self._slicing_error(item, exc)

        if not detection.candidates:
            self.recorder.add_log(
                "fallback",
                f"Button not found in crop: {name}",
                {"depth": item.depth, "response_type": detection.response_type},
            )
            return RefinementOutcome.NOT_FOUND, self._terminal(item, refinement_failed=True)

        match = detection.candidates[0]
        try:
            coverage = coverage_ratio(match.estimated_size, crop)
        except InvalidGeometryError as exc:
            return self._slicing_error(item, exc)
        self.recorder.add_log(
            "coverage",
            f"Coverage check for {name}",
            {"coverage_ratio": coverage, "threshold": self.coverage_threshold, "depth": item.depth},
        )

        if self._well_isolated(match, coverage, item.depth):
            global_center = to_global(match.center_coordinates, crop, item.history)
            self.recorder.add_log(
                "math",
                f"Coordinate transformation for {name}",
                {
                    "crop_coords": match.center_coordinates.as_dict(),
                    "crop_bounds": crop.as_dict(),
                    "transform_history": [p.as_dict() for p in item.history],
                    "result": global_center.as_dict(),
                },
            )
            refined = item.original.evolve(
                confidence=match.confidence,
                center_coordinates=global_center,
                estimated_size=match.estimated_size,
                refinement_level=item.depth + 1,
                transform_history=item.history,
                coverage_ratio=coverage,
                refinement_successful=True,
                overlap_hint=match.overlap_hint,
                direction_hint=match.direction_hint,
            )
            self.recorder.add_log(
                "success",
                f"Successfully refined {name}",
                {"new_coords": global_center.as_dict(), "depth": item.depth + 1},
            )
            return RefinementOutcome.ACCEPTED, refined

        # The match becomes the candidate one level down, in crop-local space
        deeper = WorkItem(
            candidate=item.original.evolve(
                confidence=match.confidence,
                center_coordinates=match.center_coordinates,
                estimated_size=match.estimated_size,
            ),
            image=cropped,
            image_size=Size(crop.width, crop.height),
            depth=item.depth + 1,
            history=item.history + (crop.origin,),
            slot=item.slot,
            original=item.original,
        )
        return RefinementOutcome.DEEPER, deeper
