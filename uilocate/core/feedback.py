"""Visual-feedback correction loop.

Each candidate is drawn onto the screenshot as a single highlighted box and the
oracle is asked whether the box sits on the element. Misaligned boxes are moved
by the :class:`NudgingEngine` and re-checked, up to ``max_alignment_attempts``.
"""

from __future__ import annotations

from typing import Any, Sequence

from PIL import Image

from ..ai.oracle import OracleClient
from ..vision.imaging import create_single_target_overlay
from ..vision.models import AnalysisResult, BoundingBox, CandidateDetection, DotQuality, NudgeEvent
from .budget import AnalysisBudget
from .config import Config, config
from .logger import log
from .nudging import NudgingEngine, normalize_direction
from .recorder import NullRecorder, SessionRecorder

__all__ = ["CorrectionLoop", "FINAL_STATUSES"]

FINAL_STATUSES = (
    "aligned",
    "alignment_incomplete",
    "max_attempts_reached",
    "budget_exhausted",
)

_GOOD_DOTS = (DotQuality.PERFECT, DotQuality.GOOD)


class CorrectionLoop:
    """Check-and-nudge loop over a list of candidates."""

    def __init__(
        self,
        oracle: OracleClient,
        nudging: NudgingEngine | None = None,
        recorder: SessionRecorder | None = None,
        settings: Config | None = None,
    ) -> None:
        settings = settings or config
        self.oracle = oracle
        self.recorder = recorder if recorder is not None else NullRecorder()
        self.nudging = nudging or NudgingEngine(self.recorder)
        self.max_attempts = settings.max_alignment_attempts
        self.mode = settings.correction_mode
        self.high_overlap_threshold = settings.high_overlap_threshold

    def is_aligned(self, result: AnalysisResult) -> bool:
        """Whether an analysis says the current box already covers the element."""
        if result.systematic is not None:
            analysis = result.systematic
            return (
                bool(analysis.box_overlaps_button)
                and analysis.overlap_percentage >= self.high_overlap_threshold
                and normalize_direction(analysis.compass_direction) == "none"
                and analysis.dot_position_quality in _GOOD_DOTS
                and not result.needs_correction
            )
        if result.alignment is not None:
            return bool(result.alignment.box_aligns_with_button) and not result.alignment.needs_adjustment
        return False

    async def _analyze(
        self,
        overlay: Image.Image,
        candidate: CandidateDetection,
        bbox: BoundingBox,
        button_number: int,
        budget: AnalysisBudget,
    ) -> AnalysisResult:
        if self.mode == "alignment":
            return await self.oracle.analyze_alignment(overlay, candidate, button_number, budget)
        return await self.oracle.analyze_systematic(overlay, candidate, bbox, button_number, budget)

    def _nudge(
        self,
        candidate: CandidateDetection,
        bbox: BoundingBox,
        result: AnalysisResult,
        button_number: int,
    ) -> NudgeEvent | None:
        if result.systematic is not None:
            event = self.nudging.from_systematic(candidate, bbox, result, button_number)
        elif result.alignment is not None:
            event = self.nudging.from_alignment(candidate, bbox, result, button_number)
        else:
            event = None
        if event is None and not result.parsing_successful and result.raw_response:
            # No structure recovered; fall back to direction words in the prose
            event = self.nudging.from_hints(candidate, bbox, result.raw_response, button_number)
        return event

    async def correct(
        self,
        image: Image.Image,
        candidate: CandidateDetection,
        budget: AnalysisBudget,
        button_number: int = 1,
    ) -> CandidateDetection:
        """Run the loop for one candidate and return it with its final status."""
        name = candidate.reference_name
        bbox = candidate.bounding_box
        nudges: list[NudgeEvent] = []
        attempts = 0
        status = "max_attempts_reached"

        for attempt in range(1, self.max_attempts + 1):
            if budget.exhausted:
                self.recorder.add_log(
                    "decision",
                    f"API call limit reached before attempt {attempt} for {name}",
                    {"api_call_count": budget.api_call_count},
                )
                status = "budget_exhausted"
                break

            log.debug(f"Alignment attempt {attempt}/{self.max_attempts} for button {button_number}")
            overlay = create_single_target_overlay(image, bbox, name, attempt)
            attempts = attempt
            result = await self._analyze(overlay, candidate.with_bounding_box(bbox), bbox, button_number, budget)

            if self.is_aligned(result):
                self.recorder.add_log("success", f"Button {button_number} is aligned", {"attempt": attempt})
                status = "aligned"
                break

            if attempt == self.max_attempts:
                break

            event = self._nudge(candidate, bbox, result, button_number)
            if event is None:
                self.recorder.add_log(
                    "fallback",
                    f"Button {button_number} alignment incomplete at attempt {attempt}",
                    {"response_type": result.response_type},
                )
                status = "alignment_incomplete"
                break
            nudges.append(event)
            bbox = event.new_bbox

        if status == "max_attempts_reached":
            log.warning(f"Button {button_number} ({name}) not aligned after {attempts} attempts")

        moved = candidate.with_bounding_box(bbox) if nudges else candidate
        return moved.evolve(
            final_status=status,
            alignment_attempts=attempts,
            nudge_history=tuple(nudges),
        )

    async def correct_all(
        self,
        image: Image.Image,
        candidates: Sequence[CandidateDetection],
        budget: AnalysisBudget,
    ) -> list[CandidateDetection]:
        """Correct every candidate in order; siblings share the budget."""
        results = []
        for number, candidate in enumerate(candidates, start=1):
            results.append(await self.correct(image, candidate, budget, number))
        return results

    @staticmethod
    def summary(results: Sequence[CandidateDetection]) -> dict[str, Any]:
        """Aligned count, attempt total and success rate for a finished run."""
        aligned = sum(1 for c in results if c.final_status == "aligned")
        return {
            "aligned_buttons": aligned,
            "total_alignment_attempts": sum(c.alignment_attempts for c in results),
            "total_nudges": sum(len(c.nudge_history) for c in results),
            "success_rate": round(aligned / len(results) * 100) if results else 0,
        }
