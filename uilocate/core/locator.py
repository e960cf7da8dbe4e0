"""High-level entry point: detect, then refine or correct, then report."""

from __future__ import annotations

from typing import Any

from ..ai.oracle import OracleClient
from ..utils.helpers import format_duration
from ..vision.debug import save_debug_overlay
from ..vision.imaging import ImageSource, load_image
from ..vision.models import LocalizationReport, RefinementOutcome
from .budget import AnalysisBudget
from .config import Config, config
from .errors import OracleTransportError
from .feedback import CorrectionLoop
from .logger import log
from .nudging import NudgingEngine
from .recorder import SessionRecorder
from .refinement import RecursionController

__all__ = ["ElementLocator", "MODES"]

MODES = ("progressive", "feedback")

_CAPS = (RefinementOutcome.DEPTH_CAP, RefinementOutcome.BUDGET_CAP)


class ElementLocator:
    """Locate clickable UI elements in a screenshot.

    Two modes share the initial full-image detection:

    * ``progressive`` refines each candidate by cropping around it and asking
      again (:class:`RecursionController`);
    * ``feedback`` draws each candidate's box on the screenshot and nudges it
      until the oracle says it is aligned (:class:`CorrectionLoop`).
    """

    def __init__(
        self,
        oracle: OracleClient | None = None,
        recorder: SessionRecorder | None = None,
        settings: Config | None = None,
    ) -> None:
        self.settings = settings or config
        self.settings.validate_config()
        self.recorder = recorder if recorder is not None else SessionRecorder()
        self.oracle = oracle if oracle is not None else OracleClient(recorder=self.recorder)
        self.nudging = NudgingEngine(self.recorder)
        self.refiner = RecursionController(self.oracle, self.recorder, self.settings)
        self.corrector = CorrectionLoop(self.oracle, self.nudging, self.recorder, self.settings)

    def new_budget(self) -> AnalysisBudget:
        return AnalysisBudget(
            max_api_calls=self.settings.max_api_calls,
            max_depth=self.settings.max_refinement_depth,
        )

    async def locate(
        self,
        source: ImageSource,
        target: str | None = None,
        mode: str = "progressive",
    ) -> LocalizationReport:
        """Run one full analysis.

        Args:
            source: Screenshot as a path, raw bytes or an open image.
            target: Optional description of the element to prioritise.
            mode: ``progressive`` or ``feedback``.

        Raises:
            ValueError: for an unknown *mode*.
            CropGenerationError: when the screenshot cannot be loaded.
            OracleTransportError: when the initial detection call fails.
        """
        if mode not in MODES:
            raise ValueError(f"Unknown mode: {mode}")

        image = load_image(source)
        budget = self.new_budget()
        self.recorder.start_session(mode)
        self.nudging.clear_history()
        self.recorder.add_log(
            "info",
            f"Starting {mode} analysis",
            {"width": image.width, "height": image.height, "target": target},
        )
        log.info(f"Starting {mode} analysis of {image.width}x{image.height} image")

        budget.record_call()
        try:
            detection = await self.oracle.detect_elements(image, target)
        except OracleTransportError:
            self.recorder.end_session(status="failed", api_calls=budget.api_call_count)
            raise

        report = LocalizationReport(
            detections=[],
            analysis_method=mode,
            image_description=detection.image_description,
        )

        if not detection.candidates:
            log.warning("Initial detection found no elements")
            self.recorder.add_log("fallback", "No elements detected", {"response_type": detection.response_type})
        elif mode == "progressive":
            detections, outcomes = await self.refiner.refine(image, detection.candidates, budget)
            report.detections = detections
            report.successful_refinements = sum(1 for o in outcomes if o is RefinementOutcome.ACCEPTED)
            report.fallbacks = sum(1 for o in outcomes if o is RefinementOutcome.NOT_FOUND)
            report.errors = sum(1 for o in outcomes if o is RefinementOutcome.ERROR)
            report.capped = sum(1 for o in outcomes if o in _CAPS)
        else:
            detections = await self.corrector.correct_all(image, detection.candidates, budget)
            report.detections = detections
            report.aligned = self.corrector.summary(detections)["aligned_buttons"]

        report.total_api_calls = budget.api_call_count
        report.elapsed_seconds = budget.elapsed()

        save_debug_overlay(image, report.detections, f"{mode}_final")
        self.recorder.end_session(
            status="completed",
            api_calls=budget.api_call_count,
            detections=len(report.detections),
        )
        log.success(
            f"{mode} analysis finished: {len(report.detections)} element(s), "
            f"{budget.api_call_count} oracle call(s) in {format_duration(report.elapsed_seconds)}"
        )
        log.log_performance(f"{mode}_analysis", report.elapsed_seconds * 1000)
        return report

    def export_debug(self) -> dict[str, Any]:
        """Current session's audit bundle."""
        return self.recorder.export_bundle()

    def save_debug(self, path: str | None = None) -> str | None:
        return self.recorder.save(path)
