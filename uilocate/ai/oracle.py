"""Oracle client: prompt + image in, typed result out.

The client is the only component that talks to the transport. It owns the
per-call-site parse retry budget and the conversation log; it makes no
localization decisions of its own.
"""

from __future__ import annotations

from typing import Any

from PIL import Image

from ..core.budget import AnalysisBudget
from ..core.config import config
from ..core.errors import OracleParseError, OracleTransportError
from ..core.logger import log
from ..core.recorder import NullRecorder, SessionRecorder
from ..vision.imaging import encode_image
from ..vision.models import AnalysisResult, BoundingBox, CandidateDetection, DetectionResult
from .analysis_parser import parse_alignment_response, parse_systematic_response
from .openai_client import OracleTransport, get_openai_transport
from .prompt_builder import (
    build_alignment_prompt,
    build_contextual_prompt,
    build_detection_prompt,
    build_systematic_prompt,
)
from .response_parser import parse_detection_response

__all__ = ["OracleClient"]


def _detection_dict(result: DetectionResult) -> dict[str, Any]:
    return {
        "detected_buttons": [c.to_dict() for c in result.candidates],
        "analysis_summary": {
            "total_elements_found": result.total_elements_found,
            "image_description": result.image_description,
            "confidence": result.confidence,
        },
    }


class OracleClient:
    """Adapter between the localization engine and a vision transport."""

    def __init__(
        self,
        transport: OracleTransport | None = None,
        recorder: SessionRecorder | None = None,
        max_retries: int | None = None,
    ) -> None:
        self.transport = transport if transport is not None else get_openai_transport()
        self.recorder = recorder if recorder is not None else NullRecorder()
        self.max_retries = config.oracle_max_retries if max_retries is None else max_retries

    # ------------------------------------------------------------------
    # Detection
    # ------------------------------------------------------------------
    async def _detect(
        self,
        image: Image.Image,
        prompt: str,
        kind: str,
        target: str | None,
        context: dict[str, Any],
    ) -> DetectionResult:
        try:
            raw = await self.transport.describe_elements(encode_image(image), prompt)
        except OracleTransportError as exc:
            index = self.recorder.record_conversation(
                kind, target, prompt, "", None, False, "transport_error", context=context
            )
            log.error(f"ORACLE CALL #{index} {kind} failed: {exc}")
            raise

        result = parse_detection_response(raw)
        index = self.recorder.record_conversation(
            kind,
            target,
            prompt,
            raw,
            _detection_dict(result),
            result.parsing_successful,
            result.response_type,
            context=context,
        )
        log.log_oracle_call(kind, index, target)
        self.recorder.add_log(
            "api-response",
            f"{kind} returned {len(result.candidates)} element(s)",
            {"call_index": index, "response_type": result.response_type},
        )
        return result

    async def detect_elements(self, image: Image.Image, target: str | None = None) -> DetectionResult:
        """Ask for every clickable element in the full image.

        Raises:
            OracleTransportError: when the transport gives up.
        """
        context = {"width": image.width, "height": image.height}
        return await self._detect(image, build_detection_prompt(target), "initial_detection", target, context)

    async def detect_with_context(
        self,
        image: Image.Image,
        candidate: CandidateDetection,
        depth: int = 0,
    ) -> DetectionResult:
        """Ask for one named candidate inside a cropped image."""
        context = {"width": image.width, "height": image.height, "depth": depth}
        return await self._detect(
            image,
            build_contextual_prompt(candidate),
            "contextual_detection",
            candidate.reference_name,
            context,
        )

    # ------------------------------------------------------------------
    # Correction analyses
    # ------------------------------------------------------------------
    @staticmethod
    def _require_parsed(
        kind: str,
        candidate: CandidateDetection,
        result: AnalysisResult,
        raw: str,
    ) -> AnalysisResult:
        if not result.parsing_successful:
            raise OracleParseError(
                f"{kind} for {candidate.reference_name} unparseable ({result.response_type})",
                raw_response=raw,
            )
        return result

    async def _analyze(
        self,
        kind: str,
        image: Image.Image,
        candidate: CandidateDetection,
        build_prompt: Any,
        parse: Any,
        button_number: int,
        budget: AnalysisBudget | None,
    ) -> AnalysisResult:
        image_b64 = encode_image(image)
        total_attempts = self.max_retries + 1
        last_error = ""
        last_result: AnalysisResult | None = None

        for attempt in range(1, total_attempts + 1):
            if budget is not None:
                if budget.exhausted:
                    log.warning(f"{kind} for {candidate.reference_name}: API call limit reached before attempt {attempt}")
                    break
                budget.record_call()

            prompt = build_prompt(attempt)
            context = {"button_number": button_number, "attempt": attempt}
            try:
                raw = await self.transport.describe_elements(image_b64, prompt)
            except OracleTransportError as exc:
                last_error = str(exc)
                self.recorder.record_conversation(
                    kind, candidate.reference_name, prompt, "", None, False, "transport_error",
                    attempt=attempt, context=context,
                )
                log.warning(f"{kind} attempt {attempt}/{total_attempts} failed: {exc}")
                continue

            result = parse(raw, button_number)
            index = self.recorder.record_conversation(
                kind,
                candidate.reference_name,
                prompt,
                raw,
                result.as_dict(),
                result.parsing_successful,
                result.response_type,
                attempt=attempt,
                context=context,
            )
            log.log_oracle_call(kind, index, candidate.reference_name)

            try:
                return self._require_parsed(kind, candidate, result, raw)
            except OracleParseError as exc:
                last_result = result
                last_error = str(exc)
                if attempt < total_attempts:
                    log.warning(f"{exc}; retrying")

        if last_result is not None:
            # Out of attempts or budget: accept whatever the parser extracted
            log.warning(f"{last_error}; accepting degraded result")
            return last_result

        log.error(f"{kind} for {candidate.reference_name} degraded after {total_attempts} attempts: {last_error}")
        return AnalysisResult(
            parsing_successful=False,
            response_type=f"{kind.split('_')[0]}_error",
            confidence=25,
            accuracy=25,
        )

    async def analyze_systematic(
        self,
        overlay: Image.Image,
        candidate: CandidateDetection,
        bbox: BoundingBox,
        button_number: int = 1,
        budget: AnalysisBudget | None = None,
    ) -> AnalysisResult:
        """Overlap/direction/quadrant judgement of *bbox* drawn on *overlay*.

        Every request, parse retries included, is charged to *budget* when one
        is given; retries stop once it is exhausted. Never raises for transport
        or parse failures: after the retry budget the result is a degraded
        ``systematic_error`` with confidence 25.
        """
        return await self._analyze(
            "systematic_analysis",
            overlay,
            candidate,
            lambda attempt: build_systematic_prompt(candidate, bbox, attempt),
            parse_systematic_response,
            button_number,
            budget,
        )

    async def analyze_alignment(
        self,
        overlay: Image.Image,
        candidate: CandidateDetection,
        button_number: int = 1,
        budget: AnalysisBudget | None = None,
    ) -> AnalysisResult:
        """Yes/no alignment judgement; degrades to ``alignment_error``."""
        return await self._analyze(
            "alignment_check",
            overlay,
            candidate,
            lambda attempt: build_alignment_prompt(candidate, attempt),
            parse_alignment_response,
            button_number,
            budget,
        )
