"""In-memory session recorder for the structured debug/audit export.

Ambient logging goes through :mod:`uilocate.core.logger`. The recorder is the
separate audit trail: typed event log, oracle conversations, nudge events and
crop metadata for one analysis session, exportable as a single JSON bundle.
Components receive a recorder instance; tests pass :class:`NullRecorder`.
"""

from __future__ import annotations

import os
from datetime import datetime, timezone
from typing import Any

from ..utils.file_utils import get_timestamp, save_json
from ..vision.models import NudgeEvent
from .config import config
from .logger import log

__all__ = ["SessionRecorder", "NullRecorder", "LOG_KINDS"]

LOG_KINDS = (
    "info",
    "api-call",
    "api-response",
    "crop",
    "math",
    "coverage",
    "decision",
    "success",
    "fallback",
    "error",
    "refine",
    "nudge",
)


def _now() -> str:
    return datetime.now(timezone.utc).isoformat()


class SessionRecorder:
    """Append-only record of one analysis session."""

    def __init__(self) -> None:
        self.logs: list[dict[str, Any]] = []
        self.conversations: list[dict[str, Any]] = []
        self.nudging_events: list[dict[str, Any]] = []
        self.slices: list[dict[str, Any]] = []
        self.session: dict[str, Any] = {}
        self._call_index = 0

    # ------------------------------------------------------------------
    # Session lifecycle
    # ------------------------------------------------------------------
    def start_session(self, mode: str) -> None:
        """Reset the recorder and open a new session for *mode*."""
        self.clear()
        self.session = {
            "mode": mode,
            "start_time": _now(),
            "end_time": None,
            "total_api_calls": 0,
            "total_nudges": 0,
        }

    def end_session(self, **extra: Any) -> None:
        """Close the session, stamping end time, counters and *extra* metadata."""
        if not self.session:
            return
        self.session["end_time"] = _now()
        self.session["total_api_calls"] = len(self.conversations)
        self.session["total_nudges"] = len(self.nudging_events)
        self.session.update(extra)

    # ------------------------------------------------------------------
    # Recording
    # ------------------------------------------------------------------
    def add_log(self, kind: str, message: str, data: dict[str, Any] | None = None) -> None:
        """Append a typed event to the session log."""
        if kind not in LOG_KINDS:
            log.debug(f"Unknown recorder log kind: {kind}")
        self.logs.append(
            {"timestamp": _now(), "type": kind, "message": message, "data": data or {}}
        )

    def record_conversation(
        self,
        kind: str,
        target: str | None,
        prompt: str,
        raw_response: str,
        parsed: dict[str, Any] | None,
        parsing_successful: bool,
        response_type: str,
        attempt: int = 1,
        context: dict[str, Any] | None = None,
    ) -> int:
        """Append one oracle request/response pair and return its call index."""
        self._call_index += 1
        self.conversations.append(
            {
                "call_index": self._call_index,
                "timestamp": _now(),
                "kind": kind,
                "target": target,
                "attempt": attempt,
                "prompt": prompt,
                "prompt_length": len(prompt),
                "raw_response": raw_response,
                "response_length": len(raw_response),
                "parsed_result": parsed,
                "parsing_successful": parsing_successful,
                "response_type": response_type,
                "context": context or {},
            }
        )
        return self._call_index

    def record_nudge(self, event: NudgeEvent) -> None:
        self.nudging_events.append(event.to_dict())

    def add_slice(self, slice_info: dict[str, Any]) -> None:
        self.slices.append(dict(slice_info))

    # ------------------------------------------------------------------
    # Reporting
    # ------------------------------------------------------------------
    def summary(self) -> dict[str, Any]:
        """Counts by log kind, API calls, errors and first/last timestamps."""
        types: dict[str, int] = {}
        api_calls = 0
        errors = 0
        for entry in self.logs:
            types[entry["type"]] = types.get(entry["type"], 0) + 1
            if entry["type"] in ("api-call", "api-response"):
                api_calls += 1
            if entry["type"] == "error":
                errors += 1

        return {
            "total_logs": len(self.logs),
            "types": types,
            "api_calls": api_calls,
            "errors": errors,
            "conversations": len(self.conversations),
            "nudges": len(self.nudging_events),
            "first_log": self.logs[0]["timestamp"] if self.logs else None,
            "last_log": self.logs[-1]["timestamp"] if self.logs else None,
        }

    def export_bundle(self) -> dict[str, Any]:
        """Return the debug export bundle."""
        return {
            "session_metadata": dict(self.session),
            "llm_conversations": list(self.conversations),
            "nudging_events": list(self.nudging_events),
            "logs": list(self.logs),
            "slice_visualizations": list(self.slices),
        }

    def save(self, path: str | None = None) -> str | None:
        """Write the bundle as JSON; return the path on success."""
        if path is None:
            path = os.path.join(
                config.get_debug_export_path(), f"uilocate_debug_{get_timestamp()}.json"
            )
        if save_json(self.export_bundle(), path):
            log.info(f"Debug bundle exported to {path}")
            return path
        return None

    def clear(self) -> None:
        """Drop everything recorded so far."""
        self.logs.clear()
        self.conversations.clear()
        self.nudging_events.clear()
        self.slices.clear()
        self.session = {}
        self._call_index = 0


class NullRecorder(SessionRecorder):
    """Recorder that keeps nothing except the call index."""

    def add_log(self, kind: str, message: str, data: dict[str, Any] | None = None) -> None:
        return None

    def record_conversation(self, *args: Any, **kwargs: Any) -> int:
        self._call_index += 1
        return self._call_index

    def record_nudge(self, event: NudgeEvent) -> None:
        return None

    def add_slice(self, slice_info: dict[str, Any]) -> None:
        return None
