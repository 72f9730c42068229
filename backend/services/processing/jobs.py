"""Processing job state machine."""

from __future__ import annotations

from dataclasses import dataclass, field
from datetime import datetime
from enum import Enum
from typing import Any, Dict, FrozenSet, Optional

from services.errors import InvalidJobTransition


class JobState(str, Enum):
    QUEUED = "queued"
    ACTIVE = "active"
    TRACING = "tracing"
    GENERATING = "generating"
    COMPLETED = "completed"
    FAILED = "failed"

    @property
    def is_terminal(self) -> bool:
        return self in TERMINAL_STATES


TERMINAL_STATES: FrozenSet[JobState] = frozenset({JobState.COMPLETED, JobState.FAILED})

TRANSITIONS: Dict[JobState, FrozenSet[JobState]] = {
    JobState.QUEUED: frozenset({JobState.ACTIVE, JobState.FAILED}),
    JobState.ACTIVE: frozenset({JobState.TRACING, JobState.FAILED}),
    JobState.TRACING: frozenset({JobState.GENERATING, JobState.FAILED}),
    JobState.GENERATING: frozenset({JobState.COMPLETED, JobState.FAILED}),
    JobState.COMPLETED: frozenset(),
    JobState.FAILED: frozenset(),
}

# Progress percentage reported on entering each state.
STATE_PROGRESS: Dict[JobState, float] = {
    JobState.QUEUED: 0.0,
    JobState.ACTIVE: 10.0,
    JobState.TRACING: 60.0,
    JobState.GENERATING: 80.0,
    JobState.COMPLETED: 100.0,
}


@dataclass
class CalibrationHint:
    pixels_per_inch: Optional[float] = None
    image_width: Optional[int] = None
    image_height: Optional[int] = None

    @classmethod
    def from_dict(cls, raw: Optional[Dict[str, Any]]) -> Optional["CalibrationHint"]:
        if not raw:
            return None
        ppi = raw.get("pixelsPerInch")
        width = raw.get("imageWidth")
        height = raw.get("imageHeight")
        return cls(
            pixels_per_inch=float(ppi) if ppi is not None else None,
            image_width=int(width) if width is not None else None,
            image_height=int(height) if height is not None else None,
        )


@dataclass
class ProcessingJob:
    id: str
    upload_id: str
    image_ref: str
    calibration_hint: Optional[CalibrationHint] = None
    state: JobState = JobState.QUEUED
    progress: float = 0.0
    result: Optional[Dict[str, Any]] = None
    error: Optional[str] = None
    error_category: Optional[str] = None
    error_message: Optional[str] = None
    attempts: int = 0
    created_at: str = field(default_factory=lambda: datetime.now().isoformat())
    updated_at: str = field(default_factory=lambda: datetime.now().isoformat())

    def transition(self, new_state: JobState, progress: Optional[float] = None) -> None:
        """Move along the transition table; progress never decreases."""
        if new_state not in TRANSITIONS[self.state]:
            raise InvalidJobTransition(f"Job {self.id}: {self.state.value} -> {new_state.value} is not allowed")
        self.state = new_state
        target = STATE_PROGRESS.get(new_state, self.progress) if progress is None else progress
        self.progress = max(self.progress, float(target))
        self.updated_at = datetime.now().isoformat()

    def report_progress(self, percent: float) -> None:
        if self.state.is_terminal:
            raise InvalidJobTransition(f"Job {self.id} is {self.state.value}; progress is frozen")
        self.progress = max(self.progress, min(float(percent), 99.0))
        self.updated_at = datetime.now().isoformat()

    def complete(self, result: Dict[str, Any]) -> None:
        self.transition(JobState.COMPLETED)
        self.result = result

    def fail(self, error: str, category: str, message: str) -> None:
        self.transition(JobState.FAILED, progress=self.progress)
        self.error = error
        self.error_category = category
        self.error_message = message

    def status(self) -> Dict[str, Any]:
        payload: Dict[str, Any] = {
            "jobId": self.id,
            "uploadId": self.upload_id,
            "state": self.state.value,
            "progressPercent": self.progress,
            "attempts": self.attempts,
        }
        if self.state is JobState.COMPLETED:
            payload["result"] = self.result
        elif self.state is JobState.FAILED:
            payload["error"] = self.error
            payload["errorCategory"] = self.error_category
            payload["message"] = self.error_message
        return payload

    def to_dict(self) -> Dict[str, Any]:
        hint = self.calibration_hint
        return {
            "id": self.id,
            "uploadId": self.upload_id,
            "imageRef": self.image_ref,
            "calibrationHint": None
            if hint is None
            else {"pixelsPerInch": hint.pixels_per_inch, "imageWidth": hint.image_width, "imageHeight": hint.image_height},
            "state": self.state.value,
            "progress": self.progress,
            "result": self.result,
            "error": self.error,
            "errorCategory": self.error_category,
            "errorMessage": self.error_message,
            "attempts": self.attempts,
            "createdAt": self.created_at,
            "updatedAt": self.updated_at,
        }

    @classmethod
    def from_dict(cls, raw: Dict[str, Any]) -> "ProcessingJob":
        return cls(
            id=str(raw["id"]),
            upload_id=str(raw["uploadId"]),
            image_ref=str(raw.get("imageRef", "")),
            calibration_hint=CalibrationHint.from_dict(raw.get("calibrationHint")),
            state=JobState(raw.get("state", JobState.QUEUED.value)),
            progress=float(raw.get("progress", 0.0) or 0.0),
            result=raw.get("result"),
            error=raw.get("error"),
            error_category=raw.get("errorCategory"),
            error_message=raw.get("errorMessage"),
            attempts=int(raw.get("attempts", 0) or 0),
            created_at=str(raw.get("createdAt", "")),
            updated_at=str(raw.get("updatedAt", "")),
        )
