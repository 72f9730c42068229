"""Upload processing: job state machine, persistence and the worker pool."""

from services.processing.job_store import JobStore
from services.processing.jobs import CalibrationHint, JobState, ProcessingJob
from services.processing.orchestrator import ProcessingOrchestrator
from services.processing.upload_store import UploadStatus, UploadStore
from services.processing.vision_client import HttpVisionClient, TraceResult, VisionClient, parse_trace_payload

__all__ = [
    "CalibrationHint",
    "HttpVisionClient",
    "JobState",
    "JobStore",
    "ProcessingJob",
    "ProcessingOrchestrator",
    "TraceResult",
    "UploadStatus",
    "UploadStore",
    "VisionClient",
    "parse_trace_payload",
]
