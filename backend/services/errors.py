"""Error taxonomy for the foam insert pipeline."""


class FoamInsertError(Exception):
    """Base error. ``category`` is the short code surfaced to clients."""

    category = "internal_error"
    user_message = "Processing failed. Please re-submit the upload."

    def __init__(self, message: str = ""):
        super().__init__(message or self.user_message)


class InvalidCalibration(FoamInsertError):
    """Non-positive or otherwise unusable pixels-per-inch scale."""

    category = "invalid_calibration"
    user_message = "The photo could not be calibrated. Please re-submit with a reference object or a manual scale."


class DegeneratePolygon(FoamInsertError):
    """Fewer than 3 usable points for an operation needing a box or hull."""

    category = "degenerate_polygon"
    user_message = "An outline had too few points to process. Please re-submit the upload."


class UpstreamServiceFailure(FoamInsertError):
    """The vision service errored or returned an unusable payload."""

    category = "upstream_service_failure"
    user_message = "Outline detection is temporarily unavailable. Please re-submit the upload."


class ExportFailure(FoamInsertError):
    """Cut-file generation could not produce valid geometry."""

    category = "export_failure"
    user_message = "The cut file could not be generated. Please re-submit the upload."


class JobTimeout(FoamInsertError):
    """Raised client-side when a status poll exceeds its wait budget."""

    category = "job_timeout"
    user_message = "Processing is taking longer than expected. Check the status again later."


class JobNotFound(FoamInsertError):
    category = "job_not_found"
    user_message = "Job not found."


class InvalidJobTransition(FoamInsertError):
    category = "invalid_transition"


def describe_failure(exc: BaseException) -> dict:
    """Short categorized description of a failure, safe to show to users."""
    if isinstance(exc, FoamInsertError):
        return {
            "error": str(exc),
            "errorCategory": exc.category,
            "message": exc.user_message,
        }
    return {
        "error": str(exc) or exc.__class__.__name__,
        "errorCategory": FoamInsertError.category,
        "message": FoamInsertError.user_message,
    }
