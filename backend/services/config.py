"""Environment-driven settings for the processing pipeline."""

from __future__ import annotations

import logging
import os
from dataclasses import dataclass
from pathlib import Path
from typing import Optional

logger = logging.getLogger(__name__)

DEFAULT_DATA_DIR = Path(__file__).resolve().parents[1] / "data"


@dataclass(frozen=True)
class PipelineSettings:
    """Immutable pipeline configuration."""

    data_dir: Path = DEFAULT_DATA_DIR
    worker_concurrency: int = 2
    max_attempts: int = 3
    backoff_base_seconds: float = 1.0
    default_image_width: int = 1920
    default_image_height: int = 1080
    default_pixels_per_inch: float = 72.0
    vision_endpoint: Optional[str] = None
    vision_api_key: Optional[str] = None
    vision_timeout_seconds: float = 120.0
    status_poll_timeout_seconds: float = 300.0
    # Inches added around outer cuts and taken off voids in pipeline exports.
    export_clearance: float = 0.1
    public_base_url: str = "/files"
    log_level: str = "INFO"


def _env_int(name: str, default: int, minimum: int = 1) -> int:
    raw = os.environ.get(name)
    if raw is None or raw == "":
        return default
    try:
        value = int(raw)
    except ValueError:
        logger.warning("Ignoring %s=%r: not an integer, using %s", name, raw, default)
        return default
    if value < minimum:
        logger.warning("Ignoring %s=%r: must be >= %s, using %s", name, raw, minimum, default)
        return default
    return value


def _env_float(name: str, default: float, allow_zero: bool = False) -> float:
    raw = os.environ.get(name)
    if raw is None or raw == "":
        return default
    try:
        value = float(raw)
    except ValueError:
        logger.warning("Ignoring %s=%r: not a number, using %s", name, raw, default)
        return default
    if value < 0 or (value == 0 and not allow_zero):
        logger.warning("Ignoring %s=%r: must be positive, using %s", name, raw, default)
        return default
    return value


def load_settings() -> PipelineSettings:
    """Build settings from ``FOAMCUT_*`` environment variables."""
    data_dir = os.environ.get("FOAMCUT_DATA_DIR")
    settings = PipelineSettings(
        data_dir=Path(data_dir) if data_dir else DEFAULT_DATA_DIR,
        worker_concurrency=_env_int("FOAMCUT_WORKER_CONCURRENCY", 2),
        max_attempts=_env_int("FOAMCUT_MAX_ATTEMPTS", 3),
        backoff_base_seconds=_env_float("FOAMCUT_BACKOFF_BASE_SECONDS", 1.0),
        default_image_width=_env_int("FOAMCUT_DEFAULT_IMAGE_WIDTH", 1920),
        default_image_height=_env_int("FOAMCUT_DEFAULT_IMAGE_HEIGHT", 1080),
        default_pixels_per_inch=_env_float("FOAMCUT_DEFAULT_PIXELS_PER_INCH", 72.0),
        vision_endpoint=os.environ.get("FOAMCUT_VISION_ENDPOINT") or None,
        vision_api_key=os.environ.get("FOAMCUT_VISION_API_KEY") or None,
        vision_timeout_seconds=_env_float("FOAMCUT_VISION_TIMEOUT_SECONDS", 120.0),
        status_poll_timeout_seconds=_env_float("FOAMCUT_STATUS_POLL_TIMEOUT_SECONDS", 300.0),
        export_clearance=_env_float("FOAMCUT_EXPORT_CLEARANCE", 0.1, allow_zero=True),
        public_base_url=os.environ.get("FOAMCUT_PUBLIC_BASE_URL", "/files").rstrip("/") or "/files",
        log_level=os.environ.get("FOAMCUT_LOG_LEVEL", "INFO").upper(),
    )
    if settings.vision_endpoint is None:
        logger.warning("FOAMCUT_VISION_ENDPOINT is not set; outline tracing jobs will fail")
    return settings


_settings: Optional[PipelineSettings] = None


def get_settings() -> PipelineSettings:
    """Get the process-wide settings instance."""
    global _settings
    if _settings is None:
        _settings = load_settings()
    return _settings
