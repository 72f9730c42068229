"""Upload records persisted as one JSON document."""

from __future__ import annotations

import json
import logging
import threading
from datetime import datetime
from enum import Enum
from pathlib import Path
from typing import Any, Dict, Optional

logger = logging.getLogger(__name__)


class UploadStatus(str, Enum):
    PENDING = "PENDING"
    PROCESSING = "PROCESSING"
    PROCESSED = "PROCESSED"
    FAILED = "FAILED"


class UploadStore:
    def __init__(self, path: Path):
        self.path = Path(path)
        self._lock = threading.Lock()

    def _load(self) -> Dict[str, Dict[str, Any]]:
        if not self.path.exists():
            return {}
        with self.path.open("r", encoding="utf-8") as f:
            raw = json.load(f)
        if not isinstance(raw, dict):
            raise ValueError(f"Expected JSON object at {self.path}")
        uploads = raw.get("uploads", {})
        return uploads if isinstance(uploads, dict) else {}

    def _persist(self, uploads: Dict[str, Dict[str, Any]]) -> None:
        self.path.parent.mkdir(parents=True, exist_ok=True)
        tmp_path = self.path.with_suffix(".tmp")
        with tmp_path.open("w", encoding="utf-8") as f:
            json.dump({"updated_at": datetime.now().isoformat(), "uploads": uploads}, f, indent=2)
        tmp_path.replace(self.path)

    def _update(self, upload_id: str, **fields: Any) -> Dict[str, Any]:
        with self._lock:
            uploads = self._load()
            record = uploads.setdefault(upload_id, {"id": upload_id, "status": UploadStatus.PENDING.value})
            record.update(fields)
            record["updatedAt"] = datetime.now().isoformat()
            self._persist(uploads)
            return dict(record)

    def get(self, upload_id: str) -> Optional[Dict[str, Any]]:
        with self._lock:
            record = self._load().get(upload_id)
        return dict(record) if record is not None else None

    def register(self, upload_id: str, image_ref: str) -> Dict[str, Any]:
        existing = self.get(upload_id)
        if existing is not None:
            return existing
        return self._update(upload_id, imageUrl=image_ref, status=UploadStatus.PENDING.value)

    def mark_processing(self, upload_id: str, job_id: str, pixels_per_inch: Optional[float] = None) -> Dict[str, Any]:
        return self._update(
            upload_id,
            status=UploadStatus.PROCESSING.value,
            jobId=job_id,
            pixelsPerInch=pixels_per_inch,
            calibrationMethod="manual" if pixels_per_inch else None,
            failureReason=None,
        )

    def mark_processed(
        self,
        upload_id: str,
        artifacts: Dict[str, Any],
        calibration: Dict[str, Any],
        gear_details: Any,
    ) -> Dict[str, Any]:
        bounds = artifacts.get("bounds") or {}
        return self._update(
            upload_id,
            status=UploadStatus.PROCESSED.value,
            outlineDxfUrl=artifacts.get("dxfUrl"),
            outlineDxfKey=artifacts.get("dxfKey"),
            outlineSvgUrl=artifacts.get("svgUrl"),
            outlinePngUrl=artifacts.get("pngUrl"),
            width=bounds.get("width"),
            height=bounds.get("height"),
            pixelsPerInch=calibration.get("pixelsPerInch"),
            calibrationMethod=calibration.get("method"),
            gearDetails=gear_details,
        )

    def mark_failed(self, upload_id: str, reason: str) -> Dict[str, Any]:
        logger.info("Upload %s marked FAILED: %s", upload_id, reason)
        return self._update(upload_id, status=UploadStatus.FAILED.value, failureReason=reason)
