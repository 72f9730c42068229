"""Durable record of processing jobs, so queued work survives a restart."""

from __future__ import annotations

import json
import threading
from datetime import datetime
from pathlib import Path
from typing import Any, Dict

from services.processing.jobs import ProcessingJob


class JobStore:
    def __init__(self, path: Path):
        self.path = Path(path)
        self._lock = threading.Lock()

    def load_all(self) -> Dict[str, ProcessingJob]:
        with self._lock:
            if not self.path.exists():
                return {}
            with self.path.open("r", encoding="utf-8") as f:
                raw = json.load(f)
        if not isinstance(raw, dict):
            raise ValueError(f"Expected JSON object at {self.path}")
        rows = raw.get("jobs", {})
        return {job_id: ProcessingJob.from_dict(row) for job_id, row in rows.items() if isinstance(row, dict)}

    def save(self, row: Dict[str, Any]) -> None:
        """Persist one job snapshot (``ProcessingJob.to_dict()``)."""
        with self._lock:
            rows = {}
            if self.path.exists():
                with self.path.open("r", encoding="utf-8") as f:
                    raw = json.load(f)
                if isinstance(raw, dict) and isinstance(raw.get("jobs"), dict):
                    rows = raw["jobs"]
            rows[str(row["id"])] = row
            self.path.parent.mkdir(parents=True, exist_ok=True)
            tmp_path = self.path.with_suffix(".tmp")
            with tmp_path.open("w", encoding="utf-8") as f:
                json.dump({"updated_at": datetime.now().isoformat(), "jobs": rows}, f, indent=2)
            tmp_path.replace(self.path)
