"""Read-only catalog of case interiors."""

from __future__ import annotations

import json
import logging
from pathlib import Path
from typing import List, Optional

from services.foam_geometry.models import CaseEnvelope

logger = logging.getLogger(__name__)


class CaseCatalog:
    def __init__(self, path: Path):
        self.path = Path(path)

    def list_cases(self) -> List[CaseEnvelope]:
        if not self.path.exists():
            logger.warning("Case catalog %s does not exist", self.path)
            return []
        with self.path.open("r", encoding="utf-8") as f:
            raw = json.load(f)
        rows = raw.get("cases", []) if isinstance(raw, dict) else raw
        if not isinstance(rows, list):
            raise ValueError(f"Expected a list of cases in {self.path}")
        return [CaseEnvelope.from_dict(row) for row in rows if isinstance(row, dict)]

    def get(self, case_id: str) -> Optional[CaseEnvelope]:
        for envelope in self.list_cases():
            if envelope.id == case_id:
                return envelope
        return None
