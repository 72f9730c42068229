"""JSON-backed library of approved outline templates."""

from __future__ import annotations

import json
import logging
import threading
from datetime import datetime
from pathlib import Path
from typing import Any, Dict, List, Optional
from uuid import uuid4

from services.foam_geometry.models import TEMPLATE_METRIC_KEYS, PointsLike, Template, as_polygon
from services.foam_geometry.utils.template_scoring import ShapeMetrics, compute_shape_metrics

logger = logging.getLogger(__name__)


class TemplateLibrary:
    """Read-mostly template store.

    The only write from the matching path is the usage counter, done as a
    locked read-modify-write of the JSON file.
    """

    def __init__(self, path: Path):
        self.path = Path(path)
        self._lock = threading.Lock()

    def _load_json_object(self) -> Dict[str, Any]:
        if not self.path.exists():
            return {"templates": []}
        with self.path.open("r", encoding="utf-8") as f:
            raw = json.load(f)
        if not isinstance(raw, dict):
            raise ValueError(f"Expected JSON object at {self.path}")
        return raw

    def _persist(self, templates: List[Template]) -> None:
        self.path.parent.mkdir(parents=True, exist_ok=True)
        payload = {
            "updated_at": datetime.now().isoformat(),
            "template_count": len(templates),
            "templates": [template.to_dict() for template in templates],
        }
        tmp_path = self.path.with_suffix(".tmp")
        with tmp_path.open("w", encoding="utf-8") as f:
            json.dump(payload, f, indent=2)
        tmp_path.replace(self.path)

    def _read_templates(self) -> List[Template]:
        rows = self._load_json_object().get("templates", [])
        if not isinstance(rows, list):
            raise ValueError(f"templates must be a list in {self.path}")
        return [Template.from_dict(row) for row in rows if isinstance(row, dict)]

    def list_templates(self, category: Optional[str] = None) -> List[Template]:
        """All templates, most used first, optionally filtered by category."""
        with self._lock:
            templates = self._read_templates()
        if category:
            templates = [t for t in templates if t.category == category]
        return sorted(templates, key=lambda t: t.usage_count, reverse=True)

    def get(self, template_id: str) -> Optional[Template]:
        with self._lock:
            for template in self._read_templates():
                if template.id == template_id:
                    return template
        return None

    def add_template(
        self,
        name: str,
        category: str,
        points: PointsLike,
        training_notes: str = "",
        source_design_id: str = "",
    ) -> Template:
        polygon = as_polygon(points)
        if len(polygon) < 3:
            raise ValueError("A template needs at least 3 points")
        template = Template(
            id=uuid4().hex,
            name=name,
            category=category or "other",
            points=polygon,
            training_notes=training_notes,
            source_design_id=source_design_id,
            created_at=datetime.now().isoformat(),
            metrics=compute_shape_metrics(polygon).to_dict(),
        )
        with self._lock:
            templates = self._read_templates()
            templates.append(template)
            self._persist(templates)
        logger.info("Template %s (%s) added to library", template.id, template.name)
        return template

    def increment_usage(self, template_id: str) -> bool:
        """Bump the usage counter once. Returns False if the template is gone."""
        with self._lock:
            templates = self._read_templates()
            for template in templates:
                if template.id == template_id:
                    template.usage_count += 1
                    self._persist(templates)
                    return True
        return False

    @staticmethod
    def metrics_for(templates: List[Template]) -> Dict[str, ShapeMetrics]:
        """Stored metrics where complete, recomputed from the points otherwise."""
        metrics = {}
        for template in templates:
            if all(key in template.metrics for key in TEMPLATE_METRIC_KEYS):
                metrics[template.id] = ShapeMetrics.from_dict(template.metrics)
            else:
                metrics[template.id] = compute_shape_metrics(template.points)
        return metrics
