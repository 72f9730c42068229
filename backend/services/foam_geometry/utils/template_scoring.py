"""Shape metrics and template scoring for outline classification."""

from __future__ import annotations

import math
from dataclasses import dataclass
from typing import Dict, List, Optional, Sequence, Tuple

import numpy as np

from services.foam_geometry.models import PointsLike, Template, as_polygon

MIN_MATCH_CONFIDENCE = 30.0
HIGH_CONFIDENCE = 70.0
MAX_MATCHES = 3

ASPECT_WEIGHT, ASPECT_GATE = 40.0, 0.7
COMPLEXITY_WEIGHT, COMPLEXITY_GATE = 30.0, 0.5
FILL_WEIGHT, FILL_GATE = 20.0, 0.5
POINT_COUNT_WEIGHT, POINT_COUNT_GATE = 10.0, 0.5


@dataclass(frozen=True)
class ShapeMetrics:
    aspect_ratio: float
    complexity: float
    fill_ratio: float
    point_count: int
    width: float = 0.0
    height: float = 0.0
    area: float = 0.0
    perimeter: float = 0.0

    def to_dict(self) -> Dict[str, float]:
        return {
            "aspectRatio": self.aspect_ratio,
            "complexity": self.complexity,
            "fillRatio": self.fill_ratio,
            "pointCount": self.point_count,
            "width": self.width,
            "height": self.height,
            "area": self.area,
            "perimeter": self.perimeter,
        }

    @classmethod
    def from_dict(cls, raw: Dict[str, float]) -> "ShapeMetrics":
        return cls(
            aspect_ratio=float(raw["aspectRatio"]),
            complexity=float(raw["complexity"]),
            fill_ratio=float(raw["fillRatio"]),
            point_count=int(raw["pointCount"]),
            width=float(raw.get("width", 0.0)),
            height=float(raw.get("height", 0.0)),
            area=float(raw.get("area", 0.0)),
            perimeter=float(raw.get("perimeter", 0.0)),
        )


@dataclass(frozen=True)
class TemplateMatch:
    template_id: str
    template_name: str
    category: str
    score: float
    matched_on: Tuple[str, ...]

    @property
    def confidence(self) -> int:
        # Half-up rounding of the 0-100 score.
        return int(math.floor(self.score + 0.5))

    def to_dict(self) -> Dict[str, object]:
        return {
            "templateId": self.template_id,
            "templateName": self.template_name,
            "category": self.category,
            "confidence": self.confidence,
            "matchedOn": list(self.matched_on),
        }


def polygon_area(points: np.ndarray) -> float:
    """Absolute shoelace area of a closed polygon."""
    x = points[:, 0]
    y = points[:, 1]
    return float(abs(np.dot(x, np.roll(y, -1)) - np.dot(np.roll(x, -1), y)) / 2.0)


def polygon_perimeter(points: np.ndarray) -> float:
    """Closed-loop perimeter."""
    diffs = np.roll(points, -1, axis=0) - points
    return float(np.sum(np.sqrt(np.sum(diffs ** 2, axis=1))))


def compute_shape_metrics(points: PointsLike) -> ShapeMetrics:
    """Aspect ratio, complexity and fill ratio for one outline."""
    polygon = as_polygon(points)
    if len(polygon) < 3:
        return ShapeMetrics(aspect_ratio=1.0, complexity=0.0, fill_ratio=0.0, point_count=len(polygon))

    arr = np.asarray(polygon, dtype=float)
    width = float(arr[:, 0].max() - arr[:, 0].min())
    height = float(arr[:, 1].max() - arr[:, 1].min())
    area = polygon_area(arr)
    perimeter = polygon_perimeter(arr)
    bbox_area = width * height

    return ShapeMetrics(
        aspect_ratio=width / height if height > 0 else 1.0,
        complexity=perimeter / math.sqrt(area) if area > 0 else 0.0,
        fill_ratio=area / bbox_area if bbox_area > 0 else 0.0,
        point_count=len(polygon),
        width=width,
        height=height,
        area=area,
        perimeter=perimeter,
    )


def score_template(candidate: ShapeMetrics, template: ShapeMetrics) -> Tuple[float, List[str]]:
    """Additive 0-100 score; each term only counts once past its gate."""
    confidence = 0.0
    reasons: List[str] = []

    aspect_score = max(0.0, 1.0 - abs(candidate.aspect_ratio - template.aspect_ratio) / 2.0)
    if aspect_score > ASPECT_GATE:
        confidence += aspect_score * ASPECT_WEIGHT
        reasons.append("aspect_ratio")

    complexity_score = max(0.0, 1.0 - abs(candidate.complexity - template.complexity) / 10.0)
    if complexity_score > COMPLEXITY_GATE:
        confidence += complexity_score * COMPLEXITY_WEIGHT
        reasons.append("complexity")

    fill_score = max(0.0, 1.0 - abs(candidate.fill_ratio - template.fill_ratio) / 0.5)
    if fill_score > FILL_GATE:
        confidence += fill_score * FILL_WEIGHT
        reasons.append("fill_ratio")

    larger = max(candidate.point_count, template.point_count)
    point_ratio = min(candidate.point_count, template.point_count) / larger if larger > 0 else 0.0
    if point_ratio > POINT_COUNT_GATE:
        confidence += point_ratio * POINT_COUNT_WEIGHT
        reasons.append("point_count")

    return confidence, reasons


def match_shape(
    points: PointsLike,
    templates: Sequence[Template],
    template_metrics: Optional[Dict[str, ShapeMetrics]] = None,
    limit: int = MAX_MATCHES,
) -> List[TemplateMatch]:
    """Rank templates for one shape, best first, keeping the top ``limit``.

    ``template_metrics`` lets callers reuse metrics across several shapes.
    Usage counts never influence the ranking.
    """
    candidate = compute_shape_metrics(points)
    results: List[TemplateMatch] = []
    for template in templates:
        metrics = None
        if template_metrics is not None:
            metrics = template_metrics.get(template.id)
        if metrics is None:
            metrics = compute_shape_metrics(template.points)
        score, reasons = score_template(candidate, metrics)
        if score > MIN_MATCH_CONFIDENCE:
            results.append(
                TemplateMatch(
                    template_id=template.id,
                    template_name=template.name,
                    category=template.category,
                    score=score,
                    matched_on=tuple(reasons),
                )
            )

    # Stable sort keeps library order for equal scores.
    results.sort(key=lambda match: match.score, reverse=True)
    return results[:limit]
