"""Value types shared by the foam insert geometry stages."""

from __future__ import annotations

from dataclasses import dataclass, field
from enum import Enum
from typing import Any, Dict, List, Optional, Sequence, Tuple

from services.errors import InvalidCalibration

Point = Tuple[float, float]
Polygon = List[Point]
PointsLike = Sequence[Sequence[float]]


def as_polygon(points: PointsLike) -> Polygon:
    """Normalise ``[[x, y], ...]`` / ``[(x, y), ...]`` / ``[{x, y}, ...]`` into a list of tuples."""
    polygon: Polygon = []
    for pt in points:
        if isinstance(pt, dict):
            polygon.append((float(pt["x"]), float(pt["y"])))
        else:
            polygon.append((float(pt[0]), float(pt[1])))
    return polygon


class CalibrationMethod(str, Enum):
    REFERENCE_OBJECT = "reference-object"
    MANUAL = "manual"


@dataclass(frozen=True)
class Calibration:
    """Pixels-per-inch scale established once per photograph."""

    pixels_per_inch: float
    method: CalibrationMethod = CalibrationMethod.MANUAL

    def __post_init__(self) -> None:
        if not (self.pixels_per_inch > 0):
            raise InvalidCalibration(f"pixelsPerInch must be positive, got {self.pixels_per_inch}")


@dataclass(frozen=True)
class ReferenceMeasurement:
    """A reference object detected in a photo, with its box in percent of the image."""

    reference_object: str
    box_width_percent: float
    box_height_percent: float
    known_dimension: float
    measure_axis: str = "width"
    confidence: float = 0.0


@dataclass
class InnerPath:
    id: str
    points: Polygon


@dataclass
class Outline:
    """One gear item: outer boundary, voids, cut depth and placement."""

    id: str
    outer: Polygon
    inners: List[InnerPath] = field(default_factory=list)
    depth: float = 0.0
    position: Point = (0.0, 0.0)
    rotation: float = 0.0  # degrees, about the local origin
    item_name: str = ""
    category: str = "other"

    @classmethod
    def from_dict(cls, raw: Dict[str, Any]) -> "Outline":
        inner_raw = raw.get("innerPaths") or raw.get("inners") or []
        inners = []
        for index, inner in enumerate(inner_raw):
            if isinstance(inner, dict) and "points" in inner:
                inners.append(InnerPath(id=str(inner.get("id", f"inner_{index}")), points=as_polygon(inner["points"])))
            else:
                inners.append(InnerPath(id=f"inner_{index}", points=as_polygon(inner)))
        position = raw.get("position") or (0.0, 0.0)
        if isinstance(position, dict):
            position = (float(position.get("x", 0.0)), float(position.get("y", 0.0)))
        return cls(
            id=str(raw.get("id", "")),
            outer=as_polygon(raw.get("outerPath") or raw.get("outer") or []),
            inners=inners,
            depth=float(raw.get("depth", 0.0) or 0.0),
            position=(float(position[0]), float(position[1])),
            rotation=float(raw.get("rotation", 0.0) or 0.0),
            item_name=str(raw.get("itemName", "") or ""),
            category=str(raw.get("category", "other") or "other"),
        )

    def to_dict(self) -> Dict[str, Any]:
        return {
            "id": self.id,
            "itemName": self.item_name,
            "category": self.category,
            "outerPath": [[x, y] for x, y in self.outer],
            "innerPaths": [{"id": inner.id, "points": [[x, y] for x, y in inner.points]} for inner in self.inners],
            "depth": self.depth,
            "position": [self.position[0], self.position[1]],
            "rotation": self.rotation,
        }


TEMPLATE_METRIC_KEYS = ("width", "height", "aspectRatio", "pointCount", "complexity", "fillRatio", "area", "perimeter")


@dataclass
class Template:
    """A previously approved outline used for matching."""

    id: str
    name: str
    category: str
    points: Polygon
    usage_count: int = 0
    training_notes: str = ""
    source_design_id: str = ""
    created_at: str = ""
    # Shape metrics captured at approval time, keyed as in TEMPLATE_METRIC_KEYS.
    metrics: Dict[str, Any] = field(default_factory=dict)

    @classmethod
    def from_dict(cls, raw: Dict[str, Any]) -> "Template":
        return cls(
            id=str(raw["id"]),
            name=str(raw.get("name", "")),
            category=str(raw.get("category", "other") or "other"),
            points=as_polygon(raw.get("points") or []),
            usage_count=int(raw.get("usageCount", 0) or 0),
            training_notes=str(raw.get("trainingNotes", "") or ""),
            source_design_id=str(raw.get("sourceDesignId", "") or ""),
            created_at=str(raw.get("createdAt", "") or ""),
            metrics={key: raw[key] for key in TEMPLATE_METRIC_KEYS if raw.get(key) is not None},
        )

    def to_dict(self) -> Dict[str, Any]:
        return {
            "id": self.id,
            "name": self.name,
            "category": self.category,
            "points": [[x, y] for x, y in self.points],
            "usageCount": self.usage_count,
            "trainingNotes": self.training_notes,
            "sourceDesignId": self.source_design_id,
            "createdAt": self.created_at,
            **self.metrics,
        }


@dataclass(frozen=True)
class CaseEnvelope:
    """Rectangular interior of a case. Only width/length feed the fit check."""

    width: float
    length: float
    id: str = ""
    name: str = ""
    brand: str = ""
    depth: Optional[float] = None
    base_price: float = 0.0

    @classmethod
    def from_dict(cls, raw: Dict[str, Any]) -> "CaseEnvelope":
        return cls(
            width=float(raw.get("interiorWidth", raw.get("width", 0.0))),
            length=float(raw.get("interiorLength", raw.get("length", 0.0))),
            id=str(raw.get("id", "")),
            name=str(raw.get("name", "")),
            brand=str(raw.get("brand", "")),
            depth=float(raw["interiorDepth"]) if raw.get("interiorDepth") is not None else None,
            base_price=float(raw.get("basePrice", 0.0) or 0.0),
        )
