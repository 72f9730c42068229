from __future__ import annotations

import math
from dataclasses import dataclass
from typing import Dict, Iterable, List, Tuple

import numpy as np

from services.errors import DegeneratePolygon
from services.foam_geometry.models import Outline, Point, Polygon


@dataclass(frozen=True)
class Bounds:
    min_x: float
    min_y: float
    max_x: float
    max_y: float

    @property
    def width(self) -> float:
        return self.max_x - self.min_x

    @property
    def height(self) -> float:
        return self.max_y - self.min_y

    def inflate(self, amount: float) -> "Bounds":
        return Bounds(self.min_x - amount, self.min_y - amount, self.max_x + amount, self.max_y + amount)

    def to_dict(self) -> Dict[str, float]:
        return {
            "minX": self.min_x,
            "minY": self.min_y,
            "maxX": self.max_x,
            "maxY": self.max_y,
            "width": self.width,
            "height": self.height,
        }


def place_points(points: Polygon, position: Point, rotation_deg: float) -> Polygon:
    """Rotate about the local origin, then translate by ``position`` (y-down frame)."""
    if not points:
        return []
    angle = math.radians(float(rotation_deg))
    c = math.cos(angle)
    s = math.sin(angle)
    arr = np.asarray(points, dtype=float)
    x = c * arr[:, 0] - s * arr[:, 1] + float(position[0])
    y = s * arr[:, 0] + c * arr[:, 1] + float(position[1])
    return [(float(px), float(py)) for px, py in zip(x, y)]


def placed_outer(outline: Outline) -> Polygon:
    return place_points(outline.outer, outline.position, outline.rotation)


def placed_inners(outline: Outline) -> List[Tuple[str, Polygon]]:
    return [(inner.id, place_points(inner.points, outline.position, outline.rotation)) for inner in outline.inners]


def points_bounds(points: Iterable[Point]) -> Bounds:
    arr = np.asarray(list(points), dtype=float)
    if arr.size == 0:
        raise DegeneratePolygon("Cannot compute bounds of an empty point set")
    min_x, min_y = arr.min(axis=0)
    max_x, max_y = arr.max(axis=0)
    return Bounds(float(min_x), float(min_y), float(max_x), float(max_y))


def outlines_bounds(outlines: Iterable[Outline]) -> Bounds:
    """Union bounding box of every placed outer vertex."""
    vertices: Polygon = []
    for outline in outlines:
        vertices.extend(placed_outer(outline))
    return points_bounds(vertices)
