"""Outline refinement: simplification, smoothing and shape correction.

All functions are pure. They take any ``[[x, y], ...]`` sequence and return a
new list of ``(x, y)`` tuples in the same unit as the input.
"""

from __future__ import annotations

import math
from dataclasses import dataclass, replace
from enum import Enum
from typing import Callable, Dict, List, Tuple

import numpy as np

from services.errors import DegeneratePolygon
from services.foam_geometry.models import Point, Polygon, PointsLike, as_polygon

ARC_SEGMENTS = 8
ELLIPSE_SEGMENTS = 32


class ItemCategory(str, Enum):
    MAGAZINE = "magazine"
    SUPPRESSOR = "suppressor"
    EAR_PROTECTION = "ear_protection"
    EYE_PROTECTION = "eye_protection"
    OPTIC = "optic"
    FLASHLIGHT = "flashlight"
    KNIFE = "knife"
    FIREARM = "firearm"
    TOOL = "tool"
    ACCESSORY = "accessory"
    MEDICAL = "medical"
    ELECTRONICS = "electronics"
    OTHER = "other"

    @classmethod
    def parse(cls, value: object) -> "ItemCategory":
        if isinstance(value, cls):
            return value
        key = str(value or "").strip().lower().replace("-", "_").replace(" ", "_")
        try:
            return cls(key)
        except ValueError:
            return cls.OTHER


class RefinementKind(str, Enum):
    SMOOTH = "smooth"
    SIMPLIFY = "simplify"
    RECTANGLE = "rectangle"
    ROUNDED_RECTANGLE = "rounded_rectangle"
    OVAL = "oval"
    CONVEX_HULL = "convex_hull"
    CATEGORY = "category"


@dataclass(frozen=True)
class CategoryRefinementParams:
    """Tunable radii/epsilons for refinement, in the unit of the input points."""

    magazine_corner_radius: float = 5.0
    suppressor_max_radius: float = 20.0
    optic_corner_radius: float = 8.0
    flashlight_corner_radius: float = 10.0
    firearm_epsilon: float = 3.0
    hint_corner_radius: float = 5.0
    smooth_epsilon: float = 2.0
    smooth_iterations: int = 2
    simplify_epsilon: float = 5.0
    rounded_rectangle_radius: float = 8.0
    default_epsilon: float = 2.0
    default_iterations: int = 1

    def scaled(self, factor: float) -> "CategoryRefinementParams":
        """Rescale every length (e.g. pixel defaults into inches)."""
        return replace(
            self,
            magazine_corner_radius=self.magazine_corner_radius * factor,
            suppressor_max_radius=self.suppressor_max_radius * factor,
            optic_corner_radius=self.optic_corner_radius * factor,
            flashlight_corner_radius=self.flashlight_corner_radius * factor,
            firearm_epsilon=self.firearm_epsilon * factor,
            hint_corner_radius=self.hint_corner_radius * factor,
            smooth_epsilon=self.smooth_epsilon * factor,
            simplify_epsilon=self.simplify_epsilon * factor,
            rounded_rectangle_radius=self.rounded_rectangle_radius * factor,
            default_epsilon=self.default_epsilon * factor,
        )


# Defaults tuned on canvas pixel coordinates.
DEFAULT_REFINEMENT_PARAMS = CategoryRefinementParams()
# Same shapes expressed in inches (canvas traced at roughly 40 px per inch).
INCH_REFINEMENT_PARAMS = DEFAULT_REFINEMENT_PARAMS.scaled(1.0 / 40.0)


def _bbox(points: Polygon) -> Tuple[float, float, float, float]:
    arr = np.asarray(points, dtype=float)
    min_x, min_y = arr.min(axis=0)
    max_x, max_y = arr.max(axis=0)
    return float(min_x), float(min_y), float(max_x), float(max_y)


def perpendicular_distance(point: Point, line_start: Point, line_end: Point) -> float:
    """Distance from ``point`` to the segment ``line_start``-``line_end``."""
    dx = line_end[0] - line_start[0]
    dy = line_end[1] - line_start[1]
    length_sq = dx * dx + dy * dy
    if length_sq == 0:
        return math.hypot(point[0] - line_start[0], point[1] - line_start[1])

    t = ((point[0] - line_start[0]) * dx + (point[1] - line_start[1]) * dy) / length_sq
    t = max(0.0, min(1.0, t))
    proj_x = line_start[0] + t * dx
    proj_y = line_start[1] + t * dy
    return math.hypot(point[0] - proj_x, point[1] - proj_y)


def simplify(points: PointsLike, epsilon: float) -> Polygon:
    """Douglas-Peucker reduction of an open point sequence.

    Keeps the first and last point and every point whose distance from the
    enclosing chord exceeds ``epsilon``. Fewer than 3 points are returned as-is.
    """
    polygon = as_polygon(points)
    n = len(polygon)
    if n < 3:
        return polygon

    keep = [False] * n
    keep[0] = keep[n - 1] = True
    stack: List[Tuple[int, int]] = [(0, n - 1)]
    while stack:
        start, end = stack.pop()
        max_dist = 0.0
        max_index = start
        for i in range(start + 1, end):
            dist = perpendicular_distance(polygon[i], polygon[start], polygon[end])
            if dist > max_dist:
                max_dist = dist
                max_index = i
        if max_index != start and max_dist > epsilon:
            keep[max_index] = True
            stack.append((start, max_index))
            stack.append((max_index, end))

    return [pt for pt, kept in zip(polygon, keep) if kept]


def smooth(points: PointsLike, iterations: int) -> Polygon:
    """Chaikin corner cutting on a closed loop; each pass doubles the point count."""
    polygon = as_polygon(points)
    if iterations <= 0 or len(polygon) < 3:
        return polygon

    result = polygon
    for _ in range(iterations):
        cut: Polygon = []
        count = len(result)
        for i in range(count):
            x0, y0 = result[i]
            x1, y1 = result[(i + 1) % count]
            cut.append((0.75 * x0 + 0.25 * x1, 0.75 * y0 + 0.25 * y1))
            cut.append((0.25 * x0 + 0.75 * x1, 0.25 * y0 + 0.75 * y1))
        result = cut
    return result


def convex_hull(points: PointsLike) -> Polygon:
    """Gift-wrapping hull starting at the leftmost point.

    Counter-clockwise as drawn in the y-down image frame. Collinear points on a
    hull edge are skipped in favour of the farthest one.
    """
    polygon = as_polygon(points)
    if len(polygon) < 3:
        raise DegeneratePolygon(f"Convex hull needs at least 3 points, got {len(polygon)}")

    start = min(range(len(polygon)), key=lambda i: (polygon[i][0], polygon[i][1]))
    hull: Polygon = []
    current = start
    while True:
        hull.append(polygon[current])
        cx, cy = polygon[current]
        candidate = None
        for i, (px, py) in enumerate(polygon):
            if (px, py) == (cx, cy):
                continue
            if candidate is None:
                candidate = i
                continue
            nx, ny = polygon[candidate]
            cross = (px - cx) * (ny - cy) - (py - cy) * (nx - cx)
            if cross < 0:
                candidate = i
            elif cross == 0:
                if math.hypot(px - cx, py - cy) > math.hypot(nx - cx, ny - cy):
                    candidate = i
        if candidate is None:
            break
        current = candidate
        if polygon[current] == polygon[start] or len(hull) >= len(polygon):
            break

    if len(hull) < 3:
        raise DegeneratePolygon("Convex hull collapsed to fewer than 3 distinct points")
    return hull


def rectangularize(points: PointsLike, corner_radius: float = 0.0) -> Polygon:
    """Axis-aligned bounding rectangle, optionally with rounded corners.

    The radius is clamped to a quarter of either side; each corner becomes an
    ``ARC_SEGMENTS``-segment quarter circle.
    """
    polygon = as_polygon(points)
    if len(polygon) < 3:
        raise DegeneratePolygon(f"Rectangularize needs at least 3 points, got {len(polygon)}")

    min_x, min_y, max_x, max_y = _bbox(polygon)
    width = max_x - min_x
    height = max_y - min_y

    if corner_radius > 0:
        r = min(corner_radius, width / 4.0, height / 4.0)
        corners = [
            (min_x + r, min_y + r, math.pi),
            (max_x - r, min_y + r, -math.pi / 2.0),
            (max_x - r, max_y - r, 0.0),
            (min_x + r, max_y - r, math.pi / 2.0),
        ]
        result: Polygon = []
        for cx, cy, start_angle in corners:
            for i in range(ARC_SEGMENTS + 1):
                angle = start_angle + (math.pi / 2.0) * (i / ARC_SEGMENTS)
                result.append((cx + r * math.cos(angle), cy + r * math.sin(angle)))
        return result

    return [(min_x, min_y), (max_x, min_y), (max_x, max_y), (min_x, max_y)]


def ellipticize(points: PointsLike) -> Polygon:
    """32-sided ellipse inscribed in the bounding box."""
    polygon = as_polygon(points)
    if len(polygon) < 3:
        return polygon

    min_x, min_y, max_x, max_y = _bbox(polygon)
    center_x = (min_x + max_x) / 2.0
    center_y = (min_y + max_y) / 2.0
    radius_x = (max_x - min_x) / 2.0
    radius_y = (max_y - min_y) / 2.0
    return [
        (
            center_x + radius_x * math.cos(2.0 * math.pi * i / ELLIPSE_SEGMENTS),
            center_y + radius_y * math.sin(2.0 * math.pi * i / ELLIPSE_SEGMENTS),
        )
        for i in range(ELLIPSE_SEGMENTS)
    ]


def _refine_suppressor(points: Polygon, params: CategoryRefinementParams) -> Polygon:
    min_x, min_y, max_x, max_y = _bbox(points)
    width = max_x - min_x
    height = max_y - min_y
    if height > width * 2:
        return rectangularize(points, min(width / 2.0, params.suppressor_max_radius))
    return rectangularize(points, min(height / 2.0, params.suppressor_max_radius))


def _refine_by_hint(points: Polygon, hint: str, params: CategoryRefinementParams) -> Polygon:
    text = hint.lower()
    if any(word in text for word in ("rectangle", "box", "square")):
        return rectangularize(points, params.hint_corner_radius if "round" in text else 0.0)
    if any(word in text for word in ("oval", "round", "circle")):
        return ellipticize(points)
    if "smooth" in text:
        return smooth(simplify(points, params.smooth_epsilon), params.smooth_iterations)
    if "simplify" in text or "clean" in text:
        return simplify(points, params.simplify_epsilon)
    return smooth(simplify(points, params.default_epsilon), params.default_iterations)


CategoryHandler = Callable[[Polygon, str, CategoryRefinementParams], Polygon]

_CATEGORY_HANDLERS: Dict[ItemCategory, CategoryHandler] = {
    ItemCategory.MAGAZINE: lambda pts, hint, p: rectangularize(pts, p.magazine_corner_radius),
    ItemCategory.SUPPRESSOR: lambda pts, hint, p: _refine_suppressor(pts, p),
    ItemCategory.EAR_PROTECTION: lambda pts, hint, p: ellipticize(pts),
    ItemCategory.EYE_PROTECTION: lambda pts, hint, p: ellipticize(pts),
    ItemCategory.OPTIC: lambda pts, hint, p: rectangularize(pts, p.optic_corner_radius),
    ItemCategory.FLASHLIGHT: lambda pts, hint, p: rectangularize(pts, p.flashlight_corner_radius),
    ItemCategory.KNIFE: lambda pts, hint, p: smooth(convex_hull(pts), 1),
    ItemCategory.FIREARM: lambda pts, hint, p: smooth(simplify(pts, p.firearm_epsilon), 1),
    ItemCategory.TOOL: _refine_by_hint,
    ItemCategory.ACCESSORY: _refine_by_hint,
    ItemCategory.MEDICAL: _refine_by_hint,
    ItemCategory.ELECTRONICS: _refine_by_hint,
    ItemCategory.OTHER: _refine_by_hint,
}

_missing = set(ItemCategory) - set(_CATEGORY_HANDLERS)
if _missing:
    raise RuntimeError(f"No refinement handler for categories: {sorted(c.value for c in _missing)}")


def refine_by_category(
    points: PointsLike,
    category: object,
    hint: str = "",
    params: CategoryRefinementParams = DEFAULT_REFINEMENT_PARAMS,
) -> Polygon:
    """Shape correction driven by the item category, falling back to the hint text."""
    polygon = as_polygon(points)
    if len(polygon) < 3:
        return polygon
    handler = _CATEGORY_HANDLERS[ItemCategory.parse(category)]
    return handler(polygon, hint or "", params)


def refine_shape(
    points: PointsLike,
    kind: object = RefinementKind.CATEGORY,
    category: object = None,
    hint: str = "",
    params: CategoryRefinementParams = DEFAULT_REFINEMENT_PARAMS,
) -> Polygon:
    """Apply one refinement kind; unknown kinds use the category dispatch."""
    try:
        refinement = RefinementKind(kind) if kind is not None else RefinementKind.CATEGORY
    except ValueError:
        refinement = RefinementKind.CATEGORY

    if refinement is RefinementKind.SMOOTH:
        return smooth(simplify(points, params.smooth_epsilon), params.smooth_iterations)
    if refinement is RefinementKind.SIMPLIFY:
        return simplify(points, params.simplify_epsilon)
    if refinement is RefinementKind.RECTANGLE:
        return rectangularize(points, 0.0)
    if refinement is RefinementKind.ROUNDED_RECTANGLE:
        return rectangularize(points, params.rounded_rectangle_radius)
    if refinement is RefinementKind.OVAL:
        return ellipticize(points)
    if refinement is RefinementKind.CONVEX_HULL:
        return convex_hull(points)
    return refine_by_category(points, category or ItemCategory.OTHER, hint, params)
