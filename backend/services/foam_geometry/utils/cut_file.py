"""Cut-file (DXF) and preview (SVG/PNG) rendering of placed outlines.

Coordinates are written in inches in the pipeline's top-left, y-down frame
with the case corner at the origin. Outer contours are emitted before the
item's inner voids.
"""

from __future__ import annotations

import io
from dataclasses import dataclass
from typing import List, Optional, Sequence, Tuple

import cv2
import ezdxf
import numpy as np
import svgwrite

from services.errors import ExportFailure
from services.foam_geometry.models import Outline, Polygon
from services.foam_geometry.utils.placement import Bounds, placed_inners, placed_outer, points_bounds
from services.foam_geometry.utils.template_scoring import polygon_area

OUTER_LAYER = "CUT_OUTER"
INNER_LAYER = "CUT_INNER"
CASE_LAYER = "CASE_BOUNDARY"
DXF_INCHES = 1
PREVIEW_PADDING = 0.5


@dataclass(frozen=True)
class ExportOptions:
    clearance: float = 0.0  # inches added around outers; voids shrink by half
    preview_dpi: int = 40
    stroke_colour: str = "#FF4D00"


@dataclass(frozen=True)
class PlacedContour:
    item_id: str
    contour_id: str
    points: Polygon
    is_void: bool


@dataclass(frozen=True)
class CutFileExport:
    cut_file_dxf: str
    preview_svg: str
    preview_png: bytes
    bounds: Bounds


def offset_path(points: Polygon, offset: float) -> Polygon:
    """Push each vertex radially away from the centroid by ``offset``."""
    if offset == 0 or not points:
        return list(points)
    arr = np.asarray(points, dtype=float)
    centroid = arr.mean(axis=0)
    result: Polygon = []
    for x, y in arr:
        dx = x - centroid[0]
        dy = y - centroid[1]
        distance = float(np.hypot(dx, dy))
        if distance == 0:
            result.append((float(x), float(y)))
            continue
        scale = (distance + offset) / distance
        result.append((float(centroid[0] + dx * scale), float(centroid[1] + dy * scale)))
    return result


def _validated(item_id: str, contour_id: str, points: Polygon) -> Polygon:
    if len(points) < 3:
        raise ExportFailure(f"Outline {item_id}/{contour_id} has {len(points)} points; need at least 3")
    if polygon_area(np.asarray(points, dtype=float)) <= 0:
        raise ExportFailure(f"Outline {item_id}/{contour_id} has zero area")
    return points


def build_contours(outlines: Sequence[Outline], options: ExportOptions = ExportOptions()) -> List[PlacedContour]:
    """Place every outline and order contours outer-first per item."""
    if not outlines:
        raise ExportFailure("No outlines to export")

    contours: List[PlacedContour] = []
    for index, outline in enumerate(outlines):
        item_id = outline.id or f"item_{index}"
        outer = offset_path(placed_outer(outline), options.clearance)
        contours.append(PlacedContour(item_id, "outer", _validated(item_id, "outer", outer), False))
        for inner_id, inner_points in placed_inners(outline):
            inner = offset_path(inner_points, -options.clearance / 2.0)
            contours.append(PlacedContour(item_id, inner_id, _validated(item_id, inner_id, inner), True))
    return contours


def _canvas_bounds(bounds: Bounds, case_width: Optional[float], case_length: Optional[float]) -> Bounds:
    if case_width is None or case_length is None:
        return bounds.inflate(PREVIEW_PADDING)
    return Bounds(
        min(bounds.min_x, 0.0),
        min(bounds.min_y, 0.0),
        max(bounds.max_x, case_width),
        max(bounds.max_y, case_length),
    ).inflate(PREVIEW_PADDING)


def _fmt(value: float) -> str:
    return f"{value:.4f}"


def render_dxf(contours: Sequence[PlacedContour], case_width: Optional[float], case_length: Optional[float]) -> str:
    doc = ezdxf.new(dxfversion="R2010")
    doc.header["$INSUNITS"] = DXF_INCHES
    doc.header["$MEASUREMENT"] = 0
    doc.layers.new(OUTER_LAYER, dxfattribs={"color": 1})
    doc.layers.new(INNER_LAYER, dxfattribs={"color": 5})
    doc.layers.new(CASE_LAYER, dxfattribs={"color": 8})
    msp = doc.modelspace()

    if case_width is not None and case_length is not None:
        msp.add_lwpolyline(
            [(0.0, 0.0), (case_width, 0.0), (case_width, case_length), (0.0, case_length)],
            format="xy",
            close=True,
            dxfattribs={"layer": CASE_LAYER},
        )

    for contour in contours:
        msp.add_lwpolyline(
            contour.points,
            format="xy",
            close=True,
            dxfattribs={"layer": INNER_LAYER if contour.is_void else OUTER_LAYER},
        )

    stream = io.StringIO()
    doc.write(stream)
    return stream.getvalue()


def _svg_path_data(points: Polygon) -> str:
    head, *rest = points
    segments = [f"M {_fmt(head[0])},{_fmt(head[1])}"]
    segments.extend(f"L {_fmt(x)},{_fmt(y)}" for x, y in rest)
    segments.append("Z")
    return " ".join(segments)


def render_svg(
    contours: Sequence[PlacedContour],
    canvas: Bounds,
    case_width: Optional[float],
    case_length: Optional[float],
    options: ExportOptions,
) -> str:
    dwg = svgwrite.Drawing(
        size=(f"{_fmt(canvas.width)}in", f"{_fmt(canvas.height)}in"),
        viewBox=f"{_fmt(canvas.min_x)} {_fmt(canvas.min_y)} {_fmt(canvas.width)} {_fmt(canvas.height)}",
        debug=False,
    )
    if case_width is not None and case_length is not None:
        dwg.add(
            dwg.rect(
                insert=(0, 0),
                size=(case_width, case_length),
                fill="none",
                stroke="#333333",
                stroke_width=0.02,
                stroke_dasharray="0.1 0.1",
            )
        )

    # One path per item so voids punch through the fill.
    items: List[Tuple[str, List[str]]] = []
    for contour in contours:
        if not items or items[-1][0] != contour.item_id:
            items.append((contour.item_id, []))
        items[-1][1].append(_svg_path_data(contour.points))

    for item_id, subpaths in items:
        dwg.add(
            dwg.path(
                d=" ".join(subpaths),
                id=f"item-{item_id}",
                fill=options.stroke_colour,
                fill_opacity=0.1,
                stroke=options.stroke_colour,
                stroke_width=0.02,
                fill_rule="evenodd",
            )
        )
    return dwg.tostring()


def render_png(contours: Sequence[PlacedContour], canvas: Bounds, dpi: int) -> bytes:
    width_px = max(10, int(round(canvas.width * dpi)))
    height_px = max(10, int(round(canvas.height * dpi)))
    image = np.zeros((height_px, width_px, 3), dtype=np.uint8)
    image[:] = (26, 26, 26)

    def to_pixels(points: Polygon) -> np.ndarray:
        arr = (np.asarray(points, dtype=float) - (canvas.min_x, canvas.min_y)) * dpi
        return np.round(arr).astype(np.int32).reshape((-1, 1, 2))

    for contour in contours:
        colour = (26, 26, 26) if contour.is_void else (0, 77, 255)
        cv2.fillPoly(image, [to_pixels(contour.points)], colour, cv2.LINE_AA)
        cv2.polylines(image, [to_pixels(contour.points)], True, (0, 77, 255), 1, cv2.LINE_AA)

    ok, buffer = cv2.imencode(".png", image)
    if not ok:
        raise ExportFailure("PNG preview encoding failed")
    return buffer.tobytes()


def export_cut_file(
    outlines: Sequence[Outline],
    case_width: Optional[float] = None,
    case_length: Optional[float] = None,
    options: ExportOptions = ExportOptions(),
) -> CutFileExport:
    """Render placed outlines to a DXF cut file plus SVG/PNG previews."""
    if (case_width is not None and case_width <= 0) or (case_length is not None and case_length <= 0):
        raise ExportFailure(f"Case dimensions must be positive, got {case_width} x {case_length}")
    if (case_width is None) != (case_length is None):
        raise ExportFailure(f"Case width and length must be given together, got {case_width} x {case_length}")

    contours = build_contours(outlines, options)
    bounds = points_bounds(pt for contour in contours if not contour.is_void for pt in contour.points)
    canvas = _canvas_bounds(bounds, case_width, case_length)

    return CutFileExport(
        cut_file_dxf=render_dxf(contours, case_width, case_length),
        preview_svg=render_svg(contours, canvas, case_width, case_length, options),
        preview_png=render_png(contours, canvas, options.preview_dpi),
        bounds=bounds,
    )
