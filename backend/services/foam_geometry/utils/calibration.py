from __future__ import annotations

from typing import Union

from services.errors import InvalidCalibration
from services.foam_geometry.models import Calibration, CalibrationMethod, Polygon, PointsLike, ReferenceMeasurement, as_polygon

Scale = Union[Calibration, float]


def _pixels_per_inch(scale: Scale) -> float:
    ppi = scale.pixels_per_inch if isinstance(scale, Calibration) else float(scale)
    if not (ppi > 0):
        raise InvalidCalibration(f"pixelsPerInch must be positive, got {ppi}")
    return ppi


def pixels_to_inches(points: PointsLike, scale: Scale) -> Polygon:
    """Map pixel coordinates to inches, per axis, keeping order and count."""
    ppi = _pixels_per_inch(scale)
    return [(x / ppi, y / ppi) for x, y in as_polygon(points)]


def inches_to_pixels(points: PointsLike, scale: Scale) -> Polygon:
    """Inverse of :func:`pixels_to_inches`."""
    ppi = _pixels_per_inch(scale)
    return [(x * ppi, y * ppi) for x, y in as_polygon(points)]


def percent_to_pixels(points: PointsLike, image_width: float, image_height: float) -> Polygon:
    """Map percent-of-image coordinates (0..100) into pixel coordinates."""
    if image_width <= 0 or image_height <= 0:
        raise ValueError("Image width/height must be positive when converting coordinates")
    return [((x / 100.0) * image_width, (y / 100.0) * image_height) for x, y in as_polygon(points)]


def percent_to_inches(
    points: PointsLike,
    image_width: float,
    image_height: float,
    scale: Scale,
) -> Polygon:
    # Validate the scale before touching the image dimensions.
    ppi = _pixels_per_inch(scale)
    return pixels_to_inches(percent_to_pixels(points, image_width, image_height), ppi)


def calibration_from_reference(
    reference: ReferenceMeasurement,
    image_width: float,
    image_height: float,
) -> Calibration:
    """Derive pixels-per-inch from a reference object of known size."""
    if reference.known_dimension <= 0:
        raise InvalidCalibration(f"Reference {reference.reference_object!r} has no usable known dimension")
    if reference.measure_axis == "height":
        measured_pixels = (reference.box_height_percent / 100.0) * image_height
    else:
        measured_pixels = (reference.box_width_percent / 100.0) * image_width
    return Calibration(
        pixels_per_inch=measured_pixels / reference.known_dimension,
        method=CalibrationMethod.REFERENCE_OBJECT,
    )
