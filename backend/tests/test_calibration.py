import pytest

from services.errors import InvalidCalibration
from services.foam_geometry.models import Calibration, CalibrationMethod, ReferenceMeasurement
from services.foam_geometry.utils.calibration import (
    calibration_from_reference,
    inches_to_pixels,
    percent_to_inches,
    percent_to_pixels,
    pixels_to_inches,
)


def test_pixels_to_inches_at_96_ppi():
    assert pixels_to_inches([(96, 192)], 96) == [(1.0, 2.0)]


def test_accepts_calibration_and_dict_points():
    result = pixels_to_inches([{"x": 48, "y": 24}], Calibration(48.0))
    assert result == [(1.0, 0.5)]


def test_round_trip_preserves_points():
    points = [(0.0, 0.0), (123.4, 56.7), (1919.0, 1079.5)]
    back = inches_to_pixels(pixels_to_inches(points, 72.5), 72.5)
    for (x0, y0), (x1, y1) in zip(points, back):
        assert abs(x0 - x1) < 1e-9
        assert abs(y0 - y1) < 1e-9


def test_count_and_order_preserved():
    points = [(5, 1), (1, 5), (3, 3)]
    result = pixels_to_inches(points, 1)
    assert result == [(5.0, 1.0), (1.0, 5.0), (3.0, 3.0)]


@pytest.mark.parametrize("ppi", [0, -10, float("nan")])
def test_non_positive_scale_rejected(ppi):
    with pytest.raises(InvalidCalibration):
        pixels_to_inches([(1, 1)], ppi)


def test_calibration_rejects_zero_at_construction():
    with pytest.raises(InvalidCalibration):
        Calibration(0)


def test_percent_conversions():
    assert percent_to_pixels([(50, 25)], 1920, 1080) == [(960.0, 270.0)]
    assert percent_to_inches([(50, 50)], 200, 100, 100) == [(1.0, 0.5)]


def test_percent_to_pixels_requires_image_size():
    with pytest.raises(ValueError):
        percent_to_pixels([(1, 1)], 0, 1080)


def test_percent_to_inches_checks_scale_first():
    with pytest.raises(InvalidCalibration):
        percent_to_inches([(1, 1)], 0, 0, 0)


def test_reference_object_calibration():
    reference = ReferenceMeasurement(
        reference_object="credit card",
        box_width_percent=10.0,
        box_height_percent=5.0,
        known_dimension=2.0,
    )
    calibration = calibration_from_reference(reference, 1920, 1080)
    assert calibration.pixels_per_inch == pytest.approx(96.0)
    assert calibration.method is CalibrationMethod.REFERENCE_OBJECT


def test_reference_object_on_height_axis():
    reference = ReferenceMeasurement("coin", 1.0, 10.0, 1.5, measure_axis="height")
    assert calibration_from_reference(reference, 1920, 1080).pixels_per_inch == pytest.approx(72.0)


def test_reference_without_known_dimension_rejected():
    with pytest.raises(InvalidCalibration):
        calibration_from_reference(ReferenceMeasurement("card", 10.0, 5.0, 0.0), 1920, 1080)
