import copy

import numpy as np
import pytest

from services.errors import DegeneratePolygon
from services.foam_geometry.utils.refinement import (
    ARC_SEGMENTS,
    ELLIPSE_SEGMENTS,
    INCH_REFINEMENT_PARAMS,
    ItemCategory,
    convex_hull,
    ellipticize,
    rectangularize,
    refine_by_category,
    refine_shape,
    simplify,
    smooth,
)

SQUARE = [(0, 0), (10, 0), (10, 10), (0, 10)]


def _noisy_blob(seed=7, count=60):
    rng = np.random.RandomState(seed)
    angles = np.sort(rng.uniform(0, 2 * np.pi, count))
    radii = 50 + rng.uniform(-4, 4, count)
    return [(float(100 + r * np.cos(a)), float(100 + r * np.sin(a))) for a, r in zip(angles, radii)]


class TestSimplify:
    def test_drops_points_within_epsilon(self):
        line = [(0, 0), (1, 0.1), (2, 0), (3, 0.1), (4, 0)]
        assert simplify(line, 1.0) == [(0.0, 0.0), (4.0, 0.0)]

    def test_output_is_ordered_subset_keeping_endpoints(self):
        blob = _noisy_blob()
        result = simplify(blob, 3.0)
        assert result[0] == blob[0]
        assert result[-1] == blob[-1]
        assert len(result) <= len(blob)
        indices = [blob.index(pt) for pt in result]
        assert indices == sorted(indices)

    def test_zero_epsilon_keeps_every_off_line_point(self):
        blob = _noisy_blob()
        assert simplify(blob, 0.0) == blob

    def test_short_input_unchanged(self):
        assert simplify([(1, 2), (3, 4)], 5.0) == [(1.0, 2.0), (3.0, 4.0)]

    def test_input_not_mutated(self):
        blob = _noisy_blob()
        before = copy.deepcopy(blob)
        simplify(blob, 4.0)
        assert blob == before


class TestSmooth:
    def test_zero_iterations_is_identity(self):
        assert smooth(SQUARE, 0) == [(0.0, 0.0), (10.0, 0.0), (10.0, 10.0), (0.0, 10.0)]

    def test_each_pass_doubles_points(self):
        assert len(smooth(SQUARE, 1)) == 8
        assert len(smooth(SQUARE, 2)) == 16

    def test_corner_cut_positions(self):
        first_two = smooth(SQUARE, 1)[:2]
        assert first_two == [(2.5, 0.0), (7.5, 0.0)]


class TestConvexHull:
    def test_square_with_interior_point(self):
        hull = convex_hull(SQUARE + [(5, 5), (3, 7)])
        assert sorted(hull) == sorted((float(x), float(y)) for x, y in SQUARE)

    def test_hull_is_subset_and_contains_all_points(self):
        blob = _noisy_blob(seed=3, count=80)
        hull = convex_hull(blob)
        assert set(hull) <= set(blob)

        signs = set()
        for i, (ax, ay) in enumerate(hull):
            bx, by = hull[(i + 1) % len(hull)]
            for px, py in blob:
                cross = (bx - ax) * (py - ay) - (by - ay) * (px - ax)
                if abs(cross) > 1e-9:
                    signs.add(cross > 0)
        assert len(signs) == 1

    def test_needs_three_points(self):
        with pytest.raises(DegeneratePolygon):
            convex_hull([(0, 0), (1, 1)])

    def test_collinear_points_are_degenerate(self):
        with pytest.raises(DegeneratePolygon):
            convex_hull([(0, 0), (1, 0), (2, 0)])


class TestRectangularize:
    def test_sharp_rectangle_is_exact_bounding_box(self):
        assert rectangularize(SQUARE, 0) == [(0.0, 0.0), (10.0, 0.0), (10.0, 10.0), (0.0, 10.0)]

    def test_rounded_rectangle_point_count_and_extent(self):
        result = rectangularize([(0, 0), (40, 0), (40, 20), (0, 20)], 4)
        assert len(result) == 4 * (ARC_SEGMENTS + 1)
        xs = [x for x, _ in result]
        ys = [y for _, y in result]
        assert min(xs) == pytest.approx(0.0)
        assert max(xs) == pytest.approx(40.0)
        assert min(ys) == pytest.approx(0.0)
        assert max(ys) == pytest.approx(20.0)

    def test_radius_clamped_to_quarter_side(self):
        result = rectangularize([(0, 0), (8, 0), (8, 100), (0, 100)], 50)
        # First arc is centred at (r, r) with r = 8 / 4.
        assert result[0] == pytest.approx((0.0, 2.0))

    def test_needs_three_points(self):
        with pytest.raises(DegeneratePolygon):
            rectangularize([(0, 0), (5, 5)], 0)


class TestEllipticize:
    def test_fixed_vertex_count_inside_bounds(self):
        result = ellipticize([(0, 0), (20, 0), (20, 10), (0, 10)])
        assert len(result) == ELLIPSE_SEGMENTS
        assert result[0] == pytest.approx((20.0, 5.0))
        for x, y in result:
            assert -1e-9 <= x <= 20 + 1e-9
            assert -1e-9 <= y <= 10 + 1e-9

    def test_short_input_unchanged(self):
        assert ellipticize([(0, 0), (1, 1)]) == [(0.0, 0.0), (1.0, 1.0)]


class TestCategoryDispatch:
    def test_magazine_becomes_rounded_rectangle(self):
        result = refine_by_category([(0, 0), (100, 3), (98, 200), (2, 197)], ItemCategory.MAGAZINE)
        assert len(result) == 4 * (ARC_SEGMENTS + 1)

    def test_category_strings_are_accepted(self):
        assert len(refine_by_category(SQUARE, "ear_protection")) == ELLIPSE_SEGMENTS
        assert len(refine_by_category(SQUARE, "Eye Protection")) == ELLIPSE_SEGMENTS

    def test_knife_is_smoothed_hull(self):
        result = refine_by_category(SQUARE + [(5, 5)], "knife")
        assert len(result) == 8

    def test_tall_suppressor_keeps_bounding_box(self):
        result = refine_by_category([(0, 0), (10, 0), (10, 100), (0, 100)], "suppressor")
        xs = [x for x, _ in result]
        ys = [y for _, y in result]
        assert (min(xs), max(xs)) == pytest.approx((0.0, 10.0))
        assert (min(ys), max(ys)) == pytest.approx((0.0, 100.0))

    def test_unknown_category_uses_hint(self):
        assert refine_by_category(SQUARE, "widget", "square case") == rectangularize(SQUARE, 0)
        assert len(refine_by_category(SQUARE, "tool", "rounded box")) == 4 * (ARC_SEGMENTS + 1)
        assert len(refine_by_category(SQUARE, "other", "oval tin")) == ELLIPSE_SEGMENTS

    def test_default_hint_simplifies_then_smooths_once(self):
        assert len(refine_by_category(SQUARE, "accessory")) == 8

    def test_short_input_unchanged(self):
        assert refine_by_category([(1, 1), (2, 2)], "magazine") == [(1.0, 1.0), (2.0, 2.0)]

    def test_inch_params_scale_radii(self):
        assert INCH_REFINEMENT_PARAMS.magazine_corner_radius == pytest.approx(5.0 / 40.0)
        assert INCH_REFINEMENT_PARAMS.smooth_iterations == 2


class TestRefineShape:
    def test_explicit_kinds(self):
        assert refine_shape(SQUARE, "rectangle") == rectangularize(SQUARE, 0)
        assert len(refine_shape(SQUARE, "rounded_rectangle")) == 4 * (ARC_SEGMENTS + 1)
        assert len(refine_shape(SQUARE, "oval")) == ELLIPSE_SEGMENTS
        assert len(refine_shape(SQUARE, "smooth")) == 16
        assert refine_shape(SQUARE, "simplify") == simplify(SQUARE, 5.0)
        assert sorted(refine_shape(SQUARE + [(5, 5)], "convex_hull")) == sorted(rectangularize(SQUARE, 0))

    def test_unknown_kind_falls_back_to_category(self):
        assert len(refine_shape(SQUARE, "sparkle", category="ear_protection")) == ELLIPSE_SEGMENTS
