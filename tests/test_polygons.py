"""
Tests for polygon utilities.
"""

import numpy as np
import pytest

from maskcore.mask_store import MaskStore
from maskcore.polygons import (
    boundary_pixels,
    extract_contours,
    simplify_contour,
    scale_contour,
    contour_to_polygon,
    polygon_area,
    mask_to_polygons,
    extract_class_polygons,
)


def square_mask():
    """30x30 mask with a 10x10 square at (10, 10)."""
    mask = np.zeros((30, 30), dtype=np.uint8)
    mask[10:20, 10:20] = 1
    return mask


class TestExtractContours:
    """Tests for extract_contours function."""

    def test_square_perimeter(self):
        """A filled square yields one loop over its 36 perimeter pixels."""
        contours = extract_contours(square_mask())

        assert len(contours) == 1
        contour = contours[0]
        assert contour.shape == (36, 2)
        for x, y in contour:
            assert x in (10, 19) or y in (10, 19)
        assert len({(int(x), int(y)) for x, y in contour}) == 36

    def test_walk_starts_top_left_heading_right(self):
        contour = extract_contours(square_mask())[0]

        assert tuple(contour[0]) == (10, 10)
        assert tuple(contour[1]) == (11, 10)
        assert tuple(contour[-1]) == (10, 11)

    def test_contour_is_4_connected(self):
        contour = extract_contours(square_mask())[0]
        steps = np.abs(np.diff(contour, axis=0)).sum(axis=1)
        assert (steps == 1).all()

    def test_empty_mask(self):
        """Test with empty mask."""
        mask = np.zeros((20, 20), dtype=np.uint8)
        assert extract_contours(mask) == []

    def test_isolated_pixel_discarded(self):
        mask = np.zeros((5, 5), dtype=np.uint8)
        mask[2, 2] = 1
        assert extract_contours(mask) == []

    def test_multiple_regions(self):
        """Test with multiple separate regions."""
        mask = np.zeros((100, 100), dtype=np.uint8)
        mask[10:30, 10:30] = 1
        mask[60:90, 60:90] = 1

        contours = extract_contours(mask)

        assert len(contours) == 2

    def test_region_touching_edge(self):
        mask = np.zeros((20, 20), dtype=np.uint8)
        mask[0:10, 0:10] = 3

        contours = extract_contours(mask)

        assert len(contours) == 1
        assert len(contours[0]) == 36

    def test_flat_buffer(self):
        mask = square_mask()
        flat = extract_contours(mask.reshape(-1), width=30, height=30)

        assert len(flat) == 1
        np.testing.assert_array_equal(flat[0], extract_contours(mask)[0])

    def test_flat_buffer_requires_size(self):
        with pytest.raises(ValueError):
            extract_contours(np.zeros(16, dtype=np.uint8))

    def test_boundary_pixels(self):
        boundary = boundary_pixels(square_mask())
        assert int(boundary.sum()) == 36
        assert not boundary[12:18, 12:18].any()


class TestSimplifyContour:
    """Tests for simplify_contour function."""

    def test_straight_line_collapses(self):
        points = np.array([(i, 2 * i) for i in range(20)])

        simplified = simplify_contour(points, epsilon=1.0)

        np.testing.assert_array_equal(simplified, [[0, 0], [19, 38]])

    def test_square_keeps_corners(self):
        contour = extract_contours(square_mask())[0]

        simplified = simplify_contour(contour, epsilon=1.0)

        expected = [[10, 10], [19, 10], [19, 19], [10, 19], [10, 11]]
        np.testing.assert_array_equal(simplified, expected)

    def test_distance_is_to_chord_segment(self):
        """A point on the chord's line but past its end is kept."""
        points = np.array([(0, 0), (10, 0), (5, 0)])

        simplified = simplify_contour(points, epsilon=1.0)

        np.testing.assert_array_equal(simplified, points)

    def test_epsilon_controls_detail(self):
        points = np.array([(0, 0), (5, 3), (10, 0)])

        assert len(simplify_contour(points, epsilon=1.0)) == 3
        assert len(simplify_contour(points, epsilon=5.0)) == 2

    def test_short_input_unchanged(self):
        points = np.array([(1, 2), (3, 4)])
        np.testing.assert_array_equal(simplify_contour(points), points)

    def test_endpoints_kept(self):
        points = np.array([(0, 0), (1, 0.2), (2, -0.1), (3, 0.1), (4, 0)])
        simplified = simplify_contour(points, epsilon=0.5)
        np.testing.assert_array_equal(simplified[0], [0, 0])
        np.testing.assert_array_equal(simplified[-1], [4, 0])


class TestScaling:
    """Tests for scale_contour and mask_to_polygons."""

    def test_scale_contour(self):
        contour = np.array([(10, 20), (30, 40)])
        np.testing.assert_allclose(scale_contour(contour, 2.0), [[5, 10], [15, 20]])

    def test_scale_contour_rejects_zero(self):
        with pytest.raises(ValueError):
            scale_contour(np.array([(1, 1)]), 0.0)

    def test_mask_to_polygons_image_coordinates(self):
        polygons = mask_to_polygons(square_mask(), mask_scale=2.0, epsilon=1.0)

        assert polygons == [[(5.0, 5.0), (9.5, 5.0), (9.5, 9.5), (5.0, 9.5), (5.0, 5.5)]]

    def test_min_points_filter(self):
        assert mask_to_polygons(square_mask(), epsilon=1.0, min_points=6) == []

    def test_contour_to_polygon(self):
        polygon = contour_to_polygon(np.array([[1, 2], [3, 4]]))
        assert polygon == [(1.0, 2.0), (3.0, 4.0)]


class TestExtractClassPolygons:
    """Tests for per-class export from a store."""

    def test_per_class(self):
        store = MaskStore()
        store.load_image(20, 20)
        data = np.zeros((40, 40), dtype=np.uint8)
        data[4:14, 4:14] = 2
        data[20:30, 20:36] = 5
        store.restore_full(data)

        result = extract_class_polygons(store, epsilon=1.0)

        assert sorted(result) == [2, 5]
        assert len(result[2]) == 1
        xs = [x for x, _ in result[5][0]]
        assert min(xs) == 10.0
        assert max(xs) == 17.5

    def test_empty_store(self):
        store = MaskStore()
        store.load_image(10, 10)
        assert extract_class_polygons(store) == {}


class TestPolygonArea:
    """Tests for polygon_area function."""

    def test_square_area(self):
        """Test area of a square."""
        # Unit square
        polygon = [(0, 0), (1, 0), (1, 1), (0, 1)]

        area = polygon_area(polygon)

        assert abs(area - 1.0) < 0.001

    def test_triangle_area(self):
        """Test area of a triangle."""
        # Triangle with base 2 and height 2
        polygon = [(0, 0), (2, 0), (1, 2)]

        area = polygon_area(polygon)

        assert abs(area - 2.0) < 0.001

    def test_degenerate_polygon(self):
        """Test with too few points."""
        polygon = [(0, 0), (1, 1)]  # Only 2 points

        area = polygon_area(polygon)

        assert area == 0.0
