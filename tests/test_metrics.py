"""
Metric Tests
============

Tests for the per-pixel difference percentage.
"""

import numpy as np
import pytest


def solid(width, height, rgba):
    from pillwatch.models.image import RawImage

    return RawImage.blank(width, height, rgba)


class TestDiffPercent:
    """Boundary behavior of diff_percent."""

    def test_identical_images(self):
        from pillwatch.compare import diff_percent

        image = solid(8, 8, (100, 100, 100, 255))
        assert diff_percent(image, image) == 0.0

    def test_all_pixels_beyond_tolerance(self):
        from pillwatch.compare import diff_percent

        baseline = solid(8, 8, (100, 100, 100, 255))
        current = solid(8, 8, (131, 100, 100, 255))
        assert diff_percent(baseline, current, tolerance=30) == 100.0

    def test_difference_equal_to_tolerance_ignored(self):
        from pillwatch.compare import diff_percent

        baseline = solid(8, 8, (100, 100, 100, 255))
        current = solid(8, 8, (100, 130, 70, 255))
        assert diff_percent(baseline, current, tolerance=30) == 0.0

    def test_partial_change(self):
        from pillwatch.compare import diff_percent
        from pillwatch.models.image import RawImage

        baseline = solid(4, 4, (0, 0, 0, 255))
        pixels = baseline.pixels.copy()
        pixels[:2, :, 2] = 200
        current = RawImage(pixels)

        assert diff_percent(baseline, current) == pytest.approx(50.0)

    def test_alpha_ignored(self):
        from pillwatch.compare import diff_percent

        baseline = solid(4, 4, (10, 10, 10, 255))
        current = solid(4, 4, (10, 10, 10, 0))
        assert diff_percent(baseline, current) == 0.0

    def test_no_uint8_wraparound(self):
        from pillwatch.compare import diff_percent

        baseline = solid(3, 3, (0, 0, 0, 255))
        current = solid(3, 3, (255, 0, 0, 255))
        assert diff_percent(baseline, current) == 100.0

    def test_dimension_mismatch_sentinel(self):
        from pillwatch.compare import DIFF_ERROR, diff_percent

        assert diff_percent(solid(4, 4, (0, 0, 0, 255)), solid(4, 5, (0, 0, 0, 255))) == DIFF_ERROR
        assert DIFF_ERROR == -1.0

    def test_zero_pixels(self):
        from pillwatch.compare import diff_percent
        from pillwatch.models.image import RawImage

        empty = RawImage(np.zeros((0, 0, 4), dtype=np.uint8))
        assert diff_percent(empty, empty) == 0.0

    def test_require_comparable(self):
        from pillwatch.compare import require_comparable
        from pillwatch.errors import DimensionMismatch

        require_comparable(solid(2, 2, (0, 0, 0, 255)), solid(2, 2, (9, 9, 9, 255)))
        with pytest.raises(DimensionMismatch):
            require_comparable(solid(2, 2, (0, 0, 0, 255)), solid(3, 2, (0, 0, 0, 255)))


class TestRawImage:
    """Invariants of the RGBA raster."""

    def test_rejects_wrong_layout(self):
        from pillwatch.models.image import RawImage

        with pytest.raises(ValueError):
            RawImage(np.zeros((2, 2, 3), dtype=np.uint8))
        with pytest.raises(ValueError):
            RawImage(np.zeros((2, 2, 4), dtype=np.float32))

    def test_size_and_bytes(self):
        image = solid(3, 2, (1, 2, 3, 4))

        assert image.size == (3, 2)
        assert len(image.tobytes()) == 3 * 2 * 4
        assert repr(image) == "RawImage(width=3, height=2)"
