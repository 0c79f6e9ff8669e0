import math

import numpy as np
import pytest

from superres.services.difference import compute_ssd, overlap_ratio
from superres.services.errors import PreconditionError
from tests.conftest import solid_raster


class TestComputeSSD:
    def test_identical_rasters_have_zero_cost(self, textured_raster):
        assert compute_ssd(textured_raster, textured_raster, 0, 0) == 0.0
        assert compute_ssd(textured_raster, textured_raster, 0, 0, reduction="mean") == 0.0

    def test_sum_and_mean_values(self):
        ref = solid_raster(2, 2, 0)
        cand = solid_raster(2, 2, 1)
        # 4 pixels x 3 channels x 1^2
        assert compute_ssd(ref, cand, 0, 0) == 12.0
        assert compute_ssd(ref, cand, 0, 0, reduction="mean") == 3.0

    @pytest.mark.parametrize("dx,dy", [(0, 0), (3, -2), (-7, 5), (12, 0)])
    def test_matches_exact_integer_sum(self, textured_raster, dx, dy):
        rng = np.random.RandomState(9)
        cand = rng.randint(0, 256, size=textured_raster.shape).astype(np.uint8)
        h, w = textured_raster.shape[:2]
        expected = 0
        count = 0
        for y in range(h):
            for x in range(w):
                if 0 <= x + dx < w and 0 <= y + dy < h:
                    d = textured_raster[y, x].astype(np.int64) - cand[y + dy, x + dx].astype(np.int64)
                    expected += int((d * d).sum())
                    count += 1
        assert compute_ssd(textured_raster, cand, dx, dy) == float(expected)
        assert compute_ssd(textured_raster, cand, dx, dy, reduction="mean") == pytest.approx(expected / count)

    def test_large_extreme_rasters_are_exact(self):
        ref = solid_raster(600, 800, 0)
        cand = solid_raster(600, 800, 255)
        assert compute_ssd(ref, cand, 0, 0) == 600 * 800 * 3 * 255.0 ** 2
        assert compute_ssd(ref, cand, 5, -4) == 595 * 796 * 3 * 255.0 ** 2

    def test_no_uint8_wraparound(self):
        ref = solid_raster(1, 1, 0)
        cand = solid_raster(1, 1, 255)
        assert compute_ssd(ref, cand, 0, 0) == 3 * 255.0 ** 2
        assert compute_ssd(cand, ref, 0, 0) == 3 * 255.0 ** 2

    def test_out_of_bounds_pixels_are_skipped(self):
        ref = solid_raster(3, 3, 10)
        cand = solid_raster(3, 3, 12)
        # dx=1 leaves 2 columns x 3 rows in overlap
        assert compute_ssd(ref, cand, 1, 0) == 6 * 3 * 4.0
        assert compute_ssd(ref, cand, 1, 0, reduction="mean") == 12.0
        assert compute_ssd(ref, cand, -2, 1) == 1 * 2 * 3 * 4.0

    def test_candidate_is_sampled_at_plus_offset(self):
        ref = np.zeros((1, 3, 3), dtype=np.uint8)
        cand = np.zeros((1, 3, 3), dtype=np.uint8)
        ref[0, 0] = 100
        cand[0, 1] = 100
        assert compute_ssd(ref, cand, 1, 0) == 0.0
        assert compute_ssd(ref, cand, -1, 0) > 0.0

    @pytest.mark.parametrize("reduction", ["sum", "mean"])
    @pytest.mark.parametrize("dx,dy", [(3, 0), (0, -3), (5, 5), (-10, 2)])
    def test_no_overlap_is_infinite(self, reduction, dx, dy):
        ref = solid_raster(3, 3, 0)
        cand = solid_raster(3, 3, 0)
        cost = compute_ssd(ref, cand, dx, dy, reduction=reduction)
        assert math.isinf(cost) and cost > 0
        assert not math.isnan(cost)

    def test_unknown_reduction_raises(self, textured_raster):
        with pytest.raises(PreconditionError):
            compute_ssd(textured_raster, textured_raster, 0, 0, reduction="median")


class TestOverlapRatio:
    def test_full_and_partial_overlap(self):
        assert overlap_ratio((4, 4, 3), 0, 0) == 1.0
        assert overlap_ratio((4, 4, 3), 1, 0) == 0.75
        assert overlap_ratio((4, 4, 3), 2, -2) == 0.25

    def test_no_overlap(self):
        assert overlap_ratio((4, 4, 3), 4, 0) == 0.0
        assert overlap_ratio((0, 4, 3), 0, 0) == 0.0
