import numpy as np
import pytest

from superres.config import ReconstructionConfig
from superres.services.alignment import shift_raster
from superres.services.errors import PreconditionError
from superres.services.reconstruction import derive_upscale_factor, reconstruct, run_reconstruction
from tests.conftest import solid_raster


class TestReconstruct:
    def test_repeated_frame_reproduces_itself(self, textured_raster):
        frames = [textured_raster] * 4
        out = reconstruct(frames, 1, ReconstructionConfig(max_shift=3))
        assert np.array_equal(out, textured_raster)

    @pytest.mark.parametrize("factor", [1, 2, 3])
    def test_output_shape_and_weights(self, small_textured_raster, factor):
        frames = [small_textured_raster, shift_raster(small_textured_raster, 1, 0), small_textured_raster]
        result = run_reconstruction(frames, factor, ReconstructionConfig(max_shift=2))
        assert result.image.shape == (8 * factor, 8 * factor, 3)
        assert result.image.dtype == np.uint8
        assert result.upscale_factor == factor
        assert (result.weights == len(frames)).all()

    def test_deterministic_across_worker_counts(self, textured_raster):
        rng = np.random.RandomState(5)
        noise = [rng.randint(-6, 7, size=textured_raster.shape) for _ in range(3)]
        frames = [textured_raster] + [
            np.clip(shift_raster(textured_raster, d, 1 - d).astype(int) + n, 0, 255).astype(np.uint8)
            for d, n in zip((1, 2, 3), noise)
        ]
        single = reconstruct(frames, 2, ReconstructionConfig(max_shift=3, align_workers=1, fuse_workers=1))
        multi = reconstruct(frames, 2, ReconstructionConfig(max_shift=3, align_workers=4, search_workers=3, fuse_workers=4))
        again = reconstruct(frames, 2, ReconstructionConfig(max_shift=3, align_workers=4, search_workers=3, fuse_workers=4))
        assert np.array_equal(single, multi)
        assert np.array_equal(multi, again)

    def test_offsets_reported(self, textured_raster):
        frames = [textured_raster, shift_raster(textured_raster, 2, -1)]
        result = run_reconstruction(frames, 1, ReconstructionConfig(max_shift=3))
        assert [(s.dx, s.dy) for s in result.alignment.shifts] == [(0, 0), (2, -1)]

    def test_gray_pair_with_one_column_shift(self):
        gray = solid_raster(4, 4, 128)
        moved = shift_raster(gray, 1, 0)
        result = run_reconstruction([gray, moved], 1, ReconstructionConfig(max_shift=1))

        shift = result.alignment.shifts[1]
        assert shift.dx == 1
        assert shift.cost == 0.0
        # reference is gray everywhere; the aligned frame is gray or black padding
        aligned = result.alignment.frames[1]
        covered = (aligned == 128).all(axis=2)
        assert covered.any()
        assert (result.image[covered] == 128).all()
        assert (result.image[~covered] == 64).all()
        assert (result.weights == 2).all()

    def test_single_frame(self, small_textured_raster):
        out = reconstruct([small_textured_raster], 1)
        assert np.array_equal(out, small_textured_raster)

    def test_inputs_are_not_modified(self, textured_raster):
        moved = shift_raster(textured_raster, 1, 1)
        frames = [textured_raster.copy(), moved.copy()]
        reconstruct(frames, 2, ReconstructionConfig(max_shift=2))
        assert np.array_equal(frames[0], textured_raster)
        assert np.array_equal(frames[1], moved)


class TestPreconditions:
    def test_empty_frame_set(self):
        with pytest.raises(PreconditionError):
            reconstruct([], 1)

    @pytest.mark.parametrize("factor", [0, -1, 2.0, True, None])
    def test_bad_factor(self, small_textured_raster, factor):
        with pytest.raises(PreconditionError):
            reconstruct([small_textured_raster], factor)

    def test_mismatched_dimensions(self, small_textured_raster, textured_raster):
        with pytest.raises(PreconditionError):
            reconstruct([textured_raster, small_textured_raster], 1)

    def test_zero_area(self):
        with pytest.raises(PreconditionError):
            reconstruct([np.zeros((0, 0, 3), dtype=np.uint8)], 1)

    @pytest.mark.parametrize("frame", [
        np.zeros((4, 4), dtype=np.uint8),
        np.zeros((4, 4, 4), dtype=np.uint8),
        np.zeros((4, 4, 3), dtype=np.float32),
    ])
    def test_not_an_rgb_raster(self, frame):
        with pytest.raises(PreconditionError):
            reconstruct([frame], 1)

    def test_precondition_error_is_a_value_error(self):
        with pytest.raises(ValueError):
            reconstruct([], 1)


class TestDeriveUpscaleFactor:
    @pytest.mark.parametrize("count,expected", [(0, 1), (1, 1), (3, 1), (4, 2), (8, 2), (9, 3), (10, 3), (16, 4)])
    def test_floor_sqrt(self, count, expected):
        assert derive_upscale_factor(count) == expected
