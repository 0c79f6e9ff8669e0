import numpy as np
import pytest


@pytest.fixture
def textured_raster():
    """Seeded random RGB raster; every offset other than the true one has a non-zero SSD."""
    rng = np.random.RandomState(42)
    return rng.randint(0, 256, size=(32, 40, 3)).astype(np.uint8)


@pytest.fixture
def small_textured_raster():
    rng = np.random.RandomState(7)
    return rng.randint(0, 256, size=(8, 8, 3)).astype(np.uint8)


def solid_raster(height, width, value):
    return np.full((height, width, 3), value, dtype=np.uint8)
