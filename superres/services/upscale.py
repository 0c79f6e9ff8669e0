from __future__ import annotations

import cv2
import numpy as np

from superres.services.errors import PreconditionError


def check_factor(factor: int) -> None:
	if isinstance(factor, bool) or not isinstance(factor, (int, np.integer)):
		raise PreconditionError(f"Upscale factor must be an integer, got {factor!r}")
	if factor < 1:
		raise PreconditionError(f"Upscale factor must be >= 1, got {factor}")


def upscale_raster(raster: np.ndarray, factor: int) -> np.ndarray:
	"""
	Bilinear resample of an RGB uint8 raster [H,W,3] to [H*factor,W*factor,3].
	Samples sit at pixel centres and edges are clamped (cv2 INTER_LINEAR).
	"""
	check_factor(factor)
	if factor == 1:
		return raster.copy()
	h, w = raster.shape[:2]
	src = np.ascontiguousarray(raster)
	return cv2.resize(src, (w * int(factor), h * int(factor)), interpolation=cv2.INTER_LINEAR)
