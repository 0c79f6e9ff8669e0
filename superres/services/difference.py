from __future__ import annotations

import math
from typing import Tuple

import cv2
import numpy as np

from superres.services.errors import PreconditionError

REDUCTIONS = ("sum", "mean")


def _overlap_bounds(ref_shape: Tuple[int, ...], cand_shape: Tuple[int, ...], dx: int, dy: int) -> Tuple[int, int, int, int]:
	"""
	Reference-space window (x0, y0, x1, y1) whose pixels land inside the candidate
	once moved by (dx, dy). Empty when x1 <= x0 or y1 <= y0.
	"""
	hr, wr = ref_shape[:2]
	hc, wc = cand_shape[:2]
	x0 = max(0, -dx)
	y0 = max(0, -dy)
	x1 = min(wr, wc - dx)
	y1 = min(hr, hc - dy)
	return x0, y0, x1, y1


def _ssd_terms(ref: np.ndarray, cand: np.ndarray, dx: int, dy: int) -> Tuple[int, int]:
	"""
	Raw SSD over all three channels and the number of compared pixels.
	"""
	x0, y0, x1, y1 = _overlap_bounds(ref.shape, cand.shape, dx, dy)
	if x1 <= x0 or y1 <= y0:
		return 0, 0
	br = ref[y0:y1, x0:x1]
	bm = cand[y0 + dy:y1 + dy, x0 + dx:x1 + dx]
	# float64 norm is exact for integer sums below 2**53
	ssd = int(round(cv2.norm(br, bm, cv2.NORM_L2SQR)))
	return ssd, (x1 - x0) * (y1 - y0)


def reduce_ssd(ssd: int, count: int, reduction: str = "sum") -> float:
	if reduction not in REDUCTIONS:
		raise PreconditionError(f"Unknown SSD reduction {reduction!r}, expected one of {REDUCTIONS}")
	if count == 0:
		return math.inf
	if reduction == "mean":
		return float(ssd) / float(count)
	return float(ssd)


def compute_ssd(reference: np.ndarray, candidate: np.ndarray, dx: int, dy: int, reduction: str = "sum") -> float:
	"""
	Sum of squared RGB differences between reference[y, x] and candidate[y + dy, x + dx].

	Pixels whose candidate coordinate falls outside the candidate are skipped.
	reduction="sum" returns the raw SSD, reduction="mean" divides it by the number
	of compared pixels. An empty overlap returns math.inf.
	"""
	ssd, count = _ssd_terms(reference, candidate, int(dx), int(dy))
	return reduce_ssd(ssd, count, reduction)


def overlap_ratio(shape: Tuple[int, ...], dx: int, dy: int) -> float:
	h, w = shape[:2]
	if h == 0 or w == 0:
		return 0.0
	x0, y0, x1, y1 = _overlap_bounds(shape, shape, dx, dy)
	if x1 <= x0 or y1 <= y0:
		return 0.0
	return float((x1 - x0) * (y1 - y0)) / float(w * h)
