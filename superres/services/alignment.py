from __future__ import annotations

import json
import logging
import math
from concurrent.futures import ThreadPoolExecutor
from dataclasses import dataclass
from pathlib import Path
from typing import Dict, List, Optional, Sequence, Tuple

import numpy as np

from superres.services.difference import REDUCTIONS, _ssd_terms, overlap_ratio, reduce_ssd
from superres.services.errors import PreconditionError
from superres.services.image_utils import check_frame_set, check_raster

logger = logging.getLogger(__name__)

PAD_COLOR = (0, 0, 0)


@dataclass
class ShiftResult:
	dx: int
	dy: int
	cost: float
	mean_cost: float
	overlap_ratio: float


@dataclass
class AlignmentResult:
	frames: List[np.ndarray]
	shifts: List[ShiftResult]
	reference_index: int = 0
	max_shift: int = 0
	reduction: str = "sum"

	def transforms(self) -> Dict[str, object]:
		return {
			"reference_index": int(self.reference_index),
			"max_shift": int(self.max_shift),
			"reduction": self.reduction,
			"frames": [
				{
					"index": int(idx),
					"dx": int(s.dx),
					"dy": int(s.dy),
					"cost": _json_float(s.cost),
					"mean_cost": _json_float(s.mean_cost),
					"overlap_ratio": float(s.overlap_ratio),
				}
				for idx, s in enumerate(self.shifts)
			],
		}


def _json_float(v: float) -> Optional[float]:
	# JSON has no infinity
	return None if math.isinf(v) else float(v)


def _check_max_shift(max_shift: int) -> None:
	if isinstance(max_shift, bool) or not isinstance(max_shift, (int, np.integer)):
		raise PreconditionError(f"max_shift must be an integer, got {max_shift!r}")
	if max_shift < 0:
		raise PreconditionError(f"max_shift must be >= 0, got {max_shift}")


def _search_rows(ref: np.ndarray, cand: np.ndarray, dy_values: Sequence[int], max_shift: int, reduction: str) -> Tuple[float, Optional[Tuple[int, int]]]:
	"""
	Scan dy_values (ascending) x [-S, S] and return the first minimum found.
	"""
	best_cost = math.inf
	best: Optional[Tuple[int, int]] = None
	for dy in dy_values:
		for dx in range(-max_shift, max_shift + 1):
			ssd, count = _ssd_terms(ref, cand, dx, dy)
			cost = reduce_ssd(ssd, count, reduction)
			if cost < best_cost:
				best_cost = cost
				best = (dx, dy)
	return best_cost, best


def _split_rows(max_shift: int, parts: int) -> List[List[int]]:
	rows = list(range(-max_shift, max_shift + 1))
	parts = max(1, min(parts, len(rows)))
	size = int(math.ceil(len(rows) / float(parts)))
	return [rows[i:i + size] for i in range(0, len(rows), size)]


def estimate_translation(
	reference: np.ndarray,
	candidate: np.ndarray,
	max_shift: int = 10,
	reduction: str = "sum",
	workers: int = 1,
) -> ShiftResult:
	"""
	Estimate the integer offset (dx, dy) in [-max_shift, max_shift]^2 minimising the
	SSD between reference[y, x] and candidate[y + dy, x + dx].

	Every candidate offset is evaluated. Ties go to the first offset in scan order
	(dy ascending, then dx ascending). With workers > 1 the dy rows are split into
	contiguous chunks searched in parallel and folded back in scan order, which gives
	the same answer as the sequential scan.
	"""
	check_raster(reference, name="reference")
	check_raster(candidate, name="candidate")
	_check_max_shift(max_shift)
	if reduction not in REDUCTIONS:
		raise PreconditionError(f"Unknown SSD reduction {reduction!r}, expected one of {REDUCTIONS}")
	max_shift = int(max_shift)

	chunks = _split_rows(max_shift, workers or 1)
	if len(chunks) == 1:
		results = [_search_rows(reference, candidate, chunks[0], max_shift, reduction)]
	else:
		with ThreadPoolExecutor(max_workers=len(chunks)) as executor:
			results = list(executor.map(lambda rows: _search_rows(reference, candidate, rows, max_shift, reduction), chunks))

	best_cost = math.inf
	best_dx, best_dy = 0, 0
	for cost, offset in results:
		if offset is not None and cost < best_cost:
			best_cost = cost
			best_dx, best_dy = offset

	ssd, count = _ssd_terms(reference, candidate, best_dx, best_dy)
	return ShiftResult(
		dx=int(best_dx),
		dy=int(best_dy),
		cost=reduce_ssd(ssd, count, "sum"),
		mean_cost=reduce_ssd(ssd, count, "mean"),
		overlap_ratio=overlap_ratio(reference.shape, best_dx, best_dy),
	)


def shift_raster(raster: np.ndarray, dx: int, dy: int, fill: Tuple[int, int, int] = PAD_COLOR) -> np.ndarray:
	"""
	Integer translation: out[y, x] = raster[y - dy, x - dx], padded with fill where
	the source coordinate is out of bounds. Returns a new array.
	"""
	h, w = raster.shape[:2]
	out = np.empty_like(raster)
	out[...] = np.asarray(fill, dtype=raster.dtype)
	# destination window
	xd0 = max(0, dx)
	yd0 = max(0, dy)
	xd1 = min(w, w + dx)
	yd1 = min(h, h + dy)
	if xd1 <= xd0 or yd1 <= yd0:
		return out
	out[yd0:yd1, xd0:xd1] = raster[yd0 - dy:yd1 - dy, xd0 - dx:xd1 - dx]
	return out


def align_frames(
	frames: Sequence[np.ndarray],
	max_shift: int = 10,
	reduction: str = "sum",
	workers: Optional[int] = None,
	search_workers: int = 1,
) -> AlignmentResult:
	"""
	Register every frame against frames[0]. The reference is returned as is; every
	other frame is shifted by its estimated offset. Frames are processed in parallel
	and returned in input order.
	"""
	check_frame_set(frames)
	_check_max_shift(max_shift)
	reference = frames[0]

	def _align_one(frame: np.ndarray) -> Tuple[np.ndarray, ShiftResult]:
		shift = estimate_translation(reference, frame, max_shift=max_shift, reduction=reduction, workers=search_workers)
		return shift_raster(frame, shift.dx, shift.dy), shift

	ref_shift = ShiftResult(dx=0, dy=0, cost=0.0, mean_cost=0.0, overlap_ratio=1.0)
	aligned: List[np.ndarray] = [reference]
	shifts: List[ShiftResult] = [ref_shift]

	others = list(frames[1:])
	if others:
		with ThreadPoolExecutor(max_workers=workers) as executor:
			for idx, (warped, shift) in enumerate(executor.map(_align_one, others), start=1):
				logger.info(
					"Frame %d aligned: dx=%d dy=%d cost=%.1f overlap=%.3f",
					idx, shift.dx, shift.dy, shift.cost, shift.overlap_ratio,
				)
				aligned.append(warped)
				shifts.append(shift)

	return AlignmentResult(
		frames=aligned,
		shifts=shifts,
		reference_index=0,
		max_shift=int(max_shift),
		reduction=reduction,
	)


def write_transforms_json(result: AlignmentResult, out_path: Path) -> str:
	out_path.parent.mkdir(parents=True, exist_ok=True)
	with out_path.open("w", encoding="utf-8") as f:
		json.dump(result.transforms(), f, indent=2)
	return str(out_path)
