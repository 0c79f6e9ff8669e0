from __future__ import annotations

import logging
import threading
from concurrent.futures import ThreadPoolExecutor
from typing import List, Optional, Sequence

import numpy as np

from superres.services.errors import PreconditionError
from superres.services.upscale import upscale_raster

logger = logging.getLogger(__name__)

FALLBACK_COLOR = (255, 255, 255)


class AccumulationBuffer:
	"""
	Per-pixel channel sums and contribution counts on the upscaled canvas.

	add() is meant for a buffer owned by a single worker. merge() takes a lock, so
	several workers may fold their private buffers into one shared buffer.
	"""

	def __init__(self, height: int, width: int):
		if height <= 0 or width <= 0:
			raise PreconditionError(f"Canvas must have positive size, got {width}x{height}")
		self.height = int(height)
		self.width = int(width)
		self.sums = np.zeros((self.height, self.width, 3), dtype=np.float64)
		self.weights = np.zeros((self.height, self.width), dtype=np.float64)
		self._lock = threading.Lock()

	@property
	def shape(self):
		return (self.height, self.width)

	def add(self, raster: np.ndarray) -> None:
		if raster.shape[:2] != self.shape or raster.ndim != 3 or raster.shape[2] != 3:
			raise PreconditionError(
				f"Raster of shape {raster.shape} does not cover canvas {self.width}x{self.height}"
			)
		self.sums += raster
		self.weights += 1.0

	def merge(self, other: "AccumulationBuffer") -> None:
		if other.shape != self.shape:
			raise PreconditionError(f"Cannot merge buffer {other.shape} into {self.shape}")
		with self._lock:
			self.sums += other.sums
			self.weights += other.weights

	def normalize(self) -> np.ndarray:
		"""
		Average the sums into an RGB uint8 raster. Pixels without weight become white.
		"""
		out = np.empty((self.height, self.width, 3), dtype=np.uint8)
		out[...] = np.asarray(FALLBACK_COLOR, dtype=np.uint8)
		covered = self.weights > 0
		if np.any(covered):
			mean = self.sums[covered] / self.weights[covered][:, np.newaxis]
			# round half away from zero; values are never negative
			out[covered] = np.clip(np.floor(mean + 0.5), 0.0, 255.0).astype(np.uint8)
		return out


def _partition(count: int, parts: int) -> List[List[int]]:
	parts = max(1, min(parts, count))
	return [list(range(i, count, parts)) for i in range(parts)]


def fuse_frames(
	frames: Sequence[np.ndarray],
	height: int,
	width: int,
	factor: int,
	workers: Optional[int] = None,
) -> AccumulationBuffer:
	"""
	Upscale every frame by factor and accumulate it onto a (height*factor, width*factor) canvas.

	Frames are split between workers. Each worker fills a private buffer and merges it
	into the shared one when done. Samples are integers, so the float64 sums are exact
	and the result does not depend on merge order.
	"""
	shared = AccumulationBuffer(height * factor, width * factor)
	if len(frames) == 0:
		return shared
	n_workers = workers if workers else min(32, len(frames))
	groups = _partition(len(frames), n_workers)

	def _fuse_group(indices: List[int]) -> int:
		private = AccumulationBuffer(shared.height, shared.width)
		for i in indices:
			private.add(upscale_raster(frames[i], factor))
		shared.merge(private)
		return len(indices)

	if len(groups) == 1:
		_fuse_group(groups[0])
	else:
		with ThreadPoolExecutor(max_workers=len(groups)) as executor:
			fused = sum(executor.map(_fuse_group, groups))
		logger.debug("Fused %d frames with %d workers", fused, len(groups))
	return shared
