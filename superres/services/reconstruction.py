from __future__ import annotations

import logging
import math
import time
from dataclasses import dataclass
from typing import Optional, Sequence

import numpy as np

from superres.config import ReconstructionConfig
from superres.services.alignment import AlignmentResult, align_frames
from superres.services.fusion import fuse_frames
from superres.services.image_utils import check_frame_set
from superres.services.upscale import check_factor

logger = logging.getLogger(__name__)


@dataclass
class ReconstructionResult:
	image: np.ndarray
	alignment: AlignmentResult
	weights: np.ndarray
	upscale_factor: int


def derive_upscale_factor(frame_count: int) -> int:
	"""floor(sqrt(n)), never below 1."""
	return max(1, math.isqrt(max(0, int(frame_count))))


def run_reconstruction(
	frames: Sequence[np.ndarray],
	upscale_factor: int,
	config: Optional[ReconstructionConfig] = None,
) -> ReconstructionResult:
	"""
	Fuse a frame set into one raster of size (H*U, W*U).

	Steps: align every frame to frames[0], upscale each aligned frame bilinearly,
	accumulate them on a shared canvas, then average. Invalid input raises
	PreconditionError before any work starts.
	"""
	cfg = config or ReconstructionConfig()
	h, w = check_frame_set(frames)
	check_factor(upscale_factor)
	factor = int(upscale_factor)
	logger.info(
		"Reconstructing %d frames of %dx%d at %dx (max_shift=%d, reduction=%s)",
		len(frames), w, h, factor, cfg.max_shift, cfg.reduction,
	)

	t0 = time.perf_counter()
	alignment = align_frames(
		frames,
		max_shift=cfg.max_shift,
		reduction=cfg.reduction,
		workers=cfg.align_workers,
		search_workers=cfg.search_workers,
	)
	t1 = time.perf_counter()
	buffer = fuse_frames(alignment.frames, h, w, factor, workers=cfg.fuse_workers)
	t2 = time.perf_counter()
	image = buffer.normalize()
	t3 = time.perf_counter()
	logger.info(
		"Reconstruction done: %dx%d output (align %.3fs, fuse %.3fs, normalize %.3fs)",
		image.shape[1], image.shape[0], t1 - t0, t2 - t1, t3 - t2,
	)
	return ReconstructionResult(image=image, alignment=alignment, weights=buffer.weights, upscale_factor=factor)


def reconstruct(
	frames: Sequence[np.ndarray],
	upscale_factor: int,
	config: Optional[ReconstructionConfig] = None,
) -> np.ndarray:
	return run_reconstruction(frames, upscale_factor, config).image
