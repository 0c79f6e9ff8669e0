from __future__ import annotations

import os
from dataclasses import dataclass
from typing import Optional

from superres.services.difference import REDUCTIONS


def _env_int(name: str, default: Optional[int]) -> Optional[int]:
	raw = os.environ.get(name)
	if raw is None or raw.strip() == "":
		return default
	try:
		return int(raw)
	except ValueError as e:
		raise ValueError(f"{name} must be an integer, got {raw!r}") from e


@dataclass(frozen=True)
class ReconstructionConfig:
	# search radius in pixels; cost grows with (2*max_shift+1)^2
	max_shift: int = 10
	reduction: str = "sum"
	align_workers: Optional[int] = None
	search_workers: int = 1
	fuse_workers: Optional[int] = None

	def __post_init__(self):
		if self.max_shift < 0:
			raise ValueError(f"max_shift must be >= 0, got {self.max_shift}")
		if self.reduction not in REDUCTIONS:
			raise ValueError(f"reduction must be one of {REDUCTIONS}, got {self.reduction!r}")
		for name in ("align_workers", "search_workers", "fuse_workers"):
			v = getattr(self, name)
			if v is not None and v < 1:
				raise ValueError(f"{name} must be >= 1, got {v}")

	@classmethod
	def from_env(cls) -> "ReconstructionConfig":
		return cls(
			max_shift=_env_int("SUPERRES_MAX_SHIFT", 10),
			reduction=os.environ.get("SUPERRES_REDUCTION", "sum"),
			align_workers=_env_int("SUPERRES_ALIGN_WORKERS", None),
			search_workers=_env_int("SUPERRES_SEARCH_WORKERS", 1),
			fuse_workers=_env_int("SUPERRES_FUSE_WORKERS", None),
		)


@dataclass(frozen=True)
class ServiceConfig:
	max_upload_bytes: int = 10 << 20
	max_frames: int = 32
	jpeg_quality: int = 90
	log_level: str = "INFO"
	log_dir: Optional[str] = None

	@classmethod
	def from_env(cls) -> "ServiceConfig":
		return cls(
			max_upload_bytes=_env_int("SUPERRES_MAX_UPLOAD_BYTES", 10 << 20),
			max_frames=_env_int("SUPERRES_MAX_FRAMES", 32),
			jpeg_quality=_env_int("SUPERRES_JPEG_QUALITY", 90),
			log_level=os.environ.get("SUPERRES_LOG_LEVEL", "INFO"),
			log_dir=os.environ.get("SUPERRES_LOG_DIR") or None,
		)
