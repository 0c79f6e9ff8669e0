from __future__ import annotations
from io import BytesIO
from typing import Sequence, Tuple
import numpy as np
from PIL import ExifTags, Image, UnidentifiedImageError

from superres.services.errors import PreconditionError

SUPPORTED_FORMATS = "JPEG, PNG, GIF"


def apply_exif_orientation(img: Image.Image, exif) -> Image.Image:
	orientation = None
	if exif:
		tmp = {}
		for tag_id, value in exif.items():
			tag = ExifTags.TAGS.get(tag_id, tag_id)
			tmp[str(tag)] = value
		orientation = tmp.get("Orientation")
	if orientation is None:
		return img
	try:
		o = int(orientation)
	except (TypeError, ValueError):
		return img
	if o == 2:
		return img.transpose(Image.Transpose.FLIP_LEFT_RIGHT)
	if o == 3:
		return img.rotate(180, expand=True)
	if o == 4:
		return img.transpose(Image.Transpose.FLIP_TOP_BOTTOM)
	if o == 5:
		return img.transpose(Image.Transpose.FLIP_LEFT_RIGHT).rotate(90, expand=True)
	if o == 6:
		return img.rotate(270, expand=True)
	if o == 7:
		return img.transpose(Image.Transpose.FLIP_LEFT_RIGHT).rotate(270, expand=True)
	if o == 8:
		return img.rotate(90, expand=True)
	return img


def image_to_raster(img: Image.Image) -> np.ndarray:
	img = apply_exif_orientation(img, img.getexif())
	if img.mode != "RGB":
		img = img.convert("RGB")
	return np.array(img, dtype=np.uint8)


def decode_image(data: bytes, filename: str = "image") -> Tuple[np.ndarray, str]:
	"""
	Decode raw image bytes into an RGB uint8 raster [H,W,3].
	Returns (raster, format). Raises PreconditionError when Pillow cannot read the data.
	"""
	try:
		img = Image.open(BytesIO(data))
		img.load()
	except (UnidentifiedImageError, OSError) as e:
		raise PreconditionError(
			f"Unsupported format for file {filename}. Supported formats are: {SUPPORTED_FORMATS}"
		) from e
	fmt = img.format or "unknown"
	return image_to_raster(img), fmt


def raster_to_image(raster: np.ndarray) -> Image.Image:
	return Image.fromarray(np.ascontiguousarray(raster, dtype=np.uint8))


def encode_jpeg(raster: np.ndarray, quality: int = 90) -> bytes:
	buf = BytesIO()
	raster_to_image(raster).save(buf, format="JPEG", quality=quality)
	return buf.getvalue()


def check_raster(raster: np.ndarray, name: str = "raster") -> None:
	if not isinstance(raster, np.ndarray):
		raise PreconditionError(f"{name} must be a numpy array, got {type(raster).__name__}")
	if raster.ndim != 3 or raster.shape[2] != 3:
		raise PreconditionError(f"{name} must be an HxWx3 RGB array, got shape {raster.shape}")
	if raster.dtype != np.uint8:
		raise PreconditionError(f"{name} must have dtype uint8, got {raster.dtype}")
	if raster.shape[0] == 0 or raster.shape[1] == 0:
		raise PreconditionError(f"{name} has zero area ({raster.shape[1]}x{raster.shape[0]})")


def check_frame_set(frames: Sequence[np.ndarray]) -> Tuple[int, int]:
	"""
	Validate a frame set and return the shared (height, width).
	"""
	if len(frames) == 0:
		raise PreconditionError("Frame set is empty")
	for idx, frame in enumerate(frames):
		check_raster(frame, name=f"frame {idx}")
	h, w = frames[0].shape[:2]
	sizes = {(int(f.shape[1]), int(f.shape[0])) for f in frames}
	if len(sizes) != 1:
		raise PreconditionError(
			"All frames must share the same dimensions, got {}".format(
				", ".join(sorted("{}x{}".format(sw, sh) for (sw, sh) in sizes))
			)
		)
	return int(h), int(w)
