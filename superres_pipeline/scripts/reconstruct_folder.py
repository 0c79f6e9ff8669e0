from __future__ import annotations

import argparse
import logging
from pathlib import Path
from typing import List, Optional

import numpy as np
from PIL import Image, UnidentifiedImageError

from superres.config import ReconstructionConfig
from superres.logging_config import setup_logging
from superres.services.alignment import write_transforms_json
from superres.services.image_utils import image_to_raster, raster_to_image
from superres.services.reconstruction import derive_upscale_factor, run_reconstruction


SUPPORTED_IMAGE_EXTS = {".jpg", ".jpeg", ".png", ".gif", ".tif", ".tiff", ".bmp", ".webp"}

logger = logging.getLogger("superres.cli")


def list_image_files(folder: Path) -> List[Path]:
    return sorted([p for p in folder.iterdir() if p.is_file() and p.suffix.lower() in SUPPORTED_IMAGE_EXTS])


def load_frames(paths: List[Path]) -> List[np.ndarray]:
    frames = []
    for p in paths:
        try:
            with Image.open(p) as img:
                frames.append(image_to_raster(img))
        except (UnidentifiedImageError, OSError) as e:
            raise SystemExit(f"Unsupported format for file {p.name}: {e}") from e
        logger.info("Loaded %s (%dx%d)", p.name, frames[-1].shape[1], frames[-1].shape[0])
    return frames


def reconstruct_folder(
    input_dir: Path,
    output_path: Path,
    scale: Optional[int] = None,
    config: Optional[ReconstructionConfig] = None,
    transforms_path: Optional[Path] = None,
) -> Path:
    input_dir = input_dir.resolve()
    image_paths = list_image_files(input_dir)
    if not image_paths:
        raise SystemExit(f"No images found in: {input_dir}")

    # first file (by name) is the reference frame
    frames = load_frames(image_paths)
    factor = scale if scale is not None else derive_upscale_factor(len(frames))
    result = run_reconstruction(frames, factor, config)

    output_path = output_path.resolve()
    output_path.parent.mkdir(parents=True, exist_ok=True)
    raster_to_image(result.image).save(output_path)
    logger.info("Saved: %s", output_path)

    if transforms_path is not None:
        write_transforms_json(result.alignment, transforms_path)
        logger.info("Saved transforms: %s", transforms_path)
    return output_path


def main(argv=None):
    parser = argparse.ArgumentParser(description="Fuse a folder of slightly offset frames into one upscaled image")
    parser.add_argument("--input", required=True, help="Input folder containing the frames (sorted by name, first is the reference)")
    parser.add_argument("--output", required=True, help="Output image path (format from suffix)")
    parser.add_argument("--scale", type=int, default=None, help="Upscale factor (default: floor(sqrt(frame count)))")
    parser.add_argument("--max-shift", type=int, default=None, help="Search radius in pixels for alignment")
    parser.add_argument("--reduction", choices=["sum", "mean"], default=None, help="SSD normalisation used by the search")
    parser.add_argument("--workers", type=int, default=None, help="Worker threads for alignment and fusion")
    parser.add_argument("--transforms", default=None, help="Optional JSON path for the estimated offsets")
    parser.add_argument("--log-level", default="INFO", help="Logging level")
    args = parser.parse_args(argv)
    if args.scale is not None and args.scale < 1:
        parser.error("--scale must be >= 1")

    setup_logging(args.log_level)

    env_cfg = ReconstructionConfig.from_env()
    config = ReconstructionConfig(
        max_shift=env_cfg.max_shift if args.max_shift is None else args.max_shift,
        reduction=env_cfg.reduction if args.reduction is None else args.reduction,
        align_workers=args.workers or env_cfg.align_workers,
        search_workers=env_cfg.search_workers,
        fuse_workers=args.workers or env_cfg.fuse_workers,
    )
    reconstruct_folder(
        Path(args.input),
        Path(args.output),
        scale=args.scale,
        config=config,
        transforms_path=Path(args.transforms) if args.transforms else None,
    )


if __name__ == "__main__":
    main()
