from __future__ import annotations

from typing import List

from fastapi import APIRouter, File, HTTPException, Request, UploadFile
from fastapi.concurrency import run_in_threadpool
from fastapi.responses import HTMLResponse, Response

from superres.logging_config import get_logger
from superres.services.errors import PreconditionError
from superres.services.image_utils import decode_image, encode_jpeg
from superres.services.reconstruction import derive_upscale_factor, reconstruct

logger = get_logger(__name__)

router = APIRouter(tags=["superres"])

UPLOAD_PAGE_HTML = """<!DOCTYPE html>
<html lang="en">
<head>
<meta charset="UTF-8">
<meta name="viewport" content="width=device-width, initial-scale=1.0">
<title>Super Resolution</title>
</head>
<body>
<h1>Super Resolution Tool</h1>
<form action="/upload" method="post" enctype="multipart/form-data">
<label for="images">Upload Images (JPEG, PNG, GIF)</label>
<input type="file" name="images" id="images" multiple required>
<button type="submit">Submit Images</button>
</form>
</body>
</html>
"""


@router.get("/", response_class=HTMLResponse, summary="Upload form")
def upload_page():
	return HTMLResponse(UPLOAD_PAGE_HTML)


@router.get("/health", summary="Liveness check")
def health():
	return {"status": "ok"}


@router.post("/upload", summary="Fuse uploaded frames into one higher-resolution JPEG")
async def upload(request: Request, images: List[UploadFile] = File(...)):
	service_cfg = request.app.state.service_config
	recon_cfg = request.app.state.reconstruction_config

	if len(images) > service_cfg.max_frames:
		raise HTTPException(status_code=400, detail=f"Too many images: {len(images)} (max {service_cfg.max_frames})")

	total = 0
	frames = []
	for f in images:
		data = await f.read()
		total += len(data)
		if total > service_cfg.max_upload_bytes:
			raise HTTPException(status_code=413, detail="Uploaded files exceed the size limit")
		name = f.filename or "image"
		try:
			raster, fmt = await run_in_threadpool(decode_image, data, name)
		except PreconditionError as e:
			raise HTTPException(status_code=400, detail=str(e)) from e
		logger.info("Decoded %s as %s format (%dx%d)", name, fmt, raster.shape[1], raster.shape[0])
		frames.append(raster)

	if not frames:
		raise HTTPException(status_code=400, detail="No valid images to process. Please upload supported formats only.")

	factor = derive_upscale_factor(len(frames))
	logger.info("Maximum scaling factor determined: %dx", factor)

	try:
		result = await run_in_threadpool(reconstruct, frames, factor, recon_cfg)
	except PreconditionError as e:
		raise HTTPException(status_code=400, detail=str(e)) from e

	try:
		body = await run_in_threadpool(encode_jpeg, result, service_cfg.jpeg_quality)
	except (OSError, ValueError) as e:
		logger.error("Error encoding high-resolution image: %s", e)
		raise HTTPException(status_code=500, detail="Error encoding high-resolution image") from e
	return Response(content=body, media_type="image/jpeg")
