"""
CoverFit FastAPI Backend

API endpoints for cropping and compressing images with CoverFit.
"""

import os
import base64
import logging
from typing import Optional

from fastapi import FastAPI, File, UploadFile, Form, HTTPException
from fastapi.concurrency import run_in_threadpool
from fastapi.middleware.cors import CORSMiddleware
from pydantic import BaseModel
from dotenv import load_dotenv

from coverfit import (
    CompressionOptions,
    CoverFitError,
    CoverFitPipeline,
    CropRequest,
    DecodeError,
    EncodedImage,
    EncodeError,
    InvalidArgument,
    MediaType,
    UnsupportedMediaType,
    compress_image,
    probe,
)

# Load environment variables
load_dotenv()

logging.basicConfig(
    level=os.environ.get("COVERFIT_LOG_LEVEL", "INFO").upper(),
    format="%(asctime)s %(levelname)s %(name)s: %(message)s",
)
logger = logging.getLogger("coverfit.api")

# Initialize app
app = FastAPI(
    title="CoverFit API",
    description="Cover-crop images to exact sizes and compress them under a byte budget",
    version="1.0.0",
)

# CORS for frontend
app.add_middleware(
    CORSMiddleware,
    allow_origins=["*"],  # In production, specify your frontend domain
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
)

# Error type -> HTTP status
ERROR_STATUS = {
    UnsupportedMediaType: 415,
    DecodeError: 422,
    InvalidArgument: 422,
    EncodeError: 500,
}

# Initialize pipeline (singleton)
pipeline: Optional[CoverFitPipeline] = None


def get_options() -> CompressionOptions:
    """Compression settings from the environment."""
    return CompressionOptions(
        min_quality=float(os.environ.get("COVERFIT_MIN_QUALITY", "0.3")),
        quality_step=float(os.environ.get("COVERFIT_QUALITY_STEP", "0.05")),
    )


def get_max_upload_bytes() -> int:
    return int(float(os.environ.get("COVERFIT_MAX_UPLOAD_MB", "25")) * 1024 * 1024)


def get_pipeline() -> CoverFitPipeline:
    """Get or create the pipeline instance."""
    global pipeline
    if pipeline is None:
        pipeline = CoverFitPipeline(get_options())
    return pipeline


# Response models
class DimensionsResponse(BaseModel):
    width: int
    height: int
    media_type: str


class ImageResponse(BaseModel):
    name: str
    media_type: str

    # Dimensions of the returned image, None for unchanged vector sources
    width: Optional[int]
    height: Optional[int]

    # File sizes in bytes
    original_bytes: int
    processed_bytes: int

    # True when the input was returned byte-for-byte
    unchanged: bool

    base64_image: str


def error_to_http(error: CoverFitError) -> HTTPException:
    """Translate a CoverFit error, keeping its type name for the caller."""
    status = 500
    for error_cls, code in ERROR_STATUS.items():
        if isinstance(error, error_cls):
            status = code
            break
    return HTTPException(
        status_code=status,
        detail={"error": type(error).__name__, "message": str(error)},
    )


async def read_upload(upload: UploadFile) -> EncodedImage:
    """Read an uploaded file into an EncodedImage."""
    limit = get_max_upload_bytes()
    if upload.size is not None and upload.size > limit:
        raise HTTPException(status_code=413, detail="Upload too large")

    # Never buffer more than one byte past the limit
    data = await upload.read(limit + 1)
    if len(data) > limit:
        raise HTTPException(status_code=413, detail="Upload too large")
    return EncodedImage.from_bytes(data, upload.content_type, upload.filename or "image")


def build_response(source: EncodedImage, result: EncodedImage) -> ImageResponse:
    """Describe a result. Blocking: call through run_in_threadpool."""
    width = height = None
    if result is not source or result.media_type.pil_format is not None:
        width, height = probe(result, get_pipeline().backend)
    return ImageResponse(
        name=result.name,
        media_type=result.media_type.value,
        width=width,
        height=height,
        original_bytes=source.size,
        processed_bytes=result.size,
        unchanged=result is source,
        base64_image=base64.b64encode(result.data).decode("utf-8"),
    )


@app.get("/")
async def root():
    """Health check endpoint."""
    return {
        "status": "healthy",
        "service": "CoverFit API",
        "version": "1.0.0",
    }


@app.get("/health")
async def health():
    """Health check endpoint."""
    return {"status": "ok"}


@app.get("/media-types")
async def list_media_types():
    """
    List the supported media types.
    """
    return {
        media_type.value: {
            "extension": media_type.extension,
            "lossy": media_type.is_lossy,
            "raster": media_type.pil_format is not None,
        }
        for media_type in MediaType
    }


@app.post("/dimensions", response_model=DimensionsResponse)
async def image_dimensions(image: UploadFile = File(...)):
    """Return the pixel size of an uploaded image."""
    try:
        source = await read_upload(image)
        width, height = await run_in_threadpool(probe, source, get_pipeline().backend)
        return DimensionsResponse(
            width=width, height=height, media_type=source.media_type.value
        )
    except CoverFitError as e:
        raise error_to_http(e)


@app.post("/crop", response_model=ImageResponse)
async def crop(
    image: UploadFile = File(...),
    target_width: Optional[int] = Form(None),
    target_height: Optional[int] = Form(None),
    max_mb: Optional[float] = Form(None),
):
    """
    Cover-crop an image to the target size.

    This is the main endpoint. It:
    1. Returns the image as-is when no target is given or it already fits
    2. Otherwise scales it to cover the target and center-crops it
    3. Compresses the result when max_mb is given
    """
    try:
        source = await read_upload(image)
        request = CropRequest.with_max_mb(source, target_width, target_height, max_mb)
        result = await run_in_threadpool(get_pipeline().process, request)
        return await run_in_threadpool(build_response, source, result)
    except CoverFitError as e:
        logger.warning("Crop of %s failed: %s: %s", image.filename, type(e).__name__, e)
        raise error_to_http(e)


@app.post("/compress", response_model=ImageResponse)
async def compress(
    image: UploadFile = File(...),
    max_mb: float = Form(...),
    min_quality: Optional[float] = Form(None),
    quality_step: Optional[float] = Form(None),
):
    """
    Compress an image below max_mb mebibytes without changing its size.
    """
    try:
        source = await read_upload(image)
        defaults = get_pipeline().options
        options = CompressionOptions(
            min_quality=min_quality if min_quality is not None else defaults.min_quality,
            quality_step=quality_step if quality_step is not None else defaults.quality_step,
        )
        result = await run_in_threadpool(
            compress_image, source, max_mb, options, get_pipeline().backend
        )
        return await run_in_threadpool(build_response, source, result)
    except CoverFitError as e:
        logger.warning("Compression of %s failed: %s: %s", image.filename, type(e).__name__, e)
        raise error_to_http(e)


if __name__ == "__main__":
    import uvicorn
    uvicorn.run(app, host="0.0.0.0", port=8000)
