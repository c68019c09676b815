"""
CoverFit

Components:
- prober: Image dimension probing
- cropper: Cover crop to exact target dimensions
- compressor: Quality search under a byte budget
- pipeline: Probe -> crop -> compress with short-circuits
"""

from .errors import (
    CoverFitError,
    UnsupportedMediaType,
    DecodeError,
    EncodeError,
    InvalidArgument,
    TypeMismatch,
)
from .media import EncodedImage, MediaType, PixelDimensions, rename_with_extension
from .codec import ImageBackend, RenderingSurface, PillowBackend, get_backend
from .prober import probe, has_min_dimension
from .cropper import cover_crop, plan_cover_crop, CropPlan
from .compressor import CompressionOptions, compress_to_budget, compress_image
from .pipeline import CoverFitPipeline, CropRequest, process_image, crop_image

__all__ = [
    # Errors
    "CoverFitError",
    "UnsupportedMediaType",
    "DecodeError",
    "EncodeError",
    "InvalidArgument",
    "TypeMismatch",
    # Media
    "EncodedImage",
    "MediaType",
    "PixelDimensions",
    "rename_with_extension",
    # Codec
    "ImageBackend",
    "RenderingSurface",
    "PillowBackend",
    "get_backend",
    # Prober
    "probe",
    "has_min_dimension",
    # Cropper
    "cover_crop",
    "plan_cover_crop",
    "CropPlan",
    # Compressor
    "CompressionOptions",
    "compress_to_budget",
    "compress_image",
    # Pipeline
    "CoverFitPipeline",
    "CropRequest",
    "process_image",
    "crop_image",
]
