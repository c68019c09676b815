"""
CoverFit Pipeline

Combines:
1. Dimension probing (is the source already small enough?)
2. Cover crop (scale + center-crop to the target size)
3. Size-budget compression (re-encode under a byte limit)

Images that already satisfy the constraints are returned byte-for-byte
unchanged.
"""

import logging
from dataclasses import dataclass
from typing import Optional

from .codec import ImageBackend, get_backend
from .compressor import BYTES_PER_MIB, CompressionOptions, compress_to_budget
from .cropper import cover_crop
from .errors import InvalidArgument
from .media import EncodedImage, MediaType, ensure_encoded_image
from .prober import probe

logger = logging.getLogger(__name__)


@dataclass
class CropRequest:
    """One image to fit into a target size and optional byte budget"""
    image: EncodedImage
    target_width: Optional[int] = None
    target_height: Optional[int] = None

    # Optional byte budget, triggers a compression pass
    max_bytes: Optional[int] = None

    @classmethod
    def with_max_mb(
        cls,
        image: EncodedImage,
        target_width: Optional[int] = None,
        target_height: Optional[int] = None,
        max_mb: Optional[float] = None,
    ) -> "CropRequest":
        """Build a request whose budget is given in mebibytes."""
        max_bytes = int(max_mb * BYTES_PER_MIB) if max_mb else None
        return cls(image, target_width, target_height, max_bytes)


class CoverFitPipeline:
    """
    Main pipeline for CoverFit.

    Holds only immutable configuration, so one instance can serve
    concurrent requests.
    """

    def __init__(
        self,
        options: Optional[CompressionOptions] = None,
        backend: Optional[ImageBackend] = None,
    ):
        self.options = options or CompressionOptions()
        self.backend = backend or get_backend()

    def process(self, request: CropRequest) -> EncodedImage:
        """
        Crop and compress one image.

        Any probe, crop or compression error aborts the whole call.
        """
        source = ensure_encoded_image(request.image)
        MediaType.parse(source.media_type)
        target_w = request.target_width
        target_h = request.target_height
        max_bytes = request.max_bytes
        if max_bytes is not None and max_bytes <= 0:
            raise InvalidArgument(f"max_bytes must be positive, got {max_bytes}")

        if not target_w and not target_h:
            logger.info("%s: no target size, returning source", source.name)
            return source

        width, height = probe(source, self.backend)

        # Either constrained axis fitting counts, even if the other is below target
        fits = bool((target_w and width <= target_w) or (target_h and height <= target_h))
        if fits:
            if not max_bytes or source.size < max_bytes:
                logger.info(
                    "%s: %dx%d already within %sx%s, returning source",
                    source.name, width, height, target_w, target_h,
                )
                return source
            logger.info("%s: within target size, compressing to %d bytes", source.name, max_bytes)
            return compress_to_budget(source, max_bytes, self.options, self.backend)

        cropped = cover_crop(source, target_w, target_h, self.backend)
        logger.info("%s: cropped to %sx%s", source.name, target_w, target_h)

        if max_bytes:
            return compress_to_budget(cropped, max_bytes, self.options, self.backend)
        return cropped


# Singleton
_pipeline_instance: Optional[CoverFitPipeline] = None


def get_pipeline(options: Optional[CompressionOptions] = None) -> CoverFitPipeline:
    """Get or create the singleton pipeline instance."""
    global _pipeline_instance
    if _pipeline_instance is None:
        _pipeline_instance = CoverFitPipeline(options)
    return _pipeline_instance


def process_image(
    image: EncodedImage,
    target_width: Optional[int] = None,
    target_height: Optional[int] = None,
    max_bytes: Optional[int] = None,
) -> EncodedImage:
    """Convenience function for a single crop-and-compress run."""
    return get_pipeline().process(CropRequest(image, target_width, target_height, max_bytes))


def crop_image(
    image: EncodedImage,
    target_width: Optional[int] = None,
    target_height: Optional[int] = None,
    max_mb: Optional[float] = None,
) -> EncodedImage:
    """Like process_image, with the byte budget given in mebibytes."""
    return get_pipeline().process(
        CropRequest.with_max_mb(image, target_width, target_height, max_mb)
    )
