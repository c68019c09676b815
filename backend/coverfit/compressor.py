"""
Size-Budget Compressor for CoverFit

Re-encodes an image until it fits a byte budget, without changing its
pixel dimensions.

The search starts near-visually-lossless and lowers the encode quality
step by step. PNG/GIF quality is not tunable for size, so those sources
are searched as WebP; everything else as JPEG. The result is never
larger than the input.
"""

import logging
import math
import time
from dataclasses import dataclass
from typing import Optional

from .codec import ImageBackend, get_backend
from .errors import InvalidArgument
from .media import EncodedImage, MediaType, ensure_encoded_image

logger = logging.getLogger(__name__)

BYTES_PER_MIB = 1_048_576


@dataclass(frozen=True)
class CompressionOptions:
    """Quality search settings"""
    # Lowest quality attempted before giving up
    min_quality: float = 0.3

    # Decrement per iteration
    quality_step: float = 0.05

    # Starting point of the search
    initial_quality: float = 0.95

    def __post_init__(self):
        if not 0 < self.min_quality <= 1:
            raise InvalidArgument(f"min_quality must be in (0, 1], got {self.min_quality}")
        if not self.quality_step > 0:
            raise InvalidArgument(f"quality_step must be > 0, got {self.quality_step}")
        if not 0 < self.initial_quality <= 1:
            raise InvalidArgument(
                f"initial_quality must be in (0, 1], got {self.initial_quality}"
            )

    @property
    def max_attempts(self) -> int:
        """Upper bound on encodes performed by one search."""
        return math.ceil(max(self.initial_quality - self.min_quality, 0) / self.quality_step) + 1


DEFAULT_OPTIONS = CompressionOptions()


def lossy_type_for(media_type: MediaType) -> MediaType:
    """Lossy substitute used for the quality search."""
    if media_type in (MediaType.PNG, MediaType.GIF):
        return MediaType.WEBP
    return MediaType.JPEG


def compress_to_budget(
    image: EncodedImage,
    max_bytes: int,
    options: Optional[CompressionOptions] = None,
    backend: Optional[ImageBackend] = None,
) -> EncodedImage:
    """
    Compress an image so its encoded size is at most max_bytes.

    Args:
        image: Source image
        max_bytes: Byte budget
        options: Quality search settings
        backend: Codec backend (defaults to Pillow)

    Returns:
        The input unchanged when it already fits or when no smaller
        encoding was found, otherwise a new, smaller EncodedImage
    """
    image = ensure_encoded_image(image)
    media_type = MediaType.parse(image.media_type)
    if max_bytes is None or max_bytes <= 0:
        raise InvalidArgument(f"max_bytes must be a positive byte count, got {max_bytes}")
    options = options or DEFAULT_OPTIONS

    if image.size <= max_bytes:
        return image

    backend = backend or get_backend()
    lossy_type = lossy_type_for(media_type)

    with backend.open_surface() as surface:
        pixels = surface.decode(image.data, media_type)

        quality = options.initial_quality
        candidate_type = media_type
        candidate = surface.encode(pixels, candidate_type, quality)
        best, best_type = candidate, candidate_type
        attempts = 1

        while len(candidate) > max_bytes and quality > options.min_quality:
            quality = max(round(quality - options.quality_step, 6), options.min_quality)
            candidate_type = lossy_type
            candidate = surface.encode(pixels, candidate_type, quality)
            attempts += 1
            logger.debug(
                "%s: %s at quality %.2f -> %d bytes (budget %d)",
                image.name, candidate_type.value, quality, len(candidate), max_bytes,
            )
            if len(candidate) < len(best):
                best, best_type = candidate, candidate_type

    if len(best) >= image.size:
        logger.debug(
            "%s: no smaller encoding after %d attempts, keeping original", image.name, attempts
        )
        return image

    if len(best) > max_bytes:
        logger.info(
            "%s: quality floor %.2f reached at %d bytes, budget was %d",
            image.name, options.min_quality, len(best), max_bytes,
        )

    return image.with_data(best, best_type, last_modified=time.time())


def compress_image(
    image: EncodedImage,
    max_mb: float,
    options: Optional[CompressionOptions] = None,
    backend: Optional[ImageBackend] = None,
) -> EncodedImage:
    """
    Compress an image below max_mb mebibytes (1 MiB = 1,048,576 bytes).

    Convenience wrapper around compress_to_budget.
    """
    image = ensure_encoded_image(image)
    MediaType.parse(image.media_type)
    if max_mb is None or max_mb <= 0:
        raise InvalidArgument(f"max_mb must be positive, got {max_mb}")

    # already small enough
    if image.size / 1024 / 1024 <= max_mb:
        return image

    return compress_to_budget(image, int(max_mb * BYTES_PER_MIB), options, backend)


if __name__ == "__main__":
    import sys

    if len(sys.argv) < 3:
        print("Usage: python -m coverfit.compressor <image_path> <max_mb>")
        sys.exit(1)

    source = EncodedImage.from_path(sys.argv[1])
    result = compress_image(source, float(sys.argv[2]))

    if result is source:
        print(f"{source.name} left unchanged ({source.size:,} bytes)")
        sys.exit(0)

    output_path = f"compressed_{result.name}"
    with open(output_path, "wb") as f:
        f.write(result.data)

    print(f"File size: {source.size:,} -> {result.size:,} bytes")
    print(f"Saved compressed image to: {output_path}")
