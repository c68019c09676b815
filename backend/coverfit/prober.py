"""
Dimension Prober for CoverFit

Reads the pixel width/height of an encoded image.
"""

import logging
from typing import Optional

from .codec import ImageBackend, get_backend
from .errors import DecodeError
from .media import EncodedImage, MediaType, PixelDimensions, ensure_encoded_image

logger = logging.getLogger(__name__)


def probe(image: EncodedImage, backend: Optional[ImageBackend] = None) -> PixelDimensions:
    """
    Get the pixel dimensions of an encoded image.

    Args:
        image: The encoded image
        backend: Codec backend (defaults to Pillow)

    Returns:
        PixelDimensions(width, height)

    Raises:
        UnsupportedMediaType: declared type is not an image type
        DecodeError: bytes cannot be decoded
    """
    image = ensure_encoded_image(image)
    media_type = MediaType.parse(image.media_type)
    backend = backend or get_backend()

    width, height = backend.probe_dimensions(image.data, media_type)
    if width < 1 or height < 1:
        raise DecodeError(f"{image.name} has no pixels ({width}x{height})")

    logger.debug("Probed %s: %dx%d", image.name, width, height)
    return PixelDimensions(int(width), int(height))


def has_min_dimension(
    image: EncodedImage,
    min_width: int,
    min_height: int,
    backend: Optional[ImageBackend] = None,
) -> bool:
    """Check that image is at least min_width x min_height."""
    width, height = probe(image, backend)
    if width < min_width or height < min_height:
        return False
    return True
