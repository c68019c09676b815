"""
Cover Cropping for CoverFit

Produces an image of exactly the requested size without stretching it.

Approach:
1. Scale the source so it fully covers the target rectangle ("cover",
   not "contain": no letterboxing)
2. Center-crop the scaled image to the exact target size
3. Re-encode in the source format (PNG for vector or undeclared sources)
"""

import math
import logging
import time
from dataclasses import dataclass
from typing import Optional, Tuple

from .codec import ImageBackend, get_backend
from .errors import InvalidArgument
from .media import EncodedImage, MediaType, PixelDimensions, ensure_encoded_image
from .prober import probe

logger = logging.getLogger(__name__)

# Encode quality for JPEG output; lossless formats ignore it
CROP_JPEG_QUALITY = 0.9


@dataclass(frozen=True)
class CropPlan:
    """Geometry of a cover crop"""
    source: PixelDimensions
    target: PixelDimensions

    # Uniform scale applied to the source
    scale: float

    # Source size after scaling, always >= target on both axes
    resized: PixelDimensions

    # Top-left corner of the crop window inside the resized image
    offset: Tuple[int, int]


def _check_target(value: Optional[int], axis: str) -> Optional[int]:
    if value is None:
        return None
    if isinstance(value, bool) or not isinstance(value, int):
        raise InvalidArgument(f"{axis} must be an integer, got {value!r}")
    if value < 0:
        raise InvalidArgument(f"{axis} must not be negative, got {value}")
    return value or None


def plan_cover_crop(
    source: Tuple[int, int],
    target_width: Optional[int] = None,
    target_height: Optional[int] = None,
) -> CropPlan:
    """
    Compute the scale and crop window that cover the target rectangle.

    When one target axis is missing it is derived from the other axis's
    scale factor, so the result keeps the source aspect ratio.

    Args:
        source: (width, height) of the source image
        target_width: Target width in pixels (None or 0 = unconstrained)
        target_height: Target height in pixels (None or 0 = unconstrained)

    Returns:
        CropPlan
    """
    orig_w, orig_h = source
    if orig_w < 1 or orig_h < 1:
        raise InvalidArgument(f"source must be at least 1x1, got {orig_w}x{orig_h}")

    target_w = _check_target(target_width, "target_width")
    target_h = _check_target(target_height, "target_height")
    if target_w is None and target_h is None:
        raise InvalidArgument("at least one of target_width/target_height is required")

    # Fill in the unconstrained axis from the constrained one
    if target_h is None:
        target_h = max(1, round(target_w / orig_w * orig_h))
    elif target_w is None:
        target_w = max(1, round(target_h / orig_h * orig_w))

    scale = max(target_w / orig_w, target_h / orig_h)

    # Round up so the scaled image never falls short of the target
    new_w = max(math.ceil(orig_w * scale), target_w)
    new_h = max(math.ceil(orig_h * scale), target_h)

    crop_x = (new_w - target_w) // 2
    crop_y = (new_h - target_h) // 2

    return CropPlan(
        source=PixelDimensions(orig_w, orig_h),
        target=PixelDimensions(target_w, target_h),
        scale=scale,
        resized=PixelDimensions(new_w, new_h),
        offset=(crop_x, crop_y),
    )


def choose_output_type(media_type: Optional[MediaType]) -> MediaType:
    """Keep the source type unless it is vector or undeclared."""
    if media_type is None or media_type is MediaType.SVG:
        return MediaType.PNG
    return media_type


def cover_crop(
    image: EncodedImage,
    target_width: Optional[int] = None,
    target_height: Optional[int] = None,
    backend: Optional[ImageBackend] = None,
) -> EncodedImage:
    """
    Scale and center-crop an image to exactly the target size.

    Args:
        image: Source image
        target_width: Target width (None or 0 = derive from height)
        target_height: Target height (None or 0 = derive from width)
        backend: Codec backend (defaults to Pillow)

    Returns:
        New EncodedImage with the filename extension matching its type,
        or the input itself when no target is given
    """
    image = ensure_encoded_image(image)
    if not target_width and not target_height:
        return image

    media_type = MediaType.parse(image.media_type)
    backend = backend or get_backend()

    plan = plan_cover_crop(probe(image, backend), target_width, target_height)
    output_type = choose_output_type(media_type)
    quality = CROP_JPEG_QUALITY if output_type is MediaType.JPEG else None

    logger.debug(
        "Cover crop %s: %dx%d -> resize %dx%d -> crop %dx%d at %s",
        image.name, *plan.source, *plan.resized, *plan.target, plan.offset,
    )

    with backend.open_surface() as surface:
        pixels = surface.decode(image.data, media_type)
        resized = surface.resize(pixels, plan.resized.width, plan.resized.height)
        cropped = surface.crop_window(
            resized, plan.offset[0], plan.offset[1], plan.target.width, plan.target.height
        )
        data = surface.encode(cropped, output_type, quality)

    return image.with_data(data, output_type, last_modified=time.time())


if __name__ == "__main__":
    import sys

    if len(sys.argv) < 4:
        print("Usage: python -m coverfit.cropper <image_path> <width> <height>")
        sys.exit(1)

    source = EncodedImage.from_path(sys.argv[1])
    result = cover_crop(source, int(sys.argv[2]), int(sys.argv[3]))

    output_path = f"cropped_{result.name}"
    with open(output_path, "wb") as f:
        f.write(result.data)

    print(f"Original: {probe(source)} {source.size:,} bytes")
    print(f"Cropped:  {probe(result)} {result.size:,} bytes")
    print(f"Saved cropped image to: {output_path}")
