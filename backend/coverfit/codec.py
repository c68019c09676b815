"""
Codec capabilities for CoverFit

The core algorithms never touch a codec directly. They go through:
- ImageBackend: header probing and rendering surface creation
- RenderingSurface: per-request scope owning every pixel buffer it makes
  (decode, resize, crop, encode)

PillowBackend is the default implementation.
"""

import io
import logging
from typing import List, Optional, Protocol, Tuple

from PIL import Image, UnidentifiedImageError

from .errors import DecodeError, EncodeError
from .media import MediaType

logger = logging.getLogger(__name__)

# Decoded pixels. The Pillow backend hands out PIL images.
PixelBuffer = Image.Image


class RenderingSurface:
    """
    Scoped owner of the pixel buffers used while serving one request.

    Use as a context manager; every buffer created through the surface is
    released on exit, including early returns and error paths.
    """

    def __enter__(self) -> "RenderingSurface":
        return self

    def __exit__(self, exc_type, exc, tb) -> None:
        self.close()

    def close(self) -> None:
        raise NotImplementedError

    def decode(self, data: bytes, media_type: MediaType) -> PixelBuffer:
        raise NotImplementedError

    def encode(
        self,
        pixels: PixelBuffer,
        media_type: MediaType,
        quality: Optional[float] = None,
    ) -> bytes:
        raise NotImplementedError

    def resize(self, pixels: PixelBuffer, width: int, height: int) -> PixelBuffer:
        raise NotImplementedError

    def crop_window(
        self, pixels: PixelBuffer, x: int, y: int, width: int, height: int
    ) -> PixelBuffer:
        raise NotImplementedError


class ImageBackend(Protocol):
    """Capabilities the core requires from its environment."""

    def probe_dimensions(self, data: bytes, media_type: MediaType) -> Tuple[int, int]:
        ...

    def open_surface(self) -> RenderingSurface:
        ...


def pil_quality(quality: float) -> int:
    """Map a (0, 1] quality to Pillow's 1-100 scale."""
    return max(1, min(100, int(round(quality * 100))))


def _require_format(media_type: MediaType, error_cls) -> str:
    fmt = media_type.pil_format
    if fmt is None:
        raise error_cls(f"No raster codec for {media_type.value}")
    return fmt


class PillowSurface(RenderingSurface):
    """Rendering surface backed by Pillow images."""

    def __init__(self):
        self._buffers: List[Image.Image] = []
        self.closed = False

    def _track(self, image: Image.Image) -> Image.Image:
        if self.closed:
            raise RuntimeError("rendering surface is closed")
        self._buffers.append(image)
        return image

    def close(self) -> None:
        if self.closed:
            return
        self.closed = True
        while self._buffers:
            self._buffers.pop().close()

    def decode(self, data: bytes, media_type: MediaType) -> PixelBuffer:
        fmt = _require_format(media_type, DecodeError)
        try:
            image = Image.open(io.BytesIO(data), formats=[fmt])
        except (UnidentifiedImageError, OSError, ValueError) as e:
            raise DecodeError(f"Cannot decode {media_type.value}: {e}") from e

        self._track(image)
        try:
            # Only the first frame of multi-frame images is used
            image.load()
        except (OSError, ValueError, SyntaxError) as e:
            raise DecodeError(f"Cannot decode {media_type.value}: {e}") from e
        return image

    def encode(
        self,
        pixels: PixelBuffer,
        media_type: MediaType,
        quality: Optional[float] = None,
    ) -> bytes:
        fmt = _require_format(media_type, EncodeError)
        prepared = self._prepare_for(pixels, fmt)

        params = {}
        if media_type.is_lossy and quality is not None:
            params["quality"] = pil_quality(quality)

        buffer = io.BytesIO()
        try:
            prepared.save(buffer, format=fmt, **params)
        except (OSError, ValueError, KeyError) as e:
            raise EncodeError(f"Cannot encode {media_type.value}: {e}") from e
        data = buffer.getvalue()
        logger.debug(
            "Encoded %s quality=%s -> %d bytes",
            media_type.value, params.get("quality"), len(data),
        )
        return data

    def _prepare_for(self, pixels: Image.Image, fmt: str) -> Image.Image:
        """Convert to a mode the target format can store."""
        mode = pixels.mode
        if fmt == "JPEG" and mode not in ("RGB", "L"):
            return self._track(pixels.convert("RGB"))
        if fmt == "WEBP" and mode not in ("RGB", "RGBA"):
            has_alpha = mode in ("LA", "PA") or (
                mode == "P" and "transparency" in pixels.info
            )
            return self._track(pixels.convert("RGBA" if has_alpha else "RGB"))
        if mode == "CMYK":
            return self._track(pixels.convert("RGB"))
        return pixels

    def resize(self, pixels: PixelBuffer, width: int, height: int) -> PixelBuffer:
        return self._track(pixels.resize((width, height), Image.LANCZOS))

    def crop_window(
        self, pixels: PixelBuffer, x: int, y: int, width: int, height: int
    ) -> PixelBuffer:
        return self._track(pixels.crop((x, y, x + width, y + height)))


class PillowBackend:
    """ImageBackend built on Pillow."""

    def probe_dimensions(self, data: bytes, media_type: MediaType) -> Tuple[int, int]:
        fmt = _require_format(media_type, DecodeError)
        try:
            with Image.open(io.BytesIO(data), formats=[fmt]) as image:
                return image.size
        except (UnidentifiedImageError, OSError, ValueError) as e:
            raise DecodeError(f"Cannot read {media_type.value} header: {e}") from e

    def open_surface(self) -> PillowSurface:
        return PillowSurface()


# Singleton
_backend_instance: Optional[PillowBackend] = None


def get_backend() -> PillowBackend:
    """Get or create the default backend."""
    global _backend_instance
    if _backend_instance is None:
        _backend_instance = PillowBackend()
    return _backend_instance
