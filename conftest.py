"""Shared fixtures: in-memory images and a recording fake backend."""

import io
from typing import List, Optional, Tuple

import numpy as np
import pytest
from PIL import Image

from coverfit import DecodeError, EncodedImage, EncodeError, MediaType
from coverfit.codec import RenderingSurface


def encode_pil(image: Image.Image, media_type: MediaType, quality: int = 95) -> bytes:
    buffer = io.BytesIO()
    params = {"quality": quality} if media_type.is_lossy else {}
    image.save(buffer, format=media_type.pil_format, **params)
    return buffer.getvalue()


def solid_image(
    width: int,
    height: int,
    media_type: MediaType = MediaType.PNG,
    color=(120, 130, 140),
    name: Optional[str] = None,
) -> EncodedImage:
    image = Image.new("RGB", (width, height), color=color)
    name = name or f"solid.{media_type.extension}"
    return EncodedImage(encode_pil(image, media_type), media_type, name)


def noise_image(
    width: int,
    height: int,
    media_type: MediaType = MediaType.JPEG,
    seed: int = 0,
    name: Optional[str] = None,
) -> EncodedImage:
    """Random pixels, much harder to compress than a solid color."""
    rng = np.random.default_rng(seed)
    pixels = rng.integers(0, 256, size=(height, width, 3), dtype=np.uint8)
    image = Image.fromarray(pixels)
    name = name or f"noise.{media_type.extension}"
    return EncodedImage(encode_pil(image, media_type), media_type, name)


def dimensions_of(image: EncodedImage) -> Tuple[int, int]:
    with Image.open(io.BytesIO(image.data)) as opened:
        return opened.size


class FakeSurface(RenderingSurface):
    def __init__(self, backend: "FakeBackend"):
        self.backend = backend
        self.closed = False

    def close(self):
        self.closed = True

    def decode(self, data, media_type):
        self.backend.calls.append(("decode", media_type))
        if self.backend.fail_decode:
            raise DecodeError("broken")
        return "pixels"

    def encode(self, pixels, media_type, quality=None):
        self.backend.encodes.append((media_type, quality))
        if self.backend.fail_encode:
            raise EncodeError(f"cannot produce {media_type.value}")
        return b"x" * self.backend.size_for(media_type, quality)

    def resize(self, pixels, width, height):
        self.backend.calls.append(("resize", width, height))
        return pixels

    def crop_window(self, pixels, x, y, width, height):
        self.backend.calls.append(("crop", x, y, width, height))
        return pixels


class FakeBackend:
    """
    Backend that records every call.

    Encoded size is bytes_at_full_quality * quality for lossy types and
    lossless_bytes otherwise.
    """

    def __init__(
        self,
        dimensions: Tuple[int, int] = (100, 100),
        bytes_at_full_quality: int = 10_000,
        lossless_bytes: int = 10_000,
        fail_decode: bool = False,
        fail_encode: bool = False,
    ):
        self.dimensions = dimensions
        self.bytes_at_full_quality = bytes_at_full_quality
        self.lossless_bytes = lossless_bytes
        self.fail_decode = fail_decode
        self.fail_encode = fail_encode
        self.calls: List[tuple] = []
        self.encodes: List[tuple] = []
        self.surfaces: List[FakeSurface] = []

    def size_for(self, media_type, quality):
        if media_type.is_lossy and quality is not None:
            return int(self.bytes_at_full_quality * quality)
        return self.lossless_bytes

    def probe_dimensions(self, data, media_type):
        self.calls.append(("probe", media_type))
        return self.dimensions

    def open_surface(self):
        surface = FakeSurface(self)
        self.surfaces.append(surface)
        return surface


def blob(size: int, media_type: MediaType = MediaType.JPEG, name: str = "photo.jpeg") -> EncodedImage:
    return EncodedImage(b"\0" * size, media_type, name)


@pytest.fixture
def fake_backend():
    return FakeBackend()
