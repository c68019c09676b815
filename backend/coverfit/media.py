"""
Media types and encoded image containers for CoverFit.

EncodedImage is the unit that flows through the pipeline: an immutable
byte buffer plus its declared media type and display name. Each step
consumes one EncodedImage and returns a new one.
"""

import mimetypes
import re
from dataclasses import dataclass, replace
from enum import Enum
from pathlib import Path
from typing import NamedTuple, Optional, Union

from .errors import UnsupportedMediaType, TypeMismatch


class MediaType(Enum):
    """Supported image media types"""
    PNG = "image/png"
    JPEG = "image/jpeg"
    WEBP = "image/webp"
    GIF = "image/gif"
    BMP = "image/bmp"
    TIFF = "image/tiff"
    SVG = "image/svg+xml"

    @classmethod
    def parse(cls, value: Union["MediaType", str, None]) -> "MediaType":
        """
        Validate a declared media type.

        Args:
            value: MediaType member or a MIME string such as "image/png"

        Returns:
            The matching MediaType

        Raises:
            UnsupportedMediaType: if the value is not a known image type
        """
        if isinstance(value, cls):
            return value
        if not value or not isinstance(value, str):
            raise UnsupportedMediaType("Only image files are supported")

        normalized = value.split(";", 1)[0].strip().lower()
        normalized = _ALIASES.get(normalized, normalized)
        try:
            return cls(normalized)
        except ValueError:
            raise UnsupportedMediaType(
                f"Only image files are supported, got {value!r}"
            ) from None

    @property
    def subtype(self) -> str:
        return self.value.split("/", 1)[1]

    @property
    def pil_format(self) -> Optional[str]:
        """Pillow format name, or None when Pillow cannot handle the type."""
        return _PIL_FORMATS.get(self)

    @property
    def is_lossy(self) -> bool:
        """Whether encode quality meaningfully trades size for fidelity."""
        return self in (MediaType.JPEG, MediaType.WEBP)

    @property
    def extension(self) -> str:
        """Filename extension without the dot ("jpeg" is written as "jpg")."""
        if self is MediaType.JPEG:
            return "jpg"
        if self is MediaType.SVG:
            return "svg"
        return self.subtype


_ALIASES = {
    "image/jpg": "image/jpeg",
    "image/pjpeg": "image/jpeg",
    "image/x-png": "image/png",
    "image/x-ms-bmp": "image/bmp",
    "image/tif": "image/tiff",
    "image/svg": "image/svg+xml",
}

_PIL_FORMATS = {
    MediaType.PNG: "PNG",
    MediaType.JPEG: "JPEG",
    MediaType.WEBP: "WEBP",
    MediaType.GIF: "GIF",
    MediaType.BMP: "BMP",
    MediaType.TIFF: "TIFF",
}


class PixelDimensions(NamedTuple):
    """Pixel size of an image"""
    width: int
    height: int


def rename_with_extension(name: str, media_type: MediaType) -> str:
    """
    Replace the extension of a display name with the one for media_type.

    A name without an extension gains one.
    """
    stem = re.sub(r"\.[^/.]+$", "", name or "") or "image"
    return f"{stem}.{media_type.extension}"


@dataclass(frozen=True)
class EncodedImage:
    """An encoded image blob"""
    data: bytes
    media_type: MediaType
    name: str = "image"

    # Epoch seconds, set when a step produces a new blob
    last_modified: Optional[float] = None

    @property
    def size(self) -> int:
        """Encoded size in bytes."""
        return len(self.data)

    def with_data(
        self,
        data: bytes,
        media_type: MediaType,
        last_modified: Optional[float] = None,
    ) -> "EncodedImage":
        """Derive a new image with the name rewritten for media_type."""
        return replace(
            self,
            data=bytes(data),
            media_type=media_type,
            name=rename_with_extension(self.name, media_type),
            last_modified=last_modified,
        )

    @classmethod
    def from_bytes(
        cls,
        data: bytes,
        media_type: Union[MediaType, str, None],
        name: str = "image",
    ) -> "EncodedImage":
        """Build an image from raw bytes, validating the declared type."""
        return cls(data=bytes(data), media_type=MediaType.parse(media_type), name=name)

    @classmethod
    def from_path(
        cls,
        path: Union[str, Path],
        media_type: Union[MediaType, str, None] = None,
    ) -> "EncodedImage":
        """
        Read an image file from disk.

        The media type is guessed from the file extension when not given.
        """
        path = Path(path)
        if media_type is None:
            media_type, _ = mimetypes.guess_type(path.name)
        return cls(
            data=path.read_bytes(),
            media_type=MediaType.parse(media_type),
            name=path.name,
            last_modified=path.stat().st_mtime,
        )


def ensure_encoded_image(image: object) -> EncodedImage:
    """Check that image is a concrete EncodedImage."""
    if not isinstance(image, EncodedImage):
        raise TypeMismatch(
            f"expected an EncodedImage instance, got {type(image).__name__}"
        )
    return image
