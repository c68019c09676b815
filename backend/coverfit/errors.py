"""
Error taxonomy for CoverFit.

Every failure raised by the core derives from CoverFitError so callers
can surface the exact error type to their users.
"""


class CoverFitError(Exception):
    """Base class for all CoverFit errors"""


class UnsupportedMediaType(CoverFitError, ValueError):
    """The input is not declared as a supported image type."""


class DecodeError(CoverFitError):
    """The bytes do not match the declared or expected format."""


class EncodeError(CoverFitError):
    """The backend cannot produce the requested output type or quality."""


class InvalidArgument(CoverFitError, ValueError):
    """An argument is outside its accepted range."""


class TypeMismatch(CoverFitError, TypeError):
    """The input is not a concrete EncodedImage instance."""
