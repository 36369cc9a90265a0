"""
Error kinds raised by the conversion stages.

Every error is terminal for the volume being converted.
"""

from pathlib import Path


class ConversionError(Exception):
    """Base class for all conversion failures."""

    kind = "ConversionError"

    def __init__(self, message: str, path: Path | None = None) -> None:
        super().__init__(message)
        self.path = path

    def __str__(self) -> str:
        message = super().__str__()
        if self.path is not None:
            return f"{message}: {self.path}"
        return message


class UnreadableImage(ConversionError):
    """A source image could not be decoded."""

    kind = "UnreadableImage"


class UnsupportedGeometry(ConversionError):
    """An image has dimensions the splitter cannot work with."""

    kind = "UnsupportedGeometry"


class EncodeFailure(ConversionError):
    """Re-encoding an image to JPEG failed."""

    kind = "EncodeFailure"


class PackagingError(ConversionError):
    """Writing a document, copying an image or zipping the archive failed."""

    kind = "PackagingError"


class NoImagesFound(ConversionError):
    """The volume has no input images."""

    kind = "NoImagesFound"


class ConversionCancelled(ConversionError):
    """Cancellation was requested between two stages."""

    kind = "ConversionCancelled"
