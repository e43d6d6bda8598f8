"""Error kinds raised by the conversion pipeline.

Every error carries a short machine-readable ``code`` next to its message, the
same way the surfaces report them (HTTP detail, CLI output, run log).
"""

from __future__ import annotations


class ConversionError(RuntimeError):
    code = "CONVERSION_FAILED"

    def __init__(self, message: str, *, code: str | None = None) -> None:
        super().__init__(message)
        if code is not None:
            self.code = code


class EmptyBatchError(ConversionError):
    """No uploads were supplied, or none of them produced a usable image."""

    code = "EMPTY_BATCH"


class CorruptArchiveError(ConversionError):
    """The archive could not be read as a ZIP container at all."""

    code = "CORRUPT_ARCHIVE"

    def __init__(self, archive_name: str, reason: str | None = None) -> None:
        message = f"Invalid or corrupted ZIP file: {archive_name}"
        if reason:
            message = f"{message} ({reason})"
        super().__init__(message)
        self.archive_name = archive_name


class UnsupportedFormatError(ConversionError):
    code = "UNSUPPORTED_FORMAT"


class ImageDecodeError(ConversionError):
    code = "IMAGE_DECODE"


class DocumentWriteError(ConversionError):
    """The generated document could not be written to disk."""

    code = "DOCUMENT_WRITE"


class InvalidOptionsError(ConversionError):
    code = "INVALID_OPTIONS"


__all__ = [
    "ConversionError",
    "CorruptArchiveError",
    "DocumentWriteError",
    "EmptyBatchError",
    "ImageDecodeError",
    "InvalidOptionsError",
    "UnsupportedFormatError",
]
