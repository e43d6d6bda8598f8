"""Convert uploaded images and ZIP archives into one multi-page PDF."""

from .config import AppConfig, load_config
from .core import ConversionService
from .errors import (
    ConversionError,
    CorruptArchiveError,
    DocumentWriteError,
    EmptyBatchError,
    ImageDecodeError,
    InvalidOptionsError,
    UnsupportedFormatError,
)
from .models import ConversionOptions, ConversionResult, GeneratedDocument, ProcessedImage, RawUpload
from .storage import TempResourceManager

__all__ = [
    "AppConfig",
    "load_config",
    "ConversionError",
    "ConversionOptions",
    "ConversionResult",
    "ConversionService",
    "CorruptArchiveError",
    "DocumentWriteError",
    "EmptyBatchError",
    "GeneratedDocument",
    "ImageDecodeError",
    "InvalidOptionsError",
    "ProcessedImage",
    "RawUpload",
    "TempResourceManager",
    "UnsupportedFormatError",
]
