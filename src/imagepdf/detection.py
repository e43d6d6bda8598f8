from __future__ import annotations

from dataclasses import dataclass
from enum import Enum
from typing import Callable

from .errors import UnsupportedFormatError
from .utils import extension_of


class UploadKind(str, Enum):
    ARCHIVE = "archive"
    IMAGE = "image"
    UNSUPPORTED = "unsupported"


class ImageFormat(str, Enum):
    JPEG = "jpeg"
    PNG = "png"
    WEBP = "webp"

    @property
    def pil_format(self) -> str:
        return self.value.upper()

    @property
    def mime_type(self) -> str:
        return f"image/{self.value}"


IMAGE_EXTENSIONS: frozenset[str] = frozenset(
    {".jpg", ".jpeg", ".png", ".gif", ".bmp", ".tiff", ".webp"}
)
ARCHIVE_EXTENSIONS: frozenset[str] = frozenset({".zip"})
ARCHIVE_MIME_TYPES: frozenset[str] = frozenset(
    {
        "application/zip",
        "application/x-zip-compressed",
        "application/x-zip",
        "application/octet-stream",
    }
)

EXTENSION_MIME_MAP: dict[str, str] = {
    ".jpg": "image/jpeg",
    ".jpeg": "image/jpeg",
    ".png": "image/png",
    ".gif": "image/gif",
    ".bmp": "image/bmp",
    ".tiff": "image/tiff",
    ".webp": "image/webp",
}

ENCODER_MAP: dict[str, ImageFormat] = {
    "image/jpeg": ImageFormat.JPEG,
    "image/jpg": ImageFormat.JPEG,
    "image/pjpeg": ImageFormat.JPEG,
    "image/png": ImageFormat.PNG,
    "image/webp": ImageFormat.WEBP,
}


@dataclass(slots=True)
class Classification:
    kind: UploadKind
    extension: str
    rule: str


def _normalize_mime(content_type: str | None) -> str:
    if not content_type:
        return ""
    return content_type.split(";", 1)[0].strip().lower()


# Ordered precedence: the first matching rule decides. Extension rules come
# before content-type rules, so the extension wins whenever they disagree.
_RULES: tuple[tuple[str, Callable[[str, str], bool], UploadKind], ...] = (
    ("archive-extension", lambda ext, mime: ext in ARCHIVE_EXTENSIONS, UploadKind.ARCHIVE),
    ("image-extension", lambda ext, mime: ext in IMAGE_EXTENSIONS, UploadKind.IMAGE),
    ("archive-mime", lambda ext, mime: mime in ARCHIVE_MIME_TYPES, UploadKind.ARCHIVE),
)


def classify_upload(filename: str, content_type: str | None) -> Classification:
    extension = extension_of(filename or "")
    mime = _normalize_mime(content_type)
    for rule, matches, kind in _RULES:
        if matches(extension, mime):
            return Classification(kind=kind, extension=extension, rule=rule)
    return Classification(kind=UploadKind.UNSUPPORTED, extension=extension, rule="fallback")


def is_image_name(filename: str) -> bool:
    return extension_of(filename) in IMAGE_EXTENSIONS


def content_type_for(filename: str) -> str:
    """Content type implied by the file extension, for entries that carry none."""

    return EXTENSION_MIME_MAP.get(extension_of(filename), "application/octet-stream")


def encoder_for(content_type: str | None) -> ImageFormat:
    return ENCODER_MAP.get(_normalize_mime(content_type), ImageFormat.JPEG)


def require_image_name(filename: str) -> str:
    extension = extension_of(filename)
    if extension not in IMAGE_EXTENSIONS:
        raise UnsupportedFormatError(f"Unsupported file extension: {extension or '<none>'}")
    return extension


__all__ = [
    "ARCHIVE_MIME_TYPES",
    "Classification",
    "IMAGE_EXTENSIONS",
    "ImageFormat",
    "UploadKind",
    "classify_upload",
    "content_type_for",
    "encoder_for",
    "is_image_name",
    "require_image_name",
]
