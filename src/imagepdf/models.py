"""Domain models for the image-to-PDF conversion pipeline."""

from __future__ import annotations

import logging
import threading
from dataclasses import dataclass, field
from enum import Enum
from pathlib import Path
from typing import Literal, Mapping

from .config import QualityConfig
from .detection import ImageFormat, UploadKind
from .errors import InvalidOptionsError
from .logging import BatchSummary

logger = logging.getLogger(__name__)


QualityLevel = Literal["low", "medium", "high"]
PageSize = Literal["a4", "letter", "legal"]

QUALITY_LEVELS: tuple[str, ...] = ("low", "medium", "high")
PAGE_SIZES: tuple[str, ...] = ("a4", "letter", "legal")
TRUE_VALUES = frozenset({"1", "true", "yes", "on"})


class RawUpload:
    """One uploaded blob: caller-declared name and type plus its byte source.

    The source is either a file on disk or an in-memory buffer. ``release``
    drops it exactly once; files are deleted only when the upload owns them.
    """

    def __init__(
        self,
        filename: str,
        content_type: str | None = None,
        *,
        path: Path | None = None,
        data: bytes | None = None,
        owned: bool = True,
    ) -> None:
        if (path is None) == (data is None):
            raise ValueError("RawUpload needs exactly one of path or data")
        self.filename = filename
        self.content_type = content_type or ""
        self.path = path
        self.owned = owned
        self._data = data
        self._released = False
        self._lock = threading.Lock()

    @classmethod
    def from_bytes(cls, filename: str, data: bytes, content_type: str | None = None) -> "RawUpload":
        return cls(filename, content_type, data=data)

    @classmethod
    def from_path(
        cls,
        path: Path,
        *,
        filename: str | None = None,
        content_type: str | None = None,
        owned: bool = True,
    ) -> "RawUpload":
        return cls(filename or path.name, content_type, path=path, owned=owned)

    @property
    def released(self) -> bool:
        return self._released

    @property
    def size(self) -> int:
        if self._data is not None:
            return len(self._data)
        if self.path is not None and self.path.exists():
            return self.path.stat().st_size
        return 0

    def read_bytes(self) -> bytes:
        if self._released:
            raise RuntimeError(f"Upload already released: {self.filename}")
        if self._data is not None:
            return self._data
        if self.path is None:
            raise RuntimeError(f"Upload has no byte source: {self.filename}")
        return self.path.read_bytes()

    def release(self) -> bool:
        """Drop the backing resource. Returns True only on the first call."""

        with self._lock:
            if self._released:
                return False
            self._released = True
            self._data = None
        if self.path is not None and self.owned:
            self.path.unlink(missing_ok=True)
        return True

    def __repr__(self) -> str:
        source = str(self.path) if self.path is not None else "<memory>"
        return f"RawUpload(filename={self.filename!r}, content_type={self.content_type!r}, source={source})"


@dataclass(frozen=True, slots=True)
class ProcessedImage:
    data: bytes = field(repr=False)
    filename: str
    width: int
    height: int
    format: ImageFormat = ImageFormat.JPEG

    def __post_init__(self) -> None:
        if self.width <= 0 or self.height <= 0:
            raise ValueError(
                f"Image dimensions must be positive, got {self.width}x{self.height} for {self.filename}"
            )


@dataclass(slots=True)
class ConversionOptions:
    """Configuration for a single conversion request."""

    quality: int = 80
    show_filenames: bool = False
    page_size: PageSize = "a4"

    @classmethod
    def from_form(
        cls,
        form: Mapping[str, object],
        quality_levels: QualityConfig | None = None,
    ) -> "ConversionOptions":
        """Build options from the flat request bag (``showFilenames``, ``imageQuality``, ``pageSize``)."""

        levels = quality_levels or QualityConfig()
        show = _parse_bool(form.get("showFilenames"))
        level = _parse_level(form.get("imageQuality"))
        page_size = _parse_choice(form.get("pageSize"), PAGE_SIZES, "a4", "pageSize")
        return cls(
            quality=levels.resolve(level),
            show_filenames=show,
            page_size=page_size,  # type: ignore[arg-type]
        )


def _parse_bool(value: object) -> bool:
    if isinstance(value, bool):
        return value
    if value is None:
        return False
    return str(value).strip().lower() in TRUE_VALUES


def _parse_level(value: object) -> str:
    """Quality level from the form; anything unrecognised converts at ``medium``."""

    normalized = str(value).strip().lower() if value is not None else ""
    if normalized in QUALITY_LEVELS:
        return normalized
    if normalized:
        logger.warning("Unknown imageQuality %r; using medium", value)
    return "medium"


def _parse_choice(value: object, choices: tuple[str, ...], default: str, name: str) -> str:
    if value is None:
        return default
    normalized = str(value).strip().lower()
    if not normalized:
        return default
    if normalized not in choices:
        raise InvalidOptionsError(f"Invalid {name}: {value!r} (expected one of {', '.join(choices)})")
    return normalized


class OutcomeStatus(str, Enum):
    SUCCESS = "success"
    SKIPPED = "skipped"
    FAILED = "failed"


@dataclass(slots=True)
class UploadOutcome:
    """What one upload contributed to the batch."""

    filename: str
    kind: UploadKind
    status: OutcomeStatus
    images: list[ProcessedImage] = field(default_factory=list)
    reason: str | None = None
    error_code: str | None = None
    size_bytes: int = 0
    elapsed_ms: float = 0.0


@dataclass(slots=True)
class GeneratedDocument:
    path: Path
    page_count: int
    size_bytes: int
    download_name: str


@dataclass(slots=True)
class ConversionResult:
    """Result metadata for one conversion request."""

    run_id: str
    document: GeneratedDocument
    outcomes: list[UploadOutcome]
    summary: BatchSummary


__all__ = [
    "ConversionOptions",
    "ConversionResult",
    "GeneratedDocument",
    "OutcomeStatus",
    "PAGE_SIZES",
    "PageSize",
    "ProcessedImage",
    "QUALITY_LEVELS",
    "QualityLevel",
    "RawUpload",
    "UploadOutcome",
]
