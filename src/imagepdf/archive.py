"""Pull images out of ZIP uploads.

Entries are staged on disk under a per-archive scratch directory named by
their base filename, then normalized in enumeration order. Because staging is
keyed by base name, ``a/cover.png`` and ``b/cover.png`` collide: the later
entry replaces the earlier one and takes its place in the order.
"""

from __future__ import annotations

import io
import logging
import os
import zipfile
import zlib
from pathlib import Path
from typing import IO

from .detection import content_type_for, require_image_name
from .errors import CorruptArchiveError, UnsupportedFormatError
from .models import ProcessedImage
from .normalizer import ImageNormalizer
from .storage import TempResourceManager
from .utils import base_name

logger = logging.getLogger(__name__)

CHUNK_SIZE = 1024 * 1024
DEFAULT_MAX_ENTRY_BYTES = 50 * 1024 * 1024

_ENTRY_ERRORS = (zipfile.BadZipFile, OSError, RuntimeError, NotImplementedError, EOFError, zlib.error)


class EntryTooLargeError(ValueError):
    pass


class ArchiveExtractor:
    def __init__(
        self,
        storage: TempResourceManager,
        normalizer: ImageNormalizer | None = None,
        *,
        max_entry_bytes: int = DEFAULT_MAX_ENTRY_BYTES,
    ) -> None:
        self._storage = storage
        self._normalizer = normalizer or ImageNormalizer()
        self._max_entry_bytes = max_entry_bytes

    def extract(self, data: bytes, quality: int, *, name: str = "archive.zip") -> list[ProcessedImage]:
        """Return the archive's images in enumeration order.

        Raises:
            CorruptArchiveError: when the bytes are empty or not a readable ZIP.
        """
        if not data:
            raise CorruptArchiveError(name, "archive is empty")
        try:
            archive = zipfile.ZipFile(io.BytesIO(data))
        except (zipfile.BadZipFile, zipfile.LargeZipFile, OSError, ValueError) as exc:
            raise CorruptArchiveError(name, str(exc)) from exc

        logger.info("Extracting ZIP file %s (%d bytes, %d entries)", name, len(data), len(archive.infolist()))
        images: list[ProcessedImage] = []
        with archive, self._storage.scratch_directory("zip") as scratch:
            staged = self._stage_entries(archive, scratch, name)
            for display_name, staged_path in staged.items():
                image = self._normalize_entry(staged_path, display_name, quality, name)
                if image is not None:
                    images.append(image)

        if not images:
            logger.warning("ZIP file doesn't contain any valid images: %s", name)
        else:
            logger.info("Extracted %d images from ZIP file %s", len(images), name)
        return images

    def _stage_entries(self, archive: zipfile.ZipFile, scratch: Path, name: str) -> dict[str, Path]:
        staged: dict[str, Path] = {}
        for index, info in enumerate(archive.infolist()):
            if info.is_dir():
                continue
            display_name = base_name(info.filename)
            if not display_name:
                continue
            try:
                require_image_name(display_name)
            except UnsupportedFormatError:
                logger.info("Skipping non-image file from ZIP %s: %s", name, info.filename)
                continue
            if info.file_size == 0:
                logger.error("Empty image file in ZIP %s: %s", name, info.filename)
                continue
            if info.file_size > self._max_entry_bytes:
                logger.error(
                    "Skipping oversized entry in ZIP %s: %s (%d bytes)", name, info.filename, info.file_size
                )
                continue

            target = scratch / display_name
            partial = scratch / f".entry-{index}.part"
            try:
                with archive.open(info) as source, partial.open("wb") as sink:
                    self._copy_bounded(source, sink)
                os.replace(partial, target)
            except (EntryTooLargeError, *_ENTRY_ERRORS) as exc:
                logger.error("Error extracting file from ZIP %s: %s (%s)", name, info.filename, exc)
                partial.unlink(missing_ok=True)
                continue

            if display_name in staged:
                logger.warning(
                    "Duplicate entry name %s in ZIP %s; %s replaces the earlier entry",
                    display_name,
                    name,
                    info.filename,
                )
                del staged[display_name]
            staged[display_name] = target
        return staged

    def _copy_bounded(self, source: IO[bytes], sink: IO[bytes]) -> None:
        written = 0
        for chunk in iter(lambda: source.read(CHUNK_SIZE), b""):
            written += len(chunk)
            if written > self._max_entry_bytes:
                raise EntryTooLargeError(f"entry exceeds {self._max_entry_bytes} bytes")
            sink.write(chunk)

    def _normalize_entry(
        self, staged_path: Path, display_name: str, quality: int, archive_name: str
    ) -> ProcessedImage | None:
        try:
            payload = staged_path.read_bytes()
        except OSError as exc:
            logger.error("Error reading staged entry %s from %s: %s", display_name, archive_name, exc)
            return None
        logger.debug("Processing image from ZIP %s: %s (%d bytes)", archive_name, display_name, len(payload))
        return self._normalizer.normalize(
            payload,
            content_type_for(display_name),
            quality,
            filename=display_name,
        )


__all__ = ["ArchiveExtractor", "DEFAULT_MAX_ENTRY_BYTES"]
