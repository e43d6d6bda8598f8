from __future__ import annotations

import concurrent.futures
import logging
import time
from typing import Sequence

from .archive import ArchiveExtractor
from .detection import UploadKind, classify_upload
from .errors import ConversionError
from .models import OutcomeStatus, ProcessedImage, RawUpload, UploadOutcome
from .normalizer import ImageNormalizer

logger = logging.getLogger(__name__)


class BatchProcessor:
    """Turn a mixed list of uploads into the ordered list of processed images.

    Every upload yields one :class:`UploadOutcome`; the batch is the
    concatenation of their images in upload order. Failures stay local to the
    upload that caused them, and each upload is released as soon as its
    outcome is known.
    """

    def __init__(
        self,
        extractor: ArchiveExtractor,
        normalizer: ImageNormalizer | None = None,
        *,
        parallelism: int = 1,
    ) -> None:
        self._extractor = extractor
        self._normalizer = normalizer or ImageNormalizer()
        self._parallelism = max(1, parallelism)

    def process_batch(self, uploads: Sequence[RawUpload], quality: int) -> list[ProcessedImage]:
        return collect_images(self.process_outcomes(uploads, quality))

    def process_outcomes(self, uploads: Sequence[RawUpload], quality: int) -> list[UploadOutcome]:
        if not uploads:
            return []
        if self._parallelism == 1 or len(uploads) == 1:
            return [self._handle(upload, quality) for upload in uploads]
        workers = min(self._parallelism, len(uploads))
        with concurrent.futures.ThreadPoolExecutor(max_workers=workers, thread_name_prefix="batch") as executor:
            # map() yields in submission order, which keeps page order stable
            return list(executor.map(lambda upload: self._handle(upload, quality), uploads))

    def _handle(self, upload: RawUpload, quality: int) -> UploadOutcome:
        start = time.perf_counter()
        try:
            outcome = self._attempt(upload, quality)
        finally:
            self._release(upload)
        outcome.elapsed_ms = (time.perf_counter() - start) * 1000
        return outcome

    def _attempt(self, upload: RawUpload, quality: int) -> UploadOutcome:
        classification = classify_upload(upload.filename, upload.content_type)
        kind = classification.kind
        logger.info(
            "Processing file: %s, MIME: %s, kind: %s (%s)",
            upload.filename,
            upload.content_type or "-",
            kind.value,
            classification.rule,
        )
        if kind is UploadKind.UNSUPPORTED:
            logger.warning(
                "Unsupported file extension: %s for file %s", classification.extension or "<none>", upload.filename
            )
            return _skipped(upload, kind, "UNSUPPORTED_FORMAT", "unsupported file type")

        try:
            payload = upload.read_bytes()
        except OSError as exc:
            logger.error("Error reading upload %s: %s", upload.filename, exc)
            return _failed(upload, kind, "READ_ERROR", str(exc))
        if not payload:
            logger.error("File %s is empty", upload.filename)
            return _skipped(upload, kind, "EMPTY_FILE", "file is empty")

        try:
            if kind is UploadKind.ARCHIVE:
                images = self._extractor.extract(payload, quality, name=upload.filename)
            else:
                image = self._normalizer.normalize(
                    payload, upload.content_type, quality, filename=upload.filename
                )
                images = [image] if image is not None else []
        except ConversionError as exc:
            logger.error("Error processing file %s: %s", upload.filename, exc)
            return _failed(upload, kind, exc.code, str(exc), size=len(payload))
        except Exception as exc:
            logger.exception("Unexpected error processing file %s", upload.filename)
            return _failed(upload, kind, "UNKNOWN", str(exc), size=len(payload))

        if not images:
            reason = "no valid images in archive" if kind is UploadKind.ARCHIVE else "image could not be decoded"
            return _skipped(upload, kind, "NO_IMAGES", reason, size=len(payload))
        return UploadOutcome(
            filename=upload.filename,
            kind=kind,
            status=OutcomeStatus.SUCCESS,
            images=images,
            size_bytes=len(payload),
        )

    def _release(self, upload: RawUpload) -> None:
        try:
            upload.release()
        except OSError as exc:
            logger.error("Error deleting upload %s: %s", upload.path, exc)


def collect_images(outcomes: Sequence[UploadOutcome]) -> list[ProcessedImage]:
    images: list[ProcessedImage] = []
    for outcome in outcomes:
        images.extend(outcome.images)
    return images


def _skipped(upload: RawUpload, kind: UploadKind, code: str, reason: str, *, size: int = 0) -> UploadOutcome:
    return UploadOutcome(
        filename=upload.filename,
        kind=kind,
        status=OutcomeStatus.SKIPPED,
        reason=reason,
        error_code=code,
        size_bytes=size,
    )


def _failed(upload: RawUpload, kind: UploadKind, code: str, reason: str, *, size: int = 0) -> UploadOutcome:
    return UploadOutcome(
        filename=upload.filename,
        kind=kind,
        status=OutcomeStatus.FAILED,
        reason=reason,
        error_code=code,
        size_bytes=size,
    )


__all__ = ["BatchProcessor", "collect_images"]
