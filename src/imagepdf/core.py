from __future__ import annotations

import logging
import time
from typing import Mapping, Sequence

from .archive import ArchiveExtractor
from .batch import BatchProcessor, collect_images
from .composer import DocumentComposer
from .config import AppConfig
from .errors import ConversionError, EmptyBatchError
from .logging import BatchSummary, RunLogEntry, RunLogger, StageTimings
from .models import ConversionOptions, ConversionResult, RawUpload, UploadOutcome
from .normalizer import ImageNormalizer
from .storage import TempResourceManager
from .utils import generate_run_id

logger = logging.getLogger(__name__)


class ConversionService:
    """Run one conversion request: batch -> empty check -> compose.

    The service never deletes the generated document; the caller hands it to
    :meth:`TempResourceManager.schedule_release` once it has been delivered.
    """

    def __init__(self, config: AppConfig, storage: TempResourceManager | None = None) -> None:
        self._config = config
        self._storage = storage or TempResourceManager.from_config(
            config.runtime.temp_root, config.runtime.janitor
        )
        normalizer = ImageNormalizer()
        extractor = ArchiveExtractor(
            self._storage,
            normalizer,
            max_entry_bytes=config.runtime.max_entry_size_mb * 1024 * 1024,
        )
        self._batch = BatchProcessor(extractor, normalizer, parallelism=config.runtime.parallelism)
        self._composer = DocumentComposer(self._storage)
        self._run_logger = RunLogger(config.log_path)

    @property
    def config(self) -> AppConfig:
        return self._config

    @property
    def storage(self) -> TempResourceManager:
        return self._storage

    def parse_options(self, form: Mapping[str, object]) -> ConversionOptions:
        return ConversionOptions.from_form(form, self._config.quality)

    def convert(
        self,
        uploads: Sequence[RawUpload],
        options: ConversionOptions | None = None,
        *,
        run_id: str | None = None,
    ) -> ConversionResult:
        """Convert *uploads* into one PDF.

        Every upload is released before this returns, whatever the outcome.

        Raises:
            EmptyBatchError: no uploads, or none of them yielded an image.
            DocumentWriteError: the PDF could not be written.
        """
        opts = options or ConversionOptions()
        run_id = run_id or generate_run_id("convert")
        if not uploads:
            self._log_request(run_id, "failure", EmptyBatchError.code, "No files were uploaded", 0)
            raise EmptyBatchError("No files were uploaded")

        logger.info(
            "Conversion %s: %d uploads, quality=%s, pageSize=%s, showFilenames=%s",
            run_id,
            len(uploads),
            opts.quality,
            opts.page_size,
            opts.show_filenames,
        )
        batch_start = time.perf_counter()
        try:
            outcomes = self._batch.process_outcomes(uploads, opts.quality)
        finally:
            self._release_remaining(uploads)
        batch_ms = (time.perf_counter() - batch_start) * 1000

        summary = self._summarize(run_id, outcomes)
        images = collect_images(outcomes)
        logger.info("Processed %d images total for %s", len(images), run_id)
        if not images:
            message = "No valid images found in the uploaded files"
            self._log_request(run_id, "failure", EmptyBatchError.code, message, 0)
            raise EmptyBatchError(message)

        compose_start = time.perf_counter()
        try:
            document = self._composer.compose(images, opts)
        except ConversionError as exc:
            self._log_request(run_id, "failure", exc.code, str(exc), len(images))
            raise
        compose_ms = (time.perf_counter() - compose_start) * 1000

        self._run_logger.append(
            RunLogEntry(
                run_id=run_id,
                event="document",
                source=str(document.path),
                status="success",
                error_code=None,
                message=None,
                images=document.page_count,
                size_bytes=document.size_bytes,
                elapsed_ms=batch_ms + compose_ms,
                timings=StageTimings(batch_ms=batch_ms, compose_ms=compose_ms),
            )
        )
        logger.info("PDF generated at %s (%d pages)", document.path, document.page_count)
        return ConversionResult(run_id=run_id, document=document, outcomes=outcomes, summary=summary)

    def _release_remaining(self, uploads: Sequence[RawUpload]) -> None:
        for upload in uploads:
            if upload.released:
                continue
            try:
                upload.release()
            except OSError as exc:
                logger.error("Error deleting upload %s: %s", upload.path, exc)

    def _summarize(self, run_id: str, outcomes: Sequence[UploadOutcome]) -> BatchSummary:
        summary = BatchSummary()
        for outcome in outcomes:
            summary.add(outcome.status.value, len(outcome.images))
            self._run_logger.append(
                RunLogEntry(
                    run_id=run_id,
                    event="upload",
                    source=outcome.filename,
                    status=outcome.status.value,
                    error_code=outcome.error_code,
                    message=outcome.reason,
                    images=len(outcome.images),
                    size_bytes=outcome.size_bytes,
                    elapsed_ms=outcome.elapsed_ms,
                )
            )
        return summary

    def _log_request(self, run_id: str, status: str, code: str, message: str, images: int) -> None:
        logger.warning("Conversion %s failed: %s", run_id, message)
        self._run_logger.append(
            RunLogEntry(
                run_id=run_id,
                event="document",
                source="",
                status=status,
                error_code=code,
                message=message,
                images=images,
                size_bytes=0,
            )
        )


__all__ = ["ConversionService"]
