from __future__ import annotations

import logging
from typing import List

from fastapi import APIRouter, Depends, File, Form, UploadFile
from fastapi.responses import FileResponse, JSONResponse
from starlette.background import BackgroundTask

from ...config import RuntimeConfig
from ...core import ConversionService
from ...errors import ConversionError
from ...models import RawUpload
from ...storage import TempResourceManager
from ..dependencies import get_runtime, get_service, get_storage
from ..executors import run_sync
from ..schemas import ConversionFailure

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/api", tags=["conversion"])

CHUNK_SIZE = 1024 * 1024

STATUS_BY_CODE: dict[str, int] = {
    "EMPTY_BATCH": 400,
    "INVALID_OPTIONS": 400,
    "DOCUMENT_WRITE": 500,
}


class UploadTooLargeError(ValueError):
    pass


@router.post("/convert", summary="Convert images and ZIP archives into one PDF")
async def convert_to_pdf(
    files: List[UploadFile] | None = File(None),
    showFilenames: str | None = Form(None),
    imageQuality: str | None = Form(None),
    pageSize: str | None = Form(None),
    service: ConversionService = Depends(get_service),
    storage: TempResourceManager = Depends(get_storage),
    runtime: RuntimeConfig = Depends(get_runtime),
):
    if not files:
        return _failure(400, "No files were uploaded")
    if len(files) > runtime.max_uploads:
        return _failure(400, f"Too many files: at most {runtime.max_uploads} per request")

    uploads: list[RawUpload] = []
    try:
        options = service.parse_options(
            {"showFilenames": showFilenames, "imageQuality": imageQuality, "pageSize": pageSize}
        )
        max_bytes = runtime.max_upload_size_mb * 1024 * 1024
        for upload in files:
            uploads.append(await _spool(upload, storage, max_bytes))
        result = await run_sync(service.convert, uploads, options)
    except UploadTooLargeError as exc:
        return _failure(413, str(exc))
    except ConversionError as exc:
        return _failure(STATUS_BY_CODE.get(exc.code, 500), str(exc))
    except Exception:
        logger.exception("Error converting files to PDF")
        return _failure(500, "Failed to convert files to PDF")
    finally:
        _release_all(uploads)

    document = result.document
    logger.info("Sending PDF %s (%d bytes)", document.path, document.size_bytes)
    return FileResponse(
        document.path,
        media_type="application/pdf",
        filename=document.download_name,
        background=BackgroundTask(storage.schedule_release, document.path),
    )


async def _spool(upload: UploadFile, storage: TempResourceManager, max_bytes: int) -> RawUpload:
    filename = upload.filename or "upload"
    path = storage.new_upload_path(filename)
    written = 0
    try:
        with path.open("wb") as handle:
            while True:
                chunk = await upload.read(CHUNK_SIZE)
                if not chunk:
                    break
                written += len(chunk)
                if written > max_bytes:
                    raise UploadTooLargeError(f"File too large: {filename}")
                handle.write(chunk)
    except BaseException:
        path.unlink(missing_ok=True)
        raise
    finally:
        await upload.close()
    return RawUpload.from_path(path, filename=filename, content_type=upload.content_type)


def _release_all(uploads: list[RawUpload]) -> None:
    for raw in uploads:
        try:
            raw.release()
        except OSError as exc:
            logger.error("Error deleting upload %s: %s", raw.path, exc)


def _failure(status_code: int, message: str) -> JSONResponse:
    return JSONResponse(status_code=status_code, content=ConversionFailure(message=message).model_dump())


__all__ = ["router"]
