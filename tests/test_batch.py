from pathlib import Path

import pytest

from imagepdf.archive import ArchiveExtractor
from imagepdf.batch import BatchProcessor
from imagepdf.detection import UploadKind
from imagepdf.models import OutcomeStatus, RawUpload


def build_processor(storage, parallelism: int = 1) -> BatchProcessor:
    return BatchProcessor(ArchiveExtractor(storage), parallelism=parallelism)


def mixed_uploads(make_image, make_zip) -> list[RawUpload]:
    archive = make_zip([("z1.png", make_image("PNG", (7, 7))), ("z2.jpg", make_image("JPEG", (8, 8)))])
    return [
        RawUpload.from_bytes("first.png", make_image("PNG", (1, 1)), "image/png"),
        RawUpload.from_bytes("second.jpg", make_image("JPEG", (2, 2)), "image/jpeg"),
        RawUpload.from_bytes("bundle.zip", archive, "application/zip"),
    ]


def test_batch_orders_loose_images_then_archive_entries(storage, make_image, make_zip) -> None:
    images = build_processor(storage).process_batch(mixed_uploads(make_image, make_zip), 80)
    assert [image.filename for image in images] == ["first.png", "second.jpg", "z1.png", "z2.jpg"]


def test_parallel_batch_keeps_upload_order(storage, make_image, make_zip) -> None:
    uploads = [upload for _ in range(3) for upload in mixed_uploads(make_image, make_zip)]
    images = build_processor(storage, parallelism=4).process_batch(uploads, 80)
    assert [image.filename for image in images] == ["first.png", "second.jpg", "z1.png", "z2.jpg"] * 3


def test_failures_stay_local_to_their_upload(storage, make_image) -> None:
    uploads = [
        RawUpload.from_bytes("broken.zip", b"not a zip", "application/zip"),
        RawUpload.from_bytes("notes.txt", b"text", "text/plain"),
        RawUpload.from_bytes("bad.png", b"garbage", "image/png"),
        RawUpload.from_bytes("empty.jpg", b"", "image/jpeg"),
        RawUpload.from_bytes("good.png", make_image(), "image/png"),
    ]
    outcomes = build_processor(storage).process_outcomes(uploads, 80)

    assert [outcome.status for outcome in outcomes] == [
        OutcomeStatus.FAILED,
        OutcomeStatus.SKIPPED,
        OutcomeStatus.SKIPPED,
        OutcomeStatus.SKIPPED,
        OutcomeStatus.SUCCESS,
    ]
    assert [outcome.error_code for outcome in outcomes] == [
        "CORRUPT_ARCHIVE",
        "UNSUPPORTED_FORMAT",
        "NO_IMAGES",
        "EMPTY_FILE",
        None,
    ]
    assert outcomes[1].kind is UploadKind.UNSUPPORTED
    assert [image.filename for image in outcomes[4].images] == ["good.png"]


def test_every_upload_is_released_once(storage, tmp_path: Path, make_image) -> None:
    spooled = tmp_path / "spooled.png"
    spooled.write_bytes(make_image())
    uploads = [
        RawUpload.from_path(spooled, content_type="image/png"),
        RawUpload.from_bytes("notes.txt", b"text", "text/plain"),
        RawUpload.from_bytes("bad.zip", b"junk", "application/zip"),
    ]
    images = build_processor(storage).process_batch(uploads, 80)

    assert len(images) == 1
    assert all(upload.released for upload in uploads)
    assert not spooled.exists()
    assert all(upload.release() is False for upload in uploads)


def test_borrowed_files_are_not_deleted(storage, tmp_path: Path, make_image) -> None:
    source = tmp_path / "keep.png"
    source.write_bytes(make_image())
    upload = RawUpload.from_path(source, content_type="image/png", owned=False)
    build_processor(storage).process_batch([upload], 80)
    assert upload.released
    assert source.exists()


def test_empty_batch_returns_empty_list(storage) -> None:
    assert build_processor(storage).process_batch([], 80) == []


def test_raw_upload_reads_from_its_source(tmp_path: Path) -> None:
    source = tmp_path / "spooled.bin"
    source.write_bytes(b"on disk")
    from_disk = RawUpload.from_path(source, filename="a.png", owned=False)
    assert from_disk.read_bytes() == b"on disk"
    assert from_disk.size == 7

    in_memory = RawUpload.from_bytes("b.png", b"in memory")
    in_memory.release()
    with pytest.raises(RuntimeError):
        in_memory.read_bytes()
    with pytest.raises(ValueError):
        RawUpload("c.png")
