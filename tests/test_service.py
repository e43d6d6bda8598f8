import json
from pathlib import Path

import fitz
import pytest

from imagepdf.config import AppConfig, JanitorConfig, RuntimeConfig
from imagepdf.core import ConversionService
from imagepdf.errors import DocumentWriteError, EmptyBatchError, InvalidOptionsError
from imagepdf.models import ConversionOptions, OutcomeStatus, RawUpload


def build_config(temp_root: Path, parallelism: int = 1) -> AppConfig:
    runtime = RuntimeConfig()
    runtime.temp_root = temp_root
    runtime.log_file = "log.jsonl"
    runtime.parallelism = parallelism
    runtime.janitor = JanitorConfig(release_delay_s=0.0)
    return AppConfig(runtime=runtime)


def read_log(config: AppConfig) -> list[dict]:
    assert config.log_path is not None
    return [json.loads(line) for line in config.log_path.read_text(encoding="utf-8").splitlines()]


def test_single_image_with_caption(tmp_path: Path, make_image) -> None:
    config = build_config(tmp_path / "tmp")
    service = ConversionService(config)
    upload = RawUpload.from_bytes("holiday.jpg", make_image("JPEG", (800, 600)), "image/jpeg")
    options = service.parse_options({"imageQuality": "high", "pageSize": "a4", "showFilenames": "true"})

    result = service.convert([upload], options)

    assert options.quality == 100
    assert result.document.page_count == 1
    assert result.summary.successes == 1
    assert upload.released
    with fitz.open(result.document.path) as doc:
        assert "holiday.jpg" in doc[0].get_text()


def test_archive_with_corrupt_entry(tmp_path: Path, make_image, make_zip) -> None:
    archive = make_zip(
        [
            ("1.png", make_image()),
            ("2.jpg", make_image("JPEG")),
            ("broken.png", b"\x89PNG\r\n\x1a\nnope"),
            ("3.png", make_image()),
        ]
    )
    service = ConversionService(build_config(tmp_path / "tmp"))
    result = service.convert([RawUpload.from_bytes("set.zip", archive, "application/zip")])

    assert result.document.page_count == 3
    assert [image.filename for image in result.outcomes[0].images] == ["1.png", "2.jpg", "3.png"]
    assert list(service.storage.extracted_dir.iterdir()) == []


def test_archive_without_images_fails(tmp_path: Path, make_zip) -> None:
    config = build_config(tmp_path / "tmp")
    service = ConversionService(config)
    upload = RawUpload.from_bytes("docs.zip", make_zip([("a.txt", b"x")]), "application/zip")

    with pytest.raises(EmptyBatchError) as exc:
        service.convert([upload])

    assert "No valid images found" in str(exc.value)
    assert list(service.storage.output_dir.glob("*")) == []
    entries = read_log(config)
    assert entries[0]["status"] == "skipped"
    assert entries[-1]["error_code"] == "EMPTY_BATCH"


@pytest.mark.parametrize("parallelism", [1, 3])
def test_loose_images_precede_archive_pages(tmp_path: Path, make_image, make_zip, parallelism: int) -> None:
    archive = make_zip([("z1.png", make_image()), ("z2.png", make_image())])
    uploads = [
        RawUpload.from_bytes("image1.png", make_image(), "image/png"),
        RawUpload.from_bytes("image2.jpg", make_image("JPEG"), "image/jpeg"),
        RawUpload.from_bytes("photos.zip", archive, "application/zip"),
    ]
    service = ConversionService(build_config(tmp_path / "tmp", parallelism=parallelism))
    result = service.convert(uploads)

    names = [image.filename for outcome in result.outcomes for image in outcome.images]
    assert names == ["image1.png", "image2.jpg", "z1.png", "z2.png"]
    assert result.document.page_count == 4
    assert result.summary.as_dict()["images"] == 4


def test_no_uploads_is_an_empty_batch(tmp_path: Path) -> None:
    service = ConversionService(build_config(tmp_path / "tmp"))
    with pytest.raises(EmptyBatchError) as exc:
        service.convert([])
    assert str(exc.value) == "No files were uploaded"


def test_unsupported_files_do_not_abort(tmp_path: Path, make_image) -> None:
    config = build_config(tmp_path / "tmp")
    service = ConversionService(config)
    uploads = [
        RawUpload.from_bytes("notes.txt", b"hi", "text/plain"),
        RawUpload.from_bytes("ok.png", make_image(), "image/png"),
    ]
    result = service.convert(uploads, run_id="run-test")

    assert [outcome.status for outcome in result.outcomes] == [OutcomeStatus.SKIPPED, OutcomeStatus.SUCCESS]
    assert result.run_id == "run-test"
    entries = read_log(config)
    assert [entry["event"] for entry in entries] == ["upload", "upload", "document"]
    assert entries[-1]["images"] == 1
    assert entries[-1]["timings"]["compose_ms"] >= 0


def test_uploads_released_when_composition_fails(tmp_path: Path, make_image, monkeypatch) -> None:
    service = ConversionService(build_config(tmp_path / "tmp"))
    blocker = tmp_path / "blocker"
    blocker.write_text("x")
    monkeypatch.setattr(service.storage, "new_output_path", lambda prefix="converted": blocker / "o.pdf")
    upload = RawUpload.from_bytes("a.png", make_image(), "image/png")

    with pytest.raises(DocumentWriteError):
        service.convert([upload])
    assert upload.released


def test_parse_options_defaults_and_validation(tmp_path: Path) -> None:
    service = ConversionService(build_config(tmp_path / "tmp"))
    assert service.parse_options({}) == ConversionOptions(quality=80, show_filenames=False, page_size="a4")
    low = service.parse_options({"imageQuality": "LOW", "pageSize": "legal", "showFilenames": "1"})
    assert (low.quality, low.page_size, low.show_filenames) == (50, "legal", True)
    assert service.parse_options({"imageQuality": "ultra"}).quality == 80
    assert service.parse_options({"imageQuality": "  "}).quality == 80
    with pytest.raises(InvalidOptionsError):
        service.parse_options({"pageSize": "A3"})


def test_unknown_quality_uses_configured_medium(tmp_path: Path) -> None:
    config = build_config(tmp_path / "tmp")
    config.quality.medium = 70
    service = ConversionService(config)
    assert service.parse_options({"imageQuality": "best"}).quality == 70
