import pytest

from imagepdf.detection import (
    ImageFormat,
    UploadKind,
    classify_upload,
    content_type_for,
    encoder_for,
    require_image_name,
)
from imagepdf.errors import UnsupportedFormatError


@pytest.mark.parametrize(
    ("filename", "content_type", "expected"),
    [
        ("photos.zip", "application/zip", UploadKind.ARCHIVE),
        ("photos.ZIP", None, UploadKind.ARCHIVE),
        ("photos.zip", "image/png", UploadKind.ARCHIVE),
        ("scan.png", "application/zip", UploadKind.IMAGE),
        ("scan.jpeg", "application/octet-stream", UploadKind.IMAGE),
        ("PHOTO.JPG", None, UploadKind.IMAGE),
        ("bundle", "application/x-zip-compressed", UploadKind.ARCHIVE),
        ("blob", "application/octet-stream", UploadKind.ARCHIVE),
        ("notes.txt", "text/plain", UploadKind.UNSUPPORTED),
        ("movie.mp4", "video/mp4", UploadKind.UNSUPPORTED),
        ("", None, UploadKind.UNSUPPORTED),
    ],
)
def test_classify_upload_precedence(filename, content_type, expected) -> None:
    assert classify_upload(filename, content_type).kind is expected


def test_extension_rule_reported_when_it_overrides_content_type() -> None:
    result = classify_upload("scan.png", "application/zip; charset=binary")
    assert result.kind is UploadKind.IMAGE
    assert result.rule == "image-extension"
    assert result.extension == ".png"


def test_content_type_for_archive_entries() -> None:
    assert content_type_for("a/b/cover.PNG") == "image/png"
    assert content_type_for("photo.jpg") == "image/jpeg"
    assert content_type_for("anim.gif") == "image/gif"
    assert content_type_for("readme") == "application/octet-stream"


def test_encoder_follows_declared_family() -> None:
    assert encoder_for("image/png") is ImageFormat.PNG
    assert encoder_for("image/webp") is ImageFormat.WEBP
    assert encoder_for("image/jpeg") is ImageFormat.JPEG
    assert encoder_for("image/gif") is ImageFormat.JPEG
    assert encoder_for(None) is ImageFormat.JPEG


def test_require_image_name_rejects_other_extensions() -> None:
    assert require_image_name("dir/picture.webp") == ".webp"
    with pytest.raises(UnsupportedFormatError) as exc:
        require_image_name("notes.txt")
    assert "Unsupported file extension" in str(exc.value)
