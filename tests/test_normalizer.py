import io

import pytest
from PIL import Image

from imagepdf.detection import ImageFormat
from imagepdf.errors import ImageDecodeError
from imagepdf.normalizer import ImageNormalizer, clamp_quality, palette_colors


def test_normalize_reports_original_dimensions(make_image) -> None:
    result = ImageNormalizer().normalize(
        make_image("JPEG", (800, 600)), "image/jpeg", 100, filename="photo.jpg"
    )
    assert result is not None
    assert (result.width, result.height) == (800, 600)
    assert result.format is ImageFormat.JPEG
    assert result.filename == "photo.jpg"
    with Image.open(io.BytesIO(result.data)) as decoded:
        assert decoded.format == "JPEG"
        assert decoded.size == (800, 600)


def test_png_stays_png_and_keeps_full_colour_at_max_quality(make_image) -> None:
    result = ImageNormalizer().normalize(make_image("PNG"), "image/png", 100, filename="a.png")
    assert result is not None
    assert result.format is ImageFormat.PNG
    with Image.open(io.BytesIO(result.data)) as decoded:
        assert decoded.format == "PNG"
        assert decoded.mode == "RGB"


def test_png_below_max_quality_is_palette_quantized(make_image) -> None:
    result = ImageNormalizer().normalize(make_image("PNG"), "image/png", 50, filename="a.png")
    assert result is not None
    with Image.open(io.BytesIO(result.data)) as decoded:
        assert decoded.mode == "P"


def test_other_families_fall_back_to_jpeg(make_image) -> None:
    gif = make_image("GIF", (12, 9), mode="P", color=1)
    result = ImageNormalizer().normalize(gif, "image/gif", 80, filename="anim.gif")
    assert result is not None
    assert result.format is ImageFormat.JPEG
    assert (result.width, result.height) == (12, 9)


def test_alpha_is_flattened_for_jpeg(make_image) -> None:
    rgba = make_image("PNG", (10, 10), mode="RGBA", color=(0, 0, 0, 0))
    result = ImageNormalizer().normalize(rgba, "image/jpeg", 80, filename="clear.png")
    assert result is not None
    with Image.open(io.BytesIO(result.data)) as decoded:
        assert decoded.mode == "RGB"
        assert decoded.getpixel((5, 5))[0] > 240


def test_webp_is_encoded_as_webp(make_image) -> None:
    result = ImageNormalizer().normalize(make_image("PNG"), "image/webp", 80, filename="x.webp")
    assert result is not None
    assert result.format is ImageFormat.WEBP
    with Image.open(io.BytesIO(result.data)) as decoded:
        assert decoded.format == "WEBP"


def test_corrupt_or_empty_input_returns_none() -> None:
    normalizer = ImageNormalizer()
    assert normalizer.normalize(b"not an image", "image/png", 80, filename="bad.png") is None
    assert normalizer.normalize(b"", "image/png", 80, filename="empty.png") is None


def test_decode_raises_typed_error() -> None:
    with pytest.raises(ImageDecodeError):
        ImageNormalizer().decode(b"\x89PNG garbage", filename="bad.png")


def test_quality_helpers() -> None:
    assert clamp_quality(150) == 100
    assert clamp_quality(-5) == 0
    assert palette_colors(100) == 256
    assert palette_colors(50) == 128
    assert palette_colors(0) == 2


@pytest.mark.parametrize("fmt", ["JPEG", "TIFF"])
@pytest.mark.parametrize("quality", [50, 100])
def test_cmyk_declared_png_survives_every_quality(make_image, fmt, quality) -> None:
    cmyk = make_image(fmt, (10, 8), mode="CMYK", color=(0, 128, 255, 0))
    result = ImageNormalizer().normalize(cmyk, "image/png", quality, filename="scan.png")
    assert result is not None
    assert result.format is ImageFormat.PNG
    assert (result.width, result.height) == (10, 8)
    with Image.open(io.BytesIO(result.data)) as decoded:
        assert decoded.format == "PNG"
        assert decoded.mode in {"RGB", "P"}
