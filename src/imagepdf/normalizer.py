"""Decode and re-encode single images.

``normalize`` is the entry point used for loose uploads and for archive
entries alike: bytes in -> decode -> measure -> re-encode -> ProcessedImage.
The encoder follows the *declared* format family rather than the sniffed
codec, so a PNG uploaded as ``image/png`` stays PNG and anything outside the
jpeg/png/webp families becomes JPEG.
"""

from __future__ import annotations

import io
import logging
from dataclasses import dataclass

from PIL import Image

from .detection import ImageFormat, encoder_for
from .errors import ImageDecodeError
from .models import ProcessedImage

logger = logging.getLogger(__name__)

# Modes the PNG encoder writes directly; others are converted to RGB(A) first.
PNG_MODES = frozenset({"1", "L", "LA", "P", "RGB", "RGBA", "I", "I;16"})


@dataclass(slots=True)
class DecodedImage:
    image: Image.Image
    width: int
    height: int


def clamp_quality(quality: int) -> int:
    return max(0, min(100, int(quality)))


def palette_colors(quality: int) -> int:
    """Palette size used when PNG output is asked for a quality below 100."""

    return max(2, min(256, round(256 * clamp_quality(quality) / 100)))


class ImageNormalizer:
    def decode(self, data: bytes, *, filename: str = "image") -> DecodedImage:
        if not data:
            raise ImageDecodeError(f"Empty image file: {filename}")
        try:
            image = Image.open(io.BytesIO(data))
            image.load()
        except (OSError, ValueError, Image.DecompressionBombError, SyntaxError) as exc:
            raise ImageDecodeError(f"Could not decode {filename}: {exc}") from exc
        width, height = image.size
        if width <= 0 or height <= 0:
            raise ImageDecodeError(f"Could not get dimensions for {filename}")
        return DecodedImage(image=image, width=width, height=height)

    def encode(self, image: Image.Image, target: ImageFormat, quality: int) -> bytes:
        quality = clamp_quality(quality)
        output = io.BytesIO()
        if target is ImageFormat.JPEG:
            if image.mode not in ("RGB", "L"):
                image = _flatten(image)
            image.save(output, format="JPEG", quality=quality, optimize=True)
        elif target is ImageFormat.PNG:
            if quality < 100:
                image = _quantize(image, palette_colors(quality))
            elif image.mode not in PNG_MODES:
                image = image.convert("RGBA" if _has_alpha(image) else "RGB")
            image.save(output, format="PNG", optimize=True)
        else:
            if image.mode not in ("RGB", "RGBA"):
                image = image.convert("RGBA" if _has_alpha(image) else "RGB")
            image.save(output, format="WEBP", quality=quality)
        return output.getvalue()

    def normalize(
        self,
        data: bytes,
        content_type: str | None,
        quality: int,
        *,
        filename: str = "image",
    ) -> ProcessedImage | None:
        """Return the re-encoded image, or None when it cannot be decoded or encoded."""

        try:
            decoded = self.decode(data, filename=filename)
        except ImageDecodeError as exc:
            logger.error("%s", exc)
            return None
        logger.debug("Image dimensions for %s: %sx%s", filename, decoded.width, decoded.height)

        target = encoder_for(content_type)
        try:
            frame = _first_frame(decoded.image)
            encoded = self.encode(frame, target, quality)
        except (OSError, ValueError) as exc:
            logger.error("Error re-encoding image %s as %s: %s", filename, target.value, exc)
            return None
        finally:
            decoded.image.close()

        return ProcessedImage(
            data=encoded,
            filename=filename,
            width=decoded.width,
            height=decoded.height,
            format=target,
        )


def _first_frame(image: Image.Image) -> Image.Image:
    if getattr(image, "n_frames", 1) > 1:
        image.seek(0)
    frame = image.copy()
    if frame.mode.startswith("I"):
        # 16-bit greyscale has no JPEG/WEBP encoder; scale down to 8 bits
        frame = frame.convert("I").point(lambda v: v / 256).convert("L")
    return frame


def _has_alpha(image: Image.Image) -> bool:
    return image.mode in ("RGBA", "LA", "PA") or (image.mode == "P" and "transparency" in image.info)


def _flatten(image: Image.Image) -> Image.Image:
    if not _has_alpha(image):
        return image.convert("RGB")
    rgba = image.convert("RGBA")
    background = Image.new("RGB", rgba.size, (255, 255, 255))
    background.paste(rgba, mask=rgba.getchannel("A"))
    return background


def _quantize(image: Image.Image, colors: int) -> Image.Image:
    if image.mode not in ("RGB", "RGBA"):
        image = image.convert("RGBA" if _has_alpha(image) else "RGB")
    return image.quantize(colors=colors, method=Image.Quantize.FASTOCTREE)


__all__ = ["DecodedImage", "ImageNormalizer", "clamp_quality", "palette_colors"]
