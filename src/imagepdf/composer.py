"""Lay processed images out one per page and write the PDF.

Geometry is in PDF points. Each page reserves a fixed margin on every side
(plus room for the caption when filenames are shown); images larger than the
remaining content area are scaled down uniformly, smaller ones keep their
native size, and the result is centered in the content area.
"""

from __future__ import annotations

import io
import logging
import threading
from dataclasses import dataclass
from pathlib import Path
from typing import Sequence

import fitz  # PyMuPDF
from PIL import Image

from .detection import ImageFormat
from .errors import DocumentWriteError, EmptyBatchError
from .models import ConversionOptions, GeneratedDocument, ProcessedImage
from .storage import TempResourceManager
from .utils import atomic_target, download_name

logger = logging.getLogger(__name__)

PAGE_SIZES: dict[str, tuple[float, float]] = {
    "a4": (595.0, 842.0),
    "letter": (612.0, 792.0),
    "legal": (612.0, 1008.0),
}

MARGIN = 50.0
CAPTION_RESERVE = 30.0
CAPTION_GAP = 10.0
CAPTION_FONT_SIZE = 12.0
CAPTION_COLOR = (0.2, 0.2, 0.2)  # #333333
FOOTER_OFFSET = 30.0
FOOTER_FONT_SIZE = 10.0
FOOTER_COLOR = (0.6, 0.6, 0.6)  # #999999
FONT_NAME = "helv"

# MuPDF contexts are not thread-safe; concurrent requests take turns writing.
_MUPDF_LOCK = threading.Lock()

DOCUMENT_METADATA = {
    "title": "Converted Images",
    "author": "Image to PDF Converter",
}


@dataclass(frozen=True, slots=True)
class ContentArea:
    x: float
    y: float
    width: float
    height: float


@dataclass(frozen=True, slots=True)
class Placement:
    x: float
    y: float
    width: float
    height: float

    @property
    def bottom(self) -> float:
        return self.y + self.height

    def rect(self) -> fitz.Rect:
        return fitz.Rect(self.x, self.y, self.x + self.width, self.y + self.height)


def page_dimensions(page_size: str) -> tuple[float, float]:
    try:
        return PAGE_SIZES[page_size]
    except KeyError as exc:
        raise ValueError(f"Unknown page size: {page_size}") from exc


def content_area(page_width: float, page_height: float, *, captions: bool) -> ContentArea:
    reserve = CAPTION_RESERVE if captions else 0.0
    return ContentArea(
        x=MARGIN,
        y=MARGIN,
        width=page_width - 2 * MARGIN,
        height=page_height - 2 * MARGIN - reserve,
    )


def fit_size(width: float, height: float, area_width: float, area_height: float) -> tuple[float, float]:
    """Scale (width, height) down to fit the area; never scale up."""

    if width <= area_width and height <= area_height:
        return float(width), float(height)
    ratio = min(area_width / width, area_height / height)
    return width * ratio, height * ratio


def place_image(width: int, height: int, area: ContentArea) -> Placement:
    fitted_width, fitted_height = fit_size(width, height, area.width, area.height)
    return Placement(
        x=area.x + (area.width - fitted_width) / 2,
        y=area.y + (area.height - fitted_height) / 2,
        width=fitted_width,
        height=fitted_height,
    )


def shorten_caption(text: str, max_width: float, fontsize: float = CAPTION_FONT_SIZE) -> str:
    if fitz.get_text_length(text, fontname=FONT_NAME, fontsize=fontsize) <= max_width:
        return text
    ellipsis = "..."
    trimmed = text
    while trimmed and fitz.get_text_length(trimmed + ellipsis, fontname=FONT_NAME, fontsize=fontsize) > max_width:
        trimmed = trimmed[:-1]
    return trimmed + ellipsis


class DocumentComposer:
    def __init__(self, storage: TempResourceManager) -> None:
        self._storage = storage

    def compose(self, images: Sequence[ProcessedImage], options: ConversionOptions) -> GeneratedDocument:
        """Write one page per image and return the finished, closed document.

        Raises:
            EmptyBatchError: when there is nothing to lay out.
            DocumentWriteError: when the PDF cannot be rendered or written.
        """
        if not images:
            raise EmptyBatchError("No valid images found in the uploaded files")
        page_width, page_height = page_dimensions(options.page_size)
        output_path = self._storage.new_output_path()
        logger.info("Generating PDF with %d pages (%s) at %s", len(images), options.page_size, output_path)
        try:
            with _MUPDF_LOCK, atomic_target(output_path) as partial:
                self._write(images, options, page_width, page_height, partial)
            size_bytes = output_path.stat().st_size
        except Exception as exc:
            logger.error("Error writing PDF %s: %s", output_path, exc)
            raise DocumentWriteError(f"Failed to write PDF: {exc}") from exc
        return GeneratedDocument(
            path=output_path,
            page_count=len(images),
            size_bytes=size_bytes,
            download_name=download_name(),
        )

    def _write(
        self,
        images: Sequence[ProcessedImage],
        options: ConversionOptions,
        page_width: float,
        page_height: float,
        target: Path,
    ) -> None:
        doc = fitz.open()
        try:
            total = len(images)
            for index, image in enumerate(images):
                page = doc.new_page(width=page_width, height=page_height)
                self._render_page(page, image, index + 1, total, options)
            metadata = dict(DOCUMENT_METADATA)
            metadata["creationDate"] = fitz.get_pdf_now()
            doc.set_metadata(metadata)
            doc.save(str(target), deflate=True)
        finally:
            doc.close()

    def _render_page(
        self,
        page: fitz.Page,
        image: ProcessedImage,
        number: int,
        total: int,
        options: ConversionOptions,
    ) -> None:
        width, height = page.rect.width, page.rect.height
        area = content_area(width, height, captions=options.show_filenames)
        placement = place_image(image.width, image.height, area)
        page.insert_image(placement.rect(), stream=_embeddable(image))

        if options.show_filenames:
            caption = shorten_caption(image.filename, area.width)
            top = placement.bottom + CAPTION_GAP
            page.insert_textbox(
                fitz.Rect(MARGIN, top, width - MARGIN, top + CAPTION_FONT_SIZE * 2),
                caption,
                fontsize=CAPTION_FONT_SIZE,
                fontname=FONT_NAME,
                color=CAPTION_COLOR,
                align=fitz.TEXT_ALIGN_CENTER,
            )

        footer_top = height - FOOTER_OFFSET
        page.insert_textbox(
            fitz.Rect(MARGIN, footer_top, width - MARGIN, footer_top + FOOTER_FONT_SIZE * 2),
            f"Page {number} of {total}",
            fontsize=FOOTER_FONT_SIZE,
            fontname=FONT_NAME,
            color=FOOTER_COLOR,
            align=fitz.TEXT_ALIGN_CENTER,
        )


def _embeddable(image: ProcessedImage) -> bytes:
    """Bytes MuPDF can embed directly; WEBP is repacked as PNG."""

    if image.format is not ImageFormat.WEBP:
        return image.data
    with Image.open(io.BytesIO(image.data)) as decoded:
        output = io.BytesIO()
        decoded.save(output, format="PNG")
    return output.getvalue()


__all__ = [
    "ContentArea",
    "DocumentComposer",
    "PAGE_SIZES",
    "Placement",
    "content_area",
    "fit_size",
    "page_dimensions",
    "place_image",
    "shorten_caption",
]
