from __future__ import annotations

import io
import zipfile
from pathlib import Path
from typing import Callable, Iterator

import pytest
from PIL import Image

from imagepdf.storage import TempResourceManager


def image_bytes(
    fmt: str = "PNG",
    size: tuple[int, int] = (40, 30),
    mode: str = "RGB",
    color: tuple[int, ...] | int = (200, 40, 40),
) -> bytes:
    buffer = io.BytesIO()
    Image.new(mode, size, color).save(buffer, format=fmt)
    return buffer.getvalue()


def zip_bytes(entries: list[tuple[str, bytes]]) -> bytes:
    buffer = io.BytesIO()
    with zipfile.ZipFile(buffer, "w", compression=zipfile.ZIP_DEFLATED) as archive:
        for name, payload in entries:
            archive.writestr(name, payload)
    return buffer.getvalue()


@pytest.fixture
def make_image() -> Callable[..., bytes]:
    return image_bytes


@pytest.fixture
def make_zip() -> Callable[[list[tuple[str, bytes]]], bytes]:
    return zip_bytes


@pytest.fixture
def storage(tmp_path: Path) -> Iterator[TempResourceManager]:
    manager = TempResourceManager(tmp_path / "tmp", release_delay_s=0.0)
    manager.ensure_layout()
    yield manager
    manager.stop()
