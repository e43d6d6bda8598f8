from __future__ import annotations

import hashlib
import os
import re
import time
from collections.abc import Iterable
from contextlib import contextmanager, suppress
from pathlib import Path, PurePosixPath
from typing import Iterator


SAFE_FILENAME_RE = re.compile(r"[^A-Za-z0-9._-]+")


def slugify(value: str, max_length: int = 120) -> str:
    normalized = SAFE_FILENAME_RE.sub("-", value.strip())
    normalized = re.sub("-+", "-", normalized)
    normalized = normalized.replace("-.", ".")
    normalized = normalized.strip("-._")
    if not normalized:
        normalized = "file"
    if len(normalized) > max_length:
        normalized = normalized[:max_length]
    return normalized


def generate_run_id(prefix: str = "run") -> str:
    epoch_ms = int(time.time() * 1000)
    random_bits = hashlib.sha256(os.urandom(16)).hexdigest()[:8]
    return f"{prefix}-{epoch_ms}-{random_bits}"


def base_name(name: str) -> str:
    """Strip any directory part, accepting both separators used inside archives."""

    return PurePosixPath(name.replace("\\", "/")).name


def extension_of(name: str) -> str:
    return PurePosixPath(base_name(name)).suffix.lower()


def download_name(epoch_ms: int | None = None) -> str:
    if epoch_ms is None:
        epoch_ms = int(time.time() * 1000)
    return f"converted_{epoch_ms}.pdf"


def iter_files(paths: Iterable[Path]) -> Iterator[Path]:
    for path in paths:
        if path.is_file():
            yield path
        elif path.is_dir():
            for file_path in sorted(path.rglob("*")):
                if file_path.is_file():
                    yield file_path


@contextmanager
def atomic_target(path: Path) -> Iterator[Path]:
    """Yield a sibling ``.part`` path and move it onto *path* once the block succeeds.

    On failure the partial file is removed if possible; whatever is left behind
    keeps its ``.part`` suffix and is never mistaken for finished output.
    """

    path.parent.mkdir(parents=True, exist_ok=True)
    partial = path.with_name(path.name + ".part")
    try:
        yield partial
        os.replace(partial, path)
    except BaseException:
        with suppress(OSError):
            partial.unlink(missing_ok=True)
        raise


__all__ = [
    "atomic_target",
    "base_name",
    "download_name",
    "extension_of",
    "generate_run_id",
    "iter_files",
    "slugify",
]
