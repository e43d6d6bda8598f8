"""Lifecycle of the transient directories and files used by conversions.

The manager owns three areas under one root:

* ``uploads``   - request bodies spooled to disk
* ``output``    - generated documents waiting for delivery
* ``extracted`` - per-archive scratch directories

Entries are reclaimed three ways: immediately via :meth:`release`, shortly
after delivery via :meth:`schedule_release`, and by the periodic janitor
:meth:`sweep` for anything older than ``max_age_s``.
"""

from __future__ import annotations

import logging
import shutil
import threading
import time
from contextlib import contextmanager
from pathlib import Path
from typing import Iterator

from .config import JanitorConfig
from .utils import base_name, generate_run_id, slugify

logger = logging.getLogger(__name__)

AREAS: tuple[str, ...] = ("uploads", "output", "extracted")


class TempResourceManager:
    def __init__(
        self,
        root: Path,
        *,
        max_age_s: float = 3600,
        sweep_interval_s: float = 3600,
        release_delay_s: float = 1.0,
    ) -> None:
        self._root = Path(root)
        self._max_age_s = max_age_s
        self._sweep_interval_s = sweep_interval_s
        self._release_delay_s = release_delay_s
        self._stop_event = threading.Event()
        self._thread: threading.Thread | None = None
        self._timers: dict[Path, threading.Timer] = {}
        self._lock = threading.Lock()

    @classmethod
    def from_config(cls, root: Path, janitor: JanitorConfig) -> "TempResourceManager":
        return cls(
            root,
            max_age_s=janitor.max_age_s,
            sweep_interval_s=janitor.sweep_interval_s,
            release_delay_s=janitor.release_delay_s,
        )

    @property
    def root(self) -> Path:
        return self._root

    @property
    def uploads_dir(self) -> Path:
        return self._root / "uploads"

    @property
    def output_dir(self) -> Path:
        return self._root / "output"

    @property
    def extracted_dir(self) -> Path:
        return self._root / "extracted"

    @property
    def running(self) -> bool:
        return self._thread is not None and self._thread.is_alive()

    def areas(self) -> list[Path]:
        return [self._root / name for name in AREAS]

    def ensure_layout(self) -> None:
        for area in self.areas():
            area.mkdir(parents=True, exist_ok=True)

    def start(self) -> None:
        self.ensure_layout()
        if self.running:
            return
        self._stop_event.clear()
        self._thread = threading.Thread(target=self._sweep_loop, name="temp-janitor", daemon=True)
        self._thread.start()
        logger.info("Temp janitor started for %s (every %ss)", self._root, self._sweep_interval_s)

    def stop(self) -> None:
        self._stop_event.set()
        if self._thread is not None:
            self._thread.join(timeout=5)
            self._thread = None
        with self._lock:
            pending = list(self._timers.items())
            self._timers.clear()
        for path, timer in pending:
            timer.cancel()
            self.release(path)

    def _sweep_loop(self) -> None:  # pragma: no cover - background thread timing
        while not self._stop_event.wait(self._sweep_interval_s):
            try:
                self.sweep()
            except Exception:
                logger.exception("Temp sweep failed")

    def sweep(self, now: float | None = None) -> int:
        """Delete entries whose mtime is older than ``max_age_s``; return how many went."""

        cutoff = (time.time() if now is None else now) - self._max_age_s
        removed = 0
        for area in self.areas():
            try:
                entries = list(area.iterdir())
            except FileNotFoundError:
                continue
            except OSError as exc:
                logger.error("Error reading directory %s: %s", area, exc)
                continue
            for entry in entries:
                try:
                    if entry.lstat().st_mtime >= cutoff:
                        continue
                    _remove(entry)
                    removed += 1
                except FileNotFoundError:
                    continue
                except OSError as exc:
                    logger.error("Error deleting %s: %s", entry, exc)
        if removed:
            logger.info("Temp sweep removed %d stale entries", removed)
        return removed

    def release(self, path: Path) -> bool:
        """Delete one artifact now. A path that is already gone is a no-op."""

        path = Path(path)
        with self._lock:
            timer = self._timers.pop(path, None)
        if timer is not None:
            timer.cancel()
        try:
            _remove(path)
        except FileNotFoundError:
            return False
        except OSError as exc:
            logger.error("Error cleaning up %s: %s", path, exc)
            return False
        logger.debug("Released %s", path)
        return True

    def schedule_release(self, path: Path, delay: float | None = None) -> threading.Timer:
        path = Path(path)
        delay = self._release_delay_s if delay is None else delay
        timer = threading.Timer(delay, self._release_scheduled, args=(path,))
        timer.daemon = True
        with self._lock:
            previous = self._timers.pop(path, None)
            self._timers[path] = timer
        if previous is not None:
            previous.cancel()
        timer.start()
        return timer

    def _release_scheduled(self, path: Path) -> None:
        with self._lock:
            self._timers.pop(path, None)
        self.release(path)

    def new_upload_path(self, filename: str) -> Path:
        self.uploads_dir.mkdir(parents=True, exist_ok=True)
        return self.uploads_dir / f"{generate_run_id('upload')}-{slugify(base_name(filename), 80)}"

    def new_output_path(self, prefix: str = "converted") -> Path:
        self.output_dir.mkdir(parents=True, exist_ok=True)
        return self.output_dir / f"{generate_run_id(prefix)}.pdf"

    @contextmanager
    def scratch_directory(self, prefix: str = "zip") -> Iterator[Path]:
        """Yield a fresh directory under ``extracted``; it is removed on every exit path."""

        directory = self.extracted_dir / generate_run_id(prefix)
        directory.mkdir(parents=True, exist_ok=False)
        logger.debug("Created scratch directory %s", directory)
        try:
            yield directory
        finally:
            try:
                shutil.rmtree(directory)
            except FileNotFoundError:
                pass
            except OSError as exc:
                logger.error("Error cleaning up directory %s: %s", directory, exc)


def _remove(path: Path) -> None:
    if path.is_dir() and not path.is_symlink():
        shutil.rmtree(path)
    else:
        path.unlink()


__all__ = ["AREAS", "TempResourceManager"]
