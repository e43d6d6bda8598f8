from __future__ import annotations

import json
import threading
import time
from dataclasses import asdict, dataclass, field
from pathlib import Path
from typing import Any


@dataclass(slots=True)
class StageTimings:
    batch_ms: float
    compose_ms: float


@dataclass(slots=True)
class RunLogEntry:
    run_id: str
    event: str
    source: str
    status: str
    error_code: str | None
    message: str | None
    images: int
    size_bytes: int
    elapsed_ms: float = 0.0
    timings: StageTimings | None = None

    def to_dict(self) -> dict[str, Any]:
        payload = asdict(self)
        payload["timings"] = asdict(self.timings) if self.timings is not None else None
        return payload


class RunLogger:
    """Append-only JSON-lines log shared by concurrent requests."""

    def __init__(self, log_file: Path | None) -> None:
        self._log_file = log_file
        self._lock = threading.Lock()

    @property
    def path(self) -> Path | None:
        return self._log_file

    def append(self, entry: RunLogEntry) -> None:
        if self._log_file is None:
            return
        line = json.dumps(entry.to_dict(), ensure_ascii=False)
        with self._lock:
            self._log_file.parent.mkdir(parents=True, exist_ok=True)
            with self._log_file.open("a", encoding="utf-8") as handle:
                handle.write(line + "\n")


@dataclass(slots=True)
class BatchSummary:
    timestamp: float = field(default_factory=time.time)
    total: int = 0
    images: int = 0
    successes: int = 0
    skipped: int = 0
    failures: int = 0

    def add(self, status: str, images: int) -> None:
        self.total += 1
        self.images += images
        if status == "success":
            self.successes += 1
        elif status == "skipped":
            self.skipped += 1
        else:
            self.failures += 1

    def as_dict(self) -> dict[str, Any]:
        return {
            "timestamp": time.strftime("%Y-%m-%dT%H:%M:%SZ", time.gmtime(self.timestamp)),
            "total": self.total,
            "images": self.images,
            "successes": self.successes,
            "skipped": self.skipped,
            "failures": self.failures,
        }
