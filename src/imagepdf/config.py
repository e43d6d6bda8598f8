from __future__ import annotations

import json
import tomllib
from dataclasses import dataclass, field
from pathlib import Path
from typing import Mapping


CONFIG_FILE = Path("config.toml")


@dataclass(slots=True)
class JanitorConfig:
    max_age_s: int = 3600
    sweep_interval_s: int = 3600
    release_delay_s: float = 1.0


@dataclass(slots=True)
class QualityConfig:
    low: int = 50
    medium: int = 80
    high: int = 100

    def resolve(self, level: str) -> int:
        return int(getattr(self, level))


@dataclass(slots=True)
class RuntimeConfig:
    temp_root: Path = Path("tmp")
    log_file: str = "log.jsonl"
    parallelism: int = 1
    max_uploads: int = 10
    max_upload_size_mb: int = 50
    max_entry_size_mb: int = 50
    janitor: JanitorConfig = field(default_factory=JanitorConfig)


@dataclass(slots=True)
class APIConfig:
    host: str = "127.0.0.1"
    port: int = 8000


@dataclass(slots=True)
class AppConfig:
    runtime: RuntimeConfig = field(default_factory=RuntimeConfig)
    quality: QualityConfig = field(default_factory=QualityConfig)
    api: APIConfig = field(default_factory=APIConfig)

    @property
    def log_path(self) -> Path | None:
        if not self.runtime.log_file:
            return None
        return self.runtime.temp_root / self.runtime.log_file


def _read_toml(path: Path) -> Mapping[str, object]:
    if not path.exists():
        return {}
    with path.open("rb") as handle:
        return tomllib.load(handle)


def _build_janitor(data: Mapping[str, object] | None) -> JanitorConfig:
    if not data:
        return JanitorConfig()
    return JanitorConfig(
        max_age_s=int(data.get("max_age_s", 3600)),
        sweep_interval_s=int(data.get("sweep_interval_s", 3600)),
        release_delay_s=float(data.get("release_delay_s", 1.0)),
    )


def _build_quality(data: Mapping[str, object] | None) -> QualityConfig:
    if not data:
        return QualityConfig()
    return QualityConfig(
        low=_clamp_quality(data.get("low", 50)),
        medium=_clamp_quality(data.get("medium", 80)),
        high=_clamp_quality(data.get("high", 100)),
    )


def _clamp_quality(value: object) -> int:
    return max(0, min(100, int(value)))  # type: ignore[arg-type]


def _build_runtime(data: Mapping[str, object] | None) -> RuntimeConfig:
    if not data:
        return RuntimeConfig()
    janitor = data.get("janitor")
    return RuntimeConfig(
        temp_root=Path(str(data.get("temp_root", "tmp"))),
        log_file=str(data.get("log_file", "log.jsonl")),
        parallelism=max(1, int(data.get("parallelism", 1))),
        max_uploads=int(data.get("max_uploads", 10)),
        max_upload_size_mb=int(data.get("max_upload_size_mb", 50)),
        max_entry_size_mb=int(data.get("max_entry_size_mb", 50)),
        janitor=_build_janitor(janitor if isinstance(janitor, Mapping) else None),
    )


def _build_api(data: Mapping[str, object] | None) -> APIConfig:
    if not data:
        return APIConfig()
    return APIConfig(host=str(data.get("host", "127.0.0.1")), port=int(data.get("port", 8000)))


def _section(raw: Mapping[str, object], name: str) -> Mapping[str, object] | None:
    value = raw.get(name)
    return value if isinstance(value, Mapping) else None


def load_config(path: Path | None = None) -> AppConfig:
    path = path or CONFIG_FILE
    raw = _read_toml(path)
    runtime = _build_runtime(_section(raw, "runtime"))
    janitor_data = _section(raw, "janitor")
    if janitor_data is not None:
        runtime.janitor = _build_janitor(janitor_data)
    quality = _build_quality(_section(raw, "quality"))
    api = _build_api(_section(raw, "api"))
    return AppConfig(runtime=runtime, quality=quality, api=api)


def dump_config(config: AppConfig) -> str:
    payload = {
        "runtime": {
            "temp_root": str(config.runtime.temp_root),
            "log_file": config.runtime.log_file,
            "parallelism": config.runtime.parallelism,
            "max_uploads": config.runtime.max_uploads,
            "max_upload_size_mb": config.runtime.max_upload_size_mb,
            "max_entry_size_mb": config.runtime.max_entry_size_mb,
        },
        "janitor": {
            "max_age_s": config.runtime.janitor.max_age_s,
            "sweep_interval_s": config.runtime.janitor.sweep_interval_s,
            "release_delay_s": config.runtime.janitor.release_delay_s,
        },
        "quality": {
            "low": config.quality.low,
            "medium": config.quality.medium,
            "high": config.quality.high,
        },
        "api": {
            "host": config.api.host,
            "port": config.api.port,
        },
    }
    return json.dumps(payload, indent=2)
