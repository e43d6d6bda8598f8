from __future__ import annotations

import logging

from fastapi import FastAPI

from ..config import AppConfig, load_config
from ..core import ConversionService
from ..settings import Settings, get_settings
from ..storage import TempResourceManager
from .routers import convert, health


def create_app(
    config: AppConfig | None = None,
    *,
    storage: TempResourceManager | None = None,
) -> FastAPI:
    settings = get_settings()
    logging.basicConfig(level=getattr(logging, settings.log_level, logging.INFO))
    config = config or _prepare_config(settings)
    storage = storage or TempResourceManager.from_config(config.runtime.temp_root, config.runtime.janitor)
    storage.ensure_layout()

    app = FastAPI(title="Image to PDF Converter", version=health.API_VERSION)
    app.state.config = config
    app.state.storage = storage
    app.state.service = ConversionService(config, storage)

    app.include_router(health.router)
    app.include_router(convert.router)

    @app.on_event("startup")
    async def _startup() -> None:  # pragma: no cover - FastAPI lifecycle
        storage.start()

    @app.on_event("shutdown")
    async def _shutdown() -> None:  # pragma: no cover - FastAPI lifecycle
        storage.stop()

    return app


def _prepare_config(settings: Settings) -> AppConfig:
    config = load_config(settings.config_path)
    if settings.temp_root is not None:
        config.runtime.temp_root = settings.temp_root
    return config


__all__ = ["create_app"]
