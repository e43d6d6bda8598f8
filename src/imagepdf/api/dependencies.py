"""Request-scoped access to the objects ``create_app`` stores on ``app.state``."""

from __future__ import annotations

from fastapi import HTTPException, Request

from ..config import RuntimeConfig
from ..core import ConversionService
from ..storage import TempResourceManager


def _state(request: Request, name: str, detail: str):
    value = getattr(request.app.state, name, None)
    if value is None:
        raise HTTPException(status_code=503, detail=detail)
    return value


def get_service(request: Request) -> ConversionService:
    return _state(request, "service", "SERVICE_UNAVAILABLE")


def get_storage(request: Request) -> TempResourceManager:
    return _state(request, "storage", "STORAGE_UNAVAILABLE")


def get_runtime(request: Request) -> RuntimeConfig:
    return _state(request, "config", "CONFIG_UNAVAILABLE").runtime


__all__ = ["get_runtime", "get_service", "get_storage"]
