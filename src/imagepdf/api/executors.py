"""Thread hop for the blocking conversion pipeline."""

from __future__ import annotations

import asyncio
from collections.abc import Callable
from typing import Any, TypeVar

T = TypeVar("T")


async def run_sync(func: Callable[..., T], /, *args: Any, **kwargs: Any) -> T:
    """Run *func* on a worker thread so decoding and PDF writing never block the event loop."""

    return await asyncio.to_thread(func, *args, **kwargs)


__all__ = ["run_sync"]
