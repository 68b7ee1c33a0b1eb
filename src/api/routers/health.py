from __future__ import annotations

import importlib.metadata
import time
from typing import Any

from fastapi import APIRouter
from fastapi import Request


router = APIRouter()


def _pkg_version(name: str) -> str | None:
    try:
        return str(importlib.metadata.version(name))
    except importlib.metadata.PackageNotFoundError:
        return None


@router.get("/healthz")
def healthz() -> dict[str, str]:
    return {"status": "ok"}


@router.get("/version")
def version(request: Request) -> dict[str, Any]:
    cfg = request.app.state.config
    return {
        "service": "durable-http-api",
        "api": "v1",
        "route_prefix": cfg.webhooks.route_prefix,
        "deps": {
            "fastapi": _pkg_version("fastapi"),
            "pydantic": _pkg_version("pydantic"),
            "uvicorn": _pkg_version("uvicorn"),
        },
        "ts": time.time(),
    }
