#!/usr/bin/env python3
from __future__ import annotations

import os
import sys
from pathlib import Path

import uvicorn


REPO_ROOT = Path(__file__).resolve().parents[1]
sys.path.insert(0, str(REPO_ROOT))


def main() -> int:
    host = os.getenv("DURABLE_HTTP_HOST", "127.0.0.1")
    port = int(os.getenv("DURABLE_HTTP_PORT", "7071"))
    reload = os.getenv("DURABLE_HTTP_RELOAD", "1").strip().lower() in {"1", "true", "yes", "y", "on"}

    uvicorn.run(
        "src.api.app:create_app",
        factory=True,
        host=host,
        port=port,
        reload=reload,
        log_level=os.getenv("DURABLE_HTTP_LOG_LEVEL", "info"),
    )
    return 0


if __name__ == "__main__":
    raise SystemExit(main())
