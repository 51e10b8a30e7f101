#!/usr/bin/env python3
"""
Container entry point: release (migrations + admin seed), then gunicorn.

    PORT=8080 WEB_CONCURRENCY=2 python scripts/start.py
"""

from __future__ import annotations

import os
import sys
from pathlib import Path

ROOT = Path(__file__).resolve().parents[1]
if str(ROOT) not in sys.path:
    sys.path.insert(0, str(ROOT))

DEFAULT_PORT = 8080
DEFAULT_WORKERS = 2


def _int_env(name: str, default: int, low: int, high: int) -> int:
    raw = (os.environ.get(name) or "").strip()
    if not raw:
        return default
    if not raw.isdigit() or not low <= int(raw) <= high:
        raise SystemExit(f"{name} must be an integer between {low} and {high}, got {raw!r}.")
    return int(raw)


def gunicorn_argv(port: int, workers: int) -> list[str]:
    return [
        "gunicorn",
        "app.wsgi:app",
        "--bind", f"0.0.0.0:{port}",
        "--workers", str(workers),
        "--timeout", "60",
        "--access-logfile", "-",
        "--error-logfile", "-",
    ]


def main() -> None:
    port = _int_env("PORT", DEFAULT_PORT, 1, 65535)
    workers = _int_env("WEB_CONCURRENCY", DEFAULT_WORKERS, 1, 64)

    from scripts.release import main as release_main

    try:
        release_main()
    except Exception as e:
        raise SystemExit(f"Release failed: {e}") from e

    # gunicorn takes over this PID so it receives the container's signals
    argv = gunicorn_argv(port, workers)
    os.execvp(argv[0], argv)


if __name__ == "__main__":
    main()
