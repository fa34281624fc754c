"""Health and readiness endpoints for container orchestration.

Provides two top-level routes:

- ``GET /health`` -- Liveness probe.  Returns 200 if the process is alive.
- ``GET /ready``  -- Readiness probe.  Returns 200 only when the store
  database answers **and** a settlement client is configured.  Returns 503
  with per-check details otherwise.
"""

from __future__ import annotations

import asyncio
import sqlite3
from typing import Any

from fastapi import FastAPI, Request
from fastapi.responses import JSONResponse


def register_health_routes(app: FastAPI) -> None:
    """Register ``/health`` and ``/ready`` endpoints on *app*."""

    @app.get("/health")
    async def health() -> dict[str, str]:
        """Liveness probe -- always returns 200 if the process is running."""
        return {"status": "healthy"}

    @app.get("/ready")
    async def ready(request: Request) -> JSONResponse:
        """Readiness probe -- checks the store database and settlement client."""
        services: dict[str, Any] = request.app.state.services
        checks: dict[str, str] = {}

        # The in-memory backend has no connection and is always ready
        db_conn = services.get("db_conn")
        if services.get("store") is None:
            checks["store"] = "fail"
        elif db_conn is None:
            checks["store"] = "ok"
        else:
            try:
                await asyncio.to_thread(db_conn.execute, "SELECT 1")
                checks["store"] = "ok"
            except sqlite3.Error:
                checks["store"] = "fail"

        checks["settlement"] = "ok" if services.get("settlement") is not None else "fail"

        all_ok = all(v == "ok" for v in checks.values())
        status = "ready" if all_ok else "not_ready"
        code = 200 if all_ok else 503

        return JSONResponse(content={"status": status, "checks": checks}, status_code=code)
