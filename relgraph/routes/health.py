# relgraph/routes/health.py
"""
Health check endpoints with database pool monitoring.
"""

import time

from fastapi import APIRouter
from fastapi.responses import JSONResponse

from relgraph.db.pool import db_health_check
from relgraph.services.infrastructure.encryption_service import validate_encryption_config

router = APIRouter()


@router.get("/healthz")
async def healthz():
    """Basic health check - always returns 200 if app is running."""
    return {"status": "ok", "service": "relgraph"}


@router.get("/readyz")
async def readyz():
    """Readiness check covering the database pool and the token vault."""
    checks = {}

    t0 = time.time()
    db_health = await db_health_check()
    checks["database"] = {
        "ok": db_health.get("healthy", False),
        "latency_ms": round((time.time() - t0) * 1000, 1),
    }
    if not checks["database"]["ok"]:
        checks["database"]["error"] = db_health.get("error", "Database unhealthy")
    else:
        checks["database"]["pool_size"] = db_health.get("pool_size", 0)
        checks["database"]["pool_available"] = db_health.get("pool_available", 0)

    checks["encryption"] = {"ok": validate_encryption_config()}

    overall_ok = all(check["ok"] for check in checks.values())
    return JSONResponse(
        status_code=200 if overall_ok else 503,
        content={"status": "ready" if overall_ok else "not_ready", "checks": checks},
    )
