"""Health, readiness, and version endpoints."""

from datetime import datetime, timezone

from fastapi import APIRouter
from sqlalchemy import text

from rehabmotion.config import get_settings
from rehabmotion.database import get_session
from rehabmotion.redis_client import get_redis

router = APIRouter()


@router.get("/health")
async def health() -> dict[str, str]:
    """Liveness probe: returns 200 if the process is alive."""
    return {"status": "healthy", "timestamp": datetime.now(timezone.utc).isoformat()}


@router.get("/ready")
async def readiness() -> dict[str, object]:
    """Readiness probe: checks the badge store backends."""
    settings = get_settings()
    checks: dict[str, object] = {}

    if settings.store_backend == "memory":
        checks["store"] = "ok"
        return {"status": "ready", "checks": checks}

    try:
        async for db in get_session():
            result = await db.execute(text("SELECT 1"))
            result.scalar()
        checks["database"] = "ok"
    except Exception as exc:
        checks["database"] = f"error: {exc}"

    # A down cache only degrades fallback reads
    try:
        await get_redis().ping()
        checks["redis"] = "ok"
    except Exception as exc:
        checks["redis"] = f"error: {exc}"

    all_ok = all(v == "ok" for v in checks.values())
    return {"status": "ready" if all_ok else "degraded", "checks": checks}


@router.get("/version")
async def version() -> dict[str, str]:
    """Return API version and environment."""
    settings = get_settings()
    return {
        "version": settings.app_version,
        "environment": settings.environment,
    }
