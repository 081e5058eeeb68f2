"""Health check endpoint — public, no auth required."""

from __future__ import annotations

import logging
from datetime import datetime, timezone

from fastapi import APIRouter

from ovulink.dependencies import AppSettings, FertilitySettings
from ovulink.services.database import get_pool

router = APIRouter(tags=["system"])
logger = logging.getLogger("ovulink.health")


async def _probe_database() -> bool:
    try:
        pool = get_pool()
        async with pool.acquire() as conn:
            await conn.fetchval("SELECT 1")
    except Exception as exc:
        logger.warning("Health check DB probe failed: %s", exc)
        return False
    return True


@router.get("/health")
async def health_check(settings: AppSettings, config: FertilitySettings) -> dict:
    """Liveness probe. Returns 200 while the API process is up.

    With the postgres backend it also runs a ``SELECT 1``; the in-memory
    backend has nothing to probe.
    """
    if settings.storage_backend == "memory":
        storage_ok, storage = True, "memory"
    else:
        storage_ok = await _probe_database()
        storage = "connected" if storage_ok else "unreachable"

    return {
        "status": "healthy" if storage_ok else "degraded",
        "version": settings.app_version,
        "environment": settings.environment,
        "database": storage,
        "fertility_config_version": config.version,
        "timestamp": datetime.now(timezone.utc).isoformat(),
    }
