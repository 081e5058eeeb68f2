"""Ovulink API — FastAPI application entry point.

Run locally:
    uvicorn ovulink.main:app --reload --port 8000

Set ``OVULINK_STORAGE_BACKEND=memory`` to run without PostgreSQL.
"""

from __future__ import annotations

import logging
import sys
from contextlib import asynccontextmanager
from typing import Any, AsyncGenerator

from fastapi import FastAPI
from fastapi.middleware.cors import CORSMiddleware

from ovulink.config import Settings, get_settings
from ovulink.errors import register_exception_handlers
from ovulink.fertility.config_loader import get_fertility_config
from ovulink.middleware.firebase_auth import FirebaseAuthMiddleware
from ovulink.middleware.rate_limit import RateLimitMiddleware
from ovulink.middleware.security import SecurityHeadersMiddleware
from ovulink.routers import female_health, health, male_health
from ovulink.services.database import close_pool, init_pool, init_schema
from ovulink.services.stores import (
    InMemoryCycleStore,
    InMemorySpermTestStore,
    PostgresCycleStore,
    PostgresSpermTestStore,
)

# ---------- Logging ----------

logging.basicConfig(
    level=get_settings().log_level.upper(),
    format="%(asctime)s %(levelname)-8s %(name)s — %(message)s",
    datefmt="%Y-%m-%d %H:%M:%S",
    stream=sys.stdout,
)
logger = logging.getLogger("ovulink")


# ---------- Lifespan ----------

@asynccontextmanager
async def lifespan(app: FastAPI) -> AsyncGenerator[None, None]:
    """Startup / shutdown hooks."""
    settings: Settings = app.state.settings
    logger.info(
        "Starting Ovulink API v%s [%s, storage=%s]",
        settings.app_version,
        settings.environment,
        settings.storage_backend,
    )
    # Fail fast on a broken fertility_config.yaml
    get_fertility_config()
    if settings.storage_backend == "postgres":
        await init_pool(settings)
        await init_schema()
    yield
    if settings.storage_backend == "postgres":
        await close_pool()
    logger.info("Ovulink API shut down")


def _attach_stores(app: FastAPI, settings: Settings) -> None:
    if settings.storage_backend == "memory":
        app.state.cycle_store = InMemoryCycleStore()
        app.state.sperm_test_store = InMemorySpermTestStore()
    elif settings.storage_backend == "postgres":
        app.state.cycle_store = PostgresCycleStore()
        app.state.sperm_test_store = PostgresSpermTestStore()
    else:
        raise ValueError(f"Unknown storage backend: {settings.storage_backend!r}")


# ---------- App factory ----------

def create_app(settings: Settings | None = None, jwks_client: Any = None) -> FastAPI:
    settings = settings or get_settings()

    app = FastAPI(
        title="Ovulink API",
        description=(
            "Fertility tracking backend: menstrual cycle logging with ovulation "
            "prediction, and semen analysis logging with health scores and trends."
        ),
        version=settings.app_version,
        docs_url="/docs",
        redoc_url="/redoc",
        openapi_url="/openapi.json",
        lifespan=lifespan,
    )
    app.state.settings = settings
    _attach_stores(app, settings)

    # ---------- Middleware (last added runs first) ----------

    app.add_middleware(SecurityHeadersMiddleware)

    # Runs after auth so limits are per user where possible
    app.add_middleware(RateLimitMiddleware, settings=settings)

    app.add_middleware(FirebaseAuthMiddleware, settings=settings, jwks_client=jwks_client)

    # CORS outermost so preflight and error responses carry CORS headers
    app.add_middleware(
        CORSMiddleware,
        allow_origins=settings.cors_origins,
        allow_credentials=True,
        allow_methods=["*"],
        allow_headers=["*"],
        expose_headers=["X-RateLimit-Limit", "X-RateLimit-Remaining", "Retry-After"],
    )

    register_exception_handlers(app)

    # ---------- Health check (outside the v1 prefix) ----------
    app.include_router(health.router)

    # ---------- API v1 routes ----------
    v1_prefix = "/api/v1"

    app.include_router(female_health.router, prefix=v1_prefix)
    app.include_router(male_health.router, prefix=v1_prefix)

    return app


app = create_app()
