"""Shared FastAPI dependencies injected into route handlers."""

from __future__ import annotations

from dataclasses import dataclass
from datetime import date
from typing import Annotated

from fastapi import Depends, HTTPException, Query, Request

from ovulink.config import Settings, get_settings
from ovulink.fertility.config_loader import FertilityConfig, get_fertility_config
from ovulink.services.stores import CycleHistoryStore, SpermTestStore


@dataclass(frozen=True)
class AuthContext:
    """Authenticated user context extracted from a Firebase ID token."""

    user_id: str  # Firebase uid (the token's ``sub`` claim)
    email: str | None = None
    email_verified: bool = False


async def get_current_user(request: Request) -> AuthContext:
    """Extract the authenticated user from the request state.

    The Firebase auth middleware sets ``request.state.auth`` before routes run.
    """
    auth: AuthContext | None = getattr(request.state, "auth", None)
    if auth is None:
        raise HTTPException(status_code=401, detail="Not authenticated")
    return auth


def get_app_settings(request: Request) -> Settings:
    """Settings the app was built with, falling back to the environment."""
    return getattr(request.app.state, "settings", None) or get_settings()


def get_cycle_store(request: Request) -> CycleHistoryStore:
    return request.app.state.cycle_store


def get_sperm_test_store(request: Request) -> SpermTestStore:
    return request.app.state.sperm_test_store


def get_as_of(
    as_of: date | None = Query(default=None, description="Reference date, defaults to today"),
) -> date:
    return as_of or date.today()


# Annotated shortcuts for route signatures
CurrentUser = Annotated[AuthContext, Depends(get_current_user)]
AppSettings = Annotated[Settings, Depends(get_app_settings)]
FertilitySettings = Annotated[FertilityConfig, Depends(get_fertility_config)]
CycleStore = Annotated[CycleHistoryStore, Depends(get_cycle_store)]
SpermStore = Annotated[SpermTestStore, Depends(get_sperm_test_store)]
AsOf = Annotated[date, Depends(get_as_of)]
