"""Shared Pydantic base models."""

from __future__ import annotations

from pydantic import BaseModel, ConfigDict


class OvulinkBase(BaseModel):
    """Base model with shared config for all Ovulink schemas.

    ``from_attributes`` lets routes return the fertility engine's dataclasses
    directly as ``response_model`` values.
    """

    model_config = ConfigDict(
        from_attributes=True,
        populate_by_name=True,
        str_strip_whitespace=True,
    )


class ErrorBody(BaseModel):
    code: str
    message: str
    details: dict | None = None


class ErrorResponse(BaseModel):
    success: bool = False
    error: ErrorBody
