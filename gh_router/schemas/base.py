"""Pydantic base schema utilities for router models."""

from __future__ import annotations

from pydantic import BaseModel, ConfigDict


class BaseSchema(BaseModel):
    """
    Base Pydantic model for all router schemas.

    Configures common Pydantic behaviors:
    - ``populate_by_name=True``: Allow initialization by alias or field name.
    - ``extra="forbid"``: Prevent unknown fields from slipping into descriptors and envelopes.
    """

    model_config = ConfigDict(
        populate_by_name=True,
        extra="forbid",
    )


class FrozenSchema(BaseSchema):
    """``BaseSchema`` variant for values that must never change after creation."""

    model_config = ConfigDict(
        populate_by_name=True,
        extra="forbid",
        frozen=True,
    )
