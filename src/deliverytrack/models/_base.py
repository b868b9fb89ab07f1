"""Base model for location store rows and change-feed payloads.

Every wire model inherits from :class:`TrackBaseModel` which provides:

* frozen, extra-ignoring configuration so unknown store columns pass
  through without errors;
* a ``model_validator(mode="before")`` that drops empty values
  (``None``, ``""``, NaN) so the field default is used;
* a ``raw`` dict that captures the original payload.
"""

from __future__ import annotations

import math
from typing import Any

from pydantic import BaseModel, ConfigDict, Field, model_validator


class TrackBaseModel(BaseModel):
    """Base for wire models."""

    model_config = ConfigDict(
        frozen=True,
        extra="ignore",
        populate_by_name=True,
    )

    raw: dict[str, Any] = Field(default_factory=dict, exclude=True)
    """Original payload dict."""

    @staticmethod
    def _clean_dict(values: dict[str, Any]) -> dict[str, Any]:
        cleaned: dict[str, Any] = {}
        for key, value in values.items():
            if value is None:
                continue
            if isinstance(value, str) and not value.strip():
                continue
            if isinstance(value, float) and math.isnan(value):
                continue
            cleaned[key] = value
        return cleaned

    @model_validator(mode="before")
    @classmethod
    def _clean_values(cls, values: Any) -> Any:
        """Strip empty values and stash the raw payload."""
        if not isinstance(values, dict):
            return values
        cleaned = TrackBaseModel._clean_dict(values)
        # Keep an explicitly passed raw= (e.g. when copying a model).
        if "raw" not in values:
            cleaned["raw"] = dict(values)
        return cleaned
