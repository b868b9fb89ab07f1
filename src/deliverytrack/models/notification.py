"""Change-feed notification model."""

from __future__ import annotations

from datetime import datetime
from enum import StrEnum
from typing import Any

from pydantic import AliasChoices, Field, field_validator

from deliverytrack._constants import DELIVERY_COLUMN
from deliverytrack.ingestion.normalize import parse_timestamp, safe_str
from deliverytrack.models._base import TrackBaseModel


class ChangeKind(StrEnum):
    INSERT = "INSERT"
    UPDATE = "UPDATE"
    DELETE = "DELETE"


class ChangeNotification(TrackBaseModel):
    """One row change published by the store for a delivery topic.

    Payload shape::

        {"eventType": "UPDATE", "table": "entregador_localizacao",
         "new": {...row...}, "old": {...}, "commit_timestamp": "..."}
    """

    kind: ChangeKind = Field(validation_alias=AliasChoices("eventType", "event_type", "type", "kind"))
    table: str | None = None
    new: dict[str, Any] = Field(default_factory=dict, validation_alias=AliasChoices("new", "record"))
    old: dict[str, Any] = Field(default_factory=dict, validation_alias=AliasChoices("old", "old_record"))
    commit_timestamp: datetime | None = None

    @field_validator("kind", mode="before")
    @classmethod
    def _upper_kind(cls, value: Any) -> Any:
        return value.strip().upper() if isinstance(value, str) else value

    @field_validator("commit_timestamp", mode="before")
    @classmethod
    def _coerce_commit_timestamp(cls, value: Any) -> datetime | None:
        return parse_timestamp(value)

    @property
    def replaces_state(self) -> bool:
        """Inserts and updates both mean "the row is now ``new``"."""
        return self.kind in (ChangeKind.INSERT, ChangeKind.UPDATE)

    @property
    def delivery_id(self) -> str | None:
        row = self.new or self.old
        return safe_str(row.get(DELIVERY_COLUMN))
