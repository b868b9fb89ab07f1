"""Location table endpoints.

Read:
  - GET /{table}?pedido_delivery_id=eq.{id}&order=updated_at.desc&limit=1
Write:
  - POST /{table}?on_conflict=pedido_delivery_id   (atomic upsert)
  - GET id, then PATCH /{table}?id=eq.{row} or POST  (read-then-write)
"""

from __future__ import annotations

import logging
from dataclasses import dataclass
from enum import StrEnum
from typing import Any

from pydantic import ValidationError

from deliverytrack._constants import DELIVERY_COLUMN
from deliverytrack._transport import Transport
from deliverytrack.config import TrackingConfig, UpsertStrategy
from deliverytrack.exceptions import StoreReadError, StoreTransportError, StoreWriteError
from deliverytrack.ingestion.normalize import safe_str
from deliverytrack.models.location import LocationSample

_logger = logging.getLogger(__name__)

_RETURN_ROW = "return=representation"


class UpsertOutcome(StrEnum):
    INSERTED = "inserted"
    UPDATED = "updated"
    UPSERTED = "upserted"


@dataclass(frozen=True)
class UpsertResult:
    """Result of writing the location row of a delivery."""

    outcome: UpsertOutcome
    sample: LocationSample | None = None


def _path(config: TrackingConfig) -> str:
    return f"/{config.table}"


def _eq(value: str) -> str:
    return f"eq.{value}"


def _first_row(decoded: Any) -> dict[str, Any] | None:
    """PostgREST returns a list of rows; tolerate a bare object too."""
    if isinstance(decoded, list):
        return decoded[0] if decoded and isinstance(decoded[0], dict) else None
    if isinstance(decoded, dict):
        return decoded
    return None


def _parse_written(decoded: Any, endpoint: str) -> LocationSample | None:
    row = _first_row(decoded)
    if row is None:
        return None
    try:
        return LocationSample.from_row(row)
    except ValidationError:
        _logger.debug("Unparseable row returned by %s: %s", endpoint, row, exc_info=True)
        return None


async def fetch_latest_location(
    config: TrackingConfig,
    transport: Transport,
    delivery_id: str,
) -> LocationSample | None:
    """Fetch the most recent location row for *delivery_id*.

    Returns ``None`` when the delivery has no row yet.

    Raises
    ------
    StoreReadError
        On transport failure or when the row cannot be parsed.
    """
    endpoint = _path(config)
    params = {
        "select": "*",
        DELIVERY_COLUMN: _eq(delivery_id),
        "order": "updated_at.desc",
        "limit": "1",
    }
    try:
        decoded = await transport.request("GET", endpoint, params=params)
    except StoreTransportError as exc:
        raise StoreReadError(
            f"fetching location of {delivery_id} failed: {exc}",
            endpoint=endpoint,
            status_code=exc.status_code,
        ) from exc

    row = _first_row(decoded)
    if row is None:
        return None
    try:
        return LocationSample.from_row(row)
    except ValidationError as exc:
        raise StoreReadError(
            f"location row of {delivery_id} is malformed: {exc.error_count()} error(s)",
            endpoint=endpoint,
        ) from exc


async def find_location_id(
    config: TrackingConfig,
    transport: Transport,
    delivery_id: str,
) -> str | None:
    """Return the id of the existing row for *delivery_id*, if any."""
    endpoint = _path(config)
    params = {"select": "id", DELIVERY_COLUMN: _eq(delivery_id), "limit": "1"}
    try:
        decoded = await transport.request("GET", endpoint, params=params)
    except StoreTransportError as exc:
        raise StoreWriteError(
            f"looking up location row of {delivery_id} failed: {exc}",
            endpoint=endpoint,
            status_code=exc.status_code,
        ) from exc
    row = _first_row(decoded)
    return safe_str(row.get("id")) if row is not None else None


async def insert_location(
    config: TrackingConfig,
    transport: Transport,
    sample: LocationSample,
) -> LocationSample | None:
    endpoint = _path(config)
    try:
        decoded = await transport.request("POST", endpoint, json_body=sample.to_row(), prefer=_RETURN_ROW)
    except StoreTransportError as exc:
        raise StoreWriteError(
            f"inserting location of {sample.delivery_id} failed: {exc}",
            endpoint=endpoint,
            status_code=exc.status_code,
        ) from exc
    return _parse_written(decoded, endpoint)


async def update_location(
    config: TrackingConfig,
    transport: Transport,
    row_id: str,
    sample: LocationSample,
) -> LocationSample | None:
    endpoint = _path(config)
    try:
        decoded = await transport.request(
            "PATCH",
            endpoint,
            params={"id": _eq(row_id)},
            json_body=sample.to_row(),
            prefer=_RETURN_ROW,
        )
    except StoreTransportError as exc:
        raise StoreWriteError(
            f"updating location row {row_id} failed: {exc}",
            endpoint=endpoint,
            status_code=exc.status_code,
        ) from exc
    return _parse_written(decoded, endpoint)


async def upsert_location(
    config: TrackingConfig,
    transport: Transport,
    sample: LocationSample,
) -> UpsertResult:
    """Write *sample* as the single location row of its delivery.

    With ``UpsertStrategy.ATOMIC`` one request inserts or updates on the
    unique delivery column. ``READ_THEN_WRITE`` looks the row up first and
    is only safe with a single writer per delivery.

    Raises
    ------
    StoreWriteError
        If any request of the sequence fails.
    """
    if config.upsert_strategy == UpsertStrategy.READ_THEN_WRITE:
        row_id = await find_location_id(config, transport, sample.delivery_id)
        if row_id is not None:
            _logger.debug("Updating location row=%s delivery=%s", row_id, sample.delivery_id)
            written = await update_location(config, transport, row_id, sample)
            return UpsertResult(UpsertOutcome.UPDATED, written)
        _logger.debug("Inserting location delivery=%s", sample.delivery_id)
        written = await insert_location(config, transport, sample)
        return UpsertResult(UpsertOutcome.INSERTED, written)

    endpoint = _path(config)
    try:
        decoded = await transport.request(
            "POST",
            endpoint,
            params={"on_conflict": DELIVERY_COLUMN},
            json_body=sample.to_row(),
            prefer=f"resolution=merge-duplicates,{_RETURN_ROW}",
        )
    except StoreTransportError as exc:
        raise StoreWriteError(
            f"upserting location of {sample.delivery_id} failed: {exc}",
            endpoint=endpoint,
            status_code=exc.status_code,
        ) from exc
    return UpsertResult(UpsertOutcome.UPSERTED, _parse_written(decoded, endpoint))
