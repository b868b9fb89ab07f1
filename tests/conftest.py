from __future__ import annotations

import asyncio
import itertools
from collections.abc import Mapping
from datetime import UTC, datetime, timedelta
from typing import Any

import pytest

from deliverytrack._constants import DELIVERY_COLUMN
from deliverytrack._realtime import ChannelEndpoint
from deliverytrack.config import PositionOptions, TrackingConfig
from deliverytrack.exceptions import DevicePositionError, StoreTransportError
from deliverytrack.geolocation import ErrorCallback, FixCallback, WatchHandle
from deliverytrack.models.location import LocationFix

BASE_TIME = datetime(2026, 1, 1, 12, 0, tzinfo=UTC)


class FakeStore:
    """In-memory stand-in for the PostgREST location table.

    Enforces the unique constraint on the delivery column and stamps
    ``updated_at`` on every write.
    """

    def __init__(self) -> None:
        self.rows: list[dict[str, Any]] = []
        self.calls: list[tuple[str, dict[str, str], Any, str | None]] = []
        self.failures: list[StoreTransportError] = []
        self.get_gate: asyncio.Event | None = None
        self.get_started = asyncio.Event()
        self._ids = itertools.count(1)
        self._ticks = itertools.count(1)

    def _stamp(self) -> str:
        return (BASE_TIME + timedelta(seconds=next(self._ticks))).isoformat()

    def add_row(self, **columns: Any) -> dict[str, Any]:
        row = {"id": str(next(self._ids)), "updated_at": self._stamp(), **columns}
        self.rows.append(row)
        return row

    def rows_for(self, delivery_id: str) -> list[dict[str, Any]]:
        return [row for row in self.rows if row[DELIVERY_COLUMN] == delivery_id]

    async def request(
        self,
        method: str,
        path: str,
        *,
        params: Mapping[str, str] | None = None,
        json_body: Any = None,
        prefer: str | None = None,
    ) -> Any:
        query = dict(params or {})
        self.calls.append((method, query, json_body, prefer))
        if method == "GET":
            self.get_started.set()
            if self.get_gate is not None:
                await self.get_gate.wait()
        if self.failures:
            raise self.failures.pop(0)

        if method == "GET":
            return self._select(query)
        if method == "POST":
            return self._insert(query, json_body, prefer)
        if method == "PATCH":
            return self._update(query, json_body)
        raise AssertionError(f"unexpected method {method}")

    def _select(self, query: dict[str, str]) -> list[dict[str, Any]]:
        rows = list(self.rows)
        for column in (DELIVERY_COLUMN, "id"):
            if column in query:
                value = query[column].removeprefix("eq.")
                rows = [row for row in rows if row[column] == value]
        if query.get("order") == "updated_at.desc":
            rows.sort(key=lambda row: row["updated_at"], reverse=True)
        if "limit" in query:
            rows = rows[: int(query["limit"])]
        if query.get("select") == "id":
            return [{"id": row["id"]} for row in rows]
        return [dict(row) for row in rows]

    def _insert(self, query: dict[str, str], body: dict[str, Any], prefer: str | None) -> list[dict[str, Any]]:
        existing = self.rows_for(body[DELIVERY_COLUMN])
        if existing:
            merge = query.get("on_conflict") == DELIVERY_COLUMN and "merge-duplicates" in (prefer or "")
            if not merge:
                raise StoreTransportError("HTTP 409 duplicate key", status_code=409, endpoint="/")
            existing[0].update(body, updated_at=self._stamp())
            return [dict(existing[0])]
        return [dict(self.add_row(**body))]

    def _update(self, query: dict[str, str], body: dict[str, Any]) -> list[dict[str, Any]]:
        row_id = query["id"].removeprefix("eq.")
        updated = []
        for row in self.rows:
            if row["id"] == row_id:
                row.update(body, updated_at=self._stamp())
                updated.append(dict(row))
        return updated


class FakeChannel:
    """Change-feed runtime double recording topic subscriptions."""

    def __init__(self, *, fail_start: bool = False) -> None:
        self.fail_start = fail_start
        self.running = False
        self.topics: set[str] = set()
        self.unsubscribed: list[str] = []
        self.starts = 0

    @property
    def is_running(self) -> bool:
        return self.running

    def start(self, endpoint: ChannelEndpoint) -> None:
        self.starts += 1
        if self.fail_start:
            raise OSError(f"cannot reach {endpoint.host}")
        self.running = True

    def stop(self) -> None:
        self.running = False
        self.topics.clear()

    def subscribe(self, topic: str) -> None:
        self.topics.add(topic)

    def unsubscribe(self, topic: str) -> None:
        self.topics.discard(topic)
        self.unsubscribed.append(topic)


class FakeGeolocation:
    """Geolocation double driven by the test through ``emit``/``fail``."""

    def __init__(self, current: LocationFix | DevicePositionError | None = None) -> None:
        self.current = current
        self.watches: dict[WatchHandle, tuple[FixCallback, ErrorCallback]] = {}
        self.cleared: list[WatchHandle] = []
        self._handles = itertools.count(1)

    def watch_position(self, on_fix: FixCallback, on_error: ErrorCallback, options: PositionOptions) -> WatchHandle:
        handle = next(self._handles)
        self.watches[handle] = (on_fix, on_error)
        return handle

    def clear_watch(self, handle: WatchHandle) -> None:
        self.watches.pop(handle, None)
        self.cleared.append(handle)

    async def get_current_position(self, options: PositionOptions) -> LocationFix:
        if isinstance(self.current, DevicePositionError):
            raise self.current
        if self.current is None:
            raise DevicePositionError("no fix")
        return self.current

    def emit(self, fix: LocationFix) -> None:
        for on_fix, _ in list(self.watches.values()):
            on_fix(fix)

    def fail(self, exc: DevicePositionError) -> None:
        for _, on_error in list(self.watches.values()):
            on_error(exc)


@pytest.fixture
def config() -> TrackingConfig:
    return TrackingConfig(
        rest_url="https://project.example.co/rest/v1",
        api_key="anon-key",
        realtime_host="broker.example.co",
        write_retry_backoff=0.0,
    )


@pytest.fixture
def store() -> FakeStore:
    return FakeStore()


@pytest.fixture
def channel() -> FakeChannel:
    return FakeChannel()
