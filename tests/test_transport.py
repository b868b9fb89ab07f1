from __future__ import annotations

import dataclasses
from typing import Any

import aiohttp
import pytest

from deliverytrack._transport import RestTransport
from deliverytrack.config import TrackingConfig
from deliverytrack.exceptions import StoreTransportError


class _FakeResponse:
    def __init__(self, status: int, text: str) -> None:
        self.status = status
        self._text = text

    async def text(self) -> str:
        return self._text

    async def __aenter__(self) -> _FakeResponse:
        return self

    async def __aexit__(self, *exc: Any) -> None:
        return None


class _FakeSession:
    def __init__(self, status: int = 200, text: str = "[]", error: Exception | None = None) -> None:
        self.status = status
        self.text = text
        self.error = error
        self.requests: list[dict[str, Any]] = []

    def request(self, method: str, url: str, **kwargs: Any) -> _FakeResponse:
        self.requests.append({"method": method, "url": url, **kwargs})
        if self.error is not None:
            raise self.error
        return _FakeResponse(self.status, self.text)


@pytest.mark.asyncio
async def test_request_sends_store_headers(config: TrackingConfig) -> None:
    session = _FakeSession(text='[{"id": "1"}]')
    transport = RestTransport(config, session)  # type: ignore[arg-type]

    decoded = await transport.request(
        "POST",
        "/entregador_localizacao",
        params={"on_conflict": "pedido_delivery_id"},
        json_body={"latitude": 1.0},
        prefer="return=representation",
    )

    assert decoded == [{"id": "1"}]
    sent = session.requests[0]
    assert sent["url"] == "https://project.example.co/rest/v1/entregador_localizacao"
    assert sent["params"] == {"on_conflict": "pedido_delivery_id"}
    assert sent["data"] == '{"latitude":1.0}'
    headers = sent["headers"]
    assert headers["apikey"] == "anon-key"
    assert headers["authorization"] == "Bearer anon-key"
    assert headers["prefer"] == "return=representation"


@pytest.mark.asyncio
async def test_access_token_is_used_as_bearer(config: TrackingConfig) -> None:
    session = _FakeSession()
    transport = RestTransport(dataclasses.replace(config, access_token="user-jwt"), session)  # type: ignore[arg-type]

    await transport.request("GET", "/entregador_localizacao")

    assert session.requests[0]["headers"]["authorization"] == "Bearer user-jwt"
    assert "prefer" not in session.requests[0]["headers"]


@pytest.mark.asyncio
async def test_empty_body_decodes_to_none(config: TrackingConfig) -> None:
    transport = RestTransport(config, _FakeSession(status=204, text=""))  # type: ignore[arg-type]
    assert await transport.request("PATCH", "/t", json_body={}) is None


@pytest.mark.asyncio
async def test_http_error_raises_transport_error(config: TrackingConfig) -> None:
    transport = RestTransport(config, _FakeSession(status=404, text='{"message":"relation missing"}'))  # type: ignore[arg-type]

    with pytest.raises(StoreTransportError) as exc_info:
        await transport.request("GET", "/missing")

    assert exc_info.value.status_code == 404
    assert exc_info.value.endpoint == "/missing"


@pytest.mark.asyncio
async def test_invalid_json_raises_transport_error(config: TrackingConfig) -> None:
    transport = RestTransport(config, _FakeSession(text="<html>"))  # type: ignore[arg-type]

    with pytest.raises(StoreTransportError, match="Invalid JSON"):
        await transport.request("GET", "/t")


@pytest.mark.asyncio
async def test_client_error_raises_transport_error(config: TrackingConfig) -> None:
    transport = RestTransport(config, _FakeSession(error=aiohttp.ClientConnectionError("refused")))  # type: ignore[arg-type]

    with pytest.raises(StoreTransportError) as exc_info:
        await transport.request("GET", "/t")

    assert exc_info.value.status_code is None
