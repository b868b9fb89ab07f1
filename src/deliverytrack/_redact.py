"""Helpers for safe debug logging.

Requests to the location store carry API keys and bearer tokens in
headers. This module redacts them before anything reaches a DEBUG log.
"""

from __future__ import annotations

import re
from collections.abc import Mapping
from typing import Any

from pydantic import BaseModel

_REDACTED = "<redacted>"

_SENSITIVE_KEYS: frozenset[str] = frozenset(
    {
        "apikey",
        "api_key",
        "authorization",
        "access_token",
        "refresh_token",
        "token",
        "password",
        "realtime_password",
        "cookie",
    }
)

# Three base64url segments: a JWT wherever it appears in free text.
_JWT_RE = re.compile(r"eyJ[\w-]+\.[\w-]+\.[\w-]+")


def _redact_text(text: str, max_string: int) -> str:
    text = _JWT_RE.sub(_REDACTED, text)
    if len(text) > max_string:
        return f"{text[:max_string]}…<truncated>"
    return text


def _redact_mapping(value: Mapping[Any, Any], max_string: int, depth: int) -> dict[str, Any]:
    out: dict[str, Any] = {}
    for raw_key, item in value.items():
        key = str(raw_key)
        if key.lower() in _SENSITIVE_KEYS:
            out[key] = _REDACTED
            continue
        out[key] = redact_for_log(item, max_string=max_string, _depth=depth + 1)
    return out


def redact_for_log(value: Any, *, max_string: int = 512, _depth: int = 0) -> Any:
    """Return a copy of *value* with credentials masked, suitable for debug logs.

    Mapping keys in the sensitive set are replaced wholesale; JWTs embedded
    in strings are masked; long strings are truncated to *max_string*.
    """
    if _depth > 20:
        return "<max-depth>"
    if value is None or isinstance(value, (bool, int, float)):
        return value
    if isinstance(value, str):
        return _redact_text(value, max_string)
    if isinstance(value, (bytes, bytearray)):
        return f"<bytes:{len(value)}b>"
    if isinstance(value, BaseModel):
        return _redact_mapping(value.model_dump(), max_string, _depth)
    if isinstance(value, Mapping):
        return _redact_mapping(value, max_string, _depth)
    if isinstance(value, (list, tuple, set, frozenset)):
        return [redact_for_log(item, max_string=max_string, _depth=_depth + 1) for item in value]
    return repr(value)
