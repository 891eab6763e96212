"""Uniform success/error envelope returned by every upstream call."""

from __future__ import annotations

import json
from dataclasses import dataclass
from typing import Any, Generic, Optional, TypeVar

import httpx

T = TypeVar("T")


@dataclass(frozen=True)
class ApiResult(Generic[T]):
    """Tagged result: ``ok`` with ``data``, or not ``ok`` with ``error``."""

    ok: bool
    data: Optional[T] = None
    error: Optional[str] = None
    status_code: Optional[int] = None

    @classmethod
    def success(cls, data: T, status_code: Optional[int] = None) -> "ApiResult[T]":
        return cls(ok=True, data=data, status_code=status_code)

    @classmethod
    def failure(cls, error: str, status_code: Optional[int] = None) -> "ApiResult[T]":
        return cls(ok=False, error=error, status_code=status_code)


def extract_error_message(payload: Any) -> Optional[str]:
    """Pull a human-readable message out of a parsed upstream error body.

    Order: ``error`` key, then ``detail`` / ``message``, then the whole
    body serialised.  Returns ``None`` for an empty body.
    """
    if payload is None or payload == "" or payload == {}:
        return None
    if isinstance(payload, dict):
        for key in ("error", "detail", "message"):
            value = payload.get(key)
            if value:
                return value if isinstance(value, str) else json.dumps(value)
    if isinstance(payload, str):
        return payload
    return f"API Error: {json.dumps(payload)}"


def error_from_response(response: httpx.Response) -> str:
    """Describe a non-2xx response, falling back to the reason phrase."""
    try:
        payload = response.json()
    except ValueError:
        payload = response.text.strip()
    message = extract_error_message(payload)
    if message:
        return message
    return f"HTTP {response.status_code} {response.reason_phrase}".strip()
