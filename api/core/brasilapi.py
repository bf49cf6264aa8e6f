"""
BrasilAPI HTTP client helpers.

Used endpoints:
- GET /api/banks/v1  -> [{"ispb": "...", "name": "...", "code": 1, "fullName": "..."}, ...]

The upstream schema is not ours, so every field is coerced and anything that
cannot be turned into the expected shape is reported as UpstreamUnavailable.
"""

from __future__ import annotations

import os
from typing import Any

import httpx

from banks.models import Institution
from core.errors import UpstreamUnavailable

DEFAULT_BASE_URL = "https://brasilapi.com.br"
DEFAULT_TIMEOUT_S = 10.0
BANKS_PATH = "/api/banks/v1"


def brasilapi_base_url() -> str:
    raw = os.environ.get("BRASILAPI_BASE_URL", DEFAULT_BASE_URL).strip() or DEFAULT_BASE_URL
    return raw.rstrip("/")


def brasilapi_timeout_s() -> float:
    raw = os.environ.get("BRASILAPI_TIMEOUT_S", "").strip()
    if not raw:
        return DEFAULT_TIMEOUT_S
    try:
        value = float(raw)
    except ValueError:
        return DEFAULT_TIMEOUT_S
    return value if value > 0 else DEFAULT_TIMEOUT_S


def _coerce_code(raw: Any) -> int:
    if isinstance(raw, bool):
        raise ValueError("boolean bank code")
    if isinstance(raw, float):
        if not raw.is_integer():
            raise ValueError(f"non-integer bank code {raw!r}")
        raw = int(raw)
    code = int(str(raw).strip()) if not isinstance(raw, int) else raw
    if code <= 0:
        raise ValueError(f"non-positive bank code {code}")
    return code


def _text(value: Any) -> str:
    return "" if value is None else str(value)


def parse_banks_payload(data: Any) -> list[Institution]:
    if not isinstance(data, list):
        raise UpstreamUnavailable("BrasilAPI returned an unexpected bank catalog payload.")

    parsed: list[Institution] = []
    for item in data:
        if not isinstance(item, dict):
            continue
        try:
            code = _coerce_code(item.get("code"))
        except (TypeError, ValueError) as exc:
            raise UpstreamUnavailable(f"BrasilAPI returned an invalid bank code: {exc}") from exc
        parsed.append(
            Institution(
                code=code,
                name=_text(item.get("name")),
                full_name=_text(item.get("fullName")),
                ispb=_text(item.get("ispb")),
            )
        )
    return parsed


async def fetch_banks(
    *,
    base_url: str | None = None,
    timeout_s: float | None = None,
    transport: httpx.AsyncBaseTransport | None = None,
) -> list[Institution]:
    """
    Fetch the full bank catalog, in upstream order.
    """
    base_url = (base_url or brasilapi_base_url()).rstrip("/")
    timeout_s = timeout_s if timeout_s is not None else brasilapi_timeout_s()

    try:
        async with httpx.AsyncClient(base_url=base_url, timeout=timeout_s, transport=transport) as client:
            resp = await client.get(BANKS_PATH)
    except httpx.TimeoutException as exc:
        raise UpstreamUnavailable(f"BrasilAPI request timed out after {timeout_s}s.") from exc
    except httpx.HTTPError as exc:
        raise UpstreamUnavailable(f"Failed to call BrasilAPI banks endpoint: {exc}") from exc

    if resp.status_code != 200:
        raise UpstreamUnavailable(
            f"BrasilAPI banks request failed with status {resp.status_code}: {resp.text[:300]}"
        )

    try:
        data = resp.json()
    except ValueError as exc:
        raise UpstreamUnavailable("BrasilAPI returned a non-JSON bank catalog.") from exc

    return parse_banks_payload(data)
