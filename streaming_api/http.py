import json
from typing import Any, Dict, Optional

import httpx

from .errors import ApiError


DEFAULT_HTTP_TIMEOUT = 15.0
USER_AGENT = "TuneWell/1.0 (+https://github.com/tunewell)"


def build_http_client(config: Optional[Dict[str, Any]] = None, *, timeout: Optional[float] = None) -> httpx.Client:
    """Shared httpx client for every platform call (one connection pool per process)."""

    config = config or {}
    effective = float(timeout if timeout is not None else config.get("http_timeout", DEFAULT_HTTP_TIMEOUT))
    return httpx.Client(
        timeout=httpx.Timeout(effective),
        follow_redirects=True,
        headers={"User-Agent": USER_AGENT, "Accept": "application/json"},
    )


def body_excerpt(resp: httpx.Response, limit: int = 300) -> str:
    try:
        text = resp.text
    except (UnicodeDecodeError, httpx.ResponseNotRead):
        return ""
    text = (text or "").strip()
    return text if len(text) <= limit else text[:limit] + "..."


def decode_json(resp: httpx.Response, *, platform: str) -> Any:
    """Parse a JSON body; an empty body decodes to {}."""

    if not resp.content:
        return {}
    try:
        return resp.json()
    except (json.JSONDecodeError, UnicodeDecodeError) as e:
        raise ApiError(
            platform,
            f"{platform} response was not JSON (HTTP {resp.status_code}): {body_excerpt(resp)}",
            status=resp.status_code,
        ) from e
