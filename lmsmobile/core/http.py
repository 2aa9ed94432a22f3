"""Outbound HTTP helpers shared by every upstream call."""

import json
import logging
from typing import Any

import httpx

from lmsmobile.core.errors import TransportError
from lmsmobile.core.settings import VerificationSettings

logger = logging.getLogger(__name__)


def build_http_client(settings: VerificationSettings) -> httpx.AsyncClient:
    """Create the application-wide client with a bounded timeout."""
    return httpx.AsyncClient(timeout=settings.http_timeout)


async def request_json(
    client: httpx.AsyncClient,
    method: str,
    url: str,
    **kwargs: Any,
) -> tuple[int, dict[str, Any]]:
    """Send a request and decode a JSON object body.

    Returns the status code with the decoded body so callers can interpret
    provider-specific error payloads. Network errors, timeouts and bodies
    that are not a JSON object raise TransportError.
    """
    try:
        response = await client.request(method, url, **kwargs)
    except httpx.HTTPError as exc:
        logger.warning("%s %s failed: %s", method, _redact(url), exc)
        raise TransportError(f"{method} request failed", {"url": _redact(url)}) from exc

    try:
        body = response.json()
    except (json.JSONDecodeError, UnicodeDecodeError) as exc:
        raise TransportError(
            "Upstream returned a non-JSON body",
            {"url": _redact(url), "status": response.status_code},
        ) from exc
    if not isinstance(body, dict):
        raise TransportError(
            "Upstream returned an unexpected JSON shape",
            {"url": _redact(url), "status": response.status_code},
        )
    return response.status_code, body


def is_success(status_code: int) -> bool:
    return 200 <= status_code < 300


def _redact(url: str) -> str:
    """Drop the query string, which may carry tokens or app secrets."""
    return url.split("?", 1)[0]
