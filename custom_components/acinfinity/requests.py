"""
Low-level HTTP request library for AC Infinity API communication.

Every call is a form-encoded POST. The JSON body carries its own application
status code next to the HTTP status and both are checked here, so callers
only ever see a successful body or one of the exceptions from exceptions.py.
"""
import asyncio
import logging

import aiohttp

from .const import CODE_OK, REQUEST_TIMEOUT
from .exceptions import CannotConnect, RequestRejected, SessionExpired

_LOGGER = logging.getLogger(__name__)

_REDACTED_HEADERS = ("token",)


def _redact(headers: dict) -> dict:
    return {k: ("***" if k in _REDACTED_HEADERS else v) for k, v in headers.items()}


async def make_request(
    session: aiohttp.ClientSession,
    url: str,
    headers: dict,
    data: dict | None = None,
    timeout: int = REQUEST_TIMEOUT,
) -> dict:
    """
    POST a form to the AC Infinity API and return the decoded JSON body.

    Args:
        session: Pooled aiohttp session owned by AuthSession
        url: Absolute endpoint URL
        headers: Request headers (auth variant + optional User-Agent override)
        data: Form fields; values are sent as text
        timeout: Total timeout in seconds

    Returns:
        Parsed JSON response whose "code" is 200

    Raises:
        CannotConnect: network error, timeout or HTTP 5xx
        SessionExpired: HTTP 401 / 403
        RequestRejected: non-JSON body or application code other than 200
    """
    _LOGGER.debug("[API Request] POST %s headers=%s body=%s", url, _redact(headers), data)
    try:
        async with session.post(
            url,
            headers=headers,
            data=data or {},
            timeout=aiohttp.ClientTimeout(total=timeout),
        ) as response:
            return await _process_response(response, url)
    except (asyncio.TimeoutError, TimeoutError) as exc:
        _LOGGER.warning("Timeout on POST request to %s", url)
        raise CannotConnect() from exc
    except aiohttp.ClientError as exc:
        _LOGGER.warning("Connection error on POST request to %s: %s", url, exc)
        raise CannotConnect() from exc


async def _process_response(response, url: str) -> dict:
    """
    Check HTTP status, decode JSON and check the application code.

    Args:
        response: aiohttp response object
        url: Request URL (for logging)
    """
    if response.status >= 500:
        _LOGGER.warning("Server error %s from %s", response.status, url)
        raise CannotConnect(f"AC Infinity API returned HTTP {response.status}")

    if response.status in (401, 403):
        _LOGGER.debug("Session rejected with HTTP %s by %s", response.status, url)
        raise SessionExpired(response.status, {"msg": f"HTTP {response.status}"})

    try:
        body = await response.json(content_type=None)
    except ValueError:
        text = await response.text()
        _LOGGER.warning(
            "Received non-JSON response from %s: status %s, body preview: %s",
            url, response.status, text[:200]
        )
        raise RequestRejected(None, {"msg": f"Expected JSON but got: {text[:200]}"})

    if not isinstance(body, dict):
        raise RequestRejected(None, {"msg": f"Unexpected response type {type(body).__name__}"})

    code = body.get("code")
    _LOGGER.debug("[API Response] %s HTTP %s code=%s", url, response.status, code)
    if code != CODE_OK:
        raise RequestRejected(code, body)
    return body
