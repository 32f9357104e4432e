"""Async HTTP transport for JSON:API servers.

JSONAPIClient wraps an ``httpx.AsyncClient`` configured with the
server's base URL and the JSON:API media type. It flattens nested query
parameters into the bracketed form JSON:API servers expect
(``filter[name]=x``, ``page[limit]=10``) and turns HTTP failures into
``TransportError`` with any JSON:API error objects from the body.

A process-wide default client is created lazily from settings; call
``connect()`` at startup to point it at a different server.
"""

from __future__ import annotations

import logging
from collections.abc import Mapping
from typing import Any

import httpx
from pydantic import ValidationError

from jsonapi_mapper.config import get_settings
from jsonapi_mapper.exceptions import TransportError
from jsonapi_mapper.schemas.jsonapi import JSONAPIError, JSONAPIErrorResponse

logger = logging.getLogger(__name__)


def flatten_params(params: Mapping[str, Any] | None) -> dict[str, str]:
    """Flatten nested query parameters into bracketed JSON:API keys.

    ``{"filter": {"age": {"gt": 3}}, "include": "author"}`` becomes
    ``{"filter[age][gt]": "3", "include": "author"}``. Lists are
    comma-joined, booleans are lowercased and ``None`` values dropped.
    """
    flat: dict[str, str] = {}

    def _walk(prefix: str, value: Any) -> None:
        if value is None:
            return
        if isinstance(value, Mapping):
            for key, item in value.items():
                _walk(f"{prefix}[{key}]", item)
        elif isinstance(value, (list, tuple, set, frozenset)):
            flat[prefix] = ",".join(_scalar(item) for item in value if item is not None)
        else:
            flat[prefix] = _scalar(value)

    for key, value in (params or {}).items():
        _walk(key, value)
    return flat


def _scalar(value: Any) -> str:
    if isinstance(value, bool):
        return "true" if value else "false"
    if hasattr(value, "isoformat"):
        return value.isoformat()
    return str(value)


def _parse_errors(response: httpx.Response) -> list[JSONAPIError]:
    try:
        return JSONAPIErrorResponse.model_validate(response.json()).errors
    except (ValueError, ValidationError):
        return []


class JSONAPIClient:
    """Async client issuing JSON:API requests.

    Use as an async context manager, or call ``aclose()`` when done.

    Args:
        base_url: Root URL of the JSON:API server.
        headers: Extra default headers, merged over the JSON:API
            ``Content-Type``/``Accept`` headers.
        timeout: Request timeout in seconds.
        transport: Optional httpx transport (e.g. ``httpx.MockTransport``).
    """

    def __init__(
        self,
        base_url: str,
        headers: Mapping[str, str] | None = None,
        timeout: float | None = None,
        transport: httpx.AsyncBaseTransport | None = None,
    ) -> None:
        settings = get_settings()
        default_headers = {
            "Content-Type": settings.content_type,
            "Accept": settings.content_type,
        }
        default_headers.update(headers or {})
        self.base_url = base_url.rstrip("/")
        self._http = httpx.AsyncClient(
            base_url=self.base_url,
            headers=default_headers,
            timeout=timeout if timeout is not None else settings.timeout,
            transport=transport,
        )

    async def __aenter__(self) -> JSONAPIClient:
        return self

    async def __aexit__(self, *exc_info: object) -> None:
        await self.aclose()

    async def aclose(self) -> None:
        """Close the underlying HTTP connection pool."""
        await self._http.aclose()

    async def request(
        self,
        method: str,
        path: str,
        *,
        params: Mapping[str, Any] | None = None,
        json: Any = None,
    ) -> dict[str, Any] | None:
        """Issue a request and return the decoded JSON body.

        Returns:
            The parsed JSON document, or None when the body is empty
            (e.g. ``204 No Content``).

        Raises:
            TransportError: On any HTTP error status or network failure.
        """
        query = flatten_params(params)
        logger.debug("%s %s params=%s", method, path, query)
        try:
            response = await self._http.request(method, path, params=query, json=json)
            response.raise_for_status()
        except httpx.HTTPStatusError as exc:
            status = exc.response.status_code
            logger.warning("JSON:API request failed: %s %s -> %d", method, path, status)
            raise TransportError(
                f"{method} {path} failed with status {status}",
                status_code=status,
                errors=_parse_errors(exc.response),
            ) from exc
        except httpx.HTTPError as exc:
            logger.warning("JSON:API request failed: %s %s -> %s", method, path, exc)
            raise TransportError(f"{method} {path} failed: {exc}") from exc

        if not response.content:
            return None
        try:
            return response.json()
        except ValueError as exc:
            raise TransportError(
                f"{method} {path} returned a non-JSON body",
                status_code=response.status_code,
            ) from exc

    async def get(self, path: str, params: Mapping[str, Any] | None = None) -> dict[str, Any] | None:
        return await self.request("GET", path, params=params)

    async def post(self, path: str, json: Any = None) -> dict[str, Any] | None:
        return await self.request("POST", path, json=json)

    async def patch(self, path: str, json: Any = None) -> dict[str, Any] | None:
        return await self.request("PATCH", path, json=json)

    async def delete(self, path: str) -> dict[str, Any] | None:
        return await self.request("DELETE", path)


_default_client: JSONAPIClient | None = None


def connect(
    base_url: str | None = None,
    headers: Mapping[str, str] | None = None,
    timeout: float | None = None,
    transport: httpx.AsyncBaseTransport | None = None,
) -> JSONAPIClient:
    """Replace the process-wide default client.

    Arguments left as None fall back to ``Settings``. Resource classes
    defined without an explicit client pick up the new default on their
    next request. The previous default is not closed; call
    ``await disconnect()`` first to release its connection pool.
    """
    global _default_client
    client = JSONAPIClient(
        base_url or get_settings().base_url,
        headers=headers,
        timeout=timeout,
        transport=transport,
    )
    _default_client = client
    logger.info("Connected default JSON:API client to %s", client.base_url)
    return client


def get_client() -> JSONAPIClient:
    """Return the default client, creating it from settings on first use."""
    if _default_client is None:
        return connect()
    return _default_client


async def disconnect() -> None:
    """Close and forget the default client; the next ``get_client()`` builds a new one."""
    global _default_client
    client, _default_client = _default_client, None
    if client is not None:
        await client.aclose()
        logger.info("Closed default JSON:API client for %s", client.base_url)
