from __future__ import annotations

from typing import Any

import httpx

from ..logging_config import logger
from ..utils.rate_limiter import RateLimiter


class SearchClientError(Exception):
    pass


class NetworkError(SearchClientError):
    """The request never produced a usable HTTP response."""


class AuthError(SearchClientError):
    """The API rejected the credential (missing, invalid or out of credits)."""


class RateLimitError(SearchClientError):
    """The API refused the request because too many were issued."""


class MalformedResponseError(SearchClientError):
    """The response body was not the JSON document we expect."""


class SearchClient:
    name: str
    base_url: str

    def __init__(
        self,
        *,
        timeout: float = 20.0,
        min_interval: float = 1.0,
        transport: httpx.AsyncBaseTransport | None = None,
    ) -> None:
        self._timeout = timeout
        self._transport = transport
        self._limiter = RateLimiter(max_calls=1, per_seconds=min_interval)

    async def _get_json(self, url: str, params: dict[str, Any]) -> dict[str, Any]:
        async with self._limiter.slot():
            try:
                async with httpx.AsyncClient(timeout=self._timeout, transport=self._transport) as client:
                    response = await client.get(url, params=params, headers=self._headers())
            except httpx.TransportError as exc:
                raise NetworkError(f"{self.name} request failed: {exc}") from exc
        self._raise_for_status(response)
        try:
            payload = response.json()
        except ValueError as exc:
            raise MalformedResponseError(f"{self.name} returned a body that is not JSON") from exc
        if not isinstance(payload, dict):
            raise MalformedResponseError(f"{self.name} returned {type(payload).__name__}, expected an object")
        return payload

    def _raise_for_status(self, response: httpx.Response) -> None:
        status = response.status_code
        if status < 400:
            return
        detail = _error_detail(response)
        logger.warning("fetch.http_error", provider=self.name, status=status, detail=detail)
        if status in (401, 403):
            raise AuthError(f"{self.name} rejected the API key ({status}): {detail}")
        if status == 429:
            raise RateLimitError(f"{self.name} rate limit exceeded: {detail}")
        raise NetworkError(f"{self.name} responded with HTTP {status}: {detail}")

    def _headers(self) -> dict[str, str]:  # pragma: no cover - simple glue
        raise NotImplementedError


def _error_detail(response: httpx.Response) -> str:
    try:
        body = response.json()
    except ValueError:
        return response.text.strip()[:200] or response.reason_phrase
    if isinstance(body, dict) and body.get("error"):
        return str(body["error"])
    return response.reason_phrase
