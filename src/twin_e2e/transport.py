"""Shared REST plumbing for the platform microservices.

Wraps a single httpx.AsyncClient used by the Twin and Registry clients:
- Base URL and bearer token from settings
- Non-2xx responses mapped to ApiError
- JSON bodies decoded with malformed payloads mapped to ContractViolationError
"""

from __future__ import annotations

import logging
from types import TracebackType
from typing import Any

import httpx

from twin_e2e.config import Settings, settings as default_settings
from twin_e2e.errors import ApiError, ContractViolationError

logger = logging.getLogger(__name__)


class ApiTransport:
    """Async HTTP transport shared by all service clients."""

    def __init__(
        self,
        config: Settings | None = None,
        client: httpx.AsyncClient | None = None,
    ) -> None:
        """Initialize transport.

        Args:
            config: Settings to take base URL, token and timeout from
            client: Preconfigured client (tests inject one with a MockTransport)
        """
        self.config = config or default_settings
        self._owns_client = client is None
        self._client = client or httpx.AsyncClient(
            base_url=self.config.base_url,
            timeout=self.config.http_timeout,
        )

    def _headers(self) -> dict[str, str]:
        headers = {"Accept": "application/json"}
        if self.config.auth_token is not None:
            headers["Authorization"] = f"Bearer {self.config.auth_token.get_secret_value()}"
        return headers

    async def request(
        self,
        method: str,
        route: str,
        params: dict[str, str] | None = None,
        body: Any = None,
    ) -> httpx.Response:
        """Send a request and raise ApiError on a non-success status."""
        logger.debug(f"{method} {route} params={params}")
        response = await self._client.request(
            method,
            route,
            params=params,
            json=body,
            headers=self._headers(),
        )
        if response.is_error:
            raise ApiError(response.status_code, method, str(response.url), response.text)
        return response

    async def request_json(
        self,
        method: str,
        route: str,
        params: dict[str, str] | None = None,
        body: Any = None,
    ) -> Any:
        """Send a request and return the decoded JSON body."""
        response = await self.request(method, route, params=params, body=body)
        return decode_json(response, route)

    async def aclose(self) -> None:
        """Close the underlying client if this transport created it."""
        if self._owns_client:
            await self._client.aclose()

    async def __aenter__(self) -> "ApiTransport":
        return self

    async def __aexit__(
        self,
        exc_type: type[BaseException] | None,
        exc_val: BaseException | None,
        exc_tb: TracebackType | None,
    ) -> None:
        await self.aclose()


def decode_json(response: httpx.Response, route: str) -> Any:
    """Decode a JSON response body.

    Raises:
        ContractViolationError: If the body is empty, not UTF-8 or not valid JSON
    """
    if not response.content:
        raise ContractViolationError(route, "response body is empty")
    try:
        return response.json()
    except ValueError as e:
        raise ContractViolationError(route, f"response is not valid JSON: {e}") from e
