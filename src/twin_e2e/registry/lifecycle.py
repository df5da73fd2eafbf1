"""Endpoint lifecycle for Twin end-to-end tests.

Brings a simulated OPC UA server into a browsable state:
- Wait for the platform microservices to report healthy
- Register the server and wait for application and endpoint discovery
- Activate the endpoint and verify it is connected and ready
- Unregister the server on teardown
"""

from __future__ import annotations

import asyncio
import logging
import time
from collections.abc import Awaitable, Callable
from dataclasses import dataclass
from typing import Any, TypeVar

import httpx

from twin_e2e.config import Settings, settings as default_settings
from twin_e2e.errors import (
    ApiError,
    ContractViolationError,
    EndpointActivationError,
    WaitTimeoutError,
)
from twin_e2e.registry.client import EndpointInfo, RegistryClient, normalize_url
from twin_e2e.transport import ApiTransport

logger = logging.getLogger(__name__)

T = TypeVar("T")


@dataclass
class RegisteredEndpoint:
    """An activated endpoint ready for browsing."""

    endpoint_id: str
    endpoint_url: str
    activation_state: str | None = None
    endpoint_state: str | None = None


class EndpointLifecycle:
    """Registers, activates and unregisters the endpoint under test."""

    def __init__(
        self,
        registry: RegistryClient,
        transport: ApiTransport,
        config: Settings | None = None,
    ) -> None:
        self.registry = registry
        self.transport = transport
        self.config = config or default_settings

    async def _poll(
        self,
        check: Callable[[], Awaitable[T | None]],
        timeout: float,
        description: str,
    ) -> T:
        """Call ``check`` until it returns a value or the timeout expires.

        API and connection errors count as "not ready yet".
        """
        deadline = time.monotonic() + timeout
        attempt = 0
        while True:
            attempt += 1
            try:
                result = await check()
                if result is not None:
                    return result
            except (ApiError, httpx.RequestError) as e:
                logger.debug(f"{description}: attempt {attempt} failed: {e}")

            remaining = deadline - time.monotonic()
            if remaining <= 0:
                raise WaitTimeoutError(f"Timed out after {timeout}s waiting for {description}")
            logger.info(f"Waiting for {description} (attempt {attempt})")
            await asyncio.sleep(min(self.config.poll_interval, remaining))

    async def wait_for_services(self, timeout: float | None = None) -> None:
        """Wait until every configured microservice reports healthy."""
        services = list(self.config.health_services)

        async def all_healthy() -> bool | None:
            results = await asyncio.gather(*(self.registry.check_health(s) for s in services))
            down = [r.name for r in results if not r.healthy]
            if down:
                logger.debug(f"Services not healthy yet: {', '.join(down)}")
                return None
            return True

        await self._poll(all_healthy, timeout or self.config.max_test_timeout, "healthy services")
        logger.info(f"Services healthy: {', '.join(services)}")

    async def get_test_server_url(self) -> str:
        """Resolve the endpoint URL of the simulated OPC UA server."""
        if self.config.plc_endpoint_url:
            return normalize_url(self.config.plc_endpoint_url)

        if not self.config.published_nodes_url:
            raise ValueError("Either plc_endpoint_url or published_nodes_url must be configured")

        route = self.config.published_nodes_url
        entries = await self.transport.request_json("GET", route)
        if not isinstance(entries, list) or not entries:
            raise ContractViolationError(route, "published nodes configuration is empty")
        first: Any = entries[0]
        if not isinstance(first, dict) or not first.get("EndpointUrl"):
            raise ContractViolationError(route, "published nodes entry has no EndpointUrl")
        return normalize_url(first["EndpointUrl"])

    async def wait_for_discovery(self, urls: list[str], timeout: float | None = None) -> list[dict]:
        """Wait until an application is registered for every discovery URL.

        Returns:
            The matching applications, one per URL
        """
        wanted = [normalize_url(u) for u in urls]

        async def discovered() -> list[dict] | None:
            applications = await self.registry.list_applications()
            matches = []
            for url in wanted:
                match = next(
                    (
                        app
                        for app in applications
                        if any(normalize_url(d) == url for d in app.get("discoveryUrls") or [])
                    ),
                    None,
                )
                if match is None:
                    return None
                matches.append(match)
            return matches

        return await self._poll(
            discovered, timeout or self.config.max_test_timeout, "application discovery"
        )

    async def wait_for_endpoint_discovery(
        self, urls: list[str], timeout: float | None = None
    ) -> list[EndpointInfo]:
        """Wait until an endpoint is registered for every server URL.

        Returns:
            The matching endpoints, one per URL
        """
        wanted = [normalize_url(u) for u in urls]

        async def discovered() -> list[EndpointInfo] | None:
            endpoints = await self.registry.list_endpoints()
            matches = []
            for url in wanted:
                match = next((e for e in endpoints if e.url == url), None)
                if match is None:
                    return None
                matches.append(match)
            return matches

        return await self._poll(
            discovered, timeout or self.config.max_test_timeout, "endpoint discovery"
        )

    async def activate_endpoint(self, endpoint_id: str, timeout: float | None = None) -> EndpointInfo:
        """Activate an endpoint and wait for it to be connected and ready.

        Raises:
            EndpointActivationError: If the endpoint is missing or not ready in time
        """
        await self.registry.activate_endpoint(endpoint_id)
        last_seen: EndpointInfo | None = None

        async def ready() -> EndpointInfo | None:
            nonlocal last_seen
            endpoints = await self.registry.list_endpoints()
            if not endpoints:
                raise EndpointActivationError("Registry lists no endpoints")
            endpoint = next((e for e in endpoints if e.id == endpoint_id), None)
            last_seen = endpoint
            if endpoint is not None and endpoint.is_ready:
                return endpoint
            return None

        try:
            endpoint = await self._poll(
                ready, timeout or self.config.activation_timeout, f"activation of {endpoint_id}"
            )
        except WaitTimeoutError as e:
            seen = last_seen
            if seen is None:
                raise EndpointActivationError(f"The endpoint {endpoint_id} was not found") from e
            raise EndpointActivationError(
                f"Endpoint {endpoint_id} is {seen.activation_state}/{seen.endpoint_state}, "
                f"expected ActivatedAndConnected/Ready"
            ) from e

        logger.info(f"Endpoint {endpoint_id} activated and ready")
        return endpoint

    async def unregister_server(self, discovery_url: str) -> int:
        """Delete every application registered for a discovery URL.

        Returns:
            Number of applications deleted
        """
        url = normalize_url(discovery_url)
        applications = await self.registry.list_applications()
        deleted = 0
        for app in applications:
            if any(normalize_url(d) == url for d in app.get("discoveryUrls") or []):
                application_id = app.get("applicationId")
                if not application_id:
                    raise ContractViolationError(
                        "registry/v2/applications", "application has no applicationId"
                    )
                await self.registry.delete_application(application_id)
                deleted += 1
        logger.info(f"Server endpoint unregistered: {url} ({deleted} applications)")
        return deleted

    async def setup(self) -> RegisteredEndpoint:
        """Register and activate the test server.

        All waits share one deadline of ``max_test_timeout`` seconds.
        """
        deadline = time.monotonic() + self.config.max_test_timeout

        def remaining() -> float:
            left = deadline - time.monotonic()
            if left <= 0:
                raise WaitTimeoutError(
                    f"Endpoint setup exceeded {self.config.max_test_timeout}s"
                )
            return left

        await self.wait_for_services(remaining())
        server_url = await self.get_test_server_url()

        await self.registry.register_server(server_url)
        await self.wait_for_discovery([server_url], remaining())
        endpoints = await self.wait_for_endpoint_discovery([server_url], remaining())
        endpoint_id = endpoints[0].id

        info = await self.activate_endpoint(
            endpoint_id, min(self.config.activation_timeout, remaining())
        )
        return RegisteredEndpoint(
            endpoint_id=endpoint_id,
            endpoint_url=server_url,
            activation_state=info.activation_state,
            endpoint_state=info.endpoint_state,
        )
