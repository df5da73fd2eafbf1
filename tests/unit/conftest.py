"""Unit test fixtures: settings, a fake platform and HTTP transports backed by httpx.MockTransport."""

from __future__ import annotations

import json
from collections.abc import Callable
from typing import Any

import httpx
import pytest

from twin_e2e.config import Settings
from twin_e2e.transport import ApiTransport

Handler = Callable[[httpx.Request], httpx.Response]


class FakePlatform:
    """Stateful fake of the registry, health and Twin endpoints.

    A registered server shows up as application ``app-1`` with endpoint
    ``ep-1`` on the next application listing. Twin browse responses are
    served from ``browse_responses`` keyed by node id (None for root).
    """

    def __init__(self) -> None:
        self.unhealthy_polls = 0
        self.discovery_delay = 0
        self.activation_delay = 0
        self.final_endpoint_state = "Ready"
        self.applications: list[dict[str, Any]] = []
        self.endpoints: list[dict[str, Any]] = []
        self.browse_responses: dict[str | None, dict[str, Any]] = {}
        self.requests: list[tuple[str, str]] = []
        self.page_size = 0
        self._pending: str | None = None

    def __call__(self, request: httpx.Request) -> httpx.Response:
        path = request.url.path
        self.requests.append((request.method, path))

        if path.endswith("/healthz"):
            if self.unhealthy_polls > 0:
                self.unhealthy_polls -= 1
                return httpx.Response(503, text="Unhealthy")
            return httpx.Response(200, text="Healthy")

        if path.startswith("/twin/v2/browse/"):
            node_id = request.url.params.get("nodeId")
            return httpx.Response(200, json=self.browse_responses.get(node_id, {"references": []}))

        if path.startswith("/twin/v2/call/"):
            return httpx.Response(200, json={"results": [], "echo": json.loads(request.content)})

        if path == "/registry/v2/applications" and request.method == "POST":
            self._pending = json.loads(request.content)["discoveryUrl"]
            return httpx.Response(200)

        if path == "/registry/v2/applications":
            if self.discovery_delay > 0:
                self.discovery_delay -= 1
            elif self._pending:
                url = self._pending
                self._pending = None
                self.applications.append({"applicationId": "app-1", "discoveryUrls": [url + "/"]})
                self.endpoints.append(
                    {
                        "registration": {"id": "ep-1", "endpointUrl": url + "/"},
                        "activationState": "Deactivated",
                        "endpointState": None,
                    }
                )
            return self._page(request, self.applications)

        if path == "/registry/v2/endpoints":
            for endpoint in self.endpoints:
                if endpoint.get("activationState") == "Activated":
                    if self.activation_delay > 0:
                        self.activation_delay -= 1
                    else:
                        endpoint["activationState"] = "ActivatedAndConnected"
                        endpoint["endpointState"] = self.final_endpoint_state
            return self._page(request, self.endpoints)

        if path.startswith("/registry/v2/endpoints/") and path.endswith("/activate"):
            endpoint_id = path.split("/")[-2]
            for endpoint in self.endpoints:
                if endpoint["registration"]["id"] == endpoint_id:
                    endpoint["activationState"] = "Activated"
                    endpoint["endpointState"] = "Connecting"
            return httpx.Response(200)

        if path.startswith("/registry/v2/applications/") and request.method == "DELETE":
            app_id = path.rsplit("/", 1)[-1]
            self.applications = [a for a in self.applications if a["applicationId"] != app_id]
            return httpx.Response(200)

        return httpx.Response(404)

    def _page(self, request: httpx.Request, items: list[dict[str, Any]]) -> httpx.Response:
        """Serve items, split into pages when page_size is set."""
        if not self.page_size:
            return httpx.Response(200, json={"items": items})
        start = int(request.url.params.get("continuationToken", "0"))
        end = start + self.page_size
        body: dict[str, Any] = {"items": items[start:end]}
        if end < len(items):
            body["continuationToken"] = str(end)
        return httpx.Response(200, json=body)


@pytest.fixture
def test_settings() -> Settings:
    """Settings with short waits for unit tests."""
    return Settings(
        base_url="http://platform.test",
        poll_interval=0.01,
        max_test_timeout=1.0,
        activation_timeout=0.2,
        plc_endpoint_url="opc.tcp://opcplc:50000",
    )


@pytest.fixture
def platform() -> FakePlatform:
    """Fresh fake platform."""
    return FakePlatform()


@pytest.fixture
def make_client(test_settings: Settings) -> Callable[[Handler], httpx.AsyncClient]:
    """Factory for httpx clients whose requests are answered by a handler."""

    def factory(handler: Handler) -> httpx.AsyncClient:
        return httpx.AsyncClient(
            base_url=test_settings.base_url,
            transport=httpx.MockTransport(handler),
        )

    return factory


@pytest.fixture
def make_transport(
    test_settings: Settings, make_client: Callable[[Handler], httpx.AsyncClient]
) -> Callable[[Handler], ApiTransport]:
    """Factory for transports whose requests are answered by a handler."""

    def factory(handler: Handler) -> ApiTransport:
        return ApiTransport(test_settings, client=make_client(handler))

    return factory
