"""Client for the Registry microservice REST API and service health probes."""

from __future__ import annotations

import logging
import time
from dataclasses import dataclass
from enum import Enum
from typing import Any

import httpx

from twin_e2e.errors import ApiError, ContractViolationError
from twin_e2e.transport import ApiTransport

logger = logging.getLogger(__name__)


class ActivationState(str, Enum):
    """Endpoint activation states reported by the registry."""

    DEACTIVATED = "Deactivated"
    ACTIVATED = "Activated"
    ACTIVATED_AND_CONNECTED = "ActivatedAndConnected"


class EndpointState(str, Enum):
    """Endpoint connectivity states reported by the registry."""

    CONNECTING = "Connecting"
    NOT_REACHABLE = "NotReachable"
    BUSY = "Busy"
    NO_TRUST = "NoTrust"
    CERTIFICATE_INVALID = "CertificateInvalid"
    READY = "Ready"
    ERROR = "Error"
    DISCONNECTED = "Disconnected"
    UNAUTHORIZED = "Unauthorized"


@dataclass
class ServiceHealth:
    """Health probe result for one microservice."""

    name: str
    healthy: bool
    latency_ms: float
    status_code: int | None = None
    message: str | None = None

    def to_dict(self) -> dict[str, Any]:
        """Convert to dictionary."""
        return {
            "name": self.name,
            "status": "up" if self.healthy else "down",
            "latency_ms": round(self.latency_ms, 2),
            "status_code": self.status_code,
            "message": self.message,
        }


@dataclass
class EndpointInfo:
    """An endpoint registration as listed by the registry."""

    id: str
    url: str
    activation_state: str | None = None
    endpoint_state: str | None = None

    @property
    def is_ready(self) -> bool:
        """Check if the endpoint is activated, connected and ready."""
        return (
            self.activation_state == ActivationState.ACTIVATED_AND_CONNECTED.value
            and self.endpoint_state == EndpointState.READY.value
        )

    @classmethod
    def from_item(cls, item: dict[str, Any]) -> "EndpointInfo":
        """Parse an item of ``registry/v2/endpoints``."""
        registration = item.get("registration")
        if not isinstance(registration, dict) or not registration.get("id"):
            raise ContractViolationError("registry/v2/endpoints", "endpoint has no registration id")
        return cls(
            id=registration["id"],
            url=(registration.get("endpointUrl") or "").rstrip("/"),
            activation_state=item.get("activationState"),
            endpoint_state=item.get("endpointState"),
        )


def normalize_url(url: str) -> str:
    """Compare URLs without a trailing slash."""
    return url.rstrip("/")


class RegistryClient:
    """Client for the Registry REST API."""

    def __init__(self, transport: ApiTransport, health_path: str = "healthz") -> None:
        self.transport = transport
        self.health_path = health_path

    async def check_health(self, service: str) -> ServiceHealth:
        """Probe ``{service}/healthz``.

        Connection failures and error statuses are reported as unhealthy,
        never raised.
        """
        start = time.monotonic()
        try:
            response = await self.transport.request("GET", f"{service}/{self.health_path}")
            return ServiceHealth(
                name=service,
                healthy=True,
                latency_ms=(time.monotonic() - start) * 1000,
                status_code=response.status_code,
            )
        except ApiError as e:
            return ServiceHealth(
                name=service,
                healthy=False,
                latency_ms=(time.monotonic() - start) * 1000,
                status_code=e.status_code,
                message=e.body[:200] or None,
            )
        except httpx.RequestError as e:
            return ServiceHealth(
                name=service,
                healthy=False,
                latency_ms=(time.monotonic() - start) * 1000,
                message=str(e) or type(e).__name__,
            )

    async def _list_items(self, route: str) -> list[dict[str, Any]]:
        """Drain a paged registry listing of ``{items, continuationToken}``."""
        items: list[dict[str, Any]] = []
        params: dict[str, str] = {}

        while True:
            payload = await self.transport.request_json("GET", route, params=params)
            if not isinstance(payload, dict) or not isinstance(payload.get("items"), list):
                raise ContractViolationError(route, "response has no items")
            items.extend(payload["items"])

            continuation_token = payload.get("continuationToken")
            if not continuation_token:
                return items
            params = {"continuationToken": continuation_token}

    async def list_applications(self) -> list[dict[str, Any]]:
        """List all registered applications."""
        return await self._list_items("registry/v2/applications")

    async def register_server(self, discovery_url: str) -> None:
        """Register an OPC UA server by its discovery URL."""
        await self.transport.request(
            "POST", "registry/v2/applications", body={"discoveryUrl": discovery_url}
        )
        logger.info(f"Registered server {discovery_url}")

    async def delete_application(self, application_id: str) -> None:
        """Remove an application and its endpoints."""
        await self.transport.request("DELETE", f"registry/v2/applications/{application_id}")
        logger.info(f"Deleted application {application_id}")

    async def list_endpoints(self) -> list[EndpointInfo]:
        """List all endpoint registrations."""
        items = await self._list_items("registry/v2/endpoints")
        return [EndpointInfo.from_item(item) for item in items]

    async def activate_endpoint(self, endpoint_id: str) -> None:
        """Activate an endpoint so the Twin service connects to it."""
        await self.transport.request("POST", f"registry/v2/endpoints/{endpoint_id}/activate")
        logger.info(f"Activation requested for endpoint {endpoint_id}")
