"""Registry service access and endpoint lifecycle."""

from twin_e2e.registry.client import EndpointInfo, RegistryClient, ServiceHealth
from twin_e2e.registry.lifecycle import EndpointLifecycle, RegisteredEndpoint

__all__ = [
    "EndpointInfo",
    "EndpointLifecycle",
    "RegisteredEndpoint",
    "RegistryClient",
    "ServiceHealth",
]
