"""Test context for Twin end-to-end suites.

Usage:
    async with TwinTestContext() as twin:
        root = await twin.browse()
        variables = await twin.browse_recursive(node_class="Variable")
"""

from __future__ import annotations

import logging
from types import TracebackType
from typing import Any

import httpx

from twin_e2e.config import Settings, settings as default_settings
from twin_e2e.observability.logging import LogContext
from twin_e2e.registry.client import RegistryClient
from twin_e2e.registry.lifecycle import EndpointLifecycle, RegisteredEndpoint
from twin_e2e.transport import ApiTransport
from twin_e2e.twin.client import TwinClient
from twin_e2e.twin.collector import CancellationSignal, NodeTreeCollector
from twin_e2e.twin.models import MethodCallResult, MethodMetadata, NodeReference

logger = logging.getLogger(__name__)


class TwinTestContext:
    """Registers and activates a test endpoint and exposes Twin helpers."""

    def __init__(
        self,
        config: Settings | None = None,
        client: httpx.AsyncClient | None = None,
    ) -> None:
        self.config = config or default_settings
        self.transport = ApiTransport(self.config, client=client)
        self.registry = RegistryClient(self.transport, health_path=self.config.health_path)
        self.lifecycle = EndpointLifecycle(self.registry, self.transport, self.config)
        self.twin = TwinClient(self.transport)
        self._endpoint: RegisteredEndpoint | None = None
        self._collector: NodeTreeCollector | None = None

    @property
    def endpoint(self) -> RegisteredEndpoint:
        if self._endpoint is None:
            raise RuntimeError("TwinTestContext is not set up")
        return self._endpoint

    @property
    def endpoint_id(self) -> str:
        return self.endpoint.endpoint_id

    @property
    def endpoint_url(self) -> str:
        return self.endpoint.endpoint_url

    def _log_context(self) -> LogContext:
        return LogContext(run_id=self.config.run_id, endpoint_id=self.endpoint_id)

    @property
    def collector(self) -> NodeTreeCollector:
        if self._collector is None:
            self._collector = NodeTreeCollector.for_endpoint(
                self.twin, self.endpoint_id, self.config
            )
        return self._collector

    async def __aenter__(self) -> "TwinTestContext":
        try:
            self._endpoint = await self.lifecycle.setup()
        except BaseException:
            await self.transport.aclose()
            raise
        logger.info(f"Test endpoint {self.endpoint_id} ready at {self.endpoint_url}")
        return self

    async def __aexit__(
        self,
        exc_type: type[BaseException] | None,
        exc_val: BaseException | None,
        exc_tb: TracebackType | None,
    ) -> None:
        try:
            if self._endpoint is not None:
                await self.lifecycle.unregister_server(self._endpoint.endpoint_url)
        finally:
            self._endpoint = None
            self._collector = None
            await self.transport.aclose()

    async def browse(self, node_id: str | None = None) -> list[NodeReference]:
        """All references of one node across every page.

        Args:
            node_id: Parent node, or None to browse the root node
        """
        with self._log_context():
            return await self.collector.collect_flat(node_id)

    async def browse_recursive(
        self,
        node_class: str | None = None,
        node_id: str | None = None,
        cancel: CancellationSignal | None = None,
    ) -> set[NodeReference]:
        """The whole node hierarchy below a node, optionally filtered by class.

        Args:
            node_class: Class of the nodes to keep, or None for no filtering
            node_id: Start node, or None to browse the root node
            cancel: Cooperative cancellation signal
        """
        with self._log_context():
            return await self.collector.collect_subtree(node_id, node_class, cancel)

    async def browse_node(
        self, node_id: str | None = None, continuation_token: str | None = None
    ) -> dict[str, Any]:
        """Raw single browse response."""
        with self._log_context():
            return await self.twin.browse_node(self.endpoint_id, node_id, continuation_token)

    async def get_method_metadata(self, method_id: str) -> MethodMetadata:
        with self._log_context():
            return await self.twin.get_method_metadata(self.endpoint_id, method_id)

    async def call_method(
        self, method_id: str, object_id: str, arguments: list[Any] | None = None
    ) -> MethodCallResult:
        with self._log_context():
            return await self.twin.call_method(self.endpoint_id, method_id, object_id, arguments)
