"""Node tree collection over the paginated Twin browse API.

Two operations built on one collaborator, a function returning one browse
page for ``(node_id, continuation_token)``:

- collect_flat: drains every page for a single node
- collect_subtree: walks the whole reachable hierarchy, visiting each
  node id once, then filters by node class

The walk uses an explicit level-by-level frontier instead of recursion.
Sibling nodes in a level are browsed concurrently under a semaphore; the
visited set is shared by all of them.

Example:
    collector = NodeTreeCollector.for_endpoint(twin_client, endpoint_id)
    variables = await collector.collect_subtree(node_class="Variable")
"""

from __future__ import annotations

import asyncio
import logging
import threading
from collections.abc import Awaitable, Callable, Iterator
from typing import Protocol

from twin_e2e.config import Settings, settings as default_settings
from twin_e2e.errors import TraversalCancelledError, TraversalLimitError
from twin_e2e.twin.client import TwinClient
from twin_e2e.twin.models import BrowsePage, NodeReference

logger = logging.getLogger(__name__)

# (node_id, continuation_token) -> page
BrowseFn = Callable[[str | None, str | None], Awaitable[BrowsePage]]


class CancellationSignal(Protocol):
    """Anything with ``is_set()``, e.g. asyncio.Event or threading.Event."""

    def is_set(self) -> bool: ...


def _raise_if_cancelled(cancel: CancellationSignal | None) -> None:
    if cancel is not None and cancel.is_set():
        raise TraversalCancelledError("Browse traversal cancelled")


class VisitedNodes:
    """Set of node references keyed by node id with atomic insert-if-absent."""

    def __init__(self) -> None:
        self._nodes: dict[str, NodeReference] = {}
        self._lock = threading.Lock()

    def add_if_absent(self, node: NodeReference) -> bool:
        """Record a node unless its id was seen before.

        Returns:
            True if the node was added, False if its id was already present
        """
        with self._lock:
            if node.node_id in self._nodes:
                return False
            self._nodes[node.node_id] = node
            return True

    def __contains__(self, node_id: object) -> bool:
        with self._lock:
            return node_id in self._nodes

    def __len__(self) -> int:
        with self._lock:
            return len(self._nodes)

    def __iter__(self) -> Iterator[NodeReference]:
        with self._lock:
            return iter(list(self._nodes.values()))


class NodeTreeCollector:
    """Collects browse references for one endpoint."""

    def __init__(
        self,
        browse: BrowseFn,
        *,
        concurrency: int = 4,
        max_nodes: int = 100_000,
        max_depth: int | None = None,
        max_pages_per_node: int = 10_000,
    ) -> None:
        """Initialize collector.

        Args:
            browse: Page source for (node_id, continuation_token)
            concurrency: Maximum concurrent page fetches
            max_nodes: Node ceiling for one traversal
            max_depth: Levels to descend below the start node, None for unlimited
            max_pages_per_node: Page ceiling for one node listing
        """
        if concurrency < 1:
            raise ValueError("concurrency must be at least 1")
        self._browse = browse
        self.concurrency = concurrency
        self.max_nodes = max_nodes
        self.max_depth = max_depth
        self.max_pages_per_node = max_pages_per_node

    @classmethod
    def for_endpoint(
        cls,
        client: TwinClient,
        endpoint_id: str,
        config: Settings | None = None,
    ) -> "NodeTreeCollector":
        """Create a collector browsing an endpoint through the Twin API."""
        config = config or default_settings

        async def browse(node_id: str | None, continuation_token: str | None) -> BrowsePage:
            return await client.browse_page(endpoint_id, node_id, continuation_token)

        return cls(
            browse,
            concurrency=config.browse_concurrency,
            max_nodes=config.max_nodes,
            max_depth=config.max_depth,
            max_pages_per_node=config.max_pages_per_node,
        )

    async def collect_flat(
        self,
        node_id: str | None = None,
        cancel: CancellationSignal | None = None,
    ) -> list[NodeReference]:
        """Return all references of one node, in page order.

        Args:
            node_id: Parent node, or None to browse the root node
            cancel: Optional cancellation signal checked before each page fetch

        Returns:
            Concatenation of every page; no deduplication

        Raises:
            ContractViolationError: If any page is malformed
            TraversalLimitError: If the page ceiling is exceeded
            TraversalCancelledError: If the signal is set
        """
        result: list[NodeReference] = []
        continuation_token: str | None = None
        pages = 0

        while True:
            _raise_if_cancelled(cancel)
            page = await self._browse(node_id, continuation_token)
            pages += 1
            result.extend(page.node_references())

            continuation_token = page.continuation_token
            if not continuation_token:
                return result
            if pages >= self.max_pages_per_node:
                raise TraversalLimitError(
                    f"Browse of {node_id or 'root'} exceeded {self.max_pages_per_node} pages"
                )

    async def collect_subtree(
        self,
        node_id: str | None = None,
        node_class: str | None = None,
        cancel: CancellationSignal | None = None,
    ) -> set[NodeReference]:
        """Collect every node reachable from a start node.

        Each distinct node id is recorded once, so cycles and nodes reachable
        by several paths terminate. No partial result is returned on failure.

        Args:
            node_id: Start node, or None for the root node
            node_class: Case-insensitive node class filter, None or "" for all
            cancel: Optional cancellation signal checked before each child

        Returns:
            Set of matching references, unordered

        Raises:
            ContractViolationError: If any page is malformed
            TraversalLimitError: If a node or page ceiling is exceeded
            TraversalCancelledError: If the signal is set
        """
        visited = VisitedNodes()
        semaphore = asyncio.Semaphore(self.concurrency)
        frontier: list[str | None] = [node_id]
        depth = 0

        while frontier:
            listings = await self._browse_level(frontier, semaphore, cancel)
            depth += 1
            next_frontier: list[str | None] = []

            for children in listings:
                for child in children:
                    _raise_if_cancelled(cancel)
                    if not visited.add_if_absent(child):
                        continue
                    if len(visited) > self.max_nodes:
                        raise TraversalLimitError(
                            f"Browse traversal exceeded {self.max_nodes} nodes"
                        )
                    if child.has_children and (self.max_depth is None or depth < self.max_depth):
                        next_frontier.append(child.node_id)

            frontier = next_frontier

        result = {node for node in visited if node.matches_class(node_class)}
        logger.info(
            f"Collected {len(visited)} nodes below {node_id or 'root'} "
            f"({len(result)} matching class {node_class or '*'})"
        )
        return result

    async def _browse_level(
        self,
        frontier: list[str | None],
        semaphore: asyncio.Semaphore,
        cancel: CancellationSignal | None,
    ) -> list[list[NodeReference]]:
        """Browse all nodes of one level; a failure cancels the rest."""

        async def browse_one(parent_id: str | None) -> list[NodeReference]:
            async with semaphore:
                return await self.collect_flat(parent_id, cancel)

        tasks = [asyncio.ensure_future(browse_one(parent_id)) for parent_id in frontier]
        try:
            return list(await asyncio.gather(*tasks))
        except BaseException:
            for task in tasks:
                task.cancel()
            await asyncio.gather(*tasks, return_exceptions=True)
            raise
