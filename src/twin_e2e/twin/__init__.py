"""Twin service browsing and method calls.

Enables:
- Paged browsing of an endpoint's address space
- Cycle-safe collection of the full node hierarchy
- OPC UA method metadata and calls
"""

from twin_e2e.twin.client import TwinClient
from twin_e2e.twin.collector import NodeTreeCollector, VisitedNodes
from twin_e2e.twin.models import BrowsePage, MethodCallResult, MethodMetadata, NodeReference

__all__ = [
    "BrowsePage",
    "MethodCallResult",
    "MethodMetadata",
    "NodeReference",
    "NodeTreeCollector",
    "TwinClient",
    "VisitedNodes",
]
