"""Client for the Twin microservice REST API.

Covers browsing and OPC UA method calls against an activated endpoint:
- twin/v2/browse/{endpointId} and its /next continuation route
- twin/v2/call/{endpointId}/metadata
- twin/v2/call/{endpointId}
"""

from __future__ import annotations

import logging
from typing import Any

from pydantic import ValidationError

from twin_e2e.errors import ContractViolationError
from twin_e2e.transport import ApiTransport
from twin_e2e.twin.models import BrowsePage, MethodCallResult, MethodMetadata

logger = logging.getLogger(__name__)

VERBOSE_HEADER = {"diagnostics": {"level": "Verbose"}}


def _browse_request(
    endpoint_id: str,
    node_id: str | None,
    continuation_token: str | None,
) -> tuple[str, dict[str, str]]:
    """Build the route and query for a first or follow-up browse call."""
    if continuation_token is None:
        params = {"nodeId": node_id} if node_id else {}
        return f"twin/v2/browse/{endpoint_id}", params
    return f"twin/v2/browse/{endpoint_id}/next", {"continuationToken": continuation_token}


def parse_browse_page(route: str, payload: Any) -> BrowsePage:
    """Validate a decoded browse response.

    Raises:
        ContractViolationError: If the payload is not an object, has no
            ``references`` field, or the field is null or malformed
    """
    if not isinstance(payload, dict):
        raise ContractViolationError(route, "response is not a JSON object")
    if "references" not in payload:
        raise ContractViolationError(route, "response has no references")
    if payload["references"] is None:
        raise ContractViolationError(route, "response references property is null")
    try:
        return BrowsePage.model_validate(payload)
    except ValidationError as e:
        raise ContractViolationError(route, f"malformed references: {e}") from e


class TwinClient:
    """Client for the Twin REST API."""

    def __init__(self, transport: ApiTransport) -> None:
        self.transport = transport

    async def browse_page(
        self,
        endpoint_id: str,
        node_id: str | None = None,
        continuation_token: str | None = None,
    ) -> BrowsePage:
        """Fetch one page of references.

        Args:
            endpoint_id: Activated endpoint to browse
            node_id: Parent node, or None for the root node
            continuation_token: Token from the previous page, or None for the first page

        Returns:
            The validated page
        """
        route, params = _browse_request(endpoint_id, node_id, continuation_token)
        payload = await self.transport.request_json("GET", route, params=params)
        page = parse_browse_page(route, payload)
        logger.debug(
            f"Browsed {node_id or 'root'}: {len(page.references)} references, "
            f"more={page.continuation_token is not None}"
        )
        return page

    async def browse_node(
        self,
        endpoint_id: str,
        node_id: str | None = None,
        continuation_token: str | None = None,
    ) -> dict[str, Any]:
        """Single browse call returning the raw decoded response."""
        route, params = _browse_request(endpoint_id, node_id, continuation_token)
        payload = await self.transport.request_json("GET", route, params=params)
        if not isinstance(payload, dict):
            raise ContractViolationError(route, "response is not a JSON object")
        return payload

    async def get_method_metadata(self, endpoint_id: str, method_id: str) -> MethodMetadata:
        """Get metadata for an OPC UA method.

        Args:
            endpoint_id: Activated endpoint
            method_id: Id of the OPC UA method

        Returns:
            Method metadata including its object id and argument descriptions
        """
        route = f"twin/v2/call/{endpoint_id}/metadata"
        body = {"methodId": method_id, "header": VERBOSE_HEADER}
        payload = await self.transport.request_json("POST", route, body=body)
        try:
            return MethodMetadata.model_validate(payload)
        except ValidationError as e:
            raise ContractViolationError(route, f"malformed method metadata: {e}") from e

    async def call_method(
        self,
        endpoint_id: str,
        method_id: str,
        object_id: str,
        arguments: list[Any] | None = None,
    ) -> MethodCallResult:
        """Call an OPC UA method.

        Args:
            endpoint_id: Activated endpoint
            method_id: Id of the OPC UA method
            object_id: Context of the method, an object or object type node
            arguments: Method arguments

        Returns:
            Call results and error info
        """
        route = f"twin/v2/call/{endpoint_id}"
        body = {
            "methodId": method_id,
            "objectId": object_id,
            "arguments": arguments or [],
            "header": VERBOSE_HEADER,
        }
        logger.info(f"Calling method {method_id} on {object_id}")
        payload = await self.transport.request_json("POST", route, body=body)
        try:
            return MethodCallResult.model_validate(payload)
        except ValidationError as e:
            raise ContractViolationError(route, f"malformed method call result: {e}") from e
