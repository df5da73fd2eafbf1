"""Tests for the Twin REST client."""

from __future__ import annotations

import json

import httpx
import pytest

from twin_e2e.errors import ApiError, ContractViolationError
from twin_e2e.twin.client import TwinClient, parse_browse_page
from twin_e2e.twin.collector import NodeTreeCollector

ROOT_PAGE = {
    "node": {"nodeId": "i=84"},
    "references": [
        {
            "referenceTypeId": "i=35",
            "direction": "Forward",
            "target": {
                "nodeId": "i=85",
                "nodeClass": "Object",
                "displayName": "Objects",
                "children": True,
            },
        },
        {
            "target": {"nodeId": "i=86", "nodeClass": "Object", "children": "True"},
        },
    ],
    "continuationToken": "page-2",
}

NEXT_PAGE = {
    "references": [
        {"target": {"nodeId": "i=87", "nodeClass": "Object", "children": False}},
    ],
}


class TestParseBrowsePage:
    """Test browse response validation."""

    def test_valid_page(self) -> None:
        """References become NodeReferences in order."""
        page = parse_browse_page("route", ROOT_PAGE)

        nodes = page.node_references()
        assert [n.node_id for n in nodes] == ["i=85", "i=86"]
        assert nodes[0].display_name == "Objects"
        assert nodes[0].has_children is True
        assert nodes[1].has_children is True
        assert page.continuation_token == "page-2"

    def test_children_defaults_to_false(self) -> None:
        """A target without a children flag is a leaf."""
        page = parse_browse_page("route", {"references": [{"target": {"nodeId": "i=1"}}]})

        node = page.node_references()[0]
        assert node.has_children is False
        assert node.node_class is None

    def test_missing_references(self) -> None:
        """A response without references is a contract violation."""
        with pytest.raises(ContractViolationError, match="has no references"):
            parse_browse_page("twin/v2/browse/ep", {"continuationToken": None})

    def test_null_references(self) -> None:
        """A null references field is a contract violation."""
        with pytest.raises(ContractViolationError, match="null"):
            parse_browse_page("twin/v2/browse/ep", {"references": None})

    def test_not_an_object(self) -> None:
        """A JSON array body is a contract violation."""
        with pytest.raises(ContractViolationError):
            parse_browse_page("twin/v2/browse/ep", [])

    def test_reference_without_target(self) -> None:
        """A reference without a target node id is a contract violation."""
        with pytest.raises(ContractViolationError, match="malformed"):
            parse_browse_page("twin/v2/browse/ep", {"references": [{"direction": "Forward"}]})

    def test_null_children_is_leaf(self) -> None:
        """A null children flag marks a leaf instead of failing the page."""
        page = parse_browse_page(
            "route", {"references": [{"target": {"nodeId": "i=1", "children": None}}]}
        )

        assert page.node_references()[0].has_children is False

    @pytest.mark.parametrize("flag", ["yes", "on", "1", "false", 1])
    def test_only_true_marks_children(self, flag) -> None:
        """Truthy spellings other than true do not mark children."""
        page = parse_browse_page(
            "route", {"references": [{"target": {"nodeId": "i=1", "children": flag}}]}
        )

        assert page.node_references()[0].has_children is False

    @pytest.mark.parametrize("flag", [True, "true", "TRUE", "True"])
    def test_true_marks_children(self, flag) -> None:
        """Boolean true and "true" in any case mark children."""
        page = parse_browse_page(
            "route", {"references": [{"target": {"nodeId": "i=1", "children": flag}}]}
        )

        assert page.node_references()[0].has_children is True


class TestTwinClient:
    """Test TwinClient against a mock transport."""

    @pytest.mark.asyncio
    async def test_browse_first_page_root(self, make_transport) -> None:
        """Root browse omits nodeId."""
        requests: list[httpx.Request] = []

        def handler(request: httpx.Request) -> httpx.Response:
            requests.append(request)
            return httpx.Response(200, json=ROOT_PAGE)

        client = TwinClient(make_transport(handler))
        page = await client.browse_page("ep-1")

        assert requests[0].url.path == "/twin/v2/browse/ep-1"
        assert "nodeId" not in requests[0].url.params
        assert len(page.references) == 2

    @pytest.mark.asyncio
    async def test_browse_with_node_and_continuation(self, make_transport) -> None:
        """First page sends nodeId; follow-up pages use the /next route."""
        requests: list[httpx.Request] = []

        def handler(request: httpx.Request) -> httpx.Response:
            requests.append(request)
            if request.url.path.endswith("/next"):
                return httpx.Response(200, json=NEXT_PAGE)
            return httpx.Response(200, json=ROOT_PAGE)

        client = TwinClient(make_transport(handler))
        await client.browse_page("ep-1", "ns=2;s=Plc")
        await client.browse_page("ep-1", "ns=2;s=Plc", "page-2")

        assert requests[0].url.params["nodeId"] == "ns=2;s=Plc"
        assert requests[1].url.path == "/twin/v2/browse/ep-1/next"
        assert requests[1].url.params["continuationToken"] == "page-2"
        assert "nodeId" not in requests[1].url.params

    @pytest.mark.asyncio
    async def test_collect_flat_over_http(self, make_transport) -> None:
        """The collector drains both pages through the client."""

        def handler(request: httpx.Request) -> httpx.Response:
            if request.url.path.endswith("/next"):
                return httpx.Response(200, json=NEXT_PAGE)
            return httpx.Response(200, json=ROOT_PAGE)

        collector = NodeTreeCollector.for_endpoint(TwinClient(make_transport(handler)), "ep-1")
        nodes = await collector.collect_flat()

        assert [n.node_id for n in nodes] == ["i=85", "i=86", "i=87"]

    @pytest.mark.asyncio
    async def test_browse_missing_references(self, make_transport) -> None:
        """A response without references raises ContractViolationError."""
        client = TwinClient(make_transport(lambda r: httpx.Response(200, json={"items": []})))

        with pytest.raises(ContractViolationError):
            await client.browse_page("ep-1")

    @pytest.mark.asyncio
    async def test_browse_invalid_json(self, make_transport) -> None:
        """A non-JSON body raises ContractViolationError."""
        client = TwinClient(make_transport(lambda r: httpx.Response(200, text="<html>")))

        with pytest.raises(ContractViolationError, match="not valid JSON"):
            await client.browse_page("ep-1")

    @pytest.mark.asyncio
    async def test_browse_body_not_utf8(self, make_transport) -> None:
        """A body that is not UTF-8 raises ContractViolationError."""
        body = b'{"references": ["\xff\xfe"]}'
        client = TwinClient(make_transport(lambda r: httpx.Response(200, content=body)))

        with pytest.raises(ContractViolationError):
            await client.browse_page("ep-1")

    @pytest.mark.asyncio
    async def test_browse_http_error(self, make_transport) -> None:
        """Error statuses raise ApiError."""
        client = TwinClient(make_transport(lambda r: httpx.Response(404, text="not found")))

        with pytest.raises(ApiError) as exc_info:
            await client.browse_page("ep-1")
        assert exc_info.value.status_code == 404

    @pytest.mark.asyncio
    async def test_browse_node_raw(self, make_transport) -> None:
        """browse_node returns the decoded response unchanged."""
        client = TwinClient(make_transport(lambda r: httpx.Response(200, json=ROOT_PAGE)))

        assert await client.browse_node("ep-1") == ROOT_PAGE

    @pytest.mark.asyncio
    async def test_get_method_metadata(self, make_transport) -> None:
        """Metadata request body carries verbose diagnostics."""
        bodies: list[dict] = []

        def handler(request: httpx.Request) -> httpx.Response:
            assert request.method == "POST"
            assert request.url.path == "/twin/v2/call/ep-1/metadata"
            bodies.append(json.loads(request.content))
            return httpx.Response(
                200,
                json={
                    "objectId": "ns=2;s=Methods",
                    "inputArguments": [{"name": "count", "type": {"nodeId": "i=7"}}],
                    "outputArguments": [],
                },
            )

        client = TwinClient(make_transport(handler))
        metadata = await client.get_method_metadata("ep-1", "ns=2;s=Reset")

        assert bodies[0] == {
            "methodId": "ns=2;s=Reset",
            "header": {"diagnostics": {"level": "Verbose"}},
        }
        assert metadata.object_id == "ns=2;s=Methods"
        assert metadata.input_arguments[0].name == "count"
        assert metadata.error_info is None

    @pytest.mark.asyncio
    async def test_call_method(self, make_transport) -> None:
        """Call request sends method, object and arguments."""
        bodies: list[dict] = []

        def handler(request: httpx.Request) -> httpx.Response:
            assert request.url.path == "/twin/v2/call/ep-1"
            bodies.append(json.loads(request.content))
            return httpx.Response(200, json={"results": [{"value": 5, "dataType": "UInt32"}]})

        client = TwinClient(make_transport(handler))
        result = await client.call_method(
            "ep-1", "ns=2;s=Add", "ns=2;s=Methods", [{"value": 2, "dataType": "UInt32"}]
        )

        assert bodies[0]["methodId"] == "ns=2;s=Add"
        assert bodies[0]["objectId"] == "ns=2;s=Methods"
        assert bodies[0]["arguments"] == [{"value": 2, "dataType": "UInt32"}]
        assert result.results == [{"value": 5, "dataType": "UInt32"}]

    @pytest.mark.asyncio
    async def test_call_method_error_info(self, make_transport) -> None:
        """errorInfo in a call result is exposed, not raised."""
        client = TwinClient(
            make_transport(
                lambda r: httpx.Response(200, json={"errorInfo": {"statusCode": 2150891520}})
            )
        )

        result = await client.call_method("ep-1", "m", "o")

        assert result.results is None
        assert result.error_info == {"statusCode": 2150891520}

    @pytest.mark.asyncio
    async def test_bearer_token_header(self, make_transport, test_settings) -> None:
        """A configured token is sent as a bearer Authorization header."""
        from pydantic import SecretStr

        test_settings.auth_token = SecretStr("s3cret")
        seen: list[str | None] = []

        def handler(request: httpx.Request) -> httpx.Response:
            seen.append(request.headers.get("Authorization"))
            return httpx.Response(200, json=ROOT_PAGE)

        await TwinClient(make_transport(handler)).browse_page("ep-1")

        assert seen == ["Bearer s3cret"]
