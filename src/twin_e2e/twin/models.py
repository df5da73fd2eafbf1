"""Typed response shapes for the Twin REST API.

Browse responses are validated on receipt; a missing or null ``references``
field is rejected before any traversal logic runs.
"""

from __future__ import annotations

from dataclasses import dataclass, field
from typing import Any

from pydantic import BaseModel, Field, field_validator


@dataclass(frozen=True)
class NodeReference:
    """One discovered address-space entry."""

    node_id: str
    node_class: str | None
    has_children: bool
    display_name: str | None = field(default=None, compare=False)

    def matches_class(self, node_class: str | None) -> bool:
        """Case-insensitive node class match; an empty filter matches everything."""
        if not node_class:
            return True
        return self.node_class is not None and self.node_class.casefold() == node_class.casefold()

    def to_dict(self) -> dict[str, Any]:
        """Convert to dictionary."""
        return {
            "nodeId": self.node_id,
            "nodeClass": self.node_class,
            "children": self.has_children,
            "displayName": self.display_name,
        }


class BrowseTarget(BaseModel):
    """Target node of a browse reference."""

    model_config = {"extra": "ignore", "populate_by_name": True}

    node_id: str = Field(alias="nodeId")
    node_class: str | None = Field(default=None, alias="nodeClass")
    children: bool = False
    display_name: str | None = Field(default=None, alias="displayName")

    @field_validator("children", mode="before")
    @classmethod
    def _children_flag(cls, value: Any) -> bool:
        """Only true or a case-insensitive "true" string mark a node as having children."""
        if isinstance(value, bool):
            return value
        if isinstance(value, str):
            return value.casefold() == "true"
        return False


class BrowseReference(BaseModel):
    """A reference from the browsed node to one of its children."""

    model_config = {"extra": "ignore", "populate_by_name": True}

    reference_type_id: str | None = Field(default=None, alias="referenceTypeId")
    direction: str | None = None
    target: BrowseTarget


class BrowsePage(BaseModel):
    """One page of a browse listing."""

    model_config = {"extra": "ignore", "populate_by_name": True}

    references: list[BrowseReference]
    continuation_token: str | None = Field(default=None, alias="continuationToken")
    error_info: dict[str, Any] | None = Field(default=None, alias="errorInfo")

    def node_references(self) -> list[NodeReference]:
        """Convert references to NodeReference entries in page order."""
        return [
            NodeReference(
                node_id=ref.target.node_id,
                node_class=ref.target.node_class,
                has_children=ref.target.children,
                display_name=ref.target.display_name,
            )
            for ref in self.references
        ]


class MethodArgument(BaseModel):
    """Argument description from method metadata."""

    model_config = {"extra": "allow", "populate_by_name": True}

    name: str | None = None
    type: dict[str, Any] | None = None
    default_value: Any = Field(default=None, alias="defaultValue")


class MethodMetadata(BaseModel):
    """Response of ``twin/v2/call/{endpointId}/metadata``."""

    model_config = {"extra": "allow", "populate_by_name": True}

    object_id: str | None = Field(default=None, alias="objectId")
    input_arguments: list[MethodArgument] | None = Field(default=None, alias="inputArguments")
    output_arguments: list[MethodArgument] | None = Field(default=None, alias="outputArguments")
    error_info: dict[str, Any] | None = Field(default=None, alias="errorInfo")


class MethodCallResult(BaseModel):
    """Response of ``twin/v2/call/{endpointId}``."""

    model_config = {"extra": "allow", "populate_by_name": True}

    results: list[dict[str, Any]] | None = None
    error_info: dict[str, Any] | None = Field(default=None, alias="errorInfo")
