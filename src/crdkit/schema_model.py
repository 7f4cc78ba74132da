"""Schema model for plugin resource kinds.

A schema node is a tagged variant over the OpenAPI types used by the
platform's CRD dialect (string, integer, number, boolean, object, array).
Nodes are immutable pydantic models; the ``type`` field is the tag, so
code that branches over node kinds matches on the node classes.
"""

from collections.abc import Iterator
from typing import Annotated, Any, Literal, Union

from pydantic import BaseModel, ConfigDict, Field, model_validator


class _NodeBase(BaseModel):
    """Attributes shared by every schema node."""

    model_config = ConfigDict(frozen=True, extra="forbid")

    description: str | None = Field(
        default=None,
        description="Human-readable description from the CRD",
    )
    format: str | None = Field(
        default=None,
        description="OpenAPI format hint (e.g. date-time)",
    )
    default: Any = Field(
        default=None,
        description="Declared default value",
    )
    enum: tuple[Any, ...] | None = Field(
        default=None,
        description="Ordered set of allowed literal values",
    )

    @property
    def has_default(self) -> bool:
        """Return True if the CRD declared a default (even an explicit null)."""
        return "default" in self.model_fields_set


class StringNode(_NodeBase):
    """A string field."""

    type: Literal["string"] = "string"


class IntegerNode(_NodeBase):
    """An integer field."""

    type: Literal["integer"] = "integer"


class NumberNode(_NodeBase):
    """A floating point field."""

    type: Literal["number"] = "number"


class BooleanNode(_NodeBase):
    """A boolean field."""

    type: Literal["boolean"] = "boolean"


class ArrayNode(_NodeBase):
    """An array field; ``items`` describes every element."""

    type: Literal["array"] = "array"
    items: "SchemaNode" = Field(description="Schema of the array elements")


class ObjectNode(_NodeBase):
    """An object field with ordered properties and its own required set."""

    type: Literal["object"] = "object"
    properties: dict[str, "SchemaNode"] = Field(
        default_factory=dict,
        description="Declared properties in declaration order",
    )
    required: tuple[str, ...] = Field(
        default=(),
        description="Names of required properties at this level",
    )

    @model_validator(mode="after")
    def validate_required_subset(self) -> "ObjectNode":
        """Validate that every required name is a declared property."""
        unknown = [name for name in self.required if name not in self.properties]
        if unknown:
            msg = f"required names not declared in properties: {', '.join(unknown)}"
            raise ValueError(msg)
        return self

    @property
    def has_properties(self) -> bool:
        """Return True if the object declares at least one property."""
        return len(self.properties) > 0

    def is_required(self, name: str) -> bool:
        """Return True if ``name`` is required at this level."""
        return name in self.required


SchemaNode = Annotated[
    Union[StringNode, IntegerNode, NumberNode, BooleanNode, ArrayNode, ObjectNode],
    Field(discriminator="type"),
]

ArrayNode.model_rebuild()
ObjectNode.model_rebuild()

EMPTY_OBJECT = ObjectNode()


def iter_nodes(node: SchemaNode, path: str = "") -> Iterator[tuple[str, SchemaNode]]:
    """Yield ``(dotted_path, node)`` for ``node`` and every nested node.

    Array items are reported with a ``[]`` suffix on the array's path.
    """
    yield path, node
    match node:
        case ObjectNode(properties=properties):
            for name, child in properties.items():
                child_path = f"{path}.{name}" if path else name
                yield from iter_nodes(child, child_path)
        case ArrayNode(items=items):
            yield from iter_nodes(items, f"{path}[]")
        case StringNode() | IntegerNode() | NumberNode() | BooleanNode():
            return
