"""Field-level logic shared by the generated views.

Default values for create forms, grouping of spec fields into layout
sections, visibility policy per view, and the widget / display type each
schema node is presented with.
"""

import copy
from collections.abc import Iterable
from dataclasses import dataclass
from typing import Any

from crdkit.definition import FormGroup, UiHints, ViewKind
from crdkit.schema_model import (
    ArrayNode,
    BooleanNode,
    IntegerNode,
    NumberNode,
    ObjectNode,
    SchemaNode,
    StringNode,
)

DEFAULT_GROUP_NAME = "Configuration"
OTHER_GROUP_NAME = "Other"

# Enums longer than this are rendered as a select instead of radio buttons
ENUM_RADIO_LIMIT = 10

WIDE_DESCRIPTION_LENGTH = 100


@dataclass(frozen=True)
class FieldGroup:
    """A named layout section with its fields in display order."""

    name: str
    fields: tuple[tuple[str, SchemaNode], ...]

    @property
    def field_names(self) -> list[str]:
        """Return the names of the fields in this group."""
        return [name for name, _ in self.fields]


def build_default(node: SchemaNode) -> Any:
    """Build the starting value for a field.

    A declared default is returned unchanged. Otherwise strings start empty,
    numbers start unset (None, since 0 is a real value), booleans start
    False, arrays empty, and objects get a default for every declared
    property.
    """
    if node.has_default:
        return copy.deepcopy(node.default)

    match node:
        case StringNode():
            return ""
        case IntegerNode() | NumberNode():
            return None
        case BooleanNode():
            return False
        case ArrayNode():
            return []
        case ObjectNode(properties=properties):
            return {name: build_default(child) for name, child in properties.items()}


def build_defaults(schema: ObjectNode) -> dict[str, Any]:
    """Build the initial form values for every property of ``schema``."""
    return {name: build_default(child) for name, child in schema.properties.items()}


def group_fields(
    schema: ObjectNode,
    form_groups: Iterable[FormGroup] | None = None,
    hidden_fields: Iterable[str] | None = None,
) -> list[FieldGroup]:
    """Partition the visible properties of ``schema`` into layout groups.

    Args:
        schema: Object schema whose properties are grouped.
        form_groups: Declared groups; fields are taken in each group's order.
            Names that are not properties, are hidden, or were already
            claimed by an earlier group are skipped, and empty groups are
            dropped.
        hidden_fields: Property names to leave out.

    Returns:
        The declared groups followed by an ``Other`` group with unclaimed
        fields, or a single ``Configuration`` group when no groups are
        declared.
    """
    hidden = set(hidden_fields or ())
    visible = [(name, node) for name, node in schema.properties.items() if name not in hidden]
    declared = list(form_groups or ())

    if not declared:
        return [FieldGroup(name=DEFAULT_GROUP_NAME, fields=tuple(visible))]

    claimed: set[str] = set()
    groups: list[FieldGroup] = []
    for group in declared:
        fields = []
        for name in group.fields:
            if name in hidden or name in claimed or name not in schema.properties:
                continue
            fields.append((name, schema.properties[name]))
            claimed.add(name)
        if fields:
            groups.append(FieldGroup(name=group.name, fields=tuple(fields)))

    remaining = tuple((name, node) for name, node in visible if name not in claimed)
    if remaining:
        groups.append(FieldGroup(name=OTHER_GROUP_NAME, fields=remaining))
    return groups


def hidden_fields_for(view_kind: ViewKind, hints: UiHints, schema: ObjectNode) -> list[str]:
    """Return the fields a view must hide.

    Edit views with ``editable_fields`` declared hide every other field;
    that allow-list replaces ``hidden_fields`` for the edit view only.
    """
    if view_kind == ViewKind.EDIT and hints.editable_fields is not None:
        editable = set(hints.editable_fields)
        return [name for name in schema.properties if name not in editable]
    return list(hints.hidden_fields)


def groups_for_view(view_kind: ViewKind, hints: UiHints, schema: ObjectNode) -> list[FieldGroup]:
    """Group the fields of ``schema`` as shown by ``view_kind``."""
    return group_fields(schema, hints.form_groups, hidden_fields_for(view_kind, hints, schema))


def is_field_required(name: str, schema: ObjectNode) -> bool:
    """Check if a field is required at the top level of ``schema``."""
    return schema.is_required(name)


def form_widget(node: SchemaNode) -> str:
    """Return the form widget used to edit ``node``.

    One of ``enum-select``, ``enum-radio``, ``boolean``, ``integer``,
    ``string-array``, ``object``, ``empty-object`` (an on/off switch that
    stores ``{}``) or ``text``.
    """
    if node.enum:
        return "enum-select" if len(node.enum) > ENUM_RADIO_LIMIT else "enum-radio"

    match node:
        case BooleanNode():
            return "boolean"
        case IntegerNode() | NumberNode():
            return "integer"
        case ArrayNode(items=StringNode()):
            return "string-array"
        case ObjectNode() if node.has_properties:
            return "object"
        case ObjectNode():
            return "empty-object"
        case StringNode() | ArrayNode():
            return "text"


def display_type(node: SchemaNode) -> str:
    """Return how a read-only value of ``node`` is displayed.

    One of ``date``, ``boolean``, ``string-array``, ``object-array``,
    ``object`` or ``text``.
    """
    if node.format == "date-time":
        return "date"

    match node:
        case BooleanNode():
            return "boolean"
        case ArrayNode(items=StringNode()):
            return "string-array"
        case ArrayNode(items=ObjectNode()):
            return "object-array"
        case ObjectNode():
            return "object"
        case StringNode() | IntegerNode() | NumberNode() | ArrayNode():
            return "text"


def is_wide_field(node: SchemaNode) -> bool:
    """Return True if a detail field spans the full layout width."""
    if isinstance(node, ArrayNode | ObjectNode):
        return True
    return len(node.description or "") > WIDE_DESCRIPTION_LENGTH
