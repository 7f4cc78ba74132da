"""Form state, submission validation and spec cleanup for create/edit views."""

import copy
from collections.abc import Iterator, Mapping
from dataclasses import dataclass, field
from typing import Any

from crdkit import exit_codes
from crdkit.schema_model import ArrayNode, ObjectNode, SchemaNode
from crdkit.validation import ValidationResult

DEFAULT_NAMESPACE = "default"

_DROP = object()


def is_empty(value: Any) -> bool:
    """Return True for values a required field may not hold."""
    return value is None or value == "" or value == [] or value == {}


@dataclass
class FormState:
    """Values being edited in a create or edit form.

    ``values`` holds the spec; ``name`` and ``namespace`` are only used by
    create forms.
    """

    values: dict[str, Any] = field(default_factory=dict)
    name: str = ""
    namespace: str = DEFAULT_NAMESPACE

    def get_value(self, path: str, default: Any = None) -> Any:
        """Return the value at a dotted path, or ``default``."""
        current: Any = self.values
        for segment in path.split("."):
            if not isinstance(current, Mapping) or segment not in current:
                return default
            current = current[segment]
        return current

    def set_value(self, path: str, value: Any) -> None:
        """Set the value at a dotted path, creating intermediate mappings.

        Raises:
            ValueError: If the path is empty or crosses a non-mapping value.
        """
        segments = path.split(".")
        if not all(segments):
            msg = f"Invalid field path '{path}'"
            raise ValueError(msg)

        current = self.values
        for segment in segments[:-1]:
            child = current.setdefault(segment, {})
            if child is None:
                child = current[segment] = {}
            if not isinstance(child, dict):
                msg = f"Cannot set '{path}': '{segment}' is not an object"
                raise ValueError(msg)
            current = child
        current[segments[-1]] = value

    def merge(self, values: Mapping[str, Any]) -> None:
        """Merge a nested mapping into the form values."""
        _deep_merge(self.values, values)


def _deep_merge(target: dict[str, Any], source: Mapping[str, Any]) -> None:
    for key, value in source.items():
        if isinstance(value, Mapping) and isinstance(target.get(key), dict):
            _deep_merge(target[key], value)
        else:
            target[key] = copy.deepcopy(value)


def _is_switch(node: SchemaNode | None) -> bool:
    return isinstance(node, ObjectNode) and not node.has_properties


def _clean(value: Any, node: SchemaNode | None) -> Any:
    """Return the cleaned value, or _DROP when the value should be omitted."""
    if value is None or value == "":
        return _DROP

    if isinstance(value, Mapping):
        properties = node.properties if isinstance(node, ObjectNode) else {}
        cleaned = {}
        for key, child in value.items():
            result = _clean(child, properties.get(key))
            if result is not _DROP:
                cleaned[key] = result
        if not cleaned and not _is_switch(node):
            return _DROP
        return cleaned

    if isinstance(value, list):
        items = node.items if isinstance(node, ArrayNode) else None
        cleaned_items = [result for item in value if (result := _clean(item, items)) is not _DROP]
        return cleaned_items or _DROP

    return value


def clean_spec(values: Mapping[str, Any], schema: ObjectNode) -> dict[str, Any]:
    """Strip empty values from a spec before it is stored.

    None, empty strings and empty lists are dropped at every depth. Mappings
    that end up empty are dropped too, except for objects the schema
    declares without properties: those are on/off switches and ``{}`` means
    "on".
    """
    cleaned = {}
    for key, value in values.items():
        result = _clean(value, schema.properties.get(key))
        if result is not _DROP:
            cleaned[key] = result
    return cleaned


def _missing_required(values: Mapping[str, Any], schema: ObjectNode, prefix: str = "") -> Iterator[str]:
    """Yield the dotted paths of required fields that have no value.

    Nested objects are only checked when they hold a value, so an optional
    object left blank does not make its own required fields mandatory.
    """
    for name, node in schema.properties.items():
        path = f"{prefix}{name}"
        value = values.get(name)

        if schema.is_required(name):
            empty = value is None if _is_switch(node) else is_empty(value)
            if empty:
                yield path
                continue

        if isinstance(node, ObjectNode) and isinstance(value, Mapping):
            if _clean(value, node) is not _DROP:
                yield from _missing_required(value, node, f"{path}.")


def validate_submission(
    state: FormState,
    schema: ObjectNode,
    require_name: bool = False,
    require_namespace: bool = False,
) -> ValidationResult:
    """Validate a form before submission.

    Args:
        state: Form values to check.
        schema: Spec schema of the resource kind.
        require_name: Check the resource name (create forms).
        require_namespace: Check the namespace (namespaced kinds on create).

    Returns:
        ValidationResult with one message per problem, in form order.
    """
    errors = []
    if require_name and not state.name.strip():
        errors.append("Name is required")
    if require_namespace and not state.namespace.strip():
        errors.append("Namespace is required")
    errors.extend(f"{path} is required" for path in _missing_required(state.values, schema))

    if errors:
        return ValidationResult(is_valid=False, errors=errors, error_code=exit_codes.VALIDATION_FAILED)
    return ValidationResult(is_valid=True)
