"""Plugin definition models and the bundle parser.

A plugin bundle is a YAML document of kind ``PluginDefinition`` carrying
plugin metadata, menu placement, per-kind UI hints, override component
names and a list of embedded CRD documents. Parsing is pure: it turns
bundle text into an immutable PluginDefinition with one schema model per
resource kind.
"""

import logging
from collections.abc import Mapping
from enum import Enum
from typing import Any, Literal

import yaml
from pydantic import BaseModel, ConfigDict, Field, ValidationError, field_validator, model_validator

from crdkit.errors import format_validation_errors
from crdkit.formatting import stringify
from crdkit.paths import compile_path, resolve
from crdkit.schema_model import (
    EMPTY_OBJECT,
    ArrayNode,
    BooleanNode,
    IntegerNode,
    NumberNode,
    ObjectNode,
    SchemaNode,
    StringNode,
)

logger = logging.getLogger(__name__)

PLUGIN_DEFINITION_KIND = "PluginDefinition"


class DefinitionError(ValueError):
    """Raised when a plugin bundle or CRD document cannot be parsed."""


class BundleModel(BaseModel):
    """Base model for bundle sections: camelCase aliases, unknown keys ignored."""

    model_config = ConfigDict(extra="ignore", populate_by_name=True)

    @model_validator(mode="before")
    @classmethod
    def warn_unknown_keys(cls, data: Any) -> Any:
        """Log keys that no field accepts; they are dropped."""
        if isinstance(data, Mapping):
            known = set(cls.model_fields)
            known.update(f.alias for f in cls.model_fields.values() if f.alias)
            unknown = sorted(str(key) for key in data if key not in known)
            if unknown:
                logger.warning("Ignoring unknown %s keys: %s", cls.__name__, ", ".join(unknown))
        return data


class Scope(str, Enum):
    """Scope of a resource kind."""

    NAMESPACED = "Namespaced"
    CLUSTER = "Cluster"


class ViewKind(str, Enum):
    """Views the console generates for every resource kind."""

    LIST = "list"
    DETAIL = "detail"
    CREATE = "create"
    EDIT = "edit"


# Bundle sections


class PluginMetadata(BundleModel):
    """Identity and descriptive metadata of a plugin."""

    name: str = Field(description="Plugin name, used in routes")
    display_name: str = Field(alias="displayName", description="Human-readable name")
    version: str = Field(default="", description="Plugin version")
    description: str = Field(default="", description="Plugin description")
    author: str | None = Field(default=None, description="Plugin author")
    tags: list[str] = Field(default_factory=list, description="Free-form tags")
    icon: str | None = Field(default=None, description="Icon name for navigation")


class MenuItem(BundleModel):
    """Menu entry referencing one resource kind with its capabilities."""

    crd: str = Field(description="Kind name of the referenced resource kind")
    list: bool = Field(default=False, description="Show a list view")
    detail: bool = Field(default=False, description="Allow the detail view")
    create: bool = Field(default=False, description="Allow the create view")
    icon: str | None = Field(default=None, description="Icon name")


class PluginMenu(BundleModel):
    """Menu placement for organization and project scope."""

    organization: list[MenuItem] = Field(default_factory=list)
    project: list[MenuItem] = Field(default_factory=list)


class FormGroup(BundleModel):
    """Named group of spec fields used for layout."""

    name: str
    fields: list[str] = Field(default_factory=list)


class Badge(BundleModel):
    """Badge shown for a mapped status value."""

    badge: str = Field(description="Badge style class")
    label: str = Field(description="Badge text")


class StatusMapping(BundleModel):
    """Maps the value found at ``json_path`` to a badge."""

    json_path: str = Field(alias="jsonPath")
    values: dict[str, Badge] = Field(default_factory=dict)

    @field_validator("json_path")
    @classmethod
    def validate_json_path(cls, v: str) -> str:
        """Validate the path expression parses."""
        compile_path(v)
        return v

    def resolve(self, document: Mapping[str, Any]) -> Badge | None:
        """Return the badge for ``document``, or None if nothing maps."""
        value = resolve(document, self.json_path)
        if value is None:
            return None
        return self.values.get(stringify(value))


class UiHints(BundleModel):
    """Presentation policy layered on top of a kind's schema."""

    form_groups: list[FormGroup] = Field(default_factory=list, alias="formGroups")
    hidden_fields: list[str] = Field(default_factory=list, alias="hiddenFields")
    editable_fields: list[str] | None = Field(default=None, alias="editableFields")
    status_mapping: StatusMapping | None = Field(default=None, alias="statusMapping")


EMPTY_HINTS = UiHints()


class PrinterColumn(BaseModel):
    """A list column: label, path expression and value type."""

    model_config = ConfigDict(extra="ignore", populate_by_name=True, frozen=True)

    name: str = Field(description="Column label")
    type: str = Field(default="string", description="Value type: date, boolean, integer, ...")
    json_path: str = Field(alias="jsonPath", description="Path expression")
    priority: int = Field(default=0)
    description: str | None = Field(default=None)

    @field_validator("json_path")
    @classmethod
    def validate_json_path(cls, v: str) -> str:
        """Validate the path expression parses."""
        compile_path(v)
        return v


DEFAULT_COLUMNS = (
    PrinterColumn(name="Name", type="string", json_path=".metadata.name"),
    PrinterColumn(name="Age", type="date", json_path=".metadata.creationTimestamp"),
)


# Parsed definitions


class ResourceKindDefinition(BaseModel):
    """One resource kind contributed by a plugin (the selected storage version)."""

    model_config = ConfigDict(frozen=True)

    group: str
    kind: str
    plural: str
    singular: str
    scope: Scope
    version: str
    list_columns: tuple[PrinterColumn, ...] = ()
    spec_schema: ObjectNode = EMPTY_OBJECT
    status_schema: ObjectNode | None = None

    @property
    def api_version(self) -> str:
        """Return ``group/version`` as used in resource instances."""
        return f"{self.group}/{self.version}" if self.group else self.version

    @property
    def namespaced(self) -> bool:
        """Return True for namespaced kinds."""
        return self.scope == Scope.NAMESPACED

    def columns(self) -> tuple[PrinterColumn, ...]:
        """Return the declared printer columns, or the built-in Name/Age pair."""
        return self.list_columns or DEFAULT_COLUMNS


class PluginDefinition(BaseModel):
    """A parsed plugin bundle."""

    model_config = ConfigDict(frozen=True)

    api_version: str
    metadata: PluginMetadata
    menu: PluginMenu = Field(default_factory=PluginMenu)
    ui_hints: dict[str, UiHints] = Field(default_factory=dict)
    custom_components: dict[str, dict[ViewKind, str]] = Field(default_factory=dict)
    kinds: tuple[ResourceKindDefinition, ...] = ()

    @property
    def name(self) -> str:
        """Return the plugin name."""
        return self.metadata.name

    def get_kind(self, kind: str) -> ResourceKindDefinition | None:
        """Look up a resource kind by its kind name."""
        return next((k for k in self.kinds if k.kind == kind), None)

    def get_kind_by_plural(self, plural: str) -> ResourceKindDefinition | None:
        """Look up a resource kind by its plural path segment."""
        return next((k for k in self.kinds if k.plural == plural), None)

    def hints_for(self, kind: str) -> UiHints:
        """Return the UI hints for ``kind`` (empty hints when none are declared)."""
        return self.ui_hints.get(kind, EMPTY_HINTS)

    def custom_component(self, kind: str, view_kind: ViewKind) -> str | None:
        """Return the override name declared for (kind, view kind), if any."""
        if self.get_kind(kind) is None:
            return None
        return self.custom_components.get(kind, {}).get(view_kind)

    def menu_item(self, kind: str) -> MenuItem | None:
        """Return the first menu entry for ``kind`` (organization scope first)."""
        for item in [*self.menu.organization, *self.menu.project]:
            if item.crd == kind:
                return item
        return None

    def dangling_references(self) -> list[str]:
        """Describe references to kinds this plugin does not define."""
        known = {k.kind for k in self.kinds}
        problems = []
        for scope_name, items in (("organization", self.menu.organization), ("project", self.menu.project)):
            for item in items:
                if item.crd not in known:
                    problems.append(f"menu.{scope_name} references unknown kind '{item.crd}'")
        for kind in self.custom_components:
            if kind not in known:
                problems.append(f"customComponents references unknown kind '{kind}'")
        for kind in self.ui_hints:
            if kind not in known:
                problems.append(f"uiHints references unknown kind '{kind}'")
        return problems


# Raw document models


class _RawCrdNames(BaseModel):
    model_config = ConfigDict(extra="ignore", populate_by_name=True)

    kind: str
    plural: str
    singular: str | None = None
    list_kind: str | None = Field(default=None, alias="listKind")
    short_names: list[str] = Field(default_factory=list, alias="shortNames")


class _RawVersionSchema(BaseModel):
    model_config = ConfigDict(extra="ignore", populate_by_name=True)

    open_api_v3_schema: dict[str, Any] = Field(default_factory=dict, alias="openAPIV3Schema")


class _RawCrdVersion(BaseModel):
    model_config = ConfigDict(extra="ignore", populate_by_name=True)

    name: str
    served: bool = True
    storage: bool = False
    additional_printer_columns: list[PrinterColumn] = Field(
        default_factory=list, alias="additionalPrinterColumns"
    )
    version_schema: _RawVersionSchema = Field(default_factory=_RawVersionSchema, alias="schema")


class _RawCrdSpec(BaseModel):
    model_config = ConfigDict(extra="ignore")

    group: str
    names: _RawCrdNames
    scope: Scope = Scope.NAMESPACED
    versions: list[_RawCrdVersion] = Field(min_length=1)


class _RawCrd(BaseModel):
    model_config = ConfigDict(extra="ignore", populate_by_name=True)

    api_version: str | None = Field(default=None, alias="apiVersion")
    kind: str | None = None
    spec: _RawCrdSpec


class _RawPluginBundle(BundleModel):
    api_version: str = Field(alias="apiVersion")
    kind: Literal["PluginDefinition"]
    metadata: PluginMetadata
    menu: PluginMenu = Field(default_factory=PluginMenu)
    ui_hints: dict[str, UiHints] = Field(default_factory=dict, alias="uiHints")
    custom_components: dict[str, dict[ViewKind, str]] = Field(
        default_factory=dict, alias="customComponents"
    )
    crds: list[str | dict[str, Any]] = Field(min_length=1)


# Parser


def _load_document(raw: str | Mapping[str, Any], what: str) -> Mapping[str, Any]:
    """Load YAML text (or pass through a mapping) and require a mapping."""
    if isinstance(raw, str):
        try:
            data = yaml.safe_load(raw)
        except yaml.YAMLError as e:
            msg = f"Invalid YAML in {what}: {e}"
            raise DefinitionError(msg) from e
    else:
        data = raw

    if data is None:
        msg = f"Invalid {what}: empty document"
        raise DefinitionError(msg)
    if not isinstance(data, Mapping):
        msg = f"Invalid {what}: expected a mapping at the top level"
        raise DefinitionError(msg)
    return data


def _infer_type(raw: Mapping[str, Any]) -> str:
    if "properties" in raw:
        return "object"
    if "items" in raw:
        return "array"
    return "string"


def _parse_node(raw: Any, location: str) -> SchemaNode:
    """Recursively build a schema node from an OpenAPI property document."""
    if not isinstance(raw, Mapping):
        msg = f"{location}: schema must be a mapping"
        raise DefinitionError(msg)

    common: dict[str, Any] = {}
    for key in ("description", "format"):
        if raw.get(key) is not None:
            common[key] = str(raw[key])
    if raw.get("enum") is not None:
        if not isinstance(raw["enum"], list):
            msg = f"{location}: enum must be a list"
            raise DefinitionError(msg)
        common["enum"] = tuple(raw["enum"])
    if "default" in raw:
        common["default"] = raw["default"]

    node_type = raw.get("type") or _infer_type(raw)
    match node_type:
        case "object":
            raw_properties = raw.get("properties") or {}
            if not isinstance(raw_properties, Mapping):
                msg = f"{location}: properties must be a mapping"
                raise DefinitionError(msg)
            properties = {
                str(name): _parse_node(child, f"{location}.{name}")
                for name, child in raw_properties.items()
            }
            required = _parse_required(raw.get("required"), properties, location)
            return ObjectNode(properties=properties, required=required, **common)
        case "array":
            raw_items = raw.get("items")
            items = _parse_node(raw_items, f"{location}[]") if raw_items else StringNode()
            return ArrayNode(items=items, **common)
        case "string":
            return StringNode(**common)
        case "integer":
            return IntegerNode(**common)
        case "number":
            return NumberNode(**common)
        case "boolean":
            return BooleanNode(**common)
        case _:
            msg = f"{location}: unsupported type '{node_type}'"
            raise DefinitionError(msg)


def _parse_required(raw: Any, properties: Mapping[str, SchemaNode], location: str) -> tuple[str, ...]:
    """Keep required names that are declared properties, in declared order."""
    if raw is None:
        return ()
    if not isinstance(raw, list):
        msg = f"{location}: required must be a list"
        raise DefinitionError(msg)
    names = [str(name) for name in raw]
    unknown = [name for name in names if name not in properties]
    if unknown:
        logger.warning("%s: ignoring required names without a property: %s", location, ", ".join(unknown))
    return tuple(dict.fromkeys(name for name in names if name in properties))


def _parse_object_root(raw: Any, location: str) -> ObjectNode:
    node = _parse_node(raw, location)
    if not isinstance(node, ObjectNode):
        msg = f"{location}: expected an object schema, got '{node.type}'"
        raise DefinitionError(msg)
    return node


def parse_resource_kind(raw: str | Mapping[str, Any]) -> ResourceKindDefinition:
    """Parse one CRD document into a ResourceKindDefinition.

    The version flagged ``storage: true`` is selected. Its
    ``schema.openAPIV3Schema`` ``spec`` and ``status`` sub-trees become the
    kind's schema models.

    Args:
        raw: CRD document as YAML text or an already-loaded mapping.

    Returns:
        The parsed ResourceKindDefinition.

    Raises:
        DefinitionError: If the document is malformed, declares no storage
            version, or declares more than one.
    """
    data = _load_document(raw, "CRD")
    try:
        crd = _RawCrd.model_validate(data)
    except ValidationError as e:
        msg = f"Invalid CRD: {format_validation_errors(e)}"
        raise DefinitionError(msg) from e

    names = crd.spec.names
    storage_versions = [v for v in crd.spec.versions if v.storage]
    if not storage_versions:
        msg = f"CRD '{names.kind}' has no version flagged as storage"
        raise DefinitionError(msg)
    if len(storage_versions) > 1:
        flagged = ", ".join(v.name for v in storage_versions)
        msg = f"CRD '{names.kind}' flags more than one storage version: {flagged}"
        raise DefinitionError(msg)
    version = storage_versions[0]

    root_properties = version.version_schema.open_api_v3_schema.get("properties") or {}
    spec_raw = root_properties.get("spec")
    status_raw = root_properties.get("status")

    spec_schema = _parse_object_root(spec_raw, f"{names.kind}.spec") if spec_raw else EMPTY_OBJECT
    status_schema = None
    if isinstance(status_raw, Mapping) and status_raw.get("properties"):
        status_schema = _parse_object_root(status_raw, f"{names.kind}.status")

    return ResourceKindDefinition(
        group=crd.spec.group,
        kind=names.kind,
        plural=names.plural,
        singular=names.singular or names.kind.lower(),
        scope=crd.spec.scope,
        version=version.name,
        list_columns=tuple(version.additional_printer_columns),
        spec_schema=spec_schema,
        status_schema=status_schema,
    )


def parse_plugin_bundle(text: str | Mapping[str, Any]) -> PluginDefinition:
    """Parse plugin bundle text into a PluginDefinition.

    Every embedded CRD is parsed with parse_resource_kind. References to
    kinds the bundle does not define are logged and treated as absent.

    Args:
        text: Bundle YAML text (or an already-loaded mapping).

    Returns:
        The parsed PluginDefinition.

    Raises:
        DefinitionError: If the bundle or any embedded CRD is invalid, or
            two CRDs share a kind or plural.
    """
    data = _load_document(text, "plugin bundle")
    try:
        raw = _RawPluginBundle.model_validate(data)
    except ValidationError as e:
        msg = f"Invalid plugin bundle: {format_validation_errors(e)}"
        raise DefinitionError(msg) from e

    plugin_name = raw.metadata.name
    kinds: list[ResourceKindDefinition] = []
    for index, crd in enumerate(raw.crds, start=1):
        try:
            kinds.append(parse_resource_kind(crd))
        except DefinitionError as e:
            msg = f"Plugin '{plugin_name}' CRD #{index}: {e}"
            raise DefinitionError(msg) from e

    for attribute in ("kind", "plural"):
        values = [getattr(k, attribute) for k in kinds]
        duplicates = sorted({v for v in values if values.count(v) > 1})
        if duplicates:
            msg = f"Plugin '{plugin_name}' defines duplicate {attribute}: {', '.join(duplicates)}"
            raise DefinitionError(msg)

    definition = PluginDefinition(
        api_version=raw.api_version,
        metadata=raw.metadata,
        menu=raw.menu,
        ui_hints=raw.ui_hints,
        custom_components=raw.custom_components,
        kinds=tuple(kinds),
    )
    for problem in definition.dangling_references():
        logger.warning("Plugin '%s': %s", plugin_name, problem)
    return definition
