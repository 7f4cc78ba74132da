"""Generic list, detail, create and edit views for plugin resource kinds.

Views are headless: each one resolves its resource kind from a ViewContext,
talks to the resource store, and exposes plain page objects that a front
end (the CLI, for instance) renders. An unknown plugin or kind never
raises; the view is built with ``kind`` set to None and an error message.
"""

import copy
import logging
from collections.abc import Mapping
from dataclasses import dataclass, field, replace
from typing import Any, ClassVar, Literal

from crdkit.definition import (
    EMPTY_HINTS,
    Badge,
    MenuItem,
    PluginDefinition,
    PrinterColumn,
    ResourceKindDefinition,
    UiHints,
    ViewKind,
)
from crdkit.fields import (
    FieldGroup,
    build_defaults,
    display_type,
    form_widget,
    groups_for_view,
    is_wide_field,
)
from crdkit.formatting import (
    EMPTY_DISPLAY,
    field_name_to_label,
    format_column_value,
    format_date,
    format_simple_value,
    kind_to_label,
    kind_to_singular_label,
    stringify,
)
from crdkit.forms import FormState, clean_spec, validate_submission
from crdkit.navigation import PLUGIN_RESOURCES_ROUTE
from crdkit.paths import resolve
from crdkit.registry import PluginRegistry
from crdkit.schema_model import ArrayNode, ObjectNode, SchemaNode
from crdkit.store import ObjectMeta, ResourceInstance, ResourceStore, ResourceStoreError
from crdkit.validation import ValidationResult

logger = logging.getLogger(__name__)

MessageLevel = Literal["success", "error"]


@dataclass(frozen=True)
class ViewContext:
    """Route parameters of a view.

    Attributes:
        plugin_name: Name of the plugin owning the kind.
        resource_kind: Plural path segment of the kind.
        resource_id: Instance uid for detail and edit views.
    """

    plugin_name: str
    resource_kind: str
    resource_id: str | None = None

    def list_route(self) -> tuple[str, ...]:
        """Return the route of the kind's list view."""
        return (PLUGIN_RESOURCES_ROUTE, self.plugin_name, self.resource_kind)

    def detail_route(self, uid: str) -> tuple[str, ...]:
        """Return the route of an instance's detail view."""
        return (*self.list_route(), uid)


@dataclass(frozen=True)
class ViewServices:
    """Collaborators shared by every view."""

    registry: PluginRegistry
    store: ResourceStore


@dataclass(frozen=True)
class ViewMessage:
    """A dismissible message shown by a view."""

    level: MessageLevel
    text: str


@dataclass(frozen=True)
class SubmitResult:
    """Outcome of a successful create or edit submission."""

    uid: str
    route: tuple[str, ...]


@dataclass(frozen=True)
class FormField:
    """One input of a create or edit form."""

    path: str
    label: str
    widget: str
    required: bool
    description: str | None = None
    options: tuple[Any, ...] = ()


@dataclass(frozen=True)
class FormSection:
    """A group of form inputs."""

    name: str
    fields: tuple[FormField, ...]


@dataclass(frozen=True)
class ListCell:
    text: str
    badge: Badge | None = None


@dataclass(frozen=True)
class ListRow:
    uid: str
    name: str
    namespace: str | None
    cells: tuple[ListCell, ...]


@dataclass(frozen=True)
class ListPage:
    """Rendered list of every instance of a kind."""

    title: str
    kind: str
    columns: tuple[PrinterColumn, ...]
    rows: tuple[ListRow, ...]
    namespaced: bool
    can_create: bool
    can_view_detail: bool


@dataclass(frozen=True)
class DisplayValue:
    """A read-only value, possibly expanded into nested values."""

    label: str
    text: str
    display: str = "text"
    wide: bool = False
    children: tuple["DisplayValue", ...] = ()


@dataclass(frozen=True)
class DetailGroup:
    name: str
    fields: tuple[DisplayValue, ...]


@dataclass(frozen=True)
class Condition:
    """A Kubernetes status condition."""

    type: str
    status: str
    reason: str = ""
    message: str = ""
    last_transition_time: str = ""


@dataclass(frozen=True)
class DetailPage:
    """Rendered detail of one instance."""

    title: str
    kind: str
    resource: ResourceInstance
    badge: Badge | None
    groups: tuple[DetailGroup, ...]
    status: tuple[DisplayValue, ...]
    conditions: tuple[Condition, ...] = field(default_factory=tuple)
    can_create: bool = False


class ResourceView:
    """Base class resolving the plugin and kind a view works on."""

    view_kind: ClassVar[ViewKind]

    def __init__(self, context: ViewContext, services: ViewServices) -> None:
        self.context = context
        self.services = services
        self.message: ViewMessage | None = None
        self.not_found = False

        registry = services.registry
        self.plugin: PluginDefinition | None = registry.get(context.plugin_name)
        self.kind: ResourceKindDefinition | None = registry.get_kind_by_plural(
            context.plugin_name, context.resource_kind
        )
        self.hints: UiHints = EMPTY_HINTS
        self.menu_item: MenuItem | None = None

        if self.plugin is None or self.kind is None:
            self.kind = None
            self.message = ViewMessage(
                "error",
                f"Unknown resource kind '{context.resource_kind}' in plugin '{context.plugin_name}'",
            )
            return

        self.hints = self.plugin.hints_for(self.kind.kind)
        self.menu_item = self.plugin.menu_item(self.kind.kind)

    @property
    def store(self) -> ResourceStore:
        return self.services.store

    @property
    def singular_label(self) -> str:
        """Return the human-readable singular name of the kind."""
        return kind_to_singular_label(self.kind.kind) if self.kind else "Resource"

    def dismiss_message(self) -> None:
        """Clear the current message."""
        self.message = None

    async def _fetch_instance(self) -> ResourceInstance | None:
        """Fetch the instance named by the context.

        Sets ``not_found`` when the store has no such instance.
        """
        if self.kind is None:
            return None
        uid = self.context.resource_id or ""
        try:
            instance = await self.store.get(self.context.plugin_name, self.kind.kind, uid)
        except ResourceStoreError as e:
            self._fail(e)
            return None
        if instance is None:
            self.not_found = True
            self.message = ViewMessage("error", f"{self.singular_label} '{uid}' not found")
        return instance

    def _succeed(self, text: str) -> None:
        self.message = ViewMessage("success", text)

    def _fail(self, error: Exception) -> None:
        logger.warning("%s view for %s failed: %s", self.view_kind.value, self.context.resource_kind, error)
        self.message = ViewMessage("error", str(error))


class _DeleteConfirmation(ResourceView):
    """Two-step delete shared by the list and detail views."""

    def __init__(self, context: ViewContext, services: ViewServices) -> None:
        super().__init__(context, services)
        self.pending_delete: str | None = None

    def request_delete(self, uid: str) -> None:
        """Ask for confirmation before deleting ``uid``."""
        self.pending_delete = uid

    def cancel_delete(self) -> None:
        """Abandon the pending delete."""
        self.pending_delete = None

    async def confirm_delete(self) -> bool:
        """Delete the pending instance.

        Returns:
            True if the instance was deleted. On a store failure the error
            becomes the view message and False is returned.
        """
        uid, self.pending_delete = self.pending_delete, None
        if self.kind is None or uid is None:
            return False
        try:
            await self.store.delete(self.context.plugin_name, self.kind.kind, uid)
        except ResourceStoreError as e:
            self._fail(e)
            return False
        self._succeed(f"{self.singular_label} deleted")
        return True


# List


class ListView(_DeleteConfirmation):
    """Table of every instance of a kind."""

    view_kind = ViewKind.LIST

    def __init__(self, context: ViewContext, services: ViewServices) -> None:
        super().__init__(context, services)
        self.page: ListPage | None = None

    async def load(self) -> ListPage | None:
        """Fetch the instances and build the page.

        Returns None when the kind is unknown or the store fails.
        """
        if self.kind is None:
            return None
        try:
            instances = await self.store.list(self.context.plugin_name, self.kind.kind)
        except ResourceStoreError as e:
            self._fail(e)
            return None

        columns = self.kind.columns()
        self.page = ListPage(
            title=kind_to_label(self.kind.kind),
            kind=self.kind.kind,
            columns=columns,
            rows=tuple(self._row(instance, columns) for instance in instances),
            namespaced=self.kind.namespaced,
            can_create=bool(self.menu_item and self.menu_item.create),
            can_view_detail=bool(self.menu_item and self.menu_item.detail),
        )
        return self.page

    async def confirm_delete(self) -> bool:
        """Delete the pending instance and reload the page."""
        deleted = await super().confirm_delete()
        if deleted:
            await self.load()
        return deleted

    def _row(self, instance: ResourceInstance, columns: tuple[PrinterColumn, ...]) -> ListRow:
        document = instance.as_document()
        mapping = self.hints.status_mapping
        cells = []
        for column in columns:
            badge = None
            if mapping is not None and _same_path(column.json_path, mapping.json_path):
                badge = mapping.resolve(document)
            value = resolve(document, column.json_path)
            cells.append(ListCell(text=format_column_value(value, column.type), badge=badge))
        return ListRow(
            uid=instance.uid,
            name=instance.name,
            namespace=instance.metadata.namespace,
            cells=tuple(cells),
        )


def _same_path(a: str, b: str) -> bool:
    return a.strip().lstrip(".") == b.strip().lstrip(".")


# Detail


class DetailView(_DeleteConfirmation):
    """Read-only view of one instance."""

    view_kind = ViewKind.DETAIL

    def __init__(self, context: ViewContext, services: ViewServices) -> None:
        super().__init__(context, services)
        self.page: DetailPage | None = None

    async def load(self) -> DetailPage | None:
        """Fetch the instance and build the page.

        Returns None when the kind is unknown, the instance does not exist
        or the store fails.
        """
        instance = await self._fetch_instance()
        if instance is None:
            return None

        schema = self.kind.spec_schema
        groups = tuple(
            DetailGroup(
                name=group.name,
                fields=tuple(_spec_value(name, node, instance.spec.get(name)) for name, node in group.fields),
            )
            for group in groups_for_view(ViewKind.DETAIL, self.hints, schema)
        )
        mapping = self.hints.status_mapping
        self.page = DetailPage(
            title=instance.name,
            kind=self.kind.kind,
            resource=instance,
            badge=mapping.resolve(instance.as_document()) if mapping else None,
            groups=groups,
            status=_status_values(instance.status or {}, self.kind.status_schema),
            conditions=_conditions(instance.status or {}),
            can_create=bool(self.menu_item and self.menu_item.create),
        )
        return self.page

    def request_delete(self, uid: str | None = None) -> None:
        """Ask for confirmation before deleting the instance shown."""
        super().request_delete(uid or self.context.resource_id or "")

    async def confirm_delete(self) -> bool:
        """Delete the instance shown by this view."""
        deleted = await super().confirm_delete()
        if deleted:
            self.page = None
        return deleted


def _spec_value(name: str, node: SchemaNode, value: Any) -> DisplayValue:
    """Build the display value of one spec field according to its schema."""
    label = field_name_to_label(name)
    display = display_type(node)
    wide = is_wide_field(node)

    if value is None:
        return DisplayValue(label=label, text=EMPTY_DISPLAY, display=display, wide=wide)

    match display:
        case "date":
            text = format_date(value)
        case "boolean":
            text = "Yes" if value else "No"
        case "string-array":
            text = ", ".join(stringify(item) for item in value) if isinstance(value, list) else stringify(value)
            text = text or EMPTY_DISPLAY
        case "object" | "object-array":
            return _generic_value(label, value, node, display=display, wide=wide)
        case _:
            text = format_simple_value(value)
    return DisplayValue(label=label, text=text, display=display, wide=wide)


def _generic_value(
    label: str,
    value: Any,
    node: SchemaNode | None,
    display: str | None = None,
    wide: bool = False,
) -> DisplayValue:
    """Expand mappings and lists into nested display values."""
    if isinstance(value, Mapping):
        properties = node.properties if isinstance(node, ObjectNode) else {}
        children = tuple(
            _generic_value(field_name_to_label(str(key)), child, properties.get(key))
            for key, child in value.items()
        )
        return DisplayValue(label=label, text="", display=display or "object", wide=True, children=children)

    if isinstance(value, list):
        items = node.items if isinstance(node, ArrayNode) else None
        children = tuple(
            _generic_value(str(index), item, items) for index, item in enumerate(value, start=1)
        )
        text = "" if children else EMPTY_DISPLAY
        return DisplayValue(label=label, text=text, display=display or "list", wide=True, children=children)

    if node is not None and node.format == "date-time":
        return DisplayValue(label=label, text=format_date(value), display="date", wide=wide)
    return DisplayValue(label=label, text=format_simple_value(value), display=display or "text", wide=wide)


def _status_values(status: Mapping[str, Any], schema: ObjectNode | None) -> tuple[DisplayValue, ...]:
    properties = schema.properties if schema is not None else {}
    values = []
    for key, value in status.items():
        display = _generic_value(field_name_to_label(key), value, properties.get(key))
        if key == "conditions" and isinstance(value, list):
            display = replace(display, display="conditions")
        values.append(display)
    return tuple(values)


def _conditions(status: Mapping[str, Any]) -> tuple[Condition, ...]:
    raw = status.get("conditions")
    if not isinstance(raw, list):
        return ()
    return tuple(
        Condition(
            type=stringify(item.get("type", "")),
            status=stringify(item.get("status", "")),
            reason=stringify(item.get("reason", "")),
            message=stringify(item.get("message", "")),
            last_transition_time=format_date(item.get("lastTransitionTime")),
        )
        for item in raw
        if isinstance(item, Mapping)
    )


# Create / edit


class _FormView(ResourceView):
    """Shared state of the create and edit forms."""

    def __init__(self, context: ViewContext, services: ViewServices) -> None:
        super().__init__(context, services)
        self.form = FormState()
        self.validation: ValidationResult | None = None
        self.groups: list[FieldGroup] = []
        if self.kind is not None:
            self.groups = groups_for_view(self.view_kind, self.hints, self.kind.spec_schema)

    @property
    def sections(self) -> list[FormSection]:
        """Return the form inputs grouped for layout."""
        schema = self.kind.spec_schema if self.kind else None
        return [
            FormSection(
                name=group.name,
                fields=tuple(_form_field(name, node, schema) for name, node in group.fields),
            )
            for group in self.groups
        ]

    def set_value(self, path: str, value: Any) -> bool:
        """Set a spec value; ``path`` may be dotted (``issuerRef.name``).

        Returns:
            True if the value was applied.
        """
        self.form.set_value(path, value)
        return True

    def merge_values(self, values: Mapping[str, Any]) -> list[str]:
        """Merge a nested mapping of spec values into the form.

        Returns:
            The top-level keys that were ignored.
        """
        self.form.merge(values)
        return []

    def get_value(self, path: str, default: Any = None) -> Any:
        """Return a spec value by dotted path."""
        return self.form.get_value(path, default)

    def _validate(self, require_name: bool, require_namespace: bool) -> bool:
        self.validation = validate_submission(
            self.form,
            self.kind.spec_schema,
            require_name=require_name,
            require_namespace=require_namespace,
        )
        if not self.validation.is_valid:
            self.message = ViewMessage("error", self.validation.first_error or "Invalid form")
            return False
        return True


def _form_field(name: str, node: SchemaNode, schema: ObjectNode | None) -> FormField:
    return FormField(
        path=name,
        label=field_name_to_label(name),
        widget=form_widget(node),
        required=bool(schema and schema.is_required(name)),
        description=node.description,
        options=node.enum or (),
    )


class CreateView(_FormView):
    """Form creating a new instance, seeded with schema defaults."""

    view_kind = ViewKind.CREATE

    def __init__(self, context: ViewContext, services: ViewServices) -> None:
        super().__init__(context, services)
        if self.kind is not None:
            self.form = FormState(values=build_defaults(self.kind.spec_schema))

    async def submit(self) -> SubmitResult | None:
        """Validate, clean and store the new instance.

        Returns:
            The new uid and the list route, or None if validation or the
            store failed (the form keeps its values either way).
        """
        if self.kind is None:
            return None
        if not self._validate(require_name=True, require_namespace=self.kind.namespaced):
            return None

        instance = ResourceInstance(
            api_version=self.kind.api_version,
            kind=self.kind.kind,
            metadata=ObjectMeta(
                name=self.form.name.strip(),
                namespace=self.form.namespace.strip() if self.kind.namespaced else None,
            ),
            spec=clean_spec(self.form.values, self.kind.spec_schema),
        )
        try:
            uid = await self.store.create(self.context.plugin_name, self.kind.kind, instance)
        except ResourceStoreError as e:
            self._fail(e)
            return None

        self._succeed(f"{self.singular_label} created")
        return SubmitResult(uid=uid, route=self.context.list_route())


class EditView(_FormView):
    """Form editing the spec of an existing instance."""

    view_kind = ViewKind.EDIT

    def __init__(self, context: ViewContext, services: ViewServices) -> None:
        super().__init__(context, services)
        self.resource: ResourceInstance | None = None

    @property
    def editable_fields(self) -> frozenset[str]:
        """Return the top-level spec fields this form may change."""
        return frozenset(name for group in self.groups for name in group.field_names)

    def set_value(self, path: str, value: Any) -> bool:
        """Set a spec value unless its top-level field is not editable."""
        if path.split(".")[0] not in self.editable_fields:
            logger.debug("Ignoring non-editable field %s of %s", path, self.context.resource_kind)
            return False
        return super().set_value(path, value)

    def merge_values(self, values: Mapping[str, Any]) -> list[str]:
        editable = self.editable_fields
        self.form.merge({key: value for key, value in values.items() if key in editable})
        return [key for key in values if key not in editable]

    async def load(self) -> ResourceInstance | None:
        """Fetch the instance and copy its spec into the form."""
        instance = await self._fetch_instance()
        if instance is None:
            return None

        self.resource = instance
        self.form = FormState(
            values=copy.deepcopy(instance.spec),
            name=instance.name,
            namespace=instance.metadata.namespace or "",
        )
        return instance

    async def submit(self) -> SubmitResult | None:
        """Validate, clean and store the updated spec.

        Returns:
            The uid and the detail route, or None if nothing was loaded,
            validation failed or the store failed.
        """
        if self.kind is None or self.resource is None:
            return None
        if not self._validate(require_name=False, require_namespace=False):
            return None

        updated = self.resource.model_copy(
            update={"spec": clean_spec(self.form.values, self.kind.spec_schema)}, deep=True
        )
        try:
            await self.store.update(self.context.plugin_name, self.kind.kind, self.resource.uid, updated)
        except ResourceStoreError as e:
            self._fail(e)
            return None

        self.resource = updated
        self._succeed(f"{self.singular_label} updated")
        return SubmitResult(uid=updated.uid, route=self.context.detail_route(updated.uid))


GENERIC_VIEWS: dict[ViewKind, type[ResourceView]] = {
    ViewKind.LIST: ListView,
    ViewKind.DETAIL: DetailView,
    ViewKind.CREATE: CreateView,
    ViewKind.EDIT: EditView,
}
