"""Tests for field defaults, grouping and widget selection."""

import pytest

from crdkit.definition import FormGroup, ResourceKindDefinition, UiHints, ViewKind
from crdkit.fields import (
    DEFAULT_GROUP_NAME,
    OTHER_GROUP_NAME,
    build_default,
    build_defaults,
    display_type,
    form_widget,
    group_fields,
    groups_for_view,
    hidden_fields_for,
    is_field_required,
    is_wide_field,
)
from crdkit.registry import PluginRegistry
from crdkit.schema_model import (
    ArrayNode,
    BooleanNode,
    IntegerNode,
    NumberNode,
    ObjectNode,
    StringNode,
)


@pytest.fixture
def certificate(registry: PluginRegistry) -> ResourceKindDefinition:
    kind = registry.get_kind("cert-manager", "Certificate")
    assert kind is not None
    return kind


@pytest.fixture
def certificate_hints(registry: PluginRegistry) -> UiHints:
    plugin = registry.get("cert-manager")
    assert plugin is not None
    return plugin.hints_for("Certificate")


class TestBuildDefaults:
    """Tests for initial form values."""

    @pytest.mark.parametrize(
        ("node", "expected"),
        [
            (StringNode(), ""),
            (IntegerNode(), None),
            (NumberNode(), None),
            (BooleanNode(), False),
            (ArrayNode(items=StringNode()), []),
            (ObjectNode(), {}),
        ],
    )
    def test_type_defaults(self, node, expected) -> None:
        assert build_default(node) == expected

    def test_declared_default_wins(self) -> None:
        assert build_default(IntegerNode(default=3)) == 3
        assert build_default(BooleanNode(default=True)) is True

    def test_declared_default_is_copied(self) -> None:
        """Mutating a built default does not change the schema."""
        node = ObjectNode(default={"tags": ["a"]})
        value = build_default(node)

        value["tags"].append("b")

        assert node.default == {"tags": ["a"]}

    def test_certificate_defaults(self, certificate: ResourceKindDefinition) -> None:
        # When
        values = build_defaults(certificate.spec_schema)

        # Then
        assert values["secretName"] == ""
        assert values["issuerRef"] == {"name": "", "kind": "Issuer", "group": "cert-manager.io"}
        assert values["dnsNames"] == []
        assert values["duration"] == "2160h"
        assert values["isCA"] is False
        assert values["privateKey"] == {"algorithm": "", "size": None}

    def test_each_call_returns_fresh_values(self, certificate: ResourceKindDefinition) -> None:
        first = build_defaults(certificate.spec_schema)
        first["dnsNames"].append("example.com")

        assert build_defaults(certificate.spec_schema)["dnsNames"] == []


class TestGroupFields:
    """Tests for partitioning fields into layout groups."""

    def test_single_configuration_group_without_declared_groups(self) -> None:
        schema = ObjectNode(properties={"a": StringNode(), "b": StringNode()})

        groups = group_fields(schema)

        assert [g.name for g in groups] == [DEFAULT_GROUP_NAME]
        assert groups[0].field_names == ["a", "b"]

    def test_declared_groups_then_other(
        self, certificate: ResourceKindDefinition, certificate_hints: UiHints
    ) -> None:
        # When
        groups = group_fields(
            certificate.spec_schema, certificate_hints.form_groups, certificate_hints.hidden_fields
        )

        # Then
        assert [g.name for g in groups] == ["Basics", "Lifetime", OTHER_GROUP_NAME]
        assert groups[0].field_names == ["secretName", "issuerRef", "dnsNames"]
        assert groups[1].field_names == ["duration", "renewBefore"]
        assert groups[2].field_names == ["isCA", "privateKey"]

    def test_every_visible_field_appears_once(
        self, certificate: ResourceKindDefinition, certificate_hints: UiHints
    ) -> None:
        groups = group_fields(
            certificate.spec_schema, certificate_hints.form_groups, certificate_hints.hidden_fields
        )

        names = [name for group in groups for name in group.field_names]
        assert len(names) == len(set(names))
        assert set(names) | {"ipAddresses"} == set(certificate.spec_schema.properties)

    def test_unknown_hidden_and_repeated_names_are_skipped(self) -> None:
        # Given
        schema = ObjectNode(properties={"a": StringNode(), "b": StringNode(), "c": StringNode()})
        declared = [
            FormGroup(name="First", fields=["ghost", "a", "b"]),
            FormGroup(name="Second", fields=["a", "c"]),
            FormGroup(name="Empty", fields=["ghost"]),
        ]

        # When
        groups = group_fields(schema, declared, hidden_fields=["c"])

        # Then - Second lost both fields, Empty never had any
        assert [g.name for g in groups] == ["First"]
        assert groups[0].field_names == ["a", "b"]

    def test_no_other_group_when_everything_is_claimed(self) -> None:
        schema = ObjectNode(properties={"a": StringNode()})

        groups = group_fields(schema, [FormGroup(name="Only", fields=["a"])])

        assert [g.name for g in groups] == ["Only"]


class TestViewVisibility:
    """Tests for per-view hidden fields."""

    def test_edit_view_shows_only_editable_fields(
        self, certificate: ResourceKindDefinition, certificate_hints: UiHints
    ) -> None:
        # When
        groups = groups_for_view(ViewKind.EDIT, certificate_hints, certificate.spec_schema)

        # Then
        assert [g.name for g in groups] == ["Basics", "Lifetime"]
        assert groups[0].field_names == ["dnsNames"]
        assert groups[1].field_names == ["duration", "renewBefore"]

    def test_create_view_uses_hidden_fields(
        self, certificate: ResourceKindDefinition, certificate_hints: UiHints
    ) -> None:
        hidden = hidden_fields_for(ViewKind.CREATE, certificate_hints, certificate.spec_schema)

        assert hidden == ["ipAddresses"]

    def test_edit_without_editable_fields_uses_hidden_fields(self) -> None:
        schema = ObjectNode(properties={"a": StringNode(), "b": StringNode()})
        hints = UiHints(hiddenFields=["b"])

        assert hidden_fields_for(ViewKind.EDIT, hints, schema) == ["b"]

    def test_required_is_read_from_schema(self, certificate: ResourceKindDefinition) -> None:
        assert is_field_required("secretName", certificate.spec_schema)
        assert not is_field_required("dnsNames", certificate.spec_schema)


class TestWidgets:
    """Tests for choosing form widgets and display types."""

    @pytest.mark.parametrize(
        ("node", "widget"),
        [
            (StringNode(enum=("a", "b")), "enum-radio"),
            (StringNode(enum=tuple(str(i) for i in range(11))), "enum-select"),
            (StringNode(enum=tuple(str(i) for i in range(10))), "enum-radio"),
            (BooleanNode(), "boolean"),
            (IntegerNode(), "integer"),
            (NumberNode(), "integer"),
            (ArrayNode(items=StringNode()), "string-array"),
            (ArrayNode(items=IntegerNode()), "text"),
            (ObjectNode(properties={"a": StringNode()}), "object"),
            (ObjectNode(), "empty-object"),
            (StringNode(), "text"),
        ],
    )
    def test_form_widget(self, node, widget: str) -> None:
        assert form_widget(node) == widget

    @pytest.mark.parametrize(
        ("node", "display"),
        [
            (StringNode(format="date-time"), "date"),
            (BooleanNode(), "boolean"),
            (ArrayNode(items=StringNode()), "string-array"),
            (ArrayNode(items=ObjectNode()), "object-array"),
            (ObjectNode(), "object"),
            (IntegerNode(), "text"),
            (StringNode(), "text"),
        ],
    )
    def test_display_type(self, node, display: str) -> None:
        assert display_type(node) == display

    def test_wide_fields(self) -> None:
        assert is_wide_field(ObjectNode())
        assert is_wide_field(ArrayNode(items=StringNode()))
        assert is_wide_field(StringNode(description="x" * 101))
        assert not is_wide_field(StringNode(description="short"))
