"""Tests for the crdkit command line."""

from pathlib import Path
from typing import Any

import pytest
import yaml
from typer.testing import CliRunner

from crdkit import exit_codes
from crdkit.cli import app, parse_assignment


@pytest.fixture(autouse=True)
def wide_console(monkeypatch: pytest.MonkeyPatch) -> None:
    """Keep rich tables from wrapping cell text."""
    monkeypatch.setenv("COLUMNS", "200")


def _stored(home: Path, kind: str = "Certificate") -> list[dict[str, Any]]:
    data = yaml.safe_load((home / "resources.yaml").read_text())
    return data["cert-manager"].get(kind, [])


class TestInit:
    """Tests for the init command."""

    def test_init_creates_home(self, cli_runner: CliRunner, tmp_path: Path) -> None:
        # Given
        home = tmp_path / "home"

        # When
        result = cli_runner.invoke(app, ["init", str(home), "--bundle", "cert-manager.yaml"])

        # Then
        assert result.exit_code == exit_codes.SUCCESS
        assert "Console home initialized" in result.output
        config = yaml.safe_load((home / "config.yaml").read_text())
        assert config["bundles"] == ["cert-manager.yaml"]

    def test_init_uses_env_home(
        self, cli_runner: CliRunner, tmp_path: Path, monkeypatch: pytest.MonkeyPatch
    ) -> None:
        monkeypatch.setenv("CRDKIT_HOME", str(tmp_path / "env-home"))

        result = cli_runner.invoke(app, ["init"])

        assert result.exit_code == exit_codes.SUCCESS
        assert (tmp_path / "env-home" / "config.yaml").is_file()

    def test_init_on_file_fails(self, cli_runner: CliRunner, tmp_path: Path) -> None:
        target = tmp_path / "file"
        target.write_text("")

        result = cli_runner.invoke(app, ["init", str(target)])

        assert result.exit_code == exit_codes.GENERAL_ERROR
        assert "Failed to initialize" in result.output


class TestUninitializedHome:
    """Commands need an initialized console home."""

    @pytest.mark.parametrize(
        "args",
        [["plugins"], ["list", "cert-manager", "certificates"], ["show", "cert-manager", "certificates", "cert-1"]],
    )
    def test_exits_with_home_not_initialized(
        self, cli_runner: CliRunner, tmp_path: Path, monkeypatch: pytest.MonkeyPatch, args: list[str]
    ) -> None:
        monkeypatch.setenv("CRDKIT_HOME", str(tmp_path))

        result = cli_runner.invoke(app, args)

        assert result.exit_code == exit_codes.HOME_NOT_INITIALIZED
        assert "crdkit init" in result.output
        assert "Missing config.yaml file" in result.output

    def test_invalid_config_is_general_error(
        self, cli_runner: CliRunner, tmp_path: Path, monkeypatch: pytest.MonkeyPatch
    ) -> None:
        (tmp_path / "config.yaml").write_text("bundles: [unclosed")
        monkeypatch.setenv("CRDKIT_HOME", str(tmp_path))

        result = cli_runner.invoke(app, ["plugins"])

        assert result.exit_code == exit_codes.GENERAL_ERROR
        assert "Invalid YAML" in result.output


class TestPluginCommands:
    """Tests for plugins, nav, schema and components."""

    def test_plugins_lists_loaded_bundles(self, cli_runner: CliRunner, console_home: Path) -> None:
        result = cli_runner.invoke(app, ["plugins"])

        assert result.exit_code == exit_codes.SUCCESS
        assert "cert-manager" in result.output
        assert "Certificate (certificates)" in result.output
        assert "widgets" in result.output

    def test_plugins_warns_about_skipped_bundle(self, cli_runner: CliRunner, console_home: Path) -> None:
        # Given - a bundle location that does not exist
        config_path = console_home / "config.yaml"
        config = yaml.safe_load(config_path.read_text())
        config["bundles"].append("missing.yaml")
        config_path.write_text(yaml.dump(config))

        # When
        result = cli_runner.invoke(app, ["plugins"])

        # Then
        assert result.exit_code == exit_codes.SUCCESS
        assert "Skipped plugin bundle" in result.output
        assert "cert-manager" in result.output

    def test_nav_organization(self, cli_runner: CliRunner, console_home: Path) -> None:
        result = cli_runner.invoke(app, ["nav"])

        assert result.exit_code == exit_codes.SUCCESS
        assert "Cert Manager" in result.output
        assert "Cluster issuers" in result.output
        assert "/plugin-resources/cert-manager/certificates" in result.output
        assert "Widgets" not in result.output

    def test_nav_project(self, cli_runner: CliRunner, console_home: Path) -> None:
        result = cli_runner.invoke(app, ["nav", "--scope", "project"])

        assert result.exit_code == exit_codes.SUCCESS
        assert "Widgets" in result.output

    def test_nav_rejects_unknown_scope(self, cli_runner: CliRunner, console_home: Path) -> None:
        result = cli_runner.invoke(app, ["nav", "--scope", "team"])

        assert result.exit_code == exit_codes.INVALID_ARGS

    def test_schema_shows_nested_fields(self, cli_runner: CliRunner, console_home: Path) -> None:
        result = cli_runner.invoke(app, ["schema", "cert-manager", "certificates"])

        assert result.exit_code == exit_codes.SUCCESS
        assert "cert-manager.io/v1" in result.output
        assert "issuerRef.name" in result.output
        assert "2160h" in result.output

    def test_schema_unknown_kind(self, cli_runner: CliRunner, console_home: Path) -> None:
        result = cli_runner.invoke(app, ["schema", "cert-manager", "issuers"])

        assert result.exit_code == exit_codes.PLUGIN_NOT_FOUND

    def test_components_lists_declared_overrides(self, cli_runner: CliRunner, console_home: Path) -> None:
        result = cli_runner.invoke(app, ["components"])

        assert result.exit_code == exit_codes.SUCCESS
        assert "No components registered." in result.output
        assert "widget-list" in result.output


class TestResourceCommands:
    """Tests for list, show, create, edit and delete."""

    def test_list(self, cli_runner: CliRunner, console_home: Path) -> None:
        result = cli_runner.invoke(app, ["list", "cert-manager", "certificates"])

        assert result.exit_code == exit_codes.SUCCESS
        assert "cert-1" in result.output
        assert "web-tls-cert" in result.output
        assert "prod" in result.output
        assert "Not Ready" in result.output

    def test_list_unregistered_override_uses_generic_view(self, cli_runner: CliRunner, console_home: Path) -> None:
        result = cli_runner.invoke(app, ["list", "widgets", "widgets"])

        assert result.exit_code == exit_codes.SUCCESS
        assert "No widgets found." in result.output

    def test_list_unknown_kind(self, cli_runner: CliRunner, console_home: Path) -> None:
        result = cli_runner.invoke(app, ["list", "cert-manager", "issuers"])

        assert result.exit_code == exit_codes.PLUGIN_NOT_FOUND
        assert "Unknown resource kind 'issuers'" in result.output

    def test_show(self, cli_runner: CliRunner, console_home: Path) -> None:
        result = cli_runner.invoke(app, ["show", "cert-manager", "certificates", "cert-1"])

        assert result.exit_code == exit_codes.SUCCESS
        assert "web-tls-cert" in result.output
        assert "Secret Name" in result.output
        assert "Conditions" in result.output
        assert "Certificate is up to date" in result.output

    def test_show_missing_instance(self, cli_runner: CliRunner, console_home: Path) -> None:
        result = cli_runner.invoke(app, ["show", "cert-manager", "certificates", "ghost"])

        assert result.exit_code == exit_codes.RESOURCE_NOT_FOUND
        assert "Certificate 'ghost' not found" in result.output

    def test_create(self, cli_runner: CliRunner, console_home: Path) -> None:
        # When
        result = cli_runner.invoke(
            app,
            [
                "create",
                "cert-manager",
                "certificates",
                "--name",
                "new-cert",
                "--set",
                "secretName=new-cert-secret",
                "--set",
                "issuerRef.name=letsencrypt-prod",
            ],
        )

        # Then
        assert result.exit_code == exit_codes.SUCCESS
        assert "Certificate created" in result.output
        created = [item for item in _stored(console_home) if item["metadata"]["name"] == "new-cert"]
        assert len(created) == 1
        assert created[0]["spec"]["issuerRef"] == {
            "name": "letsencrypt-prod",
            "kind": "Issuer",
            "group": "cert-manager.io",
        }
        assert "dnsNames" not in created[0]["spec"]

    def test_create_from_values_file(self, cli_runner: CliRunner, console_home: Path, tmp_path: Path) -> None:
        # Given
        values = tmp_path / "values.yaml"
        values.write_text("secretName: file-secret\nissuerRef:\n  name: ca-issuer\ndnsNames:\n  - a.example.com\n")

        # When
        result = cli_runner.invoke(
            app,
            ["create", "cert-manager", "certificates", "-n", "from-file", "--namespace", "prod", "-f", str(values)],
        )

        # Then
        assert result.exit_code == exit_codes.SUCCESS
        created = [item for item in _stored(console_home) if item["metadata"]["name"] == "from-file"]
        assert created[0]["metadata"]["namespace"] == "prod"
        assert created[0]["spec"]["dnsNames"] == ["a.example.com"]
        assert created[0]["spec"]["issuerRef"]["kind"] == "Issuer"

    def test_create_missing_required_field(self, cli_runner: CliRunner, console_home: Path) -> None:
        # When
        result = cli_runner.invoke(
            app,
            ["create", "cert-manager", "certificates", "-n", "new-cert", "-s", "issuerRef.name=ca"],
        )

        # Then
        assert result.exit_code == exit_codes.VALIDATION_FAILED
        assert "secretName is required" in result.output
        assert len(_stored(console_home)) == 2

    def test_create_bad_assignment(self, cli_runner: CliRunner, console_home: Path) -> None:
        result = cli_runner.invoke(app, ["create", "cert-manager", "certificates", "-n", "x", "-s", "secretName"])

        assert result.exit_code == exit_codes.INVALID_ARGS

    def test_edit(self, cli_runner: CliRunner, console_home: Path) -> None:
        # When
        result = cli_runner.invoke(
            app,
            ["edit", "cert-manager", "certificates", "cert-1", "-s", "renewBefore=360h", "-s", "secretName=other"],
        )

        # Then - secretName is not editable for certificates
        assert result.exit_code == exit_codes.SUCCESS
        assert "Ignoring 'secretName'" in result.output
        assert "Certificate updated" in result.output
        spec = _stored(console_home)[0]["spec"]
        assert spec["renewBefore"] == "360h"
        assert spec["secretName"] == "web-tls-secret"

    def test_edit_from_file_ignores_non_editable_fields(
        self, cli_runner: CliRunner, console_home: Path, tmp_path: Path
    ) -> None:
        # Given
        values = tmp_path / "values.yaml"
        values.write_text("secretName: hijacked\nduration: 48h\n")

        # When
        result = cli_runner.invoke(app, ["edit", "cert-manager", "certificates", "cert-1", "--file", str(values)])

        # Then
        assert result.exit_code == exit_codes.SUCCESS
        assert "Ignoring 'secretName'" in result.output
        spec = _stored(console_home)[0]["spec"]
        assert spec["secretName"] == "web-tls-secret"
        assert spec["duration"] == "48h"

    def test_edit_missing_instance(self, cli_runner: CliRunner, console_home: Path) -> None:
        result = cli_runner.invoke(app, ["edit", "cert-manager", "certificates", "ghost", "-s", "duration=1h"])

        assert result.exit_code == exit_codes.RESOURCE_NOT_FOUND

    def test_delete_with_yes(self, cli_runner: CliRunner, console_home: Path) -> None:
        result = cli_runner.invoke(app, ["delete", "cert-manager", "certificates", "cert-2", "--yes"])

        assert result.exit_code == exit_codes.SUCCESS
        assert "Certificate deleted" in result.output
        assert [item["metadata"]["uid"] for item in _stored(console_home)] == ["cert-1"]

    def test_delete_declined(self, cli_runner: CliRunner, console_home: Path) -> None:
        result = cli_runner.invoke(app, ["delete", "cert-manager", "certificates", "cert-2"], input="n\n")

        assert result.exit_code == exit_codes.SUCCESS
        assert "Delete cancelled" in result.output
        assert len(_stored(console_home)) == 2

    def test_delete_confirmed(self, cli_runner: CliRunner, console_home: Path) -> None:
        result = cli_runner.invoke(app, ["delete", "cert-manager", "certificates", "cert-1"], input="y\n")

        assert result.exit_code == exit_codes.SUCCESS
        assert "Delete certificate 'web-tls-cert'?" in result.output
        assert [item["metadata"]["uid"] for item in _stored(console_home)] == ["cert-2"]


class TestParseAssignment:
    """Tests for PATH=VALUE parsing."""

    @pytest.mark.parametrize(
        ("text", "expected"),
        [
            ("size=3", ("size", 3)),
            ("enabled=true", ("enabled", True)),
            ("issuerRef.name=ca", ("issuerRef.name", "ca")),
            ("renewBefore=", ("renewBefore", "")),
            ("dnsNames=[a.example.com, b.example.com]", ("dnsNames", ["a.example.com", "b.example.com"])),
        ],
    )
    def test_values_are_parsed_as_yaml(self, text: str, expected: tuple[str, Any]) -> None:
        assert parse_assignment(text) == expected
