"""Shared test fixtures for crdkit tests."""

import asyncio
import shutil
from pathlib import Path
from typing import Any

import pytest
import yaml
from typer.testing import CliRunner

from crdkit.config import init_console_home
from crdkit.registry import PluginRegistry
from crdkit.sources import BundleFetchError
from crdkit.store import InMemoryResourceStore, ResourceInstance, ResourceStoreError
from crdkit.views import ViewServices

FIXTURES_DIR = Path(__file__).parent / "fixtures"


class StaticSource:
    """Bundle source returning fixed text, or failing like an HTTP 404."""

    def __init__(self, location: str, text: str | None = None, status: int | None = None) -> None:
        self.location = location
        self.text = text
        self.status = status
        self.fetch_count = 0

    async def fetch(self) -> str:
        self.fetch_count += 1
        if self.text is None:
            raise BundleFetchError(self.location, f"HTTP {self.status or 404}")
        return self.text


class FailingStore(InMemoryResourceStore):
    """In-memory store whose mutations always fail."""

    async def create(self, plugin_name: str, kind: str, instance: ResourceInstance) -> str:
        msg = "store unavailable"
        raise ResourceStoreError(msg)

    async def update(self, plugin_name: str, kind: str, uid: str, instance: ResourceInstance) -> None:
        msg = "store unavailable"
        raise ResourceStoreError(msg)

    async def delete(self, plugin_name: str, kind: str, uid: str) -> None:
        msg = "store unavailable"
        raise ResourceStoreError(msg)


def read_fixture(name: str) -> str:
    """Return the text of a file under tests/fixtures."""
    return (FIXTURES_DIR / name).read_text()


def make_crd(
    kind: str,
    plural: str | None = None,
    spec: dict[str, Any] | None = None,
    status: dict[str, Any] | None = None,
    scope: str = "Namespaced",
    group: str = "example.io",
    versions: list[dict[str, Any]] | None = None,
) -> dict[str, Any]:
    """Build a CRD document with one storage version.

    ``spec`` and ``status`` are OpenAPI object schemas; ``versions``
    replaces the generated version list entirely.
    """
    properties: dict[str, Any] = {}
    if spec is not None:
        properties["spec"] = spec
    if status is not None:
        properties["status"] = status
    return {
        "apiVersion": "apiextensions.k8s.io/v1",
        "kind": "CustomResourceDefinition",
        "spec": {
            "group": group,
            "names": {"kind": kind, "plural": plural or f"{kind.lower()}s"},
            "scope": scope,
            "versions": versions
            if versions is not None
            else [
                {
                    "name": "v1",
                    "served": True,
                    "storage": True,
                    "schema": {"openAPIV3Schema": {"type": "object", "properties": properties}},
                }
            ],
        },
    }


def make_bundle(name: str, crds: list[Any], **sections: Any) -> dict[str, Any]:
    """Build a plugin bundle document; ``sections`` adds menu, uiHints, etc."""
    return {
        "apiVersion": "console.platform.io/v1",
        "kind": "PluginDefinition",
        "metadata": {"name": name, "displayName": name.title()},
        "crds": crds,
        **sections,
    }


def bundle_text(bundle: dict[str, Any]) -> str:
    """Serialize a bundle document to YAML."""
    return yaml.dump(bundle, default_flow_style=False, sort_keys=False)


def load_registry(*sources: StaticSource) -> PluginRegistry:
    """Create a registry over ``sources`` and load it."""
    registry = PluginRegistry(list(sources))
    asyncio.run(registry.load())
    return registry


@pytest.fixture
def cert_manager_text() -> str:
    """Provide the cert-manager sample bundle."""
    return read_fixture("cert-manager.yaml")


@pytest.fixture
def widgets_text() -> str:
    """Provide the widgets sample bundle (declares a list override)."""
    return read_fixture("widgets.yaml")


@pytest.fixture
def resource_seed() -> dict[str, Any]:
    """Provide the sample resource instances."""
    return yaml.safe_load(read_fixture("resources.yaml"))


@pytest.fixture
def registry(cert_manager_text: str, widgets_text: str) -> PluginRegistry:
    """Provide a registry loaded with the cert-manager and widgets bundles."""
    return load_registry(
        StaticSource("cert-manager.yaml", cert_manager_text),
        StaticSource("widgets.yaml", widgets_text),
    )


@pytest.fixture
def store(resource_seed: dict[str, Any]) -> InMemoryResourceStore:
    """Provide an in-memory store seeded with the sample resources."""
    return InMemoryResourceStore(resource_seed)


@pytest.fixture
def services(registry: PluginRegistry, store: InMemoryResourceStore) -> ViewServices:
    """Provide view services over the sample registry and store."""
    return ViewServices(registry=registry, store=store)


@pytest.fixture
def console_home(tmp_path: Path, monkeypatch: pytest.MonkeyPatch) -> Path:
    """Provide an initialized console home with both sample bundles and resources."""
    home = tmp_path / "crdkit-home"
    home.mkdir()
    shutil.copy(FIXTURES_DIR / "cert-manager.yaml", home / "cert-manager.yaml")
    shutil.copy(FIXTURES_DIR / "widgets.yaml", home / "widgets.yaml")
    shutil.copy(FIXTURES_DIR / "resources.yaml", home / "resources.yaml")
    result = init_console_home(home, bundles=["cert-manager.yaml", "widgets.yaml"])
    assert result.is_valid, result.errors
    monkeypatch.setenv("CRDKIT_HOME", str(home))
    return home


@pytest.fixture
def cli_runner() -> CliRunner:
    """Provide a Typer CLI test runner."""
    return CliRunner()
