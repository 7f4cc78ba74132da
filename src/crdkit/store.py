"""Resource instances and the resource store contract.

The engine never owns resource instances; it reads and writes them through
a ResourceStore keyed by (plugin name, kind, uid). Two implementations are
provided: an in-memory store and a YAML-file backed store.
"""

import asyncio
import logging
import uuid
from collections.abc import Mapping
from datetime import UTC, datetime
from pathlib import Path
from typing import Any, Protocol

import yaml
from pydantic import BaseModel, ConfigDict, Field, ValidationError, field_validator

from crdkit.errors import format_validation_errors
from crdkit.formatting import stringify

logger = logging.getLogger(__name__)

ResourceMap = dict[str, dict[str, list["ResourceInstance"]]]
ManifestMap = dict[str, dict[str, list[dict[str, Any]]]]


class ObjectMeta(BaseModel):
    """Kubernetes object metadata of a resource instance."""

    model_config = ConfigDict(populate_by_name=True)

    name: str = Field(description="Resource name")
    namespace: str | None = Field(default=None, description="Namespace (absent if cluster scoped)")
    uid: str = Field(default="", description="Identity assigned by the store")
    creation_timestamp: str = Field(
        default="",
        alias="creationTimestamp",
        description="ISO 8601 creation time assigned by the store",
    )
    labels: dict[str, str] = Field(default_factory=dict)
    annotations: dict[str, str] = Field(default_factory=dict)

    @field_validator("creation_timestamp", mode="before")
    @classmethod
    def normalize_timestamp(cls, v: Any) -> Any:
        """Accept datetimes produced by YAML loaders."""
        if isinstance(v, datetime):
            return stringify(v)
        return v


class ResourceInstance(BaseModel):
    """One custom resource instance."""

    model_config = ConfigDict(populate_by_name=True)

    api_version: str = Field(alias="apiVersion")
    kind: str
    metadata: ObjectMeta
    spec: dict[str, Any] = Field(default_factory=dict)
    status: dict[str, Any] | None = None

    @property
    def uid(self) -> str:
        """Return the store-assigned identity."""
        return self.metadata.uid

    @property
    def name(self) -> str:
        """Return the resource name."""
        return self.metadata.name

    def as_document(self) -> dict[str, Any]:
        """Return the instance as the document path expressions run against.

        ``status`` is always present (empty when the instance has none).
        """
        return {
            "apiVersion": self.api_version,
            "kind": self.kind,
            "metadata": self.metadata.model_dump(by_alias=True, exclude_none=True),
            "spec": self.spec,
            "status": self.status or {},
        }

    def to_manifest(self) -> dict[str, Any]:
        """Serialize with Kubernetes field names, omitting absent fields."""
        return self.model_dump(by_alias=True, exclude_none=True, mode="json")


class ResourceStoreError(Exception):
    """Raised when a store operation fails."""


class ResourceNotFoundError(ResourceStoreError):
    """Raised when an instance does not exist in the store."""

    def __init__(self, plugin_name: str, kind: str, uid: str) -> None:
        """Initialize with the key of the missing instance."""
        self.plugin_name = plugin_name
        self.kind = kind
        self.uid = uid
        super().__init__(f"{kind} '{uid}' not found in plugin '{plugin_name}'")


class ResourceStore(Protocol):
    """CRUD contract over resource instances."""

    async def list(self, plugin_name: str, kind: str) -> list[ResourceInstance]:
        """Return every instance of (plugin, kind)."""
        ...

    async def get(self, plugin_name: str, kind: str, uid: str) -> ResourceInstance | None:
        """Return one instance, or None if it does not exist."""
        ...

    async def create(self, plugin_name: str, kind: str, instance: ResourceInstance) -> str:
        """Store a new instance; the store assigns uid and creation time."""
        ...

    async def update(
        self, plugin_name: str, kind: str, uid: str, instance: ResourceInstance
    ) -> None:
        """Replace an existing instance."""
        ...

    async def delete(self, plugin_name: str, kind: str, uid: str) -> None:
        """Remove an instance."""
        ...


def _new_uid(kind: str) -> str:
    return f"{kind.lower()}-{uuid.uuid4().hex[:12]}"


def _now() -> str:
    return stringify(datetime.now(UTC).replace(microsecond=0))


def parse_resource_map(data: Any) -> ResourceMap:
    """Validate a ``plugin -> kind -> [instance]`` mapping.

    Raises:
        ResourceStoreError: If the data does not have that shape.
    """
    if data is None:
        return {}
    if not isinstance(data, Mapping):
        msg = "Resource data must map plugin names to kinds"
        raise ResourceStoreError(msg)

    resources: ResourceMap = {}
    for plugin_name, kinds in data.items():
        if not isinstance(kinds, Mapping):
            msg = f"Resources of plugin '{plugin_name}' must map kinds to lists"
            raise ResourceStoreError(msg)
        resources[str(plugin_name)] = {}
        for kind, items in kinds.items():
            try:
                resources[str(plugin_name)][str(kind)] = [
                    item.model_copy(deep=True)
                    if isinstance(item, ResourceInstance)
                    else ResourceInstance.model_validate(item)
                    for item in items or []
                ]
            except ValidationError as e:
                msg = f"Invalid {kind} resource in plugin '{plugin_name}': {format_validation_errors(e)}"
                raise ResourceStoreError(msg) from e
    return resources


def dump_resource_map(resources: ResourceMap) -> ManifestMap:
    """Convert a resource map to plain manifests (the YAML file format)."""
    return {
        plugin_name: {kind: [item.to_manifest() for item in items] for kind, items in kinds.items()}
        for plugin_name, kinds in resources.items()
    }


class InMemoryResourceStore:
    """Resource store kept in memory.

    Instances are deep-copied on the way in and out, so callers can never
    alias stored state. Every mutation builds the new state first and then
    commits it in one step. Mutations are serialized by a lock held from the
    copy through the commit.
    """

    def __init__(self, seed: Mapping[str, Any] | None = None) -> None:
        self._resources: ResourceMap = parse_resource_map(seed)
        self._lock = asyncio.Lock()

    async def list(self, plugin_name: str, kind: str) -> list[ResourceInstance]:
        """Return copies of every instance of (plugin, kind)."""
        items = self._resources.get(plugin_name, {}).get(kind, [])
        return [item.model_copy(deep=True) for item in items]

    async def get(self, plugin_name: str, kind: str, uid: str) -> ResourceInstance | None:
        """Return a copy of one instance, or None."""
        for item in self._resources.get(plugin_name, {}).get(kind, []):
            if item.uid == uid:
                return item.model_copy(deep=True)
        return None

    async def create(self, plugin_name: str, kind: str, instance: ResourceInstance) -> str:
        """Store a new instance and return its assigned uid."""
        uid = _new_uid(kind)
        metadata = instance.metadata.model_copy(update={"uid": uid, "creation_timestamp": _now()})
        stored = instance.model_copy(update={"metadata": metadata}, deep=True)

        async with self._lock:
            updated = self._copy_resources()
            updated.setdefault(plugin_name, {}).setdefault(kind, []).append(stored)
            await self._commit(updated)
        logger.debug("Created %s/%s %s", plugin_name, kind, uid)
        return uid

    async def update(
        self, plugin_name: str, kind: str, uid: str, instance: ResourceInstance
    ) -> None:
        """Replace an instance, keeping its uid and creation time.

        Raises:
            ResourceNotFoundError: If the instance does not exist.
        """
        async with self._lock:
            updated = self._copy_resources()
            items = updated.get(plugin_name, {}).get(kind, [])
            for index, item in enumerate(items):
                if item.uid == uid:
                    metadata = instance.metadata.model_copy(
                        update={"uid": uid, "creation_timestamp": item.metadata.creation_timestamp}
                    )
                    items[index] = instance.model_copy(update={"metadata": metadata}, deep=True)
                    await self._commit(updated)
                    return
        raise ResourceNotFoundError(plugin_name, kind, uid)

    async def delete(self, plugin_name: str, kind: str, uid: str) -> None:
        """Remove an instance.

        Raises:
            ResourceNotFoundError: If the instance does not exist.
        """
        async with self._lock:
            updated = self._copy_resources()
            items = updated.get(plugin_name, {}).get(kind, [])
            remaining = [item for item in items if item.uid != uid]
            if len(remaining) == len(items):
                raise ResourceNotFoundError(plugin_name, kind, uid)
            updated[plugin_name][kind] = remaining
            await self._commit(updated)
        logger.debug("Deleted %s/%s %s", plugin_name, kind, uid)

    def dump(self) -> ManifestMap:
        """Return all instances as plain manifests."""
        return dump_resource_map(self._resources)

    def _copy_resources(self) -> ResourceMap:
        # Instances are replaced, never mutated in place, so list copies suffice.
        return {
            plugin: {kind: list(items) for kind, items in kinds.items()}
            for plugin, kinds in self._resources.items()
        }

    async def _commit(self, resources: ResourceMap) -> None:
        self._resources = resources


class YamlResourceStore(InMemoryResourceStore):
    """In-memory store persisted to a YAML file after every mutation.

    The in-memory state only changes once the file has been written.
    """

    def __init__(self, path: Path) -> None:
        self.path = path
        super().__init__(self._read())

    def _read(self) -> Any:
        if not self.path.exists():
            return None
        try:
            return yaml.safe_load(self.path.read_text())
        except yaml.YAMLError as e:
            msg = f"Invalid YAML in '{self.path}': {e}"
            raise ResourceStoreError(msg) from e

    async def _commit(self, resources: ResourceMap) -> None:
        data = dump_resource_map(resources)
        text = yaml.dump(data, default_flow_style=False, sort_keys=False)
        try:
            await asyncio.to_thread(self.path.write_text, text)
        except OSError as e:
            msg = f"Failed to save resources to '{self.path}': {e.strerror or e}"
            raise ResourceStoreError(msg) from e
        await super()._commit(resources)
