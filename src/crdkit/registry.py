"""Plugin registry for crdkit.

Loads every configured plugin bundle once and answers lookups by plugin
name, resource kind and plural path segment. A bundle that fails to fetch
or parse is dropped without affecting the others.
"""

import asyncio
import logging
from collections.abc import Sequence
from dataclasses import dataclass

from crdkit.definition import (
    DefinitionError,
    PluginDefinition,
    ResourceKindDefinition,
    parse_plugin_bundle,
)
from crdkit.sources import BundleSource

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class LoadFailure:
    """A bundle source that could not be loaded."""

    location: str
    reason: str


class PluginRegistry:
    """Load-once cache of plugin definitions.

    Lookups before ``load()`` completes see an empty registry; the loaded
    plugin set is swapped in with a single assignment.
    """

    def __init__(self, sources: Sequence[BundleSource]) -> None:
        self._sources = tuple(sources)
        self._plugins: tuple[PluginDefinition, ...] = ()
        self._failures: tuple[LoadFailure, ...] = ()
        self._loaded = False
        self._loading: asyncio.Task[None] | None = None

    @property
    def loaded(self) -> bool:
        """Return True once a load has completed."""
        return self._loaded

    @property
    def plugins(self) -> tuple[PluginDefinition, ...]:
        """Return the loaded plugins in source order."""
        return self._plugins

    @property
    def failures(self) -> tuple[LoadFailure, ...]:
        """Return the sources that failed during the last load."""
        return self._failures

    async def load(self) -> None:
        """Fetch and parse every bundle source concurrently.

        Idempotent: once loaded this is a no-op, and callers that arrive
        while a load is in flight wait for that same load. Cancelling one
        caller does not cancel the shared load.
        """
        if self._loaded:
            return
        if self._loading is None:
            self._loading = asyncio.create_task(self._load_all())
            self._loading.add_done_callback(self._clear_loading)
        await asyncio.shield(self._loading)

    def _clear_loading(self, task: asyncio.Task[None]) -> None:
        if self._loading is task:
            self._loading = None

    async def _load_all(self) -> None:
        results = await asyncio.gather(
            *(self._load_one(source) for source in self._sources),
            return_exceptions=True,
        )

        plugins: list[PluginDefinition] = []
        failures: list[LoadFailure] = []
        seen: set[str] = set()
        for source, result in zip(self._sources, results, strict=True):
            if isinstance(result, BaseException):
                if not isinstance(result, Exception):
                    raise result
                logger.warning("Skipping plugin bundle %s: %s", source.location, result)
                failures.append(LoadFailure(source.location, str(result)))
                continue
            if result.name in seen:
                reason = f"duplicate plugin name '{result.name}'"
                logger.warning("Skipping plugin bundle %s: %s", source.location, reason)
                failures.append(LoadFailure(source.location, reason))
                continue
            seen.add(result.name)
            plugins.append(result)

        self._plugins, self._failures = tuple(plugins), tuple(failures)
        self._loaded = True
        logger.info(
            "Loaded %d plugin(s) from %d source(s)", len(plugins), len(self._sources)
        )

    async def _load_one(self, source: BundleSource) -> PluginDefinition:
        """Fetch and parse one bundle; failures propagate to the gather."""
        text = await source.fetch()
        try:
            return parse_plugin_bundle(text)
        except DefinitionError as e:
            raise DefinitionError(f"{source.location}: {e}") from e

    def get(self, plugin_name: str) -> PluginDefinition | None:
        """Get a plugin by name."""
        return next((p for p in self._plugins if p.name == plugin_name), None)

    def has(self, plugin_name: str) -> bool:
        """Check if a plugin is loaded."""
        return self.get(plugin_name) is not None

    def get_kind(self, plugin_name: str, kind: str) -> ResourceKindDefinition | None:
        """Get a resource kind of a plugin by kind name."""
        plugin = self.get(plugin_name)
        return plugin.get_kind(kind) if plugin is not None else None

    def get_kind_by_plural(self, plugin_name: str, plural: str) -> ResourceKindDefinition | None:
        """Get a resource kind of a plugin by plural path segment."""
        plugin = self.get(plugin_name)
        return plugin.get_kind_by_plural(plural) if plugin is not None else None
