"""Override components and view dispatch.

Plugins may name a custom component for any (kind, view kind) pair in
their ``customComponents`` section. Names resolve through a
ComponentRegistry of lazy loaders; only names registered in code or
declared as ``crdkit.components`` entry points can be instantiated. When a
name is missing or does not resolve, the generic view is used.
"""

import inspect
import logging
from collections.abc import Awaitable, Callable
from dataclasses import dataclass
from importlib.metadata import entry_points
from typing import Any

from crdkit.definition import ViewKind
from crdkit.views import GENERIC_VIEWS, ViewContext, ViewServices

logger = logging.getLogger(__name__)

ENTRY_POINT_GROUP = "crdkit.components"

ViewFactory = Callable[[ViewContext, ViewServices], Any]
ComponentLoader = Callable[[], ViewFactory | None | Awaitable[ViewFactory | None]]


class ComponentRegistry:
    """Maps override component names to lazy loaders."""

    def __init__(self) -> None:
        self._loaders: dict[str, ComponentLoader] = {}

    def register(self, name: str, loader: ComponentLoader) -> None:
        """Register a loader; the latest registration for a name wins."""
        if name in self._loaders:
            logger.debug("Replacing component loader '%s'", name)
        self._loaders[name] = loader

    def has(self, name: str) -> bool:
        """Check if a component name is registered."""
        return name in self._loaders

    def names(self) -> list[str]:
        """Return the registered names, sorted."""
        return sorted(self._loaders)

    async def resolve(self, name: str) -> ViewFactory | None:
        """Run the loader for ``name``.

        Loaders may be plain callables or coroutine functions.

        Returns:
            The view factory, or None if the name is not registered or its
            loader yields nothing.
        """
        loader = self._loaders.get(name)
        if loader is None:
            return None
        factory = loader()
        if inspect.isawaitable(factory):
            factory = await factory
        return factory

    def register_entry_points(self, group: str = ENTRY_POINT_GROUP) -> int:
        """Register every entry point of ``group`` without importing it.

        Returns:
            Number of entry points registered.
        """
        count = 0
        for entry_point in entry_points(group=group):
            self.register(entry_point.name, entry_point.load)
            count += 1
        if count:
            logger.info("Registered %d component(s) from entry points", count)
        return count


@dataclass(frozen=True)
class DispatchResult:
    """The view chosen for a route and the override that produced it, if any."""

    view: Any
    override: str | None = None


class ViewDispatcher:
    """Chooses between a plugin's override component and the generic view."""

    def __init__(self, services: ViewServices, components: ComponentRegistry) -> None:
        self.services = services
        self.components = components

    def override_name(self, context: ViewContext, view_kind: ViewKind) -> str | None:
        """Return the override declared for the route's kind and view, if any."""
        registry = self.services.registry
        plugin = registry.get(context.plugin_name)
        kind = registry.get_kind_by_plural(context.plugin_name, context.resource_kind)
        if plugin is None or kind is None:
            return None
        return plugin.custom_component(kind.kind, view_kind)

    async def dispatch(self, context: ViewContext, view_kind: ViewKind) -> DispatchResult:
        """Instantiate the view for ``context``.

        The declared override is used when it is registered and its loader
        yields a factory; otherwise the generic view for ``view_kind``.
        """
        name = self.override_name(context, view_kind)
        if name is not None:
            factory = await self._load(name)
            if factory is not None:
                logger.debug("Dispatching %s %s to override '%s'", context.resource_kind, view_kind.value, name)
                return DispatchResult(view=factory(context, self.services), override=name)

        logger.debug("Dispatching %s %s to the generic view", context.resource_kind, view_kind.value)
        return DispatchResult(view=GENERIC_VIEWS[view_kind](context, self.services))

    async def _load(self, name: str) -> ViewFactory | None:
        if not self.components.has(name):
            logger.debug("Component '%s' is not registered", name)
            return None
        try:
            factory = await self.components.resolve(name)
        except (ImportError, AttributeError) as e:
            logger.warning("Failed to load component '%s': %s", name, e)
            return None
        if factory is None:
            logger.debug("Component '%s' resolved to nothing", name)
        return factory
