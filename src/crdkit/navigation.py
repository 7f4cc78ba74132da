"""Navigation entries derived from the loaded plugins.

Each plugin contributes one group per scope containing the menu entries
whose kind it defines and whose ``list`` capability is set.
"""

from dataclasses import dataclass, field
from typing import Literal

from crdkit.definition import MenuItem, PluginDefinition
from crdkit.formatting import kind_to_label
from crdkit.registry import PluginRegistry

NavScope = Literal["organization", "project"]

PLUGIN_RESOURCES_ROUTE = "/plugin-resources"


@dataclass(frozen=True)
class NavItem:
    """One navigable resource kind."""

    label: str
    kind: str
    plural: str
    route: tuple[str, ...]
    icon: str | None = None


@dataclass(frozen=True)
class NavGroup:
    """Navigation entries contributed by one plugin."""

    plugin_name: str
    display_name: str
    icon: str | None = None
    items: tuple[NavItem, ...] = field(default_factory=tuple)


class NavigationProjector:
    """Projects registry contents into navigation groups.

    Groups are recomputed on every call, so they always reflect the
    registry's current plugin set.
    """

    def __init__(self, registry: PluginRegistry) -> None:
        self._registry = registry

    def organization_nav(self) -> list[NavGroup]:
        """Return navigation groups for organization-scope placement."""
        return self._project("organization")

    def project_nav(self) -> list[NavGroup]:
        """Return navigation groups for project-scope placement."""
        return self._project("project")

    def nav(self, scope: NavScope) -> list[NavGroup]:
        """Return navigation groups for ``scope``."""
        return self._project(scope)

    def _project(self, scope: NavScope) -> list[NavGroup]:
        groups = []
        for plugin in self._registry.plugins:
            menu_items: list[MenuItem] = getattr(plugin.menu, scope)
            items = tuple(
                nav_item
                for menu_item in menu_items
                if (nav_item := _nav_item(plugin, menu_item, scope)) is not None
            )
            if items:
                groups.append(
                    NavGroup(
                        plugin_name=plugin.name,
                        display_name=plugin.metadata.display_name,
                        icon=plugin.metadata.icon,
                        items=items,
                    )
                )
        return groups


def _nav_item(plugin: PluginDefinition, menu_item: MenuItem, scope: NavScope) -> NavItem | None:
    """Build the entry for a menu item, or None if it is not listable."""
    kind = plugin.get_kind(menu_item.crd)
    if kind is None or not menu_item.list:
        return None

    if scope == "organization":
        route: tuple[str, ...] = (PLUGIN_RESOURCES_ROUTE, plugin.name, kind.plural)
    else:
        route = (kind.plural,)

    return NavItem(
        label=kind_to_label(kind.kind),
        kind=kind.kind,
        plural=kind.plural,
        route=route,
        icon=menu_item.icon,
    )
