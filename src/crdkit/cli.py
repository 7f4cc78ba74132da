"""crdkit CLI entry point."""

import asyncio
import logging
import sys
from dataclasses import dataclass
from pathlib import Path
from typing import Annotated, Any

import typer
import yaml
from rich.logging import RichHandler
from rich.table import Table
from rich.tree import Tree

from crdkit import __version__, cli_logger, exit_codes
from crdkit.components import ComponentRegistry, DispatchResult, ViewDispatcher
from crdkit.config import (
    ConfigError,
    ConsoleConfig,
    ConsoleHomeNotInitializedError,
    get_console_home,
    init_console_home,
    load_config,
    require_console_home,
)
from crdkit.definition import Badge, ViewKind
from crdkit.errors import handle_cli_error
from crdkit.formatting import EMPTY_DISPLAY, stringify
from crdkit.navigation import NavigationProjector
from crdkit.registry import PluginRegistry
from crdkit.schema_model import iter_nodes
from crdkit.store import ResourceStoreError
from crdkit.views import (
    CreateView,
    DetailPage,
    DetailView,
    DisplayValue,
    EditView,
    ListPage,
    ListView,
    ResourceView,
    ViewContext,
    ViewServices,
)

app = typer.Typer(
    name="crdkit",
    help="Schema-driven console for plugin-contributed Kubernetes resource kinds.",
    no_args_is_help=True,
)


@dataclass
class ConsoleSession:
    """Everything a command needs once the console home is opened."""

    home: Path
    config: ConsoleConfig
    registry: PluginRegistry
    services: ViewServices
    components: ComponentRegistry

    @property
    def dispatcher(self) -> ViewDispatcher:
        return ViewDispatcher(self.services, self.components)


def require_initialized_home() -> Path:
    """Get the console home and verify it is initialized.

    Raises:
        typer.Exit: With HOME_NOT_INITIALIZED if the home is not initialized.
    """
    home = get_console_home()
    try:
        require_console_home(home)
    except ConsoleHomeNotInitializedError as e:
        cli_logger.error(f"Console home not initialized at {e.path}")
        for error in e.errors:
            cli_logger.dim(f"  - {error}")
        cli_logger.info("  Run [bold]crdkit init[/bold] first.")
        raise typer.Exit(exit_codes.HOME_NOT_INITIALIZED) from e

    return home


def open_session() -> ConsoleSession:
    """Open the console home: config, resource store and component registry.

    Raises:
        typer.Exit: If the home, its config or the resource file is unusable.
    """
    home = require_initialized_home()
    try:
        config = load_config(home)
    except ConfigError as e:
        cli_logger.error(str(e))
        raise typer.Exit(exit_codes.GENERAL_ERROR) from e

    try:
        store = config.open_store(home)
    except ResourceStoreError as e:
        cli_logger.error(f"Failed to open resource store: {e}")
        raise typer.Exit(exit_codes.STORE_ERROR) from e

    registry = PluginRegistry(config.bundle_sources(home))
    components = ComponentRegistry()
    components.register_entry_points()
    return ConsoleSession(
        home=home,
        config=config,
        registry=registry,
        services=ViewServices(registry=registry, store=store),
        components=components,
    )


async def load_plugins(session: ConsoleSession) -> None:
    """Load the plugin registry, reporting bundles that were skipped."""
    await session.registry.load()
    for failure in session.registry.failures:
        cli_logger.warning(f"Skipped plugin bundle {failure.location}: {failure.reason}")


async def _dispatch(
    session: ConsoleSession, context: ViewContext, view_kind: ViewKind
) -> DispatchResult:
    await load_plugins(session)
    result = await session.dispatcher.dispatch(context, view_kind)
    if result.override is not None:
        cli_logger.dim(f"Using custom component '{result.override}'")
    return result


def _report(view: ResourceView) -> None:
    if view.message is not None:
        cli_logger.report(view.message.level, view.message.text)


def _exit_for_view(view: ResourceView) -> typer.Exit:
    """Return the exit matching the reason a view could not proceed."""
    _report(view)
    if view.kind is None:
        return typer.Exit(exit_codes.PLUGIN_NOT_FOUND)
    if view.not_found:
        return typer.Exit(exit_codes.RESOURCE_NOT_FOUND)
    return typer.Exit(exit_codes.STORE_ERROR)


def _require_view(result: DispatchResult, expected: type[ResourceView]) -> Any:
    if not isinstance(result.view, expected):
        cli_logger.error(f"Custom component '{result.override}' cannot be used from the command line")
        raise typer.Exit(exit_codes.GENERAL_ERROR)
    return result.view


def parse_assignment(text: str) -> tuple[str, Any]:
    """Parse ``path=value``; the value is read as a YAML scalar.

    Raises:
        typer.BadParameter: If there is no ``=`` or the path is empty.
    """
    path, sep, raw = text.partition("=")
    if not sep or not path.strip():
        msg = f"Expected PATH=VALUE, got '{text}'"
        raise typer.BadParameter(msg)
    try:
        value = yaml.safe_load(raw) if raw else ""
    except yaml.YAMLError as e:
        msg = f"Invalid value for '{path}': {e}"
        raise typer.BadParameter(msg) from e
    return path.strip(), value


def _read_values_file(path: Path) -> dict[str, Any]:
    try:
        data = yaml.safe_load(path.read_text())
    except yaml.YAMLError as e:
        msg = f"Invalid YAML in '{path}': {e}"
        raise typer.BadParameter(msg) from e
    if data is None:
        return {}
    if not isinstance(data, dict):
        msg = f"'{path}' must contain a mapping of spec fields"
        raise typer.BadParameter(msg)
    return data


def _apply_values(view: CreateView | EditView, values_file: Path | None, assignments: list[str]) -> None:
    ignored: list[str] = []
    if values_file is not None:
        ignored.extend(view.merge_values(_read_values_file(values_file)))
    for assignment in assignments:
        path, value = parse_assignment(assignment)
        try:
            applied = view.set_value(path, value)
        except ValueError as e:
            raise typer.BadParameter(str(e)) from e
        if not applied:
            ignored.append(path)

    for path in ignored:
        cli_logger.warning(f"Ignoring '{path}': not an editable field of {view.singular_label}")


def _configure_logging(verbose: bool) -> None:
    logging.basicConfig(
        level=logging.DEBUG if verbose else logging.WARNING,
        format="%(message)s",
        handlers=[RichHandler(console=cli_logger.console(), show_path=False)],
        force=True,
    )


def version_callback(value: bool) -> None:
    """Show version and exit."""
    if value:
        cli_logger.info(f"crdkit {__version__}")
        raise typer.Exit()


@app.callback()
def main(
    version: bool = typer.Option(
        False,
        "--version",
        "-V",
        callback=version_callback,
        is_eager=True,
        help="Show crdkit version and exit.",
    ),
    verbose: bool = typer.Option(
        False,
        "--verbose",
        "-v",
        help="Log loading and dispatch details.",
    ),
) -> None:
    """Schema-driven console for plugin-contributed Kubernetes resource kinds."""
    _configure_logging(verbose)


@app.command()
def init(
    directory: Annotated[
        Path | None,
        typer.Argument(
            help="Target directory to initialize. Defaults to CRDKIT_HOME or ~/.crdkit/",
        ),
    ] = None,
    bundles: Annotated[
        list[str] | None,
        typer.Option(
            "--bundle",
            "-b",
            help="Plugin bundle path or URL to register (repeatable).",
        ),
    ] = None,
) -> None:
    """Initialize the console home directory.

    Creates the directory and a default config.yaml. If already
    initialized, this is a no-op.
    """
    target = directory if directory else get_console_home()

    result = init_console_home(target, bundles=bundles)

    if result.is_valid:
        cli_logger.success(f"Console home initialized at {target}")
        raise typer.Exit(exit_codes.SUCCESS)
    else:
        cli_logger.error(f"Failed to initialize console home at {target}")
        for error in result.errors:
            cli_logger.dim(f"  • {error}")
        raise typer.Exit(exit_codes.GENERAL_ERROR)


@app.command()
def plugins() -> None:
    """List the loaded plugins and the resource kinds they contribute."""
    session = open_session()
    asyncio.run(load_plugins(session))

    if not session.registry.plugins:
        cli_logger.info("No plugins loaded.")
        raise typer.Exit(exit_codes.SUCCESS)

    table = Table(show_header=True, header_style="bold")
    table.add_column("NAME", style="cyan")
    table.add_column("DISPLAY NAME")
    table.add_column("VERSION")
    table.add_column("KINDS")
    for plugin in session.registry.plugins:
        kinds = ", ".join(f"{k.kind} ({k.plural})" for k in plugin.kinds)
        table.add_row(plugin.name, plugin.metadata.display_name, plugin.metadata.version or "-", kinds)
    cli_logger.render(table)


@app.command()
def nav(
    scope: Annotated[
        str,
        typer.Option(
            "--scope",
            help="Navigation placement: organization or project.",
        ),
    ] = "organization",
) -> None:
    """Show the navigation entries contributed by plugins."""
    if scope not in ("organization", "project"):
        cli_logger.error(f"Unknown scope '{scope}' (expected organization or project)")
        raise typer.Exit(exit_codes.INVALID_ARGS)

    session = open_session()
    asyncio.run(load_plugins(session))

    groups = NavigationProjector(session.registry).nav(scope)
    if not groups:
        cli_logger.info(f"No {scope} navigation entries.")
        raise typer.Exit(exit_codes.SUCCESS)

    tree = Tree(f"[bold]{scope.capitalize()}[/bold]")
    for group in groups:
        branch = tree.add(f"[cyan]{group.display_name}[/cyan]")
        for item in group.items:
            branch.add(f"{item.label} [dim]{'/'.join(item.route)}[/dim]")
    cli_logger.render(tree)


@app.command()
def schema(
    plugin: Annotated[str, typer.Argument(help="Plugin name.")],
    plural: Annotated[str, typer.Argument(help="Plural name of the resource kind.")],
) -> None:
    """Show the spec schema of a resource kind."""
    session = open_session()
    asyncio.run(load_plugins(session))

    kind = session.registry.get_kind_by_plural(plugin, plural)
    if kind is None:
        cli_logger.error(f"Unknown resource kind '{plural}' in plugin '{plugin}'")
        raise typer.Exit(exit_codes.PLUGIN_NOT_FOUND)

    cli_logger.info(f"[bold]{kind.kind}[/bold] {kind.api_version} ({kind.scope.value})")
    table = Table(show_header=True, header_style="bold")
    table.add_column("FIELD", style="cyan")
    table.add_column("TYPE")
    table.add_column("REQUIRED")
    table.add_column("DEFAULT")
    table.add_column("DESCRIPTION")

    required_paths = {
        f"{path}.{name}" if path else name
        for path, node in iter_nodes(kind.spec_schema)
        if node.type == "object"
        for name in node.required
    }
    for path, node in iter_nodes(kind.spec_schema):
        if not path:
            continue
        default = stringify(node.default) if node.has_default else "-"
        table.add_row(
            path,
            node.type,
            "yes" if path in required_paths else "",
            default,
            node.description or "",
        )
    cli_logger.render(table)


@app.command("list")
def list_resources(
    plugin: Annotated[str, typer.Argument(help="Plugin name.")],
    plural: Annotated[str, typer.Argument(help="Plural name of the resource kind.")],
) -> None:
    """List the instances of a resource kind."""
    session = open_session()
    page = asyncio.run(_list(session, ViewContext(plugin, plural)))
    _print_list(page)


async def _list(session: ConsoleSession, context: ViewContext) -> ListPage:
    view: ListView = _require_view(await _dispatch(session, context, ViewKind.LIST), ListView)
    page = await view.load()
    if page is None:
        raise _exit_for_view(view)
    return page


_BADGE_COLORS = {
    "success": "green",
    "warning": "yellow",
    "danger": "red",
    "error": "red",
    "info": "blue",
}


def _badge_markup(badge: Badge) -> str:
    """Color a badge label by the style class it declares (e.g. badge-success)."""
    color = next((c for key, c in _BADGE_COLORS.items() if key in badge.badge), "bold")
    return f"[{color}]{badge.label}[/{color}]"


def _print_list(page: ListPage) -> None:
    if not page.rows:
        cli_logger.info(f"No {page.title.lower()} found.")
        return

    table = Table(show_header=True, header_style="bold", title=page.title)
    table.add_column("UID", style="dim")
    table.add_column("NAME", style="cyan")
    if page.namespaced:
        table.add_column("NAMESPACE")
    for column in page.columns:
        table.add_column(column.name.upper())
    for row in page.rows:
        cells = [
            _badge_markup(cell.badge) if cell.badge else cell.text
            for cell in row.cells
        ]
        leading = [row.uid, row.name]
        if page.namespaced:
            leading.append(row.namespace or EMPTY_DISPLAY)
        table.add_row(*leading, *cells)
    cli_logger.render(table)


@app.command()
def show(
    plugin: Annotated[str, typer.Argument(help="Plugin name.")],
    plural: Annotated[str, typer.Argument(help="Plural name of the resource kind.")],
    uid: Annotated[str, typer.Argument(help="Instance uid.")],
) -> None:
    """Show one instance with its spec and status."""
    session = open_session()
    page = asyncio.run(_show(session, ViewContext(plugin, plural, uid)))
    _print_detail(page)


async def _show(session: ConsoleSession, context: ViewContext) -> DetailPage:
    view: DetailView = _require_view(await _dispatch(session, context, ViewKind.DETAIL), DetailView)
    page = await view.load()
    if page is None:
        raise _exit_for_view(view)
    return page


def _add_display_value(tree: Tree, value: DisplayValue) -> None:
    if not value.children:
        tree.add(f"[bold]{value.label}[/bold]: {value.text}")
        return
    branch = tree.add(f"[bold]{value.label}[/bold]")
    for child in value.children:
        _add_display_value(branch, child)


def _print_detail(page: DetailPage) -> None:
    title = f"[bold]{page.title}[/bold] [dim]{page.kind}[/dim]"
    if page.badge is not None:
        title += f" {_badge_markup(page.badge)}"
    tree = Tree(title)

    metadata = page.resource.metadata
    meta_branch = tree.add("[cyan]Metadata[/cyan]")
    meta_branch.add(f"[bold]Uid[/bold]: {metadata.uid}")
    if metadata.namespace:
        meta_branch.add(f"[bold]Namespace[/bold]: {metadata.namespace}")
    meta_branch.add(f"[bold]Created[/bold]: {metadata.creation_timestamp or EMPTY_DISPLAY}")

    for group in page.groups:
        branch = tree.add(f"[cyan]{group.name}[/cyan]")
        for value in group.fields:
            _add_display_value(branch, value)

    status_values = [value for value in page.status if value.display != "conditions"]
    if status_values:
        branch = tree.add("[cyan]Status[/cyan]")
        for value in status_values:
            _add_display_value(branch, value)
    cli_logger.render(tree)

    if page.conditions:
        table = Table(show_header=True, header_style="bold", title="Conditions")
        table.add_column("TYPE")
        table.add_column("STATUS")
        table.add_column("REASON")
        table.add_column("MESSAGE")
        table.add_column("LAST TRANSITION")
        for condition in page.conditions:
            table.add_row(
                condition.type,
                condition.status,
                condition.reason,
                condition.message,
                condition.last_transition_time,
            )
        cli_logger.render(table)


@app.command()
def create(
    plugin: Annotated[str, typer.Argument(help="Plugin name.")],
    plural: Annotated[str, typer.Argument(help="Plural name of the resource kind.")],
    name: Annotated[str, typer.Option("--name", "-n", help="Resource name.")] = "",
    namespace: Annotated[
        str, typer.Option("--namespace", help="Namespace for namespaced kinds.")
    ] = "default",
    assignments: Annotated[
        list[str] | None,
        typer.Option("--set", "-s", help="Spec value as PATH=VALUE (repeatable)."),
    ] = None,
    values_file: Annotated[
        Path | None,
        typer.Option("--file", "-f", help="YAML file with spec values."),
    ] = None,
) -> None:
    """Create an instance of a resource kind."""
    session = open_session()
    asyncio.run(_create(session, ViewContext(plugin, plural), name, namespace, values_file, assignments or []))


async def _create(
    session: ConsoleSession,
    context: ViewContext,
    name: str,
    namespace: str,
    values_file: Path | None,
    assignments: list[str],
) -> None:
    view: CreateView = _require_view(await _dispatch(session, context, ViewKind.CREATE), CreateView)
    if view.kind is None:
        raise _exit_for_view(view)

    view.form.name = name
    view.form.namespace = namespace
    _apply_values(view, values_file, assignments)

    result = await view.submit()
    _report(view)
    if result is None:
        if view.validation is not None and not view.validation.is_valid:
            raise typer.Exit(exit_codes.VALIDATION_FAILED)
        raise typer.Exit(exit_codes.STORE_ERROR)
    cli_logger.dim(f"  uid: {result.uid}")


@app.command()
def edit(
    plugin: Annotated[str, typer.Argument(help="Plugin name.")],
    plural: Annotated[str, typer.Argument(help="Plural name of the resource kind.")],
    uid: Annotated[str, typer.Argument(help="Instance uid.")],
    assignments: Annotated[
        list[str] | None,
        typer.Option("--set", "-s", help="Spec value as PATH=VALUE (repeatable)."),
    ] = None,
    values_file: Annotated[
        Path | None,
        typer.Option("--file", "-f", help="YAML file with spec values."),
    ] = None,
) -> None:
    """Update the spec of an instance."""
    session = open_session()
    asyncio.run(_edit(session, ViewContext(plugin, plural, uid), values_file, assignments or []))


async def _edit(
    session: ConsoleSession,
    context: ViewContext,
    values_file: Path | None,
    assignments: list[str],
) -> None:
    view: EditView = _require_view(await _dispatch(session, context, ViewKind.EDIT), EditView)
    if await view.load() is None:
        raise _exit_for_view(view)

    _apply_values(view, values_file, assignments)

    result = await view.submit()
    _report(view)
    if result is None:
        if view.validation is not None and not view.validation.is_valid:
            raise typer.Exit(exit_codes.VALIDATION_FAILED)
        raise typer.Exit(exit_codes.STORE_ERROR)


@app.command()
def delete(
    plugin: Annotated[str, typer.Argument(help="Plugin name.")],
    plural: Annotated[str, typer.Argument(help="Plural name of the resource kind.")],
    uid: Annotated[str, typer.Argument(help="Instance uid.")],
    yes: Annotated[
        bool,
        typer.Option("--yes", "-y", help="Skip the confirmation prompt."),
    ] = False,
) -> None:
    """Delete an instance."""
    session = open_session()
    asyncio.run(_delete(session, ViewContext(plugin, plural, uid), yes))


async def _delete(session: ConsoleSession, context: ViewContext, yes: bool) -> None:
    view: DetailView = _require_view(await _dispatch(session, context, ViewKind.DETAIL), DetailView)
    page = await view.load()
    if page is None:
        raise _exit_for_view(view)

    view.request_delete()
    if not yes:
        confirm = typer.confirm(f"Delete {view.singular_label.lower()} '{page.title}'?", default=False)
        if not confirm:
            view.cancel_delete()
            cli_logger.info("Delete cancelled")
            raise typer.Exit(exit_codes.SUCCESS)

    deleted = await view.confirm_delete()
    _report(view)
    if not deleted:
        raise typer.Exit(exit_codes.STORE_ERROR)


@app.command()
def components() -> None:
    """List registered override components and the overrides plugins declare."""
    session = open_session()
    asyncio.run(load_plugins(session))

    names = session.components.names()
    if names:
        cli_logger.info("[bold]Registered components[/bold]")
        for name in names:
            cli_logger.info(f"  {name}")
    else:
        cli_logger.info("No components registered.")

    table = Table(show_header=True, header_style="bold", title="Declared overrides")
    table.add_column("PLUGIN", style="cyan")
    table.add_column("KIND")
    table.add_column("VIEW")
    table.add_column("COMPONENT")
    table.add_column("REGISTERED")
    rows = 0
    for plugin in session.registry.plugins:
        for kind_name, views in plugin.custom_components.items():
            for view_kind, component in views.items():
                registered = "[green]✓[/green]" if session.components.has(component) else "[red]✗[/red]"
                table.add_row(plugin.name, kind_name, view_kind.value, component, registered)
                rows += 1
    if rows:
        cli_logger.render(table)


def main_cli() -> None:
    """CLI entry point with top-level exception handling.

    Wraps the Typer app to catch any unhandled exceptions and format them
    as clean error messages instead of raw tracebacks.
    """
    try:
        app()
    except Exception as e:
        sys.exit(handle_cli_error(e))


if __name__ == "__main__":
    main_cli()
