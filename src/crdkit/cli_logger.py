"""CLI output utilities for consistent messaging."""

from rich.console import Console, RenderableType

_console = Console()

_LEVEL_STYLES = {
    "success": "[green]✓[/green]",
    "info": "[blue]i[/blue]",
    "warning": "[yellow]![/yellow]",
    "error": "[red]✗[/red]",
}


def console() -> Console:
    """Return the shared console (used for tables and log handlers)."""
    return _console


def success(message: str) -> None:
    """Print a success message with green checkmark."""
    _console.print(f"{_LEVEL_STYLES['success']} {message}")


def error(message: str) -> None:
    """Print an error message with red X."""
    _console.print(f"{_LEVEL_STYLES['error']} {message}")


def warning(message: str) -> None:
    """Print a warning message with yellow exclamation."""
    _console.print(f"{_LEVEL_STYLES['warning']} {message}")


def info(message: str) -> None:
    """Print an info message (no prefix)."""
    _console.print(message)


def dim(message: str) -> None:
    """Print a dimmed message (for secondary info)."""
    _console.print(f"[dim]{message}[/dim]")


def report(level: str, message: str) -> None:
    """Print a view message using the marker for its level."""
    marker = _LEVEL_STYLES.get(level, "")
    _console.print(f"{marker} {message}".strip())


def render(renderable: RenderableType) -> None:
    """Print a rich renderable (table, tree, panel)."""
    _console.print(renderable)
