"""Rich output formatting for the mapper-engine CLI.

All functions write to a :class:`rich.console.Console` instance (typically
bound to *stderr*) so that machine-readable output on *stdout* is never
polluted with human-readable decoration.
"""

from __future__ import annotations

from typing import TYPE_CHECKING, Any

from rich.panel import Panel
from rich.table import Table

if TYPE_CHECKING:
    from rich.console import Console

    from mapper_engine.session.configuration import Configuration


def _qualified_name(cls: type | None) -> str:
    if cls is None:
        return "-"
    return f"{cls.__module__}.{cls.__qualname__}"


# ---------------------------------------------------------------------------
# Configuration summary
# ---------------------------------------------------------------------------


def display_configuration_summary(console: Console, configuration: Configuration, source: str) -> None:
    """Render an overview panel for an assembled configuration.

    Parameters
    ----------
    console:
        Rich console to write to (typically stderr).
    configuration:
        The parsed configuration.
    source:
        Where the configuration document was read from.
    """
    environment = configuration.environment
    data_source = environment.data_source.url.render_as_string(hide_password=True) if environment else "(none)"
    lines = [
        f"[bold]Document:[/bold]     {source}",
        f"[bold]Environment:[/bold]  {configuration.environment_id or '(none)'}",
        f"[bold]Data source:[/bold]  {data_source}",
        f"[bold]Database id:[/bold]  {configuration.database_id or '(none)'}",
        f"[bold]Statements:[/bold]   {len(configuration.mapped_statements.qualified())}",
        f"[bold]Mappers:[/bold]      {len(configuration.mapper_registry.mappers)}",
        f"[bold]Plugins:[/bold]      {len(configuration.interceptor_chain)}",
    ]
    console.print(Panel("\n".join(lines), title="Mapper Configuration", border_style="blue"))


# ---------------------------------------------------------------------------
# Statements
# ---------------------------------------------------------------------------


def display_statements(console: Console, configuration: Configuration) -> None:
    """Render every mapped statement as a table sorted by id."""
    statements = configuration.mapped_statements.qualified()
    if not statements:
        console.print("[dim]No mapped statements.[/dim]")
        return

    table = Table(title="Mapped Statements", show_lines=False)
    table.add_column("Id", style="cyan", no_wrap=True)
    table.add_column("Command")
    table.add_column("Result type")
    table.add_column("Database id")
    table.add_column("Cached", justify="center")
    table.add_column("Resource", style="dim")

    for statement_id in sorted(statements):
        ms = statements[statement_id]
        cached = "[green]yes[/green]" if ms.cache is not None and ms.should_use_cache else "no"
        table.add_row(
            statement_id,
            ms.command_type.value,
            _qualified_name(ms.result_type),
            ms.database_id or "-",
            cached,
            ms.resource,
        )
    console.print(table)


# ---------------------------------------------------------------------------
# Settings
# ---------------------------------------------------------------------------


def _format_value(value: Any) -> str:
    if isinstance(value, frozenset):
        return ", ".join(sorted(value))
    if hasattr(value, "value"):
        return str(value.value)
    return str(value)


def display_settings(console: Console, configuration: Configuration) -> None:
    """Render the effective settings and the pluggable component classes."""
    table = Table(title="Settings")
    table.add_column("Setting", style="cyan")
    table.add_column("Value")

    for name, value in sorted(configuration.setting_values().items()):
        table.add_row(name, _format_value(value))

    table.add_row("vfsImpl", _qualified_name(configuration.vfs_impl))
    table.add_row("logImpl", _qualified_name(configuration.log_impl))
    table.add_row("defaultScriptingLanguage", _qualified_name(configuration.default_scripting_language))
    table.add_row("defaultEnumTypeHandler", _qualified_name(configuration.default_enum_type_handler))
    console.print(table)
