"""mapper-engine CLI application -- Typer-based developer interface.

Provides commands to validate a configuration document and to inspect what
it assembles into.  Human-readable output goes to *stderr* via Rich; with
``--json`` a machine-readable summary is written to *stdout* so that
pipelines can compose cleanly.

Exit codes: ``0`` success, ``3`` the configuration could not be assembled.
"""

from __future__ import annotations

import json
import logging
import sys
from pathlib import Path
from typing import TYPE_CHECKING, Any

import typer
from rich.console import Console

from mapper_engine.cli.display import display_configuration_summary, display_settings, display_statements

if TYPE_CHECKING:
    from mapper_engine.session.configuration import Configuration

# ---------------------------------------------------------------------------
# App & global state
# ---------------------------------------------------------------------------

app = typer.Typer(
    name="mapper-engine",
    help="mapper-engine - validate and inspect SQL mapper configurations",
    no_args_is_help=True,
)
console = Console(stderr=True)

# Mutable global options populated by the Typer callback.
_json_output: bool = False


# ---------------------------------------------------------------------------
# Callback -- global options
# ---------------------------------------------------------------------------


@app.callback()
def _global_options(
    json_mode: bool = typer.Option(
        False,
        "--json/--no-json",
        help="Emit structured JSON to stdout instead of human-readable output.",
    ),
    log_level: str | None = typer.Option(
        None,
        "--log-level",
        help="Python log level for engine diagnostics (DEBUG, INFO, WARNING, ...).",
        envvar="MAPPER_LOG_LEVEL",
    ),
) -> None:
    """Global options applied to every command."""
    from mapper_engine.config import load_settings

    global _json_output  # noqa: PLW0603
    _json_output = json_mode

    overrides: dict[str, Any] = {"log_level": log_level} if log_level else {}
    settings = load_settings(**overrides)
    logging.basicConfig(level=settings.log_level, stream=sys.stderr, format="%(levelname)s %(name)s: %(message)s")


# ---------------------------------------------------------------------------
# Helpers
# ---------------------------------------------------------------------------


def _parse_properties(values: list[str] | None) -> dict[str, str]:
    """Parse repeated ``KEY=VALUE`` options, raising on malformed entries."""
    properties: dict[str, str] = {}
    for item in values or []:
        key, sep, value = item.partition("=")
        if not sep or not key.strip():
            console.print(f"[red]Invalid property '{item}': expected KEY=VALUE[/red]")
            raise typer.Exit(code=3)
        properties[key.strip()] = value
    return properties


def _build_configuration(config: Path | None, env: str | None, properties: dict[str, str]) -> tuple[Configuration, Path]:
    from mapper_engine.builder.config_builder import ConfigurationBuilder
    from mapper_engine.config import load_settings
    from mapper_engine.errors import BuilderError

    overrides: dict[str, Any] = {}
    if config is not None:
        overrides["config_path"] = config
    if env is not None:
        overrides["environment"] = env
    settings = load_settings(**overrides)

    path = settings.config_path
    if not path.is_file():
        console.print(f"[red]Configuration document not found: {path}[/red]")
        raise typer.Exit(code=3)

    try:
        builder = ConfigurationBuilder(
            path,
            environment=settings.environment,
            properties=properties,
            base_path=settings.resolved_base_path(),
        )
        return builder.parse(), path
    except BuilderError as exc:
        console.print(f"[red]Invalid configuration:[/red]\n{exc}")
        raise typer.Exit(code=3) from exc


def _summary(configuration: Configuration, path: Path) -> dict[str, Any]:
    return {
        "document": str(path),
        "environment": configuration.environment_id,
        "database_id": configuration.database_id,
        "statements": sorted(configuration.mapped_statements.qualified()),
        "mappers": sorted(f"{m.__module__}.{m.__qualname__}" for m in configuration.mapper_registry.mappers),
        "plugins": [type(i).__name__ for i in configuration.interceptor_chain.interceptors],
    }


# ---------------------------------------------------------------------------
# validate
# ---------------------------------------------------------------------------

_CONFIG_ARGUMENT = typer.Argument(
    None,
    help="Path to the configuration document (defaults to MAPPER_CONFIG_PATH).",
    dir_okay=False,
)
_ENV_OPTION = typer.Option(None, "--env", "-e", help="Environment id to activate.")
_PROPERTY_OPTION = typer.Option(None, "--property", "-p", help="Override a document property (KEY=VALUE).")


@app.command()
def validate(
    config: Path | None = _CONFIG_ARGUMENT,
    env: str | None = _ENV_OPTION,
    prop: list[str] | None = _PROPERTY_OPTION,
) -> None:
    """Assemble the configuration document and report whether it is valid."""
    configuration, path = _build_configuration(config, env, _parse_properties(prop))
    configuration.seal()

    if _json_output:
        sys.stdout.write(json.dumps({"valid": True, **_summary(configuration, path)}, indent=2) + "\n")
        return
    count = len(configuration.mapped_statements.qualified())
    console.print(f"[green]Configuration is valid[/green] ({count} statements, environment {configuration.environment_id or '(none)'})")


# ---------------------------------------------------------------------------
# inspect
# ---------------------------------------------------------------------------


@app.command()
def inspect(
    config: Path | None = _CONFIG_ARGUMENT,
    env: str | None = _ENV_OPTION,
    prop: list[str] | None = _PROPERTY_OPTION,
    show_settings: bool = typer.Option(False, "--settings", help="Also list the effective settings."),
) -> None:
    """Show the environment, mapped statements and settings of a configuration."""
    configuration, path = _build_configuration(config, env, _parse_properties(prop))

    if _json_output:
        summary = _summary(configuration, path)
        if show_settings:
            summary["settings"] = configuration.setting_values()
        sys.stdout.write(json.dumps(summary, indent=2, sort_keys=True, default=_json_default) + "\n")
        return

    display_configuration_summary(console, configuration, str(path))
    display_statements(console, configuration)
    if show_settings:
        display_settings(console, configuration)


def _json_default(value: Any) -> Any:
    if isinstance(value, frozenset):
        return sorted(value)
    return str(getattr(value, "value", value))
