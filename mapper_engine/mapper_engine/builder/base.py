"""Helpers shared by the configuration and mapper document builders."""

from __future__ import annotations

from typing import TYPE_CHECKING, Any

from mapper_engine.errors import BuilderError
from mapper_engine.mapping.sql_type import SqlType

if TYPE_CHECKING:
    from mapper_engine.session.configuration import Configuration


class BaseBuilder:
    def __init__(self, configuration: Configuration) -> None:
        self.configuration = configuration
        self.type_alias_registry = configuration.type_alias_registry
        self.type_handler_registry = configuration.type_handler_registry

    @staticmethod
    def boolean_value_of(value: str | bool | None, default: bool) -> bool:
        if value is None:
            return default
        if isinstance(value, bool):
            return value
        return value.strip().lower() == "true"

    def resolve_sql_type(self, name: str | None) -> SqlType | None:
        if name is None:
            return None
        try:
            return SqlType(name.strip().upper())
        except ValueError as exc:
            raise BuilderError(f"Error resolving SqlType. Cause: {exc}") from exc

    def resolve_class(self, alias: str | None) -> type | None:
        """Resolve *alias* through the type alias registry (dotted paths allowed)."""
        if alias is None:
            return None
        try:
            return self.type_alias_registry.resolve_alias(alias)
        except Exception as exc:
            raise BuilderError(f"Error resolving class. Cause: {exc}") from exc

    def create_instance(self, alias: str | None) -> Any:
        cls = self.resolve_class(alias)
        if cls is None:
            return None
        try:
            return cls()
        except Exception as exc:
            raise BuilderError(f"Error creating instance. Cause: {exc}") from exc
