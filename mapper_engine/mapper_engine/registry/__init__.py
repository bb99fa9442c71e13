"""Keyed registries owned by a configuration."""

from __future__ import annotations

from mapper_engine.registry.mapper import MapperProxy, MapperRegistry, delete, insert, mapper, select, update
from mapper_engine.registry.type_alias import TypeAliasRegistry, alias
from mapper_engine.registry.type_handler import TypeHandler, TypeHandlerRegistry

__all__ = [
    "MapperProxy",
    "MapperRegistry",
    "TypeAliasRegistry",
    "TypeHandler",
    "TypeHandlerRegistry",
    "alias",
    "delete",
    "insert",
    "mapper",
    "select",
    "update",
]
