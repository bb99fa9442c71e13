"""Case-insensitive table of short names for classes.

Aliases let configuration and mapper documents say ``POOLED`` or ``Blog``
instead of a full dotted class path.  Names are folded to lower case, and a
later registration for an existing alias replaces the earlier one.
"""

from __future__ import annotations

import datetime
import decimal
import logging
from collections.abc import Callable, Mapping
from types import MappingProxyType
from typing import TYPE_CHECKING, Any, TypeVar

from mapper_engine.errors import ConfigurationSealedError, TypeResolutionError
from mapper_engine.io.resources import class_for_name

if TYPE_CHECKING:
    from mapper_engine.io.vfs import VFS

logger = logging.getLogger(__name__)

T = TypeVar("T")

_BUILTIN_ALIASES: dict[str, type] = {
    "str": str,
    "string": str,
    "int": int,
    "integer": int,
    "float": float,
    "bool": bool,
    "boolean": bool,
    "bytes": bytes,
    "decimal": decimal.Decimal,
    "date": datetime.date,
    "datetime": datetime.datetime,
    "time": datetime.time,
    "list": list,
    "dict": dict,
    "map": dict,
    "object": object,
}


def alias(name: str) -> Callable[[type[T]], type[T]]:
    """Class decorator overriding the alias used by package scans."""

    def decorator(cls: type[T]) -> type[T]:
        cls.__type_alias__ = name  # type: ignore[attr-defined]
        return cls

    return decorator


class TypeAliasRegistry:
    """Mapping of lower-cased alias to class."""

    def __init__(self) -> None:
        self._aliases: dict[str, type] = {}
        self._sealed = False
        for name, cls in _BUILTIN_ALIASES.items():
            self.register_alias(name, cls)

    def seal(self) -> None:
        self._sealed = True

    def _check_not_sealed(self) -> None:
        if self._sealed:
            raise ConfigurationSealedError("Type aliases cannot be registered on a sealed configuration")

    def register_alias(self, name: str, cls: type) -> None:
        """Register *cls* under *name*.  Last registration wins."""
        if not name:
            raise TypeResolutionError("The parameter alias cannot be empty")
        self._check_not_sealed()
        key = name.lower()
        previous = self._aliases.get(key)
        if previous is not None and previous is not cls:
            logger.debug("Alias '%s' re-registered: %s -> %s", name, previous.__qualname__, cls.__qualname__)
        self._aliases[key] = cls

    def register_type(self, cls: type) -> None:
        """Register *cls* under its own ``@alias`` override or its simple name.

        The override is not inherited: an undecorated subclass of an aliased
        class registers under its own name.
        """
        self.register_alias(cls.__dict__.get("__type_alias__") or cls.__name__, cls)

    def register_package(self, package: str, vfs: VFS) -> None:
        """Register every public class defined in *package* under its simple name."""
        for cls in vfs.find_classes(package, lambda _: True):
            self.register_type(cls)

    def resolve_alias(self, name: str | None) -> type | None:
        """Return the class for *name*, importing dotted paths when no alias matches."""
        if name is None:
            return None
        cls = self._aliases.get(name.lower())
        if cls is not None:
            return cls
        try:
            return class_for_name(name)
        except TypeResolutionError as exc:
            raise TypeResolutionError(f"Could not resolve type alias '{name}'. Cause: {exc}") from exc

    @property
    def type_aliases(self) -> Mapping[str, type]:
        return MappingProxyType(self._aliases)

    def __contains__(self, name: Any) -> bool:
        return isinstance(name, str) and name.lower() in self._aliases
