"""Type handlers convert parameter values to and from database values.

Handlers are keyed by Python type and, optionally, by :class:`SqlType`.
Lookups fall back from the exact ``(type, sql_type)`` key to the type's
default handler and then up the type's MRO, so a handler registered for a
base class also serves its subclasses.  ``Enum`` subclasses without an
explicit handler use the configured default enum handler.
"""

from __future__ import annotations

import abc
import datetime
import decimal
import inspect
import logging
from enum import Enum
from typing import TYPE_CHECKING, Any, ClassVar

from mapper_engine.errors import ConfigurationSealedError, TypeResolutionError
from mapper_engine.mapping.sql_type import SqlType

if TYPE_CHECKING:
    from mapper_engine.io.vfs import VFS

logger = logging.getLogger(__name__)


class TypeHandler(abc.ABC):
    """Convert one Python type to a driver value and back.

    Subclasses can declare which types they serve through ``handled_types``
    and ``handled_sql_types``; those declarations are used when a handler is
    registered without an explicit key, for example by a package scan.
    """

    handled_types: ClassVar[tuple[type, ...]] = ()
    handled_sql_types: ClassVar[tuple[SqlType | None, ...]] = ()

    def to_db(self, value: Any) -> Any:
        """Return the value handed to the driver.  ``None`` passes through."""
        if value is None:
            return None
        return self.to_db_non_null(value)

    def from_db(self, value: Any) -> Any:
        """Return the Python value for a driver value.  ``None`` passes through."""
        if value is None:
            return None
        return self.from_db_non_null(value)

    @abc.abstractmethod
    def to_db_non_null(self, value: Any) -> Any: ...

    @abc.abstractmethod
    def from_db_non_null(self, value: Any) -> Any: ...


class PassThroughTypeHandler(TypeHandler):
    """Hand values to the driver unchanged."""

    handled_types = (object,)

    def to_db_non_null(self, value: Any) -> Any:
        return value

    def from_db_non_null(self, value: Any) -> Any:
        return value


class StringTypeHandler(TypeHandler):
    handled_types = (str,)

    def to_db_non_null(self, value: Any) -> Any:
        return str(value)

    def from_db_non_null(self, value: Any) -> Any:
        return str(value)


class IntegerTypeHandler(TypeHandler):
    handled_types = (int,)

    def to_db_non_null(self, value: Any) -> Any:
        return int(value)

    def from_db_non_null(self, value: Any) -> Any:
        return int(value)


class FloatTypeHandler(TypeHandler):
    handled_types = (float,)

    def to_db_non_null(self, value: Any) -> Any:
        return float(value)

    def from_db_non_null(self, value: Any) -> Any:
        return float(value)


class BooleanTypeHandler(TypeHandler):
    handled_types = (bool,)

    def to_db_non_null(self, value: Any) -> Any:
        return bool(value)

    def from_db_non_null(self, value: Any) -> Any:
        return bool(value)


class BytesTypeHandler(TypeHandler):
    handled_types = (bytes,)

    def to_db_non_null(self, value: Any) -> Any:
        return bytes(value)

    def from_db_non_null(self, value: Any) -> Any:
        return bytes(value)


class DecimalTypeHandler(TypeHandler):
    """Decimals travel as strings so no driver rounds them through floats."""

    handled_types = (decimal.Decimal,)

    def to_db_non_null(self, value: Any) -> Any:
        return str(value)

    def from_db_non_null(self, value: Any) -> Any:
        return decimal.Decimal(str(value))


class DateTypeHandler(TypeHandler):
    handled_types = (datetime.date,)

    def to_db_non_null(self, value: Any) -> Any:
        return value

    def from_db_non_null(self, value: Any) -> Any:
        if isinstance(value, str):
            return datetime.date.fromisoformat(value)
        return value


class DateTimeTypeHandler(TypeHandler):
    handled_types = (datetime.datetime,)

    def to_db_non_null(self, value: Any) -> Any:
        return value

    def from_db_non_null(self, value: Any) -> Any:
        if isinstance(value, str):
            return datetime.datetime.fromisoformat(value)
        return value


class TimeTypeHandler(TypeHandler):
    handled_types = (datetime.time,)

    def to_db_non_null(self, value: Any) -> Any:
        return value

    def from_db_non_null(self, value: Any) -> Any:
        if isinstance(value, str):
            return datetime.time.fromisoformat(value)
        return value


class EnumTypeHandler(TypeHandler):
    """Store enum members by name."""

    def __init__(self, enum_type: type[Enum]) -> None:
        self.enum_type = enum_type

    def to_db_non_null(self, value: Any) -> Any:
        return value.name

    def from_db_non_null(self, value: Any) -> Any:
        return self.enum_type[value]


class EnumOrdinalTypeHandler(TypeHandler):
    """Store enum members by declaration position."""

    def __init__(self, enum_type: type[Enum]) -> None:
        self.enum_type = enum_type
        self._members = list(enum_type)

    def to_db_non_null(self, value: Any) -> Any:
        return self._members.index(value)

    def from_db_non_null(self, value: Any) -> Any:
        return self._members[int(value)]


_BUILTIN_HANDLERS: tuple[type[TypeHandler], ...] = (
    StringTypeHandler,
    IntegerTypeHandler,
    FloatTypeHandler,
    BooleanTypeHandler,
    BytesTypeHandler,
    DecimalTypeHandler,
    DateTypeHandler,
    DateTimeTypeHandler,
    TimeTypeHandler,
)


def _instantiate(handler: TypeHandler | type[TypeHandler], python_type: type | None) -> TypeHandler:
    """Build a handler instance, passing the Python type when the constructor takes one."""
    if isinstance(handler, TypeHandler):
        return handler
    if not (isinstance(handler, type) and issubclass(handler, TypeHandler)):
        raise TypeResolutionError(f"{handler!r} is not a TypeHandler")

    params = [
        p
        for p in inspect.signature(handler.__init__).parameters.values()
        if p.name != "self" and p.kind not in (p.VAR_POSITIONAL, p.VAR_KEYWORD)
    ]
    if python_type is not None and params:
        return handler(python_type)  # type: ignore[call-arg]
    return handler()


class TypeHandlerRegistry:
    """Table of handlers keyed by ``(python_type, sql_type)``."""

    def __init__(self, default_enum_type_handler: type[TypeHandler] = EnumTypeHandler) -> None:
        self._type_handlers: dict[type, dict[SqlType | None, TypeHandler]] = {}
        self._all_handlers: dict[type, TypeHandler] = {}
        self._sealed = False
        self.default_enum_type_handler = default_enum_type_handler
        self.unknown_type_handler: TypeHandler = PassThroughTypeHandler()
        for handler_cls in _BUILTIN_HANDLERS:
            self.register(handler_cls)

    def seal(self) -> None:
        self._sealed = True

    def register(
        self,
        handler: TypeHandler | type[TypeHandler],
        python_type: type | None = None,
        sql_type: SqlType | None = None,
    ) -> None:
        """Register *handler*.

        * ``python_type`` and ``sql_type``: compound key.
        * ``python_type`` only: the type's default handler.
        * neither: the handler's own ``handled_types`` / ``handled_sql_types``
          declarations decide; without declarations the handler is only
          recorded by class.
        """
        if self._sealed:
            raise ConfigurationSealedError("Type handlers cannot be registered on a sealed configuration")

        if python_type is not None:
            self._put(python_type, sql_type, _instantiate(handler, python_type))
            return

        handler_cls = handler if isinstance(handler, type) else type(handler)
        declared_types = getattr(handler_cls, "handled_types", ())
        if not declared_types:
            instance = _instantiate(handler, None)
            self._all_handlers[type(instance)] = instance
            logger.debug("Registered type handler %s without a mapped type", handler_cls.__name__)
            return

        for declared in declared_types:
            instance = _instantiate(handler, declared)
            sql_types = getattr(handler_cls, "handled_sql_types", ()) or (sql_type,)
            for declared_sql_type in sql_types:
                self._put(declared, declared_sql_type, instance)

    def _put(self, python_type: type, sql_type: SqlType | None, handler: TypeHandler) -> None:
        self._type_handlers.setdefault(python_type, {})[sql_type] = handler
        self._all_handlers[type(handler)] = handler
        logger.debug(
            "Registered type handler %s for %s/%s",
            type(handler).__name__,
            python_type.__name__,
            sql_type.value if sql_type else "*",
        )

    def register_package(self, package: str, vfs: VFS) -> None:
        """Register every concrete :class:`TypeHandler` defined in *package*."""
        found = vfs.find_classes(
            package,
            lambda cls: issubclass(cls, TypeHandler) and not inspect.isabstract(cls),
        )
        for handler_cls in found:
            self.register(handler_cls)

    def get_type_handler(self, python_type: type | None, sql_type: SqlType | None = None) -> TypeHandler | None:
        """Return the best handler for *python_type*, or ``None`` when none applies."""
        if python_type is None:
            return None

        exact = _pick(self._type_handlers.get(python_type), sql_type)
        if exact is not None:
            return exact

        if issubclass(python_type, Enum):
            return _instantiate(self.default_enum_type_handler, python_type)

        for candidate in python_type.__mro__[1:]:
            inherited = _pick(self._type_handlers.get(candidate), sql_type)
            if inherited is not None:
                return inherited
        return None

    def has_type_handler(self, python_type: type, sql_type: SqlType | None = None) -> bool:
        return self.get_type_handler(python_type, sql_type) is not None

    def get_mapping_handler(self, handler_cls: type[TypeHandler]) -> TypeHandler | None:
        return self._all_handlers.get(handler_cls)

    @property
    def type_handlers(self) -> list[TypeHandler]:
        return list(self._all_handlers.values())


def _pick(handlers: dict[SqlType | None, TypeHandler] | None, sql_type: SqlType | None) -> TypeHandler | None:
    """Choose from one type's handlers: exact SQL type, then default, then the sole entry."""
    if not handlers:
        return None
    if sql_type is not None and sql_type in handlers:
        return handlers[sql_type]
    if None in handlers:
        return handlers[None]
    if len(handlers) == 1:
        return next(iter(handlers.values()))
    return None
