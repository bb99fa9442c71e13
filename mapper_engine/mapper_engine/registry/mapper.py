"""Mapper classes and the proxies that bind their methods to statements.

A mapper is a plain class whose methods stand for mapped statements.
Statements are declared either with the :func:`select` / :func:`insert` /
:func:`update` / :func:`delete` decorators, or in a mapper document whose
``namespace`` is the class's qualified name (``module.QualName``).  Both end
up as :class:`MappedStatement` entries named ``<namespace>.<method>``::

    @mapper
    class BlogMapper:
        @select("SELECT * FROM blog WHERE id = :id", result_type=Blog, many=False)
        def find(self, id: int) -> Blog: ...

    blog = session.get_mapper(BlogMapper).find(1)
"""

from __future__ import annotations

import inspect
import logging
from collections.abc import Callable, Mapping
from dataclasses import dataclass
from pathlib import Path
from typing import TYPE_CHECKING, Any, TypeVar, overload

from mapper_engine.errors import BindingError, ConfigurationSealedError
from mapper_engine.mapping.cache import PerpetualCache
from mapper_engine.mapping.statement import MappedStatement, SqlCommandType

if TYPE_CHECKING:
    from mapper_engine.io.vfs import VFS
    from mapper_engine.session.configuration import Configuration
    from mapper_engine.session.session import SqlSession

logger = logging.getLogger(__name__)

T = TypeVar("T")

_SCALARS = (str, bytes, int, float, bool)


def namespace_of(cls: type) -> str:
    return f"{cls.__module__}.{cls.__qualname__}"


# ---------------------------------------------------------------------------
# Declaration decorators
# ---------------------------------------------------------------------------


@dataclass(frozen=True)
class StatementDeclaration:
    """Statement metadata attached to a mapper method by a decorator."""

    command_type: SqlCommandType
    sql: str
    result_type: type | str | None = None
    many: bool = True
    database_id: str | None = None
    use_cache: bool | None = None
    flush_cache: bool | None = None
    timeout: int | None = None
    fetch_size: int | None = None


@overload
def mapper(cls: type[T]) -> type[T]: ...


@overload
def mapper(*, cache: bool = False, cache_size: int | None = None) -> Callable[[type[T]], type[T]]: ...


def mapper(cls: type[T] | None = None, *, cache: bool = False, cache_size: int | None = None) -> Any:
    """Mark a class as a mapper so that package scans pick it up."""

    def decorator(target: type[T]) -> type[T]:
        target.__mapper__ = {"cache": cache, "cache_size": cache_size}  # type: ignore[attr-defined]
        return target

    if cls is not None:
        return decorator(cls)
    return decorator


def _statement(command_type: SqlCommandType, sql: str, **options: Any) -> Callable[[Callable[..., T]], Callable[..., T]]:
    declaration = StatementDeclaration(command_type, sql, **options)

    def decorator(func: Callable[..., T]) -> Callable[..., T]:
        func.__statement__ = declaration  # type: ignore[attr-defined]
        return func

    return decorator


def select(
    sql: str,
    *,
    result_type: type | str | None = None,
    many: bool = True,
    database_id: str | None = None,
    use_cache: bool | None = None,
    flush_cache: bool | None = None,
    timeout: int | None = None,
    fetch_size: int | None = None,
) -> Callable[[Callable[..., T]], Callable[..., T]]:
    return _statement(
        SqlCommandType.SELECT,
        sql,
        result_type=result_type,
        many=many,
        database_id=database_id,
        use_cache=use_cache,
        flush_cache=flush_cache,
        timeout=timeout,
        fetch_size=fetch_size,
    )


def insert(sql: str, *, database_id: str | None = None, flush_cache: bool | None = None, timeout: int | None = None) -> Callable[[Callable[..., T]], Callable[..., T]]:
    return _statement(SqlCommandType.INSERT, sql, database_id=database_id, flush_cache=flush_cache, timeout=timeout)


def update(sql: str, *, database_id: str | None = None, flush_cache: bool | None = None, timeout: int | None = None) -> Callable[[Callable[..., T]], Callable[..., T]]:
    return _statement(SqlCommandType.UPDATE, sql, database_id=database_id, flush_cache=flush_cache, timeout=timeout)


def delete(sql: str, *, database_id: str | None = None, flush_cache: bool | None = None, timeout: int | None = None) -> Callable[[Callable[..., T]], Callable[..., T]]:
    return _statement(SqlCommandType.DELETE, sql, database_id=database_id, flush_cache=flush_cache, timeout=timeout)


def is_mapper(cls: type) -> bool:
    return "__mapper__" in vars(cls) or any(hasattr(member, "__statement__") for member in vars(cls).values())


# ---------------------------------------------------------------------------
# Registration
# ---------------------------------------------------------------------------


class MapperDeclarationLoader:
    """Register the statements a mapper class declares.

    A mapper document stored next to the class's module as
    ``<ClassName>.yaml`` is loaded first, unless a document for the same
    namespace was already loaded.
    """

    def __init__(self, configuration: Configuration, cls: type) -> None:
        self.configuration = configuration
        self.cls = cls
        self.namespace = namespace_of(cls)
        self.resource = f"{self.namespace} (decorators)"

    def load(self) -> None:
        configuration = self.configuration
        if self.resource in configuration.loaded_resources:
            return

        self._load_companion_document()
        configuration.add_loaded_resource(self.resource)

        cache = self._namespace_cache()
        for name, func in inspect.getmembers(self.cls, callable):
            declaration: StatementDeclaration | None = getattr(func, "__statement__", None)
            if declaration is None:
                continue
            self._add_statement(name, declaration, cache)

    def _load_companion_document(self) -> None:
        # Deferred import: the document parser registers mappers through this module.
        from mapper_engine.builder.mapper_builder import MapperDocumentParser

        configuration = self.configuration
        if f"namespace:{self.namespace}" in configuration.loaded_resources:
            return
        module_file = getattr(inspect.getmodule(self.cls), "__file__", None)
        if module_file is None:
            return
        document = Path(module_file).with_name(f"{self.cls.__name__}.yaml")
        if not document.is_file() or str(document) in configuration.loaded_resources:
            return

        logger.debug("Loading companion mapper document %s", document)
        with document.open(encoding="utf-8") as stream:
            MapperDocumentParser(stream, configuration, str(document), configuration.sql_fragments).parse()

    def _namespace_cache(self) -> PerpetualCache | None:
        options = getattr(self.cls, "__mapper__", None) or {}
        existing = self.configuration.caches.get(self.namespace)
        if existing is not None or not options.get("cache"):
            return existing
        cache = PerpetualCache(self.namespace, options.get("cache_size") or 1024)
        self.configuration.add_cache(cache)
        return cache

    def _add_statement(self, name: str, declaration: StatementDeclaration, cache: PerpetualCache | None) -> None:
        configuration = self.configuration
        statement_id = f"{self.namespace}.{name}"
        if not configuration.database_id_matches(statement_id, declaration.database_id):
            return

        result_type = declaration.result_type
        if isinstance(result_type, str):
            result_type = configuration.type_alias_registry.resolve_alias(result_type)

        driver = configuration.get_language_driver()
        configuration.add_mapped_statement(
            MappedStatement(
                id=statement_id,
                command_type=declaration.command_type,
                sql_source=driver.create_sql_source(configuration, declaration.sql),
                resource=self.resource,
                database_id=declaration.database_id,
                result_type=result_type,
                many=declaration.many,
                timeout=declaration.timeout if declaration.timeout is not None else configuration.default_statement_timeout,
                fetch_size=declaration.fetch_size if declaration.fetch_size is not None else configuration.default_fetch_size,
                use_cache=declaration.use_cache,
                flush_cache=declaration.flush_cache,
                cache=cache,
            )
        )


class MapperRegistry:
    """Known mapper classes of one configuration."""

    def __init__(self, configuration: Configuration) -> None:
        self.configuration = configuration
        self._known: dict[type, str] = {}
        self._sealed = False

    def seal(self) -> None:
        self._sealed = True

    def has_mapper(self, cls: type) -> bool:
        return cls in self._known

    def add_mapper(self, cls: type) -> None:
        """Register *cls* and load its statements.

        Raises
        ------
        BindingError
            If *cls* is already registered.  A class whose statements fail to
            load is removed again before the error propagates.
        """
        if self._sealed:
            raise ConfigurationSealedError("Mappers cannot be registered on a sealed configuration")
        if not isinstance(cls, type):
            raise BindingError(f"{cls!r} is not a class and cannot be registered as a mapper")
        if self.has_mapper(cls):
            raise BindingError(f"Type {namespace_of(cls)} is already known to the MapperRegistry.")

        self._known[cls] = namespace_of(cls)
        load_completed = False
        try:
            MapperDeclarationLoader(self.configuration, cls).load()
            load_completed = True
        finally:
            if not load_completed:
                del self._known[cls]
        logger.debug("Registered mapper %s", namespace_of(cls))

    def add_mappers(self, package: str, vfs: VFS) -> None:
        """Register every mapper class defined in *package*."""
        for cls in vfs.find_classes(package, is_mapper):
            self.add_mapper(cls)

    def get_mapper(self, cls: type[T], session: SqlSession) -> T:
        if cls not in self._known:
            raise BindingError(f"Type {namespace_of(cls)} is not known to the MapperRegistry.")
        return MapperProxy(cls, session)  # type: ignore[return-value]

    @property
    def mappers(self) -> tuple[type, ...]:
        return tuple(self._known)


# ---------------------------------------------------------------------------
# Proxy
# ---------------------------------------------------------------------------


class MapperProxy:
    """Stand-in for a mapper instance that routes method calls to a session."""

    def __init__(self, mapper_type: type, session: SqlSession) -> None:
        self._mapper_type = mapper_type
        self._session = session
        self._namespace = namespace_of(mapper_type)
        self._methods: dict[str, Callable[..., Any]] = {}

    def __getattr__(self, name: str) -> Callable[..., Any]:
        if name.startswith("_"):
            raise AttributeError(name)
        method = self._methods.get(name)
        if method is None:
            method = self._bind(name)
            self._methods[name] = method
        return method

    def _bind(self, name: str) -> Callable[..., Any]:
        statement_id = f"{self._namespace}.{name}"
        configuration = self._session.configuration
        if not configuration.has_statement(statement_id):
            raise BindingError(f"Invalid bound statement (not found): {statement_id}")
        ms = configuration.get_mapped_statement(statement_id)
        declared = getattr(self._mapper_type, name, None)
        signature = inspect.signature(declared) if callable(declared) else None
        session = self._session

        def call(*args: Any, **kwargs: Any) -> Any:
            parameter = _parameter_object(signature, args, kwargs)
            if ms.command_type is SqlCommandType.SELECT:
                if ms.many:
                    return session.select_list(statement_id, parameter)
                return session.select_one(statement_id, parameter)
            if ms.command_type is SqlCommandType.INSERT:
                return session.insert(statement_id, parameter)
            if ms.command_type is SqlCommandType.UPDATE:
                return session.update(statement_id, parameter)
            return session.delete(statement_id, parameter)

        call.__name__ = name
        return call

    def __repr__(self) -> str:
        return f"MapperProxy({self._namespace})"


def _parameter_object(signature: inspect.Signature | None, args: tuple[Any, ...], kwargs: dict[str, Any]) -> Any:
    """Turn call arguments into the single statement parameter.

    A lone non-scalar argument (mapping, dataclass, model) is passed
    through; otherwise arguments are collected by parameter name.
    """
    if len(args) == 1 and not kwargs and (signature is None or _is_parameter_object(args[0])):
        return args[0]
    if signature is None:
        if args:
            raise BindingError("Positional arguments require a declared mapper method")
        return dict(kwargs)

    params = _declared_params(signature)
    bound = inspect.Signature(params).bind(*args, **kwargs)
    bound.apply_defaults()
    return dict(bound.arguments)


def _declared_params(signature: inspect.Signature) -> list[inspect.Parameter]:
    return [p for p in signature.parameters.values() if p.name != "self"]


def _is_parameter_object(value: Any) -> bool:
    if isinstance(value, Mapping):
        return True
    return value is not None and not isinstance(value, _SCALARS) and hasattr(value, "__dict__")
