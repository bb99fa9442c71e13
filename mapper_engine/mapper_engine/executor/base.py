"""Executor interface and the shared base for the execution strategies.

An executor runs mapped statements over the connection of one
:class:`Transaction`.  The strategies differ only in how statements reach
the database:

* ``SIMPLE`` executes every statement immediately.
* ``REUSE`` keeps compiled SQL clauses around until the next flush.
* ``BATCH`` queues updates and sends them as ``executemany`` batches.

:class:`BaseExecutor` provides the pieces they share: the session-local
result cache, parameter conversion through the type handler registry, row
mapping into result objects and statement logging.
"""

from __future__ import annotations

import abc
import dataclasses
import logging
from collections.abc import Hashable, Mapping
from dataclasses import dataclass, field
from typing import TYPE_CHECKING, Any

from mapper_engine.error_context import ErrorContext
from mapper_engine.errors import ExecutorError
from mapper_engine.session.settings import AutoMappingUnknownColumnBehavior, LocalCacheScope

if TYPE_CHECKING:
    from sqlalchemy.engine import Connection, CursorResult

    from mapper_engine.mapping.statement import MappedStatement
    from mapper_engine.scripting import BoundSql
    from mapper_engine.session.configuration import Configuration
    from mapper_engine.transaction.base import Transaction

logger = logging.getLogger(__name__)


@dataclass
class BatchResult:
    """Outcome of one flushed batch."""

    mapped_statement: MappedStatement
    sql: str
    parameters: list[dict[str, Any]] = field(default_factory=list)
    update_count: int = 0


class Executor(abc.ABC):
    """Capability interface for statement execution.  Interceptors wrap this."""

    @abc.abstractmethod
    def update(self, ms: MappedStatement, parameter: Any = None) -> int: ...

    @abc.abstractmethod
    def query(self, ms: MappedStatement, parameter: Any = None) -> list[Any]: ...

    @abc.abstractmethod
    def flush_statements(self, is_rollback: bool = False) -> list[BatchResult]: ...

    @abc.abstractmethod
    def commit(self, required: bool) -> None: ...

    @abc.abstractmethod
    def rollback(self, required: bool) -> None: ...

    @abc.abstractmethod
    def close(self, force_rollback: bool) -> None: ...

    @abc.abstractmethod
    def is_closed(self) -> bool: ...

    @abc.abstractmethod
    def get_transaction(self) -> Transaction: ...

    @abc.abstractmethod
    def clear_local_cache(self) -> None: ...

    @abc.abstractmethod
    def create_cache_key(self, ms: MappedStatement, parameter: Any = None) -> Hashable: ...


def parameter_dict(parameter: Any) -> dict[str, Any]:
    """Turn a statement parameter into a name -> value mapping.

    Mappings are copied, dataclasses and pydantic models are flattened one
    level, other objects contribute their public attributes and scalars are
    exposed as ``value``.
    """
    if parameter is None:
        return {}
    if isinstance(parameter, Mapping):
        return dict(parameter)
    if dataclasses.is_dataclass(parameter) and not isinstance(parameter, type):
        return {f.name: getattr(parameter, f.name) for f in dataclasses.fields(parameter)}
    model_dump = getattr(parameter, "model_dump", None)
    if callable(model_dump):
        return dict(model_dump())
    if hasattr(parameter, "__dict__") and not isinstance(parameter, type):
        return {key: value for key, value in vars(parameter).items() if not key.startswith("_")}
    return {"value": parameter}


def _freeze(value: Any) -> Hashable:
    if isinstance(value, Mapping):
        return tuple(sorted((str(k), _freeze(v)) for k, v in value.items()))
    if isinstance(value, (list, tuple, set, frozenset)):
        return tuple(_freeze(v) for v in value)
    try:
        hash(value)
    except TypeError:
        return repr(value)
    return value


class BaseExecutor(Executor):
    def __init__(self, configuration: Configuration, transaction: Transaction) -> None:
        self.configuration = configuration
        self.transaction: Transaction | None = transaction
        self.local_cache: dict[Hashable, list[Any]] = {}
        self._closed = False

    # -- Lifecycle ------------------------------------------------------------

    def get_transaction(self) -> Transaction:
        if self._closed or self.transaction is None:
            raise ExecutorError("Executor was closed.")
        return self.transaction

    def is_closed(self) -> bool:
        return self._closed

    def close(self, force_rollback: bool) -> None:
        try:
            try:
                self.rollback(force_rollback)
            finally:
                if self.transaction is not None:
                    self.transaction.close()
        except Exception:
            logger.warning("Unexpected exception on closing transaction", exc_info=True)
        finally:
            self.transaction = None
            self.local_cache = {}
            self._closed = True

    def commit(self, required: bool) -> None:
        if self._closed:
            raise ExecutorError("Cannot commit, transaction is already closed")
        self.clear_local_cache()
        self.flush_statements()
        if required:
            self.get_transaction().commit()

    def rollback(self, required: bool) -> None:
        if self._closed:
            return
        try:
            self.clear_local_cache()
            self.flush_statements(is_rollback=True)
        finally:
            if required and self.transaction is not None:
                self.transaction.rollback()

    def clear_local_cache(self) -> None:
        if not self._closed:
            self.local_cache.clear()

    def flush_statements(self, is_rollback: bool = False) -> list[BatchResult]:
        if self._closed:
            raise ExecutorError("Executor was closed.")
        return self.do_flush_statements(is_rollback)

    # -- Statement execution --------------------------------------------------

    def update(self, ms: MappedStatement, parameter: Any = None) -> int:
        ErrorContext.instance().resource(ms.resource).activity("executing an update").object(ms.id)
        if self._closed:
            raise ExecutorError("Executor was closed.")
        self.clear_local_cache()
        bound = self.bind(ms, parameter)
        ErrorContext.instance().sql(bound.sql)
        return self.do_update(ms, bound)

    def query(self, ms: MappedStatement, parameter: Any = None) -> list[Any]:
        ErrorContext.instance().resource(ms.resource).activity("executing a query").object(ms.id)
        if self._closed:
            raise ExecutorError("Executor was closed.")
        if ms.should_flush_cache:
            self.clear_local_cache()

        bound = self.bind(ms, parameter)
        ErrorContext.instance().sql(bound.sql)
        key = self._cache_key(ms, bound)
        cached = self.local_cache.get(key)
        if cached is not None:
            result = cached
        else:
            result = self.do_query(ms, bound)
            self.local_cache[key] = result

        if self.configuration.local_cache_scope is LocalCacheScope.STATEMENT:
            self.clear_local_cache()
        return list(result)

    def create_cache_key(self, ms: MappedStatement, parameter: Any = None) -> Hashable:
        return self._cache_key(ms, self.bind(ms, parameter))

    def _cache_key(self, ms: MappedStatement, bound: BoundSql) -> Hashable:
        return (ms.id, bound.sql, _freeze(bound.parameters), self.configuration.environment_id)

    def bind(self, ms: MappedStatement, parameter: Any) -> BoundSql:
        """Convert the parameter values and resolve the statement's SQL."""
        registry = self.configuration.type_handler_registry
        converted: dict[str, Any] = {}
        for name, value in parameter_dict(parameter).items():
            handler = registry.get_type_handler(type(value)) if value is not None else None
            converted[name] = handler.to_db(value) if handler is not None else value
        return ms.sql_source.get_bound_sql(converted)

    def connection(self, ms: MappedStatement) -> Connection:
        return self.get_transaction().get_connection()

    def log_statement(self, ms: MappedStatement, bound: BoundSql) -> None:
        log = self.configuration.get_log(ms.id)
        if log.is_debug_enabled():
            log.debug("==>  Preparing: %s", bound.sql)
            log.debug("==> Parameters: %s", bound.parameters)

    # -- Row mapping ----------------------------------------------------------

    def map_rows(self, ms: MappedStatement, result: CursorResult[Any]) -> list[Any]:
        rows = [dict(row) for row in result.mappings()]
        log = self.configuration.get_log(ms.id)
        if log.is_debug_enabled():
            log.debug("<==      Total: %d", len(rows))
        return [self._map_row(ms, row) for row in rows]

    def _map_row(self, ms: MappedStatement, row: dict[str, Any]) -> Any:
        configuration = self.configuration
        if all(value is None for value in row.values()) and not configuration.return_instance_for_empty_row:
            return None

        result_type = ms.result_type
        if result_type is None or result_type is dict:
            return row

        reflector = configuration.reflector_factory.find_for_class(result_type)
        values: dict[str, Any] = {}
        for column, value in row.items():
            prop = reflector.find_property(column, configuration.map_underscore_to_camel_case)
            if prop is None:
                self._unknown_column(ms, column, result_type)
                continue
            if value is None and not configuration.call_setters_on_nulls:
                continue
            values[prop] = value

        obj = configuration.object_factory.create(result_type, values)
        wrapper_factory = configuration.object_wrapper_factory
        if wrapper_factory.has_wrapper_for(obj):
            obj = wrapper_factory.get_wrapper_for(obj)
        return obj

    def _unknown_column(self, ms: MappedStatement, column: str, result_type: type) -> None:
        behavior = self.configuration.auto_mapping_unknown_column_behavior
        message = f"Unknown column is detected on '{ms.id}' auto-mapping. Mapping parameters are [columnName={column}, resultType={result_type.__qualname__}]"
        if behavior is AutoMappingUnknownColumnBehavior.WARNING:
            self.configuration.get_log(ms.id).warning(message)
        elif behavior is AutoMappingUnknownColumnBehavior.FAILING:
            raise ExecutorError(message)

    # -- Strategy hooks -------------------------------------------------------

    @abc.abstractmethod
    def do_update(self, ms: MappedStatement, bound: BoundSql) -> int: ...

    @abc.abstractmethod
    def do_query(self, ms: MappedStatement, bound: BoundSql) -> list[Any]: ...

    @abc.abstractmethod
    def do_flush_statements(self, is_rollback: bool) -> list[BatchResult]: ...
