"""Request-scoped handle for running mapped statements."""

from __future__ import annotations

import logging
from typing import TYPE_CHECKING, Any, TypeVar

from mapper_engine.error_context import ErrorContext
from mapper_engine.errors import ExecutorError, PersistenceError, TooManyResultsError, wrap_exception

if TYPE_CHECKING:
    from types import TracebackType

    from sqlalchemy.engine import Connection

    from mapper_engine.executor.base import BatchResult, Executor
    from mapper_engine.session.configuration import Configuration

logger = logging.getLogger(__name__)

T = TypeVar("T")


class SqlSession:
    """One unit of work: a configuration, an executor and an autocommit flag.

    Sessions are not safe for concurrent use; open one per unit of work and
    close it when done, preferably with ``with``::

        with factory.open_session() as session:
            session.insert("BlogMapper.insert", blog)
            session.commit()

    Leaving the block without committing rolls back pending changes.
    """

    def __init__(self, configuration: Configuration, executor: Executor, autocommit: bool) -> None:
        self.configuration = configuration
        self.executor = executor
        self.autocommit = autocommit
        self.dirty = False

    # -- Queries --------------------------------------------------------------

    def select_one(self, statement: str, parameter: Any = None) -> Any:
        """Return the single row of *statement*, or ``None`` when there is none.

        Raises
        ------
        TooManyResultsError
            If the statement returns more than one row.
        """
        rows = self.select_list(statement, parameter)
        if len(rows) == 1:
            return rows[0]
        if len(rows) > 1:
            raise TooManyResultsError(f"Expected one result (or None) to be returned by select_one(), but found: {len(rows)}")
        return None

    def select_list(self, statement: str, parameter: Any = None) -> list[Any]:
        try:
            ms = self.configuration.get_mapped_statement(statement)
            return self.executor.query(ms, parameter)
        except Exception as exc:
            raise wrap_exception("Error querying database.", exc, _error_cls(exc)) from exc
        finally:
            ErrorContext.instance().reset()

    # -- Updates --------------------------------------------------------------

    def insert(self, statement: str, parameter: Any = None) -> int:
        return self.update(statement, parameter)

    def update(self, statement: str, parameter: Any = None) -> int:
        try:
            self.dirty = True
            ms = self.configuration.get_mapped_statement(statement)
            return self.executor.update(ms, parameter)
        except Exception as exc:
            raise wrap_exception("Error updating database.", exc, _error_cls(exc)) from exc
        finally:
            ErrorContext.instance().reset()

    def delete(self, statement: str, parameter: Any = None) -> int:
        return self.update(statement, parameter)

    # -- Transaction control --------------------------------------------------

    def _commit_or_rollback_required(self, force: bool) -> bool:
        return force or (not self.autocommit and self.dirty)

    def commit(self, force: bool = False) -> None:
        try:
            self.executor.commit(self._commit_or_rollback_required(force))
            self.dirty = False
        except Exception as exc:
            raise wrap_exception("Error committing transaction.", exc, _error_cls(exc)) from exc
        finally:
            ErrorContext.instance().reset()

    def rollback(self, force: bool = False) -> None:
        try:
            self.executor.rollback(self._commit_or_rollback_required(force))
            self.dirty = False
        except Exception as exc:
            raise wrap_exception("Error rolling back transaction.", exc, _error_cls(exc)) from exc
        finally:
            ErrorContext.instance().reset()

    def flush_statements(self) -> list[BatchResult]:
        try:
            return self.executor.flush_statements()
        except Exception as exc:
            raise wrap_exception("Error flushing statements.", exc, _error_cls(exc)) from exc
        finally:
            ErrorContext.instance().reset()

    def clear_cache(self) -> None:
        self.executor.clear_local_cache()

    def close(self) -> None:
        """Release the transaction, rolling back uncommitted changes."""
        try:
            self.executor.close(self._commit_or_rollback_required(False))
            self.dirty = False
        finally:
            ErrorContext.instance().reset()

    # -- Accessors ------------------------------------------------------------

    def get_mapper(self, cls: type[T]) -> T:
        return self.configuration.get_mapper(cls, self)

    def get_connection(self) -> Connection:
        try:
            return self.executor.get_transaction().get_connection()
        except Exception as exc:
            raise wrap_exception("Error getting a connection.", exc, _error_cls(exc)) from exc

    def __enter__(self) -> SqlSession:
        return self

    def __exit__(
        self,
        exc_type: type[BaseException] | None,
        exc: BaseException | None,
        tb: TracebackType | None,
    ) -> None:
        self.close()

    def __repr__(self) -> str:
        return f"SqlSession(autocommit={self.autocommit}, dirty={self.dirty})"


def _error_cls(exc: BaseException) -> type[PersistenceError]:
    """Keep the engine's own error category when re-wrapping."""
    if isinstance(exc, PersistenceError):
        return type(exc)
    return ExecutorError
