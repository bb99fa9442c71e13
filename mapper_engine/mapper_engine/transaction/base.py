"""Abstract transaction and transaction-factory interfaces."""

from __future__ import annotations

import abc
from enum import Enum
from typing import Any

from sqlalchemy.engine import Connection, Engine


class IsolationLevel(str, Enum):
    """Isolation levels accepted by SQLAlchemy's ``isolation_level`` option."""

    READ_UNCOMMITTED = "READ UNCOMMITTED"
    READ_COMMITTED = "READ COMMITTED"
    REPEATABLE_READ = "REPEATABLE READ"
    SERIALIZABLE = "SERIALIZABLE"


AUTOCOMMIT = "AUTOCOMMIT"


class Transaction(abc.ABC):
    """A unit of work bound to exactly one connection."""

    @abc.abstractmethod
    def get_connection(self) -> Connection:
        """Return the connection, acquiring it on first use."""

    @abc.abstractmethod
    def commit(self) -> None: ...

    @abc.abstractmethod
    def rollback(self) -> None: ...

    @abc.abstractmethod
    def close(self) -> None:
        """Release the underlying connection."""

    def get_timeout(self) -> int | None:
        """Transaction timeout in seconds, if the transaction manager imposes one."""
        return None


class TransactionFactory(abc.ABC):
    """Create transactions bound to a data source or to an existing connection."""

    def set_properties(self, properties: dict[str, Any]) -> None:
        """Receive the property bag declared on ``transactionManager``.  No-op by default."""

    @abc.abstractmethod
    def new_transaction(
        self,
        data_source: Engine,
        level: IsolationLevel | None = None,
        autocommit: bool = False,
    ) -> Transaction:
        """Return a transaction that lazily acquires a connection from *data_source*."""

    @abc.abstractmethod
    def from_connection(self, connection: Connection) -> Transaction:
        """Return a transaction bound to an already open *connection*."""
