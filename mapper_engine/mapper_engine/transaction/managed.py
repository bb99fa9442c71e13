"""Transactions whose lifecycle belongs to whoever owns the connection.

Used when an environment declares no transaction factory, and by
applications that run the engine inside an outer transaction manager.
Commit and rollback are ignored; closing releases the connection unless the
``closeConnection`` property is ``false``.
"""

from __future__ import annotations

import logging
from typing import Any

from sqlalchemy.engine import Connection, Engine

from mapper_engine.transaction.base import IsolationLevel, Transaction, TransactionFactory

logger = logging.getLogger(__name__)


class ManagedTransaction(Transaction):
    def __init__(
        self,
        data_source: Engine | None = None,
        level: IsolationLevel | None = None,
        close_connection: bool = True,
        connection: Connection | None = None,
    ) -> None:
        self._data_source = data_source
        self._level = level
        self._close_connection = close_connection
        self._connection = connection

    def get_connection(self) -> Connection:
        if self._connection is None:
            assert self._data_source is not None
            connection = self._data_source.connect()
            if self._level is not None:
                connection = connection.execution_options(isolation_level=self._level.value)
            self._connection = connection
            logger.debug("Opened managed connection [%s]", id(connection))
        return self._connection

    def commit(self) -> None:
        pass

    def rollback(self) -> None:
        pass

    def close(self) -> None:
        if self._close_connection and self._connection is not None:
            logger.debug("Closing managed connection [%s]", id(self._connection))
            try:
                self._connection.close()
            finally:
                self._connection = None


class ManagedTransactionFactory(TransactionFactory):
    def __init__(self) -> None:
        self.close_connection = True

    def set_properties(self, properties: dict[str, Any]) -> None:
        value = properties.get("closeConnection")
        if value is not None:
            self.close_connection = str(value).lower() != "false"

    def new_transaction(
        self,
        data_source: Engine,
        level: IsolationLevel | None = None,
        autocommit: bool = False,
    ) -> Transaction:
        # Autocommit is the connection owner's decision.
        return ManagedTransaction(data_source, level, self.close_connection)

    def from_connection(self, connection: Connection) -> Transaction:
        return ManagedTransaction(connection=connection, close_connection=self.close_connection)
