"""Transactions that commit and roll back the connection directly.

The connection is acquired from the engine only when first needed.  The
requested isolation level is applied first and ``AUTOCOMMIT`` afterwards,
so an autocommit request wins over an explicit level (SQLAlchemy models
autocommit as an isolation level).
"""

from __future__ import annotations

import logging

from sqlalchemy.engine import Connection, Engine
from sqlalchemy.exc import SQLAlchemyError

from mapper_engine.errors import TransactionError
from mapper_engine.transaction.base import AUTOCOMMIT, IsolationLevel, Transaction, TransactionFactory

logger = logging.getLogger(__name__)


class DirectTransaction(Transaction):
    def __init__(
        self,
        data_source: Engine | None = None,
        level: IsolationLevel | None = None,
        autocommit: bool = False,
        connection: Connection | None = None,
    ) -> None:
        if data_source is None and connection is None:
            raise TransactionError("A DirectTransaction needs a data source or a connection")
        self._data_source = data_source
        self._level = level
        self._autocommit = autocommit
        self._connection = connection

    def get_connection(self) -> Connection:
        if self._connection is None:
            self._open_connection()
        assert self._connection is not None
        return self._connection

    def _open_connection(self) -> None:
        assert self._data_source is not None
        logger.debug("Opening connection from %s", self._data_source.url.render_as_string(hide_password=True))
        try:
            connection = self._data_source.connect()
        except SQLAlchemyError as exc:
            raise TransactionError(f"Error opening connection. Cause: {exc}") from exc

        try:
            if self._level is not None:
                connection = connection.execution_options(isolation_level=self._level.value)
            if self._autocommit:
                connection = connection.execution_options(isolation_level=AUTOCOMMIT)
        except SQLAlchemyError as exc:
            connection.close()
            raise TransactionError(f"Error configuring connection. Cause: {exc}") from exc

        self._connection = connection

    def commit(self) -> None:
        if self._connection is not None and not self._autocommit:
            logger.debug("Committing connection [%s]", id(self._connection))
            self._connection.commit()

    def rollback(self) -> None:
        if self._connection is not None and not self._autocommit:
            logger.debug("Rolling back connection [%s]", id(self._connection))
            self._connection.rollback()

    def close(self) -> None:
        if self._connection is not None:
            logger.debug("Closing connection [%s]", id(self._connection))
            try:
                self._connection.close()
            finally:
                self._connection = None


class DirectTransactionFactory(TransactionFactory):
    def new_transaction(
        self,
        data_source: Engine,
        level: IsolationLevel | None = None,
        autocommit: bool = False,
    ) -> Transaction:
        return DirectTransaction(data_source, level, autocommit)

    def from_connection(self, connection: Connection) -> Transaction:
        return DirectTransaction(connection=connection)
