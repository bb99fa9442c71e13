"""Session factory: turns an assembled configuration into sessions."""

from __future__ import annotations

import logging
from typing import TYPE_CHECKING

from mapper_engine.error_context import error_scope
from mapper_engine.errors import SessionOpenError, wrap_exception
from mapper_engine.session.session import SqlSession
from mapper_engine.transaction.base import AUTOCOMMIT
from mapper_engine.transaction.managed import ManagedTransactionFactory

if TYPE_CHECKING:
    from sqlalchemy.engine import Connection

    from mapper_engine.session.configuration import Configuration
    from mapper_engine.session.environment import Environment
    from mapper_engine.session.settings import ExecutorType
    from mapper_engine.transaction.base import IsolationLevel, Transaction, TransactionFactory

logger = logging.getLogger(__name__)


class SqlSessionFactory:
    """Open sessions against one sealed :class:`Configuration`.

    The factory keeps no per-session state, so any number of threads may
    open sessions concurrently.
    """

    def __init__(self, configuration: Configuration) -> None:
        configuration.seal()
        self.configuration = configuration

    def open_session(
        self,
        executor_type: ExecutorType | str | None = None,
        isolation_level: IsolationLevel | None = None,
        autocommit: bool = False,
    ) -> SqlSession:
        """Open a session whose transaction acquires a connection from the data source.

        Raises
        ------
        SessionOpenError
            If the transaction or the executor cannot be created.  A
            transaction created before the failure is closed first.
        """
        with error_scope():
            tx: Transaction | None = None
            try:
                environment = self.configuration.environment
                if environment is None:
                    raise SessionOpenError("No environment is configured; cannot open a session from a data source")
                tx_factory = _transaction_factory(environment)
                tx = tx_factory.new_transaction(environment.data_source, isolation_level, autocommit)
                executor = self.configuration.new_executor(tx, executor_type)
                return SqlSession(self.configuration, executor, autocommit)
            except Exception as exc:
                _close_quietly(tx)
                raise wrap_exception(f"Error opening session.  Cause: {exc}", exc, SessionOpenError) from exc

    def open_session_from_connection(
        self,
        connection: Connection,
        executor_type: ExecutorType | str | None = None,
    ) -> SqlSession:
        """Open a session bound to a caller-owned, already open *connection*.

        The autocommit flag is read from the connection; when the driver
        cannot report it the session assumes autocommit.
        """
        with error_scope():
            try:
                autocommit = _probe_autocommit(connection)
                tx_factory = _transaction_factory(self.configuration.environment)
                tx = tx_factory.from_connection(connection)
                executor = self.configuration.new_executor(tx, executor_type)
                return SqlSession(self.configuration, executor, autocommit)
            except Exception as exc:
                raise wrap_exception(f"Error opening session.  Cause: {exc}", exc, SessionOpenError) from exc

    def __repr__(self) -> str:
        return f"SqlSessionFactory(environment={self.configuration.environment_id!r})"


def _transaction_factory(environment: Environment | None) -> TransactionFactory:
    if environment is None or environment.transaction_factory is None:
        return ManagedTransactionFactory()
    return environment.transaction_factory


def _probe_autocommit(connection: Connection) -> bool:
    try:
        level = connection.get_execution_options().get("isolation_level")
        if level is None:
            level = connection.get_isolation_level()
        return level == AUTOCOMMIT
    except Exception:
        # Most drivers that cannot report their state run in autocommit mode.
        logger.debug("Could not read autocommit state from connection; assuming autocommit", exc_info=True)
        return True


def _close_quietly(tx: Transaction | None) -> None:
    if tx is None:
        return
    try:
        tx.close()
    except Exception:
        logger.debug("Ignoring failure while closing transaction after open error", exc_info=True)
