"""Unit tests for mapper_engine.transaction and mapper_engine.datasource."""

from __future__ import annotations

from unittest.mock import MagicMock

import pytest
from sqlalchemy import create_engine, text
from sqlalchemy.exc import OperationalError
from sqlalchemy.pool import NullPool

from mapper_engine.datasource.factory import PooledDataSourceFactory, UnpooledDataSourceFactory
from mapper_engine.errors import DataSourceError, TransactionError
from mapper_engine.transaction import (
    AUTOCOMMIT,
    DirectTransaction,
    DirectTransactionFactory,
    IsolationLevel,
    ManagedTransaction,
    ManagedTransactionFactory,
)


@pytest.fixture()
def engine(tmp_path):
    eng = create_engine(f"sqlite:///{tmp_path / 'tx.db'}")
    with eng.begin() as conn:
        conn.execute(text("CREATE TABLE item (id INTEGER PRIMARY KEY)"))
    yield eng
    eng.dispose()


def _count(engine) -> int:
    with engine.connect() as conn:
        return conn.execute(text("SELECT COUNT(*) FROM item")).scalar_one()


# ---------------------------------------------------------------------------
# DirectTransaction
# ---------------------------------------------------------------------------


class TestDirectTransaction:
    def test_connection_acquired_lazily(self):
        data_source = MagicMock()
        tx = DirectTransaction(data_source)
        data_source.connect.assert_not_called()
        tx.get_connection()
        tx.get_connection()
        data_source.connect.assert_called_once()

    def test_commit_persists(self, engine):
        tx = DirectTransactionFactory().new_transaction(engine)
        tx.get_connection().execute(text("INSERT INTO item (id) VALUES (1)"))
        tx.commit()
        tx.close()
        assert _count(engine) == 1

    def test_rollback_discards(self, engine):
        tx = DirectTransactionFactory().new_transaction(engine)
        tx.get_connection().execute(text("INSERT INTO item (id) VALUES (1)"))
        tx.rollback()
        tx.close()
        assert _count(engine) == 0

    def test_commit_and_close_without_connection_are_noops(self):
        data_source = MagicMock()
        tx = DirectTransaction(data_source)
        tx.commit()
        tx.rollback()
        tx.close()
        data_source.connect.assert_not_called()

    def test_autocommit_applied_after_isolation_level(self):
        connection = MagicMock()
        connection.execution_options.return_value = connection
        data_source = MagicMock()
        data_source.connect.return_value = connection

        DirectTransaction(data_source, IsolationLevel.SERIALIZABLE, autocommit=True).get_connection()

        levels = [c.kwargs["isolation_level"] for c in connection.execution_options.call_args_list]
        assert levels == ["SERIALIZABLE", AUTOCOMMIT]

    def test_autocommit_skips_commit(self):
        connection = MagicMock()
        connection.execution_options.return_value = connection
        data_source = MagicMock()
        data_source.connect.return_value = connection

        tx = DirectTransaction(data_source, autocommit=True)
        tx.get_connection()
        tx.commit()
        tx.rollback()

        connection.commit.assert_not_called()
        connection.rollback.assert_not_called()

    def test_connect_failure_wrapped(self):
        data_source = MagicMock()
        data_source.connect.side_effect = OperationalError("connect", {}, Exception("refused"))
        with pytest.raises(TransactionError, match="Error opening connection"):
            DirectTransaction(data_source).get_connection()

    def test_requires_data_source_or_connection(self):
        with pytest.raises(TransactionError):
            DirectTransaction()

    def test_from_connection_uses_given_connection(self):
        connection = MagicMock()
        tx = DirectTransactionFactory().from_connection(connection)
        assert tx.get_connection() is connection


# ---------------------------------------------------------------------------
# ManagedTransaction
# ---------------------------------------------------------------------------


class TestManagedTransaction:
    def test_commit_and_rollback_ignored(self):
        connection = MagicMock()
        tx = ManagedTransaction(connection=connection)
        tx.commit()
        tx.rollback()
        connection.commit.assert_not_called()
        connection.rollback.assert_not_called()

    def test_close_releases_connection_by_default(self):
        connection = MagicMock()
        ManagedTransactionFactory().from_connection(connection).close()
        connection.close.assert_called_once()

    def test_second_close_is_noop(self):
        connection = MagicMock()
        tx = ManagedTransaction(connection=connection)
        tx.close()
        tx.close()
        connection.close.assert_called_once()

    def test_close_failure_still_drops_connection(self):
        connection = MagicMock()
        connection.close.side_effect = RuntimeError("close failed")
        tx = ManagedTransaction(connection=connection)
        with pytest.raises(RuntimeError):
            tx.close()
        tx.close()
        connection.close.assert_called_once()

    def test_close_connection_property_false_keeps_connection(self):
        factory = ManagedTransactionFactory()
        factory.set_properties({"closeConnection": "false"})
        connection = MagicMock()
        factory.from_connection(connection).close()
        connection.close.assert_not_called()

    def test_isolation_level_applied(self):
        connection = MagicMock()
        connection.execution_options.return_value = connection
        data_source = MagicMock()
        data_source.connect.return_value = connection

        ManagedTransactionFactory().new_transaction(data_source, IsolationLevel.READ_COMMITTED).get_connection()

        connection.execution_options.assert_called_once_with(isolation_level="READ COMMITTED")


# ---------------------------------------------------------------------------
# Data source factories
# ---------------------------------------------------------------------------


class TestDataSourceFactories:
    def test_url_required(self):
        with pytest.raises(DataSourceError, match="url"):
            PooledDataSourceFactory().set_properties({"username": "sa"})

    def test_unpooled_uses_null_pool(self):
        factory = UnpooledDataSourceFactory()
        factory.set_properties({"url": "sqlite://"})
        assert isinstance(factory.get_data_source().pool, NullPool)

    def test_pooled_engine_url(self):
        factory = PooledDataSourceFactory()
        factory.set_properties({"url": "sqlite://", "echo": "true"})
        engine = factory.get_data_source()
        assert engine.url.drivername == "sqlite"
        assert engine.echo is True

    def test_pool_options_forwarded(self, monkeypatch):
        factory = PooledDataSourceFactory()
        factory.set_properties({"url": "postgresql://u:p@localhost/db", "poolSize": "7", "poolPrePing": "yes"})
        create = MagicMock()
        monkeypatch.setattr("mapper_engine.datasource.factory.create_engine", create)
        factory.get_data_source()
        _, kwargs = create.call_args
        assert kwargs["pool_size"] == 7
        assert kwargs["pool_pre_ping"] is True

    def test_driver_properties_become_connect_args(self, monkeypatch):
        factory = UnpooledDataSourceFactory()
        factory.set_properties({"url": "sqlite://", "driver.timeout": 3})
        create = MagicMock()
        monkeypatch.setattr("mapper_engine.datasource.factory.create_engine", create)
        factory.get_data_source()
        _, kwargs = create.call_args
        assert kwargs["connect_args"] == {"timeout": 3}
