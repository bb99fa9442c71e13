"""Unit tests for mapper_engine.session (SqlSession, SqlSessionFactory, builder)."""

from __future__ import annotations

from pathlib import Path
from unittest.mock import MagicMock

import pytest
from sqlalchemy import create_engine

from mapper_engine.config import EngineSettings
from mapper_engine.error_context import ErrorContext
from mapper_engine.errors import (
    BindingError,
    ExecutorError,
    SessionOpenError,
    TooManyResultsError,
)
from mapper_engine.executor import CachingExecutor, ReuseExecutor
from mapper_engine.mapping.statement import MappedStatement, SqlCommandType
from mapper_engine.plugin.interceptor import unwrap
from mapper_engine.scripting import StaticSqlSource
from mapper_engine.session import (
    Configuration,
    Environment,
    SqlSession,
    SqlSessionFactory,
    SqlSessionFactoryBuilder,
)
from mapper_engine.transaction.base import IsolationLevel
from mapper_engine.transaction.direct import DirectTransactionFactory
from mapper_engine.transaction.managed import ManagedTransaction
from sample_app.domain import Author, Blog
from sample_app.mappers import AuthorMapper, BlogMapper
from sample_app.plugins import CountingInterceptor, ExplodingInterceptor, RecordingTransactionFactory

DOCS = Path(__file__).parents[1] / "fixtures" / "docs"
BLOG = "sample_app.mappers.BlogMapper"


@pytest.fixture()
def db_url(tmp_path) -> str:
    return f"sqlite:///{tmp_path / 'app.db'}"


@pytest.fixture()
def factory(db_url) -> SqlSessionFactory:
    return SqlSessionFactoryBuilder().build(DOCS / "mapper-config.yaml", properties={"db.url": db_url})


def _create_schema(factory: SqlSessionFactory) -> None:
    with factory.open_session() as session:
        session.update(f"{BLOG}.create_table")
        session.get_mapper(AuthorMapper).create_table()
        session.commit()


# ---------------------------------------------------------------------------
# End to end through the sample configuration document
# ---------------------------------------------------------------------------


class TestEndToEnd:
    def test_factory_uses_document_settings(self, factory):
        with factory.open_session() as session:
            executor = unwrap(session.executor)
            assert isinstance(executor, CachingExecutor)
            assert isinstance(executor.delegate, ReuseExecutor)
        assert factory.configuration.sealed
        assert factory.configuration.environment_id == "dev"

    def test_insert_commit_and_read_back(self, factory):
        _create_schema(factory)
        with factory.open_session() as session:
            session.insert(f"{BLOG}.insert", Blog(1, "first", 1))
            session.insert(f"{BLOG}.insert", Blog(2, "second", 1))
            session.get_mapper(AuthorMapper).insert(1, "ann")
            session.commit()

        with factory.open_session() as session:
            # databaseId "lite" selects the vendor statement ordered DESC
            assert [blog.id for blog in session.select_list(f"{BLOG}.find_all")] == [2, 1]
            assert session.get_mapper(BlogMapper).find(1) == Blog(1, "first", 1)

            author = session.get_mapper(AuthorMapper).find(1)
            assert isinstance(author, Author)
            assert author.username == "ann"
            assert author.email is None

    def test_uncommitted_changes_rolled_back_on_close(self, factory):
        _create_schema(factory)
        with factory.open_session() as session:
            session.insert(f"{BLOG}.insert", Blog(1, "first"))

        with factory.open_session() as session:
            assert session.select_one(f"{BLOG}.count") == {"total": 0}

    def test_autocommit_session_writes_immediately(self, factory):
        _create_schema(factory)
        with factory.open_session(autocommit=True) as session:
            session.insert(f"{BLOG}.insert", Blog(1, "first"))

        with factory.open_session() as session:
            assert session.select_one(f"{BLOG}.count") == {"total": 1}

    def test_plugin_sees_executor_calls(self, factory):
        (interceptor,) = factory.configuration.interceptor_chain.interceptors
        assert isinstance(interceptor, CountingInterceptor)
        assert interceptor.properties == {"app": "sample"}

        _create_schema(factory)
        interceptor.calls.clear()
        with factory.open_session() as session:
            session.select_one(f"{BLOG}.count")
        assert interceptor.calls == ["query"]

    def test_get_connection(self, factory):
        with factory.open_session() as session:
            assert session.get_connection() is session.get_connection()

    def test_mapper_for_unknown_class(self, factory):
        with factory.open_session() as session, pytest.raises(BindingError):
            session.get_mapper(Author)

    def test_from_settings(self, db_url):
        settings = EngineSettings(config_path=DOCS / "mapper-config.yaml", environment="prod", _env_file=None)
        factory = SqlSessionFactoryBuilder.from_settings(settings, properties={"db.url": db_url})
        assert factory.configuration.environment_id == "prod"
        with factory.open_session() as session:
            assert isinstance(session.executor.get_transaction(), ManagedTransaction)

    def test_build_from_mapping(self, db_url):
        document = {
            "environments": {
                "default": "t",
                "environment": [
                    {"id": "t", "transactionManager": {"type": "DIRECT"}, "dataSource": {"type": "UNPOOLED", "properties": {"url": db_url}}}
                ],
            }
        }
        factory = SqlSessionFactoryBuilder().build(document)
        assert "environment='t'" in repr(factory)


# ---------------------------------------------------------------------------
# SqlSession against a mocked executor
# ---------------------------------------------------------------------------


@pytest.fixture()
def executor():
    return MagicMock()


def _session(executor, autocommit: bool = False) -> SqlSession:
    configuration = Configuration()
    for name, command in (("app.M.find", SqlCommandType.SELECT), ("app.M.save", SqlCommandType.UPDATE)):
        configuration.add_mapped_statement(MappedStatement(name, command, StaticSqlSource("SELECT 1")))
    return SqlSession(configuration, executor, autocommit)


class TestSqlSession:
    def test_select_one_single_and_none(self, executor):
        session = _session(executor)
        executor.query.return_value = ["row"]
        assert session.select_one("app.M.find") == "row"
        executor.query.return_value = []
        assert session.select_one("app.M.find") is None

    def test_select_one_too_many(self, executor):
        executor.query.return_value = [1, 2]
        with pytest.raises(TooManyResultsError, match="but found: 2"):
            _session(executor).select_one("app.M.find")

    def test_query_failure_wrapped(self, executor):
        executor.query.side_effect = RuntimeError("db down")
        with pytest.raises(ExecutorError, match="Error querying database") as info:
            _session(executor).select_list("app.M.find")
        assert isinstance(info.value.__cause__, RuntimeError)

    def test_unknown_statement_keeps_error_category(self, executor):
        with pytest.raises(BindingError, match="Error querying database"):
            _session(executor).select_list("app.M.missing")

    def test_update_failure_wrapped(self, executor):
        executor.update.side_effect = RuntimeError("constraint")
        session = _session(executor)
        with pytest.raises(ExecutorError, match="Error updating database"):
            session.update("app.M.save", {"id": 1})
        assert session.dirty

    def test_insert_and_delete_delegate_to_update(self, executor):
        session = _session(executor)
        session.insert("app.M.save")
        session.delete("app.M.save")
        assert executor.update.call_count == 2

    def test_commit_without_changes_not_required(self, executor):
        session = _session(executor)
        session.commit()
        executor.commit.assert_called_once_with(False)

    def test_commit_after_update_required(self, executor):
        session = _session(executor)
        session.update("app.M.save")
        session.commit()
        executor.commit.assert_called_once_with(True)
        assert not session.dirty

    def test_force_commit(self, executor):
        _session(executor).commit(force=True)
        executor.commit.assert_called_once_with(True)

    def test_autocommit_never_requires_commit(self, executor):
        session = _session(executor, autocommit=True)
        session.update("app.M.save")
        session.commit()
        executor.commit.assert_called_once_with(False)

    def test_rollback_after_update(self, executor):
        session = _session(executor)
        session.update("app.M.save")
        session.rollback()
        executor.rollback.assert_called_once_with(True)
        assert not session.dirty

    def test_commit_failure_wrapped(self, executor):
        executor.commit.side_effect = RuntimeError("lost connection")
        with pytest.raises(ExecutorError, match="Error committing transaction"):
            _session(executor).commit(force=True)

    def test_context_manager_closes_with_rollback_when_dirty(self, executor):
        with _session(executor) as session:
            session.update("app.M.save")
        executor.close.assert_called_once_with(True)

    def test_close_clean_session(self, executor):
        _session(executor).close()
        executor.close.assert_called_once_with(False)

    def test_flush_and_clear(self, executor):
        executor.flush_statements.return_value = []
        session = _session(executor)
        assert session.flush_statements() == []
        session.clear_cache()
        executor.clear_local_cache.assert_called_once_with()

    def test_get_connection_failure_wrapped(self, executor):
        executor.get_transaction.side_effect = RuntimeError("closed")
        with pytest.raises(ExecutorError, match="Error getting a connection"):
            _session(executor).get_connection()


# ---------------------------------------------------------------------------
# SqlSessionFactory
# ---------------------------------------------------------------------------


@pytest.fixture()
def engine():
    engine = create_engine("sqlite://")
    yield engine
    engine.dispose()


class TestOpenSession:
    def test_no_environment(self):
        with pytest.raises(SessionOpenError, match="No environment is configured"):
            SqlSessionFactory(Configuration()).open_session()

    def test_managed_fallback_without_transaction_factory(self, engine):
        factory = SqlSessionFactory(Configuration(Environment("x", engine)))
        with factory.open_session() as session:
            assert isinstance(session.executor.get_transaction(), ManagedTransaction)

    def test_request_passed_to_transaction_factory(self, engine):
        tx_factory = RecordingTransactionFactory()
        factory = SqlSessionFactory(Configuration(Environment("x", engine, tx_factory)))
        session = factory.open_session("batch", IsolationLevel.SERIALIZABLE, autocommit=True)
        assert tx_factory.requests == [(IsolationLevel.SERIALIZABLE, True)]
        assert session.autocommit is True

    def test_executor_failure_closes_transaction_once(self, engine):
        tx_factory = RecordingTransactionFactory()
        configuration = Configuration(Environment("x", engine, tx_factory))
        configuration.add_interceptor(ExplodingInterceptor())
        factory = SqlSessionFactory(configuration)

        with pytest.raises(SessionOpenError, match="Error opening session.  Cause: executor creation failed") as info:
            factory.open_session()

        assert isinstance(info.value.__cause__, RuntimeError)
        (tx,) = tx_factory.transactions
        assert tx.close_calls == 1

    def test_close_failure_does_not_mask_cause(self, engine):
        tx_factory = RecordingTransactionFactory()
        tx_factory.set_properties({"failOnClose": "true"})
        configuration = Configuration(Environment("x", engine, tx_factory))
        configuration.add_interceptor(ExplodingInterceptor())

        with pytest.raises(SessionOpenError) as info:
            SqlSessionFactory(configuration).open_session()

        assert str(info.value.__cause__) == "executor creation failed"
        assert tx_factory.transactions[0].close_calls == 1

    def test_factory_seals_configuration(self, engine):
        configuration = Configuration(Environment("x", engine))
        SqlSessionFactory(configuration)
        assert configuration.sealed


class TestOpenSessionFromConnection:
    def test_session_uses_given_connection(self, engine):
        factory = SqlSessionFactory(Configuration(Environment("x", engine, DirectTransactionFactory())))
        with engine.connect() as connection:
            session = factory.open_session_from_connection(connection)
            assert session.get_connection() is connection
            assert session.autocommit is False

    def test_autocommit_read_from_connection(self, engine):
        factory = SqlSessionFactory(Configuration(Environment("x", engine, DirectTransactionFactory())))
        with engine.connect() as connection:
            connection = connection.execution_options(isolation_level="AUTOCOMMIT")
            assert factory.open_session_from_connection(connection).autocommit is True

    def test_probe_failure_assumes_autocommit(self, engine):
        connection = MagicMock()
        connection.get_execution_options.side_effect = RuntimeError("unsupported")
        factory = SqlSessionFactory(Configuration(Environment("x", engine)))
        assert factory.open_session_from_connection(connection).autocommit is True

    def test_isolation_level_fallback(self, engine):
        connection = MagicMock()
        connection.get_execution_options.return_value = {}
        connection.get_isolation_level.return_value = "AUTOCOMMIT"
        factory = SqlSessionFactory(Configuration())
        session = factory.open_session_from_connection(connection)
        assert session.autocommit is True
        assert isinstance(session.executor.get_transaction(), ManagedTransaction)

    def test_executor_failure_wrapped(self, engine):
        configuration = Configuration(Environment("x", engine))
        configuration.add_interceptor(ExplodingInterceptor())
        with pytest.raises(SessionOpenError, match="executor creation failed"):
            SqlSessionFactory(configuration).open_session_from_connection(MagicMock())


# ---------------------------------------------------------------------------
# Diagnostic context
# ---------------------------------------------------------------------------


class TestDiagnosticContextReset:
    def test_open_session_success(self, engine):
        factory = SqlSessionFactory(Configuration(Environment("x", engine)))
        ErrorContext.instance().resource("stale")
        factory.open_session().close()
        assert ErrorContext.instance().current_resource is None

    def test_open_session_failure(self):
        factory = SqlSessionFactory(Configuration())
        ErrorContext.instance().resource("stale")
        with pytest.raises(SessionOpenError):
            factory.open_session()
        assert ErrorContext.instance().current_resource is None

    def test_open_session_from_connection_success(self, engine):
        factory = SqlSessionFactory(Configuration(Environment("x", engine, DirectTransactionFactory())))
        with engine.connect() as connection:
            ErrorContext.instance().resource("stale")
            factory.open_session_from_connection(connection)
        assert ErrorContext.instance().current_resource is None

    def test_open_session_from_connection_failure(self, engine):
        configuration = Configuration(Environment("x", engine))
        configuration.add_interceptor(ExplodingInterceptor())
        factory = SqlSessionFactory(configuration)
        ErrorContext.instance().resource("stale")
        with pytest.raises(SessionOpenError):
            factory.open_session_from_connection(MagicMock())
        assert ErrorContext.instance().current_resource is None
