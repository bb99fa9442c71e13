"""Unit tests for mapper_engine.session.configuration."""

from __future__ import annotations

from unittest.mock import MagicMock

import pytest

from mapper_engine.errors import BindingError, ConfigurationSealedError
from mapper_engine.executor import BatchExecutor, CachingExecutor, ReuseExecutor, SimpleExecutor
from mapper_engine.log import NoLoggingLog, StdlibLog
from mapper_engine.mapping.cache import PerpetualCache
from mapper_engine.mapping.statement import MappedStatement, SqlCommandType
from mapper_engine.plugin.interceptor import Plugin, unwrap
from mapper_engine.scripting import StaticSqlSource
from mapper_engine.session.configuration import Configuration
from mapper_engine.session.factory import SqlSessionFactory
from mapper_engine.session.settings import ConfigurationSettings, ExecutorType
from mapper_engine.transaction.direct import DirectTransactionFactory
from sample_app.domain import Author
from sample_app.plugins import CountingInterceptor


def _ms(statement_id: str, database_id: str | None = None) -> MappedStatement:
    return MappedStatement(statement_id, SqlCommandType.SELECT, StaticSqlSource("SELECT 1"), database_id=database_id)


# ---------------------------------------------------------------------------
# Defaults and settings
# ---------------------------------------------------------------------------


class TestConfigurationDefaults:
    def test_value_settings_start_at_defaults(self):
        configuration = Configuration()
        assert configuration.cache_enabled is True
        assert configuration.default_executor_type is ExecutorType.SIMPLE
        assert configuration.environment is None
        assert configuration.environment_id is None

    def test_builtin_component_aliases(self):
        registry = Configuration().type_alias_registry
        assert registry.resolve_alias("DIRECT") is DirectTransactionFactory
        assert registry.resolve_alias("no_logging") is NoLoggingLog
        assert registry.resolve_alias("PERPETUAL") is PerpetualCache

    def test_apply_settings(self):
        configuration = Configuration()
        configuration.apply_settings(ConfigurationSettings(cache_enabled=False, log_prefix="sql."))
        assert configuration.cache_enabled is False
        assert configuration.setting_values()["logPrefix"] == "sql."

    def test_setting_values_use_document_names(self):
        values = Configuration().setting_values()
        assert values["mapUnderscoreToCamelCase"] is False
        assert "vfsImpl" not in values

    def test_get_log_honours_prefix_and_impl(self):
        configuration = Configuration()
        configuration.log_prefix = "sql."
        log = configuration.get_log("app.BlogMapper.find")
        assert isinstance(log, StdlibLog)
        assert log.name == "sql.app.BlogMapper.find"

        configuration.log_impl = NoLoggingLog
        assert isinstance(configuration.get_log("x"), NoLoggingLog)


# ---------------------------------------------------------------------------
# Sealing
# ---------------------------------------------------------------------------


class TestSealing:
    def test_attribute_assignment_rejected_after_seal(self):
        configuration = Configuration()
        configuration.seal()
        assert configuration.sealed
        with pytest.raises(ConfigurationSealedError, match="cache_enabled"):
            configuration.cache_enabled = False

    def test_registries_sealed(self):
        configuration = Configuration()
        configuration.seal()
        with pytest.raises(ConfigurationSealedError):
            configuration.type_alias_registry.register_alias("Author", Author)
        with pytest.raises(ConfigurationSealedError):
            configuration.add_mapped_statement(_ms("a.b"))
        with pytest.raises(ConfigurationSealedError):
            configuration.add_interceptor(CountingInterceptor())
        with pytest.raises(ConfigurationSealedError):
            configuration.add_mapper(Author)

    def test_interceptor_chain_sealed_by_session_factory(self):
        configuration = Configuration()
        configuration.add_interceptor(CountingInterceptor())
        SqlSessionFactory(configuration)

        with pytest.raises(ConfigurationSealedError):
            configuration.interceptor_chain.add_interceptor(CountingInterceptor())
        assert len(configuration.interceptor_chain) == 1

    def test_statement_fragment_and_cache_collections_sealed(self):
        configuration = Configuration()
        configuration.add_sql_fragment("ns.columns", "id, title")
        configuration.seal()

        with pytest.raises(ConfigurationSealedError):
            configuration.sql_fragments.put("ns.frag", "id")
        with pytest.raises(ConfigurationSealedError):
            configuration.mapped_statements.put("ns.late", _ms("ns.late"))
        with pytest.raises(ConfigurationSealedError):
            configuration.caches.put("ns", PerpetualCache("ns"))
        with pytest.raises(ConfigurationSealedError):
            configuration.sql_fragments["ns.other"] = "title"
        with pytest.raises(ConfigurationSealedError):
            del configuration.sql_fragments["ns.columns"]
        with pytest.raises(ConfigurationSealedError):
            configuration.sql_fragments.update({"ns.more": "id"})
        with pytest.raises(ConfigurationSealedError):
            configuration.sql_fragments.clear()
        assert configuration.sql_fragments["columns"] == "id, title"

    def test_variables_and_loaded_resources_frozen(self):
        configuration = Configuration()
        configuration.variables = {"db.url": "sqlite://"}
        configuration.add_loaded_resource("mappers/blog.yaml")
        configuration.seal()

        with pytest.raises(TypeError):
            configuration.variables["db.url"] = "sqlite:///other.db"  # type: ignore[index]
        assert isinstance(configuration.loaded_resources, frozenset)
        assert configuration.is_resource_loaded("mappers/blog.yaml")
        with pytest.raises(ConfigurationSealedError):
            configuration.add_loaded_resource("mappers/author.yaml")

    def test_seal_is_idempotent(self):
        configuration = Configuration()
        configuration.seal()
        configuration.seal()
        assert configuration.sealed


# ---------------------------------------------------------------------------
# Executors
# ---------------------------------------------------------------------------


class TestNewExecutor:
    def test_default_is_simple_wrapped_in_cache_layer(self):
        executor = Configuration().new_executor(MagicMock())
        assert isinstance(executor, CachingExecutor)
        assert isinstance(executor.delegate, SimpleExecutor)

    @pytest.mark.parametrize(
        ("executor_type", "expected"),
        [("batch", BatchExecutor), (ExecutorType.REUSE, ReuseExecutor), ("SIMPLE", SimpleExecutor)],
    )
    def test_explicit_type(self, executor_type, expected):
        configuration = Configuration()
        configuration.cache_enabled = False
        assert isinstance(configuration.new_executor(MagicMock(), executor_type), expected)

    def test_default_executor_type_setting(self):
        configuration = Configuration()
        configuration.cache_enabled = False
        configuration.default_executor_type = ExecutorType.REUSE
        assert isinstance(configuration.new_executor(MagicMock()), ReuseExecutor)

    def test_interceptors_applied(self):
        configuration = Configuration()
        configuration.add_interceptor(CountingInterceptor())
        executor = configuration.new_executor(MagicMock())
        assert isinstance(executor, Plugin)
        assert isinstance(unwrap(executor), CachingExecutor)


# ---------------------------------------------------------------------------
# Statements
# ---------------------------------------------------------------------------


class TestStatements:
    def test_get_mapped_statement_by_short_name(self):
        configuration = Configuration()
        ms = _ms("app.BlogMapper.find")
        configuration.add_mapped_statement(ms)
        assert configuration.get_mapped_statement("find") is ms
        assert configuration.has_statement("app.BlogMapper.find")

    def test_missing_statement_is_binding_error(self):
        with pytest.raises(BindingError, match="does not contain value for nope"):
            Configuration().get_mapped_statement("nope")

    def test_database_id_specific_requires_match(self):
        configuration = Configuration()
        configuration.database_id = "lite"
        assert configuration.database_id_matches("a.find", "lite")
        assert not configuration.database_id_matches("a.find", "pg")

    def test_generic_never_replaces_vendor_specific(self):
        configuration = Configuration()
        configuration.database_id = "lite"
        configuration.add_mapped_statement(_ms("a.find", database_id="lite"))
        assert not configuration.database_id_matches("a.find", None)
        assert configuration.database_id_matches("a.other", None)

    def test_loaded_resources(self):
        configuration = Configuration()
        configuration.add_loaded_resource("mappers/blog.yaml")
        assert configuration.is_resource_loaded("mappers/blog.yaml")
        assert not configuration.is_resource_loaded("other.yaml")

    def test_duplicate_cache_rejected(self):
        configuration = Configuration()
        configuration.add_cache(PerpetualCache("app.BlogMapper"))
        with pytest.raises(ValueError):
            configuration.add_cache(PerpetualCache("app.BlogMapper"))
