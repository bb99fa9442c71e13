"""The central registry produced by the configuration builder.

A :class:`Configuration` holds the settings, the active environment, the
registries and every mapped statement.  The builder populates it once;
:meth:`Configuration.seal` then freezes it so that it can be shared by any
number of concurrently opened sessions.  After sealing, every attribute
assignment and registry mutation raises :class:`ConfigurationSealedError`.
"""

from __future__ import annotations

import logging
from collections.abc import Mapping, Set as AbstractSet
from types import MappingProxyType
from typing import TYPE_CHECKING, Any, TypeVar

from pydantic.alias_generators import to_camel

from mapper_engine.datasource.factory import PooledDataSourceFactory, UnpooledDataSourceFactory
from mapper_engine.errors import BindingError, ConfigurationSealedError
from mapper_engine.executor import BatchExecutor, CachingExecutor, Executor, ReuseExecutor, SimpleExecutor
from mapper_engine.io.vfs import VFS, DefaultVFS
from mapper_engine.log import Log, NoLoggingLog, StdlibLog
from mapper_engine.mapping.cache import PerpetualCache
from mapper_engine.mapping.database_id import VendorDatabaseIdProvider
from mapper_engine.mapping.statement import MappedStatement
from mapper_engine.mapping.strict import StrictDict
from mapper_engine.plugin.interceptor import Interceptor, InterceptorChain
from mapper_engine.reflection import DefaultObjectFactory, DefaultObjectWrapperFactory, DefaultReflectorFactory
from mapper_engine.registry.mapper import MapperRegistry
from mapper_engine.registry.type_alias import TypeAliasRegistry
from mapper_engine.registry.type_handler import EnumTypeHandler, TypeHandler, TypeHandlerRegistry
from mapper_engine.scripting import LanguageDriver, RawLanguageDriver
from mapper_engine.session.settings import VALUE_SETTINGS, ConfigurationSettings, ExecutorType
from mapper_engine.transaction.direct import DirectTransactionFactory
from mapper_engine.transaction.managed import ManagedTransactionFactory

if TYPE_CHECKING:
    from mapper_engine.session.environment import Environment
    from mapper_engine.session.session import SqlSession
    from mapper_engine.transaction.base import Transaction

logger = logging.getLogger(__name__)

T = TypeVar("T")

_BUILTIN_COMPONENTS: dict[str, type] = {
    "DIRECT": DirectTransactionFactory,
    "MANAGED": ManagedTransactionFactory,
    "POOLED": PooledDataSourceFactory,
    "UNPOOLED": UnpooledDataSourceFactory,
    "DB_VENDOR": VendorDatabaseIdProvider,
    "PERPETUAL": PerpetualCache,
    "STDLIB": StdlibLog,
    "NO_LOGGING": NoLoggingLog,
    "RAW": RawLanguageDriver,
}


class Configuration:
    """Settings, environment and registries of one mapper engine instance.

    Parameters
    ----------
    environment:
        Optional environment to install up front.  The configuration
        builder normally installs the environment selected from the
        document instead.
    """

    def __init__(self, environment: Environment | None = None) -> None:
        object.__setattr__(self, "_sealed", False)

        defaults = ConfigurationSettings()
        for name in VALUE_SETTINGS:
            setattr(self, name, getattr(defaults, name))

        self.environment: Environment | None = environment
        self.database_id: str | None = None
        self.variables: Mapping[str, Any] = {}

        self.vfs_impl: type[VFS] = DefaultVFS
        self.log_impl: type[Log] = StdlibLog
        self.default_scripting_language: type[LanguageDriver] = RawLanguageDriver
        self.default_enum_type_handler: type[TypeHandler] = EnumTypeHandler
        self.proxy_factory: type | None = None
        self.configuration_factory: type | None = None
        self.default_sql_provider_type: type | None = None

        self.object_factory = DefaultObjectFactory()
        self.object_wrapper_factory = DefaultObjectWrapperFactory()
        self.reflector_factory = DefaultReflectorFactory()

        self.type_alias_registry = TypeAliasRegistry()
        self.type_handler_registry = TypeHandlerRegistry(EnumTypeHandler)
        self.interceptor_chain = InterceptorChain()
        self.mapper_registry = MapperRegistry(self)
        self.mapped_statements: StrictDict[MappedStatement] = StrictDict("Mapped Statements collection")
        self.sql_fragments: StrictDict[str] = StrictDict("SQL fragments")
        self.caches: StrictDict[PerpetualCache] = StrictDict("Caches collection")
        self.loaded_resources: AbstractSet[str] = set()

        for name, cls in _BUILTIN_COMPONENTS.items():
            self.type_alias_registry.register_alias(name, cls)

    # -- Sealing --------------------------------------------------------------

    def __setattr__(self, name: str, value: Any) -> None:
        if self._sealed:
            raise ConfigurationSealedError(f"Cannot set '{name}' on a sealed configuration")
        object.__setattr__(self, name, value)

    def _check_not_sealed(self) -> None:
        if self._sealed:
            raise ConfigurationSealedError("The configuration is sealed and can no longer be modified")

    @property
    def sealed(self) -> bool:
        return self._sealed

    def seal(self) -> None:
        """Freeze the configuration and its registries.  Idempotent."""
        if self._sealed:
            return
        self.type_alias_registry.seal()
        self.type_handler_registry.seal()
        self.mapper_registry.seal()
        self.interceptor_chain.seal()
        self.mapped_statements.seal()
        self.sql_fragments.seal()
        self.caches.seal()
        object.__setattr__(self, "variables", MappingProxyType(dict(self.variables)))
        object.__setattr__(self, "loaded_resources", frozenset(self.loaded_resources))
        object.__setattr__(self, "_sealed", True)
        logger.debug("Configuration sealed with %d mapped statements", len(self.mapped_statements.qualified()))

    # -- Settings -------------------------------------------------------------

    def apply_settings(self, settings: ConfigurationSettings) -> None:
        """Copy every plain value setting onto the configuration.

        Class-valued settings are resolved by the builder and assigned
        separately.
        """
        for name in VALUE_SETTINGS:
            setattr(self, name, getattr(settings, name))

    def setting_values(self) -> dict[str, Any]:
        """Current plain settings keyed by their document (camelCase) names."""
        return {to_camel(name): getattr(self, name) for name in VALUE_SETTINGS}

    def set_default_enum_type_handler(self, handler_cls: type[TypeHandler]) -> None:
        self.default_enum_type_handler = handler_cls
        self.type_handler_registry.default_enum_type_handler = handler_cls

    @property
    def environment_id(self) -> str | None:
        return self.environment.id if self.environment is not None else None

    def vfs(self) -> VFS:
        return self.vfs_impl()

    def get_log(self, name: str) -> Log:
        """Statement log for *name*, honouring ``logImpl`` and ``logPrefix``."""
        return self.log_impl(f"{self.log_prefix or ''}{name}")

    def get_language_driver(self) -> LanguageDriver:
        return self.default_scripting_language()

    # -- Plugins and executors ------------------------------------------------

    def add_interceptor(self, interceptor: Interceptor) -> None:
        self._check_not_sealed()
        self.interceptor_chain.add_interceptor(interceptor)

    def new_executor(self, transaction: Transaction, executor_type: ExecutorType | str | None = None) -> Executor:
        """Build the executor for a new session.

        The strategy defaults to ``defaultExecutorType``; the namespace cache
        layer is added when ``cacheEnabled`` and the interceptor chain is
        applied last.
        """
        if executor_type is None:
            executor_type = self.default_executor_type
        elif isinstance(executor_type, str) and not isinstance(executor_type, ExecutorType):
            executor_type = ExecutorType(executor_type.upper())

        executor: Executor
        if executor_type is ExecutorType.BATCH:
            executor = BatchExecutor(self, transaction)
        elif executor_type is ExecutorType.REUSE:
            executor = ReuseExecutor(self, transaction)
        else:
            executor = SimpleExecutor(self, transaction)

        if self.cache_enabled:
            executor = CachingExecutor(executor)
        return self.interceptor_chain.plugin_all(executor)

    # -- Mappers and statements -----------------------------------------------

    def add_mapper(self, cls: type) -> None:
        self.mapper_registry.add_mapper(cls)

    def add_mappers(self, package: str) -> None:
        self.mapper_registry.add_mappers(package, self.vfs())

    def has_mapper(self, cls: type) -> bool:
        return self.mapper_registry.has_mapper(cls)

    def get_mapper(self, cls: type[T], session: SqlSession) -> T:
        return self.mapper_registry.get_mapper(cls, session)

    def add_mapped_statement(self, ms: MappedStatement) -> None:
        self._check_not_sealed()
        self.mapped_statements.put(ms.id, ms)
        logger.debug("Registered mapped statement %s", ms.id)

    def get_mapped_statement(self, statement_id: str) -> MappedStatement:
        try:
            return self.mapped_statements[statement_id]
        except KeyError as exc:
            raise BindingError(exc.args[0]) from exc

    def has_statement(self, statement_id: str) -> bool:
        return self.mapped_statements.get(statement_id) is not None

    def database_id_matches(self, statement_id: str, required_database_id: str | None) -> bool:
        """Whether a statement declared for *required_database_id* applies here.

        Vendor-specific declarations apply only to their own database id; a
        generic declaration never replaces a vendor-specific one.
        """
        if required_database_id is not None:
            return required_database_id == self.database_id
        existing = self.mapped_statements.get(statement_id)
        return existing is None or existing.database_id is None

    def add_sql_fragment(self, fragment_id: str, sql: str) -> None:
        self._check_not_sealed()
        self.sql_fragments.put(fragment_id, sql)

    def add_cache(self, cache: PerpetualCache) -> None:
        self._check_not_sealed()
        self.caches.put(cache.id, cache)

    def add_loaded_resource(self, resource: str) -> None:
        self._check_not_sealed()
        self.loaded_resources.add(resource)

    def is_resource_loaded(self, resource: str) -> bool:
        return resource in self.loaded_resources
