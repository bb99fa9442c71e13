"""Assemble a :class:`Configuration` from a YAML configuration document.

The document is processed in a fixed order because later sections depend on
what earlier ones registered:

1. ``properties``: substitution variables for every later section
2. ``settings``: validated up front, unknown keys fail immediately
3. ``vfsImpl`` and 4. ``logImpl`` overrides
5. ``typeAliases``
6. ``plugins``
7. ``objectFactory`` / ``objectWrapperFactory`` / ``reflectorFactory``
8. settings applied onto the configuration
9. ``environments``: the first block matching the target id wins
10. ``databaseIdProvider`` (needs the environment's data source)
11. ``typeHandlers``
12. ``mappers``

Any failure is reported as one :class:`BuilderError` chained to the
original exception; a half-built configuration is never returned.
"""

from __future__ import annotations

import logging
from collections.abc import Mapping
from pathlib import Path
from typing import IO, TYPE_CHECKING, Any

from mapper_engine.builder.base import BaseBuilder
from mapper_engine.builder.mapper_builder import MapperDocumentParser
from mapper_engine.datasource.factory import DataSourceFactory
from mapper_engine.error_context import ErrorContext, error_scope
from mapper_engine.errors import BuilderError, TypeResolutionError, wrap_exception
from mapper_engine.io.resources import (
    class_for_name,
    load_resource_properties,
    load_url_properties,
    open_resource_stream,
    open_url_stream,
)
from mapper_engine.io.vfs import VFS
from mapper_engine.log import Log
from mapper_engine.mapping.database_id import DatabaseIdProvider
from mapper_engine.parsing.node import ConfigDocument, DocumentError
from mapper_engine.plugin.interceptor import Interceptor
from mapper_engine.reflection import ObjectFactory, ObjectWrapperFactory, ReflectorFactory
from mapper_engine.scripting import LanguageDriver
from mapper_engine.session.configuration import Configuration
from mapper_engine.session.environment import Environment
from mapper_engine.session.settings import KNOWN_SETTINGS, ConfigurationSettings
from mapper_engine.transaction.base import TransactionFactory

if TYPE_CHECKING:
    from mapper_engine.parsing.node import ConfigNode

logger = logging.getLogger(__name__)

DocumentSource = str | Path | IO[str] | Mapping[str, Any]

# Legacy provider name kept for older documents.
_LEGACY_DATABASE_ID_PROVIDER = "VENDOR"
_DATABASE_ID_PROVIDER = "DB_VENDOR"


class ConfigurationBuilder(BaseBuilder):
    """One-shot builder for a :class:`Configuration`.

    Parameters
    ----------
    document:
        A :class:`~pathlib.Path`, YAML text, a readable text stream or an
        already parsed mapping.
    environment:
        Id of the environment to activate.  Overrides the document's
        ``environments.default``.
    properties:
        Variables that take precedence over every property declared in or
        referenced from the document.
    base_path:
        Directory that ``resource`` references are resolved against.
        Defaults to the document's directory when *document* is a path.
    """

    def __init__(
        self,
        document: DocumentSource,
        environment: str | None = None,
        properties: Mapping[str, Any] | None = None,
        base_path: Path | None = None,
    ) -> None:
        super().__init__(Configuration())
        try:
            self._document = ConfigDocument.load(document, properties)
        except (DocumentError, OSError) as exc:
            raise BuilderError(f"Error creating document instance.  Cause: {exc}") from exc

        self.configuration.variables = dict(properties or {})
        self.environment = environment
        if base_path is None and isinstance(document, Path):
            base_path = document.resolve().parent
        self.base_path = base_path
        self.parsed = False

    def parse(self) -> Configuration:
        """Run every stage and return the populated configuration.

        Raises
        ------
        BuilderError
            On a second call, or when any stage fails.
        """
        if self.parsed:
            raise BuilderError("Each ConfigurationBuilder can only be used once.")
        self.parsed = True

        with error_scope("SQL Mapper Configuration"):
            try:
                self._parse_configuration(self._document.root())
            except Exception as exc:
                raise wrap_exception("Error parsing SQL Mapper Configuration.", exc, BuilderError) from exc

        logger.info(
            "Parsed configuration: environment=%s database_id=%s statements=%d",
            self.configuration.environment_id,
            self.configuration.database_id,
            len(self.configuration.mapped_statements.qualified()),
        )
        return self.configuration

    def _parse_configuration(self, root: ConfigNode) -> None:
        self._properties_element(root.eval_node("properties"))
        settings = self._settings_as_properties(root.eval_node("settings"))
        self._load_custom_vfs(settings)
        self._load_custom_log_impl(settings)
        self._type_aliases_element(root)
        self._plugins_element(root)
        self._object_factory_element(root.eval_node("objectFactory"))
        self._object_wrapper_factory_element(root.eval_node("objectWrapperFactory"))
        self._reflector_factory_element(root.eval_node("reflectorFactory"))
        self._settings_element(settings)
        self._environments_element(root.eval_node("environments"))
        self._database_id_provider_element(root.eval_node("databaseIdProvider"))
        self._type_handlers_element(root)
        self._mappers_element(root)

    # -----------------------------------------------------------------------
    # Properties and settings
    # -----------------------------------------------------------------------

    def _properties_element(self, node: ConfigNode | None) -> None:
        if node is None:
            return

        resource = node.get_string_attribute("resource")
        url = node.get_string_attribute("url")
        if resource is not None and url is not None:
            raise BuilderError(
                "The properties element cannot specify both a URL and a resource based property file reference.  "
                "Please specify one or the other."
            )

        merged: dict[str, Any] = {}
        if resource is not None:
            merged.update(load_resource_properties(resource, self.base_path))
        elif url is not None:
            merged.update(load_url_properties(url))
        merged.update(node.get_children_as_properties())
        merged.update(self.configuration.variables)

        self._document.set_variables(merged)
        self.configuration.variables = merged
        logger.debug("Resolved %d configuration properties", len(merged))

    def _settings_as_properties(self, node: ConfigNode | None) -> dict[str, Any]:
        if node is None:
            return {}
        props = node.as_properties()
        for key in props:
            if key not in KNOWN_SETTINGS:
                raise BuilderError(f"The setting {key} is not known.  Make sure you spelled it correctly (case sensitive).")
        return props

    def _load_custom_vfs(self, props: dict[str, Any]) -> None:
        value = props.get("vfsImpl")
        if not value:
            return
        for name in str(value).split(","):
            name = name.strip()
            if not name:
                continue
            vfs_cls = self.resolve_class(name)
            if not (isinstance(vfs_cls, type) and issubclass(vfs_cls, VFS)):
                raise BuilderError(f"vfsImpl {name} is not a VFS implementation")
            self.configuration.vfs_impl = vfs_cls

    def _load_custom_log_impl(self, props: dict[str, Any]) -> None:
        value = props.get("logImpl")
        if not value:
            return
        log_cls = self.resolve_class(str(value))
        if not (isinstance(log_cls, type) and issubclass(log_cls, Log)):
            raise BuilderError(f"logImpl {value} is not a Log implementation")
        self.configuration.log_impl = log_cls

    def _settings_element(self, props: dict[str, Any]) -> None:
        settings = ConfigurationSettings.model_validate(props)
        configuration = self.configuration
        configuration.apply_settings(settings)

        if settings.proxy_factory:
            configuration.proxy_factory = self.resolve_class(settings.proxy_factory)
        if settings.default_scripting_language:
            driver_cls = self.resolve_class(settings.default_scripting_language)
            if not (isinstance(driver_cls, type) and issubclass(driver_cls, LanguageDriver)):
                raise BuilderError(f"defaultScriptingLanguage {settings.default_scripting_language} is not a LanguageDriver")
            configuration.default_scripting_language = driver_cls
        if settings.default_enum_type_handler:
            configuration.set_default_enum_type_handler(self.resolve_class(settings.default_enum_type_handler))  # type: ignore[arg-type]
        if settings.configuration_factory:
            configuration.configuration_factory = self.resolve_class(settings.configuration_factory)
        if settings.default_sql_provider_type:
            configuration.default_sql_provider_type = self.resolve_class(settings.default_sql_provider_type)

    # -----------------------------------------------------------------------
    # Aliases, plugins and factories
    # -----------------------------------------------------------------------

    def _type_aliases_element(self, root: ConfigNode) -> None:
        for child in root.get_children("typeAliases"):
            if child.name == "package":
                package = _package_name(child, "typeAliases")
                self.type_alias_registry.register_package(package, self.configuration.vfs())
                continue

            alias = child.get_string_attribute("alias")
            type_name = child.get_string_attribute("type")
            if type_name is None:
                raise BuilderError(f"Type alias entry {child.value!r} requires a 'type'")
            try:
                cls = class_for_name(type_name)
            except TypeResolutionError as exc:
                raise BuilderError(f"Error registering typeAlias for '{alias}'. Cause: {exc}") from exc
            if alias is None:
                self.type_alias_registry.register_type(cls)
            else:
                self.type_alias_registry.register_alias(alias, cls)

    def _plugins_element(self, root: ConfigNode) -> None:
        for child in root.get_children("plugins"):
            name = child.get_string_attribute("interceptor")
            interceptor = self.create_instance(name)
            if not isinstance(interceptor, Interceptor):
                raise BuilderError(f"Plugin {name} is not an Interceptor")
            interceptor.set_properties(child.get_children_as_properties())
            self.configuration.add_interceptor(interceptor)

    def _object_factory_element(self, node: ConfigNode | None) -> None:
        if node is None:
            return
        factory = self._create_typed(node, ObjectFactory)
        factory.set_properties(node.get_children_as_properties())
        self.configuration.object_factory = factory

    def _object_wrapper_factory_element(self, node: ConfigNode | None) -> None:
        if node is None:
            return
        self.configuration.object_wrapper_factory = self._create_typed(node, ObjectWrapperFactory)

    def _reflector_factory_element(self, node: ConfigNode | None) -> None:
        if node is None:
            return
        self.configuration.reflector_factory = self._create_typed(node, ReflectorFactory)

    def _create_typed(self, node: ConfigNode, base: type) -> Any:
        type_name = node.get_string_attribute("type")
        instance = self.create_instance(type_name)
        if not isinstance(instance, base):
            raise BuilderError(f"{node.name} type {type_name} is not a {base.__name__}")
        return instance

    # -----------------------------------------------------------------------
    # Environment and database id
    # -----------------------------------------------------------------------

    def _environments_element(self, node: ConfigNode | None) -> None:
        if node is None:
            return
        if self.environment is None:
            self.environment = node.get_string_attribute("default")

        for child in node.get_children("environment"):
            env_id = child.get_string_attribute("id")
            if not self._is_specified_environment(env_id):
                continue
            tx_factory = self._transaction_manager_element(child.eval_node("transactionManager"))
            ds_factory = self._data_source_element(child.eval_node("dataSource"))
            data_source = ds_factory.get_data_source()
            self.configuration.environment = Environment(env_id, data_source, tx_factory)  # type: ignore[arg-type]
            logger.info("Activated environment %s", env_id)
            break

    def _is_specified_environment(self, env_id: str | None) -> bool:
        if self.environment is None:
            raise BuilderError("No environment specified.")
        if env_id is None:
            raise BuilderError("Environment requires an id attribute.")
        return self.environment == env_id

    def _transaction_manager_element(self, node: ConfigNode | None) -> TransactionFactory:
        if node is None:
            raise BuilderError("Environment declaration requires a TransactionFactory.")
        factory = self._create_typed(node, TransactionFactory)
        factory.set_properties(node.get_children_as_properties())
        return factory

    def _data_source_element(self, node: ConfigNode | None) -> DataSourceFactory:
        if node is None:
            raise BuilderError("Environment declaration requires a DataSourceFactory.")
        factory = self._create_typed(node, DataSourceFactory)
        factory.set_properties(node.get_children_as_properties())
        return factory

    def _database_id_provider_element(self, node: ConfigNode | None) -> None:
        if node is None:
            return
        type_name = node.get_string_attribute("type")
        if type_name == _LEGACY_DATABASE_ID_PROVIDER:
            type_name = _DATABASE_ID_PROVIDER
        provider = self.create_instance(type_name)
        if not isinstance(provider, DatabaseIdProvider):
            raise BuilderError(f"databaseIdProvider type {type_name} is not a DatabaseIdProvider")
        provider.set_properties(node.get_children_as_properties())

        environment = self.configuration.environment
        if environment is not None:
            self.configuration.database_id = provider.get_database_id(environment.data_source)
            logger.debug("Resolved database id %s", self.configuration.database_id)

    # -----------------------------------------------------------------------
    # Type handlers and mappers
    # -----------------------------------------------------------------------

    def _type_handlers_element(self, root: ConfigNode) -> None:
        vfs = self.configuration.vfs()
        for child in root.get_children("typeHandlers"):
            if child.name == "package":
                self.type_handler_registry.register_package(_package_name(child, "typeHandlers"), vfs)
                continue

            python_type = self.resolve_class(child.get_string_attribute("pythonType"))
            sql_type = self.resolve_sql_type(child.get_string_attribute("sqlType"))
            handler_cls = self.resolve_class(child.get_string_attribute("handler"))
            if handler_cls is None:
                raise BuilderError(f"Type handler entry {child.value!r} requires a 'handler'")
            self.type_handler_registry.register(handler_cls, python_type, sql_type)

    def _mappers_element(self, root: ConfigNode) -> None:
        configuration = self.configuration
        for child in root.get_children("mappers"):
            if child.name == "package":
                configuration.add_mappers(_package_name(child, "mappers"))
                continue

            resource = child.get_string_attribute("resource")
            url = child.get_string_attribute("url")
            class_name = child.get_string_attribute("class")
            if resource is not None and url is None and class_name is None:
                ErrorContext.instance().resource(resource)
                with open_resource_stream(resource, self.base_path) as stream:
                    MapperDocumentParser(stream, configuration, resource, configuration.sql_fragments).parse()
            elif resource is None and url is not None and class_name is None:
                ErrorContext.instance().resource(url)
                with open_url_stream(url) as stream:
                    MapperDocumentParser(stream, configuration, url, configuration.sql_fragments).parse()
            elif resource is None and url is None and class_name is not None:
                configuration.add_mapper(class_for_name(class_name))
            else:
                raise BuilderError("A mapper element may only specify a url, resource or class, but not more than one.")


def _package_name(entry: ConfigNode, section: str) -> str:
    """Return the package an entry scans; a package entry carries no other selector."""
    others = sorted(str(key) for key in entry.value if key != "package")
    if others:
        raise BuilderError(f"A {section} entry may only specify a package or {', '.join(others)}, but not both.")
    package = entry.get_string_attribute("package")
    if not package:
        raise BuilderError(f"A {section} package entry requires a package name.")
    return package
