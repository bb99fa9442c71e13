"""Parse YAML mapper documents into mapped statements.

A mapper document declares one namespace and the statements that live in
it::

    namespace: myapp.mappers.BlogMapper
    cache: {size: 512}
    sql:
      - id: columns
        sql: id, title, author_id
    statements:
      - id: find
        command: select
        resultType: Blog
        many: false
        sql: SELECT {{ columns }} FROM blog WHERE id = :id
      - id: find
        databaseId: pg
        command: select
        resultType: Blog
        many: false
        sql: SELECT {{ columns }} FROM blog WHERE id = :id FOR SHARE

Statements and fragments tagged with a ``databaseId`` only apply when it
matches the configuration's database id, and take precedence over the
untagged variant with the same id.  When the namespace names an importable
class, that class is registered as a mapper.
"""

from __future__ import annotations

import logging
import re
from typing import IO, TYPE_CHECKING

from mapper_engine.builder.base import BaseBuilder
from mapper_engine.error_context import ErrorContext
from mapper_engine.errors import BuilderError, TypeResolutionError
from mapper_engine.io.resources import class_for_name
from mapper_engine.mapping.cache import DEFAULT_CACHE_SIZE, PerpetualCache
from mapper_engine.mapping.statement import MappedStatement, SqlCommandType
from mapper_engine.parsing.node import ConfigDocument, DocumentError

if TYPE_CHECKING:
    from mapper_engine.mapping.strict import StrictDict
    from mapper_engine.parsing.node import ConfigNode
    from mapper_engine.session.configuration import Configuration

logger = logging.getLogger(__name__)

_INCLUDE_RE = re.compile(r"\{\{\s*([\w.\-]+)\s*\}\}")


class MapperDocumentParser(BaseBuilder):
    """Load one mapper document into *configuration*.

    Parameters
    ----------
    stream:
        Text stream over the document.  The caller owns and closes it.
    configuration:
        Configuration receiving the statements.
    resource:
        Name the document was loaded from, used for de-duplication and in
        error messages.
    sql_fragments:
        Fragment store shared by every mapper document of the configuration.
    """

    def __init__(
        self,
        stream: IO[str],
        configuration: Configuration,
        resource: str,
        sql_fragments: StrictDict[str],
    ) -> None:
        super().__init__(configuration)
        self.resource = resource
        self.sql_fragments = sql_fragments
        self.namespace = ""
        try:
            self._document = ConfigDocument.load(stream, configuration.variables)
        except DocumentError as exc:
            raise BuilderError(f"Error creating document instance for {resource}.  Cause: {exc}") from exc

    def parse(self) -> None:
        if self.configuration.is_resource_loaded(self.resource):
            logger.debug("Mapper document %s already loaded", self.resource)
            return
        self._configuration_element(self._document.root())
        self.configuration.add_loaded_resource(self.resource)
        self._bind_mapper_for_namespace()

    def _configuration_element(self, root: ConfigNode) -> None:
        namespace = root.get_string_attribute("namespace")
        if not namespace:
            raise BuilderError("Mapper's namespace cannot be empty")
        self.namespace = namespace
        ErrorContext.instance().resource(self.resource).activity(f"parsing mapper namespace {namespace}")

        try:
            cache = self._cache_element(root.get_attribute("cache"))
            self._sql_elements(root.get_children("sql"))
            self._statement_elements(root.get_children("statements"), cache)
        except Exception as exc:
            raise BuilderError(f"Error parsing Mapper document. The document location is '{self.resource}'. Cause: {exc}") from exc

    # -- Namespace helpers ----------------------------------------------------

    def _apply_namespace(self, base: str, is_reference: bool) -> str:
        if is_reference:
            return base if "." in base else f"{self.namespace}.{base}"
        if base.startswith(f"{self.namespace}."):
            return base
        if "." in base:
            raise BuilderError(f"Dots are not allowed in element names, please remove it from {base}")
        return f"{self.namespace}.{base}"

    # -- Cache ----------------------------------------------------------------

    def _cache_element(self, declaration: object) -> PerpetualCache | None:
        if not declaration:
            return None
        size = DEFAULT_CACHE_SIZE
        if isinstance(declaration, dict):
            size = int(declaration.get("size", DEFAULT_CACHE_SIZE))
        existing = self.configuration.caches.get(self.namespace)
        if existing is not None:
            return existing
        cache = PerpetualCache(self.namespace, size)
        self.configuration.add_cache(cache)
        return cache

    # -- SQL fragments --------------------------------------------------------

    def _sql_elements(self, children: list[ConfigNode]) -> None:
        database_id = self.configuration.database_id
        if database_id is not None:
            self._add_fragments(children, database_id)
        self._add_fragments(children, None)

    def _add_fragments(self, children: list[ConfigNode], required_database_id: str | None) -> None:
        for child in children:
            fragment_id = self._apply_namespace(self._required(child, "id"), is_reference=False)
            if child.get_string_attribute("databaseId") != required_database_id:
                continue
            if required_database_id is None and fragment_id in self.sql_fragments:
                continue
            self.sql_fragments.put(fragment_id, self._required(child, "sql"))

    def _include_fragments(self, sql: str, visiting: frozenset[str] = frozenset()) -> str:
        def _replace(match: re.Match[str]) -> str:
            fragment_id = self._apply_namespace(match.group(1), is_reference=True)
            if fragment_id in visiting:
                raise BuilderError(f"Circular include of SQL fragment '{fragment_id}'")
            fragment = self.sql_fragments.get(fragment_id)
            if fragment is None:
                raise BuilderError(f"Could not find SQL fragment with id '{fragment_id}'")
            return self._include_fragments(fragment, visiting | {fragment_id})

        return _INCLUDE_RE.sub(_replace, sql)

    # -- Statements -----------------------------------------------------------

    def _statement_elements(self, children: list[ConfigNode], cache: PerpetualCache | None) -> None:
        database_id = self.configuration.database_id
        if database_id is not None:
            self._build_statements(children, database_id, cache)
        self._build_statements(children, None, cache)

    def _build_statements(
        self,
        children: list[ConfigNode],
        required_database_id: str | None,
        cache: PerpetualCache | None,
    ) -> None:
        for child in children:
            statement_id = self._apply_namespace(self._required(child, "id"), is_reference=False)
            database_id = child.get_string_attribute("databaseId")
            if database_id != required_database_id:
                continue
            if required_database_id is None and not self.configuration.database_id_matches(statement_id, None):
                continue
            self._add_statement(child, statement_id, database_id, cache)

    def _add_statement(
        self,
        child: ConfigNode,
        statement_id: str,
        database_id: str | None,
        cache: PerpetualCache | None,
    ) -> None:
        configuration = self.configuration
        ErrorContext.instance().object(statement_id)

        command = self._required(child, "command")
        try:
            command_type = SqlCommandType(command.strip().upper())
        except ValueError as exc:
            raise BuilderError(f"Unknown command '{command}' for statement {statement_id}") from exc

        sql = self._include_fragments(self._required(child, "sql"))
        timeout = child.get_string_attribute("timeout")
        fetch_size = child.get_string_attribute("fetchSize")
        use_cache = child.get_string_attribute("useCache")
        flush_cache = child.get_string_attribute("flushCache")

        configuration.add_mapped_statement(
            MappedStatement(
                id=statement_id,
                command_type=command_type,
                sql_source=configuration.get_language_driver().create_sql_source(configuration, sql),
                resource=self.resource,
                database_id=database_id,
                result_type=self.resolve_class(child.get_string_attribute("resultType")),
                many=self.boolean_value_of(child.get_string_attribute("many"), True),
                timeout=int(timeout) if timeout is not None else configuration.default_statement_timeout,
                fetch_size=int(fetch_size) if fetch_size is not None else configuration.default_fetch_size,
                use_cache=self.boolean_value_of(use_cache, False) if use_cache is not None else None,
                flush_cache=self.boolean_value_of(flush_cache, False) if flush_cache is not None else None,
                cache=cache,
            )
        )

    @staticmethod
    def _required(child: ConfigNode, name: str) -> str:
        value = child.get_string_attribute(name)
        if not value:
            raise BuilderError(f"'{child.name}' entry {child.value!r} requires '{name}'")
        return value

    # -- Mapper binding -------------------------------------------------------

    def _bind_mapper_for_namespace(self) -> None:
        try:
            cls = class_for_name(self.namespace)
        except TypeResolutionError:
            # Namespaces are not required to name a class.
            return
        if not isinstance(cls, type) or self.configuration.has_mapper(cls):
            return
        self.configuration.add_loaded_resource(f"namespace:{self.namespace}")
        self.configuration.add_mapper(cls)
