"""Language drivers turn statement text into executable SQL sources.

The dynamic-SQL templating language is out of scope for the engine; the
built-in :class:`RawLanguageDriver` treats statement text as final SQL with
SQLAlchemy ``:name`` bind parameters.  Alternative drivers are selected
with the ``defaultScriptingLanguage`` setting.
"""

from __future__ import annotations

import abc
import re
from dataclasses import dataclass, field
from typing import TYPE_CHECKING, Any

from sqlalchemy import TextClause, text

if TYPE_CHECKING:
    from mapper_engine.session.configuration import Configuration

_WHITESPACE_RE = re.compile(r"\s+")


@dataclass(frozen=True)
class BoundSql:
    """SQL text plus the parameter mapping it will be executed with."""

    sql: str
    parameters: dict[str, Any] = field(default_factory=dict)

    def clause(self) -> TextClause:
        return text(self.sql)


class SqlSource(abc.ABC):
    @abc.abstractmethod
    def get_bound_sql(self, parameters: dict[str, Any]) -> BoundSql: ...


class StaticSqlSource(SqlSource):
    """SQL text that does not depend on the parameter values."""

    def __init__(self, sql: str) -> None:
        self.sql = sql

    def get_bound_sql(self, parameters: dict[str, Any]) -> BoundSql:
        return BoundSql(self.sql, dict(parameters))

    def __repr__(self) -> str:
        return f"StaticSqlSource({self.sql!r})"


class LanguageDriver(abc.ABC):
    @abc.abstractmethod
    def create_sql_source(self, configuration: Configuration, script: str) -> SqlSource: ...


class RawLanguageDriver(LanguageDriver):
    """Use the statement text as-is, optionally collapsing whitespace."""

    def create_sql_source(self, configuration: Configuration, script: str) -> SqlSource:
        sql = script.strip()
        if configuration.shrink_whitespaces_in_sql:
            sql = _WHITESPACE_RE.sub(" ", sql)
        return StaticSqlSource(sql)
