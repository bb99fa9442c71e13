"""Mapped statement definitions."""

from __future__ import annotations

from dataclasses import dataclass
from enum import Enum
from typing import TYPE_CHECKING

if TYPE_CHECKING:
    from mapper_engine.mapping.cache import PerpetualCache
    from mapper_engine.scripting import SqlSource


class SqlCommandType(str, Enum):
    SELECT = "SELECT"
    INSERT = "INSERT"
    UPDATE = "UPDATE"
    DELETE = "DELETE"


@dataclass(frozen=True)
class MappedStatement:
    """One named SQL statement registered on the configuration.

    ``id`` is fully qualified (``namespace.statement``).  ``use_cache`` and
    ``flush_cache`` default by command type: selects read the namespace
    cache, everything else clears it.
    """

    id: str
    command_type: SqlCommandType
    sql_source: SqlSource
    resource: str = ""
    database_id: str | None = None
    result_type: type | None = None
    many: bool = True
    timeout: int | None = None
    fetch_size: int | None = None
    use_cache: bool | None = None
    flush_cache: bool | None = None
    cache: PerpetualCache | None = None

    @property
    def namespace(self) -> str:
        return self.id.rsplit(".", 1)[0] if "." in self.id else ""

    @property
    def is_select(self) -> bool:
        return self.command_type is SqlCommandType.SELECT

    @property
    def should_use_cache(self) -> bool:
        return self.is_select if self.use_cache is None else self.use_cache

    @property
    def should_flush_cache(self) -> bool:
        return (not self.is_select) if self.flush_cache is None else self.flush_cache
