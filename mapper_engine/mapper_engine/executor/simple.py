"""Execute every statement as soon as it is issued."""

from __future__ import annotations

from typing import TYPE_CHECKING, Any

from mapper_engine.executor.base import BaseExecutor, BatchResult

if TYPE_CHECKING:
    from mapper_engine.mapping.statement import MappedStatement
    from mapper_engine.scripting import BoundSql


class SimpleExecutor(BaseExecutor):
    def do_update(self, ms: MappedStatement, bound: BoundSql) -> int:
        self.log_statement(ms, bound)
        result = self.connection(ms).execute(bound.clause(), bound.parameters)
        self.configuration.get_log(ms.id).debug("<==    Updates: %d", result.rowcount)
        return result.rowcount

    def do_query(self, ms: MappedStatement, bound: BoundSql) -> list[Any]:
        self.log_statement(ms, bound)
        result = self.connection(ms).execute(bound.clause(), bound.parameters)
        return self.map_rows(ms, result)

    def do_flush_statements(self, is_rollback: bool) -> list[BatchResult]:
        return []
