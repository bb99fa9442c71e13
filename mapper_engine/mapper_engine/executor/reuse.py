"""Reuse compiled SQL clauses for repeated statements within a session."""

from __future__ import annotations

from typing import TYPE_CHECKING, Any

from sqlalchemy import TextClause, text

from mapper_engine.executor.base import BaseExecutor, BatchResult

if TYPE_CHECKING:
    from mapper_engine.mapping.statement import MappedStatement
    from mapper_engine.scripting import BoundSql
    from mapper_engine.session.configuration import Configuration
    from mapper_engine.transaction.base import Transaction


class ReuseExecutor(BaseExecutor):
    """Keep one compiled clause per distinct SQL text until the next flush."""

    def __init__(self, configuration: Configuration, transaction: Transaction) -> None:
        super().__init__(configuration, transaction)
        self._statements: dict[str, TextClause] = {}

    def _prepare(self, bound: BoundSql) -> TextClause:
        clause = self._statements.get(bound.sql)
        if clause is None:
            clause = text(bound.sql)
            self._statements[bound.sql] = clause
        return clause

    def do_update(self, ms: MappedStatement, bound: BoundSql) -> int:
        self.log_statement(ms, bound)
        result = self.connection(ms).execute(self._prepare(bound), bound.parameters)
        return result.rowcount

    def do_query(self, ms: MappedStatement, bound: BoundSql) -> list[Any]:
        self.log_statement(ms, bound)
        result = self.connection(ms).execute(self._prepare(bound), bound.parameters)
        return self.map_rows(ms, result)

    def do_flush_statements(self, is_rollback: bool) -> list[BatchResult]:
        self._statements.clear()
        return []

    @property
    def cached_statement_count(self) -> int:
        return len(self._statements)
