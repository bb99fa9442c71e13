"""Queue updates and send them to the database in batches.

Consecutive updates with the same statement and SQL text share one batch
and go out as a single ``executemany`` call.  Batches are flushed on
commit, on an explicit flush and before any query, so reads always observe
queued writes.
"""

from __future__ import annotations

import logging
from typing import TYPE_CHECKING, Any

from sqlalchemy import text

from mapper_engine.executor.base import BaseExecutor, BatchResult

if TYPE_CHECKING:
    from mapper_engine.mapping.statement import MappedStatement
    from mapper_engine.scripting import BoundSql
    from mapper_engine.session.configuration import Configuration
    from mapper_engine.transaction.base import Transaction

logger = logging.getLogger(__name__)

# Returned by update() in batch mode; the real counts arrive with the flush.
BATCH_UPDATE_RETURN_VALUE = -2147482646


class BatchExecutor(BaseExecutor):
    def __init__(self, configuration: Configuration, transaction: Transaction) -> None:
        super().__init__(configuration, transaction)
        self._batches: list[BatchResult] = []

    def do_update(self, ms: MappedStatement, bound: BoundSql) -> int:
        current = self._batches[-1] if self._batches else None
        if current is not None and current.mapped_statement is ms and current.sql == bound.sql:
            current.parameters.append(bound.parameters)
        else:
            self.log_statement(ms, bound)
            self._batches.append(BatchResult(ms, bound.sql, [bound.parameters]))
        return BATCH_UPDATE_RETURN_VALUE

    def do_query(self, ms: MappedStatement, bound: BoundSql) -> list[Any]:
        self.flush_statements()
        self.log_statement(ms, bound)
        result = self.connection(ms).execute(bound.clause(), bound.parameters)
        return self.map_rows(ms, result)

    def do_flush_statements(self, is_rollback: bool) -> list[BatchResult]:
        pending, self._batches = self._batches, []
        if is_rollback or not pending:
            return []

        connection = self.connection(pending[0].mapped_statement)
        for batch in pending:
            result = connection.execute(text(batch.sql), batch.parameters)
            batch.update_count = result.rowcount
            logger.debug("Flushed batch of %d for %s", len(batch.parameters), batch.mapped_statement.id)
        return pending

    @property
    def pending_batches(self) -> int:
        return len(self._batches)
