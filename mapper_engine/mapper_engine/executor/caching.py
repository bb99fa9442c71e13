"""Namespace cache layer wrapped around an execution strategy.

Query results for statements in a namespace that declares a cache are kept
in a per-session pending area and only published to the shared
:class:`PerpetualCache` on commit, so other sessions never observe results
of an uncommitted unit of work.  Updates mark the namespace cache for
clearing at commit time.
"""

from __future__ import annotations

from collections.abc import Hashable
from typing import TYPE_CHECKING, Any

from mapper_engine.executor.base import BatchResult, Executor

if TYPE_CHECKING:
    from mapper_engine.mapping.cache import PerpetualCache
    from mapper_engine.mapping.statement import MappedStatement
    from mapper_engine.transaction.base import Transaction


class CachingExecutor(Executor):
    def __init__(self, delegate: Executor) -> None:
        self.delegate = delegate
        self._pending: dict[PerpetualCache, dict[Hashable, list[Any]]] = {}
        self._clear_on_commit: set[PerpetualCache] = set()

    def update(self, ms: MappedStatement, parameter: Any = None) -> int:
        self._flush_cache_if_required(ms)
        return self.delegate.update(ms, parameter)

    def query(self, ms: MappedStatement, parameter: Any = None) -> list[Any]:
        cache = ms.cache
        if cache is None or not ms.should_use_cache:
            return self.delegate.query(ms, parameter)

        self._flush_cache_if_required(ms)
        key = self.delegate.create_cache_key(ms, parameter)
        if cache not in self._clear_on_commit:
            cached = cache.get(key)
            if cached is not None:
                return list(cached)

        result = self.delegate.query(ms, parameter)
        self._pending.setdefault(cache, {})[key] = list(result)
        return result

    def _flush_cache_if_required(self, ms: MappedStatement) -> None:
        if ms.cache is not None and ms.should_flush_cache:
            self._clear_on_commit.add(ms.cache)
            self._pending.pop(ms.cache, None)

    def _publish(self) -> None:
        for cache in self._clear_on_commit:
            cache.clear()
        for cache, entries in self._pending.items():
            for key, value in entries.items():
                cache.put(key, value)
        self._discard()

    def _discard(self) -> None:
        self._pending.clear()
        self._clear_on_commit.clear()

    def commit(self, required: bool) -> None:
        self.delegate.commit(required)
        self._publish()

    def rollback(self, required: bool) -> None:
        try:
            self.delegate.rollback(required)
        finally:
            if required:
                self._discard()

    def close(self, force_rollback: bool) -> None:
        try:
            if force_rollback:
                self._discard()
            else:
                self._publish()
        finally:
            self.delegate.close(force_rollback)

    def flush_statements(self, is_rollback: bool = False) -> list[BatchResult]:
        return self.delegate.flush_statements(is_rollback)

    def is_closed(self) -> bool:
        return self.delegate.is_closed()

    def get_transaction(self) -> Transaction:
        return self.delegate.get_transaction()

    def clear_local_cache(self) -> None:
        self.delegate.clear_local_cache()

    def create_cache_key(self, ms: MappedStatement, parameter: Any = None) -> Hashable:
        return self.delegate.create_cache_key(ms, parameter)
