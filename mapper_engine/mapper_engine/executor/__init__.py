"""Statement execution strategies."""

from __future__ import annotations

from mapper_engine.executor.base import BaseExecutor, BatchResult, Executor
from mapper_engine.executor.batch import BATCH_UPDATE_RETURN_VALUE, BatchExecutor
from mapper_engine.executor.caching import CachingExecutor
from mapper_engine.executor.reuse import ReuseExecutor
from mapper_engine.executor.simple import SimpleExecutor

__all__ = [
    "BATCH_UPDATE_RETURN_VALUE",
    "BaseExecutor",
    "BatchExecutor",
    "BatchResult",
    "CachingExecutor",
    "Executor",
    "ReuseExecutor",
    "SimpleExecutor",
]
