"""Transaction abstractions and the built-in transaction factories."""

from __future__ import annotations

from mapper_engine.transaction.base import AUTOCOMMIT, IsolationLevel, Transaction, TransactionFactory
from mapper_engine.transaction.direct import DirectTransaction, DirectTransactionFactory
from mapper_engine.transaction.managed import ManagedTransaction, ManagedTransactionFactory

__all__ = [
    "AUTOCOMMIT",
    "DirectTransaction",
    "DirectTransactionFactory",
    "IsolationLevel",
    "ManagedTransaction",
    "ManagedTransactionFactory",
    "Transaction",
    "TransactionFactory",
]
