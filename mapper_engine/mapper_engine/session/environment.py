"""A named pairing of a data source and a transaction factory."""

from __future__ import annotations

from dataclasses import dataclass

from sqlalchemy.engine import Engine

from mapper_engine.transaction.base import TransactionFactory


@dataclass(frozen=True)
class Environment:
    """One deployment target.

    ``transaction_factory`` may be ``None``; sessions opened against such an
    environment fall back to a connection-managed transaction factory.
    """

    id: str
    data_source: Engine
    transaction_factory: TransactionFactory | None = None

    def __post_init__(self) -> None:
        if not self.id:
            raise ValueError("Parameter 'id' must not be empty")
        if self.data_source is None:
            raise ValueError("Parameter 'data_source' must not be None")
