"""Data source factories producing SQLAlchemy engines."""

from __future__ import annotations

from mapper_engine.datasource.factory import (
    DataSourceFactory,
    PooledDataSourceFactory,
    UnpooledDataSourceFactory,
)

__all__ = [
    "DataSourceFactory",
    "PooledDataSourceFactory",
    "UnpooledDataSourceFactory",
]
