"""mapper-engine: YAML-configured SQL statement mapping on top of SQLAlchemy."""

from __future__ import annotations

from mapper_engine.errors import (
    BindingError,
    BuilderError,
    PersistenceError,
    SessionOpenError,
    TooManyResultsError,
)
from mapper_engine.session import (
    Configuration,
    ExecutorType,
    SqlSession,
    SqlSessionFactory,
    SqlSessionFactoryBuilder,
)
from mapper_engine.builder import ConfigurationBuilder
from mapper_engine.registry import alias, delete, insert, mapper, select, update

__version__ = "0.1.0"

__all__ = [
    "BindingError",
    "BuilderError",
    "Configuration",
    "ConfigurationBuilder",
    "ExecutorType",
    "PersistenceError",
    "SessionOpenError",
    "SqlSession",
    "SqlSessionFactory",
    "SqlSessionFactoryBuilder",
    "TooManyResultsError",
    "alias",
    "delete",
    "insert",
    "mapper",
    "select",
    "update",
]
