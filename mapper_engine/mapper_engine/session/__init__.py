"""Configuration, session factory and sessions."""

from __future__ import annotations

from mapper_engine.session.settings import (
    AutoMappingBehavior,
    AutoMappingUnknownColumnBehavior,
    ConfigurationSettings,
    ExecutorType,
    LocalCacheScope,
    ResultSetType,
)
from mapper_engine.session.environment import Environment
from mapper_engine.session.configuration import Configuration
from mapper_engine.session.session import SqlSession
from mapper_engine.session.factory import SqlSessionFactory
from mapper_engine.session.builder import SqlSessionFactoryBuilder

__all__ = [
    "AutoMappingBehavior",
    "AutoMappingUnknownColumnBehavior",
    "Configuration",
    "ConfigurationSettings",
    "Environment",
    "ExecutorType",
    "LocalCacheScope",
    "ResultSetType",
    "SqlSession",
    "SqlSessionFactory",
    "SqlSessionFactoryBuilder",
]
