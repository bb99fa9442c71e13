"""Builders that turn YAML documents into a configuration."""

from __future__ import annotations

from mapper_engine.builder.config_builder import ConfigurationBuilder
from mapper_engine.builder.mapper_builder import MapperDocumentParser

__all__ = ["ConfigurationBuilder", "MapperDocumentParser"]
