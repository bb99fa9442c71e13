"""Entry point: build a session factory from a configuration document."""

from __future__ import annotations

import logging
from collections.abc import Mapping
from pathlib import Path
from typing import IO, TYPE_CHECKING, Any

from mapper_engine.session.factory import SqlSessionFactory

if TYPE_CHECKING:
    from mapper_engine.config import EngineSettings
    from mapper_engine.session.configuration import Configuration

logger = logging.getLogger(__name__)


class SqlSessionFactoryBuilder:
    """Build :class:`SqlSessionFactory` instances.

    The builder keeps no state; it only exists to group the ways a factory
    can be obtained::

        factory = SqlSessionFactoryBuilder().build(Path("mapper-config.yaml"), environment="prod")
    """

    def build(
        self,
        document: str | Path | IO[str] | Mapping[str, Any],
        environment: str | None = None,
        properties: Mapping[str, Any] | None = None,
        base_path: Path | None = None,
    ) -> SqlSessionFactory:
        # Deferred import: the builder package depends on the session package.
        from mapper_engine.builder.config_builder import ConfigurationBuilder

        configuration = ConfigurationBuilder(document, environment, properties, base_path).parse()
        return self.build_from_configuration(configuration)

    def build_from_configuration(self, configuration: Configuration) -> SqlSessionFactory:
        return SqlSessionFactory(configuration)

    @classmethod
    def from_settings(cls, settings: EngineSettings, properties: Mapping[str, Any] | None = None) -> SqlSessionFactory:
        """Build a factory from process-level :class:`EngineSettings`."""
        logger.info("Building session factory from %s", settings.config_path)
        return cls().build(
            settings.config_path,
            environment=settings.environment,
            properties=properties,
            base_path=settings.resolved_base_path(),
        )
