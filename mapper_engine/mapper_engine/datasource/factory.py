"""SQLAlchemy engine factories declared in ``dataSource`` blocks.

The ``url`` property is required.  Properties prefixed with ``driver.`` are
passed to the DBAPI driver through ``connect_args``; ``echo`` toggles
SQLAlchemy's own SQL echo.  Creating the engine does not connect; the first
connection is made when a transaction needs one.
"""

from __future__ import annotations

import abc
import logging
from typing import Any

from sqlalchemy import create_engine
from sqlalchemy.engine import Engine
from sqlalchemy.pool import NullPool

from mapper_engine.errors import DataSourceError

logger = logging.getLogger(__name__)

_DRIVER_PREFIX = "driver."

# Pool options accepted by PooledDataSourceFactory, with their converters.
_POOL_OPTIONS: dict[str, tuple[str, type]] = {
    "poolSize": ("pool_size", int),
    "maxOverflow": ("max_overflow", int),
    "poolTimeout": ("pool_timeout", float),
    "poolRecycle": ("pool_recycle", int),
    "poolPrePing": ("pool_pre_ping", bool),
}


def _as_bool(value: Any) -> bool:
    if isinstance(value, bool):
        return value
    return str(value).strip().lower() in ("true", "1", "yes", "on")


class DataSourceFactory(abc.ABC):
    def __init__(self) -> None:
        self.properties: dict[str, Any] = {}

    def set_properties(self, properties: dict[str, Any]) -> None:
        if not properties.get("url"):
            raise DataSourceError("Data source declaration requires a 'url' property")
        self.properties = dict(properties)

    @abc.abstractmethod
    def get_data_source(self) -> Engine: ...

    def _common_options(self) -> dict[str, Any]:
        options: dict[str, Any] = {}
        connect_args = {
            key[len(_DRIVER_PREFIX) :]: value for key, value in self.properties.items() if key.startswith(_DRIVER_PREFIX)
        }
        if connect_args:
            options["connect_args"] = connect_args
        if "echo" in self.properties:
            options["echo"] = _as_bool(self.properties["echo"])
        return options


class UnpooledDataSourceFactory(DataSourceFactory):
    """Open a fresh DBAPI connection for every transaction."""

    def get_data_source(self) -> Engine:
        engine = create_engine(self.properties["url"], poolclass=NullPool, **self._common_options())
        logger.info("Created unpooled engine for %s", engine.url.render_as_string(hide_password=True))
        return engine


class PooledDataSourceFactory(DataSourceFactory):
    """Use SQLAlchemy's default pool for the dialect.

    Pool options are forwarded only when declared, because not every pool
    class accepts every option (SQLite in-memory pools reject overflow).
    """

    def get_data_source(self) -> Engine:
        options = self._common_options()
        for prop, (option, converter) in _POOL_OPTIONS.items():
            if prop in self.properties:
                raw = self.properties[prop]
                options[option] = _as_bool(raw) if converter is bool else converter(raw)

        engine = create_engine(self.properties["url"], **options)
        logger.info(
            "Created pooled engine for %s pool_size=%s",
            engine.url.render_as_string(hide_password=True),
            options.get("pool_size", "default"),
        )
        return engine
