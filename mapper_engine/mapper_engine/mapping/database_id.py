"""Resolve a vendor identifier for the active data source.

Mapper documents can carry vendor-specific variants of a statement tagged
with ``databaseId``.  The provider configured in the ``databaseIdProvider``
section decides which identifier the active environment answers to.
"""

from __future__ import annotations

import abc
import logging
from typing import Any

from sqlalchemy.engine import Engine

logger = logging.getLogger(__name__)


class DatabaseIdProvider(abc.ABC):
    def set_properties(self, properties: dict[str, Any]) -> None:
        """Receive the declared property bag.  No-op by default."""

    @abc.abstractmethod
    def get_database_id(self, data_source: Engine) -> str | None: ...


class VendorDatabaseIdProvider(DatabaseIdProvider):
    """Map the SQLAlchemy dialect name to a configured identifier.

    With no properties the dialect name itself (``sqlite``, ``postgresql``,
    ...) is the identifier.  With properties, the first key contained in the
    dialect name selects the value; no match yields ``None``.
    """

    def __init__(self) -> None:
        self.properties: dict[str, str] = {}

    def set_properties(self, properties: dict[str, Any]) -> None:
        self.properties = {str(key): str(value) for key, value in properties.items()}

    def get_database_id(self, data_source: Engine) -> str | None:
        if data_source is None:
            raise ValueError("data_source cannot be None")
        try:
            return self._database_name(data_source)
        except Exception:
            logger.error("Could not get a databaseId from data source %r", data_source, exc_info=True)
        return None

    def _database_name(self, data_source: Engine) -> str | None:
        product_name = data_source.dialect.name
        if not self.properties:
            return product_name
        for key, value in self.properties.items():
            if key.lower() in product_name.lower():
                return value
        return None
