"""Database column type tags used to key type handlers."""

from __future__ import annotations

from enum import Enum


class SqlType(str, Enum):
    """Portable SQL type tags."""

    ARRAY = "ARRAY"
    BIGINT = "BIGINT"
    BINARY = "BINARY"
    BLOB = "BLOB"
    BOOLEAN = "BOOLEAN"
    CHAR = "CHAR"
    CLOB = "CLOB"
    DATE = "DATE"
    DECIMAL = "DECIMAL"
    DOUBLE = "DOUBLE"
    FLOAT = "FLOAT"
    INTEGER = "INTEGER"
    JSON = "JSON"
    NULL = "NULL"
    NUMERIC = "NUMERIC"
    OTHER = "OTHER"
    REAL = "REAL"
    SMALLINT = "SMALLINT"
    TIME = "TIME"
    TIMESTAMP = "TIMESTAMP"
    VARBINARY = "VARBINARY"
    VARCHAR = "VARCHAR"
