"""The settings table accepted by the ``settings`` document section.

:class:`ConfigurationSettings` is the single source of truth for which keys
exist, what type each one has and what its default is.  Document keys are
camelCase (``cacheEnabled``); Python code uses the snake_case field names.
Class-valued settings stay as strings here and are resolved through the
type alias registry by the configuration builder.
"""

from __future__ import annotations

from enum import Enum
from typing import Any

from pydantic import BaseModel, ConfigDict, field_validator
from pydantic.alias_generators import to_camel

from mapper_engine.mapping.sql_type import SqlType


class AutoMappingBehavior(str, Enum):
    """How columns without an explicit mapping are applied to result objects."""

    NONE = "NONE"
    PARTIAL = "PARTIAL"
    FULL = "FULL"


class AutoMappingUnknownColumnBehavior(str, Enum):
    """What to do with a column that matches no attribute of the result type."""

    NONE = "NONE"
    WARNING = "WARNING"
    FAILING = "FAILING"


class ExecutorType(str, Enum):
    SIMPLE = "SIMPLE"
    REUSE = "REUSE"
    BATCH = "BATCH"


class LocalCacheScope(str, Enum):
    SESSION = "SESSION"
    STATEMENT = "STATEMENT"


class ResultSetType(str, Enum):
    DEFAULT = "DEFAULT"
    FORWARD_ONLY = "FORWARD_ONLY"
    SCROLL_INSENSITIVE = "SCROLL_INSENSITIVE"
    SCROLL_SENSITIVE = "SCROLL_SENSITIVE"


DEFAULT_LAZY_LOAD_TRIGGER_METHODS: frozenset[str] = frozenset({"__eq__", "__copy__", "__hash__", "__str__"})

# Settings whose values are class references resolved by the builder.
CLASS_SETTINGS: frozenset[str] = frozenset(
    {
        "vfs_impl",
        "log_impl",
        "proxy_factory",
        "default_scripting_language",
        "default_enum_type_handler",
        "configuration_factory",
        "default_sql_provider_type",
    }
)


class ConfigurationSettings(BaseModel):
    """Every settable configuration field with its documented default."""

    model_config = ConfigDict(alias_generator=to_camel, populate_by_name=True, extra="forbid")

    auto_mapping_behavior: AutoMappingBehavior = AutoMappingBehavior.PARTIAL
    auto_mapping_unknown_column_behavior: AutoMappingUnknownColumnBehavior = AutoMappingUnknownColumnBehavior.NONE
    cache_enabled: bool = True
    lazy_loading_enabled: bool = False
    aggressive_lazy_loading: bool = False
    multiple_result_sets_enabled: bool = True
    use_column_label: bool = True
    use_generated_keys: bool = False
    default_executor_type: ExecutorType = ExecutorType.SIMPLE
    default_statement_timeout: int | None = None
    default_fetch_size: int | None = None
    default_result_set_type: ResultSetType | None = None
    map_underscore_to_camel_case: bool = False
    safe_row_bounds_enabled: bool = False
    local_cache_scope: LocalCacheScope = LocalCacheScope.SESSION
    sql_type_for_null: SqlType = SqlType.OTHER
    lazy_load_trigger_methods: frozenset[str] = DEFAULT_LAZY_LOAD_TRIGGER_METHODS
    safe_result_handler_enabled: bool = True
    call_setters_on_nulls: bool = False
    use_actual_param_name: bool = True
    return_instance_for_empty_row: bool = False
    shrink_whitespaces_in_sql: bool = False
    log_prefix: str | None = None

    vfs_impl: str | None = None
    log_impl: str | None = None
    proxy_factory: str | None = None
    default_scripting_language: str | None = None
    default_enum_type_handler: str | None = None
    configuration_factory: str | None = None
    default_sql_provider_type: str | None = None

    @field_validator(
        "auto_mapping_behavior",
        "auto_mapping_unknown_column_behavior",
        "default_executor_type",
        "default_result_set_type",
        "local_cache_scope",
        "sql_type_for_null",
        mode="before",
    )
    @classmethod
    def _upper_enum_names(cls, value: Any) -> Any:
        if isinstance(value, str):
            return value.strip().upper()
        return value

    @field_validator("lazy_load_trigger_methods", mode="before")
    @classmethod
    def _split_method_names(cls, value: Any) -> Any:
        if isinstance(value, str):
            return frozenset(name.strip() for name in value.split(",") if name.strip())
        return value

    @field_validator("default_statement_timeout", "default_fetch_size", mode="before")
    @classmethod
    def _blank_as_none(cls, value: Any) -> Any:
        if isinstance(value, str) and not value.strip():
            return None
        return value


KNOWN_SETTINGS: frozenset[str] = frozenset(to_camel(name) for name in ConfigurationSettings.model_fields)

# Plain value settings copied verbatim onto the configuration.
VALUE_SETTINGS: tuple[str, ...] = tuple(name for name in ConfigurationSettings.model_fields if name not in CLASS_SETTINGS)
