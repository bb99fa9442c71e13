"""Object creation and introspection hooks used when mapping rows.

Three pluggable factories, each overridable from the configuration
document:

* :class:`ObjectFactory` builds result objects from column values.
* :class:`ObjectWrapperFactory` may wrap a freshly created result object.
* :class:`ReflectorFactory` caches which attributes a result type accepts.
"""

from __future__ import annotations

import dataclasses
import inspect
import threading
from typing import Any, get_type_hints


class Reflector:
    """Settable attribute names of one class."""

    def __init__(self, cls: type) -> None:
        self.type = cls
        self.settable: frozenset[str] = frozenset(_settable_names(cls))
        self._lookup = {name.lower(): name for name in self.settable}

    def has_setter(self, name: str) -> bool:
        return name in self.settable

    def find_property(self, name: str, use_camel_case_mapping: bool = False) -> str | None:
        """Return the attribute matching *name* case-insensitively.

        With camel case mapping, ``author_id`` also matches ``authorId``.
        """
        prop = self._lookup.get(name.lower())
        if prop is None and use_camel_case_mapping:
            prop = self._lookup.get(name.replace("_", "").lower())
        return prop


def _settable_names(cls: type) -> set[str]:
    if dataclasses.is_dataclass(cls):
        return {f.name for f in dataclasses.fields(cls) if f.init}

    model_fields = getattr(cls, "model_fields", None)
    if isinstance(model_fields, dict):
        return set(model_fields)

    names: set[str] = set()
    try:
        names.update(get_type_hints(cls))
    except (NameError, TypeError):
        names.update(getattr(cls, "__annotations__", {}))

    if cls.__init__ is not object.__init__:
        for param in inspect.signature(cls.__init__).parameters.values():
            if param.name != "self" and param.kind not in (param.VAR_POSITIONAL, param.VAR_KEYWORD):
                names.add(param.name)
    return {name for name in names if not name.startswith("_")}


class ReflectorFactory:
    def find_for_class(self, cls: type) -> Reflector:
        raise NotImplementedError


class DefaultReflectorFactory(ReflectorFactory):
    """Build reflectors on demand and cache them per class."""

    def __init__(self) -> None:
        self.class_cache_enabled = True
        self._cache: dict[type, Reflector] = {}
        self._lock = threading.Lock()

    def find_for_class(self, cls: type) -> Reflector:
        if not self.class_cache_enabled:
            return Reflector(cls)
        with self._lock:
            reflector = self._cache.get(cls)
            if reflector is None:
                reflector = Reflector(cls)
                self._cache[cls] = reflector
            return reflector


class ObjectFactory:
    def set_properties(self, properties: dict[str, Any]) -> None:
        """Receive the declared property bag.  No-op by default."""

    def create(self, cls: type, values: dict[str, Any] | None = None) -> Any:
        raise NotImplementedError


class DefaultObjectFactory(ObjectFactory):
    """Instantiate result types.

    Values are passed as keyword arguments when the constructor accepts
    them (dataclasses, pydantic models); otherwise the object is created
    without arguments and the values are assigned as attributes.  ``dict``
    results are returned as a plain copy.
    """

    def create(self, cls: type, values: dict[str, Any] | None = None) -> Any:
        values = dict(values or {})
        if cls is dict:
            return values
        if _accepts_keywords(cls):
            return cls(**values)
        obj = cls()
        for name, value in values.items():
            setattr(obj, name, value)
        return obj


def _accepts_keywords(cls: type) -> bool:
    if dataclasses.is_dataclass(cls) or hasattr(cls, "model_fields"):
        return True
    if cls.__init__ is object.__init__:
        return False
    params = [p for p in inspect.signature(cls.__init__).parameters.values() if p.name != "self"]
    return bool(params)


class ObjectWrapperFactory:
    def has_wrapper_for(self, obj: Any) -> bool:
        return False

    def get_wrapper_for(self, obj: Any) -> Any:
        raise NotImplementedError("The default ObjectWrapperFactory should never be asked to wrap an object")


class DefaultObjectWrapperFactory(ObjectWrapperFactory):
    """Never wraps."""
