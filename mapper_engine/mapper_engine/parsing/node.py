"""Node access over parsed YAML configuration documents.

A :class:`ConfigDocument` owns the parsed tree and the substitution
variables; every :class:`ConfigNode` handed out by the document shares that
variable map, so variables installed after the ``properties`` stage are
visible to all nodes evaluated later.

Typical usage::

    document = ConfigDocument.load(Path("mapper-config.yaml"))
    root = document.root()
    for child in root.eval_node("mappers").get_children():
        ...
"""

from __future__ import annotations

from collections.abc import Mapping
from pathlib import Path
from typing import IO, Any

import yaml

from mapper_engine.parsing.properties import resolve_placeholders

# Singular names given to list entries of well-known sections.
_CHILD_NAMES: dict[str, str] = {
    "typeAliases": "typeAlias",
    "typeHandlers": "typeHandler",
    "plugins": "plugin",
    "mappers": "mapper",
    "environments": "environment",
    "environment": "environment",
    "sql": "sql",
    "statements": "statement",
}


class DocumentError(ValueError):
    """Raised when a document cannot be read or has the wrong shape."""


class ConfigDocument:
    """A parsed YAML document plus its placeholder variables."""

    def __init__(self, data: Any, variables: Mapping[str, Any] | None = None, name: str = "<document>") -> None:
        if data is None:
            data = {}
        if not isinstance(data, dict):
            raise DocumentError(f"Document {name} must contain a mapping at its root, got {type(data).__name__}")
        self.data: dict[str, Any] = data
        self.name = name
        self.variables: dict[str, Any] = dict(variables or {})

    @classmethod
    def load(cls, source: str | Path | IO[str] | Mapping[str, Any], variables: Mapping[str, Any] | None = None) -> ConfigDocument:
        """Build a document from a path, YAML text, a text stream or a mapping."""
        if isinstance(source, Mapping):
            return cls(dict(source), variables)

        if isinstance(source, Path):
            text = source.read_text(encoding="utf-8")
            name = str(source)
        elif isinstance(source, str):
            text = source
            name = "<string>"
        else:
            text = source.read()
            name = getattr(source, "name", "<stream>")

        try:
            data = yaml.safe_load(text)
        except yaml.YAMLError as exc:
            raise DocumentError(f"Invalid YAML in {name}: {exc}") from exc
        return cls(data, variables, name)

    def set_variables(self, variables: Mapping[str, Any]) -> None:
        self.variables = dict(variables)

    def root(self) -> ConfigNode:
        return ConfigNode(self, "document", self.data)


class ConfigNode:
    """One node of a :class:`ConfigDocument`."""

    def __init__(self, document: ConfigDocument, name: str, value: Any) -> None:
        self._document = document
        self.name = name
        self.value = value

    def __repr__(self) -> str:
        return f"ConfigNode(name={self.name!r}, value={self.value!r})"

    def _resolve(self, value: Any) -> Any:
        if isinstance(value, str):
            return resolve_placeholders(value, self._document.variables)
        return value

    def eval_node(self, name: str) -> ConfigNode | None:
        """Return the child section *name*, or ``None`` when absent."""
        if not isinstance(self.value, dict) or name not in self.value:
            return None
        child = self.value[name]
        if child is None:
            return None
        return ConfigNode(self._document, name, child)

    def get_string_attribute(self, name: str, default: str | None = None) -> str | None:
        """Return a scalar attribute as a placeholder-resolved string."""
        if not isinstance(self.value, dict):
            return default
        raw = self.value.get(name)
        if raw is None:
            return default
        if isinstance(raw, (dict, list)):
            raise DocumentError(f"Attribute '{name}' of '{self.name}' must be a scalar")
        if isinstance(raw, bool):
            raw = "true" if raw else "false"
        return self._resolve(str(raw))

    def get_attribute(self, name: str, default: Any = None) -> Any:
        """Return a raw attribute value with string placeholders resolved."""
        if not isinstance(self.value, dict):
            return default
        raw = self.value.get(name, default)
        return self._resolve(raw)

    def get_children(self, key: str | None = None) -> list[ConfigNode]:
        """Return the entries of this node's list, or of the list stored at *key*.

        Entries carrying a ``package`` key are named ``"package"``; the others
        take the singular name of their section.
        """
        items = self.value
        container = self.name
        if key is not None:
            items = self.value.get(key) if isinstance(self.value, dict) else None
            container = key
        if items is None:
            return []
        if not isinstance(items, list):
            raise DocumentError(f"Section '{container}' must be a list")

        child_name = _CHILD_NAMES.get(container, container)
        children: list[ConfigNode] = []
        for item in items:
            if isinstance(item, dict) and "package" in item:
                children.append(ConfigNode(self._document, "package", item))
            else:
                children.append(ConfigNode(self._document, child_name, item))
        return children

    def get_children_as_properties(self) -> dict[str, Any]:
        """Return the node's ``properties`` bag with placeholders resolved."""
        if not isinstance(self.value, dict):
            return {}
        bag = self.value.get("properties")
        if bag is None:
            return {}
        if not isinstance(bag, dict):
            raise DocumentError(f"'properties' of '{self.name}' must be a mapping")
        return {str(key): self._resolve(value) for key, value in bag.items()}

    def as_properties(self) -> dict[str, Any]:
        """Return this node's own mapping as flat properties."""
        if not isinstance(self.value, dict):
            raise DocumentError(f"Section '{self.name}' must be a mapping")
        return {str(key): self._resolve(value) for key, value in self.value.items()}
