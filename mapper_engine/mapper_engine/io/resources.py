"""Resource loading by path, by URL and by dotted class name.

Resource names are resolved against an optional base directory (normally the
directory holding the configuration document) and then the current working
directory.  URLs support ``file://`` through the filesystem and
``http(s)://`` through :mod:`httpx`.
"""

from __future__ import annotations

import importlib
import io
import logging
from pathlib import Path
from typing import IO, Any
from urllib.parse import urlparse
from urllib.request import url2pathname

import httpx
import yaml

from mapper_engine.errors import TypeResolutionError
from mapper_engine.parsing.properties import parse_properties

logger = logging.getLogger(__name__)

# Resource suffixes that are read as structured mappings instead of
# key=value property files.
_STRUCTURED_SUFFIXES = frozenset({".yaml", ".yml", ".json"})

_URL_TIMEOUT_SECONDS = 10.0


def resolve_resource_path(resource: str, base_path: Path | None = None) -> Path:
    """Locate *resource* on disk.

    Raises
    ------
    FileNotFoundError
        If the resource exists neither under *base_path* nor under the
        current working directory.
    """
    candidate = Path(resource)
    if candidate.is_absolute():
        if candidate.is_file():
            return candidate
        raise FileNotFoundError(f"Could not find resource {resource}")

    search_roots = [base_path] if base_path is not None else []
    search_roots.append(Path.cwd())
    for root in search_roots:
        path = root / candidate
        if path.is_file():
            return path

    raise FileNotFoundError(f"Could not find resource {resource}")


def open_resource_stream(resource: str, base_path: Path | None = None) -> IO[str]:
    """Open *resource* as a text stream.  The caller owns the stream."""
    path = resolve_resource_path(resource, base_path)
    logger.debug("Opening resource %s", path)
    return path.open(encoding="utf-8")


def read_url_text(url: str) -> str:
    """Fetch the text behind *url*."""
    parsed = urlparse(url)
    if parsed.scheme == "file":
        return Path(url2pathname(parsed.path)).read_text(encoding="utf-8")
    if parsed.scheme in ("http", "https"):
        logger.debug("Fetching resource from %s", url)
        response = httpx.get(url, timeout=_URL_TIMEOUT_SECONDS, follow_redirects=True)
        response.raise_for_status()
        return response.text
    raise ValueError(f"Unsupported URL scheme '{parsed.scheme}' in {url}")


def open_url_stream(url: str) -> IO[str]:
    """Return an in-memory text stream over the content behind *url*."""
    return io.StringIO(read_url_text(url))


def _properties_from_text(text: str, name: str) -> dict[str, Any]:
    if Path(urlparse(name).path).suffix.lower() in _STRUCTURED_SUFFIXES:
        data = yaml.safe_load(text) or {}
        if not isinstance(data, dict):
            raise ValueError(f"Properties resource {name} must contain a mapping, got {type(data).__name__}")
        return {str(key): value for key, value in data.items()}
    return dict(parse_properties(text))


def load_resource_properties(resource: str, base_path: Path | None = None) -> dict[str, Any]:
    """Read a properties resource (``key=value`` or YAML/JSON mapping)."""
    path = resolve_resource_path(resource, base_path)
    return _properties_from_text(path.read_text(encoding="utf-8"), resource)


def load_url_properties(url: str) -> dict[str, Any]:
    """Read a properties document from *url*."""
    return _properties_from_text(read_url_text(url), url)


def class_for_name(name: str) -> type:
    """Import and return the class named by ``pkg.module.Class`` or ``pkg.module:Class``.

    Raises
    ------
    TypeResolutionError
        If the module cannot be imported or does not define the attribute.
    """
    if ":" in name:
        module_name, _, attr_path = name.partition(":")
    else:
        module_name, _, attr_path = name.rpartition(".")

    if not module_name or not attr_path:
        raise TypeResolutionError(f"Cannot find class: {name}")

    try:
        target: Any = importlib.import_module(module_name)
    except ImportError as exc:
        raise TypeResolutionError(f"Cannot find class: {name}. Cause: {exc}") from exc

    for part in attr_path.split("."):
        try:
            target = getattr(target, part)
        except AttributeError as exc:
            raise TypeResolutionError(f"Cannot find class: {name}") from exc

    if not isinstance(target, type):
        raise TypeResolutionError(f"{name} does not name a class")
    return target
