"""Virtual file system abstraction used for package scanning.

Package scans (type aliases, type handlers, mappers) ask the configured
:class:`VFS` for the modules that make up a package and then inspect the
classes defined in each.  The default implementation walks the import
system with :mod:`pkgutil`; alternative implementations can be supplied
through the ``vfsImpl`` setting, for example to scan zipped or generated
packages.
"""

from __future__ import annotations

import abc
import importlib
import inspect
import logging
import pkgutil
from collections.abc import Callable
from types import ModuleType

logger = logging.getLogger(__name__)


class VFS(abc.ABC):
    """Enumerate the modules belonging to a package."""

    @abc.abstractmethod
    def list_modules(self, package: str) -> list[str]:
        """Return fully-qualified names of *package* and every module below it."""

    def find_classes(self, package: str, predicate: Callable[[type], bool]) -> list[type]:
        """Import every module in *package* and collect matching classes.

        Only classes *defined* in a scanned module are considered; names
        imported from elsewhere are ignored so a class is found once.
        Private (underscore-prefixed) classes are skipped.
        """
        found: list[type] = []
        seen: set[type] = set()
        for module_name in self.list_modules(package):
            module = importlib.import_module(module_name)
            for _, obj in inspect.getmembers(module, inspect.isclass):
                if obj in seen or obj.__module__ != module.__name__:
                    continue
                if obj.__name__.startswith("_") or "." in obj.__qualname__:
                    continue
                if predicate(obj):
                    seen.add(obj)
                    found.append(obj)
        logger.debug("Scanned package %s: %d matching classes", package, len(found))
        return found


class DefaultVFS(VFS):
    """Walk packages through the regular import machinery."""

    def list_modules(self, package: str) -> list[str]:
        root: ModuleType = importlib.import_module(package)
        names = [root.__name__]
        search_path = getattr(root, "__path__", None)
        if search_path is None:
            # A plain module, not a package.
            return names
        for info in pkgutil.walk_packages(search_path, prefix=f"{root.__name__}."):
            names.append(info.name)
        return names
