"""Interceptor chain for wrapping engine capabilities.

An :class:`Interceptor` declares, through :func:`intercepts`, which
capability types and method names it cares about.  When the chain is
applied to a target (an executor, for instance) each interested
interceptor wraps the current target in a :class:`Plugin` decorator, so the
result is a stack of nested decorators with the original object at the
bottom::

    @intercepts(Signature(Executor, "update"))
    class AuditInterceptor(Interceptor):
        def intercept(self, invocation):
            logger.info("update %s", invocation.args[0].id)
            return invocation.proceed()

Interceptors are configuration-time singletons.  Any state they keep must be
safe for the concurrency model of the application using them.
"""

from __future__ import annotations

import abc
import logging
from collections.abc import Callable
from dataclasses import dataclass, field
from typing import Any, TypeVar

from mapper_engine.errors import ConfigurationSealedError, PluginError

logger = logging.getLogger(__name__)

T = TypeVar("T")


@dataclass(frozen=True)
class Signature:
    """A capability type and the name of one of its methods."""

    type: type
    method: str


def intercepts(*signatures: Signature) -> Callable[[type[T]], type[T]]:
    """Class decorator recording the signatures an interceptor handles."""

    def decorator(cls: type[T]) -> type[T]:
        cls.__intercepts__ = tuple(signatures)  # type: ignore[attr-defined]
        return cls

    return decorator


@dataclass
class Invocation:
    """A single intercepted call, ready to be forwarded to the wrapped target."""

    target: Any
    method: str
    args: tuple[Any, ...] = ()
    kwargs: dict[str, Any] = field(default_factory=dict)

    def proceed(self) -> Any:
        return getattr(self.target, self.method)(*self.args, **self.kwargs)


class Interceptor(abc.ABC):
    """Base class for plugins."""

    @abc.abstractmethod
    def intercept(self, invocation: Invocation) -> Any:
        """Handle an intercepted call; call ``invocation.proceed()`` to delegate."""

    def plugin(self, target: Any) -> Any:
        """Return *target*, wrapped when this interceptor is interested in it."""
        return Plugin.wrap(target, self)

    def set_properties(self, properties: dict[str, Any]) -> None:
        """Receive the property bag declared next to the plugin.  No-op by default."""


def _signature_methods(interceptor: Interceptor, target: Any) -> frozenset[str]:
    """Return the method names *interceptor* intercepts on *target*."""
    signatures = getattr(type(interceptor), "__intercepts__", None)
    if signatures is None:
        raise PluginError(f"No @intercepts declaration was found in interceptor {type(interceptor).__name__}")

    innermost = unwrap(target)
    methods: set[str] = set()
    for signature in signatures:
        if not callable(getattr(signature.type, signature.method, None)):
            raise PluginError(f"Could not find method on {signature.type.__name__} named {signature.method}")
        if isinstance(innermost, signature.type):
            methods.add(signature.method)
    return frozenset(methods)


class Plugin:
    """Decorator forwarding intercepted methods to an interceptor.

    Attributes that are not intercepted are read straight from the wrapped
    target, so the decorator is transparent for everything else.
    """

    def __init__(self, target: Any, interceptor: Interceptor, methods: frozenset[str]) -> None:
        self._target = target
        self._interceptor = interceptor
        self._methods = methods

    @staticmethod
    def wrap(target: Any, interceptor: Interceptor) -> Any:
        methods = _signature_methods(interceptor, target)
        if not methods:
            return target
        return Plugin(target, interceptor, methods)

    @property
    def target(self) -> Any:
        return self._target

    @property
    def interceptor(self) -> Interceptor:
        return self._interceptor

    def __getattr__(self, name: str) -> Any:
        attr = getattr(self._target, name)
        if name not in self._methods or not callable(attr):
            return attr

        def _intercepted(*args: Any, **kwargs: Any) -> Any:
            return self._interceptor.intercept(Invocation(self._target, name, args, kwargs))

        return _intercepted

    def __repr__(self) -> str:
        return f"Plugin({type(self._interceptor).__name__} -> {self._target!r})"


def unwrap(target: Any) -> Any:
    """Strip every :class:`Plugin` layer and return the original object."""
    while isinstance(target, Plugin):
        target = target.target
    return target


class InterceptorChain:
    """Ordered, append-only sequence of interceptors."""

    def __init__(self) -> None:
        self._interceptors: list[Interceptor] = []
        self._sealed = False

    def seal(self) -> None:
        self._sealed = True

    def add_interceptor(self, interceptor: Interceptor) -> None:
        if self._sealed:
            raise ConfigurationSealedError("Interceptors cannot be added to a sealed configuration")
        self._interceptors.append(interceptor)
        logger.debug("Registered interceptor %s", type(interceptor).__name__)

    @property
    def interceptors(self) -> tuple[Interceptor, ...]:
        return tuple(self._interceptors)

    def plugin_all(self, target: Any) -> Any:
        """Fold the chain over *target* in registration order.

        An interceptor instance registered more than once is still applied
        only once per fold.
        """
        applied: set[int] = set()
        for interceptor in self._interceptors:
            if id(interceptor) in applied:
                continue
            applied.add(id(interceptor))
            target = interceptor.plugin(target)
        return target

    def __len__(self) -> int:
        return len(self._interceptors)
