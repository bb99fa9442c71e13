"""Per-context diagnostic record used to enrich error messages.

The record tracks which resource, activity and statement were in flight when
something failed.  It lives in a :class:`contextvars.ContextVar` so that
concurrent threads and async tasks never see each other's state, and
:func:`error_scope` guarantees the record is reset on every exit path.
"""

from __future__ import annotations

import contextvars
from collections.abc import Iterator
from contextlib import contextmanager

_LINE_SEPARATOR = "\n"

_current: contextvars.ContextVar[ErrorContext | None] = contextvars.ContextVar("mapper_error_context", default=None)


class ErrorContext:
    """Mutable diagnostic record for the current execution context.

    Setters return ``self`` so that calls can be chained::

        ErrorContext.instance().resource("blog.yaml").activity("parsing")
    """

    def __init__(self) -> None:
        self._resource: str | None = None
        self._activity: str | None = None
        self._object: str | None = None
        self._message: str | None = None
        self._sql: str | None = None
        self._cause: BaseException | None = None

    @classmethod
    def instance(cls) -> ErrorContext:
        """Return the record bound to the current context, creating it on demand."""
        context = _current.get()
        if context is None:
            context = cls()
            _current.set(context)
        return context

    def resource(self, resource: str | None) -> ErrorContext:
        self._resource = resource
        return self

    def activity(self, activity: str | None) -> ErrorContext:
        self._activity = activity
        return self

    def object(self, obj: str | None) -> ErrorContext:
        self._object = obj
        return self

    def message(self, message: str | None) -> ErrorContext:
        self._message = message
        return self

    def sql(self, sql: str | None) -> ErrorContext:
        self._sql = sql
        return self

    def cause(self, cause: BaseException | None) -> ErrorContext:
        self._cause = cause
        return self

    @property
    def current_resource(self) -> str | None:
        return self._resource

    def reset(self) -> ErrorContext:
        """Clear every field so no stale resource name leaks into later work."""
        self._resource = None
        self._activity = None
        self._object = None
        self._message = None
        self._sql = None
        self._cause = None
        return self

    def __str__(self) -> str:
        lines: list[str] = []

        if self._message:
            lines.append(self._message)

        if self._resource:
            lines.append(f"### The error may exist in {self._resource}")

        if self._object:
            lines.append(f"### The error may involve {self._object}")

        if self._activity:
            lines.append(f"### The error occurred while {self._activity}")

        if self._sql:
            sql = " ".join(self._sql.split())
            lines.append(f"### SQL: {sql}")

        if self._cause is not None:
            lines.append(f"### Cause: {self._cause!r}")

        return _LINE_SEPARATOR.join(lines)


@contextmanager
def error_scope(resource: str | None = None) -> Iterator[ErrorContext]:
    """Bind a fresh diagnostic record for the duration of the block.

    The record is reset when the block exits, whether normally or through an
    exception.
    """
    context = ErrorContext.instance().reset()
    if resource is not None:
        context.resource(resource)
    try:
        yield context
    finally:
        context.reset()
