"""Exception hierarchy for the mapper engine.

Every error raised by the engine derives from :class:`PersistenceError` so
that callers can catch engine failures with a single ``except`` clause.
Public operations (assembling a configuration, opening a session) wrap
whatever failed underneath into exactly one outer error with the original
exception chained as ``__cause__``.
"""

from __future__ import annotations

from mapper_engine.error_context import ErrorContext


class PersistenceError(Exception):
    """Base class for all mapper engine errors."""


class BuilderError(PersistenceError):
    """Raised when a configuration or mapper document cannot be assembled."""


class SessionOpenError(PersistenceError):
    """Raised when a session cannot be opened from the session factory."""


class BindingError(PersistenceError):
    """Raised for mapper registration and mapper proxy binding failures."""


class PluginError(PersistenceError):
    """Raised when an interceptor declaration is invalid."""


class TypeResolutionError(PersistenceError):
    """Raised when a type alias or dotted class name cannot be resolved."""


class ConfigurationSealedError(PersistenceError):
    """Raised when a sealed configuration is mutated."""


class TransactionError(PersistenceError):
    """Raised when a transaction cannot acquire, commit or release a connection."""


class DataSourceError(PersistenceError):
    """Raised when a data source cannot be configured."""


class ExecutorError(PersistenceError):
    """Raised when a statement cannot be executed."""


class TooManyResultsError(PersistenceError):
    """Raised when ``select_one`` finds more than one row."""


def wrap_exception(
    message: str,
    cause: BaseException,
    error_cls: type[PersistenceError] = PersistenceError,
) -> PersistenceError:
    """Build a single outer error carrying the current diagnostic context.

    The caller is expected to ``raise wrap_exception(...) from cause`` so the
    original failure stays reachable through ``__cause__``.
    """
    context = ErrorContext.instance().message(message).cause(cause)
    return error_cls(str(context))
