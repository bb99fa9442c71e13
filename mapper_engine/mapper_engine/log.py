"""Statement log adapters selectable through the ``logImpl`` setting.

Executors write statement traces (SQL, parameters, row counts) through a
:class:`Log` created by :meth:`Configuration.get_log`.  The default adapter
forwards to the standard :mod:`logging` module; ``NO_LOGGING`` silences
statement traces entirely without touching the application's loggers.
"""

from __future__ import annotations

import abc
import logging


class Log(abc.ABC):
    """Minimal logging facade bound to one statement name."""

    def __init__(self, name: str) -> None:
        self.name = name

    @abc.abstractmethod
    def is_debug_enabled(self) -> bool: ...

    @abc.abstractmethod
    def debug(self, msg: str, *args: object) -> None: ...

    @abc.abstractmethod
    def warning(self, msg: str, *args: object) -> None: ...

    @abc.abstractmethod
    def error(self, msg: str, *args: object) -> None: ...


class StdlibLog(Log):
    """Forward to :func:`logging.getLogger` under the statement's name."""

    def __init__(self, name: str) -> None:
        super().__init__(name)
        self._logger = logging.getLogger(name)

    def is_debug_enabled(self) -> bool:
        return self._logger.isEnabledFor(logging.DEBUG)

    def debug(self, msg: str, *args: object) -> None:
        self._logger.debug(msg, *args)

    def warning(self, msg: str, *args: object) -> None:
        self._logger.warning(msg, *args)

    def error(self, msg: str, *args: object) -> None:
        self._logger.error(msg, *args)


class NoLoggingLog(Log):
    """Discard everything."""

    def is_debug_enabled(self) -> bool:
        return False

    def debug(self, msg: str, *args: object) -> None:
        pass

    def warning(self, msg: str, *args: object) -> None:
        pass

    def error(self, msg: str, *args: object) -> None:
        pass
