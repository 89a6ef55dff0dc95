"""Logging for optlib solvers.

Solvers report per-iteration progress at DEBUG, termination at INFO and
recoverable numerical trouble (line-search failures, non-finite iterates) at
WARNING. Every logger lives under the ``optlib`` namespace, writes to its own
handler and does not propagate, so applications opt in by lowering the level::

    from optlib.logging import configure_logging
    configure_logging("DEBUG")
"""

from __future__ import annotations

import logging
import sys
from typing import IO, Optional

ROOT = "optlib"

_DEFAULT_FORMAT = "[%(levelname)s] %(name)s: %(message)s"

_level = logging.WARNING
_format = _DEFAULT_FORMAT
_stream: Optional[IO[str]] = None
_loggers: dict[str, logging.Logger] = {}


def _resolve_level(level: int | str) -> int:
    if isinstance(level, str):
        return getattr(logging, level.upper(), logging.WARNING)
    return level


def _handler() -> logging.Handler:
    handler = logging.StreamHandler(_stream if _stream is not None else sys.stderr)
    handler.setLevel(_level)
    handler.setFormatter(logging.Formatter(_format))
    return handler


def _install(logger: logging.Logger) -> None:
    for handler in [h for h in logger.handlers if getattr(h, "_optlib", False)]:
        logger.removeHandler(handler)
    handler = _handler()
    handler._optlib = True
    logger.addHandler(handler)
    logger.setLevel(_level)
    logger.propagate = False


def get_logger(name: Optional[str] = None) -> logging.Logger:
    """Return the ``optlib`` logger for ``name`` (typically ``__name__``).

    Names outside the namespace are prefixed with ``optlib.``. The first call
    for a name installs the package handler; later calls return the same
    logger untouched.
    """
    if name is None or name == ROOT:
        full = ROOT
    elif name.startswith(ROOT + "."):
        full = name
    else:
        full = f"{ROOT}.{name}"
    logger = _loggers.get(full)
    if logger is None:
        logger = logging.getLogger(full)
        _install(logger)
        _loggers[full] = logger
    return logger


def set_log_level(level: int | str) -> None:
    """Change the level of every optlib logger, keeping its handler.

    Accepts ``logging`` constants or level names; unknown names mean WARNING.
    """
    global _level
    _level = _resolve_level(level)
    for logger in _loggers.values():
        logger.setLevel(_level)
        for handler in logger.handlers:
            if getattr(handler, "_optlib", False):
                handler.setLevel(_level)


def configure_logging(
    level: int | str = logging.WARNING,
    format_string: Optional[str] = None,
    stream: Optional[IO[str]] = None,
) -> None:
    """Point every optlib logger at ``stream`` with the given level and format.

    ``stream`` defaults to ``sys.stderr`` and ``format_string`` to
    ``[LEVEL] name: message``. Loggers created later pick up the same settings.
    """
    global _level, _format, _stream
    _level = _resolve_level(level)
    _format = format_string or _DEFAULT_FORMAT
    _stream = stream
    for logger in _loggers.values():
        _install(logger)


__all__ = ["configure_logging", "get_logger", "set_log_level"]
