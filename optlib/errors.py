"""Exceptions raised by optlib.

Ordinary non-convergence is never an exception; it is reported through
:class:`optlib.core.Status`. These classes cover caller mistakes and the
internal non-descent signal. They also subclass ``ValueError`` (or
``TypeError`` for :class:`InvalidIterateError`), so ``except ValueError``
catches configuration, dimension and non-descent errors.
"""

from __future__ import annotations


class OptlibError(Exception):
    """Base class for all optlib exceptions."""


class ConfigurationError(OptlibError, ValueError):
    """A solver or line-search setting is out of range."""


class DimensionError(OptlibError, ValueError):
    """The iterate does not match the solver or problem dimension."""


class InvalidIterateError(OptlibError, TypeError):
    """The iterate cannot be updated in place (wrong type, shape or dtype)."""


class NotDescentDirectionError(OptlibError, ValueError):
    """The search direction satisfies ``g^T p >= 0``."""

    def __init__(self, slope: float) -> None:
        super().__init__(
            f"Search direction must be a descent direction (g^T p = {slope:.3e})."
        )
        self.slope = slope


__all__ = [
    "ConfigurationError",
    "DimensionError",
    "InvalidIterateError",
    "NotDescentDirectionError",
    "OptlibError",
]
