"""Stopping rules and numerical-health checks shared by all solvers."""

from __future__ import annotations

import numpy as np

from .core import ATOL, Array


def check_convergence(grad_norm: float, tol: float) -> bool:
    """Return True if gradient norm satisfies tolerance."""
    return grad_norm <= max(tol, ATOL)


def is_finite(*arrays: Array | float) -> bool:
    """Return True if every entry of every argument is finite."""
    return all(bool(np.all(np.isfinite(a))) for a in arrays)


class StagnationMonitor:
    """Detects runs of iterations that no longer move ``x`` or ``f``.

    An iteration is stagnant when the step is below ``xtol`` relative to
    ``max(1, ||x_old||)`` or the objective change is below ``ftol`` relative
    to ``max(1, |f_old|)``. ``update`` returns True once ``patience``
    consecutive iterations have been stagnant.
    """

    def __init__(self, xtol: float, ftol: float, patience: int = 3) -> None:
        self.xtol = xtol
        self.ftol = ftol
        self.patience = patience
        self.count = 0

    def update(self, x_old: Array, x_new: Array, f_old: float, f_new: float) -> bool:
        step = float(np.linalg.norm(x_new - x_old))
        small_step = step <= self.xtol * max(1.0, float(np.linalg.norm(x_old)))
        small_change = abs(f_new - f_old) <= self.ftol * max(1.0, abs(f_old))
        if small_step or small_change:
            self.count += 1
        else:
            self.count = 0
        return self.count >= self.patience


__all__ = ["StagnationMonitor", "check_convergence", "is_finite"]
