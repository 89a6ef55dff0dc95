"""Deterministic line-search routines following Nocedal & Wright.

Both searches return a :class:`LineSearchResult` instead of looping until a
step is found. ``success=False`` means no step in the trial budget satisfied
the sufficient-decrease condition; the caller decides how to recover. A
direction with ``g^T p >= 0`` is rejected up front with
:class:`~optlib.errors.NotDescentDirectionError`.
"""

from __future__ import annotations

from dataclasses import dataclass
from typing import Optional

import numpy as np

from .core import Array, Gradient, Objective
from .errors import ConfigurationError, NotDescentDirectionError


@dataclass
class LineSearchResult:
    """Accepted step, or the starting point when ``success`` is False.

    ``grad`` holds the gradient at ``x`` when the search evaluated it
    (Wolfe searches do), else None.
    """

    alpha: float
    x: Array
    fun: float
    grad: Optional[Array]
    nfev: int
    njev: int
    success: bool


def descent_slope(grad_fx: Array, p: Array) -> float:
    """Return ``g^T p``, raising if ``p`` is not a descent direction."""
    slope = float(np.dot(grad_fx, p))
    # also rejects NaN slopes
    if not slope < 0:
        raise NotDescentDirectionError(slope)
    return slope


def backtracking_armijo(
    f: Objective,
    x: Array,
    p: Array,
    grad_fx: Array,
    fx: Optional[float] = None,
    alpha0: float = 1.0,
    rho: float = 0.5,
    c: float = 1e-4,
    max_iter: int = 50,
) -> LineSearchResult:
    """Classic Armijo backtracking line search.

    Trial steps ``alpha0 * rho**k`` are tried until
    ``f(x + alpha p) <= f(x) + c alpha g^T p``. Non-finite trial values are
    treated as rejections.
    """
    if not (0 < c < 1):
        raise ConfigurationError("Armijo constant c must lie in (0, 1)")
    if not (0 < rho < 1):
        raise ConfigurationError("rho must lie in (0, 1)")
    nfev = 0
    if fx is None:
        fx = f(x)
        nfev += 1
    slope = descent_slope(grad_fx, p)
    alpha = float(alpha0)
    for _ in range(max_iter):
        candidate = x + alpha * p
        f_new = f(candidate)
        nfev += 1
        if np.isfinite(f_new) and f_new <= fx + c * alpha * slope:
            return LineSearchResult(alpha, candidate, float(f_new), None, nfev, 0, True)
        alpha *= rho
    return LineSearchResult(0.0, x.copy(), float(fx), None, nfev, 0, False)


def wolfe_line_search(
    f: Objective,
    grad: Gradient,
    x: Array,
    p: Array,
    fx: Optional[float] = None,
    grad_fx: Optional[Array] = None,
    alpha0: float = 1.0,
    c1: float = 1e-4,
    c2: float = 0.9,
    max_iter: int = 40,
    max_alpha: float = 1e10,
) -> LineSearchResult:
    """Perform a strong Wolfe line search using bracketing and zoom.

    The bracketing phase doubles the step (capped at ``max_alpha``) until the
    minimizer along ``p`` is bracketed, then bisection zooms in. If the
    budget runs out on a step that satisfies sufficient decrease but not the
    curvature condition, that step is still returned as a success.
    """
    if not (0 < c1 < c2 < 1):
        raise ConfigurationError("Require 0 < c1 < c2 < 1 for Wolfe conditions.")

    nfev = 0
    njev = 0

    def phi(alpha: float) -> float:
        nonlocal nfev
        nfev += 1
        value = f(x + alpha * p)
        return float(value) if np.isfinite(value) else np.inf

    def phi_prime(alpha: float) -> tuple[Array, float]:
        nonlocal njev
        njev += 1
        g = grad(x + alpha * p)
        return g, float(np.dot(g, p))

    if fx is None:
        fx = phi(0.0)
    if grad_fx is None:
        grad_fx, _ = phi_prime(0.0)
    der0 = descent_slope(grad_fx, p)

    def accept(alpha: float, value: float, g: Array) -> LineSearchResult:
        return LineSearchResult(alpha, x + alpha * p, value, g, nfev, njev, True)

    def zoom(
        alo: float, ahi: float, phi_lo: float, g_lo: Optional[Array]
    ) -> LineSearchResult:
        resolution = np.finfo(x.dtype).eps if np.issubdtype(x.dtype, np.floating) else 1e-16
        for _ in range(max_iter):
            alpha = 0.5 * (alo + ahi)
            phi_alpha = phi(alpha)
            if phi_alpha > fx + c1 * alpha * der0 or phi_alpha >= phi_lo:
                ahi = alpha
            else:
                g_alpha, der_alpha = phi_prime(alpha)
                if abs(der_alpha) <= -c2 * der0:
                    return accept(alpha, phi_alpha, g_alpha)
                if der_alpha * (ahi - alo) >= 0:
                    ahi = alo
                alo, phi_lo, g_lo = alpha, phi_alpha, g_alpha
            if abs(ahi - alo) <= resolution * max(alo, ahi):
                break
        if alo > 0 and g_lo is not None:
            return accept(alo, phi_lo, g_lo)
        return LineSearchResult(0.0, x.copy(), float(fx), grad_fx, nfev, njev, False)

    alpha_prev = 0.0
    phi_prev = float(fx)
    g_prev: Optional[Array] = None
    alpha = float(alpha0)

    for iteration in range(max_iter):
        phi_alpha = phi(alpha)
        if phi_alpha > fx + c1 * alpha * der0 or (
            iteration > 0 and phi_alpha >= phi_prev
        ):
            return zoom(alpha_prev, alpha, phi_prev, g_prev)
        g_alpha, der_alpha = phi_prime(alpha)
        if abs(der_alpha) <= -c2 * der0:
            return accept(alpha, phi_alpha, g_alpha)
        if der_alpha >= 0:
            return zoom(alpha, alpha_prev, phi_alpha, g_alpha)
        alpha_prev, phi_prev, g_prev = alpha, phi_alpha, g_alpha
        if alpha >= max_alpha:
            break
        alpha = min(2.0 * alpha, max_alpha)

    if alpha_prev > 0 and g_prev is not None:
        return accept(alpha_prev, phi_prev, g_prev)
    return LineSearchResult(0.0, x.copy(), float(fx), grad_fx, nfev, njev, False)


__all__ = [
    "LineSearchResult",
    "backtracking_armijo",
    "descent_slope",
    "wolfe_line_search",
]
