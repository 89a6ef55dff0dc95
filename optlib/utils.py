"""Utility helpers for finite differences and dense linear algebra.

These utilities avoid any dependency on SciPy and provide deterministic,
pure NumPy implementations suitable for small to medium scale problems.
Step sizes are scaled to the working precision of the point, so the same
helpers serve ``float32`` and ``float64`` solves.
"""

from __future__ import annotations

from typing import Callable, Optional

import numpy as np

Array = np.ndarray
Objective = Callable[[Array], float]
Gradient = Callable[[Array], Array]


def working_dtype(x: Array) -> np.dtype:
    """Return the floating dtype used to evaluate derivatives at ``x``."""
    x = np.asarray(x)
    if np.issubdtype(x.dtype, np.floating):
        return x.dtype
    return np.dtype(np.float64)


def fd_step(x: Array, eps: Optional[float] = None, root: int = 3) -> Array:
    """Per-coordinate central-difference step.

    With ``eps=None`` the step is ``eps_mach**(1/root) * max(1, |x_i|)``. The
    default cube root balances truncation and rounding error for first
    differences; second differences of values want ``root=4``.
    """
    x = np.asarray(x)
    dtype = working_dtype(x)
    if eps is None:
        base = float(np.finfo(dtype).eps) ** (1.0 / root)
        return (base * np.maximum(1.0, np.abs(x))).astype(dtype)
    if eps <= 0:
        raise ValueError("eps must be positive")
    return np.full(x.shape, eps, dtype=dtype)


def approx_grad(
    fun: Objective,
    x: Array,
    eps: Optional[float] = None,
    return_evals: bool = False,
) -> Array | tuple[Array, int]:
    """Compute a central-difference gradient approximation.

    Parameters
    ----------
    fun:
        Objective function returning a scalar given x.
    x:
        Point where the gradient is approximated.
    eps:
        Fixed perturbation size. ``None`` selects a step scaled to the
        magnitude of each coordinate and the precision of ``x``.
    return_evals:
        Also return the number of objective evaluations (``2 * x.size``).
    """
    dtype = working_dtype(x)
    x = np.asarray(x, dtype=dtype)
    steps = fd_step(x, eps)
    grad = np.zeros(x.shape, dtype=dtype)
    evals = 0
    for i in range(x.size):
        x_plus = x.copy()
        x_minus = x.copy()
        x_plus[i] = x[i] + steps[i]
        x_minus[i] = x[i] - steps[i]
        # the representable step can differ from the requested one
        width = float(x_plus[i]) - float(x_minus[i])
        fx_plus = fun(x_plus)
        fx_minus = fun(x_minus)
        evals += 2
        grad[i] = (fx_plus - fx_minus) / width
    if return_evals:
        return grad, evals
    return grad


def approx_hessian(
    grad: Gradient,
    x: Array,
    eps: Optional[float] = None,
    return_evals: bool = False,
) -> Array | tuple[Array, int]:
    """Approximate the Hessian by central differencing of a gradient.

    Column ``j`` is ``(grad(x + h e_j) - grad(x - h e_j)) / (2h)``. The
    result is symmetrized. ``return_evals`` reports gradient evaluations.
    """
    dtype = working_dtype(x)
    x = np.asarray(x, dtype=dtype)
    n = x.size
    steps = fd_step(x, eps)
    hess = np.zeros((n, n), dtype=dtype)
    evals = 0
    for j in range(n):
        x_plus = x.copy()
        x_minus = x.copy()
        x_plus[j] = x[j] + steps[j]
        x_minus[j] = x[j] - steps[j]
        width = float(x_plus[j]) - float(x_minus[j])
        g_plus = np.asarray(grad(x_plus), dtype=dtype)
        g_minus = np.asarray(grad(x_minus), dtype=dtype)
        evals += 2
        hess[:, j] = (g_plus - g_minus) / width
    hess = 0.5 * (hess + hess.T)
    if return_evals:
        return hess, evals
    return hess


def approx_hessian_from_values(
    fun: Objective,
    x: Array,
    eps: Optional[float] = None,
    return_evals: bool = False,
) -> Array | tuple[Array, int]:
    """Approximate the Hessian using second-order central differences of ``fun``.

    Used when no gradient is available: differencing a numeric gradient
    compounds two truncation errors. The default step is
    ``eps_mach**(1/4) * max(1, |x_i|)``. Costs ``1 + 2 n**2`` evaluations.
    """
    dtype = working_dtype(x)
    x = np.asarray(x, dtype=dtype)
    n = x.size
    steps = fd_step(x, eps, root=4)
    # the representable step can differ from the requested one
    widths = ((x + steps) - x).astype(np.float64)
    hess = np.zeros((n, n), dtype=dtype)
    fx = fun(x)
    evals = 1

    def shifted(i: int, si: float, j: int = -1, sj: float = 0.0) -> float:
        point = x.copy()
        point[i] = x[i] + si * steps[i]
        if j >= 0:
            point[j] = x[j] + sj * steps[j]
        return fun(point)

    for i in range(n):
        f_ip = shifted(i, 1.0)
        f_im = shifted(i, -1.0)
        evals += 2
        hess[i, i] = (f_ip - 2 * fx + f_im) / (widths[i] ** 2)
        for j in range(i + 1, n):
            f_pp = shifted(i, 1.0, j, 1.0)
            f_pm = shifted(i, 1.0, j, -1.0)
            f_mp = shifted(i, -1.0, j, 1.0)
            f_mm = shifted(i, -1.0, j, -1.0)
            evals += 4
            value = (f_pp - f_pm - f_mp + f_mm) / (4 * widths[i] * widths[j])
            hess[i, j] = value
            hess[j, i] = value
    if return_evals:
        return hess, evals
    return hess


def cholesky_solve(factor: Array, vec: Array) -> Array:
    """Solve ``L L^T x = vec`` given the lower Cholesky factor ``L``."""
    y = np.linalg.solve(factor, vec)
    return np.linalg.solve(factor.T, y)


def regularized_cholesky(
    mat: Array,
    tau0: float = 1e-3,
    growth: float = 10.0,
    max_attempts: int = 40,
) -> tuple[Array, float] | None:
    """Cholesky factor of ``mat + tau I`` for the smallest tried ``tau``.

    ``tau = 0`` is tried first. If that fails, ``tau`` starts at
    ``max(tau0, tau0 - min(diag(mat)))`` and grows by ``growth`` per attempt
    (Nocedal & Wright, Algorithm 3.3). Returns ``(L, tau)`` or ``None`` when
    every attempt fails or ``mat`` is not finite.
    """
    sym = 0.5 * (mat + mat.T)
    if not np.all(np.isfinite(sym)):
        return None
    try:
        return np.linalg.cholesky(sym), 0.0
    except np.linalg.LinAlgError:
        pass
    eye = np.eye(sym.shape[0], dtype=sym.dtype)
    tau = max(tau0, tau0 - float(np.min(np.diag(sym))))
    for _ in range(max_attempts):
        try:
            return np.linalg.cholesky(sym + tau * eye), tau
        except np.linalg.LinAlgError:
            tau *= growth
    return None


__all__ = [
    "Array",
    "Gradient",
    "Objective",
    "approx_grad",
    "approx_hessian",
    "approx_hessian_from_values",
    "cholesky_solve",
    "fd_step",
    "regularized_cholesky",
    "working_dtype",
]
