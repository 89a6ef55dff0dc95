"""Newton's method with Cholesky-based curvature safeguards."""

from __future__ import annotations

from typing import Optional

import numpy as np

from .core import RTOL, Array, OptimizeResult, Problem, SolverConfig
from .errors import ConfigurationError
from .logging import get_logger
from .solver import CountingProblem, Solver
from .utils import cholesky_solve, regularized_cholesky

logger = get_logger(__name__)


class Newton(Solver):
    """Newton's method with backtracking line search and damping.

    Each iteration solves ``(H + tau I) d = -g``. ``tau = 0`` whenever the
    Hessian admits a Cholesky factorization, so on a positive-definite
    quadratic the first step lands on the minimizer. Indefinite Hessians are
    shifted by a growing ``tau`` until the factorization succeeds; with
    ``regularize=False`` (or when every shift fails) the iteration falls back
    to ``d = -g``.

    Args:
        dtype: Floating scalar type.
        dim: Fixed dimension or None for dynamic.
        regularize: Shift indefinite Hessians instead of using ``-g``.
        reg_init: Smallest shift tried.
        reg_growth: Factor applied to the shift after each failed attempt.
        max_reg_attempts: Number of shifts tried before giving up.
        config: Stopping and line-search settings.
    """

    name = "Newton"

    def __init__(
        self,
        dtype: np.dtype | type = np.float64,
        dim: Optional[int] = None,
        regularize: bool = True,
        reg_init: float = 1e-3,
        reg_growth: float = 10.0,
        max_reg_attempts: int = 40,
        config: Optional[SolverConfig] = None,
    ) -> None:
        super().__init__(dtype=dtype, dim=dim, config=config)
        self.regularize = regularize
        self.reg_init = reg_init
        self.reg_growth = reg_growth
        self.max_reg_attempts = max_reg_attempts
        self.last_shift = 0.0

    def _validate(self) -> None:
        if self.reg_init <= 0:
            raise ConfigurationError("reg_init must be positive.")
        if self.reg_growth <= 1:
            raise ConfigurationError("reg_growth must exceed 1.")
        if self.max_reg_attempts < 1:
            raise ConfigurationError("max_reg_attempts must be at least 1.")

    def _reset(self, n: int) -> None:
        self.last_shift = 0.0

    def _direction(self, ev: CountingProblem, x: Array, fx: float, g: Array) -> Array:
        hess = ev.hessian(x)
        attempts = self.max_reg_attempts if self.regularize else 0
        factored = regularized_cholesky(hess, self.reg_init, self.reg_growth, attempts)
        if factored is None:
            logger.debug("%s: Hessian not positive definite, using -g.", self.name)
            self.last_shift = np.inf
            return -g
        factor, tau = factored
        if tau > 0:
            logger.debug("%s: Hessian shifted by tau=%.3e.", self.name, tau)
        self.last_shift = tau
        return cholesky_solve(factor, -g)


def newton(
    problem: Problem,
    x0: np.ndarray,
    maxiter: int = 100,
    tol: float = RTOL,
    regularize: bool = True,
    line_search: str = "armijo",
    history: bool = False,
) -> OptimizeResult:
    """Newton's method; functional form of :class:`Newton`."""
    x = np.array(x0, dtype=float)
    config = Newton.default_config()
    config.max_iters = maxiter
    config.gtol = tol
    config.line_search.method = line_search
    solver = Newton(dim=x.size, regularize=regularize, config=config)
    return solver.minimize(problem, x, history=history)


__all__ = ["Newton", "newton"]
