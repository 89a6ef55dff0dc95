"""Shared machinery for the iterative minimizers.

A solver is built once for a scalar type and a dimension, configured through
attributes, and then run with :meth:`Solver.minimize`::

    solver = LBFGS(dim=None)
    solver.max_iters = 1000
    result = solver.minimize(problem, x)

``minimize`` overwrites ``x`` in place with the final iterate and also returns
an :class:`~optlib.core.OptimizeResult`. It never raises for ordinary
non-convergence; check ``result.status`` or scan ``x`` for non-finite values.
Solver state lives on the instance for the duration of one call, so one
instance must not run two solves at the same time.
"""

from __future__ import annotations

from typing import List, Optional

import numpy as np

from .convergence import StagnationMonitor, check_convergence, is_finite
from .core import (
    STATUS_MESSAGES,
    Array,
    LineSearchConfig,
    OptimizeResult,
    Problem,
    SolverConfig,
    Status,
)
from .errors import (
    ConfigurationError,
    DimensionError,
    InvalidIterateError,
    NotDescentDirectionError,
)
from .line_search import LineSearchResult, backtracking_armijo, wolfe_line_search
from .logging import get_logger

logger = get_logger(__name__)


class CountingProblem:
    """Evaluates a :class:`Problem` in a fixed dtype and tallies the work.

    Finite-difference derivatives are charged to the counters of the
    evaluations they are built from: a numeric gradient costs ``2n`` values,
    a numeric Hessian ``2n`` gradients, or ``1 + 2n**2`` values when the
    gradient is numeric too.
    """

    def __init__(self, problem: Problem, n: int, dtype: np.dtype) -> None:
        self.problem = problem
        self.n = n
        self.dtype = dtype
        self.nfev = 0
        self.njev = 0
        self.nhev = 0

    def value(self, x: Array) -> float:
        self.nfev += 1
        return float(self.problem.value(x))

    def gradient(self, x: Array) -> Array:
        if self.problem.has_gradient:
            self.njev += 1
        else:
            self.nfev += 2 * self.n
        return np.asarray(self.problem.gradient(x), dtype=self.dtype).reshape(self.n)

    def hessian(self, x: Array) -> Array:
        if self.problem.has_hessian:
            self.nhev += 1
        elif self.problem.has_gradient:
            self.njev += 2 * self.n
        else:
            self.nfev += 1 + 2 * self.n * self.n
        hess = np.asarray(self.problem.hessian(x), dtype=self.dtype)
        return hess.reshape(self.n, self.n)


class Solver:
    """Base class for line-search minimizers.

    Subclasses supply :meth:`_direction` and may hook into the iteration
    through :meth:`_reset`, :meth:`_initial_step`, :meth:`_update`,
    :meth:`_on_not_descent` and :meth:`_recover`.

    Args:
        dtype: Floating scalar type used for every vector and matrix.
        dim: Fixed problem dimension, or None to take it from ``x``.
        config: Stopping criteria and line-search settings. Defaults to
            :meth:`default_config`.
    """

    name = "solver"

    def __init__(
        self,
        dtype: np.dtype | type = np.float64,
        dim: Optional[int] = None,
        config: Optional[SolverConfig] = None,
    ) -> None:
        dtype = np.dtype(dtype)
        if not np.issubdtype(dtype, np.floating):
            raise ConfigurationError(f"dtype must be a floating type, got {dtype}.")
        if dim is not None and dim < 1:
            raise ConfigurationError("dim must be a positive integer or None.")
        self.dtype = dtype
        self.dim = dim
        self.config = config if config is not None else self.default_config()

    @classmethod
    def default_config(cls) -> SolverConfig:
        return SolverConfig()

    @property
    def max_iters(self) -> int:
        return self.config.max_iters

    @max_iters.setter
    def max_iters(self, value: int) -> None:
        self.config.max_iters = value

    @property
    def gtol(self) -> Optional[float]:
        return self.config.gtol

    @gtol.setter
    def gtol(self, value: Optional[float]) -> None:
        self.config.gtol = value

    @property
    def line_search(self) -> LineSearchConfig:
        return self.config.line_search

    # hooks

    def _validate(self) -> None:
        """Check solver-specific settings before a solve starts."""

    def _reset(self, n: int) -> None:
        """Clear per-solve state."""

    def _direction(self, ev: CountingProblem, x: Array, fx: float, g: Array) -> Array:
        raise NotImplementedError

    def _initial_step(self, x: Array, g: Array, d: Array) -> float:
        return self.line_search.alpha0

    def _update(
        self, x: Array, x_new: Array, g: Array, g_new: Array, d: Array, alpha: float
    ) -> None:
        """Record an accepted step."""

    def _on_not_descent(self) -> None:
        """Called when a computed direction was rejected in favour of ``-g``."""

    def _recover(self, g: Array, d: Array) -> Optional[Array]:
        """Direction to retry after a failed line search, or None to stop."""
        return None

    # driver

    def _check_iterate(self, problem: Problem, x: Array) -> None:
        if not isinstance(x, np.ndarray):
            raise InvalidIterateError(
                f"x must be a numpy.ndarray updated in place, got {type(x).__name__}."
            )
        if x.ndim != 1:
            raise InvalidIterateError(f"x must be one-dimensional, got shape {x.shape}.")
        if not np.issubdtype(x.dtype, np.floating):
            raise InvalidIterateError(f"x must have a floating dtype, got {x.dtype}.")
        if not x.flags.writeable:
            raise InvalidIterateError("x must be writeable.")
        if x.size == 0:
            raise DimensionError("x must not be empty.")
        if self.dim is not None and x.size != self.dim:
            raise DimensionError(f"{self.name} expects dimension {self.dim}, got {x.size}.")
        if problem.dim is not None and x.size != problem.dim:
            raise DimensionError(f"problem expects dimension {problem.dim}, got {x.size}.")

    def _search(
        self, ev: CountingProblem, x: Array, d: Array, fx: float, g: Array
    ) -> LineSearchResult:
        ls = self.line_search
        alpha0 = min(self._initial_step(x, g, d), ls.max_alpha)
        if ls.method == "wolfe":
            return wolfe_line_search(
                ev.value,
                ev.gradient,
                x,
                d,
                fx=fx,
                grad_fx=g,
                alpha0=alpha0,
                c1=ls.c1,
                c2=ls.c2,
                max_iter=ls.max_backtracks,
                max_alpha=ls.max_alpha,
            )
        return backtracking_armijo(
            ev.value,
            x,
            d,
            g,
            fx=fx,
            alpha0=alpha0,
            rho=ls.rho,
            c=ls.c1,
            max_iter=ls.max_backtracks,
        )

    def minimize(self, problem: Problem, x: Array, history: bool = False) -> OptimizeResult:
        """Minimize ``problem`` starting from ``x``, overwriting ``x`` in place.

        Args:
            problem: Objective satisfying the :class:`~optlib.core.Problem`
                contract.
            x: One-dimensional floating array holding the initial guess. On
                return it holds the final iterate (cast to ``x.dtype``).
            history: Record every accepted iterate in ``result.history``.

        Returns:
            OptimizeResult describing the final iterate.

        Raises:
            InvalidIterateError: ``x`` cannot be updated in place.
            DimensionError: ``x`` does not match ``dim`` or ``problem.dim``.
            ConfigurationError: A setting is out of range.
        """
        self._check_iterate(problem, x)
        config = self.config.resolved(self.dtype)
        self._validate()
        n = x.size
        self._reset(n)
        ev = CountingProblem(problem, n, self.dtype)
        monitor = StagnationMonitor(config.xtol, config.ftol, config.stall_iters)

        current = x.astype(self.dtype, copy=True)
        fx = ev.value(current)
        g = ev.gradient(current)
        hist: List[Array] = [current.copy()] if history else []
        nit = 0
        status = Status.MAX_ITER

        while is_finite(current, fx, g):
            grad_norm = float(np.linalg.norm(g))
            if check_convergence(grad_norm, config.gtol):
                status = Status.CONVERGED
                break
            if nit >= config.max_iters:
                status = Status.MAX_ITER
                break

            d = self._direction(ev, current, fx, g)
            try:
                step = self._search(ev, current, d, fx, g)
            except NotDescentDirectionError as exc:
                logger.debug("%s iter %d: %s Resetting to -g.", self.name, nit, exc)
                self._on_not_descent()
                d = -g
                step = self._search(ev, current, d, fx, g)
            if not step.success:
                retry = self._recover(g, d)
                if retry is not None:
                    logger.debug("%s iter %d: line search failed, restarting.", self.name, nit)
                    d = retry
                    step = self._search(ev, current, d, fx, g)
            if not step.success:
                logger.warning(
                    "%s iter %d: line search failed (f=%.6e, |g|=%.3e).",
                    self.name,
                    nit,
                    fx,
                    grad_norm,
                )
                status = Status.LINE_SEARCH_FAILED
                break

            x_new = step.x
            f_new = step.fun
            g_new = step.grad if step.grad is not None else ev.gradient(x_new)
            g_new = np.asarray(g_new, dtype=self.dtype)
            nit += 1
            if not is_finite(x_new, f_new, g_new):
                current, fx, g = x_new, f_new, g_new
                continue

            self._update(current, x_new, g, g_new, d, step.alpha)
            stalled = monitor.update(current, x_new, fx, f_new)
            current, fx, g = x_new, f_new, g_new
            if history:
                hist.append(current.copy())
            logger.debug(
                "%s iter %d: f=%.6e |g|=%.3e alpha=%.3e",
                self.name,
                nit,
                fx,
                float(np.linalg.norm(g)),
                step.alpha,
            )
            if stalled:
                if check_convergence(float(np.linalg.norm(g)), config.gtol):
                    status = Status.CONVERGED
                else:
                    status = Status.STALLED
                break

        if not is_finite(current, fx, g):
            status = Status.NUMERICAL_ERROR
            logger.warning("%s iter %d: non-finite iterate or gradient.", self.name, nit)

        x[...] = current
        grad_norm = float(np.linalg.norm(g))
        logger.info(
            "%s finished after %d iterations: %s (f=%.6e, |g|=%.3e)",
            self.name,
            nit,
            status.value,
            fx,
            grad_norm,
        )
        return OptimizeResult(
            x=current.copy(),
            fun=float(fx),
            nit=nit,
            status=status,
            message=STATUS_MESSAGES[status],
            grad_norm=grad_norm,
            nfev=ev.nfev,
            njev=ev.njev,
            nhev=ev.nhev,
            history=hist,
        )


__all__ = ["CountingProblem", "Solver"]
