"""Core interfaces shared across the unconstrained minimizers.

The objective contract is :class:`Problem`. It always provides ``value`` and
falls back to central finite differences for ``gradient`` and ``hessian``
when analytic derivatives are not supplied. A problem is either built from
callables::

    Problem(fun=f, grad=g, dim=2)

or subclassed, overriding ``value`` and any derivative that is known in
closed form.
"""

from __future__ import annotations

from dataclasses import dataclass, field
from enum import Enum
from typing import Callable, List, Optional

import numpy as np

from .errors import ConfigurationError
from .utils import approx_grad, approx_hessian, approx_hessian_from_values, working_dtype

Array = np.ndarray
Objective = Callable[[Array], float]
Gradient = Callable[[Array], Array]
Hessian = Callable[[Array], Array]

RTOL = 1e-8
ATOL = 1e-10

LINE_SEARCH_METHODS = ("armijo", "wolfe")


@dataclass(frozen=True)
class Problem:
    """Objective contract consumed by every solver.

    Attributes:
        fun: Scalar objective. Required unless ``value`` is overridden.
        grad: Analytic gradient. Finite differences of ``value`` otherwise.
        hess: Analytic Hessian. Finite differences of ``gradient`` otherwise.
        dim: Expected dimension, or None to accept any length.
    """

    fun: Optional[Objective] = None
    grad: Optional[Gradient] = None
    hess: Optional[Hessian] = None
    dim: Optional[int] = None

    def value(self, x: Array) -> float:
        if self.fun is None:
            raise NotImplementedError(
                f"{type(self).__name__} must override value() or be given fun."
            )
        return float(self.fun(x))

    def gradient(self, x: Array) -> Array:
        if self.grad is not None:
            return np.asarray(self.grad(x), dtype=working_dtype(x))
        return approx_grad(self.value, x)

    def hessian(self, x: Array) -> Array:
        if self.hess is not None:
            return np.asarray(self.hess(x), dtype=working_dtype(x))
        if self.has_gradient:
            return approx_hessian(self.gradient, x)
        return approx_hessian_from_values(self.value, x)

    @property
    def has_gradient(self) -> bool:
        """True when ``gradient`` is analytic rather than finite-differenced."""
        return self.grad is not None or type(self).gradient is not Problem.gradient

    @property
    def has_hessian(self) -> bool:
        """True when ``hessian`` is analytic rather than finite-differenced."""
        return self.hess is not None or type(self).hessian is not Problem.hessian


class Status(Enum):
    """Terminal state of a solve."""

    CONVERGED = "converged"
    MAX_ITER = "max_iter"
    LINE_SEARCH_FAILED = "line_search_failed"
    STALLED = "stalled"
    NUMERICAL_ERROR = "numerical_error"


STATUS_MESSAGES = {
    Status.CONVERGED: "Gradient tolerance satisfied.",
    Status.MAX_ITER: "Maximum iterations reached.",
    Status.LINE_SEARCH_FAILED: "Line search could not find an acceptable step.",
    Status.STALLED: "Iterates stopped making progress.",
    Status.NUMERICAL_ERROR: "Non-finite value in iterate or gradient.",
}


@dataclass
class LineSearchConfig:
    """
    Step-length selection settings.

    Args:
        method: ``"armijo"`` (backtracking, sufficient decrease only) or
            ``"wolfe"`` (strong Wolfe bracketing and zoom).
        c1: Sufficient-decrease constant, in (0, 1).
        c2: Curvature constant for Wolfe searches, in (c1, 1).
        rho: Backtracking shrink factor, in (0, 1).
        max_backtracks: Trial budget for one search.
        alpha0: First trial step.
        max_alpha: Upper bound on the Wolfe expansion phase.
    """

    method: str = "armijo"
    c1: float = 1e-4
    c2: float = 0.9
    rho: float = 0.5
    max_backtracks: int = 50
    alpha0: float = 1.0
    max_alpha: float = 1e10

    def validate(self) -> None:
        if self.method not in LINE_SEARCH_METHODS:
            raise ConfigurationError(
                f"Unknown line search {self.method!r}; expected one of {LINE_SEARCH_METHODS}."
            )
        if not (0 < self.c1 < 1):
            raise ConfigurationError("Armijo constant c1 must lie in (0, 1).")
        if self.method == "wolfe" and not (self.c1 < self.c2 < 1):
            raise ConfigurationError("Require 0 < c1 < c2 < 1 for Wolfe conditions.")
        if not (0 < self.rho < 1):
            raise ConfigurationError("rho must lie in (0, 1).")
        if self.max_backtracks < 1:
            raise ConfigurationError("max_backtracks must be at least 1.")
        if not (0 < self.alpha0 <= self.max_alpha):
            raise ConfigurationError("Require 0 < alpha0 <= max_alpha.")


@dataclass
class SolverConfig:
    """
    Stopping criteria shared by all solvers.

    Tolerances left as None are resolved from the solver's dtype when a solve
    starts: ``gtol = max(RTOL, sqrt(eps))`` and ``xtol = ftol = 10 * eps``.

    Args:
        max_iters: Iteration cap. Zero only evaluates the starting point.
        gtol: Gradient-norm convergence threshold.
        xtol: Relative step size below which an iteration counts as stagnant.
        ftol: Relative objective change below which an iteration counts as
            stagnant.
        stall_iters: Consecutive stagnant iterations that end the solve.
        line_search: Line search settings.
    """

    max_iters: int = 100
    gtol: Optional[float] = None
    xtol: Optional[float] = None
    ftol: Optional[float] = None
    stall_iters: int = 3
    line_search: LineSearchConfig = field(default_factory=LineSearchConfig)

    def resolved(self, dtype: np.dtype) -> "SolverConfig":
        """Copy with dtype-dependent defaults filled in, after validation."""
        eps = float(np.finfo(dtype).eps)
        config = SolverConfig(
            max_iters=self.max_iters,
            gtol=max(RTOL, float(np.sqrt(eps))) if self.gtol is None else self.gtol,
            xtol=10 * eps if self.xtol is None else self.xtol,
            ftol=10 * eps if self.ftol is None else self.ftol,
            stall_iters=self.stall_iters,
            line_search=self.line_search,
        )
        config.validate()
        return config

    def validate(self) -> None:
        if self.max_iters < 0:
            raise ConfigurationError("max_iters must be non-negative.")
        for name in ("gtol", "xtol", "ftol"):
            value = getattr(self, name)
            if value is not None and value < 0:
                raise ConfigurationError(f"{name} must be non-negative.")
        if self.stall_iters < 1:
            raise ConfigurationError("stall_iters must be at least 1.")
        self.line_search.validate()


@dataclass
class OptimizeResult:
    """Standard result object returned by all solvers in this package."""

    x: Array
    fun: float
    nit: int
    status: Status
    message: str
    grad_norm: float
    nfev: int
    njev: int
    nhev: int
    history: List[Array] = field(default_factory=list)

    @property
    def success(self) -> bool:
        return self.status is Status.CONVERGED


__all__ = [
    "ATOL",
    "Array",
    "Gradient",
    "Hessian",
    "LINE_SEARCH_METHODS",
    "LineSearchConfig",
    "Objective",
    "OptimizeResult",
    "Problem",
    "RTOL",
    "STATUS_MESSAGES",
    "SolverConfig",
    "Status",
]
