"""Nonlinear conjugate gradient methods.

Implements the classical conjugacy coefficients:

- Polak, E., & Ribière, G. (1969), clamped at zero (PR+).
- Fletcher, R., & Reeves, C. M. (1964).
- Hestenes, M. R., & Stiefel, E. (1952).
- Dai, Y. H., & Yuan, Y. (1999).

A negative coefficient resets the direction to steepest descent, as does a
periodic restart every ``restart_interval`` iterations (the problem dimension
by default).
"""

from __future__ import annotations

from typing import Callable, Optional

import numpy as np

from .core import RTOL, Array, LineSearchConfig, OptimizeResult, Problem, SolverConfig
from .errors import ConfigurationError
from .solver import CountingProblem, Solver


def _safe_ratio(num: float, den: float) -> float:
    if den == 0.0 or not np.isfinite(den):
        return 0.0
    return num / den


def polak_ribiere(g: Array, g_prev: Array, d_prev: Array) -> float:
    return _safe_ratio(float(np.dot(g, g - g_prev)), float(np.dot(g_prev, g_prev)))


def fletcher_reeves(g: Array, g_prev: Array, d_prev: Array) -> float:
    return _safe_ratio(float(np.dot(g, g)), float(np.dot(g_prev, g_prev)))


def hestenes_stiefel(g: Array, g_prev: Array, d_prev: Array) -> float:
    y = g - g_prev
    return _safe_ratio(float(np.dot(g, y)), float(np.dot(d_prev, y)))


def dai_yuan(g: Array, g_prev: Array, d_prev: Array) -> float:
    return _safe_ratio(float(np.dot(g, g)), float(np.dot(d_prev, g - g_prev)))


BETA_RULES: dict[str, Callable[[Array, Array, Array], float]] = {
    "polak_ribiere": polak_ribiere,
    "fletcher_reeves": fletcher_reeves,
    "hestenes_stiefel": hestenes_stiefel,
    "dai_yuan": dai_yuan,
}


class NonLinearCG(Solver):
    """Nonlinear conjugate gradient with strong Wolfe line search.

    Args:
        dtype: Floating scalar type.
        dim: Fixed dimension or None for dynamic.
        beta_rule: One of :data:`BETA_RULES`.
        restart_interval: Iterations between forced steepest-descent
            restarts. None uses the problem dimension.
        config: Stopping and line-search settings.
    """

    name = "NonLinearCG"

    def __init__(
        self,
        dtype: np.dtype | type = np.float64,
        dim: Optional[int] = None,
        beta_rule: str = "polak_ribiere",
        restart_interval: Optional[int] = None,
        config: Optional[SolverConfig] = None,
    ) -> None:
        super().__init__(dtype=dtype, dim=dim, config=config)
        self.beta_rule = beta_rule
        self.restart_interval = restart_interval
        self._interval = 0
        self._g_prev: Optional[Array] = None
        self._d_prev: Optional[Array] = None
        self._alpha_prev = 0.0
        self._since_restart = 0
        self._restarted = True

    @classmethod
    def default_config(cls) -> SolverConfig:
        return SolverConfig(line_search=LineSearchConfig(method="wolfe", c2=0.1))

    def _validate(self) -> None:
        if self.beta_rule not in BETA_RULES:
            raise ConfigurationError(
                f"Unknown beta rule {self.beta_rule!r}; expected one of {sorted(BETA_RULES)}."
            )
        if self.restart_interval is not None and self.restart_interval < 1:
            raise ConfigurationError("restart_interval must be positive.")

    def _reset(self, n: int) -> None:
        self._interval = self.restart_interval or n
        self._g_prev = None
        self._d_prev = None
        self._alpha_prev = 0.0
        self._since_restart = 0
        self._restarted = True

    def _direction(self, ev: CountingProblem, x: Array, fx: float, g: Array) -> Array:
        if self._g_prev is None or self._since_restart >= self._interval:
            return self._restart(g)
        beta = BETA_RULES[self.beta_rule](g, self._g_prev, self._d_prev)
        if not beta > 0:
            return self._restart(g)
        d = -g + beta * self._d_prev
        if not float(np.dot(g, d)) < 0:
            return self._restart(g)
        self._restarted = False
        return d

    def _restart(self, g: Array) -> Array:
        self._on_not_descent()
        return -g

    def _initial_step(self, x: Array, g: Array, d: Array) -> float:
        if self._g_prev is None or self._alpha_prev <= 0:
            return min(self.line_search.alpha0, 1.0 / max(float(np.linalg.norm(g)), 1.0))
        # Nocedal & Wright (3.60): match the first-order change of the last step
        slope_prev = float(np.dot(self._g_prev, self._d_prev))
        slope = float(np.dot(g, d))
        if slope >= 0:
            return self.line_search.alpha0
        return self._alpha_prev * slope_prev / slope

    def _update(
        self, x: Array, x_new: Array, g: Array, g_new: Array, d: Array, alpha: float
    ) -> None:
        self._g_prev = g.copy()
        self._d_prev = d.copy()
        self._alpha_prev = alpha
        self._since_restart += 1

    def _on_not_descent(self) -> None:
        self._since_restart = 0
        self._restarted = True

    def _recover(self, g: Array, d: Array) -> Optional[Array]:
        if self._restarted:
            return None
        return self._restart(g)


def nonlinear_cg(
    problem: Problem,
    x0: np.ndarray,
    beta_rule: str = "polak_ribiere",
    restart_interval: Optional[int] = None,
    maxiter: int = 1000,
    tol: float = RTOL,
    line_search: str = "wolfe",
    history: bool = False,
) -> OptimizeResult:
    """Nonlinear conjugate gradient; functional form of :class:`NonLinearCG`."""
    x = np.array(x0, dtype=float)
    config = NonLinearCG.default_config()
    config.max_iters = maxiter
    config.gtol = tol
    config.line_search.method = line_search
    solver = NonLinearCG(
        dim=x.size, beta_rule=beta_rule, restart_interval=restart_interval, config=config
    )
    return solver.minimize(problem, x, history=history)


__all__ = [
    "BETA_RULES",
    "NonLinearCG",
    "dai_yuan",
    "fletcher_reeves",
    "hestenes_stiefel",
    "nonlinear_cg",
    "polak_ribiere",
]
