"""Limited-memory BFGS using the two-loop recursion."""

from __future__ import annotations

from typing import Iterator, Optional

import numpy as np

from .core import RTOL, Array, LineSearchConfig, OptimizeResult, Problem, SolverConfig
from .errors import ConfigurationError
from .solver import CountingProblem, Solver


class CurvatureHistory:
    """Fixed-capacity FIFO of curvature pairs ``(s, y)``.

    Pairs live in preallocated ``(m, n)`` arrays indexed as a ring buffer;
    pushing into a full history overwrites the oldest pair.
    """

    def __init__(self, m: int, n: int, dtype: np.dtype = np.dtype(np.float64)) -> None:
        if m <= 0:
            raise ConfigurationError("Memory parameter m must be positive.")
        self.m = m
        self.s = np.zeros((m, n), dtype=dtype)
        self.y = np.zeros((m, n), dtype=dtype)
        self.rho = np.zeros(m, dtype=np.float64)
        self._start = 0
        self._size = 0

    def __len__(self) -> int:
        return self._size

    def clear(self) -> None:
        self._start = 0
        self._size = 0

    def push(self, s: Array, y: Array) -> None:
        """Append a pair with ``s^T y > 0``, evicting the oldest when full."""
        if self._size < self.m:
            slot = (self._start + self._size) % self.m
            self._size += 1
        else:
            slot = self._start
            self._start = (self._start + 1) % self.m
        self.s[slot] = s
        self.y[slot] = y
        self.rho[slot] = 1.0 / float(np.dot(y, s))

    def _slots(self) -> list[int]:
        return [(self._start + k) % self.m for k in range(self._size)]

    def oldest_first(self) -> Iterator[int]:
        return iter(self._slots())

    def newest_first(self) -> Iterator[int]:
        return reversed(self._slots())

    def newest(self) -> Optional[tuple[Array, Array]]:
        if self._size == 0:
            return None
        slot = (self._start + self._size - 1) % self.m
        return self.s[slot], self.y[slot]

    def apply_inverse(self, g: Array) -> Array:
        """Two-loop recursion: approximate ``H^{-1} g`` from the stored pairs.

        The initial matrix is ``gamma I`` with ``gamma = s^T y / y^T y`` of
        the newest pair, or the identity when the history is empty.
        """
        q = g.copy()
        alpha_vals = np.zeros(self.m, dtype=np.float64)
        for slot in self.newest_first():
            alpha_vals[slot] = self.rho[slot] * float(np.dot(self.s[slot], q))
            q -= alpha_vals[slot] * self.y[slot]
        newest = self.newest()
        if newest is not None:
            last_s, last_y = newest
            gamma = float(np.dot(last_s, last_y) / np.dot(last_y, last_y))
        else:
            gamma = 1.0
        r = gamma * q
        for slot in self.oldest_first():
            beta = self.rho[slot] * float(np.dot(self.y[slot], r))
            r += self.s[slot] * (alpha_vals[slot] - beta)
        return r


class LBFGS(Solver):
    """Limited-memory BFGS with strong Wolfe line search.

    Args:
        dtype: Floating scalar type.
        dim: Fixed dimension or None for dynamic.
        m: Number of curvature pairs kept.
        curvature_eps: A pair is stored only if
            ``s^T y > curvature_eps * ||s|| ||y||``.
        config: Stopping and line-search settings.
    """

    name = "L-BFGS"

    def __init__(
        self,
        dtype: np.dtype | type = np.float64,
        dim: Optional[int] = None,
        m: int = 10,
        curvature_eps: float = 1e-10,
        config: Optional[SolverConfig] = None,
    ) -> None:
        super().__init__(dtype=dtype, dim=dim, config=config)
        self.m = m
        self.curvature_eps = curvature_eps
        self.history: Optional[CurvatureHistory] = None

    @classmethod
    def default_config(cls) -> SolverConfig:
        return SolverConfig(line_search=LineSearchConfig(method="wolfe", c2=0.9))

    def _validate(self) -> None:
        if self.m <= 0:
            raise ConfigurationError("Memory parameter m must be positive.")
        if self.curvature_eps < 0:
            raise ConfigurationError("curvature_eps must be non-negative.")

    def _reset(self, n: int) -> None:
        self.history = CurvatureHistory(self.m, n, self.dtype)

    def _direction(self, ev: CountingProblem, x: Array, fx: float, g: Array) -> Array:
        return -self.history.apply_inverse(g)

    def _initial_step(self, x: Array, g: Array, d: Array) -> float:
        if len(self.history) == 0:
            # unscaled steepest descent: keep the first trial step bounded
            return min(self.line_search.alpha0, 1.0 / max(float(np.linalg.norm(g)), 1.0))
        return self.line_search.alpha0

    def _update(
        self, x: Array, x_new: Array, g: Array, g_new: Array, d: Array, alpha: float
    ) -> None:
        s = x_new - x
        y = g_new - g
        ys = float(np.dot(y, s))
        if ys > self.curvature_eps * float(np.linalg.norm(s)) * float(np.linalg.norm(y)):
            self.history.push(s, y)

    def _on_not_descent(self) -> None:
        self.history.clear()


def lbfgs(
    problem: Problem,
    x0: np.ndarray,
    m: int = 10,
    maxiter: int = 1000,
    tol: float = RTOL,
    line_search: str = "wolfe",
    history: bool = False,
) -> OptimizeResult:
    """Limited-memory BFGS using two-loop recursion.

    Functional form of :class:`LBFGS`: ``x0`` is copied, not modified.
    """
    x = np.array(x0, dtype=float)
    config = LBFGS.default_config()
    config.max_iters = maxiter
    config.gtol = tol
    config.line_search.method = line_search
    solver = LBFGS(dim=x.size, m=m, config=config)
    return solver.minimize(problem, x, history=history)


__all__ = ["CurvatureHistory", "LBFGS", "lbfgs"]
