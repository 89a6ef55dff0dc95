"""Pytest configuration and shared fixtures for optlib tests.

This module provides:
- Deterministic RNG fixtures seeded from ``TEST_RNG_SEED``
- Shared objectives: a dense SPD quadratic and the 2-D Rosenbrock function
"""

import os

import numpy as np
import pytest

from optlib import Problem


@pytest.fixture(scope="function")
def rng() -> np.random.Generator:
    """Provide a deterministic numpy RNG for tests.

    Uses seed from TEST_RNG_SEED environment variable (default: 0).
    """
    seed = int(os.environ.get("TEST_RNG_SEED", "0"))
    return np.random.default_rng(seed)


@pytest.fixture(scope="function", autouse=True)
def set_random_seeds() -> None:
    """Seed numpy's legacy global RNG before every test."""
    np.random.seed(int(os.environ.get("TEST_RNG_SEED", "0")))


class SPDQuadratic(Problem):
    """``f(x) = 1/2 x^T A x - b^T x``; the minimizer solves ``A x = b``."""

    def __init__(self, A: np.ndarray, b: np.ndarray) -> None:
        super().__init__(dim=b.size)
        object.__setattr__(self, "A", A)
        object.__setattr__(self, "b", b)

    def value(self, x: np.ndarray) -> float:
        return float(0.5 * x @ (self.A @ x) - self.b @ x)

    def gradient(self, x: np.ndarray) -> np.ndarray:
        return self.A @ x - self.b

    def hessian(self, x: np.ndarray) -> np.ndarray:
        return self.A

    def residual(self, x: np.ndarray) -> float:
        return float(np.linalg.norm(self.A @ x - self.b))


def rosenbrock(x: np.ndarray) -> float:
    return (1 - x[0]) ** 2 + 100 * (x[1] - x[0] ** 2) ** 2


def rosenbrock_grad(x: np.ndarray) -> np.ndarray:
    return np.array(
        [
            -2 * (1 - x[0]) - 400 * x[0] * (x[1] - x[0] ** 2),
            200 * (x[1] - x[0] ** 2),
        ]
    )


def rosenbrock_hess(x: np.ndarray) -> np.ndarray:
    return np.array(
        [
            [1200 * x[0] ** 2 - 400 * x[1] + 2, -400 * x[0]],
            [-400 * x[0], 200],
        ]
    )


def make_quadratic(rng: np.random.Generator, n: int) -> SPDQuadratic:
    M = rng.standard_normal((n, n))
    A = M.T @ M / n + np.eye(n)
    b = rng.standard_normal(n)
    return SPDQuadratic(A, b)


@pytest.fixture
def quadratic_factory(rng: np.random.Generator):
    """Build dense SPD quadratics of a given dimension from the test RNG."""

    def factory(n: int) -> SPDQuadratic:
        return make_quadratic(rng, n)

    return factory


@pytest.fixture
def quadratic(rng: np.random.Generator) -> SPDQuadratic:
    """Dense 16-dimensional SPD quadratic with analytic derivatives."""
    return make_quadratic(rng, 16)


@pytest.fixture
def rosen_problem() -> Problem:
    """Rosenbrock with analytic gradient and Hessian."""
    return Problem(fun=rosenbrock, grad=rosenbrock_grad, hess=rosenbrock_hess, dim=2)


@pytest.fixture
def rosen_fd_problem() -> Problem:
    """Rosenbrock exposing only ``value``; derivatives are finite-differenced."""
    return Problem(fun=rosenbrock, dim=2)
