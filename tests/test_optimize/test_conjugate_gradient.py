import numpy as np
import pytest

from optlib import BETA_RULES, ConfigurationError, NonLinearCG, Problem, nonlinear_cg
from optlib.conjugate_gradient import (
    dai_yuan,
    fletcher_reeves,
    hestenes_stiefel,
    polak_ribiere,
)


def rosenbrock(x: np.ndarray) -> float:
    return (1 - x[0]) ** 2 + 100 * (x[1] - x[0] ** 2) ** 2


def rosenbrock_grad(x: np.ndarray) -> np.ndarray:
    return np.array(
        [
            -2 * (1 - x[0]) - 400 * x[0] * (x[1] - x[0] ** 2),
            200 * (x[1] - x[0] ** 2),
        ]
    )


def test_beta_formulas():
    g_prev = np.array([1.0, 0.0])
    g = np.array([0.5, 1.0])
    d_prev = np.array([-1.0, 0.0])
    y = g - g_prev
    assert polak_ribiere(g, g_prev, d_prev) == pytest.approx(g @ y)
    assert fletcher_reeves(g, g_prev, d_prev) == pytest.approx(g @ g)
    assert hestenes_stiefel(g, g_prev, d_prev) == pytest.approx((g @ y) / (d_prev @ y))
    assert dai_yuan(g, g_prev, d_prev) == pytest.approx((g @ g) / (d_prev @ y))


def test_beta_formulas_guard_zero_denominator():
    zero = np.zeros(2)
    g = np.array([1.0, 1.0])
    assert polak_ribiere(g, zero, zero) == 0.0
    assert hestenes_stiefel(g, g, g) == 0.0


@pytest.mark.parametrize("rule", sorted(BETA_RULES))
def test_cg_minimizes_dense_quadratic(quadratic, rule: str):
    solver = NonLinearCG(beta_rule=rule)
    solver.max_iters = 1000
    x = np.random.uniform(-1.0, 1.0, quadratic.dim)
    solver.minimize(quadratic, x)
    assert np.all(np.isfinite(x))
    assert quadratic.residual(x) < 1e-4


def test_cg_quadratic_without_restart_interval(quadratic):
    solver = NonLinearCG(restart_interval=10_000)
    solver.max_iters = 1000
    x = np.zeros(quadratic.dim)
    res = solver.minimize(quadratic, x)
    assert quadratic.residual(x) < 1e-4
    assert res.nit < 200


def test_cg_reaches_rosenbrock_minimum():
    problem = Problem(fun=rosenbrock, grad=rosenbrock_grad, dim=2)
    solver = NonLinearCG(dim=2)
    solver.max_iters = 1000
    x = np.array([-1.2, 1.0])
    solver.minimize(problem, x)
    assert np.allclose(x, np.ones(2), atol=1e-4)


def test_cg_periodic_restart_uses_steepest_descent(quadratic):
    directions = []

    class Recording(NonLinearCG):
        def _update(self, x, x_new, g, g_new, d, alpha) -> None:
            directions.append((g.copy(), d.copy(), self._since_restart))
            super()._update(x, x_new, g, g_new, d, alpha)

    solver = Recording(restart_interval=3)
    solver.max_iters = 7
    solver.gtol = 0.0
    solver.minimize(quadratic, np.ones(quadratic.dim))
    for g, d, since_restart in directions:
        if since_restart == 0:
            assert np.allclose(d, -g)
        else:
            assert float(g @ d) < 0
    assert len(directions) == 7
    assert directions[0][2] == 0
    assert max(since for _, _, since in directions) <= 2


def test_cg_functional_form_copies_input():
    problem = Problem(fun=rosenbrock, grad=rosenbrock_grad)
    x0 = np.array([0.5, 0.5])
    res = nonlinear_cg(problem, x0, beta_rule="fletcher_reeves", maxiter=50)
    assert np.array_equal(x0, [0.5, 0.5])
    assert res.fun < rosenbrock(x0)


def test_cg_restarts_after_failed_conjugate_step():
    solver = NonLinearCG()
    solver._reset(2)
    solver._restarted = False
    g = np.array([1.0, -1.0])
    assert np.allclose(solver._recover(g, np.array([0.0, 1.0])), -g)
    assert solver._since_restart == 0
    assert solver._recover(g, -g) is None


def test_cg_rejects_unknown_rule():
    solver = NonLinearCG(beta_rule="newton")
    with pytest.raises(ConfigurationError):
        solver.minimize(Problem(fun=rosenbrock), np.zeros(2))
    solver = NonLinearCG(restart_interval=0)
    with pytest.raises(ConfigurationError):
        solver.minimize(Problem(fun=rosenbrock), np.zeros(2))
