import numpy as np
import pytest

from optlib import (
    LBFGS,
    ConfigurationError,
    DimensionError,
    InvalidIterateError,
    Newton,
    NonLinearCG,
    Problem,
    Status,
)
from optlib.solver import CountingProblem


def sphere(x: np.ndarray) -> float:
    return float(np.sum((x - 1.0) ** 2))


def sphere_grad(x: np.ndarray) -> np.ndarray:
    return 2 * (x - 1.0)


SOLVERS = [LBFGS, NonLinearCG, Newton]


@pytest.mark.parametrize("solver_cls", SOLVERS)
def test_minimize_overwrites_iterate_in_place(solver_cls):
    problem = Problem(fun=sphere, grad=sphere_grad)
    x = np.zeros(3)
    buffer = x
    res = solver_cls().minimize(problem, x)
    assert x is buffer
    assert np.allclose(x, 1.0, atol=1e-6)
    assert np.array_equal(res.x, x)
    assert res.x is not x
    assert res.success


@pytest.mark.parametrize(
    "x",
    [
        [0.0, 0.0],
        np.zeros(2, dtype=np.int64),
        np.zeros((2, 2)),
    ],
)
def test_minimize_rejects_unusable_iterates(x):
    with pytest.raises(InvalidIterateError):
        LBFGS().minimize(Problem(fun=sphere), x)


def test_minimize_rejects_read_only_iterate():
    x = np.zeros(2)
    x.setflags(write=False)
    with pytest.raises(InvalidIterateError):
        LBFGS().minimize(Problem(fun=sphere), x)


def test_minimize_checks_dimensions():
    with pytest.raises(DimensionError):
        LBFGS(dim=3).minimize(Problem(fun=sphere), np.zeros(2))
    with pytest.raises(DimensionError):
        LBFGS().minimize(Problem(fun=sphere, dim=3), np.zeros(2))
    with pytest.raises(DimensionError):
        LBFGS().minimize(Problem(fun=sphere), np.zeros(0))


def test_solver_rejects_bad_construction():
    with pytest.raises(ConfigurationError):
        LBFGS(dtype=np.int32)
    with pytest.raises(ConfigurationError):
        NonLinearCG(dim=0)


def test_negative_max_iters_rejected_at_start():
    solver = Newton()
    solver.max_iters = -1
    with pytest.raises(ConfigurationError):
        solver.minimize(Problem(fun=sphere), np.zeros(2))


def test_zero_iterations_evaluates_start_only():
    problem = Problem(fun=sphere, grad=sphere_grad)
    solver = LBFGS()
    solver.max_iters = 0
    x = np.array([3.0, -1.0])
    res = solver.minimize(problem, x)
    assert res.nit == 0
    assert res.status == Status.MAX_ITER
    assert res.nfev == 1
    assert res.njev == 1
    assert np.array_equal(x, [3.0, -1.0])


def test_already_optimal_start_converges_immediately():
    problem = Problem(fun=sphere, grad=sphere_grad)
    x = np.ones(4)
    res = NonLinearCG().minimize(problem, x)
    assert res.success
    assert res.nit == 0
    assert res.grad_norm == 0.0


def test_inconsistent_gradient_reports_line_search_failure():
    problem = Problem(fun=sphere, grad=lambda x: -sphere_grad(x))
    x = np.zeros(2)
    res = LBFGS().minimize(problem, x)
    assert res.status == Status.LINE_SEARCH_FAILED
    assert not res.success
    assert res.nit == 0
    assert np.array_equal(x, np.zeros(2))


def test_non_finite_gradient_reports_numerical_error():
    def grad(x: np.ndarray) -> np.ndarray:
        if np.all(x == 0.0):
            return sphere_grad(x)
        return np.full_like(x, np.nan)

    solver = LBFGS()
    solver.line_search.method = "armijo"
    x = np.zeros(2)
    res = solver.minimize(Problem(fun=sphere, grad=grad), x)
    assert res.status == Status.NUMERICAL_ERROR
    assert res.nit == 1
    assert np.all(np.isfinite(x))
    assert not np.isfinite(res.grad_norm)


def test_non_finite_start_reports_numerical_error():
    x = np.array([np.inf, 0.0])
    res = Newton().minimize(Problem(fun=sphere, grad=sphere_grad), x)
    assert res.status == Status.NUMERICAL_ERROR
    assert res.nit == 0
    assert np.isinf(x[0])


def test_objective_exceptions_propagate():
    def fun(x: np.ndarray) -> float:
        raise RuntimeError("model evaluation failed")

    with pytest.raises(RuntimeError, match="model evaluation failed"):
        LBFGS().minimize(Problem(fun=fun), np.zeros(2))


def test_history_records_each_accepted_iterate(quadratic):
    solver = NonLinearCG()
    solver.max_iters = 5
    solver.gtol = 0.0
    res = solver.minimize(quadratic, np.zeros(quadratic.dim), history=True)
    assert len(res.history) == res.nit + 1
    assert np.array_equal(res.history[0], np.zeros(quadratic.dim))
    assert np.array_equal(res.history[-1], res.x)
    values = [quadratic.value(h) for h in res.history]
    assert all(b <= a for a, b in zip(values, values[1:]))


def test_counting_problem_charges_finite_differences():
    ev = CountingProblem(Problem(fun=sphere), 3, np.dtype(np.float64))
    ev.value(np.zeros(3))
    ev.gradient(np.zeros(3))
    assert ev.nfev == 1 + 6
    assert ev.njev == 0
    ev.hessian(np.zeros(3))
    assert ev.nfev == 7 + 1 + 2 * 9
    assert ev.nhev == 0

    ev = CountingProblem(Problem(fun=sphere, grad=sphere_grad), 3, np.dtype(np.float32))
    hess = ev.hessian(np.zeros(3, dtype=np.float32))
    assert hess.dtype == np.float32
    assert hess.shape == (3, 3)
    assert ev.njev == 6


def test_solver_instance_is_reusable(quadratic, rosen_problem):
    solver = LBFGS()
    solver.max_iters = 200
    solver.minimize(quadratic, np.zeros(quadratic.dim))
    x_reused = np.array([-1.2, 1.0])
    res_reused = solver.minimize(rosen_problem, x_reused)

    fresh = LBFGS()
    fresh.max_iters = 200
    x_fresh = np.array([-1.2, 1.0])
    res_fresh = fresh.minimize(rosen_problem, x_fresh)
    assert np.array_equal(x_reused, x_fresh)
    assert res_reused.nit == res_fresh.nit


def test_ascent_direction_is_reset_to_steepest_descent():
    resets = []

    class AscentFirst(LBFGS):
        def _direction(self, ev, x, fx, g):
            if not resets:
                return g
            return super()._direction(ev, x, fx, g)

        def _on_not_descent(self) -> None:
            resets.append(len(self.history))
            super()._on_not_descent()

    x = np.zeros(3)
    res = AscentFirst().minimize(Problem(fun=sphere, grad=sphere_grad), x)
    assert resets == [0]
    assert res.success
    assert np.allclose(x, 1.0, atol=1e-6)
