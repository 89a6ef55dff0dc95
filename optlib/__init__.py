"""Unconstrained nonlinear minimization: L-BFGS, nonlinear CG and Newton.

Example
-------
>>> import numpy as np
>>> from optlib import LBFGS, Problem
>>> def rosen(x):
...     return (1 - x[0])**2 + 100 * (x[1] - x[0]**2)**2
>>> def rosen_grad(x):
...     return np.array([
...         -2 * (1 - x[0]) - 400 * x[0] * (x[1] - x[0] ** 2),
...         200 * (x[1] - x[0] ** 2),
...     ])
>>> solver = LBFGS(dim=2)
>>> solver.max_iters = 200
>>> x = np.array([-1.2, 1.0])
>>> res = solver.minimize(Problem(fun=rosen, grad=rosen_grad), x)
>>> bool(np.allclose(x, 1.0, atol=1e-5))
True
"""

__version__ = "0.1.0"

from .conjugate_gradient import BETA_RULES, NonLinearCG, nonlinear_cg
from .convergence import StagnationMonitor, check_convergence, is_finite
from .core import (
    ATOL,
    RTOL,
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
    OptlibError,
)
from .line_search import LineSearchResult, backtracking_armijo, wolfe_line_search
from .newton import Newton, newton
from .quasi_newton import LBFGS, CurvatureHistory, lbfgs
from .solver import Solver
from .utils import approx_grad, approx_hessian, approx_hessian_from_values

__all__ = [
    "ATOL",
    "BETA_RULES",
    "ConfigurationError",
    "CurvatureHistory",
    "DimensionError",
    "InvalidIterateError",
    "LBFGS",
    "LineSearchConfig",
    "LineSearchResult",
    "Newton",
    "NonLinearCG",
    "NotDescentDirectionError",
    "OptimizeResult",
    "OptlibError",
    "Problem",
    "RTOL",
    "Solver",
    "SolverConfig",
    "StagnationMonitor",
    "Status",
    "approx_grad",
    "approx_hessian",
    "approx_hessian_from_values",
    "backtracking_armijo",
    "check_convergence",
    "is_finite",
    "lbfgs",
    "newton",
    "nonlinear_cg",
    "wolfe_line_search",
]
