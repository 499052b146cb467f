"""Reverse-communication optimization.

Modules
-------
line_search
    ``LineSearch`` state machine, status codes, Wolfe test and Armijo
    backtracking.
more_thuente
    Moré & Thuente safeguarded interpolation line search.
lbfgs
    Limited-memory BFGS inverse Hessian operator.
bounds
    Projectors onto simple bound constraints.
vmlmb
    VMLMB quasi-Newton optimizer with optional bounds.
driver
    ``minimize``: the evaluation loop around a reverse-communication optimizer.
"""

from inverse_imaging.optim.bounds import (
    BoundProjector,
    SimpleBounds,
    SimpleLowerBound,
    SimpleUpperBound,
)
from inverse_imaging.optim.driver import OptimizationResult, minimize
from inverse_imaging.optim.lbfgs import InverseHessianApproximation, LBFGSOperator
from inverse_imaging.optim.line_search import (
    ArmijoLineSearch,
    LineSearch,
    LineSearchStatus,
    check_wolfe_conditions,
)
from inverse_imaging.optim.more_thuente import (
    CStepResult,
    MoreThuenteLineSearch,
    StepPoint,
    cstep,
)
from inverse_imaging.optim.vmlmb import VMLMB, OptimTask, VMLMBReason

__all__ = [
    "ArmijoLineSearch",
    "BoundProjector",
    "CStepResult",
    "InverseHessianApproximation",
    "LBFGSOperator",
    "LineSearch",
    "LineSearchStatus",
    "MoreThuenteLineSearch",
    "OptimTask",
    "OptimizationResult",
    "SimpleBounds",
    "SimpleLowerBound",
    "SimpleUpperBound",
    "StepPoint",
    "VMLMB",
    "VMLMBReason",
    "check_wolfe_conditions",
    "cstep",
    "minimize",
]
