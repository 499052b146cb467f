"""Bound-constrained quadratic deconvolution.

Minimizes the same objective as :class:`LinearDeconvolver` subject to
``lower <= x <= upper`` (positivity by default) with the VMLMB optimizer.
"""

from __future__ import annotations

import logging

import numpy as np
from numpy.typing import ArrayLike, NDArray

from ..optim.bounds import SimpleBounds
from ..optim.driver import OptimizationResult, minimize
from ..optim.vmlmb import VMLMB
from .linear_deconvolver import LinearDeconvolver

LOGGER = logging.getLogger(__name__)


def deconvolve_bounded(
    deconvolver: LinearDeconvolver,
    x: NDArray | None = None,
    lower: ArrayLike | None = 0.0,
    upper: ArrayLike | None = None,
    max_iter: int | None = 200,
    max_eval: int | None = None,
    m: int = 5,
    gatol: float = 0.0,
    grtol: float = 1e-6,
) -> OptimizationResult:
    """Deconvolve with bounds on the solution.

    Parameters
    ----------
    deconvolver : LinearDeconvolver
        Provides the data, PSF, weights and regularization level.
    x : np.ndarray, optional
        Initial solution, updated in place.  Defaults to the data.
    lower, upper : float or np.ndarray or None, optional
        Bounds of the solution.  ``None`` means unbounded on that side.
    max_iter, max_eval : int, optional
        Limits on iterations and function evaluations.
    m : int, optional
        Number of LBFGS pairs.
    gatol, grtol : float, optional
        Convergence thresholds on the projected gradient norm.

    Returns
    -------
    OptimizationResult
        The solution is ``result.x``.
    """
    space = deconvolver.space
    if x is None:
        x = deconvolver.y.copy()
    else:
        x = space.wrap(np.asarray(x))

    projector = None
    if lower is not None or upper is not None:
        projector = SimpleBounds(space, lower, upper)
    optimizer = VMLMB(space, m=m, projector=projector, gatol=gatol, grtol=grtol)

    gradient = space.create()

    def fg(v: NDArray) -> tuple[float, NDArray]:
        f = deconvolver.cost(v, gradient)
        return f, gradient

    result = minimize(fg, x, optimizer, max_iter=max_iter, max_eval=max_eval)
    LOGGER.info(
        "Bounded deconvolution: %s after %d iteration(s) and %d evaluation(s).",
        "converged" if result.converged else result.task.name.lower(),
        result.iterations,
        result.evaluations,
    )
    return result
