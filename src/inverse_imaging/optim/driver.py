"""Driver loop for reverse-communication optimizers."""

from __future__ import annotations

import logging
from collections.abc import Callable
from typing import NamedTuple

import numpy as np
from numpy.typing import NDArray

from .vmlmb import VMLMB, OptimTask, VMLMBReason

LOGGER = logging.getLogger(__name__)

# fg(x) -> (f(x), gradient of f at x)
CostFunction = Callable[[NDArray], tuple[float, NDArray]]


class OptimizationResult(NamedTuple):
    """Outcome of :func:`minimize`."""

    x: NDArray
    f: float
    task: OptimTask
    reason: VMLMBReason
    converged: bool
    iterations: int
    evaluations: int
    restarts: int
    message: str


def minimize(
    fg: CostFunction,
    x: NDArray,
    optimizer: VMLMB,
    max_iter: int | None = None,
    max_eval: int | None = None,
    callback: Callable[[NDArray, VMLMB], None] | None = None,
) -> OptimizationResult:
    """Minimize a differentiable function with a reverse-communication optimizer.

    Parameters
    ----------
    fg : callable
        ``fg(x)`` returns the function value and its gradient at ``x``.
    x : ndarray
        Initial variables, updated in place.  They are first projected onto
        the feasible set when the optimizer has bounds.
    optimizer : VMLMB
        Optimizer instance; it is (re)started by this function.
    max_iter : int, optional
        Maximum number of iterations (accepted line searches).
    max_eval : int, optional
        Maximum number of function evaluations.
    callback : callable, optional
        ``callback(x, optimizer)`` called at every accepted iterate.

    Returns
    -------
    OptimizationResult
        ``converged`` is true only if the optimizer reported ``FINAL_X``.
    """
    space = optimizer.space
    space.check(x)
    if optimizer.projector is not None:
        optimizer.projector.project_variables(x, x)

    f = np.inf
    g = space.create()
    x_accepted = None
    f_accepted = np.inf
    converged = False
    task = optimizer.start()
    while True:
        if task == OptimTask.COMPUTE_FG:
            if max_eval is not None and optimizer.evaluations >= max_eval:
                LOGGER.warning("Too many evaluations (%d).", max_eval)
                break
            f, grad = fg(x)
            f = float(f)
            np.copyto(g, grad)
        elif task in (OptimTask.NEW_X, OptimTask.FINAL_X):
            x_accepted = space.copy(x, x_accepted)
            f_accepted = f
            if callback is not None:
                callback(x, optimizer)
            if task == OptimTask.FINAL_X:
                converged = True
                break
            if max_iter is not None and optimizer.iterations >= max_iter:
                LOGGER.warning("Too many iterations (%d).", max_iter)
                break
        else:
            LOGGER.warning(
                "Optimizer stopped with %s: %s (%s).",
                task.name,
                optimizer.get_message(),
                optimizer.line_search.get_message(),
            )
            break
        task = optimizer.iterate(x, f, g)

    if not converged and x_accepted is not None:
        # Return the last accepted iterate rather than a pending trial point.
        np.copyto(x, x_accepted)
        f = f_accepted

    LOGGER.debug(
        "%d iteration(s), %d evaluation(s), %d restart(s), f = %g.",
        optimizer.iterations,
        optimizer.evaluations,
        optimizer.restarts,
        f,
    )
    return OptimizationResult(
        x=x,
        f=f,
        task=task,
        reason=optimizer.reason,
        converged=converged,
        iterations=optimizer.iterations,
        evaluations=optimizer.evaluations,
        restarts=optimizer.restarts,
        message=optimizer.get_message(),
    )
