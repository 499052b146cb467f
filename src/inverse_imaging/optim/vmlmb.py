"""Variable Metric Limited Memory with Bounds (VMLMB).

Reverse-communication quasi-Newton optimizer combining an LBFGS
approximation of the inverse Hessian, a line search and, optionally, the
projection of the iterates onto simple bounds.

The caller drives the optimizer::

    task = optimizer.start()
    while True:
        if task == OptimTask.COMPUTE_FG:
            f, g = fg(x)
        elif task in (OptimTask.NEW_X, OptimTask.FINAL_X):
            if task == OptimTask.FINAL_X:
                break
        else:
            break
        task = optimizer.iterate(x, f, g)

``x`` is updated in place by :meth:`VMLMB.iterate` when a new function
evaluation is requested.
"""

from __future__ import annotations

import enum
import logging

import numpy as np
from numpy.typing import NDArray

from ..linalg.operators import LinearOperator
from ..linalg.vector_space import VectorSpace
from .bounds import BoundProjector
from .lbfgs import InverseHessianApproximation, LBFGSOperator
from .line_search import ArmijoLineSearch, LineSearch, LineSearchStatus
from .more_thuente import MoreThuenteLineSearch

LOGGER = logging.getLogger(__name__)


class OptimTask(enum.Enum):
    """Action requested from the caller of a reverse-communication optimizer."""

    COMPUTE_FG = "compute_fg"
    NEW_X = "new_x"
    FINAL_X = "final_x"
    WARNING = "warning"
    ERROR = "error"


class VMLMBReason(enum.IntEnum):
    """Why the optimizer stopped with a warning or an error."""

    NO_PROBLEMS = 0
    BAD_PRECONDITIONER = 1
    LNSRCH_WARNING = 2
    LNSRCH_ERROR = 3


_REASONS = {
    VMLMBReason.NO_PROBLEMS: "No problems",
    VMLMBReason.BAD_PRECONDITIONER: "Preconditioner is not positive definite",
    VMLMBReason.LNSRCH_WARNING: "Warning in line search",
    VMLMBReason.LNSRCH_ERROR: "Error in line search",
}


class VMLMB:
    """Limited memory quasi-Newton method with optional bound constraints.

    Parameters
    ----------
    space : VectorSpace
        Space of the variables.
    m : int, optional
        Number of memorized curvature pairs.
    line_search : LineSearch, optional
        Line search; defaults to ``MoreThuenteLineSearch(0.05, 0.1, 1e-17)``
        without bounds and to ``ArmijoLineSearch(0.5, 0.1)`` with bounds.
    projector : BoundProjector, optional
        Projection onto the feasible set.
    h0 : LinearOperator, optional
        Initial approximation of the inverse Hessian (a preconditioner).
    save_memory : bool, optional
        Keep the variables and gradient at the start of each line search in
        the free LBFGS slot instead of dedicated arrays.
    delta : float, optional
        Threshold of the sufficient descent (Zoutendijk) test.
    epsilon : float, optional
        Relative size of the first step along the first direction.
    gatol, grtol : float, optional
        Absolute and relative (to the initial gradient norm) thresholds for
        global convergence on the norm of the (projected) gradient.
    stpmin, stpmax : float, optional
        Relative bounds for the step length of unconstrained line searches.
    """

    def __init__(
        self,
        space: VectorSpace,
        m: int = 5,
        line_search: LineSearch | None = None,
        projector: BoundProjector | None = None,
        h0: LinearOperator | None = None,
        save_memory: bool = True,
        delta: float = 0.01,
        epsilon: float = 1e-3,
        gatol: float = 0.0,
        grtol: float = 1e-6,
        stpmin: float = 1e-20,
        stpmax: float = 1e6,
    ) -> None:
        if not 0.0 <= stpmin < stpmax:
            raise ValueError("Step bounds must satisfy 0 <= stpmin < stpmax.")
        if delta < 0.0:
            raise ValueError("delta must be non-negative.")
        if projector is not None and projector.space != space:
            raise ValueError("The projector must act on the space of variables.")
        if line_search is None:
            if projector is None:
                line_search = MoreThuenteLineSearch(0.05, 0.1, 1e-17)
            else:
                line_search = ArmijoLineSearch(0.5, 0.1)
        elif not isinstance(line_search, LineSearch):
            raise TypeError("line_search must be a LineSearch instance.")
        self.space = space
        self.H = LBFGSOperator(space, m, h0)
        self.line_search = line_search
        self.projector = projector
        self.save_memory = bool(save_memory)
        self.delta = float(delta)
        self.epsilon = float(epsilon)
        self.gatol = gatol
        self.grtol = grtol
        self.stpmin = float(stpmin)
        self.stpmax = float(stpmax)

        self._p = space.create()
        if self.save_memory:
            self._x0 = None
            self._g0 = None
        else:
            self._x0 = space.create()
            self._g0 = space.create()
        self._saved_slot = -1
        self._f0 = 0.0
        self._alpha = 0.0
        self._ginit = 0.0
        self._g1norm = 0.0
        self._first = True
        self._task: OptimTask | None = None
        self._reason = VMLMBReason.NO_PROBLEMS
        self._evaluations = 0
        self._iterations = 0
        self._restarts = 0

    # ---- #
    # Settings and diagnostics
    # ---- #

    @property
    def gatol(self) -> float:
        return self._gatol

    @gatol.setter
    def gatol(self, value: float) -> None:
        if value < 0.0:
            raise ValueError("gatol must be non-negative.")
        self._gatol = float(value)

    @property
    def grtol(self) -> float:
        return self._grtol

    @grtol.setter
    def grtol(self, value: float) -> None:
        if value < 0.0:
            raise ValueError("grtol must be non-negative.")
        self._grtol = float(value)

    @property
    def gradient_threshold(self) -> float:
        """Norm of the gradient below which the problem is solved."""
        return max(0.0, self._gatol, self._grtol * self._ginit)

    @property
    def task(self) -> OptimTask | None:
        return self._task

    @property
    def reason(self) -> VMLMBReason:
        return self._reason

    @property
    def iterations(self) -> int:
        return self._iterations

    @property
    def evaluations(self) -> int:
        return self._evaluations

    @property
    def restarts(self) -> int:
        return self._restarts

    @property
    def step(self) -> float:
        """Current step length along the search direction."""
        return self._alpha

    @property
    def gradient_norm(self) -> float:
        """Norm of the (projected) gradient at the last accepted point."""
        return self._g1norm

    def get_message(self, reason: int | None = None) -> str:
        if reason is None:
            reason = self._reason
        try:
            return _REASONS[VMLMBReason(reason)]
        except ValueError:
            return "Unknown reason"

    # ---- #
    # Reverse communication
    # ---- #

    def start(self) -> OptimTask:
        """Start a new optimization; the caller must compute ``f`` and ``g``."""
        self._evaluations = 0
        self._iterations = 0
        self._restarts = 0
        self._ginit = 0.0
        return self._begin()

    def restart(self) -> OptimTask:
        """Restart from the current variables with an empty LBFGS memory."""
        self._restarts += 1
        LOGGER.debug("Restarting VMLMB after %d evaluation(s).", self._evaluations)
        return self._begin()

    def _begin(self) -> OptimTask:
        self.H.reset()
        self._first = True
        self._saved_slot = -1
        return self._success(OptimTask.COMPUTE_FG)

    def _saved(self) -> tuple[NDArray, NDArray]:
        """Variables and gradient at the start of the current line search."""
        if self.save_memory:
            return self.H.slot_vectors(self._saved_slot)
        return self._x0, self._g0

    def iterate(self, x1: NDArray, f1: float, g1: NDArray) -> OptimTask:
        """Proceed with the optimization.

        Parameters
        ----------
        x1 : ndarray
            Current variables, overwritten with the next point to evaluate
            when ``COMPUTE_FG`` is returned.
        f1 : float
            Function value at *x1*.
        g1 : ndarray
            Gradient at *x1*; replaced by the projected gradient when the
            problem has bounds.

        Returns
        -------
        OptimTask
            Next action for the caller.

        Raises
        ------
        RuntimeError
            If :meth:`start` was never called.
        """
        if self._task == OptimTask.COMPUTE_FG:
            return self._on_evaluation(x1, f1, g1)
        if self._task in (OptimTask.NEW_X, OptimTask.FINAL_X):
            return self._on_new_x(x1, f1, g1)
        if self._task is None:
            raise RuntimeError("VMLMB.start() must be called before iterate().")
        return self._task

    def _on_evaluation(self, x1: NDArray, f1: float, g1: NDArray) -> OptimTask:
        space = self.space
        space.check(x1, g1)
        if self.projector is not None:
            self.projector.project_gradient(x1, g1, g1)
        self._evaluations += 1
        if not self._first:
            # Line search in progress; the directional derivative along
            # d = -p is -p.g1.
            pg1 = space.dot(self._p, g1)
            status = self.line_search.iterate(self._alpha, f1, -pg1)
            if status == LineSearchStatus.SEARCH:
                self._alpha = self.line_search.step
                x0, _ = self._saved()
                space.axpby(1.0, x0, -self._alpha, self._p, x1)
                if self.projector is not None:
                    self.projector.project_variables(x1, x1)
                return self._success(OptimTask.COMPUTE_FG)
            if status == LineSearchStatus.WARNING_ROUNDING_ERRORS_PREVENT_PROGRESS:
                status = LineSearchStatus.CONVERGENCE
            elif (
                self.projector is not None
                and status == LineSearchStatus.WARNING_STP_EQ_STPMAX
            ):
                status = LineSearchStatus.CONVERGENCE
            if status != LineSearchStatus.CONVERGENCE:
                return self._line_search_failure()
            self._iterations += 1

        self._g1norm = space.norm2(g1)
        if self._evaluations == 1:
            self._ginit = self._g1norm
        self._first = False
        if self._g1norm <= self.gradient_threshold:
            return self._success(OptimTask.FINAL_X)
        return self._success(OptimTask.NEW_X)

    def _on_new_x(self, x1: NDArray, f1: float, g1: NDArray) -> OptimTask:
        space = self.space
        H = self.H
        p = self._p
        if self._task == OptimTask.NEW_X and self._saved_slot >= 0:
            # x0 and g0 are only valid after a completed line search.
            x0, g0 = self._saved()
            H.update(x1, x0, g1, g0)

        while True:
            dg0 = self._search_direction(g1)
            if dg0 is None:
                return self._failure(VMLMBReason.BAD_PRECONDITIONER)

            if self.save_memory:
                self._saved_slot = H.claim_free_slot()
            else:
                self._saved_slot = 0
            x0, g0 = self._saved()
            np.copyto(x0, x1)
            np.copyto(g0, g1)
            self._f0 = f1

            alpha = self._first_step(x1)
            space.axpby(1.0, x0, -alpha, p, x1)
            if self.projector is None:
                amin = self.stpmin * alpha
                amax = self.stpmax * alpha
                break

            # Backtrack along the projected path: the effective direction is
            # the actual (possibly truncated) step.
            self.projector.project_variables(x1, x1)
            space.axpby(1.0, x0, -1.0, x1, p)
            dg0 = -space.dot(p, g0)
            alpha = 1.0
            amin = self.stpmin
            amax = 1.0
            if dg0 < 0.0 or H.mp < 1:
                break
            LOGGER.debug("Projected step is not a descent direction, restarting LBFGS recursion.")
            np.copyto(x1, x0)
            H.reset()
            self._restarts += 1

        self._alpha = alpha
        status = self.line_search.start(self._f0, dg0, alpha, amin, amax)
        if status != LineSearchStatus.SEARCH:
            return self._line_search_failure()
        return self._success(OptimTask.COMPUTE_FG)

    def _search_direction(self, g1: NDArray) -> float | None:
        """Compute ``p = H.g1`` passing the sufficient descent test.

        Returns the directional derivative ``-p.g1`` along ``d = -p``, or
        ``None`` if even the initial approximation fails the test.
        """
        space = self.space
        H = self.H
        p = self._p
        while True:
            H.apply(g1, p)
            pnorm = space.norm2(p)
            pg1 = space.dot(p, g1)
            if pg1 >= self.delta * pnorm * self._g1norm:
                return -pg1
            if H.mp < 1:
                LOGGER.debug("Initial inverse Hessian approximation is not positive definite.")
                return None
            LOGGER.debug("Not a sufficient descent direction, restarting LBFGS recursion.")
            H.reset()
            self._restarts += 1

    def _first_step(self, x1: NDArray) -> float:
        """Length of the first trial step along a new direction."""
        H = self.H
        if H.mp >= 1 or H.rule == InverseHessianApproximation.BY_USER:
            return 1.0
        if 0.0 < self.epsilon < 1.0:
            x1norm = self.space.norm2(x1)
            if x1norm > 0.0:
                return (x1norm / self._g1norm) * self.epsilon
        return 1.0 / self._g1norm

    def _line_search_failure(self) -> OptimTask:
        ls = self.line_search
        LOGGER.debug("Line search stopped: %s.", ls.get_message())
        if ls.has_warnings():
            self._reason = VMLMBReason.LNSRCH_WARNING
            self._task = OptimTask.WARNING
        else:
            self._reason = VMLMBReason.LNSRCH_ERROR
            self._task = OptimTask.ERROR
        return self._task

    def _success(self, task: OptimTask) -> OptimTask:
        self._reason = VMLMBReason.NO_PROBLEMS
        self._task = task
        return task

    def _failure(self, reason: VMLMBReason) -> OptimTask:
        self._reason = reason
        self._task = OptimTask.ERROR
        return self._task
