"""Line searches driven by reverse communication.

A line search looks for a step ``alpha`` along a descent direction of a
scalar function ``phi(alpha) = f(x0 + alpha*d)``.  The caller starts the
search with ``phi(0)`` and ``phi'(0)``, then repeatedly evaluates ``phi`` and
its derivative at :attr:`LineSearch.step` and reports them to
:meth:`LineSearch.iterate` until the search is :meth:`~LineSearch.finished`.

Typical use::

    status = ls.start(f0, g0, step, stpmin, stpmax)
    while status == LineSearchStatus.SEARCH:
        alpha = ls.step
        f, g = phi(alpha), dphi(alpha)
        status = ls.iterate(alpha, f, g)
"""

from __future__ import annotations

import abc
import enum


class LineSearchStatus(enum.IntEnum):
    """Status of a line search.

    Negative values are errors, values above ``CONVERGENCE`` are warnings.
    """

    ERROR_ILLEGAL_FX = -13
    ERROR_ILLEGAL_ADDRESS = -12
    ERROR_CORRUPTED_WORKSPACE = -11
    ERROR_BAD_WORKSPACE = -10
    ERROR_STP_CHANGED = -9
    ERROR_STP_OUTSIDE_BRACKET = -8
    ERROR_NOT_A_DESCENT = -7
    ERROR_STPMIN_GT_STPMAX = -6
    ERROR_STPMIN_LT_ZERO = -5
    ERROR_STP_LT_STPMIN = -4
    ERROR_STP_GT_STPMAX = -3
    ERROR_INITIAL_DERIVATIVE_GE_ZERO = -2
    ERROR_NOT_STARTED = -1
    SEARCH = 0
    CONVERGENCE = 1
    WARNING_ROUNDING_ERRORS_PREVENT_PROGRESS = 2
    WARNING_XTOL_TEST_SATISFIED = 3
    WARNING_STP_EQ_STPMAX = 4
    WARNING_STP_EQ_STPMIN = 5


_MESSAGES = {
    LineSearchStatus.ERROR_ILLEGAL_FX: "Illegal function value",
    LineSearchStatus.ERROR_ILLEGAL_ADDRESS: "Illegal address",
    LineSearchStatus.ERROR_CORRUPTED_WORKSPACE: "Corrupted workspace",
    LineSearchStatus.ERROR_BAD_WORKSPACE: "Bad workspace",
    LineSearchStatus.ERROR_STP_CHANGED: "Step changed",
    LineSearchStatus.ERROR_STP_OUTSIDE_BRACKET: "Step outside bracket",
    LineSearchStatus.ERROR_NOT_A_DESCENT: "Not a descent direction",
    LineSearchStatus.ERROR_STPMIN_GT_STPMAX: "Upper step bound smaller than lower bound",
    LineSearchStatus.ERROR_STPMIN_LT_ZERO: "Lower step bound less than zero",
    LineSearchStatus.ERROR_STP_LT_STPMIN: "Step below lower bound",
    LineSearchStatus.ERROR_STP_GT_STPMAX: "Step above upper bound",
    LineSearchStatus.ERROR_INITIAL_DERIVATIVE_GE_ZERO: (
        "Initial directional derivative greater or equal zero"
    ),
    LineSearchStatus.ERROR_NOT_STARTED: "Linesearch not started",
    LineSearchStatus.SEARCH: "Linesearch in progress",
    LineSearchStatus.CONVERGENCE: "Linesearch has converged",
    LineSearchStatus.WARNING_ROUNDING_ERRORS_PREVENT_PROGRESS: "Rounding errors prevent progress",
    LineSearchStatus.WARNING_XTOL_TEST_SATISFIED: "Search interval smaller than tolerance",
    LineSearchStatus.WARNING_STP_EQ_STPMAX: "Step at upper bound",
    LineSearchStatus.WARNING_STP_EQ_STPMIN: "Step at lower bound",
}


def get_message(code: int) -> str:
    """Return a textual description of a line search status code."""
    try:
        return _MESSAGES[LineSearchStatus(code)]
    except ValueError:
        return "Unknown linesearch status"


class LineSearch(abc.ABC):
    """Base state machine shared by all line searches.

    Subclasses implement :meth:`_iterate_hook` (and optionally
    :meth:`_start_hook`).  The base class validates the arguments of
    :meth:`start`, checks that :meth:`iterate` is called with the step that
    was last proposed, and keeps the proposed step within the bounds.
    """

    def __init__(self) -> None:
        self._stp = 0.0
        self._stpmin = 0.0
        self._stpmax = 0.0
        self._finit = 0.0
        self._ginit = 0.0
        self._status = LineSearchStatus.ERROR_NOT_STARTED

    @property
    def step(self) -> float:
        """Step at which the function must be evaluated next."""
        return self._stp

    @property
    def status(self) -> LineSearchStatus:
        return self._status

    @property
    def step_min(self) -> float:
        return self._stpmin

    @property
    def step_max(self) -> float:
        return self._stpmax

    def start(
        self,
        f0: float,
        g0: float,
        next_step: float,
        step_min: float,
        step_max: float,
    ) -> LineSearchStatus:
        """Start a new search.

        Parameters
        ----------
        f0 : float
            Function value at ``alpha = 0``.
        g0 : float
            Directional derivative at ``alpha = 0``; must be negative.
        next_step : float
            First step to try, within ``[step_min, step_max]``.
        step_min, step_max : float
            Bounds for the step, ``0 <= step_min <= step_max``.

        Returns
        -------
        LineSearchStatus
            ``SEARCH`` on success, an error code otherwise.
        """
        if step_min < 0.0:
            self._status = LineSearchStatus.ERROR_STPMIN_LT_ZERO
        elif step_min > step_max:
            self._status = LineSearchStatus.ERROR_STPMIN_GT_STPMAX
        elif next_step < step_min:
            self._status = LineSearchStatus.ERROR_STP_LT_STPMIN
        elif next_step > step_max:
            self._status = LineSearchStatus.ERROR_STP_GT_STPMAX
        elif g0 >= 0.0:
            self._status = LineSearchStatus.ERROR_INITIAL_DERIVATIVE_GE_ZERO
        else:
            self._stp = float(next_step)
            self._stpmin = float(step_min)
            self._stpmax = float(step_max)
            self._finit = float(f0)
            self._ginit = float(g0)
            self._status = LineSearchStatus(self._start_hook())
        return self._status

    def iterate(self, s1: float, f1: float, g1: float) -> LineSearchStatus:
        """Submit the function value and derivative at step *s1*.

        *s1* must be exactly the last value of :attr:`step`.  When the
        returned status is ``SEARCH``, :attr:`step` holds the next step to try.
        """
        if self._status != LineSearchStatus.SEARCH:
            self._status = LineSearchStatus.ERROR_NOT_STARTED
        elif s1 != self._stp:
            self._status = LineSearchStatus.ERROR_STP_CHANGED
        else:
            status = LineSearchStatus(self._iterate_hook(float(s1), float(f1), float(g1)))
            if self._stp >= self._stpmax:
                if s1 >= self._stpmax and status >= 0:
                    status = LineSearchStatus.WARNING_STP_EQ_STPMAX
                self._stp = self._stpmax
            elif self._stp <= self._stpmin:
                if s1 <= self._stpmin and status >= 0:
                    status = LineSearchStatus.WARNING_STP_EQ_STPMIN
                self._stp = self._stpmin
            self._status = status
        return self._status

    def _start_hook(self) -> int:
        """Initialize the subclass state; called by :meth:`start`."""
        return LineSearchStatus.SEARCH

    @abc.abstractmethod
    def _iterate_hook(self, s1: float, f1: float, g1: float) -> int:
        """Examine the new point and set ``self._stp`` to the next step."""

    def get_message(self, code: int | None = None) -> str:
        return get_message(self._status if code is None else code)

    def has_errors(self) -> bool:
        return self._status < 0

    def has_warnings(self) -> bool:
        return self._status > LineSearchStatus.CONVERGENCE

    def converged(self) -> bool:
        return self._status == LineSearchStatus.CONVERGENCE

    def finished(self) -> bool:
        return self._status != LineSearchStatus.SEARCH


def check_wolfe_conditions(
    alpha: float,
    f: float,
    g: float,
    finit: float,
    ginit: float,
    ftol: float,
    gtol: float,
) -> int:
    """Check which Wolfe conditions hold at step *alpha*.

    Returns
    -------
    int
        0 if the sufficient decrease (Armijo) condition fails, 1 if only the
        Armijo condition holds, 2 if the weak Wolfe conditions hold and 3 if
        the strong Wolfe conditions hold.
    """
    if f - finit > ftol * ginit * alpha:
        return 0
    gtest = gtol * ginit
    if g < gtest:
        return 1
    if abs(g) > -gtest:
        return 2
    return 3


class ArmijoLineSearch(LineSearch):
    """Backtracking line search with the sufficient decrease condition.

    The search is satisfied as soon as
    ``f(stp) <= finit + ftol*stp*ginit``.  Otherwise the step is replaced by
    the minimizer of the quadratic interpolating ``finit``, ``ginit`` and
    ``f(stp)``, safeguarded in ``[0.1*stp, factor*stp]``.  This search only
    needs function values and is used when the iterates are projected onto
    a feasible set.

    Parameters
    ----------
    factor : float, optional
        Maximum reduction of the step after a failure, in ``(0, 1)``.
    ftol : float, optional
        Tolerance of the sufficient decrease condition, in ``(0, 1)``.
    """

    def __init__(self, factor: float = 0.5, ftol: float = 0.1) -> None:
        super().__init__()
        if not 0.0 < factor < 1.0:
            raise ValueError("The backtracking factor must be in (0, 1).")
        if not 0.0 < ftol < 1.0:
            raise ValueError("ftol must be in (0, 1).")
        self.factor = factor
        self.ftol = ftol

    def _iterate_hook(self, s1: float, f1: float, g1: float) -> int:
        if f1 <= self._finit + self.ftol * s1 * self._ginit:
            return LineSearchStatus.CONVERGENCE
        lower = min(0.1, self.factor) * s1
        upper = self.factor * s1
        curvature = f1 - self._finit - self._ginit * s1
        if curvature > 0.0:
            stp = -0.5 * self._ginit * s1 * s1 / curvature
            self._stp = min(max(stp, lower), upper)
        else:
            self._stp = upper
        return LineSearchStatus.SEARCH
