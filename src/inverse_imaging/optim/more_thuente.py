"""Moré & Thuente line search.

Safeguarded cubic/quadratic interpolation search for a step satisfying the
strong Wolfe conditions::

    f(stp) <= finit + ftol*stp*ginit
    |g(stp)| <= gtol*|ginit|

Reference: J. J. Moré and D. J. Thuente, "Line search algorithms with
guaranteed sufficient decrease", ACM Trans. Math. Softw. 20 (1994) 286-307.
"""

from __future__ import annotations

import logging
import math
from typing import NamedTuple

from .line_search import LineSearch, LineSearchStatus

LOGGER = logging.getLogger(__name__)

# Bracket widths shrinking slower than this trigger a bisection.
_SHRINK = 0.66

# Extrapolation factors used while no minimizer is bracketed.
_XTRAPL = 1.1
_XTRAPU = 4.0


class StepPoint(NamedTuple):
    """A step with the function value and derivative there."""

    step: float
    f: float
    g: float

    def shifted(self, slope: float) -> StepPoint:
        """Return the point for ``f(stp) - slope*stp``."""
        return StepPoint(self.step, self.f - slope * self.step, self.g - slope)


class CStepResult(NamedTuple):
    """Outcome of :func:`cstep`.

    ``info`` is the case (1 to 4) that produced the new step, or a negative
    :class:`LineSearchStatus` when the inputs were illegal (the other fields
    then hold the unchanged inputs).
    """

    info: int
    best: StepPoint
    other: StepPoint
    step: float
    brackt: bool


def _cubic_gamma(theta: float, s: float, d1: float, d2: float) -> float:
    temp = theta / s
    return s * math.sqrt(max(0.0, temp * temp - (d1 / s) * (d2 / s)))


def cstep(
    best: StepPoint,
    other: StepPoint,
    trial: StepPoint,
    brackt: bool,
    stpmin: float,
    stpmax: float,
) -> CStepResult:
    """Compute a safeguarded step and update the interval of uncertainty.

    Parameters
    ----------
    best : StepPoint
        Step with the least function value found so far (``stx``).
    other : StepPoint
        Other endpoint of the interval of uncertainty (``sty``).
    trial : StepPoint
        Current trial step (``stp``).
    brackt : bool
        Whether a minimizer has already been bracketed.  When true, the
        trial step must lie strictly between ``best`` and ``other``.
    stpmin, stpmax : float
        Bounds for the new step when no minimizer is bracketed.

    Returns
    -------
    CStepResult
        The new best and other endpoints, the new step and bracket flag.
    """
    stx, fx, dx = best
    sty, fy, dy = other
    stp, fp, dp = trial

    if brackt and (
        (stp <= stx or stp >= sty) if stx < sty else (stp <= sty or stp >= stx)
    ):
        return CStepResult(LineSearchStatus.ERROR_STP_OUTSIDE_BRACKET, best, other, stp, brackt)
    if dx * (stp - stx) >= 0.0:
        return CStepResult(LineSearchStatus.ERROR_NOT_A_DESCENT, best, other, stp, brackt)
    if stpmin > stpmax:
        return CStepResult(LineSearchStatus.ERROR_STPMIN_GT_STPMAX, best, other, stp, brackt)

    opposite = (dp < 0.0 < dx) or (dx < 0.0 < dp)

    if fp > fx:
        # Case 1: higher function value, the minimum is bracketed.  Take the
        # cubic step if it is closer to stx than the quadratic step, else the
        # average of both.
        info = 1
        brackt = True
        theta = 3.0 * (fx - fp) / (stp - stx) + dx + dp
        s = max(abs(theta), abs(dx), abs(dp))
        gamma = _cubic_gamma(theta, s, dx, dp)
        if stp < stx:
            gamma = -gamma
        p = (gamma - dx) + theta
        q = ((gamma - dx) + gamma) + dp
        stpc = stx + (p / q) * (stp - stx)
        stpq = stx + ((dx / ((fx - fp) / (stp - stx) + dx)) / 2.0) * (stp - stx)
        if abs(stpc - stx) < abs(stpq - stx):
            stpf = stpc
        else:
            stpf = stpc + (stpq - stpc) / 2.0
    elif opposite:
        # Case 2: lower function value and derivatives of opposite sign, the
        # minimum is bracketed.  Take whichever of the cubic and secant steps
        # is farther from stp.
        info = 2
        brackt = True
        theta = 3.0 * (fx - fp) / (stp - stx) + dx + dp
        s = max(abs(theta), abs(dx), abs(dp))
        gamma = _cubic_gamma(theta, s, dx, dp)
        if stp > stx:
            gamma = -gamma
        p = (gamma - dp) + theta
        q = ((gamma - dp) + gamma) + dx
        stpc = stp + (p / q) * (stx - stp)
        stpq = stp + (dp / (dp - dx)) * (stx - stp)
        stpf = stpc if abs(stpc - stp) > abs(stpq - stp) else stpq
    elif abs(dp) < abs(dx):
        # Case 3: lower function value, same sign derivatives, decreasing
        # magnitude.  The cubic step is only used if the cubic tends to
        # infinity in the direction of the step or if its minimum is beyond
        # stp; otherwise the secant step is used.
        info = 3
        theta = 3.0 * (fx - fp) / (stp - stx) + dx + dp
        s = max(abs(theta), abs(dx), abs(dp))
        temp = theta / s
        temp = temp * temp - (dx / s) * (dp / s)
        if temp > 0.0:
            gamma = s * math.sqrt(temp)
            if stp > stx:
                gamma = -gamma
        else:
            gamma = 0.0
        p = (gamma - dp) + theta
        q = (gamma + (dx - dp)) + gamma
        r = p / q
        if r < 0.0 and gamma != 0.0:
            stpc = stp + r * (stx - stp)
        elif stp > stx:
            stpc = stpmax
        else:
            stpc = stpmin
        stpq = stp + (dp / (dp - dx)) * (stx - stp)
        if brackt:
            stpf = stpc if abs(stpc - stp) < abs(stpq - stp) else stpq
            limit = stp + _SHRINK * (sty - stp)
            if (stpf > limit) if stp > stx else (stpf < limit):
                stpf = limit
        else:
            stpf = stpc if abs(stpc - stp) > abs(stpq - stp) else stpq
            stpf = min(max(stpf, stpmin), stpmax)
    else:
        # Case 4: lower function value, same sign derivatives, magnitude not
        # decreasing.  Cubic step toward sty if bracketed, else a bound.
        info = 4
        if brackt:
            theta = 3.0 * (fp - fy) / (sty - stp) + dy + dp
            s = max(abs(theta), abs(dy), abs(dp))
            gamma = _cubic_gamma(theta, s, dy, dp)
            if stp > sty:
                gamma = -gamma
            p = (gamma - dp) + theta
            q = ((gamma - dp) + gamma) + dy
            stpf = stp + (p / q) * (sty - stp)
        elif stp > stx:
            stpf = stpmax
        else:
            stpf = stpmin

    # Update the interval which contains a minimizer.
    if fp > fx:
        other = trial
    else:
        if opposite:
            other = best
        best = trial
    return CStepResult(info, best, other, stpf, brackt)


class MoreThuenteLineSearch(LineSearch):
    """Line search of Moré & Thuente.

    Parameters
    ----------
    ftol : float, optional
        Tolerance for the sufficient decrease condition.
    gtol : float, optional
        Tolerance for the curvature condition.
    xtol : float, optional
        Relative tolerance on the width of the interval of uncertainty.

    Negative tolerances are treated as zero.
    """

    def __init__(self, ftol: float = 1e-3, gtol: float = 0.9, xtol: float = 0.1) -> None:
        super().__init__()
        self.ftol = max(0.0, ftol)
        self.gtol = max(0.0, gtol)
        self.xtol = max(0.0, xtol)
        self._reset_state()

    def _reset_state(self) -> None:
        self._gtest = 0.0
        self._stmin = 0.0
        self._stmax = 0.0
        self._width = 0.0
        self._width1 = 0.0
        self._brackt = False
        self._stage = 1
        self._best = StepPoint(0.0, 0.0, 0.0)
        self._other = StepPoint(0.0, 0.0, 0.0)

    @property
    def bracketed(self) -> bool:
        """Whether a minimizer is known to lie in the current interval."""
        return self._brackt

    @property
    def interval(self) -> tuple[float, float]:
        """Current ``(stx, sty)`` endpoints of the interval of uncertainty."""
        return self._best.step, self._other.step

    def _start_hook(self) -> int:
        self._gtest = self.ftol * self._ginit
        self._stmin = self._stpmin
        self._stmax = self._stpmax
        self._width = self._stpmax - self._stpmin
        self._width1 = 2.0 * self._width
        self._brackt = False
        self._stage = 1
        self._best = StepPoint(0.0, self._finit, self._ginit)
        self._other = StepPoint(0.0, self._finit, self._ginit)
        return LineSearchStatus.SEARCH

    def _iterate_hook(self, s1: float, f1: float, g1: float) -> int:
        gtest = self._gtest
        ftest = self._finit + s1 * gtest

        # Strong Wolfe conditions.
        if f1 <= ftest and abs(g1) <= -self.gtol * self._ginit:
            return LineSearchStatus.CONVERGENCE

        if s1 == self._stpmin and (f1 > ftest or g1 >= gtest):
            return LineSearchStatus.WARNING_STP_EQ_STPMIN
        if s1 == self._stpmax and f1 <= ftest and g1 <= gtest:
            return LineSearchStatus.WARNING_STP_EQ_STPMAX
        if self._brackt and self._stmax - self._stmin <= self.xtol * self._stmax:
            return LineSearchStatus.WARNING_XTOL_TEST_SATISFIED
        if self._brackt and (s1 <= self._stmin or s1 >= self._stmax):
            return LineSearchStatus.WARNING_ROUNDING_ERRORS_PREVENT_PROGRESS

        # Second stage once psi(stp) <= 0 and f'(stp) >= 0.
        if self._stage == 1 and f1 <= ftest and g1 >= 0.0:
            self._stage = 2

        trial = StepPoint(s1, f1, g1)
        if self._stage == 1 and f1 <= self._best.f and f1 > ftest:
            # Lower value but insufficient decrease: interpolate the
            # auxiliary function psi(stp) = f(stp) - finit - gtest*stp.
            result = cstep(
                self._best.shifted(gtest),
                self._other.shifted(gtest),
                trial.shifted(gtest),
                self._brackt,
                self._stpmin,
                self._stpmax,
            )
            if result.info < 0:
                LOGGER.debug("cstep failed: %s", LineSearchStatus(result.info).name)
                return result.info
            self._best = result.best.shifted(-gtest)
            self._other = result.other.shifted(-gtest)
        else:
            result = cstep(
                self._best, self._other, trial, self._brackt, self._stpmin, self._stpmax
            )
            if result.info < 0:
                LOGGER.debug("cstep failed: %s", LineSearchStatus(result.info).name)
                return result.info
            self._best = result.best
            self._other = result.other
        self._brackt = result.brackt
        stp = result.step
        stx = self._best.step
        sty = self._other.step

        # Bisect if the interval does not shrink fast enough.
        if self._brackt:
            new_width = abs(sty - stx)
            if new_width >= _SHRINK * self._width1:
                stp = stx + 0.5 * (sty - stx)
            self._width1 = self._width
            self._width = new_width

        # Range of steps allowed at the next iteration.
        if self._brackt:
            self._stmin = min(stx, sty)
            self._stmax = max(stx, sty)
        else:
            self._stmin = stp + _XTRAPL * (stp - stx)
            self._stmax = stp + _XTRAPU * (stp - stx)

        stp = min(max(stp, self._stpmin), self._stpmax)

        # No further progress possible: fall back to the best step.
        if self._brackt and (
            stp <= self._stmin
            or stp >= self._stmax
            or self._stmax - self._stmin <= self.xtol * self._stmax
        ):
            stp = stx

        self._stp = stp
        return LineSearchStatus.SEARCH
