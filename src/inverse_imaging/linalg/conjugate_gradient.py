"""Linear conjugate gradient for symmetric positive definite systems."""

from __future__ import annotations

import enum
import logging

import numpy as np
from numpy.typing import NDArray

from .operators import LinearOperator

LOGGER = logging.getLogger(__name__)


class CGStatus(enum.IntEnum):
    """Outcome of :meth:`LinearConjugateGradient.solve`."""

    IN_PROGRESS = 0
    CONVERGED = 1
    TOO_MANY_ITERATIONS = 2
    A_IS_NOT_POSITIVE_DEFINITE = 3


class LinearConjugateGradient:
    """Solve ``A.x = b`` by the method of conjugate gradients.

    Parameters
    ----------
    A : LinearOperator
        Symmetric positive definite endomorphism.
    b : ndarray
        Right-hand side, a member of the space of *A*.
    atol : float, optional
        Absolute tolerance on the norm of the residuals.
    rtol : float, optional
        Tolerance on the norm of the residuals relative to the norm of the
        initial residuals.

    Notes
    -----
    Each call to :meth:`solve` is an independent run started from the given
    ``x``.  Only diagnostics of the last run are kept.
    """

    def __init__(self, A: LinearOperator, b: NDArray, atol: float = 0.0, rtol: float = 1e-5) -> None:
        if not A.is_endomorphism:
            raise ValueError("Operator A must be an endomorphism.")
        A.input_space.check(b)
        if atol < 0 or rtol < 0:
            raise ValueError("Tolerances must be non-negative.")
        self.A = A
        self.b = b
        self.atol = float(atol)
        self.rtol = float(rtol)
        space = A.input_space
        self._r = space.create()
        self._p = space.create()
        self._q = space.create()
        self.iterations = 0
        self.residual_norm = np.nan

    def solve(self, x: NDArray, max_iter: int = -1, reset: bool = False) -> CGStatus:
        """Run conjugate gradient iterations in place on *x*.

        Parameters
        ----------
        x : ndarray
            Initial solution on entry (ignored when *reset* is true), final
            iterate on return.
        max_iter : int, optional
            Maximum number of iterations; negative for no limit.
        reset : bool, optional
            Start from ``x = 0`` instead of the contents of *x*.

        Returns
        -------
        CGStatus
            ``CONVERGED``, ``TOO_MANY_ITERATIONS`` or
            ``A_IS_NOT_POSITIVE_DEFINITE``.
        """
        space = self.A.input_space
        space.check(x)
        r, p, q = self._r, self._p, self._q
        self.iterations = 0

        # r = b - A.x
        if reset:
            space.zero(x)
            space.copy(self.b, r)
        else:
            self.A.apply(x, q)
            space.axpby(1.0, self.b, -1.0, q, r)

        rho = space.dot(r, r)
        self.residual_norm = np.sqrt(rho)
        threshold = max(self.atol, self.rtol * self.residual_norm)
        rho_prev = 0.0
        while True:
            if self.residual_norm <= threshold:
                status = CGStatus.CONVERGED
                break
            if 0 <= max_iter <= self.iterations:
                status = CGStatus.TOO_MANY_ITERATIONS
                break
            if self.iterations == 0:
                space.copy(r, p)
            else:
                space.axpby(1.0, r, rho / rho_prev, p, p)
            self.A.apply(p, q)
            gamma = space.dot(p, q)
            if gamma <= 0.0:
                status = CGStatus.A_IS_NOT_POSITIVE_DEFINITE
                break
            alpha = rho / gamma
            space.axpby(1.0, x, alpha, p, x)
            space.axpby(1.0, r, -alpha, q, r)
            rho_prev = rho
            rho = space.dot(r, r)
            self.residual_norm = np.sqrt(rho)
            self.iterations += 1

        LOGGER.debug(
            "CG stopped after %d iteration(s) with residual norm %.3g (%s).",
            self.iterations,
            self.residual_norm,
            status.name,
        )
        return status
