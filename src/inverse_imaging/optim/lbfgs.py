"""Limited-memory BFGS approximation of the inverse Hessian.

The operator keeps at most ``m`` curvature pairs ``(s, y)`` with
``s = x1 - x0`` and ``y = g1 - g0``.  Pairs are stored in a preallocated
arena of ``m`` slots addressed by index; the most recent pair is in slot
``mark`` and the ``k``-th most recent one in slot ``(mark - k) % m``.
"""

from __future__ import annotations

import enum

import numpy as np
from numpy.typing import NDArray

from ..linalg.operators import Job, LinearOperator
from ..linalg.vector_space import VectorSpace


class InverseHessianApproximation(enum.Enum):
    """Initial approximation ``H0`` used by the two-loop recursion."""

    NONE = "none"
    SHANNO_PHUA = "shanno_phua"
    BY_USER = "by_user"


class LBFGSOperator(LinearOperator):
    """LBFGS operator approximating the inverse of the Hessian.

    Parameters
    ----------
    space : VectorSpace
        Space of the variables (and gradients).
    m : int
        Maximum number of memorized pairs.
    h0 : LinearOperator, optional
        Initial inverse Hessian approximation.  When given, the rule
        defaults to ``BY_USER``.
    rule : InverseHessianApproximation, optional
        How ``H0`` is chosen; ``SHANNO_PHUA`` (``H0 = gamma*I`` with
        ``gamma = s.y/y.y`` of the most recent pair) if *h0* is omitted.
    """

    def __init__(
        self,
        space: VectorSpace,
        m: int,
        h0: LinearOperator | None = None,
        rule: InverseHessianApproximation | None = None,
    ) -> None:
        super().__init__(space)
        if m < 1:
            raise ValueError("The number of memorized pairs must be at least 1.")
        if rule is None:
            rule = (
                InverseHessianApproximation.SHANNO_PHUA
                if h0 is None
                else InverseHessianApproximation.BY_USER
            )
        if rule == InverseHessianApproximation.BY_USER:
            if h0 is None:
                raise ValueError("An initial approximation must be given for the BY_USER rule.")
            if h0.input_space != space or h0.output_space != space:
                raise ValueError("The initial approximation must act on the space of variables.")
        self.m = int(m)
        self.h0 = h0
        self.rule = rule
        self.mp = 0
        self.mark = -1
        self.gamma = 1.0
        self._s = np.zeros((self.m,) + space.shape, dtype=space.dtype)
        self._y = np.zeros((self.m,) + space.shape, dtype=space.dtype)
        self._rho = np.zeros(self.m)
        self._alpha = np.zeros(self.m)

    def reset(self) -> None:
        """Forget all memorized pairs."""
        self.mp = 0
        self.gamma = 1.0

    def slot(self, k: int) -> int:
        """Index of the slot holding the ``k``-th most recent pair."""
        return (self.mark - k) % self.m

    @property
    def free_slot(self) -> int:
        """Index of the slot that receives the next pair."""
        return (self.mark + 1) % self.m

    def slot_vectors(self, index: int) -> tuple[NDArray, NDArray]:
        """Return views of the ``s`` and ``y`` vectors stored in slot *index*."""
        return self._s[index], self._y[index]

    def claim_free_slot(self) -> int:
        """Reserve the free slot as scratch storage and return its index.

        The number of pairs in use is limited to ``m - 1`` so that the
        recursion never reads the reserved slot.
        """
        self.mp = min(self.mp, self.m - 1)
        return self.free_slot

    def update(self, x1: NDArray, x0: NDArray, g1: NDArray, g0: NDArray) -> bool:
        """Memorize the pair ``(x1 - x0, g1 - g0)``.

        *x0* and *g0* may be the vectors of the free slot.  The pair is only
        accepted if ``s.y > 0``; returns whether it was.
        """
        space = self.input_space
        space.check(x1, x0, g1, g0)
        j = self.free_slot
        s, y = self._s[j], self._y[j]
        np.subtract(x1, x0, out=s)
        np.subtract(g1, g0, out=y)
        sty = space.dot(s, y)
        if not sty > 0.0:
            return False
        self._rho[j] = 1.0 / sty
        self.gamma = sty / space.dot(y, y)
        self.mark = j
        self.mp = min(self.mp + 1, self.m)
        return True

    def _apply(self, src: NDArray, dst: NDArray, job: Job) -> None:
        if job != Job.DIRECT:
            super()._apply(src, dst, job)
        space = self.input_space
        if dst is not src:
            np.copyto(dst, src)
        for k in range(self.mp):
            j = self.slot(k)
            self._alpha[j] = self._rho[j] * space.dot(self._s[j], dst)
            dst -= self._alpha[j] * self._y[j]
        if self.rule == InverseHessianApproximation.BY_USER:
            tmp = self.h0.apply(dst)
            np.copyto(dst, tmp)
        elif self.rule == InverseHessianApproximation.SHANNO_PHUA and self.mp > 0:
            dst *= self.gamma
        for k in range(self.mp - 1, -1, -1):
            j = self.slot(k)
            beta = self._rho[j] * space.dot(self._y[j], dst)
            dst += (self._alpha[j] - beta) * self._s[j]
