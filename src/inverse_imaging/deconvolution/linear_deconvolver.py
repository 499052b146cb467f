"""Quadratic (Tikhonov) deconvolution by conjugate gradients.

The solution minimizes::

    1/2 (H.x - y)' W (H.x - y) + mu/2 x' Q x

where ``H`` is a periodic convolution by the PSF, ``W`` a diagonal matrix
of statistical weights and ``Q`` the isotropic smoothness regularization.
It solves the normal equations ``A.x = b`` with ``A = H'.W.H + mu*Q`` and
``b = H'.W.y``.
"""

from __future__ import annotations

import logging
from collections.abc import Sequence

import numpy as np
from numpy.typing import NDArray

from ..linalg.conjugate_gradient import CGStatus, LinearConjugateGradient
from ..linalg.operators import (
    ConvolutionOperator,
    DiagonalOperator,
    FourierDiagonalOperator,
    IdentityOperator,
    Job,
    LinearOperator,
    RealComplexFFT,
)
from ..linalg.vector_space import VectorSpace
from .utils import check_weights, isotropic_regularization_weights

LOGGER = logging.getLogger(__name__)


class NormalEquationOperator(LinearOperator):
    """Left-hand side ``A = H'.W.H + mu*Q`` of the normal equations."""

    def __init__(
        self,
        H: LinearOperator,
        W: LinearOperator,
        Q: LinearOperator,
        mu: float,
    ) -> None:
        super().__init__(H.input_space)
        self.H = H
        self.W = W
        self.Q = Q
        self.mu = mu
        self._hx = H.output_space.create()
        self._whx = H.output_space.create()
        self._qx = H.input_space.create()

    @property
    def mu(self) -> float:
        return self._mu

    @mu.setter
    def mu(self, value: float) -> None:
        if value < 0.0:
            raise ValueError("Regularization weight must be non-negative.")
        self._mu = float(value)

    def right_hand_side(self, y: NDArray, dst: NDArray | None = None) -> NDArray:
        """Compute ``b = H'.W.y``."""
        self.W.apply(y, self._whx)
        return self.H.apply(self._whx, dst, Job.ADJOINT)

    def _apply(self, src: NDArray, dst: NDArray, job: Job) -> None:
        if job not in (Job.DIRECT, Job.ADJOINT):
            super()._apply(src, dst, job)
        self.H.apply(src, self._hx)
        self.W.apply(self._hx, self._whx)
        self.H.apply(self._whx, dst, Job.ADJOINT)
        if self._mu != 0.0:
            self.Q.apply(src, self._qx)
            dst += self._mu * self._qx


class LinearDeconvolver:
    """Regularized linear deconvolution of multi-dimensional data.

    Parameters
    ----------
    shape : sequence of int
        Dimensions of the data.
    data : np.ndarray
        Blurred data, flat or of shape *shape*.  Single precision data is
        processed in single precision, anything else in double precision.
    psf : np.ndarray
        Point spread function of the same size as the data, with its center
        at the origin (see :func:`~inverse_imaging.deconvolution.utils.pad_psf`).
    weights : np.ndarray, optional
        Non-negative statistical weights of the data.
    mu : float, optional
        Regularization level.
    atol, rtol : float, optional
        Absolute and relative tolerances of the conjugate gradient.

    Raises
    ------
    ValueError
        If the sizes do not match, the weights are invalid or *mu* is
        negative.
    """

    def __init__(
        self,
        shape: Sequence[int],
        data: NDArray,
        psf: NDArray,
        weights: NDArray | None = None,
        mu: float = 0.0,
        atol: float = 0.0,
        rtol: float = 1e-5,
    ) -> None:
        data = np.asarray(data)
        self.single = data.dtype == np.float32
        dtype = np.float32 if self.single else np.float64
        space = VectorSpace(shape, dtype)
        self.space = space
        self.y = space.wrap(np.asarray(data, dtype=dtype))
        h = space.wrap(np.asarray(psf, dtype=dtype))

        self.fft = RealComplexFFT(space)
        self.H = ConvolutionOperator(self.fft, h)
        q = isotropic_regularization_weights(space.shape, dtype)
        self.Q = FourierDiagonalOperator(self.fft, q)

        if weights is not None:
            weights = space.wrap(np.asarray(weights, dtype=dtype))
        self.mu_factor, w = check_weights(weights)
        if w is None:
            self.W = IdentityOperator(space)
        else:
            self.W = DiagonalOperator(space, w)

        if mu < 0.0:
            raise ValueError("Regularization weight must be non-negative.")
        self.A = NormalEquationOperator(self.H, self.W, self.Q, mu * self.mu_factor)
        self.b = self.A.right_hand_side(self.y)
        self.cg = LinearConjugateGradient(self.A, self.b, atol=atol, rtol=rtol)

    @property
    def mu(self) -> float:
        """Regularization level."""
        return self.A.mu / self.mu_factor

    @mu.setter
    def mu(self, value: float) -> None:
        self.A.mu = value * self.mu_factor

    def get_mu(self) -> float:
        return self.mu

    def set_mu(self, mu: float) -> None:
        """Change the regularization level; the next solve is a fresh run."""
        self.mu = mu

    def _wrap(self, x: NDArray) -> NDArray:
        # Results are written in place, so a temporary copy would be lost.
        if not isinstance(x, np.ndarray):
            raise TypeError(f"Expecting a numpy array, got {type(x).__name__}.")
        if self.single and x.dtype != np.float32:
            raise ValueError("Expecting a single precision floating point array.")
        if not self.single and x.dtype != np.float64:
            raise ValueError("Expecting a double precision floating point array.")
        return self.space.wrap(x)

    def solve(self, x: NDArray, max_iter: int = -1, reset: bool = False) -> CGStatus:
        """Solve the normal equations in place.

        Parameters
        ----------
        x : np.ndarray
            Initial solution (unless *reset*), overwritten with the result.
            Must be a numpy array with the precision of the data.
        max_iter : int, optional
            Maximum number of conjugate gradient iterations, negative for no
            limit.
        reset : bool, optional
            Start from zero instead of *x*.

        Returns
        -------
        CGStatus
            Status of the conjugate gradient.
        """
        status = self.cg.solve(self._wrap(x), max_iter, reset)
        if status == CGStatus.A_IS_NOT_POSITIVE_DEFINITE:
            LOGGER.warning("Normal equations are not positive definite; try mu > 0.")
        elif status == CGStatus.TOO_MANY_ITERATIONS:
            LOGGER.warning("Conjugate gradient stopped after %d iterations.", self.cg.iterations)
        return status

    def cost(self, x: NDArray, gradient: NDArray | None = None) -> float:
        """Objective of the normal equations at *x*.

        Returns ``1/2 (H.x - y)' W (H.x - y) + mu'/2 x' Q x`` where ``mu'``
        is the regularization level after folding constant weights.  The
        gradient ``A.x - b`` is stored in *gradient* when given.
        """
        x = self._wrap(x)
        space = self.space
        r = self.H.apply(x)
        space.axpby(1.0, r, -1.0, self.y, r)
        wr = self.W.apply(r)
        f = 0.5 * space.dot(r, wr)
        if self.A.mu != 0.0:
            f += 0.5 * self.A.mu * space.dot(x, self.Q.apply(x))
        if gradient is not None:
            gradient = self._wrap(gradient)
            self.A.apply(x, gradient)
            gradient -= self.b
        return f
