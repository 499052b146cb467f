"""Linear operators acting on vector spaces.

Operators apply one of four jobs to a source vector: the direct transform,
its adjoint, its inverse or the adjoint of the inverse.  Concrete operators
implement :meth:`LinearOperator._apply` for the jobs they support and raise
``NotImplementedError`` otherwise.  Any operator can be handed to SciPy as a
:class:`scipy.sparse.linalg.LinearOperator` on flattened vectors.
"""

from __future__ import annotations

import enum

import numpy as np
import scipy.sparse.linalg
from numpy.typing import NDArray

from .vector_space import VectorSpace


class Job(enum.IntEnum):
    """Transform applied by :meth:`LinearOperator.apply`."""

    DIRECT = 0
    ADJOINT = 1
    INVERSE = 2
    INVERSE_ADJOINT = 3


class LinearOperator:
    """Base class for linear maps from *input_space* to *output_space*.

    Parameters
    ----------
    input_space : VectorSpace
        Space of the arguments of the direct transform.
    output_space : VectorSpace, optional
        Space of the results of the direct transform.  Defaults to
        *input_space* (endomorphism).
    """

    def __init__(self, input_space: VectorSpace, output_space: VectorSpace | None = None) -> None:
        if output_space is None:
            output_space = input_space
        for space in (input_space, output_space):
            if not isinstance(space, VectorSpace):
                raise TypeError(f"Expecting a VectorSpace, got {type(space).__name__}.")
        self.input_space = input_space
        self.output_space = output_space

    @property
    def is_endomorphism(self) -> bool:
        return self.input_space == self.output_space

    def apply(self, src: NDArray, dst: NDArray | None = None, job: Job = Job.DIRECT) -> NDArray:
        """Apply the operator to *src* and store the result in *dst*.

        Parameters
        ----------
        src : ndarray
            Source vector.  It must belong to the input space for the direct
            and inverse-adjoint jobs and to the output space otherwise.
        dst : ndarray, optional
            Destination vector, allocated when omitted.
        job : Job, optional
            Transform to apply.

        Returns
        -------
        ndarray
            The destination vector.

        Raises
        ------
        ValueError
            If *src* or *dst* does not belong to the expected space.
        NotImplementedError
            If the operator does not support *job*.
        """
        job = Job(job)
        if job in (Job.DIRECT, Job.INVERSE_ADJOINT):
            src_space, dst_space = self.input_space, self.output_space
        else:
            src_space, dst_space = self.output_space, self.input_space
        src_space.check(src)
        if dst is None:
            dst = dst_space.create()
        else:
            dst_space.check(dst)
        self._apply(src, dst, job)
        return dst

    def _apply(self, src: NDArray, dst: NDArray, job: Job) -> None:
        raise NotImplementedError(f"{type(self).__name__} does not implement {job.name}.")

    def as_scipy(self) -> scipy.sparse.linalg.LinearOperator:
        """Wrap the operator as a SciPy operator acting on flat vectors."""
        n_in = self.input_space.size
        n_out = self.output_space.size
        in_space = self.input_space
        out_space = self.output_space

        def matvec(v: np.ndarray) -> np.ndarray:
            x = np.asarray(v, dtype=in_space.dtype).reshape(in_space.shape)
            return self.apply(x, job=Job.DIRECT).ravel()

        def rmatvec(v: np.ndarray) -> np.ndarray:
            y = np.asarray(v, dtype=out_space.dtype).reshape(out_space.shape)
            return self.apply(y, job=Job.ADJOINT).ravel()

        return scipy.sparse.linalg.LinearOperator(
            shape=(n_out, n_in),
            matvec=matvec,
            rmatvec=rmatvec,
            dtype=np.result_type(in_space.dtype, out_space.dtype),
        )


class IdentityOperator(LinearOperator):
    def __init__(self, space: VectorSpace) -> None:
        super().__init__(space)

    def _apply(self, src: NDArray, dst: NDArray, job: Job) -> None:
        if dst is not src:
            np.copyto(dst, src)


class ScaleOperator(LinearOperator):
    """Multiplication by a scalar, ``x -> scale*x``."""

    def __init__(self, space: VectorSpace, scale: float) -> None:
        super().__init__(space)
        self.scale = float(scale)

    def _apply(self, src: NDArray, dst: NDArray, job: Job) -> None:
        if job in (Job.DIRECT, Job.ADJOINT):
            factor = self.scale
        else:
            if self.scale == 0.0:
                raise ValueError("Cannot invert a zero scaling.")
            factor = 1.0 / self.scale
        np.multiply(src, factor, out=dst)


class DiagonalOperator(LinearOperator):
    """Element-wise multiplication by a fixed array of the space."""

    def __init__(self, space: VectorSpace, diag: NDArray) -> None:
        super().__init__(space)
        diag = np.asarray(diag)
        if diag.shape != space.shape:
            raise ValueError(f"Diagonal of shape {diag.shape} does not match {space.shape}.")
        self.diag = diag

    def _apply(self, src: NDArray, dst: NDArray, job: Job) -> None:
        d = self.diag
        if job in (Job.ADJOINT, Job.INVERSE_ADJOINT) and np.iscomplexobj(d):
            d = np.conj(d)
        if job in (Job.DIRECT, Job.ADJOINT):
            np.multiply(src, d, out=dst)
        else:
            np.divide(src, d, out=dst)


class RealComplexFFT(LinearOperator):
    """Real-to-complex multi-dimensional discrete Fourier transform.

    The direct transform maps a real array onto its non-redundant half
    spectrum (``numpy.fft.rfftn``); the inverse transform restores the real
    array (``numpy.fft.irfftn``).  Adjoint jobs are not provided since the
    half spectrum is not a unitary representation.
    """

    def __init__(self, space: VectorSpace) -> None:
        if np.issubdtype(space.dtype, np.complexfloating):
            raise ValueError("The input space of a real-complex FFT must be real.")
        half = space.shape[:-1] + (space.shape[-1] // 2 + 1,)
        complex_type = np.result_type(space.dtype, np.complex64)
        super().__init__(space, VectorSpace(half, complex_type))

    def _apply(self, src: NDArray, dst: NDArray, job: Job) -> None:
        if job == Job.DIRECT:
            dst[...] = np.fft.rfftn(src)
        elif job == Job.INVERSE:
            shape = self.input_space.shape
            dst[...] = np.fft.irfftn(src, s=shape, axes=tuple(range(len(shape))))
        else:
            super()._apply(src, dst, job)


class FourierDiagonalOperator(LinearOperator):
    """Operator diagonalized by a real-complex FFT, ``F^-1 diag(d) F``.

    Parameters
    ----------
    fft : RealComplexFFT
        Transform diagonalizing the operator.
    diag : ndarray
        Eigenvalues on the half spectrum, real or complex.
    """

    def __init__(self, fft: RealComplexFFT, diag: NDArray) -> None:
        super().__init__(fft.input_space)
        diag = np.asarray(diag)
        if diag.shape != fft.output_space.shape:
            raise ValueError(
                f"Spectrum of shape {diag.shape} does not match {fft.output_space.shape}."
            )
        self.fft = fft
        self.diag = diag
        self._z = fft.output_space.create()

    def _apply(self, src: NDArray, dst: NDArray, job: Job) -> None:
        d = self.diag
        if job in (Job.ADJOINT, Job.INVERSE_ADJOINT) and np.iscomplexobj(d):
            d = np.conj(d)
        z = self.fft.apply(src, self._z, Job.DIRECT)
        if job in (Job.DIRECT, Job.ADJOINT):
            z *= d
        else:
            z /= d
        self.fft.apply(z, dst, Job.INVERSE)


class ConvolutionOperator(FourierDiagonalOperator):
    """Periodic convolution by a point spread function.

    The PSF must have the same shape as the data, with its center at the
    origin (see :func:`inverse_imaging.deconvolution.utils.pad_psf`).
    """

    def __init__(self, fft: RealComplexFFT, psf: NDArray) -> None:
        fft.input_space.check(psf)
        super().__init__(fft, np.fft.rfftn(psf))


def operator_norm(op: LinearOperator, tol: float = 1e-3, maxiter: int | None = None) -> float:
    r"""Compute the operator norm :math:`\|A\| = \sqrt{\lambda_{\max}(A^* A)}`.

    Uses ARPACK (``scipy.sparse.linalg.eigsh``) to find the largest
    eigenvalue of :math:`A^* A` applied as a SciPy ``LinearOperator``.

    Parameters
    ----------
    op : LinearOperator
        Operator supporting the direct and adjoint jobs.
    tol : float, optional
        Relative accuracy of the eigenvalue.
    maxiter : int, optional
        Maximum number of Arnoldi iterations.

    Returns
    -------
    float
        Operator norm.
    """
    space = op.input_space
    if space.size == 1:
        x = space.create(1.0)
        return float(np.sqrt(np.abs(op.apply(op.apply(x), job=Job.ADJOINT).ravel()[0])))

    def asa_matvec(v: np.ndarray) -> np.ndarray:
        x = np.asarray(v, dtype=space.dtype).reshape(space.shape)
        return op.apply(op.apply(x), job=Job.ADJOINT).ravel()

    lin_op = scipy.sparse.linalg.LinearOperator(
        shape=(space.size, space.size),
        matvec=asa_matvec,
        dtype=space.dtype,
    )
    eigenvalues = scipy.sparse.linalg.eigsh(
        lin_op, k=1, which="LM", tol=tol, maxiter=maxiter, return_eigenvectors=False
    )
    return float(np.sqrt(np.abs(eigenvalues[0])))
