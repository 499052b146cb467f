"""Helpers for Fourier-domain deconvolution."""

from __future__ import annotations

from collections.abc import Sequence

import numpy as np
from numpy.typing import NDArray


def fft_frequencies(length: int, scale: float = 1.0) -> NDArray[np.float64]:
    """Return the signed frequencies of a length-*length* DFT in FFT order.

    Entry ``k`` is ``scale*k`` for ``k <= length//2`` and
    ``scale*(k - length)`` above.
    """
    k = np.arange(length, dtype=np.float64)
    k[length // 2 + 1:] -= length
    return scale * k


def isotropic_regularization_weights(
    shape: Sequence[int],
    dtype: type | np.dtype = np.float64,
) -> NDArray[np.floating]:
    r"""Eigenvalues of the isotropic quadratic regularization.

    The regularization penalizes the squared gradient norm; in the Fourier
    domain it is diagonal with

    .. math:: q(k) = 4\pi^2 \sum_j (k_j / N_j)^2

    Parameters
    ----------
    shape : sequence of int
        Shape of the real-valued data.
    dtype : dtype, optional
        Floating point type of the result.

    Returns
    -------
    np.ndarray
        Weights on the half spectrum of ``numpy.fft.rfftn``, of shape
        ``shape[:-1] + (shape[-1]//2 + 1,)``.
    """
    shape = tuple(int(n) for n in shape)
    half = shape[:-1] + (shape[-1] // 2 + 1,)
    q = np.zeros(half, dtype=np.float64)
    for axis, n in enumerate(shape):
        u = fft_frequencies(n, 2.0 * np.pi / n) ** 2
        u = u[: half[axis]]
        index = [np.newaxis] * len(shape)
        index[axis] = slice(None)
        q += u[tuple(index)]
    return q.astype(dtype, copy=False)


def check_weights(weights: NDArray | None) -> tuple[float, NDArray | None]:
    """Validate statistical weights and detect the constant case.

    Parameters
    ----------
    weights : np.ndarray or None
        Non-negative weights of the data.

    Returns
    -------
    mu_factor : float
        Factor applied to the regularization level.  Constant weights ``w``
        are equivalent to unit weights with the regularization level divided
        by ``w``.
    weights : np.ndarray or None
        The weights to apply, or ``None`` when they reduce to the identity.

    Raises
    ------
    ValueError
        If some weights are negative or all of them are zero.
    """
    if weights is None:
        return 1.0, None
    w_min = float(np.min(weights))
    w_max = float(np.max(weights))
    if w_min < 0.0:
        raise ValueError("Weights must be non-negative.")
    if w_max <= 0.0:
        raise ValueError("All weights are zero.")
    if w_min == w_max:
        return 1.0 / w_max, None
    return 1.0, weights


def pad_psf(psf: NDArray, shape: Sequence[int]) -> NDArray:
    """Zero-pad a PSF to *shape* and move its center to the origin.

    The center of the PSF is at index ``n//2`` along each axis (as for
    MATLAB's ``psf2otf``); after the circular shift it is at index 0 so that
    ``numpy.fft.rfftn`` of the result is the transfer function of the blur.

    Parameters
    ----------
    psf : np.ndarray
        Point spread function, no larger than *shape* along any axis.
    shape : sequence of int
        Shape of the data.

    Returns
    -------
    np.ndarray
        Padded and shifted PSF with the dtype of *psf*.
    """
    psf = np.asarray(psf)
    shape = tuple(int(n) for n in shape)
    if psf.ndim != len(shape):
        raise ValueError(f"PSF has {psf.ndim} dimension(s), expecting {len(shape)}.")
    pad_shape = np.array(shape) - np.array(psf.shape)
    if np.any(pad_shape < 0):
        raise ValueError(f"PSF of shape {psf.shape} is larger than {shape}.")
    padded = np.pad(psf, [(0, int(n)) for n in pad_shape])

    # Circularly shift so that the center of the PSF moves to the origin.
    shift = tuple(int(-(n // 2)) for n in psf.shape)
    return np.roll(padded, shift, axis=tuple(range(psf.ndim)))
