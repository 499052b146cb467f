"""Regularized deconvolution.

Modules
-------
utils
    Fourier helpers: ``fft_frequencies``, isotropic regularization weights,
    weight validation and PSF placement (``pad_psf``).
linear_deconvolver
    Tikhonov deconvolution solved by conjugate gradients on the normal
    equations.
bounded
    Bound-constrained (e.g. positive) deconvolution with VMLMB.
"""

from inverse_imaging.deconvolution.bounded import deconvolve_bounded
from inverse_imaging.deconvolution.linear_deconvolver import (
    LinearDeconvolver,
    NormalEquationOperator,
)
from inverse_imaging.deconvolution.utils import (
    check_weights,
    fft_frequencies,
    isotropic_regularization_weights,
    pad_psf,
)

__all__ = [
    "LinearDeconvolver",
    "NormalEquationOperator",
    "check_weights",
    "deconvolve_bounded",
    "fft_frequencies",
    "isotropic_regularization_weights",
    "pad_psf",
]
