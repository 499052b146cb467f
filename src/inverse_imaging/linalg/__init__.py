"""Vector spaces, linear operators and linear solvers.

Modules
-------
vector_space
    ``VectorSpace``: shape/dtype checked arithmetic on numpy arrays.
operators
    ``LinearOperator`` and its identity, scaling, diagonal, FFT and
    convolution implementations; SciPy adapter and operator norm.
conjugate_gradient
    Linear conjugate gradient solver with status codes.
"""

from inverse_imaging.linalg.conjugate_gradient import CGStatus, LinearConjugateGradient
from inverse_imaging.linalg.operators import (
    ConvolutionOperator,
    DiagonalOperator,
    FourierDiagonalOperator,
    IdentityOperator,
    Job,
    LinearOperator,
    RealComplexFFT,
    ScaleOperator,
    operator_norm,
)
from inverse_imaging.linalg.vector_space import VectorSpace

__all__ = [
    "CGStatus",
    "ConvolutionOperator",
    "DiagonalOperator",
    "FourierDiagonalOperator",
    "IdentityOperator",
    "Job",
    "LinearConjugateGradient",
    "LinearOperator",
    "RealComplexFFT",
    "ScaleOperator",
    "VectorSpace",
    "operator_norm",
]
