"""Numerical optimization and deconvolution for inverse imaging problems."""

from inverse_imaging import deconvolution, linalg, optim

__all__ = [
    "deconvolution",
    "linalg",
    "optim",
]
