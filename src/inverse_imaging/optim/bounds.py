"""Projections onto separable bound constraints ``lower <= x <= upper``."""

from __future__ import annotations

import abc

import numpy as np
from numpy.typing import ArrayLike, NDArray

from ..linalg.vector_space import VectorSpace


class BoundProjector(abc.ABC):
    """Projector onto a convex feasible set of the variables."""

    def __init__(self, space: VectorSpace) -> None:
        self.space = space

    @abc.abstractmethod
    def project_variables(self, x: NDArray, dst: NDArray | None = None) -> NDArray:
        """Store the projection of *x* onto the feasible set in *dst*."""

    @abc.abstractmethod
    def project_gradient(self, x: NDArray, g: NDArray, dst: NDArray | None = None) -> NDArray:
        """Store in *dst* the gradient *g* with blocked components zeroed.

        A component is blocked when a small step along ``-g`` from the
        feasible point *x* would leave the feasible set.
        """

    def __call__(self, x: NDArray, dst: NDArray | None = None) -> NDArray:
        return self.project_variables(x, dst)


def _as_bound(space: VectorSpace, value: ArrayLike | None, name: str) -> float | NDArray | None:
    if value is None:
        return None
    if np.isscalar(value):
        return float(value)
    value = np.asarray(value, dtype=space.dtype)
    if value.shape != space.shape:
        raise ValueError(f"The {name} bound has shape {value.shape}, expecting {space.shape}.")
    return value


class SimpleBounds(BoundProjector):
    """Scalar or element-wise bounds on the variables.

    Parameters
    ----------
    space : VectorSpace
        Space of the variables.
    lower, upper : float or ndarray or None
        Bounds; ``None`` for no bound on that side.
    """

    def __init__(
        self,
        space: VectorSpace,
        lower: ArrayLike | None = None,
        upper: ArrayLike | None = None,
    ) -> None:
        super().__init__(space)
        self.lower = _as_bound(space, lower, "lower")
        self.upper = _as_bound(space, upper, "upper")
        if self.lower is not None and self.upper is not None:
            if np.any(np.asarray(self.lower) > np.asarray(self.upper)):
                raise ValueError("Lower bound must not exceed upper bound.")

    def project_variables(self, x: NDArray, dst: NDArray | None = None) -> NDArray:
        self.space.check(x)
        if dst is None:
            dst = self.space.create()
        self.space.check(dst)
        if self.lower is None and self.upper is None:
            if dst is not x:
                np.copyto(dst, x)
        else:
            np.clip(x, self.lower, self.upper, out=dst)
        return dst

    def project_gradient(self, x: NDArray, g: NDArray, dst: NDArray | None = None) -> NDArray:
        self.space.check(x, g)
        if dst is None:
            dst = self.space.create()
        self.space.check(dst)
        blocked = np.zeros(self.space.shape, dtype=bool)
        if self.lower is not None:
            blocked |= (x <= self.lower) & (g > 0)
        if self.upper is not None:
            blocked |= (x >= self.upper) & (g < 0)
        if dst is not g:
            np.copyto(dst, g)
        dst[blocked] = 0
        return dst


class SimpleLowerBound(SimpleBounds):
    def __init__(self, space: VectorSpace, lower: ArrayLike) -> None:
        super().__init__(space, lower=lower)


class SimpleUpperBound(SimpleBounds):
    def __init__(self, space: VectorSpace, upper: ArrayLike) -> None:
        super().__init__(space, upper=upper)
