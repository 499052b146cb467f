"""Vector spaces of fixed-shape numpy arrays.

A :class:`VectorSpace` describes the arrays that the solvers work with: their
shape and element type.  Vectors themselves are plain :class:`numpy.ndarray`
objects; the space owns the arithmetic used by the optimizers and checks that
operands belong to it.  Every in-place operation takes an explicit ``dst``
array and returns it.
"""

from __future__ import annotations

from collections.abc import Sequence

import numpy as np
from numpy.typing import DTypeLike, NDArray


class VectorSpace:
    """Space of arrays with a given shape and element type.

    Parameters
    ----------
    shape : int or sequence of int
        Dimensions of the member arrays.
    dtype : dtype, optional
        Element type of the member arrays (``float64`` by default).
    """

    def __init__(self, shape: int | Sequence[int], dtype: DTypeLike = np.float64) -> None:
        if isinstance(shape, (int, np.integer)):
            shape = (int(shape),)
        shape = tuple(int(n) for n in shape)
        if len(shape) < 1:
            raise ValueError("A vector space must have at least one dimension.")
        if any(n < 1 for n in shape):
            raise ValueError(f"Invalid dimensions {shape}.")
        self._shape = shape
        self._dtype = np.dtype(dtype)
        self._size = int(np.prod(shape))

    @property
    def shape(self) -> tuple[int, ...]:
        return self._shape

    @property
    def dtype(self) -> np.dtype:
        return self._dtype

    @property
    def size(self) -> int:
        """Number of elements of a member vector."""
        return self._size

    @property
    def rank(self) -> int:
        return len(self._shape)

    def __eq__(self, other: object) -> bool:
        if not isinstance(other, VectorSpace):
            return NotImplemented
        return self._shape == other._shape and self._dtype == other._dtype

    def __hash__(self) -> int:
        return hash((self._shape, self._dtype))

    def __repr__(self) -> str:
        return f"{type(self).__name__}(shape={self._shape}, dtype={self._dtype.name})"

    # ---- #
    # Membership and allocation
    # ---- #

    def owns(self, v: object) -> bool:
        """Return whether *v* is a member of this space."""
        return (
            isinstance(v, np.ndarray)
            and v.shape == self._shape
            and v.dtype == self._dtype
        )

    def check(self, *vectors: NDArray) -> None:
        """Raise ``ValueError`` unless all *vectors* belong to this space."""
        for v in vectors:
            if not self.owns(v):
                if isinstance(v, np.ndarray):
                    found = f"array of shape {v.shape} and dtype {v.dtype}"
                else:
                    found = type(v).__name__
                raise ValueError(f"Expecting a vector of {self!r}, got {found}.")

    def create(self, value: float | None = None) -> NDArray:
        """Allocate a new vector, zero-filled unless *value* is given."""
        if value is None:
            return np.zeros(self._shape, dtype=self._dtype)
        return np.full(self._shape, value, dtype=self._dtype)

    def wrap(self, data: NDArray) -> NDArray:
        """Return *data* viewed as a member vector, without copying.

        *data* may be flat or already shaped; its element type must match
        the space.
        """
        data = np.asarray(data)
        if data.size != self._size:
            raise ValueError(
                f"Cannot wrap {data.size} elements into a space of size {self._size}."
            )
        if data.dtype != self._dtype:
            raise ValueError(
                f"Expecting {self._dtype.name} elements, got {data.dtype.name}."
            )
        return data.reshape(self._shape)

    def copy(self, src: NDArray, dst: NDArray | None = None) -> NDArray:
        """Copy *src* into *dst* (allocated if omitted)."""
        self.check(src)
        if dst is None:
            return src.copy()
        self.check(dst)
        if dst is not src:
            np.copyto(dst, src)
        return dst

    clone = copy

    def zero(self, v: NDArray) -> NDArray:
        self.check(v)
        v.fill(0)
        return v

    def fill(self, v: NDArray, value: float) -> NDArray:
        self.check(v)
        v.fill(value)
        return v

    # ---- #
    # Arithmetic
    # ---- #

    def dot(self, x: NDArray, y: NDArray) -> float:
        """Inner product of *x* and *y* (real part for complex spaces)."""
        self.check(x, y)
        return float(np.real(np.vdot(x, y)))

    def norm2(self, x: NDArray) -> float:
        """Euclidean norm of *x*."""
        self.check(x)
        return float(np.linalg.norm(x.ravel()))

    def norm1(self, x: NDArray) -> float:
        self.check(x)
        return float(np.sum(np.abs(x)))

    def norm_inf(self, x: NDArray) -> float:
        self.check(x)
        return float(np.max(np.abs(x)))

    def scale(self, alpha: float, x: NDArray, dst: NDArray | None = None) -> NDArray:
        """Store ``alpha*x`` into *dst*."""
        self.check(x)
        if dst is None:
            dst = self.create()
        self.check(dst)
        np.multiply(x, alpha, out=dst)
        return dst

    def axpby(
        self,
        alpha: float,
        x: NDArray,
        beta: float,
        y: NDArray,
        dst: NDArray | None = None,
    ) -> NDArray:
        """Store ``alpha*x + beta*y`` into *dst*.

        *dst* may be the same array as *x* or *y*.
        """
        self.check(x, y)
        if dst is None:
            dst = self.create()
        self.check(dst)
        if beta == 0:
            np.multiply(x, alpha, out=dst)
        elif alpha == 0:
            np.multiply(y, beta, out=dst)
        elif dst is y:
            dst *= beta
            if alpha == 1:
                dst += x
            else:
                dst += alpha * x
        else:
            if dst is not x:
                np.copyto(dst, x)
            if alpha != 1:
                dst *= alpha
            if beta == 1:
                dst += y
            elif beta == -1:
                dst -= y
            else:
                dst += beta * y
        return dst

    def axpbypcz(
        self,
        alpha: float,
        x: NDArray,
        beta: float,
        y: NDArray,
        gamma: float,
        z: NDArray,
        dst: NDArray | None = None,
    ) -> NDArray:
        """Store ``alpha*x + beta*y + gamma*z`` into *dst*."""
        self.check(x, y, z)
        result = alpha * x + beta * y + gamma * z
        if dst is None:
            return result.astype(self._dtype, copy=False)
        self.check(dst)
        np.copyto(dst, result)
        return dst
