import warnings

import numpy as np
import pytest
import scipy.sparse.linalg

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


class _MatrixOperator(LinearOperator):
    """Dense matrix acting on 1-D vectors."""

    def __init__(self, matrix):
        super().__init__(VectorSpace(matrix.shape[1]), VectorSpace(matrix.shape[0]))
        self.matrix = matrix

    def _apply(self, src, dst, job):
        if job == Job.DIRECT:
            dst[...] = self.matrix @ src
        elif job == Job.ADJOINT:
            dst[...] = self.matrix.T @ src
        else:
            super()._apply(src, dst, job)


def _spd_matrix(n, seed=0):
    rng = np.random.default_rng(seed)
    q, _ = np.linalg.qr(rng.normal(size=(n, n)))
    return q @ np.diag(np.linspace(1.0, 10.0, n)) @ q.T


class TestVectorSpace:
    def test_create_zero_and_filled(self):
        space = VectorSpace((3, 4))
        assert space.size == 12
        assert space.rank == 2
        assert np.all(space.create() == 0.0)
        assert np.all(space.create(2.5) == 2.5)

    def test_int_shape(self):
        space = VectorSpace(5, np.float32)
        assert space.shape == (5,)
        assert space.create().dtype == np.float32

    def test_invalid_shape_raises(self):
        with pytest.raises(ValueError, match="Invalid dimensions"):
            VectorSpace((3, 0))

    def test_wrap_flat_data_shares_memory(self):
        space = VectorSpace((2, 3))
        data = np.arange(6, dtype=np.float64)
        v = space.wrap(data)
        assert v.shape == (2, 3)
        v[0, 0] = 10.0
        assert data[0] == 10.0

    def test_wrap_size_mismatch_raises(self):
        space = VectorSpace((2, 3))
        with pytest.raises(ValueError, match="Cannot wrap"):
            space.wrap(np.zeros(5))

    def test_check_rejects_foreign_vector(self):
        space = VectorSpace(4)
        with pytest.raises(ValueError, match="Expecting a vector"):
            space.check(np.zeros(4, dtype=np.float32))
        with pytest.raises(ValueError, match="Expecting a vector"):
            space.dot(np.zeros(4), np.zeros(5))

    def test_dot_and_norms(self):
        space = VectorSpace(3)
        x = np.array([1.0, -2.0, 2.0])
        y = np.array([0.5, 1.0, 3.0])
        assert space.dot(x, y) == pytest.approx(4.5)
        assert space.norm2(x) == pytest.approx(3.0)
        assert space.norm1(x) == pytest.approx(5.0)
        assert space.norm_inf(x) == pytest.approx(2.0)

    def test_dot_complex_is_real_part(self):
        space = VectorSpace(2, np.complex128)
        x = np.array([1.0 + 1.0j, 2.0])
        assert space.dot(x, x) == pytest.approx(6.0)

    @pytest.mark.parametrize("target", ["new", "x", "y"])
    def test_axpby_destinations(self, target):
        space = VectorSpace(4)
        x = np.array([1.0, 2.0, 3.0, 4.0])
        y = np.array([0.5, -1.0, 2.0, 0.0])
        expected = 2.0 * x - 3.0 * y
        dst = {"new": None, "x": x, "y": y}[target]
        result = space.axpby(2.0, x, -3.0, y, dst)
        assert np.allclose(result, expected)
        if dst is not None:
            assert result is dst

    def test_scale(self):
        space = VectorSpace(3)
        x = np.array([1.0, -2.0, 0.5])
        assert np.array_equal(space.scale(-2.0, x), [-2.0, 4.0, -1.0])
        assert space.scale(3.0, x, x) is x
        assert np.array_equal(x, [3.0, -6.0, 1.5])

    def test_axpbypcz(self):
        space = VectorSpace(3)
        x, y, z = np.ones(3), np.arange(3.0), np.full(3, 2.0)
        dst = space.create()
        space.axpbypcz(1.0, x, 2.0, y, -1.0, z, dst)
        assert np.allclose(dst, [-1.0, 1.0, 3.0])

    def test_copy_into_destination(self):
        space = VectorSpace(3)
        src = np.array([1.0, 2.0, 3.0])
        dst = space.create()
        assert space.copy(src, dst) is dst
        assert np.array_equal(dst, src)
        assert space.clone(src) is not src


class TestOperators:
    def test_identity_and_scale(self):
        space = VectorSpace(5)
        x = np.arange(5.0)
        assert np.array_equal(IdentityOperator(space).apply(x), x)
        scale = ScaleOperator(space, 4.0)
        assert np.allclose(scale.apply(x), 4.0 * x)
        assert np.allclose(scale.apply(x, job=Job.INVERSE), x / 4.0)

    def test_requires_vector_spaces(self):
        with pytest.raises(TypeError, match="VectorSpace"):
            IdentityOperator((3,))

    def test_apply_checks_spaces(self):
        op = IdentityOperator(VectorSpace(3))
        with pytest.raises(ValueError):
            op.apply(np.zeros(4))

    def test_diagonal_inverse(self):
        space = VectorSpace(3)
        op = DiagonalOperator(space, np.array([1.0, 2.0, 4.0]))
        x = np.array([2.0, 2.0, 2.0])
        assert np.allclose(op.apply(x), [2.0, 4.0, 8.0])
        assert np.allclose(op.apply(x, job=Job.INVERSE), [2.0, 1.0, 0.5])

    @pytest.mark.parametrize("shape", [(8,), (5, 7), (4, 3, 6)])
    def test_fft_inverse_restores_data(self, shape):
        space = VectorSpace(shape)
        fft = RealComplexFFT(space)
        assert fft.output_space.shape == shape[:-1] + (shape[-1] // 2 + 1,)
        x = np.random.rand(*shape)
        z = fft.apply(x)
        assert np.allclose(fft.apply(z, job=Job.INVERSE), x)

    def test_fft_inverse_without_deprecation(self):
        fft = RealComplexFFT(VectorSpace((4, 3, 6)))
        x = np.random.rand(4, 3, 6)
        z = fft.apply(x)
        with warnings.catch_warnings():
            warnings.simplefilter("error", DeprecationWarning)
            assert np.allclose(fft.apply(z, job=Job.INVERSE), x)

    def test_fft_adjoint_not_implemented(self):
        fft = RealComplexFFT(VectorSpace(6))
        z = fft.output_space.create()
        with pytest.raises(NotImplementedError):
            fft.apply(z, job=Job.ADJOINT)

    def test_convolution_matches_circular_sum(self):
        n = 9
        space = VectorSpace(n)
        psf = np.zeros(n)
        psf[0], psf[1], psf[-1] = 0.5, 0.3, 0.2
        x = np.random.rand(n)
        H = ConvolutionOperator(RealComplexFFT(space), psf)
        expected = np.array([sum(psf[j] * x[(i - j) % n] for j in range(n)) for i in range(n)])
        assert np.allclose(H.apply(x), expected)

    def test_convolution_adjoint(self):
        space = VectorSpace((6, 5))
        psf = np.random.rand(6, 5)
        H = ConvolutionOperator(RealComplexFFT(space), psf)
        x = np.random.rand(6, 5)
        y = np.random.rand(6, 5)
        lhs = space.dot(H.apply(x), y)
        rhs = space.dot(x, H.apply(y, job=Job.ADJOINT))
        assert np.isclose(lhs, rhs)

    def test_fourier_diagonal_of_constant_frequency(self):
        space = VectorSpace(8)
        fft = RealComplexFFT(space)
        d = np.arange(fft.output_space.shape[0], dtype=np.float64)
        op = FourierDiagonalOperator(fft, d)
        assert np.allclose(op.apply(np.ones(8)), 0.0)

    def test_as_scipy_matches_apply(self):
        matrix = np.random.rand(4, 3)
        op = _MatrixOperator(matrix).as_scipy()
        v = np.random.rand(3)
        w = np.random.rand(4)
        assert op.shape == (4, 3)
        assert np.allclose(op.matvec(v), matrix @ v)
        assert np.allclose(op.rmatvec(w), matrix.T @ w)

    def test_operator_norm_diagonal(self):
        space = VectorSpace(10)
        op = DiagonalOperator(space, np.arange(1.0, 11.0))
        assert operator_norm(op) == pytest.approx(10.0, rel=1e-3)

    def test_operator_norm_scalar_space(self):
        op = ScaleOperator(VectorSpace(1), -3.0)
        assert operator_norm(op) == pytest.approx(3.0)


class TestLinearConjugateGradient:
    def test_solves_spd_system(self):
        matrix = _spd_matrix(10)
        A = _MatrixOperator(matrix)
        b = np.random.rand(10)
        cg = LinearConjugateGradient(A, b, rtol=1e-12)
        x = np.zeros(10)
        status = cg.solve(x, max_iter=100)
        assert status == CGStatus.CONVERGED
        assert np.allclose(x, np.linalg.solve(matrix, b), atol=1e-9)

    def test_matches_scipy_cg(self):
        matrix = _spd_matrix(12, seed=4)
        A = _MatrixOperator(matrix)
        b = np.random.rand(12)
        expected, info = scipy.sparse.linalg.cg(A.as_scipy(), b, rtol=1e-12, atol=0.0)
        assert info == 0
        x = np.zeros(12)
        LinearConjugateGradient(A, b, rtol=1e-12).solve(x, max_iter=200)
        assert np.allclose(x, expected, atol=1e-8)

    def test_reset_ignores_initial_contents(self):
        matrix = _spd_matrix(6, seed=1)
        A = _MatrixOperator(matrix)
        b = np.random.rand(6)
        cg = LinearConjugateGradient(A, b, rtol=1e-12)
        x1 = np.full(6, 1e3)
        x2 = np.zeros(6)
        cg.solve(x1, max_iter=50, reset=True)
        cg.solve(x2, max_iter=50, reset=True)
        assert np.allclose(x1, x2)

    def test_warm_start_at_solution_converges_immediately(self):
        matrix = _spd_matrix(6, seed=2)
        b = np.random.rand(6)
        cg = LinearConjugateGradient(_MatrixOperator(matrix), b, atol=1e-8)
        x = np.linalg.solve(matrix, b)
        assert cg.solve(x, max_iter=10) == CGStatus.CONVERGED
        assert cg.iterations == 0

    def test_too_many_iterations(self):
        matrix = _spd_matrix(10, seed=3)
        b = np.random.rand(10)
        cg = LinearConjugateGradient(_MatrixOperator(matrix), b, rtol=1e-12)
        x = np.zeros(10)
        assert cg.solve(x, max_iter=1) == CGStatus.TOO_MANY_ITERATIONS
        assert cg.iterations == 1

    def test_not_positive_definite(self):
        matrix = np.diag([1.0, -2.0])
        cg = LinearConjugateGradient(_MatrixOperator(matrix), np.ones(2))
        x = np.zeros(2)
        assert cg.solve(x, max_iter=10) == CGStatus.A_IS_NOT_POSITIVE_DEFINITE

    def test_zero_rhs(self):
        cg = LinearConjugateGradient(_MatrixOperator(_spd_matrix(4)), np.zeros(4))
        x = np.ones(4)
        assert cg.solve(x, reset=True) == CGStatus.CONVERGED
        assert np.all(x == 0.0)

    def test_requires_endomorphism(self):
        with pytest.raises(ValueError, match="endomorphism"):
            LinearConjugateGradient(_MatrixOperator(np.ones((3, 2))), np.zeros(2))
