import numpy as np
import pytest

from inverse_imaging.optim.line_search import (
    ArmijoLineSearch,
    LineSearchStatus,
    check_wolfe_conditions,
    get_message,
)
from inverse_imaging.optim.more_thuente import (
    MoreThuenteLineSearch,
    StepPoint,
    cstep,
)


def _phi(alpha, beta=2.0):
    """Test function of Moré & Thuente: phi(a) = -a / (a**2 + beta)."""
    return -alpha / (alpha**2 + beta), (alpha**2 - beta) / (alpha**2 + beta) ** 2


class TestLineSearchProtocol:
    @pytest.mark.parametrize(
        ("args", "expected"),
        [
            ((1.0, -1.0, 1.0, -1.0, 2.0), LineSearchStatus.ERROR_STPMIN_LT_ZERO),
            ((1.0, -1.0, 1.0, 3.0, 2.0), LineSearchStatus.ERROR_STPMIN_GT_STPMAX),
            ((1.0, -1.0, 0.5, 1.0, 2.0), LineSearchStatus.ERROR_STP_LT_STPMIN),
            ((1.0, -1.0, 3.0, 1.0, 2.0), LineSearchStatus.ERROR_STP_GT_STPMAX),
            ((1.0, 0.0, 1.0, 0.0, 2.0), LineSearchStatus.ERROR_INITIAL_DERIVATIVE_GE_ZERO),
            ((1.0, -1.0, 1.0, 0.0, 2.0), LineSearchStatus.SEARCH),
        ],
    )
    def test_start_validation(self, args, expected):
        ls = MoreThuenteLineSearch()
        assert ls.start(*args) == expected
        assert ls.status == expected

    @pytest.mark.parametrize("g0", [0.0, 1e-12, 1.0, 1e10])
    def test_start_rejects_non_descent(self, g0):
        for ls in (MoreThuenteLineSearch(), ArmijoLineSearch()):
            assert ls.start(0.0, g0, 1.0, 0.0, 10.0) == (
                LineSearchStatus.ERROR_INITIAL_DERIVATIVE_GE_ZERO
            )
            assert ls.has_errors()
            assert ls.finished()

    def test_iterate_before_start(self):
        ls = MoreThuenteLineSearch()
        assert ls.iterate(1.0, 0.0, 0.0) == LineSearchStatus.ERROR_NOT_STARTED

    @pytest.mark.parametrize(("f", "g"), [(0.0, 0.0), (1.0, -1.0), (-5.0, 3.0)])
    def test_step_changed(self, f, g):
        ls = MoreThuenteLineSearch()
        ls.start(0.0, -1.0, 1.0, 0.0, 10.0)
        assert ls.iterate(ls.step * 1.5, f, g) == LineSearchStatus.ERROR_STP_CHANGED
        assert ls.get_message() == "Step changed"

    def test_iterate_after_finish_is_an_error(self):
        ls = ArmijoLineSearch()
        ls.start(1.0, -2.0, 1.0, 0.0, 2.0)
        assert ls.iterate(1.0, 0.0, 0.0) == LineSearchStatus.CONVERGENCE
        assert ls.converged()
        assert ls.iterate(1.0, 0.0, 0.0) == LineSearchStatus.ERROR_NOT_STARTED

    def test_messages(self):
        assert get_message(LineSearchStatus.CONVERGENCE) == "Linesearch has converged"
        assert get_message(LineSearchStatus.SEARCH) == "Linesearch in progress"
        assert get_message(
            LineSearchStatus.ERROR_INITIAL_DERIVATIVE_GE_ZERO
        ) == "Initial directional derivative greater or equal zero"
        assert get_message(42) == "Unknown linesearch status"
        ls = ArmijoLineSearch()
        assert ls.get_message() == "Linesearch not started"

    def test_warning_predicates(self):
        ls = ArmijoLineSearch()
        ls.start(1.0, -2.0, 1.0, 0.0, 1.0)
        # Accepting the largest allowed step is reported as a boundary warning.
        assert ls.iterate(1.0, 0.0, 0.0) == LineSearchStatus.WARNING_STP_EQ_STPMAX
        assert ls.has_warnings()
        assert not ls.has_errors()
        assert not ls.converged()


class TestWolfeConditions:
    # phi(a) = (a - 1)**2, phi(0) = 1, phi'(0) = -2
    @pytest.mark.parametrize(
        ("alpha", "expected"),
        [(2.0, 0), (0.5, 1), (1.5, 2), (1.0, 3)],
    )
    def test_levels(self, alpha, expected):
        f = (alpha - 1.0) ** 2
        g = 2.0 * (alpha - 1.0)
        assert check_wolfe_conditions(alpha, f, g, 1.0, -2.0, 0.1, 0.1) == expected


class TestArmijoLineSearch:
    def test_quadratic_backtrack(self):
        ls = ArmijoLineSearch(factor=0.5, ftol=0.1)
        assert ls.start(1.0, -2.0, 4.0, 0.0, 4.0) == LineSearchStatus.SEARCH
        assert ls.iterate(4.0, 9.0, 6.0) == LineSearchStatus.SEARCH
        assert ls.step == pytest.approx(1.0)
        assert ls.iterate(ls.step, 0.0, 0.0) == LineSearchStatus.CONVERGENCE

    def test_step_reduction_is_safeguarded(self):
        ls = ArmijoLineSearch(factor=0.5, ftol=0.1)
        ls.start(0.0, -1.0, 1.0, 0.0, 1.0)
        ls.iterate(1.0, 1e6, 0.0)
        assert ls.step == pytest.approx(0.1)

    def test_invalid_parameters(self):
        with pytest.raises(ValueError, match="factor"):
            ArmijoLineSearch(factor=1.5)
        with pytest.raises(ValueError, match="ftol"):
            ArmijoLineSearch(ftol=0.0)


class TestCStep:
    def test_case_1_brackets_between_best_and_trial(self):
        result = cstep(
            StepPoint(0.0, 0.0, -1.0),
            StepPoint(0.0, 0.0, -1.0),
            StepPoint(1.0, 1.0, 2.0),
            False,
            0.0,
            10.0,
        )
        assert result.info == 1
        assert result.brackt
        assert result.best.step == 0.0
        assert result.other.step == 1.0
        assert 0.0 < result.step < 1.0

    def test_case_2_opposite_derivatives(self):
        result = cstep(
            StepPoint(0.0, 0.0, -1.0),
            StepPoint(0.0, 0.0, -1.0),
            StepPoint(1.0, -0.5, 0.5),
            False,
            0.0,
            10.0,
        )
        assert result.info == 2
        assert result.brackt
        assert result.best.step == 1.0
        assert result.other.step == 0.0
        assert 0.0 <= result.step <= 1.0

    def test_case_3_bracketed_is_limited(self):
        result = cstep(
            StepPoint(0.0, 0.0, -1.0),
            StepPoint(2.0, 1.0, 1.0),
            StepPoint(1.0, -0.5, -0.5),
            True,
            0.0,
            10.0,
        )
        assert result.info == 3
        assert result.best.step == 1.0
        assert result.other.step == 2.0
        assert 1.0 < result.step <= 1.0 + 0.66 * (2.0 - 1.0) + 1e-12

    def test_case_3_unbracketed_extrapolates_within_bounds(self):
        result = cstep(
            StepPoint(0.0, 0.0, -1.0),
            StepPoint(0.0, 0.0, -1.0),
            StepPoint(1.0, -0.9, -0.9),
            False,
            0.0,
            5.0,
        )
        assert result.info == 3
        assert not result.brackt
        assert 1.0 < result.step <= 5.0

    def test_case_4(self):
        bracketed = cstep(
            StepPoint(0.0, 0.0, -1.0),
            StepPoint(2.0, 1.0, 1.0),
            StepPoint(1.0, -0.5, -1.5),
            True,
            0.0,
            10.0,
        )
        assert bracketed.info == 4
        assert 1.0 <= bracketed.step <= 2.0

        unbracketed = cstep(
            StepPoint(0.0, 0.0, -1.0),
            StepPoint(0.0, 0.0, -1.0),
            StepPoint(1.0, -0.5, -1.5),
            False,
            0.0,
            10.0,
        )
        assert unbracketed.info == 4
        assert unbracketed.step == 10.0

    @pytest.mark.parametrize("seed", range(20))
    def test_bracketed_step_stays_in_interval(self, seed):
        rng = np.random.default_rng(seed)
        # Random cubic with a minimizer in (0, 3): sample stx < stp < sty.
        c = rng.uniform(0.5, 2.0)
        r = rng.uniform(0.5, 2.5)

        def f(a):
            return c * (a - r) ** 2 + 0.1 * (a - r) ** 3, 2 * c * (a - r) + 0.3 * (a - r) ** 2

        stx, stp, sty = 0.0, rng.uniform(0.2, 2.8), 3.0
        best = StepPoint(stx, *f(stx))
        other = StepPoint(sty, *f(sty))
        trial = StepPoint(stp, *f(stp))
        result = cstep(best, other, trial, True, 0.0, 10.0)
        assert result.info > 0
        lo = min(result.best.step, result.other.step)
        hi = max(result.best.step, result.other.step)
        assert lo <= result.step <= hi

    def test_illegal_inputs_leave_points_unchanged(self):
        best = StepPoint(0.0, 0.0, -1.0)
        other = StepPoint(2.0, 1.0, 1.0)
        outside = cstep(best, other, StepPoint(3.0, 0.0, 0.0), True, 0.0, 10.0)
        assert outside.info == LineSearchStatus.ERROR_STP_OUTSIDE_BRACKET
        assert outside.best == best and outside.other == other

        ascent = cstep(StepPoint(0.0, 0.0, 1.0), other, StepPoint(1.0, 0.0, 0.0), False, 0.0, 10.0)
        assert ascent.info == LineSearchStatus.ERROR_NOT_A_DESCENT

        bounds = cstep(best, best, StepPoint(1.0, 0.0, 0.0), False, 5.0, 1.0)
        assert bounds.info == LineSearchStatus.ERROR_STPMIN_GT_STPMAX


class TestMoreThuenteLineSearch:
    def _run(self, ls, alpha0, stpmin, stpmax, max_eval=50):
        f0, g0 = _phi(0.0)
        status = ls.start(f0, g0, alpha0, stpmin, stpmax)
        evaluations = 0
        while status == LineSearchStatus.SEARCH and evaluations < max_eval:
            alpha = ls.step
            assert stpmin <= alpha <= stpmax
            f, g = _phi(alpha)
            status = ls.iterate(alpha, f, g)
            evaluations += 1
            assert stpmin <= ls.step <= stpmax
        return status, evaluations

    @pytest.mark.parametrize("alpha0", [1e-3, 1e-1, 10.0])
    def test_strong_wolfe_on_test_function(self, alpha0):
        ls = MoreThuenteLineSearch(ftol=1e-3, gtol=0.1, xtol=1e-10)
        status, evaluations = self._run(ls, alpha0, 1e-20, 1e3)
        assert status == LineSearchStatus.CONVERGENCE
        f0, g0 = _phi(0.0)
        f, g = _phi(ls.step)
        assert check_wolfe_conditions(ls.step, f, g, f0, g0, 1e-3, 0.1) == 3

    def test_quadratic_is_solved_in_one_interpolation(self):
        # phi(a) = (5 - 10*a)**2 as seen by a descent method on f(x) = x**2.
        ls = MoreThuenteLineSearch(ftol=0.05, gtol=0.1, xtol=1e-17)
        ls.start(25.0, -100.0, 5e-4, 5e-24, 500.0)
        a = ls.step
        ls.iterate(a, (5.0 - 10.0 * a) ** 2, -20.0 * (5.0 - 10.0 * a))
        assert ls.step == pytest.approx(0.5, rel=1e-6)
        a = ls.step
        status = ls.iterate(a, (5.0 - 10.0 * a) ** 2, -20.0 * (5.0 - 10.0 * a))
        assert status == LineSearchStatus.CONVERGENCE

    def test_step_at_lower_bound(self):
        # Increasing function along the search: the step is pushed to stpmin.
        ls = MoreThuenteLineSearch(ftol=1e-3, gtol=0.1, xtol=1e-10)
        ls.start(0.0, -1.0, 1.0, 0.5, 2.0)
        assert ls.iterate(1.0, 10.0, 5.0) == LineSearchStatus.SEARCH
        assert ls.step == 0.5
        assert ls.iterate(0.5, 5.0, 5.0) == LineSearchStatus.WARNING_STP_EQ_STPMIN
        assert ls.has_warnings()
        assert ls.step == 0.5

    def test_interval_below_xtol(self):
        ls = MoreThuenteLineSearch(ftol=1e-3, gtol=0.1, xtol=0.6)
        ls.start(0.0, -1.0, 1.0, 0.0, 100.0)
        # Still descending at 1: extrapolate.
        assert ls.iterate(1.0, -1.0, -0.5) == LineSearchStatus.SEARCH
        assert ls.step == pytest.approx(2.0)
        assert not ls.bracketed
        # Higher value at 2 brackets [1, 2], already narrower than xtol.
        assert ls.iterate(ls.step, -0.9, 1.0) == LineSearchStatus.SEARCH
        assert ls.bracketed
        assert ls.interval == (1.0, 2.0)
        assert ls.step == 1.0
        status = ls.iterate(1.0, -1.0, -0.5)
        assert status == LineSearchStatus.WARNING_XTOL_TEST_SATISFIED
        assert ls.step == 1.0

    def test_rounding_errors_stop_the_search(self):
        # Kink at 1: the bracket [1, stp] collapses onto 1 until the next
        # trial can no longer be distinguished from an endpoint.
        def phi(a):
            return (-a, -0.5) if a <= 1.0 else (a - 2.0, 1.0)

        ls = MoreThuenteLineSearch(ftol=1e-3, gtol=0.1, xtol=0.0)
        ls.start(0.0, -1.0, 1.0, 0.0, 100.0)
        status = ls.iterate(1.0, *phi(1.0))
        for _ in range(500):
            if status != LineSearchStatus.SEARCH:
                break
            status = ls.iterate(ls.step, *phi(ls.step))
        assert status == LineSearchStatus.WARNING_ROUNDING_ERRORS_PREVENT_PROGRESS
        assert ls.step == 1.0
        assert ls.bracketed

    def test_negative_tolerances_are_clamped(self):
        ls = MoreThuenteLineSearch(ftol=-1.0, gtol=-1.0, xtol=-1.0)
        assert ls.ftol == 0.0 and ls.gtol == 0.0 and ls.xtol == 0.0
