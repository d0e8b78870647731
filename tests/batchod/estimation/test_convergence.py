########################################################################################
##
##                                  TESTS FOR
##                          'estimation/convergence.py'
##
########################################################################################

# IMPORTS ==============================================================================

import pytest

from batchod.estimation.convergence import (
    MAXIMUM_ITERATIONS_REACHED,
    NO_IMPROVEMENT,
    RESIDUAL_CHANGE_TOO_SMALL,
    RESIDUAL_LEVEL_ACHIEVED,
    ConvergenceChecker,
    ConvergenceDecision,
)


# ═══════════════════════════════════════════════════════════════════════════
# Configuration
# ═══════════════════════════════════════════════════════════════════════════

class TestConfiguration:

    def test_defaults(self):
        c = ConvergenceChecker()
        assert c.max_iterations == 5
        assert c.min_residual_change == 0.0
        assert c.min_residual == 1e-20
        assert c.no_improvement_window == 2
        assert c.no_improvement_rule == "literal"

    @pytest.mark.parametrize("kwargs", [
        dict(max_iterations=0),
        dict(min_residual_change=-1.0),
        dict(min_residual=-1e-3),
        dict(no_improvement_rule="since_worst"),
    ])
    def test_invalid(self, kwargs):
        with pytest.raises(ValueError):
            ConvergenceChecker(**kwargs)

    def test_empty_history_raises(self):
        with pytest.raises(ValueError):
            ConvergenceChecker().check(1, [])

    def test_decision_truthiness(self):
        assert ConvergenceDecision(True, ("x",))
        assert not ConvergenceDecision(False)


# ═══════════════════════════════════════════════════════════════════════════
# Individual rules (no-improvement rule disabled)
# ═══════════════════════════════════════════════════════════════════════════

class TestRules:

    def _checker(self, **kwargs):
        return ConvergenceChecker(no_improvement_window=None, **kwargs)

    def test_max_iterations_regardless_of_history(self):
        c = self._checker(max_iterations=3)
        for history in ([1.0, 0.5, 0.25], [1.0, 2.0, 4.0], [3.0, 3.0, 3.0]):
            assert not c.is_converged(2, history[:2])
            decision = c.check(3, history)
            assert decision.converged
            assert MAXIMUM_ITERATIONS_REACHED in decision.reasons

    def test_min_residual(self):
        c = self._checker(max_iterations=10, min_residual=1e-6)
        assert not c.is_converged(1, [1e-3])
        decision = c.check(2, [1e-3, 1e-7])
        assert decision.converged
        assert decision.reasons == (RESIDUAL_LEVEL_ACHIEVED,)

    def test_min_residual_change(self):
        c = self._checker(max_iterations=10, min_residual_change=1e-3)
        assert not c.is_converged(1, [1.0])
        assert not c.is_converged(2, [1.0, 0.5])
        decision = c.check(3, [1.0, 0.5, 0.4995])
        assert decision.reasons == (RESIDUAL_CHANGE_TOO_SMALL,)

    def test_zero_min_residual_change_never_fires(self):
        c = self._checker(max_iterations=10)
        assert not c.is_converged(3, [1.0, 1.0, 1.0])

    def test_multiple_reasons(self):
        c = self._checker(max_iterations=2, min_residual=1.0)
        decision = c.check(2, [2.0, 0.5])
        assert decision.reasons == (MAXIMUM_ITERATIONS_REACHED, RESIDUAL_LEVEL_ACHIEVED)


# ═══════════════════════════════════════════════════════════════════════════
# No-improvement rule
# ═══════════════════════════════════════════════════════════════════════════

class TestNoImprovementLiteral:
    """argmax(history) - len(history) < window is negative on the left, so any
    positive window terminates after the first iteration."""

    @pytest.mark.parametrize("history", [[1.0], [1.0, 0.5], [0.1, 0.5, 0.9]])
    def test_fires_for_positive_window(self, history):
        c = ConvergenceChecker(max_iterations=100)
        decision = c.check(len(history), history)
        assert NO_IMPROVEMENT in decision.reasons

    def test_fires_after_first_iteration(self):
        assert ConvergenceChecker(max_iterations=100).is_converged(1, [10.0])

    def test_window_minus_one(self):
        # argmax - len == -1 for an increasing history, -len for a decreasing one
        c = ConvergenceChecker(max_iterations=100, no_improvement_window=-1)
        assert not c.is_converged(3, [1.0, 2.0, 3.0])
        assert c.is_converged(3, [3.0, 2.0, 1.0])


class TestNoImprovementSinceBest:

    def _checker(self, window=2):
        return ConvergenceChecker(
            max_iterations=100,
            no_improvement_window=window,
            no_improvement_rule="since_best",
        )

    def test_improving_history_continues(self):
        c = self._checker()
        assert not c.is_converged(1, [1.0])
        assert not c.is_converged(2, [1.0, 0.5])
        assert not c.is_converged(3, [1.0, 0.5, 0.25])

    def test_stalled_history_terminates(self):
        c = self._checker()
        assert not c.is_converged(3, [1.0, 0.5, 0.6])
        decision = c.check(4, [1.0, 0.5, 0.6, 0.7])
        assert decision.reasons == (NO_IMPROVEMENT,)

    def test_equal_values_do_not_count_as_improvement(self):
        c = self._checker(window=1)
        assert c.is_converged(2, [0.5, 0.5])


class TestNoImprovementDisabled:

    def test_none_disables_rule(self):
        c = ConvergenceChecker(max_iterations=100, no_improvement_window=None)
        assert not c.is_converged(4, [1.0, 2.0, 3.0, 4.0])
