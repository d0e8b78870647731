#########################################################################################
##
##                           ESTIMATION CONVERGENCE CHECKER
##                            (estimation/convergence.py)
##
#########################################################################################

# IMPORTS ===============================================================================

from __future__ import annotations

from dataclasses import dataclass, field
from typing import Sequence

import numpy as np


# CONSTANTS =============================================================================

MAXIMUM_ITERATIONS_REACHED = "maximum number of iterations reached"
RESIDUAL_LEVEL_ACHIEVED = "required residual level achieved"
NO_IMPROVEMENT = "too many iterations without parameter improvement"
RESIDUAL_CHANGE_TOO_SMALL = "residual change below minimum"

_NO_IMPROVEMENT_RULES = ("literal", "since_best")


# DECISION ==============================================================================

@dataclass(frozen=True)
class ConvergenceDecision:
    """Outcome of one convergence check."""

    converged: bool
    reasons: tuple[str, ...] = field(default_factory=tuple)

    def __bool__(self) -> bool:
        return self.converged


# CHECKER ===============================================================================

@dataclass(frozen=True)
class ConvergenceChecker:
    """Termination policy of the estimation loop.

    A pure function of the number of completed iterations and the history of
    RMS residuals. The loop terminates when any of the following holds:

    1. ``iteration_count >= max_iterations``
    2. the latest RMS residual is below ``min_residual``
    3. the no-improvement rule fires (see below)
    4. at least two entries exist and the latest change of RMS residual is
       below ``min_residual_change``

    Parameters
    ----------
    max_iterations : int
        Maximum number of iterations.
    min_residual_change : float
        Minimum absolute change of RMS residual between two iterations.
    min_residual : float
        RMS residual below which the estimation has converged.
    no_improvement_window : int or None
        Window of the no-improvement rule; ``None`` disables it.
    no_improvement_rule : str
        ``"literal"`` evaluates ``argmax(history) - len(history) < window``.
        ``"since_best"`` fires once ``window`` iterations have passed since
        the lowest RMS residual.

    Notes
    -----
    With ``"literal"`` the left-hand side is always negative, so any
    positive window terminates after the first iteration. Use
    ``"since_best"`` (or ``no_improvement_window=None``) to let a nonlinear
    problem iterate up to ``max_iterations``.

    Example
    -------
    .. code-block:: python

        checker = ConvergenceChecker(max_iterations=10, no_improvement_rule="since_best")
        checker.is_converged(3, [1.0, 0.1, 0.1])
    """

    max_iterations: int = 5
    min_residual_change: float = 0.0
    min_residual: float = 1.0e-20
    no_improvement_window: int | None = 2
    no_improvement_rule: str = "literal"


    def __post_init__(self):
        if int(self.max_iterations) < 1:
            raise ValueError(f"max_iterations must be >= 1, got {self.max_iterations}")
        if self.min_residual_change < 0.0:
            raise ValueError(
                f"min_residual_change must be >= 0, got {self.min_residual_change}"
            )
        if self.min_residual < 0.0:
            raise ValueError(f"min_residual must be >= 0, got {self.min_residual}")
        if self.no_improvement_rule not in _NO_IMPROVEMENT_RULES:
            raise ValueError(
                f"no_improvement_rule must be one of {_NO_IMPROVEMENT_RULES}, "
                f"got '{self.no_improvement_rule}'"
            )


    def check(self, iteration_count: int, rms_history: Sequence[float]) -> ConvergenceDecision:
        """Evaluate all termination rules.

        Parameters
        ----------
        iteration_count : int
            Number of completed iterations.
        rms_history : sequence of float
            RMS residual of every completed iteration, oldest first.

        Returns
        -------
        ConvergenceDecision
        """
        history = np.asarray(rms_history, dtype=float).reshape(-1)
        if history.size == 0:
            raise ValueError("rms_history must contain at least one entry")

        reasons = []

        if iteration_count >= self.max_iterations:
            reasons.append(MAXIMUM_ITERATIONS_REACHED)

        if history[-1] < self.min_residual:
            reasons.append(RESIDUAL_LEVEL_ACHIEVED)

        if self._no_improvement(history):
            reasons.append(NO_IMPROVEMENT)

        if history.size > 1 and abs(history[-1] - history[-2]) < self.min_residual_change:
            reasons.append(RESIDUAL_CHANGE_TOO_SMALL)

        return ConvergenceDecision(converged=bool(reasons), reasons=tuple(reasons))


    def is_converged(self, iteration_count: int, rms_history: Sequence[float]) -> bool:
        """``True`` if the estimation is to be terminated."""
        return self.check(iteration_count, rms_history).converged


    def _no_improvement(self, history: np.ndarray) -> bool:
        if self.no_improvement_window is None:
            return False

        if self.no_improvement_rule == "literal":
            return int(np.argmax(history)) - history.size < self.no_improvement_window

        # iterations completed after the best one
        since_best = history.size - 1 - int(np.argmin(history))
        return since_best >= self.no_improvement_window
