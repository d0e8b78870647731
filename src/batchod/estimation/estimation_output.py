#########################################################################################
##
##                           ESTIMATION RESULTS AND STATISTICS
##                            (estimation/estimation_output.py)
##
#########################################################################################

# IMPORTS ===============================================================================

from __future__ import annotations

from dataclasses import dataclass
from typing import Optional

import numpy as np

from .normalization import denormalize_covariance, denormalize_inverse_covariance


# SNAPSHOT ==============================================================================

@dataclass(frozen=True)
class IterationSnapshot:
    """Everything one iteration produced that is worth keeping.

    The parameter estimate is the updated estimate of the iteration; the
    residuals are the ones that produced it. Matrices are in normalized
    parameter space.
    """

    iteration: int
    parameter_estimate: np.ndarray
    residuals: np.ndarray
    rms: float
    weights: np.ndarray
    normalization_terms: np.ndarray
    covariance: np.ndarray
    inverse_covariance: np.ndarray
    jacobian: Optional[np.ndarray] = None


# HELPERS ===============================================================================

def _build_stats(covariance: np.ndarray, information: np.ndarray) -> dict:
    """Formal errors, correlation, eigenvalues and condition number of a
    physical-space covariance / information matrix pair.
    """
    n_p = covariance.shape[0]

    formal_errors = np.sqrt(np.maximum(np.diag(covariance), 0.0))

    corr = np.zeros((n_p, n_p))
    for i in range(n_p):
        for j in range(n_p):
            denom = formal_errors[i] * formal_errors[j]
            if denom > 0.0:
                corr[i, j] = covariance[i, j] / denom
            elif i == j:
                corr[i, j] = 1.0

    eigenvalues = np.sort(np.linalg.eigvalsh(information))[::-1]

    pos_ev = eigenvalues[eigenvalues > 0.0]
    if len(pos_ev) == n_p and n_p >= 2:
        condition_number = float(pos_ev[0] / pos_ev[-1])
    elif len(pos_ev) == 1 and n_p == 1:
        condition_number = 1.0
    else:
        condition_number = np.inf

    return dict(
        formal_errors=formal_errors,
        correlation=corr,
        eigenvalues=eigenvalues,
        condition_number=condition_number,
    )


def _print_param_table(param_names, param_values, formal_errors, W=72):
    dash = "-" * W
    print(f"  {'Parameter':<22} {'Estimate':>14} {'Formal Error':>14} {'Rel Error':>10}")
    print(dash)

    for name, val, se in zip(param_names, param_values, formal_errors):
        if abs(val) > 1e-15 and np.isfinite(se):
            rel_str = f"{se / abs(val) * 100:.2f}%"
        else:
            rel_str = "N/A"
        print(f"  {name:<22} {val:>14.6g} {se:>14.4g} {rel_str:>10}")

    print(dash)


def _print_correlated_pairs(param_names, correlation, threshold=0.90):
    n_p = len(param_names)
    pairs = [
        (i, j, correlation[i, j])
        for i in range(n_p)
        for j in range(i + 1, n_p)
        if abs(correlation[i, j]) > threshold
    ]

    if pairs:
        print(f"\n  Highly correlated pairs (|r| > {threshold:.2f}):")
        for i, j, r in pairs:
            print(f"    {param_names[i]} <-> {param_names[j]}  :  r = {r:+.3f}")
    else:
        print(f"  No highly correlated parameter pairs  (|r| <= {threshold:.2f})")


# CLASS: EstimationOutput ===============================================================

class EstimationOutput:
    """Result of :meth:`EstimationManager.estimate_parameters`.

    Holds the best iteration (lowest RMS residual) and, when requested, the
    per-iteration histories. Created once when the loop terminates.

    Parameters
    ----------
    best : IterationSnapshot
        Iteration with the lowest RMS residual.
    rms_history : list of float
        RMS residual of every iteration.
    termination_reasons : tuple of str
        Reasons reported by the convergence checker.
    parameter_names : list of str, optional
        One name per entry of the parameter vector.
    parameter_history : list of np.ndarray, optional
        Start estimate followed by the estimate after every update.
    residual_history : list of np.ndarray, optional
        Residual vector of every iteration.
    state_history : list, optional
        Dynamics solution captured at every iteration.
    dependent_variable_history : list, optional
        Dependent variables captured at every iteration.

    Attributes
    ----------
    parameter_estimate : np.ndarray
        Best parameter vector.
    unnormalized_covariance : np.ndarray
        ``covariance'[j, k] / (s_j s_k)`` with normalization terms ``s``.
    unnormalized_inverse_covariance : np.ndarray
        ``N'[j, k] s_j s_k``.
    formal_errors : np.ndarray
        Square roots of the covariance diagonal.
    correlation : np.ndarray
        Parameter correlation matrix.
    eigenvalues : np.ndarray
        Eigenvalues of the unnormalized information matrix, descending.
    condition_number : float
        Ratio of largest to smallest positive eigenvalue.

    Example
    -------
    .. code-block:: python

        output = manager.estimate_parameters(EstimationInput(observations))
        output.display()
        fig, axes = output.plot()
    """

    def __init__(
        self,
        best: IterationSnapshot,
        rms_history,
        termination_reasons=(),
        parameter_names=None,
        parameter_history=None,
        residual_history=None,
        state_history=None,
        dependent_variable_history=None,
    ):
        self.best = best
        self.rms_history = [float(r) for r in rms_history]
        self.termination_reasons = tuple(termination_reasons)
        self.parameter_history = parameter_history
        self.residual_history = residual_history
        self.state_history = state_history
        self.dependent_variable_history = dependent_variable_history

        n_p = best.parameter_estimate.size
        if parameter_names is None:
            parameter_names = [f"p{i}" for i in range(n_p)]
        self.parameter_names = list(parameter_names)

        s = best.normalization_terms
        self.unnormalized_covariance = denormalize_covariance(best.covariance, s)
        self.unnormalized_inverse_covariance = denormalize_inverse_covariance(
            best.inverse_covariance, s
        )

        stats = _build_stats(self.unnormalized_covariance, self.unnormalized_inverse_covariance)
        self.formal_errors    = stats["formal_errors"]
        self.correlation      = stats["correlation"]
        self.eigenvalues      = stats["eigenvalues"]
        self.condition_number = stats["condition_number"]


    # BEST ITERATION ====================================================================

    @property
    def parameter_estimate(self) -> np.ndarray:
        return self.best.parameter_estimate


    @property
    def residuals(self) -> np.ndarray:
        return self.best.residuals


    @property
    def best_rms(self) -> float:
        return self.best.rms


    @property
    def best_iteration(self) -> int:
        """Zero-based index of the best iteration."""
        return self.best.iteration


    @property
    def weights(self) -> np.ndarray:
        return self.best.weights


    @property
    def normalization_terms(self) -> np.ndarray:
        return self.best.normalization_terms


    @property
    def normalized_covariance(self) -> np.ndarray:
        return self.best.covariance


    @property
    def normalized_jacobian(self) -> np.ndarray | None:
        """Normalized partials matrix of the best iteration, if saved."""
        return self.best.jacobian


    @property
    def unnormalized_jacobian(self) -> np.ndarray | None:
        """Physical-space partials matrix of the best iteration, if saved."""
        if self.best.jacobian is None:
            return None
        return self.best.jacobian * self.best.normalization_terms


    @property
    def number_of_iterations(self) -> int:
        return len(self.rms_history)


    # DISPLAY ===========================================================================

    def display(self) -> None:
        """Print a formatted estimation summary.

        Prints the iteration count, best RMS residual and termination
        reasons, a table of estimates with formal errors, the condition
        number of the information matrix and any highly correlated
        parameter pairs.
        """
        W    = 72
        line = "=" * W

        print(line)
        print("  Batch Least-Squares Estimation")
        print(line)
        print(f"  Iterations         : {self.number_of_iterations}")
        print(f"  Best iteration     : {self.best_iteration}")
        print(f"  Best RMS residual  : {self.best_rms:.6g}")
        for reason in self.termination_reasons:
            print(f"  Terminated         : {reason}")
        print()

        _print_param_table(
            self.parameter_names, self.parameter_estimate, self.formal_errors, W
        )
        print(f"\n  Information matrix condition number : {self.condition_number:.3g}")
        _print_correlated_pairs(self.parameter_names, self.correlation)
        print(line)


    # PLOT ==============================================================================

    def plot(self, *, figsize: tuple = (11, 4.5)):
        """Plot the RMS residual history and the parameter correlation matrix.

        Parameters
        ----------
        figsize : tuple, optional
            Figure size ``(width, height)`` in inches.

        Returns
        -------
        fig : matplotlib.figure.Figure
        axes : np.ndarray of matplotlib.axes.Axes, shape (2,)
        """
        import matplotlib.pyplot as plt
        import matplotlib.colors as mcolors

        fig, axes = plt.subplots(1, 2, figsize=figsize)

        # ── RMS history ────────────────────────────────────────────────
        ax = axes[0]
        iterations = np.arange(len(self.rms_history))
        ax.plot(iterations, self.rms_history, "o-", color="steelblue", label="RMS")
        ax.plot(
            iterations, np.minimum.accumulate(self.rms_history),
            "--", color="gray", label="running minimum",
        )
        ax.plot(self.best_iteration, self.best_rms, "*", color="crimson",
                markersize=12, label="best")
        if min(self.rms_history) > 0.0:
            ax.set_yscale("log")
        ax.set_xlabel("Iteration")
        ax.set_ylabel("RMS residual")
        ax.set_title("Residual History")
        ax.grid(True, alpha=0.3)
        ax.legend(fontsize=8)

        # ── Correlation heatmap ────────────────────────────────────────
        ax2  = axes[1]
        n_p  = len(self.parameter_names)
        norm = mcolors.TwoSlopeNorm(vmin=-1.0, vcenter=0.0, vmax=1.0)
        im   = ax2.imshow(self.correlation, cmap="RdBu_r", norm=norm, aspect="auto")
        fig.colorbar(im, ax=ax2, label="Correlation")

        ax2.set_xticks(range(n_p))
        ax2.set_yticks(range(n_p))
        ax2.set_xticklabels(self.parameter_names, rotation=45, ha="right", fontsize=9)
        ax2.set_yticklabels(self.parameter_names, fontsize=9)
        ax2.set_title("Parameter Correlation Matrix")

        fig.suptitle("Batch Least-Squares Estimation", fontweight="bold")
        plt.tight_layout()
        return fig, axes


    def __repr__(self) -> str:
        return (
            f"EstimationOutput(iterations={self.number_of_iterations}, "
            f"best_rms={self.best_rms:.6g}, parameters={self.parameter_names})"
        )
