#########################################################################################
##
##                               ESTIMATION INPUT SETTINGS
##                            (estimation/estimation_input.py)
##
#########################################################################################

# IMPORTS ===============================================================================

from __future__ import annotations

import warnings
from dataclasses import dataclass
from typing import Optional

import numpy as np

from ..errors import ObservationShapeError
from ..observations import ObservationSet, WeightSet


# INPUT =================================================================================

@dataclass
class EstimationInput:
    """Observations, weights, a-priori information and run flags of one estimation.

    Parameters
    ----------
    observations : ObservationSet
        Measurements to fit.
    weights : WeightSet, optional
        Per-observation weights; unit weights if omitted.
    inverse_apriori_covariance : np.ndarray, optional
        Inverse a-priori covariance (n x n). Zero if omitted.
    initial_parameter_deviation : np.ndarray, optional
        Added to the current parameter values to get the first trial
        estimate. Zero if omitted.
    reintegrate_on_first_iteration : bool
        Re-propagate the dynamics before the first iteration.
    reintegrate_variational_equations : bool
        Also re-solve the variational equations on every re-propagation.
    save_state_history_per_iteration : bool
        Capture the dynamics solution of every iteration.
    save_residuals_and_parameters_per_iteration : bool
        Keep residual and parameter histories in the output.
    save_information_matrix : bool
        Keep the partials matrix of the best iteration in the output.
    print_progress : bool
        Log per-iteration progress.

    Notes
    -----
    Array sizes that depend on the parameter vector are checked by
    :meth:`validate_parameter_size`, which the estimation manager calls at
    the start of every run.
    """

    observations: ObservationSet
    weights: Optional[WeightSet] = None
    inverse_apriori_covariance: Optional[np.ndarray] = None
    initial_parameter_deviation: Optional[np.ndarray] = None
    reintegrate_on_first_iteration: bool = True
    reintegrate_variational_equations: bool = True
    save_state_history_per_iteration: bool = False
    save_residuals_and_parameters_per_iteration: bool = True
    save_information_matrix: bool = True
    print_progress: bool = True


    def __post_init__(self):
        if not isinstance(self.observations, ObservationSet):
            raise TypeError(
                f"observations must be an ObservationSet, got "
                f"{type(self.observations).__name__}"
            )

        if self.weights is None:
            self.weights = WeightSet.constant(self.observations, 1.0)
        elif not isinstance(self.weights, WeightSet):
            self.weights = WeightSet.from_nested(self.weights)

        if self.inverse_apriori_covariance is not None:
            P = np.array(self.inverse_apriori_covariance, dtype=float)
            if P.ndim != 2 or P.shape[0] != P.shape[1]:
                raise ObservationShapeError(
                    f"Inverse a-priori covariance must be square, got shape {P.shape}"
                )
            if not np.allclose(P, P.T):
                warnings.warn(
                    "Inverse a-priori covariance is not symmetric; using (P + Pᵀ) / 2",
                    UserWarning,
                )
                P = 0.5 * (P + P.T)
            self.inverse_apriori_covariance = P

        if self.initial_parameter_deviation is not None:
            self.initial_parameter_deviation = np.array(
                self.initial_parameter_deviation, dtype=float
            ).reshape(-1)


    def validate_parameter_size(self, size: int) -> None:
        """Check the a-priori arrays against the parameter vector size."""
        P = self.inverse_apriori_covariance
        if P is not None and P.shape != (size, size):
            raise ObservationShapeError(
                f"Inverse a-priori covariance has shape {P.shape}, parameter "
                f"vector has size {size}"
            )
        dx = self.initial_parameter_deviation
        if dx is not None and dx.size != size:
            raise ObservationShapeError(
                f"Initial parameter deviation has length {dx.size}, parameter "
                f"vector has size {size}"
            )


    def inverse_apriori_covariance_or_zero(self, size: int) -> np.ndarray:
        if self.inverse_apriori_covariance is None:
            return np.zeros((size, size))
        return self.inverse_apriori_covariance


    def initial_parameter_deviation_or_zero(self, size: int) -> np.ndarray:
        if self.initial_parameter_deviation is None:
            return np.zeros(size)
        return self.initial_parameter_deviation
