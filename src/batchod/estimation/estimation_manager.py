#########################################################################################
##
##                      ITERATIVE BATCH LEAST-SQUARES ESTIMATION
##                          (estimation/estimation_manager.py)
##
##         Linearize, solve, update, repeat: every iteration re-propagates the
##         dynamics with the current estimate, stacks residuals and partials of
##         all observations, solves the normalized weighted normal equations and
##         applies the correction. The iteration with the lowest RMS residual is
##         returned.
##
#########################################################################################

# IMPORTS ===============================================================================

from __future__ import annotations

from enum import Enum
from typing import Mapping

import numpy as np

from ..errors import DynamicsConfigurationError
from ..utils.logger import LoggerManager
from .aggregation import concatenate_weights, count_observations
from .assembler import ResidualAndJacobianAssembler
from .convergence import ConvergenceChecker
from .dynamics import (
    MultiArcDynamics,
    SingleArcDynamics,
    StaticParameterDynamics,
    create_dynamics,
)
from .estimation_input import EstimationInput
from .estimation_output import EstimationOutput, IterationSnapshot
from .least_squares import root_mean_square, solve_weighted_normal_equations
from .normalization import (
    denormalize_correction,
    normalize_inverse_apriori_covariance,
    normalize_jacobian,
)
from .observers import LoggingObserver, NullObserver


_logger = LoggerManager().get_logger("estimation")

_STRATEGIES = (SingleArcDynamics, MultiArcDynamics, StaticParameterDynamics)


# STATE =================================================================================

class EstimationState(Enum):
    INITIALIZING = "initializing"
    ITERATING = "iterating"
    TERMINATED = "terminated"


# CLASS: EstimationManager ==============================================================

class EstimationManager:
    """Batch weighted least-squares estimator of a parameter set.

    Parameters
    ----------
    parameter_set : ParameterSetLike
        Estimated parameters; provides ``get_full_parameter_values()``,
        ``reset_parameter_values(vector)`` and ``has_dynamical_parameters``.
    observation_managers : mapping
        ``ObservableType -> ObservationManager``; each manager computes
        observations and partials from the live dynamics state.
    dynamics : object, optional
        Variational equations solver used when dynamical parameters are
        estimated, or an already constructed dynamics strategy.
    propagator_settings : object, optional
        Settings of the propagator; only valid with dynamical parameters.
    max_workers : int, optional
        Thread count for evaluating observation groups in parallel.
    multi_arc : bool
        Propagate the dynamics in several arcs.
    arc_start_times : sequence of float, optional
        Start times of the arcs for multi-arc dynamics.

    Raises
    ------
    DynamicsConfigurationError
        If propagator settings are given without dynamical parameters, or
        dynamical parameters without a solver.

    Example
    -------
    .. code-block:: python

        manager = EstimationManager(parameters, {ObservableType.ONE_WAY_RANGE: ranges})
        output = manager.estimate_parameters(
            EstimationInput(observations),
            ConvergenceChecker(max_iterations=10, no_improvement_rule="since_best"),
        )
        print(output.parameter_estimate, output.formal_errors)
    """

    def __init__(
        self,
        parameter_set,
        observation_managers: Mapping,
        dynamics=None,
        propagator_settings=None,
        *,
        max_workers: int | None = None,
        multi_arc: bool = False,
        arc_start_times=None,
    ):
        self.parameter_set = parameter_set
        self.propagator_settings = propagator_settings

        has_dynamics = bool(getattr(parameter_set, "has_dynamical_parameters", False))
        if propagator_settings is not None and not has_dynamics:
            raise DynamicsConfigurationError(
                "Propagator settings were provided, but no dynamical parameters are "
                "estimated"
            )

        if isinstance(dynamics, _STRATEGIES):
            self._dynamics = dynamics
        else:
            self._dynamics = create_dynamics(
                parameter_set,
                solver=dynamics,
                propagator_settings=propagator_settings,
                multi_arc=multi_arc,
                arc_start_times=arc_start_times,
            )

        self._assembler = ResidualAndJacobianAssembler(
            observation_managers, max_workers=max_workers
        )

        self._current_parameter_estimate = np.array(
            parameter_set.get_full_parameter_values(), dtype=float
        ).reshape(-1)

        self._state = EstimationState.INITIALIZING


    # ACCESSORS =========================================================================

    @property
    def state(self) -> EstimationState:
        return self._state


    @property
    def dynamics(self):
        """Dynamics strategy selected at construction."""
        return self._dynamics


    @property
    def observation_managers(self) -> dict:
        return dict(self._assembler.observation_managers)


    @property
    def current_parameter_estimate(self) -> np.ndarray:
        return self._current_parameter_estimate.copy()


    def get_observation_manager(self, observable):
        """Observation manager of *observable*.

        Raises
        ------
        UnregisteredObservableError
            If none is registered for this observable type.
        """
        return self._assembler.get_observation_manager(observable)


    def get_state_transition_interface(self):
        return self._dynamics.get_state_transition_interface()


    def reset_parameter_estimate(self, parameters, reintegrate_variational_equations=True):
        """Push *parameters* into the dynamics (or the parameter set) and keep them
        as current estimate.
        """
        x = np.array(parameters, dtype=float).reshape(-1)
        self._dynamics.reset_parameter_estimate(x, reintegrate_variational_equations)
        self._current_parameter_estimate = x


    # ESTIMATION ========================================================================

    def estimate_parameters(
        self,
        estimation_input: EstimationInput,
        convergence_checker: ConvergenceChecker | None = None,
        observer=None,
    ) -> EstimationOutput:
        """Run the iterative estimation.

        Parameters
        ----------
        estimation_input : EstimationInput
            Observations, weights, a-priori information and run flags.
        convergence_checker : ConvergenceChecker, optional
            Termination policy; defaults to ``ConvergenceChecker()``.
        observer : EstimationObserver, optional
            Progress hooks; a :class:`LoggingObserver` is used when
            ``print_progress`` is set, a :class:`NullObserver` otherwise.

        Returns
        -------
        EstimationOutput
            Best iteration and, if requested, the iteration histories.

        Notes
        -----
        The loop runs at least once. Each iteration

        1. re-propagates the dynamics with the trial estimate (skipped on the
           first iteration unless ``reintegrate_on_first_iteration``),
        2. assembles residuals and partials,
        3. normalizes the partials and the a-priori information,
        4. solves the weighted normal equations and denormalizes the
           correction,
        5. updates the estimate and records the RMS residual,
        6. replaces the best snapshot if the RMS residual is strictly lower.

        Any configuration or numerical error ends the run by raising; no
        output is returned in that case.
        """
        if convergence_checker is None:
            convergence_checker = ConvergenceChecker()

        if observer is None:
            observer = LoggingObserver() if estimation_input.print_progress else NullObserver()

        observations = estimation_input.observations

        start = np.array(
            self.parameter_set.get_full_parameter_values(), dtype=float
        ).reshape(-1)
        n = start.size
        estimation_input.validate_parameter_size(n)

        per_type, total = count_observations(observations)
        if total == 0:
            _logger.warning("estimating parameters without observations")
        else:
            _logger.debug(
                "%d observations: %s",
                total, {k.name: v for k, v in per_type.items()},
            )

        weights = concatenate_weights(estimation_input.weights, observations)
        inverse_apriori = estimation_input.inverse_apriori_covariance_or_zero(n)

        save_history = estimation_input.save_residuals_and_parameters_per_iteration
        save_states = estimation_input.save_state_history_per_iteration

        trial_estimate = start + estimation_input.initial_parameter_deviation_or_zero(n)

        rms_history = []
        parameter_history = [trial_estimate.copy()] if save_history else None
        residual_history = [] if save_history else None
        state_history = [] if save_states else None
        dependent_variable_history = [] if save_states else None

        best = None
        iteration = 0

        self._state = EstimationState.ITERATING

        while True:
            observer.on_iteration_start(iteration, trial_estimate)

            if iteration > 0 or estimation_input.reintegrate_on_first_iteration:
                self.reset_parameter_estimate(
                    trial_estimate, estimation_input.reintegrate_variational_equations
                )

            if save_states:
                state_history.append(self._dynamics.state_history())
                dependent_variable_history.append(self._dynamics.dependent_variable_history())

            residuals, jacobian = self._assembler.assemble(observations, n)
            rms = root_mean_square(residuals)
            observer.on_residuals_computed(iteration, residuals, rms)

            normalized_jacobian, scales = normalize_jacobian(jacobian)
            solution = solve_weighted_normal_equations(
                normalized_jacobian,
                residuals,
                weights,
                normalize_inverse_apriori_covariance(inverse_apriori, scales),
            )

            correction = denormalize_correction(solution.correction, scales)
            updated_estimate = trial_estimate + correction
            observer.on_parameter_update(iteration, correction, updated_estimate)

            rms_history.append(rms)
            if save_history:
                residual_history.append(residuals)
                parameter_history.append(updated_estimate.copy())

            if best is None or rms < best.rms:
                best = IterationSnapshot(
                    iteration=iteration,
                    parameter_estimate=updated_estimate.copy(),
                    residuals=residuals,
                    rms=rms,
                    weights=weights,
                    normalization_terms=scales,
                    covariance=solution.covariance,
                    inverse_covariance=solution.inverse_covariance,
                    jacobian=(
                        normalized_jacobian
                        if estimation_input.save_information_matrix else None
                    ),
                )
                observer.on_new_best(best)

            trial_estimate = updated_estimate
            iteration += 1

            decision = convergence_checker.check(iteration, rms_history)
            observer.on_convergence_decision(iteration, decision)
            if decision:
                break

        self._state = EstimationState.TERMINATED

        output = EstimationOutput(
            best=best,
            rms_history=rms_history,
            termination_reasons=decision.reasons,
            parameter_names=getattr(self.parameter_set, "parameter_names", None),
            parameter_history=parameter_history,
            residual_history=residual_history,
            state_history=state_history,
            dependent_variable_history=dependent_variable_history,
        )
        observer.on_estimation_complete(output)
        return output


    def __repr__(self) -> str:
        return (
            f"EstimationManager(parameters={self.parameter_set!r}, "
            f"observables={[o.name for o in sorted(self._assembler.observation_managers)]}, "
            f"dynamics={self._dynamics!r}, state={self._state.name})"
        )
