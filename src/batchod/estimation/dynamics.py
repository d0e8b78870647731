#########################################################################################
##
##                          DYNAMICS RESET STRATEGIES
##                           (estimation/dynamics.py)
##
##         One capability, 'reset_parameter_estimate(vector, reintegrate)', with
##         a closed set of variants selected once at construction time:
##
##           SingleArcDynamics        estimated dynamics, one propagation arc
##           MultiArcDynamics         estimated dynamics, several arcs
##           StaticParameterDynamics  no dynamical parameters estimated
##
#########################################################################################

# IMPORTS ===============================================================================

from __future__ import annotations

from dataclasses import dataclass, field
from typing import Any, Protocol, Sequence, runtime_checkable

import numpy as np

from ..errors import DynamicsConfigurationError
from ..utils.logger import LoggerManager


__all__ = [
    "VariationalEquationsSolver",
    "EmptyStateTransitionInterface",
    "SingleArcDynamics",
    "MultiArcDynamics",
    "StaticParameterDynamics",
    "create_dynamics",
]

_logger = LoggerManager().get_logger("dynamics")


# EXTERNAL INTERFACE ====================================================================

@runtime_checkable
class VariationalEquationsSolver(Protocol):
    """Boundary of the external propagator / variational-equations solver."""

    def reset_parameter_estimate(
        self,
        parameters: np.ndarray,
        reintegrate_variational_equations: bool = True,
    ) -> None: ...

    def get_state_transition_interface(self) -> Any: ...


# STATE TRANSITION PLACEHOLDER ==========================================================

@dataclass(frozen=True)
class EmptyStateTransitionInterface:
    """State-transition interface when no dynamics is estimated.

    Observation partials with respect to initial states are identically zero;
    the interface only carries the sizes observation managers need.
    """

    state_size: int = 0
    parameter_size: int = 0
    multi_arc: bool = False
    arc_start_times: tuple[float, ...] = field(default_factory=tuple)


    def full_combined_matrix(self, time: float) -> np.ndarray:
        """Combined state-transition and sensitivity matrix (empty rows)."""
        return np.zeros((self.state_size, self.parameter_size))


# STRATEGIES ============================================================================

class _SolverDynamics:
    """Common part of the variants that forward to an external solver.

    When a parameter set is given, a reset writes the full vector into it
    before the solver re-propagates. Static parameters estimated next to
    the initial states are updated this way.
    """

    multi_arc = False

    def __init__(self, solver, parameter_set=None):
        for method in ("reset_parameter_estimate", "get_state_transition_interface"):
            if not callable(getattr(solver, method, None)):
                raise DynamicsConfigurationError(
                    f"{type(solver).__name__} does not provide '{method}()' and "
                    "cannot be used as variational equations solver"
                )
        self.solver = solver
        self.parameter_set = parameter_set


    def reset_parameter_estimate(self, parameters, reintegrate_variational_equations=True):
        """Push new parameters into the dynamics and re-propagate."""
        x = np.asarray(parameters, dtype=float)
        if self.parameter_set is not None:
            self.parameter_set.reset_parameter_values(x)

        _logger.debug(
            "re-propagating dynamics (variational equations: %s)",
            reintegrate_variational_equations,
        )
        self.solver.reset_parameter_estimate(x, reintegrate_variational_equations)


    def get_state_transition_interface(self):
        return self.solver.get_state_transition_interface()


    def state_history(self):
        """Current numerical solution of the equations of motion, if exposed."""
        getter = getattr(self.solver, "get_equations_of_motion_solution", None)
        return getter() if callable(getter) else None


    def dependent_variable_history(self):
        """Current dependent-variable history, if exposed."""
        getter = getattr(self.solver, "get_dependent_variable_solution", None)
        return getter() if callable(getter) else None


class SingleArcDynamics(_SolverDynamics):
    """Estimated dynamics propagated as a single arc."""

    def __repr__(self):
        return f"SingleArcDynamics(solver={type(self.solver).__name__})"


class MultiArcDynamics(_SolverDynamics):
    """Estimated dynamics propagated as several consecutive arcs.

    Parameters
    ----------
    solver : VariationalEquationsSolver
        Multi-arc solver.
    arc_start_times : sequence of float
        Strictly increasing start time of every arc.
    parameter_set : ParameterSetLike, optional
        Parameter set that receives every reset vector.
    """

    multi_arc = True

    def __init__(self, solver, arc_start_times: Sequence[float], parameter_set=None):
        super().__init__(solver, parameter_set)

        times = tuple(float(t) for t in arc_start_times)
        if not times:
            raise DynamicsConfigurationError("Multi-arc dynamics requires at least one arc")
        if any(b <= a for a, b in zip(times[:-1], times[1:])):
            raise DynamicsConfigurationError(
                f"Arc start times must be strictly increasing, got {list(times)}"
            )
        self.arc_start_times = times


    def __repr__(self):
        return (
            f"MultiArcDynamics(solver={type(self.solver).__name__}, "
            f"arcs={len(self.arc_start_times)})"
        )


class StaticParameterDynamics:
    """No dynamical parameters: a reset only writes values to the parameter set.

    Parameters
    ----------
    parameter_set : ParameterSetLike
        Parameter set receiving the new values.
    multi_arc : bool
        Flavour of the empty state-transition interface.
    """

    def __init__(self, parameter_set, multi_arc: bool = False, arc_start_times=()):
        self.parameter_set = parameter_set
        self.multi_arc = bool(multi_arc)
        size = np.asarray(parameter_set.get_full_parameter_values()).size
        self._interface = EmptyStateTransitionInterface(
            state_size=0,
            parameter_size=size,
            multi_arc=self.multi_arc,
            arc_start_times=tuple(float(t) for t in arc_start_times),
        )


    def reset_parameter_estimate(self, parameters, reintegrate_variational_equations=True):
        self.parameter_set.reset_parameter_values(np.asarray(parameters, dtype=float))


    def get_state_transition_interface(self):
        return self._interface


    def state_history(self):
        return None


    def dependent_variable_history(self):
        return None


    def __repr__(self):
        return f"StaticParameterDynamics(multi_arc={self.multi_arc})"


# FACTORY ===============================================================================

def create_dynamics(
    parameter_set,
    solver=None,
    propagator_settings=None,
    multi_arc: bool = False,
    arc_start_times: Sequence[float] | None = None,
):
    """Select the dynamics strategy for a parameter set.

    Parameters
    ----------
    parameter_set : ParameterSetLike
        Estimated parameters.
    solver : VariationalEquationsSolver, optional
        External solver, required when dynamical parameters are estimated.
    propagator_settings : object, optional
        Settings of the external propagator. Only meaningful together with
        dynamical parameters.
    multi_arc : bool
        Whether the dynamics are propagated in several arcs.
    arc_start_times : sequence of float, optional
        Arc start times for multi-arc dynamics.

    Returns
    -------
    SingleArcDynamics, MultiArcDynamics or StaticParameterDynamics

    Raises
    ------
    DynamicsConfigurationError
        If propagator settings are given without dynamical parameters, or
        dynamical parameters are given without a solver.
    """
    if getattr(parameter_set, "has_dynamical_parameters", False):
        if solver is None:
            raise DynamicsConfigurationError(
                "Dynamical parameters are estimated but no variational equations "
                "solver was provided"
            )
        if multi_arc:
            return MultiArcDynamics(solver, arc_start_times or (), parameter_set)
        return SingleArcDynamics(solver, parameter_set)

    if propagator_settings is not None:
        raise DynamicsConfigurationError(
            "Propagator settings were provided, but no dynamical parameters are "
            "estimated"
        )

    if solver is not None:
        _logger.warning(
            "variational equations solver ignored: no dynamical parameters are estimated"
        )

    return StaticParameterDynamics(
        parameter_set,
        multi_arc=multi_arc,
        arc_start_times=arc_start_times or (),
    )
