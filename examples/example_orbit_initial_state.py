#########################################################################################
##
##          batchod example: initial state estimation of a planar orbit
##
##  Model:   Two-body motion in normalized units (mu = 1)
##
##      r'' = -mu r / |r|^3
##
##  The variational equations Phi' = A(t) Phi are integrated alongside the
##  state with scipy's solve_ivp, giving the partials of the position at any
##  time with respect to the initial state [x, y, vx, vy].
##
##  Data:    One-way range from two tracking stations at fixed positions,
##           with 1e-6 Gaussian noise.
##  Fit:     the initial state (dynamical parameter), starting from a
##           perturbed guess.
##
#########################################################################################

# IMPORTS ===============================================================================

import numpy as np
import matplotlib.pyplot as plt
from scipy.integrate import solve_ivp

from batchod import (
    ConvergenceChecker,
    EstimatableParameterSet,
    EstimationInput,
    EstimationManager,
    InitialStateParameter,
    LinkEnds,
    LinkEndType,
    ObservableType,
    ObservationSet,
)


# SETUP =================================================================================

MU = 1.0
T_END = 12.0
TRUE_STATE = np.array([1.0, 0.0, 0.0, 1.05])
STATIONS = {"North": np.array([0.0, 2.5]), "East": np.array([2.5, 0.0])}
SIGMA = 1.0e-6


# DYNAMICS ==============================================================================

class TwoBodyVariationalSolver:
    """Propagates the state and the state transition matrix on [0, T_END]."""

    def __init__(self, initial_state):
        self.reset_parameter_estimate(initial_state)


    def _rhs(self, t, y):
        r, v = y[0:2], y[2:4]
        phi = y[4:].reshape(4, 4)

        rn = np.linalg.norm(r)
        A = np.zeros((4, 4))
        A[0:2, 2:4] = np.eye(2)
        A[2:4, 0:2] = MU * (3.0 * np.outer(r, r) / rn**5 - np.eye(2) / rn**3)

        return np.concatenate([v, -MU * r / rn**3, (A @ phi).ravel()])


    def reset_parameter_estimate(self, parameters, reintegrate_variational_equations=True):
        y0 = np.concatenate([np.asarray(parameters, dtype=float), np.eye(4).ravel()])
        self.solution = solve_ivp(
            self._rhs, (0.0, T_END), y0,
            method="DOP853", rtol=1e-12, atol=1e-12, dense_output=True,
        )


    def get_state_transition_interface(self):
        return self


    def get_equations_of_motion_solution(self):
        return dict(zip(self.solution.t, self.solution.y[0:4].T))


    def position_and_partials(self, times):
        """Position, shape (n, 2), and its partials w.r.t. the initial state, (n, 2, 4)."""
        y = self.solution.sol(np.asarray(times, dtype=float))
        position = y[0:2].T
        phi = y[4:].T.reshape(-1, 4, 4)
        return position, phi[:, 0:2, :]


class StationRangeManager:
    """One-way range between a fixed station and the propagated vehicle."""

    def __init__(self, solver):
        self.solver = solver

    def compute_observations_with_partials(self, times, link_ends, reference_link_end):
        station = STATIONS[link_ends[LinkEndType.TRANSMITTER].reference_point]
        position, dpos = self.solver.position_and_partials(times)

        delta = position - station
        rho = np.linalg.norm(delta, axis=1)
        partials = np.einsum("ni,nij->nj", delta / rho[:, None], dpos)
        return rho, partials


# SYNTHETIC DATA ========================================================================

def simulate_observations(rng):
    truth = TwoBodyVariationalSolver(TRUE_STATE)
    observations = ObservationSet()
    for name, station in STATIONS.items():
        t = np.linspace(0.5, T_END, 40)
        position, _ = truth.position_and_partials(t)
        rho = np.linalg.norm(position - station, axis=1)
        observations.add(
            ObservableType.ONE_WAY_RANGE,
            LinkEnds({
                LinkEndType.TRANSMITTER: ("Earth", name),
                LinkEndType.RECEIVER: "Vehicle",
            }),
            rho + rng.normal(0.0, SIGMA, t.size),
            t,
        )
    return observations


# Run Example ===========================================================================

if __name__ == '__main__':

    rng = np.random.default_rng(1)
    observations = simulate_observations(rng)

    guess = TRUE_STATE + np.array([2e-3, -1e-3, 1e-3, 2e-3])
    parameters = EstimatableParameterSet([
        InitialStateParameter("Vehicle", guess),
    ])
    solver = TwoBodyVariationalSolver(guess)

    manager = EstimationManager(
        parameters,
        {ObservableType.ONE_WAY_RANGE: StationRangeManager(solver)},
        solver,
        max_workers=2,
    )

    output = manager.estimate_parameters(
        EstimationInput(observations, save_state_history_per_iteration=True),
        ConvergenceChecker(
            max_iterations=8,
            min_residual=1e-9,
            no_improvement_rule="since_best",
        ),
    )

    output.display()
    print(f"\n  initial state error : {output.parameter_estimate - TRUE_STATE}")

    # Trajectory of the first and the best iteration
    fig, ax = plt.subplots(figsize=(5, 5))
    for k, label in [(0, "first iteration"), (output.best_iteration, "best iteration")]:
        states = np.array(list(output.state_history[k].values()))
        ax.plot(states[:, 0], states[:, 1], label=label)
    for name, station in STATIONS.items():
        ax.plot(*station, "k^")
        ax.annotate(name, station)
    ax.set_aspect("equal")
    ax.legend()

    output.plot()
    plt.show()
