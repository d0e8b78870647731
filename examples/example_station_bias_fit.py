#########################################################################################
##
##          batchod example: station range biases without estimated dynamics
##
##  Model:   A vehicle flies along a straight line at unknown altitude h with
##           unknown ground speed v, starting above x = 0:
##
##               p(t) = (v t, h)
##
##           Two ground stations on the x-axis measure one-way range with a
##           constant, station-specific bias:
##
##               rho_i(t) = |p(t) - s_i| + b_i
##
##  Fit:     v, h, b_Madrid, b_Goldstone  (all static parameters)
##
##  The range is nonlinear in v and h, so the since-best convergence rule is
##  used to let Gauss-Newton iterate until the residuals stop improving.
##
#########################################################################################

# IMPORTS ===============================================================================

from types import SimpleNamespace

import numpy as np
import matplotlib.pyplot as plt

from batchod import (
    ConvergenceChecker,
    EstimatableParameterSet,
    EstimationInput,
    EstimationManager,
    LinkEnds,
    LinkEndType,
    ObservableType,
    ObservationSet,
    Parameter,
    WeightSet,
)


# TRUE VALUES ===========================================================================

TRUE_V = 7.5      # ground speed [km/s]
TRUE_H = 400.0    # altitude [km]
TRUE_BIAS = {"Madrid": 0.015, "Goldstone": -0.008}     # [km]

STATIONS = {"Madrid": -300.0, "Goldstone": 250.0}       # x position [km]
SIGMA = 0.005     # range noise [km]


# VEHICLE MODEL =========================================================================

class Vehicle:
    """Holds the current trial values written by the bound parameters."""

    def __init__(self):
        self.v = 0.0
        self.h = 0.0
        self.bias = SimpleNamespace(**{name: 0.0 for name in STATIONS})

    def position(self, t):
        t = np.asarray(t, dtype=float)
        return np.column_stack([self.v * t, np.full_like(t, self.h)])


class RangeObservationManager:
    """One-way range with station bias, evaluated at the vehicle's current values."""

    def __init__(self, vehicle, parameter_names):
        self.vehicle = vehicle
        self.columns = {name: i for i, name in enumerate(parameter_names)}

    def compute_observations_with_partials(self, times, link_ends, reference_link_end):
        station = link_ends[LinkEndType.TRANSMITTER].reference_point
        t = np.asarray(times, dtype=float)

        delta = self.vehicle.position(t) - np.array([STATIONS[station], 0.0])
        distance = np.linalg.norm(delta, axis=1)

        partials = np.zeros((t.size, len(self.columns)))
        partials[:, self.columns["v"]] = delta[:, 0] * t / distance
        partials[:, self.columns["h"]] = delta[:, 1] / distance
        partials[:, self.columns[f"bias_{station}"]] = 1.0

        return distance + getattr(self.vehicle.bias, station), partials


def link(station):
    return LinkEnds({
        LinkEndType.TRANSMITTER: ("Earth", station),
        LinkEndType.RECEIVER: "Vehicle",
    })


# SYNTHETIC DATA ========================================================================

def simulate_observations(rng):
    truth = Vehicle()
    truth.v, truth.h = TRUE_V, TRUE_H
    truth.bias = SimpleNamespace(**TRUE_BIAS)

    observations = ObservationSet()
    for station in STATIONS:
        t = np.linspace(0.0, 120.0, 61)
        delta = truth.position(t) - np.array([STATIONS[station], 0.0])
        rho = np.linalg.norm(delta, axis=1) + getattr(truth.bias, station)
        observations.add(
            ObservableType.ONE_WAY_RANGE,
            link(station),
            rho + rng.normal(0.0, SIGMA, t.size),
            t,
            LinkEndType.RECEIVER,
        )
    return observations


# Run Example ===========================================================================

if __name__ == '__main__':

    rng = np.random.default_rng(42)
    observations = simulate_observations(rng)

    # Bind every estimated quantity to the vehicle model
    vehicle = Vehicle()
    parameters = EstimatableParameterSet([
        Parameter("v", 7.0, target=vehicle, attribute="v"),
        Parameter("h", 380.0, target=vehicle, attribute="h"),
        Parameter("bias_Madrid", 0.0, target=vehicle, attribute="bias.Madrid"),
        Parameter("bias_Goldstone", 0.0, target=vehicle, attribute="bias.Goldstone"),
    ])

    ranges = RangeObservationManager(vehicle, parameters.parameter_names)

    manager = EstimationManager(
        parameters,
        {ObservableType.ONE_WAY_RANGE: ranges},
    )

    estimation_input = EstimationInput(
        observations,
        weights=WeightSet.constant(observations, 1.0 / SIGMA**2),
        print_progress=True,
    )

    checker = ConvergenceChecker(
        max_iterations=10,
        no_improvement_window=2,
        no_improvement_rule="since_best",
    )

    output = manager.estimate_parameters(estimation_input, checker)
    output.display()

    truth = np.array([TRUE_V, TRUE_H, TRUE_BIAS["Madrid"], TRUE_BIAS["Goldstone"]])
    print("\n  true - estimated, in formal errors:")
    for name, err in zip(output.parameter_names, (truth - output.parameter_estimate) / output.formal_errors):
        print(f"    {name:<16} {err:+.2f}")

    fig, axes = output.plot()
    plt.show()
