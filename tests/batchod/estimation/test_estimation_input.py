########################################################################################
##
##                                  TESTS FOR
##                        'estimation/estimation_input.py'
##
########################################################################################

# IMPORTS ==============================================================================

import numpy as np
import pytest

from batchod.errors import ObservationShapeError
from batchod.estimation.estimation_input import EstimationInput
from batchod.observations import (
    LinkEndType,
    LinkEnds,
    ObservableType,
    ObservationSet,
    WeightSet,
)


# ═══════════════════════════════════════════════════════════════════════════
# Helpers
# ═══════════════════════════════════════════════════════════════════════════

_LINK = LinkEnds({LinkEndType.TRANSMITTER: "Station", LinkEndType.RECEIVER: "Vehicle"})


def _observations():
    return ObservationSet().add(ObservableType.ONE_WAY_RANGE, _LINK, [1.0, 2.0], [0.0, 1.0])


# ═══════════════════════════════════════════════════════════════════════════
# Tests
# ═══════════════════════════════════════════════════════════════════════════

class TestEstimationInput:

    def test_defaults(self):
        inp = EstimationInput(_observations())
        assert inp.reintegrate_on_first_iteration
        assert inp.reintegrate_variational_equations
        assert not inp.save_state_history_per_iteration
        assert inp.save_residuals_and_parameters_per_iteration
        assert inp.save_information_matrix
        assert inp.print_progress
        np.testing.assert_array_equal(inp.weights[ObservableType.ONE_WAY_RANGE, _LINK], [1.0, 1.0])
        np.testing.assert_array_equal(inp.inverse_apriori_covariance_or_zero(2), np.zeros((2, 2)))
        np.testing.assert_array_equal(inp.initial_parameter_deviation_or_zero(2), np.zeros(2))

    def test_nested_weights_are_converted(self):
        inp = EstimationInput(
            _observations(), weights={ObservableType.ONE_WAY_RANGE: {_LINK: [2.0, 3.0]}}
        )
        assert isinstance(inp.weights, WeightSet)

    def test_observations_type_checked(self):
        with pytest.raises(TypeError):
            EstimationInput({ObservableType.ONE_WAY_RANGE: {}})

    def test_non_square_apriori_raises(self):
        with pytest.raises(ObservationShapeError):
            EstimationInput(_observations(), inverse_apriori_covariance=np.ones((2, 3)))

    def test_non_symmetric_apriori_warns_and_symmetrizes(self):
        P = np.array([[1.0, 2.0], [0.0, 1.0]])
        with pytest.warns(UserWarning, match="not symmetric"):
            inp = EstimationInput(_observations(), inverse_apriori_covariance=P)
        np.testing.assert_array_equal(inp.inverse_apriori_covariance, [[1.0, 1.0], [1.0, 1.0]])

    def test_apriori_copied(self):
        P = np.eye(2)
        inp = EstimationInput(_observations(), inverse_apriori_covariance=P)
        P[0, 0] = 5.0
        assert inp.inverse_apriori_covariance[0, 0] == 1.0

    def test_validate_parameter_size(self):
        inp = EstimationInput(
            _observations(),
            inverse_apriori_covariance=np.eye(2),
            initial_parameter_deviation=[0.1, 0.2],
        )
        inp.validate_parameter_size(2)
        with pytest.raises(ObservationShapeError, match="covariance"):
            inp.validate_parameter_size(3)

    def test_validate_deviation_size(self):
        inp = EstimationInput(_observations(), initial_parameter_deviation=[0.1])
        with pytest.raises(ObservationShapeError, match="deviation"):
            inp.validate_parameter_size(2)
