########################################################################################
##
##                                  TESTS FOR
##                          'estimation/parameters.py'
##
########################################################################################

# IMPORTS ==============================================================================

import numpy as np
import pytest

from batchod.errors import ObservationShapeError
from batchod.estimation.parameters import (
    EstimatableParameterSet,
    InitialStateParameter,
    Parameter,
    ParameterSetLike,
)


# ═══════════════════════════════════════════════════════════════════════════
# Helpers
# ═══════════════════════════════════════════════════════════════════════════

class _DummyVehicle:
    """Object receiving bound parameter values."""

    class Drag:
        def __init__(self):
            self.cd = 0.0

    def __init__(self):
        self.mass = 0.0
        self.drag = self.Drag()
        self.state = None


# ═══════════════════════════════════════════════════════════════════════════
# Parameter
# ═══════════════════════════════════════════════════════════════════════════

class TestParameter:

    def test_scalar(self):
        p = Parameter("mass", 100.0)
        assert p.size == 1
        assert p.value == 100.0
        assert isinstance(p.value, float)
        assert p.entry_names == ["mass"]
        assert not p.dynamical

    def test_vector(self):
        p = Parameter("bias", [1.0, 2.0, 3.0])
        assert p.size == 3
        np.testing.assert_array_equal(p.value, [1.0, 2.0, 3.0])
        assert p.entry_names == ["bias[0]", "bias[1]", "bias[2]"]

    def test_value_is_a_copy(self):
        p = Parameter("bias", [1.0, 2.0])
        v = p.value
        v[0] = 10.0
        assert p.value[0] == 1.0

    def test_binding_applies_on_init(self):
        vehicle = _DummyVehicle()
        Parameter("mass", 500.0, target=vehicle, attribute="mass")
        assert vehicle.mass == 500.0

    def test_binding_dotted_attribute(self):
        vehicle = _DummyVehicle()
        p = Parameter("cd", 2.2, target=vehicle, attribute="drag.cd")
        assert vehicle.drag.cd == 2.2
        p.set(2.4)
        assert vehicle.drag.cd == 2.4

    def test_value_setter(self):
        vehicle = _DummyVehicle()
        p = Parameter("mass", 1.0, target=vehicle, attribute="mass")
        p.value = 7.0
        assert p.value == 7.0
        assert vehicle.mass == 7.0

    def test_vector_binding(self):
        vehicle = _DummyVehicle()
        p = InitialStateParameter("Vehicle", [1.0, 2.0], target=vehicle, attribute="state")
        assert p.dynamical
        np.testing.assert_array_equal(vehicle.state, [1.0, 2.0])

    def test_target_without_attribute_raises(self):
        with pytest.raises(ValueError, match="attribute must be provided"):
            Parameter("bad", 1.0, target=_DummyVehicle())

    def test_matrix_value_raises(self):
        with pytest.raises(ValueError, match="scalar or 1D"):
            Parameter("bad", np.eye(2))

    def test_empty_value_raises(self):
        with pytest.raises(ValueError, match="empty"):
            Parameter("bad", [])

    def test_size_mismatch_raises(self):
        p = Parameter("bias", [1.0, 2.0])
        with pytest.raises(ObservationShapeError):
            p.set([1.0, 2.0, 3.0])

    def test_repr(self):
        assert "static" in repr(Parameter("x", 1.0))
        r = repr(Parameter("cd", 1.0, target=_DummyVehicle(), attribute="drag.cd"))
        assert "_DummyVehicle" in r
        assert "drag.cd" in r


# ═══════════════════════════════════════════════════════════════════════════
# EstimatableParameterSet
# ═══════════════════════════════════════════════════════════════════════════

class TestEstimatableParameterSet:

    def _set(self):
        return EstimatableParameterSet([
            Parameter("cd", 2.0),
            InitialStateParameter("Vehicle", [10.0, 20.0]),
            Parameter("bias", [0.5, 0.25]),
        ])

    def test_dynamical_parameters_first(self):
        ps = self._set()
        assert [p.name for p in ps.parameters] == ["Vehicle", "cd", "bias"]
        assert ps.parameter_names == ["Vehicle[0]", "Vehicle[1]", "cd", "bias[0]", "bias[1]"]
        assert ps.has_dynamical_parameters
        assert [p.name for p in ps.dynamical_parameters] == ["Vehicle"]

    def test_full_vector(self):
        ps = self._set()
        assert ps.size == 5
        assert len(ps) == 3
        np.testing.assert_array_equal(
            ps.get_full_parameter_values(), [10.0, 20.0, 2.0, 0.5, 0.25]
        )

    def test_reset_round_trip(self):
        ps = self._set()
        x = np.array([1.0, 2.0, 3.0, 4.0, 5.0])
        ps.reset_parameter_values(x)
        np.testing.assert_array_equal(ps.get_full_parameter_values(), x)
        assert ps.parameters[1].value == 3.0

    def test_reset_wrong_length_raises(self):
        with pytest.raises(ObservationShapeError):
            self._set().reset_parameter_values([1.0, 2.0])

    def test_static_only(self):
        ps = EstimatableParameterSet([Parameter("a", 1.0)])
        assert not ps.has_dynamical_parameters

    def test_empty_raises(self):
        with pytest.raises(ValueError):
            EstimatableParameterSet([])

    def test_duplicate_names_raise(self):
        with pytest.raises(ValueError, match="Duplicate"):
            EstimatableParameterSet([Parameter("a", 1.0), Parameter("a", 2.0)])

    def test_satisfies_protocol(self):
        assert isinstance(self._set(), ParameterSetLike)
