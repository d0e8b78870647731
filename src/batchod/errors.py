#########################################################################################
##
##                               ESTIMATION ERROR TYPES
##                                    (errors.py)
##
##         Configuration errors subclass 'ValueError', numerical errors subclass
##         'ArithmeticError' so callers catching the builtin types keep working.
##
#########################################################################################

# IMPORTS ===============================================================================

import numpy as np


# CONFIGURATION ERRORS ==================================================================

class EstimationConfigurationError(ValueError):
    """Inconsistent or incomplete estimation setup. Fatal, never retried."""


class UnregisteredObservableError(EstimationConfigurationError, KeyError):
    """No observation manager is registered for a requested observable type."""

    def __init__(self, observable_type, registered=()):
        self.observable_type = observable_type
        self.registered = tuple(registered)
        super().__init__(
            f"No observation manager registered for observable type "
            f"{_name(observable_type)}; registered types: "
            f"{[_name(r) for r in self.registered]}"
        )

    def __str__(self):
        # KeyError would otherwise repr() the message
        return self.args[0]


class DynamicsConfigurationError(EstimationConfigurationError):
    """Dynamics settings that cannot be combined with the estimated parameters."""


class ObservationShapeError(EstimationConfigurationError):
    """Length or shape mismatch between observation-related arrays."""


# NUMERICAL ERRORS ======================================================================

class EstimationNumericalError(ArithmeticError):
    """Numerical failure inside one linearization step."""


class NormalizationError(EstimationNumericalError, ZeroDivisionError):
    """A partial-derivative column has zero scale and cannot be normalized."""

    def __init__(self, column, message=None):
        self.column = column
        super().__init__(
            message or (
                f"Column {column} of the partials matrix is identically zero; "
                "the corresponding parameter is not observable"
            )
        )


class SingularNormalEquationsError(EstimationNumericalError, np.linalg.LinAlgError):
    """The regularized normal-equations matrix is singular or not positive definite."""


# HELPERS ===============================================================================

def _name(observable_type):
    return getattr(observable_type, "name", str(observable_type))
