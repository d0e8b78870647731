#########################################################################################
##
##                     BATCH LEAST-SQUARES ESTIMATION — PUBLIC API
##                              (estimation/__init__.py)
##
#########################################################################################

from .aggregation import (
    RowRange,
    row_ranges,
    count_observations,
    count_observations_per_link_ends,
    concatenate_weights,
)
from .assembler import ObservationManager, ResidualAndJacobianAssembler
from .convergence import ConvergenceChecker, ConvergenceDecision
from .dynamics import (
    VariationalEquationsSolver,
    EmptyStateTransitionInterface,
    SingleArcDynamics,
    MultiArcDynamics,
    StaticParameterDynamics,
    create_dynamics,
)
from .estimation_input import EstimationInput
from .estimation_manager import EstimationManager, EstimationState
from .estimation_output import EstimationOutput, IterationSnapshot
from .least_squares import (
    LeastSquaresSolution,
    solve_weighted_normal_equations,
    root_mean_square,
)
from .normalization import (
    normalization_terms,
    normalize_jacobian,
    normalize_inverse_apriori_covariance,
    denormalize_correction,
    denormalize_covariance,
    denormalize_inverse_covariance,
)
from .observers import EstimationObserver, NullObserver, LoggingObserver
from .parameters import (
    Parameter,
    InitialStateParameter,
    EstimatableParameterSet,
    ParameterSetLike,
)
