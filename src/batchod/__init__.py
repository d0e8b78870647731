from importlib import metadata

try:
    __version__ = metadata.version("batchod")
except Exception:
    __version__ = "unknown"

from .utils.logger import LoggerManager
from .errors import (
    EstimationConfigurationError,
    UnregisteredObservableError,
    DynamicsConfigurationError,
    ObservationShapeError,
    EstimationNumericalError,
    NormalizationError,
    SingularNormalEquationsError,
)
from .observations import (
    ObservableType,
    LinkEndType,
    LinkEndId,
    LinkEnds,
    ObservationRecord,
    ObservationSet,
    WeightSet,
    observation_set_from_timed_values,
)
from .estimation import (
    ConvergenceChecker,
    EstimationInput,
    EstimationManager,
    EstimationOutput,
    EstimationObserver,
    LoggingObserver,
    Parameter,
    InitialStateParameter,
    EstimatableParameterSet,
)
