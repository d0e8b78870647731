#########################################################################################
##
##                             ESTIMATION PROGRESS OBSERVERS
##                               (estimation/observers.py)
##
##         Hooks called by the estimation loop at fixed points of every
##         iteration. The loop never prints; progress output is a matter of
##         which observer is injected.
##
#########################################################################################

# IMPORTS ===============================================================================

import numpy as np

from ..utils.logger import LoggerManager


# BASE ==================================================================================

class EstimationObserver:
    """Base observer; every hook is a no-op.

    Subclass and override the hooks of interest.
    """

    def on_iteration_start(self, iteration, parameter_estimate):
        pass

    def on_residuals_computed(self, iteration, residuals, rms):
        pass

    def on_parameter_update(self, iteration, correction, parameter_estimate):
        pass

    def on_new_best(self, snapshot):
        pass

    def on_convergence_decision(self, iteration_count, decision):
        pass

    def on_estimation_complete(self, output):
        pass


class NullObserver(EstimationObserver):
    """Observer that does nothing."""


# LOGGING ===============================================================================

class LoggingObserver(EstimationObserver):
    """Report progress through the package logger.

    Parameters
    ----------
    logger : logging.Logger, optional
        Logger to write to; ``batchod.estimation`` by default.
    """

    def __init__(self, logger=None):
        self.logger = logger or LoggerManager().get_logger("estimation")


    def on_iteration_start(self, iteration, parameter_estimate):
        self.logger.info("iteration %d", iteration)


    def on_residuals_computed(self, iteration, residuals, rms):
        self.logger.info(
            "  %d observations, RMS residual: %.6g", np.size(residuals), rms
        )


    def on_parameter_update(self, iteration, correction, parameter_estimate):
        self.logger.info(
            "  parameter update: %s",
            np.array2string(np.asarray(correction), precision=6, separator=", "),
        )


    def on_new_best(self, snapshot):
        self.logger.debug(
            "  new best RMS residual %.6g at iteration %d",
            snapshot.rms, snapshot.iteration,
        )


    def on_convergence_decision(self, iteration_count, decision):
        for reason in decision.reasons:
            self.logger.info("estimation terminated: %s", reason)


    def on_estimation_complete(self, output):
        self.logger.info(
            "final best RMS residual %.6g after %d iterations",
            output.best_rms, output.number_of_iterations,
        )
