#########################################################################################
##
##                        RESIDUAL AND PARTIALS MATRIX ASSEMBLY
##                             (estimation/assembler.py)
##
##         Queries one observation manager per (observable type, link ends)
##         group and stacks measured-minus-computed residuals and partial
##         derivatives in the canonical order of the observation set.
##
#########################################################################################

# IMPORTS ===============================================================================

from __future__ import annotations

from concurrent.futures import ThreadPoolExecutor
from typing import Mapping, Protocol, runtime_checkable

import numpy as np

from ..errors import ObservationShapeError, UnregisteredObservableError
from ..observations import ObservableType, ObservationSet
from ..utils.logger import LoggerManager
from .aggregation import RowRange, row_ranges


__all__ = ["ObservationManager", "ResidualAndJacobianAssembler"]

_logger = LoggerManager().get_logger("assembler")


# EXTERNAL INTERFACE ====================================================================

@runtime_checkable
class ObservationManager(Protocol):
    """Model of one observable type, evaluated against the live dynamics state.

    Must be idempotent for a fixed dynamics state.
    """

    def compute_observations_with_partials(
        self,
        times: np.ndarray,
        link_ends,
        reference_link_end,
    ) -> tuple[np.ndarray, np.ndarray]: ...


# ASSEMBLER =============================================================================

class ResidualAndJacobianAssembler:
    """Build the stacked residual vector and partials matrix.

    Parameters
    ----------
    observation_managers : mapping
        ``ObservableType -> ObservationManager``.
    max_workers : int, optional
        Groups are evaluated on a thread pool of this size when larger than
        one, sequentially otherwise. Every group writes into its own
        pre-computed row range, so the result does not depend on scheduling.

    Example
    -------
    .. code-block:: python

        assembler = ResidualAndJacobianAssembler({ObservableType.ONE_WAY_RANGE: ranges})
        residuals, jacobian = assembler.assemble(observations, parameter_vector_size=6)
    """

    def __init__(self, observation_managers: Mapping, max_workers: int | None = None):
        if max_workers is not None and int(max_workers) < 1:
            raise ValueError(f"max_workers must be >= 1, got {max_workers}")

        self.observation_managers = {
            ObservableType(k): v for k, v in observation_managers.items()
        }
        self.max_workers = max_workers


    def get_observation_manager(self, observable) -> ObservationManager:
        """Registered manager of *observable*.

        Raises
        ------
        UnregisteredObservableError
            If no manager is registered for the observable type.
        """
        observable = ObservableType(observable)
        try:
            return self.observation_managers[observable]
        except KeyError:
            raise UnregisteredObservableError(
                observable, registered=self.observation_managers
            ) from None


    def assemble(
        self,
        observation_set: ObservationSet,
        parameter_vector_size: int,
    ) -> tuple[np.ndarray, np.ndarray]:
        """Evaluate all groups and stack the results.

        Parameters
        ----------
        observation_set : ObservationSet
            Measurements.
        parameter_vector_size : int
            Number of columns of the partials matrix.

        Returns
        -------
        residuals : np.ndarray
            ``measured - computed``, shape (n_obs,).
        jacobian : np.ndarray
            Partials of the computed observations, shape (n_obs, n_params).
        """
        n = int(parameter_vector_size)
        ranges = row_ranges(observation_set)

        # unregistered types are fatal before any manager is evaluated
        for rr in ranges:
            self.get_observation_manager(rr.observable)

        total = ranges[-1].stop if ranges else 0
        residuals = np.zeros(total)
        jacobian = np.zeros((total, n))

        if self.max_workers is not None and self.max_workers > 1 and len(ranges) > 1:
            with ThreadPoolExecutor(max_workers=self.max_workers) as executor:
                futures = [
                    executor.submit(self._fill_group, observation_set, rr, n, residuals, jacobian)
                    for rr in ranges
                ]
                # re-raises the first failure in canonical order
                for future in futures:
                    future.result()
        else:
            for rr in ranges:
                self._fill_group(observation_set, rr, n, residuals, jacobian)

        return residuals, jacobian


    def _fill_group(self, observation_set, rr: RowRange, n, residuals, jacobian) -> None:
        record = observation_set[rr.observable, rr.link_ends]
        manager = self.get_observation_manager(rr.observable)

        computed, partials = manager.compute_observations_with_partials(
            record.times, rr.link_ends, record.reference_link_end
        )
        computed = np.asarray(computed, dtype=float).reshape(-1)
        partials = np.asarray(partials, dtype=float)

        rows = rr.stop - rr.start
        if computed.size != rows:
            raise ObservationShapeError(
                f"Observation manager for {rr.observable.name}, {rr.link_ends!r} "
                f"returned {computed.size} values for {rows} observations"
            )
        if partials.shape != (rows, n):
            raise ObservationShapeError(
                f"Observation manager for {rr.observable.name}, {rr.link_ends!r} "
                f"returned partials of shape {partials.shape}, expected ({rows}, {n})"
            )

        residuals[rr.start:rr.stop] = record.values - computed
        jacobian[rr.start:rr.stop, :] = partials

        _logger.debug(
            "%s %r: %d observations, rows %d:%d",
            rr.observable.name, rr.link_ends, rows, rr.start, rr.stop,
        )
