#########################################################################################
##
##                          OBSERVATION DATA AGGREGATION
##                            (estimation/aggregation.py)
##
##         Counting and concatenation of per-group observation data in the
##         canonical (observable type, link ends) order.
##
#########################################################################################

# IMPORTS ===============================================================================

from __future__ import annotations

from collections import OrderedDict
from typing import NamedTuple

import numpy as np

from ..errors import ObservationShapeError
from ..observations import LinkEnds, ObservableType, ObservationSet, WeightSet


# ROW RANGES ============================================================================

class RowRange(NamedTuple):
    """Rows ``start:stop`` of the stacked system owned by one observation group."""

    observable: ObservableType
    link_ends: LinkEnds
    start: int
    stop: int


def row_ranges(observations: ObservationSet) -> list[RowRange]:
    """Pre-compute the non-overlapping row slice of every observation group."""
    ranges = []
    start = 0
    for observable, link_ends, record in observations.groups():
        stop = start + len(record)
        ranges.append(RowRange(observable, link_ends, start, stop))
        start = stop
    return ranges


# COUNTS ================================================================================

def count_observations_per_link_ends(
    observations: ObservationSet,
    observable,
) -> list[int]:
    """Number of observations of each link-ends group of *observable*."""
    if observable not in observations:
        return []
    return [len(record) for record in observations[observable].values()]


def count_observations(
    observations: ObservationSet,
) -> tuple[OrderedDict, int]:
    """Observation count per observable type and in total.

    Returns
    -------
    per_type : OrderedDict[ObservableType, int]
        Counts in canonical order.
    total : int
        Sum of ``per_type`` values.
    """
    per_type: OrderedDict = OrderedDict()
    total = 0
    for observable in observations.observable_types():
        n = sum(count_observations_per_link_ends(observations, observable))
        per_type[observable] = n
        total += n
    return per_type, total


# WEIGHTS ===============================================================================

def concatenate_weights(
    weights: WeightSet,
    observations: ObservationSet | None = None,
) -> np.ndarray:
    """Stack all weight vectors into one array in canonical order.

    Parameters
    ----------
    weights : WeightSet
        Per-observation weights.
    observations : ObservationSet, optional
        When given, the weights are taken in the group order of
        *observations* and every group must have a weight vector of matching
        length.

    Returns
    -------
    np.ndarray
        Concatenated weight vector (empty if there are no groups).
    """
    parts: list[np.ndarray] = []

    if observations is None:
        for _, _, w in weights.groups():
            parts.append(w)
    else:
        for observable, link_ends, record in observations.groups():
            if (observable, link_ends) not in weights:
                raise ObservationShapeError(
                    f"No weights given for observable type {observable.name}, "
                    f"{link_ends!r}"
                )
            w = weights[observable, link_ends]
            if w.size != len(record):
                raise ObservationShapeError(
                    f"Weights for observable type {observable.name}, {link_ends!r} "
                    f"have length {w.size}, but there are {len(record)} observations"
                )
            parts.append(w)

    return np.concatenate(parts) if parts else np.array([], dtype=float)
