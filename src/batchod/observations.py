#########################################################################################
##
##                              OBSERVATION DATA MODEL
##                                 (observations.py)
##
##         Observable types, link ends and the ordered two-level containers
##         (observable type -> link ends -> data) holding measurements and
##         weights. Iteration over these containers is always in sorted key
##         order, which fixes the row order of residuals, weights and partials.
##
#########################################################################################

# IMPORTS ===============================================================================

from __future__ import annotations

import functools
from collections import OrderedDict
from enum import IntEnum
from typing import Iterator, Mapping, NamedTuple

import numpy as np

from .errors import EstimationConfigurationError, ObservationShapeError


__all__ = [
    "ObservableType",
    "LinkEndType",
    "LinkEndId",
    "LinkEnds",
    "ObservationRecord",
    "ObservationSet",
    "WeightSet",
    "observation_set_from_timed_values",
]


# ENUMERATIONS ==========================================================================

class ObservableType(IntEnum):
    """Category of measured quantity. The value is the outer sort key."""

    ONE_WAY_RANGE = 0
    ANGULAR_POSITION = 1
    POSITION = 2
    ONE_WAY_DOPPLER = 3
    ONE_WAY_DIFFERENCED_RANGE = 4
    N_WAY_RANGE = 5
    TWO_WAY_DOPPLER = 6
    EULER_ANGLES_313 = 7
    VELOCITY = 8


class LinkEndType(IntEnum):
    """Role of a participant in an observation link."""

    TRANSMITTER = 0
    REFLECTOR1 = 1
    REFLECTOR2 = 2
    REFLECTOR3 = 3
    REFLECTOR4 = 4
    RECEIVER = 5
    OBSERVED_BODY = 6


# LINK ENDS =============================================================================

class LinkEndId(NamedTuple):
    """Identifier of a single link end: body name and optional reference point."""

    body: str
    reference_point: str = ""


@functools.total_ordering
class LinkEnds:
    """Immutable set of link ends of one observation series.

    Parameters
    ----------
    ends : mapping
        ``LinkEndType -> LinkEndId``; plain strings and ``(body, point)``
        tuples are accepted as identifiers.

    Notes
    -----
    Instances are hashable and totally ordered by the role-sorted tuple of
    ``(role, body, reference_point)``, which is the inner canonical order of
    :class:`ObservationSet`.

    Example
    -------
    .. code-block:: python

        link = LinkEnds({
            LinkEndType.TRANSMITTER: ("Earth", "Station1"),
            LinkEndType.RECEIVER: "Vehicle",
        })
        link[LinkEndType.RECEIVER].body   # 'Vehicle'
    """

    __slots__ = ("_ends", "_key")

    def __init__(self, ends: Mapping):
        if not ends:
            raise ValueError("LinkEnds requires at least one link end")

        parsed = {}
        for role, ident in ends.items():
            role = LinkEndType(role)
            if isinstance(ident, LinkEndId):
                pass
            elif isinstance(ident, str):
                ident = LinkEndId(ident)
            elif isinstance(ident, (tuple, list)) and 1 <= len(ident) <= 2:
                ident = LinkEndId(*(str(i) for i in ident))
            else:
                raise TypeError(
                    f"Unsupported link end identifier {ident!r} for role {role.name}"
                )
            parsed[role] = ident

        self._ends = OrderedDict(sorted(parsed.items()))
        self._key = tuple(
            (int(role), ident.body, ident.reference_point)
            for role, ident in self._ends.items()
        )


    def __getitem__(self, role) -> LinkEndId:
        return self._ends[LinkEndType(role)]


    def __contains__(self, role) -> bool:
        return LinkEndType(role) in self._ends


    def __iter__(self):
        return iter(self._ends)


    def __len__(self) -> int:
        return len(self._ends)


    def items(self):
        return self._ends.items()


    @property
    def sort_key(self) -> tuple:
        return self._key


    def __hash__(self):
        return hash(self._key)


    def __eq__(self, other):
        if not isinstance(other, LinkEnds):
            return NotImplemented
        return self._key == other._key


    def __lt__(self, other):
        if not isinstance(other, LinkEnds):
            return NotImplemented
        return self._key < other._key


    def __repr__(self) -> str:
        inner = ", ".join(
            f"{role.name}={ident.body}"
            + (f"/{ident.reference_point}" if ident.reference_point else "")
            for role, ident in self._ends.items()
        )
        return f"LinkEnds({inner})"


# OBSERVATION RECORD ====================================================================

class ObservationRecord:
    """Measured values of one (observable type, link ends) series.

    Parameters
    ----------
    values : array_like
        Observation values, shape (n,).
    times : array_like
        Time tags, shape (n,).
    reference_link_end : LinkEndType
        Link end whose time tag indexes the observations.

    Notes
    -----
    Arrays are copied and marked read-only; a record never changes after
    construction.
    """

    __slots__ = ("values", "times", "reference_link_end")

    def __init__(self, values, times, reference_link_end=LinkEndType.RECEIVER):
        v = np.array(values, dtype=float).reshape(-1)
        t = np.array(times, dtype=float).reshape(-1)

        if v.size != t.size:
            raise ObservationShapeError(
                f"ObservationRecord requires values and times with same length, "
                f"got {v.size} values and {t.size} times"
            )

        v.flags.writeable = False
        t.flags.writeable = False

        self.values = v
        self.times = t
        self.reference_link_end = LinkEndType(reference_link_end)


    def __len__(self) -> int:
        return self.values.size


    def __repr__(self) -> str:
        return (
            f"ObservationRecord(n={len(self)}, "
            f"reference_link_end={self.reference_link_end.name})"
        )


# ORDERED TWO-LEVEL CONTAINERS ==========================================================

def _as_link_ends(link_ends) -> LinkEnds:
    return link_ends if isinstance(link_ends, LinkEnds) else LinkEnds(link_ends)


class _TwoLevelSet:
    """Shared machinery of :class:`ObservationSet` and :class:`WeightSet`.

    Storage is a plain dict of dicts; every read access sorts the keys so the
    order never depends on insertion history.
    """

    def __init__(self):
        self._data: dict = {}


    def _store(self, observable, link_ends, leaf) -> None:
        observable = ObservableType(observable)
        link_ends = _as_link_ends(link_ends)
        self._data.setdefault(observable, {})[link_ends] = leaf


    def observable_types(self) -> list[ObservableType]:
        """Observable types in canonical order."""
        return sorted(self._data)


    def link_ends(self, observable) -> list[LinkEnds]:
        """Link ends of *observable* in canonical order."""
        return sorted(self._data.get(ObservableType(observable), {}))


    def groups(self) -> Iterator[tuple]:
        """Yield ``(observable, link_ends, leaf)`` in canonical order."""
        for observable in self.observable_types():
            inner = self._data[observable]
            for link_ends in sorted(inner):
                yield observable, link_ends, inner[link_ends]


    def __iter__(self):
        return self.groups()


    def __len__(self) -> int:
        return sum(len(inner) for inner in self._data.values())


    def __contains__(self, key) -> bool:
        if isinstance(key, tuple) and len(key) == 2:
            observable, link_ends = key
            inner = self._data.get(ObservableType(observable), {})
            return _as_link_ends(link_ends) in inner
        return ObservableType(key) in self._data


    def __getitem__(self, key):
        if isinstance(key, tuple) and len(key) == 2:
            observable, link_ends = key
            return self._data[ObservableType(observable)][_as_link_ends(link_ends)]
        inner = self._data[ObservableType(key)]
        return OrderedDict((le, inner[le]) for le in sorted(inner))


    def to_nested(self) -> OrderedDict:
        """Return the content as nested ordered dicts in canonical order."""
        nested = OrderedDict()
        for observable, link_ends, leaf in self.groups():
            nested.setdefault(observable, OrderedDict())[link_ends] = leaf
        return nested


    def __repr__(self) -> str:
        return (
            f"{type(self).__name__}(observables="
            f"{[o.name for o in self.observable_types()]}, groups={len(self)})"
        )


class ObservationSet(_TwoLevelSet):
    """All measurements of one estimation call.

    Mapping ``ObservableType -> LinkEnds -> ObservationRecord``. The sorted
    iteration order is the canonical order in which residuals, weights and
    partial-derivative rows are concatenated.

    Example
    -------
    .. code-block:: python

        obs = ObservationSet()
        obs.add(ObservableType.ONE_WAY_RANGE, link, values, times)
        for observable, link_ends, record in obs:
            ...
    """

    def add(
        self,
        observable,
        link_ends,
        values,
        times=None,
        reference_link_end=LinkEndType.RECEIVER,
    ) -> "ObservationSet":
        """Add a series; *values* may also be a ready :class:`ObservationRecord`."""
        if isinstance(values, ObservationRecord):
            record = values
        else:
            if times is None:
                raise ValueError("times must be given when values is not an ObservationRecord")
            record = ObservationRecord(values, times, reference_link_end)
        self._store(observable, link_ends, record)
        return self


    @classmethod
    def from_nested(cls, nested: Mapping) -> "ObservationSet":
        """Build from ``{observable: {link_ends: ObservationRecord}}``."""
        obs = cls()
        for observable, inner in nested.items():
            for link_ends, record in inner.items():
                if not isinstance(record, ObservationRecord):
                    raise TypeError(
                        f"Expected ObservationRecord leaves, got {type(record).__name__}"
                    )
                obs.add(observable, link_ends, record)
        return obs


    @property
    def total_size(self) -> int:
        """Total number of observations over all groups."""
        return sum(len(record) for _, _, record in self.groups())


class WeightSet(_TwoLevelSet):
    """Per-observation scalar weights, shaped like an :class:`ObservationSet`."""

    def add(self, observable, link_ends, weights) -> "WeightSet":
        w = np.array(weights, dtype=float).reshape(-1)
        if not np.all(np.isfinite(w)) or np.any(w < 0.0):
            raise EstimationConfigurationError(
                f"Weights for observable type {ObservableType(observable).name}, "
                f"{_as_link_ends(link_ends)!r} must be finite and non-negative"
            )
        w.flags.writeable = False
        self._store(observable, link_ends, w)
        return self


    @classmethod
    def from_nested(cls, nested: Mapping) -> "WeightSet":
        """Build from ``{observable: {link_ends: weights}}``."""
        ws = cls()
        for observable, inner in nested.items():
            for link_ends, weights in inner.items():
                ws.add(observable, link_ends, weights)
        return ws


    @classmethod
    def constant(cls, observations: ObservationSet, weight: float = 1.0) -> "WeightSet":
        """Same weight for every observation of *observations*."""
        ws = cls()
        for observable, link_ends, record in observations.groups():
            ws.add(observable, link_ends, np.full(len(record), float(weight)))
        return ws


    @classmethod
    def per_observable(cls, observations: ObservationSet, weights: Mapping) -> "WeightSet":
        """One weight per observable type; every type present must be listed."""
        ws = cls()
        for observable, link_ends, record in observations.groups():
            if observable not in weights:
                raise KeyError(f"No weight given for observable type {observable.name}")
            ws.add(observable, link_ends, np.full(len(record), float(weights[observable])))
        return ws


# CONVERSION ============================================================================

def observation_set_from_timed_values(nested: Mapping) -> ObservationSet:
    """Convert time-keyed observations into an :class:`ObservationSet`.

    Parameters
    ----------
    nested : mapping
        ``{observable: {link_ends: ({time: value}, reference_link_end)}}``.

    Returns
    -------
    ObservationSet
        Times and values split into parallel arrays, sorted by time.
    """
    obs = ObservationSet()
    for observable, inner in nested.items():
        for link_ends, (timed_values, reference_link_end) in inner.items():
            times = sorted(timed_values)
            values = [timed_values[t] for t in times]
            obs.add(observable, link_ends, values, times, reference_link_end)
    return obs
