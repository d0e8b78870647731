#########################################################################################
##
##                            ESTIMATABLE PARAMETER SET
##                             (estimation/parameters.py)
##
##         Minimal parameter container exposing the interface the estimation
##         loop relies on: read the full parameter vector, write it back, and
##         report whether dynamical (initial state) parameters are estimated.
##
#########################################################################################

# IMPORTS ===============================================================================

from __future__ import annotations

from typing import Any, Protocol, Sequence, runtime_checkable

import numpy as np

from ..errors import ObservationShapeError


__all__ = [
    "Parameter",
    "InitialStateParameter",
    "EstimatableParameterSet",
    "ParameterSetLike",
]


# INTERFACE =============================================================================

@runtime_checkable
class ParameterSetLike(Protocol):
    """Interface of any parameter set usable by the estimation manager."""

    has_dynamical_parameters: bool

    def get_full_parameter_values(self) -> np.ndarray: ...

    def reset_parameter_values(self, values: np.ndarray) -> None: ...


# PARAMETER DECLARATION =================================================================

class Parameter:
    """Single estimated quantity, scalar or vector valued.

    Parameters
    ----------
    name : str
        Parameter identifier.
    value : float or array_like
        Initial value; its size fixes the parameter size.
    dynamical : bool
        ``True`` for parameters that require re-propagating the dynamics
        when they change (initial states).
    target : object, optional
        Object receiving the value on every :meth:`set`.
    attribute : str, optional
        Dotted attribute path on *target* (e.g. ``"drag.coefficient"``).

    Notes
    -----
    Scalar parameters are written to the target as ``float``, vector
    parameters as a copy of the array.

    Example
    -------
    .. code-block:: python

        cd = Parameter("drag_coefficient", 2.2, target=vehicle, attribute="drag.cd")
        cd.set(2.4)          # also sets vehicle.drag.cd = 2.4
    """

    def __init__(
        self,
        name: str,
        value: float | Sequence[float] = 0.0,
        dynamical: bool = False,
        target: Any | None = None,
        attribute: str | None = None,
    ):
        self.name = name
        self.dynamical = bool(dynamical)
        self.target = target
        self.attribute = attribute

        if target is not None and attribute is None:
            raise ValueError("attribute must be provided when target is specified")

        arr = np.array(value, dtype=float)
        if arr.ndim > 1:
            raise ValueError(f"Parameter '{name}': value must be scalar or 1D")
        self._scalar = arr.ndim == 0
        self._value = arr.reshape(-1)

        if self._value.size == 0:
            raise ValueError(f"Parameter '{name}': value must not be empty")

        self.set(self._value)


    @property
    def size(self) -> int:
        return self._value.size


    @property
    def value(self):
        """Current value (``float`` for scalar parameters)."""
        return float(self._value[0]) if self._scalar else self._value.copy()


    @value.setter
    def value(self, new_value) -> None:
        self.set(new_value)


    @property
    def entry_names(self) -> list[str]:
        """One name per scalar entry of the parameter."""
        if self.size == 1:
            return [self.name]
        return [f"{self.name}[{i}]" for i in range(self.size)]


    def set(self, value) -> None:
        """Set the value and push it to the bound target, if any."""
        arr = np.array(value, dtype=float).reshape(-1)
        if arr.size != self._value.size:
            raise ObservationShapeError(
                f"Parameter '{self.name}' has size {self._value.size}, "
                f"got value of size {arr.size}"
            )
        self._value = arr

        if self.target is not None:
            obj = self.target
            attrs = self.attribute.split(".")
            for attr in attrs[:-1]:
                obj = getattr(obj, attr)
            setattr(obj, attrs[-1], self.value)


    def __repr__(self) -> str:
        kind = "dynamical" if self.dynamical else "static"
        if self.target is not None:
            return (
                f"Parameter(name={self.name!r}, value={self.value}, {kind}, "
                f"target={type(self.target).__name__}, attribute={self.attribute!r})"
            )
        return f"Parameter(name={self.name!r}, value={self.value}, {kind})"


def InitialStateParameter(name, state, **kwargs):
    """Factory for dynamical (initial state) parameters.

    Parameters
    ----------
    name : str
        Parameter identifier, typically the body name.
    state : array_like
        Initial state vector.

    Returns
    -------
    Parameter
    """
    return Parameter(name=name, value=state, dynamical=True, **kwargs)


# PARAMETER SET =========================================================================

class EstimatableParameterSet:
    """Ordered collection of :class:`Parameter` objects.

    Dynamical parameters come first in the full parameter vector, followed by
    the remaining parameters, each group in declaration order.

    Parameters
    ----------
    parameters : list[Parameter]
        Parameters to estimate.
    """

    def __init__(self, parameters: Sequence[Parameter]):
        if not parameters:
            raise ValueError("EstimatableParameterSet requires at least one parameter")

        names = [p.name for p in parameters]
        duplicates = sorted({n for n in names if names.count(n) > 1})
        if duplicates:
            raise ValueError(f"Duplicate parameter names: {duplicates}")

        self.parameters: list[Parameter] = (
            [p for p in parameters if p.dynamical]
            + [p for p in parameters if not p.dynamical]
        )


    @property
    def size(self) -> int:
        """Length of the full parameter vector."""
        return sum(p.size for p in self.parameters)


    @property
    def has_dynamical_parameters(self) -> bool:
        return any(p.dynamical for p in self.parameters)


    @property
    def dynamical_parameters(self) -> list[Parameter]:
        return [p for p in self.parameters if p.dynamical]


    @property
    def parameter_names(self) -> list[str]:
        """One name per entry of the full parameter vector."""
        return [name for p in self.parameters for name in p.entry_names]


    def get_full_parameter_values(self) -> np.ndarray:
        """Concatenated values of all parameters."""
        return np.concatenate([np.atleast_1d(p.value) for p in self.parameters])


    def reset_parameter_values(self, values) -> None:
        """Distribute *values* over the parameters, in vector order."""
        x = np.asarray(values, dtype=float).reshape(-1)
        if x.size != self.size:
            raise ObservationShapeError(
                f"Expected parameter vector of length {self.size}, got {x.size}"
            )

        k = 0
        for p in self.parameters:
            p.set(x[k:k + p.size])
            k += p.size


    def __len__(self) -> int:
        return len(self.parameters)


    def __repr__(self) -> str:
        return f"EstimatableParameterSet({[p.name for p in self.parameters]})"
