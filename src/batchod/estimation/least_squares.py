#########################################################################################
##
##                     WEIGHTED REGULARIZED LEAST-SQUARES SOLVER
##                           (estimation/least_squares.py)
##
#########################################################################################

# IMPORTS ===============================================================================

from __future__ import annotations

from dataclasses import dataclass

import numpy as np
import scipy.linalg as sci_linalg

from ..errors import ObservationShapeError, SingularNormalEquationsError


# RESULT CONTAINER ======================================================================

@dataclass(frozen=True)
class LeastSquaresSolution:
    """Solution of one weighted normal-equations system.

    Attributes
    ----------
    correction : np.ndarray
        Parameter correction ``dx`` (normalized space), shape (n,).
    covariance : np.ndarray
        ``(Hᵀ W H + P)⁻¹``, shape (n, n).
    inverse_covariance : np.ndarray
        ``Hᵀ W H + P``, shape (n, n).
    """

    correction: np.ndarray
    covariance: np.ndarray
    inverse_covariance: np.ndarray


# SOLVER ================================================================================

def solve_weighted_normal_equations(
    jacobian: np.ndarray,
    residuals: np.ndarray,
    weights: np.ndarray,
    inverse_apriori_covariance: np.ndarray | None = None,
) -> LeastSquaresSolution:
    """Solve the weighted, regularized linear least-squares problem.

    Minimizes ``(r - H dx)ᵀ W (r - H dx) + dxᵀ P dx`` with the closed form

    .. math::

        dx = (H^T W H + P)^{-1} H^T W r

    where ``W = diag(weights)``. The normal matrix is factorized with a
    Cholesky decomposition.

    Parameters
    ----------
    jacobian : np.ndarray
        Partials matrix ``H``, shape (m, n).
    residuals : np.ndarray
        Residual vector ``r``, shape (m,).
    weights : np.ndarray
        Diagonal of the weight matrix, shape (m,).
    inverse_apriori_covariance : np.ndarray, optional
        Regularization ``P``, shape (n, n). Zero if omitted.

    Returns
    -------
    LeastSquaresSolution

    Raises
    ------
    ObservationShapeError
        If the array shapes are inconsistent.
    SingularNormalEquationsError
        If ``Hᵀ W H + P`` is singular or not positive definite.

    Notes
    -----
    A system without rows is well defined: the correction is zero and the
    covariance is the pseudo-inverse of ``P``.
    """
    H = np.asarray(jacobian, dtype=float)
    r = np.asarray(residuals, dtype=float).reshape(-1)
    w = np.asarray(weights, dtype=float).reshape(-1)

    if H.ndim != 2:
        raise ObservationShapeError(f"Partials matrix must be 2D, got shape {H.shape}")

    m, n = H.shape

    if r.size != m:
        raise ObservationShapeError(
            f"Residual vector has length {r.size}, partials matrix has {m} rows"
        )
    if w.size != m:
        raise ObservationShapeError(
            f"Weight vector has length {w.size}, partials matrix has {m} rows"
        )

    if inverse_apriori_covariance is None:
        P = np.zeros((n, n))
    else:
        P = np.asarray(inverse_apriori_covariance, dtype=float)
        if P.shape != (n, n):
            raise ObservationShapeError(
                f"Inverse a-priori covariance has shape {P.shape}, expected ({n}, {n})"
            )

    if m == 0:
        return LeastSquaresSolution(
            correction=np.zeros(n),
            covariance=np.linalg.pinv(P),
            inverse_covariance=P.copy(),
        )

    # Hᵀ W H without forming the dense m x m weight matrix
    HtW = H.T * w
    normal_matrix = HtW @ H + P
    rhs = HtW @ r

    try:
        factor = sci_linalg.cho_factor(normal_matrix, lower=True, check_finite=True)
    except (np.linalg.LinAlgError, ValueError) as err:
        raise SingularNormalEquationsError(
            f"Normal equations matrix ({n} x {n}) is singular or not positive "
            f"definite (condition number {_condition_number(normal_matrix):.3g}): {err}"
        ) from err

    correction = sci_linalg.cho_solve(factor, rhs)
    covariance = sci_linalg.cho_solve(factor, np.eye(n))

    return LeastSquaresSolution(
        correction=correction,
        covariance=covariance,
        inverse_covariance=normal_matrix,
    )


# HELPERS ===============================================================================

def root_mean_square(vector) -> float:
    """RMS of the entries of *vector*; ``0.0`` for an empty vector."""
    v = np.asarray(vector, dtype=float).reshape(-1)
    if v.size == 0:
        return 0.0
    return float(np.sqrt(np.mean(v * v)))


def _condition_number(matrix) -> float:
    try:
        return float(np.linalg.cond(matrix))
    except np.linalg.LinAlgError:
        return float("inf")
