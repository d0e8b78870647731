#########################################################################################
##
##                        PARTIALS MATRIX COLUMN NORMALIZATION
##                           (estimation/normalization.py)
##
##         Rescales every column of the partials matrix into [-1, 1] and applies
##         the same scaling to the a-priori information, so parameters with very
##         different magnitudes give a well-conditioned normal-equations system.
##
#########################################################################################

# IMPORTS ===============================================================================

import numpy as np

from ..errors import NormalizationError, ObservationShapeError


# FUNCTIONS =============================================================================

def normalization_terms(jacobian):
    """Scale of every column of *jacobian*.

    For each column with minimum ``m`` and maximum ``M`` the scale is ``m``
    if ``|m| > M`` and ``M`` otherwise, so the entry of largest magnitude
    maps to exactly ``+1`` or ``-1``.

    Parameters
    ----------
    jacobian : np.ndarray
        Partials matrix, shape (n_obs, n_params).

    Returns
    -------
    np.ndarray
        Scales, shape (n_params,). All ones for a matrix without rows.

    Raises
    ------
    NormalizationError
        If a column is identically zero.
    """
    H = np.asarray(jacobian, dtype=float)
    if H.ndim != 2:
        raise ObservationShapeError(
            f"Partials matrix must be 2D, got shape {H.shape}"
        )

    if H.shape[0] == 0:
        return np.ones(H.shape[1])

    minimum = H.min(axis=0)
    maximum = H.max(axis=0)
    scales = np.where(np.abs(minimum) > maximum, minimum, maximum)

    zero = np.flatnonzero(scales == 0.0)
    if zero.size:
        raise NormalizationError(int(zero[0]))

    return scales


def normalize_jacobian(jacobian):
    """Return ``(normalized_jacobian, scales)``; the input is not modified."""
    scales = normalization_terms(jacobian)
    return np.asarray(jacobian, dtype=float) / scales, scales


def normalize_inverse_apriori_covariance(inverse_covariance, scales):
    """Apply column scaling to the inverse a-priori covariance.

    ``P'[j, k] = P[j, k] / (scales[j] * scales[k])``
    """
    P = np.asarray(inverse_covariance, dtype=float)
    s = np.asarray(scales, dtype=float).reshape(-1)
    if P.shape != (s.size, s.size):
        raise ObservationShapeError(
            f"Inverse a-priori covariance has shape {P.shape}, "
            f"expected ({s.size}, {s.size})"
        )
    return P / np.outer(s, s)


def denormalize_correction(correction, scales):
    """Map a correction from normalized to physical parameter space."""
    return np.asarray(correction, dtype=float) / np.asarray(scales, dtype=float)


def denormalize_covariance(covariance, scales):
    """Physical-space covariance from the normalized-space covariance."""
    s = np.asarray(scales, dtype=float).reshape(-1)
    return np.asarray(covariance, dtype=float) / np.outer(s, s)


def denormalize_inverse_covariance(inverse_covariance, scales):
    """Physical-space information matrix from the normalized-space one."""
    s = np.asarray(scales, dtype=float).reshape(-1)
    return np.asarray(inverse_covariance, dtype=float) * np.outer(s, s)
