"""Common utilities shared by the estimators."""
import numpy as np
from scipy import linalg as sla

from ..exceptions import ConfigurationError, DimensionMismatchError, NumericalInstabilityError


def as_vector(x, name='vector'):
    """
    Convert a scalar or 1-D array-like to a float vector.

    Raises
    ------
    DimensionMismatchError
        If x has more than one dimension.
    """
    v = np.atleast_1d(np.asarray(x, dtype=float))
    if v.ndim != 1:
        raise DimensionMismatchError(f"{name} must be 1-D, got shape {v.shape}")
    return v


def as_covariance(C, n=None, name='covariance', sym_tol=1e-9):
    """
    Convert a scalar or matrix to a square, symmetric float matrix.

    Parameters
    ----------
    C : float or array-like
        Covariance (a scalar is read as a 1 x 1 matrix)
    n : int, optional
        Required dimension
    name : str
        Name used in error messages
    sym_tol : float
        Relative tolerance for the symmetry check

    Returns
    -------
    ndarray [n, n]

    Raises
    ------
    ConfigurationError
        If C is not square, has the wrong size, or is not symmetric.
    """
    M = np.atleast_2d(np.asarray(C, dtype=float))
    if M.ndim != 2 or M.shape[0] != M.shape[1]:
        raise ConfigurationError(f"{name} must be square, got shape {M.shape}")
    if n is not None and M.shape[0] != n:
        raise ConfigurationError(f"{name} must be {n}x{n}, got {M.shape[0]}x{M.shape[1]}")
    if not np.all(np.isfinite(M)):
        raise ConfigurationError(f"{name} contains non-finite values")
    scale = max(np.max(np.abs(M)), 1.0)
    if np.max(np.abs(M - M.T)) > sym_tol * scale:
        raise ConfigurationError(f"{name} must be symmetric")
    return symmetrize(M)


def validate_belief(mean, covariance):
    """
    Check that a mean and covariance describe the same state space.

    Returns
    -------
    m : ndarray [n_x]
    P : ndarray [n_x, n_x]

    Raises
    ------
    ConfigurationError
        If the shapes are inconsistent.
    """
    m = np.asarray(mean, dtype=float)
    if m.ndim == 0:
        m = m.reshape(1)
    if m.ndim != 1:
        raise ConfigurationError(f"Mean must be 1-D, got shape {m.shape}")
    if not np.all(np.isfinite(m)):
        raise ConfigurationError("Mean contains non-finite values")
    P = as_covariance(covariance, n=len(m), name='State covariance')
    return m.copy(), P


def symmetrize(P):
    """Return (P + P') / 2."""
    return 0.5 * (P + P.T)


def cholesky_lower(P, what='covariance'):
    """
    Lower Cholesky factor of P.

    Raises
    ------
    NumericalInstabilityError
        If P is not positive definite or contains non-finite values.
    """
    if not np.all(np.isfinite(P)):
        raise NumericalInstabilityError(f"{what} contains non-finite values")
    try:
        return sla.cholesky(P, lower=True)
    except np.linalg.LinAlgError as exc:
        min_eig = np.linalg.eigvalsh(symmetrize(P)).min()
        raise NumericalInstabilityError(
            f"{what} is not positive definite (min eigenvalue {min_eig:.3e})"
        ) from exc


def wrap_angles(innovation, angle_indices):
    """
    Wrap specified indices of innovation to [-pi, pi].

    Parameters
    ----------
    innovation : ndarray [n_y] or [N, n_y]
        Innovation vector(s) (y - h(x))
    angle_indices : list of int or None
        Indices to wrap. If None, returns innovation unchanged.

    Returns
    -------
    ndarray
        Innovation with angles wrapped
    """
    if not angle_indices:
        return innovation

    result = np.array(innovation, dtype=float, copy=True)
    for i in angle_indices:
        result[..., i] = np.arctan2(np.sin(result[..., i]), np.cos(result[..., i]))
    return result
