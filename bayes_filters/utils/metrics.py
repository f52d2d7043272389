"""
Metrics for evaluating filter performance.

All functions take stacked filter output: means [T, n_x], covariances
[T, n_x, n_x] and, where needed, the true states [T, n_x].
"""
import numpy as np


def compute_mse(estimated, true):
    """
    Mean squared error over every element.

    Parameters
    ----------
    estimated : ndarray
    true : ndarray
        Same shape as estimated

    Returns
    -------
    float
    """
    return np.mean((np.asarray(estimated) - np.asarray(true))**2)


def compute_rmse(estimated, true):
    """Root mean squared error."""
    return np.sqrt(compute_mse(estimated, true))


def compute_nees(m_filt, P_filt, xs, regularize=1e-8):
    """
    Normalized estimation error squared, e' P^{-1} e with e = x - m.

    A consistent filter gives NEES values distributed as chi-squared with
    n_x degrees of freedom.

    Parameters
    ----------
    m_filt : ndarray [T, n_x]
    P_filt : ndarray [T, n_x, n_x]
    xs : ndarray [T, n_x]
        True states
    regularize : float
        Added to the diagonal of every P before solving

    Returns
    -------
    ndarray [T]
    """
    errors = xs - m_filt
    n_x = errors.shape[1]
    P_reg = P_filt + regularize * np.eye(n_x)
    scaled = np.linalg.solve(P_reg, errors[..., None])[..., 0]
    return np.sum(errors * scaled, axis=1)


def compute_nis(innovations, S_innov):
    """
    Normalized innovation squared, v' S^{-1} v.

    Parameters
    ----------
    innovations : ndarray [T, n_y]
    S_innov : ndarray [T, n_y, n_y]
        Innovation covariances (P_yy from the UKF update)

    Returns
    -------
    ndarray [T]
    """
    v = np.asarray(innovations, dtype=float)
    scaled = np.linalg.solve(S_innov, v[..., None])[..., 0]
    return np.sum(v * scaled, axis=1)


def compute_symmetry_error(P_filt):
    """Relative asymmetry ||P - P'||_F / ||P||_F per time step (0 for P = 0)."""
    asym = np.linalg.norm(P_filt - np.swapaxes(P_filt, 1, 2), axis=(1, 2))
    norms = np.linalg.norm(P_filt, axis=(1, 2))
    return np.divide(asym, norms, out=np.zeros_like(asym), where=norms > 0)


def compute_min_eigenvalues(P_filt):
    """Smallest eigenvalue of each covariance; negative means P lost definiteness."""
    return np.linalg.eigvalsh(P_filt)[:, 0]


def residual_autocorrelation(residuals, max_lag=None):
    """
    Normalized autocorrelation of residual sequences at non-negative lags.

    r[l] = sum_t e[t] e[t+l] / sum_t e[t]^2, so r[0] = 1. A well-tuned
    filter has innovations with r[l] close to zero for l > 0. Each column of
    a [T, n] input is treated as its own series; an all-zero column gives
    r = 0.

    Parameters
    ----------
    residuals : ndarray [T] or [T, n]
    max_lag : int, optional
        Largest lag returned (default T - 1)

    Returns
    -------
    lags : ndarray [max_lag + 1]
    r : ndarray [max_lag + 1] for 1-D input, [max_lag + 1, n] otherwise
    """
    e = np.asarray(residuals, dtype=float)
    if e.ndim not in (1, 2):
        raise ValueError(f"residuals must be [T] or [T, n], got shape {e.shape}")
    series = e.reshape(len(e), -1)
    T = series.shape[0]
    if max_lag is None:
        max_lag = T - 1
    max_lag = min(max_lag, T - 1)

    full = np.column_stack([np.correlate(col, col, mode='full')[T - 1:] for col in series.T])
    r0 = full[0]
    r = np.divide(full, r0, out=np.zeros_like(full), where=r0 > 0)[:max_lag + 1]
    return np.arange(max_lag + 1), (r[:, 0] if e.ndim == 1 else r)


def bound_exceedance(m_filt, P_filt, xs, n_sigma=1.0):
    """
    Fraction of time steps where the estimation error leaves the n-sigma bound.

    Parameters
    ----------
    m_filt : ndarray [T, n_x]
    P_filt : ndarray [T, n_x, n_x]
    xs : ndarray [T, n_x]
    n_sigma : float

    Returns
    -------
    ndarray [n_x]
        Per-state fraction in [0, 1]
    """
    errors = np.abs(xs - m_filt)
    bounds = n_sigma * np.sqrt(np.maximum(np.diagonal(P_filt, axis1=1, axis2=2), 0.0))
    return np.mean(errors > bounds, axis=0)
