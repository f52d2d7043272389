"""Unscented Kalman Filter (UKF) implementation."""
import logging

import numpy as np
from scipy.linalg import cho_solve as cholesky_solve

from .common import (
    as_vector, cholesky_lower, symmetrize, validate_belief, wrap_angles,
)
from .models import MeasurementModel, TransitionModel
from ..config import UKFOptions
from ..exceptions import ConfigurationError, DimensionMismatchError, NumericalInstabilityError

logger = logging.getLogger(__name__)


def ukf_weights(n, alpha=1e-3, beta=2.0, kappa=0.0):
    """
    Merwe scaled sigma-point weights.

    Parameters
    ----------
    n : int
        Dimension of the (possibly augmented) state
    alpha, beta, kappa : float
        UKF scaling parameters

    Returns
    -------
    W_m : ndarray [2n+1]
        Mean weights (sum to one)
    W_c : ndarray [2n+1]
        Covariance weights
    gamma : float
        Sigma-point spread, sqrt(n + lambda)
    """
    lam = alpha**2 * (n + kappa) - n
    if n + lam <= 0:
        raise ConfigurationError(
            f"n + lambda must be positive (n={n}, alpha={alpha}, kappa={kappa})"
        )
    gamma = np.sqrt(n + lam)

    W_m = np.full(2 * n + 1, 1 / (2 * (n + lam)))
    W_c = W_m.copy()
    W_m[0] = lam / (n + lam)
    W_c[0] = lam / (n + lam) + (1 - alpha**2 + beta)

    return W_m, W_c, gamma


def sigma_points(m, P, gamma):
    """
    Generate 2n+1 sigma points around (m, P).

    The first point is the mean; the rest are m +/- gamma times the columns
    of the lower Cholesky factor of P.

    Raises
    ------
    NumericalInstabilityError
        If P is not positive definite.
    """
    n = len(m)
    sqrt_P = cholesky_lower(P, 'Sigma-point covariance')

    sigma = np.zeros((2 * n + 1, n))
    sigma[0] = m
    for i in range(n):
        sigma[i + 1] = m + gamma * sqrt_P[:, i]
        sigma[n + i + 1] = m - gamma * sqrt_P[:, i]
    return sigma


def _unscented_transform(model, m, P, u, options):
    """Propagate sigma points of (m, P), augmented as the model requires."""
    n_x = len(m)
    m_aug, P_aug = model.augment(m, P)
    W_m, W_c, gamma = ukf_weights(len(m_aug), options.alpha, options.beta, options.kappa)
    sigma = sigma_points(m_aug, P_aug, gamma)
    outputs = model.evaluate(sigma, n_x, u)
    return sigma[:, :n_x], outputs, W_m, W_c


def ukf_predict(m, P, transition, u=(), options=None):
    """
    UKF prediction step.

    Parameters
    ----------
    m : ndarray [n_x]
        Current mean
    P : ndarray [n_x, n_x]
        Current covariance
    transition : TransitionModel
        Additive or non-additive state transition
    u : any
        Auxiliary inputs passed to the transition function
    options : UKFOptions, optional

    Returns
    -------
    m_pred : ndarray [n_x]
    P_pred : ndarray [n_x, n_x]
    """
    options = options if options is not None else UKFOptions()
    n_x = len(m)

    _, sigma_pred, W_m, W_c = _unscented_transform(transition, m, P, u, options)
    if sigma_pred.shape[1] != n_x:
        raise DimensionMismatchError(
            f"State transition returned {sigma_pred.shape[1]} states, expected {n_x}"
        )

    m_pred = W_m @ sigma_pred
    d = sigma_pred - m_pred
    P_pred = np.einsum('i,ij,ik->jk', W_c, d, d)

    Q = transition.additive_covariance()
    if Q is not None:
        if Q.shape != (n_x, n_x):
            raise DimensionMismatchError(
                f"Process noise is {Q.shape[0]}x{Q.shape[1]}, state has {n_x} elements"
            )
        P_pred = P_pred + Q
    return m_pred, symmetrize(P_pred)


def _predict_measurement(m, P, measurement, u, options):
    """Predicted measurement mean, innovation covariance and cross covariance."""
    angle_indices = options.angle_indices
    sigma_x, sigma_obs, W_m, W_c = _unscented_transform(measurement, m, P, u, options)
    n_y = sigma_obs.shape[1]

    y_pred = W_m @ sigma_obs
    if angle_indices:
        for i in angle_indices:
            y_pred[i] = np.arctan2(W_m @ np.sin(sigma_obs[:, i]),
                                   W_m @ np.cos(sigma_obs[:, i]))

    dy = wrap_angles(sigma_obs - y_pred, angle_indices)
    P_yy = np.einsum('i,ij,ik->jk', W_c, dy, dy)
    P_xy = np.einsum('i,ij,ik->jk', W_c, sigma_x - m, dy)

    R = measurement.additive_covariance()
    if R is not None:
        if R.shape != (n_y, n_y):
            raise DimensionMismatchError(
                f"Measurement noise is {R.shape[0]}x{R.shape[1]}, "
                f"measurement function returns {n_y} values"
            )
        P_yy = P_yy + R
    return y_pred, symmetrize(P_yy), P_xy


def _check_measurement_size(y, y_pred):
    if len(y) != len(y_pred):
        raise DimensionMismatchError(
            f"Measurement has {len(y)} elements, "
            f"measurement function returns {len(y_pred)}"
        )


def _check_finite(values, what):
    if not np.all(np.isfinite(values)):
        raise NumericalInstabilityError(f"{what} is not finite: {values}")


def ukf_update(m_pred, P_pred, y, measurement, u=(), options=None):
    """
    UKF update step.

    Parameters
    ----------
    m_pred : ndarray [n_x]
        Predicted mean
    P_pred : ndarray [n_x, n_x]
        Predicted covariance
    y : ndarray [n_y] or float
        Measurement
    measurement : MeasurementModel
        Additive or non-additive measurement model
    u : any
        Auxiliary inputs passed to the measurement function
    options : UKFOptions, optional

    Returns
    -------
    m : ndarray [n_x]
        Corrected mean
    P : ndarray [n_x, n_x]
        Corrected covariance
    innov : ndarray [n_y]
        Innovation y - y_pred
    P_yy : ndarray [n_y, n_y]
        Innovation covariance

    Raises
    ------
    DimensionMismatchError
        If y does not match the measurement function's output size.
    NumericalInstabilityError
        If the innovation or corrected covariance is not positive definite,
        or the innovation or corrected mean is not finite (e.g. a NaN measurement).
    """
    options = options if options is not None else UKFOptions()
    y = as_vector(y, 'Measurement')

    y_pred, P_yy, P_xy = _predict_measurement(m_pred, P_pred, measurement, u, options)
    _check_measurement_size(y, y_pred)

    L = cholesky_lower(P_yy, 'Innovation covariance')
    K = cholesky_solve((L, True), P_xy.T).T
    innov = wrap_angles(y - y_pred, options.angle_indices)
    _check_finite(innov, 'Innovation')

    m = m_pred + K @ innov
    _check_finite(m, 'Corrected mean')
    P = symmetrize(P_pred - K @ P_yy @ K.T)
    cholesky_lower(P, 'Corrected state covariance')
    return m, P, innov, P_yy


class UnscentedKalmanFilter:
    """
    Discrete-time unscented Kalman filter.

    The filter holds the current belief (mean, covariance). predict and
    correct update it and also return the new belief, so a caller may keep
    its own copy.

    Parameters
    ----------
    transition : TransitionModel
        AdditiveNoiseTransition or NonAdditiveNoiseTransition
    measurement : MeasurementModel
        AdditiveNoiseMeasurement or NonAdditiveNoiseMeasurement
    initial_mean : ndarray [n_x]
        Initial state guess
    initial_covariance : ndarray [n_x, n_x]
        Initial state covariance
    options : UKFOptions, optional
        Sigma-point scaling and angle handling

    Examples
    --------
    >>> ukf = UnscentedKalmanFilter(
    ...     AdditiveNoiseTransition(f, Q), NonAdditiveNoiseMeasurement(h, R),
    ...     initial_mean=[2.0, 0.0], initial_covariance=0.01 * np.eye(2))
    >>> for y in ys:
    ...     x_corr, P_corr, innov = ukf.correct(y)
    ...     ukf.predict()
    """

    def __init__(self, transition, measurement, initial_mean, initial_covariance,
                 options=None):
        if not isinstance(transition, TransitionModel):
            raise ConfigurationError(
                "transition must be an AdditiveNoiseTransition or NonAdditiveNoiseTransition"
            )
        if not isinstance(measurement, MeasurementModel):
            raise ConfigurationError(
                "measurement must be an AdditiveNoiseMeasurement or NonAdditiveNoiseMeasurement"
            )
        if options is None:
            options = UKFOptions()
        if not isinstance(options, UKFOptions):
            raise ConfigurationError(f"options must be UKFOptions, got {type(options).__name__}")

        m, P = validate_belief(initial_mean, initial_covariance)
        n_x = len(m)
        if transition.additive and transition.noise_dim != n_x:
            raise ConfigurationError(
                f"Additive process noise must be {n_x}x{n_x}, "
                f"got {transition.noise_dim}x{transition.noise_dim}"
            )
        # Reject scaling parameters that are invalid for any sigma-point set used.
        for model in (transition, measurement):
            n_aug = n_x if model.additive else n_x + model.noise_dim
            ukf_weights(n_aug, options.alpha, options.beta, options.kappa)

        self.transition = transition
        self.measurement = measurement
        self.options = options
        self.dim_x = n_x
        self._m = m
        self._P = P
        self.k = 0
        # P_yy of the most recent correct(), None before the first one
        self.last_innovation_covariance = None

    @property
    def state(self):
        """Current state estimate (copy)."""
        return self._m.copy()

    @property
    def state_covariance(self):
        """Current state covariance (copy)."""
        return self._P.copy()

    def set_belief(self, mean, covariance):
        """Replace the current belief, e.g. to restart with an inflated covariance."""
        m, P = validate_belief(mean, covariance)
        if len(m) != self.dim_x:
            raise ConfigurationError(f"Mean must have {self.dim_x} elements, got {len(m)}")
        logger.debug("UKF belief reset at step %d", self.k)
        self._m, self._P = m, P

    def predict(self, u=()):
        """
        Advance the belief one step through the state transition.

        Returns
        -------
        m_pred : ndarray [n_x]
            x[k+1|k]
        P_pred : ndarray [n_x, n_x]
            P[k+1|k]
        """
        self._m, self._P = ukf_predict(self._m, self._P, self.transition, u, self.options)
        self.k += 1
        return self.state, self.state_covariance

    def correct(self, y, u=()):
        """
        Fold measurement y into the belief.

        Returns
        -------
        m : ndarray [n_x]
            x[k|k]
        P : ndarray [n_x, n_x]
            P[k|k]
        innov : ndarray [n_y]
            Innovation (measured minus predicted measurement)
        """
        m, P, innov, P_yy = ukf_update(self._m, self._P, y, self.measurement, u, self.options)
        self._m, self._P = m, P
        self.last_innovation_covariance = P_yy
        return self.state, self.state_covariance, innov

    def residual(self, y, u=()):
        """
        Innovation and innovation covariance for y, leaving the belief unchanged.

        Returns
        -------
        innov : ndarray [n_y]
        P_yy : ndarray [n_y, n_y]
        """
        y = as_vector(y, 'Measurement')
        y_pred, P_yy, _ = _predict_measurement(self._m, self._P, self.measurement, u, self.options)
        _check_measurement_size(y, y_pred)
        innov = wrap_angles(y - y_pred, self.options.angle_indices)
        _check_finite(innov, 'Innovation')
        return innov, P_yy


def unscented_kalman_filter(transition, measurement, m0, P0, ys, us=None, options=None,
                            return_innovation_covariances=False):
    """
    Run the UKF over a measurement sequence.

    Each step corrects with ys[t] and then predicts to t+1, so m0/P0 is the
    belief at the first measurement time given no data, x[0|-1].

    Parameters
    ----------
    transition : TransitionModel
    measurement : MeasurementModel
    m0 : ndarray [n_x]
        Initial mean
    P0 : ndarray [n_x, n_x]
        Initial covariance
    ys : ndarray [T, n_y] or [T]
        Measurements
    us : sequence of length T, optional
        Auxiliary inputs per step
    options : UKFOptions, optional
    return_innovation_covariances : bool
        Also return P_yy of every step (for NIS)

    Returns
    -------
    m_filt : ndarray [T, n_x]
        Corrected means x[t|t]
    P_filt : ndarray [T, n_x, n_x]
        Corrected covariances
    innovations : ndarray [T, n_y]
    S_innov : ndarray [T, n_y, n_y]
        Only if return_innovation_covariances is True
    """
    ukf = UnscentedKalmanFilter(transition, measurement, m0, P0, options)
    ys = np.asarray(ys, dtype=float)
    if ys.ndim == 1:
        ys = ys.reshape(-1, 1)
    T, n_x = ys.shape[0], ukf.dim_x

    m_filt = np.zeros((T, n_x))
    P_filt = np.zeros((T, n_x, n_x))
    innovations = np.zeros((T, ys.shape[1]))
    S_innov = np.zeros((T, ys.shape[1], ys.shape[1]))

    for t in range(T):
        u = () if us is None else us[t]
        m_filt[t], P_filt[t], innovations[t] = ukf.correct(ys[t], u)
        S_innov[t] = ukf.last_innovation_covariance
        ukf.predict(u)

    if return_innovation_covariances:
        return m_filt, P_filt, innovations, S_innov
    return m_filt, P_filt, innovations
