"""
Transition and measurement models for the unscented Kalman filter.

Whether noise enters a model additively is fixed by the model type chosen
at construction:

- AdditiveNoiseTransition:     x[k+1] = f(x[k], u) + w[k]
- NonAdditiveNoiseTransition:  x[k+1] = f(x[k], w[k], u)
- AdditiveNoiseMeasurement:    y[k] = h(x[k], u) + v[k]
- NonAdditiveNoiseMeasurement: y[k] = h(x[k], v[k], u)

u is the auxiliary input passed unchanged from predict/correct (an empty
tuple when the caller has none).
"""
import numpy as np
from scipy.linalg import block_diag

from .common import as_covariance, as_vector
from ..exceptions import ConfigurationError, DimensionMismatchError


def _stack_outputs(outputs, what):
    """Stack per-sigma-point outputs into an array [n_sigma, n_out]."""
    vectors = [as_vector(o, what) for o in outputs]
    sizes = {len(v) for v in vectors}
    if len(sizes) != 1:
        raise DimensionMismatchError(
            f"{what} returned outputs of different sizes: {sorted(sizes)}"
        )
    return np.vstack(vectors)


class _NoiseModel:
    """Function plus the covariance of the noise entering it."""

    additive = True
    kind = 'model'

    def __init__(self, fn, noise_cov):
        if not callable(fn):
            raise ConfigurationError(f"{type(self).__name__} requires a callable, got {fn!r}")
        if noise_cov is None:
            raise ConfigurationError(
                f"{type(self).__name__} requires a noise covariance"
            )
        self._fn = fn
        self._noise_cov = as_covariance(noise_cov, name=f"{self.kind} noise covariance")

    @property
    def fn(self):
        return self._fn

    @property
    def noise_cov(self):
        return self._noise_cov.copy()

    @property
    def noise_dim(self):
        return self._noise_cov.shape[0]

    def __repr__(self):
        name = getattr(self._fn, '__name__', repr(self._fn))
        return f"{type(self).__name__}(fn={name}, noise_dim={self.noise_dim})"


class _AdditiveNoise(_NoiseModel):

    def augment(self, m, P):
        """Sigma points are drawn over the state only."""
        return m, P

    def evaluate(self, sigma, n_x, u):
        """Apply fn to each sigma point: fn(x, u)."""
        return _stack_outputs([self._fn(s[:n_x], u) for s in sigma], self.kind)

    def additive_covariance(self):
        return self._noise_cov


class _NonAdditiveNoise(_NoiseModel):

    additive = False

    def augment(self, m, P):
        """Append the noise to the state: [x; 0], blkdiag(P, noise_cov)."""
        m_aug = np.concatenate([m, np.zeros(self.noise_dim)])
        return m_aug, block_diag(P, self._noise_cov)

    def evaluate(self, sigma, n_x, u):
        """Apply fn to each augmented sigma point: fn(x, w, u)."""
        return _stack_outputs([self._fn(s[:n_x], s[n_x:], u) for s in sigma], self.kind)

    def additive_covariance(self):
        return None


class TransitionModel(_NoiseModel):
    kind = 'transition'


class MeasurementModel(_NoiseModel):
    kind = 'measurement'


class AdditiveNoiseTransition(_AdditiveNoise, TransitionModel):
    """State transition f(x, u) with additive process noise of covariance Q."""


class NonAdditiveNoiseTransition(_NonAdditiveNoise, TransitionModel):
    """State transition f(x, w, u) with process noise w ~ N(0, Q)."""


class AdditiveNoiseMeasurement(_AdditiveNoise, MeasurementModel):
    """Measurement h(x, u) with additive measurement noise of covariance R."""


class NonAdditiveNoiseMeasurement(_NonAdditiveNoise, MeasurementModel):
    """Measurement h(x, v, u) with measurement noise v ~ N(0, R)."""
