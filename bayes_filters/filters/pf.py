"""Bootstrap (sequential importance resampling) particle filter implementation."""
import logging
import numbers

import numpy as np
from scipy.stats import multivariate_normal

from .common import as_covariance, as_vector, validate_belief, wrap_angles
from ..config import ParticleFilterOptions
from ..exceptions import ConfigurationError, DegenerateWeightsError, DimensionMismatchError

logger = logging.getLogger(__name__)


def systematic_resample(w, rng):
    """Systematic resampling (low variance): one uniform offset, N evenly spaced positions."""
    N = len(w)
    cumsum = np.cumsum(w)
    u = rng.uniform(0, 1.0 / N) + np.arange(N) / N
    return np.clip(np.searchsorted(cumsum, u, side='right'), 0, N - 1)


def stratified_resample(w, rng):
    """Stratified resampling: one independent uniform draw inside each of N strata."""
    N = len(w)
    cumsum = np.cumsum(w)
    u = (np.arange(N) + rng.uniform(0, 1.0, N)) / N
    return np.clip(np.searchsorted(cumsum, u, side='right'), 0, N - 1)


def residual_resample(w, rng):
    """Residual resampling: floor(N w_i) deterministic copies, remainder drawn multinomially."""
    N = len(w)
    counts = np.floor(N * w).astype(int)
    indices = np.repeat(np.arange(N), counts)

    n_rest = N - len(indices)
    if n_rest > 0:
        residual = N * w - counts
        residual /= residual.sum()
        indices = np.concatenate([indices, rng.choice(N, size=n_rest, p=residual)])
    return indices


def multinomial_resample(w, rng):
    """Multinomial resampling: N independent draws (highest variance)."""
    N = len(w)
    return rng.choice(N, size=N, p=w)


RESAMPLERS = {
    'systematic': systematic_resample,
    'stratified': stratified_resample,
    'residual': residual_resample,
    'multinomial': multinomial_resample,
}


def effective_sample_size(w):
    """ESS = 1 / sum(w^2) for normalized weights w."""
    return 1.0 / np.sum(w ** 2)


def additive_gaussian_sampler(f, Q):
    """
    Build a transition sampler x[k+1] = f(x[k], u) + w, w ~ N(0, Q).

    Parameters
    ----------
    f : callable
        Deterministic transition: f(x, u) -> x_next for a single particle
    Q : ndarray [n_x, n_x]
        Process noise covariance

    Returns
    -------
    callable
        sampler(particles, u, rng) -> particles
    """
    Q = as_covariance(Q, name='Process noise covariance')

    def sampler(particles, u, rng):
        N, n_x = particles.shape
        propagated = np.array([f(p, u) for p in particles], dtype=float).reshape(N, -1)
        return propagated + rng.multivariate_normal(np.zeros(n_x), Q, size=N)

    return sampler


def gaussian_likelihood(h, R, angle_indices=None):
    """
    Build a likelihood p(y | x) = N(y; h(x, u), R).

    Parameters
    ----------
    h : callable
        Measurement function: h(x, u) -> y for a single particle
    R : ndarray [n_y, n_y]
        Measurement noise covariance
    angle_indices : list of int, optional
        Measurement indices whose residuals are wrapped to [-pi, pi]

    Returns
    -------
    callable
        likelihood(particles, y, u) -> ndarray [N]
    """
    R = as_covariance(R, name='Measurement noise covariance')
    density = multivariate_normal(mean=np.zeros(R.shape[0]), cov=R)

    def likelihood(particles, y, u):
        y_pred = np.array([as_vector(h(p, u)) for p in particles])
        diff = wrap_angles(as_vector(y) - y_pred, angle_indices)
        return np.atleast_1d(density.pdf(diff))

    return likelihood


class ParticleFilter:
    """
    Particle filter for nonlinear, non-Gaussian systems.

    Sequential importance resampling with the transition as proposal.

    Parameters
    ----------
    transition_sampler : callable
        sampler(particles [N, n_x], u, rng) -> particles [N, n_x]; draws
        its own process noise for every particle
    likelihood : callable
        likelihood(particles [N, n_x], y, u) -> ndarray [N] of p(y | x_i) >= 0
    n_particles : int
        Number of particles
    initial_mean : ndarray [n_x]
    initial_covariance : ndarray [n_x, n_x]
    options : ParticleFilterOptions, optional
        Estimation method and resampling policy
    rng : numpy.random.Generator, optional

    Examples
    --------
    >>> pf = ParticleFilter(sampler, likelihood, 1000, [2.0, 0.0], 0.01 * np.eye(2),
    ...                     rng=np.random.default_rng(1))
    >>> for y in ys:
    ...     x_corr, P_corr = pf.correct(y)
    ...     pf.predict()
    """

    def __init__(self, transition_sampler, likelihood, n_particles, initial_mean,
                 initial_covariance, options=None, rng=None):
        if not callable(transition_sampler):
            raise ConfigurationError("transition_sampler must be callable")
        if not callable(likelihood):
            raise ConfigurationError("likelihood must be callable")
        if options is None:
            options = ParticleFilterOptions()
        if not isinstance(options, ParticleFilterOptions):
            raise ConfigurationError(
                f"options must be ParticleFilterOptions, got {type(options).__name__}"
            )

        self.transition_sampler = transition_sampler
        self.likelihood = likelihood
        self.options = options
        self.rng = rng if rng is not None else np.random.default_rng()
        self.initialize(n_particles, initial_mean, initial_covariance)

    def initialize(self, n_particles, mean, covariance):
        """
        Draw n_particles samples from N(mean, covariance) with uniform weights.

        Resets the time index and resampling counters.
        """
        if (isinstance(n_particles, bool) or not isinstance(n_particles, numbers.Real)
                or not float(n_particles).is_integer() or n_particles < 1):
            raise ConfigurationError(f"n_particles must be a positive integer, got {n_particles}")
        m, P = validate_belief(mean, covariance)
        if np.linalg.eigvalsh(P).min() < -1e-12 * max(np.abs(P).max(), 1.0):
            raise ConfigurationError("Initial covariance must be positive semi-definite")

        self.N = int(n_particles)
        self.dim_x = len(m)
        self._particles = self.rng.multivariate_normal(m, P, size=self.N)
        self._w = np.full(self.N, 1.0 / self.N)

        self.k = 0
        self.resample_count = 0
        self.last_ess = float(self.N)
        self._n_corrections = 0

    @property
    def particles(self):
        """Particle states [N, n_x] (copy)."""
        return self._particles.copy()

    @property
    def weights(self):
        """Normalized particle weights [N] (copy)."""
        return self._w.copy()

    @property
    def state(self):
        """Current state estimate."""
        return self.get_state_estimate()[0]

    @property
    def state_covariance(self):
        """Weighted particle covariance around the current estimate."""
        return self.get_state_estimate()[1]

    def effective_sample_size(self):
        """ESS of the current weights, between 1 and N."""
        return effective_sample_size(self._w)

    def get_state_estimate(self):
        """
        Extract the state estimate from the particle set.

        Returns
        -------
        x : ndarray [n_x]
            Weighted mean ('mean') or highest-weight particle ('maxweight')
        P : ndarray [n_x, n_x]
            Weighted covariance of the particles around x
        """
        if self.options.estimation_method == 'maxweight':
            x = self._particles[np.argmax(self._w)].copy()
        else:
            x = self._w @ self._particles
        diff = self._particles - x
        P = np.einsum('i,ij,ik->jk', self._w, diff, diff)
        return x, P

    def predict(self, u=()):
        """
        Propagate every particle through the transition sampler.

        Weights are unchanged.

        Returns
        -------
        x_pred : ndarray [n_x]
        P_pred : ndarray [n_x, n_x]
        """
        propagated = np.asarray(
            self.transition_sampler(self._particles.copy(), u, self.rng), dtype=float
        )
        if propagated.shape != self._particles.shape:
            raise DimensionMismatchError(
                f"Transition sampler returned shape {propagated.shape}, "
                f"expected {self._particles.shape}"
            )
        self._particles = propagated
        self.k += 1
        return self.get_state_estimate()

    def correct(self, y, u=()):
        """
        Reweight particles by the likelihood of measurement y.

        The state estimate is extracted from the reweighted set; resampling,
        if the policy triggers, happens afterwards.

        Returns
        -------
        x : ndarray [n_x]
            Corrected state estimate
        P : ndarray [n_x, n_x]
            Corrected state covariance

        Raises
        ------
        DimensionMismatchError
            If the likelihood returns the wrong number of values.
        DegenerateWeightsError
            If the likelihood is zero for every particle or returns invalid values.
        """
        y = as_vector(y, 'Measurement')
        lik = np.asarray(self.likelihood(self._particles, y, u), dtype=float)
        if lik.shape != (self.N,):
            raise DimensionMismatchError(
                f"Likelihood returned shape {lik.shape}, expected ({self.N},)"
            )
        if not np.all(np.isfinite(lik)) or np.any(lik < 0):
            raise DegenerateWeightsError("Likelihood returned negative or non-finite values")

        with np.errstate(divide='ignore'):
            log_w = np.log(self._w) + np.log(lik)
        log_max = np.max(log_w)
        if not np.isfinite(log_max):
            raise DegenerateWeightsError(
                f"Measurement has zero likelihood under all {self.N} particles at step {self.k}"
            )
        w = np.exp(log_w - log_max)
        self._w = w / w.sum()
        self._n_corrections += 1

        estimate = self.get_state_estimate()
        self.last_ess = self.effective_sample_size()
        if self._resampling_due():
            self.resample()
        return estimate

    def _resampling_due(self):
        if self.options.trigger_method == 'interval':
            return self._n_corrections % self.options.sampling_interval == 0
        return self.last_ess < self.options.min_effective_particle_ratio * self.N

    def resample(self):
        """Resample particles in proportion to their weights and reset weights to 1/N."""
        resampler = RESAMPLERS[self.options.resampling_method]
        idx = resampler(self._w, self.rng)
        self._particles = self._particles[idx]
        self._w = np.full(self.N, 1.0 / self.N)
        self.resample_count += 1
        logger.debug("Resampled %d particles (%s) at step %d, ESS was %.1f",
                     self.N, self.options.resampling_method, self.k, self.last_ess)


def particle_filter(transition_sampler, likelihood, m0, P0, ys, n_particles=1000,
                    us=None, options=None, rng=None):
    """
    Run the particle filter over a measurement sequence.

    Each step corrects with ys[t] and then predicts to t+1.

    Parameters
    ----------
    transition_sampler : callable
        sampler(particles, u, rng) -> particles
    likelihood : callable
        likelihood(particles, y, u) -> [N]
    m0 : ndarray [n_x]
        Initial mean
    P0 : ndarray [n_x, n_x]
        Initial covariance
    ys : ndarray [T, n_y] or [T]
        Measurements
    n_particles : int
        Number of particles
    us : sequence of length T, optional
        Auxiliary inputs per step
    options : ParticleFilterOptions, optional
    rng : np.random.Generator

    Returns
    -------
    m_filt : ndarray [T, n_x]
    P_filt : ndarray [T, n_x, n_x]
    ess : ndarray [T]
        Effective sample size after each correction, before resampling
    resample_count : int
    """
    pf = ParticleFilter(transition_sampler, likelihood, n_particles, m0, P0, options, rng)
    ys = np.asarray(ys, dtype=float)
    if ys.ndim == 1:
        ys = ys.reshape(-1, 1)
    T, n_x = ys.shape[0], pf.dim_x

    m_filt = np.zeros((T, n_x))
    P_filt = np.zeros((T, n_x, n_x))
    ess = np.zeros(T)

    for t in range(T):
        u = () if us is None else us[t]
        m_filt[t], P_filt[t] = pf.correct(ys[t], u)
        ess[t] = pf.last_ess
        pf.predict(u)

    return m_filt, P_filt, ess, pf.resample_count
