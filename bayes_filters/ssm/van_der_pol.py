"""Van der Pol oscillator State Space Model."""
import numpy as np
from scipy.integrate import solve_ivp

from ..filters.models import AdditiveNoiseTransition, NonAdditiveNoiseMeasurement


class VanDerPol:
    """Van der Pol oscillator observed by a sensor with percentage error.

    State: [x1, x2]
    Dynamics: dx1/dt = x2, dx2/dt = mu (1 - x1^2) x2 - x1
    Observation: y = x1 (1 + v), v ~ N(0, r) (non-additive noise)

    The filters use a one-step Euler discretization with sample time dt;
    ground truth is integrated with an adaptive Runge-Kutta solver.

    Parameters
    ----------
    mu : float
        Damping parameter
    dt : float
        Filter sample time [s]
    q_diag : sequence of float
        Diagonal of the UKF process noise covariance
    r : float
        Variance of the relative measurement error v
    pf_noise_std : float
        Std of the Gaussian noise the particle sampler adds to each state
    """

    def __init__(self, mu=1.0, dt=0.05, q_diag=(0.02, 0.1), r=0.2, pf_noise_std=0.025):
        """Initialize model with given parameters."""
        self.mu = mu
        self.dt = dt
        self.r = r
        self.pf_noise_std = pf_noise_std

        self.Q = np.diag(np.asarray(q_diag, dtype=float))
        self.R = np.array([[r]])

        # Default initial state distribution
        self.m0 = np.array([2.0, 0.0])
        self.P0 = 0.01 * np.eye(2)

    def set_initial(self, m0, P0):
        """Set initial state distribution."""
        self.m0 = np.asarray(m0, dtype=float)
        self.P0 = np.asarray(P0, dtype=float)

    def f_continuous(self, x):
        """Continuous-time dynamics dx/dt; x is [2] or [N, 2]."""
        x1, x2 = x[..., 0], x[..., 1]
        return np.stack([x2, self.mu * (1 - x1**2) * x2 - x1], axis=-1)

    def f(self, x, u=()):
        """Discrete state transition (Euler step)."""
        return x + self.f_continuous(x) * self.dt

    def h(self, x, v, u=()):
        """Measurement of the first state with relative error v."""
        return np.array([x[0] * (1 + v[0])])

    def h_mean(self, x, u=()):
        """Noise-free measurement x1."""
        return np.array([x[0]])

    def simulate(self, T, rng, x0=None):
        """Generate true states and noisy measurements.

        Parameters
        ----------
        T : int
            Number of samples (times 0, dt, ..., (T-1) dt)
        rng : numpy.random.Generator
        x0 : ndarray [2], optional
            Initial state. If None, uses self.m0.

        Returns
        -------
        t : ndarray [T]
            Sample times
        xs : ndarray [T, 2]
            True states
        ys : ndarray [T, 1]
            Measurements x1 (1 + v)
        """
        if x0 is None:
            x0 = self.m0.copy()

        t = np.arange(T) * self.dt
        if T == 1:
            xs = np.atleast_2d(np.asarray(x0, dtype=float))
        else:
            sol = solve_ivp(lambda _, x: self.f_continuous(x), (0.0, t[-1]), x0,
                            t_eval=t, rtol=1e-8, atol=1e-10)
            xs = sol.y.T

        ys = xs[:, 0] * (1 + np.sqrt(self.r) * rng.standard_normal(T))
        return t, xs, ys.reshape(-1, 1)

    def transition(self):
        """UKF transition with additive process noise Q."""
        return AdditiveNoiseTransition(self.f, self.Q)

    def measurement(self):
        """UKF measurement with non-additive relative error of variance r."""
        return NonAdditiveNoiseMeasurement(self.h, self.R)

    def pf_sampler(self, particles, u, rng):
        """Propagate all particles one Euler step and add Gaussian noise.

        Parameters
        ----------
        particles : ndarray [N, 2]
        u : any
            Unused auxiliary inputs
        rng : numpy.random.Generator

        Returns
        -------
        particles : ndarray [N, 2]
        """
        propagated = self.f(particles)
        return propagated + self.pf_noise_std * rng.standard_normal(particles.shape)

    def likelihood(self, particles, y, u=()):
        """p(y | x) assuming the relative error (x1 - y) / x1 ~ N(0, r).

        Parameters
        ----------
        particles : ndarray [N, 2]
        y : ndarray [1]

        Returns
        -------
        ndarray [N]
            Likelihood of each particle; zero where x1 = 0
        """
        predicted = particles[:, 0]
        with np.errstate(divide='ignore', invalid='ignore'):
            ratio = (predicted - y[0]) / predicted
        density = np.exp(-0.5 * ratio**2 / self.r) / np.sqrt(2 * np.pi * self.r)
        return np.where(np.isfinite(ratio), density, 0.0)
