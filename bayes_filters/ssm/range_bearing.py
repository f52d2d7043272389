"""Planar target tracked by a range and bearing sensor."""
import numpy as np

from ..filters.common import wrap_angles
from ..filters.models import AdditiveNoiseMeasurement, AdditiveNoiseTransition


class RangeBearing:
    """Constant-velocity target observed in polar coordinates.

    The state is ``[x, vx, y, vy]``; the sensor at ``sensor_pos`` reports the
    distance to the target and its bearing in radians. Both the motion and
    the measurement noise are additive Gaussian.

    Parameters
    ----------
    dt : float
        Sampling interval
    q : float
        Acceleration noise std (piecewise-constant white acceleration)
    r_range : float
        Range noise std
    r_bearing : float
        Bearing noise std in radians
    sensor_pos : array-like [2], optional
        Sensor location, origin by default
    """

    ANGLE_INDICES = [1]

    def __init__(self, dt=1.0, q=0.1, r_range=0.1, r_bearing=0.05, sensor_pos=None):
        self.dt = dt
        self.q = q
        self.sensor_pos = np.zeros(2) if sensor_pos is None else np.asarray(sensor_pos, float)

        # One axis: position integrates velocity; both axes share the block
        axis_F = np.array([[1.0, dt], [0.0, 1.0]])
        axis_G = np.array([[0.5 * dt**2], [dt]])
        self.F = np.kron(np.eye(2), axis_F)
        self.Q = q**2 * np.kron(np.eye(2), axis_G @ axis_G.T)
        self.R = np.diag([r_range, r_bearing])**2

        self.m0 = np.array([5.0, 0.5, 5.0, 0.5])
        self.P0 = np.diag([0.5, 0.1, 0.5, 0.1])

    def set_initial(self, m0, P0):
        self.m0 = np.asarray(m0, dtype=float)
        self.P0 = np.asarray(P0, dtype=float)

    def f(self, x, u=()):
        """Advance one or many states ([4] or [N, 4]) by dt."""
        return x @ self.F.T

    def h(self, x, u=()):
        """Range and bearing of one or many states, shape [..., 2]."""
        offset = x[..., [0, 2]] - self.sensor_pos
        return np.stack([np.hypot(offset[..., 0], offset[..., 1]),
                         np.arctan2(offset[..., 1], offset[..., 0])], axis=-1)

    def simulate(self, T, rng, x0=None):
        """Draw a trajectory and its measurements.

        The first state is one transition after ``x0`` (``m0`` by default).
        Bearings are wrapped to [-pi, pi].

        Returns
        -------
        xs : ndarray [T, 4]
        ys : ndarray [T, 2]
        """
        x = self.m0 if x0 is None else np.asarray(x0, dtype=float)
        process_noise = rng.multivariate_normal(np.zeros(4), self.Q, size=T)
        sensor_noise = rng.multivariate_normal(np.zeros(2), self.R, size=T)

        xs = np.empty((T, 4))
        for t in range(T):
            x = self.f(x) + process_noise[t]
            xs[t] = x

        ys = wrap_angles(self.h(xs) + sensor_noise, self.ANGLE_INDICES)
        return xs, ys

    def transition(self):
        return AdditiveNoiseTransition(self.f, self.Q)

    def measurement(self):
        return AdditiveNoiseMeasurement(self.h, self.R)

    def pf_sampler(self, particles, u, rng):
        """Bootstrap proposal: push particles [N, 4] through f and add motion noise."""
        return self.f(particles) + rng.multivariate_normal(np.zeros(4), self.Q,
                                                           size=len(particles))

    def likelihood(self, particles, y, u=()):
        """Unnormalized p(y | x) for particles [N, 4], with the bearing residual wrapped."""
        residual = wrap_angles(y - self.h(particles), self.ANGLE_INDICES)
        precision = np.linalg.inv(self.R)
        return np.exp(-0.5 * np.einsum('ni,ij,nj->n', residual, precision, residual))
