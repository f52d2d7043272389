"""Linear Gaussian State Space Model (LGSSM)."""
import numpy as np

from ..filters.models import AdditiveNoiseMeasurement, AdditiveNoiseTransition


class LinearGaussian:
    """Linear Gaussian SSM.

    x[k+1] = A x[k] + B v[k],  y[k] = C x[k] + D w[k],  v, w ~ N(0, I)

    Parameters
    ----------
    A : ndarray [n_x, n_x]
        State transition matrix
    B : ndarray [n_x, n_v]
        Process noise coefficient
    C : ndarray [n_y, n_x]
        Observation matrix
    D : ndarray [n_y, n_w]
        Observation noise coefficient
    """

    def __init__(self, A, B, C, D):
        """Initialize model with given matrices."""
        self.A = np.asarray(A, dtype=float)
        self.B = np.asarray(B, dtype=float)
        self.C = np.asarray(C, dtype=float)
        self.D = np.asarray(D, dtype=float)
        self.Q = self.B @ self.B.T
        self.R = self.D @ self.D.T

    def f(self, x, u=()):
        """State transition; x is [n_x] or [N, n_x]."""
        return x @ self.A.T

    def h(self, x, u=()):
        """Observation function."""
        return x @ self.C.T

    def transition(self):
        return AdditiveNoiseTransition(self.f, self.Q)

    def measurement(self):
        return AdditiveNoiseMeasurement(self.h, self.R)

    def simulate(self, x0, T, rng=None):
        """Simulate states and observations from x0.

        If rng is None the system is simulated without noise.

        Returns
        -------
        xs : ndarray [T, n_x]
            Latent states x[0..T-1]
        ys : ndarray [T, n_y]
            Observations
        """
        n_x, n_y = self.A.shape[0], self.C.shape[0]
        n_v, n_w = self.B.shape[1], self.D.shape[1]

        xs = np.zeros((T, n_x))
        ys = np.zeros((T, n_y))
        x = np.asarray(x0, dtype=float).copy()

        for t in range(T):
            y = self.C @ x
            if rng is not None:
                y = y + self.D @ rng.standard_normal(n_w)
            xs[t], ys[t] = x, y
            x = self.A @ x
            if rng is not None:
                x = x + self.B @ rng.standard_normal(n_v)

        return xs, ys

    def kalman_update(self, m_pred, P_pred, y):
        """Exact Kalman filter update of a predicted belief."""
        S = self.C @ P_pred @ self.C.T + self.R
        K = np.linalg.solve(S.T, self.C @ P_pred.T).T
        m = m_pred + K @ (y - self.C @ m_pred)
        P = P_pred - K @ S @ K.T
        return m, P

    def kalman_predict(self, m, P):
        """Exact Kalman filter prediction."""
        return self.A @ m, self.A @ P @ self.A.T + self.Q
