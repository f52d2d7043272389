"""Unit tests for metrics utility functions."""

import numpy as np
import pytest

from bayes_filters.utils.metrics import (
    bound_exceedance,
    compute_min_eigenvalues,
    compute_mse,
    compute_nees,
    compute_nis,
    compute_rmse,
    compute_symmetry_error,
    residual_autocorrelation,
)


class TestComputeMSE:
    """Tests for MSE computation."""

    def test_known_value(self):
        """MSE should match hand-computed value."""
        estimated = np.array([1.0, 2.0, 3.0])
        true = np.array([0.0, 0.0, 0.0])

        mse = compute_mse(estimated, true)

        # MSE = (1 + 4 + 9) / 3 = 14/3
        np.testing.assert_allclose(mse, 14.0 / 3.0)


class TestComputeRMSE:
    """Tests for RMSE computation."""

    def test_sqrt_of_mse(self):
        """RMSE should be square root of MSE."""
        estimated = np.array([1.0, 2.0, 3.0])
        true = np.array([0.0, 0.0, 0.0])

        np.testing.assert_allclose(compute_rmse(estimated, true),
                                   np.sqrt(compute_mse(estimated, true)))


class TestComputeNEES:
    """Tests for NEES computation."""

    def test_known_value(self):
        """NEES of error [1, 2] under P = diag(1, 4) is 1 + 1 = 2."""
        m_filt = np.zeros((3, 2))
        P_filt = np.array([np.diag([1.0, 4.0])] * 3)
        xs = np.tile([1.0, 2.0], (3, 1))

        nees = compute_nees(m_filt, P_filt, xs, regularize=0.0)

        np.testing.assert_allclose(nees, 2.0)

    def test_singular_covariance_regularized(self, rng):
        """Regularization should keep NEES finite for a zero covariance."""
        m_filt = rng.standard_normal((5, 2))
        xs = rng.standard_normal((5, 2))

        nees = compute_nees(m_filt, np.zeros((5, 2, 2)), xs)

        assert np.all(np.isfinite(nees))


class TestComputeNIS:
    """Tests for NIS computation."""

    def test_identity_covariance(self, rng):
        """With S = I, NIS is the squared innovation norm."""
        innovations = rng.standard_normal((20, 2))
        S_innov = np.array([np.eye(2)] * 20)

        nis = compute_nis(innovations, S_innov)

        np.testing.assert_allclose(nis, np.sum(innovations**2, axis=1))


class TestCovarianceHealth:
    """Tests for symmetry error and minimum eigenvalues."""

    def test_symmetric_has_zero_error(self):
        P_filt = np.array([np.eye(2)] * 4)
        np.testing.assert_array_equal(compute_symmetry_error(P_filt), 0.0)

    def test_relative_error(self):
        """Error should be relative to matrix norm."""
        P = np.array([[10.0, 0.1], [0.2, 10.0]])
        err = compute_symmetry_error(np.array([P] * 5))
        assert np.all(err > 0)
        assert np.all(err < 0.1)

    def test_psd_detection(self):
        """Non-PSD matrices should have negative minimum eigenvalue."""
        P_bad = np.array([[1.0, 2.0], [2.0, 1.0]])  # eigenvalues: 3, -1
        min_eig = compute_min_eigenvalues(np.array([P_bad] * 5))
        np.testing.assert_allclose(min_eig, -1.0)


class TestResidualAutocorrelation:
    """Tests for normalized residual autocorrelation."""

    def test_zero_lag_is_one(self, rng):
        lags, r = residual_autocorrelation(rng.standard_normal(100))
        assert lags[0] == 0
        np.testing.assert_allclose(r[0], 1.0)
        assert len(r) == 100

    def test_white_noise_uncorrelated(self, rng):
        """White residuals should have small correlation at non-zero lags."""
        _, r = residual_autocorrelation(rng.standard_normal(5000), max_lag=20)
        assert len(r) == 21
        assert np.all(np.abs(r[1:]) < 0.06)

    def test_correlated_sequence(self):
        """A slowly varying sequence should be strongly correlated at lag 1."""
        e = np.sin(np.linspace(0, 4 * np.pi, 400))
        _, r = residual_autocorrelation(e.reshape(-1, 1), max_lag=5)
        assert r.shape == (6, 1)
        assert r[1, 0] > 0.95

    def test_known_values(self):
        """r[l] = sum e[t] e[t+l] / sum e[t]^2."""
        lags, r = residual_autocorrelation(np.array([1.0, -1.0, 1.0]))
        np.testing.assert_array_equal(lags, [0, 1, 2])
        np.testing.assert_allclose(r, [1.0, -2.0 / 3.0, 1.0 / 3.0])

    def test_all_zero_residuals(self):
        _, r = residual_autocorrelation(np.zeros(10))
        np.testing.assert_array_equal(r, 0.0)

    def test_columns_are_separate_series(self, rng):
        """A [T, 2] error array should give one autocorrelation per state, not interleave them."""
        smooth = np.sin(np.linspace(0, 4 * np.pi, 50))
        errors = np.column_stack([smooth, rng.standard_normal(50)])

        lags, r = residual_autocorrelation(errors)

        assert len(lags) == 50
        assert r.shape == (50, 2)
        np.testing.assert_allclose(r[0], [1.0, 1.0])
        _, r_first = residual_autocorrelation(errors[:, 0])
        np.testing.assert_allclose(r[:, 0], r_first)
        assert r[1, 0] > 0.9

    def test_zero_column_alongside_nonzero(self):
        errors = np.column_stack([np.zeros(5), [1.0, -1.0, 1.0, -1.0, 1.0]])
        _, r = residual_autocorrelation(errors)
        np.testing.assert_array_equal(r[:, 0], 0.0)
        np.testing.assert_allclose(r[0, 1], 1.0)

    def test_three_dimensional_input_rejected(self):
        with pytest.raises(ValueError):
            residual_autocorrelation(np.zeros((5, 2, 2)))


class TestBoundExceedance:
    """Tests for the fraction of errors outside the sigma bound."""

    def test_fraction_per_state(self):
        m_filt = np.zeros((4, 2))
        P_filt = np.array([np.eye(2)] * 4)
        xs = np.array([[0.5, 2.0], [1.5, 0.1], [-2.0, -0.2], [0.0, 0.0]])

        exceed = bound_exceedance(m_filt, P_filt, xs, n_sigma=1.0)

        np.testing.assert_allclose(exceed, [0.5, 0.25])

    def test_gaussian_errors_about_32_percent(self, rng):
        """About 32% of Gaussian errors fall outside the 1-sigma bound."""
        T = 20000
        P_filt = np.array([np.diag([1.0, 4.0])] * T)
        xs = rng.standard_normal((T, 2)) * [1.0, 2.0]

        exceed = bound_exceedance(np.zeros((T, 2)), P_filt, xs)

        np.testing.assert_allclose(exceed, 0.3173, atol=0.015)


if __name__ == "__main__":
    pytest.main([__file__, "-v"])
