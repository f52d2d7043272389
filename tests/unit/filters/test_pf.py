"""Unit tests for Particle Filter implementation."""

import numpy as np
import pytest
from scipy.stats import multivariate_normal

from bayes_filters import (
    ConfigurationError,
    DegenerateWeightsError,
    DimensionMismatchError,
    ParticleFilter,
    ParticleFilterOptions,
)
from bayes_filters.filters.pf import (
    RESAMPLERS,
    additive_gaussian_sampler,
    effective_sample_size,
    gaussian_likelihood,
    particle_filter,
    systematic_resample,
)


@pytest.fixture
def simple_pf_model():
    """Scalar random walk observed directly with unit-variance noise."""
    def sampler(particles, u, rng):
        return 0.9 * particles + 0.1 * rng.standard_normal(particles.shape)

    def likelihood(particles, y, u):
        return np.exp(-0.5 * (y[0] - particles[:, 0])**2)

    return sampler, likelihood, np.array([0.0]), np.array([[1.0]])


class TestResampling:
    """Tests for resampling schemes."""

    @pytest.mark.parametrize("method", sorted(RESAMPLERS))
    def test_preserves_count_and_valid_indices(self, rng, method):
        """Resampling should preserve particle count and produce valid indices."""
        N = 100
        weights = rng.dirichlet(np.ones(N))

        indices = RESAMPLERS[method](weights, rng)

        assert len(indices) == N
        assert np.all(indices >= 0)
        assert np.all(indices < N)

    @pytest.mark.parametrize("method", ['systematic', 'stratified', 'residual'])
    def test_uniform_weights_keep_every_particle(self, rng, method):
        """With equal weights the low-variance schemes should pick each particle once."""
        N = 64
        weights = np.full(N, 1.0 / N)

        indices = RESAMPLERS[method](weights, rng)

        np.testing.assert_array_equal(np.sort(indices), np.arange(N))

    def test_multinomial_uniform_preserves_distribution(self, rng):
        """Multinomial resampling of equally weighted particles should keep their mean and spread."""
        N = 5000
        particles = rng.standard_normal(N)
        weights = np.full(N, 1.0 / N)

        resampled = particles[RESAMPLERS['multinomial'](weights, rng)]

        assert abs(resampled.mean() - particles.mean()) < 0.1
        assert abs(resampled.std() - particles.std()) < 0.1

    @pytest.mark.parametrize("method", sorted(RESAMPLERS))
    def test_single_heavy_particle(self, rng, method):
        """All weight on one particle should select only that particle."""
        weights = np.zeros(50)
        weights[17] = 1.0

        indices = RESAMPLERS[method](weights, rng)

        assert np.all(indices == 17)

    def test_systematic_counts_close_to_expected(self, rng):
        """Systematic resampling copies each particle floor or ceil of N w_i times."""
        N = 200
        weights = rng.dirichlet(np.ones(N))

        counts = np.bincount(systematic_resample(weights, rng), minlength=N)

        assert np.all(np.abs(counts - N * weights) < 1.0 + 1e-9)


class TestEffectiveSampleSize:
    """Tests for ESS."""

    def test_uniform_weights(self):
        """Equal weights give ESS = N."""
        np.testing.assert_allclose(effective_sample_size(np.full(10, 0.1)), 10.0)

    def test_degenerate_weights(self):
        """One particle holding all weight gives ESS = 1."""
        w = np.zeros(10)
        w[3] = 1.0
        np.testing.assert_allclose(effective_sample_size(w), 1.0)


class TestParticleFilter:
    """Tests for the stateful particle filter."""

    def test_weights_normalized_after_correct(self, rng, simple_pf_model):
        """Weights should sum to 1 and ESS should lie in [1, N]."""
        sampler, likelihood, m0, P0 = simple_pf_model
        options = ParticleFilterOptions(min_effective_particle_ratio=0.0)
        pf = ParticleFilter(sampler, likelihood, 500, m0, P0, options=options, rng=rng)

        pf.correct([0.8])

        np.testing.assert_allclose(pf.weights.sum(), 1.0)
        assert 1.0 <= pf.effective_sample_size() <= 500
        assert pf.effective_sample_size() < 500

    def test_initial_particles_follow_prior(self, rng):
        """Initial particles should be drawn from N(m0, P0)."""
        pf = ParticleFilter(lambda p, u, r: p, lambda p, y, u: np.ones(len(p)), 20000,
                            [2.0, 0.0], 0.01 * np.eye(2), rng=rng)

        np.testing.assert_allclose(pf.particles.mean(axis=0), [2.0, 0.0], atol=0.01)
        np.testing.assert_allclose(np.cov(pf.particles.T), 0.01 * np.eye(2), atol=0.002)
        np.testing.assert_allclose(pf.weights, 1.0 / 20000)

    def test_all_zero_likelihood_raises(self, rng, simple_pf_model):
        """Zero likelihood for every particle should raise DegenerateWeightsError."""
        sampler, _, m0, P0 = simple_pf_model
        pf = ParticleFilter(sampler, lambda p, y, u: np.zeros(len(p)), 1000, m0, P0, rng=rng)

        with pytest.raises(DegenerateWeightsError):
            pf.correct([0.0])

    def test_underflowing_likelihood_handled(self, rng, simple_pf_model):
        """Tiny but positive likelihoods should still normalize in log space."""
        sampler, _, m0, P0 = simple_pf_model
        pf = ParticleFilter(sampler, lambda p, y, u: 1e-300 * np.exp(-p[:, 0]**2), 1000,
                            m0, P0, rng=rng)

        x, P = pf.correct([0.0])

        assert np.all(np.isfinite(x))
        np.testing.assert_allclose(pf.weights.sum(), 1.0)

    def test_negative_likelihood_raises(self, rng, simple_pf_model):
        """Negative likelihood values should raise DegenerateWeightsError."""
        sampler, _, m0, P0 = simple_pf_model
        pf = ParticleFilter(sampler, lambda p, y, u: -np.ones(len(p)), 100, m0, P0, rng=rng)

        with pytest.raises(DegenerateWeightsError):
            pf.correct([0.0])

    def test_wrong_likelihood_length_raises(self, rng, simple_pf_model):
        """Likelihood must return one value per particle."""
        sampler, _, m0, P0 = simple_pf_model
        pf = ParticleFilter(sampler, lambda p, y, u: np.ones(len(p) + 1), 100, m0, P0, rng=rng)

        with pytest.raises(DimensionMismatchError):
            pf.correct([0.0])

    def test_wrong_sampler_shape_raises(self, rng, simple_pf_model):
        """Transition sampler must keep the particle array shape."""
        _, likelihood, m0, P0 = simple_pf_model
        pf = ParticleFilter(lambda p, u, r: p[:-1], likelihood, 100, m0, P0, rng=rng)

        with pytest.raises(DimensionMismatchError):
            pf.predict()

    @pytest.mark.parametrize("n_particles", [0, -5, 2.5, None, '100', 'many', True,
                                             float('nan'), float('inf')])
    def test_invalid_particle_count_raises(self, rng, simple_pf_model, n_particles):
        """n_particles must be a positive integer; anything else is a ConfigurationError."""
        sampler, likelihood, m0, P0 = simple_pf_model

        with pytest.raises(ConfigurationError):
            ParticleFilter(sampler, likelihood, n_particles, m0, P0, rng=rng)

    @pytest.mark.parametrize("n_particles", [50, np.int64(50), 50.0])
    def test_integral_particle_counts_accepted(self, rng, simple_pf_model, n_particles):
        sampler, likelihood, m0, P0 = simple_pf_model

        pf = ParticleFilter(sampler, likelihood, n_particles, m0, P0, rng=rng)

        assert pf.N == 50
        assert pf.particles.shape[0] == 50

    def test_non_callable_rejected(self, rng, simple_pf_model):
        """Sampler and likelihood must be callable."""
        _, likelihood, m0, P0 = simple_pf_model

        with pytest.raises(ConfigurationError):
            ParticleFilter(None, likelihood, 100, m0, P0, rng=rng)

    def test_indefinite_initial_covariance_rejected(self, rng, simple_pf_model):
        """Initial covariance must be positive semi-definite."""
        sampler, likelihood, _, _ = simple_pf_model

        with pytest.raises(ConfigurationError):
            ParticleFilter(sampler, likelihood, 100, [0.0, 0.0],
                           np.array([[1.0, 2.0], [2.0, 1.0]]), rng=rng)

    def test_maxweight_estimate(self, rng, simple_pf_model):
        """'maxweight' should return the particle with the largest weight."""
        sampler, likelihood, m0, P0 = simple_pf_model
        options = ParticleFilterOptions(estimation_method='maxweight',
                                        min_effective_particle_ratio=0.0)
        pf = ParticleFilter(sampler, likelihood, 300, m0, P0, options=options, rng=rng)

        x, _ = pf.correct([0.5])

        np.testing.assert_array_equal(x, pf.particles[np.argmax(pf.weights)])

    def test_mean_estimate(self, rng, simple_pf_model):
        """'mean' should return the weighted particle mean and covariance."""
        sampler, likelihood, m0, P0 = simple_pf_model
        options = ParticleFilterOptions(min_effective_particle_ratio=0.0)
        pf = ParticleFilter(sampler, likelihood, 300, m0, P0, options=options, rng=rng)

        x, P = pf.correct([0.5])
        w, p = pf.weights, pf.particles

        np.testing.assert_allclose(x, w @ p)
        np.testing.assert_allclose(P, [[w @ (p[:, 0] - x[0])**2]])

    def test_ratio_trigger_skips_uniform_likelihood(self, rng, simple_pf_model):
        """A flat likelihood keeps ESS = N, so the ratio trigger never fires."""
        sampler, _, m0, P0 = simple_pf_model
        pf = ParticleFilter(sampler, lambda p, y, u: np.ones(len(p)), 100, m0, P0, rng=rng)

        for _ in range(5):
            pf.correct([0.0])
            pf.predict()

        assert pf.resample_count == 0

    def test_interval_trigger(self, rng, simple_pf_model):
        """'interval' should resample every sampling_interval corrections."""
        sampler, _, m0, P0 = simple_pf_model
        options = ParticleFilterOptions(trigger_method='interval', sampling_interval=2)
        pf = ParticleFilter(sampler, lambda p, y, u: np.ones(len(p)), 100, m0, P0,
                            options=options, rng=rng)

        for _ in range(4):
            pf.correct([0.0])
            pf.predict()

        assert pf.resample_count == 2

    def test_resampling_resets_weights(self, rng, simple_pf_model):
        """After a triggered resample weights are uniform but last_ess reports the pre-resample ESS."""
        sampler, likelihood, m0, P0 = simple_pf_model
        options = ParticleFilterOptions(min_effective_particle_ratio=1.0)
        pf = ParticleFilter(sampler, likelihood, 200, m0, P0, options=options, rng=rng)

        pf.correct([1.5])

        assert pf.resample_count == 1
        assert pf.last_ess < 200
        np.testing.assert_allclose(pf.weights, 1.0 / 200)

    def test_predict_keeps_weights_and_advances_time(self, rng, simple_pf_model):
        """predict moves particles but not weights."""
        sampler, likelihood, m0, P0 = simple_pf_model
        options = ParticleFilterOptions(min_effective_particle_ratio=0.0)
        pf = ParticleFilter(sampler, likelihood, 100, m0, P0, options=options, rng=rng)
        pf.correct([0.3])
        w_before = pf.weights

        pf.predict()

        np.testing.assert_array_equal(pf.weights, w_before)
        assert pf.k == 1

    def test_initialize_resets(self, rng, simple_pf_model):
        """initialize should redraw particles and reset counters."""
        sampler, likelihood, m0, P0 = simple_pf_model
        pf = ParticleFilter(sampler, likelihood, 100, m0, P0, rng=rng)
        pf.correct([2.0])
        pf.predict()

        pf.initialize(50, [1.0, 1.0], np.eye(2))

        assert pf.particles.shape == (50, 2)
        assert pf.k == 0
        assert pf.resample_count == 0
        np.testing.assert_allclose(pf.weights, 1.0 / 50)


class TestParticleFilterFunction:
    """Tests for the batch filter function."""

    def test_output_shapes(self, rng, simple_pf_model):
        """Verify correct output shapes."""
        sampler, likelihood, m0, P0 = simple_pf_model
        T, N = 50, 100
        ys = rng.standard_normal((T, 1))

        m_filt, P_filt, ess, n_resample = particle_filter(
            sampler, likelihood, m0, P0, ys, n_particles=N, rng=rng
        )

        assert m_filt.shape == (T, 1)
        assert P_filt.shape == (T, 1, 1)
        assert ess.shape == (T,)
        assert 0 <= n_resample <= T

    def test_ess_bounds(self, rng, simple_pf_model):
        """ESS should be between 1 and N."""
        sampler, likelihood, m0, P0 = simple_pf_model
        N = 100
        ys = rng.standard_normal((50, 1))

        _, _, ess, _ = particle_filter(sampler, likelihood, m0, P0, ys, n_particles=N, rng=rng)

        assert np.all(ess >= 1 - 1e-9)
        assert np.all(ess <= N + 1e-9)

    def test_reproducible_with_seed(self, simple_pf_model):
        """Same seed should give identical estimates."""
        sampler, likelihood, m0, P0 = simple_pf_model
        ys = np.linspace(-1, 1, 20)

        runs = [particle_filter(sampler, likelihood, m0, P0, ys, n_particles=200,
                                rng=np.random.default_rng(7)) for _ in range(2)]

        np.testing.assert_array_equal(runs[0][0], runs[1][0])
        np.testing.assert_array_equal(runs[0][2], runs[1][2])


class TestModelHelpers:
    """Tests for sampler and likelihood builders."""

    def test_additive_gaussian_sampler(self, rng):
        """Sampler should apply f per particle and add N(0, Q) noise."""
        Q = np.diag([0.04, 0.01])
        sampler = additive_gaussian_sampler(lambda x, u: 2 * x, Q)
        particles = np.ones((20000, 2))

        out = sampler(particles, (), rng)

        assert out.shape == (20000, 2)
        np.testing.assert_allclose(out.mean(axis=0), [2.0, 2.0], atol=0.01)
        np.testing.assert_allclose(np.cov(out.T), Q, atol=0.003)

    def test_gaussian_likelihood_matches_scipy(self):
        """Likelihood should equal the Gaussian density of the residual."""
        R = np.array([[0.5, 0.1], [0.1, 0.3]])
        likelihood = gaussian_likelihood(lambda x, u: x, R)
        particles = np.array([[0.0, 0.0], [1.0, -1.0]])
        y = np.array([0.5, 0.2])

        expected = multivariate_normal(mean=np.zeros(2), cov=R).pdf(y - particles)

        np.testing.assert_allclose(likelihood(particles, y, ()), expected)

    def test_gaussian_likelihood_wraps_angles(self):
        """Angle residuals near +/- pi should be wrapped before evaluating the density."""
        likelihood = gaussian_likelihood(lambda x, u: x, 0.01 * np.eye(1), angle_indices=[0])
        particles = np.array([[np.pi - 0.01]])

        near = likelihood(particles, np.array([-np.pi + 0.01]), ())
        far = likelihood(particles, np.array([0.0]), ())

        assert near[0] > far[0]
        assert near[0] > 1.0


if __name__ == "__main__":
    pytest.main([__file__, "-v"])
