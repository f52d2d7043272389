"""Unit tests for filter option objects."""

import pytest

from bayes_filters import ConfigurationError, ParticleFilterOptions, UKFOptions


class TestUKFOptions:
    """Tests for UKF options."""

    def test_defaults(self):
        options = UKFOptions()
        assert options.alpha == 1e-3
        assert options.beta == 2.0
        assert options.kappa == 0.0
        assert options.angle_indices is None

    @pytest.mark.parametrize("alpha", [0.0, -0.1, 1.5])
    def test_alpha_range(self, alpha):
        with pytest.raises(ConfigurationError):
            UKFOptions(alpha=alpha)

    def test_negative_beta(self):
        with pytest.raises(ConfigurationError):
            UKFOptions(beta=-1.0)

    def test_configuration_error_is_value_error(self):
        """Callers catching ValueError should also catch configuration errors."""
        with pytest.raises(ValueError):
            UKFOptions(alpha=2.0)

    def test_from_dict_round_trip(self):
        options = UKFOptions(alpha=0.5, angle_indices=(1,))
        restored = UKFOptions.from_dict(options.to_dict())
        assert restored == options
        assert restored.angle_indices == [1]

    def test_from_dict_unknown_key(self):
        with pytest.raises(ConfigurationError, match="gamma"):
            UKFOptions.from_dict({'alpha': 0.5, 'gamma': 1.0})


class TestParticleFilterOptions:
    """Tests for particle filter options."""

    def test_defaults(self):
        options = ParticleFilterOptions()
        assert options.estimation_method == 'mean'
        assert options.resampling_method == 'systematic'
        assert options.trigger_method == 'ratio'
        assert options.min_effective_particle_ratio == 0.5
        assert options.sampling_interval == 1

    @pytest.mark.parametrize("kwargs", [
        {'estimation_method': 'median'},
        {'resampling_method': 'branching'},
        {'trigger_method': 'always'},
        {'min_effective_particle_ratio': 1.5},
        {'min_effective_particle_ratio': -0.1},
        {'sampling_interval': 0},
    ])
    def test_invalid_values(self, kwargs):
        with pytest.raises(ConfigurationError):
            ParticleFilterOptions(**kwargs)

    def test_from_dict(self):
        options = ParticleFilterOptions.from_dict({'resampling_method': 'residual',
                                                   'trigger_method': 'interval',
                                                   'sampling_interval': 3})
        assert options.resampling_method == 'residual'
        assert options.sampling_interval == 3
        assert options.to_dict()['trigger_method'] == 'interval'

    def test_from_dict_unknown_key(self):
        with pytest.raises(ConfigurationError):
            ParticleFilterOptions.from_dict({'n_particles': 100})


if __name__ == "__main__":
    pytest.main([__file__, "-v"])
