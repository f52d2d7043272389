"""Filtering algorithm implementations."""
from .ukf import (
    UnscentedKalmanFilter,
    unscented_kalman_filter,
    ukf_predict,
    ukf_update,
    ukf_weights,
    sigma_points,
)
from .pf import (
    ParticleFilter,
    particle_filter,
    systematic_resample,
    stratified_resample,
    residual_resample,
    multinomial_resample,
    effective_sample_size,
    additive_gaussian_sampler,
    gaussian_likelihood,
)
from .models import (
    AdditiveNoiseTransition,
    NonAdditiveNoiseTransition,
    AdditiveNoiseMeasurement,
    NonAdditiveNoiseMeasurement,
)
from .common import symmetrize, wrap_angles

__all__ = [
    # Main filters
    'UnscentedKalmanFilter',
    'ParticleFilter',
    'unscented_kalman_filter',
    'particle_filter',
    # UKF components
    'ukf_predict',
    'ukf_update',
    'ukf_weights',
    'sigma_points',
    # Noise models
    'AdditiveNoiseTransition',
    'NonAdditiveNoiseTransition',
    'AdditiveNoiseMeasurement',
    'NonAdditiveNoiseMeasurement',
    # PF components
    'systematic_resample',
    'stratified_resample',
    'residual_resample',
    'multinomial_resample',
    'effective_sample_size',
    'additive_gaussian_sampler',
    'gaussian_likelihood',
    # Utilities
    'symmetrize',
    'wrap_angles',
]
