"""
Recursive Bayesian State Estimation

This package contains implementations of:
- Unscented Kalman filter and bootstrap particle filter
- Example state space models (van der Pol, range-bearing, linear Gaussian)
- Metrics, plotting and experiment logging utilities
"""
from .exceptions import (
    FilterError,
    ConfigurationError,
    DimensionMismatchError,
    NumericalInstabilityError,
    DegenerateWeightsError,
)
from .config import UKFOptions, ParticleFilterOptions
from .filters import (
    UnscentedKalmanFilter,
    ParticleFilter,
    AdditiveNoiseTransition,
    NonAdditiveNoiseTransition,
    AdditiveNoiseMeasurement,
    NonAdditiveNoiseMeasurement,
)

__version__ = "0.1.0"

__all__ = [
    'FilterError',
    'ConfigurationError',
    'DimensionMismatchError',
    'NumericalInstabilityError',
    'DegenerateWeightsError',
    'UKFOptions',
    'ParticleFilterOptions',
    'UnscentedKalmanFilter',
    'ParticleFilter',
    'AdditiveNoiseTransition',
    'NonAdditiveNoiseTransition',
    'AdditiveNoiseMeasurement',
    'NonAdditiveNoiseMeasurement',
]
