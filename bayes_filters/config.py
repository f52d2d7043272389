"""Option objects for the unscented Kalman filter and the particle filter."""
from dataclasses import asdict, dataclass, fields
from typing import Any, Dict, Optional, Sequence

from .exceptions import ConfigurationError

ESTIMATION_METHODS = ('mean', 'maxweight')
RESAMPLING_METHODS = ('systematic', 'stratified', 'residual', 'multinomial')
TRIGGER_METHODS = ('ratio', 'interval')


def _from_dict(cls, data):
    """Build an options dataclass from a dict, rejecting unknown keys."""
    known = {f.name for f in fields(cls)}
    unknown = set(data) - known
    if unknown:
        raise ConfigurationError(
            f"Unknown {cls.__name__} keys: {', '.join(sorted(unknown))}"
        )
    return cls(**data)


@dataclass
class UKFOptions:
    """
    Sigma-point scaling for the unscented Kalman filter.

    Parameters
    ----------
    alpha : float
        Spread of the sigma points around the mean, in (0, 1]
    beta : float
        Prior knowledge of the distribution (2 is optimal for Gaussians)
    kappa : float
        Secondary scaling parameter
    angle_indices : sequence of int, optional
        Measurement indices holding angles; their innovations are wrapped
        to [-pi, pi]
    """
    alpha: float = 1e-3
    beta: float = 2.0
    kappa: float = 0.0
    angle_indices: Optional[Sequence[int]] = None

    def __post_init__(self):
        if not 0.0 < self.alpha <= 1.0:
            raise ConfigurationError(f"alpha must be in (0, 1], got {self.alpha}")
        if self.beta < 0.0:
            raise ConfigurationError(f"beta must be non-negative, got {self.beta}")
        if self.angle_indices is not None:
            self.angle_indices = [int(i) for i in self.angle_indices]

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> 'UKFOptions':
        return _from_dict(cls, data)

    def to_dict(self) -> Dict[str, Any]:
        return asdict(self)


@dataclass
class ParticleFilterOptions:
    """
    State extraction and resampling policy for the particle filter.

    Parameters
    ----------
    estimation_method : str
        'mean' (weighted mean of particles) or 'maxweight' (particle with
        the largest weight)
    resampling_method : str
        'systematic', 'stratified', 'residual' or 'multinomial'
    trigger_method : str
        'ratio' resamples when ESS < min_effective_particle_ratio * N;
        'interval' resamples every sampling_interval corrections
    min_effective_particle_ratio : float
        ESS fraction in [0, 1] below which resampling triggers
    sampling_interval : int
        Number of corrections between resamples for the 'interval' trigger
    """
    estimation_method: str = 'mean'
    resampling_method: str = 'systematic'
    trigger_method: str = 'ratio'
    min_effective_particle_ratio: float = 0.5
    sampling_interval: int = 1

    def __post_init__(self):
        if self.estimation_method not in ESTIMATION_METHODS:
            raise ConfigurationError(
                f"Unknown estimation method: {self.estimation_method}"
            )
        if self.resampling_method not in RESAMPLING_METHODS:
            raise ConfigurationError(
                f"Unknown resampling method: {self.resampling_method}"
            )
        if self.trigger_method not in TRIGGER_METHODS:
            raise ConfigurationError(f"Unknown trigger method: {self.trigger_method}")
        if not 0.0 <= self.min_effective_particle_ratio <= 1.0:
            raise ConfigurationError(
                "min_effective_particle_ratio must be in [0, 1], "
                f"got {self.min_effective_particle_ratio}"
            )
        if int(self.sampling_interval) < 1:
            raise ConfigurationError(
                f"sampling_interval must be >= 1, got {self.sampling_interval}"
            )
        self.sampling_interval = int(self.sampling_interval)

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> 'ParticleFilterOptions':
        return _from_dict(cls, data)

    def to_dict(self) -> Dict[str, Any]:
        return asdict(self)
