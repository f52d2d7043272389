"""
Visualization utilities for state estimation.

This module provides plotting functions organized by domain:
- filters: state estimates, error bounds, residuals and their autocorrelation
- particles: particle filter specific plots (ESS, weight distributions)
"""
from .filters import (
    plot_state_estimates,
    plot_error_bounds,
    plot_residuals,
    plot_autocorrelation,
)

from .particles import (
    plot_ess,
    plot_weight_histogram,
)

__all__ = [
    # filters
    'plot_state_estimates',
    'plot_error_bounds',
    'plot_residuals',
    'plot_autocorrelation',
    # particles
    'plot_ess',
    'plot_weight_histogram',
]
