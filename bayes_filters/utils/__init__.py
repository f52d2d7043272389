"""
Utility Functions.

This module contains utility functions for:
- Metrics computation
- Visualization (organized in visualization/ subfolder)
- Experiment logging
"""
from .metrics import (
    compute_mse,
    compute_rmse,
    compute_nees,
    compute_nis,
    compute_symmetry_error,
    compute_min_eigenvalues,
    residual_autocorrelation,
    bound_exceedance,
)
from .experiment_logger import ExperimentLogger

# Visualization imports from subfolder
from .visualization import (
    # filters
    plot_state_estimates,
    plot_error_bounds,
    plot_residuals,
    plot_autocorrelation,
    # particles
    plot_ess,
    plot_weight_histogram,
)

__all__ = [
    # metrics
    'compute_mse',
    'compute_rmse',
    'compute_nees',
    'compute_nis',
    'compute_symmetry_error',
    'compute_min_eigenvalues',
    'residual_autocorrelation',
    'bound_exceedance',
    # experiment logger
    'ExperimentLogger',
    # visualization - filters
    'plot_state_estimates',
    'plot_error_bounds',
    'plot_residuals',
    'plot_autocorrelation',
    # visualization - particles
    'plot_ess',
    'plot_weight_histogram',
]
