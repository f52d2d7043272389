"""Plots for particle filter diagnostics: ESS history and weight spread."""
from typing import Dict, Optional

import matplotlib.pyplot as plt
import numpy as np


def plot_ess(
    ess_results: Dict[str, np.ndarray],
    N_particles: int,
    save_path: str,
    resample_threshold: float = 0.5,
    title: str = 'Effective Sample Size',
    figsize: tuple = (10, 4)
) -> None:
    """
    ESS per time step for one or more particle filter runs.

    Steps where a run falls below ``resample_threshold * N_particles`` (and
    so resamples under the ratio trigger) are marked on its curve.

    Parameters
    ----------
    ess_results : dict
        Run name -> ESS array [T], measured before resampling
    N_particles : int
    save_path : str
    resample_threshold : float
        Fraction of N_particles at which the ratio trigger fires
    """
    threshold = resample_threshold * N_particles
    fig, ax = plt.subplots(figsize=figsize)

    for name, ess in ess_results.items():
        ess = np.asarray(ess)
        line, = ax.plot(ess, linewidth=1.2,
                        label=f'{name}: mean {ess.mean():.0f}, {np.sum(ess < threshold)} below')
        low = np.flatnonzero(ess < threshold)
        ax.plot(low, ess[low], 'v', color=line.get_color(), markersize=4)

    ax.axhline(threshold, color='k', linestyle=':', linewidth=1,
               label=f'{resample_threshold:g} N = {threshold:.0f}')
    ax.set_ylim(0, 1.05 * N_particles)
    ax.set_xlabel('Time Step')
    ax.set_ylabel('ESS')
    ax.set_title(f'{title} (N={N_particles})')
    ax.legend(loc='lower right', fontsize=9)
    ax.grid(True, alpha=0.3)

    fig.tight_layout()
    fig.savefig(save_path, dpi=150, bbox_inches='tight')
    plt.close(fig)


def plot_weight_histogram(
    weights: np.ndarray,
    save_path: Optional[str] = None,
    filter_name: str = 'PF',
    n_bins: int = 50
) -> None:
    """Histogram of normalized weights N*w (1 for a uniform set), with the ESS in the title."""
    weights = np.asarray(weights)
    N = len(weights)
    ess = 1.0 / np.sum(weights**2)

    fig, ax = plt.subplots(figsize=(6, 4))
    ax.hist(N * weights, bins=n_bins, color='tab:blue', alpha=0.7)
    ax.axvline(1.0, color='k', linestyle=':', linewidth=1)
    ax.set_xlabel('N * weight')
    ax.set_ylabel('Particles')
    ax.set_title(f'{filter_name} weights: ESS {ess:.0f} of {N}')

    fig.tight_layout()
    if save_path:
        fig.savefig(save_path, dpi=150, bbox_inches='tight')
        plt.close(fig)
    else:
        plt.show()
