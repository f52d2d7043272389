"""
Visualization functions for state estimation results.
"""
import numpy as np
import matplotlib.pyplot as plt


def _finish(fig, save_path):
    fig.tight_layout()
    if save_path:
        fig.savefig(save_path, dpi=150, bbox_inches='tight')
        plt.close(fig)
    else:
        plt.show()


def plot_state_estimates(t, xs, estimates, ys=None, measured_idx=0, save_path=None,
                         title='State Estimates'):
    """
    Plot true states against one or more filter estimates.

    Parameters
    ----------
    t : ndarray [T]
        Time array
    xs : ndarray [T, n_x]
        True states
    estimates : dict
        Filter name -> filtered means [T, n_x]
    ys : ndarray [T] or [T, 1], optional
        Measurements, drawn on the subplot of state measured_idx
    measured_idx : int
        State the measurements observe
    save_path : str, optional
        Path to save figure
    title : str
        Figure title
    """
    n_x = xs.shape[1]
    fig, axes = plt.subplots(n_x, 1, figsize=(12, 3.5 * n_x), sharex=True)
    axes = np.atleast_1d(axes)

    for i, ax in enumerate(axes):
        ax.plot(t, xs[:, i], 'k-', linewidth=2, label='True', alpha=0.8)
        for name, m in estimates.items():
            ax.plot(t, m[:, i], '--', linewidth=1.5, label=f'{name} estimate')
        if ys is not None and i == measured_idx:
            ax.plot(t, np.ravel(ys), '.', color='gray', markersize=4, alpha=0.7,
                    label='Measured')
        ax.set_ylabel(f'x_{i + 1}')
        ax.legend(loc='upper right', fontsize=8)
        ax.grid(True, alpha=0.3)

    axes[-1].set_xlabel('Time [s]')
    fig.suptitle(title, fontsize=14, fontweight='bold')
    _finish(fig, save_path)


def plot_error_bounds(t, xs, m_filt, P_filt, n_sigma=1.0, save_path=None,
                      title='State Estimation Errors'):
    """
    Plot estimation error of each state with its n-sigma uncertainty bound.

    Parameters
    ----------
    t : ndarray [T]
    xs : ndarray [T, n_x]
        True states
    m_filt : ndarray [T, n_x]
        Filtered means
    P_filt : ndarray [T, n_x, n_x]
        Filtered covariances
    n_sigma : float
        Bound width in standard deviations
    save_path : str, optional
    title : str
    """
    n_x = xs.shape[1]
    errors = xs - m_filt
    fig, axes = plt.subplots(n_x, 1, figsize=(12, 3.5 * n_x), sharex=True)
    axes = np.atleast_1d(axes)

    for i, ax in enumerate(axes):
        bound = n_sigma * np.sqrt(P_filt[:, i, i])
        ax.plot(t, errors[:, i], 'b-', linewidth=1.5, label='Estimation error')
        ax.plot(t, bound, 'r-', linewidth=1, label=f'{n_sigma:g}-sigma bound')
        ax.plot(t, -bound, 'r-', linewidth=1)
        ax.set_ylabel(f'Error for state {i + 1}')
        ax.grid(True, alpha=0.3)

    axes[0].legend(loc='best', fontsize=8)
    axes[-1].set_xlabel('Time [s]')
    fig.suptitle(title, fontsize=14, fontweight='bold')
    _finish(fig, save_path)


def plot_residuals(t, innovations, save_path=None, title='Residuals (innovations)'):
    """Plot the innovation sequence of each measurement component."""
    innovations = np.asarray(innovations).reshape(len(t), -1)
    fig, ax = plt.subplots(figsize=(12, 4))
    for j in range(innovations.shape[1]):
        ax.plot(t, innovations[:, j], linewidth=1.2, label=f'y_{j + 1}')
    ax.axhline(0.0, color='gray', linestyle='--', alpha=0.5)
    ax.set_xlabel('Time [s]')
    ax.set_ylabel('Residual')
    ax.set_title(f'{title} (mean={np.mean(innovations):.3f})')
    ax.legend(loc='upper right', fontsize=8)
    ax.grid(True, alpha=0.3)
    _finish(fig, save_path)


def plot_autocorrelation(correlations, save_path=None,
                         title='Normalized Autocorrelation'):
    """
    Plot normalized autocorrelations at non-negative lags.

    Parameters
    ----------
    correlations : dict
        Label -> (lags, r) as returned by residual_autocorrelation. A 2-D r
        gets one line per column.
    save_path : str, optional
    title : str
    """
    fig, axes = plt.subplots(len(correlations), 1, figsize=(10, 3.5 * len(correlations)),
                             sharex=True)
    axes = np.atleast_1d(axes)

    for ax, (label, (lags, r)) in zip(axes, correlations.items()):
        r = np.asarray(r).reshape(len(lags), -1)
        for j in range(r.shape[1]):
            ax.plot(lags, r[:, j], linewidth=1.5,
                    label=f'component {j + 1}' if r.shape[1] > 1 else None)
        ax.axhline(0.0, color='gray', linestyle='--', alpha=0.5)
        ax.set_ylabel(label)
        if r.shape[1] > 1:
            ax.legend(loc='upper right', fontsize=8)
        ax.grid(True, alpha=0.3)

    axes[-1].set_xlabel('Lags')
    fig.suptitle(title, fontsize=14, fontweight='bold')
    _finish(fig, save_path)
