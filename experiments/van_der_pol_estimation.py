"""Van der Pol oscillator state estimation with a UKF and a particle filter.

Only the first state is measured, with a percentage error. Both filters
estimate the full state; their residuals and estimation errors are analysed
against the true trajectory.
"""
import argparse
import json
import logging
import os
import time
from dataclasses import dataclass
from typing import Dict, Optional

import numpy as np

from bayes_filters import FilterError, ParticleFilterOptions, UKFOptions
from bayes_filters.filters import particle_filter, unscented_kalman_filter
from bayes_filters.ssm import VanDerPol
from bayes_filters.utils import (
    ExperimentLogger,
    bound_exceedance,
    compute_mse,
    compute_nis,
    plot_autocorrelation,
    plot_error_bounds,
    plot_ess,
    plot_residuals,
    plot_state_estimates,
    residual_autocorrelation,
)

logger = logging.getLogger(__name__)

EXPERIMENT_NAME = 'van_der_pol_estimation'


# --- Filter Result Container ---

@dataclass
class FilterResult:
    """Container for filter results."""
    name: str
    m_filt: np.ndarray
    P_filt: np.ndarray
    innovations: np.ndarray
    runtime: float
    ess: Optional[np.ndarray] = None
    resample_count: int = 0
    S_innov: Optional[np.ndarray] = None

    def to_arrays(self) -> Dict[str, np.ndarray]:
        data = {
            'm_filt': self.m_filt,
            'P_filt': self.P_filt,
            'innovations': self.innovations,
            'runtime': np.array(self.runtime),
            'resample_count': np.array(self.resample_count),
        }
        if self.ess is not None:
            data['ess'] = self.ess
        if self.S_innov is not None:
            data['S_innov'] = self.S_innov
        return data

    @classmethod
    def from_arrays(cls, name: str, data: Dict[str, np.ndarray]) -> 'FilterResult':
        return cls(
            name=name,
            m_filt=data['m_filt'],
            P_filt=data['P_filt'],
            innovations=data['innovations'],
            runtime=float(data['runtime']),
            ess=data.get('ess'),
            resample_count=int(data['resample_count']),
            S_innov=data.get('S_innov'),
        )


# --- Filter Implementations ---

def run_ukf(model: VanDerPol, ys: np.ndarray, options: UKFOptions) -> FilterResult:
    """Run the UKF with additive process noise and a non-additive measurement."""
    start = time.time()
    m_filt, P_filt, innovations, S_innov = unscented_kalman_filter(
        model.transition(), model.measurement(), model.m0, model.P0, ys,
        options=options, return_innovation_covariances=True
    )
    return FilterResult('UKF', m_filt, P_filt, innovations, time.time() - start,
                        S_innov=S_innov)


def run_pf(model: VanDerPol, ys: np.ndarray, n_particles: int,
           options: ParticleFilterOptions, rng: np.random.Generator) -> FilterResult:
    """Run the bootstrap particle filter."""
    start = time.time()
    m_filt, P_filt, ess, n_resample = particle_filter(
        model.pf_sampler, model.likelihood, model.m0, model.P0, ys,
        n_particles=n_particles, options=options, rng=rng
    )
    # Residual of the state estimate against the measurement
    innovations = ys - m_filt[:, :1]
    return FilterResult('PF', m_filt, P_filt, innovations, time.time() - start,
                        ess=ess, resample_count=n_resample)


def summarize(result: FilterResult, xs: np.ndarray, ys: np.ndarray) -> Dict[str, float]:
    """MSE and mean of the estimation errors, and the fraction outside the 1-sigma bound."""
    exceed = bound_exceedance(result.m_filt, result.P_filt, xs, n_sigma=1.0)
    mean_error = np.mean(xs - result.m_filt, axis=0)
    metrics = {
        'mse': float(compute_mse(result.m_filt[:, 0], xs[:, 0])),
        'mse_x2': float(compute_mse(result.m_filt[:, 1], xs[:, 1])),
        'mse_measurement': float(compute_mse(ys[:, 0], xs[:, 0])),
        'mean_error_x1': float(mean_error[0]),
        'mean_error_x2': float(mean_error[1]),
        'bound_exceedance_x1': float(exceed[0]),
        'bound_exceedance_x2': float(exceed[1]),
        'runtime_sec': result.runtime,
    }
    if result.S_innov is not None:
        metrics['mean_nis'] = float(np.mean(compute_nis(result.innovations, result.S_innov)))
    if result.ess is not None:
        metrics['mean_ess'] = float(np.mean(result.ess))
        metrics['resample_count'] = int(result.resample_count)
    return metrics


def run_experiment(
    T: int = 101,
    N_particles: int = 1000,
    seed: int = 1,
    results_root: Optional[str] = None,
    use_cache: bool = True,
) -> Dict[str, Dict[str, float]]:
    """
    Estimate the van der Pol states from noisy x1 measurements.

    Parameters
    ----------
    T : int
        Number of measurements (sample time 0.05 s)
    N_particles : int
        Number of particles
    seed : int
        Random seed for the measurements and the particle filter
    results_root : str, optional
        Root directory for logs, cache and figures (default: ./results)
    use_cache : bool
        If False, clear cached filter results and rerun both filters

    Returns
    -------
    dict
        Metrics per filter
    """
    start_time = time.time()
    model = VanDerPol()
    ukf_options = UKFOptions()
    pf_options = ParticleFilterOptions()

    exp_logger = ExperimentLogger(EXPERIMENT_NAME, results_root=results_root)
    if not use_cache:
        exp_logger.clear_all_cache()

    rng = np.random.default_rng(seed)
    t, xs, ys = model.simulate(T, rng)

    configs = {
        'UKF': {'n_steps': T, 'seed': seed, 'options': ukf_options.to_dict()},
        'PF': {'n_steps': T, 'n_particles': N_particles, 'seed': seed,
               'options': pf_options.to_dict()},
    }
    runners = {
        'UKF': lambda: run_ukf(model, ys, ukf_options),
        'PF': lambda: run_pf(model, ys, N_particles, pf_options, rng),
    }

    results: Dict[str, FilterResult] = {}
    metrics: Dict[str, Dict[str, float]] = {}
    for name, runner in runners.items():
        config = configs[name]
        cached = exp_logger.load_algorithm_result(name, **config)
        if cached is not None:
            results[name] = FilterResult.from_arrays(name, cached)
            metrics[name] = summarize(results[name], xs, ys)
            continue

        logger.info("Running %s", name)
        try:
            result = runner()
        except FilterError as exc:
            exp_logger.log_failure(name, config, exc, runtime_sec=time.time() - start_time)
            raise

        results[name] = result
        metrics[name] = summarize(result, xs, ys)
        exp_logger.save_algorithm_result(name, config, result.to_arrays(), metrics[name],
                                         runtime_sec=result.runtime)

    # Plots
    run_dir = exp_logger.create_timestamped_run_dir()
    figs_dir = exp_logger.get_figures_dir()

    plot_state_estimates(t, xs, {name: r.m_filt for name, r in results.items()}, ys=ys,
                         save_path=os.path.join(figs_dir, '1_state_estimates.png'),
                         title='Van der Pol State Estimates')
    for i, (name, r) in enumerate(results.items()):
        plot_error_bounds(t, xs, r.m_filt, r.P_filt,
                          save_path=os.path.join(figs_dir, f'{i + 2}_{name.lower()}_errors.png'),
                          title=f'{name} Estimation Errors')

    plot_residuals(t, results['UKF'].innovations,
                   save_path=os.path.join(figs_dir, '4_ukf_residuals.png'),
                   title='UKF Residuals')
    plot_autocorrelation(
        {name: residual_autocorrelation(r.innovations) for name, r in results.items()},
        save_path=os.path.join(figs_dir, '5_residual_autocorrelation.png'),
        title='Normalized Residual Autocorrelation'
    )
    plot_ess({'PF': results['PF'].ess}, N_particles,
             save_path=os.path.join(figs_dir, '6_pf_ess.png'),
             resample_threshold=pf_options.min_effective_particle_ratio)

    error_correlations = {}
    for name, r in results.items():
        lags, r_err = residual_autocorrelation(xs - r.m_filt)
        for i in range(r_err.shape[1]):
            error_correlations[f'{name} x{i + 1}'] = (lags, r_err[:, i])
    plot_autocorrelation(error_correlations,
                         save_path=os.path.join(figs_dir, '7_state_error_autocorrelation.png'),
                         title='Normalized Autocorrelation of State Estimation Errors')

    # Summary
    with open(os.path.join(run_dir, 'metrics.json'), 'w') as f:
        json.dump(metrics, f, indent=2)

    for name, m in metrics.items():
        logger.info("%s: MSE(x1)=%.4f (measurement %.4f), mean error x1=%.4f x2=%.4f, "
                    "outside 1-sigma x1=%.0f%% x2=%.0f%%",
                    name, m['mse'], m['mse_measurement'], m['mean_error_x1'],
                    m['mean_error_x2'], 100 * m['bound_exceedance_x1'],
                    100 * m['bound_exceedance_x2'])

    exp_logger.log_experiment(
        {'n_steps': T, 'n_particles': N_particles, 'seed': seed,
         'ukf_options': ukf_options.to_dict(), 'pf_options': pf_options.to_dict()},
        duration_sec=time.time() - start_time
    )
    return metrics


def main():
    parser = argparse.ArgumentParser(description="Van der Pol UKF / particle filter estimation")
    parser.add_argument("--steps", type=int, default=101, help="Number of measurements")
    parser.add_argument("--n-particles", type=int, default=1000)
    parser.add_argument("--seed", type=int, default=1)
    parser.add_argument("--output-dir", type=str, default=None,
                        help="Results root directory (default: ./results)")
    parser.add_argument("--no-cache", action="store_true", help="Re-run even if results are cached")
    args = parser.parse_args()

    logging.basicConfig(level=logging.INFO, format="%(asctime)s %(name)s %(levelname)s %(message)s")

    run_experiment(T=args.steps, N_particles=args.n_particles, seed=args.seed,
                   results_root=args.output_dir, use_cache=not args.no_cache)


if __name__ == "__main__":
    main()
