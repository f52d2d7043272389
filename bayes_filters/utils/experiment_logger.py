"""
Run bookkeeping for filtering experiments.

Every filter run becomes one row of ``algorithm_log.csv``. Successful runs also
store their output arrays in a ``.npz`` file whose name is derived from the
algorithm and the configuration, so an unchanged rerun can reuse it.

Layout under ``results_root``::

    <experiment_name>/
        algorithm_log.csv
        experiment_log.txt
        cache/<algorithm>_<hash>.npz
        <timestamp>/figures/
"""
import csv
import hashlib
import json
import logging
import os
from datetime import datetime
from typing import Any, Dict, List, Optional

import numpy as np

logger = logging.getLogger(__name__)

TIMESTAMP_FORMAT = '%Y-%m-%d_%H-%M-%S'


def _now() -> str:
    return datetime.now().strftime(TIMESTAMP_FORMAT)


class ExperimentLogger:
    """
    Cache filter outputs per algorithm and keep a CSV history of runs.

    Example::

        exp_logger = ExperimentLogger('van_der_pol_estimation')
        config = {'n_steps': 101, 'seed': 1, 'options': UKFOptions().to_dict()}

        data = exp_logger.load_algorithm_result('UKF', **config)
        if data is None:
            result = run_ukf(...)
            exp_logger.save_algorithm_result('UKF', config, result.to_arrays())
    """

    LOG_COLUMNS = [
        'timestamp', 'experiment_name', 'algorithm',
        'n_steps', 'n_particles', 'seed',
        'mse', 'mse_measurement', 'mean_ess', 'resample_count', 'runtime_sec',
        'cache_file', 'status', 'notes'
    ]

    # Only these config entries identify a cached result
    CACHE_KEYS = ['n_steps', 'n_particles', 'seed', 'options']

    # Metric column -> format string
    METRIC_FORMATS = {
        'mse': '.6f',
        'mse_measurement': '.6f',
        'mean_ess': '.2f',
        'resample_count': 'd',
    }

    def __init__(self, experiment_name: str, results_root: Optional[str] = None):
        root = results_root if results_root is not None else os.path.join(os.getcwd(), 'results')

        self.experiment_name = experiment_name
        self.log_dir = os.path.join(root, experiment_name)
        self.log_file = os.path.join(self.log_dir, 'algorithm_log.csv')
        self.cache_dir = os.path.join(self.log_dir, 'cache')
        os.makedirs(self.cache_dir, exist_ok=True)

        if not os.path.exists(self.log_file):
            with open(self.log_file, 'w', newline='') as f:
                csv.DictWriter(f, fieldnames=self.LOG_COLUMNS).writeheader()

        self._current_run_dir: Optional[str] = None

    # --- Cache ---

    def _get_config_hash(self, algorithm: str, config: Dict) -> str:
        """md5 prefix over the algorithm and CACHE_KEYS, with dict keys sorted."""
        relevant = {k: config[k] for k in self.CACHE_KEYS if k in config}
        payload = json.dumps([algorithm, relevant], sort_keys=True, default=str)
        return hashlib.md5(payload.encode()).hexdigest()[:12]

    def get_cache_path(self, algorithm: str, config: Dict) -> str:
        stem = ''.join(c if c.isalnum() or c in '-_' else '_' for c in algorithm)
        return os.path.join(self.cache_dir,
                            f"{stem}_{self._get_config_hash(algorithm, config)}.npz")

    def algorithm_result_exists(self, algorithm: str, **config) -> bool:
        return os.path.exists(self.get_cache_path(algorithm, config))

    def load_algorithm_result(self, algorithm: str, **config) -> Optional[Dict[str, np.ndarray]]:
        """Arrays saved for this algorithm and config, or None if nothing is cached."""
        path = self.get_cache_path(algorithm, config)
        if not os.path.exists(path):
            return None

        with np.load(path) as archive:
            data = dict(archive.items())
        logger.info("Using cached %s result (%s)", algorithm, os.path.basename(path))
        return data

    def save_algorithm_result(
        self,
        algorithm: str,
        config: Dict[str, Any],
        data: Dict[str, Any],
        metrics: Optional[Dict[str, float]] = None,
        runtime_sec: float = 0.0,
        notes: str = ''
    ) -> str:
        """
        Store result arrays and record a completed run.

        Parameters
        ----------
        algorithm : str
        config : dict
            Run configuration; CACHE_KEYS select the cache file, and
            n_steps, n_particles and seed are copied to the log row
        data : dict
            Arrays to cache (``np.savez_compressed`` keywords)
        metrics : dict, optional
            Values for the metric columns; missing ones are left blank
        runtime_sec : float
        notes : str

        Returns
        -------
        str
            Path of the written cache file
        """
        path = self.get_cache_path(algorithm, config)
        np.savez_compressed(path, **data)
        self._append_row(algorithm, config, 'completed', metrics, runtime_sec,
                         cache_file=os.path.basename(path), notes=notes)
        logger.info("Saved %s result to %s", algorithm, path)
        return path

    def log_failure(self, algorithm: str, config: Dict[str, Any], error: Exception,
                    runtime_sec: float = 0.0) -> None:
        """Record a run that raised; nothing is cached."""
        self._append_row(algorithm, config, 'failed', runtime_sec=runtime_sec,
                         notes=f"{type(error).__name__}: {error}")
        logger.warning("%s did not complete: %s", algorithm, error)

    def get_cached_algorithms(self, **config) -> List[str]:
        """Algorithms logged as completed whose cache file for ``config`` is present."""
        with open(self.log_file, newline='') as f:
            completed = [row['algorithm'] for row in csv.DictReader(f)
                         if row.get('status') == 'completed']
        found = []
        for algorithm in dict.fromkeys(completed):
            if self.algorithm_result_exists(algorithm, **config):
                found.append(algorithm)
        return found

    def clear_all_cache(self) -> int:
        removed = 0
        for name in os.listdir(self.cache_dir):
            if name.endswith('.npz'):
                os.remove(os.path.join(self.cache_dir, name))
                removed += 1
        logger.info("Cleared %d cached results from %s", removed, self.cache_dir)
        return removed

    # --- Log files ---

    def _append_row(self, algorithm: str, config: Dict[str, Any], status: str,
                    metrics: Optional[Dict[str, float]] = None, runtime_sec: float = 0.0,
                    cache_file: str = '', notes: str = '') -> None:
        metrics = metrics or {}
        row = {col: '' for col in self.LOG_COLUMNS}
        row.update(
            timestamp=_now(),
            experiment_name=self.experiment_name,
            algorithm=algorithm,
            runtime_sec=f"{runtime_sec:.2f}",
            cache_file=cache_file,
            status=status,
            notes=notes,
        )
        for key in ('n_steps', 'n_particles', 'seed'):
            row[key] = config.get(key, '')
        for key, fmt in self.METRIC_FORMATS.items():
            if metrics.get(key) is not None:
                row[key] = format(metrics[key], fmt)

        with open(self.log_file, 'a', newline='') as f:
            csv.DictWriter(f, fieldnames=self.LOG_COLUMNS).writerow(row)

    def log_experiment(self, config: Dict[str, Any], duration_sec: float = 0.0,
                       notes: str = '') -> None:
        """Append a block with the run configuration to experiment_log.txt."""
        lines = ['', '=' * 60, f"Timestamp: {_now()}", f"Duration: {duration_sec:.1f}s"]
        lines += [f"  {key}: {value}" for key, value in config.items()]
        if notes:
            lines.append(f"Notes: {notes}")

        with open(os.path.join(self.log_dir, 'experiment_log.txt'), 'a') as f:
            f.write('\n'.join(lines) + '\n')
        logger.info("%s finished in %.1fs", self.experiment_name, duration_sec)

    # --- Run directories ---

    def create_timestamped_run_dir(self, timestamp: Optional[str] = None) -> str:
        """Create ``<log_dir>/<timestamp>`` (now, if not given) and make it the current run."""
        self._current_run_dir = os.path.join(self.log_dir, timestamp or _now())
        os.makedirs(self._current_run_dir, exist_ok=True)
        return self._current_run_dir

    def get_figures_dir(self, create: bool = True) -> str:
        if self._current_run_dir is None:
            raise RuntimeError("No run directory yet; call create_timestamped_run_dir() first")

        figs_dir = os.path.join(self._current_run_dir, 'figures')
        if create:
            os.makedirs(figs_dir, exist_ok=True)
        return figs_dir
