"""Shared pytest fixtures for unit tests."""

import numpy as np
import pytest

from bayes_filters.ssm import LinearGaussian, RangeBearing, VanDerPol


@pytest.fixture
def linear_model():
    """2D linear Gaussian model observing the first state."""
    A = np.array([[1.0, 0.1], [0.0, 0.95]])
    B = np.array([[0.1, 0.0], [0.0, 0.1]])
    C = np.array([[1.0, 0.0]])
    D = np.array([[0.1]])
    return LinearGaussian(A, B, C, D)


@pytest.fixture
def linear_ssm(rng, linear_model):
    """Simulated data from the linear model."""
    T = 30
    x0 = np.array([1.0, 0.5])
    xs, ys = linear_model.simulate(x0, T, rng)
    return {'model': linear_model, 'xs': xs, 'ys': ys, 'T': T,
            'm0': np.zeros(2), 'P0': np.eye(2)}


@pytest.fixture
def range_bearing_model():
    """Range-bearing model with the default initial belief."""
    return RangeBearing(dt=1.0, q=0.1, r_range=0.1, r_bearing=0.05)


@pytest.fixture
def van_der_pol_model():
    """Van der Pol oscillator with the default settings."""
    return VanDerPol()


def check_psd(matrix, tol=1e-10):
    """Check if matrix is positive semi-definite."""
    return np.all(np.linalg.eigvalsh(matrix) >= -tol)
