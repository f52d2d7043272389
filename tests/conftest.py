"""Fixtures shared by the unit and integration suites."""

import numpy as np
import pytest


@pytest.fixture
def rng():
    """Fixed-seed generator so every test draws the same numbers."""
    return np.random.default_rng(42)
