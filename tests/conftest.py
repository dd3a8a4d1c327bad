"""
Shared pytest fixtures for all test modules.
"""

import pytest
import numpy as np

from NuMass.core.config import PhysicalParameters, SamplingWindow


@pytest.fixture
def tritium():
    """3H → 3He with the literature endpoint and m_nu = 0.2 eV."""
    return PhysicalParameters.tritium()


@pytest.fixture
def wide_window(tritium):
    """Sampling window (1000, Q) covering the spectrum maximum."""
    return SamplingWindow(limit=1000.0, Q=tritium.Q)


@pytest.fixture
def endpoint_window(tritium):
    """Last 25 eV below the endpoint."""
    return SamplingWindow(limit=tritium.Q - 25.0, Q=tritium.Q)


@pytest.fixture
def rng():
    """Fixed-seed random stream."""
    return np.random.default_rng(12345)
