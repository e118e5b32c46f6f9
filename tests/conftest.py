import numpy as np
import pytest

from cocktail_bf.synthetic import make_session


@pytest.fixture
def square_mics():
    return np.array([
        [0.5, 0.5, 1.5],
        [3.5, 0.5, 1.5],
        [3.5, 3.5, 1.5],
        [0.5, 3.5, 1.5],
    ], dtype=float)


@pytest.fixture
def session4():
    """2 s, 16 kHz, 4 mics, stationary source, incoherent party noise."""
    return make_session(duration_s=2.0, sample_rate=16000, noise_floor=0.05, seed=1)


@pytest.fixture
def rng():
    return np.random.default_rng(1234)
