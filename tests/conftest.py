"""Shared fixtures for the taupath test-suite."""

import numpy as np
import pytest

from taupath.concordance import ConcordanceMatrix


# Symmetric sign matrix for which FastBCS performs exactly one
# retroactive correction.  Stage 4 ties {0, 1, 2}; stage 3 ties {1, 2};
# observation 2 is eliminated at stage 2 and dominates against the
# stage-4 choice (observation 0), so the two swap and the search resumes
# at stage 3.  Final order [0, 3, 4, 1, 2], terminal stage 1.
LOOKBACK_SIGNS = [
    [0, -1, -1, 1, -1],
    [-1, 0, 0, 0, -1],
    [-1, 0, 0, -1, 0],
    [1, 0, -1, 0, 1],
    [-1, -1, 0, 1, 0],
]

SCENARIOS = {
    "concordant": ([1, 2, 3, 4], [1, 2, 3, 4]),
    "discordant": ([1, 2, 3, 4], [4, 3, 2, 1]),
    "tied": ([1, 2, 3, 4], [1, 1, 3, 4]),
}


@pytest.fixture
def lookback_matrix():
    return ConcordanceMatrix.from_signs(LOOKBACK_SIGNS)


@pytest.fixture
def tied_matrix():
    x, y = SCENARIOS["tied"]
    return ConcordanceMatrix.from_xy(x, y)


def random_xy(n, seed, ties=False):
    """Random paired observations; ``ties=True`` draws from {0..3}."""
    rng = np.random.default_rng(seed)
    if ties:
        return rng.integers(0, 4, n).astype(float), \
            rng.integers(0, 4, n).astype(float)
    x = rng.normal(size=n)
    y = 0.5 * x + rng.normal(size=n)
    return x, y
