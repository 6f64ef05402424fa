import numpy as np
import pytest

from cosmos.particles import ParticleSet


def make_particles(positions, velocities=None, masses=None, radii=None) -> ParticleSet:
    positions = np.asarray(positions, dtype=np.float64).reshape(-1, 3)
    n = len(positions)
    if velocities is None:
        velocities = np.zeros((n, 3))
    if masses is None:
        masses = np.ones(n)
    if radii is None:
        radii = np.ones(n)
    return ParticleSet(positions, velocities, masses, radii, np.ones((n, 4)))


@pytest.fixture
def rng():
    return np.random.default_rng(1234)


@pytest.fixture
def cloud(rng):
    """500 particles in a unit-ish cube with varied masses."""
    n = 500
    return make_particles(
        rng.uniform(-10.0, 10.0, (n, 3)),
        rng.normal(0.0, 1.0, (n, 3)),
        rng.uniform(0.5, 2.0, n),
        np.full(n, 0.1),
    )
