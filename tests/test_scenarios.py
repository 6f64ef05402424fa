import numpy as np
import pytest

from config import cosmos as config
from cosmos.scenarios import generate
from cosmos.settings import SimulationMode


@pytest.mark.parametrize("mode", list(SimulationMode))
@pytest.mark.parametrize("n", [0, 1, 10, 257])
def test_generates_exactly_n_particles(mode, n):
    particles = generate(mode, n, np.random.default_rng(7))
    assert len(particles) == n
    assert particles.colors.shape == (n, 4)
    assert particles.colors.dtype == np.float32
    assert np.all(np.isfinite(particles.positions))
    assert np.all(np.isfinite(particles.velocities))
    assert np.all(particles.forces == 0.0)


@pytest.mark.parametrize("mode", list(SimulationMode))
def test_same_seed_same_population(mode):
    a = generate(mode, 300, np.random.default_rng(42))
    b = generate(mode, 300, np.random.default_rng(42))
    c = generate(mode, 300, np.random.default_rng(43))
    assert np.array_equal(a.positions, b.positions)
    assert np.array_equal(a.velocities, b.velocities)
    assert np.array_equal(a.colors, b.colors)
    assert not np.array_equal(a.positions, c.positions)


@pytest.mark.parametrize("mode, key", [
    (SimulationMode.GALAXY, "galaxy"),
    (SimulationMode.BLACK_HOLE, "black_hole"),
])
def test_disk_modes_put_central_body_at_index_zero(mode, key):
    cfg = config.SCENARIOS[key]
    particles = generate(mode, 100, np.random.default_rng(0))
    assert np.array_equal(particles.positions[0], np.zeros(3))
    assert np.array_equal(particles.velocities[0], np.zeros(3))
    assert particles.masses[0] == cfg["central_mass"]
    assert particles.radii[0] == cfg["central_radius"]
    assert np.all(particles.masses[1:] == cfg["particle_mass"])

    # Disk lies in the x/z plane within the configured radius and thickness
    rest = particles.positions[1:]
    assert np.all(np.hypot(rest[:, 0], rest[:, 2]) <= cfg["radius"])
    assert np.all(np.abs(rest[:, 1]) <= cfg["thickness"] / 2)


def test_disk_velocities_are_tangential():
    particles = generate(SimulationMode.GALAXY, 200, np.random.default_rng(3))
    pos = particles.positions[1:]
    vel = particles.velocities[1:]
    radial = pos[:, 0] * vel[:, 0] + pos[:, 2] * vel[:, 2]
    assert np.allclose(radial, 0.0, atol=1e-8)
    assert np.all(vel[:, 1] == 0.0)


def test_supernova_bursts_radially_from_core():
    cfg = config.SCENARIOS["supernova"]
    particles = generate(SimulationMode.SUPERNOVA, 500, np.random.default_rng(5))
    assert np.all(np.linalg.norm(particles.positions, axis=1) <= cfg["core_radius"] + 1e-12)

    speeds = np.linalg.norm(particles.velocities, axis=1)
    assert np.all(speeds <= cfg["max_speed"] + 1e-9)
    cross = np.cross(particles.positions, particles.velocities)
    assert np.allclose(cross, 0.0, atol=1e-9)
    # Outward, not inward
    assert np.all(np.einsum("ij,ij->i", particles.positions, particles.velocities) >= 0.0)


def test_interactions_cloud_starts_at_rest():
    cfg = config.SCENARIOS["interactions"]
    particles = generate(SimulationMode.INTERACTIONS, 400, np.random.default_rng(9))
    assert np.all(particles.velocities == 0.0)
    assert np.all(np.abs(particles.positions) <= cfg["extent"] / 2)


def test_mode_may_be_given_as_string():
    particles = generate("supernova", 5, np.random.default_rng(0))
    assert len(particles) == 5


def test_negative_count_is_rejected():
    with pytest.raises(ValueError):
        generate(SimulationMode.GALAXY, -1, np.random.default_rng(0))
