import numpy as np
import pytest

from cosmos.diagnostics import kinetic_energy, potential_energy, total_energy
from cosmos.gravity import BarnesHut, BarnesHutParams
from cosmos.integrator import integrate
from conftest import make_particles


def test_kick_then_damp_then_drift():
    positions = np.zeros((1, 3))
    velocities = np.zeros((1, 3))
    forces = np.array([[4.0, 0.0, -2.0]])
    masses = np.array([2.0])

    integrate(positions, velocities, forces, masses, 0.5, 0.1)

    # a = (2, 0, -1); v = a*dt = (1, 0, -0.5); damped *0.9; x = v*dt
    assert np.allclose(velocities, [[0.9, 0.0, -0.45]])
    assert np.allclose(positions, [[0.45, 0.0, -0.225]])


def test_massless_particle_gets_no_acceleration():
    positions = np.array([[1.0, 1.0, 1.0]])
    velocities = np.array([[2.0, 0.0, 0.0]])
    forces = np.array([[100.0, 100.0, 100.0]])

    integrate(positions, velocities, forces, np.zeros(1), 0.1, 0.0)

    assert np.array_equal(velocities, [[2.0, 0.0, 0.0]])
    assert np.allclose(positions, [[1.2, 1.0, 1.0]])


def test_integration_is_independent_per_particle(rng):
    n = 100
    positions = rng.normal(size=(n, 3))
    velocities = rng.normal(size=(n, 3))
    forces = rng.normal(size=(n, 3))
    masses = rng.uniform(0.5, 2.0, n)

    expected_v = (velocities + forces / masses[:, np.newaxis] * 0.01) * (1.0 - 0.02)
    expected_x = positions + expected_v * 0.01

    integrate(positions, velocities, forces, masses, 0.01, 0.02)
    assert np.allclose(velocities, expected_v)
    assert np.allclose(positions, expected_x)


def test_two_body_orbit_stays_bounded():
    # Equal masses on a circular orbit about their common center of mass
    G, separation = 1.0, 1.0
    speed = 0.5 * np.sqrt(2.0 * G / separation)
    particles = make_particles(
        [[-0.5, 0.0, 0.0], [0.5, 0.0, 0.0]],
        [[0.0, -speed, 0.0], [0.0, speed, 0.0]],
        masses=[1.0, 1.0],
    )
    bh = BarnesHut(BarnesHutParams(theta=0.0, softening=0.0, G=G))
    dt = 1e-3

    e0 = total_energy(particles, G, 0.0)
    separations = []
    for _ in range(5000):
        bh.build(particles.positions, particles.masses)
        particles.forces.fill(0.0)
        bh.accumulate_forces(particles.positions, particles.masses, particles.forces)
        integrate(particles.positions, particles.velocities, particles.forces,
                  particles.masses, dt, 0.0)
        separations.append(np.linalg.norm(particles.positions[1] - particles.positions[0]))

    e1 = total_energy(particles, G, 0.0)
    assert abs((e1 - e0) / e0) < 1e-2
    assert 0.95 < min(separations) and max(separations) < 1.05
    # More than one full period (2*pi*sqrt(r^3 / (G*M)) ~ 4.44) has elapsed
    assert kinetic_energy(particles) > 0.0


def test_potential_energy_of_pair():
    particles = make_particles([[0.0, 0.0, 0.0], [2.0, 0.0, 0.0]], masses=[3.0, 4.0])
    assert potential_energy(particles, 1.0, 0.0) == pytest.approx(-6.0)
