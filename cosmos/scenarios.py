"""
Initial particle populations for each simulation mode.

Every generator is a pure function of (n, rng): the same seeded
``numpy.random.Generator`` always yields the same population, and exactly
``n`` particles are produced. Galaxy and black-hole modes reserve index 0 for
the central body.
"""

from typing import Callable, Dict

import numpy as np

from config import cosmos as config
from cosmos.particles import ParticleSet
from cosmos.settings import SimulationMode


def _rotating_disk(n: int, rng: np.random.Generator, cfg: dict):
    """Thin disk with tangential velocities falling off as 1/sqrt(r + 1)."""
    R = cfg["radius"]
    r = R * np.sqrt(rng.uniform(0.0, 1.0, n))
    theta = rng.uniform(0.0, 2.0 * np.pi, n)
    z = (rng.uniform(0.0, 1.0, n) - 0.5) * cfg["thickness"]

    positions = np.zeros((n, 3), dtype=np.float64)
    positions[:, 0] = r * np.cos(theta)
    positions[:, 1] = z
    positions[:, 2] = r * np.sin(theta)

    orbital_speed = np.sqrt(1.0 / (r + 1.0)) * cfg["orbital_scale"]
    velocities = np.zeros((n, 3), dtype=np.float64)
    velocities[:, 0] = -orbital_speed * np.sin(theta)
    velocities[:, 2] = orbital_speed * np.cos(theta)
    return positions, velocities


def _set_central_body(particles: ParticleSet, cfg: dict):
    if len(particles) == 0:
        return
    particles.positions[0] = 0.0
    particles.velocities[0] = 0.0
    particles.masses[0] = cfg["central_mass"]
    particles.radii[0] = cfg["central_radius"]
    particles.colors[0] = cfg["central_color"]


def galaxy(n: int, rng: np.random.Generator) -> ParticleSet:
    """Rotating disk around one dominant central mass."""
    cfg = config.SCENARIOS["galaxy"]
    positions, velocities = _rotating_disk(n, rng, cfg)

    colors = np.ones((n, 4), dtype=np.float32)
    colors[:, 0] = 0.7 + 0.3 * rng.uniform(0.0, 1.0, n)
    colors[:, 1] = 0.7

    particles = ParticleSet(
        positions, velocities,
        np.full(n, cfg["particle_mass"]), np.full(n, cfg["particle_radius"]), colors,
    )
    _set_central_body(particles, cfg)
    return particles


def black_hole(n: int, rng: np.random.Generator) -> ParticleSet:
    """Denser, faster disk around a very massive absorbing body."""
    cfg = config.SCENARIOS["black_hole"]
    positions, velocities = _rotating_disk(n, rng, cfg)

    colors = np.empty((n, 4), dtype=np.float32)
    colors[:] = cfg["particle_color"]

    particles = ParticleSet(
        positions, velocities,
        np.full(n, cfg["particle_mass"]), np.full(n, cfg["particle_radius"]), colors,
    )
    _set_central_body(particles, cfg)
    return particles


def supernova(n: int, rng: np.random.Generator) -> ParticleSet:
    """Isotropic radial burst out of a tiny sphere at the origin."""
    cfg = config.SCENARIOS["supernova"]

    directions = rng.normal(0.0, 1.0, (n, 3))
    norms = np.linalg.norm(directions, axis=1, keepdims=True)
    directions = np.where(norms > 0.0, directions / np.maximum(norms, 1e-12), [1.0, 0.0, 0.0])

    speed = cfg["max_speed"] * rng.uniform(0.0, 1.0, n)
    # Tiny core sphere instead of the exact origin, which would be one depth-capped leaf
    r = cfg["core_radius"] * np.cbrt(rng.uniform(0.0, 1.0, n))

    colors = np.ones((n, 4), dtype=np.float32)
    colors[:, 0] = 2.0
    colors[:, 1] = 0.5 + 0.5 * rng.uniform(0.0, 1.0, n)
    colors[:, 2] = 0.2

    return ParticleSet(
        directions * r[:, np.newaxis],
        directions * speed[:, np.newaxis],
        np.full(n, cfg["particle_mass"]), np.full(n, cfg["particle_radius"]), colors,
    )


def interactions(n: int, rng: np.random.Generator) -> ParticleSet:
    """Uniform random cloud at rest."""
    cfg = config.SCENARIOS["interactions"]
    positions = (rng.uniform(0.0, 1.0, (n, 3)) - 0.5) * cfg["extent"]

    colors = np.empty((n, 4), dtype=np.float32)
    colors[:] = cfg["particle_color"]

    return ParticleSet(
        positions, np.zeros((n, 3), dtype=np.float64),
        np.full(n, cfg["particle_mass"]), np.full(n, cfg["particle_radius"]), colors,
    )


GENERATORS: Dict[SimulationMode, Callable[[int, np.random.Generator], ParticleSet]] = {
    SimulationMode.GALAXY: galaxy,
    SimulationMode.BLACK_HOLE: black_hole,
    SimulationMode.SUPERNOVA: supernova,
    SimulationMode.INTERACTIONS: interactions,
}


def generate(mode: SimulationMode, n: int, rng: np.random.Generator) -> ParticleSet:
    """Initial population of ``n`` particles for ``mode``."""
    if n < 0:
        raise ValueError(f"particle count must be >= 0, got {n}")
    return GENERATORS[SimulationMode(mode)](int(n), rng)
