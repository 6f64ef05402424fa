"""Conserved-quantity diagnostics (energy, momentum, center of mass)."""

import math

import numpy as np
from numba import njit, prange

from cosmos.particles import ParticleSet


@njit(parallel=True, fastmath=True, cache=True)
def _potential_energy(positions: np.ndarray, masses: np.ndarray,
                      G: float, softening: float) -> float:
    """Softened pairwise potential, each pair counted once."""
    n = positions.shape[0]
    softening_sq = softening * softening
    total = 0.0
    for i in prange(n):
        partial = 0.0
        for j in range(i + 1, n):
            dx = positions[j, 0] - positions[i, 0]
            dy = positions[j, 1] - positions[i, 1]
            dz = positions[j, 2] - positions[i, 2]
            dist = math.sqrt(dx * dx + dy * dy + dz * dz + softening_sq)
            if dist > 0.0:
                partial -= G * masses[i] * masses[j] / dist
        total += partial
    return total


def kinetic_energy(particles: ParticleSet) -> float:
    if len(particles) == 0:
        return 0.0
    speed_sq = np.einsum("ij,ij->i", particles.velocities, particles.velocities)
    return float(0.5 * np.dot(particles.masses, speed_sq))


def potential_energy(particles: ParticleSet, G: float, softening: float) -> float:
    """O(n^2); meant for small populations and tests."""
    if len(particles) < 2:
        return 0.0
    return float(_potential_energy(particles.positions, particles.masses, float(G), float(softening)))


def total_energy(particles: ParticleSet, G: float, softening: float) -> float:
    return kinetic_energy(particles) + potential_energy(particles, G, softening)


def total_momentum(particles: ParticleSet) -> np.ndarray:
    if len(particles) == 0:
        return np.zeros(3)
    return particles.masses @ particles.velocities


def center_of_mass(particles: ParticleSet) -> np.ndarray:
    total = float(np.sum(particles.masses)) if len(particles) else 0.0
    if total <= 0.0:
        return np.zeros(3)
    return (particles.masses @ particles.positions) / total
