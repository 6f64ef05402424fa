"""Semi-implicit (symplectic) Euler time integration."""

import numpy as np
from numba import njit, prange


@njit(parallel=True, fastmath=True, cache=True)
def integrate(
    positions: np.ndarray,
    velocities: np.ndarray,
    forces: np.ndarray,
    masses: np.ndarray,
    dt: float,
    damping: float,
):
    """
    Advance every particle by one step.

    Order matters: velocity kick, then damping, then drift with the new
    velocity. Massless tracers get zero acceleration.
    """
    keep = 1.0 - damping
    for i in prange(positions.shape[0]):
        m = masses[i]
        if m > 0.0:
            inv_m = 1.0 / m
            velocities[i, 0] += forces[i, 0] * inv_m * dt
            velocities[i, 1] += forces[i, 1] * inv_m * dt
            velocities[i, 2] += forces[i, 2] * inv_m * dt

        velocities[i, 0] *= keep
        velocities[i, 1] *= keep
        velocities[i, 2] *= keep

        positions[i, 0] += velocities[i, 0] * dt
        positions[i, 1] += velocities[i, 1] * dt
        positions[i, 2] += velocities[i, 2] * dt
