"""
Sphere collision pass with a uniform spatial-hash broad phase.

Broad phase: each particle goes into exactly one bucket keyed by its integer
cell coordinate (position / cell size, floored). Narrow phase visits every
occupied cell once and tests:
- pairs inside the cell with a later bucket position (j > i),
- all pairs against every cell within ``reach`` rings with a larger cell
  key, where ``reach = ceil(2 * max radius / cell size)`` covers the widest
  possible overlap,
so every unordered pair is tested exactly once and never against itself.

Response: instantaneous impulse along the contact normal scaled by the
restitution coefficient, then positional separation split by mass fraction.
Resolution is sequential; pairs share particles.
"""

import math
from typing import NamedTuple

import numpy as np
from numba import njit, prange, types
from numba.typed import Dict

from config import cosmos as config
from cosmos.particles import ParticleSet

CELL_BITS = 21
CELL_MASK = (1 << CELL_BITS) - 1


class CellBuckets(NamedTuple):
    """Sorted-bucket spatial hash."""
    cell_size: float
    coords: np.ndarray          # (n, 3) integer cell coordinate per particle
    sorted_indices: np.ndarray  # particle indices grouped by cell
    keys: np.ndarray            # (cells,) packed key per occupied cell, ascending
    starts: np.ndarray          # (cells,) first slot in sorted_indices
    counts: np.ndarray          # (cells,) particles in the cell


# ============================================================================
# NUMBA KERNELS
# ============================================================================

@njit(cache=True, nogil=True)
def pack_cell(cx: int, cy: int, cz: int) -> int:
    """Pack a cell coordinate into one non-negative 63-bit key."""
    return ((cx & CELL_MASK) << (2 * CELL_BITS)) | ((cy & CELL_MASK) << CELL_BITS) | (cz & CELL_MASK)


@njit(parallel=True, cache=True)
def assign_cells(positions: np.ndarray, cell_size: float,
                 coords: np.ndarray, keys: np.ndarray):
    """Assign each particle to a cell."""
    inv = 1.0 / cell_size
    for i in prange(positions.shape[0]):
        cx = int(math.floor(positions[i, 0] * inv))
        cy = int(math.floor(positions[i, 1] * inv))
        cz = int(math.floor(positions[i, 2] * inv))
        coords[i, 0] = cx
        coords[i, 1] = cy
        coords[i, 2] = cz
        keys[i] = pack_cell(cx, cy, cz)


@njit(cache=True)
def resolve_pair(i: int, j: int, positions: np.ndarray, velocities: np.ndarray,
                 masses: np.ndarray, radii: np.ndarray, restitution: float) -> bool:
    """Resolve one sphere pair if it overlaps. Returns True when it did."""
    dx = positions[j, 0] - positions[i, 0]
    dy = positions[j, 1] - positions[i, 1]
    dz = positions[j, 2] - positions[i, 2]
    dist_sq = dx * dx + dy * dy + dz * dz
    min_dist = radii[i] + radii[j]
    if dist_sq >= min_dist * min_dist:
        return False

    dist = math.sqrt(dist_sq)
    if dist > 0.0:
        nx = dx / dist
        ny = dy / dist
        nz = dz / dist
    else:
        # Coincident centers: any fixed normal will do
        nx, ny, nz = 1.0, 0.0, 0.0

    # Share of the response taken by each side (the other's mass fraction)
    mi = masses[i]
    mj = masses[j]
    total = mi + mj
    if total > 0.0:
        wi = mj / total
        wj = mi / total
    else:
        wi = 0.5
        wj = 0.5

    rel_n = ((velocities[j, 0] - velocities[i, 0]) * nx
             + (velocities[j, 1] - velocities[i, 1]) * ny
             + (velocities[j, 2] - velocities[i, 2]) * nz)
    if rel_n < 0.0:
        dv = (1.0 + restitution) * rel_n
        velocities[i, 0] += dv * wi * nx
        velocities[i, 1] += dv * wi * ny
        velocities[i, 2] += dv * wi * nz
        velocities[j, 0] -= dv * wj * nx
        velocities[j, 1] -= dv * wj * ny
        velocities[j, 2] -= dv * wj * nz

    overlap = min_dist - dist
    positions[i, 0] -= nx * overlap * wi
    positions[i, 1] -= ny * overlap * wi
    positions[i, 2] -= nz * overlap * wi
    positions[j, 0] += nx * overlap * wj
    positions[j, 1] += ny * overlap * wj
    positions[j, 2] += nz * overlap * wj
    return True


@njit(cache=True)
def resolve_grid(
    positions: np.ndarray,
    velocities: np.ndarray,
    masses: np.ndarray,
    radii: np.ndarray,
    coords: np.ndarray,
    sorted_indices: np.ndarray,
    keys: np.ndarray,
    starts: np.ndarray,
    counts: np.ndarray,
    reach: int,
    restitution: float,
) -> int:
    """Narrow phase over the bucketed particles. Returns resolved pair count."""
    table = Dict.empty(key_type=types.int64, value_type=types.int64)
    for b in range(keys.shape[0]):
        table[keys[b]] = b

    resolved = 0
    for b in range(keys.shape[0]):
        start = starts[b]
        count = counts[b]
        key = keys[b]

        for a in range(count):
            i = sorted_indices[start + a]
            for c in range(a + 1, count):
                j = sorted_indices[start + c]
                if resolve_pair(i, j, positions, velocities, masses, radii, restitution):
                    resolved += 1

        first = sorted_indices[start]
        cx = coords[first, 0]
        cy = coords[first, 1]
        cz = coords[first, 2]
        for dcx in range(-reach, reach + 1):
            for dcy in range(-reach, reach + 1):
                for dcz in range(-reach, reach + 1):
                    if dcx == 0 and dcy == 0 and dcz == 0:
                        continue
                    nkey = pack_cell(cx + dcx, cy + dcy, cz + dcz)
                    # Each cell pair is handled from its lower key
                    if nkey <= key or nkey not in table:
                        continue
                    nb = table[nkey]
                    nstart = starts[nb]
                    ncount = counts[nb]
                    for a in range(count):
                        i = sorted_indices[start + a]
                        for c in range(ncount):
                            j = sorted_indices[nstart + c]
                            if resolve_pair(i, j, positions, velocities, masses, radii, restitution):
                                resolved += 1
    return resolved


@njit(cache=True)
def resolve_naive(positions: np.ndarray, velocities: np.ndarray, masses: np.ndarray,
                  radii: np.ndarray, restitution: float) -> int:
    """O(n^2) reference pass over every pair i < j."""
    resolved = 0
    n = positions.shape[0]
    for i in range(n):
        for j in range(i + 1, n):
            if resolve_pair(i, j, positions, velocities, masses, radii, restitution):
                resolved += 1
    return resolved


# ============================================================================
# PYTHON API
# ============================================================================

def cell_size_for(radii: np.ndarray) -> float:
    """Grid cell size from the mean of the first sampled radii."""
    cfg = config.COLLISIONS
    sample = radii[:cfg["radius_sample"]]
    if len(sample) == 0:
        return float(cfg["min_cell_size"])
    return max(float(cfg["min_cell_size"]), float(cfg["cell_size_factor"]) * float(np.mean(sample)))


def neighbor_reach(radii: np.ndarray, cell_size: float) -> int:
    """Rings of neighbor cells that can hold an overlapping partner."""
    if len(radii) == 0:
        return 1
    return max(1, int(math.ceil(2.0 * float(np.max(radii)) / float(cell_size))))


def build_buckets(positions: np.ndarray, cell_size: float) -> CellBuckets:
    """Bucket every particle into exactly one cell."""
    n = positions.shape[0]
    coords = np.empty((n, 3), dtype=np.int64)
    keys = np.empty(n, dtype=np.int64)
    if n > 0:
        assign_cells(positions, float(cell_size), coords, keys)

    sorted_indices = np.argsort(keys, kind="stable").astype(np.int64)
    cell_keys, starts, counts = np.unique(keys[sorted_indices], return_index=True, return_counts=True)
    return CellBuckets(
        float(cell_size), coords, sorted_indices,
        cell_keys.astype(np.int64), starts.astype(np.int64), counts.astype(np.int64),
    )


def resolve_collisions(particles: ParticleSet, restitution: float, cell_size: float = None) -> int:
    """Resolve all overlapping sphere pairs in place. Returns the pair count."""
    if len(particles) < 2:
        return 0
    if cell_size is None:
        cell_size = cell_size_for(particles.radii)
    buckets = build_buckets(particles.positions, cell_size)
    return resolve_grid(
        particles.positions, particles.velocities, particles.masses, particles.radii,
        buckets.coords, buckets.sorted_indices, buckets.keys, buckets.starts, buckets.counts,
        neighbor_reach(particles.radii, cell_size), float(restitution),
    )


def resolve_collisions_naive(particles: ParticleSet, restitution: float) -> int:
    if len(particles) < 2:
        return 0
    return resolve_naive(particles.positions, particles.velocities, particles.masses,
                         particles.radii, float(restitution))
