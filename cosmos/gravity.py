"""
Barnes-Hut gravitational force evaluation.

The octree from :mod:`cosmos.octree` is walked per particle with an explicit
stack (no recursion, Numba-friendly). Leaves are summed pairwise; interior
nodes that pass the opening-angle test ``s / d < theta`` act as a single
point mass at their center of mass. All contributions use softened gravity:

    F += G * m_j * (r_j - r_i) / (|r_j - r_i|^2 + eps^2)^(3/2)
"""

import math
from typing import NamedTuple

import numpy as np
from numba import njit, prange

from cosmos.octree import Octree

# Distance floor for node-to-particle distances
DIST_EPSILON = 1e-6


class BarnesHutParams(NamedTuple):
    theta: float = 0.7         # Opening angle
    softening: float = 0.01    # Gravitational softening length
    G: float = 1.0             # Gravitational constant (scaled)
    max_leaf_size: int = 8


# ============================================================================
# NUMBA KERNELS
# ============================================================================

@njit(cache=True, nogil=True)
def tree_force(
    i: int,
    positions: np.ndarray,
    masses: np.ndarray,
    order: np.ndarray,
    half_sizes: np.ndarray,
    children: np.ndarray,
    leaf_start: np.ndarray,
    leaf_count: np.ndarray,
    node_masses: np.ndarray,
    node_coms: np.ndarray,
    theta: float,
    G: float,
    softening: float,
    stack_size: int,
) -> tuple:
    """Per-unit-mass force on particle ``i`` from the whole tree."""
    softening_sq = softening * softening
    px = positions[i, 0]
    py = positions[i, 1]
    pz = positions[i, 2]
    fx, fy, fz = 0.0, 0.0, 0.0

    stack = np.empty(stack_size, dtype=np.int64)
    stack[0] = 0
    stack_ptr = 1

    while stack_ptr > 0:
        stack_ptr -= 1
        node = stack[stack_ptr]

        if node_masses[node] <= 0.0:
            continue

        is_leaf = True
        for c in range(8):
            if children[node, c] >= 0:
                is_leaf = False
                break

        if is_leaf:
            for k in range(leaf_start[node], leaf_start[node] + leaf_count[node]):
                j = order[k]
                if j == i:
                    continue
                dx = positions[j, 0] - px
                dy = positions[j, 1] - py
                dz = positions[j, 2] - pz
                dist_sq = dx * dx + dy * dy + dz * dz + softening_sq
                if dist_sq <= 0.0:
                    continue
                inv_dist = 1.0 / math.sqrt(dist_sq)
                scale = G * masses[j] * inv_dist * inv_dist * inv_dist
                fx += dx * scale
                fy += dy * scale
                fz += dz * scale
        else:
            dx = node_coms[node, 0] - px
            dy = node_coms[node, 1] - py
            dz = node_coms[node, 2] - pz
            dist = math.sqrt(dx * dx + dy * dy + dz * dz) + DIST_EPSILON

            # Largest extent keeps the test conservative for non-cubic boxes
            size = 2.0 * max(half_sizes[node, 0], half_sizes[node, 1], half_sizes[node, 2])

            if size / dist < theta:
                dist_sq = dist * dist + softening_sq
                inv_dist = 1.0 / math.sqrt(dist_sq)
                scale = G * node_masses[node] * inv_dist * inv_dist * inv_dist
                fx += dx * scale
                fy += dy * scale
                fz += dz * scale
            else:
                for c in range(8):
                    child = children[node, c]
                    if child >= 0:
                        stack[stack_ptr] = child
                        stack_ptr += 1

    return fx, fy, fz


@njit(parallel=True, cache=True)
def accumulate_tree_forces(
    positions: np.ndarray,
    masses: np.ndarray,
    forces: np.ndarray,
    order: np.ndarray,
    half_sizes: np.ndarray,
    children: np.ndarray,
    leaf_start: np.ndarray,
    leaf_count: np.ndarray,
    node_masses: np.ndarray,
    node_coms: np.ndarray,
    theta: float,
    G: float,
    softening: float,
    stack_size: int,
):
    """Overwrite ``forces`` with mass-scaled tree forces for every particle."""
    for i in prange(positions.shape[0]):
        fx, fy, fz = tree_force(
            i, positions, masses, order, half_sizes, children, leaf_start,
            leaf_count, node_masses, node_coms, theta, G, softening, stack_size,
        )
        m = masses[i]
        forces[i, 0] = m * fx
        forces[i, 1] = m * fy
        forces[i, 2] = m * fz


@njit(parallel=True, fastmath=True, cache=True)
def direct_forces(positions: np.ndarray, masses: np.ndarray,
                  G: float, softening: float) -> np.ndarray:
    """O(n^2) per-unit-mass forces; reference for the tree evaluator."""
    n = positions.shape[0]
    out = np.zeros((n, 3), dtype=np.float64)
    softening_sq = softening * softening
    for i in prange(n):
        fx, fy, fz = 0.0, 0.0, 0.0
        for j in range(n):
            if j == i:
                continue
            dx = positions[j, 0] - positions[i, 0]
            dy = positions[j, 1] - positions[i, 1]
            dz = positions[j, 2] - positions[i, 2]
            dist_sq = dx * dx + dy * dy + dz * dz + softening_sq
            if dist_sq <= 0.0:
                continue
            inv_dist = 1.0 / math.sqrt(dist_sq)
            scale = G * masses[j] * inv_dist * inv_dist * inv_dist
            fx += dx * scale
            fy += dy * scale
            fz += dz * scale
        out[i, 0] = fx
        out[i, 1] = fy
        out[i, 2] = fz
    return out


# ============================================================================
# BARNES-HUT SOLVER
# ============================================================================

class BarnesHut:
    """Octree plus the parameters it was built for."""

    def __init__(self, params: BarnesHutParams = BarnesHutParams()):
        self.params = params
        self.tree = Octree(max_leaf_size=params.max_leaf_size)

    def build(self, positions: np.ndarray, masses: np.ndarray) -> "BarnesHut":
        self.tree.build(positions, masses)
        return self

    def compute_force(self, i: int, positions: np.ndarray, masses: np.ndarray) -> np.ndarray:
        """
        Force per unit mass on particle ``i``.

        Read-only with respect to the tree and particles; the caller scales
        by the particle mass before storing it in the force accumulator.
        """
        positions = np.ascontiguousarray(positions, dtype=np.float64)
        masses = np.ascontiguousarray(masses, dtype=np.float64)
        t = self.tree
        p = self.params
        fx, fy, fz = tree_force(
            int(i), positions, masses, t.order, t.half_sizes, t.children,
            t.leaf_start, t.leaf_count, t.masses, t.coms,
            float(p.theta), float(p.G), float(p.softening), t.stack_size,
        )
        return np.array([fx, fy, fz])

    def accumulate_forces(self, positions: np.ndarray, masses: np.ndarray,
                          forces: np.ndarray):
        """Write ``masses[i] * compute_force(i)`` into ``forces`` for all particles."""
        if positions.shape[0] == 0:
            return
        t = self.tree
        p = self.params
        accumulate_tree_forces(
            positions, masses, forces, t.order, t.half_sizes, t.children,
            t.leaf_start, t.leaf_count, t.masses, t.coms,
            float(p.theta), float(p.G), float(p.softening), t.stack_size,
        )
