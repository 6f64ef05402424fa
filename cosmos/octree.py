"""
Barnes-Hut octree: bounding volume, construction and mass aggregation.

Key points:
- Flattened array-based octree (no Python objects per node)
- Leaves hold up to ``max_leaf_size`` particle indices as a slice of a
  permuted index array, so every particle lives in exactly one leaf
- Explicit-stack Numba construction kernel, GIL-free so root octants can be
  built concurrently on a thread pool (fork-join)
- Children always get a larger node id than their parent, so a reverse sweep
  over node ids is a valid post-order for mass aggregation
"""

from concurrent.futures import ThreadPoolExecutor
from typing import Iterator, NamedTuple, Tuple

import numpy as np
from numba import njit

from config import cosmos as config


# ============================================================================
# BOUNDING VOLUME
# ============================================================================

class BoundingBox(NamedTuple):
    """Axis-aligned box given by its center and per-axis half extents."""
    center: np.ndarray
    half_size: np.ndarray

    def contains(self, point) -> bool:
        d = np.abs(np.asarray(point, dtype=np.float64) - self.center)
        return bool(np.all(d <= self.half_size))


@njit(cache=True, nogil=True)
def _bounds_kernel(positions: np.ndarray, epsilon: float) -> tuple:
    """Min/max box over all positions, half extents grown by epsilon."""
    lo = positions[0].copy()
    hi = positions[0].copy()
    for i in range(1, positions.shape[0]):
        for dim in range(3):
            v = positions[i, dim]
            if v < lo[dim]:
                lo[dim] = v
            if v > hi[dim]:
                hi[dim] = v
    center = (lo + hi) * 0.5
    half_size = (hi - center) + epsilon
    return center, half_size


def compute_bounds(positions: np.ndarray, epsilon: float = None) -> BoundingBox:
    """Bounding box of all positions. Empty input yields the unit box at the origin."""
    if epsilon is None:
        epsilon = config.TREE["bounds_epsilon"]
    positions = np.ascontiguousarray(positions, dtype=np.float64).reshape(-1, 3)
    if positions.shape[0] == 0:
        return BoundingBox(np.zeros(3), np.ones(3))
    center, half_size = _bounds_kernel(positions, float(epsilon))
    return BoundingBox(center, half_size)


# ============================================================================
# CONSTRUCTION KERNELS
# ============================================================================

@njit(cache=True, nogil=True)
def get_octant(px: float, py: float, pz: float,
               cx: float, cy: float, cz: float) -> int:
    """Determine which octant a point falls into relative to center (ties go up)."""
    octant = 0
    if px >= cx:
        octant |= 1
    if py >= cy:
        octant |= 2
    if pz >= cz:
        octant |= 4
    return octant


@njit(cache=True, nogil=True)
def partition_octants(
    positions: np.ndarray,
    order: np.ndarray,
    scratch: np.ndarray,
    start: int,
    end: int,
    center: np.ndarray,
) -> np.ndarray:
    """
    Stable counting sort of ``order[start:end]`` by octant.

    Returns 9 offsets; octant ``o`` owns ``order[offsets[o]:offsets[o + 1]]``.
    Only ``scratch[start:end]`` is touched, so disjoint ranges may be
    partitioned concurrently.
    """
    counts = np.zeros(8, dtype=np.int64)
    codes = np.empty(end - start, dtype=np.int64)
    for k in range(start, end):
        p = order[k]
        o = get_octant(positions[p, 0], positions[p, 1], positions[p, 2],
                       center[0], center[1], center[2])
        codes[k - start] = o
        counts[o] += 1

    offsets = np.empty(9, dtype=np.int64)
    offsets[0] = start
    for o in range(8):
        offsets[o + 1] = offsets[o] + counts[o]

    cursor = offsets[:8].copy()
    for k in range(start, end):
        o = codes[k - start]
        scratch[cursor[o]] = order[k]
        cursor[o] += 1
    for k in range(start, end):
        order[k] = scratch[k]
    return offsets


@njit(cache=True, nogil=True)
def _grow_float_rows(arr: np.ndarray, capacity: int) -> np.ndarray:
    out = np.empty((capacity, arr.shape[1]), dtype=np.float64)
    out[:arr.shape[0]] = arr
    return out


@njit(cache=True, nogil=True)
def _grow_child_rows(arr: np.ndarray, capacity: int) -> np.ndarray:
    out = np.full((capacity, arr.shape[1]), -1, dtype=np.int64)
    out[:arr.shape[0]] = arr
    return out


@njit(cache=True, nogil=True)
def _grow_ints(arr: np.ndarray, capacity: int) -> np.ndarray:
    out = np.zeros(capacity, dtype=np.int64)
    out[:arr.shape[0]] = arr
    return out


@njit(cache=True, nogil=True)
def build_subtree(
    positions: np.ndarray,
    order: np.ndarray,
    scratch: np.ndarray,
    start: int,
    end: int,
    center: np.ndarray,
    half_size: np.ndarray,
    depth: int,
    max_leaf_size: int,
    max_depth: int,
) -> tuple:
    """
    Build the subtree over ``order[start:end]`` rooted at the given box.

    Returns (centers, half_sizes, children, leaf_start, leaf_count) trimmed to
    the number of nodes created; node ids are local to the subtree (root = 0)
    while leaf_start indexes the shared ``order`` array.
    """
    count = end - start
    capacity = max(16, 2 * count // max(1, max_leaf_size) + 16)
    centers = np.empty((capacity, 3), dtype=np.float64)
    half_sizes = np.empty((capacity, 3), dtype=np.float64)
    children = np.full((capacity, 8), -1, dtype=np.int64)
    leaf_start = np.zeros(capacity, dtype=np.int64)
    leaf_count = np.zeros(capacity, dtype=np.int64)

    centers[0] = center
    half_sizes[0] = half_size
    num_nodes = 1

    # (node, start, end, depth); each pop pushes at most 8 entries
    stack = np.empty((8 * (max_depth + 3), 4), dtype=np.int64)
    stack[0, 0] = 0
    stack[0, 1] = start
    stack[0, 2] = end
    stack[0, 3] = depth
    stack_ptr = 1

    while stack_ptr > 0:
        stack_ptr -= 1
        node = stack[stack_ptr, 0]
        s = stack[stack_ptr, 1]
        e = stack[stack_ptr, 2]
        d = stack[stack_ptr, 3]

        leaf_start[node] = s
        leaf_count[node] = e - s
        if e - s <= max_leaf_size or d > max_depth:
            continue

        offsets = partition_octants(positions, order, scratch, s, e, centers[node])

        if num_nodes + 8 > capacity:
            capacity *= 2
            centers = _grow_float_rows(centers, capacity)
            half_sizes = _grow_float_rows(half_sizes, capacity)
            children = _grow_child_rows(children, capacity)
            leaf_start = _grow_ints(leaf_start, capacity)
            leaf_count = _grow_ints(leaf_count, capacity)

        leaf_count[node] = 0
        for o in range(8):
            cs = offsets[o]
            ce = offsets[o + 1]
            if ce == cs:
                continue
            child = num_nodes
            num_nodes += 1
            children[node, o] = child

            for dim in range(3):
                quarter = half_sizes[node, dim] * 0.5
                half_sizes[child, dim] = quarter
                if o & (1 << dim):
                    centers[child, dim] = centers[node, dim] + quarter
                else:
                    centers[child, dim] = centers[node, dim] - quarter

            stack[stack_ptr, 0] = child
            stack[stack_ptr, 1] = cs
            stack[stack_ptr, 2] = ce
            stack[stack_ptr, 3] = d + 1
            stack_ptr += 1

    return (centers[:num_nodes].copy(), half_sizes[:num_nodes].copy(),
            children[:num_nodes].copy(), leaf_start[:num_nodes].copy(),
            leaf_count[:num_nodes].copy())


@njit(cache=True, nogil=True)
def aggregate_mass(
    positions: np.ndarray,
    masses: np.ndarray,
    order: np.ndarray,
    centers: np.ndarray,
    children: np.ndarray,
    leaf_start: np.ndarray,
    leaf_count: np.ndarray,
    node_masses: np.ndarray,
    node_coms: np.ndarray,
):
    """Post-order mass and center-of-mass pass (reverse node id sweep)."""
    for node in range(centers.shape[0] - 1, -1, -1):
        m = 0.0
        mx, my, mz = 0.0, 0.0, 0.0
        is_leaf = True
        for c in range(8):
            child = children[node, c]
            if child >= 0:
                is_leaf = False
                mc = node_masses[child]
                m += mc
                mx += mc * node_coms[child, 0]
                my += mc * node_coms[child, 1]
                mz += mc * node_coms[child, 2]

        if is_leaf:
            for k in range(leaf_start[node], leaf_start[node] + leaf_count[node]):
                p = order[k]
                mp = masses[p]
                m += mp
                mx += mp * positions[p, 0]
                my += mp * positions[p, 1]
                mz += mp * positions[p, 2]

        node_masses[node] = m
        if m > 0.0:
            node_coms[node, 0] = mx / m
            node_coms[node, 1] = my / m
            node_coms[node, 2] = mz / m
        else:
            # Empty subtree: box center keeps NaN out of the traversal
            node_coms[node, 0] = centers[node, 0]
            node_coms[node, 1] = centers[node, 1]
            node_coms[node, 2] = centers[node, 2]


def child_box(center: np.ndarray, half_size: np.ndarray, octant: int) -> BoundingBox:
    """Box of one octant of a parent box."""
    quarter = half_size * 0.5
    signs = np.array([1.0 if octant & (1 << dim) else -1.0 for dim in range(3)])
    return BoundingBox(center + signs * quarter, quarter)


# ============================================================================
# OCTREE
# ============================================================================

class Octree:
    """
    Flattened octree rebuilt from scratch on every :meth:`build`.

    Node arrays (m = number of nodes, node 0 is the root):
        centers, half_sizes: (m, 3) box of each node
        children: (m, 8) child node ids, -1 where absent
        leaf_start, leaf_count: (m,) slice of ``order`` held by a leaf
        masses, coms: (m,) / (m, 3) aggregated mass and center of mass
    """

    def __init__(self, max_leaf_size: int = None, max_depth: int = None,
                 parallel_threshold: int = None, max_workers: int = None):
        tree_cfg = config.TREE
        self.max_leaf_size = int(max_leaf_size if max_leaf_size is not None else tree_cfg["max_leaf_size"])
        self.max_depth = int(max_depth if max_depth is not None else tree_cfg["max_depth"])
        self.parallel_threshold = int(parallel_threshold if parallel_threshold is not None
                                      else tree_cfg["parallel_threshold"])
        self.max_workers = int(max_workers if max_workers is not None else tree_cfg["max_workers"])

        self.bounds = BoundingBox(np.zeros(3), np.ones(3))
        self.order = np.zeros(0, dtype=np.int64)
        self.centers = np.zeros((1, 3), dtype=np.float64)
        self.half_sizes = np.ones((1, 3), dtype=np.float64)
        self.children = np.full((1, 8), -1, dtype=np.int64)
        self.leaf_start = np.zeros(1, dtype=np.int64)
        self.leaf_count = np.zeros(1, dtype=np.int64)
        self.masses = np.zeros(1, dtype=np.float64)
        self.coms = np.zeros((1, 3), dtype=np.float64)
        self.num_particles = 0

    @property
    def num_nodes(self) -> int:
        return self.centers.shape[0]

    @property
    def stack_size(self) -> int:
        """Traversal stack that can never overflow for this depth cap."""
        return 8 * (self.max_depth + 3)

    def build(self, positions: np.ndarray, masses: np.ndarray) -> "Octree":
        """Partition all particles into the tree and aggregate node masses."""
        positions = np.ascontiguousarray(positions, dtype=np.float64).reshape(-1, 3)
        masses = np.ascontiguousarray(masses, dtype=np.float64).reshape(-1)
        n = positions.shape[0]

        self.bounds = compute_bounds(positions)
        self.order = np.arange(n, dtype=np.int64)
        self.num_particles = n
        scratch = np.empty(n, dtype=np.int64)

        if n > self.parallel_threshold and n > self.max_leaf_size:
            arrays = self._build_forked(positions, scratch)
        else:
            arrays = build_subtree(positions, self.order, scratch, 0, n,
                                   self.bounds.center, self.bounds.half_size, 0,
                                   self.max_leaf_size, self.max_depth)

        (self.centers, self.half_sizes, self.children,
         self.leaf_start, self.leaf_count) = arrays

        self.masses = np.zeros(self.num_nodes, dtype=np.float64)
        self.coms = np.zeros((self.num_nodes, 3), dtype=np.float64)
        aggregate_mass(positions, masses, self.order, self.centers, self.children,
                       self.leaf_start, self.leaf_count, self.masses, self.coms)
        return self

    def _build_forked(self, positions: np.ndarray, scratch: np.ndarray) -> Tuple[np.ndarray, ...]:
        """Split the root, build each occupied octant on its own worker, then stitch."""
        n = positions.shape[0]
        center, half_size = self.bounds
        offsets = partition_octants(positions, self.order, scratch, 0, n, center)
        occupied = [o for o in range(8) if offsets[o + 1] > offsets[o]]

        if len(occupied) <= 2:
            return build_subtree(positions, self.order, scratch, 0, n, center, half_size, 0,
                                 self.max_leaf_size, self.max_depth)

        with ThreadPoolExecutor(max_workers=min(len(occupied), self.max_workers)) as pool:
            futures = {}
            for o in occupied:
                box = child_box(center, half_size, o)
                futures[o] = pool.submit(
                    build_subtree, positions, self.order, scratch,
                    int(offsets[o]), int(offsets[o + 1]), box.center, box.half_size, 1,
                    self.max_leaf_size, self.max_depth,
                )
            parts = {o: f.result() for o, f in futures.items()}

        total = 1 + sum(parts[o][0].shape[0] for o in occupied)
        centers = np.empty((total, 3), dtype=np.float64)
        half_sizes = np.empty((total, 3), dtype=np.float64)
        children = np.full((total, 8), -1, dtype=np.int64)
        leaf_start = np.zeros(total, dtype=np.int64)
        leaf_count = np.zeros(total, dtype=np.int64)
        centers[0] = center
        half_sizes[0] = half_size

        base = 1
        for o in occupied:
            sub_centers, sub_halves, sub_children, sub_start, sub_count = parts[o]
            m = sub_centers.shape[0]
            children[0, o] = base
            centers[base:base + m] = sub_centers
            half_sizes[base:base + m] = sub_halves
            children[base:base + m] = np.where(sub_children >= 0, sub_children + base, -1)
            leaf_start[base:base + m] = sub_start
            leaf_count[base:base + m] = sub_count
            base += m

        return centers, half_sizes, children, leaf_start, leaf_count

    def is_leaf(self, node: int) -> bool:
        return bool(np.all(self.children[node] < 0))

    def leaf_indices(self, node: int) -> np.ndarray:
        start = self.leaf_start[node]
        return self.order[start:start + self.leaf_count[node]]

    def leaves(self) -> Iterator[Tuple[int, np.ndarray]]:
        """Yield (node id, particle indices) for every leaf."""
        for node in range(self.num_nodes):
            if self.is_leaf(node):
                yield node, self.leaf_indices(node)

    def depth(self) -> int:
        """Depth of the deepest node (root = 0)."""
        deepest = 0
        stack = [(0, 0)]
        while stack:
            node, d = stack.pop()
            deepest = max(deepest, d)
            for child in self.children[node]:
                if child >= 0:
                    stack.append((int(child), d + 1))
        return deepest

    @property
    def root_mass(self) -> float:
        return float(self.masses[0])

    @property
    def root_com(self) -> np.ndarray:
        return self.coms[0].copy()
