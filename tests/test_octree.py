import numpy as np
import pytest

from cosmos.octree import Octree, compute_bounds, get_octant


def _leaf_sets(tree):
    return sorted(tuple(sorted(idx.tolist())) for _, idx in tree.leaves() if len(idx))


def test_bounds_of_empty_input_is_unit_box():
    box = compute_bounds(np.zeros((0, 3)))
    assert np.array_equal(box.center, np.zeros(3))
    assert np.array_equal(box.half_size, np.ones(3))


def test_bounds_cover_points_with_margin(cloud):
    box = compute_bounds(cloud.positions)
    lo = cloud.positions.min(axis=0)
    hi = cloud.positions.max(axis=0)
    assert np.allclose(box.center, (lo + hi) / 2)
    assert np.allclose(box.half_size, (hi - lo) / 2 + 1e-3)
    for p in cloud.positions:
        assert box.contains(p)
    # Extremes sit strictly inside
    assert np.all(np.abs(hi - box.center) < box.half_size)


def test_octant_ties_go_to_upper_half():
    assert get_octant(0.0, 0.0, 0.0, 0.0, 0.0, 0.0) == 7
    assert get_octant(-1.0, 0.0, -1.0, 0.0, 0.0, 0.0) == 2
    assert get_octant(1.0, -1.0, -1.0, 0.0, 0.0, 0.0) == 1


def test_partition_is_exact(cloud):
    tree = Octree(max_leaf_size=8).build(cloud.positions, cloud.masses)
    all_indices = np.concatenate([idx for _, idx in tree.leaves()])
    assert len(all_indices) == len(cloud)
    assert np.array_equal(np.sort(all_indices), np.arange(len(cloud)))


def test_leaves_respect_max_leaf_size(cloud):
    tree = Octree(max_leaf_size=4).build(cloud.positions, cloud.masses)
    assert tree.num_nodes > 1
    for _, idx in tree.leaves():
        assert len(idx) <= 4


def test_leaf_particles_lie_inside_their_box(cloud):
    tree = Octree().build(cloud.positions, cloud.masses)
    for node, idx in tree.leaves():
        d = np.abs(cloud.positions[idx] - tree.centers[node])
        assert np.all(d <= tree.half_sizes[node] + 1e-12)


def test_root_mass_and_com_are_conserved(cloud):
    tree = Octree().build(cloud.positions, cloud.masses)
    assert tree.root_mass == pytest.approx(cloud.masses.sum(), rel=1e-12)
    expected = (cloud.masses @ cloud.positions) / cloud.masses.sum()
    assert np.allclose(tree.root_com, expected)


def test_interior_nodes_aggregate_children(cloud):
    tree = Octree(max_leaf_size=2).build(cloud.positions, cloud.masses)
    for node in range(tree.num_nodes):
        kids = [c for c in tree.children[node] if c >= 0]
        if not kids:
            continue
        assert tree.masses[node] == pytest.approx(sum(tree.masses[c] for c in kids))
        weighted = sum(tree.masses[c] * tree.coms[c] for c in kids) / tree.masses[node]
        assert np.allclose(tree.coms[node], weighted)


def test_children_have_larger_ids_than_parents(cloud):
    tree = Octree(max_leaf_size=1).build(cloud.positions, cloud.masses)
    for node in range(tree.num_nodes):
        for child in tree.children[node]:
            if child >= 0:
                assert child > node


def test_zero_mass_nodes_use_box_center():
    positions = np.array([[0.0, 0.0, 0.0], [1.0, 2.0, 3.0]])
    tree = Octree().build(positions, np.zeros(2))
    assert tree.root_mass == 0.0
    assert np.allclose(tree.root_com, tree.bounds.center)


def test_empty_population_builds_inert_root():
    tree = Octree().build(np.zeros((0, 3)), np.zeros(0))
    assert tree.num_nodes == 1
    assert tree.is_leaf(0)
    assert tree.root_mass == 0.0
    assert list(tree.leaves())[0][1].size == 0


def test_coincident_points_terminate_at_depth_cap():
    positions = np.tile([3.0, -2.0, 5.0], (100, 1))
    tree = Octree(max_leaf_size=8).build(positions, np.ones(100))
    assert tree.depth() <= tree.max_depth + 1
    assert _leaf_sets(tree) == [tuple(range(100))]
    assert tree.root_mass == pytest.approx(100.0)


def test_forked_build_matches_sequential_build(rng):
    positions = rng.normal(0.0, 50.0, (3000, 3))
    masses = rng.uniform(0.1, 3.0, 3000)
    sequential = Octree(parallel_threshold=10**9).build(positions, masses)
    forked = Octree(parallel_threshold=0, max_workers=4).build(positions, masses)

    assert forked.num_nodes == sequential.num_nodes
    assert _leaf_sets(forked) == _leaf_sets(sequential)
    assert forked.root_mass == pytest.approx(sequential.root_mass)
    assert np.allclose(forked.root_com, sequential.root_com)


def test_rebuild_discards_previous_tree(rng):
    tree = Octree()
    tree.build(rng.normal(size=(200, 3)), np.ones(200))
    tree.build(rng.normal(size=(20, 3)), np.ones(20))
    all_indices = np.concatenate([idx for _, idx in tree.leaves()])
    assert np.array_equal(np.sort(all_indices), np.arange(20))
