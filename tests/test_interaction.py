import numpy as np
import pytest

from cosmos.interaction import apply_tool
from cosmos.settings import SimulationSettings


def _field(tool, positions, masses, engaged=True, center=(0.0, 0.0, 0.0)):
    positions = np.asarray(positions, dtype=np.float64)
    forces = np.zeros_like(positions)
    settings = SimulationSettings(
        tool=tool, tool_engaged=engaged, tool_center=center,
        tool_radius=50.0, tool_strength=100.0,
    )
    ran = apply_tool(positions, forces, np.asarray(masses, dtype=np.float64), settings)
    return ran, forces


@pytest.mark.parametrize("tool, expected", [
    ("attract", -160.0),
    ("repel", 160.0),
    ("drag", -40.0),
])
def test_tool_force_inside_radius(tool, expected):
    ran, forces = _field(tool, [[10.0, 0.0, 0.0]], [2.0])
    assert ran
    assert np.allclose(forces[0], [expected, 0.0, 0.0])


def test_tool_ignores_particles_outside_radius():
    ran, forces = _field("attract", [[60.0, 0.0, 0.0], [0.0, 50.0, 0.0]], [1.0, 1.0])
    assert ran
    assert np.array_equal(forces, np.zeros((2, 3)))


def test_tool_is_relative_to_its_center():
    _, forces = _field("attract", [[110.0, 100.0, 100.0]], [1.0], center=(100.0, 100.0, 100.0))
    assert forces[0, 0] < 0.0
    assert forces[0, 1] == pytest.approx(0.0)


def test_particle_at_tool_center_gets_no_radial_force():
    _, forces = _field("repel", [[0.0, 0.0, 0.0]], [1.0])
    assert np.array_equal(forces, np.zeros((1, 3)))


def test_disengaged_or_none_tool_does_nothing():
    ran, forces = _field("attract", [[10.0, 0.0, 0.0]], [1.0], engaged=False)
    assert not ran
    assert np.array_equal(forces, np.zeros((1, 3)))

    ran, _ = _field("none", [[10.0, 0.0, 0.0]], [1.0])
    assert not ran


def test_tool_on_empty_population():
    ran, forces = _field("drag", np.zeros((0, 3)), np.zeros(0))
    assert not ran
    assert forces.shape == (0, 3)
