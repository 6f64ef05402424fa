"""Struct-of-arrays particle storage shared by every simulation stage."""

from typing import NamedTuple

import numpy as np


class Particle(NamedTuple):
    """Copy of a single particle row (for inspection, not for writing back)."""
    position: np.ndarray
    velocity: np.ndarray
    mass: float
    radius: float
    color: np.ndarray
    force: np.ndarray


class ParticleSet:
    """
    Dense, index-stable particle arrays.

    Row ``i`` of every array belongs to particle ``i``; indices double as the
    particle identity inside octree leaves for the duration of a step.

    Arrays:
        positions, velocities, forces: (n, 3) float64
        masses, radii: (n,) float64
        colors: (n, 4) float32, HDR so components may exceed 1
    """

    __slots__ = ("positions", "velocities", "masses", "radii", "colors", "forces")

    def __init__(self, positions, velocities, masses, radii, colors, forces=None):
        self.positions = np.ascontiguousarray(positions, dtype=np.float64).reshape(-1, 3)
        self.velocities = np.ascontiguousarray(velocities, dtype=np.float64).reshape(-1, 3)
        self.masses = np.ascontiguousarray(masses, dtype=np.float64).reshape(-1)
        self.radii = np.ascontiguousarray(radii, dtype=np.float64).reshape(-1)
        self.colors = np.ascontiguousarray(colors, dtype=np.float32).reshape(-1, 4)
        if forces is None:
            forces = np.zeros_like(self.positions)
        self.forces = np.ascontiguousarray(forces, dtype=np.float64).reshape(-1, 3)

        n = len(self.positions)
        for name in ("velocities", "masses", "radii", "colors", "forces"):
            if len(getattr(self, name)) != n:
                raise ValueError(f"{name} has {len(getattr(self, name))} rows, expected {n}")

    @classmethod
    def empty(cls, n: int = 0) -> "ParticleSet":
        """Zeroed particles with unit mass and radius and white color."""
        return cls(
            positions=np.zeros((n, 3), dtype=np.float64),
            velocities=np.zeros((n, 3), dtype=np.float64),
            masses=np.ones(n, dtype=np.float64),
            radii=np.ones(n, dtype=np.float64),
            colors=np.ones((n, 4), dtype=np.float32),
        )

    def __len__(self) -> int:
        return len(self.positions)

    def particle(self, i: int) -> Particle:
        return Particle(
            self.positions[i].copy(),
            self.velocities[i].copy(),
            float(self.masses[i]),
            float(self.radii[i]),
            self.colors[i].copy(),
            self.forces[i].copy(),
        )

    def copy(self) -> "ParticleSet":
        return ParticleSet(
            self.positions.copy(),
            self.velocities.copy(),
            self.masses.copy(),
            self.radii.copy(),
            self.colors.copy(),
            self.forces.copy(),
        )

    def read_only(self) -> "ParticleSet":
        """Views of the live arrays with writes disabled (no copy)."""
        view = ParticleSet.__new__(ParticleSet)
        for name in self.__slots__:
            arr = getattr(self, name).view()
            arr.flags.writeable = False
            setattr(view, name, arr)
        return view

    def keep(self, mask: np.ndarray) -> int:
        """Drop every row where ``mask`` is False. Returns the number removed."""
        mask = np.asarray(mask, dtype=np.bool_)
        removed = int(len(mask) - np.count_nonzero(mask))
        if removed == 0:
            return 0
        for name in self.__slots__:
            setattr(self, name, np.ascontiguousarray(getattr(self, name)[mask]))
        return removed
