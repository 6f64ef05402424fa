"""
Simulation engine: owns the particles and runs the per-step pipeline.

Stage order (full barrier between stages):
    tree build + mass aggregation (when due) -> forces -> interactive tool
    -> integration -> collisions (optional) -> absorption (black-hole mode)
"""

import time
from typing import NamedTuple, Optional

import numpy as np

from config import cosmos as config
from cosmos.collisions import resolve_collisions
from cosmos.gravity import BarnesHut, BarnesHutParams
from cosmos.integrator import integrate
from cosmos.interaction import apply_tool
from cosmos.octree import Octree
from cosmos.particles import ParticleSet
from cosmos.scenarios import generate
from cosmos.settings import SimulationMode, SimulationSettings


class StepStats(NamedTuple):
    rebuilt: bool
    collisions: int
    absorbed: int


def absorb_into_horizon(particles: ParticleSet, horizon_factor: float = None) -> int:
    """
    Remove every particle (except the central body at index 0) closer to it
    than ``horizon_factor`` times its radius. Returns the number removed.
    """
    if len(particles) < 2:
        return 0
    if horizon_factor is None:
        horizon_factor = config.SCENARIOS["black_hole"]["horizon_factor"]
    horizon = particles.radii[0] * horizon_factor
    offsets = particles.positions - particles.positions[0]
    dist_sq = np.einsum("ij,ij->i", offsets, offsets)
    keep = dist_sq >= horizon * horizon
    keep[0] = True
    return particles.keep(keep)


class SimulationEngine:
    """
    Gravitational N-body simulation driven one frame at a time.

    The particle set is exclusively owned by the engine; renderers read it
    through :meth:`particles` after a step completes.
    """

    def __init__(self, settings: Optional[SimulationSettings] = None):
        self._particles = ParticleSet.empty(0)
        self._bh = BarnesHut()
        self._rng = np.random.default_rng(0)
        self.frame = 0
        self.last_step = StepStats(False, 0, 0)
        self._built_count = -1
        self._built_params = None
        self._steps_since_build = 0
        if settings is not None:
            self.reset(settings)

    # ------------------------------------------------------------------
    # Public interface
    # ------------------------------------------------------------------

    def reset(self, settings: SimulationSettings):
        """Discard all state, reseed and regenerate the population for the mode."""
        self._rng = np.random.default_rng(settings.seed)
        self._particles = generate(settings.mode, settings.particle_count, self._rng)
        self.frame = 0
        self.last_step = StepStats(False, 0, 0)
        self._rebuild(settings)
        print(f"[Cosmos] Reset {settings.mode.value}: {len(self._particles):,} particles "
              f"({self.tree.num_nodes:,} tree nodes)")

    def step(self, settings: SimulationSettings) -> StepStats:
        """Advance the simulation by one frame."""
        p = self._particles

        rebuilt = self._needs_rebuild(settings)
        if rebuilt:
            self._rebuild(settings)

        p.forces.fill(0.0)
        self._bh.accumulate_forces(p.positions, p.masses, p.forces)
        apply_tool(p.positions, p.forces, p.masses, settings)

        if len(p) > 0:
            integrate(p.positions, p.velocities, p.forces, p.masses,
                      float(settings.time_step), float(settings.damping))

        collisions = 0
        if settings.collisions:
            collisions = resolve_collisions(p, settings.restitution)

        absorbed = 0
        if settings.mode == SimulationMode.BLACK_HOLE:
            absorbed = absorb_into_horizon(p)

        self.frame += 1
        self._steps_since_build += 1
        self.last_step = StepStats(rebuilt, collisions, absorbed)
        return self.last_step

    def particles(self) -> ParticleSet:
        """Read-only view of the current particle state."""
        return self._particles.read_only()

    def particles_mutable(self) -> ParticleSet:
        """Live particle store for external tools; never write during a step."""
        return self._particles

    @property
    def tree(self) -> Octree:
        return self._bh.tree

    # ------------------------------------------------------------------
    # Tree cadence
    # ------------------------------------------------------------------

    def _needs_rebuild(self, settings: SimulationSettings) -> bool:
        if len(self._particles) != self._built_count:
            return True
        if settings.tree_params != self._built_params:
            return True
        return self._steps_since_build >= settings.rebuild_every_n

    def _rebuild(self, settings: SimulationSettings):
        params = BarnesHutParams(
            theta=settings.theta,
            softening=settings.softening,
            G=settings.gravity,
            max_leaf_size=settings.max_leaf_size,
        )
        if params != self._bh.params:
            self._bh = BarnesHut(params)
        self._bh.build(self._particles.positions, self._particles.masses)
        self._built_count = len(self._particles)
        self._built_params = settings.tree_params
        self._steps_since_build = 0


def warmup():
    """Pre-compile the Numba kernels on a tiny throwaway simulation."""
    start = time.perf_counter()
    settings = SimulationSettings(
        mode=SimulationMode.BLACK_HOLE, particle_count=64, collisions=True,
        tool="attract", tool_engaged=True,
    )
    engine = SimulationEngine(settings)
    engine.step(settings)
    engine.step(settings.replace(tool="drag"))
    print(f"[Cosmos] Kernels compiled in {time.perf_counter() - start:.2f}s")
