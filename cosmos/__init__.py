"""Cosmos: Barnes-Hut gravitational N-body engine."""

from .settings import InteractionTool, SimulationMode, SimulationSettings
from .particles import Particle, ParticleSet
from .octree import BoundingBox, Octree, compute_bounds
from .gravity import BarnesHut, BarnesHutParams, direct_forces
from .collisions import resolve_collisions, resolve_collisions_naive
from .engine import SimulationEngine, StepStats, absorb_into_horizon, warmup

__all__ = [
    "InteractionTool", "SimulationMode", "SimulationSettings",
    "Particle", "ParticleSet",
    "BoundingBox", "Octree", "compute_bounds",
    "BarnesHut", "BarnesHutParams", "direct_forces",
    "resolve_collisions", "resolve_collisions_naive",
    "SimulationEngine", "StepStats", "absorb_into_horizon", "warmup",
]
