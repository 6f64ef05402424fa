"""Simulation settings passed to the engine on every reset/step."""

import dataclasses
from dataclasses import dataclass
from enum import Enum
from typing import Optional, Tuple

from config import cosmos as config


class SimulationMode(Enum):
    GALAXY = "galaxy"
    BLACK_HOLE = "black_hole"      # Accretion disk around an absorbing body
    SUPERNOVA = "supernova"        # Radial burst from the origin
    INTERACTIONS = "interactions"  # Uniform cloud at rest


class InteractionTool(Enum):
    NONE = "none"
    ATTRACT = "attract"
    REPEL = "repel"
    DRAG = "drag"


@dataclass(frozen=True)
class SimulationSettings:
    """Immutable per-step configuration.

    Field defaults mirror ``config.cosmos``; use :meth:`from_config` to pick up
    edits made to that module and :meth:`replace` to derive variants.
    """
    mode: SimulationMode = SimulationMode.GALAXY
    particle_count: int = 100_000
    time_step: float = 0.005
    damping: float = 0.0
    gravity: float = 1.0
    softening: float = 0.01
    theta: float = 0.7
    collisions: bool = False
    restitution: float = 1.0
    rebuild_every_n: int = 1
    seed: Optional[int] = 0
    max_leaf_size: int = 8

    # Interactive tool
    tool: InteractionTool = InteractionTool.NONE
    tool_center: Tuple[float, float, float] = (0.0, 0.0, 0.0)
    tool_radius: float = 50.0
    tool_strength: float = 1000.0
    tool_engaged: bool = False

    def __post_init__(self):
        # Accept plain strings for the enum fields (CLI, config dicts)
        if not isinstance(self.mode, SimulationMode):
            object.__setattr__(self, "mode", SimulationMode(self.mode))
        if not isinstance(self.tool, InteractionTool):
            object.__setattr__(self, "tool", InteractionTool(self.tool))
        object.__setattr__(self, "tool_center", tuple(float(c) for c in self.tool_center))

        if self.particle_count < 0:
            raise ValueError(f"particle_count must be >= 0, got {self.particle_count}")
        if self.rebuild_every_n < 1:
            raise ValueError(f"rebuild_every_n must be >= 1, got {self.rebuild_every_n}")
        if self.max_leaf_size < 1:
            raise ValueError(f"max_leaf_size must be >= 1, got {self.max_leaf_size}")
        if self.softening < 0:
            raise ValueError(f"softening must be >= 0, got {self.softening}")
        if self.theta < 0:
            raise ValueError(f"theta must be >= 0, got {self.theta}")
        if self.tool_radius < 0:
            raise ValueError(f"tool_radius must be >= 0, got {self.tool_radius}")
        if len(self.tool_center) != 3:
            raise ValueError(f"tool_center must have 3 components, got {len(self.tool_center)}")

    @classmethod
    def from_config(cls, **overrides) -> "SimulationSettings":
        """Build settings from ``config.cosmos`` with keyword overrides."""
        sim = config.SIMULATION
        tool = config.INTERACTION
        values = dict(
            mode=sim["mode"],
            particle_count=int(sim["particle_count"]),
            time_step=float(sim["time_step"]),
            damping=float(sim["damping"]),
            gravity=float(sim["gravity"]),
            softening=float(sim["softening"]),
            theta=float(sim["theta"]),
            collisions=bool(sim["collisions"]),
            restitution=float(sim["restitution"]),
            rebuild_every_n=int(sim["rebuild_every_n"]),
            seed=sim["seed"],
            max_leaf_size=int(config.TREE["max_leaf_size"]),
            tool=tool["tool"],
            tool_radius=float(tool["radius"]),
            tool_strength=float(tool["strength"]),
        )
        values.update(overrides)
        return cls(**values)

    def replace(self, **changes) -> "SimulationSettings":
        return dataclasses.replace(self, **changes)

    @property
    def tree_params(self) -> tuple:
        """Parameters that invalidate a built tree when they change."""
        return (self.gravity, self.softening, self.theta, self.max_leaf_size)
