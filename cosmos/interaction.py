"""Interactive radial force field (attract / repel / spring drag)."""

import math

import numpy as np
from numba import njit, prange

from cosmos.settings import InteractionTool, SimulationSettings

TOOL_ATTRACT = 1
TOOL_REPEL = 2
TOOL_DRAG = 3

_TOOL_CODES = {
    InteractionTool.ATTRACT: TOOL_ATTRACT,
    InteractionTool.REPEL: TOOL_REPEL,
    InteractionTool.DRAG: TOOL_DRAG,
}


@njit(parallel=True, fastmath=True, cache=True)
def apply_tool_field(
    positions: np.ndarray,
    forces: np.ndarray,
    masses: np.ndarray,
    kind: int,
    center: np.ndarray,
    radius: float,
    strength: float,
):
    """
    Add the tool force to every particle within ``radius`` of ``center``.

    ATTRACT/REPEL use a linear falloff ``strength * (1 - d / radius)`` along
    the radial direction; DRAG is a spring ``strength * (c - x) / radius``.
    The field is an acceleration, so it is scaled by mass before adding.
    """
    if radius <= 0.0:
        return
    radius_sq = radius * radius
    for i in prange(positions.shape[0]):
        dx = center[0] - positions[i, 0]
        dy = center[1] - positions[i, 1]
        dz = center[2] - positions[i, 2]
        dist_sq = dx * dx + dy * dy + dz * dz
        if dist_sq >= radius_sq:
            continue
        m = masses[i]

        if kind == TOOL_DRAG:
            scale = m * strength / radius
            forces[i, 0] += dx * scale
            forces[i, 1] += dy * scale
            forces[i, 2] += dz * scale
            continue

        dist = math.sqrt(dist_sq)
        if dist <= 0.0:
            continue
        magnitude = strength * (1.0 - dist / radius)
        if kind == TOOL_REPEL:
            magnitude = -magnitude
        scale = m * magnitude / dist
        forces[i, 0] += dx * scale
        forces[i, 1] += dy * scale
        forces[i, 2] += dz * scale


def apply_tool(positions: np.ndarray, forces: np.ndarray, masses: np.ndarray,
               settings: SimulationSettings) -> bool:
    """Apply the engaged tool from ``settings``. Returns True if anything ran."""
    if not settings.tool_engaged or settings.tool == InteractionTool.NONE:
        return False
    if positions.shape[0] == 0:
        return False
    apply_tool_field(
        positions, forces, masses, _TOOL_CODES[settings.tool],
        np.asarray(settings.tool_center, dtype=np.float64),
        float(settings.tool_radius), float(settings.tool_strength),
    )
    return True
