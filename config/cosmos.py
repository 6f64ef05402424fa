"""Configuration for the Cosmos N-body engine."""

# =============================================================================
# PERFORMANCE PRESETS - Choose one by uncommenting
# =============================================================================

# PRESET: HIGH (200K bodies) - dense disks, slow first build
# PARTICLE_COUNT = 200_000
# THETA = 0.7

# PRESET: MEDIUM (100K bodies) - good balance
PARTICLE_COUNT = 100_000
THETA = 0.7

# PRESET: FAST (20K bodies) - quick headless runs
# PARTICLE_COUNT = 20_000
# THETA = 0.8

# =============================================================================

# Per-step simulation settings (see cosmos.settings.SimulationSettings)
SIMULATION = {
    "mode": "galaxy",              # "galaxy", "black_hole", "supernova", "interactions"
    "particle_count": PARTICLE_COUNT,
    "time_step": 0.005,
    "damping": 0.0,                # 0 = no velocity damping
    "gravity": 1.0,                # Gravitational constant (scaled units)
    "softening": 0.01,             # Softening length to prevent singularities
    "theta": THETA,                # Barnes-Hut opening angle
    "collisions": False,
    "restitution": 1.0,            # 1 = elastic, <1 = inelastic
    "rebuild_every_n": 1,          # Rebuild the octree every N steps
    "seed": 0,                     # Seed for the scenario random source
}

# Octree construction
TREE = {
    "max_leaf_size": 8,            # Particles per leaf before subdividing
    "max_depth": 32,               # Hard recursion cap (coincident points)
    "bounds_epsilon": 1e-3,        # Margin added to the bounding box half extents
    "parallel_threshold": 4096,    # Build root octants on worker threads above this
    "max_workers": 8,
}

# Spatial hash broad phase
COLLISIONS = {
    "cell_size_factor": 2.5,       # Cell size as a multiple of the mean radius
    "min_cell_size": 0.5,
    "radius_sample": 256,          # Radii sampled for the mean (first N particles)
}

# Interactive force field
INTERACTION = {
    "tool": "none",                # "none", "attract", "repel", "drag"
    "radius": 50.0,
    "strength": 1000.0,            # Positive pulls in, REPEL flips the sign
}

# Scenario initializers
SCENARIOS = {
    "galaxy": {
        "radius": 500.0,
        "thickness": 10.0,
        "orbital_scale": 50.0,
        "particle_mass": 1.0,
        "particle_radius": 0.5,
        "central_mass": 100_000.0,
        "central_radius": 5.0,
        "central_color": (5.0, 4.0, 2.0, 1.0),
    },
    "black_hole": {
        "radius": 400.0,
        "thickness": 2.0,
        "orbital_scale": 80.0,
        "particle_mass": 1.0,
        "particle_radius": 0.5,
        "particle_color": (1.0, 0.9, 0.6, 1.0),
        "central_mass": 200_000.0,
        "central_radius": 8.0,     # Event horizon approximation
        "central_color": (10.0, 8.0, 6.0, 1.0),
        "horizon_factor": 1.2,     # Absorb inside horizon_factor * central_radius
    },
    "supernova": {
        "core_radius": 0.5,        # Burst starts inside this sphere
        "max_speed": 200.0,
        "particle_mass": 0.5,
        "particle_radius": 0.6,
    },
    "interactions": {
        "extent": 200.0,           # Side length of the cloud cube
        "particle_mass": 1.0,
        "particle_radius": 1.0,
        "particle_color": (0.8, 0.9, 1.0, 1.0),
    },
}

# Headless runner
RUN = {
    "steps": 200,
    "report_every": 20,
}
