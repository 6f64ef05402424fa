"""
Cosmos Headless Runner
======================

Steps a Barnes-Hut N-body scenario without a window and prints progress.

Usage:
    python cosmos_main.py --mode galaxy --bodies 20k --steps 200
    python cosmos_main.py --mode black_hole --bodies 50k --collisions
    python cosmos_main.py --mode supernova --theta 0.9 --rebuild-every 2
"""

import argparse
import sys
import time
from typing import Optional

from config import cosmos as config
from cosmos import SimulationEngine, SimulationMode, SimulationSettings, warmup
from cosmos.diagnostics import kinetic_energy, total_energy, total_momentum

# Above this population the O(n^2) potential energy is skipped
ENERGY_LIMIT = 5_000


def parse_number(value: str) -> int:
    """Parse number with optional suffix (k, m, K, M)."""
    value = value.strip().lower()
    multipliers = {'k': 1_000, 'm': 1_000_000}

    for suffix, mult in multipliers.items():
        if value.endswith(suffix):
            return int(float(value[:-1]) * mult)

    return int(value)


def format_time(seconds: float) -> str:
    """Format a duration, milliseconds below one second."""
    if seconds < 1.0:
        return f"{seconds*1000:.0f}ms"
    elif seconds < 90:
        return f"{seconds:.1f}s"
    elif seconds < 3600:
        return f"{seconds/60:.1f}m"
    else:
        return f"{seconds/3600:.1f}h"


def _energy(engine: SimulationEngine, settings: SimulationSettings) -> Optional[float]:
    particles = engine.particles()
    if len(particles) > ENERGY_LIMIT:
        return None
    return total_energy(particles, settings.gravity, settings.softening)


def run(settings: SimulationSettings, steps: int, report_every: int) -> dict:
    """Reset, step ``steps`` frames and return a summary."""
    engine = SimulationEngine()
    engine.reset(settings)

    start_energy = _energy(engine, settings)
    absorbed = 0
    collisions = 0
    rebuilds = 0
    start = time.perf_counter()

    for frame in range(steps):
        frame_start = time.perf_counter()
        stats = engine.step(settings)
        frame_time = time.perf_counter() - frame_start

        absorbed += stats.absorbed
        collisions += stats.collisions
        rebuilds += int(stats.rebuilt)

        if report_every > 0 and ((frame + 1) % report_every == 0 or frame + 1 == steps):
            particles = engine.particles()
            print(f"[Run] Frame {frame+1:5d}/{steps} | "
                  f"N={len(particles):,} | "
                  f"KE={kinetic_energy(particles):.4e} | "
                  f"Step: {format_time(frame_time):>6s}")

    elapsed = time.perf_counter() - start
    end_energy = _energy(engine, settings)
    drift = None
    if start_energy is not None and end_energy is not None and start_energy != 0.0:
        drift = abs((end_energy - start_energy) / start_energy)

    return {
        "steps": steps,
        "particles": len(engine.particles()),
        "absorbed": absorbed,
        "collisions": collisions,
        "rebuilds": rebuilds,
        "elapsed": elapsed,
        "energy_drift": drift,
        "momentum": total_momentum(engine.particles()),
    }


def build_parser() -> argparse.ArgumentParser:
    sim = config.SIMULATION
    parser = argparse.ArgumentParser(description="Cosmos headless N-body runner")
    parser.add_argument("--mode", "-m", choices=[m.value for m in SimulationMode],
                        default=sim["mode"], help="Scenario to simulate")
    parser.add_argument("--bodies", "-n", type=str, help="Number of particles (e.g., 20000, 20k, 1m)")
    parser.add_argument("--steps", "-s", type=int, default=config.RUN["steps"], help="Frames to simulate")
    parser.add_argument("--seed", type=int, default=sim["seed"], help="Random seed")
    parser.add_argument("--theta", "-t", type=float, help="Override Barnes-Hut theta")
    parser.add_argument("--dt", type=float, help="Override time step")
    parser.add_argument("--softening", type=float, help="Override softening length")
    parser.add_argument("--damping", type=float, help="Override velocity damping")
    parser.add_argument("--collisions", action="store_true", help="Enable sphere collisions")
    parser.add_argument("--restitution", type=float, help="Collision restitution (1 = elastic)")
    parser.add_argument("--rebuild-every", type=int, help="Rebuild the octree every N frames")
    parser.add_argument("--report-every", type=int, default=config.RUN["report_every"],
                        help="Print progress every N frames (0 = summary only)")
    parser.add_argument("--no-warmup", action="store_true", help="Skip kernel pre-compilation")
    return parser


def main(argv=None) -> int:
    parser = build_parser()
    args = parser.parse_args(argv)

    overrides = {"mode": args.mode, "seed": args.seed, "collisions": args.collisions}
    if args.bodies:
        try:
            overrides["particle_count"] = parse_number(args.bodies)
        except ValueError:
            parser.error(f"invalid --bodies value: {args.bodies}")
    if args.theta is not None:
        overrides["theta"] = args.theta
    if args.dt is not None:
        overrides["time_step"] = args.dt
    if args.softening is not None:
        overrides["softening"] = args.softening
    if args.damping is not None:
        overrides["damping"] = args.damping
    if args.restitution is not None:
        overrides["restitution"] = args.restitution
    if args.rebuild_every is not None:
        overrides["rebuild_every_n"] = args.rebuild_every

    try:
        settings = SimulationSettings.from_config(**overrides)
    except ValueError as e:
        print(f"[Cosmos] Invalid settings: {e}")
        return 2

    print("=" * 60)
    print(f"  Mode: {settings.mode.value} | Bodies: {settings.particle_count:,} | Steps: {args.steps}")
    print(f"  θ={settings.theta} | dt={settings.time_step} | ε={settings.softening} | "
          f"collisions={'on' if settings.collisions else 'off'}")
    print("=" * 60)

    if not args.no_warmup:
        warmup()

    summary = run(settings, args.steps, args.report_every)

    print(f"\n[Run] ✓ {summary['steps']} frames in {format_time(summary['elapsed'])} "
          f"({summary['elapsed'] / max(1, summary['steps']) * 1000:.1f} ms/frame)")
    print(f"  Particles: {summary['particles']:,} (absorbed {summary['absorbed']:,})")
    print(f"  Collisions resolved: {summary['collisions']:,} | Tree rebuilds: {summary['rebuilds']}")
    if summary["energy_drift"] is not None:
        print(f"  Energy drift: {summary['energy_drift']:.3e}")
    return 0


if __name__ == "__main__":
    sys.exit(main())
