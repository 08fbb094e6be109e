#!/usr/bin/env python3
"""
Performance benchmark for the sphere simulation step.

Compares the update strategies:
- sequential, MP ambient repulsion recomputed per pair (O(N_mp² · N_e))
- sequential, ambient precomputed once per MP (O(N_mp · N_e))
- snapshot (NumPy, Jacobi update)

Usage:
    python -m sphere_sim3d.utils.benchmark [--e 500] [--mp 20] [--frames 20]
"""

from __future__ import annotations

import argparse
import sys
from dataclasses import replace

from sphere_sim3d.core.sim import SphereSim3D
from sphere_sim3d.params import SimParams
from sphere_sim3d.utils.export import export_snapshot_csv


VARIANTS = {
    "sequential_naive": {"update_mode": "sequential", "precompute_ambient": False},
    "sequential_ambient": {"update_mode": "sequential", "precompute_ambient": True},
    "snapshot": {"update_mode": "snapshot", "precompute_ambient": False},
}


def build_sim(base: SimParams, n_e: int, n_mp: int, **overrides) -> SphereSim3D:
    """Build a simulation with the given initial populations."""
    params = replace(
        base,
        initial_e_count=n_e,
        initial_mp_count=n_mp,
        max_e_particles=max(base.max_e_particles, n_e),
        max_mp_particles=max(base.max_mp_particles, n_mp),
        **overrides,
    ).clamp()
    return SphereSim3D(params)


def benchmark_variant(
    base: SimParams,
    name: str,
    *,
    n_e: int,
    n_mp: int,
    frames: int,
    dt: float,
) -> tuple[float, float, SphereSim3D]:
    """Step one variant; returns (mean_ms, std_ms, sim)."""
    sim = build_sim(base, n_e, n_mp, **VARIANTS[name])
    times = []
    for _ in range(frames):
        sim.step(dt)
        if sim.last_step_ms is not None:
            times.append(sim.last_step_ms)
    if not times:
        return 0.0, 0.0, sim
    mean_ms = sum(times) / len(times)
    std_ms = (sum((t - mean_ms) ** 2 for t in times) / len(times)) ** 0.5
    return mean_ms, std_ms, sim


def run_benchmark(
    base: SimParams,
    *,
    n_e: int,
    n_mp: int,
    frames: int,
    dt: float = 1.0 / 60.0,
    variants: list[str] | None = None,
) -> dict[str, float]:
    """Run every requested variant and print a summary."""
    print(f"\n{'='*60}")
    print(f"Benchmark: {n_e} E, {n_mp} MP, {frames} frames, dt={dt:.4g}")
    print(f"{'='*60}")

    results: dict[str, float] = {}
    for name in variants or list(VARIANTS):
        print(f"{name}...", end=" ", flush=True)
        mean_ms, std_ms, sim = benchmark_variant(base, name, n_e=n_e, n_mp=n_mp, frames=frames, dt=dt)
        print(f"{mean_ms:.2f} ± {std_ms:.2f} ms")
        issues = sim.validate_state()
        if issues:
            print(f"[benchmark] {name}: {len(issues)} state issue(s), first: {issues[0]}", file=sys.stderr)
        results[name] = mean_ms

    if "sequential_naive" in results and results.get("sequential_ambient"):
        speedup = results["sequential_naive"] / results["sequential_ambient"]
        print(f"  ambient precompute: {speedup:.1f}x faster than naive")
    return results


def main(argv: list[str] | None = None) -> int:
    parser = argparse.ArgumentParser(description="Benchmark sphere simulation update modes")
    parser.add_argument("--e", type=int, default=500, help="Number of E particles")
    parser.add_argument("--mp", type=int, default=20, help="Number of MP particles")
    parser.add_argument("--frames", "-f", type=int, default=20, help="Frames per variant")
    parser.add_argument("--dt", type=float, default=1.0 / 60.0, help="Frame time in seconds")
    parser.add_argument("--params", type=str, default=None, help="JSON parameter file")
    parser.add_argument("--variant", action="append", choices=sorted(VARIANTS), help="Variant to run (repeatable)")
    parser.add_argument("--export", type=str, default=None, help="Write the final sequential snapshot to CSV")
    args = parser.parse_args(argv)

    base = SimParams.load(args.params) if args.params else SimParams().clamp()
    for warning in base.validate():
        print(f"[params] {warning}", file=sys.stderr)

    run_benchmark(base, n_e=args.e, n_mp=args.mp, frames=args.frames, dt=args.dt, variants=args.variant)

    if args.export:
        _mean, _std, sim = benchmark_variant(
            base, "sequential_ambient", n_e=args.e, n_mp=args.mp, frames=args.frames, dt=args.dt
        )
        stats = export_snapshot_csv(sim.snapshot(), args.export, e_size=sim.params.e_size)
        print(f"Exported {stats.e_count} E and {stats.mp_count} MP particles to {stats.file_path}")
    return 0


if __name__ == "__main__":
    sys.exit(main())
