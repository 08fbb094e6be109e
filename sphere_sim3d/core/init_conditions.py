"""
Spawn position samplers.

Both species spawn at uniformly random points of an axis-aligned cube,
either centred on the origin or jittered around an existing particle.
"""

from __future__ import annotations

import random


def sample_uniform_cube(
    rng: random.Random,
    half_extent: float,
    *,
    center: tuple[float, float, float] = (0.0, 0.0, 0.0),
) -> tuple[float, float, float]:
    """
    Sample a point uniformly inside the cube ``center ± half_extent`` per axis.

    Args:
        rng: Random number generator instance
        half_extent: Half-size of the cube
        center: Cube centre

    Returns:
        (x, y, z) position
    """
    h = float(half_extent)
    cx, cy, cz = center
    return (
        cx + rng.uniform(-h, h),
        cy + rng.uniform(-h, h),
        cz + rng.uniform(-h, h),
    )


def sample_near(
    rng: random.Random,
    anchor: tuple[float, float, float],
    jitter: float,
) -> tuple[float, float, float]:
    """Sample a point within ``jitter`` of ``anchor`` on every axis."""
    return sample_uniform_cube(rng, jitter, center=anchor)
