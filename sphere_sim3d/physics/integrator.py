"""
Explicit Euler integration with per-species gain and damping, and the
cubic bounds clamp applied after every update.
"""

from __future__ import annotations

import math
from dataclasses import dataclass
from typing import TYPE_CHECKING

import numpy as np

if TYPE_CHECKING:
    from sphere_sim3d.core.particles import EParticle, MPParticle
    from sphere_sim3d.params import SimParams


@dataclass(frozen=True, slots=True)
class SpeciesConstants:
    """
    Integration constants of one species.

    Attributes:
        accel_gain: Multiplier on acceleration * dt (inverse inertia)
        damping: Velocity factor kept per step
    """
    accel_gain: float
    damping: float


def e_constants(params: "SimParams") -> SpeciesConstants:
    return SpeciesConstants(accel_gain=params.e_accel_gain, damping=params.damping)


def mp_constants(params: "SimParams") -> SpeciesConstants:
    return SpeciesConstants(accel_gain=params.mp_accel_gain, damping=params.damping)


def integrate(
    pt: "EParticle | MPParticle",
    ax: float,
    ay: float,
    az: float,
    dt: float,
    constants: SpeciesConstants,
) -> None:
    """Velocity then position update: v += a*dt*gain, v *= damping, x += v*dt."""
    k = dt * constants.accel_gain
    damping = constants.damping

    pt.vx = (pt.vx + ax * k) * damping
    pt.vy = (pt.vy + ay * k) * damping
    pt.vz = (pt.vz + az * k) * damping

    pt.x += pt.vx * dt
    pt.y += pt.vy * dt
    pt.z += pt.vz * dt


def clamp_to_bounds(pt: "EParticle | MPParticle", bounds: float) -> None:
    """Clamp each position component to [-bounds, bounds]; velocity is untouched."""
    b = float(bounds)
    pt.x = max(-b, min(b, pt.x))
    pt.y = max(-b, min(b, pt.y))
    pt.z = max(-b, min(b, pt.z))


def is_finite_state(pt: "EParticle | MPParticle") -> bool:
    return (
        math.isfinite(pt.x)
        and math.isfinite(pt.y)
        and math.isfinite(pt.z)
        and math.isfinite(pt.vx)
        and math.isfinite(pt.vy)
        and math.isfinite(pt.vz)
    )


def integrate_arrays(
    pos: np.ndarray,
    vel: np.ndarray,
    acc: np.ndarray,
    dt: float,
    constants: SpeciesConstants,
    bounds: float,
) -> None:
    """Vectorised ``integrate`` + ``clamp_to_bounds`` on (N, 3) arrays, in place."""
    vel += acc * (dt * constants.accel_gain)
    vel *= constants.damping
    pos += vel * dt
    np.clip(pos, -bounds, bounds, out=pos)
