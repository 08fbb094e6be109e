"""
Pairwise force model for the E / MP particle system.

Four inverse-square interactions act each frame:
- E <-> E repulsion, scaled by the target's repulsion strength
- MP -> E attraction, scaled by the source MP's attraction strength
- MP <-> MP repulsion, inherited from the E density around the target
- E -> MP attraction, scaled by the target MP's attraction strength

Pairs closer than ``min_distance`` contribute nothing for that frame.

Example:
    >>> from sphere_sim3d.physics.forces import acceleration_on
    >>> ax, ay, az = acceleration_on(particle, e_particles, mp_particles, params)
"""

from __future__ import annotations

import math
from typing import TYPE_CHECKING, Sequence

import numpy as np

from sphere_sim3d.core.particles import EParticle, MPParticle

if TYPE_CHECKING:
    from sphere_sim3d.params import SimParams


def pair_acceleration(
    xi: float, yi: float, zi: float,
    xj: float, yj: float, zj: float,
    magnitude_gain: float,
    min_distance: float,
    unit_direction: bool = True,
) -> tuple[float, float, float]:
    """
    Acceleration on particle i pushed away from particle j.

    Args:
        xi, yi, zi: Position of the target particle i
        xj, yj, zj: Position of the source particle j
        magnitude_gain: Numerator k of the law k / d² (negative to attract)
        min_distance: Separations below this contribute zero
        unit_direction: Apply k / d² along the unit vector (True) or
            multiply the raw separation vector by it (False)

    Returns:
        (ax, ay, az) acceleration on i due to j
    """
    dx = xi - xj
    dy = yi - yj
    dz = zi - zj
    d2 = dx*dx + dy*dy + dz*dz
    d = math.sqrt(d2)
    if d < min_distance:
        return 0.0, 0.0, 0.0
    f = magnitude_gain / d2
    if unit_direction:
        f /= d
    return dx * f, dy * f, dz * f


def ambient_e_repulsion(
    x: float,
    y: float,
    z: float,
    e_particles: Sequence[EParticle],
    *,
    gain: float,
    min_distance: float,
) -> float:
    """
    Scalar repulsion potential at (x, y, z) from the surrounding E particles.

    Sums ``gain / d²`` over every E particle at least ``min_distance`` away.
    """
    total = 0.0
    for e in e_particles:
        dx = x - e.x
        dy = y - e.y
        dz = z - e.z
        d2 = dx*dx + dy*dy + dz*dz
        if math.sqrt(d2) < min_distance:
            continue
        total += gain / d2
    return total


def e_acceleration(
    target: EParticle,
    e_particles: Sequence[EParticle],
    mp_particles: Sequence[MPParticle],
    params: "SimParams",
) -> tuple[float, float, float]:
    """Acceleration on an E particle: E repulsion plus MP attraction."""
    eps = params.min_distance
    unit = params.unit_direction
    x, y, z = target.x, target.y, target.z
    ax = ay = az = 0.0

    k_rep = target.repulsion_strength * params.e_repulsion_gain
    for other in e_particles:
        if other is target:
            continue
        px, py, pz = pair_acceleration(x, y, z, other.x, other.y, other.z, k_rep, eps, unit)
        ax += px
        ay += py
        az += pz

    for mp in mp_particles:
        k_att = -mp.attraction_strength * params.mp_on_e_attraction_gain
        px, py, pz = pair_acceleration(x, y, z, mp.x, mp.y, mp.z, k_att, eps, unit)
        ax += px
        ay += py
        az += pz

    return ax, ay, az


def mp_acceleration(
    target: MPParticle,
    mp_particles: Sequence[MPParticle],
    e_particles: Sequence[EParticle],
    params: "SimParams",
    *,
    ambient: float | None = None,
) -> tuple[float, float, float]:
    """
    Acceleration on an MP particle: inherited MP repulsion plus E attraction.

    Args:
        target: MP particle being accelerated
        mp_particles: All MP particles (target included, skipped by identity)
        e_particles: All E particles
        params: Simulation parameters
        ambient: Precomputed ``ambient_e_repulsion`` at the target. When None
            it is recomputed for every MP pair.
    """
    eps = params.min_distance
    unit = params.unit_direction
    x, y, z = target.x, target.y, target.z
    ax = ay = az = 0.0

    for other in mp_particles:
        if other is target:
            continue
        dx = x - other.x
        dy = y - other.y
        dz = z - other.z
        if math.sqrt(dx*dx + dy*dy + dz*dz) < eps:
            continue
        k_rep = ambient
        if k_rep is None:
            k_rep = ambient_e_repulsion(
                x, y, z, e_particles, gain=params.inherited_repulsion_gain, min_distance=eps
            )
        px, py, pz = pair_acceleration(x, y, z, other.x, other.y, other.z, k_rep, eps, unit)
        ax += px
        ay += py
        az += pz

    k_att = -target.attraction_strength * params.e_on_mp_attraction_gain
    for e in e_particles:
        px, py, pz = pair_acceleration(x, y, z, e.x, e.y, e.z, k_att, eps, unit)
        ax += px
        ay += py
        az += pz

    return ax, ay, az


def acceleration_on(
    target: EParticle | MPParticle,
    e_particles: Sequence[EParticle],
    mp_particles: Sequence[MPParticle],
    params: "SimParams",
) -> tuple[float, float, float]:
    """Acceleration on either species from the rest of the system."""
    if isinstance(target, MPParticle):
        return mp_acceleration(target, mp_particles, e_particles, params)
    return e_acceleration(target, e_particles, mp_particles, params)


class SnapshotSolver:
    """
    Vectorised all-pairs solver over a frozen snapshot of positions.

    Every acceleration is computed from the same start-of-step positions
    (Jacobi update), unlike the in-place sequential pass.
    """

    def compute(
        self,
        e_pos: np.ndarray,
        e_strength: np.ndarray,
        mp_pos: np.ndarray,
        mp_strength: np.ndarray,
        params: "SimParams",
    ) -> tuple[np.ndarray, np.ndarray]:
        """
        Compute accelerations for both species.

        Args:
            e_pos: (N_e, 3) E positions
            e_strength: (N_e,) E repulsion strengths
            mp_pos: (N_mp, 3) MP positions
            mp_strength: (N_mp,) MP attraction strengths
            params: Simulation parameters

        Returns:
            (acc_e, acc_mp) arrays of shape (N_e, 3) and (N_mp, 3)
        """
        eps = params.min_distance
        unit = params.unit_direction

        # E <- E repulsion, gain depends on the target row
        acc_e = self._accumulate(
            e_pos, e_pos, (e_strength * params.e_repulsion_gain)[:, None], eps, unit
        )
        # E <- MP attraction, gain depends on the source column
        acc_e += self._accumulate(
            e_pos, mp_pos, -(mp_strength * params.mp_on_e_attraction_gain)[None, :], eps, unit
        )

        ambient = self.ambient(mp_pos, e_pos, params)
        acc_mp = self._accumulate(mp_pos, mp_pos, ambient[:, None], eps, unit)
        acc_mp += self._accumulate(
            mp_pos, e_pos, -(mp_strength * params.e_on_mp_attraction_gain)[:, None], eps, unit
        )
        return acc_e, acc_mp

    def ambient(self, mp_pos: np.ndarray, e_pos: np.ndarray, params: "SimParams") -> np.ndarray:
        """Per-MP ambient E repulsion scalar, shape (N_mp,)."""
        if mp_pos.shape[0] == 0 or e_pos.shape[0] == 0:
            return np.zeros(mp_pos.shape[0], dtype=np.float64)
        d = mp_pos[:, None, :] - e_pos[None, :, :]
        d2 = np.sum(d * d, axis=2)
        keep = np.sqrt(d2) >= params.min_distance
        inv = np.divide(1.0, d2, out=np.zeros_like(d2), where=keep)
        return params.inherited_repulsion_gain * np.sum(inv, axis=1)

    @staticmethod
    def _accumulate(
        targets: np.ndarray,
        sources: np.ndarray,
        gain: np.ndarray,
        min_distance: float,
        unit_direction: bool,
    ) -> np.ndarray:
        acc = np.zeros((targets.shape[0], 3), dtype=np.float64)
        if targets.shape[0] == 0 or sources.shape[0] == 0:
            return acc
        d = targets[:, None, :] - sources[None, :, :]
        d2 = np.sum(d * d, axis=2)
        dist = np.sqrt(d2)
        # Self pairs have d = 0 and fall below min_distance.
        keep = dist >= min_distance
        denom = d2 * dist if unit_direction else d2
        f = np.divide(np.broadcast_to(gain, d2.shape), denom, out=np.zeros_like(d2), where=keep)
        acc += np.sum(d * f[:, :, None], axis=1)
        return acc
