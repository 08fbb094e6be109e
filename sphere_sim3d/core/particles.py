"""
Particle records for the two simulated species.

E particles are small and light: they repel each other and are pulled
toward MP particles. MP particles are larger and heavy: they attract E
particles and push each other apart with a repulsion inherited from the
surrounding E density.
"""

from __future__ import annotations

from dataclasses import dataclass


@dataclass(slots=True)
class EParticle:
    """
    Repulsive-species particle.

    Attributes:
        x, y, z: Position
        vx, vy, vz: Velocity
        repulsion_strength: Per-particle repulsion, fixed at creation
    """
    x: float
    y: float
    z: float
    vx: float = 0.0
    vy: float = 0.0
    vz: float = 0.0
    repulsion_strength: float = 1.0

    @property
    def position(self) -> tuple[float, float, float]:
        return self.x, self.y, self.z

    @property
    def velocity(self) -> tuple[float, float, float]:
        return self.vx, self.vy, self.vz


@dataclass(slots=True)
class MPParticle:
    """
    Attractive-species particle.

    Attributes:
        x, y, z: Position
        vx, vy, vz: Velocity
        attraction_strength: Pull exerted on E particles (and felt from them)
        size: Render size
        fx, fy, fz: External force accumulator
    """
    x: float
    y: float
    z: float
    vx: float = 0.0
    vy: float = 0.0
    vz: float = 0.0
    attraction_strength: float = 1.0
    size: float = 1.0
    fx: float = 0.0
    fy: float = 0.0
    fz: float = 0.0

    @property
    def position(self) -> tuple[float, float, float]:
        return self.x, self.y, self.z

    @property
    def velocity(self) -> tuple[float, float, float]:
        return self.vx, self.vy, self.vz

    @property
    def external_force(self) -> tuple[float, float, float]:
        return self.fx, self.fy, self.fz

    def apply_force(self, fx: float, fy: float, fz: float) -> None:
        # Accumulated only; the force pass does not consume it.
        self.fx += fx
        self.fy += fy
        self.fz += fz

    def update_size(self, size: float) -> None:
        self.size = max(0.0, float(size))
