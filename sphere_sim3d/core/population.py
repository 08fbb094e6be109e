"""
Population lifecycle for the two particle species.

The manager owns both collections. Every spawn and removal goes through
it so the capacity caps are enforced in one place. Adds at capacity and
removals from an empty collection are silent no-ops.
"""

from __future__ import annotations

import random
from dataclasses import dataclass
from typing import TYPE_CHECKING

from sphere_sim3d.core.init_conditions import sample_near, sample_uniform_cube
from sphere_sim3d.core.particles import EParticle, MPParticle

if TYPE_CHECKING:
    from sphere_sim3d.params import SimParams


@dataclass(frozen=True, slots=True)
class PopulationCounts:
    """Current sizes and caps, for display."""
    e_count: int
    mp_count: int
    max_e: int
    max_mp: int

    @property
    def e_at_capacity(self) -> bool:
        return self.e_count >= self.max_e

    @property
    def mp_at_capacity(self) -> bool:
        return self.mp_count >= self.max_mp


class PopulationManager:
    def __init__(self, params: "SimParams", rng: random.Random | None = None) -> None:
        self.params = params
        self._rng = rng if rng is not None else random.Random(params.seed)
        self._e: list[EParticle] = []
        self._mp: list[MPParticle] = []

    @property
    def e_particles(self) -> list[EParticle]:
        return self._e

    @property
    def mp_particles(self) -> list[MPParticle]:
        return self._mp

    def counts(self) -> PopulationCounts:
        p = self.params
        return PopulationCounts(
            e_count=len(self._e),
            mp_count=len(self._mp),
            max_e=int(p.max_e_particles),
            max_mp=int(p.max_mp_particles),
        )

    def reset(self) -> None:
        """Clear both species and respawn the configured initial populations."""
        p = self.params
        self._e.clear()
        self._mp.clear()
        for _ in range(int(p.initial_e_count)):
            self.spawn_e_random()
        for _ in range(int(p.initial_mp_count)):
            self.spawn_mp_random()

    # --- spawning ---------------------------------------------------------

    def spawn_e_random(
        self,
        *,
        repulsion_strength: float | None = None,
        half_extent: float | None = None,
    ) -> EParticle | None:
        """
        Spawn an E particle uniformly inside the spawn cube.

        Args:
            repulsion_strength: Defaults to ``params.repulsion_strength``
            half_extent: Defaults to ``params.spawn_half_extent``

        Returns:
            The new particle, or None when the E cap is reached.
        """
        p = self.params
        if len(self._e) >= p.max_e_particles:
            return None
        if repulsion_strength is None:
            repulsion_strength = p.repulsion_strength
        if half_extent is None:
            half_extent = p.spawn_half_extent
        x, y, z = sample_uniform_cube(self._rng, half_extent)
        pt = EParticle(x=x, y=y, z=z, repulsion_strength=float(repulsion_strength))
        self._e.append(pt)
        return pt

    def spawn_e_near_random_mp(self, *, repulsion_strength: float | None = None) -> EParticle | None:
        """
        Spawn an E particle next to a randomly chosen MP particle.

        Without MP particles the E particle lands in the smaller fallback cube.
        ``repulsion_strength`` defaults to ``params.added_e_repulsion_strength``.
        """
        p = self.params
        if len(self._e) >= p.max_e_particles:
            return None
        if repulsion_strength is None:
            repulsion_strength = p.added_e_repulsion_strength
        if not self._mp:
            return self.spawn_e_random(
                repulsion_strength=repulsion_strength,
                half_extent=p.fallback_spawn_half_extent,
            )
        anchor = self._mp[self._rng.randrange(len(self._mp))]
        x, y, z = sample_near(self._rng, anchor.position, p.near_spawn_half_extent)
        pt = EParticle(x=x, y=y, z=z, repulsion_strength=float(repulsion_strength))
        self._e.append(pt)
        return pt

    def spawn_mp_random(self) -> MPParticle | None:
        """Spawn an MP particle uniformly inside the spawn cube, or None at the MP cap."""
        p = self.params
        if len(self._mp) >= p.max_mp_particles:
            return None
        x, y, z = sample_uniform_cube(self._rng, p.spawn_half_extent)
        pt = MPParticle(
            x=x,
            y=y,
            z=z,
            attraction_strength=float(p.attraction_strength),
            size=float(p.mp_size),
        )
        self._mp.append(pt)
        return pt

    def add_e_batch(self, count: int) -> int:
        """Spawn up to ``count`` random E particles; returns how many were added."""
        added = 0
        for _ in range(max(0, int(count))):
            if self.spawn_e_random() is None:
                break
            added += 1
        return added

    # --- removal ----------------------------------------------------------

    def remove_random_e(self) -> EParticle | None:
        if not self._e:
            return None
        return self._e.pop(self._rng.randrange(len(self._e)))

    def remove_random_mp(self) -> MPParticle | None:
        if not self._mp:
            return None
        return self._mp.pop(self._rng.randrange(len(self._mp)))

    def remove_e_batch(self, count: int) -> int:
        """Remove up to ``count`` random E particles; returns how many were removed."""
        removed = 0
        for _ in range(max(0, int(count))):
            if self.remove_random_e() is None:
                break
            removed += 1
        return removed

    def set_mp_size(self, size: float) -> None:
        self.params.mp_size = max(0.0, float(size))
        for pt in self._mp:
            pt.update_size(self.params.mp_size)
