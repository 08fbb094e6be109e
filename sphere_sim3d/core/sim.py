from __future__ import annotations

import math
import random
import sys
import time
from dataclasses import dataclass
from typing import Callable

import numpy as np

from sphere_sim3d.core.particles import EParticle, MPParticle
from sphere_sim3d.core.population import PopulationCounts, PopulationManager
from sphere_sim3d.params import SimParams
from sphere_sim3d.physics.forces import (
    SnapshotSolver,
    ambient_e_repulsion,
    e_acceleration,
    mp_acceleration,
)
from sphere_sim3d.physics.integrator import (
    SpeciesConstants,
    clamp_to_bounds,
    e_constants,
    integrate,
    integrate_arrays,
    is_finite_state,
    mp_constants,
)


COMMANDS = (
    "add_e",
    "add_mp",
    "remove_e",
    "remove_mp",
    "reset",
    "add_e_batch_small",
    "add_e_batch_large",
    "remove_e_batch_small",
)


@dataclass(frozen=True, slots=True)
class SimSnapshot:
    """Read-only view of particle state for a renderer."""
    e_positions: np.ndarray  # (N_e, 3)
    mp_positions: np.ndarray  # (N_mp, 3)
    mp_sizes: np.ndarray  # (N_mp,)
    counts: PopulationCounts
    frame: int


class SphereSim3D:
    def __init__(self, params: SimParams) -> None:
        self._params = params
        self._rng = random.Random(params.seed)
        self.population = PopulationManager(params, self._rng)
        self._snapshot_solver: SnapshotSolver | None = None
        self.frame = 0
        self.last_step_ms: float | None = None
        self.last_non_finite = 0
        self.reset()

    @property
    def params(self) -> SimParams:
        return self._params

    @params.setter
    def params(self, params: SimParams) -> None:
        self._params = params
        self.population.params = params

    @property
    def e_particles(self) -> list[EParticle]:
        return self.population.e_particles

    @property
    def mp_particles(self) -> list[MPParticle]:
        return self.population.mp_particles

    def reset(self) -> None:
        self._rng.seed(self._params.seed)
        self.population.reset()
        self.frame = 0
        self.last_non_finite = 0

    def counts(self) -> PopulationCounts:
        return self.population.counts()

    # --- population commands ----------------------------------------------

    def apply_command(self, name: str) -> bool:
        """
        Apply a population-control request between frames.

        Args:
            name: One of ``COMMANDS``

        Returns:
            True if the population changed.

        Raises:
            ValueError: For an unknown command name.
        """
        pop = self.population
        p = self._params
        handlers: dict[str, Callable[[], bool]] = {
            "add_e": lambda: pop.spawn_e_near_random_mp() is not None,
            "add_mp": lambda: pop.spawn_mp_random() is not None,
            "remove_e": lambda: pop.remove_random_e() is not None,
            "remove_mp": lambda: pop.remove_random_mp() is not None,
            "reset": self._reset_command,
            "add_e_batch_small": lambda: pop.add_e_batch(p.batch_small) > 0,
            "add_e_batch_large": lambda: pop.add_e_batch(p.batch_large) > 0,
            "remove_e_batch_small": lambda: pop.remove_e_batch(p.batch_small) > 0,
        }
        handler = handlers.get(str(name).strip().lower())
        if handler is None:
            raise ValueError(f"Unknown population command: {name!r}")
        return handler()

    def _reset_command(self) -> bool:
        self.reset()
        return True

    # --- stepping ---------------------------------------------------------

    def step(self, dt: float) -> None:
        """
        Advance the simulation by one frame.

        Computes forces, integrates every particle and clamps it to the
        bounds. E particles are processed before MP particles.

        Args:
            dt: Elapsed frame time in seconds. Non-positive or non-finite
                values leave the state untouched.
        """
        dt = float(dt)
        if not (dt > 0.0 and math.isfinite(dt)):
            return
        if not self.e_particles and not self.mp_particles:
            return

        t0 = time.perf_counter()
        self.last_non_finite = 0
        if self._params.update_mode == "snapshot":
            self._step_snapshot(dt)
        else:
            self._step_sequential(dt)
        self.frame += 1
        self.last_step_ms = (time.perf_counter() - t0) * 1000.0

        if self.last_non_finite:
            print(
                f"[sim] frame {self.frame}: reset {self.last_non_finite} particle(s) with non-finite state.",
                file=sys.stderr,
            )

    def _step_sequential(self, dt: float) -> None:
        # In-place: each particle sees the already-updated state of those before it.
        p = self._params
        e_list = self.e_particles
        mp_list = self.mp_particles
        e_c = e_constants(p)
        mp_c = mp_constants(p)

        for pt in e_list:
            ax, ay, az = e_acceleration(pt, e_list, mp_list, p)
            self._advance(pt, ax, ay, az, dt, e_c)

        # E positions are frozen for the rest of the step, so the ambient
        # scalar of each MP equals the value seen when it is processed.
        ambient: list[float] | None = None
        if p.precompute_ambient and len(mp_list) > 1:
            ambient = [
                ambient_e_repulsion(
                    mp.x, mp.y, mp.z, e_list,
                    gain=p.inherited_repulsion_gain,
                    min_distance=p.min_distance,
                )
                for mp in mp_list
            ]

        for i, pt in enumerate(mp_list):
            ax, ay, az = mp_acceleration(
                pt, mp_list, e_list, p, ambient=None if ambient is None else ambient[i]
            )
            self._advance(pt, ax, ay, az, dt, mp_c)

    def _advance(
        self,
        pt: EParticle | MPParticle,
        ax: float,
        ay: float,
        az: float,
        dt: float,
        constants: SpeciesConstants,
    ) -> None:
        x0, y0, z0 = pt.x, pt.y, pt.z
        integrate(pt, ax, ay, az, dt, constants)
        clamp_to_bounds(pt, self._params.bounds)
        if self._params.guard_non_finite and not is_finite_state(pt):
            pt.x, pt.y, pt.z = x0, y0, z0
            pt.vx = pt.vy = pt.vz = 0.0
            clamp_to_bounds(pt, self._params.bounds)
            self.last_non_finite += 1

    def _step_snapshot(self, dt: float) -> None:
        p = self._params
        if self._snapshot_solver is None:
            self._snapshot_solver = SnapshotSolver()

        e_list = self.e_particles
        mp_list = self.mp_particles
        e_pos = _positions(e_list)
        e_vel = _velocities(e_list)
        mp_pos = _positions(mp_list)
        mp_vel = _velocities(mp_list)
        e_strength = np.array([pt.repulsion_strength for pt in e_list], dtype=np.float64)
        mp_strength = np.array([pt.attraction_strength for pt in mp_list], dtype=np.float64)

        acc_e, acc_mp = self._snapshot_solver.compute(e_pos, e_strength, mp_pos, mp_strength, p)

        for particles, pos, vel, acc, constants in (
            (e_list, e_pos, e_vel, acc_e, e_constants(p)),
            (mp_list, mp_pos, mp_vel, acc_mp, mp_constants(p)),
        ):
            start = pos.copy()
            integrate_arrays(pos, vel, acc, dt, constants, p.bounds)
            if p.guard_non_finite:
                bad = ~(np.isfinite(pos).all(axis=1) & np.isfinite(vel).all(axis=1))
                if bad.any():
                    pos[bad] = np.clip(start[bad], -p.bounds, p.bounds)
                    vel[bad] = 0.0
                    self.last_non_finite += int(bad.sum())
            for i, pt in enumerate(particles):
                pt.x, pt.y, pt.z = (float(v) for v in pos[i])
                pt.vx, pt.vy, pt.vz = (float(v) for v in vel[i])

    # --- outputs ----------------------------------------------------------

    def snapshot(self) -> SimSnapshot:
        e_pos = _positions(self.e_particles)
        mp_pos = _positions(self.mp_particles)
        mp_sizes = np.array([pt.size for pt in self.mp_particles], dtype=np.float64)
        for arr in (e_pos, mp_pos, mp_sizes):
            arr.setflags(write=False)
        return SimSnapshot(
            e_positions=e_pos,
            mp_positions=mp_pos,
            mp_sizes=mp_sizes,
            counts=self.counts(),
            frame=self.frame,
        )

    def validate_state(self) -> list[str]:
        issues: list[str] = []
        p = self._params
        b = float(p.bounds)
        eps = 1e-6

        for label, particles in (("E", self.e_particles), ("MP", self.mp_particles)):
            for i, pt in enumerate(particles):
                if not is_finite_state(pt):
                    issues.append(f"{label} particle {i} has non-finite position/velocity")
                    continue
                if abs(pt.x) > b + eps or abs(pt.y) > b + eps or abs(pt.z) > b + eps:
                    issues.append(f"{label} particle {i} out of bounds")

        counts = self.counts()
        if counts.e_count > counts.max_e:
            issues.append(f"E count {counts.e_count} exceeds cap {counts.max_e}")
        if counts.mp_count > counts.max_mp:
            issues.append(f"MP count {counts.mp_count} exceeds cap {counts.max_mp}")
        return issues


def _positions(particles: list[EParticle] | list[MPParticle]) -> np.ndarray:
    return np.array([(pt.x, pt.y, pt.z) for pt in particles], dtype=np.float64).reshape(-1, 3)


def _velocities(particles: list[EParticle] | list[MPParticle]) -> np.ndarray:
    return np.array([(pt.vx, pt.vy, pt.vz) for pt in particles], dtype=np.float64).reshape(-1, 3)
