from __future__ import annotations

import json
import math
from dataclasses import asdict, dataclass
from pathlib import Path
from typing import Any


UPDATE_MODES = {"sequential", "snapshot"}


@dataclass(slots=True)
class SimParams:
    initial_e_count: int = 10
    initial_mp_count: int = 2
    max_e_particles: int = 1000
    max_mp_particles: int = 100
    batch_small: int = 10
    batch_large: int = 100

    repulsion_strength: float = 5.0  # bulk / initial E spawn
    added_e_repulsion_strength: float = 1.0  # single runtime E add
    attraction_strength: float = 3.0
    mp_size: float = 1.5
    e_size: float = 0.1

    spawn_half_extent: float = 20.0
    near_spawn_half_extent: float = 0.5
    fallback_spawn_half_extent: float = 5.0

    min_distance: float = 0.1
    e_repulsion_gain: float = 2.0
    mp_on_e_attraction_gain: float = 200.0
    inherited_repulsion_gain: float = 1000.0
    e_on_mp_attraction_gain: float = 200.0
    unit_direction: bool = True  # False = magnitude times raw separation vector

    e_accel_gain: float = 2.0
    mp_accel_gain: float = 0.01
    damping: float = 0.99
    bounds: float = 2000.0  # box half-size: [-bounds, +bounds]

    update_mode: str = "sequential"  # sequential | snapshot
    precompute_ambient: bool = True
    guard_non_finite: bool = True
    seed: int = 1

    def clamp(self) -> "SimParams":
        self.max_e_particles = max(0, int(self.max_e_particles))
        self.max_mp_particles = max(0, int(self.max_mp_particles))
        self.initial_e_count = min(self.max_e_particles, max(0, int(self.initial_e_count)))
        self.initial_mp_count = min(self.max_mp_particles, max(0, int(self.initial_mp_count)))
        self.batch_small = max(1, int(self.batch_small))
        self.batch_large = max(1, int(self.batch_large))

        self.repulsion_strength = _finite(self.repulsion_strength, 5.0)
        self.added_e_repulsion_strength = _finite(self.added_e_repulsion_strength, 1.0)
        self.attraction_strength = _finite(self.attraction_strength, 3.0)
        self.mp_size = max(0.0, _finite(self.mp_size, 1.5))
        self.e_size = max(0.0, _finite(self.e_size, 0.1))

        self.spawn_half_extent = max(0.0, _finite(self.spawn_half_extent, 20.0))
        self.near_spawn_half_extent = max(0.0, _finite(self.near_spawn_half_extent, 0.5))
        self.fallback_spawn_half_extent = max(0.0, _finite(self.fallback_spawn_half_extent, 5.0))

        self.min_distance = max(1e-6, _finite(self.min_distance, 0.1))
        self.e_repulsion_gain = _finite(self.e_repulsion_gain, 2.0)
        self.mp_on_e_attraction_gain = _finite(self.mp_on_e_attraction_gain, 200.0)
        self.inherited_repulsion_gain = _finite(self.inherited_repulsion_gain, 1000.0)
        self.e_on_mp_attraction_gain = _finite(self.e_on_mp_attraction_gain, 200.0)
        self.unit_direction = bool(self.unit_direction)

        self.e_accel_gain = _finite(self.e_accel_gain, 2.0)
        self.mp_accel_gain = _finite(self.mp_accel_gain, 0.01)
        self.damping = min(1.0, max(0.0, _finite(self.damping, 0.99)))
        self.bounds = max(1.0, _finite(self.bounds, 2000.0))

        self.update_mode = str(self.update_mode or "sequential").strip().lower()
        if self.update_mode not in UPDATE_MODES:
            self.update_mode = "sequential"
        self.precompute_ambient = bool(self.precompute_ambient)
        self.guard_non_finite = bool(self.guard_non_finite)
        self.seed = int(self.seed)
        return self

    def validate(self) -> list[str]:
        warnings: list[str] = []

        spawn_reach = max(
            self.spawn_half_extent,
            self.fallback_spawn_half_extent,
        )
        if spawn_reach > self.bounds:
            warnings.append("spawn extent exceeds bounds; spawned particles are clamped on the first step.")
        if self.update_mode == "snapshot" and self.precompute_ambient:
            warnings.append("precompute_ambient has no effect when update_mode=snapshot.")
        if self.max_e_particles == 0:
            warnings.append("max_e_particles=0 disables every E spawn.")
        if self.max_mp_particles == 0:
            warnings.append("max_mp_particles=0 disables every MP spawn.")
        if self.damping >= 1.0:
            warnings.append("damping=1.0 leaves velocities undamped.")
        if not self.unit_direction:
            warnings.append("unit_direction=false: forces scale with raw separation (1/d falloff).")

        return warnings

    @classmethod
    def load(cls, path: str | Path) -> "SimParams":
        data = json.loads(Path(path).read_text(encoding="utf-8"))
        if not isinstance(data, dict):
            raise ValueError("Parameter file must contain a JSON object.")
        filtered: dict[str, Any] = {k: v for k, v in data.items() if k in cls.__annotations__}
        return cls(**filtered).clamp()

    def save(self, path: str | Path) -> None:
        Path(path).write_text(json.dumps(asdict(self), indent=2, ensure_ascii=False), encoding="utf-8")


def _finite(value: Any, default: float) -> float:
    value = float(value)
    return value if math.isfinite(value) else default
