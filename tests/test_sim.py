import contextlib
import io
import unittest

from sphere_sim3d.core.sim import COMMANDS, SphereSim3D
from sphere_sim3d.params import SimParams


def empty_sim(**kwargs) -> SphereSim3D:
    return SphereSim3D(SimParams(initial_e_count=0, initial_mp_count=0, **kwargs).clamp())


def state(sim: SphereSim3D) -> list[tuple[float, ...]]:
    return [pt.position + pt.velocity for pt in sim.e_particles + sim.mp_particles]


class TestStep(unittest.TestCase):
    def test_empty_step_is_noop(self) -> None:
        sim = empty_sim()
        sim.step(0.016)
        self.assertEqual(sim.frame, 0)
        self.assertEqual(sim.counts().e_count, 0)
        self.assertEqual(sim.validate_state(), [])

    def test_non_positive_dt_is_noop(self) -> None:
        sim = SphereSim3D(SimParams().clamp())
        sim.e_particles[0].vx = 3.0
        before = state(sim)
        for dt in (0.0, -0.5, float("nan")):
            sim.step(dt)
        self.assertEqual(state(sim), before)
        self.assertEqual(sim.frame, 0)

    def test_velocity_damping(self) -> None:
        for mode in ("sequential", "snapshot"):
            with self.subTest(mode=mode):
                sim = empty_sim(update_mode=mode)
                pt = sim.population.spawn_e_random()
                pt.vx, pt.vy, pt.vz = 10.0, -4.0, 0.0
                for _ in range(5):
                    sim.step(0.01)
                self.assertAlmostEqual(pt.vx, 10.0 * 0.99**5, places=12)
                self.assertAlmostEqual(pt.vy, -4.0 * 0.99**5, places=12)
                self.assertEqual(pt.vz, 0.0)

    def test_position_clamped_per_axis(self) -> None:
        for mode in ("sequential", "snapshot"):
            with self.subTest(mode=mode, species="mp"):
                sim = empty_sim(update_mode=mode)
                mp = sim.population.spawn_mp_random()
                mp.x, mp.y, mp.z = 5000.0, -5000.0, 10.0
                sim.step(0.016)
                self.assertEqual(mp.position, (2000.0, -2000.0, 10.0))

            with self.subTest(mode=mode, species="e"):
                sim = empty_sim(update_mode=mode)
                e = sim.population.spawn_e_random()
                e.x, e.y, e.z = -3000.0, 2500.0, 1.0e9
                sim.step(0.016)
                self.assertEqual(e.position, (-2000.0, 2000.0, 2000.0))
                sim.step(0.016)
                self.assertEqual(e.position, (-2000.0, 2000.0, 2000.0))

    def test_species_gain_differs(self) -> None:
        sim = empty_sim()
        e = sim.population.spawn_e_random()
        mp = sim.population.spawn_mp_random()
        e.x, e.y, e.z = 0.0, 0.0, 0.0
        mp.x, mp.y, mp.z = 0.0, 0.0, 10.0

        sim.step(0.1)
        # E: a = 3*200/100 toward +z, gain 2.0
        self.assertAlmostEqual(e.vz, 6.0 * 0.1 * 2.0 * 0.99, places=12)
        # MP sees the moved E; gain 0.01
        d = 10.0 - e.z
        self.assertAlmostEqual(mp.vz, -(600.0 / (d * d)) * 0.1 * 0.01 * 0.99, places=12)
        self.assertLess(abs(mp.vz), abs(e.vz))

    def test_sequential_update_order(self) -> None:
        sim = empty_sim()
        e0 = sim.population.spawn_e_random(repulsion_strength=1.0)
        e1 = sim.population.spawn_e_random(repulsion_strength=1.0)
        e0.x, e0.y, e0.z = -1.0, 0.0, 0.0
        e1.x, e1.y, e1.z = 1.0, 0.0, 0.0

        sim.step(0.1)

        self.assertAlmostEqual(e0.vx, -0.5 * 0.2 * 0.99, places=12)
        moved = -1.0 + e0.vx * 0.1
        self.assertAlmostEqual(e0.x, moved, places=12)
        # E1 sees E0 at its already-updated position
        d = 1.0 - moved
        self.assertAlmostEqual(e1.vx, (2.0 / (d * d)) * 0.2 * 0.99, places=12)
        self.assertNotAlmostEqual(e1.vx, 0.5 * 0.2 * 0.99, places=6)

    def test_snapshot_update_is_symmetric(self) -> None:
        sim = empty_sim(update_mode="snapshot")
        e0 = sim.population.spawn_e_random(repulsion_strength=1.0)
        e1 = sim.population.spawn_e_random(repulsion_strength=1.0)
        e0.x, e0.y, e0.z = -1.0, 0.0, 0.0
        e1.x, e1.y, e1.z = 1.0, 0.0, 0.0

        sim.step(0.1)

        self.assertAlmostEqual(e0.vx, -0.5 * 0.2 * 0.99, places=12)
        self.assertAlmostEqual(e1.vx, 0.5 * 0.2 * 0.99, places=12)

    def test_ambient_precompute_preserves_trajectory(self) -> None:
        sims = [
            SphereSim3D(SimParams(initial_e_count=20, initial_mp_count=4, precompute_ambient=flag, seed=3).clamp())
            for flag in (False, True)
        ]
        for _ in range(5):
            for sim in sims:
                sim.step(1.0 / 60.0)

        for a, b in zip(state(sims[0]), state(sims[1])):
            for va, vb in zip(a, b):
                self.assertAlmostEqual(va, vb, delta=1e-9 * max(1.0, abs(va)))

    def test_external_force_does_not_move_mp(self) -> None:
        sim = empty_sim()
        mp = sim.population.spawn_mp_random()
        mp.apply_force(100.0, 0.0, 0.0)
        before = mp.position
        sim.step(0.1)
        self.assertEqual(mp.position, before)
        self.assertEqual(mp.external_force, (100.0, 0.0, 0.0))

    def test_last_step_ms_recorded(self) -> None:
        sim = SphereSim3D(SimParams().clamp())
        self.assertIsNone(sim.last_step_ms)
        sim.step(0.016)
        self.assertIsNotNone(sim.last_step_ms)
        self.assertEqual(sim.frame, 1)


class TestNonFinite(unittest.TestCase):
    def test_guard_restores_particle(self) -> None:
        for mode in ("sequential", "snapshot"):
            with self.subTest(mode=mode):
                sim = empty_sim(update_mode=mode)
                e = sim.population.spawn_e_random()
                e.x, e.y, e.z = 1.0, 2.0, 3.0
                e.vx = float("nan")

                err = io.StringIO()
                with contextlib.redirect_stderr(err):
                    sim.step(0.1)

                self.assertEqual(e.position, (1.0, 2.0, 3.0))
                self.assertEqual(e.velocity, (0.0, 0.0, 0.0))
                self.assertEqual(sim.last_non_finite, 1)
                self.assertIn("non-finite", err.getvalue())
                self.assertEqual(sim.validate_state(), [])

    def test_without_guard_state_is_flagged(self) -> None:
        sim = empty_sim(guard_non_finite=False)
        e = sim.population.spawn_e_random()
        e.vx = float("inf")
        sim.step(0.1)
        issues = sim.validate_state()
        self.assertTrue(any("non-finite" in issue for issue in issues))

    def test_validate_state_flags_out_of_bounds(self) -> None:
        sim = SphereSim3D(SimParams().clamp())
        self.assertEqual(sim.validate_state(), [])
        sim.mp_particles[0].y = 1.0e6
        issues = sim.validate_state()
        self.assertTrue(any("MP particle 0 out of bounds" in issue for issue in issues))


class TestCommands(unittest.TestCase):
    def test_single_commands(self) -> None:
        sim = SphereSim3D(SimParams().clamp())

        self.assertTrue(sim.apply_command("add_e"))
        self.assertEqual(sim.e_particles[-1].repulsion_strength, 1.0)
        self.assertTrue(sim.apply_command("add_mp"))
        self.assertEqual(sim.counts().mp_count, 3)
        self.assertTrue(sim.apply_command("remove_e"))
        self.assertTrue(sim.apply_command("remove_mp"))
        self.assertEqual((sim.counts().e_count, sim.counts().mp_count), (10, 2))

    def test_batch_commands(self) -> None:
        sim = SphereSim3D(SimParams().clamp())
        sim.apply_command("add_e_batch_large")
        self.assertEqual(sim.counts().e_count, 110)
        sim.apply_command("add_e_batch_small")
        self.assertEqual(sim.counts().e_count, 120)
        self.assertEqual(sim.e_particles[-1].repulsion_strength, 5.0)
        sim.apply_command("remove_e_batch_small")
        self.assertEqual(sim.counts().e_count, 110)

    def test_capacity_with_add_requests(self) -> None:
        sim = SphereSim3D(SimParams(initial_e_count=995, initial_mp_count=0).clamp())
        results = [sim.apply_command("add_e") for _ in range(10)]
        self.assertEqual(sim.counts().e_count, 1000)
        self.assertEqual(results.count(False), 5)

    def test_remove_on_empty_returns_false(self) -> None:
        sim = empty_sim()
        self.assertFalse(sim.apply_command("remove_e"))
        self.assertFalse(sim.apply_command("remove_mp"))
        self.assertFalse(sim.apply_command("remove_e_batch_small"))

    def test_reset_is_reproducible(self) -> None:
        sim = SphereSim3D(SimParams().clamp())
        first = state(sim)
        sim.step(0.016)
        sim.apply_command("add_e_batch_large")
        self.assertTrue(sim.apply_command("reset"))
        self.assertEqual(state(sim), first)
        self.assertEqual(sim.frame, 0)

    def test_unknown_command_raises(self) -> None:
        sim = empty_sim()
        with self.assertRaises(ValueError):
            sim.apply_command("explode")

    def test_every_command_is_dispatchable(self) -> None:
        sim = SphereSim3D(SimParams().clamp())
        for name in COMMANDS:
            sim.apply_command(name)


class TestSnapshot(unittest.TestCase):
    def test_snapshot_contents(self) -> None:
        sim = SphereSim3D(SimParams().clamp())
        snap = sim.snapshot()
        self.assertEqual(snap.e_positions.shape, (10, 3))
        self.assertEqual(snap.mp_positions.shape, (2, 3))
        self.assertEqual(snap.mp_sizes.tolist(), [1.5, 1.5])
        self.assertEqual(snap.counts.max_e, 1000)
        self.assertEqual(tuple(snap.e_positions[0]), sim.e_particles[0].position)

    def test_snapshot_is_read_only_and_detached(self) -> None:
        sim = SphereSim3D(SimParams().clamp())
        snap = sim.snapshot()
        with self.assertRaises(ValueError):
            snap.e_positions[0, 0] = 1.0
        sim.e_particles[0].x = 123.0
        self.assertNotEqual(float(snap.e_positions[0, 0]), 123.0)

    def test_empty_snapshot_shapes(self) -> None:
        snap = empty_sim().snapshot()
        self.assertEqual(snap.e_positions.shape, (0, 3))
        self.assertEqual(snap.mp_positions.shape, (0, 3))
        self.assertEqual(snap.mp_sizes.shape, (0,))
