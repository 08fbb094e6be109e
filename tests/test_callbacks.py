"""Tests for keyboard-to-command dispatch."""

import pytest

from sphere_sim3d.core.sim import SphereSim3D
from sphere_sim3d.params import SimParams
from sphere_sim3d.ui.callbacks import KeyHandler


@pytest.fixture
def sim():
    return SphereSim3D(SimParams().clamp())


@pytest.fixture
def events():
    return {"capacity": [], "changed": 0}


@pytest.fixture
def handler(sim, events):
    def on_changed():
        events["changed"] += 1

    return KeyHandler(
        get_sim=lambda: sim,
        on_at_capacity=events["capacity"].append,
        on_population_changed=on_changed,
    )


class TestKeyMapping:
    def test_plain_keys(self, handler):
        assert handler.command_for("1") == "add_e"
        assert handler.command_for("2") == "add_mp"
        assert handler.command_for("3") == "remove_e"
        assert handler.command_for("4") == "remove_mp"
        assert handler.command_for("R") == "reset"

    def test_ctrl_keys(self, handler):
        assert handler.command_for("1", ctrl=True) == "add_e_batch_large"
        assert handler.command_for("2", ctrl=True) == "add_e_batch_small"
        assert handler.command_for("3", ctrl=True) == "remove_e_batch_small"
        assert handler.command_for("4", ctrl=True) is None

    def test_unknown_key_not_handled(self, handler, sim):
        assert handler.handle_key("q") is False
        assert sim.counts().e_count == 10


class TestDispatch:
    def test_add_and_remove(self, handler, sim, events):
        assert handler.handle_key("1")
        assert sim.counts().e_count == 11
        assert handler.handle_key("2")
        assert sim.counts().mp_count == 3
        assert handler.handle_key("4")
        assert sim.counts().mp_count == 2
        assert events["changed"] == 3

    def test_ctrl_batches(self, handler, sim):
        handler.handle_key("1", ctrl=True)
        assert sim.counts().e_count == 110
        handler.handle_key("3", ctrl=True)
        assert sim.counts().e_count == 100

    def test_reset_key(self, handler, sim):
        handler.handle_key("1", ctrl=True)
        handler.handle_key("r")
        assert sim.counts().e_count == 10
        assert sim.counts().mp_count == 2

    def test_capacity_reported(self, events):
        sim = SphereSim3D(SimParams(initial_e_count=1000, initial_mp_count=100).clamp())
        handler = KeyHandler(get_sim=lambda: sim, on_at_capacity=events["capacity"].append)

        assert handler.handle_key("1")
        assert handler.handle_key("2")
        assert handler.handle_key("2", ctrl=True)
        assert events["capacity"] == ["e", "mp", "e"]
        assert sim.counts().e_count == 1000

    def test_remove_on_empty_is_not_capacity(self, events):
        sim = SphereSim3D(SimParams(initial_e_count=0, initial_mp_count=0).clamp())
        handler = KeyHandler(get_sim=lambda: sim, on_at_capacity=events["capacity"].append)

        assert handler.handle_key("3")
        assert events["capacity"] == []
