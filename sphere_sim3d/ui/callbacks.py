"""
Keyboard callbacks for the sphere simulation.

Keys arrive already debounced (one call per press). This module only maps
them to population commands and reports rejected adds.
"""

from __future__ import annotations

from typing import TYPE_CHECKING, Callable


if TYPE_CHECKING:
    from sphere_sim3d.core.sim import SphereSim3D


# =============================================================================
# Key Handler
# =============================================================================

class KeyHandler:
    """
    Dispatches key presses to ``SphereSim3D.apply_command``.

    Plain number keys act on single particles; with ctrl held they act on
    batches of E particles.
    """

    KEY_COMMANDS = {
        "1": "add_e",
        "2": "add_mp",
        "3": "remove_e",
        "4": "remove_mp",
        "r": "reset",
    }

    CTRL_KEY_COMMANDS = {
        "1": "add_e_batch_large",
        "2": "add_e_batch_small",
        "3": "remove_e_batch_small",
    }

    # Commands that can be rejected by a capacity cap, and the species they touch
    ADD_SPECIES = {
        "add_e": "e",
        "add_mp": "mp",
        "add_e_batch_large": "e",
        "add_e_batch_small": "e",
    }

    def __init__(
        self,
        *,
        get_sim: Callable[[], "SphereSim3D"],
        on_at_capacity: Callable[[str], None] | None = None,
        on_population_changed: Callable[[], None] | None = None,
    ):
        self._get_sim = get_sim
        self._on_at_capacity = on_at_capacity
        self._on_population_changed = on_population_changed

    def command_for(self, key: str, *, ctrl: bool = False) -> str | None:
        key = str(key).strip().lower()
        if ctrl:
            return self.CTRL_KEY_COMMANDS.get(key)
        return self.KEY_COMMANDS.get(key)

    def handle_key(self, key: str, *, ctrl: bool = False) -> bool:
        """
        Process a key press event.

        Args:
            key: Key name (e.g. '1', 'r')
            ctrl: Whether a control modifier is held

        Returns:
            True if the key was handled, False otherwise
        """
        command = self.command_for(key, ctrl=ctrl)
        if command is None:
            return False

        changed = self._get_sim().apply_command(command)
        if changed:
            if self._on_population_changed is not None:
                self._on_population_changed()
        elif command in self.ADD_SPECIES and self._on_at_capacity is not None:
            self._on_at_capacity(self.ADD_SPECIES[command])
        return True
