"""Callback interface for bots.

Subclass AIModule and override the events you care about. The client does
not call these; a bot loop does, after each Client.receive() has brought
the session state up to date.
"""

from torchcraft_env.frame import Unit
from torchcraft_env.positions import Position


class AIModule:
    """Base bot with a no-op handler for every event."""

    # Lifecycle
    def on_start(self) -> None:
        pass

    def on_end(self, is_winner: bool) -> None:
        pass

    def on_frame(self) -> None:
        pass

    # Messaging
    def on_send_text(self, text: str) -> None:
        pass

    def on_receive_text(self, player: int, text: str) -> None:
        pass

    def on_player_left(self, player: int) -> None:
        pass

    # World events
    def on_nuke_detected(self, position: Position) -> None:
        pass

    # Unit lifecycle
    def on_unit_discover(self, unit: Unit) -> None:
        pass

    def on_unit_evade(self, unit: Unit) -> None:
        pass

    def on_unit_show(self, unit: Unit) -> None:
        pass

    def on_unit_hide(self, unit: Unit) -> None:
        pass

    def on_unit_create(self, unit: Unit) -> None:
        pass

    def on_unit_destroy(self, unit: Unit) -> None:
        pass

    def on_unit_morph(self, unit: Unit) -> None:
        pass

    def on_unit_renegade(self, unit: Unit) -> None:
        pass

    def on_unit_complete(self, unit: Unit) -> None:
        pass

    def on_save_game(self, game_name: str) -> None:
        pass
