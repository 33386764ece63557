"""Session-wide game state folded from server messages.

SessionState holds the fields that are fixed for a session (map, player
identity, replay flag), filled once from the handshake reply by setup(),
and the fields that change every tick, filled by parse() and derived by
update().

parse() decodes the whole envelope into locals before assigning anything,
so a message that fails to decode leaves the state exactly as it was.
"""

import logging
import re
from typing import Iterable, Optional

from torchcraft_env.errors import DecodeError
from torchcraft_env.frame import Frame, Unit, decode_frame
from torchcraft_env.protocol.table import EnvelopeKey, parse_list, parse_table
from torchcraft_env.protocol.tokens import INT32_MAX, INT32_MIN, TokenReader

logger = logging.getLogger(__name__)

_DEATH_ID = re.compile(r"[+-]?[0-9]+")


def _parse_death(piece: str) -> int:
    if _DEATH_ID.fullmatch(piece):
        value = int(piece)
        if INT32_MIN <= value <= INT32_MAX:
            return value
    logger.warning(f"Malformed death id {piece!r}, using 0")
    return 0


def parse_deaths(value: str) -> list[int]:
    """Parse ``{1,,2,x}`` into ``[1, 2, 0]``; bad ids become 0."""
    return [_parse_death(piece) for piece in parse_list(value)]


class SessionState:
    """State of one client session.

    Args:
        only_consider_types: Unit types tracked by ``alive_units_considered``
            and the filtered ``units`` view. Empty means no filter.
        micro_mode: Enables battle-end bookkeeping in update().
    """

    def __init__(self, only_consider_types: Iterable[int] = (), micro_mode: bool = False):
        self.only_consider_types: frozenset[int] = frozenset(only_consider_types)
        self.micro_mode = micro_mode

        # Set once by setup()
        self.lag_frames: int = 0  # frames from order to execution
        self.map_size: tuple[int, int] = (0, 0)
        self.map_data: bytes = b""  # walk-tile heights, 255 where not available
        self.buildable_size: tuple[int, int] = (0, 0)
        self.buildable_data: list[bool] = []
        self.map_name: str = ""
        self.player_id: int = -1
        self.neutral_id: int = -1
        self.is_replay: bool = False

        # Image mode buffers, carried as given
        self.image_mode: str = ""
        self.screen_position: tuple[int, int] = (0, 0)  # pixels
        self.visibility: bytes = b""
        self.visibility_size: tuple[int, int] = (0, 0)
        self.image: bytes = b""
        self.image_size: tuple[int, int] = (0, 0)

        self.reset()

    def reset(self) -> None:
        """Clear everything that varies from frame to frame."""
        self.frame: Frame = Frame()
        self.deaths: list[int] = []
        self.frame_count: int = 0

        self.game_ended: bool = False
        self.game_won: bool = False

        # Micro mode
        self.battle_frame_count: int = 0
        self.battle_start_frame: int = 0
        self.battle_just_ended: bool = False
        self.battle_won: bool = False
        self.waiting_for_restart: bool = False
        self.last_battle_ended: int = 0

        # unit id -> player id. Units stay until reported dead.
        self.alive_units: dict[int, int] = {}
        # Same, restricted to only_consider_types; None when there is no filter.
        self.alive_units_considered: Optional[dict[int, int]] = None
        # Current frame units minus reported deaths and filtered types.
        self.units: dict[int, tuple[Unit, ...]] = {}

    # ── Handshake ────────────────────────────────────────────────────

    def setup(self, reply: str) -> None:
        """Fill session-invariant fields from the handshake reply.

        A reply that is not a bracketed table is an opaque acknowledgement
        and is ignored. Unknown keys are ignored.
        """
        reply = reply.strip()
        if not (reply.startswith("{") and reply.endswith("}")):
            logger.debug("Handshake reply is not a table; leaving session fields unset")
            return

        values: dict = {}
        for key, value in parse_table(reply).items():
            if key in ("lag_frames", "player_id", "neutral_id"):
                values[key] = _read_single_int(key, value)
            elif key == "map_name":
                values[key] = value
            elif key in ("map_size", "buildable_size"):
                values[key] = _read_pair(key, value)
            elif key == "map_data":
                values[key] = bytes(_read_ints(key, value, 0, 255))
            elif key == "buildable_data":
                values[key] = [v > 0 for v in _read_ints(key, value)]
            elif key == "replay":
                values["is_replay"] = value.lower() in ("1", "true")
            else:
                logger.debug(f"Ignoring handshake key {key!r}")

        for name, value in values.items():
            setattr(self, name, value)
        logger.info(
            f"Session setup: map={self.map_name!r} size={self.map_size} "
            f"player={self.player_id} replay={self.is_replay}"
        )

    # ── Per-message merge ────────────────────────────────────────────

    def parse(self, message: str) -> None:
        """Decode one server envelope and merge it into the state.

        Raises DecodeError without touching the state if any known entry is
        malformed.
        """
        frame: Optional[Frame] = None
        deaths: list[int] = []

        for key, value in parse_table(message.strip()).items():
            kind = EnvelopeKey.lookup(key)
            if kind is EnvelopeKey.FRAME:
                frame = decode_frame(value)
            elif kind is EnvelopeKey.DEATHS:
                deaths = parse_deaths(value)
            elif kind is EnvelopeKey.UNKNOWN:
                logger.debug(f"Ignoring envelope key {key!r}")

        if frame is not None:
            self.frame = frame
            self.frame_count += 1
        self.deaths = deaths

    def _considered(self, unit: Unit) -> bool:
        return not self.only_consider_types or unit.type in self.only_consider_types

    def update(self) -> None:
        """Recompute derived fields from the current frame and deaths.

        Calling update() twice without an intervening parse() gives the same
        result as calling it once.
        """
        frame = self.frame
        dead = set(self.deaths)

        # A unit can be listed in the frame and reported dead on the same
        # tick when the server skips frames; deaths win.
        alive = dict(self.alive_units)
        for player_id, units in frame.units.items():
            for unit in units:
                alive[unit.id] = player_id
        self.alive_units = {uid: pid for uid, pid in alive.items() if uid not in dead}

        if self.only_consider_types:
            considered = dict(self.alive_units_considered or {})
            for player_id, units in frame.units.items():
                for unit in units:
                    if unit.type in self.only_consider_types:
                        considered[unit.id] = player_id
            self.alive_units_considered = {
                uid: pid for uid, pid in considered.items() if uid not in dead
            }
        else:
            self.alive_units_considered = None

        self.units = {
            player_id: tuple(u for u in units if u.id not in dead and self._considered(u))
            for player_id, units in frame.units.items()
        }

        self.game_ended = frame.is_terminal
        self.game_won = frame.is_terminal and frame.reward > 0

        if self.micro_mode and self.frame_count > 0:
            self._update_battle()

    def _update_battle(self) -> None:
        present = {
            player_id
            for player_id, units in self.units.items()
            if units and player_id != self.neutral_id
        }
        ours = self.player_id in present
        theirs = any(player_id != self.player_id for player_id in present)

        if self.waiting_for_restart:
            if ours and theirs:
                logger.debug(f"New battle started at frame {self.frame_count}")
                self.waiting_for_restart = False
                self.battle_just_ended = False
                self.battle_start_frame = self.frame_count
            else:
                self.battle_just_ended = self.last_battle_ended == self.frame_count
        elif not (ours and theirs):
            self.battle_just_ended = True
            self.battle_won = ours and not theirs
            self.waiting_for_restart = True
            self.last_battle_ended = self.frame_count
            logger.info(f"Battle ended at frame {self.frame_count}, won={self.battle_won}")
        else:
            self.battle_just_ended = False

        self.battle_frame_count = self.frame_count - self.battle_start_frame


def _read_single_int(key: str, value: str) -> int:
    reader = TokenReader(value)
    result = reader.next_int()
    if not reader.exhausted:
        raise DecodeError(f"{key}: expected a single integer, got {value!r}")
    return result


def _read_ints(key: str, value: str, low: int = INT32_MIN, high: int = INT32_MAX) -> list[int]:
    reader = TokenReader.from_bracketed(value)
    result = []
    while not reader.exhausted:
        v = reader.next_int()
        if not low <= v <= high:
            raise DecodeError(f"{key}: value {v} outside [{low}, {high}]")
        result.append(v)
    return result


def _read_pair(key: str, value: str) -> tuple[int, int]:
    ints = _read_ints(key, value)
    if len(ints) != 2:
        raise DecodeError(f"{key}: expected two integers, got {value!r}")
    return (ints[0], ints[1])
