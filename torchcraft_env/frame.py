"""Game-state records and the frame decoder.

A frame value is a bracketed run of integer and float tokens:

    Frame     := Units Actions Resources Bullets reward terminal
    Units     := n_players (player_id n_units Unit*)*
    Actions   := n_players (player_id n_actions Action*)*
    Resources := n_players (player_id ore gas used_psi total_psi)*
    Bullets   := n_bullets (type x y)*

Every repeat count is validated before its loop runs. Records are frozen
and a Frame is never mutated after it is built, so a consumer can keep
reading an old Frame while the next one is decoded.
"""

import logging
from dataclasses import asdict, dataclass, field
from types import MappingProxyType
from typing import Any, Mapping

from torchcraft_env.errors import DuplicatePlayer, NegativeLength
from torchcraft_env.protocol.tokens import TokenReader

logger = logging.getLogger(__name__)


# ─── Records ──────────────────────────────────────────────────────────────────


@dataclass(frozen=True)
class Order:
    """A unit order. Two orders are equal when they target the same thing."""

    first_frame: int = field(default=0, compare=False)  # frame the order first appeared
    type: int = 0  # BWAPI::Orders::Enum
    target_id: int = 0
    target_coords: tuple[int, int] = (0, 0)


@dataclass(frozen=True)
class Unit:
    id: int = 0

    coords: tuple[int, int] = (0, 0)
    health: int = 0
    max_health: int = 0

    shield: int = 0
    max_shield: int = 0
    energy: int = 0

    max_cd: int = 0
    ground_cd: int = 0
    air_cd: int = 0

    idle: bool = False
    detected: bool = False  # not sent by the server
    lifted: bool = False  # not sent by the server
    visible: bool = False

    type: int = 0
    armor: int = 0
    shield_armor: int = 0
    size: int = 0

    pixel_coords: tuple[int, int] = (0, 0)
    pixel_size: tuple[int, int] = (0, 0)

    ground_atk: int = 0
    air_atk: int = 0

    ground_dmg_type: int = 0
    air_dmg_type: int = 0
    ground_range: int = 0
    air_range: int = 0

    orders: tuple[Order, ...] = ()

    velocity: tuple[float, float] = (0.0, 0.0)
    player_id: int = 0

    resources: int = 0


@dataclass(frozen=True)
class Action:
    uid: int = 0
    aid: int = 0
    action: tuple[int, ...] = ()


@dataclass(frozen=True)
class Resources:
    ore: int = 0
    gas: int = 0
    used_psi: int = 0
    total_psi: int = 0


@dataclass(frozen=True)
class Bullet:
    type: int = 0
    coords: tuple[int, int] = (0, 0)


def _empty_mapping() -> Mapping:
    return MappingProxyType({})


@dataclass(frozen=True)
class Frame:
    """One decoded server tick."""

    units: Mapping[int, tuple[Unit, ...]] = field(default_factory=_empty_mapping)
    actions: Mapping[int, tuple[Action, ...]] = field(default_factory=_empty_mapping)
    resources: Mapping[int, Resources] = field(default_factory=_empty_mapping)
    bullets: tuple[Bullet, ...] = ()
    reward: int = 0
    is_terminal: bool = False

    def __post_init__(self):
        # Freeze whatever mappings the caller handed in.
        for name in ("units", "actions", "resources"):
            value = getattr(self, name)
            if not isinstance(value, MappingProxyType):
                object.__setattr__(self, name, MappingProxyType(dict(value)))

    def all_units(self) -> list[Unit]:
        """Units of every player, in player order."""
        return [u for player_units in self.units.values() for u in player_units]


# ─── Decoding ─────────────────────────────────────────────────────────────────


def _read_count(reader: TokenReader, name: str) -> int:
    count = reader.next_int()
    if count < 0:
        raise NegativeLength(name, count)
    return count


def _read_pair(reader: TokenReader) -> tuple[int, int]:
    x = reader.next_int()
    y = reader.next_int()
    return (x, y)


def decode_order(reader: TokenReader) -> Order:
    return Order(
        first_frame=reader.next_int(),
        type=reader.next_int(),
        target_id=reader.next_int(),
        target_coords=_read_pair(reader),
    )


def decode_unit(reader: TokenReader) -> Unit:
    """Decode one unit record, including its order list."""
    fields: dict[str, Any] = {
        "id": reader.next_int(),
        "coords": _read_pair(reader),
        "health": reader.next_int(),
        "max_health": reader.next_int(),
        "shield": reader.next_int(),
        "max_shield": reader.next_int(),
        "energy": reader.next_int(),
        "max_cd": reader.next_int(),
        "ground_cd": reader.next_int(),
        "air_cd": reader.next_int(),
        "idle": reader.next_int() > 0,
        "visible": reader.next_int() > 0,
        "type": reader.next_int(),
        "armor": reader.next_int(),
        "shield_armor": reader.next_int(),
        "size": reader.next_int(),
        "pixel_coords": _read_pair(reader),
        "pixel_size": _read_pair(reader),
        "ground_atk": reader.next_int(),
        "air_atk": reader.next_int(),
        "ground_dmg_type": reader.next_int(),
        "air_dmg_type": reader.next_int(),
        "ground_range": reader.next_int(),
        "air_range": reader.next_int(),
    }

    n_orders = _read_count(reader, "n_orders")
    fields["orders"] = tuple(decode_order(reader) for _ in range(n_orders))

    vx = reader.next_float()
    vy = reader.next_float()
    fields["velocity"] = (vx, vy)
    fields["player_id"] = reader.next_int()
    fields["resources"] = reader.next_int()

    return Unit(**fields)


def decode_action(reader: TokenReader) -> Action:
    uid = reader.next_int()
    aid = reader.next_int()
    size = _read_count(reader, "size")
    return Action(uid=uid, aid=aid, action=tuple(reader.next_int() for _ in range(size)))


def decode_resources(reader: TokenReader) -> Resources:
    return Resources(
        ore=reader.next_int(),
        gas=reader.next_int(),
        used_psi=reader.next_int(),
        total_psi=reader.next_int(),
    )


def decode_bullet(reader: TokenReader) -> Bullet:
    return Bullet(type=reader.next_int(), coords=_read_pair(reader))


def _read_player_lists(reader: TokenReader, section: str, count_name: str, decode) -> dict:
    result: dict = {}
    for _ in range(_read_count(reader, "n_players")):
        player_id = reader.next_int()
        if player_id in result:
            raise DuplicatePlayer(section, player_id)
        n_items = _read_count(reader, count_name)
        result[player_id] = tuple(decode(reader) for _ in range(n_items))
    return result


def _read_resources(reader: TokenReader) -> dict[int, Resources]:
    result: dict[int, Resources] = {}
    for _ in range(_read_count(reader, "n_players")):
        player_id = reader.next_int()
        if player_id in result:
            raise DuplicatePlayer("resources", player_id)
        result[player_id] = decode_resources(reader)
    return result


def decode_frame(value: str) -> Frame:
    """Decode a bracketed frame value into a new Frame.

    Raises a DecodeError subclass on any malformed input; nothing is
    returned for a partially decoded frame.
    """
    reader = TokenReader.from_bracketed(value)

    units = _read_player_lists(reader, "units", "n_units", decode_unit)
    actions = _read_player_lists(reader, "actions", "n_actions", decode_action)
    resources = _read_resources(reader)
    n_bullets = _read_count(reader, "n_bullets")
    bullets = tuple(decode_bullet(reader) for _ in range(n_bullets))

    reward = reader.next_int()
    is_terminal = reader.next_int() > 0

    if not reader.exhausted:
        logger.debug(f"Ignoring {len(reader.remaining())} trailing frame tokens")

    return Frame(
        units=MappingProxyType(units),
        actions=MappingProxyType(actions),
        resources=MappingProxyType(resources),
        bullets=bullets,
        reward=reward,
        is_terminal=is_terminal,
    )


# ─── Encoding ─────────────────────────────────────────────────────────────────


def _encode_unit(unit: Unit, out: list[str]) -> None:
    out += [str(unit.id), *map(str, unit.coords), str(unit.health), str(unit.max_health)]
    out += [str(unit.shield), str(unit.max_shield), str(unit.energy)]
    out += [str(unit.max_cd), str(unit.ground_cd), str(unit.air_cd)]
    out += ["1" if unit.idle else "0", "1" if unit.visible else "0"]
    out += [str(unit.type), str(unit.armor), str(unit.shield_armor), str(unit.size)]
    out += [*map(str, unit.pixel_coords), *map(str, unit.pixel_size)]
    out += [str(unit.ground_atk), str(unit.air_atk)]
    out += [str(unit.ground_dmg_type), str(unit.air_dmg_type)]
    out += [str(unit.ground_range), str(unit.air_range)]
    out.append(str(len(unit.orders)))
    for order in unit.orders:
        out += [str(order.first_frame), str(order.type), str(order.target_id)]
        out += map(str, order.target_coords)
    out += [repr(float(v)) for v in unit.velocity]
    out += [str(unit.player_id), str(unit.resources)]


def encode_frame(frame: Frame) -> str:
    """Serialise a Frame back into its bracketed wire form."""
    out: list[str] = [str(len(frame.units))]
    for player_id, units in frame.units.items():
        out += [str(player_id), str(len(units))]
        for unit in units:
            _encode_unit(unit, out)

    out.append(str(len(frame.actions)))
    for player_id, actions in frame.actions.items():
        out += [str(player_id), str(len(actions))]
        for action in actions:
            out += [str(action.uid), str(action.aid), str(len(action.action))]
            out += map(str, action.action)

    out.append(str(len(frame.resources)))
    for player_id, res in frame.resources.items():
        out += [str(player_id), str(res.ore), str(res.gas), str(res.used_psi), str(res.total_psi)]

    out.append(str(len(frame.bullets)))
    for bullet in frame.bullets:
        out += [str(bullet.type), *map(str, bullet.coords)]

    out += [str(frame.reward), "1" if frame.is_terminal else "0"]
    return "{" + " ".join(out) + "}"


def frame_to_dict(frame: Frame) -> dict:
    """Convert a Frame to plain dicts and lists for JSON output."""
    return {
        "units": {
            player_id: [asdict(u) for u in units]
            for player_id, units in frame.units.items()
        },
        "actions": {
            player_id: [asdict(a) for a in actions]
            for player_id, actions in frame.actions.items()
        },
        "resources": {
            player_id: asdict(res)
            for player_id, res in frame.resources.items()
        },
        "bullets": [asdict(b) for b in frame.bullets],
        "reward": frame.reward,
        "is_terminal": frame.is_terminal,
    }
