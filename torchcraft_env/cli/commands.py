"""Subcommand implementations for the torchcraft-env CLI."""

import json
import sys
from pathlib import Path
from typing import Optional

import zmq

from torchcraft_env.cli.console import error, field, header, info, success
from torchcraft_env.client import Client
from torchcraft_env.config import TorchCraftConfig
from torchcraft_env.errors import TorchCraftError
from torchcraft_env.frame import frame_to_dict
from torchcraft_env.state import SessionState


def cmd_probe(config: TorchCraftConfig) -> None:
    """Connect to a server, print its handshake reply and disconnect."""
    header(f"Connecting to {config.client.server_url}")
    try:
        with Client.from_config(config) as client:
            reply = client.connect()
    except (TorchCraftError, zmq.ZMQError) as e:
        error(f"Handshake failed: {e}")
        sys.exit(1)

    success("Handshake complete")
    info(reply)


def cmd_decode(path: str, config: TorchCraftConfig, as_json: bool = False) -> None:
    """Decode a saved server message and print what it contains."""
    message_path = Path(path)
    if not message_path.exists():
        error(f"No such file: {path}")
        sys.exit(1)

    state = SessionState(
        only_consider_types=config.session.only_consider_types,
        micro_mode=config.client.micro_mode,
    )
    message = message_path.read_text(encoding="utf-8")
    try:
        state.parse(message)
        state.update()
    except TorchCraftError as e:
        error(f"Decode failed: {e}")
        sys.exit(1)

    if as_json:
        payload = {"frame": frame_to_dict(state.frame), "deaths": state.deaths}
        print(json.dumps(payload, indent=2))
        return

    frame = state.frame
    header(f"Frame from {message_path.name}")
    field("players", ", ".join(str(p) for p in sorted(frame.units)) or "-")
    for player_id, units in sorted(frame.units.items()):
        field(f"  player {player_id}", f"{len(units)} units, {len(frame.actions.get(player_id, ()))} actions")
    field("bullets", len(frame.bullets))
    field("reward", frame.reward)
    field("terminal", frame.is_terminal)
    field("deaths", ", ".join(map(str, state.deaths)) or "-")
    field("alive units", len(state.alive_units))


def cmd_version() -> None:
    """Print version."""
    print(f"torchcraft-env {_package_version()}")


def _package_version() -> str:
    try:
        from importlib.metadata import version
        return version("torchcraft-env")
    except Exception:
        return "dev"


def build_cli_overrides(url: Optional[str] = None, micro_mode: bool = False, log_level: Optional[str] = None) -> dict:
    """Translate explicit CLI flags into a config override dict."""
    overrides: dict = {}
    if url:
        overrides.setdefault("client", {})["server_url"] = url
    if micro_mode:
        overrides.setdefault("client", {})["micro_mode"] = True
    if log_level:
        overrides.setdefault("logging", {})["level"] = log_level
    return overrides
