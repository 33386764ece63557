#!/usr/bin/env python3
"""Minimal bot that follows a TorchCraft game and reports unit events.

Drives an AIModule from the session state: each tick it sends an empty
command batch, receives the next frame, and turns changes in the alive-unit
map into on_unit_create / on_unit_destroy callbacks.

Usage:
    python examples/scripted_bot.py --url tcp://localhost:11111 --verbose
"""

import argparse
import logging
import sys

from torchcraft_env.ai_module import AIModule
from torchcraft_env.client import Client
from torchcraft_env.config import configure_logging, load_config
from torchcraft_env.errors import TorchCraftError
from torchcraft_env.frame import Unit

logger = logging.getLogger("scripted_bot")


class CountingBot(AIModule):
    """Counts unit births and deaths, logs a line per frame."""

    def __init__(self, client: Client):
        self.client = client
        self.created = 0
        self.destroyed = 0

    def on_start(self) -> None:
        logger.info(f"Game started on {self.client.state.map_name or 'unknown map'}")

    def on_frame(self) -> None:
        state = self.client.state
        own = len(state.units.get(state.player_id, ()))
        logger.debug(f"frame {state.frame_count}: {own} own units, reward={state.frame.reward}")

    def on_unit_create(self, unit: Unit) -> None:
        self.created += 1

    def on_unit_destroy(self, unit: Unit) -> None:
        self.destroyed += 1

    def on_end(self, is_winner: bool) -> None:
        logger.info(
            f"Game over, won={is_winner}: {self.created} units seen, {self.destroyed} destroyed"
        )


def run_bot(client: Client, bot: AIModule, max_frames: int = 0) -> None:
    client.connect()
    bot.on_start()
    known: dict[int, Unit] = {}

    while max_frames <= 0 or client.state.frame_count < max_frames:
        client.send("")
        client.receive()
        state = client.state

        current = {u.id: u for u in state.frame.all_units()}
        for uid, unit in current.items():
            if uid not in known:
                bot.on_unit_create(unit)
        for uid in state.deaths:
            if uid in known:
                bot.on_unit_destroy(known.pop(uid))
        known.update({uid: u for uid, u in current.items() if uid not in state.deaths})

        bot.on_frame()
        if state.game_ended:
            bot.on_end(state.game_won)
            break


def main():
    parser = argparse.ArgumentParser(description="Follow a TorchCraft game")
    parser.add_argument("--url", default=None, help="Server URL")
    parser.add_argument("--max-frames", type=int, default=0, help="Stop after N frames (0 = until game end)")
    parser.add_argument("--verbose", action="store_true", help="Log every frame")
    args = parser.parse_args()

    cli_overrides: dict = {"logging": {"level": "DEBUG" if args.verbose else "INFO"}}
    if args.url:
        cli_overrides["client"] = {"server_url": args.url}
    config = load_config(cli_overrides=cli_overrides)
    configure_logging(config.logging)

    with Client.from_config(config) as client:
        try:
            run_bot(client, CountingBot(client), args.max_frames)
        except TorchCraftError as e:
            logger.error(f"Session aborted: {e}")
            sys.exit(1)
        except KeyboardInterrupt:
            print("\nInterrupted by user")
            sys.exit(0)


if __name__ == "__main__":
    main()
