"""CLI entry point for torchcraft-env."""

import argparse
import sys


def main(argv=None) -> None:
    parser = argparse.ArgumentParser(
        prog="torchcraft-env",
        description="Talk to a TorchCraft server and inspect its messages",
    )
    parser.add_argument("--config", help="Path to a config.yaml")
    parser.add_argument("--log-level", help="Logging level (DEBUG, INFO, ...)")
    subparsers = parser.add_subparsers(dest="command")

    # ── probe ───────────────────────────────────────────────────────
    probe_parser = subparsers.add_parser("probe", help="Handshake with a server and print its reply")
    probe_parser.add_argument("--url", help="Server URL (e.g. tcp://localhost:11111)")
    probe_parser.add_argument("--micro-mode", action="store_true", help="Request micro mode")

    # ── decode ──────────────────────────────────────────────────────
    decode_parser = subparsers.add_parser("decode", help="Decode a saved server message")
    decode_parser.add_argument("file", help="File holding one server message")
    decode_parser.add_argument("--json", action="store_true", help="Print the full frame as JSON")

    # ── version ─────────────────────────────────────────────────────
    subparsers.add_parser("version", help="Print version")

    args = parser.parse_args(argv)

    if args.command is None:
        parser.print_help()
        sys.exit(0)

    from torchcraft_env.cli import commands

    if args.command == "version":
        commands.cmd_version()
        return

    from torchcraft_env.config import configure_logging, load_config

    cli_overrides = commands.build_cli_overrides(
        url=getattr(args, "url", None),
        micro_mode=getattr(args, "micro_mode", False),
        log_level=args.log_level,
    )
    config = load_config(args.config, cli_overrides=cli_overrides)
    configure_logging(config.logging)

    if args.command == "probe":
        commands.cmd_probe(config)
    elif args.command == "decode":
        commands.cmd_decode(args.file, config, as_json=args.json)
    else:
        parser.print_help()


if __name__ == "__main__":
    main()
