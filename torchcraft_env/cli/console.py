"""ANSI colored console output for the torchcraft-env CLI."""

import sys

# ANSI codes, disabled when not a TTY
_IS_TTY = hasattr(sys.stdout, "isatty") and sys.stdout.isatty()

_RESET = "\033[0m" if _IS_TTY else ""
_BOLD = "\033[1m" if _IS_TTY else ""
_GREEN = "\033[32m" if _IS_TTY else ""
_RED = "\033[31m" if _IS_TTY else ""
_DIM = "\033[2m" if _IS_TTY else ""


def info(msg: str) -> None:
    print(f"  {msg}")


def success(msg: str) -> None:
    print(f"  {_GREEN}{msg}{_RESET}")


def error(msg: str) -> None:
    print(f"  {_RED}{msg}{_RESET}", file=sys.stderr)


def header(msg: str) -> None:
    print(f"\n  {_BOLD}{msg}{_RESET}")


def field(label: str, value: object, width: int = 14) -> None:
    """Print an aligned ``label  value`` line."""
    print(f"  {_DIM}{label:<{width}}{_RESET}{value}")
