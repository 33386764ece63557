"""Unified configuration for torchcraft-env.

Client, session and logging settings validated with Pydantic. Later layers
win: built-in defaults, config.yaml, keyword overrides, TORCHCRAFT_* env
vars, then explicit CLI flags.

Usage:
    from torchcraft_env.config import load_config
    config = load_config()                                  # auto-find config.yaml
    config = load_config("path/to/config.yaml")             # explicit path
    config = load_config(client={"micro_mode": True})       # with overrides
"""

import logging
import os
from pathlib import Path
from typing import Optional

import yaml
from pydantic import BaseModel, Field, field_validator

_LOG_LEVELS = ("CRITICAL", "ERROR", "WARNING", "INFO", "DEBUG")


# ── Pydantic Config Models ────────────────────────────────────────────


class ClientConfig(BaseModel):
    server_url: str = "tcp://localhost:11111"
    protocol_version: int = 16
    micro_mode: bool = False
    receive_timeout_ms: int = 30_000

    @field_validator("protocol_version", "receive_timeout_ms")
    @classmethod
    def _positive(cls, value: int) -> int:
        if value <= 0:
            raise ValueError("must be positive")
        return value


class SessionConfig(BaseModel):
    # Unit types tracked for battle-end detection; empty = every type
    only_consider_types: list[int] = Field(default_factory=list)


class LoggingConfig(BaseModel):
    level: str = "INFO"
    log_file: str = ""  # empty = stderr only

    @field_validator("level")
    @classmethod
    def _known_level(cls, value: str) -> str:
        upper = value.upper()
        if upper not in _LOG_LEVELS:
            raise ValueError(f"unknown log level {value!r}")
        return upper


class TorchCraftConfig(BaseModel):
    """Root configuration for torchcraft-env."""

    client: ClientConfig = Field(default_factory=ClientConfig)
    session: SessionConfig = Field(default_factory=SessionConfig)
    logging: LoggingConfig = Field(default_factory=LoggingConfig)


# ── Env Var Mapping ───────────────────────────────────────────────────

_ENV_VAR_MAP: list[tuple[str, str]] = [
    ("TORCHCRAFT_URL", "client.server_url"),
    ("TORCHCRAFT_PROTOCOL", "client.protocol_version"),
    ("TORCHCRAFT_MICRO_MODE", "client.micro_mode"),
    ("TORCHCRAFT_TIMEOUT_MS", "client.receive_timeout_ms"),
    ("TORCHCRAFT_LOG_LEVEL", "logging.level"),
    ("TORCHCRAFT_LOG_FILE", "logging.log_file"),
]


# ── Helper Functions ──────────────────────────────────────────────────


def _deep_merge(base: dict, override: dict) -> None:
    """Fold *override* into *base*; nested sections merge key by key."""
    for key, value in override.items():
        if isinstance(value, dict):
            current = base.get(key)
            if not isinstance(current, dict):
                current = base[key] = {}
            _deep_merge(current, value)
        else:
            base[key] = value


def _set_nested(d: dict, path: str, value: object) -> None:
    """Assign *value* at a dotted ``section.field`` path such as ``'client.server_url'``."""
    section, _, name = path.rpartition(".")
    target = d
    for part in filter(None, section.split(".")):
        target = target.setdefault(part, {})
    target[name] = value


def _coerce_value(value: str) -> object:
    """Turn a TORCHCRAFT_* string into bool, int or float where it reads as one."""
    lower = value.lower()
    if lower in ("true", "yes"):
        return True
    if lower in ("false", "no"):
        return False
    for kind in (int, float):
        try:
            return kind(value)
        except ValueError:
            continue
    return value


def _env_overrides() -> dict:
    """Collect the TORCHCRAFT_* variables that are set into a section dict."""
    result: dict = {}
    for env_var, dotted_path in _ENV_VAR_MAP:
        raw = os.environ.get(env_var)
        if raw is not None:
            _set_nested(result, dotted_path, _coerce_value(raw))
    return result


def configure_logging(config: LoggingConfig) -> None:
    """Install root handlers according to *config*."""
    handlers: list[logging.Handler] = [logging.StreamHandler()]
    if config.log_file:
        handlers.append(logging.FileHandler(config.log_file, encoding="utf-8"))
    logging.basicConfig(
        level=config.level,
        format="%(asctime)s %(levelname)s %(name)s: %(message)s",
        handlers=handlers,
        force=True,
    )


# ── Config Loading ────────────────────────────────────────────────────


def load_config(
    config_path: Optional[str] = None,
    cli_overrides: Optional[dict] = None,
    **overrides: object,
) -> TorchCraftConfig:
    """Build a TorchCraftConfig from every configuration layer.

    Layers are merged lowest first: the YAML file, then keyword section
    overrides (``client={"micro_mode": True}``), then TORCHCRAFT_* env vars,
    then ``cli_overrides`` from explicit command-line flags. Without
    *config_path* a ``config.yaml`` is looked up in the working directory and
    next to the package; a missing file means built-in defaults.
    """
    layers: list[dict] = []

    path = _resolve_config_path(config_path)
    if path is not None:
        with open(path, encoding="utf-8") as f:
            layers.append(yaml.safe_load(f) or {})
    layers.append(overrides)
    layers.append(_env_overrides())
    layers.append(cli_overrides or {})

    merged: dict = {}
    for layer in layers:
        _deep_merge(merged, layer)
    return TorchCraftConfig(**merged)


def _resolve_config_path(config_path: Optional[str]) -> Optional[str]:
    """Return the YAML file load_config should read, if there is one."""
    if config_path is not None:
        return config_path if Path(config_path).is_file() else None

    for directory in (Path.cwd(), Path(__file__).resolve().parent.parent):
        candidate = directory / "config.yaml"
        if candidate.is_file():
            return str(candidate)
    return None
