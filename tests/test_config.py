"""Tests for the unified configuration system."""

import logging
import os
import tempfile
from pathlib import Path
from unittest.mock import patch

import pytest
import yaml
from pydantic import ValidationError

from torchcraft_env.config import (
    ClientConfig,
    LoggingConfig,
    SessionConfig,
    TorchCraftConfig,
    _coerce_value,
    _deep_merge,
    _set_nested,
    configure_logging,
    load_config,
)

_CONFIG_ENV_VARS = [
    "TORCHCRAFT_URL",
    "TORCHCRAFT_PROTOCOL",
    "TORCHCRAFT_MICRO_MODE",
    "TORCHCRAFT_TIMEOUT_MS",
    "TORCHCRAFT_LOG_LEVEL",
    "TORCHCRAFT_LOG_FILE",
]


# ── Default Loading ───────────────────────────────────────────────────


class TestDefaults:
    def test_default_config_has_sane_values(self):
        cfg = TorchCraftConfig()
        assert cfg.client.server_url == "tcp://localhost:11111"
        assert cfg.client.protocol_version == 16
        assert cfg.client.micro_mode is False
        assert cfg.client.receive_timeout_ms == 30_000
        assert cfg.session.only_consider_types == []
        assert cfg.logging.level == "INFO"

    def test_load_config_no_file_returns_defaults(self):
        with _clean_env():
            cfg = load_config(config_path="__nonexistent__.yaml")
            assert cfg == TorchCraftConfig()


# ── YAML Loading ──────────────────────────────────────────────────────


class TestYAMLLoading:
    def test_load_from_yaml(self):
        data = {
            "client": {"server_url": "tcp://10.0.0.2:11111", "micro_mode": True},
            "session": {"only_consider_types": [0, 37]},
        }
        with _temp_yaml(data) as path, _clean_env():
            cfg = load_config(config_path=path)
            assert cfg.client.server_url == "tcp://10.0.0.2:11111"
            assert cfg.client.micro_mode is True
            assert cfg.session.only_consider_types == [0, 37]
            # Unspecified fields keep defaults
            assert cfg.client.receive_timeout_ms == 30_000

    def test_empty_yaml_returns_defaults(self):
        with _temp_yaml({}) as path, _clean_env():
            cfg = load_config(config_path=path)
            assert cfg.client.protocol_version == 16


# ── Precedence ────────────────────────────────────────────────────────


class TestPrecedence:
    def test_env_var_overrides_yaml(self):
        data = {"client": {"server_url": "tcp://from-file:1"}}
        with _temp_yaml(data) as path, _clean_env(TORCHCRAFT_URL="tcp://from-env:2"):
            cfg = load_config(config_path=path)
            assert cfg.client.server_url == "tcp://from-env:2"

    def test_env_var_types_are_coerced(self):
        with _clean_env(TORCHCRAFT_MICRO_MODE="true", TORCHCRAFT_TIMEOUT_MS="500"):
            cfg = load_config(config_path="__nonexistent__.yaml")
            assert cfg.client.micro_mode is True
            assert cfg.client.receive_timeout_ms == 500

    def test_overrides_beat_file(self):
        data = {"client": {"protocol_version": 15}}
        with _temp_yaml(data) as path, _clean_env():
            cfg = load_config(config_path=path, client={"protocol_version": 17})
            assert cfg.client.protocol_version == 17

    def test_caller_override_dicts_are_not_mutated(self):
        client_section = {"micro_mode": True}
        with _clean_env(TORCHCRAFT_URL="tcp://from-env:2"):
            cfg = load_config(config_path="__nonexistent__.yaml", client=client_section)
        assert cfg.client.server_url == "tcp://from-env:2"
        assert client_section == {"micro_mode": True}

    def test_cli_beats_env(self):
        with _clean_env(TORCHCRAFT_LOG_LEVEL="WARNING"):
            cfg = load_config(
                config_path="__nonexistent__.yaml",
                cli_overrides={"logging": {"level": "debug"}},
            )
            assert cfg.logging.level == "DEBUG"


# ── Validation ────────────────────────────────────────────────────────


class TestValidation:
    @pytest.mark.parametrize("field", ["protocol_version", "receive_timeout_ms"])
    def test_non_positive_rejected(self, field):
        with pytest.raises(ValidationError):
            ClientConfig(**{field: 0})

    def test_unknown_log_level(self):
        with pytest.raises(ValidationError):
            LoggingConfig(level="LOUD")

    def test_consider_types_must_be_ints(self):
        with pytest.raises(ValidationError):
            SessionConfig(only_consider_types=["marine"])


# ── Helpers ───────────────────────────────────────────────────────────


class TestHelpers:
    def test_deep_merge(self):
        base = {"client": {"micro_mode": False, "protocol_version": 16}}
        _deep_merge(base, {"client": {"micro_mode": True}})
        assert base == {"client": {"micro_mode": True, "protocol_version": 16}}

    def test_set_nested(self):
        d: dict = {}
        _set_nested(d, "client.server_url", "tcp://x:1")
        assert d == {"client": {"server_url": "tcp://x:1"}}

    @pytest.mark.parametrize("raw,expected", [
        ("true", True), ("No", False), ("42", 42), ("1.5", 1.5), ("tcp://a:1", "tcp://a:1"),
    ])
    def test_coerce_value(self, raw, expected):
        assert _coerce_value(raw) == expected

    def test_configure_logging_with_file(self, tmp_path):
        log_file = tmp_path / "tc.log"
        with patch("torchcraft_env.config.logging.basicConfig") as basic_config:
            configure_logging(LoggingConfig(level="debug", log_file=str(log_file)))
        kwargs = basic_config.call_args.kwargs
        assert kwargs["level"] == "DEBUG"
        assert kwargs["force"] is True
        handlers = kwargs["handlers"]
        assert any(isinstance(h, logging.FileHandler) for h in handlers)
        for h in handlers:
            h.close()


# ── Test utilities ────────────────────────────────────────────────────


class _clean_env:
    """Context manager that temporarily clears config-related env vars and sets new ones."""

    def __init__(self, **overrides):
        self._overrides = overrides
        self._saved: dict[str, str | None] = {}

    def __enter__(self):
        for var in _CONFIG_ENV_VARS:
            self._saved[var] = os.environ.pop(var, None)
        for key, val in self._overrides.items():
            os.environ[key] = str(val)
        return self

    def __exit__(self, *args):
        for key in self._overrides:
            os.environ.pop(key, None)
        for var, val in self._saved.items():
            if val is not None:
                os.environ[var] = val


def _temp_yaml(data: dict):
    """Context manager that writes *data* to a temp YAML file and yields its path."""
    import contextlib

    @contextlib.contextmanager
    def _ctx():
        with tempfile.NamedTemporaryFile(mode="w", suffix=".yaml", delete=False) as f:
            yaml.dump(data, f)
            path = f.name
        try:
            yield path
        finally:
            Path(path).unlink(missing_ok=True)

    return _ctx()
