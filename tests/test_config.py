"""Tests for configuration loading."""

import pytest

from oled_rpc.config import (
    DisplayConfig,
    RuntimeConfig,
    ServerConfig,
    default_config,
    load_from_toml,
)


def test_load_full_config(tmp_path):
    path = tmp_path / "config.toml"
    path.write_text(
        """
[server]
host = "127.0.0.1"
port = 4000
allowed_origins = ["null"]

[display]
driver = "SH1106"
i2c_port = 0
address = 0x3D
mock = false

[runtime]
on_bus_error = "exit"
max_pending = 8
"""
    )
    cfg = load_from_toml(path)
    assert cfg.server.port == 4000
    assert cfg.server.allowed_origins == ("null",)
    assert cfg.display.driver == "sh1106"
    assert cfg.display.address == 0x3D
    assert cfg.display.bus_path == "/dev/i2c-0"
    assert cfg.display.mock is False
    assert (cfg.display.width, cfg.display.height) == (128, 64)
    assert cfg.runtime.on_bus_error == "exit"
    assert cfg.runtime.max_pending == 8


def test_empty_file_gives_defaults(tmp_path):
    path = tmp_path / "config.toml"
    path.write_text("")
    assert load_from_toml(path) == default_config()


def test_defaults_are_loopback_and_null_origin():
    cfg = default_config()
    assert cfg.server.host == "127.0.0.1"
    assert cfg.server.port == 3031
    assert cfg.server.allowed_origins == ("null",)
    assert cfg.display.bus_path == "/dev/i2c-1"
    assert cfg.display.address == 0x3C
    assert cfg.runtime.on_bus_error == "degrade"


def test_missing_file(tmp_path):
    with pytest.raises(FileNotFoundError):
        load_from_toml(tmp_path / "absent.toml")


def test_invalid_values():
    with pytest.raises(ValueError):
        DisplayConfig(driver="st7735")
    with pytest.raises(ValueError):
        DisplayConfig(address=0x80)
    with pytest.raises(ValueError):
        RuntimeConfig(on_bus_error="ignore")
    with pytest.raises(ValueError):
        RuntimeConfig(max_pending=-1)
    with pytest.raises(ValueError):
        ServerConfig(port=0)
