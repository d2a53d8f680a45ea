# oled_rpc/config.py
from __future__ import annotations

import logging
import tomllib
from dataclasses import dataclass, field
from pathlib import Path
from typing import List, Literal, Tuple

logger = logging.getLogger(__name__)


Controller = Literal["ssd1306", "sh1106"]
BusErrorPolicy = Literal["degrade", "exit"]


@dataclass(frozen=True)
class ServerConfig:
    host: str = "127.0.0.1"
    port: int = 3031
    allowed_origins: Tuple[str, ...] = ("null",)

    def __post_init__(self) -> None:
        if not (0 < self.port <= 0xFFFF):
            raise ValueError(f"Server port must be 1-65535, got {self.port}")


@dataclass(frozen=True)
class DisplayConfig:
    driver: Controller = "ssd1306"
    i2c_port: int = 1
    address: int = 0x3C
    width: int = 128
    height: int = 64
    mock: bool = True

    def __post_init__(self) -> None:
        if self.driver not in {"ssd1306", "sh1106"}:
            raise ValueError(f"Unsupported display driver '{self.driver}'")
        if self.i2c_port < 0:
            raise ValueError("I2C port must be >= 0")
        if not (0x03 <= self.address <= 0x77):
            raise ValueError(f"I2C address must be 0x03-0x77, got {self.address:#x}")
        if self.width <= 0 or self.height <= 0:
            raise ValueError(f"Display size must be positive, got ({self.width}x{self.height})")

    @property
    def bus_path(self) -> str:
        return f"/dev/i2c-{self.i2c_port}"


@dataclass(frozen=True)
class RuntimeConfig:
    on_bus_error: BusErrorPolicy = "degrade"
    max_pending: int = 0

    def __post_init__(self) -> None:
        if self.on_bus_error not in {"degrade", "exit"}:
            raise ValueError(f"Invalid on_bus_error policy '{self.on_bus_error}'")
        if self.max_pending < 0:
            raise ValueError("max_pending must be >= 0")


@dataclass(frozen=True)
class ServiceConfig:
    server: ServerConfig = field(default_factory=ServerConfig)
    display: DisplayConfig = field(default_factory=DisplayConfig)
    runtime: RuntimeConfig = field(default_factory=RuntimeConfig)


def _parse_origins(value) -> Tuple[str, ...]:
    if value is None:
        return ("null",)
    if isinstance(value, str):
        return (value,)
    origins: List[str] = [str(v) for v in value]
    return tuple(origins)


def load_from_toml(config_path: str | Path) -> ServiceConfig:
    """
    Load a ServiceConfig from a TOML file.

    Expected TOML structure (every key optional):

    [server]
    host = "127.0.0.1"
    port = 3031
    allowed_origins = ["null"]

    [display]
    driver = "ssd1306"   # ssd1306|sh1106
    i2c_port = 1
    address = 0x3C
    width = 128
    height = 64
    mock = true

    [runtime]
    on_bus_error = "degrade"  # degrade|exit
    max_pending = 0           # 0 = unbounded
    """
    p = Path(config_path)
    if not p.exists():
        raise FileNotFoundError(f"Configuration file not found: {p}")

    with p.open("rb") as f:
        data = tomllib.load(f)

    server = data.get("server") or {}
    display = data.get("display") or {}
    runtime = data.get("runtime") or {}

    cfg = ServiceConfig(
        server=ServerConfig(
            host=str(server.get("host", "127.0.0.1")),
            port=int(server.get("port", 3031)),
            allowed_origins=_parse_origins(server.get("allowed_origins")),
        ),
        display=DisplayConfig(
            driver=str(display.get("driver", "ssd1306")).lower(),  # type: ignore[arg-type]
            i2c_port=int(display.get("i2c_port", 1)),
            address=int(display.get("address", 0x3C)),
            width=int(display.get("width", 128)),
            height=int(display.get("height", 64)),
            mock=bool(display.get("mock", True)),
        ),
        runtime=RuntimeConfig(
            on_bus_error=str(runtime.get("on_bus_error", "degrade")).lower(),  # type: ignore[arg-type]
            max_pending=int(runtime.get("max_pending", 0)),
        ),
    )

    logger.info(
        "Loaded ServiceConfig: listen=%s:%d, display=%s %dx%d @ %s/%#x (mock=%s), on_bus_error=%s",
        cfg.server.host,
        cfg.server.port,
        cfg.display.driver,
        cfg.display.width,
        cfg.display.height,
        cfg.display.bus_path,
        cfg.display.address,
        cfg.display.mock,
        cfg.runtime.on_bus_error,
    )
    return cfg


def default_config() -> ServiceConfig:
    """A local default: mock 128x64 SSD1306 on /dev/i2c-1, loopback listener."""
    return ServiceConfig()
