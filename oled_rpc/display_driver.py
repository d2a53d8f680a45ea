"""
Display Driver I/O Boundary

This module provides the DisplayDriver classes, which own the in-memory draw
buffer of the OLED panel and push it over I2C on flush. It abstracts away the
hardware/mock distinction behind a small interface: init, draw, clear, flush.

I/O boundary class - handles all hardware interaction. Not thread-safe on its
own; callers serialize access through DisplayResource.
"""

import logging
import threading
import time
from abc import ABC, abstractmethod
from contextlib import contextmanager
from typing import List, Optional, Sequence, Set, Tuple

import numpy as np
from PIL import Image

from .config import DisplayConfig
from .fonts import Glyph


logger = logging.getLogger(__name__)


class DisplayBusError(Exception):
    """Raised when communication with the panel over the bus fails."""

    pass


class DisplayDriver(ABC):
    """
    Abstract base class for OLED panel drivers.

    Holds the draw buffer as a (height, width) uint8 array of {0,1}. `draw`
    and `clear` only touch the buffer; `flush` transfers it to the panel.
    """

    def __init__(self, config: DisplayConfig):
        self.config = config
        self.buffer = np.zeros((config.height, config.width), dtype=np.uint8)

    @abstractmethod
    def init(self) -> None:
        """
        Connect to the bus and run the panel's initialisation sequence.

        Raises:
            DisplayBusError: If the panel cannot be reached or initialised
        """
        pass

    @abstractmethod
    def flush(self) -> None:
        """
        Push the draw buffer to the panel.

        Raises:
            DisplayBusError: If the transfer fails
        """
        pass

    @abstractmethod
    def close(self) -> None:
        """Release the bus handle."""
        pass

    def draw(self, glyphs: Sequence[Glyph], x: int, y: int) -> None:
        """Paste glyph bitmaps into the buffer with their origin at (x, y), clipping at the edges."""
        for glyph in glyphs:
            self._blit(glyph.bitmap, x + glyph.offset_x, y)

    def clear(self) -> None:
        """Zero the draw buffer."""
        self.buffer.fill(0)

    def _blit(self, bitmap: np.ndarray, x: int, y: int) -> None:
        h, w = self.buffer.shape
        gh, gw = bitmap.shape
        x0, y0 = max(x, 0), max(y, 0)
        x1, y1 = min(x + gw, w), min(y + gh, h)
        if x0 >= x1 or y0 >= y1:
            return
        region = bitmap[y0 - y : y1 - y, x0 - x : x1 - x]
        self.buffer[y0:y1, x0:x1] |= region

    def to_image(self) -> Image.Image:
        """Render the draw buffer as a 1-bit Pillow image."""
        return Image.fromarray(self.buffer * 255).convert("1")


def _bus_errors() -> tuple:
    """Exceptions raised by luma.oled or the I2C bus underneath it."""
    from luma.core.error import Error as LumaError

    return (LumaError, OSError)


class HardwareDisplayDriver(DisplayDriver):
    """
    SSD1306/SH1106 panel on a Linux I2C bus, driven through luma.oled.
    """

    def __init__(self, config: DisplayConfig):
        super().__init__(config)
        self._device = None

    def init(self) -> None:
        from luma.core.interface.serial import i2c
        from luma.oled.device import sh1106, ssd1306

        device_cls = {"ssd1306": ssd1306, "sh1106": sh1106}[self.config.driver]
        try:
            serial = i2c(port=self.config.i2c_port, address=self.config.address)
            self._device = device_cls(
                serial, width=self.config.width, height=self.config.height
            )
            logger.info(
                f"Initialized {self.config.driver} on {self.config.bus_path} "
                f"at {self.config.address:#x}"
            )
        except _bus_errors() as e:
            self._device = None
            raise DisplayBusError(f"Failed to initialize panel: {e}") from e

    def flush(self) -> None:
        if self._device is None:
            raise DisplayBusError("Panel not initialized")
        try:
            self._device.display(self.to_image())
        except _bus_errors() as e:
            raise DisplayBusError(f"Panel flush failed: {e}") from e

    def close(self) -> None:
        if self._device is not None:
            try:
                self._device.cleanup()
                logger.info("Released I2C bus")
            except _bus_errors() as e:
                raise DisplayBusError(f"Panel cleanup failed: {e}") from e
            finally:
                self._device = None


class MockDisplayDriver(DisplayDriver):
    """
    In-memory driver for testing and development.

    Records every driver call in `calls` and mirrors flushed frames into
    `panel`, so tests can assert both call order and observable panel state.
    Failures can be injected per operation via `fail_on`.
    """

    def __init__(
        self,
        config: Optional[DisplayConfig] = None,
        *,
        fail_on: Optional[Set[str]] = None,
        latency: float = 0.0,
    ):
        super().__init__(config or DisplayConfig())
        self.panel = np.zeros_like(self.buffer)
        self.calls: List[Tuple] = []
        self.fail_on: Set[str] = set(fail_on or ())
        self.latency = latency
        self.initialized = False
        self.overlaps = 0
        self._in_flight = 0
        self._track_lock = threading.Lock()

    def init(self) -> None:
        with self._tracked("init"):
            self.initialized = True
        logger.info(f"[MOCK] Initialized {self.config.driver} on {self.config.bus_path}")

    def draw(self, glyphs: Sequence[Glyph], x: int, y: int) -> None:
        with self._tracked("draw", len(glyphs), x, y):
            super().draw(glyphs, x, y)

    def clear(self) -> None:
        with self._tracked("clear"):
            super().clear()

    def flush(self) -> None:
        with self._tracked("flush"):
            self.panel = self.buffer.copy()
        logger.debug("[MOCK] Flushed buffer to panel")

    def close(self) -> None:
        self.initialized = False
        logger.info("[MOCK] Released bus")

    def call_names(self) -> List[str]:
        return [c[0] for c in self.calls]

    @contextmanager
    def _tracked(self, name: str, *args):
        with self._track_lock:
            self._in_flight += 1
            if self._in_flight > 1:
                self.overlaps += 1
        try:
            if name in self.fail_on:
                raise DisplayBusError(f"[MOCK] {name} failed: [Errno 121] Remote I/O error")
            if self.latency:
                time.sleep(self.latency)
            yield
            self.calls.append((name, *args))
        finally:
            with self._track_lock:
                self._in_flight -= 1


def create_display_driver(
    config: DisplayConfig, use_hardware: Optional[bool] = None
) -> DisplayDriver:
    """
    Factory function to create appropriate display driver implementation.

    Args:
        config: Display configuration
        use_hardware: Force hardware (True) or mock (False). If None, uses config.mock

    Returns:
        DisplayDriver: Hardware or mock implementation
    """
    if use_hardware is None:
        use_hardware = not config.mock

    if use_hardware:
        logger.info("Creating hardware display driver")
        return HardwareDisplayDriver(config)
    else:
        logger.info("Creating mock display driver")
        return MockDisplayDriver(config)
