"""
DisplayResource - exclusive owner of the physical panel.

All panel mutation goes through `exclusive()`, which holds a single mutex
for the duration of one command. Once a bus fault is recorded the resource
refuses further commands.
"""

import logging
import threading
from contextlib import contextmanager
from typing import Iterator, Optional

from .display_driver import DisplayDriver
from .errors import DisplayBusyError, DisplayUnavailableError


logger = logging.getLogger(__name__)


class DisplayResource:
    """
    Single shared handle to the panel behind an exclusive-access gate.

    Args:
        driver: Initialised display driver; owned by this resource from now on
        max_pending: Upper bound on commands holding or waiting for the gate
            (0 = unbounded)
    """

    def __init__(self, driver: DisplayDriver, max_pending: int = 0):
        self._driver = driver
        self._lock = threading.Lock()
        self._admission = threading.Lock()
        self._pending = 0
        self.max_pending = max_pending
        self._fault: Optional[str] = None

    @contextmanager
    def exclusive(self) -> Iterator[DisplayDriver]:
        """
        Hold exclusive access to the driver for one command.

        Raises:
            DisplayBusyError: If the pending-command bound is reached
            DisplayUnavailableError: If the display is faulted
        """
        with self._admission:
            if self.max_pending and self._pending >= self.max_pending:
                raise DisplayBusyError(self.max_pending)
            self._pending += 1

        try:
            with self._lock:
                if self._fault is not None:
                    raise DisplayUnavailableError(self._fault)
                yield self._driver
        finally:
            with self._admission:
                self._pending -= 1

    def mark_faulted(self, reason: str) -> None:
        """Refuse all further commands; the first recorded reason is kept."""
        if self._fault is None:
            self._fault = reason
            logger.error(f"Display marked unavailable: {reason}")

    @property
    def faulted(self) -> bool:
        return self._fault is not None

    @property
    def fault_reason(self) -> Optional[str]:
        return self._fault

    @property
    def pending(self) -> int:
        return self._pending

    def close(self) -> None:
        with self._lock:
            self._driver.close()

    def get_stats(self) -> dict:
        cfg = self._driver.config
        return {
            "driver": cfg.driver,
            "bus": cfg.bus_path,
            "address": f"{cfg.address:#x}",
            "size": f"{cfg.width}x{cfg.height}",
            "available": not self.faulted,
            "fault": self._fault,
            "pending": self._pending,
        }
