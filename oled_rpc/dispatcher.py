"""
Command Dispatcher - Policy/Orchestration Layer

This module contains the CommandDispatcher class, which turns inbound RPC
commands into panel operations. It decides:
- Whether a request is structurally well formed (params shape and types)
- Whether a write is valid for the panel (delegates to validation)
- How long exclusive access to the panel is held (exactly one command)
- What happens after a bus failure (fault the display, run the bus-error policy)

Uses pure logic (validation, fonts) and the DisplayResource gate for hardware.
"""

import logging
from dataclasses import dataclass
from typing import Any, Callable, Optional, Union

from pydantic import BaseModel, StrictInt, StrictStr
from pydantic import ValidationError as PydanticValidationError

from .display_driver import DisplayBusError
from .display_resource import DisplayResource
from .errors import BusError, MissingParameterError, ValidationFailedError
from .fonts import FontSize, GlyphRasterizer
from .validation import validate


logger = logging.getLogger(__name__)

SUCCESS = "success"


@dataclass(frozen=True)
class WriteCommand:
    x: int
    y: int
    text: str
    font: Union[FontSize, str]


class WriteParams(BaseModel):
    """Wire shape of `write` params."""

    x_coord: StrictInt
    y_coord: StrictInt
    string: StrictStr
    font_size: StrictStr

    @classmethod
    def parse(cls, params: Any) -> "WriteParams":
        """
        Parse by-name (object) or positional (array) params.

        Raises:
            MissingParameterError: If params don't match the expected shape
        """
        if isinstance(params, list):
            names = list(cls.model_fields)
            if len(params) != len(names):
                raise MissingParameterError(
                    f"Invalid params: expected {len(names)} positional params "
                    f"({', '.join(names)}), got {len(params)}"
                )
            params = dict(zip(names, params))

        if not isinstance(params, dict):
            kind = "null" if params is None else type(params).__name__
            raise MissingParameterError(
                f"Invalid params: invalid type: {kind}, expected write parameters"
            )

        try:
            return cls.model_validate(params)
        except PydanticValidationError as e:
            problems = "; ".join(
                f"{'.'.join(str(p) for p in err['loc'])}: {err['msg']}"
                for err in e.errors()
            )
            raise MissingParameterError(f"Invalid params: {problems}") from e

    def to_command(self) -> WriteCommand:
        font = FontSize.parse(self.font_size) or self.font_size
        return WriteCommand(x=self.x_coord, y=self.y_coord, text=self.string, font=font)


class CommandDispatcher:
    """
    Validates commands and runs them against the panel one at a time.

    Args:
        resource: Shared display resource
        rasterizer: Glyph rasterizer (default: new instance)
        on_bus_error: Called with the BusError after the display is faulted
    """

    def __init__(
        self,
        resource: DisplayResource,
        rasterizer: Optional[GlyphRasterizer] = None,
        on_bus_error: Optional[Callable[[BusError], None]] = None,
    ):
        self.resource = resource
        self.rasterizer = rasterizer or GlyphRasterizer()
        self.on_bus_error = on_bus_error

    def write(self, cmd: WriteCommand) -> str:
        """
        Draw text into the panel buffer. Does not flush.

        Raises:
            ValidationFailedError: If the command violates panel constraints
            BusError: If the driver reports a bus failure
        """
        violations = validate(cmd)
        if violations:
            raise ValidationFailedError(violations)

        font = FontSize.parse(cmd.font)
        glyphs = self.rasterizer.render_text(cmd.text, font)

        with self.resource.exclusive() as driver:
            try:
                driver.draw(glyphs, cmd.x, cmd.y)
            except DisplayBusError as e:
                raise self._bus_fault("draw", e) from e

        logger.debug(
            f"Drew {len(glyphs)} glyphs ({font.value}) at ({cmd.x},{cmd.y})"
        )
        return SUCCESS

    def clear(self) -> str:
        """
        Clear the buffer and flush it, as one exclusive operation.

        Raises:
            BusError: If the flush fails
        """
        with self.resource.exclusive() as driver:
            try:
                driver.clear()
                driver.flush()
            except DisplayBusError as e:
                raise self._bus_fault("clear", e) from e
        return SUCCESS

    def flush(self) -> str:
        """
        Push the buffer to the panel.

        Raises:
            BusError: If the flush fails
        """
        with self.resource.exclusive() as driver:
            try:
                driver.flush()
            except DisplayBusError as e:
                raise self._bus_fault("flush", e) from e
        return SUCCESS

    # RPC method handlers

    def handle_write(self, params: Any) -> str:
        logger.info("Received a 'write' request.")
        return self.write(WriteParams.parse(params).to_command())

    def handle_clear(self, params: Any = None) -> str:
        logger.info("Clearing the display.")
        return self.clear()

    def handle_flush(self, params: Any = None) -> str:
        logger.info("Flushing the display.")
        return self.flush()

    def _bus_fault(self, operation: str, err: DisplayBusError) -> BusError:
        bus_error = BusError(operation, str(err))
        logger.error(f"Problem during '{operation}' on the OLED display: {err}")
        self.resource.mark_faulted(str(bus_error))
        if self.on_bus_error is not None:
            self.on_bus_error(bus_error)
        return bus_error
