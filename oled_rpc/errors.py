"""
Error taxonomy and translation for the OLED RPC service.

Every failure a caller can observe is an OledError subclass tagged with a
closed ErrorKind. `translate` turns any exception into the stable
(code, message, data) triple returned in JSON-RPC error responses.
"""

import enum
import logging
from dataclasses import dataclass
from typing import Any, List, Optional, Sequence

from .validation import Violation


logger = logging.getLogger(__name__)


# JSON-RPC 2.0 reserved codes
PARSE_ERROR = -32700
INVALID_REQUEST = -32600
METHOD_NOT_FOUND = -32601
INVALID_PARAMS = -32602
INTERNAL_ERROR = -32603

# Server-defined codes
VALIDATION_ERROR = 1
BUS_ERROR = 2
DISPLAY_UNAVAILABLE = 3
DISPLAY_BUSY = 4


class ErrorKind(enum.Enum):
    MISSING_OR_MALFORMED_PARAMETER = "missing_or_malformed_parameter"
    VALIDATION_FAILED = "validation_failed"
    BUS_ERROR = "bus_error"
    DISPLAY_UNAVAILABLE = "display_unavailable"
    DISPLAY_BUSY = "display_busy"
    INTERNAL = "internal"


class OledError(Exception):
    """Base exception for errors surfaced to RPC callers."""

    kind = ErrorKind.INTERNAL


class MissingParameterError(OledError):
    """Raised when request params do not match the expected shape."""

    kind = ErrorKind.MISSING_OR_MALFORMED_PARAMETER

    def __init__(self, detail: str):
        super().__init__(detail)
        self.detail = detail


class ValidationFailedError(OledError):
    """Raised when a structurally valid write violates panel constraints."""

    kind = ErrorKind.VALIDATION_FAILED

    def __init__(self, violations: Sequence[Violation]):
        self.violations: List[Violation] = list(violations)
        super().__init__("; ".join(v.describe() for v in self.violations))


class BusError(OledError):
    """Raised when the display driver reports a bus communication failure."""

    kind = ErrorKind.BUS_ERROR

    def __init__(self, operation: str, detail: str):
        super().__init__(f"{operation} failed: {detail}")
        self.operation = operation
        self.detail = detail


class DisplayUnavailableError(OledError):
    """Raised when the display is faulted after an earlier bus error."""

    kind = ErrorKind.DISPLAY_UNAVAILABLE

    def __init__(self, reason: str):
        super().__init__(f"Display unavailable: {reason}")
        self.reason = reason


class DisplayBusyError(OledError):
    """Raised when too many callers are already waiting for the display."""

    kind = ErrorKind.DISPLAY_BUSY

    def __init__(self, max_pending: int):
        super().__init__(f"More than {max_pending} commands pending")
        self.max_pending = max_pending


@dataclass(frozen=True)
class RpcErrorPayload:
    code: int
    message: str
    data: Optional[Any] = None

    def to_dict(self) -> dict:
        out = {"code": self.code, "message": self.message}
        if self.data is not None:
            out["data"] = self.data
        return out


def translate(err: BaseException) -> RpcErrorPayload:
    """
    Map an exception to its caller-facing error triple.

    Args:
        err: Exception raised while handling a command

    Returns:
        RpcErrorPayload with a code that is distinct per ErrorKind
    """
    if isinstance(err, MissingParameterError):
        return RpcErrorPayload(INVALID_PARAMS, "invalid params", err.detail)

    if isinstance(err, ValidationFailedError):
        return RpcErrorPayload(
            VALIDATION_ERROR,
            f"Validation error: {err}.",
            [v.to_dict() for v in err.violations],
        )

    if isinstance(err, BusError):
        return RpcErrorPayload(BUS_ERROR, "I2C bus error.", err.detail)

    if isinstance(err, DisplayUnavailableError):
        return RpcErrorPayload(DISPLAY_UNAVAILABLE, "Display unavailable.", err.reason)

    if isinstance(err, DisplayBusyError):
        return RpcErrorPayload(
            DISPLAY_BUSY, "Display busy.", {"max_pending": err.max_pending}
        )

    logger.error("Unexpected error while handling command", exc_info=err)
    return RpcErrorPayload(INTERNAL_ERROR, "Internal error")
