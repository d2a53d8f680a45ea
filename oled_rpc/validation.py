"""
Write-request validation for the OLED panel.

This module checks a write command against the fixed geometry of the panel
and the supported glyph set. It is pure: no shared state, no locking, safe to
call from any number of request threads at once.

Rules checked here, in this order:
- Text length fits on one line of the largest glyph
- x-coordinate within the addressable width
- y-coordinate within the addressable height
- Font is one of the supported glyph sizes

Every rule is checked independently and all violations are reported together.
"""

from dataclasses import dataclass
from typing import TYPE_CHECKING, Any, Dict, List

from .fonts import FontSize

if TYPE_CHECKING:
    from .dispatcher import WriteCommand


# Physical panel constants, not configuration.
MIN_X = 0
MAX_X = 128
MIN_Y = 0
MAX_Y = 57
MAX_TEXT_LENGTH = 21


@dataclass(frozen=True)
class Violation:
    """A single violated field constraint."""

    field: str
    allowed: str
    value: Any

    def describe(self) -> str:
        if self.field == "string":
            return f"string length {self.value} out of range {self.allowed}"
        if self.field == "font_size":
            return f"{self.value} is not an accepted font size ({self.allowed})"
        coord = self.field.split("_")[0]
        return f"coordinate {coord} out of range {self.allowed}: {self.value}"

    def to_dict(self) -> Dict[str, Any]:
        return {"field": self.field, "allowed": self.allowed, "value": self.value}


def check_text_length(text: str) -> List[Violation]:
    if len(text) > MAX_TEXT_LENGTH:
        return [Violation("string", f"0-{MAX_TEXT_LENGTH}", len(text))]
    return []


def check_coordinate(field: str, value: int, low: int, high: int) -> List[Violation]:
    if not (low <= value <= high):
        return [Violation(field, f"{low}-{high}", value)]
    return []


def check_font(font: object) -> List[Violation]:
    if FontSize.parse(font) is None:
        return [Violation("font_size", ", ".join(FontSize.wire_values()), font)]
    return []


def validate(cmd: "WriteCommand") -> List[Violation]:
    """
    Validate a write command against panel geometry and the glyph set.

    Args:
        cmd: Write command to check

    Returns:
        List of violations in canonical order (text, x, y, font); empty when valid
    """
    violations: List[Violation] = []
    violations += check_text_length(cmd.text)
    violations += check_coordinate("x_coord", cmd.x, MIN_X, MAX_X)
    violations += check_coordinate("y_coord", cmd.y, MIN_Y, MAX_Y)
    violations += check_font(cmd.font)
    return violations
