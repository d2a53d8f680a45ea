from __future__ import annotations

import enum
import functools
from dataclasses import dataclass
from typing import Dict, List, Optional

import numpy as np
from PIL import Image, ImageDraw, ImageFont


@dataclass(frozen=True)
class FontMetrics:
    width: int
    height: int


class FontSize(enum.Enum):
    """Fixed glyph sizes supported by the panel, keyed by wire value."""

    Small6x8 = "6x8"
    Medium6x12 = "6x12"
    Large8x16 = "8x16"
    XLarge12x16 = "12x16"

    @property
    def metrics(self) -> FontMetrics:
        return _METRICS[self]

    @classmethod
    def parse(cls, value: object) -> Optional["FontSize"]:
        if isinstance(value, cls):
            return value
        try:
            return cls(value)
        except ValueError:
            return None

    @classmethod
    def wire_values(cls) -> List[str]:
        return [f.value for f in cls]


PRINTABLE_ASCII = "".join(chr(c) for c in range(33, 127))
FALLBACK_CHAR = "?"


_METRICS: Dict[FontSize, FontMetrics] = {
    FontSize.Small6x8: FontMetrics(6, 8),
    FontSize.Medium6x12: FontMetrics(6, 12),
    FontSize.Large8x16: FontMetrics(8, 16),
    FontSize.XLarge12x16: FontMetrics(12, 16),
}


@dataclass
class Glyph:
    char: str
    offset_x: int
    bitmap: np.ndarray  # shape: (height, width), dtype=uint8 values {0,1}

    @property
    def width(self) -> int:
        return int(self.bitmap.shape[1])

    @property
    def height(self) -> int:
        return int(self.bitmap.shape[0])


class GlyphRasterizer:
    """
    Rasterizes characters into fixed-size monochrome cells.

    Characters are drawn crisply (no anti-aliasing) with Pillow's built-in
    bitmap font onto a canvas anchored at the same origin, so every glyph
    shares the baseline. One font-wide ink band, the union of the printable
    ASCII glyphs, is cut out of that canvas and scaled into the cell of the
    requested FontSize. Scaling ORs source pixels together, so a glyph that
    has ink in the source font keeps ink in every cell size.

    Rendered cells are kept in a bounded LRU cache keyed by (char, font);
    cells are read-only and safe to share between threads.
    """

    def __init__(
        self, font: Optional[ImageFont.ImageFont] = None, cache_size: int = 1024
    ) -> None:
        self._font = font or ImageFont.load_default_imagefont()

        boxes = [self._font.getbbox(ch) for ch in PRINTABLE_ASCII]
        self._canvas = (max(b[2] for b in boxes) + 1, max(b[3] for b in boxes) + 1)

        ink = np.zeros((self._canvas[1], self._canvas[0]), dtype=bool)
        for ch in PRINTABLE_ASCII:
            ink |= self._render_native(ch).astype(bool)
        rows = np.flatnonzero(ink.any(axis=1))
        cols = np.flatnonzero(ink.any(axis=0))
        if rows.size == 0:
            raise ValueError("font renders no ink for printable ASCII")
        self._band = (int(rows[0]), int(rows[-1]) + 1, int(cols[0]), int(cols[-1]) + 1)

        self.rasterize = functools.lru_cache(maxsize=cache_size)(self._rasterize)

    def render_text(self, text: str, font: FontSize) -> List[Glyph]:
        """Rasterize `text` into glyphs laid out left to right from offset 0."""
        w = font.metrics.width
        return [
            Glyph(char=ch, offset_x=i * w, bitmap=self.rasterize(ch, font))
            for i, ch in enumerate(text)
        ]

    def _rasterize(self, char: str, font: FontSize) -> np.ndarray:
        metrics = font.metrics
        cell = np.zeros((metrics.height, metrics.width), dtype=np.uint8)
        if char.strip():
            top, bottom, left, right = self._band
            native = self._render_native(char)[top:bottom, left:right]
            # Rightmost column stays blank as the gap between neighbours
            inner_w = max(1, metrics.width - 1)
            cell[:, :inner_w] = _or_resample(native, metrics.height, inner_w)
        cell.setflags(write=False)
        return cell

    def _render_native(self, char: str) -> np.ndarray:
        img = Image.new("1", self._canvas, 0)
        draw = ImageDraw.Draw(img)
        draw.fontmode = "1"
        try:
            draw.text((0, 0), char, fill=1, font=self._font)
        except UnicodeEncodeError:
            # Bitmap fonts only cover Latin-1
            draw.text((0, 0), FALLBACK_CHAR, fill=1, font=self._font)
        return np.array(img, dtype=np.uint8)


def _or_resample(bits: np.ndarray, out_h: int, out_w: int) -> np.ndarray:
    """Resize a 0/1 bitmap; each output pixel is the OR of the source pixels it covers."""
    in_h, in_w = bits.shape
    rows = np.array(
        [
            bits[(i * in_h) // out_h : -(-((i + 1) * in_h) // out_h)].any(axis=0)
            for i in range(out_h)
        ]
    )
    cols = np.array(
        [
            rows[:, (j * in_w) // out_w : -(-((j + 1) * in_w) // out_w)].any(axis=1)
            for j in range(out_w)
        ]
    )
    return cols.T.astype(np.uint8)
