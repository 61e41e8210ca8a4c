from __future__ import annotations

"""
Fixed color tables for the two intercepted tile families.

Plow recency tiles are recolored: each upstream color maps to a softer one.
Designation tiles are never recolored; their colors only identify the category
index a request may hide.
"""

from dataclasses import dataclass
from typing import Iterable, Sequence, Tuple

import numpy as np

from common.types import RGB, ColorMapping


# Upstream recency colors -> served palette. Order is the hide-set index.
PLOW_COLOR_MAP: Tuple[ColorMapping, ...] = (
    ColorMapping((0x00, 0x80, 0x00), (0x34, 0xA8, 0x53)),  # 0-1h:   green -> softer green
    ColorMapping((0x00, 0x00, 0xFF), (0x42, 0x85, 0xF4)),  # 1-3h:   blue -> clear blue
    ColorMapping((0xFF, 0xFF, 0x00), (0xFB, 0xBC, 0x04)),  # 3-6h:   yellow -> warm gold
    ColorMapping((0xFF, 0xA5, 0x00), (0xE8, 0x71, 0x0A)),  # 6-12h:  orange -> burnt orange
    ColorMapping((0x8A, 0x2B, 0xE2), (0x9C, 0x6A, 0xDE)),  # 12-24h: violet -> soft violet
    ColorMapping((0x3A, 0xE5, 0xEE), (0x4E, 0xB8, 0xC4)),  # 24-36h: cyan -> muted teal
    ColorMapping((0x4B, 0x3B, 0x30), (0x8A, 0x7B, 0x6E)),  # 36h+:   dark brown -> warm taupe
)

# Street designation colors as rendered upstream. Order is the hide-set index.
DESIGNATION_COLORS: Tuple[RGB, ...] = (
    (0xE3, 0x1A, 0x1C),  # critical
    (0x37, 0x7E, 0xB8),  # sector
    (0x4D, 0xAF, 0x4A),  # haulster
    (0x98, 0x4E, 0xA3),  # non-DSNY
)


def parse_hex_color(value: str) -> RGB:
    """'#34a853' / '34A853' -> (52, 168, 83)."""
    s = str(value).strip().lstrip("#")
    if len(s) != 6:
        raise ValueError(f"expected a 6-digit hex color, got {value!r}")
    try:
        return (int(s[0:2], 16), int(s[2:4], 16), int(s[4:6], 16))
    except ValueError:
        raise ValueError(f"invalid hex color {value!r}") from None


@dataclass(frozen=True, eq=False)
class Palette:
    """
    Array form of a color table for vectorized nearest-color lookups.

    sources/destinations are (K, 3) int32; for lookup-only palettes they are equal.
    """
    sources: np.ndarray
    destinations: np.ndarray

    def __post_init__(self) -> None:
        if self.sources.ndim != 2 or self.sources.shape[1] != 3 or len(self.sources) == 0:
            raise ValueError("palette must be a non-empty (K, 3) array")
        if self.sources.shape != self.destinations.shape:
            raise ValueError("sources and destinations must have the same shape")

    def __len__(self) -> int:
        return len(self.sources)

    @classmethod
    def from_mappings(cls, mappings: Iterable[ColorMapping]) -> "Palette":
        mappings = list(mappings)
        src = np.array([m.source for m in mappings], dtype=np.int32).reshape(-1, 3)
        dst = np.array([m.destination for m in mappings], dtype=np.int32).reshape(-1, 3)
        return cls(sources=src, destinations=dst)

    @classmethod
    def from_colors(cls, colors: Sequence[RGB]) -> "Palette":
        arr = np.array([ColorMapping(c, c).source for c in colors], dtype=np.int32).reshape(-1, 3)
        return cls(sources=arr, destinations=arr.copy())


@dataclass(frozen=True, eq=False)
class Palettes:
    plow: Palette
    designation: Palette


def default_palettes() -> Palettes:
    return Palettes(
        plow=Palette.from_mappings(PLOW_COLOR_MAP),
        designation=Palette.from_colors(DESIGNATION_COLORS),
    )


def build_palettes(designation_hex: Sequence[str] | None = None) -> Palettes:
    """Default tables, with the designation colors optionally replaced from config."""
    if not designation_hex:
        return default_palettes()
    return Palettes(
        plow=Palette.from_mappings(PLOW_COLOR_MAP),
        designation=Palette.from_colors([parse_hex_color(h) for h in designation_hex]),
    )
