from __future__ import annotations

"""
Pixel transforms over raw interleaved RGBA buffers.

Both transforms write in place and never look at fully transparent pixels.
A pixel is "matched" when its squared RGB distance to the nearest palette entry
is below MATCH_THRESHOLD; everything else is left untouched.
"""

from typing import AbstractSet, Tuple, Union

import numpy as np

from tileproxy.palettes import Palette


MATCH_THRESHOLD = 12000   # squared distance over 0-255 channels
BLEND_RADIUS = 110.0      # distance at which the recolor effect fades to zero

Buffer = Union[np.ndarray, bytearray, memoryview]


def pixel_view(buf: Buffer) -> np.ndarray:
    """
    Return an (N, 4) uint8 view sharing memory with `buf`.
    Accepts a uint8 ndarray of any shape (e.g. HxWx4) or a writable byte buffer.
    """
    arr = buf if isinstance(buf, np.ndarray) else np.frombuffer(buf, dtype=np.uint8)
    if arr.dtype != np.uint8:
        raise TypeError(f"expected uint8 pixels, got {arr.dtype}")
    if not arr.flags.c_contiguous:
        raise ValueError("RGBA buffer must be C-contiguous to be edited in place")
    if arr.size % 4:
        raise ValueError("RGBA buffer length must be a multiple of 4")
    return arr.reshape(-1, 4)


def classify(rgb: np.ndarray, palette: Palette) -> Tuple[np.ndarray, np.ndarray]:
    """
    Nearest palette entry for each row of an (N, 3) RGB array.

    Returns (index, squared_distance). np.argmin picks the first index on ties,
    so palette order is the tie-break priority.
    """
    rgb = np.asarray(rgb, dtype=np.int32).reshape(-1, 3)
    diff = rgb[:, None, :] - palette.sources[None, :, :]
    dist = (diff * diff).sum(axis=2)
    idx = np.argmin(dist, axis=1)
    return idx, dist[np.arange(len(idx)), idx]


def _hidden_mask(idx: np.ndarray, hide: AbstractSet[int], size: int) -> np.ndarray:
    wanted = [h for h in hide if 0 <= h < size]
    if not wanted:
        return np.zeros(idx.shape, dtype=bool)
    return np.isin(idx, np.array(wanted, dtype=np.int64))


def recolor_pixels(buf: Buffer, palette: Palette, hide: AbstractSet[int] = frozenset()) -> Buffer:
    """
    Remap plow recency colors to the served palette.

    - exact match: RGB replaced by the destination color
    - near match: RGB shifted by (dst - src) * t, t = max(0, 1 - d / BLEND_RADIUS),
      rounded half-up, so anti-aliased edges fade instead of banding
    - matched category in `hide`: alpha set to 0, RGB untouched
    """
    px = pixel_view(buf)
    visible = np.flatnonzero(px[:, 3])
    if visible.size == 0:
        return buf

    rgb = px[visible, :3].astype(np.int32)
    idx, d2 = classify(rgb, palette)

    matched = d2 < MATCH_THRESHOLD
    hidden = matched & _hidden_mask(idx, hide, len(palette))
    shown = matched & ~hidden
    exact = shown & (d2 == 0)
    near = shown & (d2 > 0)

    px[visible[hidden], 3] = 0
    px[visible[exact], :3] = palette.destinations[idx[exact]].astype(np.uint8)

    if near.any():
        t = np.maximum(0.0, 1.0 - np.sqrt(d2[near]) / BLEND_RADIUS)
        shift = (palette.destinations[idx[near]] - palette.sources[idx[near]]) * t[:, None]
        out = np.floor(rgb[near] + shift + 0.5)
        px[visible[near], :3] = np.clip(out, 0, 255).astype(np.uint8)
    return buf


def filter_pixels(buf: Buffer, palette: Palette, hide: AbstractSet[int]) -> Buffer:
    """Zero the alpha of pixels whose matched category is in `hide`. RGB is never changed."""
    if not hide:
        return buf
    px = pixel_view(buf)
    visible = np.flatnonzero(px[:, 3])
    if visible.size == 0:
        return buf

    idx, d2 = classify(px[visible, :3], palette)
    hidden = (d2 < MATCH_THRESHOLD) & _hidden_mask(idx, hide, len(palette))
    px[visible[hidden], 3] = 0
    return buf
