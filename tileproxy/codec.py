from __future__ import annotations

import io
import logging
from typing import AbstractSet, Tuple

import numpy as np
from PIL import Image

from common.types import TileKind, TransformResult
from tileproxy.palettes import Palettes
from tileproxy.pixels import filter_pixels, recolor_pixels


log = logging.getLogger(__name__)

PNG = "image/png"


def decode_rgba(data: bytes) -> Tuple[np.ndarray, int, int]:
    """
    Decode any raster format Pillow understands into a writable HxWx4 uint8 array.
    Returns (pixels, width, height).
    """
    with Image.open(io.BytesIO(data)) as img:
        rgba = img.convert("RGBA")
    arr = np.array(rgba, dtype=np.uint8)
    h, w = arr.shape[:2]
    return arr, w, h


def encode_png(pixels: np.ndarray) -> bytes:
    if pixels.ndim != 3 or pixels.shape[2] != 4:
        raise ValueError(f"expected HxWx4 RGBA pixels, got shape {pixels.shape}")
    buf = io.BytesIO()
    Image.fromarray(np.ascontiguousarray(pixels, dtype=np.uint8)).save(buf, format="PNG")
    return buf.getvalue()


def needs_transform(kind: TileKind, hide: AbstractSet[int]) -> bool:
    """Plow tiles are always recolored; designation tiles only when something is hidden."""
    if kind is TileKind.PLOW:
        return True
    return kind is TileKind.DESIGNATION and bool(hide)


def transform_tile(
    raw: bytes,
    kind: TileKind,
    hide: AbstractSet[int],
    palettes: Palettes,
    *,
    fallback_media_type: str = PNG,
) -> TransformResult:
    """
    Decode -> recolor/filter -> re-encode a tile.

    Never raises: on any decode/encode problem the original bytes come back in a
    failed result so the caller can still serve the tile. Bytes that are not
    re-encoded keep `fallback_media_type`, the type they arrived with.
    """
    if not needs_transform(kind, hide):
        return TransformResult.success(raw, fallback_media_type or PNG)
    try:
        pixels, w, h = decode_rgba(raw)
        if kind is TileKind.PLOW:
            recolor_pixels(pixels, palettes.plow, hide)
        else:
            filter_pixels(pixels, palettes.designation, hide)
        out = encode_png(pixels)
    except Exception as e:
        log.warning("Tile transform failed, serving original bytes: %s", e, exc_info=True)
        return TransformResult.failure(raw, fallback_media_type or PNG, str(e))
    log.debug("Transformed %s tile %dx%d", kind.value, w, h)
    return TransformResult.success(out, PNG)
