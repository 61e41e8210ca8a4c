from __future__ import annotations

from dataclasses import dataclass, field
from enum import Enum
from typing import FrozenSet, Optional, Tuple


RGB = Tuple[int, int, int]
HideSet = FrozenSet[int]


def _as_rgb(x) -> RGB:
    if len(x) != 3:
        raise ValueError("RGB color must have exactly 3 channels")
    out = (int(x[0]), int(x[1]), int(x[2]))
    for c in out:
        if not (0 <= c <= 255):
            raise ValueError(f"channel value out of range 0..255: {c}")
    return out


@dataclass(frozen=True, slots=True)
class ColorMapping:
    """
    One entry of the plow recency palette.

    Attributes:
        source: color painted by the upstream tile renderer.
        destination: color the proxy serves in its place.
    """
    source: RGB
    destination: RGB

    def __post_init__(self) -> None:
        object.__setattr__(self, "source", _as_rgb(self.source))
        object.__setattr__(self, "destination", _as_rgb(self.destination))


class TileKind(str, Enum):
    """How the dispatcher treats an inbound request."""
    NONE = "none"                # plain API call, streamed through
    PLOW = "plow"                # recency tile, recolored
    DESIGNATION = "designation"  # priority tile, optionally filtered


@dataclass(frozen=True, slots=True)
class TileRequestContext:
    """
    Per-request classification, built once by the router and discarded with the response.

    Attributes:
        kind: tile family (or NONE for non-tile traffic).
        upstream_path: middle segment + request path + query, hide parameter removed.
        cache_key: canonical tile key (same as upstream_path).
        hide: category indices to render invisible.
    """
    kind: TileKind
    upstream_path: str
    cache_key: str
    hide: HideSet = field(default_factory=frozenset)

    @property
    def is_tile(self) -> bool:
        return self.kind is not TileKind.NONE

    @property
    def is_plow_tile(self) -> bool:
        return self.kind is TileKind.PLOW

    @property
    def is_designation_tile(self) -> bool:
        return self.kind is TileKind.DESIGNATION


@dataclass(frozen=True, slots=True)
class TransformResult:
    """
    Outcome of a tile transform.

    `ok=False` carries the original bytes so the caller can still serve imagery.
    """
    ok: bool
    data: bytes
    media_type: str = "image/png"
    error: Optional[str] = None

    @classmethod
    def success(cls, data: bytes, media_type: str = "image/png") -> "TransformResult":
        return cls(ok=True, data=data, media_type=media_type)

    @classmethod
    def failure(cls, original: bytes, media_type: str, error: str) -> "TransformResult":
        return cls(ok=False, data=original, media_type=media_type, error=error)
