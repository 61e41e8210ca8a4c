from __future__ import annotations

"""
Request classification for the proxy.

Markers are matched case-sensitively against the upstream path *and* query,
since the upstream encodes the layer name as a query parameter
(e.g. /mappingapi/api/highlight?layerName=VISITED&z=15&x=9650&y=12316).
"""

from typing import FrozenSet, Iterable, List, Tuple
from urllib.parse import unquote_plus

from common.types import TileKind, TileRequestContext


HIDE_PARAM = "hide"
TILE_MARKER = "highlight"
NON_TILE_MARKERS = ("active", "info")
PLOW_MARKER = "VISITED"


def split_hide_param(query: str) -> Tuple[str, List[str]]:
    """
    Remove every `hide=` pair from a raw query string.

    Returns (remaining_query, hide_values). The remaining pairs keep their
    original order and encoding so the upstream sees exactly what the client sent.
    """
    kept: List[str] = []
    values: List[str] = []
    for part in query.split("&") if query else []:
        if not part:
            continue
        name, _, value = part.partition("=")
        if unquote_plus(name) == HIDE_PARAM:
            values.append(unquote_plus(value))
        else:
            kept.append(part)
    return "&".join(kept), values


def parse_hide_set(values: Iterable[str]) -> FrozenSet[int]:
    """'0,2' -> {0, 2}. Non-numeric tokens are dropped, not rejected."""
    out = set()
    for value in values:
        for token in value.split(","):
            token = token.strip()
            digits = token[1:] if token.startswith("-") else token
            if token.isascii() and digits.isdigit():
                out.add(int(token))
    return frozenset(out)


def tile_kind(upstream_path: str) -> TileKind:
    if TILE_MARKER not in upstream_path:
        return TileKind.NONE
    if any(m in upstream_path for m in NON_TILE_MARKERS):
        return TileKind.NONE
    if PLOW_MARKER in upstream_path:
        return TileKind.PLOW
    return TileKind.DESIGNATION


def classify_request(path: str, query: str, upstream_prefix: str = "/mappingapi") -> TileRequestContext:
    """
    Build the per-request context for an inbound proxied request.

    Params:
        path: inbound path, including the proxy route prefix (e.g. "/api/highlight")
        query: raw inbound query string, without the leading '?'
        upstream_prefix: fixed path segment inserted before the inbound path upstream
    """
    remaining, hide_values = split_hide_param(query)
    upstream_path = f"{upstream_prefix.rstrip('/')}{path}"
    if remaining:
        upstream_path = f"{upstream_path}?{remaining}"
    return TileRequestContext(
        kind=tile_kind(upstream_path),
        upstream_path=upstream_path,
        cache_key=upstream_path,
        hide=parse_hide_set(hide_values),
    )
