from __future__ import annotations

"""
Proxy dispatcher: classify -> cache lookup -> upstream fetch -> transform -> respond.

Failure policy:
  - upstream unreachable              -> 502 {"error": "Proxy error"}, no retry
  - tile + 204 / non-image response   -> 404, empty text/plain body
  - transform failure                 -> original bytes, still 200
"""

import logging
from typing import Dict, Optional

from fastapi.responses import JSONResponse, Response, StreamingResponse
from starlette.background import BackgroundTask
from starlette.concurrency import run_in_threadpool

from common.types import TileRequestContext
from tileproxy.codec import transform_tile
from tileproxy.palettes import Palettes, default_palettes
from tileproxy.routing import classify_request
from tileproxy.tile_cache import TileCache
from tileproxy.upstream import UpstreamClient, UpstreamUnreachable


log = logging.getLogger(__name__)

CORS_HEADERS = {"Access-Control-Allow-Origin": "*"}
PREFLIGHT_HEADERS = {
    "Access-Control-Allow-Origin": "*",
    "Access-Control-Allow-Methods": "GET, OPTIONS",
    "Access-Control-Allow-Headers": "Content-Type",
}


class TileProxy:
    """
    Per-process dispatcher. Holds the shared TileCache; everything else is per request.

    The cache is only read/written from coroutine code on the event loop; blocking
    work (upstream I/O, decode/encode) is pushed to the threadpool and awaited.
    """
    def __init__(
        self,
        client: UpstreamClient,
        cache: Optional[TileCache] = None,
        palettes: Optional[Palettes] = None,
        upstream_prefix: str = "/mappingapi",
        tile_max_age_s: int = 300,
    ):
        self.client = client
        self.cache = cache if cache is not None else TileCache()
        self.palettes = palettes or default_palettes()
        self.upstream_prefix = upstream_prefix
        self.tile_max_age_s = int(tile_max_age_s)

    # -------- public API --------

    def classify(self, path: str, query: str) -> TileRequestContext:
        return classify_request(path, query, upstream_prefix=self.upstream_prefix)

    async def handle(self, path: str, query: str = "") -> Response:
        ctx = self.classify(path, query)

        if ctx.is_tile:
            cached = self.cache.lookup(ctx.cache_key)
            if cached is not None:
                return await self._tile_response(cached.raw, ctx, fallback_media_type=cached.media_type)

        try:
            upstream = await run_in_threadpool(self.client.fetch, ctx.upstream_path)
        except UpstreamUnreachable as e:
            log.error("Proxy error: %s", e, extra={"upstream_path": ctx.upstream_path})
            return self._proxy_error()

        if not ctx.is_tile:
            return self._passthrough(upstream)

        content_type = upstream.headers.get("content-type", "")
        if upstream.status_code == 204 or "image" not in content_type:
            upstream.close()
            log.debug(
                "No tile data upstream",
                extra={"upstream_path": ctx.upstream_path, "status": upstream.status_code, "content_type": content_type},
            )
            return Response(content=b"", status_code=404, media_type="text/plain", headers=dict(CORS_HEADERS))

        if upstream.status_code != 200:
            return self._passthrough(upstream)

        try:
            raw = await run_in_threadpool(self.client.read_body, upstream)
        except UpstreamUnreachable as e:
            log.error("Proxy error: %s", e, extra={"upstream_path": ctx.upstream_path})
            return self._proxy_error()

        self.cache.put(ctx.cache_key, raw, content_type)
        return await self._tile_response(raw, ctx, fallback_media_type=content_type)

    @staticmethod
    def preflight() -> Response:
        return Response(status_code=204, headers=dict(PREFLIGHT_HEADERS))

    # -------- internals --------

    def _tile_headers(self) -> Dict[str, str]:
        return {**CORS_HEADERS, "Cache-Control": f"public, max-age={self.tile_max_age_s}"}

    async def _tile_response(self, raw: bytes, ctx: TileRequestContext, *, fallback_media_type: str) -> Response:
        result = await run_in_threadpool(
            transform_tile, raw, ctx.kind, ctx.hide, self.palettes, fallback_media_type=fallback_media_type
        )
        if not result.ok:
            log.warning(
                "Serving untransformed tile: %s", result.error,
                extra={"tile_kind": ctx.kind.value, "cache_key": ctx.cache_key},
            )
        return Response(content=result.data, status_code=200, media_type=result.media_type, headers=self._tile_headers())

    def _passthrough(self, upstream) -> Response:
        headers = {
            **CORS_HEADERS,
            "Content-Type": upstream.headers.get("content-type") or "application/octet-stream",
            "Cache-Control": upstream.headers.get("cache-control") or "no-cache",
        }
        return StreamingResponse(
            self.client.iter_body(upstream),
            status_code=upstream.status_code,
            headers=headers,
            background=BackgroundTask(upstream.close),
        )

    @staticmethod
    def _proxy_error() -> Response:
        return JSONResponse({"error": "Proxy error"}, status_code=502, headers=dict(CORS_HEADERS))
