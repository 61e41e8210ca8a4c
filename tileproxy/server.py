from __future__ import annotations

from contextlib import asynccontextmanager
from typing import Optional

import uvicorn
from fastapi import FastAPI, Request
from fastapi.responses import Response

from common.logging_setup import get_logger, setup_logging
from tileproxy import __version__
from tileproxy.config import ProxySettings, load_settings
from tileproxy.palettes import build_palettes
from tileproxy.proxy import TileProxy
from tileproxy.tile_cache import TileCache
from tileproxy.upstream import UpstreamClient


log = get_logger(__name__)


def build_proxy(settings: ProxySettings, client: Optional[UpstreamClient] = None) -> TileProxy:
    client = client or UpstreamClient(
        settings.upstream_base_url,
        timeout=settings.upstream_timeout_s,
        chunk_size=settings.stream_chunk_bytes,
    )
    return TileProxy(
        client=client,
        cache=TileCache(max_entries=settings.cache_max_entries, ttl_s=settings.cache_ttl_s),
        palettes=build_palettes(settings.designation_colors),
        upstream_prefix=settings.upstream_path_prefix,
        tile_max_age_s=settings.tile_max_age_s,
    )


def _raw_path(request: Request) -> str:
    """Path as the client sent it, still percent-encoded, so it reaches upstream unchanged."""
    raw = request.scope.get("raw_path")
    if not raw:
        return request.url.path
    return raw.split(b"?", 1)[0].decode("latin-1")


def create_app(settings: Optional[ProxySettings] = None, proxy: Optional[TileProxy] = None) -> FastAPI:
    settings = settings or load_settings()
    setup_logging(settings.log_level)
    proxy = proxy or build_proxy(settings)
    prefix = settings.route_prefix

    @asynccontextmanager
    async def lifespan(_app: FastAPI):
        log.info("API proxy: %s* -> %s%s%s*", prefix, proxy.client.base_url, proxy.upstream_prefix, prefix)
        log.info(
            "Tile cache: max_entries=%d ttl_s=%.0f",
            proxy.cache.max_entries,
            proxy.cache.ttl_s,
        )
        try:
            yield
        finally:
            proxy.client.close()

    app = FastAPI(title="Plow Tile Proxy", version=__version__, lifespan=lifespan)
    app.state.settings = settings
    app.state.proxy = proxy

    @app.get("/health")
    async def health():
        return {
            "status": "ok",
            "version": __version__,
            "upstream": proxy.client.base_url,
            "cache": proxy.cache.stats(),
        }

    @app.get("/stats")
    async def stats():
        return {"cache": proxy.cache.stats()}

    @app.options("/{path:path}")
    async def preflight(path: str) -> Response:
        return proxy.preflight()

    @app.get(prefix + "{path:path}")
    async def proxied(path: str, request: Request) -> Response:
        """
        Forward `<prefix><path>?<query>` upstream.

        Tile requests are served from the raw-tile cache when possible and
        recolored/filtered per the `hide` parameter; the rest is streamed through.
        """
        return await proxy.handle(_raw_path(request), request.url.query)

    return app


app = create_app()


def main() -> None:
    settings: ProxySettings = app.state.settings
    uvicorn.run(app, host=settings.host, port=settings.port, log_config=None)


# -------- local dev entrypoint --------
if __name__ == "__main__":
    main()
