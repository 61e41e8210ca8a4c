from __future__ import annotations

"""
Upstream tile/data API client.

Plain GETs only; no headers are added. Bodies are not read by `fetch` so the
caller can either buffer them (tiles) or stream them (everything else).

Usage:
    client = UpstreamClient("https://plownyc.cityofnewyork.us")
    resp = client.fetch("/mappingapi/api/highlight?layerName=VISITED&z=15&x=9650&y=12316")
    body = client.read_body(resp)
"""

import logging
from typing import Iterator, Optional

import requests


log = logging.getLogger(__name__)


class UpstreamUnreachable(RuntimeError):
    """Connection, DNS, TLS or read failure talking to the upstream origin."""


class UpstreamClient:
    def __init__(
        self,
        base_url: str,
        session: Optional[requests.Session] = None,
        timeout: Optional[float] = None,
        chunk_size: int = 64 * 1024,
    ):
        """
        Params:
            base_url: scheme + host of the upstream origin, no trailing path
            session: optional requests.Session for connection reuse
            timeout: seconds; None leaves the transport defaults in place
            chunk_size: bytes per chunk when streaming a body through
        """
        if not base_url:
            raise ValueError("Upstream base URL is required")
        self.base_url = base_url.rstrip("/")
        self.session = session or requests.Session()
        self.timeout = timeout
        self.chunk_size = int(chunk_size)

    def build_url(self, upstream_path: str) -> str:
        if not upstream_path.startswith("/"):
            upstream_path = "/" + upstream_path
        return f"{self.base_url}{upstream_path}"

    def fetch(self, upstream_path: str) -> requests.Response:
        """GET the path; raises UpstreamUnreachable when no response arrives."""
        url = self.build_url(upstream_path)
        try:
            return self.session.get(url, stream=True, timeout=self.timeout)
        except requests.RequestException as e:
            raise UpstreamUnreachable(f"GET {url} failed: {e}") from e

    def read_body(self, resp: requests.Response) -> bytes:
        """Buffer the full body, then release the connection."""
        try:
            return resp.content
        except requests.RequestException as e:
            raise UpstreamUnreachable(f"reading body from {resp.url} failed: {e}") from e
        finally:
            resp.close()

    def iter_body(self, resp: requests.Response) -> Iterator[bytes]:
        """Chunks of the (content-decoded) body; the connection is released when done."""
        try:
            for chunk in resp.iter_content(chunk_size=self.chunk_size):
                if chunk:
                    yield chunk
        except requests.RequestException as e:
            log.error("Upstream stream interrupted: %s", e)
            raise UpstreamUnreachable(f"streaming body from {resp.url} failed: {e}") from e
        finally:
            resp.close()

    def close(self) -> None:
        self.session.close()
