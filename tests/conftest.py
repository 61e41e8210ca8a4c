"""
Shared fixtures: in-memory PNG tiles and canned upstream responses.
"""

import io
import os
import sys
from typing import Dict, Optional, Sequence, Tuple

import numpy as np
import pytest
import requests
from PIL import Image

# Add project root to path
project_root = os.path.dirname(os.path.dirname(os.path.abspath(__file__)))
sys.path.append(project_root)


def png_from_pixels(pixels: Sequence[Tuple[int, int, int, int]], width: Optional[int] = None) -> bytes:
    """Encode a row-major list of RGBA tuples as a PNG (single row unless width is given)."""
    arr = np.array(pixels, dtype=np.uint8)
    width = width or len(pixels)
    arr = arr.reshape(-1, width, 4)
    buf = io.BytesIO()
    Image.fromarray(arr).save(buf, format="PNG")
    return buf.getvalue()


def pixels_from_png(data: bytes) -> np.ndarray:
    """Decode PNG bytes to an (N, 4) uint8 array."""
    with Image.open(io.BytesIO(data)) as img:
        return np.array(img.convert("RGBA"), dtype=np.uint8).reshape(-1, 4)


def upstream_response(
    status: int,
    body: bytes = b"",
    content_type: Optional[str] = None,
    headers: Optional[Dict[str, str]] = None,
    url: str = "https://upstream.test/",
) -> requests.Response:
    """A fully-buffered requests.Response, as if the body had already been read."""
    r = requests.Response()
    r.status_code = status
    r._content = body
    r._content_consumed = True
    r.url = url
    if content_type:
        r.headers["Content-Type"] = content_type
    for k, v in (headers or {}).items():
        r.headers[k] = v
    return r


@pytest.fixture
def make_png():
    return png_from_pixels


@pytest.fixture
def read_png():
    return pixels_from_png


@pytest.fixture
def make_upstream_response():
    return upstream_response
