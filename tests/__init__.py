"""
Plow Tile Proxy Test Suite

Structure:
- unit/: pixel transforms, cache, routing, codec, upstream client, config, logging
- integration/: the FastAPI app end to end with a mocked upstream session
- conftest.py: in-memory PNG and upstream response helpers
"""
