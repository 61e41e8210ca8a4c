"""
Plow Tile Proxy

- Forwards `/api/*` to the upstream mapping API (`<base>/mappingapi/api/*`)
- Recolors plow recency tiles (`highlight` + `VISITED`) to a softer palette
- Hides designation/recency categories listed in the `hide` query parameter
- Caches raw upstream tiles in memory (LRU + TTL)
- Optional endpoints: /health, /stats
"""

__version__ = "1.0.0"
