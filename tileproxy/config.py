from __future__ import annotations

import os
from dataclasses import dataclass, field
from pathlib import Path
from typing import Any, Dict, List, Mapping, Optional

import yaml


DEFAULT_CONFIG_PATH = "config/proxy.yaml"

_DEFAULTS: Dict[str, Dict[str, Any]] = {
    "server": {"host": "0.0.0.0", "port": 8080},
    "upstream": {
        "base_url": "https://plownyc.cityofnewyork.us",
        "path_prefix": "/mappingapi",
        "timeout_s": None,
        "stream_chunk_bytes": 65536,
    },
    "proxy": {"route_prefix": "/api/"},
    "cache": {"max_entries": 2000, "ttl_s": 300},
    "tiles": {"max_age_s": 300},
    "palettes": {"designation": None},
    "logging": {"level": None},
}


@dataclass
class ProxySettings:
    host: str = "0.0.0.0"
    port: int = 8080
    upstream_base_url: str = "https://plownyc.cityofnewyork.us"
    upstream_path_prefix: str = "/mappingapi"
    upstream_timeout_s: Optional[float] = None
    stream_chunk_bytes: int = 65536
    route_prefix: str = "/api/"
    cache_max_entries: int = 2000
    cache_ttl_s: float = 300.0
    tile_max_age_s: int = 300
    designation_colors: Optional[List[str]] = field(default=None)
    log_level: Optional[str] = None

    def __post_init__(self) -> None:
        if self.cache_max_entries <= 0:
            raise ValueError("cache.max_entries must be > 0")
        if self.cache_ttl_s <= 0:
            raise ValueError("cache.ttl_s must be > 0")
        if self.tile_max_age_s < 0:
            raise ValueError("tiles.max_age_s must be >= 0")
        if self.stream_chunk_bytes <= 0:
            raise ValueError("upstream.stream_chunk_bytes must be > 0")
        if not self.route_prefix.startswith("/"):
            self.route_prefix = "/" + self.route_prefix
        if not self.route_prefix.endswith("/"):
            self.route_prefix += "/"


def _load_config(path: str = DEFAULT_CONFIG_PATH) -> Dict[str, Dict[str, Any]]:
    """YAML file merged section-by-section over the built-in defaults."""
    merged = {k: dict(v) for k, v in _DEFAULTS.items()}
    if not Path(path).exists():
        return merged
    with open(path, "r", encoding="utf-8") as f:
        payload = yaml.safe_load(f) or {}
    if not isinstance(payload, dict):
        raise ValueError(f"{path}: top level must be a mapping")
    for section, values in payload.items():
        if values is None:
            continue
        if not isinstance(values, dict):
            raise ValueError(f"{path}: section '{section}' must be a mapping")
        merged.setdefault(section, {}).update(values)
    return merged


def _apply_env(cfg: Dict[str, Dict[str, Any]], env: Mapping[str, str]) -> None:
    if env.get("PORT"):
        cfg["server"]["port"] = int(env["PORT"])
    if env.get("UPSTREAM_BASE_URL"):
        cfg["upstream"]["base_url"] = env["UPSTREAM_BASE_URL"]
    if env.get("LOG_LEVEL"):
        cfg["logging"]["level"] = env["LOG_LEVEL"]


def load_settings(path: Optional[str] = None, env: Optional[Mapping[str, str]] = None) -> ProxySettings:
    """
    Resolve settings from (lowest to highest precedence):
      - built-in defaults
      - YAML file (`path`, else env TILEPROXY_CONFIG, else config/proxy.yaml)
      - env PORT / UPSTREAM_BASE_URL / LOG_LEVEL
    """
    env = os.environ if env is None else env
    cfg = _load_config(path or env.get("TILEPROXY_CONFIG") or DEFAULT_CONFIG_PATH)
    _apply_env(cfg, env)

    timeout = cfg["upstream"].get("timeout_s")
    designation = cfg["palettes"].get("designation")
    if designation is not None and not isinstance(designation, list):
        raise ValueError("palettes.designation must be a list of hex colors")

    return ProxySettings(
        host=str(cfg["server"].get("host", "0.0.0.0")),
        port=int(cfg["server"].get("port", 8080)),
        upstream_base_url=str(cfg["upstream"]["base_url"]),
        upstream_path_prefix=str(cfg["upstream"].get("path_prefix", "")),
        upstream_timeout_s=None if timeout is None else float(timeout),
        stream_chunk_bytes=int(cfg["upstream"].get("stream_chunk_bytes", 65536)),
        route_prefix=str(cfg["proxy"].get("route_prefix", "/api/")),
        cache_max_entries=int(cfg["cache"].get("max_entries", 2000)),
        cache_ttl_s=float(cfg["cache"].get("ttl_s", 300)),
        tile_max_age_s=int(cfg["tiles"].get("max_age_s", 300)),
        designation_colors=[str(c) for c in designation] if designation else None,
        log_level=cfg["logging"].get("level"),
    )
