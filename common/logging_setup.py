from __future__ import annotations

import json
import logging
import os
import sys
from typing import Any, Dict, Optional


# Attributes every LogRecord has; anything else came in through `extra=`.
_RECORD_FIELDS = frozenset(vars(logging.LogRecord("", 0, "", 0, "", (), None))) | {"message", "asctime"}


class JsonFormatter(logging.Formatter):
    """
    One JSON object per line:
      { "t": 1700000000000, "lvl": "INFO", "name": "tileproxy.proxy", "msg": "...",
        "extra": {"cache_key": "...", "status": 204} }

    Fields passed as `log.info(msg, extra={...})` are collected under "extra".
    """

    def format(self, record: logging.LogRecord) -> str:  # type: ignore[override]
        payload: Dict[str, Any] = {
            "t": int(record.created * 1000),
            "lvl": record.levelname,
            "name": record.name,
            "msg": record.getMessage(),
        }
        extra = {k: v for k, v in vars(record).items() if k not in _RECORD_FIELDS}
        if extra:
            payload["extra"] = extra
        if record.exc_info:
            payload["exc_info"] = self.formatException(record.exc_info)
        return json.dumps(payload, ensure_ascii=False, default=str)


def _level(name: Optional[str]) -> int:
    lvl = logging.getLevelName((name or "INFO").upper())
    return lvl if isinstance(lvl, int) else logging.INFO


def setup_logging(level: Optional[str] = None) -> None:
    """
    Install the JSON handler on the root logger (once) and set its level.
    Level precedence: explicit `level`, env LOG_LEVEL, INFO.
    Calling again only adjusts the level.
    """
    root = logging.getLogger()
    if not getattr(root, "_tileproxy_configured", False):
        handler = logging.StreamHandler(sys.stdout)
        handler.setFormatter(JsonFormatter())
        root.handlers.clear()
        root.addHandler(handler)
        root._tileproxy_configured = True  # type: ignore[attr-defined]
        root.setLevel(_level(level or os.environ.get("LOG_LEVEL")))
    elif level:
        root.setLevel(_level(level))


def get_logger(name: str) -> logging.Logger:
    """Module logger with the root handler guaranteed in place."""
    setup_logging()
    return logging.getLogger(name)
