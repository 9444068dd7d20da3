from __future__ import annotations

import json
import logging
import os
import sys
from typing import Dict, Optional, TextIO

from dotenv import load_dotenv

_PLAIN_FMT = "[%(asctime)s] %(levelname)s %(name)s | %(message)s"

# the handler installed by setup(); other root handlers (pytest caplog, user
# handlers) are left alone when it is replaced
_installed: Optional[logging.Handler] = None


class JsonFormatter(logging.Formatter):
    """Render a record as one JSON object (no trailing newline)."""

    def format(self, record: logging.LogRecord) -> str:
        obj = {
            "ts": record.created,
            "lvl": record.levelname,
            "name": record.name,
            "msg": record.getMessage(),
            "where": f"{record.filename}:{record.lineno}",
            "func": record.funcName,
        }
        if record.exc_info:
            obj["exc"] = self.formatException(record.exc_info)
        return json.dumps(obj, ensure_ascii=False, default=str)


def level_of(name: str | int | None, default: int = logging.INFO) -> int:
    """'debug' / 'DEBUG' / 10 -> 10; unknown names give `default`."""
    if isinstance(name, int):
        return name
    lvl = logging.getLevelName(str(name or "").strip().upper())
    return lvl if isinstance(lvl, int) else default


def parse_overrides(spec: str | None) -> Dict[str, int]:
    """'eventdispatch.dispatcher=DEBUG, metrics=WARNING' -> {logger: level}."""
    out: Dict[str, int] = {}
    for part in (spec or "").split(","):
        name, sep, lvl = part.partition("=")
        if sep and name.strip():
            out[name.strip()] = level_of(lvl)
    return out


def _build_handler(json_mode: bool, stream: TextIO) -> logging.Handler:
    handler = logging.StreamHandler(stream=stream)
    handler.setFormatter(JsonFormatter() if json_mode else logging.Formatter(fmt=_PLAIN_FMT))
    return handler


def is_configured() -> bool:
    return _installed is not None


def setup(level: Optional[str] = None, json_mode: Optional[bool] = None, *,
          force: bool = False, stream: Optional[TextIO] = None) -> None:
    """Configure the root logger once.

    Args left as None come from the environment (a .env file is loaded
    first): LOG_LEVEL (default INFO), LOG_JSON=1 for JSON lines and
    LOG_LEVELS for per-logger overrides. Calling again is a no-op unless
    force=True, in which case the previously installed handler is swapped.
    """
    global _installed
    if _installed is not None and not force:
        return

    load_dotenv()

    json_flag = json_mode if json_mode is not None else os.getenv("LOG_JSON", "0") == "1"
    handler = _build_handler(json_flag, stream or sys.stdout)

    root = logging.getLogger()
    if _installed is not None:
        root.removeHandler(_installed)
    root.addHandler(handler)
    root.setLevel(level_of(level or os.getenv("LOG_LEVEL")))

    for name, lvl in parse_overrides(os.getenv("LOG_LEVELS")).items():
        logging.getLogger(name).setLevel(lvl)

    _installed = handler


def get(name: str) -> logging.Logger:
    return logging.getLogger(name)


def set_level(level: str | int, name: Optional[str] = None) -> None:
    """Adjust a logger's level at runtime (root when name is None)."""
    logging.getLogger(name).setLevel(level_of(level))
