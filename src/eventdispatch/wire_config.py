# src/eventdispatch/wire_config.py
from __future__ import annotations

import importlib
from pathlib import Path
from typing import Any, Dict, Mapping, Optional

import yaml

from eventdispatch.core import log
from eventdispatch.core.contracts import FunctionHandler, HandlerLike
from eventdispatch.core.dispatcher import EventDispatcher

_l = log.get("eventdispatch.wire_config")


def _imp(module: str, attr: str) -> Any:
    mod = importlib.import_module(module)
    return getattr(mod, attr)


def _mk_handler(entry: Mapping[str, Any]) -> HandlerLike:
    module = entry.get("module")
    if not module:
        raise ValueError(f"handler entry needs 'module': {dict(entry)!r}")

    if "class" in entry:
        cls = _imp(module, entry["class"])
        args = entry.get("args") or {}
        if not isinstance(args, Mapping):
            raise ValueError(f"'args' must be a mapping for {module}.{entry['class']}")
        return cls(**args)

    if "function" in entry:
        return FunctionHandler(_imp(module, entry["function"]))

    raise ValueError(f"handler entry needs 'class' or 'function': {dict(entry)!r}")


def build_from_mapping(data: Optional[Mapping[str, Any]],
                       dispatcher: Optional[EventDispatcher] = None) -> EventDispatcher:
    """Register every entry of data['handlers'] on a (new) dispatcher, in document order."""
    d = dispatcher if dispatcher is not None else EventDispatcher()
    entries = (data or {}).get("handlers") or []
    if not isinstance(entries, list):
        raise ValueError("'handlers' must be a list")

    for i, entry in enumerate(entries):
        if not isinstance(entry, Mapping):
            raise ValueError(f"handlers[{i}] must be a mapping")
        event_name = entry.get("event")
        if not isinstance(event_name, str) or not event_name:
            raise ValueError(f"handlers[{i}] needs a non-empty 'event'")
        d.register(event_name, _mk_handler(entry))

    _l.info("wired %d handler(s) across %d event name(s)", len(entries), len(d))
    return d


def build_from_yaml(yaml_path: str | Path,
                    dispatcher: Optional[EventDispatcher] = None) -> EventDispatcher:
    """Read a handlers YAML file and return the wired dispatcher."""
    data: Dict[str, Any] | None = yaml.safe_load(Path(yaml_path).read_text(encoding="utf-8"))
    if data is not None and not isinstance(data, Mapping):
        raise ValueError(f"{yaml_path}: top level must be a mapping")
    return build_from_mapping(data, dispatcher)
