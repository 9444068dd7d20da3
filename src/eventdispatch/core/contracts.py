from __future__ import annotations

import time
import uuid
from abc import ABC, abstractmethod
from dataclasses import dataclass, field
from typing import Any, Callable, Protocol, Union, runtime_checkable

__all__ = [
    "EventId",
    "EventInterface",
    "HandlerInterface",
    "HandlerLike",
    "Event",
    "EventHandler",
    "FunctionHandler",
    "handler_name",
]


# --------- Primitive / aliases ---------
EventId = str


# --------- Capabilities consumed by the dispatcher ---------
@runtime_checkable
class EventInterface(Protocol):
    """Anything with a name, an opaque payload and a creation time."""
    name: str
    payload: Any
    created_at: float


@runtime_checkable
class HandlerInterface(Protocol):
    def handle(self, event: EventInterface) -> None: ...


# a handler object, or a bare callable taking the event
HandlerLike = Union[HandlerInterface, Callable[[EventInterface], None]]


# --------- Ready-made event ---------
@dataclass(slots=True)
class Event:
    """Simple named event: name, payload and the time it was created."""
    name: str
    payload: Any = None
    created_at: float = field(default_factory=time.time)   # UNIX epoch seconds
    event_id: EventId = field(default_factory=lambda: str(uuid.uuid4()))

    def __post_init__(self):
        if not isinstance(self.name, str) or not self.name:
            raise ValueError("Event requires a non-empty name")


# --------- Handler helpers ---------
class EventHandler(ABC):
    """Base class for handler objects; subclasses implement handle()."""

    @abstractmethod
    def handle(self, event: EventInterface) -> None:
        raise NotImplementedError


class FunctionHandler(EventHandler):
    """
    Wrap a plain function into a handler object.

    The wrapper is the registered identity, so keep a reference to it in
    order to remove it later (bound methods are rebuilt on every attribute
    access and never compare identical).
    """

    def __init__(self, fn: Callable[[EventInterface], None]):
        if not callable(fn):
            raise TypeError(f"FunctionHandler expects a callable, got {type(fn).__name__}")
        self.fn = fn

    def handle(self, event: EventInterface) -> None:
        self.fn(event)

    def __repr__(self) -> str:
        return f"FunctionHandler({handler_name(self.fn)})"


def handler_name(handler: Any) -> str:
    """Readable name for logs and error messages."""
    if isinstance(handler, FunctionHandler):
        return repr(handler)
    name = getattr(handler, "__qualname__", None) or getattr(handler, "__name__", None)
    if name:
        return name
    return type(handler).__qualname__
