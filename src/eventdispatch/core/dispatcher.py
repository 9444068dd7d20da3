# src/eventdispatch/core/dispatcher.py
from __future__ import annotations

import threading
from typing import Dict, Iterator, List, Tuple

from eventdispatch.core import log
from eventdispatch.core.contracts import EventInterface, HandlerLike, handler_name
from eventdispatch.core.errors import HandlerAlreadyRegistered
from eventdispatch.core.metrics import Timer, inc_counter, set_gauge


def _index_of(seq: List[HandlerLike], handler: HandlerLike) -> int:
    # identity, not ==: two handlers with equal state are still different handlers
    for i, h in enumerate(seq):
        if h is handler:
            return i
    return -1


def _check_name(event_name: object) -> None:
    if not isinstance(event_name, str) or not event_name:
        raise ValueError("event_name must be a non-empty string")


def _invoke(handler: HandlerLike, event: EventInterface) -> None:
    fn = getattr(handler, "handle", None)
    if callable(fn):
        fn(event)
    else:
        handler(event)


class EventDispatcher:
    """
    Synchronous in-process dispatcher: event name -> ordered handlers.

    - handlers run on the caller's thread, in registration order
    - a handler is identified by object identity; registering the same
      object twice under one name raises HandlerAlreadyRegistered
    - remove() of something that is not registered is a no-op
    - a handler exception stops the dispatch and reaches the caller
    - event names are non-empty strings; register, remove, has and
      handlers() raise ValueError for anything else

    One lock guards the mapping. dispatch() copies the handler list under
    the lock and calls handlers after releasing it, so handlers may
    register/remove/dispatch re-entrantly; such changes only apply to
    later dispatches.
    """

    def __init__(self, name: str = "eventdispatch.dispatcher"):
        self.name = name
        self.l = log.get(self.name)
        self._handlers: Dict[str, List[HandlerLike]] = {}
        self._lock = threading.Lock()

    # -------------------- mutation --------------------
    def register(self, event_name: str, handler: HandlerLike) -> None:
        _check_name(event_name)
        if not (callable(getattr(handler, "handle", None)) or callable(handler)):
            raise TypeError(f"handler must be callable or define handle(), got {type(handler).__name__}")

        with self._lock:
            seq = self._handlers.setdefault(event_name, [])
            if _index_of(seq, handler) >= 0:
                raise HandlerAlreadyRegistered(event_name, handler_name(handler))
            seq.append(handler)
            count = len(seq)
            # gauge written under the lock so it always matches len(seq)
            set_gauge("dispatcher_handlers", float(count), event=event_name)

        inc_counter("dispatcher_register_total", 1, event=event_name)
        self.l.debug("registered event=%s handler=%s (n=%d)", event_name, handler_name(handler), count)

    def remove(self, event_name: str, handler: HandlerLike) -> None:
        _check_name(event_name)
        with self._lock:
            seq = self._handlers.get(event_name)
            if seq is None:
                return
            i = _index_of(seq, handler)
            if i < 0:
                return
            del seq[i]  # keeps the order of the rest
            count = len(seq)
            set_gauge("dispatcher_handlers", float(count), event=event_name)

        inc_counter("dispatcher_remove_total", 1, event=event_name)
        self.l.debug("removed event=%s handler=%s (n=%d)", event_name, handler_name(handler), count)

    def clear(self) -> None:
        with self._lock:
            names = list(self._handlers)
            self._handlers.clear()
            for event_name in names:
                set_gauge("dispatcher_handlers", 0.0, event=event_name)
        self.l.debug("cleared %d event name(s)", len(names))

    # -------------------- queries --------------------
    def has(self, event_name: str, handler: HandlerLike) -> bool:
        _check_name(event_name)
        with self._lock:
            seq = self._handlers.get(event_name)
            return seq is not None and _index_of(seq, handler) >= 0

    def handlers(self, event_name: str) -> Tuple[HandlerLike, ...]:
        """Handlers registered under event_name, in order (empty when none)."""
        _check_name(event_name)
        with self._lock:
            return tuple(self._handlers.get(event_name, ()))

    def event_names(self) -> List[str]:
        """Names with an entry, including ones whose handlers were all removed."""
        with self._lock:
            return list(self._handlers)

    def __len__(self) -> int:
        with self._lock:
            return len(self._handlers)

    def __contains__(self, event_name: object) -> bool:
        if not isinstance(event_name, str):
            return False
        with self._lock:
            return event_name in self._handlers

    def __iter__(self) -> Iterator[str]:
        return iter(self.event_names())

    # -------------------- delivery --------------------
    def dispatch(self, event: EventInterface) -> None:
        event_name = event.name
        with self._lock:
            snapshot = tuple(self._handlers.get(event_name, ()))

        if not snapshot:
            self.l.debug("no handlers for event=%s", event_name)
            return

        inc_counter("dispatcher_dispatch_total", 1, event=event_name)
        with Timer("dispatcher_dispatch_ms", event=event_name):
            for h in snapshot:
                _invoke(h, event)
        self.l.debug("dispatched event=%s to %d handler(s)", event_name, len(snapshot))
