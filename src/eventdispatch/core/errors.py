"""
Error types for the event dispatcher.

Only one domain error exists: registering the same handler object twice
under one event name. Removal of an absent handler and dispatch of an
event nobody listens to both succeed silently.
"""
from __future__ import annotations


class DispatcherError(Exception):
    """Base error for dispatcher operations."""
    pass


class HandlerAlreadyRegistered(DispatcherError):
    """Same handler object already registered for this event name."""

    def __init__(self, event_name: str, handler_name: str):
        self.event_name = event_name
        self.handler_name = handler_name
        super().__init__(
            f"handler '{handler_name}' already registered "
            f"for event '{event_name}'"
        )
