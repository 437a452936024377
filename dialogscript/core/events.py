"""
Typed event bus for runner notifications.

Uses Enums for event types so hosts subscribe to named notifications
instead of magic strings.

Usage:
    bus = EventBus()
    bus.subscribe(DialogueEvent.CONTENT_DISPLAYED, on_line)

    runner = Runner(event_bus=bus)
    runner.start("start")

    def on_line(event: Event) -> None:
        print(event["speaker"], event["text"])
"""

from __future__ import annotations

import inspect
import logging
from dataclasses import dataclass, field
from enum import Enum, auto
from typing import Any, Callable
from weakref import WeakMethod

logger = logging.getLogger(__name__)


class DialogueEvent(Enum):
    """Notifications published by the Runner."""
    DIALOGUE_STARTED = auto()    # session_id, node
    NODE_ENTERED = auto()        # node
    CONTENT_DISPLAYED = auto()   # content, text, speaker, emotion, tags
    CHOICES_DISPLAYED = auto()   # choices, texts
    CHOICE_SELECTED = auto()     # choice, index
    WAIT_REQUESTED = auto()      # duration
    DIALOGUE_COMPLETED = auto()  # session_id


@dataclass
class Event:
    """
    Event data container.

    Attributes:
        type: The event type (Enum member)
        data: Dictionary of event-specific data
        consumed: Whether the event has been handled
    """
    type: Enum
    data: dict[str, Any] = field(default_factory=dict)
    consumed: bool = False

    def consume(self) -> None:
        """Mark event as consumed (stops propagation)."""
        self.consumed = True

    def get(self, key: str, default: Any = None) -> Any:
        """Get event data by key."""
        return self.data.get(key, default)

    def __getitem__(self, key: str) -> Any:
        """Get event data by key (dict-style)."""
        return self.data[key]


# Type alias for event handlers
EventHandler = Callable[[Event], None]


class EventBus:
    """
    Publish/subscribe hub between a Runner and its host.

    Features:
    - Typed events (Enum-based)
    - Priority ordering
    - Weak references to bound methods (auto-cleanup when the owner is deleted)
    - One-shot handlers
    - Event consumption (stops propagation)

    Handler exceptions are logged and never reach the publisher, so a
    handler that calls back into a busy Runner cannot abort the step
    that published the event.
    """

    def __init__(self):
        # Map of event type -> list of (priority, handler, one_shot)
        self._handlers: dict[Enum, list[tuple[int, Any, bool]]] = {}
        # Queue for events published during handling
        self._event_queue: list[Event] = []
        self._is_publishing = False

    def subscribe(
        self,
        event_type: Enum,
        handler: EventHandler,
        priority: int = 0,
        one_shot: bool = False,
        weak: bool = True,
    ) -> None:
        """
        Subscribe to an event type.

        Args:
            event_type: The event type to listen for
            handler: Callback function(event: Event)
            priority: Higher priority handlers are called first (default 0)
            one_shot: If True, handler is removed after first call
            weak: If True, a bound method is held by weak reference and is
                removed once its object is deleted. Plain functions and
                lambdas have no owner to outlive and are always held strongly.
        """
        if event_type not in self._handlers:
            self._handlers[event_type] = []

        if weak and inspect.ismethod(handler):
            handler_ref = WeakMethod(handler)
        else:
            handler_ref = handler

        # Insert sorted by priority (highest first, stable for equal priority)
        handlers = self._handlers[event_type]
        entry = (priority, handler_ref, one_shot)

        insert_idx = len(handlers)
        for i, (p, _, _) in enumerate(handlers):
            if priority > p:
                insert_idx = i
                break

        handlers.insert(insert_idx, entry)

    def unsubscribe(self, event_type: Enum, handler: EventHandler) -> None:
        """
        Unsubscribe from an event type.

        Args:
            event_type: The event type
            handler: The handler to remove
        """
        if event_type not in self._handlers:
            return

        handlers = self._handlers[event_type]
        self._handlers[event_type] = [
            (p, h, o) for p, h, o in handlers
            if self._get_handler(h) != handler
        ]

    def publish(self, event_type: Enum, **data: Any) -> Event:
        """
        Publish an event.

        Args:
            event_type: The event type
            **data: Event data as keyword arguments

        Returns:
            The Event object (check .consumed to see if it was handled)
        """
        event = Event(type=event_type, data=data)

        if self._is_publishing:
            self._event_queue.append(event)
        else:
            self._dispatch(event)

        return event

    def clear(self, event_type: Enum | None = None) -> None:
        """
        Clear handlers.

        Args:
            event_type: If specified, only clear handlers for this type.
                       If None, clear all handlers.
        """
        if event_type is None:
            self._handlers.clear()
        elif event_type in self._handlers:
            del self._handlers[event_type]

    def handler_count(self, event_type: Enum) -> int:
        """Number of live handlers subscribed to an event type."""
        return sum(
            1 for _, h, _ in self._handlers.get(event_type, [])
            if self._get_handler(h) is not None
        )

    def _dispatch(self, event: Event) -> None:
        """Dispatch event to handlers."""
        if event.type not in self._handlers:
            return

        self._is_publishing = True
        handlers = self._handlers[event.type]
        to_remove = []

        try:
            for i, (priority, handler_ref, one_shot) in enumerate(handlers):
                handler = self._get_handler(handler_ref)

                if handler is None:
                    # Weak reference was garbage collected
                    to_remove.append(i)
                    continue

                try:
                    handler(event)
                except Exception:
                    logger.exception(f"Error in event handler for {event.type}")

                if one_shot:
                    to_remove.append(i)

                if event.consumed:
                    break
        finally:
            for i in reversed(to_remove):
                handlers.pop(i)
            self._is_publishing = False

        while self._event_queue:
            queued = self._event_queue.pop(0)
            self._dispatch(queued)

    def _get_handler(self, handler_ref: Any) -> EventHandler | None:
        """Resolve handler from reference."""
        if isinstance(handler_ref, WeakMethod):
            return handler_ref()
        return handler_ref
