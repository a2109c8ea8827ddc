"""
Arbiter Event Infrastructure

Notification surface for stakeholders watching dispute outcomes. The verifier
publishes one event per verdict; subscribers (dispute drivers, dashboards,
auditors) react without being able to influence the verdict.

    Event Bus
    ├─ Typed events
    ├─ Pub/sub with priorities and filters
    └─ Handler error isolation

    Verdict Events        Session Events
    ├─ StepVerified       ├─ SessionAdmitted
    └─ StepRejected       └─ SessionRejected

Usage
─────

    from arbiter.events import StepRejected, get_event_bus

    bus = get_event_bus()

    @bus.subscribe(StepRejected)
    def on_reject(event: StepRejected):
        print(f"step {event.step} rejected: {event.reason}")

Copyright (c) 2026 Momentum. All rights reserved.
"""

from __future__ import annotations

import json
import logging
import threading
import uuid
from dataclasses import asdict, dataclass, field
from datetime import datetime, timezone
from typing import Any, Callable, Dict, List, Optional, Set, Type

logger = logging.getLogger(__name__)


# ════════════════════════════════════════════════════════════════════════════
# EVENT BASE
# ════════════════════════════════════════════════════════════════════════════


@dataclass
class Event:
    """
    Base class for all events.

    Events are immutable facts representing something that happened.
    Each event has a unique ID, timestamp, and optional correlation ID.
    """

    event_id: str = field(default_factory=lambda: str(uuid.uuid4()))
    event_timestamp: str = field(
        default_factory=lambda: datetime.now(timezone.utc).isoformat()
    )
    correlation_id: Optional[str] = None
    metadata: Dict[str, Any] = field(default_factory=dict)

    @property
    def event_type(self) -> str:
        """Get the event type name."""
        return self.__class__.__name__

    def to_dict(self) -> Dict[str, Any]:
        """Serialize event to dictionary."""
        data = asdict(self)
        data["event_type"] = self.event_type
        return data

    def to_json(self) -> str:
        return json.dumps(self.to_dict(), default=str, sort_keys=True)


# ════════════════════════════════════════════════════════════════════════════
# VERDICT EVENTS
# ════════════════════════════════════════════════════════════════════════════


@dataclass
class StepVerified(Event):
    """Emitted when a claimed step transition is valid."""
    step: int = 0
    kind: str = ""
    post_state_digest: str = ""


@dataclass
class StepRejected(Event):
    """Emitted when a claimed step transition is invalid."""
    step: int = 0
    kind: str = ""
    reason: str = ""


@dataclass
class SessionAdmitted(Event):
    """Emitted when a session passes the admission check."""
    session_id: str = ""
    high_step: int = 0


@dataclass
class SessionRejected(Event):
    """Emitted when a session fails the admission check."""
    session_id: str = ""
    reason: str = ""


# ════════════════════════════════════════════════════════════════════════════
# EVENT BUS
# ════════════════════════════════════════════════════════════════════════════


EventHandler = Callable[[Event], None]


@dataclass
class EventHandlerRegistration:
    """Registration for an event handler."""
    handler: EventHandler
    event_types: Set[Type[Event]]
    priority: int = 0
    filter_func: Optional[Callable[[Event], bool]] = None


class EventHandlerError(Exception):
    """Error during event handling."""
    def __init__(self, event: Event, handler: EventHandler, cause: Exception):
        self.event = event
        self.handler = handler
        self.cause = cause
        name = getattr(handler, "__name__", repr(handler))
        super().__init__(f"Handler {name} failed for {event.event_type}: {cause}")


class EventBus:
    """
    In-memory event bus for pub/sub communication.

    Handlers run synchronously in priority order. A handler that raises is
    recorded and reported through ``on_error``; publishing never raises.

    Example:
        bus = EventBus()

        @bus.subscribe(StepVerified, StepRejected)
        def record(event):
            print(event.event_type, event.step)

        bus.publish(StepVerified(step=7, kind="interior"))
    """

    def __init__(self, on_error: Optional[Callable[[EventHandlerError], None]] = None):
        self._handlers: List[EventHandlerRegistration] = []
        self._lock = threading.RLock()
        self._on_error = on_error
        self._published_count = 0
        self._handled_count = 0
        self._error_count = 0

    def subscribe(
        self,
        *event_types: Type[Event],
        priority: int = 0,
        filter_func: Optional[Callable[[Event], bool]] = None,
    ) -> Callable[[EventHandler], EventHandler]:
        """
        Decorator to subscribe a handler to event types.

        Args:
            event_types: Event types to subscribe to (all events if omitted)
            priority: Handler priority (higher = earlier)
            filter_func: Optional filter function
        """
        def decorator(handler: EventHandler) -> EventHandler:
            registration = EventHandlerRegistration(
                handler=handler,
                event_types=set(event_types) if event_types else {Event},
                priority=priority,
                filter_func=filter_func,
            )
            with self._lock:
                self._handlers.append(registration)
                self._handlers.sort(key=lambda r: -r.priority)
            return handler
        return decorator

    def unsubscribe(self, handler: EventHandler) -> bool:
        """Unsubscribe a handler."""
        with self._lock:
            original_len = len(self._handlers)
            self._handlers = [r for r in self._handlers if r.handler != handler]
            return len(self._handlers) < original_len

    def publish(self, event: Event) -> None:
        """Publish an event to all matching subscribers."""
        with self._lock:
            self._published_count += 1
            handlers_to_call = [
                r for r in self._handlers
                if any(isinstance(event, t) for t in r.event_types)
                and (r.filter_func is None or r.filter_func(event))
            ]

        for registration in handlers_to_call:
            self._call_handler(registration.handler, event)

    def _call_handler(self, handler: EventHandler, event: Event) -> None:
        """Call a handler with error handling."""
        try:
            handler(event)
            with self._lock:
                self._handled_count += 1
        except Exception as e:
            with self._lock:
                self._error_count += 1
            error = EventHandlerError(event, handler, e)
            logger.warning("%s", error)
            if self._on_error:
                self._on_error(error)

    @property
    def metrics(self) -> Dict[str, int]:
        with self._lock:
            return {
                "published": self._published_count,
                "handled": self._handled_count,
                "errors": self._error_count,
                "handlers": len(self._handlers),
            }


_event_bus: Optional[EventBus] = None
_event_bus_lock = threading.Lock()


def get_event_bus() -> EventBus:
    """Get the process-wide event bus."""
    global _event_bus
    with _event_bus_lock:
        if _event_bus is None:
            _event_bus = EventBus()
        return _event_bus


def reset_event_bus() -> EventBus:
    """Replace the process-wide event bus with a fresh one."""
    global _event_bus
    with _event_bus_lock:
        _event_bus = EventBus()
        return _event_bus
