"""
chainlet Runtime Events

Typed records of what happened while executing calls and blocks, and a small
synchronous bus for anyone who wants to observe them.

    Module Events          Executor Events          Block Events
    ├─ Transferred         ├─ ExtrinsicSucceeded    ├─ BlockExecuted
    ├─ ClaimCreated        └─ ExtrinsicFailed       └─ BlockRejected
    └─ ClaimRevoked

Events are facts: they are emitted after the state change they describe and
never influence execution. A failing subscriber is counted and reported
through ``on_error``, never re-raised into the runtime.

Usage
─────

    bus = EventBus()

    @bus.subscribe(ExtrinsicFailed)
    def report(event):
        print(event.block_number, event.extrinsic_index, event.error_kind)

    runtime = Runtime(event_bus=bus)
"""

from __future__ import annotations

import json
import logging
import threading
import uuid
from dataclasses import dataclass, field, fields
from datetime import datetime, timezone
from typing import (
    Any,
    Callable,
    Dict,
    List,
    Optional,
    Set,
    Type,
)

from chainlet.primitives import Unsigned

logger = logging.getLogger(__name__)


def _plain(value: Any) -> Any:
    """Convert event payload values to JSON-friendly primitives."""
    if isinstance(value, Unsigned):
        return int(value)
    if isinstance(value, dict):
        return {str(k): _plain(v) for k, v in value.items()}
    if isinstance(value, (list, tuple)):
        return [_plain(v) for v in value]
    return value


# ════════════════════════════════════════════════════════════════════════════
# EVENT BASE
# ════════════════════════════════════════════════════════════════════════════


@dataclass
class Event:
    """
    Base class for all runtime events.

    ``block_number`` and ``extrinsic_index`` are stamped by the runtime when
    the event is emitted inside block execution; they stay None for events
    raised by a bare ``dispatch``.
    """

    event_id: str = field(default_factory=lambda: str(uuid.uuid4()))
    event_timestamp: str = field(
        default_factory=lambda: datetime.now(timezone.utc).isoformat()
    )
    block_number: Optional[int] = None
    extrinsic_index: Optional[int] = None

    @property
    def event_type(self) -> str:
        """Get the event type name."""
        return self.__class__.__name__

    def to_dict(self) -> Dict[str, Any]:
        """Serialize event to dictionary."""
        data = {f.name: _plain(getattr(self, f.name)) for f in fields(self)}
        data["event_type"] = self.event_type
        return data

    def to_json(self) -> str:
        return json.dumps(self.to_dict(), default=str, sort_keys=True)


# ════════════════════════════════════════════════════════════════════════════
# MODULE EVENTS
# ════════════════════════════════════════════════════════════════════════════


@dataclass
class Transferred(Event):
    """Emitted by the balances module after a successful transfer."""
    sender: Any = None
    receiver: Any = None
    amount: Any = None


@dataclass
class ClaimCreated(Event):
    """Emitted by the claims module when content gets an owner."""
    owner: Any = None
    content: Any = None


@dataclass
class ClaimRevoked(Event):
    """Emitted by the claims module when an owner gives up a claim."""
    owner: Any = None
    content: Any = None


# ════════════════════════════════════════════════════════════════════════════
# EXECUTOR EVENTS
# ════════════════════════════════════════════════════════════════════════════


@dataclass
class ExtrinsicSucceeded(Event):
    caller: Any = None
    call: str = ""


@dataclass
class ExtrinsicFailed(Event):
    caller: Any = None
    call: str = ""
    error_kind: str = ""
    error_message: str = ""


@dataclass
class BlockExecuted(Event):
    extrinsic_count: int = 0
    failed_count: int = 0
    state_root: str = ""


@dataclass
class BlockRejected(Event):
    error_kind: str = ""
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
    In-memory event bus for pub/sub observation of the runtime.

    Handlers run synchronously in priority order (higher first). Thread-safe
    for concurrent subscribing and publishing.
    """

    def __init__(
        self,
        on_error: Optional[Callable[[EventHandlerError], None]] = None,
    ):
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

        With no event types the handler receives every event.
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
            handlers_to_call = []

            for registration in self._handlers:
                if not any(isinstance(event, t) for t in registration.event_types):
                    continue
                if registration.filter_func and not registration.filter_func(event):
                    continue
                handlers_to_call.append(registration)

        # Call handlers (outside lock)
        for registration in handlers_to_call:
            self._call_handler(registration.handler, event)

    def _call_handler(self, handler: EventHandler, event: Event) -> None:
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
        """Get event bus metrics."""
        with self._lock:
            return {
                "published_count": self._published_count,
                "handled_count": self._handled_count,
                "error_count": self._error_count,
                "handler_count": len(self._handlers),
            }


__all__ = [
    "Event",
    "Transferred",
    "ClaimCreated",
    "ClaimRevoked",
    "ExtrinsicSucceeded",
    "ExtrinsicFailed",
    "BlockExecuted",
    "BlockRejected",
    "EventHandler",
    "EventHandlerRegistration",
    "EventHandlerError",
    "EventBus",
]
