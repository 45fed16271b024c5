"""
Translation Event Bus

Carries the three kinds of notification the translation core lives on:

- host cycle ticks (drive the scheduler),
- resolver requests (the scheduler's outbound calls),
- resolver results (drive the result router).

=============================================================================
PRINCIPLES
=============================================================================

1. THE BUS RECORDS FACTS
   - "translation:string_translated" means a result arrived, it is not a
     request for one
   - The bus does not decide outcomes, it records them

2. EVENTS ARE IMMUTABLE
   - Once emitted, an event cannot be changed
   - Handlers receive events, they cannot modify them

3. EMIT IS SYNCHRONOUS
   - Event creation, log commit and handler calls all happen before emit()
     returns
   - Sequence numbers enforce global order
   - There is no async execution: the translation core is single-threaded
     and every state mutation happens inside one handler call

4. ONE BUS PER HOST, NOT PER PROCESS
   - EventBus is an ordinary class.  Create one per host (or per test) and
     pass it to the components that need it.

=============================================================================
USAGE
=============================================================================

    from translation_batcher.core.bus import EventBus
    from translation_batcher.core.events import Events

    bus = EventBus()

    def on_tick(event):
        print(f"tick {event.detail['tick']}")

    unsubscribe = bus.on(Events.TICK, on_tick)
    bus.emit(Events.TICK, {"tick": 1}, source="host")

    unsubscribe()

=============================================================================
"""

from __future__ import annotations

import logging
from collections import deque
from collections.abc import Callable
from dataclasses import dataclass, field
from datetime import UTC, datetime
from typing import Any

logger = logging.getLogger(__name__)


# =============================================================================
# TYPE ALIASES
# =============================================================================

# A handler takes an event and returns nothing
EventHandler = Callable[["BusEvent"], None]

# An unsubscribe function takes no args and returns nothing
Unsubscribe = Callable[[], None]

DEFAULT_LOG_SIZE = 10_000


# =============================================================================
# EVENT METADATA
# =============================================================================


@dataclass(frozen=True)
class EventMetadata:
    """
    Metadata attached to every event.

    Attributes:
        timestamp: Unix epoch milliseconds (UTC). For display and debugging,
                   NOT for ordering.
        source: Name of the component that emitted this event
                (e.g. "host", "scheduler", "resolver").
        sequence: Monotonically increasing integer, unique per bus. The only
                  reliable way to order events.
    """

    timestamp: int
    source: str
    sequence: int

    @staticmethod
    def create(source: str, sequence: int) -> EventMetadata:
        now_ms = int(datetime.now(UTC).timestamp() * 1000)
        return EventMetadata(timestamp=now_ms, source=source, sequence=sequence)


# =============================================================================
# BUS EVENT
# =============================================================================


@dataclass(frozen=True)
class BusEvent:
    """
    A single event on the bus.

    Attributes:
        type: Event type string in "domain:action" form
              (see translation_batcher.core.events.Events).
        detail: Event payload. Treat as read-only.
        meta: Timestamp, source and sequence, assigned by the bus.
    """

    type: str
    detail: dict[str, Any] = field(default_factory=dict)
    meta: EventMetadata | None = None

    def __str__(self) -> str:
        if self.meta:
            return (
                f"BusEvent(type='{self.type}', "
                f"source='{self.meta.source}', "
                f"seq={self.meta.sequence})"
            )
        return f"BusEvent(type='{self.type}')"


# =============================================================================
# EVENT BUS
# =============================================================================


class EventBus:
    """
    Synchronous publish/subscribe bus with a bounded event log.

    Not thread-safe. Handlers run inline, in registration order. A handler
    may emit further events; those are delivered depth-first before the
    outer emit() returns.

    Key Methods:
    - emit(): Record an event and notify handlers
    - on(): Subscribe to an event type (returns unsubscribe function)
    - once(): Subscribe for a single event only
    - get_event_log(): Retrieve event history
    """

    def __init__(self, *, log_size: int = DEFAULT_LOG_SIZE) -> None:
        # event_type -> handlers, in registration order
        self._handlers: dict[str, list[EventHandler]] = {}
        self._event_log: deque[BusEvent] = deque(maxlen=log_size)
        self._sequence: int = 0
        # When True, logs every emit/subscribe/unsubscribe
        self.debug: bool = False

    # =========================================================================
    # EMIT
    # =========================================================================

    def emit(
        self, event_type: str, detail: dict[str, Any] | None = None, source: str = "host"
    ) -> BusEvent:
        """
        Emit an event to the bus.

        When this returns the event has a sequence number, is in the log,
        and every handler has been called.

        Args:
            event_type: The type of event (e.g. Events.TICK)
            detail: The event payload. Defaults to an empty dict.
            source: Which component is emitting. Used for debugging.

        Returns:
            The committed BusEvent.
        """
        self._sequence += 1
        event = BusEvent(
            type=event_type,
            detail=detail if detail is not None else {},
            meta=EventMetadata.create(source, self._sequence),
        )
        self._event_log.append(event)

        if self.debug:
            logger.debug("EMIT [%d]: %s from %s", self._sequence, event_type, source)

        self._notify_handlers(event)
        return event

    def _notify_handlers(self, event: BusEvent) -> None:
        """
        Call every handler subscribed to the event's type.

        A failing handler is logged with its traceback; the remaining
        handlers still run and the event stays committed.
        """
        handlers = self._handlers.get(event.type)
        if not handlers:
            return

        # Copy so handlers may unsubscribe (or subscribe) while we iterate
        for handler in list(handlers):
            try:
                handler(event)
            except Exception as e:
                logger.error(f"Handler error for '{event.type}': {e}", exc_info=True)

    # =========================================================================
    # SUBSCRIBE
    # =========================================================================

    def on(self, event_type: str, handler: EventHandler) -> Unsubscribe:
        """
        Subscribe to an event type.

        Args:
            event_type: The event type to listen for
            handler: Called with the BusEvent

        Returns:
            An unsubscribe function. Calling it twice is harmless.
        """
        self._handlers.setdefault(event_type, []).append(handler)

        if self.debug:
            count = len(self._handlers[event_type])
            logger.debug(f"SUBSCRIBE: '{event_type}' (total handlers: {count})")

        def unsubscribe() -> None:
            handlers = self._handlers.get(event_type)
            if handlers and handler in handlers:
                handlers.remove(handler)
                if self.debug:
                    logger.debug(f"UNSUBSCRIBE: '{event_type}'")

        return unsubscribe

    def once(self, event_type: str, handler: EventHandler) -> Unsubscribe:
        """Subscribe for the next event of ``event_type`` only."""
        unsub: Unsubscribe | None = None

        def one_time_wrapper(event: BusEvent) -> None:
            try:
                handler(event)
            finally:
                if unsub is not None:
                    unsub()

        unsub = self.on(event_type, one_time_wrapper)
        return unsub

    # =========================================================================
    # EVENT LOG ACCESS
    # =========================================================================

    def get_event_log(
        self, limit: int | None = None, *, event_type: str | None = None
    ) -> list[BusEvent]:
        """
        Get events from the log, oldest first.

        Args:
            limit: Return only the last N (matching) events.
            event_type: Only return events of this type.
        """
        events = list(self._event_log)
        if event_type is not None:
            events = [e for e in events if e.type == event_type]
        if limit is not None:
            return events[-limit:] if limit > 0 else []
        return events

    def get_sequence(self) -> int:
        """Sequence number of the last emitted event."""
        return self._sequence

    def get_handler_count(self, event_type: str) -> int:
        return len(self._handlers.get(event_type, ()))

    def clear_event_log(self) -> None:
        self._event_log.clear()
        if self.debug:
            logger.debug("Event log cleared")
