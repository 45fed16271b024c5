"""Bus wiring for the translation scheduler.

``TranslationRuntime`` is the single object a host needs: it owns a
:class:`TranslationScheduler` and a :class:`DictionaryBuilder` and connects
them to an :class:`~translation_batcher.core.bus.EventBus`.

Event flow
----------
::

    host ──TICK──────────────▶ iterate_batch ──TRANSLATION_REQUESTED──▶ resolver
    resolver ──STRING_TRANSLATED──▶ process_result ──▶ DictionaryBuilder
                                          │
                                          └─ finished ──TRANSLATION_FINISHED──▶ host
    host ──ACTOR_LEFT──▶ cancel ──TRANSLATION_CANCELLED──▶ host

A disconnected actor (per ``is_connected``) is cancelled by the scheduler
during a tick; the runtime then emits ``TRANSLATION_CANCELLED`` with
``reason="disconnected"`` and drops the actor's partial dictionaries.
An actor none of whose requests were valid is dropped the same way with
``reason="empty"``.
"""

from __future__ import annotations

import logging
from collections.abc import Iterable

from translation_batcher.core.bus import BusEvent, EventBus, Unsubscribe
from translation_batcher.core.events import Events
from translation_batcher.translation.dictionaries import DictionaryBuilder
from translation_batcher.translation.scheduler import (
    DEFAULT_TOTAL_BUDGET,
    DEFAULT_WAIT_CYCLES,
    ConnectivityCheck,
    CycleReport,
    ResultMatch,
    TranslationScheduler,
)
from translation_batcher.translation.serializer import Description
from translation_batcher.translation.state import ActorId, Item

logger = logging.getLogger(__name__)

SOURCE = "translation"


class TranslationRuntime:
    """Connects a scheduler and dictionary assembly to an event bus.

    Args:
        bus:           The host's event bus.
        is_connected:  Connectivity query forwarded to the scheduler.
        total_budget:  Per-cycle operation budget.
        wait_cycles:   Cycles to wait before re-requesting.
    """

    def __init__(
        self,
        bus: EventBus,
        *,
        is_connected: ConnectivityCheck | None = None,
        total_budget: int = DEFAULT_TOTAL_BUDGET,
        wait_cycles: int = DEFAULT_WAIT_CYCLES,
    ) -> None:
        self.bus = bus
        self.scheduler = TranslationScheduler(
            self._request_translation,
            is_connected=is_connected,
            total_budget=total_budget,
            wait_cycles=wait_cycles,
        )
        self.scheduler.init()
        self.dictionaries = DictionaryBuilder()
        self._unsubscribers: list[Unsubscribe] = [
            bus.on(Events.TICK, self._on_tick),
            bus.on(Events.STRING_TRANSLATED, self._on_string_translated),
            bus.on(Events.ACTOR_LEFT, self._on_actor_left),
        ]

    def request(self, actor_id: ActorId, items: Iterable[Item]) -> None:
        """Queue translation requests for ``actor_id``."""
        self.scheduler.add_requests(actor_id, items)

    def close(self) -> None:
        """Stop listening to the bus."""
        for unsubscribe in self._unsubscribers:
            unsubscribe()
        self._unsubscribers.clear()

    # ── Outbound ────────────────────────────────────────────────────────────

    def _request_translation(self, actor_id: ActorId, description: Description) -> None:
        self.bus.emit(
            Events.TRANSLATION_REQUESTED,
            {"actor_id": actor_id, "description": description},
            source=SOURCE,
        )

    # ── Handlers ────────────────────────────────────────────────────────────

    def _on_tick(self, event: BusEvent) -> None:
        report: CycleReport = self.scheduler.iterate_batch(event.detail["tick"])
        for actor_id in report.cancelled:
            self._drop(actor_id, "disconnected")
        for actor_id in report.abandoned:
            self._drop(actor_id, "empty")
        for actor_id in report.finished:
            self._finish(actor_id)

    def _on_string_translated(self, event: BusEvent) -> None:
        detail = event.detail
        actor_id = detail["actor_id"]
        match: ResultMatch = self.scheduler.process_result(actor_id, detail["description"])
        if match.consumers is None:
            return

        self.dictionaries.record(
            actor_id,
            match.consumers,
            detail.get("result", ""),
            translated=detail.get("translated", True),
        )
        if match.finished:
            self._finish(actor_id)

    def _on_actor_left(self, event: BusEvent) -> None:
        actor_id = event.detail["actor_id"]
        if self.scheduler.get_actor(actor_id) is None:
            return
        self.scheduler.cancel(actor_id)
        self._drop(actor_id, "left")

    def _finish(self, actor_id: ActorId) -> None:
        self.bus.emit(
            Events.TRANSLATION_FINISHED,
            {"actor_id": actor_id, "dictionaries": self.dictionaries.take(actor_id)},
            source=SOURCE,
        )

    def _drop(self, actor_id: ActorId, reason: str) -> None:
        logger.debug("Dropping translations for actor %r (%s)", actor_id, reason)
        self.dictionaries.discard(actor_id)
        self.bus.emit(
            Events.TRANSLATION_CANCELLED,
            {"actor_id": actor_id, "reason": reason},
            source=SOURCE,
        )
