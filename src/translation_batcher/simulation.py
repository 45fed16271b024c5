"""Offline simulation of a lossy resolver driving the translation runtime.

Used by ``translation-batcher simulate`` and by the integration tests to
exercise the whole loop (ticks, dedup, budget sharing, lost results and the
wait-retry path) without a real host.

``SimulatedResolver`` answers ``TRANSLATION_REQUESTED`` events on a later
tick.  Each request is delayed by 1..``max_delay_cycles`` ticks, dropped
with probability ``drop_rate`` and answered twice with probability
``duplicate_rate``.  All randomness comes from the injected ``random.Random``
so runs are reproducible with a seed.
"""

from __future__ import annotations

import logging
import random
from collections.abc import Callable
from dataclasses import dataclass, field
from pathlib import Path
from typing import Any

import yaml

from translation_batcher.config import SchedulerSettings, SimulationSettings
from translation_batcher.core.bus import BusEvent, EventBus
from translation_batcher.core.events import Events
from translation_batcher.translation.dictionaries import Dictionaries
from translation_batcher.translation.errors import InvalidDescription
from translation_batcher.translation.runtime import TranslationRuntime
from translation_batcher.translation.serializer import Description, serialize
from translation_batcher.translation.state import ActorId, Item

logger = logging.getLogger(__name__)

SOURCE = "simulated-resolver"

_DICTIONARIES = ("items", "recipes", "gui")
_NAMES = (
    "iron-ore",
    "copper-ore",
    "coal",
    "stone",
    "iron-plate",
    "copper-plate",
    "steel-plate",
    "electronic-circuit",
    "transport-belt",
    "inserter",
    "assembling-machine",
    "stone-furnace",
)


def render_description(description: Description) -> str:
    """Deterministic display text for a description (stands in for a locale)."""
    words: list[str] = []
    stack: list[Any] = [description]
    while stack:
        node = stack.pop()
        if isinstance(node, (list, tuple)):
            stack.extend(reversed(node))
        else:
            words.append(str(node).rsplit(".", 1)[-1].replace("-", " "))
    text = " ".join(w for w in words if w)
    return text[:1].upper() + text[1:]


@dataclass
class _InFlight:
    due: int
    actor_id: ActorId
    description: Description


class SimulatedResolver:
    """Fake resolver listening on the bus."""

    def __init__(
        self,
        bus: EventBus,
        *,
        drop_rate: float = 0.0,
        duplicate_rate: float = 0.0,
        max_delay_cycles: int = 1,
        rng: random.Random | None = None,
        render: Callable[[Description], str] = render_description,
    ) -> None:
        self.bus = bus
        self.drop_rate = drop_rate
        self.duplicate_rate = duplicate_rate
        self.max_delay_cycles = max(1, max_delay_cycles)
        self.rng = rng or random.Random()
        self.render = render

        self.requests_received = 0
        self.dropped = 0
        self.delivered = 0
        self._current_tick = 0
        self._in_flight: list[_InFlight] = []

        bus.on(Events.TRANSLATION_REQUESTED, self._on_request)
        bus.on(Events.TICK, self._on_tick)

    @property
    def in_flight(self) -> int:
        return len(self._in_flight)

    def _on_request(self, event: BusEvent) -> None:
        self.requests_received += 1
        if self.rng.random() < self.drop_rate:
            self.dropped += 1
            return
        copies = 2 if self.rng.random() < self.duplicate_rate else 1
        for _ in range(copies):
            # Earliest delivery is the tick after the one being processed
            due = self._current_tick + 1 + self.rng.randint(1, self.max_delay_cycles)
            self._in_flight.append(
                _InFlight(due, event.detail["actor_id"], event.detail["description"])
            )

    def _on_tick(self, event: BusEvent) -> None:
        tick = event.detail["tick"]
        self._current_tick = tick
        ready = [r for r in self._in_flight if r.due <= tick]
        self._in_flight = [r for r in self._in_flight if r.due > tick]
        for request in ready:
            self.delivered += 1
            self.bus.emit(
                Events.STRING_TRANSLATED,
                {
                    "actor_id": request.actor_id,
                    "description": request.description,
                    "result": self.render(request.description),
                    "translated": True,
                },
                source=SOURCE,
            )


@dataclass
class SimulationSummary:
    """Outcome of :func:`run_simulation`."""

    cycles: int = 0
    requests_issued: int = 0
    results_delivered: int = 0
    dropped: int = 0
    finished: dict[ActorId, Dictionaries] = field(default_factory=dict)
    finished_at: dict[ActorId, int] = field(default_factory=dict)
    cancelled: list[ActorId] = field(default_factory=list)
    unfinished: list[ActorId] = field(default_factory=list)

    @property
    def completed(self) -> bool:
        return not self.unfinished


def run_simulation(
    requests: dict[ActorId, list[Item]],
    *,
    settings: SimulationSettings | None = None,
    scheduler: SchedulerSettings | None = None,
    disconnect_at: dict[ActorId, int] | None = None,
) -> SimulationSummary:
    """Drive ticks until every actor finishes or ``settings.max_cycles`` pass.

    Args:
        requests:      Items to request, per actor.
        settings:      Fake-resolver behaviour and cycle limit.
        scheduler:     Budget and wait settings for the runtime.
        disconnect_at: ``actor_id → tick`` from which the actor reports as
                       disconnected.
    """
    settings = settings or SimulationSettings()
    scheduler = scheduler or SchedulerSettings()
    disconnect_at = disconnect_at or {}
    summary = SimulationSummary()
    tick = 0

    def is_connected(actor_id: ActorId) -> bool:
        limit = disconnect_at.get(actor_id)
        return limit is None or tick < limit

    bus = EventBus()
    runtime = TranslationRuntime(
        bus,
        is_connected=is_connected,
        total_budget=scheduler.total_budget,
        wait_cycles=scheduler.wait_cycles,
    )
    resolver = SimulatedResolver(
        bus,
        drop_rate=settings.drop_rate,
        duplicate_rate=settings.duplicate_rate,
        max_delay_cycles=settings.max_delay_cycles,
        rng=random.Random(settings.seed),
    )

    def on_finished(event: BusEvent) -> None:
        actor_id = event.detail["actor_id"]
        summary.finished[actor_id] = event.detail["dictionaries"]
        summary.finished_at[actor_id] = tick

    def on_cancelled(event: BusEvent) -> None:
        summary.cancelled.append(event.detail["actor_id"])

    bus.on(Events.TRANSLATION_FINISHED, on_finished)
    bus.on(Events.TRANSLATION_CANCELLED, on_cancelled)

    for actor_id, items in requests.items():
        if items:
            runtime.request(actor_id, items)

    while runtime.scheduler.active_count and tick < settings.max_cycles:
        tick += 1
        bus.emit(Events.TICK, {"tick": tick}, source="simulation")

    summary.cycles = tick
    summary.requests_issued = resolver.requests_received
    summary.results_delivered = resolver.delivered
    summary.dropped = resolver.dropped
    summary.unfinished = list(runtime.scheduler.state.actors)
    runtime.close()

    logger.info(
        "Simulation ran %d cycle(s): %d request(s), %d dropped, %d finished, %d unfinished",
        summary.cycles,
        summary.requests_issued,
        summary.dropped,
        len(summary.finished),
        len(summary.unfinished),
    )
    return summary


# =============================================================================
# REQUEST SOURCES
# =============================================================================


def generate_requests(
    actors: int, items_per_actor: int, rng: random.Random
) -> dict[ActorId, list[Item]]:
    """Random, heavily overlapping requests (so deduplication has work to do)."""
    requests: dict[ActorId, list[Item]] = {}
    for actor_id in range(1, actors + 1):
        items: list[Item] = []
        for index in range(items_per_actor):
            name = rng.choice(_NAMES)
            dictionary = rng.choice(_DICTIONARIES)
            if dictionary == "recipes":
                description: Description = ["recipe-name", [f"item-name.{name}"]]
            else:
                description = f"item-name.{name}"
            items.append(Item(description, dictionary, f"{name}-{index}"))
        requests[actor_id] = items
    return requests


def load_requests_file(path: Path) -> dict[ActorId, list[Item]]:
    """Read requests from a YAML file.

    Expected shape::

        actors:
          player-1:
            - description: item-name.iron-ore
              dictionary: items
              consumer_id: iron-ore
            - description: [recipe-name, [item-name.iron-plate]]
              dictionary: recipes
              consumer_id: iron-plate

    Raises:
        FileNotFoundError: If ``path`` does not exist.
        ValueError: If the document does not have the shape above, or a
            description is not a valid text description.
    """
    with Path(path).open(encoding="utf-8") as f:
        document = yaml.safe_load(f)

    if not isinstance(document, dict) or not isinstance(document.get("actors"), dict):
        raise ValueError(f"{path}: expected a mapping with an 'actors' mapping")

    requests: dict[ActorId, list[Item]] = {}
    for actor_id, entries in document["actors"].items():
        if not isinstance(entries, list):
            raise ValueError(f"{path}: actor {actor_id!r} must map to a list of requests")
        items: list[Item] = []
        for position, entry in enumerate(entries):
            if not isinstance(entry, dict) or "description" not in entry:
                raise ValueError(
                    f"{path}: request {position} of actor {actor_id!r} needs a 'description'"
                )
            try:
                serialize(entry["description"])
            except InvalidDescription as exc:
                raise ValueError(
                    f"{path}: request {position} of actor {actor_id!r}: {exc}"
                ) from exc
            items.append(
                Item(
                    description=entry["description"],
                    dictionary=str(entry.get("dictionary", "default")),
                    consumer_id=entry.get("consumer_id", position),
                )
            )
        requests[actor_id] = items
    return requests
