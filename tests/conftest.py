"""
Shared pytest fixtures for the translation batcher test suite.

This module provides fixtures that are automatically available to all test files:
- A recording resolver and an initialised TranslationScheduler
- A fresh EventBus per test
- A connectivity table tests can flip to simulate disconnects
- Common text descriptions and Item builders
"""

from collections.abc import Callable

import pytest

from translation_batcher.core.bus import EventBus
from translation_batcher.translation.scheduler import TranslationScheduler
from translation_batcher.translation.state import Item

# ============================================================================
# RESOLVER / CONNECTIVITY FIXTURES
# ============================================================================


class RecordingResolver:
    """Resolver stand-in that remembers every request it was given."""

    def __init__(self) -> None:
        self.calls: list[tuple] = []

    def __call__(self, actor_id, description) -> None:
        self.calls.append((actor_id, description))

    def descriptions_for(self, actor_id) -> list:
        return [description for actor, description in self.calls if actor == actor_id]

    def clear(self) -> None:
        self.calls.clear()


@pytest.fixture
def resolver() -> RecordingResolver:
    """A fresh recording resolver."""
    return RecordingResolver()


@pytest.fixture
def connected() -> dict:
    """
    Connectivity table consulted by the scheduler fixture.

    Actors default to connected; set ``connected[actor_id] = False`` to
    make the next cycle see them as disconnected.
    """
    return {}


@pytest.fixture
def scheduler(resolver: RecordingResolver, connected: dict) -> TranslationScheduler:
    """
    An initialised scheduler with the reference budget (50) and wait (20).

    Uses the ``resolver`` and ``connected`` fixtures as collaborators.
    """
    sched = TranslationScheduler(
        resolver,
        is_connected=lambda actor_id: connected.get(actor_id, True),
    )
    sched.init()
    return sched


# ============================================================================
# BUS FIXTURES
# ============================================================================


@pytest.fixture
def bus() -> EventBus:
    """A fresh event bus for each test."""
    return EventBus()


# ============================================================================
# DATA FIXTURES
# ============================================================================


@pytest.fixture
def make_items() -> Callable[..., list[Item]]:
    """
    Build Items from ``(description, dictionary, consumer_id)`` tuples.

    Example:
        make_items(("ore", "items", "iron-ore"), ("coal", "items", "coal"))
    """

    def _make(*specs: tuple) -> list[Item]:
        return [
            Item(description, dictionary, consumer_id)
            for description, dictionary, consumer_id in specs
        ]

    return _make


@pytest.fixture
def ore_and_coal_items(make_items) -> list[Item]:
    """Two dictionaries asking for "ore" and one asking for "coal"."""
    return make_items(
        ("ore", "items", "iron-ore"),
        ("ore", "gui", "ore-label"),
        ("coal", "items", "coal"),
    )


def run_cycles(scheduler: TranslationScheduler, start: int, stop: int) -> None:
    """Call iterate_batch for every cycle in ``range(start, stop)``."""
    for cycle in range(start, stop):
        scheduler.iterate_batch(cycle)


@pytest.fixture
def cycles() -> Callable[[TranslationScheduler, int, int], None]:
    """The ``run_cycles`` helper as a fixture."""
    return run_cycles
