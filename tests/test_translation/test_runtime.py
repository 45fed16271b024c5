"""
Tests for TranslationRuntime, the bus wiring around the scheduler.

The host side of these tests only ever talks to the bus: it emits TICK,
STRING_TRANSLATED and ACTOR_LEFT, and listens for the runtime's
TRANSLATION_* events.
"""

import pytest

from translation_batcher.core.events import Events
from translation_batcher.translation.runtime import TranslationRuntime
from translation_batcher.translation.state import Item

# =============================================================================
# FIXTURES
# =============================================================================


@pytest.fixture
def runtime(bus, connected):
    rt = TranslationRuntime(bus, is_connected=lambda actor_id: connected.get(actor_id, True))
    yield rt
    rt.close()


@pytest.fixture
def received(bus):
    """Collects every event the runtime emits, keyed by type."""
    collected = {
        Events.TRANSLATION_REQUESTED: [],
        Events.TRANSLATION_FINISHED: [],
        Events.TRANSLATION_CANCELLED: [],
    }
    for event_type, events in collected.items():
        bus.on(event_type, lambda event, events=events: events.append(event.detail))
    return collected


def tick(bus, number):
    bus.emit(Events.TICK, {"tick": number})


def answer(bus, actor_id, description, result, *, translated=True):
    bus.emit(
        Events.STRING_TRANSLATED,
        {
            "actor_id": actor_id,
            "description": description,
            "result": result,
            "translated": translated,
        },
        source="resolver",
    )


# =============================================================================
# REQUEST / FINISH FLOW
# =============================================================================


class TestRuntimeFlow:
    """End-to-end flow over the bus."""

    @pytest.mark.unit
    def test_tick_emits_requests(self, bus, runtime, received, ore_and_coal_items):
        runtime.request(1, ore_and_coal_items)

        tick(bus, 0)

        assert received[Events.TRANSLATION_REQUESTED] == [
            {"actor_id": 1, "description": "ore"},
            {"actor_id": 1, "description": "coal"},
        ]

    @pytest.mark.unit
    def test_requests_are_emitted_by_the_runtime(self, bus, runtime, ore_and_coal_items):
        runtime.request(1, ore_and_coal_items)
        tick(bus, 0)

        requested = bus.get_event_log(event_type=Events.TRANSLATION_REQUESTED)
        assert {event.meta.source for event in requested} == {"translation"}

    @pytest.mark.unit
    def test_last_result_emits_finished_with_dictionaries(
        self, bus, runtime, received, ore_and_coal_items
    ):
        runtime.request(1, ore_and_coal_items)
        tick(bus, 0)

        answer(bus, 1, "ore", "Iron ore")
        assert received[Events.TRANSLATION_FINISHED] == []

        answer(bus, 1, "coal", "Coal")

        assert received[Events.TRANSLATION_FINISHED] == [
            {
                "actor_id": 1,
                "dictionaries": {
                    "items": {"iron-ore": "Iron ore", "coal": "Coal"},
                    "gui": {"ore-label": "Iron ore"},
                },
            }
        ]
        assert runtime.scheduler.active_count == 0

    @pytest.mark.unit
    def test_duplicate_results_do_not_refinish(self, bus, runtime, received, make_items):
        runtime.request(1, make_items(("coal", "items", "coal")))
        tick(bus, 0)

        answer(bus, 1, "coal", "Coal")
        answer(bus, 1, "coal", "Coal")

        assert len(received[Events.TRANSLATION_FINISHED]) == 1

    @pytest.mark.unit
    def test_untranslated_result_still_counts_as_answered(
        self, bus, runtime, received, make_items
    ):
        runtime.request(1, make_items(("mystery", "items", "mystery")))
        tick(bus, 0)

        answer(bus, 1, "mystery", "", translated=False)

        assert received[Events.TRANSLATION_FINISHED] == [{"actor_id": 1, "dictionaries": {}}]

    @pytest.mark.unit
    def test_lost_result_is_requested_again(self, bus, runtime, received, make_items):
        runtime.request(1, make_items(("coal", "items", "coal")))
        for number in range(0, 22):
            tick(bus, number)

        descriptions = [d["description"] for d in received[Events.TRANSLATION_REQUESTED]]
        assert descriptions == ["coal", "coal"]

    @pytest.mark.unit
    def test_resolver_answering_inline(self, bus, runtime, received, ore_and_coal_items):
        """A resolver that answers from inside the request handler still works."""
        bus.on(
            Events.TRANSLATION_REQUESTED,
            lambda event: answer(
                bus,
                event.detail["actor_id"],
                event.detail["description"],
                event.detail["description"].title(),
            ),
        )
        runtime.request(1, ore_and_coal_items)

        tick(bus, 0)

        [finished] = received[Events.TRANSLATION_FINISHED]
        assert finished["dictionaries"]["items"] == {"iron-ore": "Ore", "coal": "Coal"}


# =============================================================================
# CANCELLATION
# =============================================================================


class TestRuntimeCancellation:
    """Disconnect, leave and empty-request handling."""

    @pytest.mark.unit
    def test_disconnect_emits_cancelled(
        self, bus, runtime, received, connected, ore_and_coal_items
    ):
        runtime.request(1, ore_and_coal_items)
        tick(bus, 0)
        answer(bus, 1, "ore", "Iron ore")
        connected[1] = False

        tick(bus, 1)

        assert received[Events.TRANSLATION_CANCELLED] == [
            {"actor_id": 1, "reason": "disconnected"}
        ]
        assert 1 not in runtime.dictionaries

    @pytest.mark.unit
    def test_actor_left_cancels(self, bus, runtime, received, ore_and_coal_items):
        runtime.request(1, ore_and_coal_items)

        bus.emit(Events.ACTOR_LEFT, {"actor_id": 1})
        tick(bus, 0)

        assert received[Events.TRANSLATION_CANCELLED] == [{"actor_id": 1, "reason": "left"}]
        assert received[Events.TRANSLATION_REQUESTED] == []

    @pytest.mark.unit
    def test_unknown_actor_left_is_ignored(self, bus, runtime, received):
        bus.emit(Events.ACTOR_LEFT, {"actor_id": 99})

        assert received[Events.TRANSLATION_CANCELLED] == []

    @pytest.mark.unit
    def test_only_invalid_requests_emits_empty(self, bus, runtime, received):
        runtime.request(1, [Item(None, "items", "bad")])

        tick(bus, 0)

        assert received[Events.TRANSLATION_CANCELLED] == [{"actor_id": 1, "reason": "empty"}]

    @pytest.mark.unit
    def test_invalid_re_enqueue_keeps_resolved_results(self, bus, runtime, received, make_items):
        runtime.request(1, make_items(("ore", "items", "iron-ore")))
        tick(bus, 0)
        runtime.request(1, [Item(None, "items", "bad")])
        answer(bus, 1, "ore", "Iron ore")
        assert received[Events.TRANSLATION_FINISHED] == []

        tick(bus, 1)
        tick(bus, 2)

        assert received[Events.TRANSLATION_FINISHED] == [
            {"actor_id": 1, "dictionaries": {"items": {"iron-ore": "Iron ore"}}}
        ]
        assert received[Events.TRANSLATION_CANCELLED] == []

    @pytest.mark.unit
    def test_close_stops_listening(self, bus, received, ore_and_coal_items):
        rt = TranslationRuntime(bus)
        rt.request(1, ore_and_coal_items)
        rt.close()

        tick(bus, 0)

        assert received[Events.TRANSLATION_REQUESTED] == []
        assert bus.get_handler_count(Events.TICK) == 0
