"""Cycle-budget scheduler and result router.

``TranslationScheduler`` spreads translation work for many actors across
host cycles (ticks).  Each cycle it divides a fixed budget of resolver-facing
operations evenly between the actors that have work in flight, and advances
each actor's state machine (see :mod:`translation_batcher.translation.state`)
by its share.

Caller contract
---------------
1. ``init()`` once before anything else.
2. ``add_requests(actor_id, items)`` whenever an actor needs strings.
3. ``iterate_batch(cycle)`` once per host cycle.
4. ``process_result(actor_id, description)`` for every resolver result.
   The returned consumers map says which ``(dictionary, consumer_id)``
   pairs the resolved text belongs to; ``finished`` is ``True`` exactly once
   per actor, on the result that resolves its last pending entry.  The one
   exception: if an actor's last entry resolves while re-enqueued items are
   still unsorted and those items all prove invalid, the actor finishes
   during ``iterate_batch`` and is listed in ``CycleReport.finished``.
5. ``cancel(actor_id)`` to drop an actor's work early.

Collaborators
-------------
``resolver(actor_id, description)``
    Fire-and-forget lookup request.  Results come back later, possibly out
    of order, duplicated, or not at all.
``is_connected(actor_id) -> bool``
    Queried per actor per cycle.  Disconnected actors are cancelled.

Lost results
------------
The resolver never says "that was everything".  After issuing every pending
request an actor waits ``wait_cycles`` cycles; if entries are still pending
after that, all of them are requested again.  This repeats until the actor
finishes or is cancelled.

Everything runs synchronously inside the caller's event handler.  Handlers
may re-enter the scheduler (an in-process resolver can deliver a result from
inside ``iterate_batch``), so the registry is walked over a snapshot and an
actor's turn ends as soon as it is no longer registered.
"""

from __future__ import annotations

import logging
from collections.abc import Callable, Iterable
from dataclasses import dataclass, field
from typing import NamedTuple

from translation_batcher.translation.errors import (
    InvalidDescription,
    SchedulerNotInitialisedError,
)
from translation_batcher.translation.serializer import Description, serialize
from translation_batcher.translation.state import (
    ActorId,
    ActorState,
    ConsumerMap,
    GlobalState,
    Item,
    PendingEntry,
    Phase,
)

logger = logging.getLogger(__name__)

#: Operations shared between all active actors per cycle.
DEFAULT_TOTAL_BUDGET = 50

#: Cycles to wait for results before re-requesting everything still pending.
DEFAULT_WAIT_CYCLES = 20

Resolver = Callable[[ActorId, Description], None]
ConnectivityCheck = Callable[[ActorId], bool]


class ResultMatch(NamedTuple):
    """Outcome of :meth:`TranslationScheduler.process_result`.

    Attributes:
        consumers: ``dictionary → [consumer_id, ...]`` for the matched entry,
                   or ``None`` when the result matched nothing pending.
        finished:  ``True`` when this result resolved the actor's last entry
                   (the actor has been cancelled).
    """

    consumers: ConsumerMap | None
    finished: bool


@dataclass
class CycleReport:
    """What one ``iterate_batch`` call did.

    Attributes:
        cycle:           The cycle number passed in.
        iterations:      Per-actor step budget used this cycle.
        requests_issued: Resolver calls made across all actors.
        cancelled:       Actors cancelled because they disconnected.
        abandoned:       Actors dropped because none of their requests
                         produced a valid entry.
        finished:        Actors whose earlier entries all resolved and whose
                         later requests were all invalid.  They finish here
                         instead of in ``process_result``.
    """

    cycle: int
    iterations: int = 0
    requests_issued: int = 0
    cancelled: list[ActorId] = field(default_factory=list)
    abandoned: list[ActorId] = field(default_factory=list)
    finished: list[ActorId] = field(default_factory=list)


def iterations_per_actor(total_budget: int, active_count: int) -> int:
    """Per-actor step budget for one cycle, never less than one."""
    if active_count <= 0:
        return 0
    return max(1, total_budget // active_count)


def _always_connected(actor_id: ActorId) -> bool:  # noqa: ARG001
    return True


class TranslationScheduler:
    """Deduplicating, budgeted translation scheduler for many actors.

    Args:
        resolver:      Called with ``(actor_id, description)`` for every
                       lookup request.
        is_connected:  Connectivity query; defaults to "always connected".
        total_budget:  Per-cycle operation budget shared by all actors.
        wait_cycles:   Cycles to wait before re-requesting pending entries.
    """

    def __init__(
        self,
        resolver: Resolver,
        *,
        is_connected: ConnectivityCheck | None = None,
        total_budget: int = DEFAULT_TOTAL_BUDGET,
        wait_cycles: int = DEFAULT_WAIT_CYCLES,
    ) -> None:
        if total_budget < 1:
            raise ValueError(f"total_budget must be at least 1, got {total_budget}")
        if wait_cycles < 1:
            raise ValueError(f"wait_cycles must be at least 1, got {wait_cycles}")
        self._resolver = resolver
        self._is_connected = is_connected or _always_connected
        self.total_budget = total_budget
        self.wait_cycles = wait_cycles
        self._state: GlobalState | None = None

    # ── Lifecycle ───────────────────────────────────────────────────────────

    def init(self, state: GlobalState | None = None) -> GlobalState:
        """Establish (or adopt) the scheduler's state.  Must run first."""
        self._state = state if state is not None else GlobalState()
        return self._state

    @property
    def state(self) -> GlobalState:
        if self._state is None:
            raise SchedulerNotInitialisedError(
                "TranslationScheduler.init() must be called before use"
            )
        return self._state

    @property
    def active_count(self) -> int:
        return self.state.active_count

    def get_actor(self, actor_id: ActorId) -> ActorState | None:
        return self.state.actors.get(actor_id)

    # ── Enqueue ─────────────────────────────────────────────────────────────

    def add_requests(self, actor_id: ActorId, items: Iterable[Item]) -> None:
        """Queue ``items`` for ``actor_id``; they are sorted on later cycles."""
        actors = self.state.actors
        actor = actors.get(actor_id)
        if actor is None:
            actor = ActorState.from_items(items)
            actors[actor_id] = actor
            logger.info(
                "Started translations for actor %r (%d queued)",
                actor_id,
                len(actor.sort_queue or ()),
            )
        else:
            actor.enqueue(items)
            logger.debug("Queued more translations for actor %r", actor_id)

    # ── Cycle scheduler ─────────────────────────────────────────────────────

    def iterate_batch(self, cycle: int) -> CycleReport:
        """Advance every active actor by its share of this cycle's budget."""
        state = self.state
        report = CycleReport(cycle=cycle)
        if state.active_count == 0:
            return report

        iterations = iterations_per_actor(self.total_budget, state.active_count)
        report.iterations = iterations

        for actor_id, actor in list(state.actors.items()):
            if state.actors.get(actor_id) is not actor:
                continue
            if not self._is_connected(actor_id):
                logger.info("Actor %r disconnected; cancelling translations", actor_id)
                self.cancel(actor_id)
                report.cancelled.append(actor_id)
                continue
            self._run_actor(actor_id, actor, iterations, cycle, report)

        logger.debug(
            "Cycle %d: %d actor(s), %d step(s) each, %d request(s) issued",
            cycle,
            state.active_count,
            iterations,
            report.requests_issued,
        )
        return report

    def _run_actor(
        self, actor_id: ActorId, actor: ActorState, iterations: int, cycle: int, report: CycleReport
    ) -> None:
        """Run up to ``iterations`` steps for one actor."""
        actors = self.state.actors
        steps = 0

        while steps < iterations and actors.get(actor_id) is actor:
            if actor.phase is Phase.SORTING:
                queue = actor.sort_queue
                if queue:
                    item = queue.popleft()
                    steps += 1
                    try:
                        self._sort_item(actor, item)
                    except InvalidDescription as exc:
                        logger.error(
                            "Dropping request %r/%r for actor %r: %s",
                            item.dictionary,
                            item.consumer_id,
                            actor_id,
                            exc,
                        )
                elif actor.table.pending_count == 0:
                    self.cancel(actor_id)
                    if actor.resolved:
                        logger.info("Finished translations for actor %r", actor_id)
                        report.finished.append(actor_id)
                    else:
                        logger.warning(
                            "Actor %r has no valid requests left; dropping it", actor_id
                        )
                        report.abandoned.append(actor_id)
                else:
                    actor.start_translating()

            elif actor.phase is Phase.TRANSLATING:
                entry = self._next_pending_entry(actor)
                if entry is None:
                    actor.start_waiting()
                    continue
                self._resolver(actor_id, entry.description)
                steps += 1
                report.requests_issued += 1

            else:
                self._check_wait(actor_id, actor, cycle)
                break

    @staticmethod
    def _sort_item(actor: ActorState, item: Item) -> None:
        key = serialize(item.description)
        entry = actor.table.get(key)
        if entry is None:
            entry = PendingEntry(description=item.description)
            actor.table.add(key, entry)
        entry.add_consumer(item.dictionary, item.consumer_id)

    @staticmethod
    def _next_pending_entry(actor: ActorState) -> PendingEntry | None:
        """Pop cursor keys until one is still pending and return its entry."""
        cursor = actor.translate_cursor
        while cursor:
            entry = actor.table.get(cursor.popleft())
            if entry is not None:
                return entry
        return None

    def _check_wait(self, actor_id: ActorId, actor: ActorState, cycle: int) -> None:
        if actor.wait_deadline is None:
            actor.wait_deadline = cycle + self.wait_cycles
        elif cycle >= actor.wait_deadline:
            logger.info(
                "Actor %r still has %d unanswered request(s) after %d cycles; re-requesting",
                actor_id,
                actor.table.pending_count,
                self.wait_cycles,
            )
            actor.start_translating()

    # ── Result router ───────────────────────────────────────────────────────

    def process_result(self, actor_id: ActorId, description: Description) -> ResultMatch:
        """Match a resolver result to the actor's pending entry.

        Raises:
            InvalidDescription: If ``description`` cannot be serialized.
        """
        state = self.state
        if state.active_count == 0:
            return ResultMatch(None, False)
        actor = state.actors.get(actor_id)
        if actor is None:
            return ResultMatch(None, False)

        key = serialize(description)
        entry = actor.table.pop(key)
        if entry is None:
            logger.debug("Ignoring stale result for actor %r: %s", actor_id, key)
            return ResultMatch(None, False)

        actor.resolved += 1
        # Items re-enqueued but not yet sorted are still outstanding work.
        if actor.table.pending_count == 0 and not actor.sort_queue:
            self.cancel(actor_id)
            logger.info("Finished translations for actor %r", actor_id)
            return ResultMatch(entry.consumers, True)
        return ResultMatch(entry.consumers, False)

    # ── Cancel ──────────────────────────────────────────────────────────────

    def cancel(self, actor_id: ActorId) -> bool:
        """Drop all translation state for ``actor_id``.

        Returns:
            ``True`` if state was removed, ``False`` (with a warning logged)
            if the actor had none.
        """
        if self.state.actors.pop(actor_id, None) is None:
            logger.warning(
                "UnknownActorCancel: tried to cancel translations for actor %r "
                "when none were running",
                actor_id,
            )
            return False
        return True
