"""Translation state: the global actor registry and each actor's state machine.

Lifecycle
---------
``GlobalState`` is created by ``TranslationScheduler.init()`` and owned by
that scheduler.  An ``ActorState`` is created on the first ``add_requests``
call for an actor and destroyed when the actor is cancelled (explicitly, on
disconnect, or when its last pending entry resolves).

Phases
------
::

    SORTING ──queue drained──▶ TRANSLATING ──cursor drained──▶ WAITING
       ▲                            ▲                             │
       │                            └──── wait deadline passed ───┘
       └──────────── add_requests (from any phase) ──────────────┘

Only the fields belonging to the current phase are meaningful:
``sort_queue`` in SORTING, ``translate_cursor`` in TRANSLATING and
``wait_deadline`` in WAITING.  The phase-transition methods on
``ActorState`` keep the others cleared.
"""

from __future__ import annotations

import copy
from collections import deque
from collections.abc import Hashable, Iterable, Iterator
from dataclasses import dataclass, field
from enum import Enum

from translation_batcher.translation.serializer import Description

ActorId = Hashable
ConsumerId = Hashable

#: ``dictionary_name → [consumer_id, ...]`` in request order.
ConsumerMap = dict[str, list[ConsumerId]]


class Phase(str, Enum):
    """Phase of a single actor's translation workflow."""

    SORTING = "sorting"
    TRANSLATING = "translating"
    WAITING = "waiting"


@dataclass(frozen=True)
class Item:
    """One translation request.

    Attributes:
        description: The text description to resolve.
        dictionary:  Caller-defined namespace the result belongs to.
        consumer_id: Caller-defined identifier the result is delivered to
                     within ``dictionary``.
    """

    description: Description
    dictionary: str
    consumer_id: ConsumerId


@dataclass
class PendingEntry:
    """One deduplicated resolver request and everyone waiting on it."""

    description: Description
    consumers: ConsumerMap = field(default_factory=dict)

    def add_consumer(self, dictionary: str, consumer_id: ConsumerId) -> None:
        self.consumers.setdefault(dictionary, []).append(consumer_id)


class TranslateTable:
    """Insertion-ordered ``key → PendingEntry`` map with its pending count.

    ``pending_count`` lives beside the entries, never among them, and only
    changes inside :meth:`add` and :meth:`pop`, together with the entry map.
    """

    def __init__(self) -> None:
        self._entries: dict[str, PendingEntry] = {}
        self._pending_count = 0

    @property
    def pending_count(self) -> int:
        return self._pending_count

    def get(self, key: str) -> PendingEntry | None:
        return self._entries.get(key)

    def add(self, key: str, entry: PendingEntry) -> None:
        if key in self._entries:
            raise KeyError(f"entry already pending: {key!r}")
        self._entries[key] = entry
        self._pending_count += 1

    def pop(self, key: str) -> PendingEntry | None:
        """Remove and return the entry for ``key``, or ``None`` if absent."""
        entry = self._entries.pop(key, None)
        if entry is not None:
            self._pending_count -= 1
        return entry

    def keys(self) -> list[str]:
        """Snapshot of the pending keys in insertion order."""
        return list(self._entries)

    def __contains__(self, key: object) -> bool:
        return key in self._entries

    def __iter__(self) -> Iterator[str]:
        return iter(self._entries)

    def __len__(self) -> int:
        return len(self._entries)


@dataclass
class ActorState:
    """Pending translation work for one actor."""

    phase: Phase = Phase.SORTING
    sort_queue: deque[Item] | None = None
    table: TranslateTable = field(default_factory=TranslateTable)
    translate_cursor: deque[str] | None = None
    wait_deadline: int | None = None
    #: Entries matched by a result so far; survives re-enqueue.
    resolved: int = 0

    @classmethod
    def from_items(cls, items: Iterable[Item]) -> ActorState:
        """Create a SORTING state holding a private copy of ``items``."""
        return cls(sort_queue=deque(copy.deepcopy(list(items))))

    def enqueue(self, items: Iterable[Item]) -> None:
        """Queue more items and restart deduplication from SORTING."""
        copied = copy.deepcopy(list(items))
        if self.sort_queue is None:
            self.sort_queue = deque(copied)
        else:
            self.sort_queue.extend(copied)
        self.phase = Phase.SORTING
        self.translate_cursor = None
        self.wait_deadline = None

    def start_translating(self) -> None:
        """Enter TRANSLATING with a cursor over every still-pending entry."""
        self.phase = Phase.TRANSLATING
        self.sort_queue = None
        self.translate_cursor = deque(self.table.keys())
        self.wait_deadline = None

    def start_waiting(self) -> None:
        self.phase = Phase.WAITING
        self.translate_cursor = None
        self.wait_deadline = None


class GlobalState:
    """Registry of every actor with translation work in flight."""

    def __init__(self) -> None:
        self.actors: dict[ActorId, ActorState] = {}

    @property
    def active_count(self) -> int:
        """Number of registered actors; the divisor for the cycle budget."""
        return len(self.actors)
