"""Deduplicated, budgeted translation requests for many actors.

Package structure
-----------------
serializer.py    serialize()            - canonical dedup keys for text
                                          descriptions.
state.py         GlobalState/ActorState - actor registry and the
                                          sort → translate → wait machine.
scheduler.py     TranslationScheduler   - per-cycle budget division, state
                                          machine steps, result routing,
                                          cancellation.
dictionaries.py  DictionaryBuilder      - assembles routed results into
                                          per-actor dictionaries.
runtime.py       TranslationRuntime     - wires the above to an EventBus.
errors.py        exception / anomaly types.

Typical call flow
-----------------
1. host builds ``TranslationRuntime(bus)``
2. ``runtime.request(actor_id, [Item(...), ...])``
3. host emits ``Events.TICK`` every cycle; requests go out as
   ``Events.TRANSLATION_REQUESTED``
4. resolver emits ``Events.STRING_TRANSLATED`` per result
5. runtime emits ``Events.TRANSLATION_FINISHED`` with the dictionaries
"""

from translation_batcher.translation.dictionaries import DictionaryBuilder
from translation_batcher.translation.errors import (
    InvalidDescription,
    SchedulerNotInitialisedError,
    TranslationError,
)
from translation_batcher.translation.runtime import TranslationRuntime
from translation_batcher.translation.scheduler import (
    CycleReport,
    ResultMatch,
    TranslationScheduler,
    iterations_per_actor,
)
from translation_batcher.translation.serializer import serialize
from translation_batcher.translation.state import GlobalState, Item, Phase

__all__ = [
    "CycleReport",
    "DictionaryBuilder",
    "GlobalState",
    "InvalidDescription",
    "Item",
    "Phase",
    "ResultMatch",
    "SchedulerNotInitialisedError",
    "TranslationError",
    "TranslationRuntime",
    "TranslationScheduler",
    "iterations_per_actor",
    "serialize",
]
