"""Per-actor dictionary assembly.

The scheduler only reports *who* asked for a resolved string.
``DictionaryBuilder`` turns that into the shape callers consume::

    {
        "items":  {"iron-ore": "Iron ore", "coal": "Coal"},
        "gui":    {"ore-label": "Iron ore"},
    }

Untranslated results (the resolver answered but had no text) are counted and
left out, so consumers fall back to their own identifiers.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass, field

from translation_batcher.translation.state import ActorId, ConsumerId, ConsumerMap

logger = logging.getLogger(__name__)

Dictionaries = dict[str, dict[ConsumerId, str]]


@dataclass
class ActorDictionaries:
    """Results collected so far for one actor."""

    dictionaries: Dictionaries = field(default_factory=dict)
    untranslated: int = 0


class DictionaryBuilder:
    """Collects routed results until each actor finishes."""

    def __init__(self) -> None:
        self._actors: dict[ActorId, ActorDictionaries] = {}

    def record(
        self,
        actor_id: ActorId,
        consumers: ConsumerMap,
        result: str,
        *,
        translated: bool = True,
    ) -> None:
        collected = self._actors.setdefault(actor_id, ActorDictionaries())
        if not translated:
            collected.untranslated += 1
            return
        for dictionary, consumer_ids in consumers.items():
            target = collected.dictionaries.setdefault(dictionary, {})
            for consumer_id in consumer_ids:
                target[consumer_id] = result

    def peek(self, actor_id: ActorId) -> Dictionaries:
        """Results collected so far (empty if none)."""
        collected = self._actors.get(actor_id)
        return collected.dictionaries if collected else {}

    def take(self, actor_id: ActorId) -> Dictionaries:
        """Return and forget an actor's dictionaries."""
        collected = self._actors.pop(actor_id, None)
        if collected is None:
            return {}
        if collected.untranslated:
            logger.info(
                "Actor %r finished with %d untranslated string(s)",
                actor_id,
                collected.untranslated,
            )
        return collected.dictionaries

    def discard(self, actor_id: ActorId) -> None:
        self._actors.pop(actor_id, None)

    def __contains__(self, actor_id: object) -> bool:
        return actor_id in self._actors
