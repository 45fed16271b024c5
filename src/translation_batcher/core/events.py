"""
Event Type Constants for the Translation Batcher

Every notification that crosses the bus between the host, the resolver and
the translation runtime has a constant here.

=============================================================================
NAMING CONVENTION
=============================================================================

Events use "domain:action" format in PAST TENSE:

    Good: "translation:requested", "actor:left"
    Bad:  "translate", "request_translation"

Exception: "tick" doesn't use past tense because it's a continuous concept.

=============================================================================
USAGE
=============================================================================

    from translation_batcher.core.events import Events

    bus.emit(Events.TICK, {"tick": 42}, source="host")
    bus.on(Events.TRANSLATION_FINISHED, store_dictionaries)

=============================================================================
"""


class Events:
    """
    All standard event types.

    Organized by who emits them.
    """

    # =========================================================================
    # HOST
    # =========================================================================

    TICK = "tick"
    """
    Emitted once per host cycle. Drives the cycle scheduler.

    Detail: {
        "tick": int  # Monotonically increasing cycle number
    }
    """

    ACTOR_LEFT = "actor:left"
    """
    Emitted by the host when an actor goes away (logout, kick, removal).
    Any translation work for the actor is cancelled.

    Detail: {
        "actor_id": Hashable
    }
    """

    # =========================================================================
    # RESOLVER
    # =========================================================================

    STRING_TRANSLATED = "translation:string_translated"
    """
    Emitted by the resolver when a lookup completes. May arrive late, out of
    order, more than once, or never.

    Detail: {
        "actor_id": Hashable,
        "description": str | list,  # The description that was requested
        "result": str,              # The resolved display string
        "translated": bool          # False if the resolver had no text for it
    }
    """

    # =========================================================================
    # TRANSLATION RUNTIME
    # =========================================================================

    TRANSLATION_REQUESTED = "translation:requested"
    """
    Emitted for every resolver call the scheduler issues. The resolver
    listens for this.

    Detail: {
        "actor_id": Hashable,
        "description": str | list
    }
    """

    TRANSLATION_FINISHED = "translation:finished"
    """
    Emitted once when the last pending string of an actor resolves.

    Detail: {
        "actor_id": Hashable,
        "dictionaries": dict[str, dict[Hashable, str]]
    }
    """

    TRANSLATION_CANCELLED = "translation:cancelled"
    """
    Emitted when an actor's work is dropped before finishing.

    Detail: {
        "actor_id": Hashable,
        "reason": str  # "disconnected", "left" or "empty"
    }
    """


# =============================================================================
# HELPER FUNCTIONS
# =============================================================================


def get_all_event_types() -> list[str]:
    """Sorted list of every standard event type string."""
    return sorted(
        value
        for name, value in vars(Events).items()
        if isinstance(value, str) and not name.startswith("_")
    )


def is_valid_event_type(event_type: str) -> bool:
    """True if ``event_type`` is one of the standard constants."""
    return event_type in get_all_event_types()
