"""Typed exceptions for the translation core.

Only two conditions are ever raised to callers:

- :class:`InvalidDescription` when the key serializer is handed something
  that is not a text description.  Fatal to that request only.
- :class:`SchedulerNotInitialisedError` when the scheduler is used before
  :meth:`~translation_batcher.translation.scheduler.TranslationScheduler.init`.

Everything else the core can run into degrades to a no-op plus a log record:
cancelling an unknown actor logs a warning tagged ``UnknownActorCancel`` and
a result matching nothing pending is logged at debug level and ignored.
"""

from __future__ import annotations


class TranslationError(Exception):
    """Base exception for translation-core failures."""


class InvalidDescription(TranslationError, ValueError):
    """A text description could not be serialized.

    Attributes:
        value: The offending value (the top-level description or the nested
               element that failed).
    """

    def __init__(self, message: str, value: object = None) -> None:
        super().__init__(message)
        self.value = value


class SchedulerNotInitialisedError(TranslationError, RuntimeError):
    """The scheduler was used before ``init()`` established its state."""

