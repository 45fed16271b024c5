"""Root logger configuration for the command-line entry point.

Library modules only ever call ``logging.getLogger(__name__)``; handlers and
formats are the application's business and are installed here, once, from
:class:`~translation_batcher.config.LoggingSettings`.

Formats
-------
simple    ``LEVEL name: message``
detailed  timestamp, level, logger name and message
json      one JSON object per line (``ts``, ``level``, ``logger``, ``msg``,
          plus ``exc`` when an exception is attached)
"""

from __future__ import annotations

import json
import logging
from datetime import UTC, datetime

from translation_batcher.config import LoggingSettings

HANDLER_NAME = "translation-batcher"

_SIMPLE_FORMAT = "%(levelname)s %(name)s: %(message)s"
_DETAILED_FORMAT = "%(asctime)s %(levelname)-8s [%(name)s] %(message)s"


class JsonFormatter(logging.Formatter):
    """Render each record as a single-line JSON object."""

    def format(self, record: logging.LogRecord) -> str:
        payload = {
            "ts": datetime.fromtimestamp(record.created, UTC).isoformat(),
            "level": record.levelname,
            "logger": record.name,
            "msg": record.getMessage(),
        }
        if record.exc_info:
            payload["exc"] = self.formatException(record.exc_info)
        return json.dumps(payload, ensure_ascii=False)


def build_formatter(fmt: str) -> logging.Formatter:
    if fmt == "json":
        return JsonFormatter()
    if fmt == "detailed":
        return logging.Formatter(_DETAILED_FORMAT)
    return logging.Formatter(_SIMPLE_FORMAT)


def configure_logging(settings: LoggingSettings, *, verbose: bool = False) -> None:
    """Install (or replace) the stderr handler on the root logger.

    Args:
        settings: Level and format to use.
        verbose:  Force DEBUG regardless of ``settings.level``.
    """
    handler = logging.StreamHandler()
    handler.set_name(HANDLER_NAME)
    handler.setFormatter(build_formatter(settings.format))

    root = logging.getLogger()
    # Replace our own handler on repeat calls; leave anyone else's alone
    for existing in list(root.handlers):
        if existing.get_name() == HANDLER_NAME:
            root.removeHandler(existing)
    root.addHandler(handler)
    root.setLevel(logging.DEBUG if verbose else settings.level.upper())
