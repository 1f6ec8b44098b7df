"""Structured log of every domain event."""

from __future__ import annotations

import logging

from payout_engine.events.emitter import AsyncEventEmitter
from payout_engine.events.types import DomainEvent

AUDIT_LOGGER = "payout_engine.audit"


class EventLogHandler:
    """Writes each emitted event as one JSON log line.

    Registered for all events; the JSON carries the correlation id.
    """

    def __init__(self, logger: logging.Logger | None = None):
        self.logger = logger or logging.getLogger(AUDIT_LOGGER)

    def register(self, emitter: AsyncEventEmitter) -> None:
        emitter.on_all(self)

    async def __call__(self, event: DomainEvent) -> None:
        self.logger.info(
            "%s [%s] %s", event.event_type, event.category.value, event.to_json()
        )
