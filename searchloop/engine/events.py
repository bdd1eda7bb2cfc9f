"""Delivery of orchestrator progress events."""

from __future__ import annotations

import inspect
import logging
from typing import TYPE_CHECKING, Any

from .models import EngineEvent

if TYPE_CHECKING:
    from .protocols import EventListener

logger = logging.getLogger(__name__)

DISPATCH_START = "dispatch_start"
DISPATCH_COMPLETE = "dispatch_complete"
QUALITY_CHECKED = "quality_checked"
CLASSIFIED = "classified"
RANKED = "ranked"
ERROR = "error"
DONE = "done"


class EventEmitter:
    """Sends events to an optional listener; listener failures are logged and ignored."""

    def __init__(self, listener: EventListener | None = None):
        self.listener = listener

    async def emit(self, event_type: str, iteration: int = 0, **data: Any) -> None:
        if self.listener is None:
            return
        event = EngineEvent(type=event_type, iteration=iteration, data=data)
        try:
            outcome = self.listener(event)
            if inspect.isawaitable(outcome):
                await outcome
        except Exception as e:
            logger.warning(f"Event listener failed on '{event_type}': {e}")


class EventCollector:
    """Listener that records every event, useful for the CLI and tests."""

    def __init__(self):
        self.events: list[EngineEvent] = []

    def __call__(self, event: EngineEvent) -> None:
        self.events.append(event)

    def types(self) -> list[str]:
        return [event.type for event in self.events]
