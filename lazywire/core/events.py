"""Synchronous editor event bus for triggers and lifecycle hooks."""

from collections.abc import Callable
from datetime import UTC, datetime
from typing import Any

import structlog
from pydantic import BaseModel, ConfigDict, Field

logger = structlog.get_logger()

# Editor event names
VIM_ENTER = "VimEnter"
VERY_LAZY = "VeryLazy"
BUF_READ_POST = "BufReadPost"
BUF_ENTER = "BufEnter"
FILE_TYPE = "FileType"

# Lifecycle event names
PLUGIN_ACTIVE = "plugin.active"
PLUGIN_FAILED = "plugin.failed"
PLUGIN_BUILT = "plugin.built"
STARTUP_DONE = "startup.done"


class Event(BaseModel):
    model_config = ConfigDict(frozen=True)

    name: str
    data: dict[str, Any] = Field(default_factory=dict)
    timestamp: datetime = Field(default_factory=lambda: datetime.now(UTC))


EventHandler = Callable[[Event], None]


class EventBus:
    def __init__(self) -> None:
        self._handlers: dict[str, list[EventHandler]] = {}

    def subscribe(self, event_name: str, handler: EventHandler) -> None:
        self._handlers.setdefault(event_name, []).append(handler)

    def unsubscribe(self, event_name: str, handler: EventHandler) -> None:
        handlers = self._handlers.get(event_name, [])
        if handler in handlers:
            handlers.remove(handler)

    def emit(self, event: Event) -> None:
        for handler in list(self._handlers.get(event.name, [])):
            try:
                handler(event)
            except Exception:
                logger.exception(
                    "event_handler_error",
                    event_name=event.name,
                    handler_name=getattr(handler, "__name__", repr(handler)),
                )

    def fire(self, event_name: str, **data: Any) -> None:
        """Shorthand for emitting an event built from keyword data."""
        self.emit(Event(name=event_name, data=data))
